"""
Member name matching for delete and extract patterns.

A pattern matches a member name in one of three ways:

- exact:   the pattern has no wildcards and equals the name
           (a directory "logs/" also answers to "logs")
- glob:    shell-style wildcards; "*" and "?" never cross "/",
           "[...]" classes take ranges and "^" or "!" negation,
           "\\" escapes the next character
- subtree: an ancestor directory of the name matches the pattern with
           trailing "/" removed, so "logs/" selects "logs/a" and "logs/b/c"
           but not a file called "logs"; the directory "logs/" itself is an
           exact match
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Pattern, Tuple

from tarcore.errors import PatternError


class MatchKind(str, Enum):
    EXACT = "exact"
    GLOB = "glob"
    SUBTREE = "subtree"


def has_magic(pattern: str) -> bool:
    return any(c in pattern for c in '*?[\\')


def _class_char(pattern: str, j: int) -> Tuple[str, int]:
    if pattern[j] == '\\':
        if j + 1 >= len(pattern):
            raise PatternError(f"syntax error in pattern {pattern!r}: trailing backslash")
        return pattern[j + 1], j + 2
    return pattern[j], j + 1


def translate(pattern: str) -> str:
    """Translate a glob pattern into an equivalent regular expression."""
    out: List[str] = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        i += 1
        if c == '*':
            out.append('[^/]*')
        elif c == '?':
            out.append('[^/]')
        elif c == '\\':
            if i >= n:
                raise PatternError(f"syntax error in pattern {pattern!r}: trailing backslash")
            out.append(re.escape(pattern[i]))
            i += 1
        elif c == '[':
            j = i
            negate = j < n and pattern[j] in '^!'
            if negate:
                j += 1
            ranges: List[Tuple[str, str]] = []
            while True:
                if j >= n:
                    raise PatternError(f"syntax error in pattern {pattern!r}: unterminated character class")
                if pattern[j] == ']':
                    if not ranges:
                        raise PatternError(f"syntax error in pattern {pattern!r}: empty character class")
                    j += 1
                    break
                lo, j = _class_char(pattern, j)
                hi = lo
                if j + 1 < n and pattern[j] == '-' and pattern[j + 1] != ']':
                    hi, j = _class_char(pattern, j + 1)
                    if hi < lo:
                        raise PatternError(f"syntax error in pattern {pattern!r}: bad range {lo}-{hi}")
                ranges.append((lo, hi))
            i = j
            body = ''.join(
                re.escape(lo) if lo == hi else f'{re.escape(lo)}-{re.escape(hi)}'
                for lo, hi in ranges
            )
            out.append(f'[^{body}/]' if negate else f'[{body}]')
        else:
            out.append(re.escape(c))
    return ''.join(out)


@dataclass(frozen=True)
class Matcher:
    pattern: str
    regex: Pattern
    stem: Optional[Pattern]  # pattern without trailing "/", for subtree matching

    def match_kind(self, name: str) -> Optional[MatchKind]:
        """Return how the pattern selects name, or None. Directory names end in '/'."""
        stem = name.rstrip('/')
        candidates = (name, stem) if stem != name else (name,)
        if not has_magic(self.pattern) and self.pattern in candidates:
            return MatchKind.EXACT
        if any(self.regex.fullmatch(c) for c in candidates):
            return MatchKind.GLOB
        if self.stem is not None:
            parts = stem.split('/')
            for k in range(1, len(parts)):
                if self.stem.fullmatch('/'.join(parts[:k])):
                    return MatchKind.SUBTREE
        return None

    def matches(self, name: str) -> bool:
        return self.match_kind(name) is not None


def compile_pattern(pattern: str) -> Matcher:
    """Validate and compile one pattern. Raises PatternError on bad syntax."""
    if not pattern:
        raise PatternError("empty pattern")
    regex = re.compile(translate(pattern), re.DOTALL)
    stripped = pattern.rstrip('/')
    stem = re.compile(translate(stripped), re.DOTALL) if stripped else None
    return Matcher(pattern=pattern, regex=regex, stem=stem)


def compile_patterns(patterns: Iterable[str]) -> List[Matcher]:
    return [compile_pattern(p) for p in patterns]
