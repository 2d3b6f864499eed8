from __future__ import annotations

import pytest

from tarcore.errors import PatternError
from tarcore.matching import MatchKind, compile_pattern


def test_exact_match() -> None:
    m = compile_pattern("docs/readme.md")
    assert m.match_kind("docs/readme.md") is MatchKind.EXACT
    assert not m.matches("docs/readme.mdx")


def test_star_does_not_cross_separator() -> None:
    m = compile_pattern("logs/*.log")
    assert m.match_kind("logs/a.log") is MatchKind.GLOB
    assert not m.matches("logs/old/a.log")
    assert not m.matches("a.log")


def test_question_mark_and_classes() -> None:
    assert compile_pattern("file?.txt").matches("file1.txt")
    assert not compile_pattern("file?.txt").matches("file/.txt")
    assert compile_pattern("v[0-9].tar").matches("v7.tar")
    assert not compile_pattern("v[0-9].tar").matches("vx.tar")
    assert compile_pattern("v[^0-9].tar").matches("vx.tar")
    assert compile_pattern("v[!0-9].tar").matches("vx.tar")
    assert not compile_pattern("v[^0-9].tar").matches("v/.tar")


def test_escaped_metacharacter_is_literal() -> None:
    m = compile_pattern(r"star\*.txt")
    assert m.matches("star*.txt")
    assert not m.matches("starry.txt")


def test_subtree_match_with_trailing_separator() -> None:
    m = compile_pattern("logs/")
    assert m.match_kind("logs/a.log") is MatchKind.SUBTREE
    assert m.matches("logs/deep/b.log")
    assert not m.matches("logs")
    assert not m.matches("logsx/a.log")


def test_directory_answers_to_trailing_separator() -> None:
    m = compile_pattern("logs/")
    assert m.match_kind("logs/") is MatchKind.EXACT
    assert not m.matches("logs")


def test_directory_answers_to_bare_name() -> None:
    m = compile_pattern("logs")
    assert m.match_kind("logs/") is MatchKind.EXACT
    assert m.match_kind("logs/a.log") is MatchKind.SUBTREE
    assert compile_pattern("lo*").match_kind("logs/") is MatchKind.GLOB


def test_subtree_match_without_trailing_separator() -> None:
    m = compile_pattern("build")
    assert m.match_kind("build") is MatchKind.EXACT
    assert m.match_kind("build/out.o") is MatchKind.SUBTREE


def test_glob_subtree() -> None:
    m = compile_pattern("cache-*")
    assert m.matches("cache-1/blob")
    assert not m.matches("cache/blob")


@pytest.mark.parametrize("pattern", ["", "[abc", "abc\\", "[]", "[z-a]", "a[\\"])
def test_invalid_patterns(pattern: str) -> None:
    with pytest.raises(PatternError):
        compile_pattern(pattern)
