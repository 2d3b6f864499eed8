"""Command line input helpers: glob expansion and codec inference from file names."""

import glob
import os
from typing import Callable, Dict, List, Optional, Sequence

from tarcore.codecs import Algorithm

# Archive file extension -> compression algorithm
EXTENSION_ALGORITHMS: Dict[str, Algorithm] = {
    '.gz': Algorithm.GZIP,
    '.tgz': Algorithm.GZIP,
    '.zz': Algorithm.ZLIB,
    '.zlib': Algorithm.ZLIB,
    '.br': Algorithm.BROTLI,
    '.bz2': Algorithm.BZIP2,
    '.xz': Algorithm.XZ,
    '.lzma': Algorithm.LZMA,
    '.lz4': Algorithm.LZ4,
    '.zst': Algorithm.ZSTD,
    '.zstd': Algorithm.ZSTD,
    '.s2': Algorithm.S2,
}


def infer_algorithm(archive_path: str) -> Algorithm:
    """Guess the codec from the archive extension ('-' and unknown mean none)."""
    if not archive_path or archive_path == '-':
        return Algorithm.NONE
    ext = os.path.splitext(archive_path)[1].lower()
    return EXTENSION_ALGORITHMS.get(ext, Algorithm.NONE)


def expand_inputs(patterns: Sequence[str], report: Optional[Callable[[str], None]] = None) -> List[str]:
    """
    Expand shell-style input patterns into existing paths.

    Patterns that match nothing are reported and skipped. Order follows the
    patterns; matches of one pattern are sorted.
    """
    paths: List[str] = []
    for pattern in patterns:
        matches = sorted(glob.glob(pattern))
        if not matches and report is not None:
            report(f"No files match pattern: {pattern}")
        paths.extend(matches)
    return paths
