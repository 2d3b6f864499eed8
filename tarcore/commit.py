"""
Reading an archive file and committing a rebuilt image over it.

The rebuilt archive is always rendered completely in memory first; only
then is the destination truncated, rewritten from offset 0 and given back
its original mode. A failure before commit() leaves the file untouched.
A failure during the write itself (e.g. disk full after truncation) can
leave a partial file.
"""

import asyncio
import os
import stat
from typing import Optional, Tuple

import aiofiles
import aiofiles.os

from tarcore.errors import ArchiveIOError

# Mode for archives created from scratch
DEFAULT_MODE = 0o644


def read_archive(path: str) -> Tuple[bytes, int]:
    """Load the raw archive bytes and its permission bits."""
    try:
        with open(path, 'rb') as f:
            data = f.read()
            mode = stat.S_IMODE(os.fstat(f.fileno()).st_mode)
    except FileNotFoundError as e:
        raise ArchiveIOError(f"{path} not found") from e
    except OSError as e:
        raise ArchiveIOError(f"error opening the tarball file {path}: {e.strerror or e}") from e
    return data, mode


def _open_or_create(path: str, flags: int) -> int:
    """open() opener: 'r+b' that creates the file (DEFAULT_MODE) instead of failing."""
    return os.open(path, flags | os.O_CREAT, DEFAULT_MODE)


def commit(path: str, data: bytes, mode: Optional[int] = None) -> None:
    """
    Replace the contents of path with data and restore its mode.

    Args:
        path: Archive file (created if absent)
        data: Fully rendered archive image
        mode: Permission bits to restore (DEFAULT_MODE for new files)
    """
    try:
        with open(path, 'r+b', opener=_open_or_create) as f:
            f.truncate(0)
            f.seek(0)
            f.write(data)
            f.flush()
        os.chmod(path, mode if mode is not None else DEFAULT_MODE)
    except OSError as e:
        raise ArchiveIOError(f"error writing updated tarball {path}: {e.strerror or e}") from e


def existing_mode(path: str) -> Optional[int]:
    """Permission bits of path, or None when it does not exist."""
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        return None
    except OSError as e:
        raise ArchiveIOError(f"error stating {path}: {e.strerror or e}") from e


# ============== ASYNC ==============

async def read_archive_async(path: str) -> Tuple[bytes, int]:
    """Async version of read_archive()."""
    try:
        st = await aiofiles.os.stat(path)
        async with aiofiles.open(path, 'rb') as f:
            data = await f.read()
    except FileNotFoundError as e:
        raise ArchiveIOError(f"{path} not found") from e
    except OSError as e:
        raise ArchiveIOError(f"error opening the tarball file {path}: {e.strerror or e}") from e
    return data, stat.S_IMODE(st.st_mode)


async def commit_async(path: str, data: bytes, mode: Optional[int] = None) -> None:
    """Async version of commit()."""
    try:
        async with aiofiles.open(path, 'r+b', opener=_open_or_create) as f:
            await f.truncate(0)
            await f.seek(0)
            await f.write(data)
            await f.flush()
        await asyncio.get_running_loop().run_in_executor(
            None, os.chmod, path, mode if mode is not None else DEFAULT_MODE
        )
    except OSError as e:
        raise ArchiveIOError(f"error writing updated tarball {path}: {e.strerror or e}") from e
