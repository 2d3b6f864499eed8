"""
Archive mutation operations.

Every operation runs the same pipeline:

    read -> decode -> plan -> reorder -> render -> commit

The whole archive is materialized in memory and rendered into a buffer
before the file on disk is touched, so a failure anywhere before the
commit step leaves the original archive as it was. Compression settings
come in through an explicit CodecConfig; nothing is kept between calls.

Sync and async versions are provided; the async ones read and write the
archive through aiofiles and run the in-memory rebuild in an executor.
"""

import asyncio
import io
from typing import List, Optional, Sequence

from tarcore.codecs import CodecConfig
from tarcore.collisions import CollisionPolicy, Decide
from tarcore.commit import commit, commit_async, existing_mode, read_archive, read_archive_async
from tarcore.container import decode, render
from tarcore.entries import Entry
from tarcore.ordering import reorder
from tarcore.planner import Add, DeleteMatching, MutationRequest, Report, Update, plan, validate

DEFAULT_CONFIG = CodecConfig()


def _rebuild(data: bytes, requests: Sequence[MutationRequest], config: CodecConfig,
             policy: CollisionPolicy, decide: Optional[Decide],
             report: Optional[Report]):
    archive = decode(io.BytesIO(data), config.algorithm)
    archive = plan(archive, requests, policy=policy, decide=decide, report=report)
    entries = reorder(archive)
    return entries, render(entries, config)


def mutate(archive_path: str, requests: Sequence[MutationRequest],
           config: CodecConfig = DEFAULT_CONFIG,
           policy: CollisionPolicy = CollisionPolicy.ASK,
           decide: Optional[Decide] = None,
           report: Optional[Report] = None,
           create: bool = False) -> List[Entry]:
    """
    Apply requests to the archive at archive_path and rewrite it.

    Args:
        archive_path: Archive file to rewrite
        requests: Mutation requests, applied left to right
        config: Codec settings for reading and writing
        policy: Collision policy for Add requests
        decide: Yes/no callback for CollisionPolicy.ASK
        report: Progress line sink
        create: Start from an empty archive instead of the file's content

    Returns:
        Members in the order they were written.
    """
    validate(requests)
    if create:
        data, mode = b'', existing_mode(archive_path)
    else:
        data, mode = read_archive(archive_path)
    entries, rendered = _rebuild(data, requests, config, policy, decide, report)
    commit(archive_path, rendered, mode)
    return entries


def append(archive_path: str, paths: Sequence[str], config: CodecConfig = DEFAULT_CONFIG,
           policy: CollisionPolicy = CollisionPolicy.ASK, decide: Optional[Decide] = None,
           report: Optional[Report] = None) -> List[Entry]:
    """Add paths, renaming (or skipping) members whose names collide."""
    return mutate(archive_path, [Add(p) for p in paths], config, policy, decide, report)


def update(archive_path: str, paths: Sequence[str], config: CodecConfig = DEFAULT_CONFIG,
           report: Optional[Report] = None) -> List[Entry]:
    """Add paths, replacing members of the same name; missing names are inserted."""
    return mutate(archive_path, [Update(p) for p in paths], config, report=report)


def delete(archive_path: str, patterns: Sequence[str], config: CodecConfig = DEFAULT_CONFIG,
           report: Optional[Report] = None) -> List[Entry]:
    """Remove members selected by patterns (exact name, glob or directory subtree)."""
    return mutate(archive_path, [DeleteMatching(p) for p in patterns], config, report=report)


def reorganize(archive_path: str, config: CodecConfig = DEFAULT_CONFIG) -> List[Entry]:
    """Rewrite the archive in canonical member order."""
    return mutate(archive_path, [], config)


def create(archive_path: str, paths: Sequence[str], config: CodecConfig = DEFAULT_CONFIG,
           report: Optional[Report] = None) -> List[Entry]:
    """Write a new archive from paths, overwriting any existing file."""
    return mutate(archive_path, [Update(p) for p in paths], config, report=report, create=True)


# ============== ASYNC ==============

async def mutate_async(archive_path: str, requests: Sequence[MutationRequest],
                       config: CodecConfig = DEFAULT_CONFIG,
                       policy: CollisionPolicy = CollisionPolicy.ASK,
                       decide: Optional[Decide] = None,
                       report: Optional[Report] = None) -> List[Entry]:
    """
    Async version of mutate().

    The rebuild (filesystem walk, input reads, decode and compression) runs
    in the default executor; decide and report are called from that thread.
    """
    validate(requests)
    data, mode = await read_archive_async(archive_path)
    entries, rendered = await asyncio.get_running_loop().run_in_executor(
        None, _rebuild, data, requests, config, policy, decide, report
    )
    await commit_async(archive_path, rendered, mode)
    return entries


async def append_async(archive_path: str, paths: Sequence[str], config: CodecConfig = DEFAULT_CONFIG,
                       policy: CollisionPolicy = CollisionPolicy.ASK, decide: Optional[Decide] = None,
                       report: Optional[Report] = None) -> List[Entry]:
    return await mutate_async(archive_path, [Add(p) for p in paths], config, policy, decide, report)


async def update_async(archive_path: str, paths: Sequence[str], config: CodecConfig = DEFAULT_CONFIG,
                       report: Optional[Report] = None) -> List[Entry]:
    return await mutate_async(archive_path, [Update(p) for p in paths], config, report=report)


async def delete_async(archive_path: str, patterns: Sequence[str], config: CodecConfig = DEFAULT_CONFIG,
                       report: Optional[Report] = None) -> List[Entry]:
    return await mutate_async(archive_path, [DeleteMatching(p) for p in patterns], config, report=report)


async def reorganize_async(archive_path: str, config: CodecConfig = DEFAULT_CONFIG) -> List[Entry]:
    return await mutate_async(archive_path, [], config)
