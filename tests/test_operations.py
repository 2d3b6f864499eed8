from __future__ import annotations

import asyncio
import os
import stat
import tarfile
import threading
from pathlib import Path

import pytest

from tarcore import operations
from tarcore.codecs import CodecConfig
from tarcore.collisions import CollisionPolicy
from tarcore.commit import DEFAULT_MODE, commit, commit_async
from tarcore.errors import (
    ArchiveIOError,
    CodecError,
    MalformedArchiveError,
    NameCollisionError,
    PatternError,
)
from tarcore.operations import (
    append,
    append_async,
    create,
    delete,
    delete_async,
    reorganize,
    reorganize_async,
    update,
    update_async,
)


def members(path: Path, mode: str = "r:") -> list:
    with tarfile.open(path, mode) as tar:
        return tar.getnames()


def read_member(path: Path, name: str, mode: str = "r:") -> bytes:
    with tarfile.open(path, mode) as tar:
        return tar.extractfile(name).read()


@pytest.fixture
def tarball(workdir: Path, write_file) -> Path:
    write_file(workdir / "project" / "README.md", b"# project\n")
    write_file(workdir / "project" / "src" / "app.py", b"print('app')\n")
    write_file(workdir / "notes.txt", b"first notes")
    target = workdir / "bundle.tar"
    create(str(target), ["project", "notes.txt"])
    return target


def test_create_writes_canonical_order(tarball: Path) -> None:
    assert members(tarball) == [
        "notes.txt",
        "project",
        "project/README.md",
        "project/src",
        "project/src/app.py",
    ]
    assert read_member(tarball, "project/src/app.py") == b"print('app')\n"
    assert stat.S_IMODE(tarball.stat().st_mode) == 0o644


def test_create_reports_progress(workdir: Path, write_file) -> None:
    write_file(workdir / "one.txt", b"1")
    lines = []
    create(str(workdir / "out.tar"), ["one.txt"], report=lines.append)
    assert lines == ["Added or updated: one.txt (1 bytes)"]


def test_append_renames_colliding_file(workdir: Path, write_file, tarball: Path) -> None:
    write_file(workdir / "notes.txt", b"second notes")
    lines = []

    append(str(tarball), ["notes.txt"], policy=CollisionPolicy.RENAME, report=lines.append)

    assert read_member(tarball, "notes.txt") == b"first notes"
    assert read_member(tarball, "notes_1.txt") == b"second notes"
    assert lines == ["Duplicated file renamed to: notes_1.txt", "Appended: notes_1.txt (12 bytes)"]


def test_append_asks_before_renaming(workdir: Path, tarball: Path) -> None:
    asked = []

    def decline(name: str) -> bool:
        asked.append(name)
        return False

    before = members(tarball)
    append(str(tarball), ["notes.txt"], decide=decline)

    assert asked == ["notes.txt"]
    assert members(tarball) == before


def test_update_replaces_in_place(workdir: Path, write_file, tarball: Path) -> None:
    write_file(workdir / "project" / "README.md", b"# rewritten\n")

    update(str(tarball), ["project/README.md"])

    assert read_member(tarball, "project/README.md") == b"# rewritten\n"
    assert "project/README_1.md" not in members(tarball)


def test_delete_subtree(tarball: Path) -> None:
    lines = []
    delete(str(tarball), ["project/src/"], report=lines.append)

    assert members(tarball) == ["notes.txt", "project", "project/README.md"]
    assert lines == ["Deleted: project/src/", "Deleted: project/src/app.py"]


def test_delete_glob_keeps_nested(tarball: Path) -> None:
    delete(str(tarball), ["project/*.md"])
    assert "project/README.md" not in members(tarball)
    assert "project/src/app.py" in members(tarball)


def test_reorganize_is_idempotent(tarball: Path) -> None:
    reorganize(str(tarball))
    once = tarball.read_bytes()
    reorganize(str(tarball))
    assert tarball.read_bytes() == once


def test_reorganize_sorts_foreign_archive(workdir: Path, write_file) -> None:
    for name in ("b.txt", "a/z.txt", "a.txt"):
        write_file(workdir / name, name.encode())
    target = workdir / "foreign.tar"
    with tarfile.open(target, "w") as tar:
        for name in ("b.txt", "a/z.txt", "a.txt"):
            tar.add(name)

    reorganize(str(target))

    assert members(target) == ["a/z.txt", "a.txt", "b.txt"]


def test_mode_is_preserved(workdir: Path, write_file, tarball: Path) -> None:
    os.chmod(tarball, 0o600)
    write_file(workdir / "later.txt", b"later")

    append(str(tarball), ["later.txt"], policy=CollisionPolicy.FAIL)

    assert stat.S_IMODE(tarball.stat().st_mode) == 0o600


@pytest.mark.parametrize("algorithm, read_mode", [("gzip", "r:gz"), ("bzip2", "r:bz2"), ("xz", "r:xz")])
def test_compressed_archive(workdir: Path, write_file, algorithm: str, read_mode: str) -> None:
    write_file(workdir / "data.bin", b"\x00\x01" * 5000)
    target = workdir / "data.tar.c"
    config = CodecConfig(algorithm=algorithm, level=9)

    create(str(target), ["data.bin"], config)
    write_file(workdir / "more.bin", b"more")
    append(str(target), ["more.bin"], config, policy=CollisionPolicy.FAIL)

    assert members(target, read_mode) == ["data.bin", "more.bin"]
    assert read_member(target, "data.bin", read_mode) == b"\x00\x01" * 5000


def test_zstd_archive_round_trip(workdir: Path, write_file) -> None:
    write_file(workdir / "data.txt", b"zstd " * 1000)
    target = workdir / "data.tar.zst"
    config = CodecConfig(algorithm="zstd")

    create(str(target), ["data.txt"], config)
    written = update(str(target), ["data.txt"], config)

    assert [e.name for e in written] == ["data.txt"]
    assert written[0].content == b"zstd " * 1000
    assert target.read_bytes()[:4] == b"\x28\xb5\x2f\xfd"


def test_missing_archive(workdir: Path) -> None:
    with pytest.raises(ArchiveIOError):
        delete(str(workdir / "absent.tar"), ["x"])
    assert not (workdir / "absent.tar").exists()


def test_render_failure_leaves_archive_untouched(monkeypatch, workdir: Path, write_file, tarball: Path) -> None:
    before = tarball.read_bytes()
    write_file(workdir / "late.txt", b"late")

    def broken(*args, **kwargs):
        raise MalformedArchiveError("boom")

    monkeypatch.setattr(operations, "render", broken)
    with pytest.raises(MalformedArchiveError):
        append(str(tarball), ["late.txt"], policy=CollisionPolicy.FAIL)

    assert tarball.read_bytes() == before


def test_collision_failure_leaves_archive_untouched(tarball: Path) -> None:
    before = tarball.read_bytes()
    with pytest.raises(NameCollisionError):
        append(str(tarball), ["notes.txt"], policy=CollisionPolicy.FAIL)
    assert tarball.read_bytes() == before


def test_bad_pattern_leaves_archive_untouched(tarball: Path) -> None:
    before = tarball.read_bytes()
    with pytest.raises(PatternError):
        delete(str(tarball), ["notes.txt", "[oops"])
    assert tarball.read_bytes() == before


def test_malformed_archive_is_not_rewritten(workdir: Path) -> None:
    target = workdir / "broken.tar"
    target.write_bytes(b"x" * 1024)
    with pytest.raises(MalformedArchiveError):
        reorganize(str(target))
    assert target.read_bytes() == b"x" * 1024


def test_wrong_codec_is_not_rewritten(tarball: Path) -> None:
    before = tarball.read_bytes()
    with pytest.raises(CodecError):
        reorganize(str(tarball), CodecConfig(algorithm="gzip"))
    assert tarball.read_bytes() == before


def test_async_operations(workdir: Path, write_file, tarball: Path) -> None:
    write_file(workdir / "notes.txt", b"async notes")
    write_file(workdir / "extra.txt", b"extra")

    async def scenario() -> None:
        await append_async(str(tarball), ["extra.txt"], policy=CollisionPolicy.FAIL)
        await update_async(str(tarball), ["notes.txt"])
        await delete_async(str(tarball), ["project/"])
        await reorganize_async(str(tarball))

    asyncio.run(scenario())

    assert members(tarball) == ["extra.txt", "notes.txt"]
    assert read_member(tarball, "notes.txt") == b"async notes"


def test_async_missing_archive(workdir: Path) -> None:
    with pytest.raises(ArchiveIOError):
        asyncio.run(reorganize_async(str(workdir / "absent.tar")))


def test_async_rebuild_runs_off_the_event_loop(monkeypatch, workdir: Path, tarball: Path) -> None:
    threads = {}
    rebuild = operations._rebuild

    def recording(*args, **kwargs):
        threads["rebuild"] = threading.get_ident()
        return rebuild(*args, **kwargs)

    monkeypatch.setattr(operations, "_rebuild", recording)

    async def scenario() -> None:
        threads["loop"] = threading.get_ident()
        await reorganize_async(str(tarball))

    asyncio.run(scenario())

    assert threads["rebuild"] != threads["loop"]
    assert members(tarball)[0] == "notes.txt"


def test_commit_async_creates_and_keeps_mode(workdir: Path) -> None:
    target = workdir / "fresh.tar"

    asyncio.run(commit_async(str(target), b"first image"))
    assert target.read_bytes() == b"first image"
    assert stat.S_IMODE(target.stat().st_mode) == DEFAULT_MODE

    os.chmod(target, 0o600)
    asyncio.run(commit_async(str(target), b"short", 0o600))
    assert target.read_bytes() == b"short"
    assert stat.S_IMODE(target.stat().st_mode) == 0o600


def test_commit_creates_missing_file(workdir: Path) -> None:
    target = workdir / "new.tar"
    commit(str(target), b"image")
    assert target.read_bytes() == b"image"
    assert stat.S_IMODE(target.stat().st_mode) == DEFAULT_MODE
