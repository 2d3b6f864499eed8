from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from tarcore.entries import Entry, EntryKind


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run the test from inside tmp_path so relative inputs become member names."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def make_entry() -> Callable[..., Entry]:
    def _make(name: str, content: bytes | None = b"", kind: EntryKind = EntryKind.FILE, **fields) -> Entry:
        if kind is EntryKind.DIRECTORY:
            content = None
            fields.setdefault("mode", 0o755)
        fields.setdefault("mtime", 1_700_000_000)
        return Entry(name=name, kind=kind, content=content, **fields)

    return _make


@pytest.fixture
def write_file() -> Callable[..., Path]:
    def _write(path: Path, data: bytes = b"") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    return _write
