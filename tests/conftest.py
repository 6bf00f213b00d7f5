"""Shared fixtures -- an in-memory metadata store so tests never need ffmpeg."""

from pathlib import Path

import pytest

from mediafile.config import TransferConfig
from mediafile.errors import MetadataWriteFailure
from mediafile.models import TrackMetadata


class FakeStore:
    """MetadataStore stand-in keyed by source file name."""

    def __init__(self, tags=None, fail_write=False, has_cover=False):
        self.tags = dict(tags or {})
        self.fail_write = fail_write
        self._has_cover = has_cover
        self.reads: list[Path] = []
        self.writes: list[tuple[Path, dict, Path | None]] = []

    def read(self, path):
        self.reads.append(Path(path))
        return self.tags.get(Path(path).name, TrackMetadata())

    def has_cover(self, path):
        return self._has_cover

    def write(self, path, tags, cover=None):
        if self.fail_write:
            raise MetadataWriteFailure(f"ffmpeg exited with code 1 tagging {Path(path).name}")
        self.writes.append((Path(path), dict(tags), cover))


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def fake_store():
    """Factory for stores with per-file tags: fake_store({"a.flac": meta}, fail_write=True)."""
    return FakeStore


@pytest.fixture
def config(tmp_path):
    return TransferConfig(
        _env_file=None,
        destination_root=tmp_path / "out",
        max_workers=1,
        poll_interval=0.05,
    )


@pytest.fixture
def make_source():
    """Factory writing a source file: make_source(directory, name, data)."""

    def _make(directory: Path, name: str, data: bytes = b"audio data") -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_bytes(data)
        return path

    return _make
