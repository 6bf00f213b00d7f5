"""MediaItem -- one source file and everything derived from it."""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from .models import TrackMetadata
from .paths import output_path, staging_path
from .sanitize import source_fingerprint

if TYPE_CHECKING:
    from .metadata import MetadataStore

log = logger.bind(stage="mediafile")


def _table_key(format_table: dict[str, str] | None) -> tuple[tuple[str, str], ...]:
    return tuple(sorted((format_table or {}).items()))


class MediaItem:
    """A source media file.

    The source path is fixed at construction. Container format, fingerprint,
    metadata and destination paths are derived lazily and cached: the
    metadata snapshot is read at most once, and each (base_dir, format table)
    pair always maps to the same destination.
    """

    def __init__(
        self,
        source: Path | str,
        store: MetadataStore | None = None,
        force_album_artist: str | None = None,
        cover_file_name: str = "cover.jpg",
    ) -> None:
        self._source = Path(source)
        self._store = store
        self.force_album_artist = force_album_artist
        self.name = self._source.stem
        self.container_format = self._source.suffix.lstrip(".").lower()
        self._cover_file_name = cover_file_name
        self._metadata: TrackMetadata | None = None
        self._read = False
        self._fingerprint: str | None = None
        self._destinations: dict[tuple, Path] = {}

    @property
    def source(self) -> Path:
        return self._source

    @property
    def fingerprint(self) -> str:
        if self._fingerprint is None:
            self._fingerprint = source_fingerprint(self._source)
        return self._fingerprint

    @property
    def metadata(self) -> TrackMetadata:
        """Tag snapshot, read from the store on first access only."""
        if not self._read:
            self._metadata = self._read_metadata()
            self._read = True
        return self._metadata

    def _read_metadata(self) -> TrackMetadata:
        if self._store is None:
            from .metadata import MetadataStore

            self._store = MetadataStore()
        snapshot = self._store.read(self._source)
        if self.force_album_artist:
            album_artist = self.force_album_artist
        else:
            album_artist = snapshot.album_artist or snapshot.artist
        return dataclasses.replace(snapshot, album_artist=album_artist)

    @property
    def default_comment(self) -> str:
        """Comment tag written to every transferred file."""
        return f"mediafile source: {self._source}\n{self.metadata.comment or ''}"

    @property
    def cover(self) -> Path | None:
        """Sibling cover image next to the source, if one exists."""
        candidate = self._source.parent / self._cover_file_name
        return candidate if candidate.is_file() else None

    def target_format(self, format_table: dict[str, str] | None = None) -> str:
        return (format_table or {}).get(self.container_format, self.container_format)

    def needs_transcode(self, format_table: dict[str, str] | None = None) -> bool:
        return self.container_format in (format_table or {})

    def output_path(
        self,
        base_dir: Path | str,
        format_table: dict[str, str] | None = None,
    ) -> Path:
        """Destination for this item under base_dir, memoized per format table."""
        key = (Path(base_dir), _table_key(format_table))
        if key not in self._destinations:
            self._destinations[key] = output_path(
                Path(base_dir),
                self.metadata,
                self.name,
                self.target_format(format_table),
            )
            log.debug(f"{self._source} => {self._destinations[key]}")
        return self._destinations[key]

    def staging_path(
        self,
        base_dir: Path | str,
        format_table: dict[str, str] | None = None,
    ) -> Path:
        return staging_path(self.output_path(base_dir, format_table))

    def __str__(self) -> str:
        return str(self._source)

    def __repr__(self) -> str:
        return f"MediaItem({str(self._source)!r})"
