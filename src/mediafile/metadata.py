"""Metadata store -- read tag snapshots and write tag overrides.

Reading goes through ffprobe format/stream tags. Writing uses ffmpeg -c copy
(no re-encode) into a temp sibling and atomically replaces the original, so
calling write() twice with the same tags leaves the same file.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from loguru import logger

from .errors import MetadataWriteFailure
from .ffprobe import get_tags, has_attached_picture, parse_number_pair
from .models import TrackMetadata

log = logger.bind(stage="metadata")

# Different containers spell album artist and disc total differently
_ALBUM_ARTIST_KEYS = ("album_artist", "albumartist", "album artist")
_DISC_TOTAL_KEYS = ("disctotal", "totaldiscs", "disc_total")


def _first(tags: dict, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = (tags.get(key) or "").strip()
        if value:
            return value
    return None


def tags_to_metadata(tags: dict) -> TrackMetadata:
    """Build a TrackMetadata snapshot from lowercase ffprobe tags."""
    track, _ = parse_number_pair(tags.get("track"))
    disc_number, disc_total = parse_number_pair(tags.get("disc"))
    if disc_total is None:
        disc_total, _ = parse_number_pair(_first(tags, _DISC_TOTAL_KEYS))

    return TrackMetadata(
        album=_first(tags, ("album",)),
        artist=_first(tags, ("artist",)),
        album_artist=_first(tags, _ALBUM_ARTIST_KEYS),
        title=_first(tags, ("title",)),
        genre=_first(tags, ("genre",)),
        year=_first(tags, ("date", "year")),
        track=track or 0,
        disc_number=disc_number,
        disc_total=disc_total,
        comment=_first(tags, ("comment", "description")),
    )


class MetadataStore:
    """ffprobe/ffmpeg backed tag reader and writer."""

    def __init__(self, timeout: int = 120) -> None:
        self.timeout = timeout

    def read(self, path: Path) -> TrackMetadata:
        """Read a tag snapshot. Unreadable files yield an empty snapshot."""
        tags = get_tags(path)
        if not tags:
            log.debug(f"No tags read from {path}")
        metadata = tags_to_metadata(tags)
        log.debug(
            f"album={metadata.album!r} artist={metadata.artist!r} "
            f"title={metadata.title!r} genre={metadata.genre!r} year={metadata.year!r}"
        )
        return metadata

    def has_cover(self, path: Path) -> bool:
        return has_attached_picture(path)

    def write(
        self,
        path: Path,
        tags: dict[str, str],
        cover: Path | None = None,
    ) -> None:
        """Write tags (and optionally a cover image) into path in place.

        Raises MetadataWriteFailure if ffmpeg fails, times out, or the
        replace fails. The original file is left untouched in that case.
        """
        # Keep the real extension last so ffmpeg can pick the muxer
        temp_file = path.with_name(f"{path.stem}.tmp{path.suffix}")

        cmd = ["ffmpeg", "-y", "-v", "error", "-i", str(path)]

        if cover and cover.exists():
            cmd.extend(["-i", str(cover)])
            cmd.extend(["-map", "0:a", "-map", "1"])
            cmd.extend(["-c", "copy"])
            cmd.extend(["-disposition:v:0", "attached_pic"])
        else:
            cmd.extend(["-map", "0", "-c", "copy"])

        for key, value in tags.items():
            cmd.extend(["-metadata", f"{key}={value}"])

        cmd.append(str(temp_file))

        log.debug(f"ffmpeg command: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            temp_file.unlink(missing_ok=True)
            raise MetadataWriteFailure(f"ffmpeg timed out tagging {path.name}")
        except OSError as e:
            temp_file.unlink(missing_ok=True)
            raise MetadataWriteFailure(f"ffmpeg could not be started: {e}") from e

        if result.returncode != 0:
            log.error(f"ffmpeg stderr: {result.stderr[-500:]}")
            temp_file.unlink(missing_ok=True)
            raise MetadataWriteFailure(
                f"ffmpeg exited with code {result.returncode} tagging {path.name}"
            )

        try:
            temp_file.replace(path)
        except OSError as e:
            temp_file.unlink(missing_ok=True)
            raise MetadataWriteFailure(f"Failed to replace {path.name}: {e}") from e
