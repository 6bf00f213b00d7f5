"""Destination path resolution from track metadata.

Layout: <base>/<album_artist>/<album>/<file name>.<ext>, every segment passed
through sanitize(). Pure functions -- no filesystem access.
"""

from pathlib import Path

from .models import TrackMetadata
from .sanitize import sanitize

# Longest single path component on common filesystems, in bytes
NAME_MAX = 255


def relative_directory(metadata: TrackMetadata) -> Path:
    """Album artist / album directory, each segment sanitized independently."""
    return Path(sanitize(metadata.album_artist), sanitize(metadata.album))


def file_name(metadata: TrackMetadata, fallback: str, max_bytes: int = NAME_MAX) -> str:
    """Build the file name (no extension), first matching rule wins.

    The title or fallback is shortened so the whole name, including any
    disc/track prefix, fits in max_bytes.

    1. disc, track and title known, and not a single-disc set -> '2_05-Title'
    2. track and title known                                -> '05-Title'
    3. title known                                          -> 'Title'
    4. otherwise the source base name                       -> 'Fallback'
    """
    title = metadata.title
    track = metadata.track

    if metadata.disc_number is not None and track > 0 and title and metadata.disc_total != 1:
        prefix = f"{metadata.disc_number:d}_{track:02d}-"
    elif track > 0 and title:
        prefix = f"{track:02d}-"
    else:
        prefix = ""
    budget = max_bytes - len(prefix.encode("utf-8"))
    return prefix + sanitize(title or fallback, max_bytes=budget)


def output_path(
    base_dir: Path,
    metadata: TrackMetadata,
    fallback: str,
    extension: str,
) -> Path:
    # Leave room for ".<ext>" and the staging dot prefix
    budget = NAME_MAX - len(f".{extension}".encode("utf-8")) - 1
    name = file_name(metadata, fallback, max_bytes=budget)
    return base_dir / relative_directory(metadata) / f"{name}.{extension}"


def staging_path(destination: Path) -> Path:
    """Dot-prefixed sibling of destination used while a transfer is in flight."""
    return destination.with_name(f".{destination.name}")
