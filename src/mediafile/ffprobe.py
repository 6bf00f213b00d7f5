"""FFprobe subprocess wrappers for media file inspection."""

import json
import subprocess
from pathlib import Path


def _run_ffprobe(args: list[str]) -> subprocess.CompletedProcess:
    """Run ffprobe with common flags."""
    return subprocess.run(
        ["ffprobe", "-v", "error"] + args,
        capture_output=True,
        text=True,
    )


def get_tags(file: Path) -> dict:
    """Get format-level and first-audio-stream metadata tags.

    Returns dict with lowercase keys. Common keys: artist, album_artist,
    title, album, genre, date, comment, track, disc. Stream tags only fill
    keys the format level lacks (Ogg/FLAC store Vorbis comments there).
    Returns an empty dict when ffprobe fails or the file has no tags.
    """
    result = _run_ffprobe([
        "-show_entries", "format_tags:stream_tags",
        "-select_streams", "a:0",
        "-of", "json",
        str(file),
    ])
    if result.returncode != 0:
        return {}
    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError:
        return {}

    tags: dict[str, str] = {}
    for stream in data.get("streams", []):
        for k, v in stream.get("tags", {}).items():
            tags.setdefault(k.lower(), v)
    # Format tags win over stream tags
    for k, v in data.get("format", {}).get("tags", {}).items():
        tags[k.lower()] = v
    return tags


def has_attached_picture(file: Path) -> bool:
    """Check whether a file already carries embedded cover art."""
    result = _run_ffprobe([
        "-show_entries", "stream=disposition",
        "-of", "json",
        str(file),
    ])
    if result.returncode != 0:
        return False
    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError:
        return False
    return any(
        s.get("disposition", {}).get("attached_pic") == 1
        for s in data.get("streams", [])
    )


def parse_number_pair(raw: str | None) -> tuple[int | None, int | None]:
    """Parse a 'N' or 'N/TOTAL' tag value into (number, total).

    Non-numeric parts come back as None: '3/12' -> (3, 12), '7' -> (7, None),
    'A1' -> (None, None).
    """
    if not raw:
        return None, None
    number, _, total = raw.strip().partition("/")
    try:
        n = int(number)
    except ValueError:
        n = None
    try:
        t = int(total) if total else None
    except ValueError:
        t = None
    return n, t
