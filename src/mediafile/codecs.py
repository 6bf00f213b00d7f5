"""Decoder and encoder command builders for transcode pipelines.

Decoders write raw/WAV audio to stdout; encoders read it from stdin and write
the destination file, embedding whatever tags their CLI supports. Unknown
formats raise UnsupportedFormat (a configuration error).
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from .errors import UnsupportedFormat
from .models import ProcessRole, TrackMetadata


def _flac_decoder(source: Path) -> list[str]:
    return ["flac", "-c", "-s", "-d", str(source)]


def _sox_decoder(source: Path) -> list[str]:
    return ["sox", str(source), "-t", "wav", "-"]


def _ffmpeg_decoder(source: Path) -> list[str]:
    return ["ffmpeg", "-nostdin", "-v", "error", "-i", str(source), "-f", "wav", "-"]


def _cat_decoder(source: Path) -> list[str]:
    return ["cat", str(source)]


DECODERS: dict[str, Callable[[Path], list[str]]] = {
    "flac": _flac_decoder,
    "mp3": _sox_decoder,
    "m4a": _ffmpeg_decoder,
    "ogg": _ffmpeg_decoder,
    "wav": _cat_decoder,
}


def _flac_encoder(dest: Path, meta: TrackMetadata, comment: str) -> list[str]:
    # -f: the staging file is reserved (empty) before the encoder starts
    cmd = ["flac", "-7", "-V", "-s", "-f", "-o", str(dest)]
    fields = [
        ("artist", meta.artist),
        ("title", meta.title),
        ("album", meta.album),
        ("tracknumber", str(meta.track) if meta.track > 0 else None),
        ("date", meta.year),
        ("genre", meta.genre),
        ("comment", comment),
        ("albumartist", meta.album_artist),
        ("discnumber", str(meta.disc_number) if meta.disc_number else None),
    ]
    for name, value in fields:
        if value:
            cmd.extend(["-T", f"{name}={value}"])
    cmd.append("-")
    return cmd


def _lame_encoder(dest: Path, meta: TrackMetadata, comment: str) -> list[str]:
    cmd = ["lame", "--quiet", "--preset", "extreme", "-h", "--add-id3v2", "--id3v2-only"]
    if meta.title:
        cmd.extend(["--tt", meta.title])
    if meta.artist:
        cmd.extend(["--ta", meta.artist])
    if meta.album:
        cmd.extend(["--tl", meta.album])
    if meta.track > 0:
        cmd.extend(["--tn", str(meta.track)])
    if meta.year:
        cmd.extend(["--ty", meta.year])
    if meta.genre:
        cmd.extend(["--tg", meta.genre])
    cmd.extend(["--tc", comment])
    if meta.album_artist:
        cmd.extend(["--tv", f"TPE2={meta.album_artist}"])
    if meta.disc_number:
        cmd.extend(["--tv", f"TPOS={meta.disc_number}"])
    cmd.extend(["-", str(dest)])
    return cmd


def _aac_encoder(dest: Path, meta: TrackMetadata, comment: str) -> list[str]:
    cmd = ["ffmpeg", "-y", "-v", "error", "-f", "wav", "-i", "-", "-c:a", "aac", "-b:a", "256k"]
    fields = [
        ("title", meta.title),
        ("artist", meta.artist),
        ("album", meta.album),
        ("track", str(meta.track) if meta.track > 0 else None),
        ("date", meta.year),
        ("genre", meta.genre),
        ("comment", comment),
        ("album_artist", meta.album_artist),
        ("disc", str(meta.disc_number) if meta.disc_number else None),
    ]
    for key, value in fields:
        if value:
            cmd.extend(["-metadata", f"{key}={value}"])
    cmd.extend(["-f", "ipod", str(dest)])
    return cmd


def _dd_encoder(dest: Path, meta: TrackMetadata, comment: str) -> list[str]:
    # WAV carries no tags through the pipe
    return ["dd", f"of={dest}", "status=none"]


ENCODERS: dict[str, Callable[[Path, TrackMetadata, str], list[str]]] = {
    "flac": _flac_encoder,
    "mp3": _lame_encoder,
    "m4a": _aac_encoder,
    "wav": _dd_encoder,
}


def build_decoder(source_format: str, source: Path) -> list[str]:
    """Return the decoder command for source_format."""
    decoder = DECODERS.get(source_format)
    if decoder is None:
        raise UnsupportedFormat(source_format, ProcessRole.DECODER)
    return decoder(source)


def build_encoder(
    target_format: str,
    dest: Path,
    metadata: TrackMetadata,
    comment: str = "",
) -> list[str]:
    """Return the encoder command for target_format."""
    encoder = ENCODERS.get(target_format)
    if encoder is None:
        raise UnsupportedFormat(target_format, ProcessRole.ENCODER)
    return encoder(dest, metadata, comment)
