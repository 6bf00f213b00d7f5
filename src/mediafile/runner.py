"""Library entry point -- turn a list of source paths into a finished batch."""

from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path

from loguru import logger

from .config import TransferConfig
from .coordinator import WorkCoordinator
from .metadata import MetadataStore
from .mediafile import MediaItem
from .models import AUDIO_EXTENSIONS, BatchSummary
from .transfer import TransferEngine

log = logger.bind(stage="runner")


def find_media_files(
    root: Path,
    extensions: frozenset[str] = AUDIO_EXTENSIONS,
) -> list[Path]:
    """Find media files under root, sorted by path.

    Hidden files (including staging artifacts from earlier runs) are skipped.
    """
    found: list[Path] = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            if name.startswith("."):
                continue
            if Path(name).suffix.lower() in extensions:
                found.append(Path(dirpath) / name)
    return sorted(found)


def normalize_sources(sources: Sequence[str | os.PathLike]) -> list[Path]:
    """Validate the sources argument and expand directories into media files.

    Raises:
        TypeError: If sources is a single path instead of a sequence of paths.
    """
    if isinstance(sources, (str, bytes, os.PathLike)):
        raise TypeError(
            f"sources must be a sequence of paths, not {type(sources).__name__}; "
            f"wrap a single path in a list"
        )

    paths: list[Path] = []
    for source in sources:
        path = Path(source)
        if path.is_dir():
            expanded = find_media_files(path)
            log.debug(f"Expanded {path} into {len(expanded)} files")
            paths.extend(expanded)
        else:
            paths.append(path)
    return paths


def bulk_transfer(
    sources: Sequence[str | os.PathLike],
    destination_root: str | os.PathLike,
    *,
    force_album_artist: str | None = None,
    format_remap: dict[str, str] | None = None,
    max_workers: int | None = None,
    show_progress: bool | None = None,
    config: TransferConfig | None = None,
    store: MetadataStore | None = None,
) -> BatchSummary:
    """Copy or transcode sources into destination_root.

    Layout: <destination_root>/<Album_Artist>/<Album>/<NN-Title>.<ext>.
    Keyword arguments override the matching TransferConfig fields for this
    batch only. Per-file failures are listed in the returned summary.

    Logging is left to the caller (see TransferConfig.setup_logging), unless
    config.log_dir is set, in which case setup_logging() is applied here so
    log_level and the file sink take effect.

    Args:
        sources: Sequence of file (or directory) paths to transfer
        destination_root: Root of the destination tree
        force_album_artist: Album artist written to, and used to place, every file
        format_remap: Source format -> target format, e.g. {"flac": "mp3"}
        max_workers: Concurrent transfers (<= 1 runs sequentially)
        show_progress: Print a progress block after every file
        config: Base configuration (defaults to TransferConfig())
        store: Metadata store (defaults to the ffprobe/ffmpeg store)
    """
    paths = normalize_sources(sources)

    config = config or TransferConfig()
    overrides: dict = {"destination_root": Path(destination_root)}
    if force_album_artist is not None:
        overrides["force_album_artist"] = force_album_artist
    if format_remap is not None:
        overrides["format_remap"] = format_remap
    if max_workers is not None:
        overrides["max_workers"] = max_workers
    if show_progress is not None:
        overrides["show_progress"] = show_progress
    # Re-validate so format_remap is normalized the same way as env input
    config = TransferConfig.model_validate({**config.model_dump(), **overrides})
    if config.log_dir is not None:
        config.setup_logging()

    store = store or MetadataStore(timeout=config.metadata_timeout)
    items = [
        MediaItem(
            path,
            store=store,
            force_album_artist=config.force_album_artist,
            cover_file_name=config.cover_file_name,
        )
        for path in paths
    ]

    coordinator = WorkCoordinator(
        config,
        destination_root=config.destination_root,
        format_table=config.format_remap,
        engine=TransferEngine(config, store=store),
    )
    return coordinator.run_batch(items)
