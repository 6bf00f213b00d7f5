"""Per-file staged transfer: copy or transcode, tag, then atomically commit.

All bytes land in a dot-prefixed staging sibling of the destination first;
only a complete, tagged file is renamed into place. The staging file is
reserved exclusively before any bytes move and is removed on every exit
path, so after transfer() returns there is either a complete destination or
nothing at all.
"""

from __future__ import annotations

import os
import shutil
from datetime import datetime
from pathlib import Path

from loguru import logger

from .config import TransferConfig
from .errors import MetadataWriteFailure, StagingConflict
from .metadata import MetadataStore
from .mediafile import MediaItem
from .models import Action, TransferResult, TransferStatus
from .transcode import TranscodePipeline

log = logger.bind(stage="transfer")

# Containers that can carry an attached picture stream
COVER_FORMATS: frozenset[str] = frozenset({"flac", "m4a", "mp3"})


def _reserve(staging: Path) -> None:
    """Create staging exclusively; a concurrent reservation is a conflict."""
    try:
        fd = os.open(staging, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError:
        raise StagingConflict(staging) from None
    os.close(fd)


class TransferEngine:
    """Moves one MediaItem into the destination tree.

    Attributes:
        config: Transfer configuration (timeouts, cover art behavior)
        store: Metadata store used for the post-transfer tag write
    """

    def __init__(
        self,
        config: TransferConfig | None = None,
        store: MetadataStore | None = None,
    ) -> None:
        self.config = config or TransferConfig()
        self.store = store or MetadataStore(timeout=self.config.metadata_timeout)

    def transfer(
        self,
        item: MediaItem,
        destination_base: Path,
        format_table: dict[str, str] | None = None,
    ) -> TransferResult:
        """Transfer item under destination_base.

        Returns:
            TransferResult with status SKIPPED if the destination already
            exists (nothing is touched), COMMITTED otherwise.

        Raises:
            StagingConflict: A staging file from another attempt exists.
            UnsupportedFormat, ProcessSpawnFailure, PipelineProcessError,
            TranscodeTimeout: The transcode could not complete.
            OSError: Copy, mkdir, or rename failed.
        """
        format_table = format_table or {}
        destination = item.output_path(destination_base, format_table)
        staging = item.staging_path(destination_base, format_table)
        log.debug(f"temp dest is '{staging}'")

        if destination.exists():
            log.info(f"File has already been transferred {item.source} => {destination}")
            return TransferResult(
                source=item.source,
                destination=destination,
                status=TransferStatus.SKIPPED,
                action=Action.EXISTS,
            )

        if staging.exists():
            log.error(
                f"File transfer is already in progress for {item.source} "
                f"=> {staging} => {destination}"
            )
            raise StagingConflict(staging)

        transcode = item.needs_transcode(format_table)
        comment = item.default_comment
        if transcode:
            stamp = datetime.now().isoformat(timespec="seconds")
            comment = f"{comment}; Transcoded by mediafile on {stamp}"
        result = TransferResult(
            source=item.source,
            destination=destination,
            status=TransferStatus.COMMITTED,
            action=Action.TRANSCODE if transcode else Action.COPY,
        )

        reserved = False
        try:
            log.debug(f"Create parent directories at '{destination.parent}'")
            destination.parent.mkdir(parents=True, exist_ok=True)
            _reserve(staging)
            reserved = True

            if transcode:
                result.pipeline = self._transcode(item, staging, format_table, comment)
                result.pipeline.raise_for_status()
            else:
                shutil.copyfile(item.source, staging)

            warning = self._apply_metadata(item, staging, comment)
            if warning:
                result.warnings.append(warning)

            staging.replace(destination)
            log.info(f"Committed {item.source} => {destination}")
        finally:
            # Only remove a staging file this call created
            if reserved:
                staging.unlink(missing_ok=True)

        return result

    def _transcode(
        self,
        item: MediaItem,
        staging: Path,
        format_table: dict[str, str],
        comment: str,
    ):
        pipeline = TranscodePipeline(
            source_format=item.container_format,
            target_format=item.target_format(format_table),
            source_path=item.source,
            destination_path=staging,
            metadata=item.metadata,
            comment=comment,
            timeout=self.config.transcode_timeout(item.source.stat().st_size),
            poll_interval=self.config.poll_interval,
            kill_grace=self.config.kill_grace_seconds,
        )
        return pipeline.run()

    def _apply_metadata(self, item: MediaItem, staging: Path, comment: str) -> str | None:
        """Write album artist override, comment, default title, and cover.

        A tag write failure does not undo the transfer: it is logged and
        returned as a warning string.
        """
        tags = {"comment": comment}
        if item.force_album_artist:
            tags["album_artist"] = item.force_album_artist
        if not item.metadata.title:
            tags["title"] = item.name.replace("_", " ")

        cover = None
        if (
            self.config.embed_cover_art
            and staging.suffix.lstrip(".") in COVER_FORMATS
            and item.cover is not None
        ):
            if not self.store.has_cover(staging):
                log.info(f"Adding cover art from {item.cover}")
                cover = item.cover

        try:
            self.store.write(staging, tags, cover=cover)
        except MetadataWriteFailure as e:
            log.warning(f"Metadata write failed for {item.source}: {e}")
            return f"metadata: {e}"
        return None
