"""Core enums, constants, and type definitions for mediafile.

Enums:
    TransferStatus -- Outcome of a single file transfer (committed, skipped).
    PipelineState  -- Transcode pipeline lifecycle. STARTING -> RUNNING, then one
                      of the terminal states SUCCEEDED, FAILED, TIMED_OUT.
    ProcessRole    -- Which side of a transcode pipeline a process plays.
    Action         -- Label shown on the progress line for each file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .mediafile import MediaItem


class TransferStatus(StrEnum):
    COMMITTED = "committed"
    SKIPPED = "skipped"


class PipelineState(StrEnum):
    STARTING = "starting"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class ProcessRole(StrEnum):
    DECODER = "decoder"
    ENCODER = "encoder"


class Action(StrEnum):
    EXISTS = "already exists"
    TRANSCODE = "transcode"
    COPY = "copy"
    DUPLICATE = "duplicate"
    FAILED = "failed"


AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".flac",
        ".m4a",
        ".mp3",
        ".ogg",
        ".wav",
    }
)


@dataclass(frozen=True)
class TrackMetadata:
    """Snapshot of the tags read from a source file. Every field is optional."""

    album: str | None = None
    artist: str | None = None
    album_artist: str | None = None
    title: str | None = None
    genre: str | None = None
    year: str | None = None
    track: int = 0
    disc_number: int | None = None
    disc_total: int | None = None
    comment: str | None = None


@dataclass(frozen=True)
class Claim:
    """A registered intent to transfer one source to one destination."""

    source: Path
    destination: Path

    def __str__(self) -> str:
        return f"{self.source} => {self.destination}"


@dataclass(frozen=True)
class TransferJob:
    """One queued unit of work: a media item plus the batch-wide options."""

    item: MediaItem
    destination_root: Path
    format_table: dict[str, str] = field(default_factory=dict)


@dataclass
class PipelineResult:
    """Outcome of one decoder -> encoder transcode run."""

    state: PipelineState
    exit_statuses: dict[ProcessRole, int | None] = field(default_factory=dict)
    failures: list[tuple[ProcessRole, int | None]] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state == PipelineState.SUCCEEDED

    def raise_for_status(self) -> None:
        """Raise the matching MediaFileError if the pipeline did not succeed."""
        from .errors import PipelineProcessError, TranscodeTimeout

        if self.state == PipelineState.TIMED_OUT:
            raise TranscodeTimeout(self.elapsed, self.failures)
        if self.state != PipelineState.SUCCEEDED:
            raise PipelineProcessError(self.failures)


@dataclass
class TransferResult:
    """Result of TransferEngine.transfer for one item."""

    source: Path
    destination: Path
    status: TransferStatus
    action: Action
    pipeline: PipelineResult | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class FailedTransfer:
    source: Path
    destination: Path | None
    error: str

    def __str__(self) -> str:
        return f"{self.source}: {self.error}"


@dataclass
class ProgressSnapshot:
    """Counts shown on the progress line. Display only, never used for control."""

    total: int = 0
    completed: int = 0
    in_flight: int = 0
    failed: int = 0

    @property
    def remaining(self) -> int:
        return self.total - self.completed - self.failed

    @property
    def remaining_pct(self) -> float:
        return self.remaining / self.total * 100 if self.total else 0.0

    @property
    def in_flight_pct(self) -> float:
        # Relative to the work still outstanding, not to the whole batch
        return self.in_flight / self.remaining * 100 if self.remaining else 0.0

    @property
    def completed_pct(self) -> float:
        return self.completed / self.total * 100 if self.total else 0.0


@dataclass
class BatchSummary:
    """Result summary from a bulk transfer run."""

    total: int = 0
    committed: int = 0
    skipped: int = 0
    duplicates: dict[str, list[Claim]] = field(default_factory=dict)
    collisions: dict[str, list[Claim]] = field(default_factory=dict)
    failures: list[FailedTransfer] = field(default_factory=list)
    committed_paths: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def throughput(self) -> float:
        """Committed items per second of wall time."""
        return self.committed / self.duration if self.duration > 0 else 0.0
