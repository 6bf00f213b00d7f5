"""Exception hierarchy for mediafile transfers.

Every per-file failure derives from MediaFileError so the work coordinator can
catch it at the worker boundary. A destination that already exists is not an
error: TransferEngine reports it as a SKIPPED result.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from .models import ProcessRole


class MediaFileError(Exception):
    """Base exception for all mediafile errors."""


class ConfigError(MediaFileError):
    """Invalid or missing configuration."""


class UnsupportedFormat(ConfigError):
    """No decoder or encoder is defined for a container format."""

    def __init__(self, fmt: str, role: str) -> None:
        super().__init__(f"No {role} defined for format '{fmt}'")
        self.format = fmt
        self.role = role


class ProcessSpawnFailure(MediaFileError):
    """A codec process could not be started."""

    def __init__(self, role: str, cmd: list[str], reason: str) -> None:
        super().__init__(f"Failed to start {role} '{cmd[0]}': {reason}")
        self.role = role
        self.cmd = cmd


class PipelineProcessError(MediaFileError):
    """The decoder and/or encoder exited with a non-zero status."""

    def __init__(self, failures: list[tuple[ProcessRole, int | None]]) -> None:
        detail = " and ".join(f"{role} exit={code}" for role, code in failures)
        super().__init__(f"Transcode failed: {detail or 'unknown error'}")
        self.failures = failures


class TranscodeTimeout(MediaFileError):
    """The transcode pipeline exceeded its time budget and was killed."""

    def __init__(
        self,
        elapsed: float,
        killed: list[tuple[ProcessRole, int | None]],
    ) -> None:
        roles = ", ".join(f"{role} exit={code}" for role, code in killed)
        super().__init__(f"Transcode timed out after {elapsed:.1f}s ({roles})")
        self.elapsed = elapsed
        self.killed = killed


class StagingConflict(MediaFileError):
    """A staging file already exists -- a previous or concurrent transfer left it."""

    def __init__(self, staging_path: Path) -> None:
        super().__init__(
            f"Transfer already in progress or crashed: {staging_path} exists"
        )
        self.staging_path = staging_path


class MetadataWriteFailure(MediaFileError):
    """Tags could not be written to a transferred file."""
