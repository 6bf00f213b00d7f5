"""Transfer configuration via pydantic-settings (.env + env vars)."""

import sys
from pathlib import Path

from loguru import logger
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TransferConfig(BaseSettings):
    """All transfer configuration with layered resolution:
    .env file < environment variables < constructor kwargs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # -- Batch --
    destination_root: Path = Path(".")
    max_workers: int = 4
    show_progress: bool = False
    force_album_artist: str | None = None
    format_remap: dict[str, str] = {}

    # -- Transcoding --
    transcode_seconds_per_mb: float = 30.0
    transcode_min_timeout: float = 60.0
    poll_interval: float = 0.2
    kill_grace_seconds: float = 5.0

    # -- Metadata --
    metadata_timeout: int = 120
    embed_cover_art: bool = True
    cover_file_name: str = "cover.jpg"

    # -- Logging --
    log_level: str = "INFO"
    log_dir: Path | None = None

    @field_validator("format_remap")
    @classmethod
    def _normalize_formats(cls, value: dict[str, str]) -> dict[str, str]:
        """Lower-case both sides and drop leading dots ('.FLAC' -> 'flac')."""
        return {
            k.lower().lstrip("."): v.lower().lstrip(".") for k, v in value.items()
        }

    def transcode_timeout(self, size_bytes: int) -> float:
        """Time budget for transcoding a source of size_bytes.

        Scales linearly with file size so large files are not killed early,
        with a floor so tiny files still get a sane budget.
        """
        size_mb = size_bytes / (1024 * 1024)
        return max(self.transcode_min_timeout, size_mb * self.transcode_seconds_per_mb)

    def setup_logging(self) -> None:
        """Configure loguru for mediafile."""
        logger.remove()  # Remove default stderr handler

        log_format = (
            "{time:YYYY-MM-DDTHH:mm:ssZ} | {level:<8} | "
            "{extra[stage]:<12} | {message}"
        )

        def _default_extra(record):
            record["extra"].setdefault("stage", "")
            return True

        logger.add(
            sys.stderr,
            format=log_format,
            level=self.log_level.upper(),
            filter=_default_extra,
        )

        if self.log_dir is None:
            return

        self.log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(self.log_dir / "mediafile.log"),
            format=log_format,
            level="DEBUG",
            rotation="10 MB",
            retention="30 days",
            filter=_default_extra,
        )
