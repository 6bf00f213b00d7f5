"""mediafile -- bulk copy or transcode of tagged audio into an artist/album tree.

Core modules:
    config      -- Transfer configuration via pydantic-settings (.env + env vars),
                   transcode time budget, loguru setup
    runner      -- bulk_transfer() entry point. Expands directory sources into
                   audio files and hands the batch to the coordinator
    coordinator -- Bounded worker pool draining a pre-loaded job queue, progress
                   lines and the end-of-batch summary
    transfer    -- Staged, atomic copy-or-transcode of one file, then tag write
    transcode   -- Decoder -> encoder process pipe with timeout supervision
    codecs      -- Decoder/encoder command builders per container format
    dedup       -- First-claimant-wins registry keyed by source fingerprint
    mediafile   -- MediaItem: source path, lazy metadata snapshot, destinations
    paths       -- Destination path layout from track metadata
    sanitize    -- Path segment sanitization and source fingerprints
    metadata    -- Tag snapshot reads (ffprobe) and tag writes (ffmpeg -c copy)
    ffprobe     -- Audio file inspection via ffprobe subprocess
"""

from .runner import bulk_transfer

__all__ = ["bulk_transfer"]
