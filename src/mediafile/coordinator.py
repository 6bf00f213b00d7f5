"""Batch coordinator -- runs many transfers over a bounded worker pool.

The job queue is fully loaded before any worker starts. Each worker pops jobs
without blocking and exits once the queue is empty. A single re-entrant lock
guards the shared totals, the claim registries, the failure list and
console output, so progress lines never interleave.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from queue import Empty, Queue

import click
from loguru import logger

from .config import TransferConfig
from .dedup import DedupRegistry
from .mediafile import MediaItem
from .models import (
    Action,
    BatchSummary,
    Claim,
    FailedTransfer,
    ProgressSnapshot,
    TransferJob,
    TransferResult,
    TransferStatus,
)
from .transfer import TransferEngine

log = logger.bind(stage="coordinator")


def format_duration(seconds: float) -> str:
    """Render seconds as H:MM:SS."""
    total = int(seconds)
    h = total // 3600
    m = (total % 3600) // 60
    s = total % 60
    return f"{h}:{m:02d}:{s:02d}"


class WorkCoordinator:
    """Drives TransferEngine over a batch of media items.

    One coordinator serves one batch: the lock, registry, counters and
    failure list all live on the instance and die with it.

    Attributes:
        config: Transfer configuration (max_workers, show_progress, ...)
        destination_root: Root of the destination tree
        format_table: Source format -> target format remap table
        engine: TransferEngine performing each file transfer
        registry: DedupRegistry of source fingerprints shared by all workers
        destinations: DedupRegistry of destination paths; a file is written
            only by the first source to claim its destination
    """

    def __init__(
        self,
        config: TransferConfig,
        destination_root: Path | None = None,
        format_table: dict[str, str] | None = None,
        engine: TransferEngine | None = None,
    ) -> None:
        self.config = config
        self.destination_root = Path(
            destination_root if destination_root is not None else config.destination_root
        )
        self.format_table = dict(
            format_table if format_table is not None else config.format_remap
        )
        self.engine = engine or TransferEngine(config)

        self._lock = threading.RLock()
        self.registry = DedupRegistry(self._lock)
        self.destinations = DedupRegistry(self._lock)
        self._progress = ProgressSnapshot()
        self._committed: list[Path] = []
        self._skipped = 0
        self._failures: list[FailedTransfer] = []
        self._warnings: list[str] = []
        self._width = 2

    def run_batch(self, items: Sequence[MediaItem]) -> BatchSummary:
        """Transfer every item and return the aggregate summary.

        With max_workers <= 1 items run sequentially in input order on the
        calling thread; otherwise exactly max_workers workers drain a shared
        queue. Per-file failures are recorded, never raised.
        """
        if not items:
            log.warning("No files to transfer")
            return BatchSummary()

        jobs = [
            TransferJob(
                item=item,
                destination_root=self.destination_root,
                format_table=self.format_table,
            )
            for item in items
        ]
        max_workers = self.config.max_workers
        self._progress = ProgressSnapshot(total=len(jobs))
        self._width = max(len(str(len(jobs))), 2)

        log.info(
            f"Starting batch transfer: {len(jobs)} files -> {self.destination_root}, "
            f"max_workers={max_workers}"
        )
        if self.config.show_progress:
            self._display_header()

        start = time.monotonic()
        if max_workers <= 1:
            for job in jobs:
                self._run_job(job)
        else:
            self._run_parallel(jobs, max_workers)
        duration = time.monotonic() - start

        summary = BatchSummary(
            total=len(jobs),
            committed=len(self._committed),
            skipped=self._skipped,
            duplicates=self.registry.duplicates(),
            collisions=self.destinations.duplicates(),
            failures=list(self._failures),
            committed_paths=list(self._committed),
            warnings=list(self._warnings),
            duration=duration,
        )
        self._display_summary(summary)
        return summary

    def _run_parallel(self, jobs: list[TransferJob], max_workers: int) -> None:
        queue: Queue[TransferJob] = Queue()
        for job in jobs:
            queue.put_nowait(job)

        with ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="transfer"
        ) as executor:
            workers = [executor.submit(self._drain, queue) for _ in range(max_workers)]
            wait(workers)

        for worker in workers:
            worker.result()

    def _drain(self, queue: Queue[TransferJob]) -> None:
        """Worker loop: pop jobs until the queue is observed empty."""
        while True:
            try:
                job = queue.get_nowait()
            except Empty:
                return
            self._run_job(job)

    def _run_job(self, job: TransferJob) -> None:
        """Run one job; every failure is caught and recorded here."""
        item = job.item
        destination = None
        claimed = False
        try:
            destination = item.output_path(job.destination_root, job.format_table)
            claim = Claim(item.source, destination)
            with self._lock:
                first = self.registry.claim(item.fingerprint, claim)
                # One writer per destination; later sources landing there are skipped
                owner = first and self.destinations.claim(str(destination), claim)
                if owner:
                    claimed = True
                    self._progress.in_flight += 1
                else:
                    self._progress.completed += 1
                    if first:
                        self._skipped += 1
                    self._display_progress(Action.DUPLICATE, item, destination)
            if not owner:
                return

            result = self.engine.transfer(item, job.destination_root, job.format_table)
        except Exception as e:
            log.error(f"Error transferring {item.source}: {e}")
            with self._lock:
                if claimed:
                    self._progress.in_flight -= 1
                self._progress.failed += 1
                self._failures.append(FailedTransfer(item.source, destination, str(e)))
                self._display_progress(Action.FAILED, item, destination)
            return

        self._record(item, result)

    def _record(self, item: MediaItem, result: TransferResult) -> None:
        with self._lock:
            self._progress.in_flight -= 1
            self._progress.completed += 1
            if result.status == TransferStatus.COMMITTED:
                self._committed.append(result.destination)
            else:
                self._skipped += 1
            self._warnings.extend(f"{item.source}: {w}" for w in result.warnings)
            self._display_progress(result.action, item, result.destination)

    def _display_header(self) -> None:
        w = self._width
        click.echo(
            f"{'Remaining':>{w + 8}}, {'Workers':>{w + 8}},{'Complete':>{w + 9}} :: Mode"
        )
        click.echo(
            f"{self._progress.total:{w}d} ( 100%), {0:{w}d} ( 0.0%), "
            f"{0:{w}d} ( 0.0%) :: *wait*"
        )

    def _display_progress(
        self, action: Action, item: MediaItem, destination: Path | None
    ) -> None:
        """Print one progress block. Caller must hold the lock."""
        if not self.config.show_progress:
            return
        p = self._progress
        w = self._width
        click.echo(
            f"{p.remaining:{w}d} ({p.remaining_pct:4.1f}%), "
            f"{p.in_flight:{w}d} ({p.in_flight_pct:4.1f}%), "
            f"{p.completed:{w}d} ({p.completed_pct:4.1f}%) :: *{action}*\n"
            f"    source file => {item.source}\n"
            f"    destination => {destination if destination is not None else '-'}"
        )

    def _display_summary(self, summary: BatchSummary) -> None:
        click.echo(
            f"Copied {summary.committed} files in {format_duration(summary.duration)} "
            f"(~{summary.throughput:.2f} songs/second)."
        )
        if summary.skipped:
            click.echo(f"Skipped {summary.skipped} files already at their destination.")
        log.info(
            f"Batch complete: {summary.committed} committed, {summary.skipped} skipped, "
            f"{summary.failed} failed in {summary.duration:.1f}s"
        )

        if summary.duplicates:
            click.echo("Duplicate sources:")
            for fingerprint, claims in summary.duplicates.items():
                click.echo(f"  {fingerprint}:")
                for claim in claims:
                    click.echo(f"    {claim}")

        if summary.collisions:
            click.echo("Sources sharing a destination (first one written):")
            for destination, claims in summary.collisions.items():
                click.echo(f"  {destination}:")
                for claim in claims:
                    click.echo(f"    {claim.source}")

        if summary.warnings:
            click.echo("Warnings:")
            for warning in summary.warnings:
                click.echo(f"  - {warning}")

        if summary.failures:
            click.echo("Some files failed to transfer:")
            for failure in summary.failures:
                click.echo(f"  - {failure}")
