"""Decoder -> encoder transcode pipeline with bounded-time supervision.

The decoder's stdout is wired to the encoder's stdin through an anonymous
pipe and both processes run concurrently, so audio streams through without
being buffered in memory. A polling loop on the calling thread reaps each
process as it exits. If the time budget runs out, every process still running
gets SIGTERM, then SIGKILL after a grace period, and is reaped before the
timeout is reported. A pipeline that does not succeed never leaves a file at
the destination.
"""

from __future__ import annotations

import os
import subprocess
import tempfile
import time
from pathlib import Path
from typing import IO

from loguru import logger

from .codecs import build_decoder, build_encoder
from .errors import ProcessSpawnFailure
from .models import PipelineResult, PipelineState, ProcessRole, TrackMetadata

log = logger.bind(stage="transcode")


class TranscodePipeline:
    """One decoder/encoder process pair for a single file.

    Commands are resolved at construction, so an unknown source or target
    format raises UnsupportedFormat before anything is spawned.

    Attributes:
        state: Current PipelineState (STARTING until run() spawns processes)
        processes: Popen handles by role, populated by run()
    """

    def __init__(
        self,
        source_format: str,
        target_format: str,
        source_path: Path,
        destination_path: Path,
        metadata: TrackMetadata,
        comment: str = "",
        timeout: float = 60.0,
        poll_interval: float = 0.2,
        kill_grace: float = 5.0,
    ) -> None:
        self.source_format = source_format
        self.target_format = target_format
        self.source_path = source_path
        self.destination_path = destination_path
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.kill_grace = kill_grace

        self.commands: dict[ProcessRole, list[str]] = {
            ProcessRole.DECODER: build_decoder(source_format, source_path),
            ProcessRole.ENCODER: build_encoder(
                target_format, destination_path, metadata, comment
            ),
        }
        self.state = PipelineState.STARTING
        self.processes: dict[ProcessRole, subprocess.Popen] = {}
        self._pipe_ends: dict[ProcessRole, int] = {}
        self._stderr: dict[ProcessRole, IO[bytes]] = {}

    def run(self) -> PipelineResult:
        """Spawn both processes and supervise them to a terminal state.

        Returns:
            PipelineResult with the terminal state, per-role exit statuses and
            every (role, status) pair that exited non-zero or was killed.

        Raises:
            ProcessSpawnFailure: If either process cannot be started. Any
                process already started is killed and reaped first.
        """
        if self.source_format == self.target_format:
            log.warning(
                f"Transcoding {self.source_path} to the same format "
                f"({self.source_format} -> {self.target_format})"
            )

        self.destination_path.parent.mkdir(parents=True, exist_ok=True)
        log.info(
            f"Decoder: '{' '.join(self.commands[ProcessRole.DECODER])}' "
            f"Encoder: '{' '.join(self.commands[ProcessRole.ENCODER])}'"
        )

        start = time.monotonic()
        read_fd, write_fd = os.pipe()
        self._pipe_ends = {ProcessRole.DECODER: write_fd, ProcessRole.ENCODER: read_fd}

        try:
            self._spawn(ProcessRole.DECODER, stdout=write_fd)
            self._spawn(ProcessRole.ENCODER, stdin=read_fd)
            self.state = PipelineState.RUNNING
            result = self._supervise(start)
            if not result.succeeded:
                self._log_failure(result)
        except ProcessSpawnFailure:
            self.state = PipelineState.FAILED
            self.destination_path.unlink(missing_ok=True)
            raise
        finally:
            self._terminate(
                {role: p for role, p in self.processes.items() if p.poll() is None}
            )
            self._close_all()

        if not result.succeeded:
            self.destination_path.unlink(missing_ok=True)
        return result

    def _spawn(self, role: ProcessRole, **streams: int) -> None:
        cmd = self.commands[role]
        stderr = tempfile.TemporaryFile()
        self._stderr[role] = stderr
        try:
            self.processes[role] = subprocess.Popen(cmd, stderr=stderr, **streams)
        except OSError as e:
            log.error(f"Failed to start {role} '{cmd[0]}': {e}")
            self._terminate(dict(self.processes))
            raise ProcessSpawnFailure(role, cmd, str(e)) from e
        log.debug(f"Started {role} pid={self.processes[role].pid}")

    def _supervise(self, start: float) -> PipelineResult:
        """Poll every process until all exit or the deadline passes."""
        deadline = start + self.timeout
        running = dict(self.processes)
        statuses: dict[ProcessRole, int | None] = {}
        failures: list[tuple[ProcessRole, int | None]] = []

        while running:
            time.sleep(self.poll_interval)
            for role, proc in list(running.items()):
                code = proc.poll()
                if code is None:
                    continue
                del running[role]
                # Closing our copy of the pipe end lets the peer see EOF/EPIPE
                self._close_pipe_end(role)
                statuses[role] = code
                if code != 0:
                    failures.append((role, code))

            if running and time.monotonic() >= deadline:
                for role, code in self._terminate(running):
                    statuses[role] = code
                    failures.append((role, code))
                self.state = PipelineState.TIMED_OUT
                return PipelineResult(
                    state=self.state,
                    exit_statuses=statuses,
                    failures=failures,
                    elapsed=time.monotonic() - start,
                )

        self.state = PipelineState.FAILED if failures else PipelineState.SUCCEEDED
        return PipelineResult(
            state=self.state,
            exit_statuses=statuses,
            failures=failures,
            elapsed=time.monotonic() - start,
        )

    def _terminate(
        self, running: dict[ProcessRole, subprocess.Popen]
    ) -> list[tuple[ProcessRole, int | None]]:
        """SIGTERM every process, SIGKILL stragglers, reap all of them."""
        for proc in running.values():
            proc.terminate()

        killed = []
        for role, proc in running.items():
            try:
                proc.wait(timeout=self.kill_grace)
            except subprocess.TimeoutExpired:
                log.warning(f"{role} pid={proc.pid} ignored SIGTERM, killing")
                proc.kill()
                proc.wait()
            self._close_pipe_end(role)
            killed.append((role, proc.returncode))
        return killed

    def _close_pipe_end(self, role: ProcessRole) -> None:
        fd = self._pipe_ends.pop(role, None)
        if fd is not None:
            os.close(fd)

    def _close_all(self) -> None:
        for role in list(self._pipe_ends):
            self._close_pipe_end(role)
        for stderr in self._stderr.values():
            stderr.close()

    def _read_stderr(self, role: ProcessRole) -> str:
        stderr = self._stderr.get(role)
        if stderr is None:
            return ""
        stderr.seek(0)
        return stderr.read().decode(errors="replace")[-500:]

    def _log_failure(self, result: PipelineResult) -> None:
        if result.state == PipelineState.TIMED_OUT:
            killed = ", ".join(f"{role} exit={code}" for role, code in result.failures)
            log.error(
                f"Timeout exceeded after {result.elapsed:.1f}s "
                f"(budget {self.timeout:.0f}s) for {self.source_path}: {killed}"
            )
            return
        detail = " and ".join(f"{role} exit={code}" for role, code in result.failures)
        log.error(f"Error transcoding {self.source_path}: {detail}")
        for role, _ in result.failures:
            tail = self._read_stderr(role).strip()
            if tail:
                log.error(f"{role} stderr: {tail}")
