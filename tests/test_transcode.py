"""Tests for the decoder -> encoder pipeline using real child processes.

Python one-liners stand in for the codec binaries so the pipe wiring,
supervision and timeout handling are exercised for real.
"""

import sys

import pytest

from mediafile.errors import PipelineProcessError, ProcessSpawnFailure, UnsupportedFormat
from mediafile.models import PipelineState, ProcessRole, TrackMetadata
from mediafile.transcode import TranscodePipeline

PAYLOAD_SIZE = 200_000

EMIT = f"import sys; sys.stdout.buffer.write(b'x' * {PAYLOAD_SIZE})"
SINK = "import sys; data = sys.stdin.buffer.read(); open(sys.argv[1], 'wb').write(data)"
SLEEP = "import time; time.sleep(30)"
IGNORE_TERM = (
    "import signal, time; signal.signal(signal.SIGTERM, signal.SIG_IGN); time.sleep(30)"
)


def _py(code, *args):
    return [sys.executable, "-c", code, *args]


def _pipeline(tmp_path, decoder, encoder, **kwargs):
    dest = tmp_path / "out" / ".01-Song.mp3"
    pipeline = TranscodePipeline(
        source_format="flac",
        target_format="mp3",
        source_path=tmp_path / "song.flac",
        destination_path=dest,
        metadata=TrackMetadata(title="Song"),
        poll_interval=0.05,
        **kwargs,
    )
    pipeline.commands = {
        ProcessRole.DECODER: decoder,
        ProcessRole.ENCODER: encoder(dest) if callable(encoder) else encoder,
    }
    return pipeline, dest


class TestTranscodePipeline:
    def test_streams_decoder_into_encoder(self, tmp_path):
        pipeline, dest = _pipeline(
            tmp_path, _py(EMIT), lambda dest: _py(SINK, str(dest)), timeout=30,
        )
        result = pipeline.run()

        assert result.succeeded
        assert pipeline.state == PipelineState.SUCCEEDED
        assert result.exit_statuses == {ProcessRole.DECODER: 0, ProcessRole.ENCODER: 0}
        assert result.failures == []
        assert dest.stat().st_size == PAYLOAD_SIZE
        result.raise_for_status()

    def test_encoder_failure_removes_destination(self, tmp_path):
        encoder = lambda dest: _py(
            "import sys; open(sys.argv[1], 'wb').write(b'partial'); "
            "sys.stdin.buffer.read(); sys.exit(3)",
            str(dest),
        )
        pipeline, dest = _pipeline(tmp_path, _py(EMIT), encoder, timeout=30)
        result = pipeline.run()

        assert result.state == PipelineState.FAILED
        assert (ProcessRole.ENCODER, 3) in result.failures
        assert result.exit_statuses[ProcessRole.DECODER] == 0
        assert not dest.exists()
        with pytest.raises(PipelineProcessError, match="encoder exit=3"):
            result.raise_for_status()

    def test_decoder_failure_reported(self, tmp_path):
        pipeline, dest = _pipeline(
            tmp_path,
            _py("import sys; sys.exit(2)"),
            lambda dest: _py(SINK, str(dest)),
            timeout=30,
        )
        result = pipeline.run()

        assert result.state == PipelineState.FAILED
        assert (ProcessRole.DECODER, 2) in result.failures
        assert not dest.exists()

    def test_timeout_kills_and_reaps(self, tmp_path):
        pipeline, dest = _pipeline(
            tmp_path,
            _py(SLEEP),
            lambda dest: _py(SINK, str(dest)),
            timeout=0.5,
            kill_grace=2.0,
        )
        result = pipeline.run()

        assert result.state == PipelineState.TIMED_OUT
        assert pipeline.state == PipelineState.TIMED_OUT
        assert result.elapsed < 10
        assert {role for role, _ in result.failures} == {
            ProcessRole.DECODER,
            ProcessRole.ENCODER,
        }
        for proc in pipeline.processes.values():
            assert proc.poll() is not None
        assert not dest.exists()

    def test_timeout_escalates_to_kill(self, tmp_path):
        pipeline, dest = _pipeline(
            tmp_path,
            _py(IGNORE_TERM),
            lambda dest: _py(SINK, str(dest)),
            timeout=1.0,
            kill_grace=0.5,
        )
        result = pipeline.run()

        assert result.state == PipelineState.TIMED_OUT
        for proc in pipeline.processes.values():
            assert proc.returncode is not None
        assert not dest.exists()

    def test_encoder_spawn_failure(self, tmp_path):
        pipeline, dest = _pipeline(
            tmp_path, _py(SLEEP), ["/nonexistent/mediafile-encoder"], timeout=30,
        )
        with pytest.raises(ProcessSpawnFailure) as exc_info:
            pipeline.run()

        assert exc_info.value.role == ProcessRole.ENCODER
        assert pipeline.state == PipelineState.FAILED
        # The decoder that did start must not be left running
        assert pipeline.processes[ProcessRole.DECODER].poll() is not None
        assert not dest.exists()

    def test_decoder_spawn_failure(self, tmp_path):
        pipeline, _ = _pipeline(
            tmp_path,
            ["/nonexistent/mediafile-decoder"],
            lambda dest: _py(SINK, str(dest)),
            timeout=30,
        )
        with pytest.raises(ProcessSpawnFailure) as exc_info:
            pipeline.run()
        assert exc_info.value.role == ProcessRole.DECODER
        assert pipeline.processes == {}

    def test_unsupported_format_before_spawn(self, tmp_path):
        with pytest.raises(UnsupportedFormat):
            TranscodePipeline(
                source_format="flac",
                target_format="wma",
                source_path=tmp_path / "song.flac",
                destination_path=tmp_path / "out.wma",
                metadata=TrackMetadata(),
            )

    def test_commands_built_from_formats(self, tmp_path):
        pipeline = TranscodePipeline(
            source_format="flac",
            target_format="mp3",
            source_path=tmp_path / "song.flac",
            destination_path=tmp_path / "out.mp3",
            metadata=TrackMetadata(title="Song"),
            comment="note",
        )
        assert pipeline.commands[ProcessRole.DECODER][0] == "flac"
        assert pipeline.commands[ProcessRole.ENCODER][0] == "lame"
        assert pipeline.state == PipelineState.STARTING
