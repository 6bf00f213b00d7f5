"""Tests for the bulk_transfer entry point."""

import sys
from pathlib import Path
from unittest.mock import patch

import pytest
from loguru import logger

from mediafile import bulk_transfer
from mediafile.config import TransferConfig
from mediafile.models import BatchSummary, TrackMetadata
from mediafile.runner import find_media_files, normalize_sources


class TestFindMediaFiles:
    @pytest.fixture(autouse=True)
    def _factories(self, fake_store, make_source):
        self.fake_store = fake_store
        self.make_source = make_source

    def test_finds_audio_sorted(self, tmp_path):
        self.make_source(tmp_path / "b", "2.mp3")
        self.make_source(tmp_path / "a", "1.FLAC")
        self.make_source(tmp_path / "a", "notes.txt")
        self.make_source(tmp_path / "a", ".1.flac")
        assert find_media_files(tmp_path) == [
            tmp_path / "a" / "1.FLAC",
            tmp_path / "b" / "2.mp3",
        ]

    def test_empty_directory(self, tmp_path):
        assert find_media_files(tmp_path) == []


class TestNormalizeSources:
    @pytest.fixture(autouse=True)
    def _factories(self, fake_store, make_source):
        self.fake_store = fake_store
        self.make_source = make_source

    @pytest.mark.parametrize("bad", ["/music/song.flac", b"/music/song.flac", Path("/music")])
    def test_single_path_rejected(self, bad):
        with pytest.raises(TypeError, match="sequence of paths"):
            normalize_sources(bad)

    def test_files_kept_and_directories_expanded(self, tmp_path):
        loose = self.make_source(tmp_path / "loose", "x.wav")
        self.make_source(tmp_path / "album", "01.flac")
        self.make_source(tmp_path / "album", "02.flac")
        result = normalize_sources([str(loose), tmp_path / "album"])
        assert result == [loose, tmp_path / "album" / "01.flac", tmp_path / "album" / "02.flac"]

    def test_missing_file_kept(self, tmp_path):
        # Fails later at transfer time, per file
        assert normalize_sources([tmp_path / "gone.flac"]) == [tmp_path / "gone.flac"]


class TestBulkTransfer:
    @pytest.fixture(autouse=True)
    def _factories(self, fake_store, make_source):
        self.fake_store = fake_store
        self.make_source = make_source

    def test_end_to_end_copy(self, tmp_path):
        src = self.make_source(tmp_path / "src", "song.flac", b"abc")
        store = self.fake_store({"song.flac": TrackMetadata(
            album_artist="The Band", album="Great Album", title="First Song", track=1,
        )})
        summary = bulk_transfer(
            [src],
            tmp_path / "out",
            config=TransferConfig(_env_file=None),
            store=store,
        )
        dest = tmp_path / "out" / "The_Band" / "Great_Album" / "01-First_Song.flac"
        assert summary.committed == 1
        assert summary.committed_paths == [dest]
        assert dest.read_bytes() == b"abc"

    def test_directory_source(self, tmp_path):
        for i in range(3):
            self.make_source(tmp_path / "src", f"t{i}.flac")
        summary = bulk_transfer(
            [tmp_path / "src"],
            tmp_path / "out",
            max_workers=2,
            config=TransferConfig(_env_file=None),
            store=self.fake_store({f"t{i}.flac": TrackMetadata(title=f"T{i}") for i in range(3)}),
        )
        assert summary.total == 3
        assert summary.committed == 3

    def test_overrides_applied(self, tmp_path):
        base = TransferConfig(_env_file=None, max_workers=4)
        with patch("mediafile.runner.WorkCoordinator") as mock_cls:
            mock_cls.return_value.run_batch.return_value = BatchSummary()
            result = bulk_transfer(
                [],
                tmp_path / "out",
                force_album_artist="Various",
                format_remap={".FLAC": "MP3"},
                max_workers=2,
                show_progress=True,
                config=base,
                store=self.fake_store(),
            )

        config = mock_cls.call_args.args[0]
        assert config.destination_root == tmp_path / "out"
        assert config.force_album_artist == "Various"
        assert config.format_remap == {"flac": "mp3"}
        assert config.max_workers == 2
        assert config.show_progress is True
        assert mock_cls.call_args.kwargs["format_table"] == {"flac": "mp3"}
        assert result == BatchSummary()
        # The caller's config is never mutated
        assert base.max_workers == 4
        assert base.format_remap == {}

    def test_single_path_rejected(self, tmp_path):
        with pytest.raises(TypeError):
            bulk_transfer(str(tmp_path / "song.flac"), tmp_path / "out")

    def test_log_dir_configures_logging(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        src = self.make_source(tmp_path / "src", "song.flac")
        try:
            bulk_transfer(
                [src],
                tmp_path / "out",
                config=TransferConfig(_env_file=None, log_dir=tmp_path / "logs"),
                store=self.fake_store({"song.flac": TrackMetadata(title="Song")}),
            )
            log_file = tmp_path / "logs" / "mediafile.log"
            assert log_file.exists()
            assert "Batch complete: 1 committed" in log_file.read_text()
        finally:
            logger.remove()
            logger.add(sys.stderr)

    def test_logging_untouched_without_log_dir(self, tmp_path):
        src = self.make_source(tmp_path / "src", "song.flac")
        with patch("mediafile.config.TransferConfig.setup_logging") as mock_setup:
            bulk_transfer(
                [src],
                tmp_path / "out",
                config=TransferConfig(_env_file=None),
                store=self.fake_store({"song.flac": TrackMetadata(title="Song")}),
            )
        mock_setup.assert_not_called()
