# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for the PageReel CLI."""

import argparse
import asyncio
import json
import os
import signal
import sys
from unittest.mock import patch

import pytest

from pagereel.cli.main import (
    EXIT_INTERRUPTED,
    create_parser,
    main,
    parse_region,
    run_session,
)
from pagereel.config import CaptureConfig, ScreenRegion
from pagereel.core.frame_capture import FrameCaptureLoop
from pagereel.exceptions import NavigationError


@pytest.fixture
def patched_frames():
    """Patch the frame loop and session runner used by the frames command."""
    with patch("pagereel.cli.main.FrameCaptureLoop") as loop_cls, \
            patch("pagereel.cli.main.run_session", return_value=0) as runner:
        yield loop_cls, runner


@pytest.fixture
def patched_record():
    """Patch the recording controller and session runner used by the record command."""
    with patch("pagereel.cli.main.RecordingSessionController") as controller_cls, \
            patch("pagereel.cli.main.run_session", return_value=0) as runner:
        yield controller_cls, runner


class TestParseRegion:
    """Tests for the --region argument type."""

    def test_valid_region(self):
        """Test WIDTHxHEIGHT+X+Y is parsed into a ScreenRegion."""
        assert parse_region("480x916+20+90") == ScreenRegion(x=20, y=90, width=480, height=916)

    @pytest.mark.parametrize("value", ["480x916", "480x916+20", "ax916+20+90", "0x916+20+90"])
    def test_invalid_region(self, value):
        """Test malformed or empty regions are rejected."""
        with pytest.raises(argparse.ArgumentTypeError):
            parse_region(value)


class TestParser:
    """Tests for argument parsing."""

    def test_frames_defaults(self):
        """Test frames defaults match the capture configuration."""
        args = create_parser().parse_args(["frames"])

        assert args.url == "http://127.0.0.1:3000"
        assert args.settle_ms == 1000
        assert args.interval_ms == 10
        assert args.min_duration_ms == 5000
        assert args.max_duration_ms == 60000
        assert args.headed is False

    def test_url_from_environment(self, monkeypatch):
        """Test PAGEREEL_URL sets the default target."""
        monkeypatch.setenv("PAGEREEL_URL", "http://localhost:8080")

        args = create_parser().parse_args(["record"])

        assert args.url == "http://localhost:8080"

    def test_bad_region_exits(self):
        """Test argparse rejects an invalid region."""
        with pytest.raises(SystemExit):
            create_parser().parse_args(["record", "--region", "big"])


class TestCommands:
    """Tests for command dispatch."""

    def test_no_command_prints_help(self, capsys):
        """Test running without a command shows help."""
        assert main([]) == 0
        assert "frames" in capsys.readouterr().out

    def test_version(self, capsys):
        """Test the version command prints the package version."""
        assert main(["version"]) == 0
        assert "PageReel 1.0.0" in capsys.readouterr().out

    def test_version_json(self, capsys):
        """Test the version command can emit JSON."""
        assert main(["version", "--json"]) == 0
        assert json.loads(capsys.readouterr().out)["pagereel"] == "1.0.0"

    def test_frames_builds_config(self, patched_frames, tmp_path):
        """Test frames passes its options to the capture loop."""
        loop_cls, runner = patched_frames

        code = main(["frames", "-o", str(tmp_path), "--min-duration-ms", "1000",
                     "--max-duration-ms", "0", "--headed"])

        assert code == 0
        config = loop_cls.call_args.args[0]
        assert config.output_dir == str(tmp_path)
        assert config.min_duration_ms == 1000
        assert config.max_duration_ms is None
        assert config.page.headless is False
        runner.assert_called_once()

    def test_frames_output_dir_from_environment(self, patched_frames, monkeypatch):
        """Test PAGEREEL_OUTPUT_DIR is used when no output option is given."""
        loop_cls, _ = patched_frames
        monkeypatch.setenv("PAGEREEL_OUTPUT_DIR", "/tmp/reel")

        main(["frames"])

        assert loop_cls.call_args.args[0].output_dir == "/tmp/reel"

    def test_frames_invalid_config(self, patched_frames):
        """Test a minimum longer than the maximum is rejected before launch."""
        loop_cls, runner = patched_frames

        assert main(["frames", "--min-duration-ms", "70000"]) == 2
        loop_cls.assert_not_called()
        runner.assert_not_called()

    def test_record_builds_config(self, patched_record):
        """Test record passes region and encoder options through."""
        controller_cls, _ = patched_record

        code = main(["record", "--region", "100x200+1+2", "--grab-format", "x11grab",
                     "--ffmpeg-path", "/opt/ffmpeg", "--timeout-ms", "5000"])

        assert code == 0
        config = controller_cls.call_args.args[0]
        assert config.page.headless is False
        assert config.finish_timeout_ms == 5000
        assert config.encoder.region == ScreenRegion(x=1, y=2, width=100, height=200)
        assert config.encoder.display == ":0.0"
        assert config.encoder.ffmpeg_path == "/opt/ffmpeg"
        assert config.encoder.audio.input_spec == "audio=CABLE Output (VB-Audio Virtual Cable)"

    def test_record_without_audio(self, patched_record):
        """Test --audio-device none records video only."""
        controller_cls, _ = patched_record

        main(["record", "--audio-device", "none"])

        assert controller_cls.call_args.args[0].encoder.audio is None

    @pytest.mark.parametrize("device", ["", "   ", "NONE"])
    def test_record_blank_audio_device_from_environment(self, patched_record, monkeypatch, device):
        """Test an empty or 'none' PAGEREEL_AUDIO_DEVICE records video only."""
        controller_cls, _ = patched_record
        monkeypatch.setenv("PAGEREEL_AUDIO_DEVICE", device)

        main(["record"])

        assert controller_cls.call_args.args[0].encoder.audio is None


class TestRunSession:
    """Tests for run_session() exit codes."""

    def test_success(self):
        """Test a completed session exits 0."""

        async def ok():
            return "done"

        assert run_session(ok()) == 0

    def test_pagereel_error(self, caplog):
        """Test PageReel errors are logged and exit 1."""

        async def fail():
            raise NavigationError("Failed to open http://127.0.0.1:3000")

        assert run_session(fail()) == 1
        assert "NavigationError" in caplog.text

    def test_cancelled(self):
        """Test an interrupted session exits 130."""

        async def cancelled():
            raise asyncio.CancelledError()

        assert run_session(cancelled()) == EXIT_INTERRUPTED

    @pytest.mark.skipif(sys.platform == "win32", reason="no loop signal handlers on Windows")
    @pytest.mark.parametrize("signum", [signal.SIGINT, signal.SIGTERM])
    def test_signal_cancels_session(self, signum):
        """Test SIGINT and SIGTERM cancel the session and let its cleanup run."""
        cleanup = []

        async def interrupted():
            try:
                os.kill(os.getpid(), signum)
                await asyncio.sleep(30)
            finally:
                cleanup.append("released")

        assert run_session(interrupted()) == EXIT_INTERRUPTED
        assert cleanup == ["released"]

    def test_unusable_output_dir_exits_with_error(self, tmp_path, caplog):
        """Test a frames directory that is a file is reported, not a traceback."""
        target = tmp_path / "frames"
        target.write_bytes(b"")
        config = CaptureConfig(output_dir=str(target))

        assert run_session(FrameCaptureLoop(config).run()) == 1
        assert "OutputError" in caplog.text
