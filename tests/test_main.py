"""Tests for main CLI module."""

import json
import subprocess
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from burmese_dub._types import RunSummary, Voice
from burmese_dub.config import Config, ConfigError
from burmese_dub.config import load_config as real_load_config
from burmese_dub.main import DUB_ENGINES, LIVE_ENGINES, _merge_config_overrides, app
from burmese_dub.recorder import ChunkRecorder
from burmese_dub.runner import CommandFailedError

runner = CliRunner()

ENGINES = {
    "recorder": "/usr/bin/arecord",
    "whisper": "/usr/bin/whisper",
    "python": "/usr/bin/python3",
    "edge_tts": "/usr/bin/edge-tts",
    "player": "/usr/bin/ffplay",
    "ffmpeg": "/usr/bin/ffmpeg",
    "yt_dlp": "/usr/bin/yt-dlp",
}


def _resolve_engines(engines_cfg, names):
    """Resolve only the requested engines, as the real lookup does."""
    return {name: ENGINES[name] for name in names}


ARECORD_LIST_OUTPUT = """null
    Discard all samples (playback) or generate zero samples (capture)
default
    Default ALSA Output
hw:CARD=Mic,DEV=0
    USB Microphone, USB Audio
    Direct hardware device without any conversions
"""


def _arecord_listing(stdout: str = ARECORD_LIST_OUTPUT):
    return AsyncMock(
        return_value=subprocess.CompletedProcess(
            args=["arecord", "-L"], returncode=0, stdout=stdout, stderr=""
        )
    )


@patch("burmese_dub.main.load_environment", MagicMock(return_value=False))
@patch("burmese_dub.main.load_config", MagicMock(return_value=Config()))
@patch("burmese_dub.main.resolve_engines", MagicMock(side_effect=_resolve_engines))
class TestListAudioCommand:
    """Tests for list-audio command."""

    def test_list_audio_table_output(self):
        """Test list-audio command with table output."""
        with patch("burmese_dub.recorder.run_command", new=_arecord_listing()):
            result = runner.invoke(app, ["list-audio"])

        assert result.exit_code == 0
        assert "Available capture devices" in result.stdout
        assert "  hw:CARD=Mic,DEV=0" in result.stdout
        assert "USB Microphone" in result.stdout
        assert "null" not in result.stdout.split()

    def test_list_audio_json_output(self):
        """Test list-audio command with JSON output."""
        with patch("burmese_dub.recorder.run_command", new=_arecord_listing()):
            result = runner.invoke(app, ["list-audio", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [dev["name"] for dev in data] == ["default", "hw:CARD=Mic,DEV=0"]

    def test_list_audio_uses_configured_recorder(self):
        """The recorder engine from configuration lists the devices."""
        mock_run = _arecord_listing()
        with patch("burmese_dub.recorder.run_command", new=mock_run):
            runner.invoke(app, ["list-audio"])

        assert mock_run.call_args.args[0] == ["/usr/bin/arecord", "-L"]

    def test_listed_device_works_as_audio_device(self, tmp_path):
        """A printed name loads as [audio] device and reaches arecord -D."""
        with patch("burmese_dub.recorder.run_command", new=_arecord_listing()):
            result = runner.invoke(app, ["list-audio", "--json"])
        name = json.loads(result.stdout)[1]["name"]

        config_file = tmp_path / "burmese_dub.toml"
        config_file.write_text(f'[audio]\ndevice = "{name}"\n')
        cfg = real_load_config(config_file, env={})
        cfg.validate()
        recorder = ChunkRecorder(device=cfg.audio.device)

        cmd = recorder.build_command(tmp_path / "chunk_1.wav", 5)
        assert cmd[cmd.index("-D") + 1] == "hw:CARD=Mic,DEV=0"

    def test_list_audio_no_devices(self):
        """Test list-audio when no devices found."""
        with patch("burmese_dub.recorder.run_command", new=_arecord_listing("")):
            result = runner.invoke(app, ["list-audio"])

        assert result.exit_code == 0

    def test_list_audio_recorder_failure(self):
        """A failing arecord exits with status 1."""
        with patch(
            "burmese_dub.recorder.run_command",
            new=AsyncMock(side_effect=CommandFailedError(["arecord"], 1)),
        ):
            result = runner.invoke(app, ["list-audio"])

        assert result.exit_code == 1


@patch("burmese_dub.main.load_environment", MagicMock(return_value=False))
class TestLiveCommand:
    """Tests for live command."""

    @patch("burmese_dub.main.asyncio.run")
    @patch("burmese_dub.main.Orchestrator")
    @patch("burmese_dub.main.resolve_engines")
    @patch("burmese_dub.main.load_config")
    def test_live_success(self, mock_load_config, mock_engines, mock_orch, mock_asyncio_run):
        """Test live command wires the configured stages."""
        mock_load_config.return_value = Config()
        mock_engines.side_effect = _resolve_engines
        mock_asyncio_run.return_value = RunSummary()

        result = runner.invoke(app, ["live"])

        assert result.exit_code == 0
        mock_engines.assert_called_once()
        assert mock_engines.call_args.args[1] == LIVE_ENGINES
        kwargs = mock_orch.call_args.kwargs
        assert kwargs["chunk_duration"] == 5
        assert kwargs["recorder"].recorder_path == "/usr/bin/arecord"
        assert kwargs["pipeline"].synthesizer.voice is Voice.MALE
        mock_asyncio_run.assert_called_once()

    @patch("burmese_dub.main.asyncio.run")
    @patch("burmese_dub.main.Orchestrator")
    @patch("burmese_dub.main.resolve_engines")
    @patch("burmese_dub.main.load_config")
    def test_live_engines_run_in_own_session(self, mock_load_config, mock_engines, mock_orch,
                                             mock_asyncio_run):
        """Live engine processes are shielded from the terminal's Ctrl+C."""
        mock_load_config.return_value = Config()
        mock_engines.side_effect = _resolve_engines
        mock_asyncio_run.return_value = RunSummary()

        result = runner.invoke(app, ["live"])

        assert result.exit_code == 0
        kwargs = mock_orch.call_args.kwargs
        pipeline = kwargs["pipeline"]
        assert kwargs["recorder"].new_session is True
        assert pipeline.transcriber.new_session is True
        assert pipeline.translator.new_session is True
        assert pipeline.synthesizer.new_session is True
        assert pipeline.player.new_session is True

    @patch("burmese_dub.main.asyncio.run")
    @patch("burmese_dub.main.Orchestrator")
    @patch("burmese_dub.main.resolve_engines")
    @patch("burmese_dub.main.load_config")
    def test_live_overrides(self, mock_load_config, mock_engines, mock_orch, mock_asyncio_run):
        """CLI options override loaded configuration."""
        mock_load_config.return_value = Config()
        mock_engines.side_effect = _resolve_engines
        mock_asyncio_run.return_value = RunSummary()

        result = runner.invoke(
            app, ["live", "-d", "8", "--max-in-flight", "2", "--voice", "women"]
        )

        assert result.exit_code == 0
        kwargs = mock_orch.call_args.kwargs
        assert kwargs["chunk_duration"] == 8
        assert kwargs["config"].max_in_flight == 2
        assert kwargs["pipeline"].synthesizer.voice is Voice.FEMALE

    @patch("burmese_dub.main.asyncio.run")
    @patch("burmese_dub.main.Orchestrator")
    @patch("burmese_dub.main.resolve_engines")
    @patch("burmese_dub.main.load_config")
    def test_live_with_config_path(self, mock_load_config, mock_engines, mock_orch,
                                   mock_asyncio_run):
        """Test live command with explicit config path."""
        mock_load_config.return_value = Config()
        mock_engines.side_effect = _resolve_engines
        mock_asyncio_run.return_value = RunSummary()

        result = runner.invoke(app, ["live", "--config", "/path/to/config.toml"])

        assert result.exit_code == 0
        mock_load_config.assert_called_once_with(Path("/path/to/config.toml"))

    @patch("burmese_dub.main.load_config")
    def test_live_config_error(self, mock_load_config):
        """Test live command with config loading error."""
        mock_load_config.side_effect = ConfigError("Invalid config")

        result = runner.invoke(app, ["live"])
        assert result.exit_code == 1

    @patch("burmese_dub.main.load_config")
    def test_live_invalid_override(self, mock_load_config):
        """A non-positive chunk duration fails validation."""
        mock_load_config.return_value = Config()

        result = runner.invoke(app, ["live", "--chunk-duration", "0"])
        assert result.exit_code == 1

    @patch("burmese_dub.main.resolve_engines")
    @patch("burmese_dub.main.load_config")
    def test_live_missing_engine(self, mock_load_config, mock_engines):
        """A missing engine executable is a setup error."""
        mock_load_config.return_value = Config()
        mock_engines.side_effect = ConfigError("Required external tools not found: whisper")

        result = runner.invoke(app, ["live"])
        assert result.exit_code == 1

    @patch("burmese_dub.main.asyncio.run")
    @patch("burmese_dub.main.Orchestrator")
    @patch("burmese_dub.main.resolve_engines")
    @patch("burmese_dub.main.load_config")
    def test_live_startup_error(self, mock_load_config, mock_engines, mock_orch,
                                mock_asyncio_run):
        """Startup failures exit with status 1."""
        mock_load_config.return_value = Config()
        mock_engines.side_effect = _resolve_engines
        mock_asyncio_run.side_effect = RuntimeError("Failed to create output directory")

        result = runner.invoke(app, ["live"])
        assert result.exit_code == 1

    @patch("burmese_dub.main.asyncio.run")
    @patch("burmese_dub.main.Orchestrator")
    @patch("burmese_dub.main.resolve_engines")
    @patch("burmese_dub.main.load_config")
    def test_live_keyboard_interrupt(self, mock_load_config, mock_engines, mock_orch,
                                     mock_asyncio_run):
        """A stray KeyboardInterrupt is a clean exit."""
        mock_load_config.return_value = Config()
        mock_engines.side_effect = _resolve_engines
        mock_asyncio_run.side_effect = KeyboardInterrupt

        result = runner.invoke(app, ["live"])
        assert result.exit_code == 0


@patch("burmese_dub.main.load_environment", MagicMock(return_value=False))
class TestDubCommand:
    """Tests for dub command."""

    @patch("burmese_dub.main.asyncio.run")
    @patch("burmese_dub.main.Dubber")
    @patch("burmese_dub.main.resolve_engines")
    @patch("burmese_dub.main.load_config")
    def test_dub_local_file(self, mock_load_config, mock_engines, mock_dubber, mock_asyncio_run):
        """A local file does not need yt-dlp and prints the output video."""
        mock_load_config.return_value = Config()
        mock_engines.side_effect = _resolve_engines
        mock_asyncio_run.return_value = MagicMock(output_video=Path("out/talk_burmese.mp4"))

        result = runner.invoke(app, ["dub", "talk.mp4"])

        assert result.exit_code == 0
        assert mock_engines.call_args.args[1] == DUB_ENGINES
        assert mock_dubber.call_args.kwargs["yt_dlp_path"] is None
        assert mock_dubber.call_args.kwargs["transcriber"].new_session is False
        assert mock_dubber.call_args.kwargs["output_root"] == "ToBurmeseVideoOutput"
        assert str(Path("out/talk_burmese.mp4")) in result.stdout
        mock_dubber.return_value.dub.assert_called_once_with("talk.mp4")

    @patch("burmese_dub.main.asyncio.run")
    @patch("burmese_dub.main.Dubber")
    @patch("burmese_dub.main.resolve_engines")
    @patch("burmese_dub.main.load_config")
    def test_dub_url_requires_downloader(self, mock_load_config, mock_engines, mock_dubber,
                                         mock_asyncio_run):
        """URL sources resolve yt-dlp as well."""
        mock_load_config.return_value = Config()
        mock_engines.side_effect = _resolve_engines
        mock_asyncio_run.return_value = MagicMock(output_video=Path("out.mp4"))

        result = runner.invoke(app, ["dub", "https://youtu.be/abc", "-o", "Dubbed"])

        assert result.exit_code == 0
        assert "yt_dlp" in mock_engines.call_args.args[1]
        assert mock_dubber.call_args.kwargs["yt_dlp_path"] == "/usr/bin/yt-dlp"
        assert mock_dubber.call_args.kwargs["output_root"] == "Dubbed"

    @patch("burmese_dub.main.asyncio.run")
    @patch("burmese_dub.main.Dubber")
    @patch("burmese_dub.main.resolve_engines")
    @patch("burmese_dub.main.load_config")
    def test_dub_source_from_environment(self, mock_load_config, mock_engines, mock_dubber,
                                         mock_asyncio_run, monkeypatch):
        """DOWNLOAD_YOUTUBE_URL is used when no source is given."""
        monkeypatch.setenv("DOWNLOAD_YOUTUBE_URL", "https://youtu.be/xyz")
        mock_load_config.return_value = Config()
        mock_engines.side_effect = _resolve_engines
        mock_asyncio_run.return_value = MagicMock(output_video=Path("out.mp4"))

        result = runner.invoke(app, ["dub"])

        assert result.exit_code == 0
        mock_dubber.return_value.dub.assert_called_once_with("https://youtu.be/xyz")

    def test_dub_without_source(self, monkeypatch):
        """No argument and no environment URL is an error."""
        monkeypatch.delenv("DOWNLOAD_YOUTUBE_URL", raising=False)

        result = runner.invoke(app, ["dub"])
        assert result.exit_code == 1

    @patch("burmese_dub.main.asyncio.run")
    @patch("burmese_dub.main.Dubber")
    @patch("burmese_dub.main.resolve_engines")
    @patch("burmese_dub.main.load_config")
    def test_dub_step_failure(self, mock_load_config, mock_engines, mock_dubber,
                              mock_asyncio_run):
        """A failed dubbing step exits with status 1."""
        from burmese_dub.dubber import DubError

        mock_load_config.return_value = Config()
        mock_engines.side_effect = _resolve_engines
        mock_asyncio_run.side_effect = DubError("Merge", "ffmpeg failed")

        result = runner.invoke(app, ["dub", "talk.mp4"])
        assert result.exit_code == 1


class TestMergeConfigOverrides:
    """Tests for applying CLI overrides."""

    def test_no_overrides(self):
        """Without overrides the configuration is unchanged."""
        cfg = Config()
        assert _merge_config_overrides(cfg) == cfg

    def test_overrides_do_not_mutate_original(self):
        """Overrides produce a new configuration."""
        cfg = Config()
        merged = _merge_config_overrides(
            cfg, chunk_duration=3, max_in_flight=0, voice="girl", output_root=Path("x")
        )

        assert merged.audio.chunk_duration == 3
        assert merged.orchestrator.max_in_flight == 0
        assert merged.synthesis.voice is Voice.FEMALE
        assert merged.dub.output_root == "x"
        assert cfg.audio.chunk_duration == 5
        assert cfg.synthesis.voice is Voice.MALE

    @pytest.mark.parametrize("voice", ["men", "thiha", "anything"])
    def test_voice_override_male(self, voice):
        """Unrecognized presenters fall back to the male voice."""
        assert _merge_config_overrides(Config(), voice=voice).synthesis.voice is Voice.MALE
