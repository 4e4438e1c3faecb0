"""
CLI tests: argument parsing and handlers end to end with the mock provider
"""

import asyncio
import importlib
import json

import pytest

from conftest import wait_until
from sightspeak import frame_capture
from sightspeak.cli import parse_args, run_cli
from sightspeak.cli.handlers import apply_control
from sightspeak.config import config
from sightspeak.diagnostics import console
from sightspeak.narrator import AnalysisLoop, LoopConfig
from sightspeak.object_detection import MockObjectDetector


@pytest.fixture(autouse=True)
def isolated_cli(monkeypatch):
    """Keep CLI runs from touching global logging and the shared config."""
    cli_main = importlib.import_module("sightspeak.cli.main")
    monkeypatch.setattr(cli_main, "enable_diagnostics", lambda level=None: None)
    monkeypatch.setattr(console, "width", 160)
    monkeypatch.setattr(config, "_config", dict(config._config))


@pytest.fixture
def image(tmp_path):
    path = tmp_path / "room.jpg"
    path.write_bytes(b"\xff\xd8room\xff\xd9")
    return path


class TestParser:

    def test_live_defaults(self):
        args = parse_args(["live"])
        assert args.command == "live"
        assert args.interval is None
        assert args.objects is None
        assert not args.no_tts

    def test_interval_must_be_positive(self):
        with pytest.raises(SystemExit):
            parse_args(["live", "--interval", "0"])

    def test_config_assignments(self):
        args = parse_args(["config", "--set", "SS_MODEL=llava", "--set", "SS_TTS_RATE=170"])
        assert args.assignments == ["SS_MODEL=llava", "SS_TTS_RATE=170"]

    def test_no_command_prints_help(self, capsys):
        assert run_cli([]) == 0
        assert "sightspeak" in capsys.readouterr().out


class TestDetect:

    def test_json_output(self, capsys):
        assert run_cli(["detect", "--seed", "7", "--json"]) == 0

        printed = json.loads(capsys.readouterr().out)
        expected = [obj.to_dict() for obj in MockObjectDetector(delay=0, seed=7).generate()]
        assert printed == expected

    def test_table_output(self, capsys):
        assert run_cli(["detect", "--seed", "7"]) == 0
        assert "Mock detections" in capsys.readouterr().out


class TestDescribe:

    def test_mock_provider_json(self, image, capsys):
        assert run_cli(["describe", str(image), "--provider", "mock", "--json"]) == 0
        assert json.loads(capsys.readouterr().out) == {
            "description": "A scene in front of the camera."
        }

    def test_enhance_from(self, image, capsys):
        code = run_cli([
            "describe", str(image), "--provider", "mock", "--enhance-from", "A small room.",
        ])
        assert code == 0
        assert "A small room. A scene in front of the camera." in capsys.readouterr().out

    def test_missing_image(self, tmp_path):
        assert run_cli(["describe", str(tmp_path / "nope.jpg"), "--provider", "mock"]) == 1

    def test_service_error(self, image, monkeypatch):
        monkeypatch.setitem(config._config, "SS_OPENAI_API_KEY", "")
        assert run_cli(["describe", str(image), "--provider", "openai"]) == 1


class TestConfig:

    def test_set_and_save(self):
        assert run_cli(["config", "--set", "ss_analysis_interval=2", "--save"]) == 0
        assert config.get("SS_ANALYSIS_INTERVAL") == "2"
        config.save.assert_called_once_with(keys_only=["SS_ANALYSIS_INTERVAL"])

    def test_unknown_key(self):
        assert run_cli(["config", "--set", "SS_NOPE=1"]) == 1

    def test_show_masks_secrets(self, monkeypatch, capsys):
        monkeypatch.setitem(config._config, "SS_OPENAI_API_KEY", "sk-abcdef123456")
        assert run_cli(["config", "--show"]) == 0
        out = capsys.readouterr().out
        assert "sk-a****" in out
        assert "sk-abcdef123456" not in out


class TestLive:

    def test_static_image_with_mock_provider(self, image, capsys):
        code = run_cli([
            "live", "--image", str(image), "--provider", "mock", "--no-tts",
            "--interval", "0.05", "--duration", "0.2",
        ])
        assert code == 0
        out = capsys.readouterr().out
        assert "A scene in front of the camera." in out
        assert "described" in out

    def test_missing_image(self, tmp_path):
        assert run_cli(["live", "--image", str(tmp_path / "nope.jpg"), "--provider", "mock"]) == 1

    def test_camera_unavailable(self, monkeypatch):
        monkeypatch.setattr(frame_capture, "HAS_CV2", False)
        assert run_cli(["live", "--device", "0", "--provider", "mock", "--no-tts"]) == 2

    def test_bad_provider_leaves_camera_closed(self, monkeypatch):
        opened = []
        monkeypatch.setattr(frame_capture.CameraFrameSource, "open", lambda self: opened.append(self))
        monkeypatch.setitem(config._config, "SS_LLM_PROVIDER", "bogus")

        assert run_cli(["live", "--device", "0", "--no-tts"]) == 1
        assert opened == []


class TestLiveControls:
    """Keys typed during `sightspeak live`"""

    @pytest.fixture
    def narrator(self, frames, describer, speech, notifier):
        return AnalysisLoop(
            frames=frames,
            describer=describer,
            speech=speech,
            notifier=notifier,
            loop_config=LoopConfig(interval=60),
        )

    @pytest.mark.asyncio
    async def test_p_toggles_pause(self, narrator, speech):
        await apply_control(narrator, "p\n")
        assert narrator.running
        assert await wait_until(lambda: speech.spoken)

        await apply_control(narrator, "P")
        assert narrator.paused
        assert narrator.description == ""
        await narrator.aclose()

    @pytest.mark.asyncio
    async def test_d_describes_and_e_enhances(self, narrator, describer):
        await apply_control(narrator, "d")
        await apply_control(narrator, "e")

        assert [call["kind"] for call in describer.calls] == ["describe", "enhance"]
        assert describer.calls[1]["previous"] == "A chair is nearby"

    @pytest.mark.asyncio
    async def test_enhance_before_describe_is_reported(self, narrator, describer, capsys):
        await apply_control(narrator, "e")

        assert describer.calls == []
        assert "Describe the scene before enhancing it" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_q_ends_run(self, narrator):
        runner = asyncio.create_task(narrator.run())
        assert await wait_until(lambda: narrator.running)

        await apply_control(narrator, "q")
        await asyncio.wait_for(runner, timeout=1)
        assert narrator.paused

    @pytest.mark.asyncio
    async def test_unknown_key_shows_help(self, narrator, capsys):
        await apply_control(narrator, "x")
        assert "pause / resume" in capsys.readouterr().out
