"""
Tests for interruptible speech output
"""

import asyncio
import logging

import pytest

from conftest import wait_until
from sightspeak.exceptions import SpeechError
from sightspeak.tts import (
    SilentSpeechOutput,
    SpeechOutput,
    TTSConfig,
    TTSEngine,
    check_tts,
    clean_text,
)


class FakeStdin:
    def __init__(self):
        self.data = b""
        self.closed = False

    def write(self, data):
        self.data += data

    async def drain(self):
        pass

    def close(self):
        self.closed = True


class FakeProcess:
    """Stands in for asyncio.subprocess.Process; finishes when told to."""

    def __init__(self, cmd, events):
        self.cmd = cmd
        self.events = events
        self.stdin = FakeStdin()
        self.returncode = None
        self._done = asyncio.Event()

    def finish(self, code=0):
        self.returncode = code
        self._done.set()

    def terminate(self):
        self.events.append(("terminate", self.cmd[-1]))
        self.finish(-15)

    async def wait(self):
        await self._done.wait()
        return self.returncode


class SpawnList(list):
    pass


@pytest.fixture
def procs(monkeypatch):
    """Capture spawned processes instead of running real TTS binaries."""
    spawned = SpawnList()
    events = []

    async def fake_exec(*cmd, **kwargs):
        proc = FakeProcess(list(cmd), events)
        events.append(("spawn", cmd[-1]))
        spawned.append(proc)
        return proc

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    spawned.events = events
    return spawned


@pytest.fixture
def slow_procs(monkeypatch):
    """Like ``procs``, but each engine takes 20 ms to start."""
    spawned = SpawnList()
    events = []

    async def slow_exec(*cmd, **kwargs):
        await asyncio.sleep(0.02)
        proc = FakeProcess(list(cmd), events)
        events.append(("spawn", cmd[-1]))
        spawned.append(proc)
        return proc

    monkeypatch.setattr(asyncio, "create_subprocess_exec", slow_exec)
    spawned.events = events
    return spawned


async def wait_until_async(predicate, timeout: float = 1.0):
    """Poll ``predicate`` with real sleeps, for waits spanning timers."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            return False
        await asyncio.sleep(0.002)
    return True


@pytest.fixture
def speech():
    out = SpeechOutput(TTSConfig(engine=TTSEngine.ESPEAK), settle_delay=0)
    out._available = [TTSEngine.ESPEAK]
    return out


class TestPlayback:

    @pytest.mark.asyncio
    async def test_speak_runs_engine_until_done(self, speech, procs):
        task = asyncio.create_task(speech.speak("A chair is nearby"))
        assert await wait_until(lambda: speech.speaking)

        assert procs[0].cmd == ["espeak", "-s", "150", "-v", "en-us", "A chair is nearby"]
        assert speech.speaking
        assert not task.done()

        procs[0].finish()
        await task
        assert not speech.speaking

    @pytest.mark.asyncio
    async def test_new_utterance_interrupts_previous(self, speech, procs):
        first = asyncio.create_task(speech.speak("first"))
        assert await wait_until(lambda: speech.speaking)

        second = asyncio.create_task(speech.speak("second"))
        assert await wait_until(lambda: len(procs) == 2)

        assert procs.events == [
            ("spawn", "first"),
            ("terminate", "first"),
            ("spawn", "second"),
        ]
        await first

        procs[1].finish()
        await second
        assert not speech.speaking

    @pytest.mark.asyncio
    async def test_cancel_stops_playback(self, speech, procs):
        task = asyncio.create_task(speech.speak("hello"))
        assert await wait_until(lambda: procs)

        speech.cancel()
        await task

        assert procs[0].returncode == -15
        assert not speech.speaking

    @pytest.mark.asyncio
    async def test_cancel_during_settle_skips_spawn(self, procs):
        speech = SpeechOutput(TTSConfig(engine=TTSEngine.ESPEAK), settle_delay=0.05)
        speech._available = [TTSEngine.ESPEAK]

        task = asyncio.create_task(speech.speak("hello"))
        await asyncio.sleep(0)
        speech.cancel()
        await task

        assert procs == []

    @pytest.mark.asyncio
    async def test_cancelled_task_terminates_process(self, speech, procs):
        task = asyncio.create_task(speech.speak("hello"))
        assert await wait_until(lambda: speech.speaking)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert procs[0].returncode == -15
        assert not speech.speaking

    @pytest.mark.asyncio
    async def test_festival_reads_stdin(self, procs):
        speech = SpeechOutput(TTSConfig(engine=TTSEngine.FESTIVAL), settle_delay=0)
        speech._available = [TTSEngine.FESTIVAL]

        task = asyncio.create_task(speech.speak("hello there"))
        assert await wait_until(lambda: procs)
        procs[0].finish()
        await task

        assert procs[0].cmd == ["festival", "--tts"]
        assert procs[0].stdin.data == b"hello there"
        assert procs[0].stdin.closed

    @pytest.mark.asyncio
    async def test_no_engine_is_a_warning(self, procs, caplog):
        speech = SpeechOutput(TTSConfig(), settle_delay=0)
        speech._available = []

        with caplog.at_level(logging.WARNING, logger="sightspeak.tts"):
            await speech.speak("hello")

        assert procs == []
        assert "not supported" in caplog.text

    @pytest.mark.asyncio
    async def test_spawn_failure_is_swallowed(self, speech, monkeypatch, caplog):
        async def broken_exec(*cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(asyncio, "create_subprocess_exec", broken_exec)

        with caplog.at_level(logging.ERROR, logger="sightspeak.tts"):
            await speech.speak("hello")

        assert "failed to start" in caplog.text

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_logged(self, speech, procs, caplog):
        with caplog.at_level(logging.ERROR, logger="sightspeak.tts"):
            task = asyncio.create_task(speech.speak("hello"))
            assert await wait_until(lambda: procs)
            procs[0].finish(1)
            await task

        assert "exited with code 1" in caplog.text

    @pytest.mark.asyncio
    async def test_interrupt_while_engine_starting(self, speech, slow_procs):
        first = asyncio.create_task(speech.speak("first"))
        await asyncio.sleep(0.005)
        second = asyncio.create_task(speech.speak("second"))

        assert await wait_until_async(lambda: len(slow_procs) == 2)
        assert slow_procs.events == [
            ("spawn", "first"),
            ("terminate", "first"),
            ("spawn", "second"),
        ]
        await first

        assert await wait_until_async(lambda: speech.speaking)
        slow_procs[1].finish()
        await second
        assert not speech.speaking

    @pytest.mark.asyncio
    async def test_cancel_while_engine_starting(self, speech, slow_procs):
        task = asyncio.create_task(speech.speak("hello"))
        await asyncio.sleep(0.005)
        speech.cancel()
        await task

        assert slow_procs[0].returncode == -15

    @pytest.mark.asyncio
    async def test_task_cancelled_while_engine_starting(self, speech, slow_procs):
        task = asyncio.create_task(speech.speak("hello"))
        await asyncio.sleep(0.005)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert await wait_until_async(lambda: slow_procs)
        await asyncio.sleep(0)
        assert slow_procs[0].returncode == -15

    @pytest.mark.asyncio
    async def test_empty_text_is_ignored(self, speech, procs):
        await speech.speak("   ")
        assert procs == []


class TestEngines:

    def test_espeak_uses_voice_when_set(self):
        speech = SpeechOutput(TTSConfig(voice="en-gb", rate=170))
        cmd, payload = speech.build_command(TTSEngine.ESPEAK, "hi")
        assert cmd == ["espeak", "-s", "170", "-v", "en-gb", "hi"]
        assert payload is None

    def test_say_command(self):
        speech = SpeechOutput(TTSConfig(voice="Samantha"))
        cmd, _ = speech.build_command(TTSEngine.SAY, "hi")
        assert cmd == ["say", "-r", "150", "-v", "Samantha", "hi"]

    def test_powershell_reads_text_from_stdin(self):
        speech = SpeechOutput(TTSConfig())
        text = clean_text("Sign reads $(Remove-Item C:\\x)")
        cmd, payload = speech.build_command(TTSEngine.POWERSHELL, text)

        assert cmd[0] == "powershell"
        assert "Remove-Item" not in " ".join(cmd)
        assert payload == text.encode("utf-8")

    def test_auto_is_not_a_command(self):
        speech = SpeechOutput(TTSConfig())
        with pytest.raises(SpeechError):
            speech.build_command(TTSEngine.AUTO, "hi")

    def test_resolve_falls_back_when_configured_missing(self, monkeypatch):
        monkeypatch.setattr(
            "sightspeak.tts._engine_priority",
            lambda: [TTSEngine.ESPEAK, TTSEngine.FESTIVAL],
        )
        speech = SpeechOutput(TTSConfig(engine=TTSEngine.SAY))
        speech._available = [TTSEngine.FESTIVAL]
        assert speech.resolve_engine() == TTSEngine.FESTIVAL

    def test_resolve_none_without_engines(self):
        speech = SpeechOutput(TTSConfig())
        speech._available = []
        assert speech.resolve_engine() is None

    def test_config_from_env(self, monkeypatch):
        from sightspeak.config import config

        monkeypatch.setitem(config._config, "SS_TTS_ENGINE", "bogus")
        monkeypatch.setitem(config._config, "SS_TTS_RATE", "120")

        tts_config = TTSConfig.from_env()
        assert tts_config.engine == TTSEngine.AUTO
        assert tts_config.rate == 120


class TestHelpers:

    def test_clean_text(self):
        assert clean_text('  A "quoted"   `thing`\n here ') == "A quoted thing here"
        assert clean_text("") == ""
        assert len(clean_text("x" * 800)) == 500

    @pytest.mark.asyncio
    async def test_silent_output_never_spawns(self, procs):
        speech = SilentSpeechOutput(TTSConfig())
        await speech.speak("hello")
        speech.cancel()
        assert procs == []

    @pytest.mark.asyncio
    async def test_check_tts_without_engines(self):
        speech = SpeechOutput(TTSConfig())
        speech._available = []
        result = await check_tts(speech)
        assert result["test_result"] == "no_engines"
        assert result["available_engines"] == []
