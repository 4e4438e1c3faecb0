"""
Speech Output Module for SightSpeak

Asynchronous text-to-speech on top of the host's TTS binaries:
- espeak (Linux, lightweight)
- festival (Linux, full-featured)
- say (macOS)
- powershell (Windows)

Every new utterance interrupts the one currently playing. ``speak()``
resolves when playback finishes, is interrupted, or fails; playback
errors are logged, never raised.

Usage:
    from sightspeak.tts import SpeechOutput

    speech = SpeechOutput()
    await speech.speak("A chair is nearby")
    speech.cancel()
"""

import asyncio
import logging
import platform
import shutil
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from .config import config
from .exceptions import SpeechError

logger = logging.getLogger(__name__)


class TTSEngine(str, Enum):
    AUTO = "auto"
    ESPEAK = "espeak"
    FESTIVAL = "festival"
    SAY = "say"  # macOS
    POWERSHELL = "powershell"  # Windows


_ENGINE_BINARY = {
    TTSEngine.ESPEAK: "espeak",
    TTSEngine.FESTIVAL: "festival",
    TTSEngine.SAY: "say",
    TTSEngine.POWERSHELL: "powershell",
}


@dataclass
class TTSConfig:
    """TTS configuration."""
    engine: TTSEngine = TTSEngine.AUTO
    voice: str = ""
    rate: int = 150
    lang: str = "en-US"

    @classmethod
    def from_env(cls) -> "TTSConfig":
        """Load from environment/.env"""
        engine_str = config.get("SS_TTS_ENGINE", "auto").lower()
        try:
            engine = TTSEngine(engine_str)
        except ValueError:
            engine = TTSEngine.AUTO

        return cls(
            engine=engine,
            voice=config.get("SS_TTS_VOICE", ""),
            rate=config.get_int("SS_TTS_RATE", 150),
            lang=config.get("SS_TTS_LANG", "en-US"),
        )


def _engine_priority() -> List[TTSEngine]:
    """Engines to try in priority order for this platform."""
    system = platform.system().lower()

    if system == "darwin":
        return [TTSEngine.SAY]
    elif system == "windows":
        return [TTSEngine.POWERSHELL]
    return [TTSEngine.ESPEAK, TTSEngine.FESTIVAL]


def _terminate(proc) -> bool:
    """Terminate ``proc`` if it is still running. Returns True when signalled."""
    if proc.returncode is not None:
        return False
    try:
        proc.terminate()
    except ProcessLookupError:
        return False
    return True


def _terminate_spawned(spawn: "asyncio.Future"):
    if not spawn.cancelled() and spawn.exception() is None:
        _terminate(spawn.result())


def clean_text(text: str) -> str:
    """Normalize text for command-line TTS engines."""
    if not text:
        return ""
    text = text.replace('"', '').replace("'", "").replace('`', '')
    text = ' '.join(text.split())
    return text[:500]


class SpeechOutput:
    """Interruptible speech output; at most one utterance plays at a time."""

    def __init__(self, tts_config: Optional[TTSConfig] = None, settle_delay: float = 0.1):
        self.config = tts_config or TTSConfig.from_env()
        self.settle_delay = settle_delay
        self._available: Optional[List[TTSEngine]] = None
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._generation = 0

    # -- engine discovery -------------------------------------------------

    def get_available_engines(self) -> List[TTSEngine]:
        """Engines whose binary is on PATH."""
        if self._available is None:
            self._available = [
                engine for engine, binary in _ENGINE_BINARY.items()
                if shutil.which(binary)
            ]
        return self._available

    def resolve_engine(self) -> Optional[TTSEngine]:
        available = self.get_available_engines()
        if self.config.engine != TTSEngine.AUTO:
            if self.config.engine in available:
                return self.config.engine
            logger.debug(f"Configured TTS engine {self.config.engine.value} not found, falling back")
        for engine in _engine_priority() + list(_ENGINE_BINARY):
            if engine in available:
                return engine
        return None

    def build_command(self, engine: TTSEngine, text: str) -> Tuple[List[str], Optional[bytes]]:
        """Command line and optional stdin payload for ``engine``."""
        rate = self.config.rate
        voice = self.config.voice

        if engine == TTSEngine.ESPEAK:
            cmd = ["espeak", "-s", str(rate), "-v", voice or self.config.lang.lower()]
            return cmd + [text], None
        if engine == TTSEngine.SAY:
            cmd = ["say", "-r", str(rate)]
            if voice:
                cmd.extend(["-v", voice])
            return cmd + [text], None
        if engine == TTSEngine.FESTIVAL:
            return ["festival", "--tts"], text.encode()
        if engine == TTSEngine.POWERSHELL:
            # Text arrives on stdin; it never becomes part of the script
            script = (
                "Add-Type -AssemblyName System.Speech; "
                "$text = [Console]::In.ReadToEnd(); "
                "(New-Object System.Speech.Synthesis.SpeechSynthesizer).Speak($text)"
            )
            return ["powershell", "-NoProfile", "-Command", script], text.encode("utf-8")
        raise SpeechError(f"Unsupported TTS engine: {engine}")

    # -- playback ---------------------------------------------------------

    @property
    def speaking(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    def cancel(self):
        """Stop the current utterance, and any utterance still waiting to start."""
        self._generation += 1
        if self._proc is not None and _terminate(self._proc):
            logger.debug("Speech cancelled")

    async def speak(self, text: str) -> None:
        """Speak ``text`` after interrupting prior speech; resolves on completion."""
        self.cancel()
        generation = self._generation

        text = clean_text(text)
        if not text:
            return

        engine = self.resolve_engine()
        if engine is None:
            logger.warning("Speech synthesis not supported on this host (no TTS engine found)")
            return

        # Let the interrupted engine release the audio device
        await asyncio.sleep(self.settle_delay)
        if generation != self._generation:
            return

        cmd, payload = self.build_command(engine, text)
        spawn = asyncio.ensure_future(asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE if payload is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        ))
        try:
            proc = await asyncio.shield(spawn)
        except asyncio.CancelledError:
            # The engine may still come up after we stop waiting for it
            spawn.add_done_callback(_terminate_spawned)
            raise
        except OSError as e:
            logger.error(f"TTS engine {engine.value} failed to start: {e}")
            return

        if generation != self._generation:
            # Cancelled or superseded while the engine was starting
            _terminate(proc)
            return

        self._proc = proc
        try:
            if payload is not None:
                proc.stdin.write(payload)
                await proc.stdin.drain()
                proc.stdin.close()
            returncode = await proc.wait()
            if returncode != 0 and generation == self._generation:
                logger.error(f"TTS engine {engine.value} exited with code {returncode}")
        except asyncio.CancelledError:
            _terminate(proc)
            raise
        except OSError as e:
            logger.error(f"Speech playback error: {e}")
        finally:
            if self._proc is proc:
                self._proc = None


class SilentSpeechOutput(SpeechOutput):
    """Speech output that only logs; used when narration audio is disabled."""

    def get_available_engines(self) -> List[TTSEngine]:
        return []

    def cancel(self):
        self._generation += 1

    async def speak(self, text: str) -> None:
        self.cancel()
        logger.debug(f"(muted) {clean_text(text)}")


# Convenience functions

def get_available_engines() -> List[str]:
    """Get list of available TTS engine names."""
    return [e.value for e in SpeechOutput().get_available_engines()]


async def check_tts(speech: Optional[SpeechOutput] = None) -> dict:
    """Speak a test phrase and return status."""
    speech = speech or SpeechOutput()
    available = speech.get_available_engines()

    result = {
        "available_engines": [e.value for e in available],
        "configured_engine": speech.config.engine.value,
        "test_result": "not_run",
    }

    engine = speech.resolve_engine()
    if engine is None:
        result["test_result"] = "no_engines"
    else:
        await speech.speak("TTS test")
        result["test_result"] = "success"
        result["engine"] = engine.value

    return result
