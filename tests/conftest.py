"""
Pytest configuration for SightSpeak tests.

Keeps tests from writing the .env file and provides fake capabilities
for the analysis loop.
"""

import asyncio
from typing import List, Optional, Sequence
from unittest.mock import patch

import pytest

from sightspeak.exceptions import DescriptionServiceError
from sightspeak.frame_capture import FrameSource, ImageBlob
from sightspeak.llm_client import DescriptionService
from sightspeak.notifier import Notifier


@pytest.fixture(autouse=True)
def mock_config_save():
    """Prevent tests from modifying .env file."""
    with patch('sightspeak.config.config.save'):
        yield


class FakeFrames(FrameSource):
    """Frame source returning a fixed blob, None, or raising."""

    def __init__(self, blob: Optional[ImageBlob] = None):
        self.blob = blob or ImageBlob(data=b"\xff\xd8fake-jpeg\xff\xd9", mime_type="image/jpeg")
        self.error: Optional[Exception] = None
        self.empty = False
        self.captures = 0

    def capture(self):
        self.captures += 1
        if self.error is not None:
            raise self.error
        if self.empty:
            return None
        return self.blob


class FakeDescriber(DescriptionService):
    """Scripted description service.

    ``replies`` are consumed in order; an Exception instance is raised
    instead of returned. When ``gate`` is set, every call waits on it.
    """

    def __init__(self, replies: Sequence = ("A chair is nearby",), delay: float = 0.0):
        self.replies = list(replies)
        self.delay = delay
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[dict] = []
        self.active = 0
        self.max_active = 0

    async def _reply(self, call: dict) -> str:
        self.calls.append(call)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.gate is not None:
                await self.gate.wait()
        finally:
            self.active -= 1
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def describe(self, image, detected_objects=None):
        return await self._reply({"kind": "describe", "image": image, "objects": detected_objects})

    async def enhance(self, image, previous_description, detected_objects=()):
        return await self._reply({
            "kind": "enhance",
            "image": image,
            "previous": previous_description,
            "objects": list(detected_objects),
        })


class FakeSpeech:
    """Speech output that records utterances; optionally blocks until released."""

    def __init__(self):
        self.spoken: List[str] = []
        self.cancels = 0
        self.gate: Optional[asyncio.Event] = None
        self.error: Optional[Exception] = None

    def cancel(self):
        self.cancels += 1
        if self.gate is not None:
            self.gate.set()

    async def speak(self, text):
        self.spoken.append(text)
        if self.error is not None:
            raise self.error
        if self.gate is not None:
            await self.gate.wait()


async def wait_until(predicate, attempts: int = 200):
    """Yield to the event loop until ``predicate()`` is true."""
    for _ in range(attempts):
        if predicate():
            return True
        await asyncio.sleep(0)
    return predicate()


@pytest.fixture
def frames():
    return FakeFrames()


@pytest.fixture
def describer():
    return FakeDescriber()


@pytest.fixture
def speech():
    return FakeSpeech()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def service_error():
    return DescriptionServiceError("network error")
