"""
Description Service Client for SightSpeak

Asks a vision-language model to describe a camera frame for a blind or
low-vision user. Two call shapes are supported:

- describe: image (+ optional detected object labels) -> description
- enhance:  image + previous description + labels    -> refined description

Backends: Ollama (``/api/generate``), OpenAI chat completions, and a
deterministic ``mock`` provider for offline use.

Usage:
    from sightspeak.llm_client import DescriptionClient

    async with DescriptionClient() as client:
        text = await client.describe(blob, ["chair", "desk"])
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import aiohttp
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import config
from .exceptions import DescriptionServiceError
from .frame_capture import ImageBlob

logger = logging.getLogger(__name__)

DESCRIBE_PROMPT = (
    "You are an AI assistant that helps visually impaired users understand their "
    "surroundings. Analyze the image provided and generate a concise and natural "
    "language description of the scene."
)

ENHANCE_PROMPT = (
    "You are an AI assistant that helps visually impaired users understand their "
    "surroundings. Improve the previous description of this scene: keep what is "
    "accurate, correct what is wrong, and add useful detail about the detected "
    "objects and where they are. Answer with the improved description only."
)


class DescriptionRequest(BaseModel):
    """Wire request: ``{image, detectedObjects?, previousDescription?}``."""

    model_config = ConfigDict(populate_by_name=True)

    image: str = Field(description="Photo of the scene as a base64 data URI")
    detected_objects: Optional[List[str]] = Field(default=None, alias="detectedObjects")
    previous_description: Optional[str] = Field(default=None, alias="previousDescription")

    @field_validator("image")
    @classmethod
    def _check_data_uri(cls, value: str) -> str:
        ImageBlob.from_data_uri(value)
        return value

    @property
    def is_enhance(self) -> bool:
        return self.previous_description is not None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class DescriptionResponse(BaseModel):
    """Wire response: ``{description}``."""

    description: str


def build_prompt(request: DescriptionRequest) -> str:
    """Text prompt for a request (the image travels separately)."""
    parts = [ENHANCE_PROMPT if request.is_enhance else DESCRIBE_PROMPT]
    if request.previous_description:
        parts.append(f"Previous description: {request.previous_description}")
    if request.detected_objects:
        parts.append("Detected objects: " + ", ".join(request.detected_objects))
    return "\n\n".join(parts)


class DescriptionService(ABC):
    """Contract consumed by the analysis loop."""

    @abstractmethod
    async def describe(
        self,
        image: ImageBlob,
        detected_objects: Optional[Sequence[str]] = None,
    ) -> str:
        """Describe the scene in ``image``."""

    @abstractmethod
    async def enhance(
        self,
        image: ImageBlob,
        previous_description: str,
        detected_objects: Sequence[str] = (),
    ) -> str:
        """Refine ``previous_description`` using the image and labels."""


@dataclass
class LLMMetrics:
    """Track description call metrics."""
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    total_time_ms: float = 0

    @property
    def avg_time_ms(self) -> float:
        return self.total_time_ms / max(1, self.total_calls)

    @property
    def success_rate(self) -> float:
        return self.successful_calls / max(1, self.total_calls)

    def to_dict(self) -> dict:
        return {
            "total_calls": self.total_calls,
            "successful": self.successful_calls,
            "failed": self.failed_calls,
            "avg_time_ms": round(self.avg_time_ms, 1),
            "success_rate": f"{self.success_rate:.1%}",
        }


@dataclass
class LLMConfig:
    """Description client configuration."""
    provider: str = "ollama"
    model: str = "llava:7b"
    ollama_url: str = "http://localhost:11434"
    openai_api_key: str = ""
    timeout: int = 30

    @classmethod
    def from_env(cls) -> "LLMConfig":
        """Load config from environment/.env"""
        return cls(
            provider=config.get("SS_LLM_PROVIDER", "ollama").lower(),
            model=config.get("SS_MODEL", "llava:7b"),
            ollama_url=config.get("SS_OLLAMA_URL", "http://localhost:11434").rstrip("/"),
            openai_api_key=config.get("SS_OPENAI_API_KEY", ""),
            timeout=config.get_int("SS_LLM_TIMEOUT", 30),
        )


class DescriptionClient(DescriptionService):
    """aiohttp-based description service client with metrics."""

    PROVIDERS = ("ollama", "openai", "mock")

    def __init__(
        self,
        llm_config: Optional[LLMConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.config = llm_config or LLMConfig.from_env()
        if self.config.provider not in self.PROVIDERS:
            raise DescriptionServiceError(f"Unknown provider: {self.config.provider}")
        self.metrics = LLMMetrics()
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
                headers={"Content-Type": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def close(self):
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def describe(
        self,
        image: ImageBlob,
        detected_objects: Optional[Sequence[str]] = None,
    ) -> str:
        request = DescriptionRequest(
            image=image.data_uri,
            detected_objects=list(detected_objects) if detected_objects else None,
        )
        return (await self.submit(request)).description

    async def enhance(
        self,
        image: ImageBlob,
        previous_description: str,
        detected_objects: Sequence[str] = (),
    ) -> str:
        request = DescriptionRequest(
            image=image.data_uri,
            detected_objects=list(detected_objects),
            previous_description=previous_description,
        )
        return (await self.submit(request)).description

    async def submit(self, request: DescriptionRequest) -> DescriptionResponse:
        """Send one request to the configured backend."""
        start_time = time.time()
        self.metrics.total_calls += 1
        prompt = build_prompt(request)
        blob = ImageBlob.from_data_uri(request.image)

        try:
            if self.config.provider == "ollama":
                text = await self._call_ollama(blob, prompt)
            elif self.config.provider == "openai":
                text = await self._call_openai(blob, prompt)
            else:
                text = self._call_mock(request)
            text = text.strip()
        except DescriptionServiceError:
            self.metrics.failed_calls += 1
            raise
        except asyncio.TimeoutError as e:
            self.metrics.failed_calls += 1
            raise DescriptionServiceError("Description request timed out") from e
        except aiohttp.ClientError as e:
            self.metrics.failed_calls += 1
            raise DescriptionServiceError(f"Description request failed: {e}") from e
        except (ValueError, AttributeError, TypeError) as e:
            self.metrics.failed_calls += 1
            raise DescriptionServiceError(f"Malformed response: {e}") from e
        finally:
            self.metrics.total_time_ms += (time.time() - start_time) * 1000

        if not text:
            self.metrics.failed_calls += 1
            raise DescriptionServiceError("Description service returned an empty description")

        self.metrics.successful_calls += 1
        logger.debug(f"Description ({self.config.provider}): {text[:80]}")
        return DescriptionResponse(description=text)

    async def _call_ollama(self, image: ImageBlob, prompt: str) -> str:
        """Call Ollama vision API."""
        url = f"{self.config.ollama_url}/api/generate"
        async with self._get_session().post(
            url,
            json={
                "model": self.config.model,
                "prompt": prompt,
                "images": [image.base64],
                "stream": False,
            },
        ) as response:
            if response.status != 200:
                body = await response.text()
                raise DescriptionServiceError(f"HTTP {response.status}: {body[:200]}")
            data = await response.json()
        return data.get("response", "")

    async def _call_openai(self, image: ImageBlob, prompt: str) -> str:
        """Call OpenAI chat completions with the frame as an image_url part."""
        if not self.config.openai_api_key:
            raise DescriptionServiceError("SS_OPENAI_API_KEY not set")

        async with self._get_session().post(
            "https://api.openai.com/v1/chat/completions",
            headers={"Authorization": f"Bearer {self.config.openai_api_key}"},
            json={
                "model": self.config.model,
                "messages": [
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {"type": "image_url", "image_url": {"url": image.data_uri}},
                        ],
                    }
                ],
                "max_tokens": 300,
            },
        ) as response:
            if response.status != 200:
                body = await response.text()
                raise DescriptionServiceError(f"HTTP {response.status}: {body[:200]}")
            data = await response.json()
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise DescriptionServiceError(f"Malformed response: {e}") from e

    def _call_mock(self, request: DescriptionRequest) -> str:
        """Deterministic offline description built from the labels."""
        labels = request.detected_objects or []
        if labels:
            scene = "A scene with " + _join_labels(labels) + "."
        else:
            scene = "A scene in front of the camera."
        if request.previous_description:
            return f"{request.previous_description} {scene}"
        return scene

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics."""
        return self.metrics.to_dict()


def _join_labels(labels: Sequence[str]) -> str:
    items = [f"a {label}" for label in labels]
    if len(items) == 1:
        return items[0]
    return ", ".join(items[:-1]) + " and " + items[-1]
