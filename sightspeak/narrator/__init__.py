"""
Narrator - periodic scene description for blind and low-vision users.

Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      AnalysisLoop                        │
    │                                                          │
    │  ┌─────────────┐  ┌──────────────┐  ┌───────────────┐   │
    │  │ FrameSource │→ │ Description  │→ │ SpeechOutput  │   │
    │  └─────────────┘  │   Service    │  └───────────────┘   │
    │         ↓         └──────────────┘                       │
    │  ┌─────────────┐         ↑                               │
    │  │  Detector   │ ────────┘ (labels)                      │
    │  └─────────────┘                                         │
    └──────────────────────────────────────────────────────────┘

Usage:
    from sightspeak.narrator import build_loop

    loop = build_loop(image="street.jpg", tts=False)
    await loop.run(duration=30)
"""

from typing import Optional

from ..frame_capture import CameraFrameSource, FrameSource, StaticFrameSource
from ..llm_client import DescriptionClient, LLMConfig
from ..notifier import ConsoleNotifier, Notifier
from ..object_detection import MockObjectDetector
from ..tts import SilentSpeechOutput, SpeechOutput
from .loop import AnalysisLoop
from .models import AnalysisState, LoopConfig, LoopStats

__all__ = [
    "AnalysisLoop",
    "AnalysisState",
    "LoopConfig",
    "LoopStats",
    "build_loop",
]


def build_loop(
    image: Optional[str] = None,
    device: Optional[str] = None,
    interval: Optional[float] = None,
    objects: Optional[bool] = None,
    tts: bool = True,
    llm_config: Optional[LLMConfig] = None,
    notifier: Optional[Notifier] = None,
) -> AnalysisLoop:
    """Assemble an AnalysisLoop from configuration and CLI overrides.

    The frame source is opened last, once every other part has been
    built; a denied camera raises CameraPermissionError before the loop
    exists.
    """
    loop_config = LoopConfig.from_env()
    if interval is not None:
        loop_config.interval = interval
    if objects is not None:
        loop_config.use_objects = objects

    describer = DescriptionClient(llm_config)
    speech = SpeechOutput() if tts else SilentSpeechOutput()
    detector = MockObjectDetector() if loop_config.use_objects else None

    frames: FrameSource = StaticFrameSource(image) if image else CameraFrameSource(device=device)
    frames.open()

    return AnalysisLoop(
        frames=frames,
        describer=describer,
        speech=speech,
        notifier=notifier or ConsoleNotifier(),
        detector=detector,
        loop_config=loop_config,
    )
