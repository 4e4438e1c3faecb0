"""
SightSpeak - spoken scene descriptions from a live camera

Uses lazy imports for fast CLI startup: modules are imported only when
their names are accessed.
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"


def __getattr__(name):
    """Lazy import handler - imports modules only when accessed."""

    # Narrator
    if name in ("AnalysisLoop", "AnalysisState", "LoopConfig", "build_loop"):
        from . import narrator
        return getattr(narrator, name)

    # Capabilities
    if name in ("ImageBlob", "FrameSource", "CameraFrameSource", "StaticFrameSource"):
        from . import frame_capture
        return getattr(frame_capture, name)
    if name in ("SpeechOutput", "SilentSpeechOutput", "TTSConfig", "TTSEngine"):
        from . import tts
        return getattr(tts, name)
    if name in ("DescriptionClient", "DescriptionService", "DescriptionRequest", "DescriptionResponse", "LLMConfig"):
        from . import llm_client
        return getattr(llm_client, name)
    if name in ("DetectedObject", "MockObjectDetector"):
        from . import object_detection
        return getattr(object_detection, name)
    if name in ("Notifier", "ConsoleNotifier"):
        from . import notifier
        return getattr(notifier, name)

    # Config / diagnostics
    if name == "config":
        from .config import config
        return config
    if name in ("enable_diagnostics", "Metrics"):
        from . import diagnostics
        return getattr(diagnostics, name)

    # Exceptions
    if name in (
        "SightSpeakError",
        "ConfigurationError",
        "FrameCaptureError",
        "CameraPermissionError",
        "DescriptionServiceError",
        "SpeechError",
        "EnhanceUnavailableError",
    ):
        from . import exceptions
        return getattr(exceptions, name)

    raise AttributeError(f"module 'sightspeak' has no attribute '{name}'")


__all__ = [
    # Narrator
    "AnalysisLoop",
    "AnalysisState",
    "LoopConfig",
    "build_loop",

    # Capabilities
    "ImageBlob",
    "FrameSource",
    "CameraFrameSource",
    "StaticFrameSource",
    "SpeechOutput",
    "SilentSpeechOutput",
    "TTSConfig",
    "TTSEngine",
    "DescriptionClient",
    "DescriptionService",
    "DescriptionRequest",
    "DescriptionResponse",
    "LLMConfig",
    "DetectedObject",
    "MockObjectDetector",
    "Notifier",
    "ConsoleNotifier",

    # Config / diagnostics
    "config",
    "enable_diagnostics",
    "Metrics",

    # Exceptions
    "SightSpeakError",
    "ConfigurationError",
    "FrameCaptureError",
    "CameraPermissionError",
    "DescriptionServiceError",
    "SpeechError",
    "EnhanceUnavailableError",
]
