"""
Custom exceptions for SightSpeak
"""

__all__ = [
    "SightSpeakError",
    "ConfigurationError",
    "FrameCaptureError",
    "CameraPermissionError",
    "DescriptionServiceError",
    "SpeechError",
    "EnhanceUnavailableError",
]


class SightSpeakError(Exception):
    """Base exception for all SightSpeak errors"""
    pass


class ConfigurationError(SightSpeakError):
    """Configuration error"""
    pass


class FrameCaptureError(SightSpeakError):
    """No frame could be captured from the video source"""
    pass


class CameraPermissionError(FrameCaptureError):
    """Camera access denied or unsupported on this host"""
    pass


class DescriptionServiceError(SightSpeakError):
    """Description service call failed"""
    pass


class SpeechError(SightSpeakError):
    """Speech playback error"""
    pass


class EnhanceUnavailableError(SightSpeakError):
    """Enhance requested before a description exists"""
    pass
