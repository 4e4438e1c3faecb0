"""
Frame Capture Module

Still-frame capture from a live camera (OpenCV) or a fixed image file.
Frames are returned as ImageBlob objects: raw bytes plus their MIME type,
renderable as a data URI for the description service.
"""

import base64
import binascii
import logging
import mimetypes
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

try:
    import cv2
    HAS_CV2 = True
except ImportError:
    HAS_CV2 = False
    cv2 = None

from .config import config
from .exceptions import CameraPermissionError, FrameCaptureError

logger = logging.getLogger(__name__)

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)

# Candidate device order when SS_CAMERA_DEVICE=auto
FACING_DEVICE_ORDER = {
    "environment": [1, 0],
    "user": [0, 1],
}

_ENCODE_EXT = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


@dataclass(frozen=True)
class ImageBlob:
    """Encoded still image with its declared format."""
    data: bytes
    mime_type: str = "image/jpeg"

    @property
    def data_uri(self) -> str:
        payload = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{payload}"

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @classmethod
    def from_data_uri(cls, uri: str) -> "ImageBlob":
        """Parse ``data:<mime>;base64,<payload>``."""
        match = _DATA_URI_RE.match(uri.strip())
        if not match:
            raise ValueError("Expected format: 'data:<mimetype>;base64,<encoded_data>'")
        try:
            data = base64.b64decode(match.group("data"), validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e
        return cls(data=data, mime_type=match.group("mime"))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ImageBlob":
        path = Path(path)
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(data=path.read_bytes(), mime_type=mime_type)

    def __len__(self) -> int:
        return len(self.data)


class FrameSource(ABC):
    """Produces single still frames on demand."""

    @abstractmethod
    def capture(self) -> Optional[ImageBlob]:
        """Return the most recent frame, or None when no frame is available yet."""
        raise NotImplementedError

    @property
    def ready(self) -> bool:
        return True

    def open(self):
        pass

    def close(self):
        pass

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class StaticFrameSource(FrameSource):
    """Serves the same image file on every capture."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._blob: Optional[ImageBlob] = None

    def open(self):
        if not self.path.exists():
            raise FrameCaptureError(f"Image not found: {self.path}")
        self._blob = ImageBlob.from_file(self.path)

    @property
    def ready(self) -> bool:
        return self._blob is not None

    def capture(self) -> Optional[ImageBlob]:
        return self._blob


class CameraFrameSource(FrameSource):
    """OpenCV-backed live camera.

    ``device`` may be a camera index, a stream URL, or ``"auto"`` to probe
    devices in the order preferred for ``facing`` (rear camera first by
    default) and fall back to whatever opens.
    """

    def __init__(
        self,
        device: Union[int, str, None] = None,
        facing: Optional[str] = None,
        mime_type: Optional[str] = None,
        quality: Optional[int] = None,
    ):
        self.device = device if device is not None else config.get("SS_CAMERA_DEVICE", "0")
        self.facing = facing or config.get("SS_CAMERA_FACING", "environment")
        self.mime_type = mime_type or config.get("SS_IMAGE_FORMAT", "image/jpeg")
        self.quality = quality or config.get_int("SS_IMAGE_QUALITY", 80)
        if self.mime_type not in _ENCODE_EXT:
            raise FrameCaptureError(f"Unsupported image format: {self.mime_type}")
        self._cap = None
        self._opened_device = None

    def _candidates(self) -> List[Union[int, str]]:
        device = self.device
        if isinstance(device, str):
            if device.lower() == "auto":
                return list(FACING_DEVICE_ORDER.get(self.facing, [0]))
            if device.isdigit():
                return [int(device)]
        return [device]

    def open(self):
        if not HAS_CV2:
            raise CameraPermissionError(
                "Camera access is not supported: opencv-python is not installed. "
                "Install: pip install sightspeak[multimedia]"
            )
        if self._cap is not None:
            return

        for candidate in self._candidates():
            cap = cv2.VideoCapture(candidate)
            if cap is not None and cap.isOpened():
                cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
                self._cap = cap
                self._opened_device = candidate
                logger.info(f"Camera opened: {candidate} (facing={self.facing})")
                return
            if cap is not None:
                cap.release()
            logger.debug(f"Camera candidate {candidate} unavailable")

        raise CameraPermissionError(
            "Camera access denied or no camera available. "
            "Please check camera permissions and the SS_CAMERA_DEVICE setting."
        )

    @property
    def ready(self) -> bool:
        return self._cap is not None

    @property
    def opened_device(self):
        return self._opened_device

    def capture(self) -> Optional[ImageBlob]:
        if self._cap is None:
            return None

        ok, frame = self._cap.read()
        if not ok or frame is None:
            return None

        ext = _ENCODE_EXT[self.mime_type]
        params = []
        if self.mime_type == "image/jpeg":
            params = [cv2.IMWRITE_JPEG_QUALITY, self.quality]
        ok, encoded = cv2.imencode(ext, frame, params)
        if not ok:
            logger.warning("Frame encoding failed")
            return None
        return ImageBlob(data=encoded.tobytes(), mime_type=self.mime_type)

    def close(self):
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.debug("Camera released")
