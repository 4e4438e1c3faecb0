"""
Mock Object Detection

Placeholder detector that simulates a remote detection call: after a short
delay it returns 1-4 randomly placed boxes with unique labels. There is no
real inference here; the boxes only drive the overlay and give the
description service some labels to work with.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .config import config

MOCK_OBJECTS = (
    "laptop",
    "water bottle",
    "keyboard",
    "mouse",
    "monitor",
    "person",
    "cup",
    "phone",
    "book",
    "chair",
    "desk",
)


@dataclass(frozen=True)
class DetectedObject:
    """Detected object; box is (x, y, width, height) as fractions of the frame."""
    id: str
    label: str
    confidence: float
    box: Tuple[float, float, float, float]

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "label": self.label,
            "confidence": round(self.confidence, 3),
            "box": [round(v, 4) for v in self.box],
        }


class MockObjectDetector:
    """Random-box detector with a simulated network delay."""

    def __init__(
        self,
        delay: Optional[float] = None,
        labels: Sequence[str] = MOCK_OBJECTS,
        max_objects: int = 4,
        seed: Optional[int] = None,
    ):
        self.delay = config.get_float("SS_DETECTOR_DELAY", 0.25) if delay is None else delay
        self.labels = tuple(labels)
        self.max_objects = min(max_objects, len(self.labels))
        self._rng = random.Random(seed)

    def generate(self) -> List[DetectedObject]:
        """Generate one set of detections without the simulated delay."""
        rng = self._rng
        count = rng.randint(1, self.max_objects)
        labels = rng.sample(self.labels, count)

        detected = []
        for i, label in enumerate(labels):
            width = rng.random() * 0.2 + 0.15   # 15% to 35%
            height = rng.random() * 0.3 + 0.2   # 20% to 50%
            x = rng.random() * (1 - width)
            y = rng.random() * (1 - height)
            detected.append(DetectedObject(
                id=f"{label}-{i}",
                label=label,
                confidence=rng.random() * 0.3 + 0.7,
                box=(x, y, width, height),
            ))
        return detected

    async def detect(self) -> List[DetectedObject]:
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        return self.generate()
