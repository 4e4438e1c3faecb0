"""
Narrator Data Models

State, configuration and statistics for the analysis loop.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from ..config import config


class AnalysisState(str, Enum):
    """Re-entrancy guard for analysis passes."""
    IDLE = "idle"
    IN_FLIGHT = "in_flight"


@dataclass
class LoopConfig:
    """Configuration for the analysis loop."""
    interval: float = 5.0
    object_interval: float = 3.0
    use_objects: bool = False
    run_immediately: bool = True

    def __post_init__(self):
        if self.interval <= 0:
            raise ValueError("interval must be positive")
        if self.object_interval <= 0:
            raise ValueError("object_interval must be positive")

    @classmethod
    def from_env(cls) -> "LoopConfig":
        """Create config from environment variables."""
        return cls(
            interval=config.get_float("SS_ANALYSIS_INTERVAL", 5.0),
            object_interval=config.get_float("SS_OBJECT_INTERVAL", 3.0),
            use_objects=config.get_bool("SS_USE_OBJECTS", False),
        )


@dataclass
class LoopStats:
    """Counters for one loop session."""
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None

    ticks: int = 0
    ticks_dropped: int = 0
    passes_started: int = 0
    passes_completed: int = 0
    passes_failed: int = 0
    responses_discarded: int = 0
    object_refreshes: int = 0
    pass_time_total: float = 0.0
    passes_timed: int = 0

    def record_pass(self, elapsed: float):
        self.pass_time_total += elapsed
        self.passes_timed += 1

    @property
    def avg_pass_seconds(self) -> float:
        return self.pass_time_total / max(1, self.passes_timed)

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        duration = (self.end_time or datetime.now()) - self.start_time
        return {
            "duration_seconds": round(duration.total_seconds(), 2),
            "ticks": self.ticks,
            "ticks_dropped": self.ticks_dropped,
            "passes_started": self.passes_started,
            "passes_completed": self.passes_completed,
            "passes_failed": self.passes_failed,
            "responses_discarded": self.responses_discarded,
            "object_refreshes": self.object_refreshes,
            "avg_pass_seconds": round(self.avg_pass_seconds, 3),
        }
