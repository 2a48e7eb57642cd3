"""Data models for igputop."""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(slots=True, frozen=True)
class ParsedStats:
    """Immutable stats decoded from one telemetry line."""

    frequency: float  # MHz, actual clock
    power: float  # Watts
    memory_used: float  # MiB
    memory_utilization: float  # 0.0 - 100.0


class SupervisorState(str, Enum):
    """Lifecycle state of a SampleSupervisor."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"


class ExitReason(str, Enum):
    """Why the background reader stopped."""

    EOF = "eof"
    LINE_CAP = "line_cap"
    ERROR = "error"


@dataclass(slots=True)
class MetricsSnapshot:
    """Result of one collection cycle."""

    timestamp: float
    metrics: dict[str, int] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
