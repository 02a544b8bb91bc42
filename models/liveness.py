"""
Liveness model for the Concurrency Problem Simulator.

Per-actor liveness states, the record the classifier keeps for each actor,
and the detection configuration supplied at reset.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class LivenessState(Enum):
    """Observed actor states."""
    UNKNOWN = "unknown"
    WAITING = "waiting"
    BLOCKED = "blocked"
    RUNNING = "running"
    FINISHED = "finished"
    STARVED = "starved"

    @property
    def is_non_progress(self) -> bool:
        """True for states that accumulate waiting time."""
        return self in (LivenessState.WAITING, LivenessState.BLOCKED)

    @property
    def is_progress(self) -> bool:
        """True for states that reset waiting time."""
        return self in (LivenessState.RUNNING, LivenessState.FINISHED)


@dataclass
class ProcessLivenessRecord:
    """
    Liveness bookkeeping for one actor.

    Attributes:
        state: Last effective state returned by the classifier
        consecutive_non_progress_ticks: Ticks spent waiting/blocked in a row
        last_update: When the record was last classified
    """
    state: LivenessState = LivenessState.UNKNOWN
    consecutive_non_progress_ticks: int = 0
    last_update: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            'state': self.state.value,
            'waiting_steps': self.consecutive_non_progress_ticks,
            'last_update': self.last_update.isoformat(),
        }


@dataclass(frozen=True)
class DetectionConfig:
    """
    Detection settings, immutable for the lifetime of one run.

    Attributes:
        starvation_threshold: Consecutive waiting/blocked ticks before starvation
        enable_starvation_detection: Escalate to STARVED past the threshold
        enable_waiting_detection: Log transitions into WAITING
        enable_blocking_detection: Log transitions into BLOCKED
    """
    starvation_threshold: int = 20
    enable_starvation_detection: bool = True
    enable_waiting_detection: bool = True
    enable_blocking_detection: bool = True

    def __post_init__(self):
        if self.starvation_threshold <= 0:
            raise ValueError(
                f"starvation_threshold must be positive, got {self.starvation_threshold}"
            )

    def to_dict(self) -> dict:
        return {
            'starvation_threshold': self.starvation_threshold,
            'enable_starvation_detection': self.enable_starvation_detection,
            'enable_waiting_detection': self.enable_waiting_detection,
            'enable_blocking_detection': self.enable_blocking_detection,
        }
