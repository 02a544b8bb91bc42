"""
Event Model for the Concurrency Problem Simulator.

Defines the event stream the simulators emit: one
(timestamp, actor_id | None, message) record per logged transition,
safety step, deadlock verdict or recovery action.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple


class EventType(Enum):
    """Types of events in the simulation."""
    TRANSITION = "transition"
    SAFETY_STEP = "safety_step"
    DEADLOCK = "deadlock"
    RECOVERY = "recovery"
    SCHEDULE = "schedule"
    OUTCOME = "outcome"
    INFO = "info"


@dataclass
class SimulationEvent:
    """
    Represents a single event in the simulation.

    Attributes:
        message: Human-readable description
        actor_id: Actor involved ("P0", "R3", "W1"), None for system-wide events
        event_type: Type of event
        tick: Simulator tick when the event occurred
        timestamp: Wall-clock time the event was recorded
    """
    message: str
    actor_id: Optional[str] = None
    event_type: EventType = EventType.INFO
    tick: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def as_tuple(self) -> Tuple[datetime, Optional[str], str]:
        """The (timestamp, actor_id, message) triple consumed by collaborators."""
        return self.timestamp, self.actor_id, self.message

    def __str__(self) -> str:
        """Format event for logging."""
        return f"[{self.timestamp.strftime('%H:%M:%S')}] {self.message}"


EventListener = Callable[[SimulationEvent], None]


@dataclass
class EventLog:
    """Collection of simulation events, with listeners notified on every add."""
    events: list = None
    listeners: list = None

    def __post_init__(self):
        if self.events is None:
            self.events = []
        if self.listeners is None:
            self.listeners = []

    def subscribe(self, listener: EventListener) -> None:
        """Register a callable invoked with each new event."""
        self.listeners.append(listener)

    def add(self, event: SimulationEvent) -> None:
        """Add an event to the log."""
        self.events.append(event)
        for listener in self.listeners:
            listener(event)

    def record(
        self,
        message: str,
        actor_id: Optional[str] = None,
        event_type: EventType = EventType.INFO,
        tick: int = 0
    ) -> SimulationEvent:
        """Create, add and return an event."""
        event = SimulationEvent(message=message, actor_id=actor_id, event_type=event_type, tick=tick)
        self.add(event)
        return event

    def get_events_by_type(self, event_type: EventType) -> list:
        """Get all events of a specific type."""
        return [e for e in self.events if e.event_type == event_type]

    def get_events_by_tick(self, tick: int) -> list:
        """Get all events from a specific tick."""
        return [e for e in self.events if e.tick == tick]

    def messages(self) -> List[str]:
        return [e.message for e in self.events]

    def clear(self) -> None:
        self.events = []

    def display(self) -> str:
        """Format all events for display."""
        return "\n".join(str(event) for event in self.events)
