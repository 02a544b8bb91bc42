"""
Common plumbing for the discrete-tick simulators.

Each simulator owns its own event log and its own LivenessClassifier,
recreated on every reset so independent runs never share state.
"""

from typing import Dict, Optional

from models.liveness import DetectionConfig
from algorithms.liveness import LivenessClassifier
from analysis.events import EventLog, EventType, SimulationEvent
from utils.logger import SimulatorLogger


class Simulation:
    """Base class: event emission, classifier ownership and the halted flag."""

    name = "Simulation"

    def __init__(self, logger: Optional[SimulatorLogger] = None):
        self.events = EventLog()
        self.logger = logger
        if logger is not None:
            logger.attach(self.events)
        self.classifier: Optional[LivenessClassifier] = None
        self.tick_count = 0
        self.halted = False
        self.outcome: Optional[str] = None

    def _begin_run(self, detection: DetectionConfig, session_config: Dict) -> None:
        """Start a fresh run: new classifier, cleared events, tick 0."""
        self.events.clear()
        self.classifier = LivenessClassifier(self.events, detection)
        self.tick_count = 0
        self.halted = False
        self.outcome = None
        if self.logger is not None:
            self.logger.start_session({**session_config, 'DetectionConfig': detection.to_dict()})

    def emit(
        self,
        message: str,
        actor_id: Optional[str] = None,
        event_type: EventType = EventType.INFO
    ) -> SimulationEvent:
        """Record an event stamped with the current tick."""
        return self.events.record(message, actor_id=actor_id, event_type=event_type, tick=self.tick_count)

    def halt(self, outcome: str) -> None:
        """Mark the run stopped with a terminal outcome (safe, deadlock, ...)."""
        self.halted = True
        self.outcome = outcome
        if self.logger is not None:
            self.logger.set_outcome(outcome)

    def resume(self) -> None:
        """Clear the halted flag after a manual intervention."""
        self.halted = False
        self.outcome = None
        if self.logger is not None:
            self.logger.set_outcome("")

    def reset(self, config=None) -> None:
        raise NotImplementedError

    def tick(self):
        raise NotImplementedError

    def liveness_snapshot(self) -> Dict[str, dict]:
        return {actor: record.to_dict() for actor, record in self.classifier.records().items()}

    def snapshot(self) -> Dict:
        """State common to every simulator; subclasses extend it."""
        return {
            'module': self.name,
            'tick': self.tick_count,
            'halted': self.halted,
            'outcome': self.outcome,
            'liveness': self.liveness_snapshot(),
            'status_counts': self.classifier.status_counts(),
        }
