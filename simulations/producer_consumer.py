"""
Producer/Consumer bounded-buffer simulator.

Each tick runs three phases: every producer tries to produce (index order),
every consumer tries to consume (index order), then every actor goes idle.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Optional

from models.liveness import DetectionConfig, LivenessState
from models.resource_state import MalformedInputError
from analysis.events import EventType
from simulations.base import Simulation
from utils.logger import SimulatorLogger


@dataclass
class ProducerConsumerConfig:
    buffer_size: int = 8
    producers: int = 2
    consumers: int = 2
    detection: DetectionConfig = field(default_factory=lambda: DetectionConfig(starvation_threshold=15))


class ProducerConsumerSimulation(Simulation):
    """Bounded FIFO buffer shared by producers P1..Pn and consumers C1..Cm."""

    name = "ProducerConsumer"

    def __init__(self, config: ProducerConsumerConfig, logger: Optional[SimulatorLogger] = None):
        super().__init__(logger)
        self.config = config
        self.reset(config)

    def reset(self, config: Optional[ProducerConsumerConfig] = None) -> None:
        config = config or self.config
        if config.buffer_size <= 0:
            raise MalformedInputError(f"buffer_size must be positive, got {config.buffer_size}")
        if config.producers < 0 or config.consumers < 0:
            raise MalformedInputError("producer and consumer counts cannot be negative")

        self.config = config
        self.buffer = deque()
        self.next_item_id = 1
        # last observed activity per actor, for rendering; idle phase sets FINISHED
        self.activity: Dict[str, LivenessState] = {}
        self._begin_run(config.detection, {
            'BufferSize': config.buffer_size,
            'Producers': config.producers,
            'Consumers': config.consumers,
        })

    def produce(self, i: int) -> bool:
        """
        Producer i tries to append the next item.

        Returns:
            False (actor BLOCKED, "buffer full") iff the buffer is at capacity
        """
        actor = f"P{i}"
        if len(self.buffer) >= self.config.buffer_size:
            self.activity[actor] = self.classifier.classify(
                actor, LivenessState.BLOCKED, "buffer full", tick=self.tick_count
            )
            self.emit(f"Buffer Full! Producer {i} blocked.", actor_id=actor)
            return False

        self.activity[actor] = self.classifier.classify(
            actor, LivenessState.RUNNING, "producing item", tick=self.tick_count
        )
        item = self.next_item_id
        self.buffer.append(item)
        self.next_item_id += 1
        self.emit(f"Producer {i} produced item {item}.", actor_id=actor, event_type=EventType.SCHEDULE)
        return True

    def consume(self, i: int) -> bool:
        """
        Consumer i tries to take the oldest item.

        Returns:
            False (actor BLOCKED, "buffer empty") iff the buffer is empty
        """
        actor = f"C{i}"
        if not self.buffer:
            self.activity[actor] = self.classifier.classify(
                actor, LivenessState.BLOCKED, "buffer empty", tick=self.tick_count
            )
            self.emit(f"Buffer Empty! Consumer {i} blocked.", actor_id=actor)
            return False

        self.activity[actor] = self.classifier.classify(
            actor, LivenessState.RUNNING, "consuming item", tick=self.tick_count
        )
        item = self.buffer.popleft()
        self.emit(f"Consumer {i} consumed item {item}.", actor_id=actor, event_type=EventType.SCHEDULE)
        return True

    def idle_actors(self) -> None:
        """
        Idle phase: every actor's activity becomes FINISHED (cycle completed).

        The classifier keeps what the action phase observed, so a blocked
        streak carries over to the next tick.
        """
        for i in range(1, self.config.producers + 1):
            self.activity[f"P{i}"] = LivenessState.FINISHED
        for i in range(1, self.config.consumers + 1):
            self.activity[f"C{i}"] = LivenessState.FINISHED
        self.emit(f"Cycle {self.tick_count} completed.")

    def tick(self) -> None:
        """Produce phase, consume phase, idle phase."""
        if self.halted:
            return
        self.tick_count += 1
        for i in range(1, self.config.producers + 1):
            self.produce(i)
        for i in range(1, self.config.consumers + 1):
            self.consume(i)
        self.idle_actors()

    def manual_produce(self, i: int = 1) -> bool:
        """Single producer action followed by the idle phase."""
        produced = self.produce(i)
        self.idle_actors()
        return produced

    def manual_consume(self, i: int = 1) -> bool:
        """Single consumer action followed by the idle phase."""
        consumed = self.consume(i)
        self.idle_actors()
        return consumed

    def snapshot(self) -> Dict:
        snap = super().snapshot()
        snap.update({
            'buffer': list(self.buffer),
            'capacity': self.config.buffer_size,
            'activity': {actor: state.value for actor, state in self.activity.items()},
        })
        return snap
