"""
Reader/Writer fairness scheduler.

Queue-based: a granted writer gets exclusive access, a granted read batch
admits every queued reader at once. Waiting actors age and gain priority so
that neither side starves for ever. The workload cycles indefinitely: served
actors re-enter the queue after they release.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from models.liveness import DetectionConfig, LivenessState
from models.resource_state import MalformedInputError
from analysis.events import EventType
from simulations.base import Simulation
from utils.logger import SimulatorLogger


READER = "R"
WRITER = "W"

PRIORITY_CAP = 100


@dataclass
class ReaderWriterConfig:
    """
    Attributes:
        readers: Number of readers R1..Rn
        writers: Number of writers W1..Wm
        mode: "fair" breaks priority ties by queue order; any other mode
            (e.g. "readers") prefers the reader
        hold_ticks: Ticks a grant lasts before release
        priority_increment: Priority gained per aged tick
        detection: Liveness detection settings; its threshold also drives aging
    """
    readers: int = 4
    writers: int = 2
    mode: str = "fair"
    hold_ticks: int = 1
    priority_increment: int = 10
    detection: DetectionConfig = field(default_factory=DetectionConfig)


@dataclass
class QueuedActor:
    kind: str
    index: int
    waiting_ticks: int = 0
    priority: int = 0

    @property
    def actor_id(self) -> str:
        return f"{self.kind}{self.index}"


class ReaderWriterSimulation(Simulation):
    """Priority-aware reader/writer scheduler with aging."""

    name = "ReaderWriter"

    def __init__(self, config: ReaderWriterConfig, logger: Optional[SimulatorLogger] = None):
        super().__init__(logger)
        self.config = config
        self.reset(config)

    def reset(self, config: Optional[ReaderWriterConfig] = None) -> None:
        config = config or self.config
        if config.readers < 0 or config.writers < 0:
            raise MalformedInputError("reader and writer counts cannot be negative")
        if config.hold_ticks <= 0:
            raise MalformedInputError(f"hold_ticks must be positive, got {config.hold_ticks}")

        self.config = config
        self.threshold = config.detection.starvation_threshold
        self.queue: List[QueuedActor] = []
        self.active_readers: List[int] = []
        self.active_writer: Optional[int] = None
        self.held_ticks = 0
        self._begin_run(config.detection, {
            'Readers': config.readers,
            'Writers': config.writers,
            'Mode': config.mode,
            'StarvationThresholdTicks': self.threshold,
        })
        self.enqueue_all()

    def enqueue_all(self) -> None:
        """Fresh queue in canonical order: R1..Rn, W1..Wm."""
        self.queue = [QueuedActor(READER, i) for i in range(1, self.config.readers + 1)]
        self.queue += [QueuedActor(WRITER, i) for i in range(1, self.config.writers + 1)]

    def _head(self, kind: str) -> Tuple[int, Optional[QueuedActor]]:
        for pos, actor in enumerate(self.queue):
            if actor.kind == kind:
                return pos, actor
        return -1, None

    def select_next(self) -> Optional[str]:
        """
        Choose which side is granted next.

        Higher head-of-queue priority wins; on a tie "fair" mode picks the
        one earlier in the queue, any other mode picks the reader.

        Returns:
            READER, WRITER, or None if the queue is empty
        """
        writer_pos, writer = self._head(WRITER)
        reader_pos, reader = self._head(READER)
        if writer and reader:
            if writer.priority > reader.priority:
                return WRITER
            if reader.priority > writer.priority:
                return READER
            if self.config.mode == "fair":
                return WRITER if writer_pos < reader_pos else READER
            return READER
        if writer:
            return WRITER
        if reader:
            return READER
        return None

    def _grant(self) -> None:
        choice = self.select_next()
        if choice == WRITER:
            pos, writer = self._head(WRITER)
            self.queue.pop(pos)
            self.active_writer = writer.index
            self.held_ticks = 0
            self.emit(f"Writer {writer.index} is writing.", actor_id=writer.actor_id,
                      event_type=EventType.SCHEDULE)
        elif choice == READER:
            batch = [a for a in self.queue if a.kind == READER]
            self.queue = [a for a in self.queue if a.kind != READER]
            self.active_readers = [a.index for a in batch]
            self.held_ticks = 0
            for a in batch:
                self.emit(f"Reader {a.index} is reading.", actor_id=a.actor_id, event_type=EventType.SCHEDULE)

    def _intents(self) -> Dict[str, Tuple[LivenessState, str]]:
        """Intended state for every actor, holders and queued alike."""
        intents: Dict[str, Tuple[LivenessState, str]] = {}
        # The first held tick is always RUNNING, even when the grant expires in it
        releasing = self.held_ticks > 1 and self.held_ticks >= self.config.hold_ticks
        if self.active_writer is not None:
            if releasing:
                intents[f"W{self.active_writer}"] = (LivenessState.FINISHED, "completed writing")
            else:
                intents[f"W{self.active_writer}"] = (LivenessState.RUNNING, "writing exclusively")
            for a in self.queue:
                if a.kind == READER:
                    intents[a.actor_id] = (LivenessState.BLOCKED, "blocked by active writer")
                else:
                    intents[a.actor_id] = (LivenessState.WAITING, "waiting for writer to finish")
        else:
            for index in self.active_readers:
                if releasing:
                    intents[f"R{index}"] = (LivenessState.FINISHED, "completed reading")
                else:
                    intents[f"R{index}"] = (LivenessState.RUNNING, "reading concurrently")
            for a in self.queue:
                if a.kind == WRITER and self.active_readers:
                    intents[a.actor_id] = (LivenessState.BLOCKED, "blocked by active readers")
                else:
                    intents[a.actor_id] = (LivenessState.WAITING, f"waiting for {a.waiting_ticks} ticks")
        return intents

    def tick(self) -> None:
        """
        One scheduling tick.

        Order: age queued actors, keep or grant access, classify every actor
        exactly once, raise priority of starving queued actors, release
        holders whose grant has expired.
        """
        if self.halted:
            return
        self.tick_count += 1

        for a in self.queue:
            a.waiting_ticks += 1

        if self.active_writer is not None:
            self.emit(f"Writer {self.active_writer} is writing.", actor_id=f"W{self.active_writer}")
        elif not self.active_readers:
            self._grant()

        if self.active_writer is not None or self.active_readers:
            self.held_ticks += 1

        intents = self._intents()
        observed = {
            actor: self.classifier.classify(actor, state, details, tick=self.tick_count)
            for actor, (state, details) in intents.items()
        }

        for a in self.queue:
            if observed[a.actor_id] == LivenessState.STARVED or a.waiting_ticks >= self.threshold:
                a.priority = min(PRIORITY_CAP, a.priority + self.config.priority_increment)

        if self.held_ticks >= self.config.hold_ticks:
            self._release()

    def _release(self) -> None:
        """Finish the holders and send them to the back of the queue."""
        served = []
        if self.active_writer is not None:
            self.emit(f"Writer {self.active_writer} finished.", actor_id=f"W{self.active_writer}")
            served.append(QueuedActor(WRITER, self.active_writer))
            self.active_writer = None
        for index in self.active_readers:
            self.emit(f"Reader {index} finished.", actor_id=f"R{index}")
            served.append(QueuedActor(READER, index))
        self.active_readers = []
        self.held_ticks = 0
        self.queue.extend(sorted(served, key=lambda a: (a.kind != READER, a.index)))

    def _dequeue(self, kind: str, index: int) -> None:
        self.queue = [a for a in self.queue if not (a.kind == kind and a.index == index)]

    def request_read(self, index: int) -> bool:
        """
        Manually let reader `index` join the current readers.

        Returns:
            False if a writer holds the resource (the reader keeps waiting)
        """
        if self.active_writer is not None:
            self.emit(f"Reader {index} is waiting while Writer {self.active_writer} is writing",
                      actor_id=f"R{index}")
            return False
        if index in self.active_readers:
            return True
        self._dequeue(READER, index)
        self.active_readers.append(index)
        self.emit(f"Reader {index} is reading", actor_id=f"R{index}", event_type=EventType.SCHEDULE)
        return True

    def request_write(self, index: int) -> bool:
        """
        Manually grant writer `index` exclusive access.

        Returns:
            False if any reader or writer is active (the writer keeps waiting)
        """
        if self.active_writer is not None or self.active_readers:
            self.emit(f"Writer {index} is waiting", actor_id=f"W{index}")
            return False
        self._dequeue(WRITER, index)
        self.active_writer = index
        self.held_ticks = 0
        self.emit(f"Writer {index} is writing", actor_id=f"W{index}", event_type=EventType.SCHEDULE)
        return True

    def snapshot(self) -> Dict:
        snap = super().snapshot()
        snap.update({
            'queue': [
                {'id': a.actor_id, 'waiting_ticks': a.waiting_ticks, 'priority': a.priority}
                for a in self.queue
            ],
            'active_readers': [f"R{i}" for i in self.active_readers],
            'active_writer': None if self.active_writer is None else f"W{self.active_writer}",
            'mode': self.config.mode,
        })
        return snap
