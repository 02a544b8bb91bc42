"""
Dining Philosophers simulator.

Automatic mode uses the waiter solution: both forks are taken atomically and
at most N-1 philosophers eat at once, so no circular wait can form. Manual
mode lets the operator pick up forks one at a time, which can deadlock; that
deadlock is detected and reported.
"""

import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from models.liveness import DetectionConfig, LivenessState
from models.resource_state import MalformedInputError
from algorithms.detection import DeadlockReport, find_cycle
from analysis.events import EventType
from simulations.base import Simulation
from utils.logger import SimulatorLogger


THINKING = "thinking"
HUNGRY = "hungry"
EATING = "eating"

PRIORITY_CAP = 100


@dataclass
class PhilosophersConfig:
    """
    Attributes:
        count: Number of philosophers (and forks)
        release_probability: Chance an eater returns to thinking each tick
        seed: Seed for the release decisions
        priority_increment: Priority gained per aged tick
        detection: Liveness detection settings; its threshold also drives aging
    """
    count: int = 5
    release_probability: float = 0.5
    seed: Optional[int] = None
    priority_increment: int = 10
    detection: DetectionConfig = field(default_factory=lambda: DetectionConfig(starvation_threshold=25))


@dataclass
class Philosopher:
    status: str = THINKING
    wait_ticks: int = 0
    priority: int = 0


class DiningPhilosophersSimulation(Simulation):
    """Waiter-arbitrated dining philosophers with a manual deadlock mode."""

    name = "DiningPhilosophers"

    def __init__(self, config: PhilosophersConfig, logger: Optional[SimulatorLogger] = None):
        super().__init__(logger)
        self.config = config
        self.reset(config)

    def reset(self, config: Optional[PhilosophersConfig] = None) -> None:
        config = config or self.config
        if config.count < 2:
            raise MalformedInputError(f"Need at least 2 philosophers, got {config.count}")
        if not 0.0 <= config.release_probability <= 1.0:
            raise MalformedInputError(
                f"release_probability must be within [0, 1], got {config.release_probability}"
            )

        self.config = config
        self.n = config.count
        self.threshold = config.detection.starvation_threshold
        self.philosophers = [Philosopher() for _ in range(self.n)]
        # who holds which fork: None = free, else philosopher index
        self.fork_owner: List[Optional[int]] = [None] * self.n
        self.manual_mode = False
        self.last_report: Optional[DeadlockReport] = None
        self.rng = random.Random(config.seed)
        self._begin_run(config.detection, {
            'Philosophers': self.n,
            'StarvationThresholdTicks': self.threshold,
        })

    def left(self, i: int) -> int:
        return i

    def right(self, i: int) -> int:
        return (i + 1) % self.n

    @staticmethod
    def actor_id(i: int) -> str:
        return f"P{i + 1}"

    def eating_count(self) -> int:
        return sum(1 for p in self.philosophers if p.status == EATING)

    def _held_by_other(self, fork: int, i: int) -> bool:
        owner = self.fork_owner[fork]
        return owner is not None and owner != i

    def waiter_pick(self, i: int) -> bool:
        """
        Ask the waiter for both forks.

        Granted only if neither fork is held and fewer than N-1 philosophers
        are eating.
        """
        left, right = self.left(i), self.right(i)
        if self.fork_owner[left] is not None or self.fork_owner[right] is not None:
            return False
        if self.eating_count() >= self.n - 1:
            return False
        self.fork_owner[left] = self.fork_owner[right] = i
        return True

    def release(self, i: int) -> None:
        for fork in (self.left(i), self.right(i)):
            if self.fork_owner[fork] == i:
                self.fork_owner[fork] = None

    def _start_eating(self, i: int) -> None:
        p = self.philosophers[i]
        p.status = EATING
        p.wait_ticks = 0
        p.priority = 0
        self.emit(
            f"Philosopher {i + 1} is eating with Fork {self.left(i) + 1} and Fork {self.right(i) + 1}.",
            actor_id=self.actor_id(i),
            event_type=EventType.SCHEDULE
        )

    def tick(self) -> None:
        """
        One tick. Automatic mode schedules and releases first and then
        classifies every philosopher once: eaters are RUNNING (FINISHED if
        released this tick), the rest keep the intent read from the forks at
        the start of the tick and age. Manual mode classifies and then runs
        the circular-wait check.
        """
        if self.halted:
            return
        self.tick_count += 1
        intents = self._waiting_intents()

        if self.manual_mode:
            self._classify(intents, released=set())
            self._check_deadlock()
            return
        self._schedule()
        released = self._release_eaters()
        self._classify(intents, released)

    def _waiting_intents(self) -> Dict[int, tuple]:
        """WAITING/BLOCKED intent of each non-eater, from the current forks."""
        intents = {}
        for i, p in enumerate(self.philosophers):
            if p.status == EATING:
                continue
            p.wait_ticks += 1
            intent = LivenessState.WAITING
            details = f"waiting for {p.wait_ticks} ticks"
            if p.status == HUNGRY:
                left, right = self.left(i), self.right(i)
                if self._held_by_other(left, i) or self._held_by_other(right, i):
                    intent = LivenessState.BLOCKED
                    details = (
                        f"blocked by forks (left: {'taken' if self._held_by_other(left, i) else 'free'}, "
                        f"right: {'taken' if self._held_by_other(right, i) else 'free'})"
                    )
            intents[i] = (intent, details)
        return intents

    def _classify(self, intents: Dict[int, tuple], released: Set[int]) -> None:
        for i, p in enumerate(self.philosophers):
            actor = self.actor_id(i)
            if i in released:
                self.classifier.classify(actor, LivenessState.FINISHED, "finished eating", tick=self.tick_count)
                continue
            if p.status == EATING:
                self.classifier.classify(actor, LivenessState.RUNNING, "eating", tick=self.tick_count)
                continue

            intent, details = intents[i]
            observed = self.classifier.classify(actor, intent, details, tick=self.tick_count)
            if observed == LivenessState.STARVED or p.wait_ticks >= self.threshold:
                p.priority = min(PRIORITY_CAP, p.priority + self.config.priority_increment)

    def scheduling_order(self) -> List[int]:
        """Descending priority, ties by ascending index."""
        return sorted(range(self.n), key=lambda i: -self.philosophers[i].priority)

    def _schedule(self) -> None:
        for i in self.scheduling_order():
            p = self.philosophers[i]
            if p.status == EATING:
                continue
            if p.status == THINKING:
                p.status = HUNGRY
                self.emit(f"Philosopher {i + 1} is hungry.", actor_id=self.actor_id(i))
            if self.waiter_pick(i):
                self._start_eating(i)

    def _release_eaters(self) -> Set[int]:
        released = set()
        for i, p in enumerate(self.philosophers):
            if p.status == EATING and self.rng.random() < self.config.release_probability:
                p.status = THINKING
                self.release(i)
                released.add(i)
                self.emit(f"Philosopher {i + 1} is thinking.", actor_id=self.actor_id(i))
        return released

    def enter_manual_mode(self) -> None:
        """Latch out of automatic scheduling until the next reset."""
        if not self.manual_mode:
            self.manual_mode = True
            self.emit("Manual mode: automatic scheduling disabled until reset.")

    def pick_fork(self, i: int) -> bool:
        """
        Manually pick up one fork for philosopher i: the left one if free,
        otherwise the right one if free. Holding both means eating.

        Returns:
            True if a fork was picked up
        """
        self.enter_manual_mode()
        p = self.philosophers[i]
        if p.status == EATING:
            return False
        p.status = HUNGRY

        picked = None
        for fork in (self.left(i), self.right(i)):
            if self.fork_owner[fork] is None:
                self.fork_owner[fork] = i
                picked = fork
                break

        if picked is None:
            self.emit(f"Philosopher {i + 1} cannot pick up a fork, forks not available.",
                      actor_id=self.actor_id(i))
            self._check_deadlock()
            return False

        self.emit(f"Philosopher {i + 1} picked up Fork {picked + 1}.", actor_id=self.actor_id(i))
        if self.fork_owner[self.left(i)] == i and self.fork_owner[self.right(i)] == i:
            self._start_eating(i)
        self._check_deadlock()
        return True

    def put_down(self, i: int) -> None:
        """Manually return philosopher i to thinking, releasing its forks."""
        self.enter_manual_mode()
        p = self.philosophers[i]
        self.release(i)
        p.status = THINKING
        p.wait_ticks = 0
        p.priority = 0
        self.emit(f"Philosopher {i + 1} is thinking.", actor_id=self.actor_id(i))
        if self.halted and self.detect_deadlock() is None:
            self.last_report = None
            self.resume()

    def detect_deadlock(self) -> Optional[DeadlockReport]:
        """
        Circular wait check for manual mode.

        Deadlock iff nobody is eating or thinking, every fork is held, and
        each philosopher holds exactly its left fork while its right
        neighbour holds the right one.

        Returns:
            DeadlockReport with P_i -> P_(i+1) edges, or None
        """
        if any(p.status in (EATING, THINKING) for p in self.philosophers):
            return None
        if any(owner is None for owner in self.fork_owner):
            return None
        for i in range(self.n):
            right = self.right(i)
            if self.fork_owner[self.left(i)] != i or self.fork_owner[right] != right:
                return None

        edges = [(self.actor_id(i), self.actor_id(self.right(i))) for i in range(self.n)]
        return DeadlockReport(
            blocked_actor_ids={self.actor_id(i) for i in range(self.n)},
            edges=edges,
            cycle=find_cycle(edges)
        )

    def _check_deadlock(self) -> None:
        if self.halted:
            return
        report = self.detect_deadlock()
        if report is None:
            return
        self.last_report = report
        self.emit(f"Circular wait: {report.describe()}.", event_type=EventType.DEADLOCK)
        self.halt("Deadlock detected: every philosopher holds its left fork and waits for its right.")

    def snapshot(self) -> Dict:
        snap = super().snapshot()
        snap.update({
            'philosophers': [
                {'id': self.actor_id(i), 'status': p.status, 'wait_ticks': p.wait_ticks, 'priority': p.priority}
                for i, p in enumerate(self.philosophers)
            ],
            'forks': [None if owner is None else self.actor_id(owner) for owner in self.fork_owner],
            'manual_mode': self.manual_mode,
            'wait_for_edges': list(self.last_report.edges) if self.last_report else [],
        })
        return snap
