"""
Banker's Algorithm simulator.

Drives the safety engine one admission per tick, classifies every unfinished
process once per tick, and exposes the two recovery strategies as manual
interventions between ticks.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from models.resource_state import ResourceState
from models.liveness import DetectionConfig, LivenessState
from algorithms.avoidance import SafetyEngine, StepResult
from algorithms.detection import DeadlockReport, build_deadlock_report, build_wait_for_edges
from algorithms.recovery import terminate_victim, preempt_resource
from analysis.events import EventType
from simulations.base import Simulation
from utils.logger import SimulatorLogger


@dataclass
class BankerConfig:
    """
    Inputs for one Banker's run.

    Attributes:
        max_rows: P rows of maximum claims
        allocation_rows: P rows of current allocations
        num_processes: Declared P (defaults to len(max_rows))
        num_resources: Declared R (defaults to the first row's length)
        available: Explicit Available vector, overrides the inferred one
        total: Explicit total capacity, used when available is not given
        scan_order: "lowest_index" or "round_robin"
        detection: Liveness detection settings
    """
    max_rows: List[List[int]]
    allocation_rows: List[List[int]]
    num_processes: Optional[int] = None
    num_resources: Optional[int] = None
    available: Optional[List[int]] = None
    total: Optional[List[int]] = None
    scan_order: str = "lowest_index"
    detection: DetectionConfig = field(default_factory=DetectionConfig)

    def __post_init__(self):
        if self.num_processes is None:
            self.num_processes = len(self.max_rows)
        if self.num_resources is None:
            self.num_resources = len(self.max_rows[0]) if self.max_rows else 0


def _fmt(vector) -> str:
    return "[" + ",".join(str(int(v)) for v in vector) + "]"


class BankerSimulation(Simulation):
    """Banker's safety search as a discrete-tick simulation."""

    name = "Banker"

    def __init__(self, config: BankerConfig, logger: Optional[SimulatorLogger] = None):
        super().__init__(logger)
        self.config = config
        self.state: Optional[ResourceState] = None
        self.engine: Optional[SafetyEngine] = None
        self.last_report: Optional[DeadlockReport] = None
        self.reset(config)

    def reset(self, config: Optional[BankerConfig] = None) -> None:
        """
        Rebuild matrices from the configuration.

        Raises:
            MalformedInputError: If the matrices don't match the declared
                counts; the previous run is left untouched
        """
        config = config or self.config
        state = ResourceState.from_matrices(
            config.num_processes,
            config.num_resources,
            config.max_rows,
            config.allocation_rows,
            available=config.available,
            total=config.total
        )
        engine = SafetyEngine(state, config.scan_order)

        self.config = config
        self.state = state
        self.engine = engine
        self.last_report = None
        self._begin_run(config.detection, {
            'Processes': state.num_processes,
            'Resources': state.num_resources,
            'Available': state.available_vector.tolist(),
            'Max': state.max_matrix.tolist(),
            'Allocation': state.allocation_matrix.tolist(),
        })
        self.emit("Initialized matrices. Need = Max - Allocation")

        for i in range(state.num_processes):
            self.classifier.classify(f"P{i}", LivenessState.WAITING, "waiting for resources", tick=0)

    def _classify_processes(self, chosen: Optional[int]) -> None:
        """One classification per unfinished process, from the pre-tick state."""
        for i in self.state.unfinished():
            if chosen is None:
                intent, details = LivenessState.BLOCKED, "circular wait detected"
            elif i == chosen:
                intent, details = LivenessState.FINISHED, "executed and released resources"
            elif self.engine.can_execute(i):
                intent, details = LivenessState.WAITING, "can execute when scheduled"
            else:
                intent, details = LivenessState.BLOCKED, "insufficient resources available"
            self.classifier.classify(f"P{i}", intent, details, tick=self.tick_count)

    def tick(self) -> Optional[StepResult]:
        """
        Advance the safety search by one admission.

        Returns:
            The engine's StepResult, or None if the run is already halted
        """
        if self.halted:
            return None
        self.tick_count += 1

        chosen = self.engine.find_admissible()
        self._classify_processes(chosen)

        result = self.engine.step()
        if result.admitted is not None:
            i = result.admitted
            self.emit(
                f"Step {len(self.engine.safe_sequence)}: Process P{i} can finish. "
                f"Work updated to {_fmt(result.work)}. Finish[P{i}] = true.",
                actor_id=f"P{i}",
                event_type=EventType.SAFETY_STEP
            )

        verdict = result.verdict
        if verdict is not None and verdict.safe:
            self.emit("System is in a Safe State.", event_type=EventType.OUTCOME)
            self.halt(f"System is in a Safe State. {verdict.describe()}")
        elif verdict is not None:
            self.last_report = build_deadlock_report(self.state, verdict.blocked, self.engine.work)
            blocked = ", ".join(f"P{i}" for i in verdict.blocked)
            self.emit(f"System is UNSAFE -> deadlock detected in {blocked}.", event_type=EventType.DEADLOCK)
            self.emit("Coffman condition violated: Circular wait (cycle in wait-for graph).",
                      event_type=EventType.DEADLOCK)
            self.halt(f"Deadlock detected involving: {blocked}.")
        return result

    def recover_terminate(self) -> Tuple[bool, str]:
        """Terminate the unfinished process holding the fewest resources."""
        success, message, victim = terminate_victim(self.state, self.engine)
        actor_id = f"P{victim}" if victim is not None else None
        self.emit(message, actor_id=actor_id, event_type=EventType.RECOVERY)
        if success:
            self.classifier.classify(actor_id, LivenessState.FINISHED, "terminated by recovery",
                                     tick=self.tick_count)
            self.last_report = None
            self.resume()
        return success, message

    def recover_preempt(self) -> Tuple[bool, str]:
        """Take one unit of the most-held resource from an unfinished process."""
        success, message, choice = preempt_resource(self.state, self.engine)
        actor_id = f"P{choice[0]}" if choice is not None else None
        self.emit(message, actor_id=actor_id, event_type=EventType.RECOVERY)
        if success:
            self.last_report = None
            self.resume()
        return success, message

    def wait_for_edges(self) -> List[Tuple[str, str]]:
        return [(f"P{a}", f"P{b}") for a, b in build_wait_for_edges(self.state, self.engine.work)]

    def snapshot(self) -> Dict:
        snap = super().snapshot()
        snap.update(self.state.snapshot())
        snap.update({
            'work': self.engine.work.tolist(),
            'safe_sequence': list(self.engine.safe_sequence),
            'wait_for_edges': self.wait_for_edges(),
        })
        return snap
