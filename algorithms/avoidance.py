"""
Deadlock Avoidance Algorithm (Banker's Algorithm) for the Simulator.

Implements the Banker's safety search in a re-entrant single-step form so
that it can be driven one process admission per simulator tick.
"""

import copy
import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from models.resource_state import ResourceState


SCAN_ORDERS = ("lowest_index", "round_robin")


@dataclass
class SafetyResult:
    """
    Verdict of a safety search.

    Attributes:
        safe: True when every process finished
        sequence: Process indices in admission order
        blocked: Unfinished process indices when unsafe (empty when safe)
    """
    safe: bool
    sequence: List[int] = field(default_factory=list)
    blocked: List[int] = field(default_factory=list)

    def describe(self) -> str:
        if self.safe:
            return "Safe Sequence: <" + ", ".join(f"P{i}" for i in self.sequence) + ">"
        return "Deadlock detected involving: " + ", ".join(f"P{i}" for i in self.blocked)


@dataclass
class StepResult:
    """
    Outcome of a single engine step.

    Attributes:
        admitted: Process admitted this step, or None
        work: Work vector after the step
        verdict: Final SafetyResult once the search is decided, else None
    """
    admitted: Optional[int]
    work: List[int]
    verdict: Optional[SafetyResult] = None


class SafetyEngine:
    """
    Banker's safe-sequence search over a ResourceState.

    Algorithm:
    1. Work = Available (scratch copy; Available itself is never touched)
    2. Scan unfinished processes and admit the first i with Need[i] <= Work
    3. Work += Allocation[i], Finish[i] = True, append i to the sequence
    4. Repeat until all processes finish (SAFE) or none is admissible (UNSAFE)

    Each call to step() performs exactly one admission (or the final verdict).
    With scan_order "lowest_index" every step restarts at index 0; with
    "round_robin" it continues after the last admitted index and wraps.

    Time Complexity: O(P²×R) for a full run

    References:
        Silberschatz, A., Galvin, P. B., & Gagne, G. (2018).
        Operating System Concepts (10th ed.). Chapter 7.5: Deadlock Avoidance.
    """

    def __init__(self, state: ResourceState, scan_order: str = "lowest_index"):
        if scan_order not in SCAN_ORDERS:
            raise ValueError(f"Unknown scan order '{scan_order}' (expected one of {SCAN_ORDERS})")
        self.state = state
        self.scan_order = scan_order
        self.work = state.available_vector.copy()
        self.safe_sequence: List[int] = []
        self.verdict: Optional[SafetyResult] = None
        self._last_admitted: Optional[int] = None

    @property
    def finish(self) -> np.ndarray:
        return self.state.finish_vector

    def can_execute(self, i: int) -> bool:
        """True if process i is unfinished and Need[i] <= Work element-wise."""
        return (not self.finish[i]) and bool(np.all(self.state.need_matrix[i] <= self.work))

    def _scan_order(self) -> List[int]:
        n = self.state.num_processes
        if self.scan_order == "round_robin" and self._last_admitted is not None:
            start = (self._last_admitted + 1) % n
            return [(start + k) % n for k in range(n)]
        return list(range(n))

    def find_admissible(self) -> Optional[int]:
        """
        Find the next process to admit.

        Returns:
            Index of the first admissible process in scan order, or None
        """
        for i in self._scan_order():
            if self.can_execute(i):
                return i
        return None

    def step(self) -> StepResult:
        """
        Admit one process, or decide the verdict if none can be admitted.

        Once decided, further calls return the same verdict without changing
        anything until reopen() is called.

        Returns:
            StepResult describing the admission and, if reached, the verdict
        """
        if self.verdict is not None:
            return StepResult(admitted=None, work=self.work.tolist(), verdict=self.verdict)

        chosen = self.find_admissible()
        if chosen is not None:
            self.work += self.state.allocation_matrix[chosen]
            self.finish[chosen] = True
            self.safe_sequence.append(int(chosen))
            self._last_admitted = chosen
            if not self.state.unfinished():
                self.verdict = SafetyResult(safe=True, sequence=list(self.safe_sequence))
            return StepResult(admitted=int(chosen), work=self.work.tolist(), verdict=self.verdict)

        unfinished = self.state.unfinished()
        if unfinished:
            self.verdict = SafetyResult(safe=False, sequence=list(self.safe_sequence), blocked=unfinished)
        else:
            self.verdict = SafetyResult(safe=True, sequence=list(self.safe_sequence))
        return StepResult(admitted=None, work=self.work.tolist(), verdict=self.verdict)

    def run(self) -> SafetyResult:
        """Step until a verdict is reached."""
        while self.verdict is None:
            self.step()
        return self.verdict

    def reopen(self) -> None:
        """Clear the verdict so stepping resumes after an outside intervention."""
        self.verdict = None


def is_safe_state(state: ResourceState, scan_order: str = "lowest_index") -> SafetyResult:
    """
    Check whether a state is safe without touching it.

    Args:
        state: Resource state to check (copied, not mutated)
        scan_order: Admission scan order

    Returns:
        SafetyResult for a full run on a copy of the state
    """
    return SafetyEngine(copy.deepcopy(state), scan_order).run()


def is_valid_safe_sequence(state: ResourceState, sequence: Sequence[int]) -> bool:
    """
    Replay a sequence of admissions against a state.

    Returns:
        True if every admission satisfies Need <= Work at its turn and every
        process appears exactly once
    """
    if sorted(sequence) != list(range(state.num_processes)):
        return False
    work = state.available_vector.copy()
    for i in sequence:
        if np.any(state.need_matrix[i] > work):
            return False
        work += state.allocation_matrix[i]
    return True
