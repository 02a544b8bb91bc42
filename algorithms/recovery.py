"""
Deadlock Recovery Algorithm for the Concurrency Problem Simulator.

Implements the two operator-invoked strategies: victim termination and
single-unit resource preemption. Both mutate the live ResourceState; the
caller re-runs the safety engine afterwards.
"""

from typing import Optional, Tuple

from models.resource_state import ResourceState
from algorithms.avoidance import SafetyEngine


def select_victim(state: ResourceState) -> Optional[int]:
    """
    Select victim process for termination.

    Strategy: the unfinished process holding the fewest resource instances in
    total (minimize waste). Ties go to the lowest index, the first found in an
    ascending scan.

    Args:
        state: Current resource state

    Returns:
        Index of selected victim, or None if every process is finished
    """
    victim = None
    min_alloc = None
    for i in state.unfinished():
        total = int(state.allocation_matrix[i].sum())
        if min_alloc is None or total < min_alloc:
            min_alloc = total
            victim = i
    return victim


def terminate_victim(
    state: ResourceState,
    engine: Optional[SafetyEngine] = None
) -> Tuple[bool, str, Optional[int]]:
    """
    Terminate the selected victim and reclaim everything it holds.

    Process termination:
    - Add its Allocation to Available (and to the engine's Work)
    - Clear its Allocation row, recompute Need
    - Mark it finished

    Args:
        state: Current resource state
        engine: Safety engine whose Work vector is kept in step, if any

    Returns:
        Tuple of (success, message, victim index or None)
    """
    victim = select_victim(state)
    if victim is None:
        return False, "No victim found.", None

    released = state.allocation_matrix[victim].copy()
    state.available_vector += released
    if engine is not None:
        engine.work += released
        engine.reopen()

    state.allocation_matrix[victim] = 0
    state.compute_need()
    state.finish_vector[victim] = True

    return True, f"Recovery: Terminated victim P{victim}. Resources reclaimed.", victim


def select_preemption(state: ResourceState) -> Optional[Tuple[int, int, int]]:
    """
    Find the (process, resource type) pair holding the most of one resource.

    Scans resource types outer, processes inner; the first pair with the
    strictly largest Allocation among unfinished processes wins.

    Returns:
        Tuple of (process index, resource type, amount held), or None
    """
    best = None
    best_amount = -1
    for j in range(state.num_resources):
        for i in state.unfinished():
            amount = int(state.allocation_matrix[i][j])
            if amount > best_amount:
                best_amount = amount
                best = (i, j, amount)
    return best


def preempt_resource(
    state: ResourceState,
    engine: Optional[SafetyEngine] = None
) -> Tuple[bool, str, Optional[Tuple[int, int]]]:
    """
    Preempt one unit of a resource from the process holding the most of it.

    Resource preemption:
    - Allocation[i][j] -= 1
    - Available[j] += 1 (and Work[j] += 1 on the engine)
    - Need recomputed, so Need[i][j] grows by one: the process still requires
      that unit

    Args:
        state: Current resource state
        engine: Safety engine whose Work vector is kept in step, if any

    Returns:
        Tuple of (success, message, (process, resource type) or None)
    """
    choice = select_preemption(state)
    if choice is None or choice[2] <= 0:
        return False, "Preemption not possible.", None

    i, j, _ = choice
    state.allocation_matrix[i][j] -= 1
    state.available_vector[j] += 1
    if engine is not None:
        engine.work[j] += 1
        engine.reopen()
    state.compute_need()

    return True, f"Recovery: Preempted 1 unit of R{j} from P{i}.", (i, j)
