"""
Wait-For Graph construction for the Concurrency Problem Simulator.

Derives directed wait-for edges from Need/Allocation/Work so observers can
confirm and visualize the circular-wait condition behind a deadlock verdict.
The graph is advisory: the verdict itself comes from the safety engine.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, List, Optional, Sequence, Set, Tuple

from models.resource_state import ResourceState


@dataclass
class DeadlockReport:
    """
    Transient description of a detected deadlock.

    Attributes:
        blocked_actor_ids: Actors that can make no further progress
        edges: Ordered wait-for edges (waiter, holder)
        cycle: One circular wait found among the edges, empty if none
    """
    blocked_actor_ids: Set[str]
    edges: List[Tuple[str, str]] = field(default_factory=list)
    cycle: List[str] = field(default_factory=list)

    def describe(self) -> str:
        blocked = ", ".join(sorted(self.blocked_actor_ids, key=_actor_sort_key))
        text = f"deadlock detected in {blocked}"
        if self.cycle:
            text += " (cycle: " + " -> ".join(self.cycle + self.cycle[:1]) + ")"
        return text


def _actor_sort_key(actor_id: str):
    digits = "".join(ch for ch in actor_id if ch.isdigit())
    return (actor_id.rstrip("0123456789"), int(digits) if digits else -1)


def build_wait_for_edges(
    state: ResourceState,
    work: Optional[Sequence[int]] = None,
    finish: Optional[Sequence[bool]] = None
) -> List[Tuple[int, int]]:
    """
    Build wait-for edges between unfinished processes.

    For each unfinished process i with Need[i][j] > Work[j] for some j
    (i is waiting), add i -> k for every other unfinished k holding
    Allocation[k][j] > 0 for some j with Need[i][j] > 0.

    Time Complexity: O(P²×R)

    Args:
        state: Current resource state
        work: Work vector (defaults to Available)
        finish: Finish flags (defaults to the state's Finish vector)

    Returns:
        Deduplicated list of (waiter, holder) index pairs in scan order
    """
    work = state.available_vector if work is None else np.asarray(work)
    finish = state.finish_vector if finish is None else finish
    need = state.need_matrix
    allocation = state.allocation_matrix

    edges = []
    for i in range(state.num_processes):
        if finish[i]:
            continue
        if not np.any(need[i] > work):
            continue
        for k in range(state.num_processes):
            if k == i or finish[k]:
                continue
            if np.any((need[i] > 0) & (allocation[k] > 0)):
                edges.append((i, k))
    return edges


def find_cycle(edges: Iterable[Tuple[Hashable, Hashable]]) -> List[Hashable]:
    """
    Find one cycle in a directed graph given as an edge list.

    Depth-first search with an explicit recursion stack; nodes are visited in
    first-appearance order so the result is deterministic.

    Returns:
        Nodes of the first cycle found, in edge order, or [] if acyclic
    """
    graph: Dict[Hashable, List[Hashable]] = {}
    for a, b in edges:
        graph.setdefault(a, []).append(b)
        graph.setdefault(b, [])

    visited = set()
    stack = set()
    path: List[Hashable] = []

    def dfs(node) -> List[Hashable]:
        visited.add(node)
        stack.add(node)
        path.append(node)
        for neighbor in graph[node]:
            if neighbor not in visited:
                found = dfs(neighbor)
                if found:
                    return found
            elif neighbor in stack:
                return path[path.index(neighbor):]
        stack.remove(node)
        path.pop()
        return []

    for node in graph:
        if node not in visited:
            cycle = dfs(node)
            if cycle:
                return list(cycle)
    return []


def build_deadlock_report(
    state: ResourceState,
    blocked: Sequence[int],
    work: Optional[Sequence[int]] = None
) -> DeadlockReport:
    """
    Describe a Banker's deadlock verdict with its wait-for edges.

    Args:
        state: Current resource state
        blocked: Unfinished process indices from the safety verdict
        work: Final Work vector of the safety search

    Returns:
        DeadlockReport with "P<i>" actor ids
    """
    edges = [(f"P{a}", f"P{b}") for a, b in build_wait_for_edges(state, work)]
    return DeadlockReport(
        blocked_actor_ids={f"P{i}" for i in blocked},
        edges=edges,
        cycle=find_cycle(edges)
    )
