"""
Resource State model for the Concurrency Problem Simulator.

Holds the Max/Allocation/Need/Available matrices for a fixed
process/resource topology, as read by the Banker's safety engine and
mutated by the recovery strategies.
"""

import numpy as np
from typing import List, Dict, Optional, Sequence
from dataclasses import dataclass


class MalformedInputError(ValueError):
    """Raised when supplied matrices do not match the declared dimensions."""
    pass


@dataclass
class ResourceState:
    """
    Matrix state for a Banker's algorithm run.

    Attributes:
        max_matrix: [P][R] Maximum claim declared by each process
        allocation_matrix: [P][R] Resources currently held by each process
        need_matrix: [P][R] max(0, Max - Allocation), always recomputed
        available_vector: [R] Free instances by resource type
        finish_vector: [P] True once a process is admitted or terminated

    Invariant:
        No entry of any matrix or vector is ever negative.
    """
    max_matrix: np.ndarray
    allocation_matrix: np.ndarray
    need_matrix: Optional[np.ndarray] = None
    available_vector: Optional[np.ndarray] = None
    finish_vector: Optional[np.ndarray] = None

    def __post_init__(self):
        """Clip inputs and derive Need/Available/Finish when not given."""
        self.max_matrix = np.clip(np.asarray(self.max_matrix, dtype=int), 0, None)
        self.allocation_matrix = np.clip(np.asarray(self.allocation_matrix, dtype=int), 0, None)
        if self.max_matrix.shape != self.allocation_matrix.shape:
            raise MalformedInputError(
                f"Max shape {self.max_matrix.shape} does not match "
                f"Allocation shape {self.allocation_matrix.shape}"
            )
        self.compute_need()
        if self.available_vector is None:
            self.compute_available(self.inferred_total())
        else:
            self.available_vector = np.clip(np.asarray(self.available_vector, dtype=int), 0, None)
        if self.finish_vector is None:
            self.finish_vector = np.zeros(self.num_processes, dtype=bool)

    @classmethod
    def from_matrices(
        cls,
        num_processes: int,
        num_resources: int,
        max_rows: Sequence[Sequence[int]],
        allocation_rows: Sequence[Sequence[int]],
        available: Optional[Sequence[int]] = None,
        total: Optional[Sequence[int]] = None
    ) -> 'ResourceState':
        """
        Build a ResourceState from declared counts and row lists.

        Validation happens before anything is built, so a MalformedInputError
        leaves the caller's previous state untouched.

        Args:
            num_processes: Declared process count P
            num_resources: Declared resource-type count R
            max_rows: P rows of R maximum claims
            allocation_rows: P rows of R current allocations
            available: Optional explicit Available vector [R]
            total: Optional explicit total capacity vector [R]

        Returns:
            Fresh ResourceState

        Raises:
            MalformedInputError: If any row or vector length disagrees with P/R
        """
        if num_processes <= 0 or num_resources <= 0:
            raise MalformedInputError(
                f"Process and resource counts must be positive (P={num_processes}, R={num_resources})"
            )
        _check_rows("Max", max_rows, num_processes, num_resources)
        _check_rows("Allocation", allocation_rows, num_processes, num_resources)
        for name, vector in (("Available", available), ("Total", total)):
            if vector is not None and len(vector) != num_resources:
                raise MalformedInputError(
                    f"{name}: expected {num_resources} values, got {len(vector)}"
                )

        state = cls(
            max_matrix=np.array(max_rows, dtype=int).reshape(num_processes, num_resources),
            allocation_matrix=np.array(allocation_rows, dtype=int).reshape(num_processes, num_resources),
            available_vector=None if available is None else np.array(available, dtype=int)
        )
        if available is None and total is not None:
            state.compute_available(np.array(total, dtype=int))
        return state

    @property
    def num_processes(self) -> int:
        """Number of processes P."""
        return self.max_matrix.shape[0]

    @property
    def num_resources(self) -> int:
        """Number of resource types R."""
        return self.max_matrix.shape[1]

    def compute_need(self) -> np.ndarray:
        """
        Recompute Need from the current Max and Allocation.
        Need = max(0, Max - Allocation), element-wise.

        Returns:
            The recomputed need matrix
        """
        self.need_matrix = np.clip(self.max_matrix - self.allocation_matrix, 0, None)
        return self.need_matrix

    def inferred_total(self) -> np.ndarray:
        """Total supply per resource type, taken as the largest single claim."""
        return self.max_matrix.max(axis=0)

    def compute_available(self, total: Sequence[int]) -> np.ndarray:
        """
        Recompute Available = max(0, total - sum(Allocation)) per resource type.

        Args:
            total: Total capacity per resource type [R]

        Returns:
            The recomputed available vector
        """
        allocated = self.allocation_matrix.sum(axis=0)
        self.available_vector = np.clip(np.asarray(total, dtype=int) - allocated, 0, None)
        return self.available_vector

    def unfinished(self) -> List[int]:
        """Indices of processes not yet finished, ascending."""
        return [i for i in range(self.num_processes) if not self.finish_vector[i]]

    def snapshot(self) -> Dict:
        """
        Copy of the current matrices as plain Python lists.

        Returns:
            Dictionary with max/allocation/need/available/finish entries
        """
        return {
            'max': self.max_matrix.tolist(),
            'allocation': self.allocation_matrix.tolist(),
            'need': self.need_matrix.tolist(),
            'available': self.available_vector.tolist(),
            'finish': [bool(f) for f in self.finish_vector],
        }

    def display(self) -> str:
        """
        Generate readable string representation of the matrices.

        Returns:
            Formatted string showing Available, Max, Allocation and Need
        """
        output = []
        output.append("\n" + "="*60)
        output.append("RESOURCE STATE")
        output.append("="*60)

        output.append("\nAvailable Resources:")
        output.append("  [" + ", ".join(
            f"R{j}:{self.available_vector[j]:2}" for j in range(self.num_resources)
        ) + "]")

        for title, matrix in (
            ("Max Matrix:", self.max_matrix),
            ("Allocation Matrix:", self.allocation_matrix),
            ("Need Matrix (Max - Allocation):", self.need_matrix),
        ):
            output.append("\n" + title)
            output.append("     " + " ".join([f"R{j:2}" for j in range(self.num_resources)]))
            for i in range(self.num_processes):
                row = f"  P{i}: "
                row += " ".join([f"{matrix[i][j]:3}" for j in range(self.num_resources)])
                if self.finish_vector[i]:
                    row += "  (finished)"
                output.append(row)

        output.append("\n" + "="*60)
        return "\n".join(output)


def _check_rows(name: str, rows: Sequence[Sequence[int]], num_rows: int, num_cols: int) -> None:
    """Raise MalformedInputError unless rows is num_rows x num_cols."""
    if len(rows) != num_rows:
        raise MalformedInputError(f"{name}: expected {num_rows} rows, got {len(rows)}")
    for r, row in enumerate(rows):
        if len(row) != num_cols:
            raise MalformedInputError(
                f"{name}: row {r} expected {num_cols} cols, got {len(row)}"
            )
