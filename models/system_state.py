"""
System State model for the Intersection Deadlock Simulator.

Holds the live process and resource registries and produces immutable
snapshots (with the matrices Banker's Algorithm needs) for the policy
engines to reason about.
"""

import numpy as np
from typing import List, Dict, Optional
from dataclasses import dataclass, field

from models.process import Process, ProcessState, ProcessView, Direction
from models.resource import Resource, ResourceId, NUM_RESOURCES


ADMITTED_STATES = (ProcessState.WAITING, ProcessState.RUNNING)


@dataclass(frozen=True)
class StateSnapshot:
    """
    Immutable view of the process registry at one instant.

    Processes appear in registry insertion order; that order is the
    scan order of every algorithm, which keeps results reproducible.

    Matrices only cover *admitted* processes (Waiting or Running) since
    Approaching processes hold nothing and have not been granted anything.
    """
    processes: tuple = ()

    def find(self, pid: int) -> Optional[ProcessView]:
        return next((p for p in self.processes if p.pid == pid), None)

    def admitted(self) -> List[ProcessView]:
        return [p for p in self.processes if p.state in ADMITTED_STATES]

    def waiting(self) -> List[ProcessView]:
        return [p for p in self.processes if p.state == ProcessState.WAITING]

    def resource_owners(self) -> Dict[ResourceId, int]:
        """Map each held resource to its holder's PID."""
        return {
            p.held: p.pid
            for p in self.processes
            if p.state in ADMITTED_STATES and p.held is not None
        }

    def with_process(self, view: ProcessView) -> "StateSnapshot":
        """New snapshot with an extra (possibly synthetic) process appended."""
        return StateSnapshot(processes=self.processes + (view,))

    def replacing(self, view: ProcessView) -> "StateSnapshot":
        """New snapshot where the process with view.pid is swapped for view."""
        return StateSnapshot(processes=tuple(
            view if p.pid == view.pid else p for p in self.processes
        ))

    @property
    def admitted_pids(self) -> List[int]:
        return [p.pid for p in self.admitted()]

    @property
    def allocation_matrix(self) -> np.ndarray:
        """Allocation matrix [P][R] over admitted processes."""
        return self._matrix(ProcessView.allocation_vector)

    @property
    def max_demand_matrix(self) -> np.ndarray:
        """Outstanding claim matrix [P][R] over admitted processes."""
        return self._matrix(ProcessView.claim_vector)

    @property
    def request_matrix(self) -> np.ndarray:
        """Pending request matrix [P][R] over admitted processes."""
        return self._matrix(ProcessView.request_vector)

    @property
    def need_matrix(self) -> np.ndarray:
        """
        Need matrix [P][R].
        Computed as: Need = Max - Allocation
        """
        return self.max_demand_matrix - self.allocation_matrix

    @property
    def total_vector(self) -> np.ndarray:
        """Every resource has exactly one unit."""
        return np.ones(NUM_RESOURCES, dtype=int)

    @property
    def available_vector(self) -> np.ndarray:
        """Available = Total - sum of allocations."""
        return self.total_vector - self.allocation_matrix.sum(axis=0)

    def _matrix(self, row_func) -> np.ndarray:
        admitted = self.admitted()
        matrix = np.zeros((len(admitted), NUM_RESOURCES), dtype=int)
        for i, process in enumerate(admitted):
            matrix[i] = row_func(process)
        return matrix

    def display(self) -> str:
        """
        Generate readable string representation of the snapshot.

        Returns:
            Formatted string showing process states and Banker's matrices
        """
        header = "      " + " ".join(f"{r.label:>8}" for r in ResourceId.ordered())
        output = ["", "=" * 60, "SYSTEM STATE", "=" * 60, "", "Process States:"]
        for p in self.processes:
            held = p.held.label if p.held else "-"
            requested = p.requested.label if p.requested else "-"
            output.append(
                f"  {p.label}: {p.state.value:12} "
                f"(direction={p.direction.value}, held={held}, requested={requested})"
            )

        output.append("\nAvailable Resources:")
        output.append("      " + " ".join(f"{v:>8}" for v in self.available_vector))

        labels = [p.label for p in self.admitted()]
        for title, matrix in (
            ("Allocation Matrix:", self.allocation_matrix),
            ("Max Demand Matrix:", self.max_demand_matrix),
            ("Need Matrix (Max - Allocation):", self.need_matrix),
            ("Request Matrix (Pending):", self.request_matrix),
        ):
            output.append("\n" + title)
            output.append(header)
            for label, row in zip(labels, matrix):
                output.append(f"  {label:4}" + " ".join(f"{v:>8}" for v in row))

        output.append("\n" + "=" * 60)
        return "\n".join(output)


@dataclass
class SystemState:
    """
    Live process and resource registries.

    Owned exclusively by the admission controller. Every mutator ends by
    re-checking the mutual exclusion invariant.

    Attributes:
        processes: Live processes keyed by PID, in insertion order
        resources: The four single-unit resources
        next_pid: Identifier handed to the next created process
    """
    processes: Dict[int, Process] = field(default_factory=dict)
    resources: Dict[ResourceId, Resource] = field(default_factory=dict)
    next_pid: int = 1

    def __post_init__(self):
        if not self.resources:
            self.resources = {r: Resource(resource_id=r) for r in ResourceId.ordered()}

    @property
    def num_processes(self) -> int:
        return len(self.processes)

    @property
    def num_resources(self) -> int:
        return len(self.resources)

    def get(self, pid: int) -> Optional[Process]:
        return self.processes.get(pid)

    def holder_of(self, resource: ResourceId) -> Optional[int]:
        return self.resources[resource].holder

    def is_free(self, resource: ResourceId) -> bool:
        return self.resources[resource].is_free()

    def add_process(self, direction: Direction) -> Process:
        """
        Register a new Approaching process with the next PID.

        Args:
            direction: Arrival direction of the vehicle

        Returns:
            The newly created process
        """
        lane_index = sum(1 for p in self.processes.values() if p.direction == direction)
        process = Process(pid=self.next_pid, direction=direction, lane_index=lane_index)
        self.processes[process.pid] = process
        self.next_pid += 1
        return process

    def grant_first(self, pid: int) -> None:
        """Give a process its first resource (Approaching -> Waiting)."""
        process = self.processes[pid]
        self.resources[process.route.first].acquire(pid)
        process.take_first()
        self.assert_mutual_exclusion(f"after granting {process.route.first.label} to P{pid}")

    def grant_second(self, pid: int) -> None:
        """Swap a process's first resource for its second (Waiting -> Running)."""
        process = self.processes[pid]
        target = process.requested
        self.resources[target].acquire(pid)
        released = process.take_second()
        self.resources[released].release(pid)
        self.assert_mutual_exclusion(f"after granting {target.label} to P{pid}")

    def remove_process(self, pid: int) -> Optional[ResourceId]:
        """
        Release whatever the process holds and drop it from the registry.

        Returns:
            The resource released, if any
        """
        process = self.processes.pop(pid)
        released = process.finish()
        if released is not None:
            self.resources[released].release(pid)
        self.assert_mutual_exclusion(f"after removing P{pid}")
        return released

    def clear(self) -> None:
        """Drop every process, free every resource and restart PIDs at 1."""
        self.processes.clear()
        for resource in self.resources.values():
            resource.holder = None
        self.next_pid = 1

    def snapshot(self) -> StateSnapshot:
        """Consistent immutable copy for the policy engines."""
        return StateSnapshot(processes=tuple(p.view() for p in self.processes.values()))

    def assert_mutual_exclusion(self, context: str = "") -> None:
        """
        Verify that no resource has more than one holder and that holder
        bookkeeping agrees on both sides.

        Args:
            context: Description of when this check is being run

        Raises:
            AssertionError: If the invariant is violated
        """
        holders: Dict[ResourceId, List[int]] = {r: [] for r in self.resources}
        for process in self.processes.values():
            if process.held is not None:
                holders[process.held].append(process.pid)
            assert process.held is None or process.held != process.requested, (
                f"P{process.pid} requests the resource it already holds {context}"
            )

        for resource_id, pids in holders.items():
            assert len(pids) <= 1, (
                f"Mutual exclusion violated for {resource_id.label} {context}\n"
                f"  Held by: {', '.join(f'P{pid}' for pid in pids)}"
            )
            expected = pids[0] if pids else None
            assert self.resources[resource_id].holder == expected, (
                f"Holder mismatch for {resource_id.label} {context}\n"
                f"  Registry: {self.resources[resource_id].holder}, Processes: {expected}"
            )
