"""
Deadlock Avoidance Algorithm (Banker's Algorithm) for the Simulator.

Single-instance variant: every resource has exactly one unit, so all
vectors are 0/1. Every function here is pure; verdicts are computed on
hypothetical snapshots and the live registry is never touched.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from models.process import ProcessState, ProcessView
from models.resource import ResourceId
from models.system_state import StateSnapshot


@dataclass
class SafetyReport:
    """
    Result of a full Banker's analysis of one snapshot.

    Attributes:
        safe: Whether a safe sequence exists
        sequence: Safe sequence if safe, else the partial sequence found
        pids: Row order of the matrices
        allocation: Allocation matrix [P][R]
        need: Need matrix [P][R]
        available: Available vector [R]
    """
    safe: bool
    sequence: List[int] = field(default_factory=list)
    pids: List[int] = field(default_factory=list)
    allocation: np.ndarray = None
    need: np.ndarray = None
    available: np.ndarray = None

    def display(self) -> str:
        """Format the matrices and verdict for display."""
        header = "      " + " ".join(f"{r.label:>8}" for r in ResourceId.ordered())
        lines = ["ALLOCATION MATRIX:", header]
        for pid, row in zip(self.pids, self.allocation):
            lines.append(f"  P{pid:<3}" + " ".join(f"{v:>8}" for v in row))
        lines.append("NEED MATRIX:")
        lines.append(header)
        for pid, row in zip(self.pids, self.need):
            lines.append(f"  P{pid:<3}" + " ".join(f"{v:>8}" for v in row))
        lines.append("AVAILABLE VECTOR:")
        lines.append(header)
        lines.append("      " + " ".join(f"{v:>8}" for v in self.available))

        seq_str = " -> ".join(f"P{pid}" for pid in self.sequence)
        if self.safe:
            lines.append(f"SAFE SEQUENCE: {seq_str or '(empty)'}")
        else:
            lines.append(f"NO SAFE SEQUENCE (partial: {seq_str or 'none'})")
        return "\n".join(lines)


def _run_safety(snapshot: StateSnapshot) -> Tuple[bool, List[int]]:
    """
    Banker's safety test. Returns (safe, sequence_found_so_far).

    Scan order is registry order and the scan restarts from the top after
    every finish, so the sequence is deterministic. Iterations are capped
    at P^2; hitting the cap counts as "no process can finish".
    """
    admitted = snapshot.admitted()
    num_processes = len(admitted)

    work = snapshot.available_vector.copy()
    allocation = snapshot.allocation_matrix
    need = snapshot.need_matrix
    finish = np.zeros(num_processes, dtype=bool)
    sequence = []

    max_iterations = num_processes * num_processes
    iterations = 0
    made_progress = True

    while len(sequence) < num_processes and made_progress and iterations < max_iterations:
        made_progress = False
        iterations += 1

        for i in range(num_processes):
            if finish[i]:
                continue
            if np.all(need[i] <= work):
                work += allocation[i]
                finish[i] = True
                sequence.append(admitted[i].pid)
                made_progress = True
                break  # Restart search from beginning for determinism

    return bool(finish.all()), sequence


def is_safe_state(snapshot: StateSnapshot) -> Tuple[bool, Optional[List[int]]]:
    """
    Check if a (possibly hypothetical) state is safe using Banker's Algorithm.

    Algorithm:
    1. Work = Available, Finish = [False] * P
    2. Find the first i (registry order) with Finish[i] == False and Need[i] <= Work
    3. If found: Finish[i] = True, Work += Allocation[i], append PID, go to 2
    4. Safe iff every process finished

    Args:
        snapshot: State to test

    Returns:
        Tuple of (is_safe, safe_sequence if safe else None)
    """
    safe, sequence = _run_safety(snapshot)
    if safe:
        return True, sequence
    return False, None


def safe_sequence(snapshot: StateSnapshot) -> Optional[List[int]]:
    """Safe completion order for the snapshot, or None if unsafe."""
    return is_safe_state(snapshot)[1]


def analyze_safety(snapshot: StateSnapshot) -> SafetyReport:
    """
    Run the safety test and capture the matrices it used.

    Args:
        snapshot: State to analyze

    Returns:
        SafetyReport (partial sequence kept when unsafe, for diagnostics)
    """
    safe, sequence = _run_safety(snapshot)
    return SafetyReport(
        safe=safe,
        sequence=sequence,
        pids=snapshot.admitted_pids,
        allocation=snapshot.allocation_matrix,
        need=snapshot.need_matrix,
        available=snapshot.available_vector,
    )


def hypothetical_admission(snapshot: StateSnapshot, candidate: ProcessView) -> StateSnapshot:
    """
    Snapshot in which candidate has been granted its first resource.

    If the candidate already appears (as Approaching) it is replaced in
    place, otherwise it is appended as a synthetic process.

    Args:
        snapshot: Current state
        candidate: Process about to receive its first resource

    Returns:
        New snapshot; the input is not modified
    """
    granted = ProcessView(
        pid=candidate.pid,
        direction=candidate.direction,
        route=candidate.route,
        state=ProcessState.WAITING,
        held=candidate.route.first,
        requested=candidate.route.second,
        max_demand=candidate.max_demand,
        lane_index=candidate.lane_index,
    )
    if snapshot.find(candidate.pid) is not None:
        return snapshot.replacing(granted)
    return snapshot.with_process(granted)


def hypothetical_advance(snapshot: StateSnapshot, pid: int) -> StateSnapshot:
    """
    Snapshot in which process pid has moved onto its requested resource.

    Args:
        snapshot: Current state
        pid: Waiting process to advance

    Returns:
        New snapshot; the input is not modified

    Raises:
        ValueError: If pid is not a waiting process in the snapshot
    """
    process = snapshot.find(pid)
    if process is None or process.state != ProcessState.WAITING:
        raise ValueError(f"P{pid} is not waiting in this snapshot")

    advanced = ProcessView(
        pid=process.pid,
        direction=process.direction,
        route=process.route,
        state=ProcessState.RUNNING,
        held=process.requested,
        requested=None,
        max_demand=process.max_demand,
        lane_index=process.lane_index,
    )
    return snapshot.replacing(advanced)


def check_admission(snapshot: StateSnapshot, candidate: ProcessView) -> Tuple[bool, str]:
    """
    Decide whether granting candidate its first resource keeps the state safe.

    Args:
        snapshot: Current state
        candidate: Process requesting admission

    Returns:
        Tuple of (granted, reason_string)
    """
    is_safe, safe_seq = is_safe_state(hypothetical_admission(snapshot, candidate))
    if is_safe:
        seq_str = " -> ".join(f"P{pid}" for pid in safe_seq)
        return True, f"GRANTED (Safe state maintained, sequence: {seq_str})"
    return False, f"DENIED (Unsafe state: granting {candidate.route.first.label} leaves no safe sequence)"


def check_advance(snapshot: StateSnapshot, pid: int) -> Tuple[bool, str]:
    """
    Decide whether moving process pid onto its second resource keeps the state safe.

    Args:
        snapshot: Current state
        pid: Waiting process

    Returns:
        Tuple of (granted, reason_string)
    """
    is_safe, safe_seq = is_safe_state(hypothetical_advance(snapshot, pid))
    if is_safe:
        seq_str = " -> ".join(f"P{p}" for p in safe_seq)
        return True, f"GRANTED (Safe state maintained, sequence: {seq_str})"
    return False, "DENIED (Unsafe state detected) - Process stays WAITING"
