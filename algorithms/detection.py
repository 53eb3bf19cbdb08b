"""
Deadlock Detection for the Intersection Deadlock Simulator.

Implements Resource Allocation Graph cycle detection specialised to
single-unit resources.
"""

import numpy as np
from typing import Dict, List, Tuple

from models.process import ProcessState
from models.resource import ResourceId
from models.system_state import StateSnapshot


COFFMAN_CONDITIONS = (
    "mutual_exclusion",
    "hold_and_wait",
    "no_preemption",
    "circular_wait",
)


def build_resource_owners(snapshot: StateSnapshot) -> Dict[ResourceId, int]:
    """
    Map each held resource to the PID of its holder.

    Only Waiting and Running processes hold anything.

    Args:
        snapshot: Registry snapshot

    Returns:
        Dict of resource -> holder PID
    """
    return snapshot.resource_owners()


def has_cycle(snapshot: StateSnapshot) -> bool:
    """
    Check whether the wait-for graph contains a cycle.

    Every process requests at most one resource and every resource has
    at most one holder, so each process has out-degree <= 1 in the
    wait-for graph. Detection therefore follows the chain of
    "requests a resource held by" links from each unvisited waiting
    process until it either reaches a process already on the current
    path (cycle) or a dead end (free resource, or a holder that is not
    waiting). A process already finished by an earlier walk is never
    walked again, so the whole scan is O(P).

    The walk is iterative; visited/on-path markers are numpy bitsets
    indexed by registry position.

    Args:
        snapshot: Registry snapshot

    Returns:
        True if circular wait exists
    """
    waiting = snapshot.waiting()
    if len(waiting) < 2:
        return False

    processes = snapshot.processes
    index_of = {p.pid: i for i, p in enumerate(processes)}
    owners = build_resource_owners(snapshot)

    visited = np.zeros(len(processes), dtype=bool)
    on_stack = np.zeros(len(processes), dtype=bool)

    for start in waiting:
        start_idx = index_of[start.pid]
        if visited[start_idx]:
            continue

        path = []
        current = start_idx
        found = False
        while True:
            visited[current] = True
            on_stack[current] = True
            path.append(current)

            process = processes[current]
            if process.state != ProcessState.WAITING or process.requested is None:
                break

            holder = owners.get(process.requested)
            if holder is None:
                break

            next_idx = index_of[holder]
            if on_stack[next_idx]:
                found = True
                break
            if visited[next_idx]:
                # Already explored from an earlier start and found acyclic
                break
            current = next_idx

        on_stack[path] = False
        if found:
            return True

    return False


def find_cycle(snapshot: StateSnapshot) -> List[str]:
    """
    Reconstruct the cycle as alternating process/resource labels.

    Each waiting process is tried as a start point with a fresh trace,
    since the same cycle can be entered from several places. A tail
    leading into the cycle is dropped, so the result starts and ends
    with the same process:

        ["P1", "R_East", "P2", "R_South", ..., "R_North", "P1"]

    Args:
        snapshot: Registry snapshot

    Returns:
        Closed label sequence, or an empty list if there is no cycle
    """
    waiting = snapshot.waiting()
    if len(waiting) < 2:
        return []

    by_pid = {p.pid: p for p in snapshot.processes}
    owners = build_resource_owners(snapshot)

    for start in waiting:
        trace = []
        position = {}
        current = start
        while True:
            if current.pid in position:
                loop = trace[position[current.pid]:]
                labels = []
                for process in loop:
                    labels.append(process.label)
                    labels.append(process.requested.label)
                labels.append(loop[0].label)
                return labels

            position[current.pid] = len(trace)
            trace.append(current)

            if current.state != ProcessState.WAITING or current.requested is None:
                break
            holder = owners.get(current.requested)
            if holder is None:
                break
            current = by_pid[holder]

    return []


def cycle_pids(cycle: List[str]) -> List[int]:
    """
    Extract the distinct PIDs of a cycle returned by find_cycle.

    Args:
        cycle: Closed label sequence

    Returns:
        PIDs in cycle order, without the repeated closing process
    """
    pids = []
    for label in cycle[:-1]:
        if label.startswith("P"):
            pids.append(int(label[1:]))
    return pids


def detect_deadlock(snapshot: StateSnapshot) -> Tuple[bool, List[str]]:
    """
    Detect deadlock via RAG cycle detection.

    Four Deadlock Conditions Manifested:
    - Mutual Exclusion: each lane has a single holder
    - Hold and Wait: a waiting process keeps its first lane
    - No Preemption: lanes are only released on completion
    - Circular Wait: a cycle in the wait-for graph

    Args:
        snapshot: Registry snapshot

    Returns:
        Tuple of (deadlock_exists, cycle labels)
    """
    if not has_cycle(snapshot):
        return False, []
    return True, find_cycle(snapshot)


def coffman_conditions(snapshot: StateSnapshot) -> Dict[str, bool]:
    """
    Report which Coffman conditions currently hold.

    The first three are structural in this model and are active whenever
    some process is holding one lane while waiting for another; circular
    wait additionally needs a cycle.

    Args:
        snapshot: Registry snapshot

    Returns:
        Dict of condition name -> active
    """
    contended = len(snapshot.waiting()) > 0
    return {
        "mutual_exclusion": contended,
        "hold_and_wait": contended,
        "no_preemption": contended,
        "circular_wait": has_cycle(snapshot),
    }
