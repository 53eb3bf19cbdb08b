"""
Deadlock Prevention (Resource Ordering) for the Intersection Deadlock Simulator.

Targets the Circular Wait condition: every resource has a fixed rank and
processes must acquire in non-decreasing rank. A cycle would need some
process to step *down* in rank, which the ordering rule forbids.

The check runs once, when a process asks for its first resource. It is
conservative: it can reject routes that would never actually deadlock.
Rules 2 and 3 are heuristics for configurations that already contain
an out-of-order holder (left over from another policy); they are not a
proof of deadlock-freedom.
"""

from typing import Tuple

from models.process import ProcessState, Route
from models.resource import ResourceId
from models.system_state import StateSnapshot


def rank(resource: ResourceId) -> int:
    """Fixed acquisition rank of a resource."""
    return resource.rank


def check_route_order(route: Route) -> Tuple[bool, str]:
    """
    Rule 1: a route must request resources in non-decreasing rank.

    Args:
        route: Route of the new process

    Returns:
        Tuple of (permitted, reason_string)
    """
    first, second = rank(route.first), rank(route.second)
    if first > second:
        return False, (
            f"Ordering violation: {route.first.label} (rank {first}) before "
            f"{route.second.label} (rank {second})"
        )
    return True, "Route follows resource ordering"


def check_wait_conflicts(route: Route, snapshot: StateSnapshot) -> Tuple[bool, str]:
    """
    Rule 2: the new route must not close a loop with any waiting process.

    For each waiting process holding rank a and requesting rank b:
    - a > b (out-of-order holder): reject if the new route lies inside
      [b, a], since it could be a link of an upward chain from b back to a
    - a <= b: reject only if the new route exactly mirrors it
      (holds b, requests a)

    Args:
        route: Route of the new process
        snapshot: Current state

    Returns:
        Tuple of (permitted, reason_string)
    """
    first, second = rank(route.first), rank(route.second)

    for process in snapshot.waiting():
        if process.held is None or process.requested is None:
            continue
        a, b = rank(process.held), rank(process.requested)

        if a > b:
            if b <= first and second <= a:
                return False, (
                    f"Ordering violation: {process.label} waits out of order "
                    f"({process.held.label} -> {process.requested.label}); "
                    f"{route} could close the loop"
                )
        elif second == a and first == b:
            return False, (
                f"Ordering violation: {route} mirrors {process.label} "
                f"({process.held.label} -> {process.requested.label})"
            )

    return True, "No conflicting waiters"


def check_held_crossings(route: Route, snapshot: StateSnapshot) -> Tuple[bool, str]:
    """
    Rule 3: cross-check against every currently held resource.

    Reject when the new route straddles a held resource downwards
    (second rank < held rank < first rank) and that resource's holder is
    itself requesting one of the new route's resources.

    Args:
        route: Route of the new process
        snapshot: Current state

    Returns:
        Tuple of (permitted, reason_string)
    """
    first, second = rank(route.first), rank(route.second)
    route_ranks = (first, second)

    for process in snapshot.processes:
        if process.state not in (ProcessState.WAITING, ProcessState.RUNNING):
            continue
        if process.held is None:
            continue
        held = rank(process.held)
        if second < held < first:
            if process.requested is not None and rank(process.requested) in route_ranks:
                return False, (
                    f"Ordering violation: {route} crosses {process.held.label} "
                    f"held by {process.label}, who requests {process.requested.label}"
                )

    return True, "No crossing holders"


def permits(route: Route, snapshot: StateSnapshot) -> Tuple[bool, str]:
    """
    Run all three ordering rules against a new route.

    Args:
        route: Route of the process asking for its first resource
        snapshot: Current state (the new process need not be in it)

    Returns:
        Tuple of (permitted, reason_string of the first failing rule)
    """
    for rule in (
        lambda: check_route_order(route),
        lambda: check_wait_conflicts(route, snapshot),
        lambda: check_held_crossings(route, snapshot),
    ):
        permitted, reason = rule()
        if not permitted:
            return False, reason
    return True, "GRANTED (Resource ordering respected)"
