"""
Resource Ordering Tests

Routes must acquire lanes in non-decreasing rank; the controller under
PREVENTION refuses out-of-order routes before they hold anything.
"""

import sys
from itertools import permutations
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from algorithms.prevention import (
    check_held_crossings,
    check_route_order,
    check_wait_conflicts,
    permits,
    rank,
)
from controller.admission import AdmissionController
from controller.results import DenialReason, Outcome, PolicyMode
from models.process import Direction, ProcessState, ProcessView, Route, one_hot
from models.resource import ResourceId
from models.system_state import StateSnapshot


def waiting_view(pid: int, held: ResourceId, requested: ResourceId) -> ProcessView:
    return ProcessView(
        pid=pid,
        direction=Direction.NORTH,
        route=Route(held, requested),
        state=ProcessState.WAITING,
        held=held,
        requested=requested,
        max_demand=tuple(one_hot(held, requested)),
    )


def test_route_order():
    """Only West (R_West -> R_North) steps down in rank."""
    assert rank(ResourceId.R_NORTH) == 1
    assert rank(ResourceId.R_WEST) == 4

    for direction in (Direction.NORTH, Direction.EAST, Direction.SOUTH):
        assert check_route_order(direction.route)[0]

    permitted, reason = check_route_order(Direction.WEST.route)
    assert not permitted
    assert "R_West (rank 4)" in reason


def test_west_denied_on_empty_intersection():
    print("\n" + "="*60)
    print("TEST: West refused under resource ordering")
    print("="*60)

    controller = AdmissionController(PolicyMode.PREVENTION)
    result = controller.request_resource("west")
    print(f"  {result}")

    assert result.outcome == Outcome.DENIED
    assert result.reason == DenialReason.ORDERING_VIOLATION
    assert controller.state.num_processes == 0
    assert controller.state.is_free(ResourceId.R_WEST)
    assert controller.statistics()["denied_ordering_violation"] == 1


def test_west_denied_even_while_lane_busy():
    """The ordering check fires before the availability check."""
    controller = AdmissionController(PolicyMode.DETECTION)
    controller.request_resource("west")
    controller.set_policy(PolicyMode.PREVENTION)

    result = controller.request_resource("west")
    assert result.outcome == Outcome.DENIED
    assert result.reason == DenialReason.ORDERING_VIOLATION


def test_compliant_routes_granted():
    controller = AdmissionController(PolicyMode.PREVENTION)
    for direction in ("north", "east", "south"):
        result = controller.request_resource(direction)
        assert result.outcome == Outcome.GRANTED
        assert result.message == "GRANTED (Resource ordering respected)"


def test_out_of_order_waiter_blocks_routes_inside_its_span():
    """Rule 2: a waiter holding rank 4 and requesting rank 1 spans everything."""
    snapshot = StateSnapshot(processes=(
        waiting_view(1, ResourceId.R_WEST, ResourceId.R_NORTH),
    ))
    assert not check_wait_conflicts(Direction.NORTH.route, snapshot)[0]
    assert not check_wait_conflicts(Direction.EAST.route, snapshot)[0]
    assert not check_wait_conflicts(Direction.SOUTH.route, snapshot)[0]


def test_out_of_order_waiter_allows_routes_outside_its_span():
    # Holds rank 3, requests rank 2: only [2, 3] is blocked
    snapshot = StateSnapshot(processes=(
        waiting_view(1, ResourceId.R_SOUTH, ResourceId.R_EAST),
    ))
    assert not check_wait_conflicts(Direction.EAST.route, snapshot)[0]
    assert check_wait_conflicts(Direction.NORTH.route, snapshot)[0]
    assert check_wait_conflicts(Direction.SOUTH.route, snapshot)[0]


def test_exact_mirror_of_compliant_waiter():
    snapshot = StateSnapshot(processes=(
        waiting_view(1, ResourceId.R_NORTH, ResourceId.R_EAST),
    ))
    permitted, reason = check_wait_conflicts(Route(ResourceId.R_EAST, ResourceId.R_NORTH), snapshot)
    assert not permitted
    assert "mirrors P1" in reason
    assert check_wait_conflicts(Direction.EAST.route, snapshot)[0]


def test_held_crossings():
    """Rule 3: a downward route straddling a holder that wants one of its lanes."""
    crossing = Route(ResourceId.R_WEST, ResourceId.R_NORTH)

    snapshot = StateSnapshot(processes=(
        waiting_view(1, ResourceId.R_EAST, ResourceId.R_NORTH),
    ))
    permitted, reason = check_held_crossings(crossing, snapshot)
    assert not permitted
    assert "crosses R_East" in reason

    snapshot = StateSnapshot(processes=(
        waiting_view(1, ResourceId.R_EAST, ResourceId.R_SOUTH),
    ))
    assert check_held_crossings(crossing, snapshot)[0]


def test_permits_reports_first_failing_rule():
    permitted, reason = permits(Direction.WEST.route, StateSnapshot())
    assert not permitted
    assert reason.startswith("Ordering violation: R_West")

    assert permits(Direction.NORTH.route, StateSnapshot()) == (
        True, "GRANTED (Resource ordering respected)"
    )


def test_no_deadlock_in_any_arrival_order():
    for order in permutations(["north", "east", "south", "west"]):
        controller = AdmissionController(PolicyMode.PREVENTION)
        for direction in order:
            controller.request_resource(direction)
            assert not controller.check_deadlock().deadlocked, f"Deadlock after {order}"
        assert controller.metrics.denials_by_reason == {"OrderingViolation": 1}


def test_switch_to_prevention_guards_existing_anomaly():
    """
    West was admitted under DETECTION. After switching, North would close
    the loop through it and is refused; the existing grant is kept.
    """
    controller = AdmissionController(PolicyMode.DETECTION)
    controller.request_resource("west")
    controller.set_policy("prevention")

    result = controller.request_resource("north")
    assert result.outcome == Outcome.DENIED
    assert result.reason == DenialReason.ORDERING_VIOLATION
    assert controller.state.holder_of(ResourceId.R_WEST) == 1
    assert controller.get_process(1).state == ProcessState.WAITING
