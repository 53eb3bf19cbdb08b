"""
Deadlock Detection Tests

Cycle detection and cycle tracing on the wait-for graph, plus the
controller's deadlock flag and counter.
"""

import sys
from itertools import combinations
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from algorithms.detection import (
    coffman_conditions,
    cycle_pids,
    detect_deadlock,
    find_cycle,
    has_cycle,
)
from analysis.events import EventType
from controller.admission import AdmissionController
from controller.results import Outcome, PolicyMode
from models.process import Direction, ProcessState, ProcessView, Route, one_hot
from models.resource import ResourceId
from models.system_state import StateSnapshot


def waiting_view(pid: int, held: ResourceId, requested: ResourceId) -> ProcessView:
    """Synthetic waiting process with an arbitrary route."""
    return ProcessView(
        pid=pid,
        direction=Direction.NORTH,
        route=Route(held, requested),
        state=ProcessState.WAITING,
        held=held,
        requested=requested,
        max_demand=tuple(one_hot(held, requested)),
    )


def four_way(policy=PolicyMode.DETECTION) -> AdmissionController:
    controller = AdmissionController(policy)
    for direction in ("north", "east", "south", "west"):
        controller.request_resource(direction)
    return controller


def test_four_way_deadlock():
    """All four directions hold their lane: a four-process cycle."""
    print("\n" + "="*60)
    print("TEST: Four-way deadlock")
    print("="*60)

    controller = four_way()
    report = controller.check_deadlock()
    print(f"  {report}")

    assert report.deadlocked
    assert list(report.cycle) == [
        "P1", "R_East", "P2", "R_South", "P3", "R_West", "P4", "R_North", "P1"
    ]
    assert report.pids == [1, 2, 3, 4]
    assert report.cycle_length == 4
    assert controller.deadlock_detected
    print("  ✓ Cycle P1 -> P2 -> P3 -> P4 -> P1 reported")


def test_partial_arrival_no_deadlock():
    """North and East only: no cycle."""
    controller = AdmissionController()
    controller.request_resource("north")
    controller.request_resource("east")

    report = controller.check_deadlock()
    assert not report.deadlocked
    assert report.cycle == ()
    assert str(report) == "No deadlock"


def test_no_false_positives_or_negatives():
    """A cycle exists exactly when all four directions hold their lane."""
    directions = ["north", "east", "south", "west"]
    for size in range(1, 5):
        for subset in combinations(directions, size):
            controller = AdmissionController()
            for direction in subset:
                assert controller.request_resource(direction).outcome == Outcome.GRANTED
            deadlocked = controller.check_deadlock().deadlocked
            assert deadlocked == (size == 4), f"Wrong verdict for {subset}"


def test_tail_is_trimmed():
    """A process waiting into a cycle is not reported as part of it."""
    # P3 waits on P1; P1 and P2 wait on each other
    snapshot = StateSnapshot(processes=(
        waiting_view(3, ResourceId.R_SOUTH, ResourceId.R_NORTH),
        waiting_view(1, ResourceId.R_NORTH, ResourceId.R_EAST),
        waiting_view(2, ResourceId.R_EAST, ResourceId.R_NORTH),
    ))

    assert has_cycle(snapshot)
    cycle = find_cycle(snapshot)
    print(f"  Cycle: {' -> '.join(cycle)}")
    assert cycle == ["P1", "R_East", "P2", "R_North", "P1"]
    assert cycle_pids(cycle) == [1, 2]


def test_chain_without_cycle():
    """A chain ending at a free resource is not a deadlock."""
    snapshot = StateSnapshot(processes=(
        waiting_view(1, ResourceId.R_NORTH, ResourceId.R_EAST),
        waiting_view(2, ResourceId.R_EAST, ResourceId.R_SOUTH),
        waiting_view(3, ResourceId.R_SOUTH, ResourceId.R_WEST),
    ))
    assert detect_deadlock(snapshot) == (False, [])
    assert find_cycle(snapshot) == []


def test_fewer_than_two_waiting():
    snapshot = StateSnapshot(processes=(
        waiting_view(1, ResourceId.R_NORTH, ResourceId.R_EAST),
    ))
    assert not has_cycle(snapshot)
    assert not has_cycle(StateSnapshot())


def test_check_deadlock_is_idempotent():
    """Re-detecting the same deadlock does not count it again."""
    controller = four_way()
    for _ in range(3):
        assert controller.check_deadlock().deadlocked

    assert controller.metrics.deadlock_count == 1
    assert len(controller.event_log.get_events_by_type(EventType.DEADLOCK)) == 1


def test_new_deadlock_after_resolution_counts_again():
    """Each false -> true transition is a distinct deadlock."""
    controller = four_way()
    assert controller.cancel_process(4).outcome == Outcome.CANCELLED
    assert not controller.check_deadlock().deadlocked
    assert not controller.deadlock_detected

    controller.request_resource("west")
    assert controller.check_deadlock().deadlocked
    assert controller.metrics.deadlock_count == 2


def test_coffman_conditions():
    controller = AdmissionController()
    assert not any(controller.coffman_conditions().values())

    controller.request_resource("north")
    conditions = controller.coffman_conditions()
    assert conditions["hold_and_wait"]
    assert not conditions["circular_wait"]

    controller = four_way()
    assert all(controller.coffman_conditions().values())
    assert all(coffman_conditions(controller.state.snapshot()).values())
