"""
Core Data Model Tests

Tests Resource, Process and SystemState functionality.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from models.process import Direction, Process, ProcessState, Route
from models.resource import Resource, ResourceId
from models.system_state import StateSnapshot, SystemState


def test_resource_catalog():
    """Four resources with fixed ranks, ordered by rank."""
    print("\n" + "="*60)
    print("TEST: Resource Catalog")
    print("="*60)

    assert [r.label for r in ResourceId.ordered()] == ["R_North", "R_East", "R_South", "R_West"]
    assert [r.rank for r in ResourceId.ordered()] == [1, 2, 3, 4]
    assert ResourceId.R_SOUTH.index == 2
    assert ResourceId.from_label("R_West") is ResourceId.R_WEST
    assert ResourceId.from_label("R_EAST") is ResourceId.R_EAST

    with pytest.raises(ValueError):
        ResourceId.from_label("R_Center")

    print("  ✓ Ranks North=1, East=2, South=3, West=4")


def test_resource_model():
    """Single-unit acquire/release."""
    resource = Resource(resource_id=ResourceId.R_NORTH)
    assert resource.is_free()
    assert resource.total_instances == 1
    assert resource.available_instances == 1

    resource.acquire(1)
    assert resource.holder == 1
    assert resource.available_instances == 0

    # A held resource cannot be handed to anyone else
    with pytest.raises(AssertionError):
        resource.acquire(2)

    # Only the holder releases
    with pytest.raises(AssertionError):
        resource.release(2)

    resource.release(1)
    assert resource.is_free()
    print("  ✓ Resource acquire/release enforce a single holder")


def test_direction_routes():
    """Each direction takes its own lane then the next one clockwise."""
    assert Direction.NORTH.route == Route(ResourceId.R_NORTH, ResourceId.R_EAST)
    assert Direction.EAST.route == Route(ResourceId.R_EAST, ResourceId.R_SOUTH)
    assert Direction.SOUTH.route == Route(ResourceId.R_SOUTH, ResourceId.R_WEST)
    assert Direction.WEST.route == Route(ResourceId.R_WEST, ResourceId.R_NORTH)
    assert all(d.route.is_valid() for d in Direction)
    assert not Route(ResourceId.R_EAST, ResourceId.R_EAST).is_valid()
    assert str(Direction.NORTH.route) == "R_North -> R_East"

    assert Direction.parse(" North ") is Direction.NORTH
    assert Direction.parse(Direction.WEST) is Direction.WEST
    with pytest.raises(ValueError, match="Unknown direction"):
        Direction.parse("up")


def test_process_lifecycle():
    """Approaching -> Waiting -> Running -> Completed."""
    print("\n" + "="*60)
    print("TEST: Process Lifecycle")
    print("="*60)

    process = Process(pid=1, direction=Direction.NORTH)
    print(f"\nCreated: {process}")

    assert process.state == ProcessState.APPROACHING
    assert process.held is None
    assert process.requested == ResourceId.R_NORTH
    assert process.max_demand == [1, 1, 0, 0]

    process.take_first()
    assert process.state == ProcessState.WAITING
    assert process.held == ResourceId.R_NORTH
    assert process.requested == ResourceId.R_EAST

    released = process.take_second()
    assert released == ResourceId.R_NORTH
    assert process.state == ProcessState.RUNNING
    assert process.held == ResourceId.R_EAST
    assert process.requested is None

    released = process.finish()
    assert released == ResourceId.R_EAST
    assert process.state == ProcessState.COMPLETED
    assert process.held is None
    print("  ✓ Process never holds more than one resource")


def test_process_view_vectors():
    """Claim shrinks to the allocation once a process is Running."""
    process = Process(pid=3, direction=Direction.SOUTH)
    process.take_first()
    view = process.view()
    assert view.label == "P3"
    assert view.allocation_vector() == [0, 0, 1, 0]
    assert view.request_vector() == [0, 0, 0, 1]
    assert view.claim_vector() == [0, 0, 1, 1]

    process.take_second()
    view = process.view()
    assert view.allocation_vector() == [0, 0, 0, 1]
    assert view.claim_vector() == [0, 0, 0, 1]


def test_system_state_registry():
    """PIDs, lane indices and grants in the live registry."""
    state = SystemState()
    p1 = state.add_process(Direction.NORTH)
    p2 = state.add_process(Direction.NORTH)
    p3 = state.add_process(Direction.EAST)

    assert (p1.pid, p2.pid, p3.pid) == (1, 2, 3)
    assert (p1.lane_index, p2.lane_index, p3.lane_index) == (0, 1, 0)
    assert state.num_processes == 3
    assert state.num_resources == 4

    state.grant_first(1)
    assert state.holder_of(ResourceId.R_NORTH) == 1

    state.grant_second(1)
    assert state.is_free(ResourceId.R_NORTH)
    assert state.holder_of(ResourceId.R_EAST) == 1

    released = state.remove_process(1)
    assert released == ResourceId.R_EAST
    assert state.is_free(ResourceId.R_EAST)
    assert state.get(1) is None

    # Approaching processes hold nothing
    assert state.remove_process(3) is None

    state.clear()
    assert state.num_processes == 0
    assert state.add_process(Direction.WEST).pid == 1


def test_snapshot_matrices():
    """Banker's matrices cover admitted processes only."""
    state = SystemState()
    state.add_process(Direction.NORTH)
    state.add_process(Direction.EAST)
    state.grant_first(1)

    snapshot = state.snapshot()
    print(f"\n{snapshot.display()}")

    assert snapshot.admitted_pids == [1]
    assert np.array_equal(snapshot.allocation_matrix, [[1, 0, 0, 0]])
    assert np.array_equal(snapshot.max_demand_matrix, [[1, 1, 0, 0]])
    assert np.array_equal(snapshot.need_matrix, [[0, 1, 0, 0]])
    assert np.array_equal(snapshot.request_matrix, [[0, 1, 0, 0]])
    assert np.array_equal(snapshot.available_vector, [0, 1, 1, 1])
    assert snapshot.resource_owners() == {ResourceId.R_NORTH: 1}

    # Snapshot is detached from the registry
    state.grant_first(2)
    assert snapshot.admitted_pids == [1]


def test_empty_snapshot():
    snapshot = StateSnapshot()
    assert snapshot.allocation_matrix.shape == (0, 4)
    assert np.array_equal(snapshot.available_vector, [1, 1, 1, 1])


def test_mutual_exclusion_check():
    """Corrupted holder bookkeeping is caught by the invariant check."""
    state = SystemState()
    state.add_process(Direction.NORTH)
    state.grant_first(1)
    state.assert_mutual_exclusion("after first grant")

    state.resources[ResourceId.R_SOUTH].holder = 99
    with pytest.raises(AssertionError, match="Holder mismatch"):
        state.assert_mutual_exclusion("after corruption")
    print("  ✓ Registry corruption raises AssertionError")
