"""
Process model for the Intersection Deadlock Simulator.

A process is a vehicle crossing the intersection: it takes the lane it
arrives on, then needs the next lane clockwise to get through.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from models.resource import ResourceId, NUM_RESOURCES


class ProcessState(Enum):
    """Process lifecycle states in the simulation."""
    APPROACHING = "APPROACHING"
    WAITING = "WAITING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class Route:
    """
    Fixed two-step acquisition route of a process.

    Attributes:
        first: Resource taken first (held while waiting)
        second: Resource requested while holding the first
    """
    first: ResourceId
    second: ResourceId

    def is_valid(self) -> bool:
        """A route must name two distinct resources."""
        return self.first != self.second

    def __str__(self) -> str:
        return f"{self.first.label} -> {self.second.label}"


class Direction(Enum):
    """Arrival direction of a vehicle; determines its route."""
    NORTH = "north"
    EAST = "east"
    SOUTH = "south"
    WEST = "west"

    @property
    def route(self) -> Route:
        return DIRECTION_ROUTES[self]

    @classmethod
    def parse(cls, value) -> "Direction":
        """
        Accept a Direction or a case-insensitive direction name.

        Raises:
            ValueError: If the value names no direction
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown direction: {value!r}")


DIRECTION_ROUTES = {
    Direction.NORTH: Route(ResourceId.R_NORTH, ResourceId.R_EAST),
    Direction.EAST: Route(ResourceId.R_EAST, ResourceId.R_SOUTH),
    Direction.SOUTH: Route(ResourceId.R_SOUTH, ResourceId.R_WEST),
    Direction.WEST: Route(ResourceId.R_WEST, ResourceId.R_NORTH),
}


def one_hot(*resources: Optional[ResourceId]) -> List[int]:
    """Build a resource vector with a 1 in each named resource's column."""
    vector = [0] * NUM_RESOURCES
    for resource in resources:
        if resource is not None:
            vector[resource.index] = 1
    return vector


@dataclass(frozen=True)
class ProcessView:
    """
    Immutable copy of a process, used by the policy engines.

    Safety and ordering checks build hypothetical states out of these
    so nothing they do can leak into the live registry.
    """
    pid: int
    direction: Direction
    route: Route
    state: ProcessState
    held: Optional[ResourceId]
    requested: Optional[ResourceId]
    max_demand: Tuple[int, ...]
    lane_index: int = 0

    @property
    def label(self) -> str:
        return f"P{self.pid}"

    def allocation_vector(self) -> List[int]:
        return one_hot(self.held)

    def request_vector(self) -> List[int]:
        return one_hot(self.requested)

    def claim_vector(self) -> List[int]:
        """
        Maximum demand still outstanding for the Banker's test.

        A Running process never requests again, so its claim is exactly
        what it holds and its need is zero.
        """
        if self.state == ProcessState.RUNNING:
            return self.allocation_vector()
        return list(self.max_demand)


@dataclass
class Process:
    """
    Represents a vehicle/process in the simulation.

    Attributes:
        pid: Process identifier (unique, monotonically assigned)
        direction: Arrival direction
        route: Ordered pair of resources it will request
        max_demand: Declared maximum demand vector over all resources
        held: Resource currently held (at most one)
        requested: Resource currently requested (never equal to held)
        state: Current lifecycle state
        lane_index: Queue position among live processes from the same direction
    """
    pid: int
    direction: Direction
    route: Route = None
    max_demand: List[int] = field(default_factory=list)
    held: Optional[ResourceId] = None
    requested: Optional[ResourceId] = None
    state: ProcessState = ProcessState.APPROACHING
    lane_index: int = 0

    def __post_init__(self):
        """Derive route, declared demand and initial request from the direction."""
        if self.route is None:
            self.route = self.direction.route
        if not self.max_demand:
            self.max_demand = one_hot(self.route.first, self.route.second)
        if self.state == ProcessState.APPROACHING and self.requested is None:
            self.requested = self.route.first

    @property
    def label(self) -> str:
        return f"P{self.pid}"

    def take_first(self) -> None:
        """
        Approaching -> Waiting: hold the first resource, request the second.

        Implements Hold and Wait: the first lane stays held while the
        second is requested.
        """
        self.held = self.route.first
        self.requested = self.route.second
        self.state = ProcessState.WAITING

    def take_second(self) -> ResourceId:
        """
        Waiting -> Running: swap the held resource for the requested one.

        Returns:
            The resource handed back
        """
        released = self.held
        self.held = self.requested
        self.requested = None
        self.state = ProcessState.RUNNING
        return released

    def finish(self) -> Optional[ResourceId]:
        """
        Mark process as completed and drop everything it holds.

        Returns:
            The resource it was holding, if any
        """
        released = self.held
        self.held = None
        self.requested = None
        self.state = ProcessState.COMPLETED
        return released

    def view(self) -> ProcessView:
        """Immutable snapshot of this process."""
        return ProcessView(
            pid=self.pid,
            direction=self.direction,
            route=self.route,
            state=self.state,
            held=self.held,
            requested=self.requested,
            max_demand=tuple(self.max_demand),
            lane_index=self.lane_index,
        )

    def __repr__(self) -> str:
        """String representation for debugging."""
        held = self.held.label if self.held else None
        requested = self.requested.label if self.requested else None
        return (
            f"Process(pid={self.pid}, direction={self.direction.value}, "
            f"state={self.state.value}, held={held}, requested={requested})"
        )
