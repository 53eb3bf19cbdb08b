"""
Resource model for the Intersection Deadlock Simulator.

Represents the four single-unit intersection lanes that processes contend for.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class ResourceId(Enum):
    """
    Fixed catalog of intersection resources.

    The value is the display label; ``rank`` is the total order used by the
    prevention policy (acquire only in non-decreasing rank).
    """
    R_NORTH = "R_North"
    R_EAST = "R_East"
    R_SOUTH = "R_South"
    R_WEST = "R_West"

    @property
    def rank(self) -> int:
        """Fixed acquisition rank of this resource."""
        return _RANKS[self]

    @property
    def label(self) -> str:
        return self.value

    @property
    def index(self) -> int:
        """Column index of this resource in every matrix/vector."""
        return self.rank - 1

    @classmethod
    def ordered(cls) -> List["ResourceId"]:
        """All resources sorted by rank (matrix column order)."""
        return sorted(cls, key=lambda r: r.rank)

    @classmethod
    def from_label(cls, label: str) -> "ResourceId":
        """
        Look up a resource by its label ("R_North") or member name ("R_NORTH").

        Raises:
            ValueError: If the label names no resource
        """
        for resource in cls:
            if label in (resource.value, resource.name):
                return resource
        raise ValueError(f"Unknown resource: {label!r}")


_RANKS = {
    ResourceId.R_NORTH: 1,
    ResourceId.R_EAST: 2,
    ResourceId.R_SOUTH: 3,
    ResourceId.R_WEST: 4,
}

NUM_RESOURCES = len(_RANKS)


@dataclass
class Resource:
    """
    A single-unit resource in the intersection.

    Attributes:
        resource_id: Which lane this is
        holder: PID of the process currently holding it, or None when free

    Invariant:
        At most one holder at any instant (Mutual Exclusion).
    """
    resource_id: ResourceId
    holder: Optional[int] = None

    @property
    def total_instances(self) -> int:
        """Every resource has exactly one unit."""
        return 1

    @property
    def available_instances(self) -> int:
        return 0 if self.holder is not None else 1

    def is_free(self) -> bool:
        return self.holder is None

    def acquire(self, pid: int) -> None:
        """
        Hand this resource to a process.

        Implements Mutual Exclusion: a held resource can never be acquired
        by a second process.

        Args:
            pid: Process taking the resource

        Raises:
            AssertionError: If the resource already has a holder
        """
        assert self.holder is None, (
            f"Mutual exclusion violated: {self.resource_id.label} held by "
            f"P{self.holder}, cannot be acquired by P{pid}"
        )
        self.holder = pid

    def release(self, pid: int) -> None:
        """
        Give this resource back.

        Implements No Preemption: only the holder itself releases.

        Args:
            pid: Process releasing the resource

        Raises:
            AssertionError: If pid is not the current holder
        """
        assert self.holder == pid, (
            f"{self.resource_id.label}: P{pid} released a resource held by "
            f"{'nobody' if self.holder is None else f'P{self.holder}'}"
        )
        self.holder = None
