"""
Result types for the admission controller.

Denials, stale PIDs and wrong-state calls are ordinary outcomes returned
to the driver, never exceptions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class PolicyMode(Enum):
    """Deadlock handling strategy used for future admission decisions."""
    DETECTION = "detection"
    AVOIDANCE = "avoidance"
    PREVENTION = "prevention"

    @classmethod
    def parse(cls, value) -> "PolicyMode":
        """
        Accept a PolicyMode or a case-insensitive policy name.

        Raises:
            ValueError: If the value names no policy
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown policy {value!r} (choose from: {choices})")


class DenialReason(Enum):
    """Why a policy refused a grant."""
    UNSAFE_ALLOCATION = "UnsafeAllocation"
    ORDERING_VIOLATION = "OrderingViolation"
    INVALID_ROUTE = "InvalidRoute"


class Outcome(Enum):
    """What an admission controller operation did."""
    CREATED = "CREATED"
    GRANTED = "GRANTED"
    ADVANCED = "ADVANCED"
    STILL_WAITING = "STILL_WAITING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DENIED = "DENIED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_COMPLETED = "ALREADY_COMPLETED"
    INVALID_STATE = "INVALID_STATE"


SUCCESS_OUTCOMES = (
    Outcome.CREATED,
    Outcome.GRANTED,
    Outcome.ADVANCED,
    Outcome.COMPLETED,
    Outcome.CANCELLED,
)


@dataclass(frozen=True)
class RequestResult:
    """
    Outcome of one controller operation.

    Attributes:
        outcome: What happened
        pid: Process concerned (None if a creation was refused outright)
        reason: Denial reason when outcome is DENIED
        message: Human-readable explanation
    """
    outcome: Outcome
    pid: Optional[int] = None
    reason: Optional[DenialReason] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        """True when the operation changed state as asked."""
        return self.outcome in SUCCESS_OUTCOMES

    @property
    def denied(self) -> bool:
        return self.outcome == Outcome.DENIED

    def __str__(self) -> str:
        subject = f"P{self.pid}" if self.pid is not None else "-"
        if self.reason is not None:
            return f"{subject}: {self.outcome.value}({self.reason.value}) {self.message}".rstrip()
        return f"{subject}: {self.outcome.value} {self.message}".rstrip()


@dataclass(frozen=True)
class DeadlockReport:
    """
    Result of check_deadlock().

    Attributes:
        deadlocked: Whether a cycle exists in the wait-for graph
        cycle: Closed alternating process/resource labels, empty if none
    """
    deadlocked: bool
    cycle: Tuple[str, ...] = ()

    @property
    def pids(self) -> List[int]:
        """Distinct processes on the cycle, in cycle order."""
        return [int(label[1:]) for label in self.cycle[:-1] if label.startswith("P")]

    @property
    def cycle_length(self) -> int:
        """Number of processes on the cycle."""
        return len(self.pids)

    def __str__(self) -> str:
        if not self.deadlocked:
            return "No deadlock"
        return "Deadlock: " + " -> ".join(self.cycle)


@dataclass(frozen=True)
class GraphSnapshot:
    """
    Read-only Resource Allocation Graph for renderers.

    Attributes:
        processes: One dict per live process (pid, label, direction, state,
            held, requested, lane_index)
        resources: Resource label -> holder label (None when free)
        allocation_edges: (resource label, process label) pairs
        request_edges: (process label, resource label) pairs
        deadlocked: Current deadlock flag
    """
    processes: Tuple[Dict, ...] = ()
    resources: Dict[str, Optional[str]] = field(default_factory=dict)
    allocation_edges: Tuple[Tuple[str, str], ...] = ()
    request_edges: Tuple[Tuple[str, str], ...] = ()
    deadlocked: bool = False
