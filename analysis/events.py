"""
Event Model for the Intersection Deadlock Simulator.

Defines event types for tracking simulation actions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventType(Enum):
    """Types of events in the simulation."""
    CREATED = "created"
    ALLOCATION = "allocation"
    DENIAL = "denial"
    ADVANCE = "advance"
    COMPLETION = "completion"
    CANCELLATION = "cancellation"
    DEADLOCK = "deadlock"
    RECOVERY = "recovery"
    POLICY_CHANGE = "policy_change"


@dataclass
class SimulationEvent:
    """
    Represents a single event in the simulation.

    Attributes:
        step: Simulation step when event occurred
        event_type: Type of event
        process_id: PID involved in event (-1 for system-wide events)
        resource: Resource label involved (if applicable)
        message: Human-readable description
        reason: Reason for denial (if applicable)
    """
    step: int
    event_type: EventType
    process_id: int
    resource: Optional[str] = None
    message: str = ""
    reason: str = ""

    def __str__(self) -> str:
        """Format event for logging."""
        base = f"Step {self.step}: P{self.process_id}"

        if self.event_type == EventType.ALLOCATION:
            return f"{base} requests {self.resource} - GRANTED ({self.reason})"
        elif self.event_type == EventType.DENIAL:
            return f"{base} requests {self.resource} - DENIED ({self.reason})"
        elif self.event_type == EventType.ADVANCE:
            return f"{base} advances onto {self.resource}"
        elif self.event_type == EventType.COMPLETION:
            return f"{base} - COMPLETED ({self.message})"
        elif self.event_type == EventType.DEADLOCK:
            return f"Step {self.step}: DEADLOCK DETECTED ({self.message})"
        elif self.event_type == EventType.RECOVERY:
            return f"Step {self.step}: RECOVERY ({self.message})"
        else:
            return f"{base} - {self.event_type.value}: {self.message}"


@dataclass
class EventLog:
    """Collection of simulation events."""
    events: list = None

    def __post_init__(self):
        if self.events is None:
            self.events = []

    def add(self, event: SimulationEvent) -> None:
        """Add an event to the log."""
        self.events.append(event)

    def clear(self) -> None:
        self.events.clear()

    def get_events_by_type(self, event_type: EventType) -> list:
        """Get all events of a specific type."""
        return [e for e in self.events if e.event_type == event_type]

    def get_events_by_step(self, step: int) -> list:
        """Get all events from a specific step."""
        return [e for e in self.events if e.step == step]

    def get_events_for_process(self, pid: int) -> list:
        """Get all events involving one process."""
        return [e for e in self.events if e.process_id == pid]

    def display(self) -> str:
        """Format all events for display."""
        return "\n".join(str(event) for event in self.events)
