"""
Admission Controller for the Intersection Deadlock Simulator.

Single entry point for every state change. It consults the active policy
engine against a snapshot, commits only on approval, and refreshes the
deadlock flag after every mutation.

The controller never schedules anything itself: the driver decides when
to call grant_first (after the settle delay) and complete_process (after
the transit delay).
"""

from typing import Dict, List, Optional

from models.process import Direction, ProcessState, ProcessView
from models.system_state import SystemState
from algorithms.avoidance import SafetyReport, analyze_safety, check_admission, check_advance
from algorithms.detection import coffman_conditions, detect_deadlock
from algorithms.prevention import permits
from analysis.events import EventLog, EventType, SimulationEvent
from analysis.metrics import SimulationMetrics
from controller.results import (
    DeadlockReport,
    DenialReason,
    GraphSnapshot,
    Outcome,
    PolicyMode,
    RequestResult,
)
from utils.logger import SimulatorLogger


class AdmissionController:
    """
    Owns the process/resource registries, the policy mode and the
    deadlock flag.

    Denials never mutate state: each decision is evaluated against an
    immutable snapshot (or a hypothetical derived from one) before
    anything is committed.

    Attributes:
        state: Live registries
        logger: Decision log
        event_log: Structured event history
        metrics: Counters (creations, grants, denials, deadlocks, ...)
        current_step: Driver-supplied clock stamped on events
        deadlock_detected: Whether the wait-for graph currently has a cycle
    """

    def __init__(
        self,
        policy=PolicyMode.DETECTION,
        logger: Optional[SimulatorLogger] = None,
        event_log: Optional[EventLog] = None,
        metrics: Optional[SimulationMetrics] = None
    ):
        self.state = SystemState()
        self._policy = PolicyMode.parse(policy)
        self.logger = logger if logger is not None else SimulatorLogger(echo=False)
        self.event_log = event_log if event_log is not None else EventLog()
        self.metrics = metrics if metrics is not None else SimulationMetrics()
        self.current_step = 0
        self.deadlock_detected = False
        self._completed = set()

    # ------------------------------------------------------------------
    # Policy

    @property
    def policy(self) -> PolicyMode:
        return self._policy

    def get_policy(self) -> PolicyMode:
        return self._policy

    def set_policy(self, mode) -> None:
        """
        Switch the policy used for future admission decisions.

        Resources already granted are never revoked.

        Raises:
            ValueError: If mode names no policy
        """
        mode = PolicyMode.parse(mode)
        if mode == self._policy:
            return
        previous, self._policy = self._policy, mode
        self.logger.log_step(self.current_step, f"Policy changed: {previous.value} -> {mode.value}")
        self._record(EventType.POLICY_CHANGE, -1, message=f"{previous.value} -> {mode.value}")

    # ------------------------------------------------------------------
    # Lifecycle operations

    def create_process(self, direction) -> RequestResult:
        """
        Register a new Approaching process.

        Always succeeds for a known direction; the admission policy fires
        later, in grant_first.

        Args:
            direction: Direction or direction name

        Returns:
            CREATED with the new PID, or DENIED(INVALID_ROUTE)
        """
        try:
            direction = Direction.parse(direction)
        except ValueError as e:
            return self._deny(None, DenialReason.INVALID_ROUTE, str(e), resource=None)

        if not direction.route.is_valid():
            return self._deny(None, DenialReason.INVALID_ROUTE,
                              f"Route {direction.route} repeats a resource", resource=None)

        process = self.state.add_process(direction)
        self.metrics.record_creation()
        self._record(EventType.CREATED, process.pid, resource=process.route.first.label,
                     message=f"{direction.value}, route {process.route}")
        self.logger.log_step(
            self.current_step,
            f"{process.label} created ({direction.value}) - Requesting {process.route.first.label}"
        )
        return RequestResult(Outcome.CREATED, process.pid, message=f"Requesting {process.route.first.label}")

    def grant_first(self, pid: int) -> RequestResult:
        """
        Give an Approaching process its first resource.

        This is where the active policy's admission check fires:
        - PREVENTION: resource ordering rules (checked even while the
          first resource is busy, so an out-of-order route is always
          refused straight away)
        - AVOIDANCE: Banker's safety test on the hypothetical state
        - DETECTION: no check

        A refused process is discarded and never enters Waiting. If the
        first resource is held by someone else the process simply stays
        Approaching and the driver may retry.

        Args:
            pid: Approaching process

        Returns:
            GRANTED, STILL_WAITING, DENIED(reason), NOT_FOUND,
            ALREADY_COMPLETED or INVALID_STATE
        """
        process = self.state.get(pid)
        if process is None:
            return self._missing(pid)
        if process.state != ProcessState.APPROACHING:
            return RequestResult(Outcome.INVALID_STATE, pid,
                                 message=f"{process.label} is {process.state.value}, not APPROACHING")

        first = process.route.first
        snapshot = self.state.snapshot()

        if self._policy == PolicyMode.PREVENTION:
            permitted, why = permits(process.route, snapshot)
            if not permitted:
                self.state.remove_process(pid)
                self._refresh_deadlock()
                return self._deny(pid, DenialReason.ORDERING_VIOLATION, why, resource=first.label)

        if not self.state.is_free(first):
            return RequestResult(Outcome.STILL_WAITING, pid,
                                 message=f"{first.label} held by P{self.state.holder_of(first)}")

        if self._policy == PolicyMode.AVOIDANCE:
            granted, why = check_admission(snapshot, snapshot.find(pid))
            if not granted:
                self.state.remove_process(pid)
                self._refresh_deadlock()
                return self._deny(pid, DenialReason.UNSAFE_ALLOCATION, why, resource=first.label)
        elif self._policy == PolicyMode.DETECTION:
            why = "GRANTED (Resource available)"

        self.state.grant_first(pid)
        self.metrics.record_allocation(pid)
        self._record(EventType.ALLOCATION, pid, resource=first.label, reason=why)
        self.logger.log_request(self.current_step, pid, first.label, True, why)
        self.logger.log_step(
            self.current_step,
            f"{process.label} ALLOCATED: {process.held.label}, REQUESTING: {process.requested.label}"
        )
        self._refresh_deadlock()
        return RequestResult(Outcome.GRANTED, pid, message=why)

    def request_resource(self, direction) -> RequestResult:
        """
        Create a process and immediately try to grant its first resource.

        Convenience for drivers without a settle delay.

        Returns:
            Result of grant_first, or the creation denial
        """
        created = self.create_process(direction)
        if created.outcome != Outcome.CREATED:
            return created
        return self.grant_first(created.pid)

    def advance(self, pid: int) -> RequestResult:
        """
        Move a Waiting process onto the resource it is requesting.

        If that resource is held the call is a no-op. Under AVOIDANCE the
        move is also safety-checked; a refusal leaves the process Waiting
        for the next attempt.

        Args:
            pid: Waiting process

        Returns:
            ADVANCED, STILL_WAITING, DENIED(UNSAFE_ALLOCATION), NOT_FOUND,
            ALREADY_COMPLETED or INVALID_STATE
        """
        process = self.state.get(pid)
        if process is None:
            return self._missing(pid)
        if process.state != ProcessState.WAITING:
            return RequestResult(Outcome.INVALID_STATE, pid,
                                 message=f"{process.label} is {process.state.value}, not WAITING")

        target = process.requested
        if not self.state.is_free(target):
            return RequestResult(Outcome.STILL_WAITING, pid,
                                 message=f"{target.label} held by P{self.state.holder_of(target)}")

        if self._policy == PolicyMode.AVOIDANCE:
            granted, why = check_advance(self.state.snapshot(), pid)
            if not granted:
                return self._deny(pid, DenialReason.UNSAFE_ALLOCATION, why, resource=target.label)

        released = process.held
        self.state.grant_second(pid)
        self.metrics.record_allocation(pid)
        self._record(EventType.ADVANCE, pid, resource=target.label, message=f"released {released.label}")
        self.logger.log_advance(self.current_step, pid, target.label, released.label)
        self._refresh_deadlock()
        return RequestResult(Outcome.ADVANCED, pid, message=f"Holding {target.label}")

    def complete_process(self, pid: int) -> RequestResult:
        """
        Retire a Running process, releasing its resource.

        Completing an already completed process is a no-op.

        Args:
            pid: Running process

        Returns:
            COMPLETED, ALREADY_COMPLETED, NOT_FOUND or INVALID_STATE
        """
        process = self.state.get(pid)
        if process is None:
            return self._missing(pid)
        if process.state != ProcessState.RUNNING:
            return RequestResult(Outcome.INVALID_STATE, pid,
                                 message=f"{process.label} is {process.state.value}, not RUNNING")

        released = self.state.remove_process(pid)
        self._completed.add(pid)
        self.metrics.record_completion(pid)
        self._record(EventType.COMPLETION, pid, resource=released.label,
                     message=f"released {released.label}")
        self.logger.log_completion(self.current_step, pid, released.label)
        # Releasing a resource can break an existing cycle
        self._refresh_deadlock()
        return RequestResult(Outcome.COMPLETED, pid, message=f"Released {released.label}")

    def cancel_process(self, pid: int) -> RequestResult:
        """
        Abort a process at any lifecycle stage.

        The only way besides completion to release a held resource; used
        by the driver (e.g. deadlock recovery), never by the policies.

        Args:
            pid: Live process

        Returns:
            CANCELLED, ALREADY_COMPLETED or NOT_FOUND
        """
        process = self.state.get(pid)
        if process is None:
            return self._missing(pid)

        previous_state = process.state
        released = self.state.remove_process(pid)
        released_label = released.label if released else "none"
        self.metrics.record_cancellation(pid)
        self._record(EventType.CANCELLATION, pid, resource=released.label if released else None,
                     message=f"aborted while {previous_state.value}")
        self.logger.log_step(
            self.current_step,
            f"P{pid} CANCELLED while {previous_state.value} (released: {released_label})",
            "warning"
        )
        self._refresh_deadlock()
        return RequestResult(Outcome.CANCELLED, pid, message=f"Released {released_label}")

    def reset(self) -> None:
        """Drop every process and clear counters, PIDs and the deadlock flag."""
        self.state.clear()
        self.deadlock_detected = False
        self._completed.clear()
        self.metrics.reset()
        self.event_log.clear()
        self.current_step = 0
        self.logger.log("Simulation reset - All resources freed")

    # ------------------------------------------------------------------
    # Queries

    def check_deadlock(self) -> DeadlockReport:
        """
        Run cycle detection on the current state.

        Idempotent: re-detecting an existing deadlock does not count it
        again.
        """
        return self._refresh_deadlock()

    def run_safety_analysis(self) -> SafetyReport:
        """Banker's analysis of the current state, with its matrices."""
        report = analyze_safety(self.state.snapshot())
        self.logger.log(report.display(), "debug")
        return report

    def coffman_conditions(self) -> Dict[str, bool]:
        return coffman_conditions(self.state.snapshot())

    def get_process(self, pid: int) -> Optional[ProcessView]:
        process = self.state.get(pid)
        return process.view() if process else None

    def live_processes(self) -> List[ProcessView]:
        return list(self.state.snapshot().processes)

    def get_graph_snapshot(self) -> GraphSnapshot:
        """
        Resource Allocation Graph for renderers.

        Allocation edges run resource -> holder, request edges run
        process -> requested resource (an Approaching process requests
        its first resource).
        """
        snapshot = self.state.snapshot()
        processes = tuple(
            {
                "pid": p.pid,
                "label": p.label,
                "direction": p.direction.value,
                "state": p.state.value,
                "held": p.held.label if p.held else None,
                "requested": p.requested.label if p.requested else None,
                "lane_index": p.lane_index,
            }
            for p in snapshot.processes
        )
        resources = {
            r.resource_id.label: (f"P{r.holder}" if r.holder is not None else None)
            for r in self.state.resources.values()
        }
        allocation_edges = tuple((p.held.label, p.label) for p in snapshot.processes if p.held)
        request_edges = tuple((p.label, p.requested.label) for p in snapshot.processes if p.requested)
        return GraphSnapshot(
            processes=processes,
            resources=resources,
            allocation_edges=allocation_edges,
            request_edges=request_edges,
            deadlocked=self.deadlock_detected,
        )

    def statistics(self) -> Dict[str, int]:
        """Counters for display."""
        stats = {
            "live": self.state.num_processes,
            "created": self.metrics.created_processes,
            "completed": self.metrics.completed_processes,
            "cancelled": self.metrics.cancelled_processes,
            "granted": self.metrics.granted_count,
            "denied": self.metrics.denial_count,
            "deadlocks": self.metrics.deadlock_count,
        }
        for reason in DenialReason:
            stats[f"denied_{reason.name.lower()}"] = self.metrics.denials_by_reason.get(reason.value, 0)
        return stats

    # ------------------------------------------------------------------
    # Internals

    def _refresh_deadlock(self) -> DeadlockReport:
        deadlocked, cycle = detect_deadlock(self.state.snapshot())

        if deadlocked and not self.deadlock_detected:
            self.deadlock_detected = True
            self.metrics.record_deadlock()
            self._record(EventType.DEADLOCK, -1, message=" -> ".join(cycle))
            self.logger.log_deadlock(self.current_step, cycle)
        elif not deadlocked and self.deadlock_detected:
            self.deadlock_detected = False
            self.logger.log_step(self.current_step, "Deadlock resolved - No cycle in RAG")

        return DeadlockReport(deadlocked=deadlocked, cycle=tuple(cycle))

    def _missing(self, pid: int) -> RequestResult:
        if pid in self._completed:
            return RequestResult(Outcome.ALREADY_COMPLETED, pid, message=f"P{pid} already completed")
        self.logger.log(f"Process P{pid} not found", "debug")
        return RequestResult(Outcome.NOT_FOUND, pid, message=f"P{pid} not found")

    def _deny(self, pid: Optional[int], reason: DenialReason, why: str, resource: Optional[str]) -> RequestResult:
        process_id = pid if pid is not None else -1
        self.metrics.record_denial(process_id, reason.value)
        self._record(EventType.DENIAL, process_id, resource=resource, reason=f"{reason.value}: {why}")
        if resource is not None:
            self.logger.log_request(self.current_step, process_id, resource, False, why)
        else:
            self.logger.log_step(self.current_step, f"Creation DENIED ({why})", "warning")
        return RequestResult(Outcome.DENIED, pid, reason=reason, message=why)

    def _record(self, event_type: EventType, pid: int, resource: Optional[str] = None,
                message: str = "", reason: str = "") -> None:
        self.event_log.add(SimulationEvent(
            step=self.current_step,
            event_type=event_type,
            process_id=pid,
            resource=resource,
            message=message,
            reason=reason,
        ))
