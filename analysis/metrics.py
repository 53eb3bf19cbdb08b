"""
Metrics Tracking for the Intersection Deadlock Simulator.

Tracks counters and performance metrics throughout simulation execution.
"""

from dataclasses import dataclass, field, fields, MISSING
from typing import List, Dict
import statistics


@dataclass
class SimulationMetrics:
    """
    Accumulated metrics for a single simulation run.

    Counters are updated by the admission controller; per-step samples
    and waiting times are recorded by the driver.

    Tracks four key performance metrics:
    1. Deadlock Occurrence: Count of distinct deadlocks detected
    2. Resource Utilization %: Average (held lanes / total lanes) x 100 per step
    3. Process Waiting Time: Average steps in WAITING state per process
    4. System Throughput: Completed processes / total simulation steps
    """
    deadlock_count: int = 0
    total_steps: int = 0
    created_processes: int = 0
    completed_processes: int = 0
    cancelled_processes: int = 0
    granted_count: int = 0

    # Denials keyed by DenialReason value
    denials_by_reason: Dict[str, int] = field(default_factory=dict)

    # Per-step samples
    utilization_samples: List[float] = field(default_factory=list)
    resource_utilization_samples: Dict[str, List[float]] = field(default_factory=dict)

    # Per-process tracking
    process_waiting_times: Dict[int, int] = field(default_factory=dict)
    process_denied_counts: Dict[int, int] = field(default_factory=dict)
    process_final_states: Dict[int, str] = field(default_factory=dict)

    def reset(self) -> None:
        """Zero every counter and drop every sample."""
        for f in fields(self):
            if f.default_factory is not MISSING:
                setattr(self, f.name, f.default_factory())
            else:
                setattr(self, f.name, f.default)

    @property
    def denial_count(self) -> int:
        """Total denials across all reasons."""
        return sum(self.denials_by_reason.values())

    def record_step(self, step: int, per_resource_held: Dict[str, int]) -> None:
        """
        Record utilization for a single simulation step.

        Args:
            step: Current step number
            per_resource_held: Resource label -> 1 if held, else 0
        """
        # Steps are 0-based
        self.total_steps = step + 1

        if per_resource_held:
            held = sum(per_resource_held.values())
            self.utilization_samples.append((held / len(per_resource_held)) * 100)

        for label, value in per_resource_held.items():
            self.resource_utilization_samples.setdefault(label, []).append(value * 100.0)

    def record_deadlock(self) -> None:
        """Record a deadlock occurrence."""
        self.deadlock_count += 1

    def record_creation(self) -> None:
        self.created_processes += 1

    def record_completion(self, process_id: int) -> None:
        """Record a process completion."""
        self.completed_processes += 1
        self.process_final_states[process_id] = "COMPLETED"

    def record_cancellation(self, process_id: int) -> None:
        self.cancelled_processes += 1
        self.process_final_states[process_id] = "CANCELLED"

    def record_allocation(self, process_id: int) -> None:
        self.granted_count += 1

    def record_denial(self, process_id: int, reason: str) -> None:
        """
        Record a denied request for a process.

        Args:
            process_id: Process identifier
            reason: DenialReason value
        """
        self.denials_by_reason[reason] = self.denials_by_reason.get(reason, 0) + 1
        self.process_denied_counts[process_id] = self.process_denied_counts.get(process_id, 0) + 1

    def record_waiting_time(self, process_id: int, steps_waited: int) -> None:
        """
        Record waiting time for a process.

        Args:
            process_id: Process identifier
            steps_waited: Number of steps process spent in WAITING
        """
        self.process_waiting_times[process_id] = steps_waited

    def get_avg_utilization(self) -> float:
        """Calculate average resource utilization (overall)."""
        if not self.utilization_samples:
            return 0.0
        return statistics.mean(self.utilization_samples)

    def get_resource_utilization(self, label: str) -> float:
        """
        Calculate average utilization for a specific resource.

        Args:
            label: Resource label, e.g. "R_North"

        Returns:
            Average utilization percentage for this resource
        """
        samples = self.resource_utilization_samples.get(label)
        if not samples:
            return 0.0
        return statistics.mean(samples)

    def get_avg_waiting_time(self) -> float:
        """
        Calculate average waiting time across all processes.

        Formula: Sum of all process waiting times / Number of processes
        """
        if not self.process_waiting_times:
            return 0.0
        return statistics.mean(self.process_waiting_times.values())

    def get_throughput(self) -> float:
        """
        Calculate system throughput (completed processes / total steps).

        Only counts COMPLETED processes, not denied or cancelled ones.
        """
        if self.total_steps == 0:
            return 0.0
        return self.completed_processes / self.total_steps


def format_metrics_report(
    metrics: SimulationMetrics,
    verbose: bool = False,
    policy: str = None,
    scenario: str = None,
    stop_reason: str = None
) -> str:
    """
    Format metrics for display at end of simulation.

    Args:
        metrics: SimulationMetrics instance with collected data
        verbose: If True, include per-process breakdown
        policy: Policy used in simulation
        scenario: Scenario file path
        stop_reason: Reason simulation stopped

    Returns:
        Formatted metrics report string
    """
    lines = []
    lines.append("\n" + "="*60)
    lines.append("SIMULATION METRICS")
    lines.append("="*60)

    if policy:
        lines.append(f"Policy: {policy.upper()}")
    if scenario:
        lines.append(f"Scenario: {scenario}")
    if stop_reason:
        lines.append(f"Stop Reason: {stop_reason}")
    if policy or scenario or stop_reason:
        lines.append("")

    lines.append(f"Total Steps: {metrics.total_steps}")
    lines.append(f"Created Processes: {metrics.created_processes}")
    lines.append(f"Completed Processes: {metrics.completed_processes}")
    lines.append(f"Cancelled Processes: {metrics.cancelled_processes}")
    lines.append(f"Grants: {metrics.granted_count}")
    lines.append(f"Denials: {metrics.denial_count}")
    for reason in sorted(metrics.denials_by_reason):
        lines.append(f"  {reason}: {metrics.denials_by_reason[reason]}")
    lines.append("")

    lines.append("KEY PERFORMANCE METRICS:")
    lines.append("-" * 60)
    lines.append(f"1. Deadlock Count: {metrics.deadlock_count}")
    lines.append(f"2. Average Resource Utilization: {metrics.get_avg_utilization():.2f}%")
    lines.append(f"3. Average Waiting Time: {metrics.get_avg_waiting_time():.2f} steps/process")
    lines.append(f"4. System Throughput: {metrics.get_throughput():.4f} processes/step")

    if metrics.resource_utilization_samples:
        lines.append("")
        lines.append("PER-RESOURCE UTILIZATION:")
        lines.append("-" * 60)
        for label in metrics.resource_utilization_samples:
            lines.append(f"  {label}: {metrics.get_resource_utilization(label):.2f}% average")

    if verbose and metrics.process_final_states:
        lines.append("")
        lines.append("PER-PROCESS SUMMARY:")
        lines.append("-" * 60)
        for pid in sorted(metrics.process_final_states):
            state = metrics.process_final_states[pid]
            waiting = metrics.process_waiting_times.get(pid, 0)
            denied = metrics.process_denied_counts.get(pid, 0)
            lines.append(f"  P{pid}: {state:10} | wait={waiting:2} steps | deny={denied:2}")

    lines.append("="*60)
    return "\n".join(lines)
