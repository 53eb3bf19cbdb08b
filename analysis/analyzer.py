"""
Policy Comparison for the Intersection Deadlock Simulator.

Called by simulator.py --compare-policies.
This is a library module, not a standalone CLI tool.

Runs are deterministic (fixed arrival schedule, PID-ordered scans), so a
single run per policy is enough to compare them.
"""

from typing import List, Optional
from dataclasses import dataclass


@dataclass
class RunResult:
    """Results from a single simulation run."""
    policy: str
    stop_reason: str
    total_steps: int
    created_processes: int
    completed_processes: int
    cancelled_processes: int
    denial_count: int
    deadlock_count: int
    avg_utilization: float
    avg_waiting_time: float
    throughput: float

    def is_successful(self) -> bool:
        """Check if run completed successfully (no process left behind)."""
        return "All processes finished" in self.stop_reason

    def had_deadlock(self) -> bool:
        """Check if run encountered a deadlock."""
        return self.deadlock_count > 0

    def display(self) -> str:
        """Format results for display."""
        result = f"\nPolicy: {self.policy.upper()}\n"
        result += f"  Outcome: {self.stop_reason} after {self.total_steps} steps\n"
        result += (
            f"  Processes: created={self.created_processes}, completed={self.completed_processes}, "
            f"cancelled={self.cancelled_processes}, denied={self.denial_count}\n"
        )
        result += f"  Deadlocks detected: {self.deadlock_count}\n"
        result += f"  Resource Utilization: {self.avg_utilization:.2f}%\n"
        result += f"  Avg Waiting Time: {self.avg_waiting_time:.2f} steps\n"
        result += f"  System Throughput: {self.throughput:.4f} processes/step"
        return result


def analyze_policy(
    policy_name: str,
    scenario_path: str,
    recover: Optional[bool] = None,
    run_simulation_func=None
) -> RunResult:
    """
    Run one simulation and summarise it.

    Args:
        policy_name: Policy to test (detection, avoidance, prevention)
        scenario_path: Path to scenario JSON file
        recover: Enable deadlock recovery in the run
        run_simulation_func: Function to run simulation (injected from simulator.py)

    Returns:
        RunResult
    """
    if run_simulation_func is None:
        raise ValueError("run_simulation_func must be provided")

    _, metrics, stop_reason = run_simulation_func(
        policy=policy_name,
        scenario_path=scenario_path,
        recover=recover,
        echo=False
    )

    return RunResult(
        policy=policy_name,
        stop_reason=stop_reason,
        total_steps=metrics.total_steps,
        created_processes=metrics.created_processes,
        completed_processes=metrics.completed_processes,
        cancelled_processes=metrics.cancelled_processes,
        denial_count=metrics.denial_count,
        deadlock_count=metrics.deadlock_count,
        avg_utilization=metrics.get_avg_utilization(),
        avg_waiting_time=metrics.get_avg_waiting_time(),
        throughput=metrics.get_throughput()
    )


def compare_policies(
    policies: List[str],
    scenario_path: str,
    recover: Optional[bool] = None,
    run_simulation_func=None
) -> List[RunResult]:
    """
    Compare multiple policies on the same scenario.

    Args:
        policies: List of policy names to compare
        scenario_path: Path to scenario JSON file
        recover: Enable deadlock recovery in every run
        run_simulation_func: Function to run simulation (injected from simulator.py)

    Returns:
        One RunResult per policy, in the given order
    """
    results = []
    for policy in policies:
        print(f"Running scenario under policy: {policy.upper()}")
        results.append(analyze_policy(policy, scenario_path, recover, run_simulation_func))
    return results


def generate_comparison_report(results: List[RunResult], scenario_path: str) -> str:
    """
    Generate formatted comparison report.

    Args:
        results: List of run results
        scenario_path: Path to scenario file

    Returns:
        Formatted string report
    """
    report = "\n" + "="*70 + "\n"
    report += "POLICY COMPARISON REPORT\n"
    report += "="*70 + "\n"
    report += f"Scenario: {scenario_path}\n"
    report += "="*70 + "\n"

    for result in results:
        report += result.display()
        report += "\n" + "-"*70

    report += "\n\nEXPECTED PATTERNS (scenario-dependent):\n"
    report += "-"*70 + "\n"
    report += "  DETECTION:\n"
    report += "    - Grants every available lane; halts (or recovers) once a cycle forms\n"
    report += "  AVOIDANCE:\n"
    report += "    - Never deadlocks; refuses arrivals that would leave no safe sequence\n"
    report += "  PREVENTION:\n"
    report += "    - Never deadlocks; refuses routes that break the lane ordering\n"
    report += "\n" + "="*70 + "\n"

    report += "\nKEY INSIGHTS:\n"
    report += "-"*70 + "\n"

    def format_best(metric_name: str, results_list: List[RunResult],
                    key_func, format_func, higher_is_better: bool = True):
        """Format best metric, handling ties. Returns empty string if all policies tied."""
        if higher_is_better:
            target_value = max(key_func(r) for r in results_list)
        else:
            target_value = min(key_func(r) for r in results_list)

        winners = [r for r in results_list if key_func(r) == target_value]

        # All tied: nothing to say
        if len(winners) == len(results_list):
            return ""

        if len(winners) == 1:
            return f"  {metric_name}: {winners[0].policy.upper()} ({format_func(target_value)})\n"
        names = ", ".join(w.policy.upper() for w in winners)
        return f"  {metric_name}: {names} (tie at {format_func(target_value)})\n"

    if len(results) > 1:
        insights = [
            format_best("Most Completions", results,
                        lambda r: r.completed_processes, str, higher_is_better=True),
            format_best("Fewest Deadlocks", results,
                        lambda r: r.deadlock_count, str, higher_is_better=False),
            format_best("Fewest Denials", results,
                        lambda r: r.denial_count, str, higher_is_better=False),
            format_best("Best Resource Utilization", results,
                        lambda r: r.avg_utilization, lambda v: f"{v:.2f}%", higher_is_better=True),
            format_best("Lowest Waiting Time", results,
                        lambda r: r.avg_waiting_time, lambda v: f"{v:.2f} steps", higher_is_better=False),
        ]
        insights = [i for i in insights if i]

        if insights:
            for insight in insights:
                report += insight
        else:
            report += "  All policies showed identical performance (complete tie across all metrics).\n"

    report += "\n" + "="*70 + "\n"
    return report
