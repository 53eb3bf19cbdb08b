"""
Policy Comparison Tests

Runs the bundled scenarios through the step driver under every policy to
validate the expected outcome patterns:
- DETECTION: deadlocks form and halt the run (or are recovered from)
- AVOIDANCE: 0 deadlocks, the unsafe arrival is refused
- PREVENTION: 0 deadlocks, the out-of-order route is refused
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from simulator import main, run_simulation
from analysis.analyzer import compare_policies, generate_comparison_report
from analysis.events import EventType


# Test scenarios directory
SCENARIOS_DIR = project_root / "scenarios"
FOUR_WAY = str(SCENARIOS_DIR / "four_way_deadlock.json")
TWO_WAY = str(SCENARIOS_DIR / "two_way_no_cycle.json")
STAGGERED = str(SCENARIOS_DIR / "staggered_traffic.json")


def count_events(event_log, event_type: EventType) -> int:
    return len(event_log.get_events_by_type(event_type))


def test_four_way_detection_halts():
    """
    Compare all policies on the four-way scenario.

    Expected:
    - DETECTION: deadlock as soon as the fourth car takes its lane
    """
    print("\n" + "="*60)
    print("POLICY COMPARISON TEST: Four-way Deadlock Scenario")
    print("="*60)

    event_log, metrics, stop_reason = run_simulation("detection", FOUR_WAY, echo=False)
    print(f"  Stop reason: {stop_reason}")

    assert stop_reason == "Deadlock detected at step 1"
    assert metrics.deadlock_count == 1
    assert count_events(event_log, EventType.DEADLOCK) == 1
    assert event_log.get_events_by_step(1)[-1].event_type == EventType.DEADLOCK
    assert metrics.completed_processes == 0
    assert metrics.total_steps == 2
    print("  ✓ Deadlock detected and halted (as expected)")


def test_four_way_detection_with_recovery():
    event_log, metrics, stop_reason = run_simulation("detection", FOUR_WAY, recover=True, echo=False)
    print(f"  Stop reason: {stop_reason}")

    assert stop_reason == "All processes finished"
    assert metrics.deadlock_count == 1
    assert metrics.cancelled_processes == 1
    assert metrics.completed_processes == 3
    assert [e.process_id for e in event_log.get_events_by_type(EventType.RECOVERY)] == [4]
    assert metrics.process_final_states[4] == "CANCELLED"


def test_four_way_avoidance():
    event_log, metrics, stop_reason = run_simulation("avoidance", FOUR_WAY, echo=False)
    print(f"  Stop reason: {stop_reason}")

    assert stop_reason == "All processes finished"
    assert metrics.deadlock_count == 0
    assert metrics.denials_by_reason == {"UnsafeAllocation": 1}
    assert metrics.completed_processes == 3
    assert metrics.total_steps == 7

    # South advances first, then East, then North
    assert metrics.process_waiting_times == {3: 1, 2: 2, 1: 3}
    assert metrics.get_avg_waiting_time() == 2.0
    denial = event_log.get_events_by_type(EventType.DENIAL)[0]
    assert denial.process_id == 4


def test_four_way_prevention():
    event_log, metrics, stop_reason = run_simulation("prevention", FOUR_WAY, echo=False)
    print(f"  Stop reason: {stop_reason}")

    assert stop_reason == "All processes finished"
    assert metrics.deadlock_count == 0
    assert metrics.denials_by_reason == {"OrderingViolation": 1}
    assert metrics.completed_processes == 3
    assert count_events(event_log, EventType.DEADLOCK) == 0


def test_two_way_identical_across_policies():
    """No cycle can form, so every policy behaves the same."""
    for policy in ("detection", "avoidance", "prevention"):
        _, metrics, stop_reason = run_simulation(policy, TWO_WAY, echo=False)
        assert stop_reason == "All processes finished", policy
        assert metrics.completed_processes == 2
        assert metrics.denial_count == 0
        assert metrics.deadlock_count == 0
        assert metrics.total_steps == 6


def test_staggered_traffic():
    for policy in ("detection", "avoidance"):
        _, metrics, stop_reason = run_simulation(policy, STAGGERED, echo=False)
        assert stop_reason == "All processes finished", policy
        assert metrics.completed_processes == 8
        assert metrics.deadlock_count == 0

    # Every westbound car is refused under resource ordering
    _, metrics, stop_reason = run_simulation("prevention", STAGGERED, echo=False)
    assert stop_reason == "All processes finished"
    assert metrics.completed_processes == 6
    assert metrics.denials_by_reason == {"OrderingViolation": 2}


def test_max_steps_override():
    _, metrics, stop_reason = run_simulation("detection", STAGGERED, max_steps=3, echo=False)
    assert stop_reason == "Maximum steps reached"
    assert metrics.total_steps == 3


def test_missing_scenario():
    event_log, metrics, stop_reason = run_simulation(
        "detection", str(SCENARIOS_DIR / "nope.json"), echo=False
    )
    assert stop_reason.startswith("Scenario error")
    assert event_log.events == []
    assert metrics.total_steps == 0


def test_log_file(tmp_path):
    log_path = tmp_path / "run.log"
    run_simulation("avoidance", FOUR_WAY, log_file=str(log_path), echo=False)

    content = log_path.read_text(encoding="utf-8")
    assert content.startswith("Simulation Log")
    assert "SIMULATION METRICS" in content
    assert "UnsafeAllocation: 1" in content


def test_compare_policies_report():
    results = compare_policies(
        ["detection", "avoidance", "prevention"],
        FOUR_WAY,
        run_simulation_func=run_simulation
    )
    assert [r.policy for r in results] == ["detection", "avoidance", "prevention"]
    assert results[0].had_deadlock() and not results[0].is_successful()
    assert results[1].is_successful() and not results[1].had_deadlock()

    report = generate_comparison_report(results, FOUR_WAY)
    print(report)
    assert "POLICY COMPARISON REPORT" in report
    assert "Fewest Deadlocks: AVOIDANCE, PREVENTION (tie at 0)" in report


def test_cli(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["simulator.py", "--policy", "avoidance", "--scenario", TWO_WAY])
    assert main() == 0
    assert "SIMULATION METRICS" in capsys.readouterr().out

    monkeypatch.setattr(sys, "argv", ["simulator.py", "--scenario", FOUR_WAY, "--compare-policies"])
    assert main() == 0
    assert "POLICY COMPARISON REPORT" in capsys.readouterr().out
