"""
Deadlock Resolution for the Intersection Deadlock Simulator.

Both strategies are invoked by the driver, never by the controller itself,
and both go through ordinary controller operations:
- abort victims from the cycle (explicit cancellation)
- retire processes in Banker's safe-sequence order (advance + complete)
"""

from typing import List, Tuple

from analysis.events import EventType, SimulationEvent
from controller.results import Outcome
from models.process import ProcessState


def select_victim(deadlocked_pids: List[int], strategy: str = "youngest") -> int:
    """
    Select victim process to abort.

    Strategies:
    - "youngest": Most recently created process (highest PID)
    - "oldest": Earliest created process (lowest PID)

    Args:
        deadlocked_pids: PIDs on the cycle
        strategy: Selection strategy

    Returns:
        PID of selected victim, or -1 if there is none
    """
    if not deadlocked_pids:
        return -1

    if strategy == "oldest":
        return min(deadlocked_pids)
    return max(deadlocked_pids)


def recover_from_deadlock(controller, strategy: str = "youngest") -> Tuple[bool, List[str]]:
    """
    Abort victims one at a time until the wait-for graph has no cycle.

    Args:
        controller: AdmissionController to operate on
        strategy: Victim selection strategy

    Returns:
        Tuple of (success, list of action messages)
    """
    actions = []
    report = controller.check_deadlock()

    if not report.deadlocked:
        return False, ["No deadlocked processes to recover"]

    while report.deadlocked:
        victim_pid = select_victim(report.pids, strategy)
        process = controller.get_process(victim_pid)
        held = process.held.label if process and process.held else "nothing"

        result = controller.cancel_process(victim_pid)
        if result.outcome != Outcome.CANCELLED:
            actions.append(f"FAILED: {result}")
            return False, actions

        controller.logger.log_recovery(controller.current_step, victim_pid, held)
        controller.event_log.add(SimulationEvent(
            step=controller.current_step,
            event_type=EventType.RECOVERY,
            process_id=victim_pid,
            resource=None if held == "nothing" else held,
            message=f"Aborted P{victim_pid} to break the cycle",
        ))
        actions.append(f"RECOVERY: Aborted P{victim_pid} (holding {held})")

        report = controller.check_deadlock()

    actions.append("Deadlock resolved - cycle broken")
    return True, actions


def drain_safe_sequence(controller) -> Tuple[bool, List[str]]:
    """
    Retire every admitted process in Banker's safe-sequence order.

    Each process in the sequence is advanced (if still Waiting) and then
    completed, which frees the resource the next one needs. Nothing is
    done when the current state is unsafe.

    Args:
        controller: AdmissionController to operate on

    Returns:
        Tuple of (success, list of action messages)
    """
    report = controller.run_safety_analysis()
    seq_str = " -> ".join(f"P{pid}" for pid in report.sequence)

    if not report.safe:
        return False, [f"UNSAFE: no safe sequence (partial: {seq_str or 'none'})"]

    actions = [f"SAFE SEQUENCE: {seq_str or '(empty)'}"]
    for pid in report.sequence:
        process = controller.get_process(pid)
        if process is None:
            continue

        if process.state == ProcessState.WAITING:
            result = controller.advance(pid)
            if result.outcome != Outcome.ADVANCED:
                actions.append(f"FAILED: {result}")
                return False, actions

        result = controller.complete_process(pid)
        if result.outcome != Outcome.COMPLETED:
            actions.append(f"FAILED: {result}")
            return False, actions
        actions.append(f"P{pid} completed execution and released resources")

    return True, actions
