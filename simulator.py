#!/usr/bin/env python3
"""
Intersection Deadlock Simulator
Main entry point for the simulation system.

Cars are processes, lanes are single-unit resources and the intersection
is the critical section. This module is the discrete-step driver: it owns
all timing (settle and transit delays) and calls into the admission
controller one operation at a time.
"""

import argparse
import sys
from typing import Dict, Optional, Tuple

from analysis.analyzer import compare_policies, generate_comparison_report
from analysis.events import EventLog
from analysis.metrics import SimulationMetrics, format_metrics_report
from algorithms.recovery import recover_from_deadlock
from controller.admission import AdmissionController
from controller.results import Outcome, PolicyMode
from utils.config import SimulatorConfig, load_config
from utils.logger import SimulatorLogger
from utils.scenario_loader import Scenario, ScenarioLoadError, load_scenario


STOP_FINISHED = "All processes finished"
STOP_MAX_STEPS = "Maximum steps reached"


def run_simulation(
    policy: Optional[str] = None,
    scenario_path: str = "",
    verbose: Optional[bool] = None,
    recover: Optional[bool] = None,
    config: Optional[SimulatorConfig] = None,
    max_steps: Optional[int] = None,
    log_file: Optional[str] = None,
    echo: bool = True
) -> Tuple[EventLog, SimulationMetrics, str]:
    """
    Run one scenario under one policy.

    Step Ordering (for deterministic execution):
    1. Complete Running processes whose transit delay has elapsed
    2. Retry advance for Waiting processes (PID order)
    3. Create processes arriving at this step
    4. Grant first resources to Approaching processes whose settle delay
       has elapsed (PID order)
    5. Sample utilization
    6. Check for deadlock (every detect_interval steps): halt, or recover
       when recovery is enabled

    Args:
        policy: detection, avoidance or prevention (overrides the scenario)
        scenario_path: Path to scenario JSON file
        verbose: Enable debug logging
        recover: Abort victims on deadlock instead of halting
        config: Explicit base configuration (skips env/scenario resolution)
        max_steps: Step limit override
        log_file: Optional log file path
        echo: Print the log to the console

    Returns:
        Tuple of (EventLog, SimulationMetrics, stop_reason)
    """
    try:
        scenario = load_scenario(scenario_path)
    except ScenarioLoadError as e:
        SimulatorLogger(echo=echo).log(f"Failed to load scenario: {e}", "error")
        return EventLog(), SimulationMetrics(), f"Scenario error: {e}"

    base = config if config is not None else load_config(scenario.config)
    config = base.with_overrides(
        policy=policy, verbose=verbose, recover=recover, max_steps=max_steps, log_file=log_file
    )

    logger = SimulatorLogger(verbose=config.verbose, log_file=config.log_file, echo=echo)
    controller = AdmissionController(config.policy_mode, logger=logger)

    logger.log(f"\n{'='*60}")
    logger.log(f"SIMULATION START: {config.policy.upper()}")
    logger.log(f"Scenario: {scenario_path}")
    if scenario.description:
        logger.log(f"Description: {scenario.description}")
    logger.log(f"{'='*60}\n")

    stop_reason = _run_steps(controller, scenario, config)

    logger.log(f"\n{'='*60}")
    logger.log("SIMULATION COMPLETE")
    logger.log(f"{'='*60}")
    logger.log(format_metrics_report(
        controller.metrics,
        verbose=config.verbose,
        policy=config.policy,
        scenario=scenario_path,
        stop_reason=stop_reason
    ))

    logger.close()
    return controller.event_log, controller.metrics, stop_reason


def _run_steps(controller: AdmissionController, scenario: Scenario, config: SimulatorConfig) -> str:
    """
    Step loop. Tracks the per-process timers the core does not know about.

    Returns:
        Stop reason
    """
    logger = controller.logger
    approaching_since: Dict[int, int] = {}
    waiting_since: Dict[int, int] = {}
    running_since: Dict[int, int] = {}
    stop_reason = STOP_MAX_STEPS

    for step in range(config.max_steps):
        controller.current_step = step
        logger.log(f"\n{'-'*60}", "debug")
        logger.log(f"Step {step}", "debug")

        # Step 1: Transit finished -> complete
        for pid in sorted(running_since):
            if step - running_since[pid] >= config.transit_steps:
                controller.complete_process(pid)
                del running_since[pid]

        # Step 2: Waiting processes retry their second resource
        for pid in sorted(waiting_since):
            result = controller.advance(pid)
            if result.outcome == Outcome.ADVANCED:
                controller.metrics.record_waiting_time(pid, step - waiting_since.pop(pid))
                running_since[pid] = step

        # Step 3: New arrivals
        for direction in scenario.arrivals_by_step.get(step, []):
            result = controller.create_process(direction)
            if result.outcome == Outcome.CREATED:
                approaching_since[result.pid] = step

        # Step 4: Settled arrivals ask for their first resource
        for pid in sorted(approaching_since):
            if step - approaching_since[pid] < config.settle_steps:
                continue
            result = controller.grant_first(pid)
            if result.outcome == Outcome.GRANTED:
                waiting_since[pid] = step
                del approaching_since[pid]
            elif result.outcome != Outcome.STILL_WAITING:
                del approaching_since[pid]

        # Step 5: Utilization sample
        controller.metrics.record_step(step, {
            r.resource_id.label: 0 if r.is_free() else 1
            for r in controller.state.resources.values()
        })
        if config.verbose:
            logger.log_system_state(step, controller.state.snapshot().display())

        # Step 6: Deadlock check
        if step % config.detect_interval == 0:
            report = controller.check_deadlock()
            if report.deadlocked:
                if not config.recover:
                    logger.log(f"\nPolicy: {config.policy.upper()} without recovery - Halting simulation")
                    stop_reason = f"Deadlock detected at step {step}"
                    break

                logger.log("\nRecovery enabled - Initiating recovery")
                success, actions = recover_from_deadlock(controller)
                for action in actions:
                    logger.log(f"  {action}")
                if not success:
                    logger.log("  Recovery failed - halting simulation", "error")
                    stop_reason = f"Deadlock detected at step {step}"
                    break
                _forget_removed(controller, approaching_since, waiting_since, running_since)

        if step >= scenario.last_arrival_step and controller.state.num_processes == 0:
            logger.log(f"\nAll processes finished at step {step}")
            stop_reason = STOP_FINISHED
            break

    for pid, since in waiting_since.items():
        if controller.get_process(pid) is not None:
            controller.metrics.record_waiting_time(pid, controller.current_step - since)

    return stop_reason


def _forget_removed(controller: AdmissionController, *timers: Dict[int, int]) -> None:
    """Drop driver timers for processes no longer in the registry."""
    for timer in timers:
        for pid in list(timer):
            if controller.get_process(pid) is None:
                del timer[pid]


def main():
    """Main entry point for the simulator."""
    parser = argparse.ArgumentParser(
        description='Intersection Deadlock Simulator (detection / avoidance / prevention)'
    )
    parser.add_argument(
        '--policy',
        choices=[mode.value for mode in PolicyMode],
        default=None,
        help='Deadlock handling policy to use (default: scenario config, then detection)'
    )
    parser.add_argument(
        '--scenario',
        type=str,
        required=True,
        help='Path to scenario JSON file'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        default=None,
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--recover',
        action='store_true',
        default=None,
        help='Abort deadlocked processes instead of halting'
    )
    parser.add_argument(
        '--max-steps',
        type=int,
        default=None,
        help='Maximum number of simulation steps'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        default=None,
        help='Also write the log to this file'
    )
    parser.add_argument(
        '--compare-policies',
        action='store_true',
        help='Run the scenario under every policy and print a comparison'
    )

    args = parser.parse_args()

    try:
        if args.compare_policies:
            results = compare_policies(
                [mode.value for mode in PolicyMode],
                args.scenario,
                recover=args.recover,
                run_simulation_func=run_simulation
            )
            print(generate_comparison_report(results, args.scenario))
            return 0

        _, _, stop_reason = run_simulation(
            args.policy,
            args.scenario,
            verbose=args.verbose,
            recover=args.recover,
            max_steps=args.max_steps,
            log_file=args.log_file
        )
    except ValueError as e:
        parser.error(str(e))

    return 0 if not stop_reason.startswith("Scenario error") else 1


if __name__ == '__main__':
    sys.exit(main())
