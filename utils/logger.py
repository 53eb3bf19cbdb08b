"""
Logger utility for the Intersection Deadlock Simulator.

Provides step-by-step logging with verbosity levels.
"""

from typing import List, Optional
from datetime import datetime


class SimulatorLogger:
    """
    Logger for simulation events and decisions.

    Format: "Step X: PY requests R_East - GRANTED/DENIED (reason)"

    Every formatted line is also kept in ``entries`` so drivers can show a
    log panel or tests can inspect what was reported.
    """

    def __init__(self, verbose: bool = False, log_file: Optional[str] = None, echo: bool = True):
        """
        Initialize logger.

        Args:
            verbose: Enable debug output
            log_file: Optional file path for logging
            echo: Print to the console (False keeps entries/file only)
        """
        self.verbose = verbose
        self.log_file = log_file
        self.echo = echo
        self.entries: List[str] = []
        self.file_handle = None

        if self.log_file:
            self.file_handle = open(self.log_file, 'w', encoding='utf-8')
            self._write_header()

    def _write_header(self) -> None:
        """Write log file header."""
        if self.file_handle:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            self.file_handle.write(f"Simulation Log - {timestamp}\n")
            self.file_handle.write("="*60 + "\n\n")

    def log(self, message: str, level: str = "info") -> None:
        """
        Log a message.

        Args:
            message: Message to log
            level: Log level (info, debug, warning, error)
        """
        if level == "debug" and not self.verbose:
            return

        formatted = self._format_message(message, level)
        self.entries.append(formatted)

        if self.echo:
            print(formatted)

        if self.file_handle:
            self.file_handle.write(formatted + "\n")
            self.file_handle.flush()

    def _format_message(self, message: str, level: str) -> str:
        """Format message with level prefix."""
        if level == "error":
            return f"[ERROR] {message}"
        elif level == "warning":
            return f"[WARNING] {message}"
        elif level == "debug":
            return f"[DEBUG] {message}"
        else:
            return message

    def log_step(self, step: int, message: str, level: str = "info") -> None:
        """Log a simulation step message."""
        self.log(f"Step {step}: {message}", level)

    def log_request(
        self,
        step: int,
        pid: int,
        resource: str,
        granted: bool,
        reason: str
    ) -> None:
        """
        Log a resource request decision.

        Args:
            step: Current simulation step
            pid: Process ID
            resource: Label of the requested resource
            granted: Whether request was granted
            reason: Reason for decision
        """
        status = "GRANTED" if granted else "DENIED"
        message = f"P{pid} requests {resource} - {status} ({reason})"
        self.log_step(step, message, "info" if granted else "warning")

    def log_advance(self, step: int, pid: int, held: str, released: str) -> None:
        """Log a process moving onto its second resource."""
        self.log_step(step, f"P{pid} ADVANCED: holds {held}, released {released}")

    def log_completion(self, step: int, pid: int, released: str) -> None:
        """Log a process completing and releasing its resource."""
        self.log_step(step, f"P{pid} - COMPLETED (released: {released})")

    def log_deadlock(self, step: int, cycle: list) -> None:
        """
        Log deadlock detection.

        Args:
            step: Current simulation step
            cycle: Alternating process/resource labels of the cycle
        """
        message = f"DEADLOCK DETECTED - Cycle: {' -> '.join(cycle)}"
        self.log_step(step, message, "error")

    def log_recovery(self, step: int, victim_pid: int, resources_held: str) -> None:
        """
        Log recovery action.

        Args:
            step: Current simulation step
            victim_pid: PID of aborted process
            resources_held: String describing resources held
        """
        message = f"RECOVERY - Aborted P{victim_pid} (holding {resources_held})"
        self.log_step(step, message, "warning")

    def log_system_state(self, step: int, state_str: str) -> None:
        """
        Log system state snapshot.

        Args:
            step: Current simulation step
            state_str: Formatted system state
        """
        if self.verbose:
            self.log_step(step, f"System State:\n{state_str}", "debug")

    def close(self) -> None:
        """Close log file if open."""
        if self.file_handle:
            self.file_handle.close()
            self.file_handle = None

    def __del__(self):
        """Cleanup on destruction."""
        self.close()
