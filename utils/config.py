"""
Configuration for the Intersection Deadlock Simulator.

Resolution order (later wins): built-in defaults, DEADLOCK_SIM_*
environment variables, the scenario file's "config" block, CLI flags.
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from controller.results import PolicyMode


ENV_PREFIX = "DEADLOCK_SIM_"


def _parse_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError as e:
        raise ValueError(f"Invalid int for {name}: {v!r}") from e


def _parse_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class SimulatorConfig:
    """
    Driver settings.

    Attributes:
        policy: Deadlock handling policy name
        settle_steps: Steps between creation and the first-resource grant
        transit_steps: Steps between advancing and completing
        max_steps: Hard stop for the step loop
        detect_interval: Steps between deadlock checks in the driver
        recover: Abort victims when a deadlock is detected instead of halting
        verbose: Enable debug logging
        log_file: Optional path for a copy of the log
    """
    policy: str = PolicyMode.DETECTION.value
    settle_steps: int = 1
    transit_steps: int = 2
    max_steps: int = 50
    detect_interval: int = 1
    recover: bool = False
    verbose: bool = False
    log_file: Optional[str] = None

    def __post_init__(self):
        """Validate settings."""
        PolicyMode.parse(self.policy)
        if self.settle_steps < 0:
            raise ValueError(f"settle_steps must be >= 0, got {self.settle_steps}")
        if self.transit_steps < 0:
            raise ValueError(f"transit_steps must be >= 0, got {self.transit_steps}")
        if self.max_steps <= 0:
            raise ValueError(f"max_steps must be positive, got {self.max_steps}")
        if self.detect_interval <= 0:
            raise ValueError(f"detect_interval must be positive, got {self.detect_interval}")

    @property
    def policy_mode(self) -> PolicyMode:
        return PolicyMode.parse(self.policy)

    def with_overrides(self, overrides: Optional[Dict[str, Any]] = None, **kwargs) -> "SimulatorConfig":
        """
        Copy with the given settings replaced; None values are ignored.

        Raises:
            ValueError: On unknown setting names or invalid values
        """
        merged = dict(overrides or {})
        merged.update(kwargs)
        known = {f.name for f in fields(self)}
        unknown = set(merged) - known
        if unknown:
            raise ValueError(f"Unknown config setting(s): {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in merged.items() if v is not None}
        if "policy" in changes:
            changes["policy"] = PolicyMode.parse(changes["policy"]).value
        return replace(self, **changes)


def config_from_env() -> SimulatorConfig:
    """Defaults overlaid with DEADLOCK_SIM_* environment variables."""
    defaults = SimulatorConfig()
    return SimulatorConfig(
        policy=os.getenv(ENV_PREFIX + "POLICY", defaults.policy),
        settle_steps=_parse_int(ENV_PREFIX + "SETTLE_STEPS", defaults.settle_steps),
        transit_steps=_parse_int(ENV_PREFIX + "TRANSIT_STEPS", defaults.transit_steps),
        max_steps=_parse_int(ENV_PREFIX + "MAX_STEPS", defaults.max_steps),
        detect_interval=_parse_int(ENV_PREFIX + "DETECT_INTERVAL", defaults.detect_interval),
        recover=_parse_bool(ENV_PREFIX + "RECOVER", defaults.recover),
        verbose=_parse_bool(ENV_PREFIX + "VERBOSE", defaults.verbose),
        log_file=os.getenv(ENV_PREFIX + "LOG_FILE") or None,
    )


def load_config(scenario_config: Optional[Dict[str, Any]] = None, **cli_overrides) -> SimulatorConfig:
    """
    Resolve the effective configuration.

    Args:
        scenario_config: "config" block from a scenario file
        **cli_overrides: Values from command line flags (None = not given)

    Returns:
        SimulatorConfig
    """
    return config_from_env().with_overrides(scenario_config).with_overrides(cli_overrides)
