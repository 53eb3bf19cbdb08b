"""
Scenario Loader for the Intersection Deadlock Simulator.

Loads and validates JSON scenario files describing vehicle arrivals.

Format:
    {
        "description": "Four cars arrive at once",
        "config": {"policy": "detection", "settle_steps": 1},
        "arrivals": [
            {"step": 0, "direction": "north"},
            {"step": 0, "direction": "east"}
        ]
    }
"""

import json
from dataclasses import dataclass, field
from typing import Dict, List, Any

from models.process import Direction


class ScenarioLoadError(Exception):
    """Exception raised when scenario file cannot be loaded or is invalid."""
    pass


@dataclass
class Scenario:
    """
    A loaded scenario.

    Attributes:
        description: Free text
        config: Raw "config" block (validated later by utils.config)
        arrivals_by_step: Step -> directions arriving at that step, in file order
    """
    description: str = ""
    config: Dict[str, Any] = field(default_factory=dict)
    arrivals_by_step: Dict[int, List[Direction]] = field(default_factory=dict)

    @property
    def total_arrivals(self) -> int:
        return sum(len(v) for v in self.arrivals_by_step.values())

    @property
    def last_arrival_step(self) -> int:
        return max(self.arrivals_by_step) if self.arrivals_by_step else 0


def load_scenario(file_path: str) -> Scenario:
    """
    Load scenario from JSON file.

    Args:
        file_path: Path to scenario JSON file

    Returns:
        Scenario

    Raises:
        ScenarioLoadError: If file cannot be loaded or is invalid
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ScenarioLoadError(f"Scenario file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise ScenarioLoadError(f"Invalid JSON in scenario file: {e}")

    return parse_scenario(data)


def parse_scenario(data: Dict[str, Any]) -> Scenario:
    """
    Validate already-decoded scenario data.

    Raises:
        ScenarioLoadError: If the data is invalid
    """
    if not isinstance(data, dict):
        raise ScenarioLoadError("Scenario must be a JSON object")
    if 'arrivals' not in data:
        raise ScenarioLoadError("Scenario missing 'arrivals' field")
    if not isinstance(data['arrivals'], list):
        raise ScenarioLoadError("'arrivals' must be a list")

    config = data.get('config', {})
    if not isinstance(config, dict):
        raise ScenarioLoadError("'config' must be an object")

    arrivals_by_step: Dict[int, List[Direction]] = {}
    for i, arrival in enumerate(data['arrivals']):
        step, direction = _load_arrival(i, arrival)
        arrivals_by_step.setdefault(step, []).append(direction)

    return Scenario(
        description=data.get('description', ''),
        config=dict(config),
        arrivals_by_step=dict(sorted(arrivals_by_step.items())),
    )


def _load_arrival(index: int, arrival: Any):
    """
    Validate a single arrival entry.

    Returns:
        Tuple of (step, Direction)
    """
    if not isinstance(arrival, dict):
        raise ScenarioLoadError(f"Arrival {index}: must be an object")
    if 'step' not in arrival:
        raise ScenarioLoadError(f"Arrival {index}: missing 'step' field")
    if 'direction' not in arrival:
        raise ScenarioLoadError(f"Arrival {index}: missing 'direction' field")

    step = arrival['step']
    if not isinstance(step, int) or isinstance(step, bool) or step < 0:
        raise ScenarioLoadError(f"Arrival {index}: step must be a non-negative integer")

    try:
        direction = Direction.parse(arrival['direction'])
    except ValueError as e:
        raise ScenarioLoadError(f"Arrival {index}: {e}")

    return step, direction


def get_scenario_description(file_path: str) -> str:
    """
    Get description from scenario file without full loading.

    Args:
        file_path: Path to scenario JSON file

    Returns:
        Description string, or empty string if not readable
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return data.get('description', '')
    except (OSError, ValueError, AttributeError):
        return ''
