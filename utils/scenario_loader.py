"""
Scenario Loader for the Concurrency Problem Simulator.

Loads and validates JSON scenario files and builds the configuration object
for the simulator they name. Matrices may be given as JSON lists of rows or
as whitespace/comma separated text, one row per line.
"""

import json
import re
from typing import Any, Dict, List, Optional, Tuple

from models.liveness import DetectionConfig
from models.resource_state import MalformedInputError
from simulations.banker import BankerConfig, BankerSimulation
from simulations.philosophers import PhilosophersConfig, DiningPhilosophersSimulation
from simulations.producer_consumer import ProducerConsumerConfig, ProducerConsumerSimulation
from simulations.reader_writer import ReaderWriterConfig, ReaderWriterSimulation
from utils.logger import SimulatorLogger


class ScenarioLoadError(Exception):
    """Exception raised when scenario file cannot be loaded or is invalid."""
    pass


MODULES = {
    'banker': (BankerConfig, BankerSimulation),
    'philosophers': (PhilosophersConfig, DiningPhilosophersSimulation),
    'producer_consumer': (ProducerConsumerConfig, ProducerConsumerSimulation),
    'reader_writer': (ReaderWriterConfig, ReaderWriterSimulation),
}

_SEPARATORS = re.compile(r"[\s,]+")


def parse_vector(text: str, m: Optional[int] = None) -> List[int]:
    """
    Parse a whitespace/comma separated vector.

    Args:
        text: e.g. "3 3 2" or "3,3,2"
        m: Expected length, if known

    Returns:
        List of integers

    Raises:
        MalformedInputError: On a non-integer token or a length mismatch
    """
    tokens = [t for t in _SEPARATORS.split(text.strip()) if t]
    try:
        values = [int(t) for t in tokens]
    except ValueError as e:
        raise MalformedInputError(f"Invalid number in '{text.strip()}': {e}")
    if m is not None and len(values) != m:
        raise MalformedInputError(f"Expected {m} values, got {len(values)}")
    return values


def parse_matrix(text: str, rows: Optional[int] = None, cols: Optional[int] = None) -> List[List[int]]:
    """
    Parse a matrix written one row per line.

    Raises:
        MalformedInputError: On a row or column count mismatch
    """
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if rows is not None and len(lines) != rows:
        raise MalformedInputError(f"Expected {rows} rows, got {len(lines)}")
    matrix = []
    for r, line in enumerate(lines):
        values = parse_vector(line)
        if cols is not None and len(values) != cols:
            raise MalformedInputError(f"Row {r} expected {cols} cols, got {len(values)}")
        matrix.append(values)
    return matrix


def load_scenario(file_path: str) -> Tuple[str, Any]:
    """
    Load scenario from JSON file.

    Args:
        file_path: Path to scenario JSON file

    Returns:
        Tuple of (module name, configuration object for that module)

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

    if not isinstance(data, dict):
        raise ScenarioLoadError("Scenario must be a JSON object")
    if 'module' not in data:
        raise ScenarioLoadError("Scenario missing 'module' field")

    module = data['module']
    return module, build_config(module, data)


def build_config(module: str, data: Dict) -> Any:
    """
    Build the configuration object for a module from scenario data.

    Raises:
        ScenarioLoadError: Unknown module, missing fields or malformed values
    """
    if module not in MODULES:
        raise ScenarioLoadError(
            f"Unknown module '{module}' (expected one of {', '.join(sorted(MODULES))})"
        )

    try:
        detection = _load_detection(data.get('detection', {}))
        if module == 'banker':
            return _load_banker(data, detection)
        if module == 'philosophers':
            return PhilosophersConfig(
                count=int(data.get('count', 5)),
                release_probability=float(data.get('release_probability', 0.5)),
                seed=data.get('seed'),
                detection=_with_default_threshold(data, detection, 25)
            )
        if module == 'producer_consumer':
            return ProducerConsumerConfig(
                buffer_size=int(data.get('buffer_size', 8)),
                producers=int(data.get('producers', 2)),
                consumers=int(data.get('consumers', 2)),
                detection=_with_default_threshold(data, detection, 15)
            )
        return ReaderWriterConfig(
            readers=int(data.get('readers', 4)),
            writers=int(data.get('writers', 2)),
            mode=str(data.get('mode', 'fair')),
            hold_ticks=int(data.get('hold_ticks', 1)),
            detection=detection
        )
    except (MalformedInputError, ValueError, TypeError) as e:
        raise ScenarioLoadError(f"Invalid '{module}' scenario: {e}")


def _load_detection(detection_data: Dict) -> DetectionConfig:
    """Build the detection configuration; missing keys take the defaults."""
    return DetectionConfig(
        starvation_threshold=int(detection_data.get('starvation_threshold', 20)),
        enable_starvation_detection=_load_flag(detection_data, 'enable_starvation_detection'),
        enable_waiting_detection=_load_flag(detection_data, 'enable_waiting_detection'),
        enable_blocking_detection=_load_flag(detection_data, 'enable_blocking_detection')
    )


def _load_flag(detection_data: Dict, key: str) -> bool:
    value = detection_data.get(key, True)
    if not isinstance(value, bool):
        raise ScenarioLoadError(f"Detection flag '{key}' must be true or false, got {value!r}")
    return value


def _with_default_threshold(data: Dict, detection: DetectionConfig, threshold: int) -> DetectionConfig:
    """Apply a module-specific default threshold when the scenario gives none."""
    if 'starvation_threshold' in data.get('detection', {}):
        return detection
    return DetectionConfig(
        starvation_threshold=threshold,
        enable_starvation_detection=detection.enable_starvation_detection,
        enable_waiting_detection=detection.enable_waiting_detection,
        enable_blocking_detection=detection.enable_blocking_detection
    )


def _rows(value: Any, name: str, rows: Optional[int], cols: Optional[int]) -> List[List[int]]:
    if isinstance(value, str):
        return parse_matrix(value, rows, cols)
    if not isinstance(value, list):
        raise MalformedInputError(f"'{name}' must be a list of rows or matrix text")
    return [[int(v) for v in row] for row in value]


def _vector(value: Any, m: Optional[int]) -> Optional[List[int]]:
    if value is None:
        return None
    if isinstance(value, str):
        return parse_vector(value, m)
    return [int(v) for v in value]


def _load_banker(data: Dict, detection: DetectionConfig) -> BankerConfig:
    for field_name in ('max', 'allocation'):
        if field_name not in data:
            raise ScenarioLoadError(f"Banker scenario missing '{field_name}' field")

    num_processes = data.get('processes')
    num_resources = data.get('resources')
    max_rows = _rows(data['max'], 'max', num_processes, num_resources)
    allocation_rows = _rows(data['allocation'], 'allocation', num_processes, num_resources)

    return BankerConfig(
        max_rows=max_rows,
        allocation_rows=allocation_rows,
        num_processes=num_processes,
        num_resources=num_resources,
        available=_vector(data.get('available'), num_resources),
        total=_vector(data.get('total'), num_resources),
        scan_order=data.get('scan_order', 'lowest_index'),
        detection=detection
    )


def create_simulation(module: str, config: Any, logger: Optional[SimulatorLogger] = None):
    """
    Instantiate the simulator for a module.

    Raises:
        ScenarioLoadError: Unknown module or configuration rejected at reset
    """
    if module not in MODULES:
        raise ScenarioLoadError(f"Unknown module '{module}'")
    _, simulation_class = MODULES[module]
    try:
        return simulation_class(config, logger)
    except (MalformedInputError, ValueError) as e:
        raise ScenarioLoadError(f"Invalid '{module}' scenario: {e}")


def get_scenario_description(file_path: str) -> str:
    """
    Get description from scenario file without full loading.

    Returns:
        Description string, or empty string if not present or unreadable
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return ''
    return data.get('description', '') if isinstance(data, dict) else ''
