"""
CLI module for the scheduler.

Handles run configuration loading, validation, and solving a problem file.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .bridge import solve
from .config import ConfigValidationError, build_ga_config, load_ga_config
from .io_utils import decode_result, encode_problem, format_timeline, load_problem_yaml, save_result


def load_run_config(config_path: str) -> Dict[str, Any]:
    """
    Load run configuration from YAML file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If config is empty or not valid YAML
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_file, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML in configuration file: {e}")

    if config is None:
        raise ConfigValidationError("Configuration file is empty")

    if not isinstance(config, dict):
        raise ConfigValidationError("Configuration file must contain a mapping")

    return config


def validate_run_config(config: Dict[str, Any]) -> None:
    """
    Validate run configuration structure.

    Args:
        config: Run configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    for field in ('problem', 'budget'):
        if field not in config:
            raise ConfigValidationError(f"Missing required field: '{field}'")

    problem_path = Path(config['problem'])
    if not problem_path.exists():
        raise ConfigValidationError(f"Problem file not found: {problem_path}")

    budget = config['budget']
    if not isinstance(budget, dict):
        raise ConfigValidationError("'budget' must be a dictionary")

    for field in ('max_generations', 'time_limit_ms'):
        if field not in budget:
            raise ConfigValidationError(f"Missing required field: 'budget.{field}'")
        value = budget[field]
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ConfigValidationError(
                f"'budget.{field}' must be a non-negative integer, got: {value}"
            )

    ga_config = config.get('ga_config')
    if ga_config is not None and not isinstance(ga_config, (str, dict)):
        raise ConfigValidationError("'ga_config' must be a path or a dictionary")

    seed = config.get('random_seed')
    if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int) or seed < 0):
        raise ConfigValidationError(f"'random_seed' must be a non-negative integer, got: {seed}")

    output = config.get('output')
    if output is not None:
        if not isinstance(output, dict):
            raise ConfigValidationError("'output' must be a dictionary")
        if 'result_path' not in output:
            raise ConfigValidationError("Missing required field: 'output.result_path'")


def resolve_ga_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """GA configuration for a run: a YAML path, inline overrides or the defaults."""
    ga_config = config.get('ga_config')
    if isinstance(ga_config, str):
        return load_ga_config(ga_config)
    return build_ga_config(ga_config)


def run_from_config(config_path: str) -> Optional[Dict[str, Any]]:
    """
    Load run configuration, solve the problem and report the schedule.

    This is the main entry point called by diem_cli.py.

    Args:
        config_path: Path to run configuration YAML file

    Returns:
        Decoded result dictionary, or None for the empty result

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If config is invalid
    """
    print(f"Loading configuration from: {config_path}")
    config = load_run_config(config_path)

    print("Validating configuration...")
    validate_run_config(config)

    ga_config = resolve_ga_config(config)
    budget = config['budget']

    problem = load_problem_yaml(config['problem'])
    print(f"Problem: {config['problem']} ({len(problem.get('activities', []))} activities, "
          f"{problem.get('total_slots', 0)} slots)")
    print(f"Budget: {budget['max_generations']} generations, {budget['time_limit_ms']} ms\n")

    data = solve(
        encode_problem(problem),
        budget['max_generations'],
        budget['time_limit_ms'],
        config=ga_config,
        seed=config.get('random_seed'),
    )

    result = decode_result(data)
    if result is None:
        print("No schedule produced (problem rejected or nothing to place)")
    else:
        status = "feasible" if result['feasible'] else f"INFEASIBLE (violation {result['violation']:.1f})"
        print(f"Schedule: {status}, score {result['score']:.2f}, "
              f"{len(result['assignments'])} placements\n")
        for line in format_timeline(result, problem):
            print(line)

    output = config.get('output')
    if output is not None:
        path = save_result(data, output['result_path'], overwrite=output.get('overwrite', False))
        print(f"\nResult written to: {path}")

    print("\n✅ Run completed successfully!")
    return result
