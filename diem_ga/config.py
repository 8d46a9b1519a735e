"""
GA configuration loading.

Configuration is a plain dict (optionally loaded from YAML) merged onto
DEFAULT_GA_CONFIG. Operators read their settings with ``config.get``.
"""

import copy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


class ConfigValidationError(Exception):
    """Raised when GA or run configuration is invalid."""
    pass


DEFAULT_GA_CONFIG: Dict[str, Any] = {
    'population_size': 160,
    'elitism_rate': 0.1,
    'selection_strategy': 'tournament',
    'tournament_size': 4,
    'rank_pressure': 1.5,
    'crossover_strategy': 'uniform',
    'crossover_rate': 0.5,
    'mutation_rate': 0.28,
    'mutation': {
        'operators': {
            'reassign': 0.6,
            'swap': 0.2,
            'clear': 0.2,
        },
        'genes_per_op': 2,
    },
    'seeding': {
        'random_density': 0.25,
    },
    'max_stale_generations': 60,
    'random_seed': 0,
}

SELECTION_STRATEGIES = ('tournament', 'rank')
CROSSOVER_STRATEGIES = ('uniform', 'single_point')
MUTATION_OPERATORS = ('reassign', 'swap', 'clear')


def merge_config(base: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Deep-merge overrides onto a copy of base.

    Args:
        base: Base configuration (not modified)
        overrides: Values to apply; nested dicts are merged key by key

    Returns:
        New merged configuration dict
    """
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def build_ga_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Return a validated GA config with overrides applied to the defaults."""
    config = merge_config(DEFAULT_GA_CONFIG, overrides)
    validate_ga_config(config)
    return config


def load_ga_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load GA configuration from YAML file and merge it onto the defaults.

    Args:
        config_path: Path to config YAML file

    Returns:
        Validated configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If YAML is invalid or values are out of range
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            overrides = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML in configuration file: {e}")

    if overrides is None:
        overrides = {}
    if not isinstance(overrides, dict):
        raise ConfigValidationError("GA configuration must be a mapping")

    return build_ga_config(overrides)


def validate_ga_config(config: Dict[str, Any]) -> None:
    """
    Validate GA configuration values.

    Args:
        config: GA configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    population_size = config.get('population_size')
    if not _is_int(population_size) or population_size < 2:
        raise ConfigValidationError(
            f"'population_size' must be an integer >= 2, got: {population_size}"
        )

    for key in ('elitism_rate', 'crossover_rate', 'mutation_rate'):
        _require_probability(config.get(key), key)

    if config.get('selection_strategy') not in SELECTION_STRATEGIES:
        raise ConfigValidationError(
            f"Invalid selection_strategy: '{config.get('selection_strategy')}'. "
            f"Must be one of {', '.join(SELECTION_STRATEGIES)}"
        )

    tournament_size = config.get('tournament_size')
    if not _is_int(tournament_size) or tournament_size < 1:
        raise ConfigValidationError(
            f"'tournament_size' must be a positive integer, got: {tournament_size}"
        )

    rank_pressure = config.get('rank_pressure')
    if not _is_number(rank_pressure) or not 1.0 <= rank_pressure <= 2.0:
        raise ConfigValidationError(
            f"'rank_pressure' must be between 1.0 and 2.0, got: {rank_pressure}"
        )

    if config.get('crossover_strategy') not in CROSSOVER_STRATEGIES:
        raise ConfigValidationError(
            f"Invalid crossover_strategy: '{config.get('crossover_strategy')}'. "
            f"Must be one of {', '.join(CROSSOVER_STRATEGIES)}"
        )

    mutation = config.get('mutation', {})
    if not isinstance(mutation, dict):
        raise ConfigValidationError("'mutation' must be a dictionary")

    operators = mutation.get('operators', {})
    if not isinstance(operators, dict) or not operators:
        raise ConfigValidationError("'mutation.operators' must be a non-empty dictionary")
    for name, weight in operators.items():
        if name not in MUTATION_OPERATORS:
            raise ConfigValidationError(f"Unknown mutation operator: '{name}'")
        if not _is_number(weight) or weight < 0:
            raise ConfigValidationError(
                f"'mutation.operators.{name}' must be a non-negative number, got: {weight}"
            )
    if sum(operators.values()) <= 0:
        raise ConfigValidationError("'mutation.operators' weights must not all be zero")

    genes_per_op = mutation.get('genes_per_op', 1)
    if not _is_int(genes_per_op) or genes_per_op < 1:
        raise ConfigValidationError(
            f"'mutation.genes_per_op' must be a positive integer, got: {genes_per_op}"
        )

    seeding = config.get('seeding', {})
    if not isinstance(seeding, dict):
        raise ConfigValidationError("'seeding' must be a dictionary")
    _require_probability(seeding.get('random_density', 0.25), 'seeding.random_density')

    max_stale = config.get('max_stale_generations')
    if max_stale is not None and (not _is_int(max_stale) or max_stale < 1):
        raise ConfigValidationError(
            f"'max_stale_generations' must be a positive integer or null, got: {max_stale}"
        )

    seed = config.get('random_seed')
    if not _is_int(seed) or seed < 0:
        raise ConfigValidationError(
            f"'random_seed' must be a non-negative integer, got: {seed}"
        )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_probability(value: Any, name: str) -> None:
    if not _is_number(value) or not 0.0 <= value <= 1.0:
        raise ConfigValidationError(f"'{name}' must be between 0 and 1, got: {value}")
