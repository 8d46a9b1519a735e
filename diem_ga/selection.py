"""
Parent selection strategies.

Tournament and linear-rank selection, both biased toward fitter candidates
but stochastic to preserve diversity. All randomness comes from the
caller's generator.
"""

from typing import Dict, List

import numpy as np

from .data_models import Candidate
from .population import Population


def tournament_selection(
    population: Population,
    k: int,
    tournament_size: int,
    rng: np.random.Generator
) -> List[Candidate]:
    """
    Select k parents, each the best of a random tournament.

    Args:
        population: Evaluated population
        k: Number of parents to select
        tournament_size: Contestants per tournament (clamped to population size)
        rng: Random number generator

    Returns:
        List of k selected candidates (references into the population)
    """
    candidates = population.candidates
    size = min(tournament_size, len(candidates))
    parents = []
    for _ in range(k):
        contestants = rng.choice(len(candidates), size=size, replace=False)
        winner = max(contestants, key=lambda idx: (candidates[idx].fitness.sort_key, -idx))
        parents.append(candidates[winner])
    return parents


def rank_selection(
    population: Population,
    k: int,
    pressure: float,
    rng: np.random.Generator
) -> List[Candidate]:
    """
    Select k parents with linear ranking probabilities.

    The best candidate gets weight ``pressure`` and the worst ``2 - pressure``;
    pressure 1.0 is uniform selection.

    Args:
        population: Evaluated population
        k: Number of parents to select
        pressure: Selection pressure in [1.0, 2.0]
        rng: Random number generator

    Returns:
        List of k selected candidates
    """
    ranked = population.ranked()
    n = len(ranked)
    if n == 1:
        return [ranked[0]] * k

    positions = np.arange(n)
    weights = pressure - (2.0 * pressure - 2.0) * positions / (n - 1)
    probabilities = weights / weights.sum()

    picks = rng.choice(n, size=k, p=probabilities)
    return [ranked[i] for i in picks]


def select(population: Population, k: int, config: Dict, rng: np.random.Generator) -> List[Candidate]:
    """
    Select parents using the configured strategy.

    Args:
        population: Evaluated population
        k: Number of parents to select
        config: GA configuration
        rng: Random number generator

    Returns:
        List of k parents

    Raises:
        ValueError: If the population is empty or the strategy is unknown
    """
    if len(population) == 0:
        raise ValueError("Cannot select parents from an empty population")

    strategy = config.get('selection_strategy', 'tournament')

    if strategy == 'tournament':
        return tournament_selection(population, k, config.get('tournament_size', 4), rng)

    elif strategy == 'rank':
        return rank_selection(population, k, config.get('rank_pressure', 1.5), rng)

    else:
        raise ValueError(f"Unknown selection strategy: {strategy}")
