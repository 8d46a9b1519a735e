"""
Crossover operators for schedule genomes.

Implements uniform and single-point crossover over slot-indexed genomes.
Parents are never modified; the child always owns fresh gene storage.
"""

from typing import Dict, Tuple

import numpy as np

from .data_models import Candidate


def uniform_crossover(
    parent_a: Candidate,
    parent_b: Candidate,
    config: Dict,
    rng: np.random.Generator
) -> Tuple[Candidate, np.ndarray]:
    """
    Combine two parents gene by gene.

    Each gene is taken from parent B with probability ``crossover_rate``,
    otherwise from parent A.

    Args:
        parent_a: First parent
        parent_b: Second parent
        config: GA configuration
        rng: Random number generator

    Returns:
        Tuple of (child, mask) where mask[i] is True if gene i came from B
    """
    _check_lengths(parent_a, parent_b)
    crossover_rate = config.get('crossover_rate', 0.5)

    mask = rng.random(len(parent_a.genes)) < crossover_rate
    genes = np.where(mask, parent_b.genes, parent_a.genes)

    child = Candidate(genes=genes, origin="crossover:uniform")
    return child, mask


def single_point_crossover(
    parent_a: Candidate,
    parent_b: Candidate,
    config: Dict,
    rng: np.random.Generator
) -> Tuple[Candidate, np.ndarray]:
    """
    Combine two parents around one cut point.

    Genes before the cut come from A, the rest from B. Because genes follow
    start-slot order, this keeps A's morning and B's evening intact.

    Args:
        parent_a: First parent
        parent_b: Second parent
        config: GA configuration
        rng: Random number generator

    Returns:
        Tuple of (child, mask) where mask[i] is True if gene i came from B
    """
    _check_lengths(parent_a, parent_b)
    length = len(parent_a.genes)

    cut = int(rng.integers(0, length + 1)) if length else 0
    mask = np.arange(length) >= cut
    genes = np.where(mask, parent_b.genes, parent_a.genes)

    child = Candidate(genes=genes, origin="crossover:single_point", metadata={'cut': cut})
    return child, mask


def apply_crossover(
    parent_a: Candidate,
    parent_b: Candidate,
    config: Dict,
    rng: np.random.Generator
) -> Tuple[Candidate, np.ndarray]:
    """
    Apply crossover using configured strategy.

    Args:
        parent_a: First parent
        parent_b: Second parent
        config: GA configuration
        rng: Random number generator

    Returns:
        Tuple of (child, mask)

    Raises:
        ValueError: If strategy is unknown
    """
    strategy = config.get('crossover_strategy', 'uniform')

    if strategy == 'uniform':
        return uniform_crossover(parent_a, parent_b, config, rng)

    elif strategy == 'single_point':
        return single_point_crossover(parent_a, parent_b, config, rng)

    else:
        raise ValueError(f"Unknown crossover strategy: {strategy}")


def _check_lengths(parent_a: Candidate, parent_b: Candidate) -> None:
    if len(parent_a.genes) != len(parent_b.genes):
        raise ValueError(
            f"Parents have different genome lengths: {len(parent_a.genes)} != {len(parent_b.genes)}"
        )
