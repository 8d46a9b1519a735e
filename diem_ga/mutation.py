"""
Mutation operators for schedule genomes.

Implements allele reassignment, gene swap and gene clearing. Every operator
keeps alleles inside [0, sentinel] so mutated genomes stay structurally valid.
"""

from typing import Dict, List, Tuple

import numpy as np

from .data_models import Candidate


def reassign_genes(
    candidate: Candidate,
    sentinel: int,
    count: int,
    rng: np.random.Generator
) -> Tuple[Candidate, List[str]]:
    """
    Give ``count`` random genes a random allele (activity or empty).

    Args:
        candidate: Candidate to mutate in place
        sentinel: Empty allele
        count: Number of genes to reassign (clamped to genome length)
        rng: Random number generator

    Returns:
        Tuple of (candidate, operation_log)
    """
    length = len(candidate.genes)
    if length == 0:
        return candidate, ["reassign: empty genome"]

    indices = rng.choice(length, size=min(count, length), replace=False)
    alleles = rng.integers(0, sentinel + 1, size=len(indices))
    candidate.genes[indices] = alleles

    op_log = [f"reassign: gene {int(i)} -> {int(a)}" for i, a in zip(indices, alleles)]
    return candidate, op_log


def swap_genes(
    candidate: Candidate,
    rng: np.random.Generator
) -> Tuple[Candidate, List[str]]:
    """
    Swap the alleles of two random genes (moves an activity to another slot).

    Returns:
        Tuple of (candidate, operation_log)
    """
    length = len(candidate.genes)
    if length < 2:
        return candidate, [f"swap: only {length} genes"]

    i, j = rng.choice(length, size=2, replace=False)
    candidate.genes[[i, j]] = candidate.genes[[j, i]]

    return candidate, [f"swap: genes {int(i)} <-> {int(j)}"]


def clear_genes(
    candidate: Candidate,
    sentinel: int,
    rng: np.random.Generator
) -> Tuple[Candidate, List[str]]:
    """
    Empty one random occupied gene.

    Returns:
        Tuple of (candidate, operation_log)
    """
    occupied = np.flatnonzero(candidate.genes != sentinel)
    if len(occupied) == 0:
        return candidate, ["clear: no occupied genes"]

    idx = occupied[rng.integers(0, len(occupied))]
    candidate.genes[idx] = sentinel

    return candidate, [f"clear: gene {int(idx)}"]


def mutate(
    candidate: Candidate,
    sentinel: int,
    config: Dict,
    rng: np.random.Generator
) -> Tuple[Candidate, List[str]]:
    """
    Apply a mutation operator according to configuration.

    With probability ``mutation_rate`` one operator is drawn from the
    weighted ``mutation.operators`` table and applied. The returned candidate
    is a copy with its cached fitness invalidated; the input is untouched.

    Args:
        candidate: Candidate to mutate
        sentinel: Empty allele
        config: GA configuration with mutation settings
        rng: Random number generator

    Returns:
        Tuple of (mutated_candidate, operation_log)
    """
    mutation_rate = config.get('mutation_rate', 0.28)

    if rng.random() >= mutation_rate:
        return candidate, ["no_mutation: skipped (probability)"]

    mutation_config = config.get('mutation', {})
    operator_probs = mutation_config.get('operators', {'reassign': 1.0})
    genes_per_op = mutation_config.get('genes_per_op', 2)

    names = list(operator_probs.keys())
    weights = np.array([operator_probs[name] for name in names], dtype=float)
    selected_op = names[rng.choice(len(names), p=weights / weights.sum())]

    mutated = candidate.copy()
    mutated.invalidate()

    if selected_op == 'reassign':
        mutated, log = reassign_genes(mutated, sentinel, genes_per_op, rng)
    elif selected_op == 'swap':
        mutated, log = swap_genes(mutated, rng)
    elif selected_op == 'clear':
        mutated, log = clear_genes(mutated, sentinel, rng)
    else:
        raise ValueError(f"Unknown mutation operator: {selected_op}")

    return mutated, log
