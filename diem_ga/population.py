"""
Population management.

Seeds the initial fixed-size population and builds each next generation
from elites plus offspring. The population size never changes within a run.
"""

import logging
import math
from typing import Callable, Dict, Iterator, List, Optional

import numpy as np

from .data_models import Candidate, Problem
from .candidate_slots import build_fixed_occupancy_mask, build_forbidden_slot_mask
from .fitness import FitnessEvaluator

logger = logging.getLogger(__name__)

# Genes swept by the greedy seed between two budget checks
BUDGET_CHECK_INTERVAL = 1024


class PopulationSizeError(RuntimeError):
    """Raised when a generation would not hold exactly P candidates."""
    pass


class GenomeStructureError(RuntimeError):
    """Raised when a genome has the wrong length or an allele out of range."""
    pass


class Population:
    """
    Ordered, fixed-size set of candidates for one generation.

    Attributes:
        candidates: Candidates in slot order
        size: Required number of candidates (P)
        generation: Generation counter (0 for the seeded population)
    """

    def __init__(self, candidates: List[Candidate], size: int, generation: int = 0):
        if len(candidates) != size:
            raise PopulationSizeError(
                f"Generation {generation} holds {len(candidates)} candidates, expected {size}"
            )
        self.candidates = candidates
        self.size = size
        self.generation = generation

    def __len__(self) -> int:
        return len(self.candidates)

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self.candidates)

    def __getitem__(self, index: int) -> Candidate:
        return self.candidates[index]

    def ranked(self) -> List[Candidate]:
        """
        Candidates sorted best first (stable on ties).

        Raises:
            ValueError: If any candidate has not been evaluated
        """
        if any(c.fitness is None for c in self.candidates):
            raise ValueError("All candidates must be evaluated before ranking")
        return sorted(self.candidates, key=lambda c: c.fitness.sort_key, reverse=True)

    def best(self) -> Candidate:
        return self.ranked()[0]


def validate_genome(genes: np.ndarray, length: int, sentinel: int) -> None:
    """
    Check a genome's structural well-formedness (not feasibility).

    Raises:
        GenomeStructureError: If shape or allele range is wrong
    """
    if genes.ndim != 1 or genes.shape[0] != length:
        raise GenomeStructureError(f"Genome has shape {genes.shape}, expected ({length},)")
    if length and (genes.min() < 0 or genes.max() > sentinel):
        raise GenomeStructureError(f"Genome allele outside [0, {sentinel}]")


def empty_genes(length: int, sentinel: int) -> np.ndarray:
    return np.full(length, sentinel, dtype=np.int64)


def random_genes(length: int, sentinel: int, density: float, rng: np.random.Generator) -> np.ndarray:
    """
    Random genome where each gene holds an activity with probability density.

    Args:
        length: Number of genes
        sentinel: Empty allele (also the floating activity count)
        density: Probability that a gene places an activity
        rng: Random number generator

    Returns:
        Integer genome
    """
    genes = empty_genes(length, sentinel)
    if sentinel == 0:
        return genes
    placed = rng.random(length) < density
    genes[placed] = rng.integers(0, sentinel, size=int(placed.sum()))
    return genes


def greedy_genes(
    problem: Problem,
    candidate_slots: np.ndarray,
    out_of_time: Optional[Callable[[], bool]] = None
) -> np.ndarray:
    """
    Constructive genome: sweep start slots and place activities where they fit.

    Activities are tried in descending priority, cycling so that each placement
    moves on to the next activity. An activity fits when it ends inside the
    horizon and covers no forbidden, fixed or already placed slot. Activities
    with negative priority are never placed.

    Args:
        problem: Decoded problem
        candidate_slots: Start slot per gene
        out_of_time: Optional budget check; the sweep stops early (leaving the
            remaining genes empty) once it returns True

    Returns:
        Integer genome (deterministic for a given problem and no early stop)
    """
    sentinel = problem.floating_count
    genes = empty_genes(len(candidate_slots), sentinel)

    order = sorted(
        (allele for allele in range(sentinel)
         if problem.activities[problem.floating_indices[allele]].priority >= 0),
        key=lambda allele: -problem.activities[problem.floating_indices[allele]].priority,
    )
    if not order:
        return genes

    occupied = build_forbidden_slot_mask(problem) | build_fixed_occupancy_mask(problem)
    pointer = 0

    for gene_idx, slot in enumerate(candidate_slots):
        if out_of_time is not None and gene_idx % BUDGET_CHECK_INTERVAL == 0 and out_of_time():
            break
        slot = int(slot)
        if occupied[slot]:
            continue
        for offset in range(len(order)):
            allele = order[(pointer + offset) % len(order)]
            duration = problem.activities[problem.floating_indices[allele]].duration_slots
            end = slot + duration
            if end > problem.total_slots or occupied[slot:end].any():
                continue
            genes[gene_idx] = allele
            occupied[slot:end] = True
            pointer = (pointer + offset + 1) % len(order)
            break

    return genes


def seed_population(
    problem: Problem,
    candidate_slots: np.ndarray,
    size: int,
    config: Dict,
    rng: np.random.Generator,
    evaluator: Optional[FitnessEvaluator] = None,
    out_of_time: Optional[Callable[[], bool]] = None
) -> Population:
    """
    Construct the initial population.

    Slot 0 is the empty schedule, slot 1 the greedy schedule, the rest are
    random genomes with the configured density. Seeds are built (and, given
    an evaluator, evaluated) one at a time. Once ``out_of_time`` returns True
    every remaining slot gets a copy of the empty seed, so a run whose budget
    is spent during seeding still holds exactly P candidates.

    Args:
        problem: Decoded problem
        candidate_slots: Start slot per gene
        size: Population size P
        config: GA configuration
        rng: Random number generator
        evaluator: Evaluates each seed as it is built (seeds stay unevaluated if None)
        out_of_time: Budget check consulted before and after building each seed

    Returns:
        Population of exactly P candidates (generation 0)
    """
    length = len(candidate_slots)
    sentinel = problem.floating_count
    density = config.get('seeding', {}).get('random_density', 0.25)

    empty = Candidate(genes=empty_genes(length, sentinel), origin="seed:empty")
    if evaluator is not None:
        evaluator.evaluate(empty)

    candidates = [empty]
    exhausted = False
    while len(candidates) < size:
        exhausted = exhausted or (out_of_time is not None and out_of_time())
        if not exhausted:
            if len(candidates) == 1:
                genes = greedy_genes(problem, candidate_slots, out_of_time)
                candidate = Candidate(genes=genes, origin="seed:greedy")
            else:
                genes = random_genes(length, sentinel, density, rng)
                candidate = Candidate(genes=genes, origin="seed:random")
            exhausted = out_of_time is not None and out_of_time()

        if exhausted:
            candidate = empty.copy()
            candidate.origin = "seed:filler"
        elif evaluator is not None:
            evaluator.evaluate(candidate)
        candidates.append(candidate)

    for candidate in candidates:
        validate_genome(candidate.genes, length, sentinel)

    if exhausted:
        logger.debug("Time budget spent during seeding; %d of %d seeds are empty fillers",
                     sum(c.origin == "seed:filler" for c in candidates), size)

    return Population(candidates, size=size, generation=0)


def elite_count(size: int, config: Dict) -> int:
    """Number of elites carried over unchanged (at least one, less than P)."""
    count = max(1, math.ceil(size * config.get('elitism_rate', 0.1)))
    return min(count, size - 1)


def replace(old: Population, offspring: List[Candidate], config: Dict) -> Population:
    """
    Build the next generation from the old generation's elites and offspring.

    Args:
        old: Evaluated current population
        offspring: New candidates; exactly P minus the elite count are used

    Returns:
        Next Population with generation counter incremented by one

    Raises:
        PopulationSizeError: If offspring cannot fill the population to P
    """
    n_elite = elite_count(old.size, config)
    elites = [candidate.copy() for candidate in old.ranked()[:n_elite]]
    for elite in elites:
        elite.origin = "elite"

    needed = old.size - n_elite
    if len(offspring) < needed:
        raise PopulationSizeError(
            f"Need {needed} offspring to fill generation {old.generation + 1}, got {len(offspring)}"
        )

    return Population(elites + offspring[:needed], size=old.size, generation=old.generation + 1)
