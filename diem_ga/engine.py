"""
Generational search engine.

Runs seed -> {select -> crossover -> mutate -> evaluate -> replace} under the
termination controller. All mutable state (population, tracker, random
stream) is created per call and discarded when the call returns.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

from .candidate_slots import build_candidate_start_slots
from .config import build_ga_config
from .crossover import apply_crossover
from .data_models import Candidate, FitnessValue, Problem
from .fitness import FitnessEvaluator
from .mutation import mutate
from .population import Population, elite_count, replace, seed_population
from .selection import select
from .termination import TerminationController, TerminationState
from .tracker import BestSolutionTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationReport:
    """Snapshot passed to the ``on_generation`` hook after each generation."""
    generation: int
    population_size: int
    best_fitness: FitnessValue
    population_best: FitnessValue
    elapsed_ms: float


@dataclass
class SearchOutcome:
    """
    Result of one search run.

    Attributes:
        best: Copy of the best candidate, None if no seed could be built
        evaluator: Evaluator bound to the problem (needed to encode best)
        termination: Final termination state
        generations: Selection/variation cycles completed after seeding
        elapsed_ms: Wall-clock duration of the run
        history: Best fitness after seeding and after each generation
    """
    best: Optional[Candidate]
    evaluator: FitnessEvaluator
    termination: TerminationState
    generations: int = 0
    elapsed_ms: float = 0.0
    history: List[FitnessValue] = field(default_factory=list)

    @property
    def seeded(self) -> bool:
        return self.best is not None


def next_generation(
    population: Population,
    evaluator: FitnessEvaluator,
    config: Dict,
    rng: np.random.Generator
) -> Population:
    """
    Produce the next generation via selection, crossover and mutation.

    Args:
        population: Evaluated current generation
        evaluator: Fitness evaluator for the problem
        config: GA configuration
        rng: Random number generator

    Returns:
        Evaluated next generation of the same size
    """
    needed = population.size - elite_count(population.size, config)
    offspring = []

    while len(offspring) < needed:
        parent_a, parent_b = select(population, 2, config, rng)
        child, _ = apply_crossover(parent_a, parent_b, config, rng)
        child, _ = mutate(child, evaluator.sentinel, config, rng)
        evaluator.evaluate(child)
        offspring.append(child)

    return replace(population, offspring, config)


def run_search(
    problem: Problem,
    max_generations: int,
    time_limit_ms: int,
    config: Optional[Dict] = None,
    seed: Optional[int] = None,
    clock: Callable[[], float] = time.monotonic,
    on_generation: Optional[Callable[[GenerationReport], None]] = None
) -> SearchOutcome:
    """
    Search for the best schedule within the two budgets.

    Args:
        problem: Decoded problem
        max_generations: Generation cap (0 = seeding only)
        time_limit_ms: Wall-clock cap in milliseconds (0 = seeding only)
        config: GA configuration overrides (merged onto defaults)
        seed: Random seed; defaults to config['random_seed']
        clock: Monotonic clock in seconds
        on_generation: Optional hook called after seeding and every generation

    Returns:
        SearchOutcome with the best candidate ever seen
    """
    config = build_ga_config(config)
    if seed is None:
        seed = config['random_seed']
    rng = np.random.default_rng(seed)

    controller = TerminationController(
        max_generations,
        time_limit_ms,
        max_stale_generations=config.get('max_stale_generations'),
        clock=clock,
    )

    candidate_slots = build_candidate_start_slots(problem)
    evaluator = FitnessEvaluator(problem, candidate_slots)

    if problem.floating_count == 0 or len(candidate_slots) == 0:
        logger.info(
            "No seed candidate: %d floating activities, %d candidate start slots",
            problem.floating_count, len(candidate_slots)
        )
        return SearchOutcome(
            best=None,
            evaluator=evaluator,
            termination=controller.state,
            elapsed_ms=controller.elapsed_ms(),
        )

    tracker = BestSolutionTracker()

    population = seed_population(
        problem, candidate_slots, config['population_size'], config, rng,
        evaluator=evaluator, out_of_time=controller.time_exhausted,
    )
    tracker.consider_all(population)
    tracker.mark_generation()
    _report(on_generation, population, tracker, controller)

    generations = 0
    stale = 0

    while controller.should_continue(generations, stale):
        population = next_generation(population, evaluator, config, rng)
        generations += 1

        improved = tracker.consider_all(population)
        stale = 0 if improved else stale + 1
        tracker.mark_generation()

        logger.debug(
            "Generation %d: best score=%.3f violation=%.1f (stale %d)",
            generations, tracker.fitness.score, tracker.fitness.violation, stale
        )
        _report(on_generation, population, tracker, controller)

    logger.info(
        "Search stopped (%s) after %d generations in %.1f ms: feasible=%s score=%.3f",
        controller.state.value, generations, controller.elapsed_ms(),
        tracker.fitness.feasible, tracker.fitness.score
    )

    return SearchOutcome(
        best=tracker.best,
        evaluator=evaluator,
        termination=controller.state,
        generations=generations,
        elapsed_ms=controller.elapsed_ms(),
        history=list(tracker.history),
    )


def _report(hook, population: Population, tracker: BestSolutionTracker, controller: TerminationController) -> None:
    if hook is None:
        return
    hook(GenerationReport(
        generation=population.generation,
        population_size=len(population),
        best_fitness=tracker.fitness,
        population_best=population.best().fitness,
        elapsed_ms=controller.elapsed_ms(),
    ))
