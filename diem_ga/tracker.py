"""
Best-solution tracker.

Holds a private copy of the best candidate seen so far. The held fitness
never regresses: a candidate replaces it only when strictly better.
"""

from typing import Iterable, List, Optional

from .data_models import Candidate, FitnessValue


class BestSolutionTracker:
    """
    Monotonic holder of the best evaluated candidate.

    Attributes:
        best: Copy of the best candidate, None while absent
        history: Best fitness after each ``mark_generation`` call
    """

    def __init__(self):
        self.best: Optional[Candidate] = None
        self.history: List[FitnessValue] = []
        self.improvements = 0

    @property
    def absent(self) -> bool:
        return self.best is None

    @property
    def fitness(self) -> Optional[FitnessValue]:
        return None if self.best is None else self.best.fitness

    def consider(self, candidate: Candidate) -> bool:
        """
        Offer a candidate; keep a copy if it strictly improves on the best.

        Args:
            candidate: Evaluated candidate

        Returns:
            True if the held best was replaced

        Raises:
            ValueError: If the candidate has not been evaluated
        """
        if candidate.fitness is None:
            raise ValueError("Cannot track an unevaluated candidate")

        if candidate.fitness.better_than(self.fitness):
            self.best = candidate.copy()
            self.improvements += 1
            return True
        return False

    def consider_all(self, candidates: Iterable[Candidate]) -> bool:
        improved = False
        for candidate in candidates:
            improved = self.consider(candidate) or improved
        return improved

    def mark_generation(self) -> None:
        if self.best is not None:
            self.history.append(self.best.fitness)
