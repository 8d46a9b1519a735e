"""
Termination controller.

Decides at each generation boundary whether the search keeps running.
Budgets are checked in a fixed order so simultaneous trips resolve the
same way every run: generation limit, then time limit, then staleness.
"""

import time
from enum import Enum
from typing import Callable, Optional


class TerminationState(Enum):
    RUNNING = "running"
    GENERATION_LIMIT_REACHED = "generation_limit_reached"
    TIME_LIMIT_REACHED = "time_limit_reached"
    STALE_LIMIT_REACHED = "stale_limit_reached"

    @property
    def terminal(self) -> bool:
        return self is not TerminationState.RUNNING


class TerminationController:
    """
    State machine over the run's budgets.

    Attributes:
        max_generations: Generation cap (0 stops right after seeding)
        time_limit_ms: Wall-clock cap in milliseconds (0 stops right after seeding)
        max_stale_generations: Generations without improvement before stopping (None disables)
        state: Current TerminationState; terminal states never change
    """

    def __init__(
        self,
        max_generations: int,
        time_limit_ms: int,
        max_stale_generations: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        if max_generations < 0 or time_limit_ms < 0:
            raise ValueError("Budgets must be non-negative")
        self.max_generations = max_generations
        self.time_limit_ms = time_limit_ms
        self.max_stale_generations = max_stale_generations
        self._clock = clock
        self._started = clock()
        self.state = TerminationState.RUNNING

    def elapsed_ms(self) -> float:
        return (self._clock() - self._started) * 1000.0

    def time_exhausted(self) -> bool:
        """True once the wall-clock budget is spent; does not change the state."""
        return self.elapsed_ms() >= self.time_limit_ms

    def check(self, generations_completed: int, stale_generations: int = 0) -> TerminationState:
        """
        Check budgets on entry to the next generation.

        Args:
            generations_completed: Selection/variation cycles finished so far
            stale_generations: Consecutive cycles without a best improvement

        Returns:
            The (possibly newly terminal) state
        """
        if self.state.terminal:
            return self.state

        if generations_completed >= self.max_generations:
            self.state = TerminationState.GENERATION_LIMIT_REACHED
        elif self.time_exhausted():
            self.state = TerminationState.TIME_LIMIT_REACHED
        elif (self.max_stale_generations is not None
              and stale_generations >= self.max_stale_generations):
            self.state = TerminationState.STALE_LIMIT_REACHED

        return self.state

    def should_continue(self, generations_completed: int, stale_generations: int = 0) -> bool:
        return not self.check(generations_completed, stale_generations).terminal
