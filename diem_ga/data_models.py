"""
Data models for the schedule solver.

Core data structures representing the decoded problem (activities, bindings,
global constraints), candidate schedules and their fitness values.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

import numpy as np


SLOTS_PER_DAY = 96
SLOTS_PER_WEEK = SLOTS_PER_DAY * 7
ALL_WEEKDAYS = 0b1111111


class ActivityType(Enum):
    FIXED = "Fixed"
    FLOATING = "Floating"


class TimeScope(Enum):
    SAME_DAY = "SameDay"
    SAME_WEEK = "SameWeek"
    SAME_MONTH = "SameMonth"


@dataclass(frozen=True)
class FrequencyTarget:
    """Soft target: reward occurrences up to target_count per scope bucket."""
    scope: TimeScope
    target_count: int
    weight: float


@dataclass(frozen=True)
class UserFrequencyConstraint:
    """User-declared occurrence bounds per scope bucket (hard)."""
    scope: TimeScope
    min_count: Optional[int] = None
    max_count: Optional[int] = None
    deadline_end: Optional[int] = None
    penalty_weight: float = 0.0


@dataclass(frozen=True)
class Binding:
    """
    Weighted ordering constraint between activities.

    Attributes:
        required_sets: Disjunctive normal form (OR of ANDs) of activity ids
        time_scope: Scope in which the required activities must occur
        valid_weekdays: Bitmask of weekdays (bit 0 = weekday 0) the binding applies on
        weight: Penalty applied when no required set is met
    """
    required_sets: tuple[tuple[int, ...], ...]
    time_scope: TimeScope
    valid_weekdays: int = ALL_WEEKDAYS
    weight: float = 0.0

    def applies_on(self, weekday: int) -> bool:
        return bool(self.valid_weekdays & (1 << weekday))


@dataclass(frozen=True)
class Activity:
    id: int
    activity_type: ActivityType
    duration_slots: int
    priority: float = 0.0
    assigned_start: Optional[int] = None
    category_id: int = 0
    input_bindings: tuple[Binding, ...] = ()
    output_bindings: tuple[Binding, ...] = ()
    frequency_targets: tuple[FrequencyTarget, ...] = ()
    user_frequency_constraints: tuple[UserFrequencyConstraint, ...] = ()


@dataclass(frozen=True)
class ForbiddenZone:
    start: int
    end: int

    def overlaps(self, start: int, end: int) -> bool:
        return start < self.end and end > self.start


@dataclass(frozen=True)
class CumulativeTime:
    """Total duration of a category per period bucket must stay within bounds."""
    category_id: Optional[int]
    period_slots: int
    min_duration: int
    max_duration: int

    def applies_to(self, activity: Activity) -> bool:
        return self.category_id is None or self.category_id == activity.category_id


GlobalConstraint = Union[ForbiddenZone, CumulativeTime]


@dataclass(frozen=True)
class Problem:
    """
    Decoded scheduling problem. Immutable for the duration of one solve call.

    Attributes:
        activities: All activities; an activity's id equals its position
        floating_indices: Positions of activities the solver places
        fixed_indices: Positions of immovable activities
        global_constraints: Forbidden zones and cumulative time limits
        heatmap: (activity_id, slot, weight) start-time preferences
        markov_matrix: (from_id, to_id, weight) sequence preferences
        total_slots: Horizon length in 15-minute slots
    """
    activities: tuple[Activity, ...]
    floating_indices: tuple[int, ...]
    fixed_indices: tuple[int, ...]
    global_constraints: tuple[GlobalConstraint, ...] = ()
    heatmap: tuple[tuple[int, int, float], ...] = ()
    markov_matrix: tuple[tuple[int, int, float], ...] = ()
    total_slots: int = SLOTS_PER_DAY

    @property
    def floating_count(self) -> int:
        return len(self.floating_indices)

    @property
    def num_days(self) -> int:
        """Number of day buckets touched by the horizon (at least one)."""
        return max(1, -(-self.total_slots // SLOTS_PER_DAY))

    @property
    def num_weeks(self) -> int:
        return max(1, -(-self.total_slots // SLOTS_PER_WEEK))

    def forbidden_zones(self) -> list[ForbiddenZone]:
        return [c for c in self.global_constraints if isinstance(c, ForbiddenZone)]

    def cumulative_constraints(self) -> list[CumulativeTime]:
        return [c for c in self.global_constraints if isinstance(c, CumulativeTime)]

    def build_lookup_maps(self) -> tuple[dict, dict]:
        """
        Build fast lookup maps for heatmap and markov preferences.

        Returns:
            Tuple of ({(activity_id, slot): weight}, {(from_id, to_id): weight});
            later entries overwrite earlier ones
        """
        heatmap_lookup = {(a, t): p for a, t, p in self.heatmap}
        markov_lookup = {(f, t): p for f, t, p in self.markov_matrix}
        return heatmap_lookup, markov_lookup


@dataclass(frozen=True)
class FitnessValue:
    """
    Result of evaluating one candidate.

    Attributes:
        score: Rewards minus soft penalties (higher is better)
        violation: Weighted sum of hard constraint violations
        breaches: Number of hard constraint breaches, counted even when the
            breached constraint carries a zero penalty weight
    """
    score: float
    violation: float = 0.0
    breaches: int = 0

    @property
    def feasible(self) -> bool:
        return self.breaches == 0 and self.violation == 0.0

    @property
    def sort_key(self) -> tuple:
        # Feasible above infeasible; less violation above more violation.
        if self.feasible:
            return (1, 0.0, 0, self.score)
        return (0, -self.violation, -self.breaches, self.score)

    def better_than(self, other: Optional["FitnessValue"]) -> bool:
        if other is None:
            return True
        return self.sort_key > other.sort_key


@dataclass
class Candidate:
    """
    One schedule proposal (genome).

    Gene i holds the floating allele placed at candidate start slot i;
    the allele equal to the floating activity count is the empty sentinel.

    Attributes:
        genes: Integer allele per candidate start slot
        fitness: Cached evaluation, None until evaluated or after mutation
        origin: Short tag describing how the candidate was produced
    """
    genes: np.ndarray
    fitness: Optional[FitnessValue] = None
    origin: str = "seed"
    metadata: dict = field(default_factory=dict)

    def copy(self) -> "Candidate":
        """
        Create a deep copy of this candidate.

        Returns:
            New Candidate with copied genes and metadata
        """
        return Candidate(
            genes=self.genes.copy(),
            fitness=self.fitness,
            origin=self.origin,
            metadata=self.metadata.copy(),
        )

    def invalidate(self) -> None:
        self.fitness = None

    @property
    def feasible(self) -> bool:
        return self.fitness is not None and self.fitness.feasible

    def __len__(self) -> int:
        return len(self.genes)
