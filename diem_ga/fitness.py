"""
Fitness evaluation for candidate schedules.

Scores a candidate against the problem's hard constraints (overlaps,
forbidden zones, horizon overrun, cumulative time, user frequency bounds)
and soft objectives (priority, heatmap, markov sequences, bindings,
frequency targets). Evaluation is a pure function of candidate and problem.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .candidate_slots import build_candidate_start_slots
from .data_models import (
    SLOTS_PER_DAY,
    SLOTS_PER_WEEK,
    Activity,
    Candidate,
    FitnessValue,
    Problem,
    TimeScope,
)


# Penalties (hard constraints)
PENALTY_OVERLAP = 1_000_000.0
PENALTY_FORBIDDEN = 1_000_000.0
PENALTY_OVERRUN = 1_000_000.0
PENALTY_CUMULATIVE = 10_000.0

# Weights (soft constraints / objectives)
WEIGHT_PRIORITY = 10.0
WEIGHT_HEATMAP = 5.0
WEIGHT_MARKOV = 5.0

MARKOV_GAP_TOLERANCE = 2  # 30 minutes


@dataclass(frozen=True)
class ScheduledItem:
    act_idx: int
    activity_id: int
    start: int
    end: int
    order: int

    @property
    def day(self) -> int:
        return self.start // SLOTS_PER_DAY

    @property
    def week(self) -> int:
        return self.start // SLOTS_PER_WEEK

    @property
    def weekday(self) -> int:
        return self.day % 7


class FitnessEvaluator:
    """
    Evaluates slot-indexed genomes for one problem.

    Built once per solve call; holds only read-only lookup tables derived
    from the problem, so evaluating the same genome twice gives the same value.
    """

    def __init__(self, problem: Problem, candidate_slots: Optional[np.ndarray] = None):
        """
        Initialize evaluator.

        Args:
            problem: Decoded problem
            candidate_slots: Start slot per gene (computed from the problem if omitted)
        """
        self.problem = problem
        if candidate_slots is None:
            candidate_slots = build_candidate_start_slots(problem)
        self.candidate_slots = candidate_slots
        self.sentinel = problem.floating_count
        self.heatmap_lookup, self.markov_lookup = problem.build_lookup_maps()
        self.forbidden_zones = problem.forbidden_zones()
        self.cumulative_constraints = problem.cumulative_constraints()

    def placements(self, genes: np.ndarray) -> List[Tuple[int, int]]:
        """
        Translate a genome into floating placements.

        Args:
            genes: Allele per candidate start slot

        Returns:
            List of (activity_index, start_slot) in gene order
        """
        placed = np.flatnonzero(genes != self.sentinel)
        return [
            (self.problem.floating_indices[int(genes[i])], int(self.candidate_slots[i]))
            for i in placed
        ]

    def evaluate(self, candidate: Candidate) -> FitnessValue:
        """
        Evaluate a candidate and cache the result on it.

        Args:
            candidate: Candidate to evaluate

        Returns:
            FitnessValue with score and hard-violation magnitude
        """
        if candidate.fitness is None:
            candidate.fitness = self.evaluate_genes(candidate.genes)
        return candidate.fitness

    def evaluate_genes(self, genes: np.ndarray) -> FitnessValue:
        problem = self.problem
        activities = problem.activities

        score = 0.0
        violation = 0.0
        breaches = 0

        # --- 1. Collect items and totals (needed for output bindings) ---
        items = []
        for order, (act_idx, start) in enumerate(self.placements(genes)):
            items.append(self._make_item(act_idx, start, order))
        for act_idx in problem.fixed_indices:
            start = activities[act_idx].assigned_start
            if start is not None:
                items.append(self._make_item(act_idx, start, len(items)))

        day_totals = Counter()
        week_totals = Counter()
        month_totals = Counter()

        for item in items:
            activity = activities[item.act_idx]
            if item.end > problem.total_slots:
                violation += PENALTY_OVERRUN
                breaches += 1

            day_totals[(item.day, item.activity_id)] += 1
            week_totals[(item.week, item.activity_id)] += 1
            month_totals[item.activity_id] += 1

            score += activity.priority * WEIGHT_PRIORITY
            score += self.heatmap_lookup.get((item.activity_id, item.start), 0.0) * WEIGHT_HEATMAP

        # --- 2. Sort by start time ---
        items.sort(key=lambda k: (k.start, k.act_idx, k.order))

        # --- 3. Sequential sweep ---
        running = {
            TimeScope.SAME_DAY: Counter(),
            TimeScope.SAME_WEEK: Counter(),
            TimeScope.SAME_MONTH: Counter(),
        }
        cumulative_totals = defaultdict(int)
        prev = None
        latest_end = None

        for item in items:
            activity = activities[item.act_idx]

            # Reset running counts on scope boundaries
            if prev is None or item.day != prev.day:
                running[TimeScope.SAME_DAY].clear()
            if prev is None or item.week != prev.week:
                running[TimeScope.SAME_WEEK].clear()

            # A. Cumulative duration buckets
            for ci, constraint in enumerate(self.cumulative_constraints):
                if constraint.applies_to(activity):
                    if constraint.period_slots >= problem.total_slots:
                        bucket = 0
                    else:
                        bucket = item.start // constraint.period_slots
                    cumulative_totals[(ci, bucket)] += activity.duration_slots

            # B. Forbidden zones
            for zone in self.forbidden_zones:
                if zone.overlaps(item.start, item.end):
                    violation += PENALTY_FORBIDDEN
                    breaches += 1

            # C. Overlaps and markov sequences
            if latest_end is not None and item.start < latest_end:
                violation += PENALTY_OVERLAP
                breaches += 1
            elif prev is not None and item.start - prev.end <= MARKOV_GAP_TOLERANCE:
                weight = self.markov_lookup.get((prev.activity_id, item.activity_id))
                if weight is not None:
                    score += weight * WEIGHT_MARKOV

            # D. Input bindings (strictly before, same scope)
            for binding in activity.input_bindings:
                if not binding.applies_on(item.weekday):
                    continue
                seen = running[binding.time_scope]
                met = any(
                    all(seen[req_id] > 0 for req_id in req_set)
                    for req_set in binding.required_sets
                )
                if not met:
                    score -= binding.weight

            # E. Output bindings (strictly after, same scope)
            for binding in activity.output_bindings:
                if not binding.applies_on(item.weekday):
                    continue
                seen = running[binding.time_scope]
                met = any(
                    all(
                        self._scope_total(binding.time_scope, item, req_id, day_totals, week_totals, month_totals)
                        - seen[req_id]
                        - (1 if req_id == item.activity_id else 0)
                        > 0
                        for req_id in req_set
                    )
                    for req_set in binding.required_sets
                )
                if not met:
                    score -= binding.weight

            for counter in running.values():
                counter[item.activity_id] += 1

            prev = item
            latest_end = item.end if latest_end is None else max(latest_end, item.end)

        # --- 4. Soft frequency targets ---
        for activity in activities:
            for target in activity.frequency_targets:
                for actual in self._bucket_counts(
                    target.scope, activity, day_totals, week_totals, month_totals
                ):
                    if actual <= target.target_count:
                        score += actual * target.weight

        # --- 5. Cumulative time limits ---
        for (ci, _bucket), total in sorted(cumulative_totals.items()):
            constraint = self.cumulative_constraints[ci]
            if total < constraint.min_duration:
                violation += PENALTY_CUMULATIVE * (constraint.min_duration - total)
                breaches += 1
            if total > constraint.max_duration:
                violation += PENALTY_CUMULATIVE * (total - constraint.max_duration)
                breaches += 1

        # --- 6. User frequency bounds ---
        frequency_violation, frequency_breaches = self._user_frequency_violation(items)
        violation += frequency_violation
        breaches += frequency_breaches

        return FitnessValue(score=score, violation=violation, breaches=breaches)

    def _make_item(self, act_idx: int, start: int, order: int) -> ScheduledItem:
        activity = self.problem.activities[act_idx]
        return ScheduledItem(
            act_idx=act_idx,
            activity_id=activity.id,
            start=start,
            end=start + activity.duration_slots,
            order=order,
        )

    @staticmethod
    def _scope_total(scope, item, activity_id, day_totals, week_totals, month_totals) -> int:
        if scope is TimeScope.SAME_DAY:
            return day_totals[(item.day, activity_id)]
        if scope is TimeScope.SAME_WEEK:
            return week_totals[(item.week, activity_id)]
        return month_totals[activity_id]

    def _bucket_counts(self, scope, activity: Activity, day_totals, week_totals, month_totals) -> List[int]:
        if scope is TimeScope.SAME_DAY:
            return [day_totals[(d, activity.id)] for d in range(self.problem.num_days)]
        if scope is TimeScope.SAME_WEEK:
            return [week_totals[(w, activity.id)] for w in range(self.problem.num_weeks)]
        return [month_totals[activity.id]]

    def _user_frequency_violation(self, items: List[ScheduledItem]) -> Tuple[float, int]:
        """Weighted shortfall/excess over the frequency buckets, with the count of broken bounds."""
        starts_by_id = defaultdict(list)
        for item in items:
            starts_by_id[item.activity_id].append(item.start)

        violation = 0.0
        breaches = 0
        for activity in self.problem.activities:
            for constraint in activity.user_frequency_constraints:
                starts = starts_by_id.get(activity.id, [])
                for bucket_start, bucket_end in self._bucket_ranges(constraint.scope):
                    count = sum(1 for s in starts if bucket_start <= s < bucket_end)

                    if constraint.min_count is not None:
                        deadline = constraint.deadline_end
                        if deadline is None:
                            counted = count
                        elif bucket_start < deadline:
                            counted = sum(1 for s in starts if bucket_start <= s < min(bucket_end, deadline))
                        else:
                            counted = None
                        if counted is not None and counted < constraint.min_count:
                            violation += constraint.penalty_weight * (constraint.min_count - counted)
                            breaches += 1

                    if constraint.max_count is not None and count > constraint.max_count:
                        violation += constraint.penalty_weight * (count - constraint.max_count)
                        breaches += 1
        return violation, breaches

    def _bucket_ranges(self, scope) -> List[Tuple[int, int]]:
        total = self.problem.total_slots
        if scope is TimeScope.SAME_DAY:
            size, count = SLOTS_PER_DAY, self.problem.num_days
        elif scope is TimeScope.SAME_WEEK:
            size, count = SLOTS_PER_WEEK, self.problem.num_weeks
        else:
            return [(0, max(total, 1))]
        return [(i * size, min((i + 1) * size, max(total, 1))) for i in range(count)]
