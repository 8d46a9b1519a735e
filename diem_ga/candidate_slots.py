"""
Candidate start-slot utilities.

Determines which horizon slots a floating activity may start in. Each
candidate start slot becomes one gene of the genome.
"""

import numpy as np

from .data_models import Problem


def build_forbidden_slot_mask(problem: Problem) -> np.ndarray:
    """
    Mark slots covered by a forbidden zone.

    Args:
        problem: Decoded problem

    Returns:
        Boolean array of length total_slots
    """
    total_slots = problem.total_slots
    mask = np.zeros(total_slots, dtype=bool)

    for zone in problem.forbidden_zones():
        start_idx = min(zone.start, total_slots)
        end_idx = min(zone.end, total_slots)
        if start_idx >= end_idx:
            continue
        mask[start_idx:end_idx] = True

    return mask


def build_fixed_occupancy_mask(problem: Problem) -> np.ndarray:
    """
    Mark slots occupied by fixed activities.

    Fixed activities without an assigned start, or starting past the
    horizon, occupy nothing.

    Args:
        problem: Decoded problem

    Returns:
        Boolean array of length total_slots
    """
    total_slots = problem.total_slots
    mask = np.zeros(total_slots, dtype=bool)

    for act_idx in problem.fixed_indices:
        activity = problem.activities[act_idx]
        start_time = activity.assigned_start
        if start_time is None or start_time >= total_slots:
            continue
        end_time = min(start_time + activity.duration_slots, total_slots)
        if start_time >= end_time:
            continue
        mask[start_time:end_time] = True

    return mask


def build_candidate_start_slots(problem: Problem) -> np.ndarray:
    """
    List every slot that is neither forbidden nor occupied by a fixed activity.

    Args:
        problem: Decoded problem

    Returns:
        Sorted integer array of candidate start slots (may be empty)

    Example:
        >>> # 10 slots, forbidden [1, 3), fixed activity at 4 for 3 slots
        >>> build_candidate_start_slots(problem).tolist()
        [0, 3, 7, 8, 9]
    """
    if problem.total_slots == 0:
        return np.zeros(0, dtype=np.int64)

    blocked = build_forbidden_slot_mask(problem) | build_fixed_occupancy_mask(problem)
    return np.flatnonzero(~blocked).astype(np.int64)
