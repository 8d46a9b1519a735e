"""
Problem builders shared by the solver tests.
"""

import msgpack
import numpy as np

from diem_ga.decoder import parse_problem
from diem_ga.fitness import FitnessEvaluator


def activity(activity_id, activity_type="Floating", duration=1, priority=0.0,
             assigned_start=None, category_id=0, **extra):
    """Activity map in wire format."""
    entry = {
        'id': activity_id,
        'activity_type': activity_type,
        'duration_slots': duration,
        'priority': priority,
        'assigned_start': assigned_start,
        'category_id': category_id,
        'input_bindings': [],
        'output_bindings': [],
        'frequency_targets': [],
    }
    entry.update(extra)
    return entry


def problem_dict(activities, total_slots=96, global_constraints=(), heatmap=(), markov_matrix=(),
                 floating_indices=None, fixed_indices=None):
    """Problem map in wire format; index lists default to the activity types."""
    if floating_indices is None:
        floating_indices = [i for i, a in enumerate(activities) if a['activity_type'] == 'Floating']
    if fixed_indices is None:
        fixed_indices = [i for i, a in enumerate(activities) if a['activity_type'] == 'Fixed']
    return {
        'activities': list(activities),
        'floating_indices': list(floating_indices),
        'fixed_indices': list(fixed_indices),
        'global_constraints': list(global_constraints),
        'heatmap': [list(h) for h in heatmap],
        'markov_matrix': [list(m) for m in markov_matrix],
        'total_slots': total_slots,
    }


def pack(problem):
    return msgpack.packb(problem, use_bin_type=True)


def build(problem):
    """Parse a wire-format dict into a Problem (raises on schema errors)."""
    return parse_problem(problem)


def genes_at(evaluator: FitnessEvaluator, placements):
    """
    Genome placing alleles at given start slots.

    Args:
        evaluator: Evaluator for the problem
        placements: {start_slot: allele}

    Returns:
        Integer genome, sentinel everywhere else
    """
    genes = np.full(len(evaluator.candidate_slots), evaluator.sentinel, dtype=np.int64)
    for slot, allele in placements.items():
        (index,) = np.flatnonzero(evaluator.candidate_slots == slot)
        genes[index] = allele
    return genes


def score_of(problem, placements):
    """Evaluate a problem dict with {start_slot: allele} placements."""
    evaluator = FitnessEvaluator(build(problem))
    return evaluator.evaluate_genes(genes_at(evaluator, placements))
