"""
Result encoder.

Serializes the tracked best candidate into a self-describing MessagePack
map. The same candidate always encodes to the same bytes.
"""

from typing import List, Optional

import msgpack

from .data_models import Candidate
from .fitness import FitnessEvaluator

RESULT_FORMAT_VERSION = 1


def build_assignments(candidate: Candidate, evaluator: FitnessEvaluator) -> List[List[int]]:
    """
    List the floating placements of a candidate.

    Returns:
        [activity_id, start_slot] pairs sorted by start slot, then activity id
    """
    activities = evaluator.problem.activities
    assignments = [
        [activities[act_idx].id, start]
        for act_idx, start in evaluator.placements(candidate.genes)
    ]
    assignments.sort(key=lambda pair: (pair[1], pair[0]))
    return assignments


def encode_result(best: Optional[Candidate], evaluator: FitnessEvaluator) -> bytes:
    """
    Encode the best solution.

    Args:
        best: Evaluated best candidate, or None when absent
        evaluator: Evaluator for the problem the candidate belongs to

    Returns:
        Empty bytes when absent, otherwise a MessagePack map with keys
        version, feasible, score, violation, assignments
    """
    if best is None:
        return b""

    fitness = best.fitness if best.fitness is not None else evaluator.evaluate(best)
    payload = {
        'version': RESULT_FORMAT_VERSION,
        'feasible': fitness.feasible,
        'score': float(fitness.score),
        'violation': float(fitness.violation),
        'assignments': build_assignments(best, evaluator),
    }
    return msgpack.packb(payload, use_bin_type=True)
