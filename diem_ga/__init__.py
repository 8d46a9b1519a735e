"""
Bounded-budget evolutionary schedule solver.

This package takes a serialized weekly scheduling problem (fixed and
floating activities on a 15-minute slot grid), runs a genetic search under
a generation cap and a wall-clock cap, and hands back the best schedule
found through an explicit allocate / transfer / release boundary.

Key Features:
- Malformed input and exhausted budgets never raise; they shape the result
- Deterministic for a given seed and generation-limited budget
- Feasible schedules always rank above infeasible ones
- Per-call working state; the allocator is the only shared object

Modules:
- data_models: Problem, Activity, constraint and Candidate structures
- decoder: MessagePack problem decoding and validation
- candidate_slots: Start slots open to floating activities
- fitness: Hard violation and soft score evaluation
- population: Seeding, elitism and replacement
- selection: Tournament and rank selection
- crossover: Uniform and single-point crossover
- mutation: Reassign, swap and clear operators
- termination: Generation, time and staleness budgets
- tracker: Monotonic best-solution holder
- encoder: MessagePack result encoding
- memory: Handle-based boundary allocator
- engine: Generational search loop
- bridge: diem_solve / diem_free / solve entry points
- io_utils: Problem YAML, result files, timeline formatting
- cli: Run configuration handling for diem_cli.py
"""

__version__ = "0.1.0"
__author__ = "Diem Scheduling Team"

from .bridge import SolveResult, diem_free, diem_solve, solve
from .data_models import Candidate, FitnessValue, Problem
from .decoder import DecodeFailure, decode
from .memory import BoundaryAllocator, BoundaryProtocolError

__all__ = [
    "SolveResult",
    "diem_free",
    "diem_solve",
    "solve",
    "Candidate",
    "FitnessValue",
    "Problem",
    "DecodeFailure",
    "decode",
    "BoundaryAllocator",
    "BoundaryProtocolError",
]
