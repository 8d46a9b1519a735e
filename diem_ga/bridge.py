"""
Call boundary for the solver.

Exposes the byte-buffer contract: problem bytes and two budgets in, a
handle to an owned result buffer out, plus an explicit release entry point.
Decode failures and infeasibility never raise here; they shape the result.
"""

import logging
from typing import Dict, NamedTuple, Optional

from .decoder import DecodeFailure, decode
from .encoder import encode_result
from .engine import run_search
from .memory import BoundaryAllocator

logger = logging.getLogger(__name__)

MAX_U64 = 2 ** 64 - 1


class SolveResult(NamedTuple):
    """Handle and length of the result buffer; handle is None when length is 0."""
    handle: Optional[int]
    length: int


def solve_to_bytes(
    problem_bytes: bytes,
    max_generations: int,
    time_limit_ms: int,
    config: Optional[Dict] = None,
    seed: Optional[int] = None
) -> bytes:
    """
    Decode, search and encode without touching any allocator.

    Returns:
        Encoded best solution, or empty bytes for empty/undecodable input,
        problems with nothing to place, or an encoding failure
    """
    _check_budgets(max_generations, time_limit_ms)

    if not problem_bytes:
        return b""

    problem = decode(problem_bytes)
    if isinstance(problem, DecodeFailure):
        return b""

    outcome = run_search(problem, max_generations, time_limit_ms, config=config, seed=seed)

    try:
        return encode_result(outcome.best, outcome.evaluator)
    except (TypeError, ValueError, OverflowError) as e:
        logger.error("Result serialization failed: %s", e)
        return b""


def diem_solve(
    problem_bytes: bytes,
    max_generations: int,
    time_limit_ms: int,
    allocator: BoundaryAllocator,
    config: Optional[Dict] = None,
    seed: Optional[int] = None
) -> SolveResult:
    """
    Solve and hand the result buffer to the caller.

    Exactly one allocation is made for a non-empty result and none for an
    empty one. The caller owns the returned handle and must copy the buffer
    out and then call ``diem_free`` with the same handle and length.

    Args:
        problem_bytes: Serialized problem (may be empty)
        max_generations: Generation cap
        time_limit_ms: Wall-clock cap in milliseconds
        allocator: Allocator owning boundary buffers
        config: GA configuration overrides
        seed: Random seed (defaults to the configured seed)

    Returns:
        SolveResult(handle, length)
    """
    payload = solve_to_bytes(problem_bytes, max_generations, time_limit_ms, config=config, seed=seed)
    if not payload:
        return SolveResult(None, 0)

    handle = allocator.allocate(len(payload))
    try:
        allocator.buffer(handle)[:] = payload
    except BaseException:
        allocator.release(handle, len(payload))
        raise

    return SolveResult(handle, len(payload))


def diem_free(allocator: BoundaryAllocator, handle: int, size: int) -> None:
    """Release a result buffer returned by ``diem_solve``."""
    allocator.release(handle, size)


def solve(
    problem_bytes: bytes,
    max_generations: int,
    time_limit_ms: int,
    config: Optional[Dict] = None,
    seed: Optional[int] = None,
    allocator: Optional[BoundaryAllocator] = None
) -> bytes:
    """
    Host-side convenience: solve, copy the buffer out, release it.

    Returns:
        Result bytes (empty for empty/undecodable input)
    """
    if allocator is None:
        allocator = BoundaryAllocator()

    result = diem_solve(problem_bytes, max_generations, time_limit_ms, allocator, config=config, seed=seed)
    if result.handle is None:
        return b""

    try:
        data = allocator.read(result.handle)
    finally:
        diem_free(allocator, result.handle, result.length)
    return data


def _check_budgets(max_generations: int, time_limit_ms: int) -> None:
    for name, value in (('max_generations', max_generations), ('time_limit_ms', time_limit_ms)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
        if not 0 <= value <= MAX_U64:
            raise ValueError(f"{name} must be an unsigned 64-bit integer, got {value}")
