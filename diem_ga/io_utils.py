"""
I/O utilities for the scheduler.

Handles problem YAML loading, MessagePack problem/result conversion,
result file management and slot formatting.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import msgpack
import yaml

from .data_models import SLOTS_PER_DAY

MINUTES_PER_SLOT = 15
WEEKDAY_NAMES = ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun')


def load_problem_yaml(problem_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a problem description from YAML.

    The YAML mirrors the MessagePack problem map key for key, so the
    returned dict can be passed straight to ``encode_problem``.

    Args:
        problem_path: Path to problem YAML file

    Returns:
        Problem dictionary

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the YAML is empty or not a mapping
    """
    problem_path = Path(problem_path)

    if not problem_path.exists():
        raise FileNotFoundError(f"Problem file not found: {problem_path}")

    with open(problem_path, 'r') as f:
        problem = yaml.safe_load(f)

    if not isinstance(problem, dict):
        raise ValueError(f"Problem file {problem_path} must contain a mapping")

    return problem


def encode_problem(problem: Dict[str, Any]) -> bytes:
    """Serialize a problem dictionary to the MessagePack wire format."""
    return msgpack.packb(problem, use_bin_type=True)


def decode_result(data: bytes) -> Optional[Dict[str, Any]]:
    """
    Decode a result buffer.

    Args:
        data: Result bytes from ``solve``

    Returns:
        Result dictionary, or None for the empty result
    """
    if not data:
        return None
    return msgpack.unpackb(bytes(data), raw=False)


def save_result(
    data: bytes,
    output_path: Union[str, Path],
    overwrite: bool = False
) -> Path:
    """
    Write raw result bytes to disk.

    Raises:
        FileExistsError: If file exists and overwrite=False
    """
    output_path = Path(output_path)

    if output_path.exists() and not overwrite:
        raise FileExistsError(f"Output file already exists: {output_path}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)

    return output_path


def slot_to_label(slot: int) -> str:
    """
    Format a slot index as day, weekday and clock time.

    Example:
        >>> slot_to_label(101)
        'Day 2 (Tue) 01:15'
    """
    day, slot_of_day = divmod(slot, SLOTS_PER_DAY)
    minutes = slot_of_day * MINUTES_PER_SLOT
    return f"Day {day + 1} ({WEEKDAY_NAMES[day % 7]}) {minutes // 60:02d}:{minutes % 60:02d}"


def format_timeline(result: Dict[str, Any], problem: Dict[str, Any]) -> List[str]:
    """
    Render a decoded result as a per-day timeline.

    Fixed activities with an assigned start are listed alongside the
    solver's placements.

    Args:
        result: Decoded result dictionary
        problem: Problem dictionary the result was produced for

    Returns:
        Lines of text, grouped under one header per day
    """
    activities = {a['id']: a for a in problem.get('activities', [])}
    entries = [(start, activity_id, False) for activity_id, start in result['assignments']]
    for index in problem.get('fixed_indices', []):
        activity = problem['activities'][index]
        if activity.get('assigned_start') is not None:
            entries.append((activity['assigned_start'], activity['id'], True))
    entries.sort()

    lines = []
    current_day = None
    for start, activity_id, fixed in entries:
        day = start // SLOTS_PER_DAY
        if day != current_day:
            current_day = day
            lines.append(f"Day {day + 1} ({WEEKDAY_NAMES[day % 7]})")

        activity = activities.get(activity_id, {})
        duration = activity.get('duration_slots', 1)
        name = activity.get('name', f"activity {activity_id}")
        begin = slot_to_label(start).rsplit(' ', 1)[1]
        finish_minutes = ((start % SLOTS_PER_DAY) + duration) * MINUTES_PER_SLOT
        finish = f"{finish_minutes // 60:02d}:{finish_minutes % 60:02d}"
        marker = " [fixed]" if fixed else ""
        lines.append(f"  {begin}-{finish}  {name}{marker}")

    return lines
