"""
Problem decoder.

Parses a MessagePack problem buffer into a Problem. Every structural field
(lengths, counts, ranges, references) is validated before it is trusted.
Malformed input yields a DecodeFailure value rather than an exception.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Union

import msgpack
from msgpack.exceptions import UnpackException

from .data_models import (
    ALL_WEEKDAYS,
    Activity,
    ActivityType,
    Binding,
    CumulativeTime,
    ForbiddenZone,
    FrequencyTarget,
    Problem,
    TimeScope,
    UserFrequencyConstraint,
)

logger = logging.getLogger(__name__)

MAX_SLOT = 0xFFFF
MAX_NESTING_ITEMS = 1_000_000


@dataclass(frozen=True)
class DecodeFailure:
    """Normal result variant for empty or malformed problem buffers."""
    reason: str

    def __bool__(self) -> bool:
        return False


class ProblemFormatError(ValueError):
    """Raised internally when a problem field violates the schema."""
    pass


def decode(data: bytes) -> Union[Problem, DecodeFailure]:
    """
    Decode a problem buffer.

    Args:
        data: Raw MessagePack bytes (may be empty)

    Returns:
        Problem on success, DecodeFailure describing the first violation otherwise
    """
    if not data:
        return DecodeFailure("empty input")

    try:
        raw = msgpack.unpackb(
            bytes(data),
            raw=False,
            strict_map_key=True,
            max_array_len=MAX_NESTING_ITEMS,
            max_map_len=MAX_NESTING_ITEMS,
        )
    except (ValueError, TypeError, UnpackException) as e:
        logger.warning("Problem buffer is not valid MessagePack: %s", e)
        return DecodeFailure(f"invalid msgpack: {e}")

    try:
        return parse_problem(raw)
    except ProblemFormatError as e:
        logger.warning("Problem buffer rejected: %s", e)
        return DecodeFailure(str(e))


def parse_problem(raw: Any) -> Problem:
    """
    Build a Problem from an unpacked MessagePack structure.

    Raises:
        ProblemFormatError: If any field is missing, mistyped or out of range
    """
    root = _require_map(raw, "problem")

    total_slots = _require_uint(_field(root, "total_slots", "problem"), "total_slots", MAX_SLOT)

    raw_activities = _require_list(_field(root, "activities", "problem"), "activities")
    num_activities = len(raw_activities)
    activities = tuple(
        _parse_activity(item, f"activities[{i}]", num_activities)
        for i, item in enumerate(raw_activities)
    )

    seen_ids = set()
    for i, activity in enumerate(activities):
        if activity.id in seen_ids:
            raise ProblemFormatError(f"activities[{i}].id: duplicate id {activity.id}")
        seen_ids.add(activity.id)

    floating_indices = _parse_index_list(
        root, "floating_indices", activities, ActivityType.FLOATING
    )
    fixed_indices = _parse_index_list(
        root, "fixed_indices", activities, ActivityType.FIXED
    )

    global_constraints = tuple(
        _parse_global_constraint(item, f"global_constraints[{i}]")
        for i, item in enumerate(
            _require_list(root.get("global_constraints", []), "global_constraints")
        )
    )

    heatmap = tuple(
        _parse_preference(item, f"heatmap[{i}]", num_activities, second_is_slot=True)
        for i, item in enumerate(_require_list(root.get("heatmap", []), "heatmap"))
    )
    markov_matrix = tuple(
        _parse_preference(item, f"markov_matrix[{i}]", num_activities, second_is_slot=False)
        for i, item in enumerate(_require_list(root.get("markov_matrix", []), "markov_matrix"))
    )

    return Problem(
        activities=activities,
        floating_indices=floating_indices,
        fixed_indices=fixed_indices,
        global_constraints=global_constraints,
        heatmap=heatmap,
        markov_matrix=markov_matrix,
        total_slots=total_slots,
    )


def _parse_activity(raw: Any, path: str, num_activities: int) -> Activity:
    entry = _require_map(raw, path)

    activity_id = _require_id(_field(entry, "id", path), f"{path}.id", num_activities)
    activity_type = _parse_enum(
        ActivityType, _field(entry, "activity_type", path), f"{path}.activity_type"
    )
    duration = _require_uint(_field(entry, "duration_slots", path), f"{path}.duration_slots", MAX_SLOT)
    if duration == 0:
        raise ProblemFormatError(f"{path}.duration_slots: must be at least 1")

    assigned_start = entry.get("assigned_start")
    if assigned_start is not None:
        assigned_start = _require_uint(assigned_start, f"{path}.assigned_start", MAX_SLOT)

    return Activity(
        id=activity_id,
        activity_type=activity_type,
        duration_slots=duration,
        priority=_require_float(entry.get("priority", 0.0), f"{path}.priority"),
        assigned_start=assigned_start,
        category_id=_require_uint(entry.get("category_id", 0), f"{path}.category_id"),
        input_bindings=_parse_bindings(entry, "input_bindings", path, num_activities),
        output_bindings=_parse_bindings(entry, "output_bindings", path, num_activities),
        frequency_targets=tuple(
            _parse_frequency_target(item, f"{path}.frequency_targets[{i}]")
            for i, item in enumerate(
                _require_list(entry.get("frequency_targets", []), f"{path}.frequency_targets")
            )
        ),
        user_frequency_constraints=tuple(
            _parse_user_frequency(item, f"{path}.user_frequency_constraints[{i}]")
            for i, item in enumerate(
                _require_list(
                    entry.get("user_frequency_constraints", []),
                    f"{path}.user_frequency_constraints",
                )
            )
        ),
    )


def _parse_bindings(entry: dict, key: str, path: str, num_activities: int) -> tuple:
    bindings = []
    for i, raw in enumerate(_require_list(entry.get(key, []), f"{path}.{key}")):
        binding_path = f"{path}.{key}[{i}]"
        binding = _require_map(raw, binding_path)

        required_sets = []
        raw_sets = _require_list(_field(binding, "required_sets", binding_path), f"{binding_path}.required_sets")
        for j, raw_set in enumerate(raw_sets):
            set_path = f"{binding_path}.required_sets[{j}]"
            required_sets.append(tuple(
                _require_id(item, f"{set_path}[{k}]", num_activities)
                for k, item in enumerate(_require_list(raw_set, set_path))
            ))

        bindings.append(Binding(
            required_sets=tuple(required_sets),
            time_scope=_parse_enum(TimeScope, _field(binding, "time_scope", binding_path), f"{binding_path}.time_scope"),
            valid_weekdays=_require_uint(
                binding.get("valid_weekdays", ALL_WEEKDAYS), f"{binding_path}.valid_weekdays", ALL_WEEKDAYS
            ),
            weight=_require_float(binding.get("weight", 0.0), f"{binding_path}.weight", non_negative=True),
        ))
    return tuple(bindings)


def _parse_frequency_target(raw: Any, path: str) -> FrequencyTarget:
    entry = _require_map(raw, path)
    return FrequencyTarget(
        scope=_parse_enum(TimeScope, _field(entry, "scope", path), f"{path}.scope"),
        target_count=_require_uint(_field(entry, "target_count", path), f"{path}.target_count"),
        weight=_require_float(entry.get("weight", 0.0), f"{path}.weight"),
    )


def _parse_user_frequency(raw: Any, path: str) -> UserFrequencyConstraint:
    entry = _require_map(raw, path)

    def optional_uint(key: str, limit=None):
        value = entry.get(key)
        if value is None:
            return None
        return _require_uint(value, f"{path}.{key}", limit)

    min_count = optional_uint("min_count")
    max_count = optional_uint("max_count")
    if min_count is not None and max_count is not None and min_count > max_count:
        raise ProblemFormatError(f"{path}: min_count {min_count} exceeds max_count {max_count}")

    return UserFrequencyConstraint(
        scope=_parse_enum(TimeScope, _field(entry, "scope", path), f"{path}.scope"),
        min_count=min_count,
        max_count=max_count,
        deadline_end=optional_uint("deadline_end", MAX_SLOT),
        penalty_weight=_require_float(entry.get("penalty_weight", 0.0), f"{path}.penalty_weight", non_negative=True),
    )


def _parse_global_constraint(raw: Any, path: str):
    entry = _require_map(raw, path)
    if len(entry) != 1:
        raise ProblemFormatError(f"{path}: expected exactly one variant tag, got {sorted(entry)}")

    (tag, body), = entry.items()
    body = _require_map(body, f"{path}.{tag}")
    body_path = f"{path}.{tag}"

    if tag == "ForbiddenZone":
        return ForbiddenZone(
            start=_require_uint(_field(body, "start", body_path), f"{body_path}.start", MAX_SLOT),
            end=_require_uint(_field(body, "end", body_path), f"{body_path}.end", MAX_SLOT),
        )

    if tag == "CumulativeTime":
        category_id = body.get("category_id")
        if category_id is not None:
            category_id = _require_uint(category_id, f"{body_path}.category_id")
        period_slots = _require_uint(_field(body, "period_slots", body_path), f"{body_path}.period_slots", MAX_SLOT)
        if period_slots == 0:
            raise ProblemFormatError(f"{body_path}.period_slots: must be at least 1")
        return CumulativeTime(
            category_id=category_id,
            period_slots=period_slots,
            min_duration=_require_uint(_field(body, "min_duration", body_path), f"{body_path}.min_duration", MAX_SLOT),
            max_duration=_require_uint(_field(body, "max_duration", body_path), f"{body_path}.max_duration", MAX_SLOT),
        )

    raise ProblemFormatError(f"{path}: unknown global constraint '{tag}'")


def _parse_preference(raw: Any, path: str, num_activities: int, second_is_slot: bool) -> tuple:
    entry = _require_list(raw, path)
    if len(entry) != 3:
        raise ProblemFormatError(f"{path}: expected 3 elements, got {len(entry)}")

    first = _require_id(entry[0], f"{path}[0]", num_activities)
    if second_is_slot:
        second = _require_uint(entry[1], f"{path}[1]", MAX_SLOT)
    else:
        second = _require_id(entry[1], f"{path}[1]", num_activities)
    return (first, second, _require_float(entry[2], f"{path}[2]"))


def _parse_index_list(root: dict, key: str, activities: tuple, expected: ActivityType) -> tuple:
    indices = []
    seen = set()
    for i, raw in enumerate(_require_list(_field(root, key, "problem"), key)):
        index = _require_id(raw, f"{key}[{i}]", len(activities))
        if index in seen:
            raise ProblemFormatError(f"{key}[{i}]: duplicate index {index}")
        if activities[index].activity_type is not expected:
            raise ProblemFormatError(
                f"{key}[{i}]: activity {index} is {activities[index].activity_type.value}, "
                f"expected {expected.value}"
            )
        seen.add(index)
        indices.append(index)
    return tuple(indices)


def _field(entry: dict, key: str, path: str) -> Any:
    if key not in entry:
        raise ProblemFormatError(f"{path}: missing required field '{key}'")
    return entry[key]


def _require_map(value: Any, path: str) -> dict:
    if not isinstance(value, dict):
        raise ProblemFormatError(f"{path}: expected map, got {type(value).__name__}")
    return value


def _require_list(value: Any, path: str) -> list:
    if not isinstance(value, (list, tuple)):
        raise ProblemFormatError(f"{path}: expected array, got {type(value).__name__}")
    return value


def _require_uint(value: Any, path: str, limit=None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProblemFormatError(f"{path}: expected unsigned integer, got {type(value).__name__}")
    if value < 0:
        raise ProblemFormatError(f"{path}: must be non-negative, got {value}")
    if limit is not None and value > limit:
        raise ProblemFormatError(f"{path}: {value} exceeds maximum {limit}")
    return value


def _require_id(value: Any, path: str, num_activities: int) -> int:
    value = _require_uint(value, path)
    if value >= num_activities:
        raise ProblemFormatError(f"{path}: id {value} out of range (0..{num_activities - 1})")
    return value


def _require_float(value: Any, path: str, non_negative: bool = False) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProblemFormatError(f"{path}: expected number, got {type(value).__name__}")
    value = float(value)
    if not math.isfinite(value):
        raise ProblemFormatError(f"{path}: must be finite, got {value}")
    if non_negative and value < 0:
        raise ProblemFormatError(f"{path}: must be non-negative, got {value}")
    return value


def _parse_enum(enum_cls, value: Any, path: str):
    try:
        return enum_cls(value)
    except (ValueError, TypeError):
        allowed = ", ".join(member.value for member in enum_cls)
        raise ProblemFormatError(f"{path}: expected one of {allowed}, got {value!r}")
