"""Typed decoding of push-event payloads."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional


class PayloadError(ValueError):
    """Raised when a push-event payload does not match its channel's shape."""


@dataclass(frozen=True)
class HeartRateUpdate:
    value: float
    timestamp_ms: Optional[int] = None


@dataclass(frozen=True)
class FitnessEquipmentUpdate:
    cadence: Optional[float] = None
    power: Optional[float] = None


@dataclass(frozen=True)
class WorkoutStatus:
    step_index: int
    step_elapsed: float


def decode_connectivity(payload: object) -> bool:
    if not isinstance(payload, bool):
        raise PayloadError(f"node_connected payload must be a boolean, got {payload!r}")
    return payload


def decode_heart_rate(payload: object) -> HeartRateUpdate:
    data = _require_object(payload, "heart_rate")
    value = _number(data.get("value"), "heart_rate.value")
    if value is None:
        raise PayloadError("heart_rate.value is required")

    timestamp = data.get("timestamp")
    if timestamp is not None and (isinstance(timestamp, bool) or not isinstance(timestamp, int)):
        raise PayloadError("heart_rate.timestamp must be an integer")
    return HeartRateUpdate(value=value, timestamp_ms=timestamp)


def decode_fitness_equipment(payload: object) -> FitnessEquipmentUpdate:
    data = _require_object(payload, "fitness_equipment_data")
    return FitnessEquipmentUpdate(
        cadence=_number(data.get("cadence"), "fitness_equipment_data.cadence"),
        power=_number(data.get("power"), "fitness_equipment_data.power"),
    )


def decode_workout_status(payload: object) -> WorkoutStatus:
    data = _require_object(payload, "workout_status")
    step_index = data.get("step_index")
    if isinstance(step_index, bool) or not isinstance(step_index, int):
        raise PayloadError("workout_status.step_index must be an integer")
    step_elapsed = _number(data.get("step_elapsed"), "workout_status.step_elapsed")
    if step_elapsed is None:
        raise PayloadError("workout_status.step_elapsed is required")
    return WorkoutStatus(step_index=step_index, step_elapsed=step_elapsed)


def _require_object(payload: object, channel: str) -> dict:
    if not isinstance(payload, dict):
        raise PayloadError(f"{channel} payload must be an object, got {payload!r}")
    return payload


def _number(raw: object, field_name: str) -> Optional[float]:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise PayloadError(f"{field_name} must be a number, got {raw!r}")
    if not math.isfinite(raw):
        raise PayloadError(f"{field_name} must be finite")
    return raw
