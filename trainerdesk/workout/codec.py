"""Workout encoding: backend responses, data URIs and JSON/CSV workout documents."""

from __future__ import annotations

import base64
import binascii
import csv
import io
import json
import math
import mimetypes
from pathlib import Path
from typing import Any
from urllib.parse import unquote_to_bytes

from trainerdesk.workout.model import Step, Workout

DEFAULT_MIME_TYPE = "application/octet-stream"
JSON_MIME_TYPE = "application/json"
CSV_MIME_TYPE = "text/csv"

_DOCUMENT_MIME_TYPES = {
    ".json": JSON_MIME_TYPE,
    ".csv": CSV_MIME_TYPE,
    ".fit": DEFAULT_MIME_TYPE,
}


class WorkoutFormatError(ValueError):
    """Raised when a workout response or document is invalid."""


def workout_from_payload(payload: object) -> Workout:
    """Validate the ``load_workout`` response of the backend into a ``Workout``."""
    if not isinstance(payload, dict):
        raise WorkoutFormatError("Workout must be an object")

    title = payload.get("title", "")
    if not isinstance(title, str):
        raise WorkoutFormatError("Workout field 'title' must be a string")

    raw_steps = payload.get("steps")
    if not isinstance(raw_steps, list):
        raise WorkoutFormatError("Workout field 'steps' must be an array")

    steps: list[Step] = []
    for i, raw in enumerate(raw_steps):
        if not isinstance(raw, dict):
            raise WorkoutFormatError(f"Step {i + 1}: must be an object")
        target = raw.get("target_range")
        if not isinstance(target, (list, tuple)) or len(target) != 2:
            raise WorkoutFormatError(f"Step {i + 1}: target_range must be a [min, max] pair")
        steps.append(
            _build_step(
                duration_obj=raw.get("duration"),
                set_point_obj=raw.get("set_point"),
                low_obj=target[0],
                high_obj=target[1],
                index=i,
            )
        )

    return _build_workout(title=title.strip(), steps=steps)


def workout_to_payload(workout: Workout) -> dict[str, Any]:
    return {
        "title": workout.title,
        "steps": [
            {
                "duration": step.duration,
                "set_point": step.set_point,
                "target_range": [step.target_min, step.target_max],
            }
            for step in workout.steps
        ],
    }


def encode_data_url(content: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type or DEFAULT_MIME_TYPE};base64,{encoded}"


def data_url_for_file(path: str | Path) -> str:
    """Read a workout file the way a browser FileReader.readAsDataURL would."""
    file_path = Path(path)
    suffix = file_path.suffix.lower()
    mime_type = _DOCUMENT_MIME_TYPES.get(suffix)
    if mime_type is None:
        mime_type = mimetypes.guess_type(file_path.name)[0] or DEFAULT_MIME_TYPE
    return encode_data_url(file_path.read_bytes(), mime_type)


def decode_data_url(url: str) -> tuple[str, bytes]:
    """Split a ``data:`` URI into its media type and raw bytes."""
    if not url.startswith("data:"):
        raise WorkoutFormatError("Workout data must be a data URI")
    header, sep, body = url[5:].partition(",")
    if not sep:
        raise WorkoutFormatError("Malformed data URI: missing ','")

    params = header.split(";")
    mime_type = params[0].strip().lower() or "text/plain"
    if "base64" in (p.strip().lower() for p in params[1:]):
        try:
            return mime_type, base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise WorkoutFormatError(f"Malformed base64 payload: {exc}") from exc
    return mime_type, unquote_to_bytes(body)


def parse_workout_document(content: bytes, mime_type: str, title: str = "") -> Workout:
    """Parse a JSON or CSV workout document."""
    if mime_type == JSON_MIME_TYPE:
        return _parse_json(content, title)
    if mime_type in (CSV_MIME_TYPE, "application/csv"):
        return _parse_csv(content, title)
    raise WorkoutFormatError(
        f"Unsupported workout format '{mime_type}'. Use JSON or CSV documents"
    )


def _parse_json(content: bytes, title: str) -> Workout:
    try:
        data = json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise WorkoutFormatError(f"Invalid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise WorkoutFormatError("Workout JSON must be an object")

    title_obj = data.get("title", title)
    if not isinstance(title_obj, str):
        raise WorkoutFormatError("Workout field 'title' must be a string")

    steps_obj = data.get("steps")
    if not isinstance(steps_obj, list):
        raise WorkoutFormatError("Workout field 'steps' must be an array")

    steps: list[Step] = []
    _expand_json_steps(steps_obj, steps)
    return _build_workout(title=title_obj.strip() or title, steps=steps)


def _expand_json_steps(items: list[object], out: list[Step]) -> None:
    for raw in items:
        index = len(out)
        if not isinstance(raw, dict):
            raise WorkoutFormatError(f"Step {index + 1}: must be an object")

        if "repeat" in raw:
            repetitions = _parse_int_field(raw=raw.get("repeat"), field_name="repeat", index=index)
            if repetitions <= 0:
                raise WorkoutFormatError(f"Step {index + 1}: repeat must be > 0")
            block = raw.get("steps")
            if not isinstance(block, list) or not block:
                raise WorkoutFormatError(f"Step {index + 1}: repeat needs a non-empty 'steps' array")
            start = len(out)
            _expand_json_steps(block, out)
            repeated = out[start:]
            for _ in range(repetitions - 1):
                out.extend(repeated)
            continue

        out.append(
            _build_step(
                duration_obj=raw.get("duration"),
                set_point_obj=raw.get("set_point"),
                low_obj=raw.get("target_low"),
                high_obj=raw.get("target_high"),
                index=index,
            )
        )


def _parse_csv(content: bytes, title: str) -> Workout:
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise WorkoutFormatError(f"Invalid CSV encoding: {exc}") from exc

    reader = csv.DictReader(io.StringIO(text, newline=""))
    fields = set(reader.fieldnames or [])
    required = {"duration", "target_low", "target_high"}
    if not required.issubset(fields):
        raise WorkoutFormatError(
            "CSV must contain headers: duration,target_low,target_high[,set_point]"
        )

    steps = [
        _build_step(
            duration_obj=row.get("duration"),
            set_point_obj=row.get("set_point"),
            low_obj=row.get("target_low"),
            high_obj=row.get("target_high"),
            index=i,
        )
        for i, row in enumerate(reader)
    ]
    return _build_workout(title=title, steps=steps)


def _build_step(
    *,
    duration_obj: object,
    set_point_obj: object,
    low_obj: object,
    high_obj: object,
    index: int,
) -> Step:
    duration = _parse_int_field(raw=duration_obj, field_name="duration", index=index)
    if duration <= 0:
        raise WorkoutFormatError(f"Step {index + 1}: duration must be > 0")

    low = _parse_number_field(raw=low_obj, field_name="target_low", index=index)
    high = _parse_number_field(raw=high_obj, field_name="target_high", index=index)
    if low > high:
        raise WorkoutFormatError(f"Step {index + 1}: target_low must be <= target_high")

    set_point: float
    if set_point_obj is None or (isinstance(set_point_obj, str) and not set_point_obj.strip()):
        if isinstance(low, int) and isinstance(high, int):
            set_point = (low + high) // 2
        else:
            set_point = (low + high) / 2
    else:
        set_point = _parse_number_field(raw=set_point_obj, field_name="set_point", index=index)

    return Step(duration=duration, set_point=set_point, target_range=(low, high))


def _build_workout(*, title: str, steps: list[Step]) -> Workout:
    if not steps:
        raise WorkoutFormatError("Workout must contain at least one step")
    return Workout(title=title, steps=tuple(steps))


def _parse_int_field(*, raw: object, field_name: str, index: int) -> int:
    if raw is None or isinstance(raw, bool):
        raise WorkoutFormatError(f"Step {index + 1}: invalid {field_name}")
    if isinstance(raw, float):
        if not raw.is_integer():
            raise WorkoutFormatError(f"Step {index + 1}: {field_name} must be a whole number")
        return int(raw)
    try:
        return int(str(raw).strip())
    except ValueError as exc:
        raise WorkoutFormatError(f"Step {index + 1}: invalid {field_name}") from exc


def _parse_number_field(*, raw: object, field_name: str, index: int) -> float:
    if raw is None or isinstance(raw, bool):
        raise WorkoutFormatError(f"Step {index + 1}: invalid {field_name}")
    value: float
    if isinstance(raw, (int, float)):
        value = raw
    else:
        text = str(raw).strip()
        try:
            value = int(text)
        except ValueError:
            try:
                value = float(text)
            except ValueError as exc:
                raise WorkoutFormatError(f"Step {index + 1}: invalid {field_name}") from exc
    if not math.isfinite(value):
        raise WorkoutFormatError(f"Step {index + 1}: {field_name} must be finite")
    return value
