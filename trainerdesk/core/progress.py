"""Workout progress mirrored from backend status events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from trainerdesk.bridge.channels import WORKOUT_STATUS, Subscription
from trainerdesk.bridge.operations import Backend
from trainerdesk.bridge.payloads import PayloadError, decode_workout_status
from trainerdesk.core.state import ErrorKind, SessionProgress, SessionState
from trainerdesk.workout.model import Workout


class ProgressOutOfRange(ValueError):
    """Raised when a status event does not fit the loaded workout."""


@dataclass(frozen=True)
class ProgressReadout:
    step_index: int
    workout_elapsed: float
    lap_elapsed: float
    lap_remaining: float
    total_duration: int

    @property
    def workout_remaining(self) -> float:
        return self.total_duration - self.workout_elapsed

    @property
    def complete(self) -> bool:
        return self.workout_elapsed == self.total_duration


def validate_progress(workout: Optional[Workout], progress: SessionProgress) -> None:
    if workout is None:
        raise ProgressOutOfRange("workout status received with no workout loaded")
    if not 0 <= progress.step_index < len(workout.steps):
        raise ProgressOutOfRange(
            f"step_index {progress.step_index} outside workout of {len(workout.steps)} steps"
        )
    duration = workout.steps[progress.step_index].duration
    if not 0 <= progress.step_elapsed <= duration:
        raise ProgressOutOfRange(
            f"step_elapsed {progress.step_elapsed} outside [0, {duration}] "
            f"for step {progress.step_index}"
        )


def derive_progress(workout: Workout, progress: SessionProgress) -> ProgressReadout:
    """Elapsed and remaining times for the whole workout and the current step."""
    validate_progress(workout, progress)
    step = workout.steps[progress.step_index]
    return ProgressReadout(
        step_index=progress.step_index,
        workout_elapsed=workout.elapsed_before(progress.step_index) + progress.step_elapsed,
        lap_elapsed=progress.step_elapsed,
        lap_remaining=step.duration - progress.step_elapsed,
        total_duration=workout.total_duration,
    )


class SessionProgressTracker:
    """Replaces ``SessionProgress`` wholesale on every ``workout_status`` event.

    Events that do not index the loaded workout are rejected and recorded as
    protocol errors; the previous progress is kept.
    """

    def __init__(self, backend: Backend, state: SessionState) -> None:
        self._backend = backend
        self._state = state
        self._subscription: Optional[Subscription] = None

    @property
    def active(self) -> bool:
        return self._subscription is not None

    @property
    def readout(self) -> Optional[ProgressReadout]:
        workout, progress = self._state.workout, self._state.progress
        if workout is None or progress is None:
            return None
        return derive_progress(workout, progress)

    def attach(self) -> None:
        if self._subscription is None:
            self._subscription = self._backend.listen(WORKOUT_STATUS, self._on_workout_status)

    def detach(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.close()

    def __enter__(self) -> SessionProgressTracker:
        self.attach()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.detach()

    def _on_workout_status(self, payload: object) -> None:
        try:
            status = decode_workout_status(payload)
            progress = SessionProgress(status.step_index, status.step_elapsed)
            validate_progress(self._state.workout, progress)
        except (PayloadError, ProgressOutOfRange) as exc:
            logger.error(f"rejected workout_status event: {exc}")
            self._state.record_error(ErrorKind.PROTOCOL, str(exc))
            return
        self._state.apply_progress(progress)
