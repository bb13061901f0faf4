"""Workout session: owns the state and sequences the user-facing actions."""

from __future__ import annotations

import contextlib
from typing import Optional

from loguru import logger

from trainerdesk.bridge.operations import LOAD_WORKOUT, START_WORKOUT, Backend, call_remote
from trainerdesk.core.lifecycle import DeviceLifecycleController
from trainerdesk.core.progress import ProgressReadout, SessionProgressTracker
from trainerdesk.core.state import ErrorKind, SessionState
from trainerdesk.core.telemetry import TelemetryAggregator
from trainerdesk.workout.codec import WorkoutFormatError, workout_from_payload


class WorkoutView:
    """Telemetry and progress subscriptions scoped to the workout screen."""

    def __init__(self, backend: Backend, state: SessionState) -> None:
        self.telemetry = TelemetryAggregator(backend, state)
        self.progress = SessionProgressTracker(backend, state)
        self._stack: Optional[contextlib.ExitStack] = None

    @property
    def active(self) -> bool:
        return self._stack is not None

    def open(self) -> None:
        if self._stack is not None:
            return
        with contextlib.ExitStack() as stack:
            stack.enter_context(self.progress)
            stack.enter_context(self.telemetry)
            self._stack = stack.pop_all()

    def close(self) -> None:
        stack, self._stack = self._stack, None
        if stack is not None:
            stack.close()


class WorkoutSession:
    def __init__(self, backend: Backend, state: Optional[SessionState] = None) -> None:
        self._backend = backend
        self.state = state or SessionState()
        self.lifecycle = DeviceLifecycleController(backend, self.state)
        self._view: Optional[WorkoutView] = None
        self._closed = False

    async def __aenter__(self) -> WorkoutSession:
        self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def view(self) -> Optional[WorkoutView]:
        return self._view

    @property
    def can_open_transport(self) -> bool:
        return self.lifecycle.can_open_transport

    @property
    def can_open_devices(self) -> bool:
        return self.lifecycle.can_open_devices

    @property
    def can_load_workout(self) -> bool:
        return self.state.connection.devices_open

    @property
    def can_start_workout(self) -> bool:
        return (
            self.state.workout is not None
            and self._view is not None
            and not self.state.workout_running
        )

    @property
    def readout(self) -> Optional[ProgressReadout]:
        if self._view is None:
            return None
        return self._view.progress.readout

    def open(self) -> None:
        if self._closed:
            raise RuntimeError("Session already closed")
        self.lifecycle.attach()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.close_view()
        self.lifecycle.shutdown()

    def close_view(self) -> None:
        view, self._view = self._view, None
        if view is not None:
            view.close()

    async def connect(self) -> bool:
        return await self.lifecycle.connect()

    async def open_transport(self) -> bool:
        return await self.lifecycle.open_transport()

    async def open_devices(self) -> bool:
        return await self.lifecycle.open_devices()

    async def load_workout(self, data_url: Optional[str]) -> bool:
        if self._closed:
            return False
        if not self.can_load_workout:
            logger.warning("load workout unavailable: devices not open")
            return False

        outcome = await call_remote(self._backend, LOAD_WORKOUT, data=data_url)
        if self._closed:
            logger.debug("ignoring load_workout response after close")
            return False
        if outcome.error is not None:
            self.state.record_error(ErrorKind.LOAD, outcome.error)
            return False
        try:
            workout = workout_from_payload(outcome.value)
        except WorkoutFormatError as exc:
            logger.warning(f"backend returned an invalid workout: {exc}")
            self.state.record_error(ErrorKind.LOAD, str(exc))
            return False

        self.state.install_workout(workout)
        logger.info(
            f"workout loaded: '{workout.title}' "
            f"({len(workout.steps)} steps, {workout.total_duration}s)"
        )
        if self._view is None:
            view = WorkoutView(self._backend, self.state)
            view.open()
            self._view = view
        return True

    async def start_workout(self) -> bool:
        """Start the loaded workout; resolves when the backend's command resolves."""
        if self._closed or not self.can_start_workout:
            logger.warning("start workout unavailable")
            return False

        view = self._view
        self.state.workout_running = True
        try:
            outcome = await call_remote(self._backend, START_WORKOUT)
        finally:
            if not self._closed:
                self.state.workout_running = False

        if view is None or not view.active or self._closed:
            logger.debug("ignoring start_workout response for a closed view")
            return False
        if outcome.error is not None:
            self.state.record_error(ErrorKind.START, outcome.error)
            return False
        return True
