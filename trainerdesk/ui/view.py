"""Presentation-boundary composition of the session state."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from trainerdesk.core.progress import derive_progress
from trainerdesk.core.session import WorkoutSession
from trainerdesk.core.state import ConnectPhase, SessionProgress
from trainerdesk.metrics.compliance import ComplianceWindow, compliance_window
from trainerdesk.metrics.timeline import TimelineProjection, TimelineProjector
from trainerdesk.ui.format import format_duration, format_value

_NOT_STARTED = SessionProgress(step_index=0, step_elapsed=0)


@dataclass(frozen=True)
class DashboardView:
    phase: ConnectPhase
    live_connected: bool
    ready: bool
    can_open_transport: bool
    can_open_devices: bool
    can_load_workout: bool
    can_start_workout: bool
    workout_running: bool
    error_text: Optional[str]
    workout_title: Optional[str]
    total_elapsed: Optional[str] = None
    lap_remaining: Optional[str] = None
    lap_elapsed: Optional[str] = None
    heart_rate: str = format_value(None)
    power: str = format_value(None)
    cadence: str = format_value(None)
    compliance: Optional[ComplianceWindow] = None
    timeline: Optional[TimelineProjection] = None

    @property
    def signal(self) -> str:
        return "connected" if self.live_connected else "disconnected"


def build_dashboard(
    session: WorkoutSession, projector: Optional[TimelineProjector] = None
) -> DashboardView:
    state = session.state
    metrics = state.metrics
    connection = state.connection
    error = state.error

    view = DashboardView(
        phase=connection.phase,
        live_connected=connection.live_connected,
        ready=session.lifecycle.ready,
        can_open_transport=session.can_open_transport,
        can_open_devices=session.can_open_devices,
        can_load_workout=session.can_load_workout,
        can_start_workout=session.can_start_workout,
        workout_running=state.workout_running,
        error_text=f"Error message: {error.message}" if error is not None else None,
        workout_title=state.workout.title if state.workout is not None else None,
        heart_rate=format_value(metrics.heart_rate, "BPM"),
        power=format_value(metrics.power, "W"),
        cadence=format_value(metrics.cadence, "RPM"),
    )
    if state.workout is None:
        return view

    workout = state.workout
    # Before the first status event the workout shows as sitting at its start.
    progress = state.progress or _NOT_STARTED
    readout = derive_progress(workout, progress)
    step = workout.steps[readout.step_index]
    projector = projector or TimelineProjector()
    return replace(
        view,
        total_elapsed=format_duration(readout.workout_elapsed),
        lap_remaining=format_duration(readout.lap_remaining),
        lap_elapsed=format_duration(readout.lap_elapsed),
        compliance=compliance_window(step.target_range, metrics.power),
        timeline=projector.project(workout, progress),
    )
