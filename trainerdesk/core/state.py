"""Session state owned by one ``WorkoutSession``.

Every field is a single last-value-wins slot. Each slot is written by exactly
one handler through the mutation method named after it; readers never race
with writers because all handlers run on the same event loop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from trainerdesk.bridge.payloads import FitnessEquipmentUpdate, HeartRateUpdate
from trainerdesk.workout.model import Workout


class ConnectPhase(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECT_FAILED = "connect_failed"
    CONNECTED = "connected"


class ErrorKind(str, Enum):
    CONNECT = "connect"
    LOAD = "load"
    START = "start"
    PROTOCOL = "protocol"


@dataclass(frozen=True)
class SessionError:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class SessionProgress:
    step_index: int
    step_elapsed: float


@dataclass
class LiveMetrics:
    heart_rate: Optional[float] = None
    cadence: Optional[float] = None
    power: Optional[float] = None


@dataclass
class ConnectionState:
    phase: ConnectPhase = ConnectPhase.IDLE
    failure: Optional[str] = None
    transport_open_requested: bool = False
    devices_open: bool = False
    live_connected: bool = False


@dataclass
class SessionState:
    connection: ConnectionState = field(default_factory=ConnectionState)
    metrics: LiveMetrics = field(default_factory=LiveMetrics)
    workout: Optional[Workout] = None
    progress: Optional[SessionProgress] = None
    error: Optional[SessionError] = None
    workout_running: bool = False

    # error slot

    def record_error(self, kind: ErrorKind, message: str) -> None:
        self.error = SessionError(kind=kind, message=message)

    def clear_error(self) -> None:
        self.error = None

    # connectivity push channel

    def set_live_connected(self, connected: bool) -> None:
        self.connection.live_connected = connected

    # telemetry push channels

    def apply_heart_rate(self, update: HeartRateUpdate) -> None:
        self.metrics.heart_rate = update.value

    def apply_fitness_equipment(self, update: FitnessEquipmentUpdate) -> None:
        self.metrics.cadence = update.cadence
        self.metrics.power = update.power

    # progress push channel

    def apply_progress(self, progress: SessionProgress) -> None:
        self.progress = progress

    # load_workout operation

    def install_workout(self, workout: Workout) -> None:
        """Replace the workout wholesale; progress of the previous one is dropped."""
        self.workout = workout
        self.progress = None
