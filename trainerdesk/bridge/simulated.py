"""In-process simulated backend (node, heart-rate monitor, trainer, executor)."""

from __future__ import annotations

import asyncio
import contextlib
import math
import random
import time
from typing import Any, Awaitable, Callable, Optional

from loguru import logger

from trainerdesk.bridge.channels import (
    FITNESS_EQUIPMENT_DATA,
    HEART_RATE,
    NODE_CONNECTED,
    WORKOUT_STATUS,
    EventBus,
    EventHandler,
    Subscription,
)
from trainerdesk.bridge.operations import (
    LOAD_WORKOUT,
    OPEN_FITNESS_EQUIPMENT,
    OPEN_HRM,
    OPEN_NODE,
    START_WORKOUT,
    RemoteError,
)
from trainerdesk.config import AppConfig, default_config
from trainerdesk.workout.codec import (
    WorkoutFormatError,
    decode_data_url,
    parse_workout_document,
    workout_to_payload,
)
from trainerdesk.workout.model import Workout


class SimulatedBackend:
    """Stand-in for the native backend with the same operations and channels.

    ``failures`` maps an operation name to a failure: a string is raised as a
    ``RemoteError``, an exception instance is raised as-is.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        *,
        tick_seconds: Optional[float] = None,
        connect_delay_seconds: Optional[float] = None,
        failures: Optional[dict[str, object]] = None,
        seed: Optional[int] = None,
    ) -> None:
        self._config = config or default_config()
        sim = self._config.simulation
        self._tick_seconds = sim.tick_seconds if tick_seconds is None else tick_seconds
        self._connect_delay = (
            sim.connect_delay_seconds if connect_delay_seconds is None else connect_delay_seconds
        )
        self.failures: dict[str, object] = dict(failures or {})
        self.calls: list[str] = []
        self.bus = EventBus()

        self._handlers: dict[str, Callable[..., Awaitable[Any]]] = {
            OPEN_NODE: self._open_node,
            OPEN_HRM: self._open_hrm,
            OPEN_FITNESS_EQUIPMENT: self._open_fitness_equipment,
            LOAD_WORKOUT: self._load_workout,
            START_WORKOUT: self._start_workout,
        }
        self._node_open = False
        self._hrm_open = False
        self._fe_open = False
        self._workout: Optional[Workout] = None
        self._workout_task: Optional[asyncio.Task[None]] = None
        self._sensor_task: Optional[asyncio.Task[None]] = None
        self._connect_handle: Optional[asyncio.TimerHandle] = None

        self._rng = random.Random(sim.seed if seed is None else seed)
        self._tick = 0
        self._mode = "steady"
        self._mode_remaining = 0
        self._target_watts = 100.0
        self._power = 90.0
        self._cadence = 80.0
        self._heart_rate = 70.0

    @property
    def workout_running(self) -> bool:
        return self._workout_task is not None and not self._workout_task.done()

    def call_count(self, operation: str) -> int:
        return self.calls.count(operation)

    def listen(self, channel: str, handler: EventHandler) -> Subscription:
        return self.bus.subscribe(channel, handler)

    async def invoke(self, operation: str, **arguments: Any) -> Any:
        self.calls.append(operation)
        handler = self._handlers.get(operation)
        if handler is None:
            raise RemoteError(f"unknown command '{operation}'")

        failure = self.failures.get(operation)
        if isinstance(failure, str):
            raise RemoteError(failure)
        if isinstance(failure, BaseException):
            raise failure
        return await handler(**arguments)

    def drop_transport(self) -> None:
        """Simulate a transient loss of the node connection."""
        self.bus.emit(NODE_CONNECTED, False)

    def restore_transport(self) -> None:
        self.bus.emit(NODE_CONNECTED, True)

    async def aclose(self) -> None:
        if self._connect_handle is not None:
            self._connect_handle.cancel()
            self._connect_handle = None
        for task in (self._workout_task, self._sensor_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._workout_task = None
        self._sensor_task = None
        self._node_open = self._hrm_open = self._fe_open = False

    async def _open_node(self) -> None:
        logger.debug("opening node")
        if self._node_open:
            return
        self._node_open = True
        loop = asyncio.get_running_loop()
        # The connected status arrives on its own channel, after the command returns.
        self._connect_handle = loop.call_later(
            self._connect_delay, self.bus.emit, NODE_CONNECTED, True
        )

    async def _open_hrm(self) -> None:
        pairing = self._config.heart_rate_monitor
        logger.debug(
            f"opening heart rate monitor (device_id={pairing.device_id}, "
            f"transmission_type={pairing.transmission_type})"
        )
        if not self._node_open:
            raise RemoteError("node not open")
        self._hrm_open = True
        self._ensure_sensor_task()

    async def _open_fitness_equipment(self) -> None:
        pairing = self._config.fitness_equipment
        logger.debug(
            f"opening fitness equipment (device_id={pairing.device_id}, "
            f"transmission_type={pairing.transmission_type})"
        )
        if not self._node_open:
            raise RemoteError("node not open")
        self._fe_open = True
        self._ensure_sensor_task()

    async def _load_workout(self, data: Optional[str] = None) -> dict[str, Any]:
        if data is None:
            raise RemoteError("no workout data provided")
        try:
            mime_type, content = decode_data_url(data)
            workout = parse_workout_document(content, mime_type)
        except WorkoutFormatError as exc:
            raise RemoteError(f"reading workout: {exc}") from exc
        logger.debug(f"load_workout: {len(workout.steps)} steps")
        self._workout = workout
        return workout_to_payload(workout)

    async def _start_workout(self) -> None:
        if self._workout is None:
            raise RemoteError("no workout loaded")
        if not self._fe_open:
            raise RemoteError("fitness equipment not connected")
        if self.workout_running:
            raise RemoteError("workout already running")

        logger.info("starting workout")
        self._workout_task = asyncio.create_task(self._execute(self._workout))
        try:
            await self._workout_task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            raise RemoteError("workout stopped") from None
        logger.info("workout complete")

    async def _execute(self, workout: Workout) -> None:
        self.bus.emit(WORKOUT_STATUS, {"step_index": 0, "step_elapsed": 0})
        for index, step in enumerate(workout.steps):
            self._target_watts = float(step.set_point)
            for elapsed in range(1, step.duration + 1):
                await asyncio.sleep(self._tick_seconds)
                self.bus.emit(WORKOUT_STATUS, {"step_index": index, "step_elapsed": elapsed})

    def _ensure_sensor_task(self) -> None:
        if self._sensor_task is None or self._sensor_task.done():
            self._sensor_task = asyncio.create_task(self._sensor_loop())

    async def _sensor_loop(self) -> None:
        while self._node_open:
            self._advance_simulation()
            if self._fe_open:
                self.bus.emit(
                    FITNESS_EQUIPMENT_DATA,
                    {"cadence": int(round(self._cadence)), "power": int(round(self._power))},
                )
            if self._hrm_open:
                self.bus.emit(
                    HEART_RATE,
                    {"value": int(round(self._heart_rate)), "timestamp": int(time.time() * 1000)},
                )
            await asyncio.sleep(self._tick_seconds)

    def _advance_simulation(self) -> None:
        self._tick += 1
        if self._mode_remaining <= 0:
            roll = self._rng.random()
            if roll < 0.12:
                self._mode = "surge"
                self._mode_remaining = self._rng.randint(8, 20)
            elif roll < 0.24:
                self._mode = "recovery"
                self._mode_remaining = self._rng.randint(8, 18)
            else:
                self._mode = "steady"
                self._mode_remaining = self._rng.randint(18, 45)
        self._mode_remaining -= 1

        mode_offset = 0.0
        if self._mode == "surge":
            mode_offset = self._rng.uniform(10.0, 30.0)
        elif self._mode == "recovery":
            mode_offset = -self._rng.uniform(10.0, 25.0)

        periodic = 6.0 * math.sin(self._tick / 5.0) + 4.0 * math.sin(self._tick / 11.0)
        noise = self._rng.uniform(-5.0, 5.0)
        dynamic_target = max(0.0, self._target_watts + mode_offset + periodic + noise)

        self._power += max(-30.0, min(30.0, (dynamic_target - self._power) * 0.30))
        cadence_target = 70.0 + (self._power / 9.0) + self._rng.uniform(-4.0, 4.0)
        self._cadence += max(-5.0, min(5.0, (cadence_target - self._cadence) * 0.5))
        self._cadence = max(40.0, min(125.0, self._cadence))

        hr_target = 60.0 + (self._power / 2.5)
        self._heart_rate += max(-2.0, min(2.0, (hr_target - self._heart_rate) * 0.1))
        self._heart_rate = max(45.0, min(200.0, self._heart_rate))
