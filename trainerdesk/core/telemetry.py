"""Last-value-wins aggregation of heart-rate and fitness-equipment telemetry."""

from __future__ import annotations

from loguru import logger

from trainerdesk.bridge.channels import FITNESS_EQUIPMENT_DATA, HEART_RATE, Subscription
from trainerdesk.bridge.operations import Backend
from trainerdesk.bridge.payloads import (
    PayloadError,
    decode_fitness_equipment,
    decode_heart_rate,
)
from trainerdesk.core.state import ErrorKind, LiveMetrics, SessionState


class TelemetryAggregator:
    def __init__(self, backend: Backend, state: SessionState) -> None:
        self._backend = backend
        self._state = state
        self._subscriptions: list[Subscription] = []

    @property
    def metrics(self) -> LiveMetrics:
        return self._state.metrics

    @property
    def active(self) -> bool:
        return bool(self._subscriptions)

    def attach(self) -> None:
        if self._subscriptions:
            return
        self._subscriptions = [
            self._backend.listen(HEART_RATE, self._on_heart_rate),
            self._backend.listen(FITNESS_EQUIPMENT_DATA, self._on_fitness_equipment),
        ]

    def detach(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.close()

    def __enter__(self) -> TelemetryAggregator:
        self.attach()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.detach()

    def _on_heart_rate(self, payload: object) -> None:
        try:
            update = decode_heart_rate(payload)
        except PayloadError as exc:
            self._reject(HEART_RATE, exc)
            return
        self._state.apply_heart_rate(update)

    def _on_fitness_equipment(self, payload: object) -> None:
        try:
            update = decode_fitness_equipment(payload)
        except PayloadError as exc:
            self._reject(FITNESS_EQUIPMENT_DATA, exc)
            return
        self._state.apply_fitness_equipment(update)

    def _reject(self, channel: str, exc: PayloadError) -> None:
        logger.warning(f"rejected {channel} event: {exc}")
        self._state.record_error(ErrorKind.PROTOCOL, str(exc))
