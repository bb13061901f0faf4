from __future__ import annotations

import pytest

from trainerdesk.bridge.channels import FITNESS_EQUIPMENT_DATA, HEART_RATE
from trainerdesk.bridge.simulated import SimulatedBackend
from trainerdesk.core.state import ErrorKind, SessionState
from trainerdesk.core.telemetry import TelemetryAggregator


def test_last_value_wins_per_channel() -> None:
    backend = SimulatedBackend()
    state = SessionState()

    with TelemetryAggregator(backend, state) as telemetry:
        backend.bus.emit(HEART_RATE, {"value": 120})
        backend.bus.emit(HEART_RATE, {"value": 131, "timestamp": 1000})
        backend.bus.emit(FITNESS_EQUIPMENT_DATA, {"cadence": 88, "power": 215})
        backend.bus.emit(FITNESS_EQUIPMENT_DATA, {"cadence": 92, "power": 230})

        assert telemetry.metrics.heart_rate == 131
        assert telemetry.metrics.cadence == 92
        assert telemetry.metrics.power == 230


def test_silent_channel_stays_absent() -> None:
    backend = SimulatedBackend()
    state = SessionState()

    with TelemetryAggregator(backend, state):
        backend.bus.emit(FITNESS_EQUIPMENT_DATA, {"cadence": 0, "power": 0})

    assert state.metrics.heart_rate is None
    assert state.metrics.cadence == 0
    assert state.metrics.power == 0


def test_missing_field_overwrites_to_absent() -> None:
    backend = SimulatedBackend()
    state = SessionState()

    with TelemetryAggregator(backend, state):
        backend.bus.emit(FITNESS_EQUIPMENT_DATA, {"cadence": 85, "power": 190})
        backend.bus.emit(FITNESS_EQUIPMENT_DATA, {"power": 200})

    assert state.metrics.cadence is None
    assert state.metrics.power == 200


def test_detach_releases_subscriptions() -> None:
    backend = SimulatedBackend()
    state = SessionState()
    telemetry = TelemetryAggregator(backend, state)

    telemetry.attach()
    telemetry.attach()
    assert telemetry.active
    assert backend.bus.subscriber_count(HEART_RATE) == 1
    assert backend.bus.subscriber_count(FITNESS_EQUIPMENT_DATA) == 1

    telemetry.detach()
    backend.bus.emit(HEART_RATE, {"value": 150})

    assert not telemetry.active
    assert backend.bus.subscriber_count(HEART_RATE) == 0
    assert backend.bus.subscriber_count(FITNESS_EQUIPMENT_DATA) == 0
    assert state.metrics.heart_rate is None


def test_subscriptions_released_when_view_body_raises() -> None:
    backend = SimulatedBackend()
    state = SessionState()

    with pytest.raises(RuntimeError):
        with TelemetryAggregator(backend, state):
            raise RuntimeError("view failed to render")

    assert backend.bus.subscriber_count(HEART_RATE) == 0
    assert backend.bus.subscriber_count(FITNESS_EQUIPMENT_DATA) == 0


def test_malformed_payload_is_protocol_error() -> None:
    backend = SimulatedBackend()
    state = SessionState()

    with TelemetryAggregator(backend, state):
        backend.bus.emit(HEART_RATE, {"value": 100})
        backend.bus.emit(HEART_RATE, {"value": "high"})

    assert state.metrics.heart_rate == 100
    assert state.error is not None
    assert state.error.kind is ErrorKind.PROTOCOL
