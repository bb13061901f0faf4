from __future__ import annotations

import asyncio

import pytest

from trainerdesk.bridge.channels import FITNESS_EQUIPMENT_DATA, HEART_RATE, NODE_CONNECTED
from trainerdesk.bridge.operations import (
    LOAD_WORKOUT,
    OPEN_FITNESS_EQUIPMENT,
    OPEN_HRM,
    OPEN_NODE,
    START_WORKOUT,
    RemoteError,
)
from trainerdesk.bridge.simulated import SimulatedBackend
from trainerdesk.workout.codec import CSV_MIME_TYPE, encode_data_url


def test_devices_require_open_node() -> None:
    async def _run() -> None:
        backend = SimulatedBackend()
        with pytest.raises(RemoteError, match="node not open"):
            await backend.invoke(OPEN_HRM)
        with pytest.raises(RemoteError, match="node not open"):
            await backend.invoke(OPEN_FITNESS_EQUIPMENT)

    asyncio.run(_run())


def test_unknown_operation_is_rejected() -> None:
    async def _run() -> None:
        backend = SimulatedBackend()
        with pytest.raises(RemoteError, match="unknown command 'calibrate'"):
            await backend.invoke("calibrate")
        assert backend.calls == ["calibrate"]

    asyncio.run(_run())


def test_node_connected_arrives_after_open_node() -> None:
    async def _run() -> None:
        backend = SimulatedBackend(connect_delay_seconds=0.01)
        events: list[object] = []
        backend.listen(NODE_CONNECTED, events.append)

        await backend.invoke(OPEN_NODE)
        assert events == []

        await asyncio.sleep(0.03)
        assert events == [True]
        await backend.aclose()

    asyncio.run(_run())


def test_sensor_loop_emits_telemetry() -> None:
    async def _run() -> None:
        backend = SimulatedBackend(tick_seconds=0.001, connect_delay_seconds=0, seed=3)
        heart_rates: list[dict] = []
        equipment: list[dict] = []
        backend.listen(HEART_RATE, heart_rates.append)
        backend.listen(FITNESS_EQUIPMENT_DATA, equipment.append)

        await backend.invoke(OPEN_NODE)
        await backend.invoke(OPEN_HRM)
        await backend.invoke(OPEN_FITNESS_EQUIPMENT)
        await asyncio.sleep(0.02)
        await backend.aclose()

        assert heart_rates and equipment
        assert 45 <= heart_rates[-1]["value"] <= 200
        assert isinstance(heart_rates[-1]["timestamp"], int)
        assert 40 <= equipment[-1]["cadence"] <= 125
        assert equipment[-1]["power"] >= 0

    asyncio.run(_run())


def test_load_workout_returns_workout_payload() -> None:
    async def _run() -> None:
        backend = SimulatedBackend()
        url = encode_data_url(b"duration,target_low,target_high\n60,100,150\n", CSV_MIME_TYPE)

        payload = await backend.invoke(LOAD_WORKOUT, data=url)

        assert payload == {
            "title": "",
            "steps": [{"duration": 60, "set_point": 125, "target_range": [100, 150]}],
        }
        with pytest.raises(RemoteError, match="reading workout"):
            await backend.invoke(LOAD_WORKOUT, data="not a data uri")

    asyncio.run(_run())


def test_start_workout_preconditions() -> None:
    async def _run() -> None:
        backend = SimulatedBackend(tick_seconds=0.001, connect_delay_seconds=0)
        with pytest.raises(RemoteError, match="no workout loaded"):
            await backend.invoke(START_WORKOUT)

        url = encode_data_url(b"duration,target_low,target_high\n2,100,150\n", CSV_MIME_TYPE)
        await backend.invoke(LOAD_WORKOUT, data=url)
        with pytest.raises(RemoteError, match="fitness equipment not connected"):
            await backend.invoke(START_WORKOUT)

        await backend.invoke(OPEN_NODE)
        await backend.invoke(OPEN_FITNESS_EQUIPMENT)
        first = asyncio.create_task(backend.invoke(START_WORKOUT))
        await asyncio.sleep(0)
        assert backend.workout_running
        with pytest.raises(RemoteError, match="already running"):
            await backend.invoke(START_WORKOUT)

        await first
        assert not backend.workout_running
        await backend.aclose()

    asyncio.run(_run())


def test_configured_failures() -> None:
    async def _run() -> None:
        backend = SimulatedBackend(failures={OPEN_NODE: "no ANT+ stick", OPEN_HRM: OSError(5, "io")})
        with pytest.raises(RemoteError, match="no ANT\\+ stick"):
            await backend.invoke(OPEN_NODE)
        with pytest.raises(OSError):
            await backend.invoke(OPEN_HRM)
        assert backend.call_count(OPEN_NODE) == 1

    asyncio.run(_run())
