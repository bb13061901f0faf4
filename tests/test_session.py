from __future__ import annotations

import asyncio
import json

from trainerdesk.bridge.channels import FITNESS_EQUIPMENT_DATA, HEART_RATE, WORKOUT_STATUS
from trainerdesk.bridge.operations import LOAD_WORKOUT, START_WORKOUT
from trainerdesk.bridge.simulated import SimulatedBackend
from trainerdesk.core.session import WorkoutSession
from trainerdesk.core.state import ErrorKind, SessionProgress
from trainerdesk.workout.codec import JSON_MIME_TYPE, encode_data_url


def _workout_url(title: str, *durations: int) -> str:
    document = {
        "title": title,
        "steps": [
            {"duration": d, "target_low": 100 + 20 * i, "target_high": 150 + 20 * i}
            for i, d in enumerate(durations)
        ],
    }
    return encode_data_url(json.dumps(document).encode("utf-8"), JSON_MIME_TYPE)


def _backend() -> SimulatedBackend:
    return SimulatedBackend(tick_seconds=0.001, connect_delay_seconds=0, seed=7)


def test_actions_are_gated_until_ready() -> None:
    async def _run() -> None:
        backend = _backend()
        async with WorkoutSession(backend) as session:
            assert not session.can_load_workout
            assert not session.can_start_workout
            assert not await session.load_workout(_workout_url("Early", 10))
            assert not await session.start_workout()
            assert backend.call_count(LOAD_WORKOUT) == 0
            assert backend.call_count(START_WORKOUT) == 0

            assert await session.connect()
            assert session.can_load_workout
            assert not session.can_start_workout

            assert await session.load_workout(_workout_url("Ready", 10))
            assert session.can_start_workout
            assert session.view is not None and session.view.active
        await backend.aclose()

    asyncio.run(_run())


def test_load_failure_keeps_previous_workout() -> None:
    async def _run() -> None:
        backend = _backend()
        async with WorkoutSession(backend) as session:
            await session.connect()
            assert await session.load_workout(_workout_url("First", 60, 30))
            first = session.state.workout

            bad_url = encode_data_url(b"\x0e\x10FIT", "application/octet-stream")
            assert not await session.load_workout(bad_url)

            assert session.state.workout is first
            assert session.state.error is not None
            assert session.state.error.kind is ErrorKind.LOAD
            assert session.state.error.message.startswith("reading workout:")

            assert not await session.load_workout(None)
            assert session.state.error.message == "no workout data provided"
        await backend.aclose()

    asyncio.run(_run())


def test_reload_resets_progress_and_keeps_metrics() -> None:
    async def _run() -> None:
        backend = _backend()
        async with WorkoutSession(backend) as session:
            await session.connect()
            await session.load_workout(_workout_url("First", 60, 30))
            backend.bus.emit(WORKOUT_STATUS, {"step_index": 1, "step_elapsed": 20})
            backend.bus.emit(HEART_RATE, {"value": 140})
            assert session.state.progress == SessionProgress(1, 20)
            view = session.view

            assert await session.load_workout(_workout_url("Second", 45))

            assert session.state.workout is not None
            assert session.state.workout.title == "Second"
            assert session.state.progress is None
            assert session.state.metrics.heart_rate is not None
            assert session.view is view
            assert backend.bus.subscriber_count(WORKOUT_STATUS) == 1
            assert backend.bus.subscriber_count(HEART_RATE) == 1
        await backend.aclose()

    asyncio.run(_run())


def test_start_failure_is_recorded() -> None:
    async def _run() -> None:
        backend = _backend()
        async with WorkoutSession(backend) as session:
            await session.connect()
            await session.load_workout(_workout_url("Tempo", 10))
            backend.failures[START_WORKOUT] = "trainer busy"

            assert not await session.start_workout()

            assert session.state.error is not None
            assert session.state.error.kind is ErrorKind.START
            assert session.state.error.message == "trainer busy"
            assert not session.state.workout_running
            assert session.can_start_workout
        await backend.aclose()

    asyncio.run(_run())


def test_start_response_after_view_closed_is_ignored() -> None:
    async def _run() -> None:
        backend = _backend()
        async with WorkoutSession(backend) as session:
            await session.connect()
            await session.load_workout(_workout_url("Long", 600))

            pending = asyncio.create_task(session.start_workout())
            await asyncio.sleep(0.01)
            assert session.state.workout_running

            session.close_view()
            await backend.aclose()

            assert not await pending
            assert session.state.error is None
            assert backend.bus.subscriber_count(WORKOUT_STATUS) == 0
            assert backend.bus.subscriber_count(FITNESS_EQUIPMENT_DATA) == 0

    asyncio.run(_run())


def test_close_releases_everything() -> None:
    async def _run() -> None:
        backend = _backend()
        session = WorkoutSession(backend)
        session.open()
        await session.connect()
        await session.load_workout(_workout_url("Tempo", 10))

        await session.close()
        await session.close()

        assert session.closed
        assert session.view is None
        assert not session.lifecycle.attached
        for channel in (WORKOUT_STATUS, HEART_RATE, FITNESS_EQUIPMENT_DATA):
            assert backend.bus.subscriber_count(channel) == 0
        assert not await session.load_workout(_workout_url("Late", 10))
        assert backend.call_count(LOAD_WORKOUT) == 1
        await backend.aclose()

    asyncio.run(_run())


def test_end_to_end_simulated_workout() -> None:
    async def _run() -> None:
        backend = _backend()
        statuses: list[object] = []
        backend.listen(WORKOUT_STATUS, statuses.append)

        async with WorkoutSession(backend) as session:
            assert await session.connect()
            await asyncio.sleep(0.005)
            assert session.lifecycle.ready

            assert await session.load_workout(_workout_url("Short", 3, 2))
            assert await session.start_workout()

            assert not session.state.workout_running
            assert session.state.error is None
            assert session.state.progress == SessionProgress(1, 2)
            readout = session.readout
            assert readout is not None
            assert readout.complete
            assert readout.lap_remaining == 0
            assert session.state.metrics.heart_rate is not None
            assert session.state.metrics.power is not None
        await backend.aclose()

        assert len(statuses) == 1 + 5
        assert statuses[0] == {"step_index": 0, "step_elapsed": 0}
        assert statuses[-1] == {"step_index": 1, "step_elapsed": 2}

    asyncio.run(_run())
