"""NiceGUI web UI for a workout session."""

from __future__ import annotations

import asyncio
from typing import Any, Optional, cast

from loguru import logger
from nicegui import app, ui

from trainerdesk.bridge.simulated import SimulatedBackend
from trainerdesk.config import AppConfig
from trainerdesk.core.session import WorkoutSession
from trainerdesk.core.state import ConnectPhase
from trainerdesk.metrics.compliance import ComplianceWindow
from trainerdesk.metrics.timeline import TimelineProjection, TimelineProjector
from trainerdesk.ui.view import DashboardView, build_dashboard
from trainerdesk.workout.codec import DEFAULT_MIME_TYPE, encode_data_url

REFRESH_SEC = 0.25
COMPLIANCE_GRADIENT = {
    "type": "linear",
    "x": 0,
    "y": 0,
    "x2": 1,
    "y2": 0,
    "colorStops": [
        {"offset": offset, "color": color}
        for offset, color in (
            (0.0, "#E31C1C"),
            (0.1, "#ED7827"),
            (0.2, "#FBBE27"),
            (0.4, "#15EA15"),
            (0.6, "#15EA15"),
            (0.8, "#FBBE27"),
            (0.9, "#ED7827"),
            (1.0, "#E31C1C"),
        )
    ],
}


def _compliance_options() -> dict[str, Any]:
    return {
        "title": {"text": "Target: Power", "left": "center", "textStyle": {"fontSize": 20}},
        "grid": {"left": 16, "right": 16, "top": 40, "bottom": 24},
        "xAxis": {"type": "value", "min": 0, "max": 1, "axisLabel": {"show": False}},
        "yAxis": {"type": "category", "data": [""], "show": False},
        "series": [
            {
                "type": "bar",
                "data": [0],
                "barWidth": 40,
                "itemStyle": {"color": COMPLIANCE_GRADIENT},
                "markLine": {"symbol": "none", "data": []},
                "markPoint": {"data": []},
            }
        ],
    }


def _timeline_options() -> dict[str, Any]:
    return {
        "grid": {"left": 40, "right": 8, "top": 8, "bottom": 24},
        "xAxis": {"type": "value", "min": 0, "max": 1},
        "yAxis": {"type": "value", "min": 0},
        "series": [
            {
                "type": "line",
                "step": "end",
                "symbol": "none",
                "data": [],
                "areaStyle": {"color": "steelblue", "opacity": 0.8},
                "lineStyle": {"color": "steelblue"},
                "markLine": {
                    "symbol": "none",
                    "lineStyle": {"width": 4, "color": "#111827"},
                    "data": [],
                },
            }
        ],
    }


def _apply_compliance(options: dict[str, Any], window: Optional[ComplianceWindow]) -> None:
    series = options["series"][0]
    if window is None:
        series["data"] = [0]
        series["markLine"]["data"] = []
        series["markPoint"]["data"] = []
        return

    options["xAxis"]["min"] = window.display_min
    options["xAxis"]["max"] = window.display_max
    series["data"] = [window.display_max]
    series["markLine"]["data"] = [
        {"xAxis": window.target_min, "label": {"formatter": f"{window.target_min:g}"}},
        {"xAxis": window.target_max, "label": {"formatter": f"{window.target_max:g}"}},
    ]
    series["markPoint"]["data"] = (
        []
        if window.position is None
        else [{"coord": [window.position, ""], "symbol": "triangle", "symbolSize": 24}]
    )


def _apply_timeline(options: dict[str, Any], timeline: Optional[TimelineProjection]) -> None:
    series = options["series"][0]
    if timeline is None or not timeline.bars:
        series["data"] = []
        series["markLine"]["data"] = []
        return

    points = [[bar.start, bar.set_point] for bar in timeline.bars]
    points.append([timeline.total_duration, timeline.bars[-1].set_point])
    options["xAxis"]["max"] = timeline.total_duration
    options["yAxis"]["max"] = timeline.max_set_point
    series["data"] = points
    series["markLine"]["data"] = (
        [] if timeline.cursor is None else [{"xAxis": timeline.cursor}]
    )


def run_web_ui(
    *,
    config: AppConfig,
    host: str = "127.0.0.1",
    port: int = 8088,
    tick_seconds: Optional[float] = None,
) -> int:
    backend = SimulatedBackend(config, tick_seconds=tick_seconds)
    session = WorkoutSession(backend)
    projector = TimelineProjector()
    start_task: Optional[asyncio.Task[bool]] = None

    with ui.column().classes("w-full gap-2") as setup_view:
        ui.label("Workout setup").classes("text-xl font-semibold")
        with ui.row().classes("items-center gap-3"):
            retry_btn = ui.button("Retry Connection")
            open_devices_btn = ui.button("Open Devices")
            upload = ui.upload(
                label="Workout (.fit)",
                auto_upload=True,
                max_files=1,
                on_upload=lambda event: on_upload(event),
            ).props(
                "accept=.fit,.json,.csv"
            )

    with ui.column().classes("w-full gap-2") as workout_view:
        workout_title = ui.label("").classes("text-lg font-semibold")
        go_btn = ui.button("GO!")
        with ui.row().classes("w-full justify-between text-center"):
            with ui.column():
                ui.label("Total Elapsed").classes("text-base font-semibold")
                total_elapsed_label = ui.label("0s").classes("text-2xl")
            with ui.column():
                ui.label("Lap Remaining").classes("text-base font-semibold")
                lap_remaining_label = ui.label("0s").classes("text-2xl")
            with ui.column():
                ui.label("Lap Elapsed").classes("text-base font-semibold")
                lap_elapsed_label = ui.label("0s").classes("text-2xl")
        with ui.row().classes("w-full justify-between text-center"):
            with ui.column():
                ui.label("Heart Rate").classes("text-base font-semibold")
                heart_rate_label = ui.label("").classes("text-2xl")
            with ui.column():
                ui.label("Power").classes("text-base font-semibold")
                power_label = ui.label("").classes("text-2xl")
            with ui.column():
                ui.label("Cadence").classes("text-base font-semibold")
                cadence_label = ui.label("").classes("text-2xl")
        compliance_chart = ui.echart(_compliance_options()).classes("w-full h-[140px]")
        timeline_chart = ui.echart(_timeline_options()).classes("w-full h-[300px]")

    error_label = ui.label("").classes("text-red-500")
    with ui.footer().classes("bg-neutral-800"):
        status_label = ui.label("").classes("text-lg")

    def refresh_ui() -> None:
        view: DashboardView = build_dashboard(session, projector)
        status_label.text = f"Node: {view.signal} ({view.phase.value})"
        error_label.text = view.error_text or ""
        error_label.set_visibility(view.error_text is not None)

        in_workout = view.workout_title is not None
        setup_view.set_visibility(not in_workout)
        workout_view.set_visibility(in_workout)
        retry_btn.set_visibility(
            view.phase is ConnectPhase.CONNECT_FAILED and view.can_open_transport
        )
        open_devices_btn.set_enabled(view.can_open_devices)
        upload.set_enabled(view.can_load_workout)
        go_btn.set_enabled(view.can_start_workout)
        if not in_workout:
            return

        workout_title.text = view.workout_title or "Workout"
        total_elapsed_label.text = view.total_elapsed or ""
        lap_remaining_label.text = view.lap_remaining or ""
        lap_elapsed_label.text = view.lap_elapsed or ""
        heart_rate_label.text = view.heart_rate
        power_label.text = view.power
        cadence_label.text = view.cadence

        _apply_compliance(cast(dict[str, Any], compliance_chart.options), view.compliance)
        compliance_chart.update()
        _apply_timeline(cast(dict[str, Any], timeline_chart.options), view.timeline)
        timeline_chart.update()

    async def on_retry() -> None:
        await session.open_transport()
        refresh_ui()

    async def on_open_devices() -> None:
        await session.open_devices()
        refresh_ui()

    async def on_upload(event: Any) -> None:
        content = event.content.read()
        mime_type = getattr(event, "type", "") or DEFAULT_MIME_TYPE
        name = str(getattr(event, "name", ""))
        if name.lower().endswith(".json"):
            mime_type = "application/json"
        elif name.lower().endswith(".csv"):
            mime_type = "text/csv"
        await session.load_workout(encode_data_url(content, mime_type))
        upload.reset()
        refresh_ui()

    async def on_go() -> None:
        nonlocal start_task
        start_task = asyncio.create_task(session.start_workout())
        refresh_ui()

    async def on_startup() -> None:
        session.open()
        await session.open_transport()

    async def on_shutdown() -> None:
        if start_task is not None and not start_task.done():
            start_task.cancel()
        await session.close()
        await backend.aclose()
        logger.info("web session closed")

    retry_btn.on_click(on_retry)
    open_devices_btn.on_click(on_open_devices)
    go_btn.on_click(on_go)
    app.on_startup(on_startup)
    app.on_shutdown(on_shutdown)

    ui.timer(REFRESH_SEC, refresh_ui)
    ui.run(host=host, port=port, reload=False, title="Trainer Desk")
    return 0
