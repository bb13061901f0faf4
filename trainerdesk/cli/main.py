"""Terminal CLI entrypoint for Trainer Desk."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Optional

from loguru import logger

from trainerdesk.bridge.simulated import SimulatedBackend
from trainerdesk.config import LOG_LEVELS, AppConfig, ConfigError, default_config, load_config
from trainerdesk.core.session import WorkoutSession
from trainerdesk.log import configure_logging
from trainerdesk.ui.view import DashboardView, build_dashboard
from trainerdesk.workout.codec import WorkoutFormatError, data_url_for_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Trainer Desk workout session")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to appconfig.toml (device pairings, simulation settings)",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Override the configured log level",
    )
    parser.add_argument(
        "--tick",
        type=float,
        default=None,
        help="Seconds per simulated workout tick",
    )
    parser.add_argument(
        "--workout",
        type=Path,
        default=None,
        help="Workout file (.json, .csv) to run headless",
    )
    parser.add_argument(
        "--ui-web",
        action="store_true",
        help="Launch web UI (NiceGUI) for the workout dashboard",
    )
    parser.add_argument(
        "--web-host",
        default="127.0.0.1",
        help="Host bind for --ui-web",
    )
    parser.add_argument(
        "--web-port",
        type=int,
        default=8088,
        help="Port for --ui-web",
    )
    return parser


def format_status_line(view: DashboardView) -> str:
    compliance = "-"
    if view.compliance is not None:
        window = view.compliance
        marker = "ok" if window.in_target else "off"
        compliance = f"{window.target_min:g}-{window.target_max:g} W [{marker}]"
    return (
        f"elapsed={view.total_elapsed} lap_left={view.lap_remaining} "
        f"hr={view.heart_rate} power={view.power} cadence={view.cadence} "
        f"target={compliance}"
    )


async def run_session(
    config: AppConfig,
    workout_path: Path,
    tick_seconds: Optional[float] = None,
) -> int:
    try:
        data_url = data_url_for_file(workout_path)
    except (OSError, WorkoutFormatError) as exc:
        print(f"Cannot read workout: {exc}")
        return 1

    backend = SimulatedBackend(config, tick_seconds=tick_seconds)
    interval = config.simulation.tick_seconds if tick_seconds is None else tick_seconds
    try:
        async with WorkoutSession(backend) as session:
            if not await session.connect():
                print(f"Connect failed: {session.state.connection.failure}")
                return 1
            if not await session.load_workout(data_url):
                error = session.state.error
                print(f"Load failed: {error.message if error else 'unavailable'}")
                return 1

            workout = session.state.workout
            if workout is not None:
                print(f"Workout: {workout.title}")
            start = asyncio.create_task(session.start_workout())
            while not start.done():
                await asyncio.sleep(interval)
                if session.state.progress is not None:
                    print(format_status_line(build_dashboard(session)))

            if not start.result():
                error = session.state.error
                print(f"Workout failed: {error.message if error else 'unavailable'}")
                return 1
            print("Workout complete")
            return 0
    finally:
        await backend.aclose()


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config) if args.config is not None else default_config()
    except ConfigError as exc:
        print(f"Configuration error: {exc}")
        return 2
    if args.tick is not None and args.tick <= 0:
        print("Configuration error: --tick must be > 0")
        return 2

    configure_logging(args.log_level or config.log_level)
    logger.debug(f"configuration: {config}")

    if args.ui_web:
        from trainerdesk.ui.web_app import run_web_ui

        return run_web_ui(
            config=config,
            host=args.web_host,
            port=args.web_port,
            tick_seconds=args.tick,
        )

    if args.workout is None:
        parser.print_help()
        return 1

    return asyncio.run(run_session(config, args.workout, args.tick))


if __name__ == "__main__":
    raise SystemExit(main())
