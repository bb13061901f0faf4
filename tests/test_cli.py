from __future__ import annotations

from pathlib import Path

import pytest

from trainerdesk.cli.main import build_parser, main


def _write_config(tmp_path: Path) -> Path:
    config_file = tmp_path / "appconfig.toml"
    config_file.write_text(
        "[simulation]\ntick_seconds = 0.001\nconnect_delay_seconds = 0\nseed = 1\n",
        encoding="utf-8",
    )
    return config_file


def test_parser_defaults() -> None:
    args = build_parser().parse_args([])

    assert args.config is None
    assert args.workout is None
    assert not args.ui_web
    assert args.web_host == "127.0.0.1"
    assert args.web_port == 8088


def test_headless_run_completes(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    workout_file = tmp_path / "short.csv"
    workout_file.write_text(
        "duration,target_low,target_high\n2,100,150\n1,200,220\n", encoding="utf-8"
    )

    code = main(["--config", str(_write_config(tmp_path)), "--workout", str(workout_file)])

    out = capsys.readouterr().out
    assert code == 0
    assert "Workout complete" in out


def test_headless_run_reports_load_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    workout_file = tmp_path / "ride.fit"
    workout_file.write_bytes(b"\x0e\x10\xd9\x07")

    code = main(["--config", str(_write_config(tmp_path)), "--workout", str(workout_file)])

    assert code == 1
    assert "Load failed: reading workout" in capsys.readouterr().out


def test_missing_config_exits_with_2(tmp_path: Path) -> None:
    assert main(["--config", str(tmp_path / "missing.toml")]) == 2


def test_no_workout_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 1
    assert "usage:" in capsys.readouterr().out
