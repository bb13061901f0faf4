"""Application configuration loaded from ``appconfig.toml``."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    """Raised when the configuration file is missing or invalid."""


@dataclass(frozen=True)
class DevicePairing:
    device_id: int = 0
    transmission_type: int = 0


@dataclass(frozen=True)
class SimulationConfig:
    tick_seconds: float = 1.0
    connect_delay_seconds: float = 0.5
    seed: int = 20260225


@dataclass(frozen=True)
class AppConfig:
    heart_rate_monitor: DevicePairing = field(default_factory=DevicePairing)
    fitness_equipment: DevicePairing = field(default_factory=DevicePairing)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    log_level: str = "INFO"


def default_config() -> AppConfig:
    return AppConfig()


def load_config(path: str | Path) -> AppConfig:
    config_path = Path(path)
    try:
        with config_path.open("rb") as handle:
            data = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {config_path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {config_path}: {exc}") from exc

    devices = _table(data, "devices")
    simulation = _table(data, "simulation")
    defaults = SimulationConfig()

    log_level = data.get("log_level", "INFO")
    if not isinstance(log_level, str) or log_level.upper() not in LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}")

    return AppConfig(
        heart_rate_monitor=_pairing(devices, "heart_rate_monitor"),
        fitness_equipment=_pairing(devices, "fitness_equipment"),
        simulation=SimulationConfig(
            tick_seconds=_positive_float(
                simulation, "tick_seconds", defaults.tick_seconds, allow_zero=False
            ),
            connect_delay_seconds=_positive_float(
                simulation, "connect_delay_seconds", defaults.connect_delay_seconds
            ),
            seed=_int(simulation, "seed", defaults.seed, "simulation"),
        ),
        log_level=log_level.upper(),
    )


def _table(data: dict[str, Any], key: str) -> dict[str, Any]:
    table = data.get(key, {})
    if not isinstance(table, dict):
        raise ConfigError(f"[{key}] must be a table")
    return table


def _pairing(devices: dict[str, Any], key: str) -> DevicePairing:
    table = devices.get(key, {})
    if not isinstance(table, dict):
        raise ConfigError(f"[devices.{key}] must be a table")
    section = f"devices.{key}"
    device_id = _int(table, "device_id", 0, section)
    transmission_type = _int(table, "transmission_type", 0, section)
    if not 0 <= device_id <= 0xFFFF:
        raise ConfigError(f"{section}.device_id must be in [0, 65535]")
    if not 0 <= transmission_type <= 0xFF:
        raise ConfigError(f"{section}.transmission_type must be in [0, 255]")
    return DevicePairing(device_id=device_id, transmission_type=transmission_type)


def _int(table: dict[str, Any], key: str, default: int, section: str) -> int:
    value = table.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{section}.{key} must be an integer")
    return value


def _positive_float(
    table: dict[str, Any], key: str, default: float, allow_zero: bool = True
) -> float:
    value = table.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"simulation.{key} must be a number")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"simulation.{key} must be {'>= 0' if allow_zero else '> 0'}")
    return float(value)
