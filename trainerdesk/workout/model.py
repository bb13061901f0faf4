"""Workout domain models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Step:
    duration: int
    set_point: float
    target_range: tuple[float, float]

    @property
    def target_min(self) -> float:
        return self.target_range[0]

    @property
    def target_max(self) -> float:
        return self.target_range[1]


@dataclass(frozen=True)
class Workout:
    title: str
    steps: tuple[Step, ...]

    @property
    def total_duration(self) -> int:
        return sum(step.duration for step in self.steps)

    def elapsed_before(self, step_index: int) -> int:
        """Sum of the durations of all steps preceding ``step_index``."""
        return sum(step.duration for step in self.steps[:step_index])
