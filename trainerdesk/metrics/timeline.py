"""Piecewise-constant set-point timeline with a progress cursor."""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import Optional

from trainerdesk.core.progress import derive_progress
from trainerdesk.core.state import SessionProgress
from trainerdesk.workout.model import Workout


@dataclass(frozen=True)
class TimelineBar:
    index: int
    start: int
    duration: int
    set_point: float

    @property
    def end(self) -> int:
        return self.start + self.duration


@dataclass(frozen=True)
class TimelineProjection:
    bars: tuple[TimelineBar, ...]
    total_duration: int
    cursor: Optional[float] = None

    @property
    def max_set_point(self) -> float:
        return max((bar.set_point for bar in self.bars), default=0)

    def bar_at(self, t: float) -> Optional[TimelineBar]:
        if not self.bars or t < 0 or t > self.total_duration:
            return None
        if t == self.total_duration:
            return self.bars[-1]
        starts = [bar.start for bar in self.bars]
        return self.bars[bisect.bisect_right(starts, t) - 1]

    def value_at(self, t: float) -> Optional[float]:
        bar = self.bar_at(t)
        return bar.set_point if bar is not None else None


def project_timeline(
    workout: Workout, progress: Optional[SessionProgress] = None
) -> TimelineProjection:
    bars: list[TimelineBar] = []
    offset = 0
    for index, step in enumerate(workout.steps):
        bars.append(TimelineBar(index, offset, step.duration, step.set_point))
        offset += step.duration

    cursor = None
    if progress is not None:
        cursor = derive_progress(workout, progress).workout_elapsed
    return TimelineProjection(bars=tuple(bars), total_duration=offset, cursor=cursor)


class TimelineProjector:
    """Keeps the bars of the current workout; rebuilt whenever the workout changes."""

    def __init__(self) -> None:
        self._workout: Optional[Workout] = None
        self._base: Optional[TimelineProjection] = None

    def project(
        self, workout: Workout, progress: Optional[SessionProgress] = None
    ) -> TimelineProjection:
        if self._base is None or workout is not self._workout:
            self._workout = workout
            self._base = project_timeline(workout)
        if progress is None:
            return self._base
        cursor = derive_progress(workout, progress).workout_elapsed
        return TimelineProjection(self._base.bars, self._base.total_duration, cursor)
