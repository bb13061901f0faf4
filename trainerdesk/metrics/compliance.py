"""Target-compliance window for a gauge around a step's target range."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from trainerdesk.metrics.scale import LinearScale


@dataclass(frozen=True)
class ComplianceWindow:
    """Display window twice as wide as the target band, centred on it.

    The target band always occupies the middle half of the window.
    ``position`` is the live value clamped into the window, or ``None`` when
    no sample has been received.
    """

    target_min: float
    target_max: float
    display_min: float
    display_max: float
    position: Optional[float] = None

    @property
    def width(self) -> float:
        return self.target_max - self.target_min

    @property
    def midpoint(self) -> float:
        return (self.target_max + self.target_min) / 2

    @property
    def in_target(self) -> Optional[bool]:
        if self.position is None:
            return None
        return self.target_min <= self.position <= self.target_max

    def scale(self, start: float, end: float) -> LinearScale:
        """Map the window onto a display coordinate span ``[start, end]``."""
        return LinearScale((self.display_min, self.display_max), (start, end))


def compliance_window(
    target_range: tuple[float, float], value: Optional[float]
) -> ComplianceWindow:
    minimum, maximum = target_range
    if minimum > maximum:
        raise ValueError(f"Invalid target range [{minimum}, {maximum}]")

    width = maximum - minimum
    midpoint = (maximum + minimum) / 2
    display_min = midpoint - width
    display_max = midpoint + width

    position = None
    if value is not None:
        position = min(max(value, display_min), display_max)

    return ComplianceWindow(
        target_min=minimum,
        target_max=maximum,
        display_min=display_min,
        display_max=display_max,
        position=position,
    )
