"""One-dimensional linear mapping from a value domain to a display range."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LinearScale:
    domain: tuple[float, float]
    range: tuple[float, float]
    clamp: bool = False

    def __call__(self, value: float) -> float:
        d0, d1 = self.domain
        r0, r1 = self.range
        if d0 == d1:
            return (r0 + r1) / 2
        t = (value - d0) / (d1 - d0)
        if self.clamp:
            t = min(max(t, 0.0), 1.0)
        return r0 + t * (r1 - r0)

