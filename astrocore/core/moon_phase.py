# astrocore/core/moon_phase.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple
import math

from astrocore.core.angles import normalize

__all__ = ["PHASES", "MoonPhase", "moon_phase"]

# eight 45° buckets starting at conjunction
PHASES: Tuple[str, ...] = (
    "new",
    "waxing-crescent",
    "first-quarter",
    "waxing-gibbous",
    "full",
    "waning-gibbous",
    "last-quarter",
    "waning-crescent",
)


@dataclass(frozen=True)
class MoonPhase:
    phase: str
    angle: float
    illumination: int


def moon_phase(sun_longitude: float, moon_longitude: float) -> MoonPhase:
    """Phase from the Sun→Moon elongation; illumination in whole percent."""
    angle = normalize(moon_longitude - sun_longitude)
    lit = (1.0 + math.cos(math.radians(angle))) / 2.0 * 100.0
    return MoonPhase(
        phase=PHASES[int(angle // 45.0) % 8],
        angle=angle,
        illumination=int(math.floor(lit + 0.5)),
    )
