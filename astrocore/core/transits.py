# astrocore/core/transits.py
"""
Transits: where the planets are at some instant, read against a natal chart.

Each transiting planet is placed in the natal house it currently occupies and
checked for a major aspect to every natal planet. Intensity scores one
transit-to-natal aspect on 0..10:

    round(base[type] * (1 - orb / 10) * planet_factor[transiting planet])

The zodiac always follows the natal chart so both sides share a frame.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple, Union
import logging
import math

from astrocore.core.aspects import NATAL_ASPECTS, Aspect, detect_aspect
from astrocore.core.chart import Chart
from astrocore.core.houses import assign_houses
from astrocore.core.julian import Instant, make_instant
from astrocore.core.positions import PlanetPosition, PositionResolver
from astrocore.utils import metrics

log = logging.getLogger(__name__)

__all__ = [
    "TRANSIT_ASPECT_WEIGHTS",
    "TRANSIT_PLANET_FACTORS",
    "TransitAspect",
    "TransitReport",
    "TransitDay",
    "transit_intensity",
    "calculate_transits",
    "transit_calendar",
]

TRANSIT_ASPECT_WEIGHTS: Dict[str, int] = {
    "conjunction": 10,
    "opposition": 9,
    "square": 8,
    "trine": 7,
    "sextile": 5,
}

TRANSIT_PLANET_FACTORS: Dict[str, float] = {
    "sun": 1.0,
    "moon": 0.9,
    "mercury": 0.6,
    "venus": 0.7,
    "mars": 0.8,
    "jupiter": 1.0,
    "saturn": 1.0,
    "uranus": 0.9,
    "neptune": 0.9,
    "pluto": 0.9,
}
_DEFAULT_PLANET_FACTOR = 0.5

# day-by-day scans keep only the hard aspects and trines within this orb
_CALENDAR_TYPES = frozenset({"conjunction", "opposition", "trine", "square"})
CALENDAR_MAX_ORB = 3.0
CALENDAR_MAX_DAYS = 365

# ───────────────────────────── value objects ─────────────────────────────

@dataclass(frozen=True)
class TransitAspect:
    """``aspect.planet1`` is the transiting body, ``aspect.planet2`` the natal one."""
    aspect: Aspect
    transit_house: int
    intensity: int


@dataclass(frozen=True)
class TransitReport:
    instant: Instant
    natal: Chart
    planets: Tuple[PlanetPosition, ...]   # transiting positions, natal houses
    aspects: Tuple[TransitAspect, ...]

    def planet(self, name: str) -> Optional[PlanetPosition]:
        key = name.lower()
        for p in self.planets:
            if p.name == key:
                return p
        return None

    @property
    def peak_intensity(self) -> int:
        return max((a.intensity for a in self.aspects), default=0)


@dataclass(frozen=True)
class TransitDay:
    instant: Instant
    aspects: Tuple[TransitAspect, ...]

# ───────────────────────────── scoring ─────────────────────────────

def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def transit_intensity(aspect: Aspect) -> int:
    """Score of one transit-to-natal aspect; ``aspect.planet1`` is the transiting body."""
    try:
        base = TRANSIT_ASPECT_WEIGHTS[aspect.type]
    except KeyError as e:
        raise ValueError(f"no transit weight for aspect type {aspect.type!r}") from e
    orb_factor = max(0.0, 1.0 - float(aspect.orb) / 10.0)
    planet_factor = TRANSIT_PLANET_FACTORS.get(aspect.planet1, _DEFAULT_PLANET_FACTOR)
    return _round_half_up(base * orb_factor * planet_factor)

# ───────────────────────────── transits ─────────────────────────────

def _transit_aspects(transiting: Tuple[PlanetPosition, ...], natal: Chart,
                     max_orb: Optional[float]) -> Tuple[TransitAspect, ...]:
    out: List[TransitAspect] = []
    for t in transiting:
        for n in natal.planets:
            hit = detect_aspect(t.longitude, n.longitude, table=NATAL_ASPECTS,
                                planet1=t.name, planet2=n.name)
            if hit is None or (max_orb is not None and hit.orb > max_orb):
                continue
            out.append(TransitAspect(aspect=hit, transit_house=t.house or 12,
                                     intensity=transit_intensity(hit)))
    return tuple(out)


def _report(resolver: PositionResolver, natal: Chart, instant: Instant,
            max_orb: Optional[float]) -> TransitReport:
    positions = resolver.positions(instant, sidereal=natal.zodiac == "sidereal")
    placed = assign_houses(positions, natal.houses)
    return TransitReport(instant=instant, natal=natal, planets=placed,
                         aspects=_transit_aspects(placed, natal, max_orb))


def calculate_transits(
    resolver: PositionResolver,
    natal: Chart,
    instant: Union[Instant, datetime, date, str],
    *,
    max_orb: Optional[float] = None,
) -> TransitReport:
    """
    Transiting positions at ``instant``, each with the natal house it falls in,
    plus every major transit-to-natal aspect. ``max_orb`` drops looser hits.
    """
    when = make_instant(instant)
    with metrics.CHART_BUILD_SECONDS.labels(kind="transits").time():
        report = _report(resolver, natal, when, max_orb)
    log.info("transits jd=%.6f natal_jd=%.6f aspects=%d peak=%d",
             when.jd, natal.instant.jd, len(report.aspects), report.peak_intensity)
    return report


def transit_calendar(
    resolver: PositionResolver,
    natal: Chart,
    start: Union[Instant, datetime, date, str],
    end: Union[Instant, datetime, date, str],
    *,
    max_orb: float = CALENDAR_MAX_ORB,
    max_days: int = CALENDAR_MAX_DAYS,
) -> List[TransitDay]:
    """
    One transit reading per day from ``start`` to ``end`` inclusive, capped at
    ``max_days`` days. Only conjunctions, oppositions, squares and trines within
    ``max_orb`` count; days without any are left out.
    """
    first, last = make_instant(start), make_instant(end)
    if last.jd < first.jd:
        raise ValueError(f"transit range ends before it starts: {start!r} > {end!r}")
    days = min(int(math.floor(last.jd - first.jd)), int(max_days))
    out: List[TransitDay] = []
    with metrics.CHART_BUILD_SECONDS.labels(kind="transit_calendar").time():
        for i in range(days + 1):
            when = first.shifted(float(i))
            report = _report(resolver, natal, when, max_orb)
            hits = tuple(a for a in report.aspects if a.aspect.type in _CALENDAR_TYPES)
            if hits:
                out.append(TransitDay(instant=when, aspects=hits))
    log.info("transit calendar days=%d active=%d", days + 1, len(out))
    return out
