# astrocore/core/chart.py
"""
Chart assembly: natal charts plus solar and lunar return charts.

A Chart is built once per (instant, location, house system, zodiac) and never
mutated. Positions are resolved first, houses second; house assignment then
yields new PlanetPosition objects and the Chart is built from those.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional, Sequence, Tuple, Union
import logging
import math

from astrocore.core.aspects import NATAL_ASPECTS, Aspect, chart_aspects, detect_aspect
from astrocore.core.houses import HouseCusp, assign_house, assign_houses, calculate_houses
from astrocore.core.julian import Instant, from_julian_day, make_instant
from astrocore.core.moon_phase import MoonPhase, moon_phase
from astrocore.core.positions import PlanetPosition, PositionResolver
from astrocore.core.returns import (
    ReturnResult,
    estimate_lunar_return,
    estimate_solar_return,
    find_return,
)
from astrocore.utils import metrics
from astrocore.utils.config import EngineSettings

log = logging.getLogger(__name__)

__all__ = [
    "ZODIAC_TYPES",
    "Location",
    "Chart",
    "SolarReturn",
    "LunarReturn",
    "YEARLY_THEMES",
    "calculate_natal_chart",
    "calculate_solar_return",
    "calculate_lunar_return",
    "lunar_intensity",
    "lunar_theme",
]

ZODIAC_TYPES = ("tropical", "sidereal")

# ───────────────────────────── value objects ─────────────────────────────

@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float

    def __post_init__(self):
        if not (math.isfinite(self.latitude) and -90.0 <= self.latitude <= 90.0):
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not (math.isfinite(self.longitude) and -180.0 <= self.longitude <= 180.0):
            raise ValueError(f"longitude out of range: {self.longitude}")

    @classmethod
    def of(cls, value: Any) -> "Location":
        if isinstance(value, Location):
            return value
        if isinstance(value, dict):
            return cls(float(value["latitude"]), float(value["longitude"]))
        lat, lon = value
        return cls(float(lat), float(lon))


@dataclass(frozen=True)
class Chart:
    instant: Instant
    location: Location
    house_system: str
    zodiac: str
    planets: Tuple[PlanetPosition, ...]
    houses: Tuple[HouseCusp, ...]
    ascendant: float
    midheaven: float
    moon_phase: MoonPhase
    aspects: Tuple[Aspect, ...]

    def planet(self, name: str) -> Optional[PlanetPosition]:
        key = name.lower()
        for p in self.planets:
            if p.name == key:
                return p
        return None

    @property
    def planet_map(self) -> Dict[str, PlanetPosition]:
        return {p.name: p for p in self.planets}


@dataclass(frozen=True)
class SolarReturn:
    result: ReturnResult
    instant: Instant
    chart: Chart
    sun_house: int
    themes: Tuple[str, ...]

    @property
    def converged(self) -> bool:
        return self.result.converged


@dataclass(frozen=True)
class LunarReturn:
    result: ReturnResult
    instant: Instant
    chart: Chart
    moon_house: int
    phase: str
    aspects: Tuple[Aspect, ...]
    theme: str
    intensity: int

    @property
    def converged(self) -> bool:
        return self.result.converged

# ───────────────────────────── interpretation tables ─────────────────────────────

YEARLY_THEMES: Dict[int, Tuple[str, ...]] = {
    1: ("Self-discovery", "New beginnings", "Personal identity", "Independence"),
    2: ("Finances", "Self-worth", "Possessions", "Values"),
    3: ("Communication", "Learning", "Siblings", "Local travel"),
    4: ("Home", "Family", "Roots", "Emotional foundations"),
    5: ("Creativity", "Romance", "Self-expression", "Children"),
    6: ("Work", "Health", "Service", "Daily routines"),
    7: ("Partnerships", "Relationships", "Cooperation", "Marriage"),
    8: ("Transformation", "Shared resources", "Intimacy", "Investments"),
    9: ("Philosophy", "Travel", "Higher learning", "Spirituality"),
    10: ("Career", "Ambition", "Public image", "Achievement"),
    11: ("Community", "Friendships", "Groups", "Aspirations"),
    12: ("Spirituality", "Subconscious", "Privacy", "Hidden matters"),
}

_LUNAR_HOUSE_THEMES: Dict[int, str] = {
    1: "Self-Discovery and New Beginnings",
    2: "Values, Finances, and Possessions",
    3: "Communication, Learning, and Local Community",
    4: "Home, Family, and Emotional Foundations",
    5: "Creativity, Romance, and Self-Expression",
    6: "Work, Service, and Daily Routines",
    7: "Partnerships, Relationships, and Balance",
    8: "Transformation, Intimacy, and Shared Resources",
    9: "Philosophy, Travel, and Higher Learning",
    10: "Career, Ambition, and Public Image",
    11: "Friendship, Social Networks, and Community",
    12: "Spirituality, Endings, and the Unconscious",
}

_PHASE_MODIFIERS: Dict[str, str] = {
    "new": "with Fresh Intentions",
    "waxing-crescent": "with Growing Energy",
    "first-quarter": "with Decisive Action",
    "waxing-gibbous": "with Building Momentum",
    "full": "with Culmination and Clarity",
    "waning-gibbous": "with Gratitude and Sharing",
    "last-quarter": "with Reflection and Release",
    "waning-crescent": "with Rest and Renewal",
}

_EMOTIONAL_HOUSES = frozenset({4, 8, 12})

# ───────────────────────────── helpers ─────────────────────────────

def _is_sidereal(zodiac: Optional[str]) -> bool:
    z = str(zodiac or "tropical").strip().lower()
    if z not in ZODIAC_TYPES:
        raise ValueError(f"unknown zodiac type {zodiac!r}; expected one of {ZODIAC_TYPES}")
    return z == "sidereal"


def _build_chart(resolver: PositionResolver, instant: Instant, location: Location,
                 house_system: str, zodiac: str, strict: bool) -> Chart:
    sidereal = _is_sidereal(zodiac)
    positions = resolver.positions(instant, sidereal=sidereal)
    houses = calculate_houses(resolver.backend, instant.jd, location.latitude, location.longitude,
                              house_system, strict=strict, sidereal=sidereal)
    placed = assign_houses(positions, houses.cusps)
    by_name = {p.name: p for p in placed}
    phase = moon_phase(by_name["sun"].longitude, by_name["moon"].longitude)
    chart = Chart(
        instant=instant,
        location=location,
        house_system=houses.system,
        zodiac="sidereal" if sidereal else "tropical",
        planets=placed,
        houses=houses.cusps,
        ascendant=houses.ascendant,
        midheaven=houses.midheaven,
        moon_phase=phase,
        aspects=tuple(chart_aspects(placed, NATAL_ASPECTS)),
    )
    log.info("chart built jd=%.6f system=%s zodiac=%s aspects=%d",
             instant.jd, chart.house_system, chart.zodiac, len(chart.aspects))
    return chart

# ───────────────────────────── natal ─────────────────────────────

def calculate_natal_chart(
    resolver: PositionResolver,
    instant: Union[Instant, datetime, date, str],
    latitude: float,
    longitude: float,
    house_system: Optional[str] = None,
    zodiac: Optional[str] = None,
    *,
    strict: Optional[bool] = None,
    settings: Optional[EngineSettings] = None,
) -> Chart:
    settings = settings or EngineSettings()
    with metrics.CHART_BUILD_SECONDS.labels(kind="natal").time():
        return _build_chart(
            resolver,
            make_instant(instant),
            Location(float(latitude), float(longitude)),
            house_system or settings.house_system,
            zodiac or settings.zodiac,
            settings.strict_houses if strict is None else strict,
        )

# ───────────────────────────── solar return ─────────────────────────────

def calculate_solar_return(
    resolver: PositionResolver,
    natal_sun_longitude: float,
    year: int,
    location: Any,
    house_system: Optional[str] = None,
    zodiac: Optional[str] = None,
    *,
    birth: Optional[date] = None,
    strict: Optional[bool] = None,
    settings: Optional[EngineSettings] = None,
) -> SolarReturn:
    """
    Instant the Sun comes back to ``natal_sun_longitude`` in ``year`` and the
    chart cast for that instant at ``location``. ``birth`` (month/day) sharpens
    the seed; without it the seed is derived from the longitude.
    """
    settings = settings or EngineSettings()
    zodiac = zodiac or settings.zodiac
    sidereal = _is_sidereal(zodiac)
    loc = Location.of(location)

    def sun_at(jd: float) -> float:
        return resolver.longitude("sun", jd, sidereal=sidereal)

    with metrics.CHART_BUILD_SECONDS.labels(kind="solar_return").time():
        seed = estimate_solar_return(
            sun_at, natal_sun_longitude, int(year),
            birth.month if birth else None, birth.day if birth else None,
        )
        result = find_return(
            sun_at, natal_sun_longitude, seed,
            window_days=settings.return_window_days,
            iterations=settings.return_iterations,
            tolerance=settings.return_tolerance_deg,
            body="sun",
        )
        instant = make_instant(from_julian_day(result.jd))
        chart = _build_chart(resolver, instant, loc, house_system or settings.house_system, zodiac,
                             settings.strict_houses if strict is None else strict)

    sun = chart.planet("sun")
    house = sun.house if sun is not None and sun.house else 1
    return SolarReturn(result=result, instant=instant, chart=chart, sun_house=house,
                       themes=YEARLY_THEMES[house])

# ───────────────────────────── lunar return ─────────────────────────────

def lunar_intensity(house: int, phase: str, aspects: Sequence[Aspect]) -> int:
    intensity = 5
    if house in _EMOTIONAL_HOUSES:
        intensity += 1
    if phase in ("new", "full"):
        intensity += 1
    for a in aspects:
        if a.type == "conjunction":
            intensity += 2
        elif a.type in ("opposition", "square"):
            intensity += 1
    return max(1, min(10, intensity))


def lunar_theme(house: int, phase: str) -> str:
    return f"{_LUNAR_HOUSE_THEMES[house]} {_PHASE_MODIFIERS[phase]}"


def _moon_aspects(moon: PlanetPosition, chart: Chart,
                  natal: Optional[Sequence[PlanetPosition]]) -> Tuple[Aspect, ...]:
    if natal is None:
        return tuple(a for a in chart.aspects if "moon" in (a.planet1, a.planet2))
    hits = []
    for p in natal:
        if p.name == "moon":
            continue
        hit = detect_aspect(moon.longitude, p.longitude, table=NATAL_ASPECTS, planet1="moon", planet2=p.name)
        if hit is not None:
            hits.append(hit)
    return tuple(hits)


def calculate_lunar_return(
    resolver: PositionResolver,
    natal_moon_longitude: float,
    after: Union[Instant, datetime, date, str],
    location: Any,
    house_system: Optional[str] = None,
    zodiac: Optional[str] = None,
    *,
    natal: Optional[Sequence[PlanetPosition]] = None,
    strict: Optional[bool] = None,
    settings: Optional[EngineSettings] = None,
) -> LunarReturn:
    """
    First Moon return after ``after``. With ``natal`` positions the intensity
    counts the return Moon's aspects to them; otherwise its aspects inside the
    return chart.
    """
    settings = settings or EngineSettings()
    zodiac = zodiac or settings.zodiac
    sidereal = _is_sidereal(zodiac)
    loc = Location.of(location)
    start = make_instant(after)

    def moon_at(jd: float) -> float:
        return resolver.longitude("moon", jd, sidereal=sidereal)

    with metrics.CHART_BUILD_SECONDS.labels(kind="lunar_return").time():
        seed = estimate_lunar_return(moon_at, natal_moon_longitude, start.jd)
        result = find_return(
            moon_at, natal_moon_longitude, seed,
            window_days=settings.return_window_days,
            iterations=settings.return_iterations,
            tolerance=settings.return_tolerance_deg,
            body="moon",
        )
        instant = make_instant(from_julian_day(result.jd))
        chart = _build_chart(resolver, instant, loc, house_system or settings.house_system, zodiac,
                             settings.strict_houses if strict is None else strict)

    moon = chart.planet("moon")
    house = moon.house if moon.house else assign_house(moon.longitude, chart.houses)
    aspects = _moon_aspects(moon, chart, natal)
    phase = chart.moon_phase.phase
    return LunarReturn(
        result=result, instant=instant, chart=chart, moon_house=house, phase=phase,
        aspects=aspects, theme=lunar_theme(house, phase),
        intensity=lunar_intensity(house, phase, aspects),
    )
