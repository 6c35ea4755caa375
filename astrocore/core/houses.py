# astrocore/core/houses.py
from __future__ import annotations
"""
House cusps for a chart and planet-to-house assignment.

Public helpers:
  • normalize_house_system   (alias slugs; unknown → placidus, or raise when strict)
  • calculate_houses         (12 HouseCusp + Ascendant + Midheaven)
  • assign_house / assign_houses

Whole-sign and equal houses are derived here from the Ascendant; every other
system is delegated to the ephemeris backend's raw_houses().
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union
import logging
import math

from astrocore.core.angles import normalize, sign_of, split_dms
from astrocore.core.ephemeris import FLAG_SIDEREAL, EphemerisBackend
from astrocore.core.errors import InvalidHouseSystemError
from astrocore.core.positions import PlanetPosition
from astrocore.utils import metrics

logger = logging.getLogger(__name__)

__all__ = [
    "HOUSE_SYSTEMS",
    "DEFAULT_HOUSE_SYSTEM",
    "HouseCusp",
    "HouseResult",
    "normalize_house_system",
    "calculate_houses",
    "assign_house",
    "assign_houses",
]

DEFAULT_HOUSE_SYSTEM = "placidus"

# public name → backend letter code
HOUSE_SYSTEMS: Dict[str, str] = {
    "placidus": "P",
    "koch": "K",
    "porphyry": "O",
    "equal": "A",
    "whole": "W",
    "campanus": "C",
    "regiomontanus": "R",
    "topocentric": "T",
}

_ARITHMETIC = frozenset({"equal", "whole"})


def _slug(s: str) -> str:
    """Lowercase + strip non-alphanumerics → compact, stable alias token."""
    return "".join(ch for ch in str(s).lower() if ch.isalnum())


_CANON_FROM_SLUG: Dict[str, str] = {_slug(k): k for k in HOUSE_SYSTEMS}
_CANON_FROM_SLUG.update({
    "wholesign": "whole",
    "wholesigns": "whole",
    "equalhouse": "equal",
    "equalhouses": "equal",
    "polichpage": "topocentric",
})


@dataclass(frozen=True)
class HouseCusp:
    house: int
    longitude: float
    sign: str
    degree: int
    minute: int
    second: int

    @classmethod
    def at(cls, house: int, longitude: float) -> "HouseCusp":
        lon = normalize(longitude)
        deg, minute, sec = split_dms(lon)
        return cls(house=house, longitude=lon, sign=sign_of(lon), degree=deg, minute=minute, second=sec)


@dataclass(frozen=True)
class HouseResult:
    system: str
    cusps: Tuple[HouseCusp, ...]
    ascendant: float
    midheaven: float

    @property
    def longitudes(self) -> List[float]:
        return [c.longitude for c in self.cusps]


def normalize_house_system(system: Optional[str], strict: bool = False) -> str:
    if system is None or not str(system).strip():
        return DEFAULT_HOUSE_SYSTEM
    canon = _CANON_FROM_SLUG.get(_slug(system))
    if canon is not None:
        return canon
    if strict:
        raise InvalidHouseSystemError(system, HOUSE_SYSTEMS.keys())
    logger.warning("unknown house system %r; using %s", system, DEFAULT_HOUSE_SYSTEM)
    metrics.HOUSE_FALLBACKS.labels(requested=_slug(system)[:32] or "blank").inc()
    return DEFAULT_HOUSE_SYSTEM


def _arithmetic_cusps(system: str, asc: float) -> List[float]:
    if system == "whole":
        first = math.floor(normalize(asc) / 30.0) * 30.0
        return [normalize(first + 30.0 * i) for i in range(12)]
    return [normalize(asc + 30.0 * i) for i in range(12)]


def calculate_houses(backend: EphemerisBackend, jd: float, latitude: float, longitude: float,
                     system: Optional[str] = DEFAULT_HOUSE_SYSTEM, *, strict: bool = False,
                     sidereal: bool = False) -> HouseResult:
    canon = normalize_house_system(system, strict=strict)
    flags = FLAG_SIDEREAL if sidereal else 0

    if canon in _ARITHMETIC:
        # only the angles are needed; equal-house code never fails at high latitude
        _cusps, asc, mc = backend.raw_houses(jd, latitude, longitude, HOUSE_SYSTEMS["equal"], flags)
        raw = _arithmetic_cusps(canon, asc)
    else:
        raw, asc, mc = backend.raw_houses(jd, latitude, longitude, HOUSE_SYSTEMS[canon], flags)
        raw = list(raw)
        if len(raw) != 12:
            raise ValueError(f"backend returned {len(raw)} cusps for {canon}; expected 12")

    cusps = tuple(HouseCusp.at(i + 1, lon) for i, lon in enumerate(raw))
    return HouseResult(system=canon, cusps=cusps, ascendant=normalize(asc), midheaven=normalize(mc))


def assign_house(longitude: float, cusps: Sequence[Union[HouseCusp, float]]) -> int:
    """
    House i holds [cusp[i], cusp[i+1]) on the circle, wrapping 12 → 1.
    Falls back to 12 when no interval matches (degenerate, all-equal cusps).
    """
    lons = [c.longitude if isinstance(c, HouseCusp) else normalize(c) for c in cusps]
    lon = normalize(longitude)
    n = len(lons)
    for i in range(n):
        start, end = lons[i], lons[(i + 1) % n]
        if start < end:
            if start <= lon < end:
                return i + 1
        elif start > end:
            if lon >= start or lon < end:
                return i + 1
    return 12


def assign_houses(positions: Sequence[PlanetPosition],
                  cusps: Sequence[Union[HouseCusp, float]]) -> Tuple[PlanetPosition, ...]:
    """New PlanetPosition objects with ``house`` filled in; inputs are untouched."""
    return tuple(p.with_house(assign_house(p.longitude, cusps)) for p in positions)
