# astrocore/core/positions.py
"""
Planet positions for one instant.

PositionResolver is the only component that talks to the ephemeris backend
for bodies. It normalizes what comes back and derives the sign notation; it
never retries. A nonzero backend code raises EphemerisError right away.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple, Union

from astrocore.core.angles import normalize, sign_of, sign_to_longitude, split_dms
from astrocore.core.ephemeris import (
    BODY_IDS,
    FLAG_SIDEREAL,
    FLAG_SPEED,
    EphemerisBackend,
    EphemerisConfig,
    SkyfieldBackend,
)
from astrocore.core.errors import EphemerisError
from astrocore.core.julian import Instant

log = logging.getLogger(__name__)

__all__ = ["PLANETS", "PERSONAL_PLANETS", "PlanetPosition", "PositionResolver"]

PLANETS: Tuple[str, ...] = (
    "sun", "moon", "mercury", "venus", "mars",
    "jupiter", "saturn", "uranus", "neptune", "pluto",
)
PERSONAL_PLANETS = frozenset({"sun", "moon", "mercury", "venus", "mars"})


@dataclass(frozen=True)
class PlanetPosition:
    name: str
    longitude: float
    latitude: float
    speed: float
    sign: str
    degree: int
    minute: int
    second: int
    retrograde: bool
    house: Optional[int] = None

    @classmethod
    def from_longitude(cls, name: str, longitude: float, latitude: float = 0.0,
                       speed: float = 0.0, house: Optional[int] = None) -> "PlanetPosition":
        lon = normalize(longitude)
        deg, minute, sec = split_dms(lon)
        return cls(
            name=str(name).lower(), longitude=lon, latitude=float(latitude), speed=float(speed),
            sign=sign_of(lon), degree=deg, minute=minute, second=sec,
            retrograde=speed < 0, house=house,
        )

    @classmethod
    def from_sign(cls, name: str, sign: str, degree: float, minute: float = 0.0, second: float = 0.0,
                  **kw) -> "PlanetPosition":
        """Build from sign notation, e.g. ``from_sign("sun", "leo", 15)``."""
        return cls.from_longitude(name, sign_to_longitude(sign, degree, minute, second), **kw)

    def with_house(self, house: int) -> "PlanetPosition":
        return replace(self, house=int(house))


class PositionResolver:
    """
    Wraps one ephemeris backend. ``config`` is explicit so several resolvers
    (test kernel, production kernel) can live side by side.
    """

    def __init__(self, backend: Optional[EphemerisBackend] = None,
                 config: Optional[EphemerisConfig] = None):
        self.config = config or EphemerisConfig()
        self.backend: EphemerisBackend = backend if backend is not None else SkyfieldBackend(self.config)

    @staticmethod
    def _body_id(planet: str) -> int:
        try:
            return BODY_IDS[str(planet).strip().lower()]
        except KeyError:
            raise ValueError(f"unknown planet {planet!r}") from None

    def _raw(self, planet: str, jd: float, flags: int) -> Tuple[float, float, float, float]:
        lon, lat, dist, speed, code = self.backend.raw_position(jd, self._body_id(planet), flags)
        if code != 0:
            raise EphemerisError(code, f"backend failed for {planet} at jd {jd:.6f}", stage="position",
                                 planet=planet, jd=jd)
        return lon, lat, speed, dist

    def longitude(self, planet: str, jd: float, sidereal: bool = False) -> float:
        """Longitude only; the return solver calls this once per iteration."""
        flags = FLAG_SIDEREAL if sidereal else 0
        lon, _lat, _speed, _dist = self._raw(planet, jd, flags)
        return normalize(lon)

    def position(self, planet: str, instant: Union[Instant, float], sidereal: bool = False) -> PlanetPosition:
        jd = instant.jd if isinstance(instant, Instant) else float(instant)
        flags = FLAG_SPEED | (FLAG_SIDEREAL if sidereal else 0)
        lon, lat, speed, _dist = self._raw(planet, jd, flags)
        return PlanetPosition.from_longitude(planet, lon, lat, speed)

    def positions(self, instant: Union[Instant, float], sidereal: bool = False,
                  planets: Iterable[str] = PLANETS) -> Tuple[PlanetPosition, ...]:
        out = tuple(self.position(p, instant, sidereal) for p in planets)
        log.debug("resolved %d positions (sidereal=%s)", len(out), sidereal)
        return out
