# astrocore/core/aspects.py
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence, Tuple
import itertools

from astrocore.core.angles import angular_distance, normalize

__all__ = [
    "AspectSpec",
    "Aspect",
    "ASPECT_TABLE",
    "NATAL_ASPECTS",
    "SYNASTRY_ASPECTS",
    "ASPECT_TYPES",
    "detect_aspect",
    "chart_aspects",
]

# ─────────────────────────────────────────────────────────────────────────────
# Aspect catalog
#
# Order matters: detection walks the table top to bottom and the first type
# within orb wins, so conjunction/opposition shadow the narrower aspects on
# borderline separations.
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AspectSpec:
    name: str
    angle: float
    orb: float


ASPECT_TABLE: Tuple[AspectSpec, ...] = (
    AspectSpec("conjunction", 0.0, 10.0),
    AspectSpec("opposition", 180.0, 8.0),
    AspectSpec("trine", 120.0, 8.0),
    AspectSpec("square", 90.0, 8.0),
    AspectSpec("sextile", 60.0, 6.0),
    AspectSpec("quincunx", 150.0, 3.0),
    AspectSpec("semi-sextile", 30.0, 3.0),
)

# single-chart lists only carry the five majors
NATAL_ASPECTS: Tuple[AspectSpec, ...] = ASPECT_TABLE[:5]
SYNASTRY_ASPECTS: Tuple[AspectSpec, ...] = ASPECT_TABLE

ASPECT_TYPES: Tuple[str, ...] = tuple(s.name for s in ASPECT_TABLE)


@dataclass(frozen=True)
class Aspect:
    planet1: str
    planet2: str
    type: str
    orb: float
    applying: bool

    def involves(self, a: str, b: str) -> bool:
        """True for the unordered pair {a, b}."""
        return {self.planet1, self.planet2} == {a, b}

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

# ─────────────────────────────────────────────────────────────────────────────
# Detection
# ─────────────────────────────────────────────────────────────────────────────

def detect_aspect(
    lon1: float,
    lon2: float,
    orb: Optional[float] = None,
    table: Sequence[AspectSpec] = ASPECT_TABLE,
    *,
    planet1: str = "",
    planet2: str = "",
) -> Optional[Aspect]:
    """
    First aspect type in ``table`` whose exact angle lies within orb of the
    separation, else None. ``orb`` is a single ceiling applied to every type;
    when omitted each type uses its own default.

    ``applying`` is ``lon1 < lon2``: a positional shortcut, not a speed-based
    applying/separating test.
    """
    a, b = normalize(lon1), normalize(lon2)
    distance = angular_distance(a, b)
    for spec in table:
        limit = spec.orb if orb is None else float(orb)
        diff = abs(distance - spec.angle)
        if diff <= limit:
            return Aspect(planet1=planet1, planet2=planet2, type=spec.name, orb=diff, applying=a < b)
    return None


def chart_aspects(positions: Sequence[Any], table: Sequence[AspectSpec] = NATAL_ASPECTS) -> List[Aspect]:
    """
    Aspects inside one chart: each unordered pair once, in position order.
    ``positions`` are objects with ``name`` and ``longitude`` (PlanetPosition).
    """
    out: List[Aspect] = []
    for p, q in itertools.combinations(positions, 2):
        hit = detect_aspect(p.longitude, q.longitude, table=table, planet1=p.name, planet2=q.name)
        if hit is not None:
            out.append(hit)
    return out
