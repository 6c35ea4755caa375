# astrocore/core/synastry.py
# -*- coding: utf-8 -*-
"""
Synastry, composite & compatibility scoring

Public APIs
-----------
synastry_aspects(chart_a, chart_b) -> list[SynastryAspect]
compatibility_score(chart_a, chart_b) -> float           # 1..10, one decimal
category_scores(chart_a, chart_b) -> CompatibilityScores
composite_chart(chart_a, chart_b) -> CompositeChart
elemental_balance(chart_a, chart_b) -> ElementalBalance
house_overlays(chart_a, chart_b) -> dict[str, int]
synastry_chart(chart_a, chart_b) -> SynastryChart
compatibility_report(chart_a, chart_b) -> CompatibilityReport

Notes & Conventions
-------------------
- Works on already-built charts only; no ephemeris access. A chart may be a
  Chart, a {name: PlanetPosition} mapping, a {name: {"sign", "degree",
  "minute", "second"}} mapping as stored by the persistence layer, or a plain
  sequence of PlanetPosition.
- Every planet of A is compared with every planet of B, same-named pairs
  included. First matching aspect type in table order wins.
- Scores round half-up to one decimal before clamping to [1, 10].
- Category scores penalize square/opposition at 0.2 per weight unit while the
  overall score uses 0.3; both values are part of the published scoring.
- All results are frozen dataclasses; inputs are never modified.
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
import logging
import math

from astrocore.core.angles import SIGN_ELEMENT, normalize, sign_of, split_dms
from astrocore.core.aspects import SYNASTRY_ASPECTS, Aspect, detect_aspect
from astrocore.core.chart import Chart
from astrocore.core.houses import assign_house
from astrocore.core.positions import PERSONAL_PLANETS, PlanetPosition

log = logging.getLogger(__name__)

__all__ = [
    "CATEGORIES",
    "SOULMATE_ASPECTS",
    "SynastryAspect",
    "CompatibilityScores",
    "CompositePlanet",
    "CompositeChart",
    "ElementalBalance",
    "SynastryChart",
    "CompatibilityReport",
    "aspect_weight",
    "is_soulmate_aspect",
    "synastry_aspects",
    "compatibility_score",
    "category_scores",
    "composite_chart",
    "elemental_balance",
    "house_overlays",
    "synastry_chart",
    "compatibility_report",
]

ChartLike = Union[Chart, Mapping[str, Any], Sequence[PlanetPosition], None]

# ── tables ────────────────────────────────────────────────────────────────────
CATEGORIES: Dict[str, frozenset] = {
    "romantic": frozenset({"venus", "mars", "moon"}),
    "communication": frozenset({"mercury"}),
    "emotional": frozenset({"moon", "venus", "neptune"}),
    "intellectual": frozenset({"mercury", "jupiter", "uranus"}),
    "spiritual": frozenset({"neptune", "pluto", "jupiter"}),
    "values": frozenset({"venus", "saturn"}),
}

SOULMATE_ASPECTS = frozenset({
    ("sun", "moon", "conjunction"),
    ("sun", "moon", "trine"),
    ("venus", "venus", "conjunction"),
    ("venus", "mars", "conjunction"),
    ("moon", "moon", "opposition"),
})

_HARMONIOUS = frozenset({"trine", "sextile"})
_TENSE = frozenset({"square", "opposition"})

_OVERALL_TENSION = 0.3
_CATEGORY_TENSION = 0.2

_COMPOSITE_SUMMARY = (
    "The composite chart represents the relationship itself as a separate entity. "
    "It reveals the purpose and dynamics of your partnership."
)

# ── result types ──────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class SynastryAspect(Aspect):
    weight: float = 1.0
    soulmate: bool = False


@dataclass(frozen=True)
class CompatibilityScores:
    overall: float
    romantic: float
    communication: float
    emotional: float
    intellectual: float
    spiritual: float
    values: float

    def categories(self) -> Dict[str, float]:
        """The six category scores in fixed order (overall excluded)."""
        return {k: getattr(self, k) for k in CATEGORIES}

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class CompositePlanet:
    name: str
    longitude: float
    sign: str
    degree: int
    minute: int
    second: int


@dataclass(frozen=True)
class CompositeChart:
    planets: Tuple[CompositePlanet, ...]
    interpretation: str = _COMPOSITE_SUMMARY

    def planet(self, name: str) -> Optional[CompositePlanet]:
        for p in self.planets:
            if p.name == name:
                return p
        return None


@dataclass(frozen=True)
class ElementalBalance:
    fire: int
    earth: int
    air: int
    water: int
    balance: str


@dataclass(frozen=True)
class SynastryChart:
    aspects: Tuple[SynastryAspect, ...]
    overall: float
    theme: str
    strengths: Tuple[str, ...]
    challenges: Tuple[str, ...]
    advice: str


@dataclass(frozen=True)
class CompatibilityReport:
    scores: CompatibilityScores
    elemental_balance: ElementalBalance
    aspects: Tuple[SynastryAspect, ...]
    theme: str
    strengths: Tuple[str, ...]
    challenges: Tuple[str, ...]
    advice: str
    dynamics: Tuple[str, ...]
    growth_opportunities: Tuple[str, ...]
    detailed_report: str = field(default="", repr=False)

    def to_markdown(self) -> str:
        return self.detailed_report

# ── helpers ───────────────────────────────────────────────────────────────────
def _round1(x: float) -> float:
    """Half-up rounding to one decimal (2.25 → 2.3, -0.05 → 0.0)."""
    return math.floor(x * 10.0 + 0.5) / 10.0 + 0.0


def _round2(x: float) -> float:
    return math.floor(x * 100.0 + 0.5) / 100.0


def _clamp_score(x: float) -> float:
    return max(1.0, min(10.0, _round1(x)))


def _fmt(x: float) -> str:
    return f"{x:g}"


def _coerce_position(name: str, value: Any) -> PlanetPosition:
    if isinstance(value, PlanetPosition):
        return value
    if isinstance(value, Mapping):
        if "longitude" in value:
            return PlanetPosition.from_longitude(name, float(value["longitude"]))
        return PlanetPosition.from_sign(
            name, value["sign"], float(value.get("degree", 0)),
            float(value.get("minute", 0)), float(value.get("second", 0)),
        )
    return PlanetPosition.from_longitude(name, float(value))


def _planets(chart: ChartLike) -> Dict[str, PlanetPosition]:
    if chart is None:
        return {}
    if isinstance(chart, Chart):
        return chart.planet_map
    if isinstance(chart, Mapping):
        if "planets" in chart:
            return _planets(chart["planets"])
        return {str(k).lower(): _coerce_position(str(k).lower(), v) for k, v in chart.items() if v is not None}
    return {p.name: p for p in chart}

# ── aspects ───────────────────────────────────────────────────────────────────
def aspect_weight(planet1: str, planet2: str, aspect: str) -> float:
    personal = (planet1 in PERSONAL_PLANETS) + (planet2 in PERSONAL_PLANETS)
    weight = (1.0, 2.0, 3.0)[personal]
    if aspect in ("conjunction", "opposition"):
        weight *= 1.5
    elif aspect in ("trine", "square"):
        weight *= 1.2
    return min(5.0, weight)


def is_soulmate_aspect(planet1: str, planet2: str, aspect: str) -> bool:
    return (planet1, planet2, aspect) in SOULMATE_ASPECTS or (planet2, planet1, aspect) in SOULMATE_ASPECTS


def synastry_aspects(chart_a: ChartLike, chart_b: ChartLike) -> List[SynastryAspect]:
    pa, pb = _planets(chart_a), _planets(chart_b)
    out: List[SynastryAspect] = []
    for n1, p1 in pa.items():
        for n2, p2 in pb.items():
            hit = detect_aspect(p1.longitude, p2.longitude, table=SYNASTRY_ASPECTS)
            if hit is None:
                continue
            out.append(SynastryAspect(
                planet1=n1, planet2=n2, type=hit.type, orb=_round2(hit.orb), applying=hit.applying,
                weight=aspect_weight(n1, n2, hit.type),
                soulmate=is_soulmate_aspect(n1, n2, hit.type),
            ))
    log.debug("synastry: %d x %d planets -> %d aspects", len(pa), len(pb), len(out))
    return out

# ── scores ────────────────────────────────────────────────────────────────────
def _accumulate(aspects: Iterable[SynastryAspect], tension: float) -> float:
    score = 5.0
    for a in aspects:
        if a.type in _HARMONIOUS:
            score += a.weight * 0.5
        elif a.type == "conjunction":
            score += a.weight * 0.3
        elif a.type in _TENSE:
            score -= a.weight * tension
    return score


def _overall(aspects: Sequence[SynastryAspect], balance: ElementalBalance) -> float:
    score = _accumulate(aspects, _OVERALL_TENSION)
    if balance.balance == "balanced":
        score += 1.0
    elif balance.balance == "imbalanced":
        score -= 0.5
    return _clamp_score(score)


def _category(aspects: Sequence[SynastryAspect], members: frozenset) -> float:
    hits = [a for a in aspects if a.planet1 in members or a.planet2 in members]
    if not hits:
        return 5.0
    return _clamp_score(_accumulate(hits, _CATEGORY_TENSION))


def compatibility_score(chart_a: ChartLike, chart_b: ChartLike) -> float:
    return _overall(synastry_aspects(chart_a, chart_b), elemental_balance(chart_a, chart_b))


def _scores(aspects: Sequence[SynastryAspect], balance: ElementalBalance) -> CompatibilityScores:
    return CompatibilityScores(
        overall=_overall(aspects, balance),
        **{name: _category(aspects, members) for name, members in CATEGORIES.items()},
    )


def category_scores(chart_a: ChartLike, chart_b: ChartLike) -> CompatibilityScores:
    return _scores(synastry_aspects(chart_a, chart_b), elemental_balance(chart_a, chart_b))

# ── composite / elements / overlays ───────────────────────────────────────────
def _midpoint(a: float, b: float) -> float:
    mid = (a + b) / 2.0
    if abs(a - b) > 180.0:
        mid = (mid + 180.0) % 360.0
    return normalize(mid)


def composite_chart(chart_a: ChartLike, chart_b: ChartLike) -> CompositeChart:
    pa, pb = _planets(chart_a), _planets(chart_b)
    planets = []
    for name, p1 in pa.items():
        p2 = pb.get(name)
        if p2 is None:
            continue
        mid = _midpoint(p1.longitude, p2.longitude)
        deg, minute, sec = split_dms(mid)
        planets.append(CompositePlanet(name=name, longitude=mid, sign=sign_of(mid),
                                       degree=deg, minute=minute, second=sec))
    return CompositeChart(planets=tuple(planets))


def _balance_label(counts: Sequence[int]) -> str:
    total = sum(counts)
    spread = max(counts) - min(counts)
    if spread > total * 0.4:
        return "imbalanced"
    if spread < total * 0.15:
        return "well-balanced"
    return "balanced"


def elemental_balance(chart_a: ChartLike, chart_b: ChartLike) -> ElementalBalance:
    counts = {"fire": 0, "earth": 0, "air": 0, "water": 0}
    for chart in (chart_a, chart_b):
        for p in _planets(chart).values():
            counts[SIGN_ELEMENT[p.sign]] += 1
    return ElementalBalance(balance=_balance_label(list(counts.values())), **counts)


def house_overlays(chart_a: ChartLike, chart_b: Chart) -> Dict[str, int]:
    """House of chart_b that each planet of chart_a falls in."""
    if not isinstance(chart_b, Chart):
        raise TypeError("house overlays need a full Chart (with cusps) for chart_b")
    return {name: assign_house(p.longitude, chart_b.houses) for name, p in _planets(chart_a).items()}

# ── narrative (table-driven) ──────────────────────────────────────────────────
def _count(aspects: Sequence[SynastryAspect], kind: str) -> int:
    return sum(1 for a in aspects if a.type == kind)


def _theme(overall: float) -> str:
    if overall >= 8:
        return "Highly compatible relationship with strong potential for harmony and growth"
    if overall >= 6:
        return "Generally compatible with areas of both strength and challenge"
    return "Challenging relationship requiring conscious effort and understanding"


def _advice(overall: float) -> str:
    if overall >= 8:
        return ("Your high compatibility provides a strong foundation. "
                "Focus on maintaining appreciation and avoiding complacency.")
    if overall >= 6:
        return "Work together on your challenges while celebrating your strengths. Open communication is key."
    return ("This relationship requires conscious effort, patience, and understanding. "
            "Focus on acceptance and growth.")


def _strengths(aspects: Sequence[SynastryAspect]) -> Tuple[str, ...]:
    out = []
    if _count(aspects, "trine") >= 3:
        out.append("Natural flow and ease in multiple areas of life")
    if _count(aspects, "sextile") >= 3:
        out.append("Opportunities for growth and cooperation")
    if any(a.soulmate for a in aspects):
        out.append("Deep karmic or soul connections")
    return tuple(out) or ("Each person brings unique qualities to the relationship",)


def _challenges(aspects: Sequence[SynastryAspect]) -> Tuple[str, ...]:
    out = []
    if _count(aspects, "square") >= 2:
        out.append("Tension and friction that requires conscious navigation")
    if _count(aspects, "opposition") >= 2:
        out.append("Balancing opposing needs and perspectives")
    if _count(aspects, "quincunx") >= 2:
        out.append("Need for adjustment and adaptation")
    return tuple(out) or ("Every relationship requires effort and understanding",)


def _dynamics(aspects: Sequence[SynastryAspect], balance: ElementalBalance) -> Tuple[str, ...]:
    out = []
    if balance.balance == "well-balanced":
        out.append("You complement each other's elemental strengths")
    elif balance.balance == "imbalanced":
        out.append("You may have difficulty understanding each other's fundamental approaches")
    if any(a.involves("sun", "moon") for a in aspects):
        out.append("Strong emotional connection between your core identities")
    if any(a.involves("venus", "mars") for a in aspects):
        out.append("Powerful romantic and sexual chemistry")
    return tuple(out)


def _growth(aspects: Sequence[SynastryAspect], scores: CompatibilityScores) -> Tuple[str, ...]:
    out = []
    # stable sort: ties resolve to the earlier category
    lowest, value = sorted(scores.categories().items(), key=lambda kv: kv[1])[0]
    if value < 7:
        out.append(f"Growth opportunity in {lowest} compatibility")
    if any(a.type in _TENSE for a in aspects):
        out.append("Transform challenges into opportunities for understanding")
    out.append("Learn from each other's strengths and differences")
    return tuple(out)


def _markdown(scores: CompatibilityScores, balance: ElementalBalance, syn: SynastryChart) -> str:
    lines = [
        "# Compatibility Report",
        "",
        f"## Overall Compatibility: {_fmt(scores.overall)}/10",
        "",
        syn.theme,
        "",
        "## Category Scores",
        "",
    ]
    lines += [f"- {name.capitalize()}: {_fmt(value)}/10" for name, value in scores.categories().items()]
    lines += [
        "",
        "## Elemental Balance",
        "",
        f"Fire: {balance.fire}, Earth: {balance.earth}, Air: {balance.air}, Water: {balance.water}",
        f"Balance: {balance.balance}",
        "",
        "## Strengths",
        "",
    ]
    lines += [f"{i}. {s}" for i, s in enumerate(syn.strengths, 1)]
    lines += ["", "## Challenges", ""]
    lines += [f"{i}. {c}" for i, c in enumerate(syn.challenges, 1)]
    lines += ["", "## Advice", "", syn.advice]
    return "\n".join(lines) + "\n"


def _synastry_chart(aspects: Sequence[SynastryAspect], overall: float) -> SynastryChart:
    return SynastryChart(
        aspects=tuple(aspects),
        overall=overall,
        theme=_theme(overall),
        strengths=_strengths(aspects),
        challenges=_challenges(aspects),
        advice=_advice(overall),
    )


def synastry_chart(chart_a: ChartLike, chart_b: ChartLike) -> SynastryChart:
    aspects = synastry_aspects(chart_a, chart_b)
    return _synastry_chart(aspects, _overall(aspects, elemental_balance(chart_a, chart_b)))


def compatibility_report(chart_a: ChartLike, chart_b: ChartLike) -> CompatibilityReport:
    aspects = synastry_aspects(chart_a, chart_b)
    balance = elemental_balance(chart_a, chart_b)
    scores = _scores(aspects, balance)
    syn = _synastry_chart(aspects, scores.overall)
    return CompatibilityReport(
        scores=scores,
        elemental_balance=balance,
        aspects=syn.aspects,
        theme=syn.theme,
        strengths=syn.strengths,
        challenges=syn.challenges,
        advice=syn.advice,
        dynamics=_dynamics(aspects, balance),
        growth_opportunities=_growth(aspects, scores),
        detailed_report=_markdown(scores, balance, syn),
    )
