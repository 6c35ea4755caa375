# tests/test_synastry.py
from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from astrocore.core.chart import calculate_natal_chart
from astrocore.core.positions import PLANETS, PlanetPosition
from astrocore.core.synastry import (
    aspect_weight,
    category_scores,
    compatibility_report,
    compatibility_score,
    composite_chart,
    elemental_balance,
    house_overlays,
    is_soulmate_aspect,
    synastry_aspects,
    synastry_chart,
)

SUN_MOON_TRINE = ({"sun": 0.0}, {"moon": 120.0})
MARS_VENUS_SQUARE = ({"mars": 0.0}, {"venus": 90.0})


# ───────────────────────────── aspects ─────────────────────────────

def test_empty_charts_have_no_aspects() -> None:
    assert synastry_aspects({}, {}) == []
    assert synastry_aspects(None, {"sun": 10.0}) == []


def test_aspect_carries_weight_and_soulmate_flag() -> None:
    (hit,) = synastry_aspects(*SUN_MOON_TRINE)
    assert (hit.planet1, hit.planet2, hit.type) == ("sun", "moon", "trine")
    assert hit.orb == 0.0
    assert hit.weight == pytest.approx(3.6)
    assert hit.soulmate is True


def test_same_named_pairs_are_compared() -> None:
    (hit,) = synastry_aspects({"venus": 10.0}, {"venus": 12.5})
    assert hit.type == "conjunction" and hit.orb == 2.5
    assert hit.soulmate


def test_one_aspect_per_pair_and_orb_rounding() -> None:
    found = synastry_aspects({"jupiter": 0.0}, {"saturn": 61.23456})
    assert len(found) == 1
    assert found[0].type == "sextile" and found[0].orb == 1.23


def test_sign_notation_uses_absolute_longitude() -> None:
    a = {"sun": {"sign": "aries", "degree": 10}}
    b = {"moon": {"sign": "leo", "degree": 10}}
    (hit,) = synastry_aspects(a, b)
    assert hit.type == "trine"


@pytest.mark.parametrize(
    "p1,p2,kind,expected",
    [
        ("sun", "moon", "conjunction", 4.5),
        ("sun", "jupiter", "trine", 2.4),
        ("saturn", "pluto", "sextile", 1.0),
        ("mars", "venus", "square", 3.6),
        ("neptune", "mercury", "quincunx", 2.0),
    ],
)
def test_aspect_weight(p1: str, p2: str, kind: str, expected: float) -> None:
    assert aspect_weight(p1, p2, kind) == pytest.approx(expected)
    assert aspect_weight(p1, p2, kind) <= 5.0


def test_soulmate_lookup_is_order_free() -> None:
    assert is_soulmate_aspect("moon", "sun", "trine")
    assert is_soulmate_aspect("mars", "venus", "conjunction")
    assert not is_soulmate_aspect("sun", "moon", "square")


# ───────────────────────────── scores ─────────────────────────────

def test_overall_score_harmonious() -> None:
    # 5 + 3.6*0.5 = 6.8, both planets fire → imbalanced → 6.3
    assert compatibility_score(*SUN_MOON_TRINE) == pytest.approx(6.3)


def test_tension_penalty_differs_between_overall_and_categories() -> None:
    scores = category_scores(*MARS_VENUS_SQUARE)
    assert scores.overall == pytest.approx(3.4)      # 5 - 3.6*0.3 - 0.5
    assert scores.romantic == pytest.approx(4.3)     # 5 - 3.6*0.2
    assert scores.values == pytest.approx(4.3)
    assert scores.communication == 5.0


def test_categories_without_aspects_score_five() -> None:
    scores = category_scores(*SUN_MOON_TRINE)
    assert scores.romantic == pytest.approx(6.8)
    assert scores.emotional == pytest.approx(6.8)
    assert scores.intellectual == scores.spiritual == scores.values == scores.communication == 5.0
    assert list(scores.categories()) == [
        "romantic", "communication", "emotional", "intellectual", "spiritual", "values"]


def test_scores_clamp_to_range() -> None:
    personal = ("sun", "moon", "mercury", "venus", "mars")
    together = {p: 0.0 for p in personal}
    assert compatibility_score(together, together) == 10.0
    apart = {p: 90.0 for p in personal}
    assert compatibility_score(together, apart) == 1.0


def test_empty_charts_score_balanced() -> None:
    assert compatibility_score({}, {}) == 6.0


lon = st.floats(min_value=0.0, max_value=359.999, allow_nan=False)
charts = st.fixed_dictionaries({p: lon for p in PLANETS})


@given(charts, charts)
def test_score_is_deterministic_and_bounded(a, b) -> None:
    first = compatibility_score(a, b)
    assert first == compatibility_score(a, b)
    assert 1.0 <= first <= 10.0
    assert round(first, 1) == first
    for value in category_scores(a, b).as_dict().values():
        assert 1.0 <= value <= 10.0


# ───────────────────────────── composite / elements ─────────────────────────────

def test_composite_midpoint() -> None:
    comp = composite_chart({"sun": {"sign": "leo", "degree": 15}}, {"sun": 75.0})
    sun = comp.planet("sun")
    assert sun.longitude == pytest.approx(105.0)
    assert (sun.sign, sun.degree, sun.minute) == ("cancer", 15, 0)
    assert "relationship itself" in comp.interpretation


def test_composite_uses_short_arc_and_skips_unpaired() -> None:
    comp = composite_chart({"moon": 350.0, "mars": 10.0}, {"moon": 20.0})
    assert [p.name for p in comp.planets] == ["moon"]
    assert comp.planet("moon").longitude == pytest.approx(5.0)
    assert comp.planet("mars") is None


def test_elemental_balance_counts() -> None:
    a = {"sun": {"sign": "aries", "degree": 1}, "moon": {"sign": "leo", "degree": 1}}
    b = {"sun": {"sign": "taurus", "degree": 1}, "moon": {"sign": "virgo", "degree": 1}}
    bal = elemental_balance(a, b)
    assert (bal.fire, bal.earth, bal.air, bal.water) == (2, 2, 0, 0)
    assert bal.balance == "imbalanced"


@pytest.mark.parametrize(
    "lons,label",
    [
        ([0.0, 30.0, 60.0, 90.0], "well-balanced"),
        ([0.0, 120.0, 240.0, 30.0, 60.0, 90.0, 150.0, 180.0], "balanced"),
        ([0.0, 120.0, 240.0, 30.0], "imbalanced"),
    ],
)
def test_balance_labels(lons, label: str) -> None:
    a = {PLANETS[i]: x for i, x in enumerate(lons)}
    assert elemental_balance(a, None).balance == label


def test_house_overlays_need_cusps(resolver) -> None:
    chart = calculate_natal_chart(resolver, "2000-01-01T12:00:00Z", 51.5, -0.1, "equal")
    assert house_overlays({"sun": 20.0, "moon": 200.0}, chart) == {"sun": 1, "moon": 7}
    with pytest.raises(TypeError):
        house_overlays(chart, {"sun": 1.0})


def test_accepts_charts_and_position_sequences(resolver) -> None:
    chart = calculate_natal_chart(resolver, "2000-01-01T12:00:00Z", 51.5, -0.1)
    as_list = list(chart.planets)
    as_dict = {"planets": {p.name: p for p in chart.planets}}
    assert synastry_aspects(chart, chart) == synastry_aspects(as_list, as_dict)
    assert len([a for a in synastry_aspects(chart, chart) if a.planet1 == a.planet2]) == len(PLANETS)


# ───────────────────────────── narrative ─────────────────────────────

def test_synastry_chart_summary() -> None:
    syn = synastry_chart(*SUN_MOON_TRINE)
    assert syn.overall == pytest.approx(6.3)
    assert syn.theme == "Generally compatible with areas of both strength and challenge"
    assert syn.strengths == ("Deep karmic or soul connections",)
    assert syn.challenges == ("Every relationship requires effort and understanding",)
    assert syn.advice.startswith("Work together")


def test_report_sections() -> None:
    rep = compatibility_report(*SUN_MOON_TRINE)
    assert rep.scores.overall == pytest.approx(6.3)
    assert rep.dynamics == (
        "You may have difficulty understanding each other's fundamental approaches",
        "Strong emotional connection between your core identities",
    )
    assert rep.growth_opportunities == (
        "Growth opportunity in communication compatibility",
        "Learn from each other's strengths and differences",
    )


def test_report_tension_growth() -> None:
    rep = compatibility_report(*MARS_VENUS_SQUARE)
    assert rep.growth_opportunities[0] == "Growth opportunity in romantic compatibility"
    assert "Transform challenges into opportunities for understanding" in rep.growth_opportunities
    assert "Powerful romantic and sexual chemistry" in rep.dynamics
    assert rep.theme.startswith("Challenging relationship")


def test_report_markdown() -> None:
    md = compatibility_report(*SUN_MOON_TRINE).to_markdown()
    assert md.startswith("# Compatibility Report\n\n## Overall Compatibility: 6.3/10\n\n")
    assert "- Communication: 5/10\n" in md
    assert "- Romantic: 6.8/10\n" in md
    assert "Fire: 2, Earth: 0, Air: 0, Water: 0\nBalance: imbalanced" in md
    assert "## Strengths\n\n1. Deep karmic or soul connections\n" in md
    assert md.endswith("## Advice\n\n" + compatibility_report(*SUN_MOON_TRINE).advice + "\n")


def test_many_trines_and_squares_change_the_lists() -> None:
    a = {"jupiter": 0.0, "saturn": 0.0, "uranus": 0.0}
    b = {"neptune": 120.0, "pluto": 270.0}
    syn = synastry_chart(a, b)
    assert syn.strengths[0] == "Natural flow and ease in multiple areas of life"
    assert syn.challenges[0] == "Tension and friction that requires conscious navigation"
