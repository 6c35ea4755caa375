# tests/test_aspects.py
from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from astrocore.core.aspects import (
    ASPECT_TYPES,
    NATAL_ASPECTS,
    SYNASTRY_ASPECTS,
    chart_aspects,
    detect_aspect,
)
from astrocore.core.positions import PlanetPosition


def test_close_pair_is_conjunction() -> None:
    hit = detect_aspect(90.0, 95.0, orb=10.0)
    assert hit is not None
    assert hit.type == "conjunction" and hit.orb == pytest.approx(5.0)


def test_table_order_decides_overlapping_orbs() -> None:
    # a single 80° ceiling reaches conjunction, square and sextile from 70°
    assert detect_aspect(0.0, 70.0, orb=80.0).type == "conjunction"
    assert detect_aspect(0.0, 85.0, orb=80.0).type == "trine"


def test_opposition_across_zero() -> None:
    hit = detect_aspect(90.0, 272.0, orb=8.0)
    assert hit.type == "opposition"
    assert hit.orb == pytest.approx(2.0)
    assert hit.applying is True


def test_no_aspect_returns_none() -> None:
    assert detect_aspect(90.0, 20.0, orb=6.0) is None


def test_default_orbs_per_type() -> None:
    assert detect_aspect(0.0, 124.0).type == "trine"
    assert detect_aspect(0.0, 65.0).type == "sextile"
    assert detect_aspect(0.0, 67.0) is None
    assert detect_aspect(0.0, 152.0).type == "quincunx"
    assert detect_aspect(0.0, 33.0).type == "semi-sextile"


def test_applying_is_positional() -> None:
    assert detect_aspect(10.0, 130.0).applying is True
    assert detect_aspect(130.0, 10.0).applying is False


def test_natal_table_has_only_majors() -> None:
    assert [s.name for s in NATAL_ASPECTS] == ["conjunction", "opposition", "trine", "square", "sextile"]
    assert detect_aspect(0.0, 150.0, table=NATAL_ASPECTS) is None
    assert len(SYNASTRY_ASPECTS) == len(ASPECT_TYPES) == 7


@given(st.floats(min_value=0.0, max_value=359.999), st.floats(min_value=0.0, max_value=359.999))
def test_detection_is_symmetric_in_type_and_orb(a: float, b: float) -> None:
    x, y = detect_aspect(a, b), detect_aspect(b, a)
    assert (x is None) == (y is None)
    if x is not None:
        assert x.type == y.type
        assert x.orb == pytest.approx(y.orb)
        assert x.orb <= 10.0


def test_chart_aspects_each_pair_once() -> None:
    ps = [
        PlanetPosition.from_longitude("sun", 0.0),
        PlanetPosition.from_longitude("moon", 120.0),
        PlanetPosition.from_longitude("mars", 240.0),
        PlanetPosition.from_longitude("venus", 45.0),
    ]
    found = chart_aspects(ps)
    pairs = {(a.planet1, a.planet2) for a in found}
    assert pairs == {("sun", "moon"), ("sun", "mars"), ("moon", "mars")}
    assert all(a.type == "trine" for a in found)
    assert found[0].involves("moon", "sun")
    assert found[0].as_dict()["type"] == "trine"
