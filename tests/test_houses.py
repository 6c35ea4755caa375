# tests/test_houses.py
from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from astrocore.core.ephemeris import ERR_HOUSES, FLAG_SIDEREAL
from astrocore.core.errors import EphemerisError, InvalidHouseSystemError
from astrocore.core.houses import (
    DEFAULT_HOUSE_SYSTEM,
    HOUSE_SYSTEMS,
    HouseCusp,
    assign_house,
    assign_houses,
    calculate_houses,
    normalize_house_system,
)
from astrocore.core.julian import J2000
from astrocore.core.positions import PlanetPosition
from astrocore.utils import metrics


@pytest.mark.parametrize(
    "given_name,expected",
    [
        ("Placidus", "placidus"),
        ("whole-sign", "whole"),
        ("Whole Sign", "whole"),
        ("EQUAL", "equal"),
        ("equal_house", "equal"),
        ("Polich/Page", "topocentric"),
        (None, DEFAULT_HOUSE_SYSTEM),
        ("  ", DEFAULT_HOUSE_SYSTEM),
    ],
)
def test_normalize_house_system_aliases(given_name, expected) -> None:
    assert normalize_house_system(given_name) == expected


def test_unknown_system_falls_back_and_counts(caplog) -> None:
    before = metrics.REGISTRY.get_sample_value("astro_house_fallback_total", {"requested": "bogus"}) or 0.0
    with caplog.at_level("WARNING", logger="astrocore.core.houses"):
        assert normalize_house_system("bogus") == "placidus"
    assert "bogus" in caplog.text
    after = metrics.REGISTRY.get_sample_value("astro_house_fallback_total", {"requested": "bogus"})
    assert after == before + 1


def test_unknown_system_strict_raises_with_suggestions() -> None:
    with pytest.raises(InvalidHouseSystemError) as ei:
        normalize_house_system("placidous", strict=True)
    assert "placidus" in ei.value.suggestions
    assert ei.value.code == "invalid_house_system"


@pytest.mark.parametrize("system", sorted(HOUSE_SYSTEMS))
def test_twelve_cusps_for_every_system(fake_backend, system: str) -> None:
    res = calculate_houses(fake_backend, J2000, 51.5, -0.1, system)
    assert res.system == system
    assert [c.house for c in res.cusps] == list(range(1, 13))
    assert all(0.0 <= c.longitude < 360.0 for c in res.cusps)


def test_whole_sign_cusps_start_at_sign_boundaries(backend_factory) -> None:
    backend = backend_factory(asc=47.3)
    res = calculate_houses(backend, J2000, 40.0, -74.0, "whole")
    assert res.longitudes == [(30.0 + 30.0 * i) % 360.0 for i in range(12)]
    assert res.ascendant == pytest.approx(47.3)
    # the angles come from the equal-house call
    assert backend.house_calls[-1][3] == "A"


def test_equal_cusps_follow_ascendant(backend_factory) -> None:
    res = calculate_houses(backend_factory(asc=47.3), J2000, 40.0, -74.0, "equal")
    assert res.longitudes[0] == pytest.approx(47.3)
    assert res.longitudes[6] == pytest.approx(227.3)


def test_other_systems_are_delegated(fake_backend) -> None:
    calculate_houses(fake_backend, J2000, 40.0, -74.0, "koch", sidereal=True)
    _jd, _lat, _lon, code, flags = fake_backend.house_calls[-1]
    assert code == "K" and flags & FLAG_SIDEREAL


def test_backend_house_failure_propagates(backend_factory) -> None:
    with pytest.raises(EphemerisError) as ei:
        calculate_houses(backend_factory(houses_fail=True), J2000, 89.95, 0.0, "placidus")
    assert ei.value.error_code == ERR_HOUSES
    assert ei.value.stage == "houses"


def test_assign_house_intervals_and_wrap() -> None:
    cusps = [HouseCusp.at(i + 1, 350.0 + 30.0 * i) for i in range(12)]
    assert assign_house(350.0, cusps) == 1     # cusp belongs to its own house
    assert assign_house(5.0, cusps) == 1       # across 0°
    assert assign_house(19.999, cusps) == 1
    assert assign_house(20.0, cusps) == 2
    assert assign_house(349.0, cusps) == 12


def test_assign_house_degenerate_cusps_default_to_twelve() -> None:
    assert assign_house(123.0, [0.0] * 12) == 12


@given(st.floats(min_value=0.0, max_value=359.999, allow_nan=False),
       st.floats(min_value=0.0, max_value=359.999, allow_nan=False))
def test_every_longitude_lands_in_one_house(asc: float, lon: float) -> None:
    cusps = [(asc + 30.0 * i) % 360.0 for i in range(12)]
    assert 1 <= assign_house(lon, cusps) <= 12


def test_assign_houses_does_not_mutate() -> None:
    ps = (PlanetPosition.from_longitude("sun", 100.0), PlanetPosition.from_longitude("moon", 200.0))
    cusps = [30.0 * i for i in range(12)]
    placed = assign_houses(ps, cusps)
    assert [p.house for p in placed] == [4, 7]
    assert all(p.house is None for p in ps)
