# tests/conftest.py
from __future__ import annotations

"""
Pytest configuration for the astrocore suite.

- Registers Hypothesis profiles for local dev and CI.
- Freezes the process TZ to UTC.
- Adds a 'slow' marker for tests that need a real JPL kernel.
- Provides FakeBackend: a deterministic ephemeris with linear motion so chart,
  return and house tests run without kernel files.
"""

import os
from typing import Dict, List, Tuple

import pytest
from hypothesis import settings, HealthCheck

from astrocore.core.ephemeris import BODY_IDS, ERR_HOUSES, FLAG_SIDEREAL, FLAG_SPEED
from astrocore.core.errors import EphemerisError
from astrocore.core.julian import J2000
from astrocore.core.positions import PositionResolver


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(
        deadline=None,
        max_examples=60,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)
settings.register_profile(
    "ci",
    settings(
        deadline=None,
        max_examples=120,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: needs a real JPL kernel (de421.bsp)")
    config.addinivalue_line("filterwarnings", "ignore::DeprecationWarning")


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Fake ephemeris
# ──────────────────────────────────────────────────────────────────────────────
BASE_LON: Dict[str, float] = {  # longitude at J2000, degrees
    "sun": 280.0, "moon": 220.0, "mercury": 272.0, "venus": 241.0, "mars": 327.0,
    "jupiter": 25.0, "saturn": 40.0, "uranus": 314.0, "neptune": 303.0, "pluto": 251.0,
}
BASE_SPD: Dict[str, float] = {  # constant speeds, degrees/day
    "sun": 0.9856, "moon": 13.1764, "mercury": 1.2, "venus": 1.1, "mars": 0.5,
    "jupiter": 0.08, "saturn": 0.03, "uranus": 0.01, "neptune": 0.006, "pluto": -0.004,
}
FAKE_AYANAMSA = 24.0


class FakeBackend:
    """
    Linear-motion ephemeris. Houses are equal cusps from a fixed Ascendant
    whatever the system code; ``fail`` maps body id → error code to inject.
    """

    def __init__(self, asc: float = 15.0, fail: Dict[int, int] = None, houses_fail: bool = False):
        self.asc = asc
        self.fail = dict(fail or {})
        self.houses_fail = houses_fail
        self.position_calls: List[Tuple[float, int, int]] = []
        self.house_calls: List[Tuple[float, float, float, str, int]] = []

    @staticmethod
    def longitude_of(name: str, jd: float) -> float:
        return (BASE_LON[name] + BASE_SPD[name] * (jd - J2000)) % 360.0

    def raw_position(self, jd: float, body_id: int, flags: int):
        self.position_calls.append((jd, body_id, flags))
        if body_id in self.fail:
            return 0.0, 0.0, 0.0, 0.0, self.fail[body_id]
        name = {v: k for k, v in BODY_IDS.items()}[body_id]
        lon = self.longitude_of(name, jd)
        if flags & FLAG_SIDEREAL:
            lon = (lon - FAKE_AYANAMSA) % 360.0
        speed = BASE_SPD[name] if flags & FLAG_SPEED else 0.0
        return lon, 0.0, 1.0, speed, 0

    def raw_houses(self, jd: float, lat: float, lon: float, system_code: str, flags: int = 0):
        self.house_calls.append((jd, lat, lon, system_code, flags))
        if self.houses_fail:
            raise EphemerisError(ERR_HOUSES, "fake house failure", stage="houses")
        asc = self.asc - (FAKE_AYANAMSA if flags & FLAG_SIDEREAL else 0.0)
        cusps = [(asc + 30.0 * i) % 360.0 for i in range(12)]
        return cusps, asc % 360.0, (asc + 270.0) % 360.0


# ──────────────────────────────────────────────────────────────────────────────
# Global fixtures
# ──────────────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="session", autouse=True)
def freeze_tz_env():
    """Ensure the process TZ is UTC so naive-datetime handling is deterministic."""
    prev = os.environ.get("TZ")
    os.environ["TZ"] = "UTC"
    try:
        yield
    finally:
        if prev is None:
            os.environ.pop("TZ", None)
        else:
            os.environ["TZ"] = prev


@pytest.fixture
def backend_factory():
    return FakeBackend


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def resolver(fake_backend: FakeBackend) -> PositionResolver:
    return PositionResolver(backend=fake_backend)


@pytest.fixture
def clean_env(monkeypatch):
    """Strip ASTRO_* overrides so config tests see packaged defaults only."""
    for key in list(os.environ):
        if key.startswith("ASTRO_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture(scope="session")
def skyfield_resolver():
    """Real backend; skipped when the kernel cannot be loaded (offline runners)."""
    from astrocore.core.ephemeris import SkyfieldBackend
    from astrocore.utils.config import ephemeris_config

    backend = SkyfieldBackend(ephemeris_config())
    try:
        backend._ensure_loaded()
    except EphemerisError as e:
        pytest.skip(f"JPL kernel unavailable: {e}")
    return PositionResolver(backend=backend, config=backend.config)
