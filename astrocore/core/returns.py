# astrocore/core/returns.py
# -*- coding: utf-8 -*-
"""
Return-time search (solar & lunar returns)

APIs
----
find_return(longitude_at, target, estimate_jd, *, window_days=3.0,
            iterations=20, tolerance=1e-4, body="body") -> ReturnResult
estimate_solar_return(longitude_at, target, year, birth_month=None, birth_day=None) -> float
estimate_lunar_return(longitude_at, target, start_jd) -> float

Notes
-----
- ``longitude_at(jd)`` is any callable returning the body's longitude in
  degrees; in practice PositionResolver.longitude bound to one body. Each
  call is an ephemeris round trip, so the solver evaluates exactly one
  midpoint per iteration and nothing else.
- Bisection over [estimate - window, estimate + window]. The bracket moves
  toward the half where the body is still short of the target, using the
  wrap-aware signed difference so 359° → 1° crossings behave.
- A fixed iteration count bounds the cost. If no midpoint lands within
  tolerance the last midpoint comes back as ``BestEffort``; this is a known
  limitation, not an error.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional
import logging
import math

from astrocore.core.angles import normalize, signed_delta
from astrocore.core.julian import julian_day
from astrocore.utils import metrics

log = logging.getLogger(__name__)

__all__ = [
    "ReturnResult",
    "Converged",
    "BestEffort",
    "find_return",
    "estimate_solar_return",
    "estimate_lunar_return",
    "SUN_MEAN_MOTION",
    "MOON_MEAN_MOTION",
]

# ── constants ─────────────────────────────────────────────────────────────────
SOLAR_YEAR_D = 365.242189
SUN_MEAN_MOTION = 360.0 / SOLAR_YEAR_D     # ≈ 0.9856 °/day
MOON_MEAN_MOTION = 13.1763966              # °/day
_MEAN_MONTH_D = SOLAR_YEAR_D / 12.0
_EQUINOX_DAY_OF_YEAR = 79.5                # ≈ March 20, days after Jan 1 0h

LongitudeAt = Callable[[float], float]


# ── result variants ───────────────────────────────────────────────────────────
@dataclass(frozen=True)
class ReturnResult:
    jd: float
    residual: float      # |Δλ| at jd, degrees
    iterations: int

    converged = False


@dataclass(frozen=True)
class Converged(ReturnResult):
    converged = True


@dataclass(frozen=True)
class BestEffort(ReturnResult):
    converged = False


# ── solver ────────────────────────────────────────────────────────────────────
def find_return(
    longitude_at: LongitudeAt,
    target: float,
    estimate_jd: float,
    *,
    window_days: float = 3.0,
    iterations: int = 20,
    tolerance: float = 1e-4,
    body: str = "body",
) -> ReturnResult:
    if iterations < 1:
        raise ValueError("iterations must be >= 1")
    if not window_days > 0:
        raise ValueError("window_days must be positive")

    target = normalize(target)
    low = float(estimate_jd) - window_days
    high = float(estimate_jd) + window_days
    mid = (low + high) / 2.0
    delta = math.inf

    for i in range(1, iterations + 1):
        mid = (low + high) / 2.0
        delta = signed_delta(target, longitude_at(mid))
        log.debug("return[%s] iter=%d jd=%.8f delta=%.3e", body, i, mid, delta)
        if abs(delta) < tolerance:
            metrics.RETURN_SEARCHES.labels(body=body, outcome="converged").inc()
            metrics.RETURN_ITERATIONS.observe(i)
            return Converged(jd=mid, residual=abs(delta), iterations=i)
        if delta > 0.0:
            low = mid    # still short of the target
        else:
            high = mid

    metrics.RETURN_SEARCHES.labels(body=body, outcome="best_effort").inc()
    metrics.RETURN_ITERATIONS.observe(iterations)
    log.warning("return[%s] did not reach %.1e° in %d iterations; best effort |Δλ|=%.3e° at jd %.6f",
                body, tolerance, iterations, abs(delta), mid)
    return BestEffort(jd=mid, residual=abs(delta), iterations=iterations)


# ── seeds ─────────────────────────────────────────────────────────────────────
def _natal_month_seed(target: float, year: int, birth_month: Optional[int], birth_day: Optional[int]) -> float:
    if birth_month is not None and birth_day is not None:
        day = birth_day
        if birth_month == 2 and birth_day == 29 and not (year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)):
            day = 28
        return julian_day(year, birth_month, day, 12)
    # no birthday: count from the March equinox, one mean month per 30° of longitude
    day = (_EQUINOX_DAY_OF_YEAR + (normalize(target) / 30.0) * _MEAN_MONTH_D) % SOLAR_YEAR_D
    return julian_day(year, 1, 1) + day


def estimate_solar_return(
    longitude_at: LongitudeAt,
    target: float,
    year: int,
    birth_month: Optional[int] = None,
    birth_day: Optional[int] = None,
) -> float:
    """
    Seed from the natal month in the target year, then one mean-motion
    correction so the ±3 day window brackets the crossing.
    """
    seed = _natal_month_seed(target, year, birth_month, birth_day)
    return seed + signed_delta(target, longitude_at(seed)) / SUN_MEAN_MOTION


def estimate_lunar_return(longitude_at: LongitudeAt, target: float, start_jd: float) -> float:
    """Next Moon crossing of ``target`` after ``start_jd`` (two mean-motion steps)."""
    ahead = normalize(target - longitude_at(start_jd))
    jd = float(start_jd) + ahead / MOON_MEAN_MOTION
    return jd + signed_delta(target, longitude_at(jd)) / MOON_MEAN_MOTION
