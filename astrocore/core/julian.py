# astrocore/core/julian.py
# -----------------------------------------------------------------------------
# Calendar ↔ Julian Day conversion (ERFA aligned)
#
# Public API:
#   julian_day(year, month, day, hour, minute, second) -> float   (UTC JD)
#   to_julian_day(datetime) -> float
#   from_julian_day(jd) -> datetime (UTC)
#   make_instant(datetime | str) -> Instant
#   jd_tt_from_ut(jd) -> float
#
# Guarantees:
#   • Gregorian calendar part via erfa.cal2jd; time of day added as a fraction.
#   • 2000-01-01T12:00:00Z → 2451545.0 exactly.
#   • Impossible dates and non-finite fields raise InvalidDateError, never NaN.
#   • Naive datetimes are read as UTC.
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Union
import math
import warnings

import erfa  # pyERFA

from astrocore.core.errors import InvalidDateError

__all__ = [
    "Instant",
    "julian_day",
    "to_julian_day",
    "from_julian_day",
    "make_instant",
    "jd_tt_from_ut",
    "J2000",
]

J2000 = 2451545.0
_TT_MINUS_TAI_S = 32.184


@dataclass(frozen=True)
class Instant:
    """A UTC moment and its Julian Day. Build with make_instant()."""
    utc: datetime
    jd: float

    def shifted(self, days: float) -> "Instant":
        return Instant(self.utc + timedelta(days=days), self.jd + days)


# ───────────────────────────── Core conversion ─────────────────────────────

def _finite(name: str, value: Any) -> float:
    try:
        f = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidDateError(f"{name} is not a number: {value!r}") from e
    if not math.isfinite(f):
        raise InvalidDateError(f"{name} is not finite: {value!r}")
    return f


def julian_day(year: int, month: int, day: int,
               hour: float = 0.0, minute: float = 0.0, second: float = 0.0) -> float:
    for name, v in (("year", year), ("month", month), ("day", day)):
        f = _finite(name, v)
        if f != int(f):
            raise InvalidDateError(f"{name} must be an integer, got {v!r}")
    hour_f = _finite("hour", hour)
    minute_f = _finite("minute", minute)
    second_f = _finite("second", second)

    try:
        date(int(year), int(month), int(day))  # existence check
    except ValueError as e:
        raise InvalidDateError(f"invalid calendar date {year}-{month}-{day}: {e}") from e
    if not (0.0 <= hour_f < 24.0 and 0.0 <= minute_f < 60.0 and 0.0 <= second_f < 61.0):
        raise InvalidDateError(f"invalid time of day {hour}:{minute}:{second}")

    djm0, djm = erfa.cal2jd(int(year), int(month), int(day))
    frac = (hour_f + minute_f / 60.0 + second_f / 3600.0) / 24.0
    return float(djm0) + float(djm) + frac


def to_julian_day(dt: datetime) -> float:
    if not isinstance(dt, datetime):
        raise InvalidDateError(f"expected datetime, got {type(dt).__name__}")
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return julian_day(dt.year, dt.month, dt.day,
                      dt.hour, dt.minute, dt.second + dt.microsecond / 1e6)


def from_julian_day(jd: float) -> datetime:
    jd_f = _finite("jd", jd)
    try:
        iy, im, iday, fd = erfa.jd2cal(jd_f, 0.0)
    except erfa.ErfaError as e:
        raise InvalidDateError(f"julian day {jd!r} outside the supported calendar range") from e
    base = datetime(int(iy), int(im), int(iday), tzinfo=timezone.utc)
    return base + timedelta(days=float(fd))


def make_instant(value: Union[datetime, date, str]) -> Instant:
    if isinstance(value, Instant):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidDateError(f"invalid ISO-8601 datetime {value!r}") from e
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if not isinstance(value, datetime):
        raise InvalidDateError(f"cannot build an instant from {type(value).__name__}")

    utc = value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)
    return Instant(utc=utc, jd=to_julian_day(utc))


# ───────────────────────────── Time scales ─────────────────────────────

def jd_tt_from_ut(jd_ut: float) -> float:
    """
    UTC-ish JD → TT via ΔAT from erfa.dat plus the fixed 32.184 s.
    Before 1960 erfa reports a "dubious year" and ΔAT = 0; the residual is
    below a minute and irrelevant at house-cusp precision.
    """
    iy, im, iday, fd = erfa.jd2cal(float(jd_ut), 0.0)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", erfa.ErfaWarning)
        dat = float(erfa.dat(int(iy), int(im), int(iday), float(fd)))
    return float(jd_ut) + (dat + _TT_MINUS_TAI_S) / 86400.0
