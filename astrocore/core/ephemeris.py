# astrocore/core/ephemeris.py
# -----------------------------------------------------------------------------
# Ephemeris collaborator: backend protocol + Skyfield implementation
#
# Contract (what the engine consumes):
#   raw_position(jd, body_id, flags) -> (lon, lat, dist_au, speed_deg_per_day, error_code)
#   raw_houses(jd, lat, lon, system_code, flags=0) -> (cusps[12], asc, mc)
#
# • ``jd`` is a UT Julian Day (what TimeConversion produces).
# • Body ids follow the Swiss-Ephemeris numbering (sun 0 … pluto 9).
# • error_code 0 means success; anything else is a hard failure for callers.
# • Configuration is an explicit EphemerisConfig value; there is no module-level
#   kernel state, so test and production configurations can coexist.
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple
import logging
import math
import os
import threading

from astrocore.core import house_engines
from astrocore.core.errors import EphemerisError
from astrocore.core.julian import J2000, jd_tt_from_ut
from astrocore.utils import metrics

log = logging.getLogger(__name__)

__all__ = [
    "BODY_IDS",
    "BODY_NAMES",
    "FLAG_SPEED",
    "FLAG_SIDEREAL",
    "ERR_UNKNOWN_BODY",
    "ERR_OUT_OF_RANGE",
    "ERR_KERNEL",
    "ERR_COMPUTE",
    "ERR_HOUSES",
    "EphemerisConfig",
    "EphemerisBackend",
    "SkyfieldBackend",
    "ayanamsa_deg",
]

# ─────────────────────────────────────────────────────────────────────────────
# Identifiers / flags / error codes
# ─────────────────────────────────────────────────────────────────────────────
BODY_IDS: Dict[str, int] = {
    "sun": 0, "moon": 1, "mercury": 2, "venus": 3, "mars": 4,
    "jupiter": 5, "saturn": 6, "uranus": 7, "neptune": 8, "pluto": 9,
}
BODY_NAMES: Dict[int, str] = {v: k for k, v in BODY_IDS.items()}

FLAG_SPEED = 256
FLAG_SIDEREAL = 64 * 1024

ERR_UNKNOWN_BODY = -1
ERR_OUT_OF_RANGE = -2
ERR_KERNEL = -3
ERR_COMPUTE = -4
ERR_HOUSES = -5

# Skyfield segment labels (outer planets via barycenters, as DE421 ships them)
_KERNEL_KEYS: Dict[int, str] = {
    0: "sun",
    1: "moon",
    2: "mercury",
    3: "venus",
    4: "mars",
    5: "jupiter barycenter",
    6: "saturn barycenter",
    7: "uranus barycenter",
    8: "neptune barycenter",
    9: "pluto barycenter",
}

# Central-difference half-steps (days); fast movers get short steps
_SPEED_STEP_MAP: Dict[int, float] = {1: 0.05, 2: 0.25, 3: 0.25}

# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────
def _bool(v: Any, default: bool) -> bool:
    if v is None or v == "":
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in ("1", "true", "t", "yes", "y", "on")


@dataclass(frozen=True)
class EphemerisConfig:
    kernel: str = "de421.bsp"
    ayanamsa: str = "lahiri"
    speed_step_days: float = 0.5
    enforce_jd_range: bool = True

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "EphemerisConfig":
        data = data or {}
        return cls(
            kernel=str(data.get("kernel") or cls.kernel),
            ayanamsa=str(data.get("ayanamsa") or cls.ayanamsa).strip().lower(),
            speed_step_days=float(data.get("speed_step_days") or cls.speed_step_days),
            enforce_jd_range=_bool(data.get("enforce_jd_range"), cls.enforce_jd_range),
        )

    def __post_init__(self):
        _ayanamsa_key(self.ayanamsa)   # unknown names fail here, not mid-chart
        if not self.speed_step_days > 0:
            raise ValueError(f"speed_step_days must be positive, got {self.speed_step_days!r}")


class EphemerisBackend(Protocol):
    def raw_position(self, jd: float, body_id: int, flags: int) -> Tuple[float, float, float, float, int]:
        ...

    def raw_houses(self, jd: float, lat: float, lon: float, system_code: str,
                   flags: int = 0) -> Tuple[List[float], float, float]:
        ...

# ─────────────────────────────────────────────────────────────────────────────
# Ayanāṁśa (linearized around J2000)
# ─────────────────────────────────────────────────────────────────────────────
_AY_J2000_DEG = 23 + 51 / 60 + 26.26 / 3600   # ≈ 23.857294°
_AY_RATE_AS_PER_YR = 50.290966

_AYANAMSA_OFFSETS: Dict[str, float] = {
    "lahiri": 0.0,
    "chitrapaksha": 0.0,
    "fagan_bradley": 0.83 / 60.0,
    "krishnamurti": -20.0 / 3600.0,
}
_AYANAMSA_ALIASES: Dict[str, str] = {
    "fagan": "fagan_bradley",
    "fagan/bradley": "fagan_bradley",
    "kp": "krishnamurti",
}


def _ayanamsa_key(name: Optional[str]) -> str:
    key = str(name or "lahiri").strip().lower()
    key = _AYANAMSA_ALIASES.get(key, key)
    if key not in _AYANAMSA_OFFSETS:
        raise ValueError(f"unknown ayanamsa {name!r}; expected one of {sorted(_AYANAMSA_OFFSETS)}")
    return key


def ayanamsa_deg(jd_tt: float, name: str = "lahiri") -> float:
    key = _ayanamsa_key(name)
    years = (float(jd_tt) - J2000) / 365.25
    return _AY_J2000_DEG + (_AY_RATE_AS_PER_YR * years) / 3600.0 + _AYANAMSA_OFFSETS[key]


def _ayanamsa_rate_deg_per_day() -> float:
    return _AY_RATE_AS_PER_YR / 3600.0 / 365.25


def _wrap360(x: float) -> float:
    r = math.fmod(x, 360.0)
    return r + 360.0 if r < 0.0 else r


def _wrap_diff_deg(a: float, b: float) -> float:
    """Shortest signed angular difference (a-b) in degrees."""
    return ((a - b + 540.0) % 360.0) - 180.0

# ─────────────────────────────────────────────────────────────────────────────
# Skyfield backend
# ─────────────────────────────────────────────────────────────────────────────
class SkyfieldBackend:
    """
    Apparent geocentric ecliptic-of-date positions from a JPL kernel.

    Kernel and timescale load lazily on first use behind a lock. A kernel that
    cannot be loaded is reported as ERR_KERNEL on every call (no retry).
    """

    def __init__(self, config: Optional[EphemerisConfig] = None):
        self.config = config or EphemerisConfig()
        self._lock = threading.Lock()
        self._ts = None
        self._kernel = None
        self._span: Optional[Tuple[float, float]] = None

    # ---- kernel I/O ---------------------------------------------------------
    def _kernel_path(self, loader) -> str:
        path = self.config.kernel
        if os.path.isfile(path):
            return path
        return loader.path_to(os.path.basename(path))

    @staticmethod
    def _coverage(path: str) -> Optional[Tuple[float, float]]:
        from jplephem.spk import SPK

        spk = SPK.open(path)
        try:
            start = max(seg.start_jd for seg in spk.segments)
            end = min(seg.end_jd for seg in spk.segments)
        finally:
            spk.close()
        return start, end

    def _ensure_loaded(self):
        if self._kernel is not None:
            return self._ts, self._kernel
        with self._lock:
            if self._kernel is None:
                from skyfield.api import load

                try:
                    ts = load.timescale()
                    kernel = load(self.config.kernel)
                except (OSError, ValueError) as e:
                    raise EphemerisError(ERR_KERNEL, f"cannot load kernel {self.config.kernel!r}",
                                         stage="kernel", error=str(e)) from e
                path = self._kernel_path(load)
                self._span = self._coverage(path) if os.path.isfile(path) else None
                log.info("ephemeris kernel loaded: %s span=%s", path, self._span)
                self._ts, self._kernel = ts, kernel
        return self._ts, self._kernel

    def _in_span(self, jd: float, margin: float) -> bool:
        if not self.config.enforce_jd_range or self._span is None:
            return True
        lo, hi = self._span
        return lo + margin <= jd <= hi - margin

    # ---- positions ----------------------------------------------------------
    def _ecliptic(self, ts, earth, body, jd: float) -> Tuple[float, float, float]:
        from skyfield.framelib import ecliptic_frame

        geo = earth.at(ts.ut1_jd(jd)).observe(body).apparent()
        lat, lon, dist = geo.frame_latlon(ecliptic_frame)
        return float(lon.degrees), float(lat.degrees), float(dist.au)

    def raw_position(self, jd: float, body_id: int, flags: int) -> Tuple[float, float, float, float, int]:
        key = _KERNEL_KEYS.get(int(body_id))
        if key is None:
            metrics.EPHEMERIS_CALLS.labels(kind="position", outcome="unknown_body").inc()
            return 0.0, 0.0, 0.0, 0.0, ERR_UNKNOWN_BODY

        try:
            ts, kernel = self._ensure_loaded()
        except EphemerisError as e:
            log.error("%s", e)
            metrics.EPHEMERIS_CALLS.labels(kind="position", outcome="kernel").inc()
            return 0.0, 0.0, 0.0, 0.0, ERR_KERNEL

        h = _SPEED_STEP_MAP.get(int(body_id), self.config.speed_step_days)
        if not self._in_span(jd, h + 1.0):
            log.warning("jd %.5f outside kernel span %s", jd, self._span)
            metrics.EPHEMERIS_CALLS.labels(kind="position", outcome="out_of_range").inc()
            return 0.0, 0.0, 0.0, 0.0, ERR_OUT_OF_RANGE

        from skyfield.errors import EphemerisRangeError

        try:
            earth, body = kernel["earth"], kernel[key]
            lon, lat, dist = self._ecliptic(ts, earth, body, jd)
            speed = 0.0
            if flags & FLAG_SPEED:
                lon_p, _, _ = self._ecliptic(ts, earth, body, jd + h)
                lon_m, _, _ = self._ecliptic(ts, earth, body, jd - h)
                speed = _wrap_diff_deg(lon_p, lon_m) / (2.0 * h)
        except EphemerisRangeError as e:
            log.warning("kernel range miss for body %s at jd %.5f: %s", body_id, jd, e)
            metrics.EPHEMERIS_CALLS.labels(kind="position", outcome="out_of_range").inc()
            return 0.0, 0.0, 0.0, 0.0, ERR_OUT_OF_RANGE
        except (KeyError, ValueError, ArithmeticError):
            log.exception("position computation failed for body %s at jd %.5f", body_id, jd)
            metrics.EPHEMERIS_CALLS.labels(kind="position", outcome="error").inc()
            return 0.0, 0.0, 0.0, 0.0, ERR_COMPUTE

        if flags & FLAG_SIDEREAL:
            lon = lon - ayanamsa_deg(jd_tt_from_ut(jd), self.config.ayanamsa)
            if flags & FLAG_SPEED:
                speed -= _ayanamsa_rate_deg_per_day()

        metrics.EPHEMERIS_CALLS.labels(kind="position", outcome="ok").inc()
        log.debug("raw_position body=%s jd=%.6f lon=%.6f speed=%.6f", body_id, jd, lon, speed)
        return _wrap360(lon), lat, dist, speed, 0

    # ---- houses -------------------------------------------------------------
    def raw_houses(self, jd: float, lat: float, lon: float, system_code: str,
                   flags: int = 0) -> Tuple[List[float], float, float]:
        jd_tt = jd_tt_from_ut(jd)
        offset = ayanamsa_deg(jd_tt, self.config.ayanamsa) if flags & FLAG_SIDEREAL else 0.0
        try:
            cusps, asc, mc = house_engines.compute_house_cusps(jd, jd_tt, lat, lon, system_code, offset=offset)
        except ValueError as e:
            metrics.EPHEMERIS_CALLS.labels(kind="houses", outcome="error").inc()
            raise EphemerisError(ERR_HOUSES, str(e), stage="houses",
                                 system=system_code, lat=lat, lon=lon) from e
        metrics.EPHEMERIS_CALLS.labels(kind="houses", outcome="ok").inc()
        return cusps, asc, mc
