# astrocore/core/house_engines.py
"""
Spherical-trigonometry house engines used by the Skyfield backend.

Fundamental angles come from ERFA (IAU 2006/2000A):
- apparent sidereal time (GAST) → RAMC
- true obliquity = mean obliquity + nutation in obliquity

Engines (Swiss-Ephemeris letter codes):
    P Placidus (iterative semi-arc division)
    K Koch
    O Porphyry (quadrant trisection)
    R Regiomontanus
    C Campanus
    T Topocentric (Polich–Page)
    A Equal (from Asc)
    W Whole sign

Every engine returns 12 longitudes in [0, 360) indexed by house-1. Houses
4..9 are the exact oppositions of 10..3. Domain failures (e.g. Placidus above
the polar circle) raise ValueError; the backend turns them into EphemerisError.
"""
from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import erfa  # PyERFA

__all__ = ["HouseFrame", "house_frame", "compute_house_cusps", "ENGINES"]

DEG_R = math.pi / 180.0
EPS_NUM = 1e-12
POLE_LIMIT_DEG = 89.9

# Fixed-point knobs for Placidus (env-tunable for ops / testing)
PLACIDUS_MAX_ITERS = int(os.getenv("ASTRO_PLACIDUS_MAX_ITERS", "50"))
PLACIDUS_TOL_DEG = float(os.getenv("ASTRO_PLACIDUS_TOL_DEG", "1e-9"))

# ───────────────────────────── angle helpers ─────────────────────────────

def _norm(x: float) -> float:
    r = math.fmod(x, 360.0)
    return r + 360.0 if r < 0.0 else r

def _sind(a: float) -> float: return math.sin(a * DEG_R)
def _cosd(a: float) -> float: return math.cos(a * DEG_R)
def _tand(a: float) -> float: return math.tan(a * DEG_R)

def _atan2d(y: float, x: float) -> float:
    if x == 0.0 and y == 0.0:
        raise ValueError("atan2(0,0) undefined")
    return _norm(math.degrees(math.atan2(y, x)))

def _asind(x: float, ctx: str) -> float:
    if abs(x) > 1.0 + EPS_NUM:
        raise ValueError(f"domain error asin({x:.12g}) in {ctx}")
    return math.degrees(math.asin(max(-1.0, min(1.0, x))))

def _acosd(x: float, ctx: str) -> float:
    if abs(x) > 1.0 + EPS_NUM:
        raise ValueError(f"domain error acos({x:.12g}) in {ctx}")
    return math.degrees(math.acos(max(-1.0, min(1.0, x))))

def _split_jd(jd: float) -> Tuple[float, float]:
    d = math.floor(jd)
    return d, jd - d

# ───────────────────────────── fundamental angles ─────────────────────────────

@dataclass(frozen=True)
class HouseFrame:
    """Everything an engine needs: RAMC, obliquity, latitude, Asc, MC (degrees)."""
    ramc: float
    eps: float
    phi: float
    asc: float
    mc: float


def _gast_deg(jd_ut1: float, jd_tt: float) -> float:
    u1, u2 = _split_jd(jd_ut1)
    t1, t2 = _split_jd(jd_tt)
    return _norm(math.degrees(erfa.gst06a(u1, u2, t1, t2)))


def _true_obliquity_deg(jd_tt: float) -> float:
    t1, t2 = _split_jd(jd_tt)
    eps0 = erfa.obl06(t1, t2)
    _dpsi, deps = erfa.nut06a(t1, t2)
    return math.degrees(eps0 + deps)


def _mc_from(ramc: float, eps: float) -> float:
    """Ecliptic longitude culminating at RAMC: tan λ = tan RAMC / cos ε."""
    return _atan2d(_sind(ramc), _cosd(ramc) * _cosd(eps))


def _rising_point(ra: float, pole: float, eps: float) -> float:
    """
    Ecliptic point rising on the horizon of a place at latitude ``pole`` when
    the local sidereal angle is ``ra``. With pole = φ and ra = RAMC this is the
    Ascendant; Regiomontanus, Campanus, Koch and Topocentric reuse it with
    their own poles and offsets.
    """
    return _atan2d(_cosd(ra), -(_sind(ra) * _cosd(eps) + _tand(pole) * _sind(eps)))


def house_frame(jd_ut: float, jd_tt: float, lat: float, lon: float) -> HouseFrame:
    if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lon <= 360.0):
        raise ValueError(f"geographic coordinates out of range: lat={lat}, lon={lon}")
    if abs(lat) > POLE_LIMIT_DEG:
        raise ValueError(f"latitude {lat} too close to the pole for house division")
    ramc = _norm(_gast_deg(jd_ut, jd_tt) + lon)
    eps = _true_obliquity_deg(jd_tt)
    return HouseFrame(
        ramc=ramc, eps=eps, phi=lat,
        asc=_rising_point(ramc, lat, eps),
        mc=_mc_from(ramc, eps),
    )

# ───────────────────────────── cusp assembly ─────────────────────────────

def _with_opposites(c1: float, c2: float, c3: float, c10: float, c11: float, c12: float) -> List[float]:
    first = [c1, c2, c3]
    top = [c10, c11, c12]
    cusps = [0.0] * 12
    for i, c in enumerate(first):
        cusps[i] = _norm(c)
        cusps[i + 6] = _norm(c + 180.0)
    for i, c in enumerate(top):
        cusps[i + 9] = _norm(c)
        cusps[i + 3] = _norm(c + 180.0)
    return cusps

# ───────────────────────────── engines ─────────────────────────────

def _equal(f: HouseFrame) -> List[float]:
    return [_norm(f.asc + 30.0 * i) for i in range(12)]


def _whole(f: HouseFrame) -> List[float]:
    first = math.floor(f.asc / 30.0) * 30.0
    return [_norm(first + 30.0 * i) for i in range(12)]


def _porphyry(f: HouseFrame) -> List[float]:
    upper = _norm(f.asc - f.mc)       # MC → Asc, houses 10..12
    lower = 180.0 - upper             # Asc → IC, houses 1..3
    return _with_opposites(
        f.asc, f.asc + lower / 3.0, f.asc + 2.0 * lower / 3.0,
        f.mc, f.mc + upper / 3.0, f.mc + 2.0 * upper / 3.0,
    )


def _regiomontanus(f: HouseFrame) -> List[float]:
    def cusp(h: float) -> float:
        pole = math.degrees(math.atan(_tand(f.phi) * _sind(h)))
        return _rising_point(f.ramc + h - 90.0, pole, f.eps)
    return _with_opposites(f.asc, cusp(120.0), cusp(150.0), f.mc, cusp(30.0), cusp(60.0))


def _campanus(f: HouseFrame) -> List[float]:
    def cusp(h: float) -> float:
        # house circle through the N/S points, h from the zenith along the prime vertical
        a = math.degrees(math.atan2(_cosd(f.phi) * _sind(h), _cosd(h)))
        pole = _asind(_sind(f.phi) * _sind(h), "campanus:pole")
        return _rising_point(f.ramc + a - 90.0, pole, f.eps)
    return _with_opposites(f.asc, cusp(120.0), cusp(150.0), f.mc, cusp(30.0), cusp(60.0))


def _koch(f: HouseFrame) -> List[float]:
    dec_mc = _asind(_sind(f.mc) * _sind(f.eps), "koch:decl_mc")
    ad = _asind(_tand(dec_mc) * _tand(f.phi), "koch:asc_diff")
    oa_mc = f.ramc - ad
    step = _norm((f.ramc + 90.0) - oa_mc) / 3.0

    def cusp(k: int) -> float:
        return _rising_point(oa_mc + k * step - 90.0, f.phi, f.eps)
    return _with_opposites(f.asc, cusp(4), cusp(5), f.mc, cusp(1), cusp(2))


def _topocentric(f: HouseFrame) -> List[float]:
    def cusp(offset: float, frac: float) -> float:
        pole = math.degrees(math.atan(_tand(f.phi) * frac))
        return _rising_point(f.ramc + offset, pole, f.eps)
    return _with_opposites(
        f.asc, cusp(30.0, 2.0 / 3.0), cusp(60.0, 1.0 / 3.0),
        f.mc, cusp(-60.0, 1.0 / 3.0), cusp(-30.0, 2.0 / 3.0),
    )


def _placidus_cusp(f: HouseFrame, meridian_distance: Callable[[float], float], seed: float, label: str) -> float:
    """
    Fixed-point iteration on λ: RA(λ) - RAMC must equal a fraction of the
    semi-arc of λ's own declination.
    """
    lam = _norm(seed)
    for _ in range(PLACIDUS_MAX_ITERS):
        dec = _asind(_sind(f.eps) * _sind(lam), f"{label}:decl")
        sda = _acosd(-_tand(f.phi) * _tand(dec), f"{label}:semi_arc")
        ra = f.ramc + meridian_distance(sda)
        nxt = _atan2d(_sind(ra), _cosd(ra) * _cosd(f.eps))
        step = abs(((nxt - lam + 540.0) % 360.0) - 180.0)
        lam = nxt
        if step < PLACIDUS_TOL_DEG:
            return lam
    raise ValueError(f"placidus {label} did not converge in {PLACIDUS_MAX_ITERS} iterations")


def _placidus(f: HouseFrame) -> List[float]:
    por = _porphyry(f)
    c11 = _placidus_cusp(f, lambda sda: sda / 3.0, por[10], "C11")
    c12 = _placidus_cusp(f, lambda sda: 2.0 * sda / 3.0, por[11], "C12")
    c2 = _placidus_cusp(f, lambda sda: sda + (180.0 - sda) / 3.0, por[1], "C2")
    c3 = _placidus_cusp(f, lambda sda: sda + 2.0 * (180.0 - sda) / 3.0, por[2], "C3")
    return _with_opposites(f.asc, c2, c3, f.mc, c11, c12)


ENGINES: Dict[str, Callable[[HouseFrame], List[float]]] = {
    "P": _placidus,
    "K": _koch,
    "O": _porphyry,
    "R": _regiomontanus,
    "C": _campanus,
    "T": _topocentric,
    "A": _equal,
    "W": _whole,
}


def compute_house_cusps(jd_ut: float, jd_tt: float, lat: float, lon: float,
                        code: str, *, offset: float = 0.0) -> Tuple[List[float], float, float]:
    """
    (cusps[12], asc, mc). ``offset`` is subtracted from every angle after the
    engine runs (sidereal charts pass the ayanamsa here).
    """
    engine: Optional[Callable[[HouseFrame], List[float]]] = ENGINES.get(str(code).upper())
    if engine is None:
        raise ValueError(f"unsupported house system code {code!r}")
    frame = house_frame(jd_ut, jd_tt, lat, lon)
    cusps = engine(frame)
    if offset:
        cusps = [_norm(c - offset) for c in cusps]
        return cusps, _norm(frame.asc - offset), _norm(frame.mc - offset)
    return cusps, frame.asc, frame.mc
