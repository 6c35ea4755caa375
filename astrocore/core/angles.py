# astrocore/core/angles.py
"""
Ecliptic angle helpers.

Every angular quantity in the engine lives in [0, 360) degrees and wraps at the
boundary. Functions here are total (no error path) except sign_to_longitude,
which rejects an unknown sign name.
"""
from __future__ import annotations

import math
from typing import Dict, Tuple

__all__ = [
    "SIGNS",
    "ELEMENTS",
    "SIGN_ELEMENT",
    "normalize",
    "angular_distance",
    "signed_delta",
    "sign_of",
    "sign_index",
    "degree_in_sign",
    "split_dms",
    "sign_to_longitude",
    "element_of",
]

SIGNS: Tuple[str, ...] = (
    "aries", "taurus", "gemini", "cancer", "leo", "virgo",
    "libra", "scorpio", "sagittarius", "capricorn", "aquarius", "pisces",
)

ELEMENTS: Tuple[str, ...] = ("fire", "earth", "air", "water")

# Triplicities: sign index mod 4 cycles fire → earth → air → water
SIGN_ELEMENT: Dict[str, str] = {s: ELEMENTS[i % 4] for i, s in enumerate(SIGNS)}

_SIGN_INDEX: Dict[str, int] = {s: i for i, s in enumerate(SIGNS)}


def normalize(deg: float) -> float:
    """Wrap to [0, 360). Negative zero comes back as +0.0."""
    r = float(deg) % 360.0
    if r >= 360.0:  # tiny negatives round up to 360.0
        r = 0.0
    return r + 0.0


def angular_distance(a: float, b: float) -> float:
    """Unsigned separation on the circle, in [0, 180]."""
    d = abs(float(a) - float(b))
    if d >= 360.0:
        d = d % 360.0
    return 360.0 - d if d > 180.0 else d


def signed_delta(target: float, value: float) -> float:
    """How far ``value`` still has to travel forward to reach ``target``, in (-180, 180]."""
    d = normalize(float(target) - float(value))
    return d - 360.0 if d > 180.0 else d


def sign_index(longitude: float) -> int:
    return int(math.floor(normalize(longitude) / 30.0)) % 12


def sign_of(longitude: float) -> str:
    return SIGNS[sign_index(longitude)]


def degree_in_sign(longitude: float) -> float:
    return normalize(longitude) % 30.0


def split_dms(longitude: float) -> Tuple[int, int, int]:
    """(degree, minute, second) inside the sign; each part floored."""
    d = degree_in_sign(longitude)
    deg = int(math.floor(d))
    m_f = (d - deg) * 60.0
    minute = int(math.floor(m_f))
    second = int(math.floor((m_f - minute) * 60.0))
    return deg, min(minute, 59), min(second, 59)


def sign_to_longitude(sign: str, degree: float = 0.0, minute: float = 0.0, second: float = 0.0) -> float:
    key = str(sign).strip().lower()
    if key not in _SIGN_INDEX:
        raise ValueError(f"unknown zodiac sign {sign!r}")
    return normalize(_SIGN_INDEX[key] * 30.0 + degree + minute / 60.0 + second / 3600.0)


def element_of(sign: str) -> str:
    return SIGN_ELEMENT[str(sign).strip().lower()]
