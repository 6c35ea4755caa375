# astrocore/utils/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import yaml

from astrocore.core.ephemeris import EphemerisConfig

__all__ = [
    "AttrDict",
    "EngineSettings",
    "load_config",
    "ephemeris_config",
    "configure_logging",
    "DEFAULT_CONFIG_PATH",
]

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "defaults.yaml")

# env var → (section, key)
_ENV_OVERRIDES = {
    "ASTRO_EPHEMERIS": ("ephemeris", "kernel"),
    "ASTRO_AYANAMSA": ("ephemeris", "ayanamsa"),
    "ASTRO_SPEED_STEP_DAYS": ("ephemeris", "speed_step_days"),
    "ASTRO_ENFORCE_JD_RANGE": ("ephemeris", "enforce_jd_range"),
    "ASTRO_HOUSE_SYSTEM": ("engine", "house_system"),
    "ASTRO_HOUSE_STRICT": ("engine", "strict_houses"),
    "ASTRO_ZODIAC": ("engine", "zodiac"),
    "ASTRO_LOG_LEVEL": ("logging", "level"),
}


class AttrDict(dict):
    """Dict that also supports attribute access: cfg.engine and cfg['engine'] both work."""
    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError as e:
            raise AttributeError(item) from e
    def __setattr__(self, key, value):
        self[key] = value


def _to_attr(obj):
    if isinstance(obj, dict):
        return AttrDict({k: _to_attr(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return [_to_attr(x) for x in obj]
    return obj


def _deep_merge(base: Dict[str, Any], extra: Mapping[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in (extra or {}).items():
        if isinstance(v, Mapping) and isinstance(out.get(k), Mapping):
            out[k] = _deep_merge(dict(out[k]), v)
        else:
            out[k] = v
    return out


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"config file {path} must contain a mapping at the top level")
    return data


def load_config(path: Optional[str] = None) -> AttrDict:
    """
    Load the packaged defaults, merge the YAML at ``path`` (or $ASTRO_CONFIG)
    over them, then apply ASTRO_* environment overrides.
    Returns an AttrDict for convenient access.
    """
    data = _read_yaml(DEFAULT_CONFIG_PATH)
    user_path = path or os.getenv("ASTRO_CONFIG")
    if user_path:
        data = _deep_merge(data, _read_yaml(user_path))

    for env, (section, key) in _ENV_OVERRIDES.items():
        val = os.getenv(env)
        if val:
            data.setdefault(section, {})[key] = val

    return _to_attr(data)


def _bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in ("1", "true", "t", "yes", "y", "on")


@dataclass(frozen=True)
class EngineSettings:
    house_system: str = "placidus"
    strict_houses: bool = False
    zodiac: str = "tropical"
    return_window_days: float = 3.0
    return_iterations: int = 20
    return_tolerance_deg: float = 1e-4

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "EngineSettings":
        data = data or {}
        return cls(
            house_system=str(data.get("house_system", cls.house_system)).strip().lower(),
            strict_houses=_bool(data.get("strict_houses", cls.strict_houses)),
            zodiac=str(data.get("zodiac", cls.zodiac)).strip().lower(),
            return_window_days=float(data.get("return_window_days", cls.return_window_days)),
            return_iterations=int(data.get("return_iterations", cls.return_iterations)),
            return_tolerance_deg=float(data.get("return_tolerance_deg", cls.return_tolerance_deg)),
        )

    @classmethod
    def load(cls, cfg: Optional[AttrDict] = None) -> "EngineSettings":
        cfg = cfg if cfg is not None else load_config()
        return cls.from_mapping(cfg.get("engine"))


def ephemeris_config(cfg: Optional[AttrDict] = None) -> EphemerisConfig:
    cfg = cfg if cfg is not None else load_config()
    return EphemerisConfig.from_mapping(cfg.get("ephemeris"))


def configure_logging(level: Optional[str] = None, cfg: Optional[AttrDict] = None) -> None:
    """Root logging for CLI/embedding use; the library itself never calls this."""
    if level is None:
        cfg = cfg if cfg is not None else load_config()
        level = str((cfg.get("logging") or {}).get("level", "WARNING"))
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
