# astrocore/version.py
"""Package version. ASTRO_VERSION overrides it for CI and preview builds."""
from __future__ import annotations

import os
from importlib import metadata


def _installed_version() -> str:
    try:
        return metadata.version("astrocore")
    except metadata.PackageNotFoundError:
        return "0.1.0"  # source checkout, not installed


VERSION = os.getenv("ASTRO_VERSION") or _installed_version()
