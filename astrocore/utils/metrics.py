# astrocore/utils/metrics.py
"""
Prometheus instruments for the chart engine.

They live on a private CollectorRegistry so embedding applications decide
whether (and where) to expose them; ``render_metrics()`` returns the text
exposition for a /metrics handler.
"""
from __future__ import annotations

from typing import Final

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from astrocore.version import VERSION

__all__ = [
    "REGISTRY",
    "CONTENT_TYPE_LATEST",
    "EPHEMERIS_CALLS",
    "HOUSE_FALLBACKS",
    "RETURN_SEARCHES",
    "RETURN_ITERATIONS",
    "CHART_BUILD_SECONDS",
    "ENGINE_INFO",
    "render_metrics",
]

REGISTRY: Final = CollectorRegistry(auto_describe=True)

# keep names stable; dashboards key on them
EPHEMERIS_CALLS: Final = Counter(
    "astro_ephemeris_calls_total", "Ephemeris backend calls", ["kind", "outcome"], registry=REGISTRY
)
HOUSE_FALLBACKS: Final = Counter(
    "astro_house_fallback_total", "Unrecognized house systems defaulted to placidus", ["requested"],
    registry=REGISTRY,
)
RETURN_SEARCHES: Final = Counter(
    "astro_return_search_total", "Return-time searches by outcome", ["body", "outcome"], registry=REGISTRY
)
RETURN_ITERATIONS: Final = Histogram(
    "astro_return_search_iterations", "Bisection iterations used per return search",
    buckets=(1, 2, 5, 10, 15, 20, 25), registry=REGISTRY,
)
CHART_BUILD_SECONDS: Final = Histogram(
    "astro_chart_build_seconds", "Wall time to assemble one chart", ["kind"], registry=REGISTRY
)
ENGINE_INFO: Final = Gauge(
    "astro_engine_info", "Always 1; the version label identifies the build", ["version"], registry=REGISTRY
)
ENGINE_INFO.labels(version=VERSION).set(1)


def render_metrics() -> bytes:
    return generate_latest(REGISTRY)
