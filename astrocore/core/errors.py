# astrocore/core/errors.py
"""
Error taxonomy for the chart engine.

Every error here is terminal for the calculation that raised it: the engine
never retries and never returns a partial chart. Callers map them to HTTP
responses, log lines or user messages as they see fit.

Non-convergence of the return solver is *not* an error (see returns.py), and
"no aspect between these two longitudes" is a plain ``None``.
"""
from __future__ import annotations

import difflib
from typing import Any, Iterable, List, Optional

__all__ = [
    "AstroError",
    "InvalidDateError",
    "EphemerisError",
    "InvalidHouseSystemError",
]


class AstroError(ValueError):
    """Base class; carries a short machine-readable ``code``."""

    code = "astro_error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(f"{self.code}: {message}")


class InvalidDateError(AstroError):
    code = "invalid_date"


class EphemerisError(AstroError):
    """The ephemeris backend reported a nonzero error code."""

    code = "ephemeris_error"

    def __init__(self, error_code: int, message: str, *, stage: str = "position", **context: Any):
        self.error_code = int(error_code)
        self.stage = stage
        self.context = context
        super().__init__(f"{stage}: {message} (code={self.error_code})")


class InvalidHouseSystemError(AstroError):
    code = "invalid_house_system"

    def __init__(self, system: Any, known: Iterable[str]):
        self.system = system
        self.suggestions: List[str] = difflib.get_close_matches(
            str(system).strip().lower(), list(known), n=3, cutoff=0.6
        )
        msg = f"unknown house system {system!r}"
        if self.suggestions:
            msg += f"; did you mean: {', '.join(self.suggestions)}?"
        super().__init__(msg)
