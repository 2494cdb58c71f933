"""Feature flags switched on through the environment."""

from __future__ import annotations

import os

_PREFIX = "FEATURE_"


def is_enabled(feature: str) -> bool:
    """Return True when the variable FEATURE_<FEATURE> is set to "true" (any case)."""
    value = os.environ.get(_PREFIX + feature.upper(), "")
    return value.lower() == "true"