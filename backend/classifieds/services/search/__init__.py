from __future__ import annotations

import os


# Tunable matching constants. Values kept at the levels the marketplace has
# been running with; they are not derived from any corpus statistics.
FUZZY_RATIO = 0.35
NO_TEXT_PENALTY = 10

DEFAULT_RESULT_CAP = 60
DEFAULT_FALLBACK_SCAN_LIMIT = 120


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in ("1", "true", "yes", "on")


def _env_int(name: str, default: int, *, minimum: int = 1, maximum: int = 1000) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        value = int(default)
    else:
        try:
            value = int(raw)
        except Exception:
            value = int(default)
    if value < minimum:
        value = minimum
    if value > maximum:
        value = maximum
    return value


def search_result_cap() -> int:
    return _env_int("SEARCH_RESULT_CAP", DEFAULT_RESULT_CAP, minimum=1, maximum=500)


def search_fallback_scan_limit() -> int:
    return _env_int("SEARCH_FALLBACK_SCAN_LIMIT", DEFAULT_FALLBACK_SCAN_LIMIT, minimum=1, maximum=2000)


def search_fallback_enabled() -> bool:
    return _env_bool("SEARCH_FALLBACK_ENABLED", True)
