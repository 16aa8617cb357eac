"""Project-wide settings and shared scoring constants.

All environment-dependent values are read **lazily** on first access
(not at import time) and cached via ``functools.lru_cache``.  Call
``reset()`` in tests to clear the cache after changing env vars;
no ``importlib.reload`` required.
"""

from __future__ import annotations

import functools
import os
from typing import TYPE_CHECKING, Final


def _float_env(name: str, default: float) -> float:
    """Parse float environment values with a safe fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# ── Constant (never changes at runtime) ──────────────────────────────────
NEUTRAL_SCORE: Final[float] = 5.0  # mid-scale on the 0-10 judgment scale


# ── Lazy settings cache ──────────────────────────────────────────────────

@functools.lru_cache(maxsize=1)
def _load_settings() -> dict[str, object]:
    """Read env-dependent settings once and cache the result."""
    tick_hz = _float_env("SIGNAL_TICK_HZ", 60.0)
    return {
        "LLM_MODEL_NAME": os.getenv("OPENAI_CHAT_MODEL", "gpt-5.2"),
        "TICK_HZ": tick_hz if tick_hz > 0 else 60.0,
        "SILENCE_THRESHOLD": _float_env("SILENCE_THRESHOLD", 15.0),
        "LOUDNESS_FLOOR": _float_env("LOUDNESS_FLOOR", 5.0),
        "TURN_SETTLE_SECONDS": max(0.0, _float_env("TURN_SETTLE_SECONDS", 0.3)),
        "SESSION_IDLE_SECONDS": _float_env("SESSION_IDLE_SECONDS", 1800.0),
    }


def reset() -> None:
    """Clear the cached settings; call from tests after monkeypatching env vars."""
    _load_settings.cache_clear()


# Type declarations for static analysis (not set at runtime so
# ``__getattr__`` is invoked on attribute access).
if TYPE_CHECKING:
    LLM_MODEL_NAME: str
    TICK_HZ: float
    SILENCE_THRESHOLD: float
    LOUDNESS_FLOOR: float
    TURN_SETTLE_SECONDS: float
    SESSION_IDLE_SECONDS: float


def __getattr__(name: str) -> object:
    """PEP 562 module-level ``__getattr__`` providing lazy env reads."""
    settings = _load_settings()
    if name in settings:
        return settings[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


# ── Public helpers ────────────────────────────────────────────────────────


def clamp_score(value: float, low: float = 0.0, high: float = 10.0) -> float:
    """Clamp a judgment score onto the 0-10 scale."""
    return max(low, min(high, value))
