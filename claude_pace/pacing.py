"""Window pacing: how far through a window we are and how usage compares."""

import math
from datetime import datetime, timedelta, timezone
from enum import Enum

from .models import WindowPacing

DRIFT_HOT = 30
DRIFT_WARM = 10
DRIFT_COOL = -10


class Tone(Enum):
    """Colour role, resolved to a concrete colour only when painting."""

    RED = "red"
    ORANGE = "orange"
    GREEN = "green"
    NEUTRAL = "neutral"  # secondary text
    MUTED = "muted"  # on-pace arc
    TRACK = "track"  # empty ring
    TEXT = "text"
    TICK = "tick"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def round_half_away(value: float) -> float:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)."""
    return math.copysign(math.floor(abs(value) + 0.5), value)


def elapsed_pct(resets_at: datetime | None, window_hours: float,
                now: datetime | None = None) -> float | None:
    """Percentage of the window ending at ``resets_at`` that has already passed.

    Returns None when the reset time is unknown, or when ``now`` lies outside
    ``[resets_at - window, resets_at]`` (window not started yet, or a stale
    reset time already in the past).
    """
    if resets_at is None:
        return None
    now = now or utcnow()
    window = timedelta(hours=window_hours)
    start = resets_at - window
    if not (start <= now <= resets_at):
        return None
    return (now - start) / window * 100


def drift_pct(usage_pct: float, resets_at: datetime | None, window_hours: float,
              now: datetime | None = None) -> float | None:
    """Usage minus elapsed, rounded. Positive means ahead of pace."""
    elapsed = elapsed_pct(resets_at, window_hours, now)
    if elapsed is None:
        return None
    return round_half_away(usage_pct - elapsed)


def window_pacing(pct: float, resets_at: datetime | None, window_hours: float,
                  now: datetime | None = None) -> WindowPacing:
    now = now or utcnow()
    elapsed = elapsed_pct(resets_at, window_hours, now)
    drift = None if elapsed is None else round_half_away(pct - elapsed)
    return WindowPacing(pct=pct, elapsed_pct=elapsed, drift_pct=drift)


def drift_tone(drift: float) -> Tone:
    if drift > DRIFT_HOT:
        return Tone.RED
    if drift > DRIFT_WARM:
        return Tone.ORANGE
    if drift < DRIFT_COOL:
        return Tone.GREEN
    return Tone.NEUTRAL


def label_tone(pct: float, drift: float | None, is_full: bool) -> Tone:
    # A full window is red whatever the pace says.
    if is_full:
        return Tone.RED
    if drift is not None:
        if drift > DRIFT_HOT:
            return Tone.RED
        if drift > DRIFT_WARM:
            return Tone.ORANGE
    return Tone.TEXT
