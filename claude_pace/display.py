"""Text shown in the detail popover and by ``--once``."""

from dataclasses import dataclass
from datetime import datetime

from .config import FIVE_HOUR_WINDOW, SEVEN_DAY_WINDOW
from .models import UsageSnapshot, WindowPacing
from .overage import OverageState, current_delta, current_hourly_rate
from .pacing import Tone, drift_tone, utcnow, window_pacing

EMPTY = "--"


@dataclass(frozen=True)
class DisplayModel:
    five_hour: WindowPacing
    seven_day: WindowPacing
    five_hour_text: str
    five_hour_tone: Tone
    seven_day_text: str
    seven_day_tone: Tone
    overage_text: str
    overage_delta: float


def format_relative_time(target: datetime, now: datetime | None = None) -> str:
    """Compact time-until string: ``now``, ``42min``, ``2h05``, ``3h``, ``1d4h``, ``2d``."""
    now = now or utcnow()
    diff_ms = (target - now).total_seconds() * 1000
    if diff_ms <= 0:
        return "now"
    minutes = int(diff_ms / 60000)
    if minutes < 60:
        return f"{minutes}min"
    hours = minutes // 60
    if hours >= 24:
        days, rem_h = divmod(hours, 24)
        return f"{days}d{rem_h}h" if rem_h else f"{days}d"
    rem_m = minutes % 60
    return f"{hours}h{rem_m:02d}" if rem_m else f"{hours}h"


def format_drift(drift: float) -> str:
    return f"+{int(drift)}" if drift >= 0 else f"{int(drift)}"


def format_dollars(cents: float) -> str:
    return f"${cents / 100:.2f}"


def window_detail(pacing: WindowPacing, resets_at: datetime | None,
                  now: datetime | None = None) -> tuple[str, Tone]:
    if pacing.drift_pct is None:
        return EMPTY, Tone.NEUTRAL
    reset = format_relative_time(resets_at, now) if resets_at is not None else EMPTY
    return f"{format_drift(pacing.drift_pct)} · {reset}", drift_tone(pacing.drift_pct)


def overage_text(extra_cents: float, rate: float | None) -> str:
    text = f"extra  {format_dollars(extra_cents)}"
    if rate is not None and rate > 0:
        text += f"  ({format_dollars(rate)}/h)"
    return text


def build_display(snapshot: UsageSnapshot | None, state: OverageState,
                  now: datetime | None = None) -> DisplayModel:
    now = now or utcnow()
    if snapshot is None:
        return DisplayModel(
            five_hour=WindowPacing(),
            seven_day=WindowPacing(),
            five_hour_text=EMPTY,
            five_hour_tone=Tone.NEUTRAL,
            seven_day_text=EMPTY,
            seven_day_tone=Tone.NEUTRAL,
            overage_text=overage_text(0, None),
            overage_delta=0.0,
        )

    five = window_pacing(snapshot.five_hour_pct, snapshot.resets_at, FIVE_HOUR_WINDOW, now)
    seven = window_pacing(snapshot.seven_day_pct, snapshot.seven_day_resets_at,
                          SEVEN_DAY_WINDOW, now)
    five_text, five_tone = window_detail(five, snapshot.resets_at, now)
    seven_text, seven_tone = window_detail(seven, snapshot.seven_day_resets_at, now)
    rate = current_hourly_rate(state, snapshot, now)
    return DisplayModel(
        five_hour=five,
        seven_day=seven,
        five_hour_text=five_text,
        five_hour_tone=five_tone,
        seven_day_text=seven_text,
        seven_day_tone=seven_tone,
        overage_text=overage_text(snapshot.extra_usage_cents, rate),
        overage_delta=current_delta(state, snapshot),
    )
