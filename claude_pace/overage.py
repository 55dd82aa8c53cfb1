"""Daily overage tracking.

The usage API only reports the cumulative overage of the billing period. To
show what today has cost, the first non-zero value seen each day becomes a
baseline and everything above it is today's spend.
"""

import logging
from datetime import datetime

from .models import OverageBaseline, UsageSnapshot
from .pacing import utcnow

log = logging.getLogger(__name__)


class OverageState:
    """Holds the current baseline. Owned by the refresh path, read by renders."""

    def __init__(self, baseline: OverageBaseline | None = None):
        self.baseline = baseline

    def __repr__(self):
        return f"OverageState(baseline={self.baseline!r})"


def _same_day(a: datetime, b: datetime) -> bool:
    return a.astimezone().date() == b.astimezone().date()


def observe(state: OverageState, snapshot: UsageSnapshot, now: datetime | None = None):
    """Anchor, re-anchor or clear the baseline for a freshly fetched snapshot."""
    cents = snapshot.extra_usage_cents
    if cents <= 0:
        if state.baseline is not None:
            log.info("Overage cleared (was anchored at %.0f cents)", state.baseline.anchor_cents)
        state.baseline = None
        return

    now = now or utcnow()
    current = state.baseline
    if current is None:
        log.info("Overage baseline anchored at %.0f cents", cents)
    elif not _same_day(current.anchor_date, now):
        log.info("Overage baseline re-anchored at %.0f cents (new day)", cents)
    elif cents < current.anchor_cents:
        log.info("Overage baseline re-anchored at %.0f cents (counter reset from %.0f)",
                 cents, current.anchor_cents)
    else:
        return
    state.baseline = OverageBaseline(anchor_date=now, anchor_cents=cents)


def current_delta(state: OverageState, snapshot: UsageSnapshot) -> float:
    """Cents spent since the baseline, never negative."""
    if state.baseline is None:
        return 0.0
    return max(0.0, snapshot.extra_usage_cents - state.baseline.anchor_cents)


def current_hourly_rate(state: OverageState, snapshot: UsageSnapshot,
                        now: datetime | None = None) -> float | None:
    """Average cents per hour since the baseline. Unsmoothed, noisy when young."""
    baseline = state.baseline
    if baseline is None:
        return None
    now = now or utcnow()
    hours = (now - baseline.anchor_date).total_seconds() / 3600
    if hours <= 0:
        return None
    return (snapshot.extra_usage_cents - baseline.anchor_cents) / hours
