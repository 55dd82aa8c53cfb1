from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class UsageSnapshot:
    """One successful poll of the usage API."""

    five_hour_pct: float = 0.0
    seven_day_pct: float = 0.0
    resets_at: datetime | None = None
    seven_day_resets_at: datetime | None = None
    extra_usage_cents: float = 0.0


@dataclass(frozen=True)
class OverageBaseline:
    anchor_date: datetime
    anchor_cents: float


@dataclass(frozen=True)
class WindowPacing:
    """Usage of one window measured against how much of it has elapsed."""

    pct: float = 0.0
    elapsed_pct: float | None = None
    drift_pct: float | None = None

    @property
    def is_full(self) -> bool:
        return self.pct >= 100

    @property
    def has_pace(self) -> bool:
        return self.elapsed_pct is not None and self.drift_pct is not None
