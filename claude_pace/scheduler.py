"""Periodic refresh: fetch off the GUI thread, apply on it."""

import logging
from datetime import datetime
from enum import Enum

from PySide6.QtCore import QObject, QThread, QTimer, Signal

from .client import ClaudeUsageClient, RefreshError
from .config import REFRESH_INTERVAL_MS
from .display import DisplayModel, build_display
from .gauge import render_tray_icon
from .models import UsageSnapshot
from .overage import OverageState, observe
from .pacing import utcnow

log = logging.getLogger(__name__)


class RefreshState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    APPLIED = "applied"
    FETCH_FAILED = "fetch_failed"


class FetchWorker(QThread):
    """Runs one credential lookup + fetch. Results carry the request's sequence number."""

    fetched = Signal(int, object)
    failed = Signal(int, object)

    def __init__(self, client: ClaudeUsageClient, seq: int):
        super().__init__()
        self.client = client
        self.seq = seq

    def run(self):
        try:
            snapshot = self.client.load()
        except RefreshError as e:
            self.failed.emit(self.seq, e)
            return
        self.fetched.emit(self.seq, snapshot)


class RefreshScheduler(QObject):
    """Owns the latest snapshot and overage baseline and pushes renders to a sink.

    The sink provides ``set_tray_image(image)``, ``set_detail_view(display)``
    and ``detail_visible()``. Every mutation happens on the thread this object
    lives on; workers report back through queued signals. Fetches may overlap
    and are never cancelled, so a completion older than the last applied one
    is dropped instead of overwriting newer data.
    """

    updated = Signal(object)

    def __init__(self, client: ClaudeUsageClient, sink=None,
                 interval_ms: int = REFRESH_INTERVAL_MS, clock=utcnow, parent=None):
        super().__init__(parent)
        self._client = client
        self._sink = sink
        self._clock = clock
        self.snapshot: UsageSnapshot | None = None
        self.overage = OverageState()
        self.state = RefreshState.IDLE
        self._seq = 0
        self._applied_seq = 0
        self._workers: list[FetchWorker] = []

        self._timer = QTimer(self)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self.refresh)

    def start(self):
        self.refresh()
        self._timer.start()

    def stop(self):
        """Stop ticking and wait for in-flight fetches to finish."""
        self._timer.stop()
        for worker in self._workers:
            if worker.isRunning():
                log.debug("Waiting for refresh #%d to finish", worker.seq)
                worker.wait()

    def refresh(self) -> int:
        # Keep running workers referenced until their thread has exited.
        self._workers = [w for w in self._workers if w.isRunning()]
        self._seq += 1
        worker = FetchWorker(self._client, self._seq)
        worker.fetched.connect(self.apply)
        worker.failed.connect(self.reject)
        self._workers.append(worker)
        self.state = RefreshState.FETCHING
        log.debug("Refresh #%d started", self._seq)
        worker.start()
        return self._seq

    def apply(self, seq: int, snapshot: UsageSnapshot) -> bool:
        if seq <= self._applied_seq:
            log.debug("Dropping refresh #%d, #%d already applied", seq, self._applied_seq)
            return False
        self._applied_seq = seq
        now = self._clock()
        self.snapshot = snapshot
        observe(self.overage, snapshot, now)
        display = build_display(snapshot, self.overage, now)
        self.state = RefreshState.APPLIED
        log.debug("Refresh #%d applied: 5h=%.0f%% 7d=%.0f%% extra=%.0fc",
                  seq, snapshot.five_hour_pct, snapshot.seven_day_pct, snapshot.extra_usage_cents)

        if self._sink is not None:
            self._sink.set_tray_image(render_tray_icon(snapshot, display.overage_delta, now))
            if self._sink.detail_visible():
                self._sink.set_detail_view(display)
        self.updated.emit(display)
        return True

    def reject(self, seq: int, error: RefreshError):
        log.warning("Refresh #%d failed: %s: %s", seq, type(error).__name__, error)
        if seq > self._applied_seq:
            self.state = RefreshState.FETCH_FAILED

    def display(self, now: datetime | None = None) -> DisplayModel:
        return build_display(self.snapshot, self.overage, now or self._clock())
