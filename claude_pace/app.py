"""Tray indicator showing Claude usage pace for the 5-hour and 7-day windows."""

import argparse
import logging
import sys

from PySide6.QtCore import QPoint, Qt
from PySide6.QtGui import QAction, QColor, QCursor, QFont, QIcon, QImage, QPainter, QPainterPath, QPen, QPixmap
from PySide6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QLabel,
    QMenu,
    QPushButton,
    QSystemTrayIcon,
    QVBoxLayout,
    QWidget,
)

from .client import ClaudeUsageClient, RefreshError
from .config import LOG_FILE
from .display import DisplayModel, build_display
from .gauge import GAUGE_SIZE, PALETTE, render_gauge, render_tray_icon
from .overage import OverageState, observe
from .pacing import Tone
from .scheduler import RefreshScheduler

log = logging.getLogger(__name__)


def _color_css(tone: Tone) -> str:
    c = PALETTE[tone]
    return f"rgba({c.red()}, {c.green()}, {c.blue()}, {c.alpha()})"


class DetailPopover(QWidget):
    """Two large gauges with their drift lines, the overage line, and buttons."""

    def __init__(self, on_refresh, on_quit, parent=None):
        super().__init__(parent)
        self.setWindowFlags(Qt.WindowType.Popup | Qt.WindowType.FramelessWindowHint)
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        self._on_refresh = on_refresh
        self._on_quit = on_quit
        self._build_ui()

    def _build_ui(self):
        layout = QVBoxLayout(self)
        layout.setContentsMargins(18, 14, 18, 14)
        layout.setSpacing(10)

        title_font = QFont("sans-serif", 9)
        title_font.setWeight(QFont.Weight.Medium)
        detail_font = QFont("monospace", 9)

        top = QHBoxLayout()
        top.setSpacing(20)
        self._gauges: list[QLabel] = []
        self._details: list[QLabel] = []
        for title in ("5 hours", "7 days"):
            col = QVBoxLayout()
            col.setSpacing(4)
            heading = QLabel(title)
            heading.setFont(title_font)
            heading.setAlignment(Qt.AlignmentFlag.AlignCenter)
            heading.setStyleSheet(f"color: {_color_css(Tone.NEUTRAL)};")
            gauge = QLabel()
            gauge.setFixedSize(GAUGE_SIZE, GAUGE_SIZE)
            detail = QLabel("--")
            detail.setFont(detail_font)
            detail.setAlignment(Qt.AlignmentFlag.AlignCenter)
            col.addWidget(heading)
            col.addWidget(gauge, alignment=Qt.AlignmentFlag.AlignHCenter)
            col.addWidget(detail)
            top.addLayout(col)
            self._gauges.append(gauge)
            self._details.append(detail)
        layout.addLayout(top)

        sep = QWidget()
        sep.setFixedHeight(1)
        sep.setStyleSheet("background-color: rgba(100, 100, 120, 80);")
        layout.addWidget(sep)

        self._extra_label = QLabel("")
        self._extra_label.setFont(detail_font)
        self._extra_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._extra_label.setStyleSheet(f"color: {_color_css(Tone.NEUTRAL)};")
        layout.addWidget(self._extra_label)

        buttons = QHBoxLayout()
        buttons.setSpacing(8)
        self._refresh_btn = QPushButton("Refresh")
        self._refresh_btn.clicked.connect(self._on_refresh)
        quit_btn = QPushButton("Quit")
        quit_btn.clicked.connect(self._on_quit)
        buttons.addStretch()
        buttons.addWidget(self._refresh_btn)
        buttons.addWidget(quit_btn)
        buttons.addStretch()
        layout.addLayout(buttons)

    def update_display(self, display: DisplayModel):
        rows = (
            (display.five_hour, display.five_hour_text, display.five_hour_tone),
            (display.seven_day, display.seven_day_text, display.seven_day_tone),
        )
        for gauge, detail, (pacing, text, tone) in zip(self._gauges, self._details, rows):
            gauge.setPixmap(QPixmap.fromImage(render_gauge(pacing)))
            detail.setText(text)
            detail.setStyleSheet(f"color: {_color_css(tone)};")
        self._extra_label.setText(display.overage_text)

    def paintEvent(self, event):
        p = QPainter(self)
        p.setRenderHint(QPainter.RenderHint.Antialiasing)

        path = QPainterPath()
        path.addRoundedRect(0, 0, self.width(), self.height(), 12, 12)
        p.fillPath(path, QColor(20, 20, 30, 230))
        p.setPen(QPen(QColor(80, 80, 100, 60), 1))
        p.drawPath(path)

        p.end()


class TrayApp:
    """Tray icon + popover, acting as the scheduler's render sink."""

    def __init__(self, app: QApplication, client: ClaudeUsageClient | None = None):
        self._app = app
        self._tray = QSystemTrayIcon()
        self._popover = DetailPopover(on_refresh=self.refresh, on_quit=app.quit)
        self.scheduler = RefreshScheduler(client or ClaudeUsageClient(), sink=self)
        self.scheduler.updated.connect(self._on_updated)
        app.aboutToQuit.connect(self.scheduler.stop)

        menu = QMenu()
        self._refresh_action = QAction("Refresh", menu)
        self._refresh_action.triggered.connect(self.refresh)
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(app.quit)
        menu.addAction(self._refresh_action)
        menu.addAction(quit_action)
        self._menu = menu
        self._tray.setContextMenu(menu)
        self._tray.activated.connect(self._on_activated)

        self.set_tray_image(render_tray_icon(None))
        self._tray.setToolTip("Claude usage")
        self._tray.show()

    def start(self):
        self.scheduler.start()

    def refresh(self):
        self.scheduler.refresh()

    # Render sink

    def set_tray_image(self, image: QImage):
        self._tray.setIcon(QIcon(QPixmap.fromImage(image)))

    def set_detail_view(self, display: DisplayModel):
        self._popover.update_display(display)

    def detail_visible(self) -> bool:
        return self._popover.isVisible()

    def _on_updated(self, display: DisplayModel):
        self._tray.setToolTip(
            f"5h {display.five_hour.pct:.0f}%  {display.five_hour_text}\n"
            f"7d {display.seven_day.pct:.0f}%  {display.seven_day_text}\n"
            f"{display.overage_text}"
        )

    def _on_activated(self, reason):
        if reason != QSystemTrayIcon.ActivationReason.Trigger:
            return
        if self._popover.isVisible():
            self._popover.hide()
            return
        self._popover.update_display(self.scheduler.display())
        self._popover.adjustSize()
        self._popover.move(self._popover_origin())
        self._popover.show()

    def _popover_origin(self) -> QPoint:
        geo = self._tray.geometry()
        anchor = geo.bottomLeft() if geo.isValid() else QCursor.pos()
        screen = QApplication.screenAt(anchor) or QApplication.primaryScreen()
        bounds = screen.availableGeometry()
        x = min(max(anchor.x(), bounds.left()), bounds.right() - self._popover.width())
        y = anchor.y()
        if y + self._popover.height() > bounds.bottom():
            y = (geo.top() if geo.isValid() else anchor.y()) - self._popover.height()
        return QPoint(x, max(y, bounds.top()))


def setup_logging(debug: bool = False):
    logging.basicConfig(
        filename=LOG_FILE,
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )


def print_status(client: ClaudeUsageClient, out=None) -> int:
    """Fetch once and print a plain-text summary. Returns the exit code."""
    out = out or sys.stdout
    try:
        snapshot = client.load()
    except RefreshError as e:
        log.warning("One-shot refresh failed: %s", e)
        print(f"error: {e}", file=out)
        return 1
    state = OverageState()
    observe(state, snapshot)
    display = build_display(snapshot, state)
    print(f"5h  {snapshot.five_hour_pct:3.0f}%  {display.five_hour_text}", file=out)
    print(f"7d  {snapshot.seven_day_pct:3.0f}%  {display.seven_day_text}", file=out)
    print(display.overage_text, file=out)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="claude-pace", description=__doc__)
    parser.add_argument("--debug", action="store_true", help="log at DEBUG level")
    parser.add_argument("--once", action="store_true",
                        help="print the current usage once and exit")
    args = parser.parse_args(argv)
    setup_logging(args.debug)

    if args.once:
        return print_status(ClaudeUsageClient())

    app = QApplication(sys.argv[:1])
    app.setApplicationName("Claude Pace")
    app.setQuitOnLastWindowClosed(False)
    if not QSystemTrayIcon.isSystemTrayAvailable():
        log.error("No system tray available")
        print("claude-pace: no system tray available", file=sys.stderr)
        return 1

    tray = TrayApp(app)
    tray.start()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
