"""Circular pace gauges.

A gauge is a ring filled clockwise from 12 o'clock. While pacing is known the
fill is split in two: the part of usage that is within pace (green when behind
pace, muted when at or ahead of it) and the part beyond pace, coloured by how
far ahead usage is. A short tick marks where usage would be if perfectly paced.

Geometry is worked out by :func:`gauge_layout` without touching Qt, so it can
be checked directly; :func:`paint_gauge` turns a layout into QPainter calls.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime

from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import QColor, QFont, QFontMetricsF, QImage, QPainter, QPen

from .config import FIVE_HOUR_WINDOW, SEVEN_DAY_WINDOW
from .models import UsageSnapshot, WindowPacing
from .pacing import Tone, drift_tone, label_tone, round_half_away, window_pacing

PALETTE = {
    Tone.RED: QColor(239, 68, 68),
    Tone.ORANGE: QColor(249, 115, 22),
    Tone.GREEN: QColor(34, 197, 94),
    Tone.NEUTRAL: QColor(160, 160, 180),
    Tone.MUTED: QColor(160, 160, 180, 128),
    Tone.TRACK: QColor(128, 128, 128, 51),
    Tone.TEXT: QColor(200, 200, 220),
    Tone.TICK: QColor(220, 220, 230, 180),
}

# Popover gauge
GAUGE_SIZE = 64
GAUGE_RADIUS = 25
GAUGE_STROKE = 6
GAUGE_FONT_SIZE = 18

# Tray icon
ICON_HEIGHT = 24
ICON_RADIUS = 10.0
ICON_STROKE = 3.5
ICON_GAP = 4
ICON_FONT_SIZE = 8.5
ICON_EXTRA_FONT_SIZE = 9


@dataclass(frozen=True)
class ArcSegment:
    start_deg: float  # clockwise from 12 o'clock
    sweep_deg: float
    tone: Tone


@dataclass(frozen=True)
class GaugeLayout:
    track: Tone
    arcs: tuple[ArcSegment, ...] = field(default_factory=tuple)
    tick_deg: float | None = None
    label: str | None = None
    label_tone: Tone | None = None


def _deg(pct: float) -> float:
    return pct / 100 * 360


def gauge_layout(pct: float, elapsed: float | None, drift: float | None,
                 is_full: bool) -> GaugeLayout:
    """Work out what one gauge shows. ``pct`` is the raw, unclamped usage."""
    if is_full:
        return GaugeLayout(track=Tone.RED)

    usage = min(pct, 100)
    arcs = []
    tick = None
    if elapsed is not None and drift is not None:
        under_pace = usage < elapsed
        base = usage if under_pace else min(usage, elapsed)
        over = 0 if under_pace else max(0, usage - elapsed)
        if base > 0:
            arcs.append(ArcSegment(0.0, _deg(base), Tone.GREEN if under_pace else Tone.MUTED))
        if over > 0:
            arcs.append(ArcSegment(_deg(base), _deg(over), drift_tone(drift)))
        tick = _deg(elapsed)
    elif usage > 0:
        arcs.append(ArcSegment(0.0, _deg(usage), Tone.MUTED))

    return GaugeLayout(
        track=Tone.TRACK,
        arcs=tuple(arcs),
        tick_deg=tick,
        label=str(int(round_half_away(pct))),
        label_tone=label_tone(pct, drift, False),
    )


def pacing_layout(pacing: WindowPacing) -> GaugeLayout:
    return gauge_layout(pacing.pct, pacing.elapsed_pct, pacing.drift_pct, pacing.is_full)


def _label_font(size: float) -> QFont:
    font = QFont("sans-serif")
    font.setPointSizeF(size)
    font.setWeight(QFont.Weight.DemiBold)
    return font


def paint_gauge(p: QPainter, cx: float, cy: float, r: float, sw: float,
                layout: GaugeLayout, font_size: float):
    """Paint track, arcs in order, tick, then label, centred on (cx, cy)."""
    rect = QRectF(cx - r, cy - r, 2 * r, 2 * r)
    p.setBrush(Qt.BrushStyle.NoBrush)

    pen = QPen(PALETTE[layout.track], sw)
    pen.setCapStyle(Qt.PenCapStyle.RoundCap)
    p.setPen(pen)
    p.drawEllipse(rect)

    for arc in layout.arcs:
        pen = QPen(PALETTE[arc.tone], sw)
        pen.setCapStyle(Qt.PenCapStyle.RoundCap)
        p.setPen(pen)
        # Qt angles are 1/16 degree, counter-clockwise from 3 o'clock
        start = round((90 - arc.start_deg) * 16)
        span = -round(arc.sweep_deg * 16)
        p.drawArc(rect, start, span)

    if layout.tick_deg is not None:
        theta = math.radians(layout.tick_deg)
        tick_len = sw * 0.7
        dx, dy = math.sin(theta), -math.cos(theta)
        inner = QPointF(cx + dx * (r - tick_len), cy + dy * (r - tick_len))
        outer = QPointF(cx + dx * (r + tick_len), cy + dy * (r + tick_len))
        pen = QPen(PALETTE[Tone.TICK], max(sw * 0.4, 1.2))
        pen.setCapStyle(Qt.PenCapStyle.RoundCap)
        p.setPen(pen)
        p.drawLine(inner, outer)

    if layout.label is not None:
        p.setFont(_label_font(font_size))
        p.setPen(PALETTE[layout.label_tone or Tone.TEXT])
        p.drawText(rect, Qt.AlignmentFlag.AlignCenter, layout.label)


def _blank_image(width: float, height: float) -> QImage:
    img = QImage(math.ceil(width), math.ceil(height), QImage.Format.Format_ARGB32_Premultiplied)
    img.fill(Qt.GlobalColor.transparent)
    return img


def render_gauge(pacing: WindowPacing, size: int = GAUGE_SIZE) -> QImage:
    """Popover-sized gauge for one window."""
    scale = size / GAUGE_SIZE
    img = _blank_image(size, size)
    p = QPainter(img)
    p.setRenderHint(QPainter.RenderHint.Antialiasing)
    paint_gauge(p, size / 2, size / 2, GAUGE_RADIUS * scale, GAUGE_STROKE * scale,
                pacing_layout(pacing), GAUGE_FONT_SIZE * scale)
    p.end()
    return img


def extra_label(extra_delta: float) -> str:
    return f"+${extra_delta / 100:.2f}"


def render_tray_icon(snapshot: UsageSnapshot | None, extra_delta: float = 0,
                     now: datetime | None = None) -> QImage:
    """Menu-bar icon: 5-hour ring, 7-day ring, and today's overage once a window is full."""
    circle_w = (ICON_RADIUS + ICON_STROKE / 2) * 2
    cx1 = ICON_RADIUS + ICON_STROKE / 2
    cx2 = circle_w + ICON_GAP + ICON_RADIUS + ICON_STROKE / 2
    cy = ICON_HEIGHT / 2

    if snapshot is None:
        five = seven = WindowPacing()
    else:
        five = window_pacing(snapshot.five_hour_pct, snapshot.resets_at, FIVE_HOUR_WINDOW, now)
        seven = window_pacing(snapshot.seven_day_pct, snapshot.seven_day_resets_at,
                              SEVEN_DAY_WINDOW, now)
    any_full = five.is_full or seven.is_full

    extra_font = QFont("monospace")
    extra_font.setPointSizeF(ICON_EXTRA_FONT_SIZE)
    extra_font.setWeight(QFont.Weight.DemiBold)
    extra_text = extra_label(extra_delta) if any_full else ""
    extra_w = QFontMetricsF(extra_font).horizontalAdvance(extra_text) + 4 if extra_text else 0

    img = _blank_image(circle_w * 2 + ICON_GAP + extra_w, ICON_HEIGHT)
    p = QPainter(img)
    p.setRenderHint(QPainter.RenderHint.Antialiasing)

    for cx, pacing in ((cx1, five), (cx2, seven)):
        if snapshot is None:
            layout = GaugeLayout(track=Tone.TRACK)
        else:
            layout = pacing_layout(pacing)
        paint_gauge(p, cx, cy, ICON_RADIUS, ICON_STROKE, layout, ICON_FONT_SIZE)

    if extra_text:
        p.setFont(extra_font)
        p.setPen(PALETTE[Tone.RED])
        x = circle_w * 2 + ICON_GAP + 2
        p.drawText(QRectF(x, 0, extra_w, ICON_HEIGHT),
                   Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignVCenter, extra_text)

    p.end()
    return img
