"""Tray indicator pacing Claude usage against its 5-hour and 7-day windows."""

__version__ = "0.1.0"
