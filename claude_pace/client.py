"""Credential lookup and the usage API client."""

import json
import logging
import re
import subprocess
import sys
from datetime import datetime
from pathlib import Path

import requests

from .config import CREDENTIALS_PATH, KEYCHAIN_SERVICE, OAUTH_BETA, REQUEST_TIMEOUT_S, USAGE_URL
from .models import UsageSnapshot
from .pacing import round_half_away

log = logging.getLogger(__name__)

# Tried in order, first success wins.
TIMESTAMP_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
)

# strptime's %f takes at most six digits.
_EXCESS_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


class RefreshError(Exception):
    """A refresh cycle could not produce a snapshot."""


class CredentialUnavailable(RefreshError):
    pass


class FetchFailed(RefreshError):
    pass


def parse_timestamp(value) -> datetime | None:
    if not isinstance(value, str):
        return None
    value = _EXCESS_FRACTION_RE.sub(r"\1", value, count=1)
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def _number(section: dict | None, key: str) -> float:
    if not isinstance(section, dict):
        return 0.0
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _section(data: dict, key: str) -> dict | None:
    value = data.get(key)
    return value if isinstance(value, dict) else None


def parse_usage(data) -> UsageSnapshot | None:
    """Build a snapshot from the usage API's JSON body, None if ``five_hour`` is missing."""
    if not isinstance(data, dict) or data.get("five_hour") is None:
        return None
    five_hour = _section(data, "five_hour")
    seven_day = _section(data, "seven_day")
    extra = _section(data, "extra_usage")
    return UsageSnapshot(
        five_hour_pct=round_half_away(_number(five_hour, "utilization")),
        seven_day_pct=round_half_away(_number(seven_day, "utilization")),
        resets_at=parse_timestamp((five_hour or {}).get("resets_at")),
        seven_day_resets_at=parse_timestamp((seven_day or {}).get("resets_at")),
        extra_usage_cents=_number(extra, "used_credits"),
    )


def _token_from_blob(raw: str) -> str | None:
    """Pull the access token out of a stored credential blob.

    The blob is normally Claude Code's JSON document; anything else non-empty
    is taken to be a bare token.
    """
    raw = raw.strip()
    if not raw:
        return None
    try:
        blob = json.loads(raw)
    except json.JSONDecodeError:
        return raw
    if isinstance(blob, dict):
        oauth = blob.get("claudeAiOauth")
        if isinstance(oauth, dict) and isinstance(oauth.get("accessToken"), str):
            return oauth["accessToken"] or None
        return None
    return raw


class ClaudeUsageClient:
    """Reads OAuth credentials and fetches usage data."""

    def __init__(self, credentials_path: Path = CREDENTIALS_PATH,
                 session: requests.Session | None = None):
        self._credentials_path = credentials_path
        self._http = session or requests

    def _read_credentials_file(self) -> str | None:
        try:
            return _token_from_blob(self._credentials_path.read_text())
        except (FileNotFoundError, OSError, UnicodeDecodeError):
            return None

    def _read_keychain(self) -> str | None:
        if sys.platform != "darwin":
            return None
        try:
            result = subprocess.run(
                ["/usr/bin/security", "find-generic-password", "-s", KEYCHAIN_SERVICE, "-w"],
                capture_output=True, text=True, timeout=10,
            )
        except (FileNotFoundError, subprocess.SubprocessError):
            return None
        if result.returncode != 0:
            return None
        return _token_from_blob(result.stdout)

    def get_bearer_token(self) -> str | None:
        token = self._read_credentials_file() or self._read_keychain()
        if token is None:
            log.info("No Claude credentials found")
        return token

    def fetch_usage(self, token: str) -> UsageSnapshot | None:
        try:
            resp = self._http.get(
                USAGE_URL,
                headers={
                    "Authorization": f"Bearer {token}",
                    "anthropic-beta": OAUTH_BETA,
                },
                timeout=REQUEST_TIMEOUT_S,
            )
        except requests.RequestException as e:
            log.warning("Usage request failed: %s", e)
            return None
        if resp.status_code != 200:
            log.warning("Usage API returned %s", resp.status_code)
            return None
        try:
            data = resp.json()
        except ValueError:
            log.warning("Usage API returned invalid JSON")
            return None
        snapshot = parse_usage(data)
        if snapshot is None:
            log.warning("Usage API response has no five_hour section")
        return snapshot

    def load(self) -> UsageSnapshot:
        """Credential lookup plus fetch, raising a :class:`RefreshError` on either failure."""
        token = self.get_bearer_token()
        if token is None:
            raise CredentialUnavailable("no bearer token")
        snapshot = self.fetch_usage(token)
        if snapshot is None:
            raise FetchFailed("usage fetch failed")
        return snapshot
