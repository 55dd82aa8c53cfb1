import json
from datetime import datetime, timedelta, timezone

import pytest
import requests

from claude_pace import client as client_module
from claude_pace.client import (
    ClaudeUsageClient,
    CredentialUnavailable,
    FetchFailed,
    parse_timestamp,
    parse_usage,
)
from claude_pace.config import OAUTH_BETA, USAGE_URL

PAYLOAD = {
    "five_hour": {"utilization": 42.5, "resets_at": "2026-03-10T15:00:00.123456+00:00"},
    "seven_day": {"utilization": 61.2, "resets_at": "2026-03-12T09:00:00Z"},
    "extra_usage": {"is_enabled": True, "used_credits": 1234.0},
}


class FakeResponse:
    def __init__(self, status_code=200, payload=None, body_error=False):
        self.status_code = status_code
        self._payload = payload
        self._body_error = body_error

    def json(self):
        if self._body_error:
            raise json.JSONDecodeError("Expecting value", "", 0)
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


class TestParseTimestamp:
    def test_fractional_seconds(self):
        ts = parse_timestamp("2026-03-10T15:00:00.123456+00:00")
        assert ts == datetime(2026, 3, 10, 15, 0, 0, 123456, tzinfo=timezone.utc)

    def test_long_fraction_is_cut_to_microseconds(self):
        ts = parse_timestamp("2026-03-10T15:00:00.1234567Z")
        assert ts == datetime(2026, 3, 10, 15, 0, 0, 123456, tzinfo=timezone.utc)

    def test_without_fractional_seconds(self):
        assert parse_timestamp("2026-03-12T09:00:00Z") == datetime(2026, 3, 12, 9, tzinfo=timezone.utc)

    def test_offset_is_kept(self):
        ts = parse_timestamp("2026-03-12T09:00:00+02:00")
        assert ts.utcoffset() == timedelta(hours=2)

    @pytest.mark.parametrize("value", ["", "tomorrow", "2026-03-12", None, 12345])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None


class TestParseUsage:
    def test_full_payload(self):
        snapshot = parse_usage(PAYLOAD)
        assert snapshot.five_hour_pct == 43
        assert snapshot.seven_day_pct == 61
        assert snapshot.resets_at == datetime(2026, 3, 10, 15, 0, 0, 123456, tzinfo=timezone.utc)
        assert snapshot.seven_day_resets_at == datetime(2026, 3, 12, 9, tzinfo=timezone.utc)
        assert snapshot.extra_usage_cents == 1234

    def test_requires_five_hour(self):
        assert parse_usage({"seven_day": {"utilization": 10}}) is None
        assert parse_usage({"five_hour": None}) is None
        assert parse_usage([]) is None

    def test_missing_fields_default_to_zero(self):
        snapshot = parse_usage({"five_hour": {}})
        assert snapshot.five_hour_pct == 0
        assert snapshot.seven_day_pct == 0
        assert snapshot.resets_at is None
        assert snapshot.seven_day_resets_at is None
        assert snapshot.extra_usage_cents == 0

    def test_non_numeric_values_default_to_zero(self):
        snapshot = parse_usage({
            "five_hour": {"utilization": "lots", "resets_at": None},
            "extra_usage": {"used_credits": None},
        })
        assert snapshot.five_hour_pct == 0
        assert snapshot.extra_usage_cents == 0


class TestCredentials:
    @pytest.fixture(autouse=True)
    def not_macos(self, monkeypatch):
        monkeypatch.setattr(client_module.sys, "platform", "linux")

    def test_reads_claude_code_credentials(self, tmp_path):
        path = tmp_path / ".credentials.json"
        path.write_text(json.dumps({"claudeAiOauth": {"accessToken": "tok-123", "expiresAt": 0}}))
        assert ClaudeUsageClient(credentials_path=path).get_bearer_token() == "tok-123"

    def test_raw_token(self, tmp_path):
        path = tmp_path / ".credentials.json"
        path.write_text("tok-raw\n")
        assert ClaudeUsageClient(credentials_path=path).get_bearer_token() == "tok-raw"

    def test_json_without_token(self, tmp_path):
        path = tmp_path / ".credentials.json"
        path.write_text(json.dumps({"other": {}}))
        assert ClaudeUsageClient(credentials_path=path).get_bearer_token() is None

    def test_missing_file(self, tmp_path):
        assert ClaudeUsageClient(credentials_path=tmp_path / "nope.json").get_bearer_token() is None

    def test_keychain_fallback(self, tmp_path, monkeypatch):
        monkeypatch.setattr(client_module.sys, "platform", "darwin")

        class Result:
            returncode = 0
            stdout = json.dumps({"claudeAiOauth": {"accessToken": "tok-keychain"}})

        calls = []

        def fake_run(args, **kwargs):
            calls.append(args)
            return Result()

        monkeypatch.setattr(client_module.subprocess, "run", fake_run)
        token = ClaudeUsageClient(credentials_path=tmp_path / "nope.json").get_bearer_token()
        assert token == "tok-keychain"
        assert calls[0][:2] == ["/usr/bin/security", "find-generic-password"]


class TestFetchUsage:
    def test_success(self):
        session = FakeSession(FakeResponse(payload=PAYLOAD))
        snapshot = ClaudeUsageClient(session=session).fetch_usage("tok")
        assert snapshot.five_hour_pct == 43
        call = session.calls[0]
        assert call["url"] == USAGE_URL
        assert call["headers"]["Authorization"] == "Bearer tok"
        assert call["headers"]["anthropic-beta"] == OAUTH_BETA

    @pytest.mark.parametrize("status", [401, 429, 500])
    def test_non_200(self, status):
        session = FakeSession(FakeResponse(status_code=status, payload=PAYLOAD))
        assert ClaudeUsageClient(session=session).fetch_usage("tok") is None

    def test_network_error(self):
        session = FakeSession(error=requests.ConnectionError("offline"))
        assert ClaudeUsageClient(session=session).fetch_usage("tok") is None

    def test_bad_json(self):
        session = FakeSession(FakeResponse(body_error=True))
        assert ClaudeUsageClient(session=session).fetch_usage("tok") is None

    def test_missing_five_hour(self):
        session = FakeSession(FakeResponse(payload={"seven_day": {"utilization": 5}}))
        assert ClaudeUsageClient(session=session).fetch_usage("tok") is None


class TestLoad:
    def test_no_credentials(self, tmp_path, monkeypatch):
        monkeypatch.setattr(client_module.sys, "platform", "linux")
        session = FakeSession(FakeResponse(payload=PAYLOAD))
        client = ClaudeUsageClient(credentials_path=tmp_path / "nope.json", session=session)
        with pytest.raises(CredentialUnavailable):
            client.load()
        assert session.calls == []

    def test_fetch_failure(self, tmp_path):
        path = tmp_path / ".credentials.json"
        path.write_text("tok")
        client = ClaudeUsageClient(credentials_path=path, session=FakeSession(FakeResponse(status_code=500)))
        with pytest.raises(FetchFailed):
            client.load()

    def test_success(self, tmp_path):
        path = tmp_path / ".credentials.json"
        path.write_text("tok")
        client = ClaudeUsageClient(credentials_path=path, session=FakeSession(FakeResponse(payload=PAYLOAD)))
        assert client.load().extra_usage_cents == 1234
