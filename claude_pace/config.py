"""Constants shared by the client, scheduler and tray shell."""

import os
from pathlib import Path

CREDENTIALS_PATH = Path.home() / ".claude" / ".credentials.json"
KEYCHAIN_SERVICE = "Claude Code-credentials"
USAGE_URL = "https://api.anthropic.com/api/oauth/usage"
OAUTH_BETA = "oauth-2025-04-20"
REQUEST_TIMEOUT_S = 15

REFRESH_INTERVAL_MS = 60 * 1000  # 60 seconds

FIVE_HOUR_WINDOW = 5  # hours
SEVEN_DAY_WINDOW = 168  # hours

LOG_FILE = os.path.expanduser("~/.claude_pace.log")
