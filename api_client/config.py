"""
API client configuration. Values come from the environment with local-dev defaults.
No secrets in this file; tokens live only in the credential store.
"""
import os
from pathlib import Path

# Remote API root; every request path is relative to this
API_BASE_URL = os.environ.get("API_BASE_URL", "http://localhost:7000/api").rstrip("/")

# Server root without the /api suffix (media and file links)
API_SERVER_URL = API_BASE_URL.replace("/api", "")

# Applies to ordinary requests and to the refresh exchange alike
API_TIMEOUT_SECONDS = float(os.environ.get("API_TIMEOUT_SECONDS", "10.0"))

# Refresh proactively when the access token expires within this many seconds
TOKEN_LOOKAHEAD_SECONDS = int(os.environ.get("TOKEN_LOOKAHEAD_SECONDS", "60"))

# Durable client-side storage for the credential pair
CREDENTIALS_PATH = Path(
    os.environ.get("API_CREDENTIALS_PATH", str(Path.home() / ".api_client" / "credentials.json"))
)

# Unauthenticated entry point of the host application
SIGN_IN_PATH = os.environ.get("SIGN_IN_PATH", "/login")

REFRESH_PATH = "/auth/refresh"
LOGIN_PATH = "/auth/login"
ME_PATH = "/auth/me"
HEALTH_PATH = "/health"
