"""
Demo API configuration. The JWT secret has a dev-only default; set
DEMO_JWT_SECRET anywhere the server is reachable by others.
"""
import os

# Route prefix; matches the client's default API_BASE_URL
API_PREFIX = "/api"

JWT_SECRET = os.environ.get("DEMO_JWT_SECRET", "dev-only-demo-secret-change-me-32b")
JWT_ALGORITHM = "HS256"

# Access token lifetime (seconds). Keep above the client lookahead (60s).
ACCESS_TOKEN_EXPIRES = int(os.environ.get("DEMO_ACCESS_TOKEN_EXPIRES", "300"))

# Refresh token lifetime (seconds). Refresh tokens are single-use and rotated.
REFRESH_TOKEN_EXPIRES = int(os.environ.get("DEMO_REFRESH_TOKEN_EXPIRES", "3600"))

# Optional seed user (no default credentials)
SEED_USER = os.environ.get("DEMO_SEED_USER")
SEED_PASSWORD = os.environ.get("DEMO_SEED_PASSWORD")
