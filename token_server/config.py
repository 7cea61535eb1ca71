"""
Token endpoint configuration. Values come from the environment.
No secrets in this file; trusted endpoints live in the settings table.
"""
import os

# SQLite DB for development; any SQLAlchemy URL works
DATABASE_URL = os.environ.get("TOKEN_DATABASE_URL", "sqlite:///./token_server.db")

# Outbound HTTP policy for discovery and code verification (seconds)
HTTP_TIMEOUT = float(os.environ.get("TOKEN_HTTP_TIMEOUT", "4"))
HTTP_CONNECT_TIMEOUT = float(os.environ.get("TOKEN_HTTP_CONNECT_TIMEOUT", "2"))
HTTP_MAX_REDIRECTS = int(os.environ.get("TOKEN_HTTP_MAX_REDIRECTS", "8"))
HTTP2_ENABLED = os.environ.get("TOKEN_HTTP2", "1").strip().lower() not in ("0", "false", "no")

# Optional comma-separated authorization endpoints seeded into the allow-list on startup
TRUSTED_ENDPOINTS = os.environ.get("TOKEN_TRUSTED_ENDPOINTS", "")

# Settings key for allow-listed authorization endpoints
TRUSTED_ENDPOINT_SETTING = "endpoint"

# Random bytes per token (hex-encoded to twice this length)
TOKEN_BYTES = 32

# Insert attempts before giving up on a token value collision
TOKEN_ISSUE_ATTEMPTS = 10
