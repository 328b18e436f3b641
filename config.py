import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./test.db")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    JWT_SECRET = data.get("JWT_SECRET", "dev-secret-key-change-in-production")

    # Persistence calls made on the request path are bounded by this timeout
    STORE_TIMEOUT_SECONDS = float(data.get("STORE_TIMEOUT_SECONDS", 2.0))

    # Rate limiting: category -> {max_requests, window_seconds}; partial
    # overrides are merged over the defaults
    RATE_LIMITS = data.get("RATE_LIMITS", {})
    RATE_LIMIT_ENABLED = bool(data.get("RATE_LIMIT_ENABLED", True))
    RATE_LIMIT_SKIP_ALLOWLIST = data.get("RATE_LIMIT_SKIP_ALLOWLIST", [])
    RATE_LIMIT_EXEMPT_PATHS = data.get("RATE_LIMIT_EXEMPT_PATHS", ["/health"])
    RATE_LIMIT_RETENTION_SECONDS = int(data.get("RATE_LIMIT_RETENTION_SECONDS", 3600))
    RATE_LIMIT_CLEANUP_INTERVAL_SECONDS = int(
        data.get("RATE_LIMIT_CLEANUP_INTERVAL_SECONDS", 300)
    )
    ABUSE_VIOLATION_THRESHOLD = int(data.get("ABUSE_VIOLATION_THRESHOLD", 3))
    ABUSE_WINDOW_SECONDS = int(data.get("ABUSE_WINDOW_SECONDS", 3600))

    # Sessions
    MAX_CONCURRENT_SESSIONS = int(data.get("MAX_CONCURRENT_SESSIONS", 5))
    SESSION_TOUCH_INTERVAL_SECONDS = int(data.get("SESSION_TOUCH_INTERVAL_SECONDS", 60))
