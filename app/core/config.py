# Centralised application configuration
# (environment variables, constants, timeouts).

import os


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    APP_NAME = "Resident Portal"

    # Client side
    API_BASE_URL = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")
    REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "10"))
    OTT_REFRESH_INTERVAL_SECONDS = float(os.getenv("OTT_REFRESH_INTERVAL_SECONDS", "5"))
    ENTRY_CODE_LENGTH = int(os.getenv("ENTRY_CODE_LENGTH", "6"))

    # Token signing
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-change-me")
    REFRESH_SECRET = os.getenv("REFRESH_SECRET", "dev-refresh-change-me")
    GATE_PASS_SECRET = os.getenv("GATE_PASS_SECRET", "dev-gate-change-me")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "resident-portal-local")

    ACCESS_TOKEN_TTL_SECONDS = int(os.getenv("ACCESS_TOKEN_TTL_SECONDS", "900"))  # 15 Minutes
    REFRESH_TOKEN_TTL_SECONDS = int(os.getenv("REFRESH_TOKEN_TTL_SECONDS", str(7 * 24 * 3600)))
    OTT_TTL_SECONDS = int(os.getenv("OTT_TTL_SECONDS", "15"))

    # Brute force protection for login and entry codes
    RATE_LIMIT_ENABLED = _flag("RATE_LIMIT_ENABLED", "true")
    MAX_REQUESTS_PER_MINUTE = int(os.getenv("MAX_REQUESTS_PER_MINUTE", "20"))

settings = Settings()
