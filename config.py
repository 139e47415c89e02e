"""Client configuration using pydantic-settings."""

from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    # Environment
    ENV: str = "dev"

    # REST API
    API_URL: str = "http://localhost:5000/api"
    REQUEST_TIMEOUT: float = 30.0

    # Real-time channel (derived from API_URL when unset)
    SOCKET_URL: str | None = None
    REALTIME_ENABLED: bool = True
    RECONNECTION_ATTEMPTS: int = 5
    RECONNECTION_DELAY: float = 2.0
    CONNECT_TIMEOUT: float = 5.0

    # Collaboration
    TYPING_INDICATOR_TTL: float = 3.0

    # Persisted session (stands in for browser local storage)
    SESSION_FILE: str = ".konnect/session.json"

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def socket_url(self) -> str | None:
        """
        Effective real-time endpoint.

        Returns:
            The socket URL, or None when real-time is disabled or the
            configured endpoint is not a usable http(s)/ws(s) URL.
        """
        if not self.REALTIME_ENABLED:
            return None

        url = self.SOCKET_URL
        if url is None:
            url = self.API_URL
            if url.rstrip("/").endswith("/api"):
                url = url.rstrip("/")[: -len("/api")]

        parsed = urlparse(url or "")
        if parsed.scheme not in ("http", "https", "ws", "wss") or not parsed.netloc:
            return None
        return url


# Global settings instance
settings = Settings()

# Validate production endpoint
if settings.ENV == "production" and settings.API_URL.startswith("http://"):
    raise ValueError(
        "API_URL must use https in production environment"
    )
