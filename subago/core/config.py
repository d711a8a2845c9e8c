from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings

from subago.utils.time import parse_duration


class Settings(BaseSettings):
    """Application configuration loaded from environment variables / .env file."""

    app_name: str = "Suba&Go API"
    app_env: str = Field(default="development", alias="APP_ENV")
    app_port: int = 8000
    frontend_url: str = Field(default="http://localhost:3000", alias="FRONTEND_URL")

    # Database (SQLite for local dev, any async SQLAlchemy URL in prod)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./subago_dev.db",
        alias="DATABASE_URL",
    )

    # JWT
    jwt_secret: str = Field(default="change-me-access", alias="JWT_SECRET")
    jwt_refresh_secret: str = Field(default="change-me-refresh", alias="JWT_REFRESH_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_access_expires_in: str = Field(
        default="15m", alias="JWT_ACCESS_EXPIRES_IN",
    )  # "900", "15m", "1h", "7d", "500ms"
    jwt_refresh_expires_in: str = Field(default="7d", alias="JWT_REFRESH_EXPIRES_IN")

    # Tenants live under https://www.<subdomain>.<root_domain>
    root_domain: str = Field(default="subago.cl", alias="ROOT_DOMAIN")

    # Soft-close: a bid inside the threshold pushes the end to now + extension
    soft_close_threshold_seconds: int = Field(default=30, alias="SOFT_CLOSE_THRESHOLD_SECONDS")
    soft_close_extension_seconds: int = Field(default=30, alias="SOFT_CLOSE_EXTENSION_SECONDS")

    # Auction status scheduler
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")
    scheduler_default_interval_seconds: float = Field(
        default=30.0, alias="SCHEDULER_DEFAULT_INTERVAL_SECONDS",
    )
    scheduler_min_interval_seconds: float = Field(
        default=0.5, alias="SCHEDULER_MIN_INTERVAL_SECONDS",
    )
    scheduler_lookahead_seconds: float = Field(
        default=300.0, alias="SCHEDULER_LOOKAHEAD_SECONDS",
    )  # wake exactly at the next start/end when it is this close

    # Realtime bid throttling (token buckets)
    ws_bid_user_rate_per_sec: float = Field(default=4.0, alias="WS_BID_USER_RATE_PER_SEC")
    ws_bid_user_burst: float = Field(default=4.0, alias="WS_BID_USER_BURST")
    ws_bid_item_rate_per_sec: float = Field(default=20.0, alias="WS_BID_ITEM_RATE_PER_SEC")
    ws_bid_item_burst: float = Field(default=30.0, alias="WS_BID_ITEM_BURST")
    ws_bid_requestid_ttl_seconds: float = Field(
        default=120.0, alias="WS_BID_REQUESTID_TTL_SECONDS",
    )
    ws_leave_grace_seconds: float = Field(default=1.0, alias="WS_LEAVE_GRACE_SECONDS")

    # HTTP audit trail
    audit_enabled: bool = Field(default=True, alias="AUDIT_ENABLED")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
        "extra": "ignore",
    }

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def access_token_ttl(self) -> timedelta:
        return parse_duration(self.jwt_access_expires_in)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return parse_duration(self.jwt_refresh_expires_in)


settings = Settings()
