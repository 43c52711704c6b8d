"""Application settings and configuration.

This module defines all configuration options for the deal redemption service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    This class defines all configuration options for the redemption engine.
    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Deal Redemption", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(default="change-me", alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./redemption.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis backs the shared rate-limit windows; unset means per-instance memory
    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    # JWT authentication settings
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 30,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Rotating PIN derivation
    rotating_pin_secret: str | None = Field(default=None, alias="ROTATING_PIN_SECRET")
    pin_rotation_minutes: int = Field(default=30, alias="PIN_ROTATION_MINUTES")
    pin_grace_windows: int = Field(default=1, alias="PIN_GRACE_WINDOWS")

    # Static (hashed) PIN material
    static_pin_ttl_days: int = Field(default=90, alias="STATIC_PIN_TTL_DAYS")
    pin_bcrypt_rounds: int = Field(default=12, alias="PIN_BCRYPT_ROUNDS")

    # Verification attempt ceilings, applied per (user, deal) and per (ip, deal)
    rate_limit_per_hour: int = Field(default=5, alias="RATE_LIMIT_PER_HOUR")
    rate_limit_per_day: int = Field(default=10, alias="RATE_LIMIT_PER_DAY")
    attempt_retention_days: int = Field(default=180, alias="ATTEMPT_RETENTION_DAYS")
    # Peers allowed to report the client address through X-Forwarded-For
    trusted_proxies: list[str] = Field(default_factory=list, alias="TRUSTED_PROXIES")

    # Claim creation retries when a reservation loses a race
    claim_max_attempts: int = Field(default=3, alias="CLAIM_MAX_ATTEMPTS")

    # Nearby ranking policy
    rank_weight_distance: float = Field(default=0.5, alias="RANK_WEIGHT_DISTANCE")
    rank_weight_discount: float = Field(default=0.3, alias="RANK_WEIGHT_DISCOUNT")
    rank_weight_recency: float = Field(default=0.2, alias="RANK_WEIGHT_RECENCY")
    rank_recency_half_life_hours: float = Field(
        default=72.0,
        alias="RANK_RECENCY_HALF_LIFE_HOURS",
    )
    nearby_default_radius_km: float = Field(default=10.0, alias="NEARBY_DEFAULT_RADIUS_KM")
    nearby_default_limit: int = Field(default=12, alias="NEARBY_DEFAULT_LIMIT")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.

        Returns:
            Database URL compatible with synchronous database drivers
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides.

        Returns:
            The active database URL (test database if in testing mode, otherwise production)
        """
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def pin_rotation_seconds(self) -> int:
        """Return the rotating PIN window size in seconds."""
        return self.pin_rotation_minutes * 60

    @property
    def rank_weights(self) -> dict[str, float]:
        """Return ranking weights as a convenience dictionary."""
        return {
            "distance": self.rank_weight_distance,
            "discount": self.rank_weight_discount,
            "recency": self.rank_weight_recency,
        }


settings = Settings()  # type: ignore[call-arg]
