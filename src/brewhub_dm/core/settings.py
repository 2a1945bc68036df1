"""Application settings and configuration.

This module defines all configuration options for the BrewHub direct-messaging
service. Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EdgeRateLimitRule(BaseModel):
    """Per-IP request budget applied by the edge middleware to one route."""

    method: str
    path: str
    limit: int
    window_seconds: int


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="BrewHub Messages", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./brewhub_dm.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # JWT authentication settings
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Message lifecycle
    dm_message_edit_window_seconds: int = Field(default=15 * 60, alias="DM_MESSAGE_EDIT_WINDOW_SECONDS")
    dm_message_max_chars: int = Field(default=12_000, alias="DM_MESSAGE_MAX_CHARS")
    dm_message_max_attachments: int = Field(default=4, alias="DM_MESSAGE_MAX_ATTACHMENTS")

    # Persistent per-user limits
    dm_message_rate_limit: int = Field(default=20, alias="DM_MESSAGE_RATE_LIMIT")
    dm_message_rate_window_seconds: int = Field(default=60, alias="DM_MESSAGE_RATE_WINDOW_SECONDS")
    dm_conversation_daily_limit: int = Field(default=200, alias="DM_CONVERSATION_DAILY_LIMIT")
    dm_conversation_window_seconds: int = Field(
        default=24 * 60 * 60,
        alias="DM_CONVERSATION_WINDOW_SECONDS",
    )
    dm_report_rate_limit: int = Field(default=10, alias="DM_REPORT_RATE_LIMIT")
    dm_report_rate_window_seconds: int = Field(default=60 * 60, alias="DM_REPORT_RATE_WINDOW_SECONDS")

    # Moderation
    dm_context_message_limit: int = Field(default=200, alias="DM_CONTEXT_MESSAGE_LIMIT")
    dm_report_queue_limit: int = Field(default=200, alias="DM_REPORT_QUEUE_LIMIT")

    # Media uploads and object storage
    dm_media_bucket: str = Field(default="dm-media", alias="DM_MEDIA_BUCKET")
    dm_media_max_bytes: int = Field(default=5 * 1024 * 1024, alias="DM_MEDIA_MAX_BYTES")
    dm_media_allowed_types: list[str] = Field(
        default=["image/jpeg", "image/png", "image/webp"],
        alias="DM_MEDIA_ALLOWED_TYPES",
    )
    storage_base_url: str = Field(default="http://localhost:54321", alias="STORAGE_BASE_URL")
    storage_service_key: str | None = Field(default=None, alias="STORAGE_SERVICE_KEY")
    storage_http_timeout_seconds: float = Field(default=10.0, alias="STORAGE_HTTP_TIMEOUT_SECONDS")

    # Edge (per-process) rate limiting
    edge_rate_limit_enabled: bool = Field(default=True, alias="EDGE_RATE_LIMIT_ENABLED")
    edge_rate_limit_rules: list[EdgeRateLimitRule] = Field(
        default=[
            EdgeRateLimitRule(
                method="POST",
                path="/api/v1/messages/conversations",
                limit=30,
                window_seconds=60,
            ),
            EdgeRateLimitRule(
                method="POST",
                path="/api/v1/messages/media",
                limit=20,
                window_seconds=60,
            ),
            EdgeRateLimitRule(
                method="POST",
                path="/api/v1/messages/reports",
                limit=10,
                window_seconds=15 * 60,
            ),
        ],
        alias="EDGE_RATE_LIMIT_RULES",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
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
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def dm_media_public_prefix(self) -> str:
        """Return the URL path marker that identifies managed media objects."""
        return f"/storage/v1/object/public/{self.dm_media_bucket}/"


settings = Settings()  # type: ignore[call-arg]
