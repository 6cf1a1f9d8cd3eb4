"""Application settings using Pydantic Settings."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings read from the environment (and an optional .env file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="learninghub", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment name"
    )
    debug: bool = Field(default=True, description="Debug mode")
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the web client, used in emailed links",
    )

    # API Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_reload: bool = Field(default=True, description="Enable auto-reload")

    # Authentication
    auth_secret_key: str = Field(
        default="dev-jwt-secret-key-change-in-production-32chars!",
        description="JWT signing key (min 32 chars)",
    )
    auth_algorithm: str = Field(default="HS256", description="JWT algorithm")
    auth_access_token_expire_minutes: int = Field(
        default=7 * 24 * 60, description="Access token lifetime (minutes)"
    )

    # Verification tokens
    verification_signup_ttl_hours: int = Field(
        default=24, description="Lifetime of signup verification links"
    )
    verification_password_reset_ttl_minutes: int = Field(
        default=60, description="Lifetime of password reset links"
    )
    verification_email_change_ttl_minutes: int = Field(
        default=60, description="Lifetime of email change links"
    )
    verification_grace_seconds: int = Field(
        default=24 * 60 * 60,
        description="How long expired tokens stay readable before the store purges them",
    )
    login_code_ttl_minutes: int = Field(
        default=10, description="Lifetime of emailed sign-in codes"
    )
    login_code_max_attempts: int = Field(
        default=5, description="Wrong guesses before a sign-in code is revoked"
    )

    # Rate limiting
    rate_limit_window_seconds: int = Field(
        default=3600, description="Window for per-email request counters"
    )
    rate_limit_signup_per_window: int = Field(
        default=5, description="Signup attempts per email per window"
    )
    rate_limit_resend_per_window: int = Field(
        default=5, description="Verification resends per email per window"
    )
    rate_limit_password_reset_per_window: int = Field(
        default=5, description="Password reset requests per email per window"
    )
    rate_limit_login_code_per_window: int = Field(
        default=10, description="Sign-in code requests per email per window"
    )

    # Redis
    redis_enabled: bool = Field(default=True, description="Use Redis for rate limits")
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    redis_max_connections: int = Field(default=10, description="Max Redis connections")
    redis_socket_timeout: float = Field(default=5.0, description="Redis socket timeout")
    redis_socket_connect_timeout: float = Field(
        default=5.0, description="Redis connect timeout"
    )

    # Cassandra
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Cassandra hosts"
    )
    cassandra_port: int = Field(default=9042, description="Cassandra port")
    cassandra_keyspace: str = Field(
        default="learninghub", description="Cassandra keyspace"
    )
    cassandra_username: str | None = Field(default=None, description="Cassandra user")
    cassandra_password: str | None = Field(
        default=None, description="Cassandra password"
    )
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout"
    )
    cassandra_replication_factor: int = Field(
        default=3, description="Replication factor outside development"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Include caller info"
    )
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Max size per log file"
    )
    log_file_backup_count: int = Field(
        default=5, description="Number of rotated log files to keep"
    )
    log_requests: bool = Field(
        default=True, description="Log HTTP request start/finish"
    )
    log_exclude_paths: list[str] = Field(
        default=["/health", "/health/live", "/health/ready"],
        description="Paths to exclude from request logging",
    )

    # CORS
    cors_origins: list[str] = Field(default=["*"], description="CORS origins")
    cors_allow_credentials: bool = Field(default=True, description="Allow credentials")
    cors_allow_methods: list[str] = Field(default=["*"], description="Allowed methods")
    cors_allow_headers: list[str] = Field(default=["*"], description="Allowed headers")

    # Firebase Storage (course media)
    firebase_enabled: bool = Field(
        default=False, description="Enable Firebase Storage for media uploads"
    )
    firebase_credentials_path: str | None = Field(
        default=None, description="Path to Firebase service account JSON file"
    )
    firebase_storage_bucket: str | None = Field(
        default=None, description="Firebase Storage bucket name"
    )
    upload_max_image_size_mb: int = Field(
        default=10, description="Maximum thumbnail size in MB"
    )
    upload_max_video_size_mb: int = Field(
        default=500, description="Maximum lesson video size in MB"
    )
    upload_allowed_image_types: list[str] = Field(
        default=["image/jpeg", "image/png", "image/webp"],
        description="Allowed image MIME types",
    )
    upload_allowed_video_types: list[str] = Field(
        default=["video/mp4", "video/webm", "video/quicktime"],
        description="Allowed video MIME types",
    )

    # Email (Gmail API)
    email_enabled: bool = Field(
        default=False, description="Enable email sending via Gmail API"
    )
    email_credentials_path: str = Field(
        default="credentials/google-service-account.json",
        description="Path to Google service account JSON file",
    )
    email_sender_address: str = Field(
        default="no-reply@learninghub.dev",
        description="Sender address (must belong to the Workspace domain)",
    )
    email_sender_name: str = Field(
        default="LearningHub", description="Sender display name"
    )

    # Payments (Stripe)
    stripe_secret_key: str | None = Field(
        default=None, description="Stripe secret API key"
    )
    payment_currency: str = Field(default="usd", description="Charge currency")
    payment_default_tax_percentage: Decimal = Field(
        default=Decimal("8"), description="Tax applied when a course sets none"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def firebase_configured(self) -> bool:
        return bool(
            self.firebase_enabled
            and self.firebase_credentials_path
            and self.firebase_storage_bucket
        )

    @property
    def email_configured(self) -> bool:
        return bool(self.email_enabled and self.email_sender_address)

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
