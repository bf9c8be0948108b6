"""
FastAPI application configuration using Pydantic Settings.

Provides centralized configuration for:
- Database connection (MongoDB)
- Authentication (API key, JWT, password hashing)
- Upstream IPTV provider client
- Outgoing email (SMTP)
- API settings (CORS, rate limiting, security headers)
- Logging and monitoring

All settings support environment variable overrides and .env file loading.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List, Optional
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables with the
    prefix "IPTV_API_" (e.g., IPTV_API_MONGODB_URL).

    Environment variables are loaded from:
    1. System environment
    2. .env file in the current directory
    3. Default values defined below
    """

    # =========================================================================
    # API Settings
    # =========================================================================

    app_name: str = Field(
        default="TevePlay API",
        description="Application name"
    )
    app_version: str = Field(
        default="0.1.0",
        description="API version"
    )

    debug: bool = Field(
        default=False,
        description="Debug mode - enables verbose logging and error traces"
    )
    environment: str = Field(
        default="production",
        description="Environment: development|staging|production"
    )

    host: str = Field(
        default="0.0.0.0",
        description="API bind host"
    )
    port: int = Field(
        default=3000,
        description="API bind port",
        gt=0,
        lt=65536
    )

    # =========================================================================
    # API Key Settings
    # =========================================================================

    api_key: str = Field(
        default="change-this-api-key",
        description="Shared API key every client must send",
        min_length=1
    )
    api_key_header: str = Field(
        default="X-API-Key",
        description="API key header name"
    )

    # =========================================================================
    # JWT Authentication Settings
    # =========================================================================

    jwt_secret_key: str = Field(
        default="change-this-secret-key-in-production-minimum-32-chars",
        description="Secret key for JWT token signing (MUST be changed in production)",
        min_length=32
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm (HS256, HS384, HS512)"
    )
    jwt_access_token_expire_minutes: int = Field(
        default=60,
        description="Access token expiration time in minutes",
        gt=0,
        le=1440
    )
    jwt_reset_token_expire_minutes: int = Field(
        default=15,
        description="Password reset token expiration time in minutes",
        gt=0,
        le=120
    )

    # =========================================================================
    # Password and Verification Settings
    # =========================================================================

    password_bcrypt_rounds: int = Field(
        default=10,
        description="BCrypt hash rounds",
        ge=4,
        le=14
    )
    verification_code_expire_minutes: int = Field(
        default=10,
        description="Lifetime of emailed verification and recovery codes",
        gt=0,
        le=1440
    )

    # =========================================================================
    # Profile Secret Encryption
    # =========================================================================

    profile_secret: str = Field(
        default="change-this-profile-secret-in-production",
        description="Passphrase the profile password encryption key is derived from",
        min_length=16
    )
    profile_secret_salt: str = Field(
        default="teveplay-profiles",
        description="Salt for deriving the profile encryption key",
        min_length=8
    )

    # =========================================================================
    # MongoDB Settings
    # =========================================================================

    mongodb_url: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URL"
    )
    mongodb_database: str = Field(
        default="teveplay",
        description="MongoDB database name"
    )
    mongodb_server_selection_timeout_ms: int = Field(
        default=5000,
        description="How long to wait for a reachable MongoDB server",
        gt=0
    )

    # =========================================================================
    # Upstream IPTV Provider Settings
    # =========================================================================

    upstream_timeout: float = Field(
        default=30.0,
        description="Total timeout for one upstream player API request (seconds)",
        gt=0
    )
    upstream_user_agent: str = Field(
        default="TevePlay/0.1",
        description="User-Agent sent to upstream providers"
    )

    # =========================================================================
    # Email (SMTP) Settings
    # =========================================================================

    smtp_host: str = Field(
        default="localhost",
        description="SMTP server host"
    )
    smtp_port: int = Field(
        default=587,
        description="SMTP server port",
        gt=0,
        lt=65536
    )
    smtp_username: Optional[str] = Field(
        default=None,
        description="SMTP username"
    )
    smtp_password: Optional[str] = Field(
        default=None,
        description="SMTP password"
    )
    smtp_start_tls: bool = Field(
        default=True,
        description="Upgrade the SMTP connection with STARTTLS"
    )
    smtp_timeout: float = Field(
        default=30.0,
        description="SMTP operation timeout (seconds)",
        gt=0
    )
    email_from: str = Field(
        default="no-reply@teveplay.local",
        description="Sender address for transactional email"
    )
    email_team_name: str = Field(
        default="TevePlay",
        description="Team name used in email signatures"
    )

    # =========================================================================
    # CORS Settings
    # =========================================================================

    cors_enabled: bool = Field(
        default=True,
        description="Enable CORS middleware"
    )
    cors_origins: List[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )
    cors_allow_credentials: bool = Field(
        default=False,
        description="Allow credentials (cookies, authorization headers) in CORS"
    )
    cors_allow_methods: List[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        description="Allowed HTTP methods"
    )
    cors_allow_headers: List[str] = Field(
        default=["*"],
        description="Allowed HTTP headers"
    )

    # =========================================================================
    # Rate Limiting Settings
    # =========================================================================

    rate_limit_enabled: bool = Field(
        default=True,
        description="Enable rate limiting on sensitive account endpoints"
    )
    rate_limit_auth: str = Field(
        default="10/minute",
        description="Limit applied to login and password recovery endpoints"
    )
    rate_limit_storage_url: Optional[str] = Field(
        default=None,
        description="Redis URL for distributed rate limiting (optional)"
    )

    # =========================================================================
    # Security Settings
    # =========================================================================

    security_require_https: bool = Field(
        default=False,
        description="Send HSTS headers (enable behind HTTPS)"
    )
    security_headers_enabled: bool = Field(
        default=True,
        description="Enable security headers (X-Frame-Options, etc.)"
    )
    security_hsts_max_age: int = Field(
        default=31536000,  # 1 year
        description="HSTS max age (seconds)"
    )

    # =========================================================================
    # Monitoring
    # =========================================================================

    metrics_enabled: bool = Field(
        default=True,
        description="Expose Prometheus metrics"
    )

    # =========================================================================
    # Logging Settings
    # =========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG|INFO|WARNING|ERROR|CRITICAL"
    )
    log_format: str = Field(
        default="json",
        description="Log format: json|text"
    )

    # =========================================================================
    # Pagination Settings
    # =========================================================================

    pagination_page_size: int = Field(
        default=10,
        description="Items per catalog page",
        gt=0,
        le=500
    )
    recent_items_limit: int = Field(
        default=50,
        description="How many newest items the recent endpoints consider",
        gt=0,
        le=1000
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got: {v}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed = ["development", "staging", "production", "test"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: List[str]) -> List[str]:
        """Validate CORS origins are not empty."""
        if not v:
            return ["*"]
        return v

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Validate JWT algorithm is a supported HMAC algorithm."""
        allowed = ["HS256", "HS384", "HS512"]
        if v not in allowed:
            raise ValueError(f"jwt_algorithm must be one of {allowed}, got: {v}")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        allowed = ["json", "text"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got: {v}")
        return v_lower

    # =========================================================================
    # Model Config
    # =========================================================================

    model_config = SettingsConfigDict(
        env_prefix="IPTV_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once and shared
    across the application. Settings are loaded from:
    1. Environment variables with IPTV_API_ prefix
    2. .env file in the current directory
    3. Default values

    Returns:
        Settings: Cached settings instance

    Example:
        >>> from iptv_api.src.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.mongodb_database)
        teveplay
    """
    return Settings()


def clear_settings_cache():
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.
    """
    get_settings.cache_clear()
