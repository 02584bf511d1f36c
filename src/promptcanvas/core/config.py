"""Application configuration using Pydantic BaseSettings."""

import logging

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application Database Configuration
    database_url: str = Field(alias="DATABASE_URL")
    db_pool_size: int = Field(default=20, alias="DB_POOL_SIZE")

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # CORS Configuration
    cors_origins: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")

    # Server Configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    # Sessions and credentials
    jwt_secret: str = Field(default="", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    session_ttl_hours: int = Field(default=24, alias="SESSION_TTL_HOURS")
    session_cookie_name: str = Field(default="auth_token", alias="SESSION_COOKIE_NAME")
    bcrypt_rounds: int = Field(default=12, ge=4, le=31, alias="BCRYPT_ROUNDS")

    # Credits and gallery
    starting_credits: int = Field(default=10, ge=0, alias="STARTING_CREDITS")
    gallery_limit: int = Field(default=20, ge=1, alias="GALLERY_LIMIT")

    # Replicate Image Generation
    replicate_api_token: str = Field(default="", alias="REPLICATE_API_TOKEN")
    replicate_model: str = Field(default="black-forest-labs/flux-dev", alias="REPLICATE_MODEL")
    provider_timeout_seconds: float = Field(default=120.0, gt=0, alias="PROVIDER_TIMEOUT_SECONDS")

    # S3-compatible object storage
    aws_region: str = Field(default="auto", alias="AWS_REGION")
    aws_endpoint_url_s3: str | None = Field(default=None, alias="AWS_ENDPOINT_URL_S3")
    aws_access_key_id: str = Field(default="", alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str = Field(default="", alias="AWS_SECRET_ACCESS_KEY")
    bucket_name: str = Field(default="", alias="BUCKET_NAME")
    signed_url_ttl_seconds: int = Field(default=24 * 60 * 60, alias="SIGNED_URL_TTL_SECONDS")
    upload_timeout_seconds: float = Field(default=60.0, gt=0, alias="UPLOAD_TIMEOUT_SECONDS")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def session_ttl_seconds(self) -> int:
        return self.session_ttl_hours * 60 * 60

    @model_validator(mode="after")
    def validate_required_config(self) -> "Settings":
        """Refuse to start with secrets or storage settings missing.

        Every missing variable is reported at once. Test environments
        (APP_ENV=test/testing) are exempt.
        """
        if self.app_env in ("test", "testing"):
            return self

        required = {
            "JWT_SECRET": (self.jwt_secret, "signs session tokens"),
            "REPLICATE_API_TOKEN": (
                self.replicate_api_token,
                "see https://replicate.com/account/api-tokens",
            ),
            "BUCKET_NAME": (self.bucket_name, "object storage bucket for generated images"),
            "AWS_ACCESS_KEY_ID": (self.aws_access_key_id, "object storage access key"),
            "AWS_SECRET_ACCESS_KEY": (self.aws_secret_access_key, "object storage secret key"),
        }
        missing = [f"  - {name}: {hint}" for name, (value, hint) in required.items() if not value]

        if missing:
            raise ValueError(
                "Missing required environment variables:\n"
                + "\n".join(missing)
                + "\nSet them in the environment or .env and restart."
            )

        return self


def configure_logging(settings: Settings) -> None:
    """Configure structlog for the environment.

    Production renders one JSON object per line; everything else uses the
    colored console renderer. LOG_LEVEL filters below the chosen level.
    """
    min_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if settings.is_production:
        processors += [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
