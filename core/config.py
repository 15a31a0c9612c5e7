from functools import lru_cache
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    app_name: str = "Campaign Access"
    app_version: str = "1.0.0"
    debug: bool = False

    # Database
    database_url: str
    database_echo: bool = False

    # Security
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60  # 1 hour, no refresh tokens
    bcrypt_rounds: int = 12

    # CORS - comma-separated list of allowed origins
    allowed_origins: str = "http://localhost:3000,http://localhost:5173"

    # Request limits
    max_request_size: int = 1 * 1024 * 1024  # 1MB
    request_timeout_seconds: float = 30.0
    login_rate_limit: str = "5/minute"

    # Redis Cache (role/permission catalog only)
    redis_enabled: bool = True
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None

    # Cache TTL (Time-To-Live) in seconds
    cache_ttl_catalog: int = 300  # 5 minutes

    @model_validator(mode="after")
    def validate_security_config(self) -> "Settings":
        """Reject secrets too short to sign tokens safely"""
        if len(self.secret_key) < 16:
            raise ValueError(
                "secret_key must be at least 16 characters. "
                "Set SECRET_KEY environment variable or update .env file."
            )
        if self.access_token_expire_minutes <= 0:
            raise ValueError("access_token_expire_minutes must be positive")
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
