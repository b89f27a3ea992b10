"""
Configuration management for the Field Operations backend
"""
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import Optional, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Required settings
    DATABASE_URL: str = Field(..., description="Database URL (PostgreSQL in production, SQLite locally)")
    JWT_SECRET_KEY: str = Field(..., description="Secret used to verify identity tokens")

    # Optional settings with defaults
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_EXPIRE_MINUTES: int = Field(default=720, description="Lifetime of tokens minted by tooling")

    APP_ENV: str = Field(default="local", description="Application environment: local, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    # CORS settings
    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins. Use '*' for local only."
    )

    # Every civil-date decision (session date, expiry, weekly off, lateness) uses this zone
    OPERATIONAL_TZ: str = Field(default="Asia/Kolkata", description="Operational timezone for all date boundaries")

    # Python weekday numbering: Monday=0 ... Sunday=6
    WEEKLY_OFF_DAY: int = Field(default=0, description="Weekday with no markets and weekly_off attendance")

    ENFORCE_MARKET_SCHEDULE: bool = Field(
        default=True,
        description="If True, a session can only be bound to a market that is live on the session date",
    )

    MAX_ATTENDANCE_RANGE_DAYS: int = Field(
        default=366,
        description="Largest from/to range accepted by attendance queries",
    )

    # Version (can be git SHA or semver)
    VERSION: Optional[str] = Field(default=None, description="Application version (git SHA or semver)")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate APP_ENV"""
        allowed = ["local", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate LOG_LEVEL"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    @field_validator("OPERATIONAL_TZ")
    @classmethod
    def validate_operational_tz(cls, v: str) -> str:
        """OPERATIONAL_TZ must be a valid IANA zone name"""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"OPERATIONAL_TZ '{v}' is not a known timezone")
        return v

    @field_validator("WEEKLY_OFF_DAY")
    @classmethod
    def validate_weekly_off_day(cls, v: int) -> int:
        """WEEKLY_OFF_DAY uses Monday=0 ... Sunday=6"""
        if not 0 <= v <= 6:
            raise ValueError("WEEKLY_OFF_DAY must be between 0 (Monday) and 6 (Sunday)")
        return v

    def validate_production(self) -> None:
        """
        Validate settings for production environment

        Raises:
            ValueError: If production settings are invalid
        """
        if self.APP_ENV == "prod":
            if len(self.JWT_SECRET_KEY) < 32:
                raise ValueError(
                    "JWT_SECRET_KEY must be at least 32 characters in production environment"
                )

            if self.ALLOWED_ORIGINS == "*" or not self.ALLOWED_ORIGINS:
                raise ValueError(
                    "ALLOWED_ORIGINS must be explicitly set (not '*') in production environment"
                )

    def get_allowed_origins_list(self) -> List[str]:
        """
        Get list of allowed CORS origins

        Returns:
            List of allowed origins (or ['*'] for local)
        """
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


# Create settings instance
settings = Settings()

# Validate production settings if in prod
if settings.APP_ENV == "prod":
    settings.validate_production()
