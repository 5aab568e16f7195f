import os
import logging
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

DEV_SESSION_SECRET = "dev-only-session-secret-change-me-please"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class Settings(BaseModel):
    """Process-wide configuration, read once from the environment."""
    database_url: str = Field("sqlite:///./build_orders.db", min_length=1)
    session_secret: str = Field(DEV_SESSION_SECRET, min_length=32)
    public_url: str = "http://localhost:8000"
    steam_api_key: Optional[str] = None
    app_env: Literal["development", "production", "test"] = "development"
    session_max_age: int = Field(30 * 24 * 60 * 60, gt=0)
    seed_database: bool = False
    log_level: str = "INFO"

    @field_validator('public_url')
    def validate_public_url(cls, v):
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError('PUBLIC_URL must be an http(s) URL')
        return v.rstrip("/")

    @field_validator('steam_api_key')
    def blank_key_is_unset(cls, v):
        return v or None

    @model_validator(mode="after")
    def require_secret_in_production(self):
        if self.app_env == "production" and self.session_secret == DEV_SESSION_SECRET:
            raise ValueError('SESSION_SECRET must be set in production')
        return self


def load_settings() -> Settings:
    """Builds Settings from environment variables; unset variables keep their defaults."""
    env = {
        "database_url": os.getenv("DATABASE_URL"),
        "session_secret": os.getenv("SESSION_SECRET"),
        "public_url": os.getenv("PUBLIC_URL"),
        "steam_api_key": os.getenv("STEAM_API_KEY"),
        "app_env": os.getenv("APP_ENV"),
        "session_max_age": os.getenv("SESSION_MAX_AGE"),
        "seed_database": os.getenv("SEED_DATABASE"),
        "log_level": os.getenv("LOG_LEVEL"),
    }
    return Settings(**{k: v for k, v in env.items() if v is not None})


def configure_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger("build_orders")
    logger.setLevel(level.upper())
    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console_handler)
    return logger
