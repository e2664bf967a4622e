import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """
    Settings read straight from environment variables (and a local .env file).
    """
    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL")
    DATABASE_POOL_MIN_SIZE: int = int(os.environ.get("DATABASE_POOL_MIN_SIZE", 5))
    DATABASE_POOL_MAX_SIZE: int = int(os.environ.get("DATABASE_POOL_MAX_SIZE", 20))

    # Redis: one for sessions, one for the rate limiter
    APPLICATION_REDIS_URL: str = os.environ.get("APPLICATION_REDIS_URL")
    RATE_LIMITER_REDIS_URL: str = os.environ.get("RATE_LIMITER_REDIS_URL")
    RATE_LIMIT_ENABLED: bool = _as_bool(os.environ.get("RATE_LIMIT_ENABLED"), default=True)

    # JWT / sessions
    SECRET_KEY: str = os.environ.get("SECRET_KEY", "change-me-outside-development-0123456789")
    ALGORITHM: str = os.environ.get("ALGORITHM", "HS256")
    SESSION_TTL_SECONDS: int = int(os.environ.get("SESSION_TTL_SECONDS", 3600))

    # Development helpers
    SEED_DEMO_DATA: bool = _as_bool(os.environ.get("SEED_DEMO_DATA"))
    CORS_ORIGINS: list[str] = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]

    # Logging
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")
    LOG_DIR: str = os.environ.get("LOG_DIR", "logs")

# Single importable settings instance
settings = Config()
