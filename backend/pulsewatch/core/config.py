import os
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings


def _get_version() -> str:
    """Read version from pyproject.toml or environment variable."""
    if env_version := os.getenv("PULSEWATCH_VERSION"):
        return env_version

    try:
        pyproject_path = Path(__file__).parent.parent.parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            content = pyproject_path.read_text()
            for line in content.split("\n"):
                if line.startswith("version"):
                    # Parse: version = "0.1.0"
                    return line.split("=")[1].strip().strip('"').strip("'")
    except OSError:
        pass

    return "0.0.0-dev"


APP_VERSION = _get_version()

INSECURE_DEFAULTS = [
    "master-key-change-me",
    "secret",
    "changeme",
]


class Settings(BaseSettings):
    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "pulsewatch"
    POSTGRES_PASSWORD: str = "devpassword"
    POSTGRES_DB: str = "pulsewatch"

    # Full URL override (e.g. sqlite+aiosqlite:///./data/metrics.db for single-node installs)
    DATABASE_URL_OVERRIDE: str | None = None

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # Redis (scheduler locks)
    REDIS_URL: str = "redis://localhost:6379"

    # Operator key with full access to every tenant and to key management
    MASTER_KEY: str = "master-key-change-me"

    # App
    APP_NAME: str = "Pulsewatch"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Alert engine
    MISSING_DATA_SWEEP_SECONDS: int = 10
    DISPATCH_TIMEOUT_SECONDS: float = 5.0
    MIN_REPEAT_INTERVAL_SECONDS: int = 60
    NOTIFICATION_WORKERS: int = 4
    NOTIFICATION_QUEUE_SIZE: int = 1000

    # Raw sample retention
    RETENTION_DAYS: int = 30

    @field_validator("MASTER_KEY")
    @classmethod
    def validate_master_key(cls, v: str, info) -> str:
        """Reject empty or well-known master keys outside of DEBUG mode."""
        if not v or v.strip() == "":
            raise ValueError(
                f"{info.field_name} must be set in environment variables. "
                f"Generate a secure random key using: openssl rand -hex 32"
            )

        if v.lower() in INSECURE_DEFAULTS:
            debug_mode = os.environ.get("DEBUG", "").lower() in ("true", "1", "yes")
            if not debug_mode:
                raise ValueError(
                    f"{info.field_name} is using an insecure default value. "
                    f"Generate a secure key using: openssl rand -hex 32"
                )

            import logging
            logger = logging.getLogger(__name__)
            logger.warning(
                "%s is using an insecure default value in DEBUG mode. "
                "This MUST be changed in production!",
                info.field_name,
            )

        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return level

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
