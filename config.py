import logging
import os
from dataclasses import dataclass

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./app.db"
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_SECONDS = 360000  # 100 hours


class ConfigError(RuntimeError):
    """Raised when the process cannot start with the current environment."""


@dataclass(frozen=True)
class Settings:
    secret_key: str
    database_url: str = DEFAULT_DATABASE_URL
    access_token_expire_seconds: int = ACCESS_TOKEN_EXPIRE_SECONDS
    log_level: str = "INFO"
    port: int = 5001


def load_settings() -> Settings:
    secret = (os.getenv("SECRET_KEY") or os.getenv("JWT_SECRET") or "").strip()
    if not secret:
        raise ConfigError("SECRET_KEY is not defined; refusing to start")

    database_url = os.getenv("DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL

    try:
        expire = int(os.getenv("ACCESS_TOKEN_EXPIRE_SECONDS", ACCESS_TOKEN_EXPIRE_SECONDS))
        port = int(os.getenv("PORT", 5001))
    except ValueError as exc:
        raise ConfigError(f"invalid numeric setting: {exc}") from exc

    return Settings(
        secret_key=secret,
        database_url=database_url,
        access_token_expire_seconds=expire,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        port=port,
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
