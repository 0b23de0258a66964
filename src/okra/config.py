"""Environment-driven settings."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .constants import (
    DEFAULT_MAX_PAGE_SIZE,
    DEFAULT_PAGE_SIZE,
    DEFAULT_SESSION_LIFETIME_SECONDS,
    LEDGER_DIR_NAME,
    USERS_DB_NAME,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def _get_int(env: dict[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={value!r}, using {default}")
        return default


def _get_list(env: dict[str, str], name: str, default: list[str]) -> list[str]:
    value = env.get(name)
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime configuration shared by the CLI and the HTTP layer."""

    data_dir: Path = Path("data")
    users_db: Path = Path("data") / USERS_DB_NAME
    session_lifetime_seconds: int = DEFAULT_SESSION_LIFETIME_SECONDS
    secret_key: str | None = None
    page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = DEFAULT_MAX_PAGE_SIZE
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    @property
    def ledger_dir(self) -> Path:
        return self.data_dir / LEDGER_DIR_NAME

    @property
    def session_lifetime_millis(self) -> int:
        return self.session_lifetime_seconds * 1000

    def clamp_page(self, requested: int | None) -> int:
        """Bound a caller-supplied page size to [0, max_page_size]."""
        if requested is None:
            return self.page_size
        return max(0, min(requested, self.max_page_size))


def load_settings(env: dict[str, str] | None = None) -> Settings:
    """Read settings from the environment (or an explicit mapping)."""
    if env is None:
        env = dict(os.environ)

    data_dir = Path(env.get("OKRA_DATA_DIR", "data"))
    users_db = Path(env["OKRA_USERS_DB"]) if env.get("OKRA_USERS_DB") else data_dir / USERS_DB_NAME

    lifetime = _get_int(env, "OKRA_SESSION_LIFETIME_SECONDS", DEFAULT_SESSION_LIFETIME_SECONDS)
    if lifetime <= 0:
        logger.warning(f"OKRA_SESSION_LIFETIME_SECONDS must be positive, using {DEFAULT_SESSION_LIFETIME_SECONDS}")
        lifetime = DEFAULT_SESSION_LIFETIME_SECONDS

    max_page_size = max(1, _get_int(env, "OKRA_MAX_PAGE_SIZE", DEFAULT_MAX_PAGE_SIZE))
    page_size = min(max(1, _get_int(env, "OKRA_PAGE_SIZE", DEFAULT_PAGE_SIZE)), max_page_size)

    return Settings(
        data_dir=data_dir,
        users_db=users_db,
        session_lifetime_seconds=lifetime,
        secret_key=env.get("OKRA_SECRET_KEY") or None,
        page_size=page_size,
        max_page_size=max_page_size,
        cors_origins=_get_list(env, "OKRA_CORS_ORIGINS", ["*"]),
        log_level=env.get("OKRA_LOG_LEVEL", "INFO").strip().upper(),
        host=env.get("OKRA_HOST", "127.0.0.1"),
        port=_get_int(env, "OKRA_PORT", 8000),
    )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=LOG_FORMAT,
    )
