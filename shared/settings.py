"""
Process settings and logging setup.

Settings come from NOTIFIER_* environment variables and are read once at
start-up. Tenant accounts live in a separate YAML file (see shared.accounts).
"""

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

LOG_FORMAT = "%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s"
LOG_DATEFMT = "%H:%M:%S"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


class Settings(BaseModel):
    """Process-wide settings. Immutable after start-up."""
    accounts_file: Optional[str] = Field(default=None, description="YAML file with tenant accounts")
    database_url: str = Field(default="sqlite:///notifier.db", description="Dedup ledger database")
    test_phone: Optional[str] = Field(default=None, description="Override recipient for every message")
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)
    claimio_url: Optional[str] = Field(default=None, description="Message tracking mirror base URL")
    claimio_user: Optional[str] = Field(default=None)
    claimio_password: Optional[str] = Field(default=None)
    botspace_url: Optional[str] = Field(default=None, description="Global notifier base URL")
    botspace_endpoint: Optional[str] = Field(default=None)
    cart_reminder_delay_seconds: float = Field(default=3600.0, ge=0)
    http_timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_env(cls) -> "Settings":
        """Read NOTIFIER_* variables, falling back to the defaults above."""
        values = {
            "accounts_file": _env("NOTIFIER_ACCOUNTS_FILE"),
            "database_url": _env("NOTIFIER_DATABASE_URL"),
            "test_phone": _env("NOTIFIER_TEST_PHONE"),
            "log_level": _env("NOTIFIER_LOG_LEVEL"),
            "log_file": _env("NOTIFIER_LOG_FILE"),
            "claimio_url": _env("NOTIFIER_CLAIMIO_URL"),
            "claimio_user": _env("NOTIFIER_CLAIMIO_USER"),
            "claimio_password": _env("NOTIFIER_CLAIMIO_PASSWORD"),
            "botspace_url": _env("NOTIFIER_BOTSPACE_URL"),
            "botspace_endpoint": _env("NOTIFIER_BOTSPACE_ENDPOINT"),
            "cart_reminder_delay_seconds": _env("NOTIFIER_CART_DELAY_SECONDS"),
            "http_timeout_seconds": _env("NOTIFIER_HTTP_TIMEOUT"),
        }
        return cls(**{k: v for k, v in values.items() if v is not None})


def configure_logging(settings: Optional[Settings] = None):
    """
    Configure root logging once.

    Console output always; a rotating file when log_file is set.
    """
    settings = settings or Settings()
    level = settings.log_level.upper()

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    logging.getLogger().setLevel(level)

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logging.getLogger().addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
