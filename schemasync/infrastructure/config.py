"""Runtime configuration read from the environment."""

from dataclasses import dataclass
from typing import Mapping, Optional
import logging
import os

from schemasync.domain.exceptions import ConfigurationError

HISTORY_SCHEMA = "schemasync"
HISTORY_TABLE = "__schemasync_migrations"
PRODUCT_VERSION = "0.1.0"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    """Engine settings; the history ledger location is fixed and not part of it."""
    database_url: Optional[str] = None
    migrations_dir: str = "migrations"
    descriptors_path: Optional[str] = None
    log_level: str = "INFO"
    statement_timeout_ms: Optional[int] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        timeout = env.get("SCHEMASYNC_STATEMENT_TIMEOUT_MS")
        if timeout and not timeout.strip().isdigit():
            raise ConfigurationError(f"SCHEMASYNC_STATEMENT_TIMEOUT_MS must be an integer, got {timeout!r}")
        return cls(
            database_url=env.get("SCHEMASYNC_DATABASE_URL") or None,
            migrations_dir=env.get("SCHEMASYNC_MIGRATIONS_DIR", "migrations"),
            descriptors_path=env.get("SCHEMASYNC_DESCRIPTORS_PATH") or None,
            log_level=env.get("SCHEMASYNC_LOG_LEVEL", "INFO").upper(),
            statement_timeout_ms=int(timeout) if timeout else None,
        )


def configure_logging(level: str = "INFO") -> None:
    """Set up root logging for an application embedding the engine."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
