from typing import Optional
import logging

import psycopg2

from schemasync.domain.exceptions import DatabaseConnectionError

logger = logging.getLogger(__name__)


def connect(connection_string: str, statement_timeout_ms: Optional[int] = None):
    """Open a psycopg2 connection; the caller owns and closes it."""
    kwargs = {}
    if statement_timeout_ms:
        kwargs["options"] = f"-c statement_timeout={int(statement_timeout_ms)}"
    try:
        conn = psycopg2.connect(connection_string, **kwargs)
    except psycopg2.Error as e:
        raise DatabaseConnectionError(f"Cannot connect to database: {e}") from e
    logger.info("[Connection] Connected to target database")
    return conn
