from typing import List
import logging

from psycopg2.extras import RealDictCursor

from schemasync.domain.entities.migration import MigrationRecord
from schemasync.domain.repositories.interfaces import IMigrationHistoryRepository
from schemasync.infrastructure.config import HISTORY_SCHEMA, HISTORY_TABLE, PRODUCT_VERSION
from schemasync.infrastructure.sql.ddl_emitter import quote_identifier

logger = logging.getLogger(__name__)


class PostgresMigrationHistoryRepository(IMigrationHistoryRepository):
    """
    Applied-migrations ledger stored in the target database.
    Single Responsibility: history persistence.

    Inserts and deletes run on the caller's cursor so they commit or roll
    back together with the migration's own statements.
    """

    def __init__(self, schema: str = HISTORY_SCHEMA, table: str = HISTORY_TABLE):
        self._schema = schema
        self._qualified = f"{quote_identifier(schema)}.{quote_identifier(table)}"

    def ensure_exists(self, conn) -> None:
        with conn.cursor() as cur:
            cur.execute(f"CREATE SCHEMA IF NOT EXISTS {quote_identifier(self._schema)};")
            cur.execute(f"""
                CREATE TABLE IF NOT EXISTS {self._qualified} (
                    migration_id INTEGER GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
                    migration_name VARCHAR(300) NOT NULL UNIQUE,
                    product_version VARCHAR(32) NOT NULL,
                    applied_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
                );
            """)
        conn.commit()
        logger.debug(f"[MigrationHistory] Ensured ledger {self._qualified}")

    def get_applied(self, conn) -> List[MigrationRecord]:
        query = f"""
            SELECT migration_name, applied_at, product_version
            FROM {self._qualified}
            ORDER BY applied_at, migration_id
        """
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(query)
            rows = cur.fetchall()

        return [
            MigrationRecord(
                migration_name=row['migration_name'],
                applied_at=row['applied_at'],
                product_version=row['product_version'],
            )
            for row in rows
        ]

    def record_applied(self, cur, migration_name: str) -> None:
        cur.execute(
            f"INSERT INTO {self._qualified} (migration_name, product_version) VALUES (%s, %s);",
            (migration_name, PRODUCT_VERSION),
        )

    def remove(self, cur, migration_name: str) -> None:
        cur.execute(f"DELETE FROM {self._qualified} WHERE migration_name = %s;", (migration_name,))
