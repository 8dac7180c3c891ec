"""SQL validation services."""

import sqlparse
from typing import Tuple, Optional

from schemasync.domain.exceptions import StatementValidationError


class SQLValidator:
    """
    Validates emitted DDL statements.
    Single Responsibility: SQL validation.
    """

    def __init__(self, dialect: str = "postgresql"):
        self._dialect = dialect

    def validate_syntax(self, sql: str) -> Tuple[bool, Optional[str]]:
        """
        Validate one DDL statement.
        Returns (is_valid, error_message).
        """
        statements = [s for s in sqlparse.split(sql or "") if s.strip()]

        if not statements:
            return False, "Empty SQL statement"
        if len(statements) > 1:
            return False, f"Expected a single statement, got {len(statements)}"

        parsed = sqlparse.parse(statements[0])[0]
        tokens = [t.value.upper() for t in parsed.flatten() if not t.is_whitespace]

        if tokens[:2] == ['DROP', 'DATABASE']:
            return False, "DROP DATABASE is not allowed"

        if tokens[:1] == ['TRUNCATE']:
            return False, "TRUNCATE requires explicit approval"

        return True, None

    def ensure_valid(self, sql: str) -> str:
        """Return the statement unchanged or raise StatementValidationError."""
        is_valid, error = self.validate_syntax(sql)
        if not is_valid:
            raise StatementValidationError(f"{error}: {sql!r}")
        return sql
