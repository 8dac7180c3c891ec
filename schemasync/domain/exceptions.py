"""Error hierarchy for schema migration and synchronization.

Statement execution failures are not wrapped: the driver error raised while
executing DDL propagates unchanged after the transaction is rolled back.
"""


class SchemaSyncError(Exception):
    """Base class for every error raised by the engine."""


class DatabaseConnectionError(SchemaSyncError):
    """The target database could not be reached."""


class IntrospectionError(SchemaSyncError):
    """The live catalog could not be read."""


class MigrationNotFoundError(SchemaSyncError):
    """A target migration name does not match any known migration."""

    def __init__(self, target: str):
        super().__init__(f"Target migration '{target}' not found.")
        self.target = target


class DuplicateMigrationError(SchemaSyncError):
    """Two migrations share the same timestamped name."""

    def __init__(self, full_name: str):
        super().__init__(f"Migration '{full_name}' is already registered.")
        self.full_name = full_name


class DuplicateTableError(SchemaSyncError):
    """A schema snapshot was built with two tables under the same key."""


class InvalidOperationError(SchemaSyncError):
    """A migration operation lacks a field its variant requires."""


class StatementValidationError(SchemaSyncError):
    """An emitted DDL statement failed validation."""


class ConfigurationError(SchemaSyncError):
    """A required setting is missing or malformed."""
