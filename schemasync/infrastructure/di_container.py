"""Dependency Injection Container."""

from typing import Optional
import logging

from schemasync.domain.exceptions import ConfigurationError
from schemasync.infrastructure.config import Settings

logger = logging.getLogger(__name__)


class DIContainer:
    """
    Dependency Injection Container.
    Follows Dependency Inversion Principle.

    Services are built lazily and cached; tests may pre-seed ``_services``.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or Settings()
        self._services = {}

    @classmethod
    def from_env(cls) -> "DIContainer":
        return cls(Settings.from_env())

    def configure(self, connection_string: str, migrations_dir: Optional[str] = None):
        """Configure the container."""
        self._settings = Settings(
            database_url=connection_string,
            migrations_dir=migrations_dir or self._settings.migrations_dir,
            descriptors_path=self._settings.descriptors_path,
            log_level=self._settings.log_level,
            statement_timeout_ms=self._settings.statement_timeout_ms,
        )
        self.close()
        for key in ("migration_repository", "migration_source"):
            self._services.pop(key, None)

    @property
    def settings(self) -> Settings:
        return self._settings

    def get_connection(self):
        """Get the shared database connection."""
        if "connection" not in self._services:
            from schemasync.infrastructure.database.connection import connect
            if not self._settings.database_url:
                raise ConfigurationError("SCHEMASYNC_DATABASE_URL is not configured")
            self._services["connection"] = connect(
                self._settings.database_url, self._settings.statement_timeout_ms
            )
        return self._services["connection"]

    def get_snapshot_reader(self):
        """Get live schema reader."""
        if "snapshot_reader" not in self._services:
            from schemasync.infrastructure.database.inspector import PostgresSnapshotReader
            self._services["snapshot_reader"] = PostgresSnapshotReader()
        return self._services["snapshot_reader"]

    def get_history_repository(self):
        if "history_repository" not in self._services:
            from schemasync.infrastructure.repositories.history_repository import PostgresMigrationHistoryRepository
            self._services["history_repository"] = PostgresMigrationHistoryRepository()
        return self._services["history_repository"]

    def get_sql_validator(self):
        if "sql_validator" not in self._services:
            from schemasync.infrastructure.validators.sql_validator import SQLValidator
            self._services["sql_validator"] = SQLValidator("postgresql")
        return self._services["sql_validator"]

    def get_ddl_emitter(self):
        """Get DDL emitter."""
        if "ddl_emitter" not in self._services:
            from schemasync.infrastructure.sql.ddl_emitter import PostgresDDLEmitter
            self._services["ddl_emitter"] = PostgresDDLEmitter(self.get_sql_validator())
        return self._services["ddl_emitter"]

    def get_migration_repository(self):
        """Get JSON migration repository (also the default migration source)."""
        if "migration_repository" not in self._services:
            from schemasync.infrastructure.repositories.json_migration_repository import JsonMigrationRepository
            self._services["migration_repository"] = JsonMigrationRepository(self._settings.migrations_dir)
        return self._services["migration_repository"]

    def get_migration_source(self):
        if "migration_source" not in self._services:
            self._services["migration_source"] = self.get_migration_repository()
        return self._services["migration_source"]

    def get_descriptor_provider(self):
        if "descriptor_provider" not in self._services:
            from schemasync.infrastructure.repositories.descriptor_repository import JsonDescriptorRepository
            if not self._settings.descriptors_path:
                raise ConfigurationError("SCHEMASYNC_DESCRIPTORS_PATH is not configured")
            self._services["descriptor_provider"] = JsonDescriptorRepository(self._settings.descriptors_path)
        return self._services["descriptor_provider"]

    def get_migration_runner(self, use_advisory_lock: bool = False):
        """Get migration runner."""
        from schemasync.application.orchestrators.migration_runner import MigrationRunner

        return MigrationRunner(
            self.get_connection(),
            self.get_migration_source(),
            self.get_history_repository(),
            self.get_ddl_emitter(),
            use_advisory_lock=use_advisory_lock,
        )

    def get_generate_migration_use_case(self, persist: bool = True):
        from schemasync.application.use_case.generate_migration import GenerateMigrationUseCase

        return GenerateMigrationUseCase(
            self.get_snapshot_reader(),
            self.get_migration_source(),
            self.get_history_repository(),
            repository=self.get_migration_repository() if persist else None,
        )

    def get_sync_schema_use_case(self):
        from schemasync.application.use_case.sync_schema import SyncSchemaUseCase

        return SyncSchemaUseCase(self.get_snapshot_reader(), self.get_ddl_emitter())

    def close(self):
        conn = self._services.pop("connection", None)
        if conn is not None:
            conn.close()
            logger.info("[DIContainer] Closed database connection")
