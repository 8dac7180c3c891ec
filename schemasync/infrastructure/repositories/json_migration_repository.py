"""Migrations persisted as JSON documents, one file per migration."""

from pathlib import Path
from typing import List, Optional
import json
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from schemasync.domain.entities.migration import Migration
from schemasync.domain.entities.operations import MigrationOperation, OperationType
from schemasync.domain.exceptions import DuplicateMigrationError, InvalidOperationError
from schemasync.domain.repositories.interfaces import IMigrationSource

logger = logging.getLogger(__name__)


class OperationModel(BaseModel):
    """Wire form of a MigrationOperation."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: OperationType
    schema_name: Optional[str] = Field(default=None, alias="schema")
    table: Optional[str] = None
    column: Optional[str] = None
    sql_type: Optional[str] = None
    character_maximum_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None
    datetime_precision: Optional[int] = None
    is_nullable: Optional[bool] = None
    default_sql: Optional[str] = None
    is_primary_key: bool = False
    is_identity: bool = False
    identity_generation: Optional[str] = None
    constraint_name: Optional[str] = None
    ref_schema: Optional[str] = None
    ref_table: Optional[str] = None
    ref_column: Optional[str] = None
    on_delete_rule: Optional[str] = None

    @classmethod
    def from_operation(cls, op: MigrationOperation) -> "OperationModel":
        return cls.model_validate(op.to_dict())

    def to_operation(self) -> MigrationOperation:
        data = self.model_dump(exclude={"schema_name"})
        return MigrationOperation(schema=self.schema_name, **data).validate()


class MigrationFileModel(BaseModel):
    """Wire form of a Migration."""
    model_config = ConfigDict(extra="forbid")

    timestamp: str = Field(pattern=r"^\d{14}$")
    name: str = Field(min_length=1)
    up: List[OperationModel] = Field(default_factory=list)
    down: List[OperationModel] = Field(default_factory=list)

    @classmethod
    def from_migration(cls, migration: Migration) -> "MigrationFileModel":
        return cls(
            timestamp=migration.timestamp,
            name=migration.name,
            up=[OperationModel.from_operation(op) for op in migration.up],
            down=[OperationModel.from_operation(op) for op in migration.down],
        )

    def to_migration(self) -> Migration:
        return Migration(
            timestamp=self.timestamp,
            name=self.name,
            up=[op.to_operation() for op in self.up],
            down=[op.to_operation() for op in self.down],
        )


class JsonMigrationRepository(IMigrationSource):
    """
    Repository for migration files named ``<timestamp>_<name>.json``.
    Single Responsibility: migration file parsing and writing.
    """

    def __init__(self, directory: str):
        self._directory = Path(directory)

    def get_migrations(self) -> List[Migration]:
        if not self._directory.is_dir():
            logger.info(f"[JsonMigrationRepository] No migrations directory at {self._directory}")
            return []

        migrations = {}
        for path in sorted(self._directory.glob("*.json")):
            migration = self.load(path)
            if migration.full_name in migrations:
                raise DuplicateMigrationError(migration.full_name)
            if path.stem != migration.full_name:
                logger.warning(f"[JsonMigrationRepository] {path.name} holds migration {migration.full_name}")
            migrations[migration.full_name] = migration

        logger.info(f"[JsonMigrationRepository] Loaded {len(migrations)} migrations")
        return [migrations[name] for name in sorted(migrations)]

    def load(self, path: Path) -> Migration:
        try:
            document = MigrationFileModel.model_validate_json(Path(path).read_text(encoding="utf-8"))
            return document.to_migration()
        except ValidationError as e:
            raise InvalidOperationError(f"Invalid migration file {path}: {e}") from e

    def save(self, migration: Migration) -> Path:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._directory / f"{migration.full_name}.json"
        document = MigrationFileModel.from_migration(migration)
        payload = document.model_dump(mode="json", by_alias=True, exclude_defaults=True)
        payload.setdefault("up", [])
        payload.setdefault("down", [])
        path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        logger.info(f"[JsonMigrationRepository] Wrote {path}")
        return path
