from pathlib import Path
from typing import Any, Dict, List, Optional
import json

from pydantic import BaseModel, ConfigDict, Field

from schemasync.domain.entities.descriptors import (
    ColumnDescriptor,
    EntityDescriptor,
    ForeignKeyDescriptor,
    OnDeleteBehavior,
    PrimaryKeyDescriptor,
)
from schemasync.domain.repositories.interfaces import IDescriptorProvider


class ColumnModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    type: str
    nullable: bool = True
    default: Any = None
    default_is_raw_sql: bool = False
    unique: bool = False


class PrimaryKeyModel(BaseModel):
    column: str
    auto_increment: bool = True


class ForeignKeyModel(BaseModel):
    column: str
    ref_table: str
    ref_schema: str = "public"
    ref_column: str = "id"
    on_delete: Optional[str] = None
    constraint_name: Optional[str] = None


class EntityModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    schema_name: str = Field(default="public", alias="schema")
    table: str
    columns: List[ColumnModel]
    primary_key: Optional[PrimaryKeyModel] = None
    foreign_keys: List[ForeignKeyModel] = Field(default_factory=list)


class ModelDocument(BaseModel):
    entities: List[EntityModel]


class JsonDescriptorRepository(IDescriptorProvider):
    """
    Repository for declared entity descriptors.
    Single Responsibility: descriptor parsing.
    """

    def __init__(self, path: Optional[str] = None, document: Optional[Dict[str, Any]] = None):
        self._path = path
        self._document = document

    def get_descriptors(self) -> List[EntityDescriptor]:
        if self._document is not None:
            return self.parse(self._document)
        return self.parse(json.loads(Path(self._path).read_text(encoding="utf-8")))

    def parse(self, json_data: Dict[str, Any]) -> List[EntityDescriptor]:
        """Parse descriptors from a ``{"entities": [...]}`` document."""
        document = ModelDocument.model_validate(json_data)
        return [
            EntityDescriptor(
                schema=entity.schema_name,
                table=entity.table,
                columns=[
                    ColumnDescriptor(
                        name=col.name,
                        db_type=col.type,
                        nullable=col.nullable,
                        default=col.default,
                        default_is_raw_sql=col.default_is_raw_sql,
                        unique=col.unique,
                    )
                    for col in entity.columns
                ],
                primary_key=PrimaryKeyDescriptor(entity.primary_key.column, entity.primary_key.auto_increment)
                if entity.primary_key else None,
                foreign_keys=[
                    ForeignKeyDescriptor(
                        column=fk.column,
                        ref_table=fk.ref_table,
                        ref_schema=fk.ref_schema,
                        ref_column=fk.ref_column,
                        on_delete=OnDeleteBehavior.parse_or_default(fk.on_delete),
                        constraint_name=fk.constraint_name,
                    )
                    for fk in entity.foreign_keys
                ],
            )
            for entity in document.entities
        ]
