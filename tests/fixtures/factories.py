from schemasync.domain.entities.descriptors import (
    ColumnDescriptor,
    EntityDescriptor,
    ForeignKeyDescriptor,
    OnDeleteBehavior,
    PrimaryKeyDescriptor,
)
from schemasync.domain.entities.migration import Migration
from schemasync.domain.entities.operations import MigrationOperation
from schemasync.domain.entities.snapshot import ColumnSnapshot, SchemaSnapshot, TableSnapshot


class SnapshotFactory:
    """Factory for creating snapshot and descriptor test data."""

    @staticmethod
    def column(name: str, data_type: str = "int4", **kwargs) -> ColumnSnapshot:
        if data_type == "int4":
            kwargs.setdefault("numeric_precision", 32)
            kwargs.setdefault("numeric_scale", 0)
        return ColumnSnapshot(name=name, data_type=data_type, **kwargs)

    @staticmethod
    def id_column(table: str) -> ColumnSnapshot:
        return SnapshotFactory.column(
            "id",
            is_nullable=False,
            is_primary_key=True,
            pk_constraint_name=f"{table}_pkey",
            is_identity=True,
            identity_generation="always",
        )

    @staticmethod
    def fk_column(name: str, table: str, ref_table: str, rule: str = "CASCADE", **kwargs) -> ColumnSnapshot:
        return SnapshotFactory.column(
            name,
            is_foreign_key=True,
            fk_constraint_name=kwargs.pop("constraint_name", f"{table}_{name}_fkey"),
            references_schema="public",
            references_table=ref_table,
            references_column="id",
            fk_update_rule="NO ACTION",
            fk_delete_rule=rule,
            **kwargs,
        )

    @staticmethod
    def table(name: str, *columns: ColumnSnapshot, schema: str = "public") -> TableSnapshot:
        return TableSnapshot(schema=schema, name=name, columns=tuple(columns))

    @staticmethod
    def schema(*tables: TableSnapshot) -> SchemaSnapshot:
        return SchemaSnapshot.from_tables(tables)

    @staticmethod
    def blog_schema() -> SchemaSnapshot:
        """roles <- users <- posts, with a few typed columns."""
        f = SnapshotFactory
        return f.schema(
            f.table("roles", f.id_column("roles"), f.column(
                "name", "varchar", character_maximum_length=50, is_nullable=False,
                is_unique=True, unique_constraint_name="roles_name_key",
            )),
            f.table(
                "users",
                f.id_column("users"),
                f.column("email", "varchar", character_maximum_length=255, is_unique=True,
                         unique_constraint_name="users_email_key"),
                f.column("created_at", "timestamp", datetime_precision=6, is_nullable=False,
                         column_default="current_timestamp"),
                f.fk_column("role_id", "users", "roles"),
            ),
            f.table(
                "posts",
                f.id_column("posts"),
                f.column("title", "text", is_nullable=False, column_default="'untitled'"),
                f.column("score", "numeric", numeric_precision=10, numeric_scale=2),
                f.fk_column("author_id", "posts", "users", rule="SET NULL"),
            ),
        )

    @staticmethod
    def blog_descriptors():
        return [
            EntityDescriptor(
                table="roles",
                columns=[
                    ColumnDescriptor("id", "integer"),
                    ColumnDescriptor("name", "varchar(50)", nullable=False, unique=True),
                ],
                primary_key=PrimaryKeyDescriptor("id"),
            ),
            EntityDescriptor(
                table="users",
                columns=[
                    ColumnDescriptor("id", "int4"),
                    ColumnDescriptor("email", "character varying(255)", unique=True),
                    ColumnDescriptor("created_at", "timestamp", nullable=False,
                                     default="now()", default_is_raw_sql=True),
                    ColumnDescriptor("role_id", "int4"),
                ],
                primary_key=PrimaryKeyDescriptor("id"),
                foreign_keys=[ForeignKeyDescriptor("role_id", "roles", on_delete=OnDeleteBehavior.CASCADE)],
            ),
            EntityDescriptor(
                table="posts",
                columns=[
                    ColumnDescriptor("id", "integer"),
                    ColumnDescriptor("title", "text", nullable=False, default="untitled"),
                    ColumnDescriptor("score", "numeric(10,2)"),
                    ColumnDescriptor("author_id", "integer"),
                ],
                primary_key=PrimaryKeyDescriptor("id"),
                foreign_keys=[ForeignKeyDescriptor("author_id", "users", on_delete=OnDeleteBehavior.SET_NULL)],
            ),
        ]

    @staticmethod
    def migration(timestamp: str, name: str, table: str = None) -> Migration:
        table = table or name.lower()
        return Migration(
            timestamp=timestamp,
            name=name,
            up=[
                MigrationOperation.create_schema("public"),
                MigrationOperation.create_table("public", table),
                MigrationOperation.add_column("public", table, "id", "int4", is_nullable=False,
                                              is_primary_key=True, is_identity=True, identity_generation="always"),
            ],
            down=[MigrationOperation.drop_table("public", table)],
        )
