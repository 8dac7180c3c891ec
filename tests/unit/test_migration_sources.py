"""Unit tests for migration sources: the in-memory registry and JSON files."""

import json
import shutil
import tempfile
import unittest
from pathlib import Path

from schemasync.domain.entities.operations import MigrationOperation as Op
from schemasync.domain.exceptions import DuplicateMigrationError, InvalidOperationError
from schemasync.infrastructure.repositories.json_migration_repository import JsonMigrationRepository
from schemasync.infrastructure.repositories.migration_registry import MigrationRegistry
from tests.fixtures.factories import SnapshotFactory as F


class TestMigrationRegistry(unittest.TestCase):

    def setUp(self):
        self.registry = MigrationRegistry()

    def test_migrations_sorted_by_full_name(self):
        self.registry.register("20240102000000", "Second", [Op.create_table("public", "b")])
        self.registry.register("20240101000000", "First", [Op.create_table("public", "a")])

        names = [m.full_name for m in self.registry.get_migrations()]

        self.assertEqual(names, ["20240101000000_First", "20240102000000_Second"])
        self.assertEqual(len(self.registry), 2)

    def test_duplicate_registration(self):
        self.registry.register("20240101000000", "First", [])

        with self.assertRaises(DuplicateMigrationError):
            self.registry.register("20240101000000", "First", [])

    def test_callables_are_resolved_on_each_call(self):
        calls = []

        def up():
            calls.append(1)
            return [Op.create_schema("audit")]

        self.registry.register("20240101000000", "Audit", up)

        self.registry.get_migrations()
        migration = self.registry.get_migrations()[0]

        self.assertEqual(len(calls), 2)
        self.assertEqual(migration.up, [Op.create_schema("audit")])
        self.assertEqual(migration.down, [])

    def test_decorator_registration(self):
        @self.registry.migration("20240101000000", "Users")
        def users():
            return [Op.create_table("public", "users")], [Op.drop_table("public", "users")]

        migration = self.registry.get_migrations()[0]

        self.assertEqual(migration.full_name, "20240101000000_Users")
        self.assertEqual(migration.down, [Op.drop_table("public", "users")])

    def test_add_existing_migration(self):
        migration = F.migration("20240101000000", "First")

        self.registry.add(migration)

        self.assertEqual(self.registry.get_migrations(), [migration])


class TestJsonMigrationRepository(unittest.TestCase):

    def setUp(self):
        self.directory = Path(tempfile.mkdtemp())
        self.repository = JsonMigrationRepository(str(self.directory))

    def tearDown(self):
        shutil.rmtree(self.directory, ignore_errors=True)

    def test_missing_directory_has_no_migrations(self):
        repository = JsonMigrationRepository(str(self.directory / "nope"))

        self.assertEqual(repository.get_migrations(), [])

    def test_save_and_load(self):
        # Arrange
        migration = F.migration("20240101000000", "CreateUsers", table="users")
        migration.up.append(Op.add_foreign_key("public", "users", "role_id", None, None, "roles", None, "CASCADE"))
        migration.up.append(Op.alter_nullability("public", "users", "email", False))

        # Act
        path = self.repository.save(migration)
        loaded = self.repository.get_migrations()

        # Assert
        self.assertEqual(path.name, "20240101000000_CreateUsers.json")
        self.assertEqual(loaded, [migration])

    def test_file_format(self):
        self.repository.save(F.migration("20240101000000", "CreateUsers", table="users"))

        document = json.loads((self.directory / "20240101000000_CreateUsers.json").read_text())

        self.assertEqual(document["timestamp"], "20240101000000")
        self.assertEqual(document["up"][0], {"type": "CreateSchema", "schema": "public"})
        self.assertEqual(document["down"], [{"type": "DropTable", "schema": "public", "table": "users"}])

    def test_migrations_returned_in_timestamp_order(self):
        self.repository.save(F.migration("20240102000000", "B"))
        self.repository.save(F.migration("20240101000000", "A"))

        names = [m.name for m in self.repository.get_migrations()]

        self.assertEqual(names, ["A", "B"])

    def test_invalid_operation_type(self):
        (self.directory / "20240101000000_Bad.json").write_text(json.dumps({
            "timestamp": "20240101000000",
            "name": "Bad",
            "up": [{"type": "RenameTable", "schema": "public", "table": "t"}],
        }))

        with self.assertRaises(InvalidOperationError):
            self.repository.get_migrations()

    def test_missing_required_field(self):
        (self.directory / "20240101000000_Bad.json").write_text(json.dumps({
            "timestamp": "20240101000000",
            "name": "Bad",
            "up": [{"type": "AddColumn", "schema": "public", "table": "t", "column": "c"}],
        }))

        with self.assertRaises(InvalidOperationError):
            self.repository.get_migrations()

    def test_bad_timestamp(self):
        (self.directory / "2024_Bad.json").write_text(json.dumps({"timestamp": "2024", "name": "Bad"}))

        with self.assertRaises(InvalidOperationError):
            self.repository.get_migrations()

    def test_duplicate_migration_in_two_files(self):
        document = json.dumps({"timestamp": "20240101000000", "name": "Same"})
        (self.directory / "20240101000000_Same.json").write_text(document)
        (self.directory / "copy.json").write_text(document)

        with self.assertRaises(DuplicateMigrationError):
            self.repository.get_migrations()
