"""Unit tests for JsonDescriptorRepository."""

import json
import tempfile
import unittest
from pathlib import Path

from pydantic import ValidationError

from schemasync.domain.entities.descriptors import OnDeleteBehavior
from schemasync.domain.services.model_snapshot_builder import ModelSnapshotBuilder
from schemasync.infrastructure.repositories.descriptor_repository import JsonDescriptorRepository
from tests.fixtures.factories import SnapshotFactory as F

BLOG_DOCUMENT = {
    "entities": [
        {
            "table": "roles",
            "columns": [
                {"name": "id", "type": "integer", "nullable": False},
                {"name": "name", "type": "varchar(50)", "nullable": False, "unique": True},
            ],
            "primary_key": {"column": "id"},
        },
        {
            "table": "users",
            "columns": [
                {"name": "id", "type": "integer", "nullable": False},
                {"name": "email", "type": "varchar(255)", "unique": True},
                {"name": "created_at", "type": "timestamp", "nullable": False,
                 "default": "now()", "default_is_raw_sql": True},
                {"name": "role_id", "type": "integer"},
            ],
            "primary_key": {"column": "id"},
            "foreign_keys": [{"column": "role_id", "ref_table": "roles", "on_delete": "cascade"}],
        },
        {
            "schema": "public",
            "table": "posts",
            "columns": [
                {"name": "id", "type": "integer", "nullable": False},
                {"name": "title", "type": "text", "nullable": False, "default": "untitled"},
                {"name": "score", "type": "numeric(10,2)"},
                {"name": "author_id", "type": "integer"},
            ],
            "primary_key": {"column": "id"},
            "foreign_keys": [{"column": "author_id", "ref_table": "users", "on_delete": "set_null"}],
        },
    ]
}


class TestJsonDescriptorRepository(unittest.TestCase):

    def test_parse_document(self):
        descriptors = JsonDescriptorRepository(document=BLOG_DOCUMENT).get_descriptors()

        self.assertEqual([d.table for d in descriptors], ["roles", "users", "posts"])
        users = descriptors[1]
        self.assertEqual(users.schema, "public")
        self.assertEqual(users.primary_key.column, "id")
        self.assertTrue(users.primary_key.auto_increment)
        self.assertEqual(users.foreign_key_for("role_id").on_delete, OnDeleteBehavior.CASCADE)
        self.assertIsNone(users.foreign_key_for("email"))

    def test_document_builds_expected_snapshot(self):
        descriptors = JsonDescriptorRepository(document=BLOG_DOCUMENT).get_descriptors()

        snapshot = ModelSnapshotBuilder().build(descriptors)

        self.assertEqual(snapshot, F.blog_schema(), "\n".join(snapshot.describe_differences(F.blog_schema())))

    def test_reads_from_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "model.json"
            path.write_text(json.dumps(BLOG_DOCUMENT), encoding="utf-8")

            descriptors = JsonDescriptorRepository(path=str(path)).get_descriptors()

        self.assertEqual(len(descriptors), 3)

    def test_unknown_column_key_is_rejected(self):
        document = {"entities": [{"table": "t", "columns": [{"name": "a", "type": "int", "size": 3}]}]}

        with self.assertRaises(ValidationError):
            JsonDescriptorRepository(document=document).get_descriptors()
