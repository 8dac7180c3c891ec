"""Unit tests for MigrationRunner against an in-memory connection."""

import unittest

import psycopg2

from schemasync.application.orchestrators.migration_runner import ADVISORY_LOCK_KEY, MigrationRunner
from schemasync.domain.exceptions import MigrationNotFoundError
from schemasync.infrastructure.repositories.migration_registry import MigrationRegistry
from schemasync.infrastructure.sql.ddl_emitter import PostgresDDLEmitter
from tests.fixtures.factories import SnapshotFactory as F
from tests.fixtures.mock_services import MockConnection, MockHistoryRepository


class TestMigrationRunner(unittest.TestCase):

    def setUp(self):
        self.registry = MigrationRegistry()
        self.first = F.migration("20240101000000", "First", table="first")
        self.second = F.migration("20240102000000", "Second", table="second")
        self.third = F.migration("20240103000000", "Third", table="third")
        for migration in (self.third, self.first, self.second):
            self.registry.add(migration)
        self.history = MockHistoryRepository()

    def _runner(self, conn, **kwargs):
        return MigrationRunner(conn, self.registry, self.history, PostgresDDLEmitter(), **kwargs)

    def test_applies_pending_in_order(self):
        # Arrange
        conn = MockConnection()

        # Act
        result = self._runner(conn).apply_pending()

        # Assert
        self.assertEqual(result.direction, "up")
        self.assertEqual(result.migrations, [self.first.full_name, self.second.full_name, self.third.full_name])
        self.assertEqual(self.history.applied, result.migrations)
        self.assertEqual(result.statements_executed, 9)
        self.assertEqual(conn.commits, 3)
        self.assertEqual(conn.committed[1], "CREATE TABLE public.first ();")

    def test_second_run_is_a_no_op(self):
        conn = MockConnection()
        runner = self._runner(conn)
        runner.apply_pending()
        executed = len(conn.executed)

        result = runner.apply_pending()

        self.assertEqual(result.count, 0)
        self.assertEqual(len(conn.executed), executed)

    def test_stops_after_target(self):
        conn = MockConnection()

        result = self._runner(conn).apply_pending("second")

        self.assertEqual(result.migrations, [self.first.full_name, self.second.full_name])
        self.assertEqual(self.history.applied, result.migrations)

    def test_failure_rolls_back_only_the_failing_migration(self):
        # Arrange
        conn = MockConnection(fail_on="public.second")

        # Act
        with self.assertRaises(psycopg2.ProgrammingError):
            self._runner(conn).apply_pending()

        # Assert
        self.assertEqual(self.history.applied, [self.first.full_name])
        self.assertEqual(conn.rollbacks, 1)
        self.assertFalse(any("public.third" in sql for sql, _ in conn.executed))
        self.assertFalse(any("public.second" in sql for sql in conn.committed))

    def test_rerun_after_failure_resumes_with_failed_migration(self):
        self.history.applied = [self.first.full_name]
        conn = MockConnection()

        result = self._runner(conn).apply_pending()

        self.assertEqual(result.migrations, [self.second.full_name, self.third.full_name])

    def test_unknown_target_raises_before_touching_the_database(self):
        conn = MockConnection()

        with self.assertRaises(MigrationNotFoundError):
            self._runner(conn).apply_pending("Missing")

        self.assertEqual(self.history.ensure_calls, 0)
        self.assertEqual(conn.executed, [])

    def test_rollback_reverts_newest_first_and_clears_history(self):
        # Arrange
        self.history.applied = [m.full_name for m in (self.first, self.second, self.third)]
        conn = MockConnection()

        # Act
        result = self._runner(conn).rollback_to("First")

        # Assert
        self.assertEqual(result.direction, "down")
        self.assertEqual(result.migrations, [self.third.full_name, self.second.full_name])
        self.assertEqual(self.history.applied, [self.first.full_name])
        self.assertEqual(conn.committed, [
            "DROP TABLE IF EXISTS public.third CASCADE;",
            "DROP TABLE IF EXISTS public.second CASCADE;",
        ])

    def test_rollback_to_latest_does_nothing(self):
        self.history.applied = [self.first.full_name]
        conn = MockConnection()

        result = self._runner(conn).rollback_to("First")

        self.assertEqual(result.count, 0)
        self.assertEqual(conn.commits, 0)

    def test_rollback_unknown_target(self):
        with self.assertRaises(MigrationNotFoundError):
            self._runner(MockConnection()).rollback_to("Missing")

    def test_advisory_lock_wraps_the_run(self):
        conn = MockConnection()

        self._runner(conn, use_advisory_lock=True).apply_pending("First")

        self.assertEqual(conn.executed[0], ("SELECT pg_advisory_lock(%s);", (ADVISORY_LOCK_KEY,)))
        self.assertEqual(conn.executed[-1], ("SELECT pg_advisory_unlock(%s);", (ADVISORY_LOCK_KEY,)))

    def test_advisory_lock_released_on_failure(self):
        conn = MockConnection(fail_on="public.first")

        with self.assertRaises(psycopg2.ProgrammingError):
            self._runner(conn, use_advisory_lock=True).apply_pending()

        self.assertEqual(conn.executed[-1][0], "SELECT pg_advisory_unlock(%s);")

    def test_get_applied_migrations(self):
        self.history.applied = [self.first.full_name]

        records = self._runner(MockConnection()).get_applied_migrations()

        self.assertEqual([r.migration_name for r in records], [self.first.full_name])
        self.assertEqual(self.history.ensure_calls, 1)

    def test_render_sorts_before_emitting(self):
        statements = self._runner(MockConnection()).render(list(reversed(self.first.up)))

        self.assertEqual(statements[0], "CREATE SCHEMA IF NOT EXISTS public;")
        self.assertEqual(statements[1], "CREATE TABLE public.first ();")
