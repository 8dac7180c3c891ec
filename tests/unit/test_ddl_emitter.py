"""Unit tests for PostgresDDLEmitter and SQLValidator."""

import unittest

from schemasync.domain.entities.operations import MigrationOperation as Op, OperationType
from schemasync.domain.exceptions import InvalidOperationError, StatementValidationError
from schemasync.infrastructure.sql.ddl_emitter import PostgresDDLEmitter, quote_identifier
from schemasync.infrastructure.validators.sql_validator import SQLValidator


class TestPostgresDDLEmitter(unittest.TestCase):

    def setUp(self):
        self.emitter = PostgresDDLEmitter()

    def test_schema_and_table_statements(self):
        self.assertEqual(self.emitter.emit(Op.create_schema("public")), "CREATE SCHEMA IF NOT EXISTS public;")
        self.assertEqual(self.emitter.emit(Op.create_table("public", "users")), "CREATE TABLE public.users ();")
        self.assertEqual(
            self.emitter.emit(Op.drop_table("public", "users")),
            "DROP TABLE IF EXISTS public.users CASCADE;",
        )

    def test_add_identity_primary_key_column(self):
        op = Op.add_column("public", "users", "id", "int4", is_nullable=False, is_primary_key=True,
                           is_identity=True, identity_generation="always", numeric_precision=32, numeric_scale=0)

        self.assertEqual(
            self.emitter.emit(op),
            "ALTER TABLE public.users ADD COLUMN id INT4 PRIMARY KEY GENERATED ALWAYS AS IDENTITY;",
        )

    def test_add_column_with_default_and_not_null(self):
        op = Op.add_column("public", "users", "name", "varchar", is_nullable=False, default_sql="'anon'",
                           character_maximum_length=80)

        self.assertEqual(
            self.emitter.emit(op),
            "ALTER TABLE public.users ADD COLUMN name VARCHAR(80) DEFAULT 'anon' NOT NULL;",
        )

    def test_type_rendering(self):
        cases = [
            (Op.add_column("s", "t", "c", "numeric", numeric_precision=10, numeric_scale=2), "NUMERIC(10,2)"),
            (Op.add_column("s", "t", "c", "timestamptz", datetime_precision=3), "TIMESTAMPTZ(3)"),
            (Op.add_column("s", "t", "c", "double", numeric_precision=53), "DOUBLE PRECISION"),
            (Op.add_column("s", "t", "c", "int4", numeric_precision=32, numeric_scale=0), "INT4"),
        ]
        for op, sql_type in cases:
            with self.subTest(sql_type=sql_type):
                self.assertIn(f" {sql_type};", self.emitter.emit(op))

    def test_column_alterations(self):
        self.assertEqual(
            self.emitter.emit(Op.alter_column_type("public", "t", "c", "varchar", character_maximum_length=25)),
            "ALTER TABLE public.t ALTER COLUMN c TYPE VARCHAR(25) USING c::VARCHAR(25);",
        )
        self.assertEqual(
            self.emitter.emit(Op.alter_nullability("public", "t", "c", False)),
            "ALTER TABLE public.t ALTER COLUMN c SET NOT NULL;",
        )
        self.assertEqual(
            self.emitter.emit(Op.alter_nullability("public", "t", "c", True)),
            "ALTER TABLE public.t ALTER COLUMN c DROP NOT NULL;",
        )
        self.assertEqual(
            self.emitter.emit(Op.set_default("public", "t", "c", "current_timestamp")),
            "ALTER TABLE public.t ALTER COLUMN c SET DEFAULT current_timestamp;",
        )
        self.assertEqual(
            self.emitter.emit(Op.drop_default("public", "t", "c")),
            "ALTER TABLE public.t ALTER COLUMN c DROP DEFAULT;",
        )
        self.assertEqual(
            self.emitter.emit(Op.drop_column("public", "t", "c")),
            "ALTER TABLE public.t DROP COLUMN IF EXISTS c;",
        )

    def test_constraints(self):
        self.assertEqual(
            self.emitter.emit(Op.add_unique("public", "users", "email")),
            "ALTER TABLE public.users ADD CONSTRAINT users_email_key UNIQUE (email);",
        )
        self.assertEqual(
            self.emitter.emit(Op.drop_constraint("public", "users", "users_email_key")),
            "ALTER TABLE public.users DROP CONSTRAINT IF EXISTS users_email_key;",
        )
        self.assertEqual(
            self.emitter.emit(Op.add_foreign_key("public", "users", "role_id", None, None, "roles", None, "cascade")),
            "ALTER TABLE public.users ADD CONSTRAINT users_role_id_fkey FOREIGN KEY (role_id) "
            "REFERENCES public.roles(id) ON DELETE CASCADE;",
        )

    def test_unqualified_reference_uses_source_schema(self):
        op = Op.add_foreign_key("sales", "orders", "customer_id", None, None, "customers", None)

        self.assertEqual(
            self.emitter.emit(op),
            "ALTER TABLE sales.orders ADD CONSTRAINT orders_customer_id_fkey FOREIGN KEY (customer_id) "
            "REFERENCES sales.customers(id);",
        )

    def test_reserved_and_mixed_case_identifiers_are_quoted(self):
        self.assertEqual(quote_identifier("user"), '"user"')
        self.assertEqual(quote_identifier("OrderItems"), '"OrderItems"')
        self.assertEqual(quote_identifier('we"ird'), '"we""ird"')
        self.assertEqual(quote_identifier("orders"), "orders")
        self.assertEqual(self.emitter.emit(Op.create_table("public", "user")), 'CREATE TABLE public."user" ();')

    def test_every_operation_type_has_a_generator(self):
        for op_type in OperationType:
            self.assertIn(op_type, self.emitter._generators)

    def test_missing_required_field_is_rejected(self):
        with self.assertRaises(InvalidOperationError):
            self.emitter.emit(Op(OperationType.ADD_FOREIGN_KEY, schema="public", table="t", column="c"))

    def test_malicious_default_cannot_smuggle_a_second_statement(self):
        op = Op.set_default("public", "t", "c", "1; DROP TABLE users")

        with self.assertRaises(StatementValidationError):
            self.emitter.emit(op)


class TestSQLValidator(unittest.TestCase):

    def setUp(self):
        self.validator = SQLValidator()

    def test_single_statement_is_valid(self):
        self.assertEqual(self.validator.validate_syntax("CREATE TABLE public.t ();"), (True, None))

    def test_empty_statement(self):
        self.assertEqual(self.validator.validate_syntax("   "), (False, "Empty SQL statement"))

    def test_multiple_statements(self):
        is_valid, error = self.validator.validate_syntax("SELECT 1; SELECT 2;")
        self.assertFalse(is_valid)
        self.assertIn("single statement", error)

    def test_dangerous_statements(self):
        self.assertEqual(self.validator.validate_syntax("DROP DATABASE prod;"),
                         (False, "DROP DATABASE is not allowed"))
        self.assertEqual(self.validator.validate_syntax("TRUNCATE users;"),
                         (False, "TRUNCATE requires explicit approval"))

    def test_table_named_database_is_fine(self):
        self.assertTrue(self.validator.validate_syntax("DROP TABLE IF EXISTS public.database CASCADE;")[0])

    def test_ensure_valid_raises(self):
        with self.assertRaises(StatementValidationError):
            self.validator.ensure_valid("")
