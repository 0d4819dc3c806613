"""Tests for PostgresConnection with the psycopg2 layer mocked out."""

import decimal
import logging
from typing import Generator, List
from unittest.mock import MagicMock, call, patch

import psycopg2
import pytest
from psycopg2 import errors as pg_errors

from sqlbind import (
    NO_CONNECTION,
    ConnectionState,
    CursorState,
    ErrorKind,
    Feature,
    LogicalType,
    PostgresConnection,
    SchemaType,
    Slot,
)

DSN = "host=db.example dbname=app user=app"


@pytest.fixture
def native_cursor() -> MagicMock:
    """psycopg2 cursor double; statements return no tuples by default."""
    cursor = MagicMock()
    cursor.description = None
    cursor.rowcount = 0
    cursor.fetchall.return_value = []
    cursor.fetchone.return_value = None
    return cursor


@pytest.fixture
def native_conn(native_cursor: MagicMock) -> MagicMock:
    """psycopg2 connection double handing out ``native_cursor``."""
    conn = MagicMock()
    conn.closed = 0
    conn.notices = []
    conn.encoding = "UTF8"
    conn.info.host = "db.example"
    conn.info.dbname = "app"
    conn.info.port = 5432
    conn.cursor.return_value = native_cursor
    return conn


@pytest.fixture
def pg_connect(native_conn: MagicMock) -> Generator[MagicMock, None, None]:
    """Patch psycopg2.connect to return ``native_conn``."""
    with patch("sqlbind.postgres.psycopg2.connect", return_value=native_conn) as connect:
        yield connect


@pytest.fixture
def db(pg_connect: MagicMock) -> PostgresConnection:
    """Connected PostgresConnection over the mocked driver."""
    conn = PostgresConnection()
    assert conn.connect(DSN)
    return conn


def executed(native_cursor: MagicMock) -> List[str]:
    """SQL text of every statement sent through ``native_cursor``."""
    return [c.args[0] for c in native_cursor.execute.call_args_list]


class TestPostgresConnect:
    """Test cases for connecting and connection metadata."""

    def test_connect(self, db: PostgresConnection, pg_connect: MagicMock, native_conn: MagicMock) -> None:
        pg_connect.assert_called_once_with(DSN)
        assert native_conn.autocommit is True
        assert db.state == ConnectionState.CONNECTED
        assert db.server_name == "db.example"
        assert db.db_name == "app"
        assert db.port == 5432
        assert db.is_connect_ok()
        assert db.is_feature_on(Feature.AUTOTRIM | Feature.TRANSACTIONS)

    def test_connect_failure(self) -> None:
        conn = PostgresConnection()
        with patch(
            "sqlbind.postgres.psycopg2.connect",
            side_effect=psycopg2.OperationalError("could not connect to server"),
        ):
            assert not conn.connect(DSN)
        assert conn.last_error_kind == ErrorKind.CONNECTION_FAILED
        assert "could not connect to server" in conn.get_error_description()
        assert not conn.is_connected

    def test_empty_target_does_not_call_driver(self, pg_connect: MagicMock) -> None:
        conn = PostgresConnection()
        assert not conn.connect("")
        assert conn.last_error_kind == ErrorKind.INVALID_TARGET
        pg_connect.assert_not_called()

    def test_disconnect(self, db: PostgresConnection, native_conn: MagicMock) -> None:
        assert db.disconnect()
        native_conn.close.assert_called_once()
        assert db.server_name == NO_CONNECTION
        assert db.port == 0
        assert not db.is_connect_ok()

    def test_reset_connection(self, db: PostgresConnection, pg_connect: MagicMock) -> None:
        assert db.reset_connection()
        assert pg_connect.call_args_list == [call(DSN), call(DSN)]

    def test_reset_connection_never_connected(self) -> None:
        conn = PostgresConnection()
        assert not conn.reset_connection()
        assert conn.last_error_kind == ErrorKind.NOT_CONNECTED


class TestPostgresCursor:
    """Test cases for the buffered PostgreSQL cursor."""

    def test_rows_are_buffered(self, db: PostgresConnection, native_cursor: MagicMock) -> None:
        native_cursor.description = (("id",), ("name",))
        native_cursor.fetchall.return_value = [(1, "a  "), (2, None)]
        cursor = db.create_cursor()
        id_slot, name_slot = Slot(LogicalType.INT32), Slot(LogicalType.TEXT)
        cursor.bind(LogicalType.INT32, id_slot)
        cursor.bind(LogicalType.TEXT, name_slot)

        assert cursor.query("SELECT id, name FROM t")
        native_cursor.close.assert_called_once()
        assert cursor.get_next() == 2
        assert (id_slot.value, name_slot.value) == (1, "a")
        assert cursor.get_next() == 1
        assert (id_slot.value, name_slot.value) == (2, "")
        assert cursor.get_next() == 0
        assert cursor.state == CursorState.EXHAUSTED

    def test_statement_without_tuples(self, db: PostgresConnection) -> None:
        cursor = db.create_cursor()
        cursor.bind(LogicalType.INT32, Slot(LogicalType.INT32))
        assert not cursor.query("UPDATE t SET x = 1")
        assert db.last_error_kind == ErrorKind.QUERY_ERROR
        assert cursor.last_error is not None

    def test_server_error(self, db: PostgresConnection, native_cursor: MagicMock) -> None:
        native_cursor.execute.side_effect = psycopg2.ProgrammingError('syntax error at or near "SELEC"')
        cursor = db.create_cursor()
        cursor.bind(LogicalType.INT32, Slot(LogicalType.INT32))
        assert not cursor.query("SELEC 1")
        assert db.last_error_kind == ErrorKind.QUERY_ERROR
        assert "syntax error" in db.get_error_description(cursor)
        assert db.is_connected

    def test_lost_connection(self, db: PostgresConnection, native_conn: MagicMock, native_cursor: MagicMock) -> None:
        def drop(sql: str) -> None:
            native_conn.closed = 2
            raise psycopg2.OperationalError("server closed the connection unexpectedly")

        native_cursor.execute.side_effect = drop
        cursor = db.create_cursor()
        cursor.bind(LogicalType.INT32, Slot(LogicalType.INT32))
        assert not cursor.query("SELECT 1")
        assert db.last_error_kind == ErrorKind.NOT_CONNECTED
        assert not db.is_connected
        assert not cursor.query("SELECT 1")
        assert db.last_error_kind == ErrorKind.NOT_CONNECTED


class TestPostgresTransactions:
    """Test cases for explicit transactions."""

    def test_commit(self, db: PostgresConnection, native_cursor: MagicMock) -> None:
        assert db.start_transaction()
        assert db.is_transaction
        assert db.commit()
        assert not db.is_transaction
        assert executed(native_cursor) == ["BEGIN", "COMMIT"]

    def test_rollback(self, db: PostgresConnection, native_cursor: MagicMock) -> None:
        assert db.start_transaction()
        assert db.rollback()
        assert executed(native_cursor) == ["BEGIN", "ROLLBACK"]
        assert db.state == ConnectionState.CONNECTED

    def test_nested_start_fails(self, db: PostgresConnection) -> None:
        assert db.start_transaction()
        assert not db.start_transaction()
        assert db.last_error_kind == ErrorKind.TRANSACTION_ALREADY_ACTIVE
        assert db.is_transaction

    def test_end_without_start(self, db: PostgresConnection, native_cursor: MagicMock) -> None:
        assert not db.commit()
        assert db.last_error_kind == ErrorKind.NO_ACTIVE_TRANSACTION
        assert not db.rollback()
        assert db.last_error_kind == ErrorKind.NO_ACTIVE_TRANSACTION
        native_cursor.execute.assert_not_called()

    def test_failed_commit_ends_transaction(self, db: PostgresConnection, native_cursor: MagicMock) -> None:
        assert db.start_transaction()
        native_cursor.execute.side_effect = psycopg2.DatabaseError("could not serialize access")
        assert not db.commit()
        assert not db.is_transaction
        assert db.is_connected

    def test_failed_begin_stays_connected(self, db: PostgresConnection, native_cursor: MagicMock) -> None:
        native_cursor.execute.side_effect = psycopg2.DatabaseError("boom")
        assert not db.start_transaction()
        assert db.state == ConnectionState.CONNECTED

    def test_transactions_switched_off(self, db: PostgresConnection) -> None:
        assert db.unset_feature(Feature.TRANSACTIONS)
        assert not db.start_transaction()
        assert db.last_error_kind == ErrorKind.NOT_SUPPORTED


class TestPostgresStatements:
    """Test cases for scalar, modify, structure and lookup helpers."""

    def test_execute_modify(self, db: PostgresConnection, native_cursor: MagicMock) -> None:
        native_cursor.rowcount = 3
        assert db.execute_modify("UPDATE t SET x = 1") == 3

    def test_execute_modify_rejects_tuples(self, db: PostgresConnection, native_cursor: MagicMock) -> None:
        native_cursor.description = (("x",),)
        assert db.execute_modify("SELECT 1") == -1
        assert db.last_error_kind == ErrorKind.QUERY_ERROR

    def test_update_structure_rejects_tuples(self, db: PostgresConnection, native_cursor: MagicMock) -> None:
        assert db.update_structure("CREATE TABLE t (x int)")
        native_cursor.description = (("x",),)
        assert not db.update_structure("SELECT 1")

    def test_execute_double(self, db: PostgresConnection, native_cursor: MagicMock) -> None:
        native_cursor.description = (("v",),)
        native_cursor.fetchone.return_value = (decimal.Decimal("2.50"),)
        assert db.execute_double("SELECT 2.50") == (True, 2.5)

    @pytest.mark.parametrize("value", [decimal.Decimal("NaN"), decimal.Decimal("Infinity"), float("-inf")])
    def test_non_finite_numeric_as_integer(self, db: PostgresConnection, native_cursor: MagicMock, value: object) -> None:
        native_cursor.description = (("v",),)
        native_cursor.fetchone.return_value = (value,)
        assert db.execute_int("SELECT v FROM t") == (True, 0)
        assert db.execute_long("SELECT v FROM t") == (True, 0)

    def test_scalar_no_rows(self, db: PostgresConnection, native_cursor: MagicMock) -> None:
        native_cursor.description = (("v",),)
        assert db.execute_int("SELECT v FROM t WHERE false") == (False, 0)
        assert db.last_error_kind == ErrorKind.QUERY_ERROR

    def test_scalar_without_tuples(self, db: PostgresConnection) -> None:
        assert db.execute_int("UPDATE t SET x = 1") == (False, 0)
        assert db.last_error_kind == ErrorKind.QUERY_ERROR

    def test_insert_id(self, db: PostgresConnection, native_cursor: MagicMock) -> None:
        native_cursor.fetchone.return_value = (17,)
        assert db.get_insert_id() == 17
        assert executed(native_cursor) == ["SELECT lastval()"]

    def test_insert_id_in_transaction_uses_savepoint(
        self, db: PostgresConnection, native_cursor: MagicMock
    ) -> None:
        native_cursor.fetchone.return_value = (5,)
        assert db.start_transaction()
        assert db.get_insert_id() == 5
        assert executed(native_cursor) == [
            "BEGIN",
            "SAVEPOINT sqlbind_insert_id",
            "SELECT lastval()",
            "RELEASE SAVEPOINT sqlbind_insert_id",
        ]

    def test_insert_id_failure_keeps_transaction(
        self, db: PostgresConnection, native_cursor: MagicMock
    ) -> None:
        def execute(sql: str) -> None:
            if sql == "SELECT lastval()":
                raise pg_errors.ObjectNotInPrerequisiteState(
                    'lastval is not yet defined in this session'
                )

        assert db.start_transaction()
        native_cursor.execute.side_effect = execute
        assert db.get_insert_id() == 0
        assert executed(native_cursor)[-1] == "ROLLBACK TO SAVEPOINT sqlbind_insert_id"
        assert db.is_transaction

    def test_find_schema_item(self, db: PostgresConnection, native_cursor: MagicMock) -> None:
        native_cursor.fetchone.return_value = (1,)
        assert db.find_schema_item(SchemaType.TABLE, "simple")
        assert native_cursor.execute.call_args.args[1] == ("simple",)

    def test_notices_are_logged(
        self, db: PostgresConnection, native_conn: MagicMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.INFO, logger="sqlbind.postgres")
        native_conn.notices.append('NOTICE:  table "gone" does not exist, skipping\n')
        assert db.update_structure("DROP TABLE IF EXISTS gone")
        assert native_conn.notices == []
        assert 'table "gone" does not exist' in caplog.text
