"""Walk through the sqlbind API against a SQLite file or a PostgreSQL server.

Creates and fills the ``simple`` table, reads it through a record cursor and a
free-bind cursor, then inserts rows inside a transaction. Passing ``b`` as the
mode abandons that transaction after the third insert.

Usage:
    python examples/basic_demo.py demo.db
    python examples/basic_demo.py --backend postgres "dbname=demo user=demo" b
"""

import logging
import os
import sys
import time

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sqlbind import (
    BackendType,
    Connection,
    Feature,
    LogicalType,
    RecordSet,
    SchemaType,
    Slot,
    create_connection,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

NAMES = ["Mike", "Ben", "Jim", "Lisa", "Susan", "Kate"]


class SimpleRecord(RecordSet):
    """One row of the ``simple`` table."""

    def __init__(self) -> None:
        super().__init__()
        self.id = 0
        self.name = ""

    def post_create(self, cursor) -> None:
        self.bind_field(LogicalType.INT32, "id")
        self.bind_field(LogicalType.TEXT, "name")

    def query_all(self) -> bool:
        return self.query("SELECT id, name FROM simple ORDER BY id")


def create_simple(db: Connection) -> bool:
    """Create and fill the simple table unless it already exists."""
    print("# Table creation: simple(id, name)")
    if db.find_schema_item(SchemaType.TABLE, "simple"):
        print("'simple' table exists")
        return True
    print("Creating 'simple' table.")
    if not db.update_structure(
        "CREATE TABLE simple (id int, name varchar(64), CONSTRAINT spk PRIMARY KEY (id))"
    ):
        print(f"Unable to add 'simple' table: {db.get_error_description()}")
        return False
    for ndx, name in enumerate(NAMES, start=1):
        sql = f"INSERT INTO simple (id, name) VALUES ({ndx}, '{db.clean_str(name)}')"
        if db.execute_modify(sql) < 0:
            print(f"Insert failed at item: {ndx}")
            return False
    print("Simple table filled")
    return True


def use_record(db: Connection) -> bool:
    """Print every row through a record cursor."""
    print("# Record cursor query")
    record = SimpleRecord()
    if not db.create_record_cursor(record) or not record.query_all():
        print(f"Query of 'simple' failed: {db.get_error_description()}")
        return False
    while record.get_next():
        print(f"id={record.id};  {record.name}")
    return True


def use_free_bind(db: Connection) -> bool:
    """Print the first rows through caller owned slots."""
    print("# Free bind query")
    rs_id, rs_name = Slot(LogicalType.INT32), Slot(LogicalType.TEXT)
    with db.create_cursor() as cursor:
        cursor.bind(LogicalType.INT32, rs_id)
        cursor.bind(LogicalType.TEXT, rs_name)
        if not cursor.query("SELECT id, name FROM simple WHERE id < 4"):
            print(f"Query of 'simple' failed: {db.get_error_description(cursor)}")
            return False
        while cursor.get_next():
            print(f"id={rs_id.value};  {rs_name.value}")
    return True


def use_tx_insert(db: Connection, mode: str) -> bool:
    """Insert five rows in one transaction, abandoning it after three in mode 'b'."""
    print("# Transactional insert")
    if not db.is_feature_supported(Feature.TRANSACTIONS):
        print(f"Transactions are not supported by {db.backend_type.value}; skipped")
        return True
    now = int(time.time()) & 0xFFFF
    if not db.start_transaction():
        print(f"BEGIN failed: {db.get_error_description()}")
        return False
    for ndx in range(1, 6):
        sql = f"INSERT INTO simple (id, name) VALUES ({now + ndx}, 'tx name {ndx}{mode}')"
        if db.execute_modify(sql) < 0:
            print(f"Insert failed at {ndx}")
            db.rollback()
            return False
        if mode == "b" and ndx == 3:
            logger.info("Abandoning the open transaction")
            db.disconnect()
            return True
    if not db.commit():
        print(f"COMMIT failed: {db.get_error_description()}")
        return False
    return True


def main() -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Exercise the sqlbind connection and cursor API.")
    parser.add_argument("target", help="SQLite file name or PostgreSQL connection string")
    parser.add_argument("mode", nargs="?", default="-", help="'b' abandons the transaction")
    parser.add_argument(
        "--backend",
        choices=[backend.value for backend in BackendType],
        default=BackendType.SQLITE.value,
        help="Database engine to use",
    )
    args = parser.parse_args()

    db = create_connection(BackendType(args.backend))
    if not db.connect(args.target):
        print(f"Unable to find/create {args.target}: {db.get_error_description()}")
        return 2
    with db:
        if (
            create_simple(db)
            and use_record(db)
            and use_free_bind(db)
            and use_tx_insert(db, args.mode[:1])
        ):
            if not db.is_connected and not db.connect(args.target):
                print(f"Reconnect failed: {db.get_error_description()}")
                return 2
            print("--- finally in simple:")
            use_record(db)
            print("\nOK")
        else:
            print("Failed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
