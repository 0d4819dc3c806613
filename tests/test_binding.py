"""Tests for field slots and the ordered binding list."""

from typing import List

from sqlbind.binding import FieldBindingList, Slot, bind_attribute
from sqlbind.types import LogicalType, TimeStruct


class TestSlot:
    """Test cases for Slot."""

    def test_starts_with_zero_value(self) -> None:
        assert Slot(LogicalType.INT32).value == 0
        assert Slot(LogicalType.TEXT).value == ""
        assert Slot(LogicalType.TIMESTAMP).value == TimeStruct()

    def test_set(self) -> None:
        slot = Slot(LogicalType.TEXT)
        slot.set("abc")
        assert slot.value == "abc"
        assert "abc" in repr(slot)


class TestFieldBindingList:
    """Test cases for FieldBindingList."""

    def test_binds_in_order(self) -> None:
        fields = FieldBindingList()
        first, second = Slot(LogicalType.INT32), Slot(LogicalType.TEXT)
        assert fields.bind(LogicalType.INT32, first)
        assert fields.bind(LogicalType.TEXT, second)
        assert len(fields) == 2
        assert [field.logical_type for field in fields] == [LogicalType.INT32, LogicalType.TEXT]

        for field, value in zip(fields, (5, "five")):
            field.write(value)
        assert (first.value, second.value) == (5, "five")

    def test_rejects_invalid_type(self) -> None:
        fields = FieldBindingList()
        assert not fields.bind("int32", Slot(LogicalType.INT32))  # type: ignore[arg-type]
        assert len(fields) == 0

    def test_rejects_missing_or_unwritable_target(self) -> None:
        fields = FieldBindingList()
        assert not fields.bind(LogicalType.INT32, None)
        assert not fields.bind(LogicalType.INT32, 5)  # type: ignore[arg-type]
        assert not fields

    def test_callable_target(self) -> None:
        received: List[object] = []
        fields = FieldBindingList()
        assert fields.bind(LogicalType.INT64, received.append)
        next(iter(fields)).write(99)
        assert received == [99]

    def test_clear(self) -> None:
        fields = FieldBindingList()
        fields.bind(LogicalType.BOOL, Slot(LogicalType.BOOL))
        fields.clear()
        assert len(fields) == 0


class TestBindAttribute:
    """Test cases for attribute writers."""

    def test_sets_attribute(self) -> None:
        class Record:
            name = ""

        record = Record()
        bind_attribute(record, "name")("Alice")
        assert record.name == "Alice"
