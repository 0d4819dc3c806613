"""Typed output slots and the ordered field binding list of a cursor.

Fields are written strictly in bind order, which must match the column order
of the SELECT clause. There is no name based matching.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Union

from .convert import ConvertedValue, zero_value
from .types import LogicalType

Writer = Callable[[ConvertedValue], None]


class Slot:
    """Caller owned storage for one bound field.

    Example:
        >>> name = Slot(LogicalType.TEXT)
        >>> cursor.bind(LogicalType.TEXT, name)
        >>> cursor.get_next()
        >>> name.value
    """

    def __init__(self, logical_type: LogicalType) -> None:
        """Create a slot holding the zero value of ``logical_type``."""
        self.logical_type = logical_type
        self.value: ConvertedValue = zero_value(logical_type)

    def set(self, value: ConvertedValue) -> None:
        """Store a converted value."""
        self.value = value

    def __repr__(self) -> str:
        return f"Slot({self.logical_type.name}, {self.value!r})"


def bind_attribute(obj: object, name: str) -> Writer:
    """Return a writer that stores converted values in ``obj.<name>``."""

    def _write(value: ConvertedValue) -> None:
        setattr(obj, name, value)

    return _write


BindTarget = Union[Slot, Writer]


@dataclass(frozen=True)
class BoundField:
    """One (logical type, writer) pair registered on a cursor."""

    logical_type: LogicalType
    writer: Writer

    def write(self, value: ConvertedValue) -> None:
        """Hand a converted value to the caller's storage."""
        self.writer(value)


def _as_writer(target: Optional[BindTarget]) -> Optional[Writer]:
    if isinstance(target, Slot):
        return target.set
    if callable(target):
        return target
    return None


class FieldBindingList:
    """Ordered list of bound fields."""

    def __init__(self) -> None:
        """Create an empty list."""
        self._fields: List[BoundField] = []

    def bind(self, logical_type: LogicalType, target: Optional[BindTarget]) -> bool:
        """Append a field to the list.

        Args:
            logical_type: Type the column value is converted to.
            target: Slot or writer callable receiving the converted value.

        Returns:
            True on success, False if the type is not a LogicalType or the target
            is missing or not writable. The list is unchanged on failure.
        """
        if not isinstance(logical_type, LogicalType):
            return False
        writer = _as_writer(target)
        if writer is None:
            return False
        self._fields.append(BoundField(logical_type, writer))
        return True

    def clear(self) -> None:
        """Remove every bound field."""
        self._fields.clear()

    def __len__(self) -> int:
        return len(self._fields)

    def __iter__(self) -> Iterator[BoundField]:
        return iter(self._fields)

    def __bool__(self) -> bool:
        return bool(self._fields)
