"""Type conversion matrix shared by all backends.

Backends hand over the native value of one column (None for SQL NULL) and
this module turns it into the value for the bound logical type. Native text
follows the transactional engine's text protocol; typed native values
(int, float, Decimal, date, datetime, bool, bytes) are accepted as well so
that engines with typed column accessors produce the same results.
"""

from __future__ import annotations

import datetime
import decimal
import locale
import logging
import math
import re
from typing import Tuple, Union

from .exceptions import ConversionError
from .textutil import trim_tail
from .types import LogicalType, TimeStruct

logger = logging.getLogger(__name__)

ConvertedValue = Union[int, float, bool, str, TimeStruct]

_INT_PREFIX_RE = re.compile(r"\s*([+-]?\d+)")
_NUMERIC_PREFIX_RE = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_COMMA_NUMERIC_PREFIX_RE = re.compile(r"\s*([+-]?(?:\d+[.,]?\d*|[.,]\d+)(?:[eE][+-]?\d+)?)")

INT32_MIN = -(2**31)


def zero_value(logical_type: LogicalType) -> ConvertedValue:
    """Return the value a NULL column leaves in a field of ``logical_type``."""
    if logical_type in (LogicalType.INT32, LogicalType.INT64):
        return 0
    if logical_type == LogicalType.NUMERIC:
        return 0.0
    if logical_type == LogicalType.BOOL:
        return False
    if logical_type == LogicalType.TEXT:
        return ""
    if logical_type in (LogicalType.BIT, LogicalType.CHAR):
        return "\0"
    if logical_type in (LogicalType.TIMESTAMP, LogicalType.DATE):
        return TimeStruct()
    raise ConversionError(f"Unsupported logical type: {logical_type!r}")


def native_text(value: object) -> str:
    """Render a native column value as the engine's text protocol would."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "t" if value else "f"
    if isinstance(value, datetime.datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _wrap_int32(value: int) -> int:
    return (value - INT32_MIN) % 2**32 + INT32_MIN


def parse_int(value: object, logical_type: LogicalType = LogicalType.INT64) -> int:
    """Convert a native value to an integer, base 10.

    Text is parsed like C ``strtol``: leading blanks and a sign are accepted,
    digits are read up to the first non digit, and text without digits gives 0.
    Infinite and NaN floats or Decimals also give 0.
    INT32 results wrap to the signed 32 bit range.
    """
    if isinstance(value, bool):
        result = int(value)
    elif isinstance(value, int):
        result = value
    elif isinstance(value, float):
        result = int(value) if math.isfinite(value) else 0
    elif isinstance(value, decimal.Decimal):
        result = int(value) if value.is_finite() else 0
    else:
        match = _INT_PREFIX_RE.match(native_text(value))
        result = int(match.group(1)) if match else 0
    if logical_type == LogicalType.INT32:
        return _wrap_int32(result)
    return result


def parse_numeric(value: object, comma_decimal: bool = False) -> float:
    """Convert a native value to a float.

    Text is read up to the first character that cannot be part of a number.
    When the process locale uses a decimal comma, a decimal point in the text is
    first turned into a comma and the text is parsed with locale.atof().
    """
    if isinstance(value, (int, float, decimal.Decimal)) and not isinstance(value, bool):
        return float(value)
    if comma_decimal:
        match = _COMMA_NUMERIC_PREFIX_RE.match(native_text(value))
        return locale.atof(match.group(1).replace(".", ",", 1)) if match else 0.0
    match = _NUMERIC_PREFIX_RE.match(native_text(value))
    return float(match.group(1)) if match else 0.0


def parse_bool(value: object) -> bool:
    """Convert a native value to a boolean.

    Native booleans are kept, integers are true when equal to 1, and text is
    true when it starts with ``t`` or ``1``.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, decimal.Decimal)):
        return value == 1
    return native_text(value)[:1] in ("t", "1")


def first_char(value: object) -> str:
    """Return the first character of the native text, ``"\\0"`` if it is empty."""
    text = native_text(value)
    return text[0] if text else "\0"


def _field(text: str) -> int:
    return max(parse_int(text), 0)


def extract_timestamp(text: str) -> Tuple[bool, TimeStruct]:
    """Parse a fixed position ``YYYY-MM-DD[ HH:MM:SS]`` string.

    Args:
        text: Date or timestamp text.

    Returns:
        (parsed, value). Text shorter than 10 characters is treated as an empty
        date: parsed is False and value is zeroed. The month is counted from
        zero. Time fields are only read when the text has at least 19
        characters.
    """
    if len(text) < 10:
        logger.info("Empty date detected: %r", text)
        return False, TimeStruct()
    result = TimeStruct(
        year=_field(text[0:4]),
        month=max(_field(text[5:7]) - 1, 0),
        day=_field(text[8:10]),
    )
    if len(text) >= 19:
        result.hour = _field(text[11:13])
        result.minute = _field(text[14:16])
        result.second = _field(text[17:19])
    return True, result


def convert(
    logical_type: LogicalType,
    value: object,
    *,
    autotrim: bool = False,
    comma_decimal: bool = False,
) -> Tuple[bool, ConvertedValue]:
    """Convert one native column value to ``logical_type``.

    Args:
        logical_type: Bound type of the destination.
        value: Native value, None for SQL NULL.
        autotrim: Strip trailing spaces from TEXT values.
        comma_decimal: Whether the process locale uses a decimal comma.

    Returns:
        (counted, converted). counted is False for NULL sources, in which case
        converted is the zero value of the type.

    Raises:
        ConversionError: If ``logical_type`` has no conversion.
    """
    if value is None:
        return False, zero_value(logical_type)

    if logical_type in (LogicalType.INT32, LogicalType.INT64):
        return True, parse_int(value, logical_type)
    if logical_type == LogicalType.TEXT:
        text = native_text(value)
        return True, trim_tail(text) if autotrim else text
    if logical_type == LogicalType.BOOL:
        return True, parse_bool(value)
    if logical_type in (LogicalType.BIT, LogicalType.CHAR):
        return True, first_char(value)
    if logical_type == LogicalType.NUMERIC:
        return True, parse_numeric(value, comma_decimal)
    if logical_type in (LogicalType.TIMESTAMP, LogicalType.DATE):
        if isinstance(value, datetime.date):
            return True, TimeStruct.from_datetime(value)
        _, stamp = extract_timestamp(native_text(value))
        return True, stamp
    raise ConversionError(f"Unsupported logical type: {logical_type!r}")
