"""Text helpers for building SQL literals by hand.

Escaping helpers for embedding user text in statements, the reverse of the
backslash escaping some clients apply, trailing space trimming, and
locale-safe number printing.
"""

from __future__ import annotations

import locale

SCRATCH_INITIAL_SIZE = 0x200


class ScratchBuffer:
    """Reusable byte buffer that grows on demand and never shrinks."""

    def __init__(self, size: int = SCRATCH_INITIAL_SIZE) -> None:
        """Allocate the initial buffer."""
        self._data = bytearray(size)
        self._length = 0

    @property
    def capacity(self) -> int:
        """Currently allocated size in bytes."""
        return len(self._data)

    def reserve(self, size: int) -> None:
        """Make sure at least ``size`` bytes are available.

        Grows by a 10% margin over the requested size.
        """
        if size <= len(self._data):
            return
        self._data.extend(bytes(size + size // 10 - len(self._data)))

    def write(self, text: str) -> str:
        """Store ``text`` in the buffer and return it.

        Args:
            text: Text to store.

        Returns:
            The stored text, decoded back from the buffer.
        """
        encoded = text.encode("utf-8")
        self.reserve(len(encoded))
        self._data[: len(encoded)] = encoded
        self._length = len(encoded)
        return self.getvalue()

    def getvalue(self) -> str:
        """Return the most recently written text."""
        return self._data[: self._length].decode("utf-8")


def clean_str(text: str) -> str:
    """Escape text for use inside a single quoted SQL literal.

    Each ``'`` is doubled and every carriage return is dropped. All other
    characters pass through unchanged.
    """
    return text.replace("'", "''").replace("\r", "")


def clean_str_into(text: str, scratch: ScratchBuffer) -> str:
    """Like clean_str() but builds the result in a reusable scratch buffer."""
    # Room for every quote to be doubled plus a small margin.
    scratch.reserve(len(text.encode("utf-8")) + 64)
    return scratch.write(clean_str(text))


def clean_html(text: str) -> str:
    """Escape single quotes only, keeping carriage returns intact."""
    return text.replace("'", "''")


def clean_reverse(text: str) -> str:
    """Undo backslash escaping.

    ``\\n`` becomes a newline, ``\\t`` a tab and any other backslash escaped
    character is passed through without the backslash. A trailing lone
    backslash is dropped.
    """
    out = []
    chars = iter(text)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        escaped = next(chars, "")
        if escaped == "n":
            out.append("\n")
        elif escaped == "t":
            out.append("\t")
        else:
            out.append(escaped)
    return "".join(out)


def trim_tail(text: str) -> str:
    """Strip trailing ASCII spaces."""
    return text.rstrip(" ")


def is_comma_decimal() -> bool:
    """Return True if the process locale uses a comma as decimal separator."""
    return locale.localeconv().get("decimal_point") == ","


def print_number(number: float, fmt: str = "%f", comma_decimal: bool = False) -> str:
    """Format a floating point number as a SQL compatible literal.

    The number is formatted with the locale aware ``fmt``. When the locale
    uses a comma as decimal separator the first comma in the output is
    swapped for a period.

    Args:
        number: Value to format.
        fmt: printf-style format for a single float.
        comma_decimal: Whether the process locale uses a decimal comma.

    Returns:
        The formatted number.
    """
    text = locale.format_string(fmt, number)
    if comma_decimal:
        text = text.replace(",", ".", 1)
    return text
