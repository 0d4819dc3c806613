"""Debug output channel for SQL tracing.

Supports a quiet mode (messages go to the ``sqlbind.trace`` logger at DEBUG
level) and a loud mode (messages are printed to stdout).
"""

import logging
from typing import Optional

from .config import DEBUG_MODES, get_debug_mode


class DebugUtil:
    """Manage debug output based on the debug mode setting.

    Supports two modes:
    - "quiet": Debug messages are logged only
    - "loud": Debug messages are printed to stdout
    """

    def __init__(self, mode: Optional[str] = None) -> None:
        """Initialize the mode from ``mode`` or SQLBIND_DEBUG_MODE.

        Args:
            mode: "quiet" or "loud". Read from the environment when None.
        """
        self._mode = "quiet"
        self.set_mode(mode if mode is not None else get_debug_mode())
        self._logger = logging.getLogger("sqlbind.trace")

    @property
    def mode(self) -> str:
        """Current debug mode ("quiet" or "loud")."""
        return self._mode

    def debug_message(self, *args: object) -> None:
        """Output a debug message according to the current mode.

        Args:
            *args: Message parts, joined with single spaces.
        """
        message = " ".join(str(arg) for arg in args)
        if not message:
            return
        if self._mode == "loud":
            print("[DEBUG]", message)
        else:
            self._logger.debug(message)

    def set_mode(self, mode: str) -> None:
        """Change the debug mode. Invalid values fall back to "quiet"."""
        self._mode = mode.lower() if mode.lower() in DEBUG_MODES else "quiet"

    def is_loud(self) -> bool:
        """Check if debug mode is set to loud."""
        return self._mode == "loud"
