"""
Development helpers.

Thin wrappers around side effects that are awkward to trigger or mock
directly (debugger breakpoints, alerts, restarting the process).
"""

import os
import sys

from faultline.utils.logging import get_logger

logger = get_logger(__name__)


class DevHooks:
    """Side-effecting hooks used by assertions and report handlers."""

    def alert(self, message: str) -> None:
        """Show a message to whoever is watching the console."""
        sys.stderr.write(f"[faultline] {message}\n")
        sys.stderr.flush()

    def debug(self) -> None:
        """Drop into the debugger."""
        breakpoint()  # intentional

    def reload(self) -> None:
        """Restart the current process with the same arguments."""
        logger.warning("Reloading process", extra={"argv": sys.argv})
        os.execv(sys.executable, [sys.executable, *sys.argv])
