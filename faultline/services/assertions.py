"""
Assertion facility.

``check`` raises an ``assertionError`` record when its condition is falsy.
Message arguments are only turned into text when the check fails.
"""

from typing import Any, Optional

from faultline.config import Settings, settings as default_settings
from faultline.models import BuiltinErrorType
from faultline.services.error_registry import ErrorRegistry
from faultline.services.serializer import Serializer
from faultline.utils.dev import DevHooks
from faultline.utils.logging import get_logger

logger = get_logger(__name__)


class Assertions:
    """Raises classified assertion errors; optionally alerts or breaks in dev."""

    def __init__(
        self,
        registry: ErrorRegistry,
        serializer: Serializer,
        dev_hooks: Optional[DevHooks] = None,
        settings: Optional[Settings] = None
    ):
        self.registry = registry
        self.serializer = serializer
        self.dev_hooks = dev_hooks or DevHooks()
        self.settings = settings or default_settings

    def format_message(self, *message_args: Any) -> str:
        """Strings are used verbatim; everything else is serialized."""
        return "\n".join(
            arg if isinstance(arg, str) else self.serializer.serialize(arg)
            for arg in message_args
        )

    def check(self, condition: Any, *message_args: Any) -> None:
        """
        Raise an assertion error if ``condition`` is falsy.

        Args:
            condition: Value expected to be truthy
            *message_args: Describe the failure; evaluated only on failure

        Raises:
            TrackedError: An ``assertionError`` record
        """
        if condition:
            return

        message = self.format_message(*message_args)

        if self.settings.alert_on_assert_failure:
            self.dev_hooks.alert(message)
        if self.settings.debug_on_assert_failure:
            self.dev_hooks.debug()

        error = self.registry.make_error(BuiltinErrorType.ASSERTION.value, message)
        logger.debug(
            "Assertion failed",
            extra={"error_id": error.record.id, "error_type": error.record.type}
        )
        raise error

    def fail(self, *message_args: Any) -> None:
        """Same as ``check(False, *message_args)``."""
        self.check(False, *message_args)
