"""
Error registry: creates, tags, stores and recovers error records.

Every record gets an identifier token embedded at the front of its message
(``__faultlineID_<id>__``). Some boundaries only preserve an error's message
text (``str(exc)`` crossing a thread, a re-raise as a different exception
type, a log line); the token lets the full record be looked up again from
that text alone. Where the exception object itself survives, callers should
use its ``record`` directly and treat the token as a fallback.

Records are kept for the lifetime of the registry; ids are positions in an
append-only list and are never reused.
"""

import os
import re
import traceback
from typing import Any, Callable, Dict, List, Optional, Union

from faultline.models import BuiltinErrorType, ErrorRecord, FactoryOptions
from faultline.services.errors import DuplicateFactoryError
from faultline.utils.logging import get_logger, log_error_registered
from faultline.utils.metrics import ReportMetrics

logger = get_logger(__name__)

TOKEN_PREFIX = "__faultlineID_"
TOKEN_SUFFIX = "__"
TOKEN_PATTERN = re.compile(r"__faultlineID_(\d+)__")

StackProvider = Callable[[], Optional[str]]
ReportSink = Callable[[ErrorRecord], Any]
OptionsArg = Union[FactoryOptions, Dict[str, Any], None]


class TrackedError(Exception):
    """
    Raisable carrier of one registered error record.

    ``str(error)`` is the record's current message, identifier token
    included. Use ``display_text`` for anything shown to a person.
    """

    def __init__(self, record: ErrorRecord):
        super().__init__(record.message)
        self.record = record

    @property
    def type(self) -> str:
        return self.record.type

    @property
    def display_text(self) -> str:
        """Message with the identifier token removed."""
        return strip_token(self.record.message)

    def refresh_message(self) -> None:
        """Sync the exception args after the record's message changed."""
        self.args = (self.record.message,)

    def __str__(self) -> str:
        return self.record.message


def make_token(error_id: int) -> str:
    return f"{TOKEN_PREFIX}{error_id}{TOKEN_SUFFIX}"


def strip_token(text: str) -> str:
    """Remove identifier tokens from text. Idempotent."""
    return TOKEN_PATTERN.sub("", text)


_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__))) + os.sep


def _is_internal_frame(filename: str) -> bool:
    return os.path.abspath(filename).startswith(_PACKAGE_DIR)


def default_stack_provider() -> Optional[str]:
    """Formatted stack of the code that asked for an error, minus faultline's own frames."""
    frames = [frame for frame in traceback.extract_stack() if not _is_internal_frame(frame.filename)]
    return "".join(traceback.format_list(frames)) if frames else None


def _options_dict(options: OptionsArg) -> Dict[str, Any]:
    if options is None:
        return {}
    if isinstance(options, FactoryOptions):
        return options.model_dump()
    return dict(options)


class ErrorFactory:
    """Creates records of one error type. Obtain through ``ErrorRegistry.create_factory``."""

    def __init__(self, registry: "ErrorRegistry", error_type: str, defaults: FactoryOptions):
        self.registry = registry
        self.type = error_type
        self.defaults = defaults
        self.__name__ = error_type

    def __call__(self, message: str, options: OptionsArg = None, **overrides: Any) -> TrackedError:
        """
        Create and register an error record.

        Args:
            message: Error message as supplied by the caller
            options: Per-call options merged over the factory defaults
            **overrides: Per-call options as keyword arguments

        Returns:
            The raisable error carrying the new record
        """
        merged = self.defaults.merged({**_options_dict(options), **overrides})
        return self.registry._create(self.type, str(message), merged)

    def __repr__(self) -> str:
        return f"ErrorFactory(type={self.type!r}, defaults={self.defaults!r})"


class ErrorRegistry:
    """
    Process-lifetime store of error records and the factories that make them.
    """

    def __init__(
        self,
        stack_provider: Optional[StackProvider] = None,
        report_sink: Optional[ReportSink] = None,
        default_options: Optional[FactoryOptions] = None,
        metrics: Optional[ReportMetrics] = None
    ):
        """
        Initialize an empty registry.

        Args:
            stack_provider: Returns a textual stack trace, or None
            report_sink: Receives records created with report_immediately
            default_options: Base options for factories created here
            metrics: Collector notified of every registration
        """
        self.stack_provider = stack_provider
        self.report_sink = report_sink
        self.default_options = default_options or FactoryOptions()
        self.metrics = metrics

        self._records: List[ErrorRecord] = []
        self._factories: Dict[str, ErrorFactory] = {}

    def register_builtin_factories(self) -> None:
        """Create the assertion, uncaught and generic error factories."""
        for error_type in BuiltinErrorType:
            self.create_factory(error_type.value)

    def create_factory(self, error_type: str, options: OptionsArg = None, **defaults: Any) -> ErrorFactory:
        """
        Register a factory for an error type.

        Args:
            error_type: Type tag for records made by the factory
            options: Default options for the factory
            **defaults: Default options as keyword arguments

        Returns:
            The new factory

        Raises:
            DuplicateFactoryError: If the type already has a factory
        """
        error_type = getattr(error_type, "value", error_type)
        if error_type in self._factories:
            raise DuplicateFactoryError(f"Error factory already exists for type '{error_type}'")

        factory_options = self.default_options.merged({**_options_dict(options), **defaults})
        factory = ErrorFactory(self, error_type, factory_options)
        self._factories[error_type] = factory

        logger.debug(
            f"Created error factory '{error_type}'",
            extra={"error_type": error_type, "options": factory_options.model_dump()}
        )
        return factory

    def make_error(self, error_type: str, message: str, options: OptionsArg = None, **overrides: Any) -> TrackedError:
        """
        Create an error of a type chosen at runtime.

        Unknown types produce a ``genericError`` whose message names the type
        that was asked for.
        """
        error_type = getattr(error_type, "value", error_type)
        factory = self._factories.get(error_type)
        if factory is None:
            message = f'[faultline.make_error] unknown error type\ntype = "{error_type}"\n{message}'
            factory = self._generic_factory()
        return factory(message, options, **overrides)

    def _generic_factory(self) -> ErrorFactory:
        generic = BuiltinErrorType.GENERIC.value
        if generic not in self._factories:
            self.create_factory(generic)
        return self._factories[generic]

    def _create(self, error_type: str, message: str, options: FactoryOptions) -> TrackedError:
        error_id = len(self._records)
        record = ErrorRecord(
            id=error_id,
            type=error_type,
            raw_message=message,
            display_message=make_token(error_id) + message,
            stack_trace=self._capture_stack(),
        )
        self._records.append(record)

        if self.metrics is not None:
            self.metrics.record_registration(error_type)
        log_error_registered(logger, error_id, error_type, options.report_immediately)

        if options.report_immediately:
            self.dispatch(record)

        return TrackedError(record)

    def dispatch(self, record: ErrorRecord) -> Any:
        """
        Forward a record to the report sink.

        Returns:
            Whatever the sink returns, or None when no sink is attached
        """
        if self.report_sink is None:
            logger.warning(
                "report_immediately set but no report sink is attached",
                extra={"error_id": record.id, "error_type": record.type}
            )
            return None
        return self.report_sink(record)

    def reports_immediately(self, error_type: str) -> bool:
        """Whether records of ``error_type`` are reported when created."""
        factory = self.get_factory(error_type)
        defaults = factory.defaults if factory is not None else self.default_options
        return defaults.report_immediately

    def _capture_stack(self) -> Optional[str]:
        if self.stack_provider is None:
            return None
        try:
            return self.stack_provider()
        except Exception as e:
            logger.debug(f"Stack capture failed: {e}")
            return None

    def recover(self, text: str) -> Optional[ErrorRecord]:
        """
        Find the record whose identifier token appears in ``text``.

        Args:
            text: Any text that may contain a token; the first token wins

        Returns:
            The record, or None if there is no token or the id is unknown
        """
        if not isinstance(text, str):
            return None
        match = TOKEN_PATTERN.search(text)
        if match is None:
            return None
        return self.get(int(match.group(1)))

    @staticmethod
    def strip_token(text: str) -> str:
        return strip_token(text)

    def get(self, error_id: int) -> Optional[ErrorRecord]:
        if 0 <= error_id < len(self._records):
            return self._records[error_id]
        return None

    def records(self) -> List[ErrorRecord]:
        return list(self._records)

    def has_factory(self, error_type: str) -> bool:
        return getattr(error_type, "value", error_type) in self._factories

    def get_factory(self, error_type: str) -> Optional[ErrorFactory]:
        return self._factories.get(getattr(error_type, "value", error_type))

    def factory_types(self) -> List[str]:
        return list(self._factories.keys())

    def __len__(self) -> int:
        return len(self._records)
