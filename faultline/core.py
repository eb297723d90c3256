"""
Faultline facade.

Wires one translator registry, serializer, error registry, reporting
pipeline, audit wrapper and assertion facility together. Components can also
be built and passed around individually; the facade only saves the wiring.
"""

from typing import Any, Callable, List, Optional, Union

from faultline.config import Settings, settings as default_settings
from faultline.models import ErrorRecord, FactoryOptions, ReportResult
from faultline.services.assertions import Assertions
from faultline.services.audit import AuditWrapper
from faultline.services.error_registry import (
    ErrorFactory,
    ErrorRegistry,
    StackProvider,
    TrackedError,
    default_stack_provider,
    strip_token,
)
from faultline.services.reporting import (
    AfterHook,
    BeforeHook,
    ReportHandler,
    Reporter,
    ReportingPipeline,
    Scheduled,
    ThrottlePolicy,
)
from faultline.services.serializer import Serializer
from faultline.services.translators import Translator, TranslatorRegistry
from faultline.services.uncaught import install_excepthooks, uninstall_excepthooks
from faultline.utils.dev import DevHooks
from faultline.utils.introspection import MemberPredicate
from faultline.utils.logging import get_logger, setup_logging
from faultline.utils.metrics import ReportMetrics

logger = get_logger(__name__)


class Faultline:
    """
    One fully wired set of faultline components.

    Example:
        faultline = Faultline(reporter=send_to_tracker)
        network_error = faultline.create_factory("networkError")
        raise network_error("timeout")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        reporter: Optional[Reporter] = None,
        throttle: Optional[ThrottlePolicy] = None,
        stack_provider: Optional[StackProvider] = None,
        dev_hooks: Optional[DevHooks] = None,
        translators: Optional[TranslatorRegistry] = None
    ):
        """
        Build and wire the components.

        Args:
            settings: Configuration; the environment-loaded settings by default
            reporter: External reporter receiving ``(record, *extra_args)``
            throttle: Policy deciding whether a record is reported at all
            stack_provider: Stack capture; defaults to the traceback based
                provider when ``capture_stack_traces`` is on
            dev_hooks: Alert/breakpoint/reload side effects
            translators: Translator registry; the defaults when omitted
        """
        self.settings = settings or default_settings

        if stack_provider is None and self.settings.capture_stack_traces:
            stack_provider = default_stack_provider

        self.metrics = ReportMetrics()
        self.translators = translators if translators is not None else TranslatorRegistry.with_default_translators()
        self.serializer = Serializer(self.translators)
        self.registry = ErrorRegistry(
            stack_provider=stack_provider,
            default_options=FactoryOptions(report_immediately=self.settings.report_immediately),
            metrics=self.metrics,
        )
        self.pipeline = ReportingPipeline(
            self.registry,
            reporter=reporter,
            throttle=throttle,
            metrics=self.metrics,
            shutdown_timeout=self.settings.shutdown_flush_timeout,
        )
        self.registry.report_sink = self.pipeline.submit
        self.registry.register_builtin_factories()

        self.dev = dev_hooks or DevHooks()
        self.auditor = AuditWrapper(self.registry, self.serializer)
        self.assertions = Assertions(self.registry, self.serializer, self.dev, self.settings)

        self._installed = False
        if self.settings.install_excepthooks:
            self.install()

    # Error registry

    def create_factory(self, error_type: str, options: Any = None, **defaults: Any) -> ErrorFactory:
        return self.registry.create_factory(error_type, options, **defaults)

    def make_error(self, error_type: str, message: str, options: Any = None, **overrides: Any) -> TrackedError:
        return self.registry.make_error(error_type, message, options, **overrides)

    def recover(self, text: str) -> Optional[ErrorRecord]:
        return self.registry.recover(text)

    def strip_token(self, text: str) -> str:
        return strip_token(text)

    # Serialization

    def serialize(self, value: Any) -> str:
        return self.serializer.serialize(value)

    def register_translator(
        self,
        name: str,
        predicate: Callable[[Any], bool],
        transform: Callable[[Any], Any]
    ) -> Translator:
        return self.translators.register(name, predicate, transform)

    # Auditing

    def wrap(self, fn: Callable, label: str, context: Any = None) -> Callable:
        return self.auditor.wrap(fn, label, context)

    def wrap_all(self, obj: Any, prefix: str = "", selector: Optional[MemberPredicate] = None) -> List[str]:
        return self.auditor.wrap_all(obj, prefix, selector)

    # Assertions

    def check(self, condition: Any, *message_args: Any) -> None:
        self.assertions.check(condition, *message_args)

    def fail(self, *message_args: Any) -> None:
        self.assertions.fail(*message_args)

    # Reporting

    def add_handler(
        self,
        error_type: str,
        before: Optional[BeforeHook] = None,
        after: Optional[AfterHook] = None
    ) -> ReportHandler:
        return self.pipeline.add_handler(error_type, before, after)

    def set_reporter(self, reporter: Optional[Reporter]) -> None:
        self.pipeline.set_reporter(reporter)

    async def report(self, error: Union[TrackedError, ErrorRecord]) -> ReportResult:
        return await self.pipeline.report(_record_of(error))

    def submit(self, error: Union[TrackedError, ErrorRecord]) -> Scheduled:
        return self.pipeline.submit(_record_of(error))

    def handle_uncaught(
        self,
        message: str,
        location: Optional[str] = None,
        line: Optional[int] = None
    ) -> Scheduled:
        return self.pipeline.handle_uncaught(message, location, line)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until reports submitted from synchronous code finish."""
        return self.pipeline.flush(timeout)

    async def wait_pending(self) -> None:
        await self.pipeline.wait_pending()

    def install(self) -> None:
        """Route process-wide uncaught errors into this instance's pipeline."""
        install_excepthooks(self.pipeline)
        self._installed = True

    def uninstall(self) -> None:
        if self._installed:
            uninstall_excepthooks()
            self._installed = False

    def close(self, timeout: Optional[float] = None) -> None:
        """Uninstall hooks and stop the background report loop."""
        self.uninstall()
        self.pipeline.close(timeout)


def _record_of(error: Union[TrackedError, ErrorRecord]) -> ErrorRecord:
    return error.record if isinstance(error, TrackedError) else error


_faultline: Optional[Faultline] = None


def get_faultline() -> Faultline:
    """
    Get the process-wide faultline instance, building it on first use.

    The first call also configures faultline's own log output from the
    loaded settings.

    Returns:
        Faultline instance
    """
    global _faultline
    if _faultline is None:
        setup_logging(default_settings.log_level)
        _faultline = Faultline()
        logger.info("Faultline initialized")
    return _faultline


def reset_faultline() -> None:
    """Drop the process-wide instance, closing it first."""
    global _faultline
    if _faultline is not None:
        _faultline.close()
    _faultline = None
