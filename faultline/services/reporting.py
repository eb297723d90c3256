"""
Reporting pipeline.

Routes a registered error record to the handler for its type, waits for the
handler's ``before`` hook to resolve or reject a gate, then hands the record
to the external reporter and runs the handler's ``after`` hook.

Per report the states are:

    pending -> (throttled) -> gated -> cancelled | reported -> done

Rejecting the gate is the only way to cancel a report. There is no built-in
timeout; a ``before`` hook may impose one by rejecting after a delay.
Overlapping reports may reach the reporter in any order.

Reports submitted from code with no running event loop run on a background
loop owned by the pipeline, so the submitting thread never waits on a gate
and any number of those reports can be gated at once.
"""

import asyncio
import atexit
import concurrent.futures
import inspect
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Coroutine, Dict, Optional, Set, TypeVar, Union

from faultline.models import BuiltinErrorType, ErrorRecord, GateOutcome, ReportResult, ReportState
from faultline.services.error_registry import ErrorRegistry, TrackedError
from faultline.utils.logging import get_logger, log_error_with_context, log_report_transition
from faultline.utils.metrics import ReportMetrics, emit_metric

logger = get_logger(__name__)

Reporter = Callable[..., Union[None, Awaitable[None]]]
BeforeHook = Callable[["Gate"], Union[None, Awaitable[None]]]
AfterHook = Callable[[], Union[None, Awaitable[None]]]
Scheduled = Union[asyncio.Task, concurrent.futures.Future]

T = TypeVar("T")


class Gate:
    """
    Single-resolution, cancellable handoff between a ``before`` hook and the
    pipeline. The first call to ``resolve`` or ``reject`` wins.

    Either may be called from any thread; the outcome is delivered on the
    loop the gate was created on.
    """

    def __init__(self):
        self._loop = asyncio.get_running_loop()
        self._future: asyncio.Future = self._loop.create_future()
        self._lock = threading.Lock()
        self._settled = False

    def resolve(self, *extra_args: Any) -> bool:
        """
        Let the report proceed.

        Args:
            *extra_args: Passed to the reporter after the record

        Returns:
            True if this call settled the gate
        """
        return self._settle(GateOutcome(proceed=True, extra_args=extra_args))

    def reject(self, reason: Optional[str] = None) -> bool:
        """
        Cancel the report.

        Returns:
            True if this call settled the gate
        """
        return self._settle(GateOutcome(proceed=False, reason=reason))

    def _settle(self, outcome: GateOutcome) -> bool:
        with self._lock:
            if self._settled:
                return False
            self._settled = True

        if _running_loop() is self._loop:
            self._set_outcome(outcome)
            return True
        try:
            self._loop.call_soon_threadsafe(self._set_outcome, outcome)
        except RuntimeError as e:
            # Loop closed while the report was gated
            logger.debug(f"Gate settled after its loop closed: {e}")
            return False
        return True

    def _set_outcome(self, outcome: GateOutcome) -> None:
        if not self._future.done():
            self._future.set_result(outcome)

    @property
    def done(self) -> bool:
        return self._settled

    def __await__(self):
        return self._future.__await__()


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class BackgroundLoop:
    """
    Event loop on a daemon thread, started on first use.

    Runs reports submitted from code that has no event loop of its own, so
    the submitting thread never waits on a gate.
    """

    def __init__(self, name: str = "faultline-reports"):
        self.name = name
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def get_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if not self.running:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(target=self._run, args=(loop,), name=self.name, daemon=True)
                thread.start()
                self._loop, self._thread = loop, thread
                logger.debug("Background report loop started", extra={"thread": self.name})
            return self._loop

    @staticmethod
    def _run(loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            loop.close()

    def owns(self, loop: asyncio.AbstractEventLoop) -> bool:
        return self.running and loop is self._loop

    def schedule(self, coro: Coroutine[Any, Any, T]) -> "concurrent.futures.Future[T]":
        """Run a coroutine on the background loop and return its future."""
        return asyncio.run_coroutine_threadsafe(coro, self.get_loop())

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the loop; reports still waiting on a gate are abandoned."""
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop, self._thread = None, None
        if loop is None or thread is None or not thread.is_alive():
            return
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout)
        logger.debug("Background report loop stopped", extra={"thread": self.name})


def resolve_immediately(gate: Gate) -> None:
    gate.resolve()


def noop() -> None:
    pass


@dataclass
class ReportHandler:
    """Per error type hooks run around the external reporter."""

    before: Optional[BeforeHook] = resolve_immediately
    after: Optional[AfterHook] = noop


DEFAULT_HANDLER = ReportHandler()


class ThrottlePolicy(ABC):
    """Decides, before any handler runs, whether a record is reported at all."""

    @abstractmethod
    def should_report(self, record: ErrorRecord) -> bool:
        """
        Args:
            record: Record about to be reported

        Returns:
            False to drop the report as throttled
        """
        pass


class NoThrottle(ThrottlePolicy):
    """Reports everything."""

    def should_report(self, record: ErrorRecord) -> bool:
        return True


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class ReportingPipeline:
    """
    Routes error records through type-specific handlers to the reporter.
    """

    def __init__(
        self,
        registry: ErrorRegistry,
        reporter: Optional[Reporter] = None,
        throttle: Optional[ThrottlePolicy] = None,
        metrics: Optional[ReportMetrics] = None,
        shutdown_timeout: Optional[float] = 2.0
    ):
        """
        Initialize the pipeline.

        Args:
            registry: Registry used to classify uncaught errors
            reporter: Receives ``(record, *extra_args)``; reports are dropped
                when absent
            throttle: Policy consulted before handler lookup
            metrics: Collector for report outcomes
            shutdown_timeout: Seconds to wait at interpreter exit for reports
                submitted from synchronous code; None disables the wait
        """
        self.registry = registry
        self.reporter = reporter
        self.throttle = throttle or NoThrottle()
        self.metrics = metrics or ReportMetrics()

        self._handlers: Dict[str, ReportHandler] = {}
        self._pending: Set[asyncio.Task] = set()
        self._scheduled: Set[concurrent.futures.Future] = set()
        self._scheduled_lock = threading.Lock()
        self._background = BackgroundLoop()
        self._shutdown_timeout = shutdown_timeout
        self._exit_hook_registered = False

    def set_reporter(self, reporter: Optional[Reporter]) -> None:
        self.reporter = reporter

    def add_handler(
        self,
        error_type: str,
        before: Optional[BeforeHook] = None,
        after: Optional[AfterHook] = None
    ) -> ReportHandler:
        """
        Register or replace the handler for an error type.

        Hooks left out fall back to the default handler's.
        """
        error_type = getattr(error_type, "value", error_type)
        handler = ReportHandler(
            before=before if before is not None else DEFAULT_HANDLER.before,
            after=after if after is not None else DEFAULT_HANDLER.after,
        )
        self._handlers[error_type] = handler
        logger.debug(f"Handler registered for '{error_type}'", extra={"error_type": error_type})
        return handler

    def get_handler(self, error_type: str) -> ReportHandler:
        """Handler for ``error_type``, or the default handler."""
        try:
            return self._handlers.get(error_type) or DEFAULT_HANDLER
        except Exception as e:
            logger.warning(f"Handler lookup failed, using default: {e}")
            return DEFAULT_HANDLER

    async def report(self, record: ErrorRecord) -> ReportResult:
        """
        Run one record through throttling, gating, the reporter and ``after``.

        Args:
            record: Registered error record

        Returns:
            The terminal decision for this report
        """
        log_report_transition(logger, record.id, record.type, ReportState.PENDING.value)

        if not self._should_report(record):
            return self._finish(record, ReportState.THROTTLED, reason="throttled")

        handler = self.get_handler(record.type)
        gate = Gate()
        log_report_transition(logger, record.id, record.type, ReportState.GATED.value)

        if callable(handler.before):
            try:
                await _maybe_await(handler.before(gate))
            except Exception as e:
                log_error_with_context(
                    logger, "Report before hook failed", e,
                    error_id=record.id, error_type=record.type
                )
                gate.reject(f"before hook failed: {e}")
        else:
            gate.resolve()

        outcome: GateOutcome = await gate
        if not outcome.proceed:
            return self._finish(record, ReportState.CANCELLED, reason=outcome.reason)

        delivered = await self._deliver(record, outcome.extra_args)

        if callable(handler.after):
            try:
                await _maybe_await(handler.after())
            except Exception as e:
                log_error_with_context(
                    logger, "Report after hook failed", e,
                    error_id=record.id, error_type=record.type
                )

        return self._finish(record, ReportState.REPORTED, extra_args=outcome.extra_args, delivered=delivered)

    def _should_report(self, record: ErrorRecord) -> bool:
        try:
            return bool(self.throttle.should_report(record))
        except Exception as e:
            log_error_with_context(
                logger, "Throttle policy failed, reporting anyway", e,
                error_id=record.id, error_type=record.type
            )
            return True

    async def _deliver(self, record: ErrorRecord, extra_args: tuple) -> bool:
        if self.reporter is None:
            logger.debug(
                "No reporter configured, dropping report",
                extra={"error_id": record.id, "error_type": record.type}
            )
            return False
        try:
            await _maybe_await(self.reporter(record, *extra_args))
            return True
        except Exception as e:
            self.metrics.record_reporter_failure()
            log_error_with_context(
                logger, "Reporter failed", e,
                error_id=record.id, error_type=record.type
            )
            return False

    def _finish(
        self,
        record: ErrorRecord,
        state: ReportState,
        extra_args: tuple = (),
        delivered: bool = False,
        reason: Optional[str] = None
    ) -> ReportResult:
        log_report_transition(logger, record.id, record.type, state.value, reason=reason)
        self.metrics.record_outcome(record.type, state.value, delivered=delivered)
        emit_metric("faultline.report", 1, error_type=record.type, state=state.value, delivered=delivered)
        log_report_transition(logger, record.id, record.type, ReportState.DONE.value)
        return ReportResult(
            record_id=record.id,
            error_type=record.type,
            state=state,
            extra_args=extra_args,
            delivered=delivered,
        )

    def submit(self, record: ErrorRecord) -> Scheduled:
        """
        Start reporting a record without waiting for it.

        Inside a running event loop the report is scheduled as a task on that
        loop. Otherwise it is handed to the pipeline's background loop, so the
        calling thread never waits on a gate.

        Returns:
            The task, or a ``concurrent.futures.Future`` for background
            reports; either resolves to the ``ReportResult``
        """
        loop = _running_loop()
        if loop is not None and not self._background.owns(loop):
            task = loop.create_task(self.report(record))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return task

        self._register_exit_hook()
        future = self._background.schedule(self.report(record))
        with self._scheduled_lock:
            self._scheduled.add(future)
        future.add_done_callback(self._forget_scheduled)
        return future

    def _forget_scheduled(self, future: concurrent.futures.Future) -> None:
        with self._scheduled_lock:
            self._scheduled.discard(future)

    def _register_exit_hook(self) -> None:
        if self._exit_hook_registered or self._shutdown_timeout is None:
            return
        atexit.register(self.flush, self._shutdown_timeout)
        self._exit_hook_registered = True

    def _scheduled_snapshot(self) -> list:
        with self._scheduled_lock:
            return list(self._scheduled)

    async def wait_pending(self) -> None:
        """Wait for every report started by ``submit`` to finish."""
        while self._pending or self._scheduled_snapshot():
            awaitables = [
                *self._pending,
                *(asyncio.wrap_future(future) for future in self._scheduled_snapshot()),
            ]
            await asyncio.gather(*awaitables, return_exceptions=True)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Block until background reports finish, from synchronous code.

        Args:
            timeout: Seconds to wait; None waits indefinitely

        Returns:
            True if nothing is left waiting
        """
        futures = self._scheduled_snapshot()
        if not futures:
            return True
        _, not_done = concurrent.futures.wait(futures, timeout=timeout)
        if not_done:
            logger.warning(
                f"{len(not_done)} reports still waiting on a gate",
                extra={"pending_reports": len(not_done)}
            )
        return not not_done

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop the background loop, abandoning reports still gated."""
        self._background.stop(timeout)
        if self._exit_hook_registered:
            atexit.unregister(self.flush)
            self._exit_hook_registered = False

    def handle_uncaught(
        self,
        message: str,
        location: Optional[str] = None,
        line: Optional[int] = None,
        error: Optional[BaseException] = None
    ) -> Scheduled:
        """
        Report an error nobody caught.

        The error's own record is used when it carries one; otherwise the
        record is recovered from the message text; otherwise a new
        ``javascriptError`` record is made from the message, location and line.
        """
        record = error.record if isinstance(error, TrackedError) else None
        if record is None:
            record = self.registry.recover(message)
        if record is None:
            text = "\n".join(str(part) for part in (message, location, line) if part is not None)
            record = self.registry.make_error(BuiltinErrorType.UNCAUGHT.value, text).record

        logger.info(
            "Uncaught error",
            extra={"error_id": record.id, "error_type": record.type, "location": location, "line": line}
        )
        return self.submit(record)
