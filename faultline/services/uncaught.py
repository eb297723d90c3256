"""
Process-wide uncaught error integration.

Chains ``sys.excepthook`` and ``threading.excepthook`` so that errors nobody
caught are routed into a reporting pipeline before the previous hook runs.
Event loops can be hooked with ``install_loop_handler``.
"""

import asyncio
import sys
import threading
import traceback
from types import TracebackType
from typing import Any, Dict, Optional, Tuple, Type

from faultline.services.reporting import ReportingPipeline
from faultline.utils.logging import get_logger, log_error_with_context

logger = get_logger(__name__)

_previous_hooks: Dict[str, Any] = {}


def error_location(tb: Optional[TracebackType]) -> Tuple[Optional[str], Optional[int]]:
    """File name and line number of the innermost frame of a traceback."""
    if tb is None:
        return None, None
    frames = traceback.extract_tb(tb)
    if not frames:
        return None, None
    return frames[-1].filename, frames[-1].lineno


def notify_uncaught(pipeline: ReportingPipeline, error: BaseException) -> None:
    """Hand an uncaught error to the pipeline; never raises."""
    try:
        location, line = error_location(error.__traceback__)
        pipeline.handle_uncaught(str(error), location, line, error=error)
    except Exception as e:
        log_error_with_context(logger, "Failed to report uncaught error", e)


def install_excepthooks(pipeline: ReportingPipeline) -> None:
    """
    Route uncaught errors from the main thread and other threads into the pipeline.

    The hooks that were installed before are still called afterwards.
    Installing again replaces the pipeline without stacking hooks.
    """
    if not _previous_hooks:
        _previous_hooks["sys"] = sys.excepthook
        _previous_hooks["threading"] = threading.excepthook

    previous_sys_hook = _previous_hooks["sys"]
    previous_thread_hook = _previous_hooks["threading"]

    def sys_hook(exc_type: Type[BaseException], exc: BaseException, tb: Optional[TracebackType]) -> None:
        if isinstance(exc, Exception):
            notify_uncaught(pipeline, exc)
        previous_sys_hook(exc_type, exc, tb)

    def thread_hook(args: threading.ExceptHookArgs) -> None:
        if isinstance(args.exc_value, Exception):
            notify_uncaught(pipeline, args.exc_value)
        previous_thread_hook(args)

    sys.excepthook = sys_hook
    threading.excepthook = thread_hook
    logger.info("Uncaught error hooks installed")


def uninstall_excepthooks() -> None:
    """Restore the hooks that were active before ``install_excepthooks``."""
    if not _previous_hooks:
        return
    sys.excepthook = _previous_hooks.pop("sys")
    threading.excepthook = _previous_hooks.pop("threading")
    logger.info("Uncaught error hooks removed")


def install_loop_handler(pipeline: ReportingPipeline, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
    """
    Route errors reported by an event loop (e.g. unretrieved task exceptions)
    into the pipeline, then to the loop's default handler.
    """
    loop = loop or asyncio.get_running_loop()

    def handler(event_loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        error = context.get("exception")
        if isinstance(error, Exception):
            notify_uncaught(pipeline, error)
        else:
            try:
                pipeline.handle_uncaught(context.get("message", "Unhandled event loop error"))
            except Exception as e:
                log_error_with_context(logger, "Failed to report event loop error", e)
        event_loop.default_exception_handler(context)

    loop.set_exception_handler(handler)
