"""
Utility modules for faultline.
"""

from faultline.utils.logging import (
    get_logger,
    setup_logging,
    JSONFormatter,
    log_error_registered,
    log_report_transition,
    log_error_with_context,
)
from faultline.utils.metrics import (
    ReportMetrics,
    emit_metric,
)
from faultline.utils.dev import DevHooks

__all__ = [
    "get_logger",
    "setup_logging",
    "JSONFormatter",
    "log_error_registered",
    "log_report_transition",
    "log_error_with_context",
    "ReportMetrics",
    "emit_metric",
    "DevHooks",
]
