"""
Faultline: error capture, classification and reporting.

Typical usage:

    from faultline import get_faultline

    faultline = get_faultline()
    faultline.set_reporter(send_to_tracker)
    faultline.install()

    network_error = faultline.create_factory("networkError")
    raise network_error("timeout")
"""

__version__ = "0.1.0"

from faultline.core import Faultline, get_faultline, reset_faultline
from faultline.models import (
    BuiltinErrorType,
    ErrorRecord,
    FactoryOptions,
    GateOutcome,
    ReportResult,
    ReportState,
)
from faultline.services import (
    AuditWrapper,
    DuplicateFactoryError,
    DuplicateRegistrationError,
    DuplicateTranslatorError,
    ErrorRegistry,
    Gate,
    NoThrottle,
    ReportHandler,
    ReportingPipeline,
    Serializer,
    ThrottlePolicy,
    TrackedError,
    TranslatorRegistry,
    UNDEFINED,
)

__all__ = [
    "__version__",
    "Faultline",
    "get_faultline",
    "reset_faultline",
    "BuiltinErrorType",
    "ErrorRecord",
    "FactoryOptions",
    "GateOutcome",
    "ReportResult",
    "ReportState",
    "AuditWrapper",
    "DuplicateFactoryError",
    "DuplicateRegistrationError",
    "DuplicateTranslatorError",
    "ErrorRegistry",
    "Gate",
    "NoThrottle",
    "ReportHandler",
    "ReportingPipeline",
    "Serializer",
    "ThrottlePolicy",
    "TrackedError",
    "TranslatorRegistry",
    "UNDEFINED",
]
