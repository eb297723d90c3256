"""Data models for faultline."""

from .error import SCHEMA_VERSION, BuiltinErrorType, ErrorRecord, FactoryOptions
from .report import GateOutcome, ReportResult, ReportState

__all__ = [
    # Error models
    "SCHEMA_VERSION",
    "BuiltinErrorType",
    "ErrorRecord",
    "FactoryOptions",
    # Report models
    "GateOutcome",
    "ReportResult",
    "ReportState",
]
