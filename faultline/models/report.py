"""Reporting pipeline data models."""

from enum import Enum
from typing import Any, Optional, Tuple

from pydantic import BaseModel


class ReportState(str, Enum):
    """Lifecycle of a single report."""

    PENDING = "pending"
    GATED = "gated"
    THROTTLED = "throttled"
    CANCELLED = "cancelled"
    REPORTED = "reported"
    DONE = "done"


class GateOutcome(BaseModel):
    """Resolution of a report gate: proceed with extra data, or cancelled."""

    proceed: bool
    extra_args: Tuple[Any, ...] = ()
    reason: Optional[str] = None


class ReportResult(BaseModel):
    """Terminal decision for one report."""

    record_id: int
    error_type: str
    state: ReportState
    extra_args: Tuple[Any, ...] = ()
    delivered: bool = False
