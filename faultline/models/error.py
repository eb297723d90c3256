"""Error record data models."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

SCHEMA_VERSION = "0.1"


class BuiltinErrorType(str, Enum):
    """Error types registered by every error registry."""

    ASSERTION = "assertionError"
    UNCAUGHT = "javascriptError"
    GENERIC = "genericError"


class FactoryOptions(BaseModel):
    """Options carried by an error factory and overridable per call."""

    report_immediately: bool = False

    def merged(self, overrides: Optional[dict] = None) -> "FactoryOptions":
        """Return a copy with the given overrides applied."""
        return FactoryOptions(**{**self.model_dump(), **(overrides or {})})


class ErrorRecord(BaseModel):
    """Classified, registered representation of one error occurrence."""

    id: int = Field(ge=0)
    type: str
    raw_message: str
    display_message: str
    stack_trace: Optional[str] = None
    schema_version: str = SCHEMA_VERSION
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    audit_trail: List[str] = []

    @property
    def message(self) -> str:
        """Display message followed by any audit wrapper context."""
        return "\n".join([self.display_message, *self.audit_trail])
