"""
Metrics collection for the error registry and reporting pipeline.

Tracks:
- Errors registered per type
- Report outcomes per type and terminal state
- Reporter deliveries and failures
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from faultline.utils.logging import get_logger

logger = get_logger(__name__)


class ReportMetrics:
    """
    Counts what happens to errors as they move through faultline.
    """

    def __init__(self):
        self.started_at: datetime = datetime.now(timezone.utc)
        self.last_report_at: Optional[datetime] = None

        self.registered: Dict[str, int] = {}
        self.outcomes: Dict[str, Dict[str, int]] = {}
        self.delivered: int = 0
        self.reporter_failures: int = 0

    def record_registration(self, error_type: str) -> None:
        """
        Record that an error of the given type was registered.

        Args:
            error_type: Error type tag
        """
        self.registered[error_type] = self.registered.get(error_type, 0) + 1

    def record_outcome(self, error_type: str, state: str, delivered: bool = False) -> None:
        """
        Record the terminal state of one report.

        Args:
            error_type: Error type tag
            state: Terminal state ('reported', 'cancelled', 'throttled')
            delivered: Whether the external reporter accepted the report
        """
        per_type = self.outcomes.setdefault(error_type, {})
        per_type[state] = per_type.get(state, 0) + 1
        self.last_report_at = datetime.now(timezone.utc)
        if delivered:
            self.delivered += 1

    def record_reporter_failure(self) -> None:
        """Record that the external reporter raised."""
        self.reporter_failures += 1

    def count(self, state: str, error_type: Optional[str] = None) -> int:
        """
        Count reports that ended in a state, optionally for one type.

        Args:
            state: Terminal state
            error_type: Restrict to this error type

        Returns:
            Number of matching reports
        """
        if error_type is not None:
            return self.outcomes.get(error_type, {}).get(state, 0)
        return sum(per_type.get(state, 0) for per_type in self.outcomes.values())

    def get_summary(self) -> Dict[str, Any]:
        """
        Get summary of collected metrics.

        Returns:
            Dictionary of metrics
        """
        totals: Dict[str, int] = {}
        for per_type in self.outcomes.values():
            for state, value in per_type.items():
                totals[state] = totals.get(state, 0) + value

        return {
            "started_at": self.started_at.isoformat(),
            "last_report_at": self.last_report_at.isoformat() if self.last_report_at else None,
            "registered": dict(self.registered),
            "outcomes": {k: dict(v) for k, v in self.outcomes.items()},
            "totals": totals,
            "delivered": self.delivered,
            "reporter_failures": self.reporter_failures,
        }


def emit_metric(metric_name: str, value: float, **tags: Any) -> None:
    """
    Emit a metric as a log line.

    Args:
        metric_name: Metric name
        value: Metric value
        **tags: Metric tags/labels
    """
    logger.info(
        f"Metric: {metric_name}",
        extra={
            "metric_name": metric_name,
            "metric_value": value,
            "metric_tags": tags,
        }
    )
