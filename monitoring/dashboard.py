"""
Read-only crisis dashboard: active and recent crises, statistics, trends and
paginated history for a workspace.
"""

import logging
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd

from db.enums import OPEN_STATUSES, CrisisSeverity, CrisisStatus, CrisisType

from .clock import utcnow
from .errors import ValidationError
from .models import Crisis
from .store import IncidentStore

logger = logging.getLogger(__name__)

ACTIVE_PAGE_SIZE = 10
RECENT_PAGE_SIZE = 20
TREND_DAYS = 30
RESOLVED_STATUSES = (CrisisStatus.RESOLVED, CrisisStatus.CLOSED)


class CrisisDashboard:
    """Builds dashboard payloads from the incident store. Never writes."""

    def __init__(self, incident_store: Optional[IncidentStore] = None, clock: Callable = utcnow):
        self.incident_store = incident_store or IncidentStore()
        self.clock = clock

    def get_crisis_dashboard(self, workspace_id: str) -> Dict[str, Any]:
        """
        Summarize the crises of a workspace.

        Returns:
            Dictionary with:
              - active_crises: open crises, most recently detected first (max 10)
              - recent_crises: latest crises in any status (max 20)
              - statistics: totals, active/resolved counts, by_severity, by_type,
                critical_crises
              - trends: mean minutes to acknowledge and to resolve over resolved
                crises, and zero-filled daily counts for the trailing 30 days
        """
        crises = self.incident_store.list_crises(workspace_id)
        df = self._to_frame(crises)

        active = [crisis for crisis in crises if crisis.is_open]
        logger.debug(
            f"Dashboard for workspace {workspace_id}: {len(crises)} crises, {len(active)} open"
        )

        return {
            "workspace_id": workspace_id,
            "active_crises": [crisis.to_dict() for crisis in active[:ACTIVE_PAGE_SIZE]],
            "recent_crises": [crisis.to_dict() for crisis in crises[:RECENT_PAGE_SIZE]],
            "statistics": self._statistics(df),
            "trends": self._trends(df),
        }

    def get_crisis_history(
        self, workspace_id: str, limit: int = 50, offset: int = 0
    ) -> Dict[str, Any]:
        """
        Page through all crises of a workspace, most recently detected first.

        Returns:
            Dictionary with crises, total and has_more
        """
        if limit <= 0:
            raise ValidationError("limit", "limit must be positive", limit)
        if offset < 0:
            raise ValidationError("offset", "offset must not be negative", offset)

        crises = self.incident_store.list_crises(workspace_id, limit=limit, offset=offset)
        total = self.incident_store.count_crises(workspace_id)

        return {
            "crises": [crisis.to_dict() for crisis in crises],
            "total": total,
            "has_more": offset + len(crises) < total,
        }

    @staticmethod
    def _to_frame(crises: Sequence[Crisis]) -> pd.DataFrame:
        df = pd.DataFrame(
            [
                {
                    "severity": crisis.severity.value,
                    "type": crisis.type.value,
                    "status": crisis.status.value,
                    "detected_at": crisis.detected_at,
                    "acknowledged_at": crisis.acknowledged_at,
                    "resolved_at": crisis.resolved_at,
                }
                for crisis in crises
            ],
            columns=["severity", "type", "status", "detected_at", "acknowledged_at", "resolved_at"],
        )
        for column in ("detected_at", "acknowledged_at", "resolved_at"):
            df[column] = pd.to_datetime(df[column], utc=True)
        return df

    @staticmethod
    def _statistics(df: pd.DataFrame) -> Dict[str, Any]:
        open_values = [status.value for status in OPEN_STATUSES]
        resolved_values = [status.value for status in RESOLVED_STATUSES]

        by_severity = df["severity"].value_counts()
        by_type = df["type"].value_counts()

        return {
            "total_crises": len(df),
            "active_crises": int(df["status"].isin(open_values).sum()),
            "resolved_crises": int(df["status"].isin(resolved_values).sum()),
            "by_severity": {
                severity.value: int(by_severity.get(severity.value, 0))
                for severity in CrisisSeverity
            },
            "by_type": {
                crisis_type.value: int(by_type.get(crisis_type.value, 0))
                for crisis_type in CrisisType
            },
            "critical_crises": int((df["severity"] == CrisisSeverity.CRITICAL.value).sum()),
        }

    def _trends(self, df: pd.DataFrame) -> Dict[str, Any]:
        resolved = df[df["status"].isin([status.value for status in RESOLVED_STATUSES])]

        return {
            "mean_time_to_acknowledge_minutes": _mean_minutes(
                resolved["acknowledged_at"] - resolved["detected_at"]
            ),
            "mean_time_to_resolve_minutes": _mean_minutes(
                resolved["resolved_at"] - resolved["detected_at"]
            ),
            "daily_counts": self._daily_counts(df),
        }

    def _daily_counts(self, df: pd.DataFrame) -> List[Dict[str, Any]]:
        today = pd.Timestamp(self.clock()).tz_convert("UTC").normalize()
        days = [day.strftime("%Y-%m-%d") for day in pd.date_range(end=today, periods=TREND_DAYS, freq="D")]

        window = df[df["detected_at"] >= today - timedelta(days=TREND_DAYS - 1)]
        counts = window["detected_at"].dt.strftime("%Y-%m-%d").value_counts().reindex(days, fill_value=0)

        return [{"date": day, "count": int(count)} for day, count in counts.items()]


def _mean_minutes(durations: pd.Series) -> Optional[float]:
    durations = durations.dropna()
    if durations.empty:
        return None
    return round(durations.dt.total_seconds().mean() / 60, 2)
