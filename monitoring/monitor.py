"""
Crisis Monitor

Runs one detection pass for a workspace:
1. Fetch the current and baseline windows of mentions
2. Aggregate both windows and run the sentiment and volume detectors
3. Score the current window and decide whether it warrants a crisis
4. Open a new crisis, or refresh (and possibly escalate) the one already open
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from db.enums import AlertReason, CrisisSeverity, CrisisType

from .aggregator import WindowAggregate, aggregate, summarize_mentions
from .clock import utcnow
from .detectors import AnomalyResult, detect_sentiment_anomaly, detect_volume_anomaly
from .errors import CrisisConflictError, ValidationError
from .locks import KeyedLocks
from .models import Crisis, CrisisNotification
from .options import MonitorOptions
from .scoring import (
    CrisisScoreInputs,
    calculate_crisis_score,
    severity_floor,
    severity_from_score,
)
from .store import IncidentStore, MentionStore, NewCrisis

logger = logging.getLogger(__name__)

OPEN_CRISIS_ATTEMPTS = 2

TYPE_LABELS = {
    CrisisType.SENTIMENT: "Sentiment Spike",
    CrisisType.VOLUME: "Volume Surge",
    CrisisType.MIXED: "Sentiment Spike and Volume Surge",
}


class MonitorOutcome(Enum):
    INSUFFICIENT_DATA = "insufficient_data"
    NO_ANOMALY = "no_anomaly"
    BELOW_THRESHOLD = "below_threshold"
    CREATED = "created"
    EXISTING_OPEN = "existing_open"


@dataclass(frozen=True)
class MonitorResult:
    """Outcome of one monitoring pass."""

    crisis_detected: bool
    outcome: MonitorOutcome
    metrics: Dict[str, Any] = field(default_factory=dict)
    crisis: Optional[Crisis] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "crisis_detected": self.crisis_detected,
            "outcome": self.outcome.value,
            "metrics": self.metrics,
            "crisis": self.crisis.to_dict() if self.crisis else None,
        }


class CrisisMonitor:
    """Detects sentiment and volume crises for a workspace and records them."""

    def __init__(
        self,
        mention_store: Optional[MentionStore] = None,
        incident_store: Optional[IncidentStore] = None,
        notifier: Optional[Callable[[CrisisNotification], None]] = None,
        clock: Callable = utcnow,
        lock_timeout: float = 30.0,
    ):
        """
        Initialize the crisis monitor.

        Args:
            mention_store: Source of mentions, defaults to a MentionStore on SessionLocal
            incident_store: Crisis persistence, defaults to an IncidentStore on SessionLocal
            notifier: Optional callable receiving a CrisisNotification after a
                crisis is created or escalated
            clock: Returns the current aware UTC time
            lock_timeout: Seconds to wait for the per-workspace lock
        """
        self.mention_store = mention_store or MentionStore()
        self.incident_store = incident_store or IncidentStore()
        self.notifier = notifier
        self.clock = clock
        self._workspace_locks = KeyedLocks(timeout=lock_timeout)

    def monitor_for_crisis(
        self,
        workspace_id: str,
        options: Union[MonitorOptions, Mapping[str, Any], None] = None,
    ) -> MonitorResult:
        """
        Run one detection pass for a workspace.

        Safe to call repeatedly and concurrently for the same workspace: the
        open-crisis check and the insert run under a per-workspace lock and are
        backed by a unique constraint in the incident store.

        Args:
            workspace_id: Workspace to monitor
            options: MonitorOptions or a mapping of option overrides

        Returns:
            MonitorResult; ``crisis_detected`` is False for insufficient data,
            no anomaly, or a score below the detection floor

        Raises:
            ValidationError: If the workspace id or options are malformed
            StoreUnavailableError: If a store call times out or fails to connect
            CrisisConflictError: If the workspace lock times out, or the open crisis
                is closed under every refresh attempt
        """
        if not workspace_id:
            raise ValidationError("workspace_id", "workspace_id is required", workspace_id)
        if not isinstance(options, MonitorOptions):
            options = MonitorOptions.from_mapping(options)

        now = self.clock()
        current_start = now - timedelta(minutes=options.current_window_minutes)
        baseline_start = current_start - timedelta(minutes=options.baseline_window_minutes)

        current_mentions = self.mention_store.list_mentions(
            workspace_id, current_start, now, options.platforms
        )
        baseline_mentions = self.mention_store.list_mentions(
            workspace_id, baseline_start, current_start, options.platforms
        )

        current = aggregate(current_mentions)
        baseline = aggregate(baseline_mentions)

        metrics: Dict[str, Any] = {
            "window": {
                "current_start": current_start.isoformat(),
                "baseline_start": baseline_start.isoformat(),
                "end": now.isoformat(),
            },
            "current": current.to_dict(),
            "baseline": baseline.to_dict(),
        }

        total = current.count + baseline.count
        if total < options.min_mentions or current.count < options.min_current_mentions:
            logger.debug(
                f"Insufficient data for workspace {workspace_id}: "
                f"{current.count} current, {baseline.count} baseline mentions"
            )
            return MonitorResult(False, MonitorOutcome.INSUFFICIENT_DATA, metrics)

        sentiment, volume = self._detect(current, baseline, options)
        volume_change = volume.details["change"]

        score = calculate_crisis_score(
            CrisisScoreInputs(
                sentiment_score=current.mean_sentiment_score,
                sentiment_change=sentiment.details["delta"],
                volume_change=volume_change,
                negative_mention_percentage=current.negative_mention_percentage,
                influencer_involvement=current.influencer_count,
                total_mentions=current.count,
            )
        )
        severity = severity_from_score(score)

        metrics.update(
            {
                "sentiment": sentiment.to_dict(),
                "volume": volume.to_dict(),
                "crisis_score": score,
                "severity": severity.value,
            }
        )

        if not (sentiment.is_anomaly or volume.is_anomaly):
            logger.debug(f"No anomaly for workspace {workspace_id} (score {score:.2f})")
            return MonitorResult(False, MonitorOutcome.NO_ANOMALY, metrics)

        if score < severity_floor(options.min_severity):
            logger.info(
                f"Anomaly for workspace {workspace_id} below detection floor: "
                f"score {score:.2f} < {options.min_severity.value}"
            )
            return MonitorResult(False, MonitorOutcome.BELOW_THRESHOLD, metrics)

        crisis_type = self._crisis_type(sentiment, volume)
        context = summarize_mentions(current_mentions)
        snapshot = {**metrics, "context": context}

        with self._workspace_locks.hold(workspace_id, workspace_id=workspace_id):
            # An operator may close the open crisis between lookup and refresh
            for _ in range(OPEN_CRISIS_ATTEMPTS):
                existing = self.incident_store.find_open_crisis(
                    workspace_id, crisis_type.overlapping()
                )
                if existing is None:
                    crisis, created = self.incident_store.create_crisis(
                        NewCrisis(
                            workspace_id=workspace_id,
                            title=self._title(crisis_type, severity, context["keywords"]),
                            description=self._description(
                                current, sentiment.details["delta"], volume_change
                            ),
                            type=crisis_type,
                            severity=severity,
                            crisis_score=score,
                            detected_at=now,
                            mention_volume=current.count,
                            metrics_snapshot=snapshot,
                        )
                    )
                    if created:
                        logger.warning(
                            f"Crisis detected for workspace {workspace_id}: {crisis.title} "
                            f"(score {score:.2f})"
                        )
                        self._notify(crisis, AlertReason.CREATED)
                        return MonitorResult(True, MonitorOutcome.CREATED, metrics, crisis)
                    existing = crisis

                crisis = self._refresh(existing, snapshot, severity, score)
                if crisis is not None:
                    return MonitorResult(True, MonitorOutcome.EXISTING_OPEN, metrics, crisis)
                logger.info(
                    f"Crisis {existing.id} closed before refresh, "
                    f"re-checking workspace {workspace_id}"
                )

        raise CrisisConflictError(
            "Open crisis kept closing while being refreshed", workspace_id=workspace_id
        )

    def _detect(self, current: WindowAggregate, baseline: WindowAggregate, options: MonitorOptions):
        sentiment = detect_sentiment_anomaly(
            current.mean_sentiment_score,
            baseline.mean_sentiment_score,
            options.sentiment_threshold,
            options.critical_sentiment_ratio,
        )

        # Compare mention rates, not raw counts, when the windows differ in length
        baseline_volume = (
            baseline.count * options.current_window_minutes / options.baseline_window_minutes
        )
        volume = detect_volume_anomaly(
            current.count,
            baseline_volume,
            options.volume_threshold_percent,
            options.critical_volume_multiplier,
        )
        return sentiment, volume

    def _refresh(
        self, existing: Crisis, snapshot: Dict[str, Any], severity: CrisisSeverity, score: float
    ) -> Optional[Crisis]:
        # Severity only ever moves up while a crisis is open
        escalate_to = None
        if severity.rank > existing.severity.rank:
            escalate_to = (severity, score)

        crisis = self.incident_store.refresh_open_crisis(
            existing.id, snapshot, escalate_to=escalate_to, emitted_at=self.clock()
        )
        if crisis is None:
            return None

        if escalate_to:
            logger.warning(
                f"Crisis {crisis.id} escalated from {existing.severity.value} "
                f"to {severity.value} (score {score:.2f})"
            )
            self._notify(crisis, AlertReason.ESCALATED)
        else:
            logger.info(f"Crisis {crisis.id} still open, metrics refreshed")
        return crisis

    def _notify(self, crisis: Crisis, reason: AlertReason) -> None:
        if self.notifier is None:
            return

        notification = CrisisNotification(
            crisis_id=crisis.id,
            workspace_id=crisis.workspace_id,
            severity=crisis.severity,
            crisis_score=crisis.crisis_score,
            type=crisis.type,
            reason=reason,
        )
        try:
            self.notifier(notification)
        except Exception as e:
            # The crisis_alerts row is already committed and remains the delivery record
            logger.error(f"Notifier failed for crisis {crisis.id} ({reason.value}): {e}")

    @staticmethod
    def _crisis_type(sentiment: AnomalyResult, volume: AnomalyResult) -> CrisisType:
        if sentiment.is_anomaly and volume.is_anomaly:
            return CrisisType.MIXED
        if sentiment.is_anomaly:
            return CrisisType.SENTIMENT
        return CrisisType.VOLUME

    @staticmethod
    def _title(crisis_type: CrisisType, severity: CrisisSeverity, keywords) -> str:
        top_keywords = ", ".join(keywords[:3])
        title = f"{severity.value}: {TYPE_LABELS[crisis_type]}"
        return f"{title} - {top_keywords}" if top_keywords else title

    @staticmethod
    def _description(current: WindowAggregate, sentiment_change: float, volume_change: float) -> str:
        if volume_change == float("inf"):
            volume_text = "new activity"
        else:
            volume_text = f"{volume_change:.0f}%"
        return (
            f"Crisis detected with {current.count} mentions. "
            f"Sentiment score: {current.mean_sentiment_score:.2f}, "
            f"Change: {sentiment_change:.2f}, "
            f"Volume change: {volume_text}"
        )
