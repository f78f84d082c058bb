"""
Anomaly detectors comparing a current window against a baseline window.

Both detectors are pure functions: no store access, no side effects, and no
exceptions for numeric input.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from db.enums import CrisisSeverity

DEFAULT_CRITICAL_SENTIMENT_RATIO = 1.8
DEFAULT_CRITICAL_VOLUME_MULTIPLIER = 2.5

# Absorbs float error so decimal calibration points land on the documented side
_EPSILON = 1e-9


class AnomalyKind(Enum):
    SENTIMENT = "sentiment"
    VOLUME = "volume"


@dataclass(frozen=True)
class AnomalyResult:
    """Verdict of a single detector."""

    is_anomaly: bool
    kind: AnomalyKind
    severity: Optional[CrisisSeverity] = None  # Only set when is_anomaly
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_anomaly": self.is_anomaly,
            "kind": self.kind.value,
            "severity": self.severity.value if self.severity else None,
            "details": {key: _json_number(value) for key, value in self.details.items()},
        }


def detect_sentiment_anomaly(
    current: float,
    baseline: float,
    threshold: float,
    critical_ratio: float = DEFAULT_CRITICAL_SENTIMENT_RATIO,
) -> AnomalyResult:
    """
    Detect a drop in mean sentiment between baseline and current windows.

    Args:
        current: Mean sentiment of the current window
        baseline: Mean sentiment of the baseline window
        threshold: Negative delta at or below which the drop is anomalous
        critical_ratio: delta/threshold ratio at which the drop becomes CRITICAL

    Returns:
        AnomalyResult with details current, baseline, delta, threshold, ratio
    """
    delta = current - baseline
    ratio = delta / threshold if threshold else 0.0

    details = {
        "current": current,
        "baseline": baseline,
        "delta": delta,
        "threshold": threshold,
        "ratio": ratio,
    }

    # One-sided: only drops can trigger, rising sentiment never does
    if threshold >= 0 or delta > threshold + _EPSILON:
        return AnomalyResult(is_anomaly=False, kind=AnomalyKind.SENTIMENT, details=details)

    if ratio >= critical_ratio - _EPSILON:
        severity = CrisisSeverity.CRITICAL
    else:
        severity = CrisisSeverity.HIGH

    return AnomalyResult(
        is_anomaly=True,
        kind=AnomalyKind.SENTIMENT,
        severity=severity,
        details=details,
    )


def volume_change_percent(current: float, baseline: float) -> float:
    """Percentage change from baseline; +inf when the baseline is empty but current is not."""
    if baseline > 0:
        return (current - baseline) / baseline * 100
    return math.inf if current > 0 else 0.0


def detect_volume_anomaly(
    current: float,
    baseline: float,
    threshold_percent: float,
    critical_multiplier: float = DEFAULT_CRITICAL_VOLUME_MULTIPLIER,
) -> AnomalyResult:
    """
    Detect a surge in mention volume between baseline and current windows.

    Args:
        current: Mention count in the current window
        baseline: Mention count in the baseline window
        threshold_percent: Percentage increase at or above which volume is anomalous
        critical_multiplier: Multiple of the threshold at which the surge is CRITICAL

    Returns:
        AnomalyResult with details current, baseline, change, threshold
    """
    change = volume_change_percent(current, baseline)

    details = {
        "current": current,
        "baseline": baseline,
        "change": change,
        "threshold": threshold_percent,
    }

    if change < threshold_percent - _EPSILON:
        return AnomalyResult(is_anomaly=False, kind=AnomalyKind.VOLUME, details=details)

    if change >= critical_multiplier * threshold_percent - _EPSILON:
        severity = CrisisSeverity.CRITICAL
    else:
        severity = CrisisSeverity.HIGH

    return AnomalyResult(
        is_anomaly=True,
        kind=AnomalyKind.VOLUME,
        severity=severity,
        details=details,
    )


def _json_number(value: Any) -> Any:
    # JSON has no infinity; an empty baseline is reported as null change
    if isinstance(value, float) and math.isinf(value):
        return None
    return value
