"""
Detection options for a single monitoring run, validated eagerly.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional, Tuple

from db.enums import CrisisSeverity

from .detectors import DEFAULT_CRITICAL_SENTIMENT_RATIO, DEFAULT_CRITICAL_VOLUME_MULTIPLIER
from .errors import ValidationError


@dataclass(frozen=True)
class MonitorOptions:
    """
    Recognized options for ``CrisisMonitor.monitor_for_crisis``.

    Attributes:
        min_mentions: Minimum current + baseline mentions before detection runs
        min_current_mentions: Minimum current-window mentions before detection runs
        current_window_minutes: Length of the recent window
        baseline_window_minutes: Length of the reference window preceding it
        sentiment_threshold: Negative sentiment delta that counts as a drop
        volume_threshold_percent: Volume increase (%) that counts as a surge
        critical_sentiment_ratio: delta/threshold ratio for a CRITICAL sentiment drop
        critical_volume_multiplier: Threshold multiple for a CRITICAL volume surge
        min_severity: Lowest score-derived severity that opens a crisis
        platforms: Optional platform filter for the mention queries
    """

    min_mentions: int = 10
    min_current_mentions: int = 1
    current_window_minutes: int = 60
    baseline_window_minutes: int = 60
    sentiment_threshold: float = -0.5
    volume_threshold_percent: float = 200.0
    critical_sentiment_ratio: float = DEFAULT_CRITICAL_SENTIMENT_RATIO
    critical_volume_multiplier: float = DEFAULT_CRITICAL_VOLUME_MULTIPLIER
    min_severity: CrisisSeverity = CrisisSeverity.MEDIUM
    platforms: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ValidationError on the first malformed option."""
        for name in ("min_mentions", "min_current_mentions"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValidationError(name, f"{name} must be a non-negative integer", value)

        for name in ("current_window_minutes", "baseline_window_minutes"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                raise ValidationError(name, f"{name} must be positive", value)

        if not -2.0 <= self.sentiment_threshold < 0:
            raise ValidationError(
                "sentiment_threshold",
                "sentiment_threshold must be negative and no lower than -2",
                self.sentiment_threshold,
            )
        if self.volume_threshold_percent <= 0:
            raise ValidationError(
                "volume_threshold_percent",
                "volume_threshold_percent must be positive",
                self.volume_threshold_percent,
            )
        if self.critical_sentiment_ratio < 1.0:
            raise ValidationError(
                "critical_sentiment_ratio",
                "critical_sentiment_ratio must be at least 1",
                self.critical_sentiment_ratio,
            )
        if self.critical_volume_multiplier < 1.0:
            raise ValidationError(
                "critical_volume_multiplier",
                "critical_volume_multiplier must be at least 1",
                self.critical_volume_multiplier,
            )
        if not isinstance(self.min_severity, CrisisSeverity):
            raise ValidationError(
                "min_severity", "min_severity must be a CrisisSeverity", self.min_severity
            )

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]]) -> "MonitorOptions":
        """
        Build options from a plain mapping (YAML config, CLI arguments).

        Unknown keys are rejected rather than ignored so that typos in
        configuration surface immediately.
        """
        if not values:
            return cls()

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValidationError(unknown[0], f"Unrecognized monitor option: {unknown[0]}")

        kwargs = {key: value for key, value in values.items() if value is not None}

        if "min_severity" in kwargs and not isinstance(kwargs["min_severity"], CrisisSeverity):
            try:
                kwargs["min_severity"] = CrisisSeverity(str(kwargs["min_severity"]).upper())
            except ValueError:
                raise ValidationError(
                    "min_severity", "Unknown severity", kwargs["min_severity"]
                ) from None

        if "platforms" in kwargs:
            kwargs["platforms"] = tuple(kwargs["platforms"]) or None

        for name in ("sentiment_threshold", "volume_threshold_percent",
                     "critical_sentiment_ratio", "critical_volume_multiplier"):
            if name in kwargs:
                try:
                    kwargs[name] = float(kwargs[name])
                except (TypeError, ValueError):
                    raise ValidationError(name, f"{name} must be a number", kwargs[name]) from None

        return cls(**kwargs)

    def merged(self, **overrides: Any) -> "MonitorOptions":
        """Copy with the given options replaced, re-validated."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
