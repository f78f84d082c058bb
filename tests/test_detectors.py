"""
Unit tests for the sentiment and volume anomaly detectors
"""

import math

import pytest

from db.enums import CrisisSeverity
from monitoring.detectors import (
    AnomalyKind,
    detect_sentiment_anomaly,
    detect_volume_anomaly,
    volume_change_percent,
)


class TestSentimentAnomaly:
    """Test detect_sentiment_anomaly"""

    def test_moderate_drop_is_high(self):
        result = detect_sentiment_anomaly(-0.6, 0.2, -0.5)

        assert result.is_anomaly is True
        assert result.kind == AnomalyKind.SENTIMENT
        assert result.severity == CrisisSeverity.HIGH

    def test_large_drop_is_critical(self):
        result = detect_sentiment_anomaly(-0.8, 0.1, -0.5)

        assert result.is_anomaly is True
        assert result.severity == CrisisSeverity.CRITICAL

    def test_rising_sentiment_is_not_anomalous(self):
        result = detect_sentiment_anomaly(0.3, 0.2, -0.5)

        assert result.is_anomaly is False
        assert result.severity is None

    def test_drop_exactly_at_threshold_triggers(self):
        result = detect_sentiment_anomaly(-0.5, 0.0, -0.5)

        assert result.is_anomaly is True
        assert result.severity == CrisisSeverity.HIGH

    def test_drop_just_above_threshold_does_not_trigger(self):
        result = detect_sentiment_anomaly(-0.49, 0.0, -0.5)

        assert result.is_anomaly is False

    def test_details(self):
        result = detect_sentiment_anomaly(-0.6, 0.2, -0.5)

        assert result.details["current"] == -0.6
        assert result.details["baseline"] == 0.2
        assert result.details["delta"] == pytest.approx(-0.8)
        assert result.details["threshold"] == -0.5
        assert result.details["ratio"] == pytest.approx(1.6)

    def test_custom_critical_ratio(self):
        result = detect_sentiment_anomaly(-0.6, 0.2, -0.5, critical_ratio=1.5)

        assert result.severity == CrisisSeverity.CRITICAL

    @pytest.mark.parametrize("threshold", [0.0, 0.5])
    def test_non_negative_threshold_never_triggers(self, threshold):
        result = detect_sentiment_anomaly(-1.0, 1.0, threshold)

        assert result.is_anomaly is False

    @pytest.mark.parametrize(
        "current,baseline,threshold",
        [(-1.0, 1.0, -0.5), (-0.2, 0.0, -0.1), (0.0, 0.4, -0.3), (0.5, 0.4, -0.3)],
    )
    def test_anomaly_iff_delta_at_or_below_threshold(self, current, baseline, threshold):
        result = detect_sentiment_anomaly(current, baseline, threshold)

        assert result.is_anomaly == (current - baseline <= threshold + 1e-9)


class TestVolumeAnomaly:
    """Test detect_volume_anomaly"""

    def test_threshold_reached(self):
        result = detect_volume_anomaly(300, 100, 200)

        assert result.is_anomaly is True
        assert result.kind == AnomalyKind.VOLUME
        assert result.severity == CrisisSeverity.HIGH
        assert result.details["change"] == pytest.approx(200)

    def test_critical_surge(self):
        result = detect_volume_anomaly(600, 100, 200)

        assert result.is_anomaly is True
        assert result.severity == CrisisSeverity.CRITICAL
        assert result.details["change"] == pytest.approx(500)

    def test_small_increase_is_not_anomalous(self):
        result = detect_volume_anomaly(110, 100, 200)

        assert result.is_anomaly is False
        assert result.details["change"] == pytest.approx(10)

    def test_drop_in_volume_is_not_anomalous(self):
        result = detect_volume_anomaly(20, 100, 200)

        assert result.is_anomaly is False
        assert result.details["change"] == pytest.approx(-80)

    def test_empty_baseline_with_activity(self):
        result = detect_volume_anomaly(15, 0, 200)

        assert result.is_anomaly is True
        assert result.severity == CrisisSeverity.CRITICAL
        assert math.isinf(result.details["change"])
        assert result.to_dict()["details"]["change"] is None

    def test_empty_baseline_and_current(self):
        result = detect_volume_anomaly(0, 0, 200)

        assert result.is_anomaly is False
        assert result.details["change"] == 0

    def test_fractional_baseline(self):
        assert volume_change_percent(15, 7.5) == pytest.approx(100)


class TestAnomalyResult:
    """Test AnomalyResult serialization"""

    def test_to_dict(self):
        result = detect_sentiment_anomaly(-0.8, 0.1, -0.5)

        data = result.to_dict()

        assert data["is_anomaly"] is True
        assert data["kind"] == "sentiment"
        assert data["severity"] == "CRITICAL"
        assert set(data["details"]) == {"current", "baseline", "delta", "threshold", "ratio"}
