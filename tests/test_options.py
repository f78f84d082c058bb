"""
Unit tests for MonitorOptions validation and configuration loading
"""

import pytest

from config import get_workspace_settings, load_monitoring_config
from db.enums import CrisisSeverity
from monitoring.errors import ValidationError
from monitoring.options import MonitorOptions


class TestMonitorOptions:
    """Test MonitorOptions defaults and validation"""

    def test_defaults(self):
        options = MonitorOptions()

        assert options.min_mentions == 10
        assert options.current_window_minutes == 60
        assert options.baseline_window_minutes == 60
        assert options.sentiment_threshold == -0.5
        assert options.volume_threshold_percent == 200
        assert options.min_severity == CrisisSeverity.MEDIUM
        assert options.platforms is None

    @pytest.mark.parametrize(
        "field,value",
        [
            ("min_mentions", -1),
            ("current_window_minutes", 0),
            ("baseline_window_minutes", -5),
            ("sentiment_threshold", 0.2),
            ("sentiment_threshold", -3.0),
            ("volume_threshold_percent", 0),
            ("critical_sentiment_ratio", 0.5),
            ("critical_volume_multiplier", 0.9),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError) as exc_info:
            MonitorOptions(**{field: value})

        assert exc_info.value.field == field
        assert exc_info.value.context["field"] == field

    def test_from_mapping_converts_values(self):
        options = MonitorOptions.from_mapping(
            {
                "min_mentions": 20,
                "sentiment_threshold": "-0.4",
                "min_severity": "high",
                "platforms": ["twitter", "reddit"],
            }
        )

        assert options.min_mentions == 20
        assert options.sentiment_threshold == -0.4
        assert options.min_severity == CrisisSeverity.HIGH
        assert options.platforms == ("twitter", "reddit")

    def test_from_mapping_rejects_unknown_keys(self):
        with pytest.raises(ValidationError) as exc_info:
            MonitorOptions.from_mapping({"min_mentionz": 5})

        assert exc_info.value.field == "min_mentionz"

    def test_from_mapping_rejects_unknown_severity(self):
        with pytest.raises(ValidationError):
            MonitorOptions.from_mapping({"min_severity": "SEVERE"})

    def test_from_mapping_empty(self):
        assert MonitorOptions.from_mapping(None) == MonitorOptions()

    def test_merged_ignores_none_and_validates(self):
        options = MonitorOptions().merged(min_mentions=None, current_window_minutes=30)

        assert options.min_mentions == 10
        assert options.current_window_minutes == 30

        with pytest.raises(ValidationError):
            MonitorOptions().merged(current_window_minutes=0)


class TestMonitoringConfig:
    """Test the YAML configuration layer"""

    def test_bundled_config_builds_valid_options(self):
        config = load_monitoring_config()

        options = MonitorOptions.from_mapping(config["defaults"])

        assert options.min_mentions == 10
        assert options.sentiment_threshold == -0.5

    def test_workspace_overrides(self, tmp_path):
        path = tmp_path / "monitoring.yml"
        path.write_text(
            "defaults:\n"
            "  min_mentions: 10\n"
            "  current_window_minutes: 60\n"
            "workspaces:\n"
            "  acme:\n"
            "    min_mentions: 25\n"
        )
        config = load_monitoring_config(path)

        assert get_workspace_settings("acme", config)["min_mentions"] == 25
        assert get_workspace_settings("acme", config)["current_window_minutes"] == 60
        assert get_workspace_settings("other", config)["min_mentions"] == 10

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_monitoring_config(tmp_path / "missing.yml")
