"""
Unit tests for the monitoring CLI
"""

from unittest.mock import Mock, patch

import pytest

from db.enums import CrisisSeverity, CrisisStatus, CrisisType
from monitoring.__main__ import main
from monitoring.errors import InvalidTransitionError
from monitoring.models import Crisis
from monitoring.monitor import MonitorOutcome, MonitorResult
from monitoring.options import MonitorOptions

from .conftest import NOW

CRISIS = Crisis(
    id=7,
    workspace_id="acme",
    title="HIGH: Sentiment Spike - outage",
    type=CrisisType.SENTIMENT,
    severity=CrisisSeverity.HIGH,
    status=CrisisStatus.DETECTED,
    crisis_score=64.2,
    detected_at=NOW,
)

METRICS = {"current": {"count": 50}, "baseline": {"count": 10}, "crisis_score": 64.2}


class TestMonitoringCli:
    """Test cases for the CLI commands"""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    @patch("monitoring.__main__.CrisisMonitor")
    def test_monitor_command_uses_cli_overrides(self, mock_monitor_cls, capsys):
        mock_monitor = mock_monitor_cls.return_value
        mock_monitor.monitor_for_crisis.return_value = MonitorResult(
            True, MonitorOutcome.CREATED, METRICS, CRISIS
        )

        exit_code = main(["monitor", "acme", "--current-window", "30", "--platform", "twitter"])

        assert exit_code == 0
        workspace_id, options = mock_monitor.monitor_for_crisis.call_args.args
        assert workspace_id == "acme"
        assert options.current_window_minutes == 30
        assert options.platforms == ("twitter",)
        assert options.min_mentions == MonitorOptions().min_mentions
        output = capsys.readouterr().out
        assert "Crisis created" in output
        assert "#7" in output

    @patch("monitoring.__main__.CrisisMonitor")
    def test_monitor_command_no_crisis(self, mock_monitor_cls, capsys):
        mock_monitor_cls.return_value.monitor_for_crisis.return_value = MonitorResult(
            False, MonitorOutcome.NO_ANOMALY, METRICS
        )

        assert main(["monitor", "acme"]) == 0
        assert "No crisis (no_anomaly)" in capsys.readouterr().out

    def test_monitor_command_rejects_bad_options(self, capsys):
        assert main(["monitor", "acme", "--current-window", "0"]) == 1
        assert "ValidationError" in capsys.readouterr().out

    @patch("monitoring.__main__.CrisisDashboard")
    def test_history_command_json(self, mock_dashboard_cls, capsys):
        mock_dashboard_cls.return_value.get_crisis_history.return_value = {
            "crises": [CRISIS.to_dict()],
            "total": 1,
            "has_more": False,
        }

        assert main(["history", "acme", "--limit", "10", "--json"]) == 0
        mock_dashboard_cls.return_value.get_crisis_history.assert_called_once_with(
            "acme", limit=10, offset=0
        )
        assert '"total": 1' in capsys.readouterr().out

    @patch("monitoring.__main__.CrisisLifecycleManager")
    def test_transition_command(self, mock_manager_cls, capsys):
        mock_manager_cls.return_value.update_crisis_status.return_value = Crisis(
            **{**CRISIS.__dict__, "status": CrisisStatus.ACKNOWLEDGED}
        )

        exit_code = main(["transition", "7", "acknowledged", "--actor", "alice", "--note", "On it"])

        assert exit_code == 0
        mock_manager_cls.return_value.update_crisis_status.assert_called_once_with(
            7, "acknowledged", "alice", note="On it"
        )
        assert "now ACKNOWLEDGED" in capsys.readouterr().out

    @patch("monitoring.__main__.CrisisLifecycleManager")
    def test_transition_command_reports_errors(self, mock_manager_cls, capsys):
        mock_manager_cls.return_value.update_crisis_status.side_effect = InvalidTransitionError(
            7, CrisisStatus.DETECTED, CrisisStatus.CLOSED
        )

        assert main(["transition", "7", "CLOSED", "--actor", "alice"]) == 1
        assert "InvalidTransitionError" in capsys.readouterr().out

    def test_transition_requires_actor(self):
        with pytest.raises(SystemExit):
            main(["transition", "7", "CLOSED"])
