"""
Tests unitaires pour run_pipeline.py — lancement manuel.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from football_insights.config import EnvValidationResult
from football_insights.automation.status import AutomationConfigMissing
from football_insights.refresh import InvalidPhaseError, PhaseDetectionError
from football_insights.run_pipeline import main, run_phase, run_smart

MODULE = "football_insights.run_pipeline"


@pytest.fixture(autouse=True)
def valid_env():
    with patch(f"{MODULE}.validate_env", return_value=EnvValidationResult()) as mock_env:
        yield mock_env


class TestMain:
    @patch(f"{MODULE}.run_automation_cycle", return_value={"success": True})
    def test_default_mode_is_automation(self, mock_cycle):
        assert main([]) == 0
        mock_cycle.assert_called_once()

    @patch(f"{MODULE}.run_automation_cycle", return_value={"success": False})
    def test_failed_cycle(self, _mock_cycle):
        assert main(["automation"]) == 1

    @patch(f"{MODULE}.run_smart", return_value=[{"success": True}])
    def test_smart_args(self, mock_smart):
        assert main(["smart", "--dry-run", "pl"]) == 0
        mock_smart.assert_called_once_with("pl", dry_run=True)

    @patch(f"{MODULE}.get_automation_status", return_value={"is_enabled": True})
    def test_status(self, _mock_status, capsys):
        assert main(["status"]) == 0
        assert '"is_enabled": true' in capsys.readouterr().out

    @patch(f"{MODULE}.get_automation_status", side_effect=AutomationConfigMissing("Configuration not found"))
    def test_status_without_config(self, _mock_status):
        assert main(["status"]) == 1

    @patch(f"{MODULE}.get_automation_status", side_effect=RuntimeError("automation_logs read failed"))
    def test_status_read_error(self, _mock_status):
        assert main(["status"]) == 1

    def test_unknown_mode(self):
        assert main(["backfill"]) == 2

    def test_invalid_env(self, valid_env):
        valid_env.return_value = EnvValidationResult(errors=["Missing required env var SUPABASE_URL"])
        assert main(["automation"]) == 1


class TestHelpers:
    @patch(f"{MODULE}.smart_refresh", return_value={"success": True})
    @patch(f"{MODULE}.load_active_leagues")
    def test_run_smart_all_active(self, mock_leagues, mock_smart, league):
        mock_leagues.return_value = [league, league]
        assert len(run_smart()) == 2
        assert mock_smart.call_args.kwargs == {"dry_run": False, "include_optional": True}

    @patch(f"{MODULE}.smart_refresh")
    @patch(f"{MODULE}.load_league", return_value=None)
    def test_run_smart_unknown_league(self, _mock_league, mock_smart):
        assert run_smart("nope") == []
        mock_smart.assert_not_called()

    @patch(f"{MODULE}.phase_refresh", side_effect=InvalidPhaseError("Invalid or unable to detect phase"))
    @patch(f"{MODULE}.load_league", return_value=MagicMock())
    def test_run_phase_invalid(self, _mock_league, _mock_phase):
        assert run_phase("halftime") is None

    @patch(f"{MODULE}.phase_refresh", side_effect=PhaseDetectionError("Unable to read fixtures for Premier League: timeout"))
    @patch(f"{MODULE}.load_league", return_value=MagicMock())
    def test_run_phase_detection_error(self, _mock_league, _mock_phase):
        assert run_phase() is None

    @patch(f"{MODULE}.run_phase", return_value=None)
    def test_phase_mode_failure_exit_code(self, _mock_phase):
        assert main(["phase"]) == 1
