"""
Tests unitaires pour automation/status.py — état et journal.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from football_insights.automation.status import (
    AutomationConfigMissing,
    compute_next_cron_run,
    get_automation_logs,
    get_automation_status,
    parse_log_date,
    parse_log_limit,
    summarize_trigger_logs,
)
from football_insights.tests.factories import NOW

MODULE = "football_insights.automation.status"


class TestSummarizeTriggerLogs:
    """Tests for summarize_trigger_logs."""

    def test_counts_and_last_triggered(self, automation_config):
        logs = [
            {"trigger_type": "prediction", "status": "no-action", "triggered_at": "t3"},
            {"trigger_type": "prediction", "status": "error", "triggered_at": "t2"},
            {"trigger_type": "prediction", "status": "success", "triggered_at": "t1"},
            {"trigger_type": "live", "status": "success", "triggered_at": "t0"},
        ]
        triggers = summarize_trigger_logs(logs, {**automation_config, "live_enabled": False})

        assert triggers["prediction"] == {
            "success_today": 1,
            "error_today": 1,
            "last_triggered": "t2",
            "enabled": True,
        }
        assert triggers["live"]["enabled"] is False
        assert triggers["analysis"]["last_triggered"] is None

    def test_unknown_trigger_type_ignored(self, automation_config):
        triggers = summarize_trigger_logs([{"trigger_type": "cron-check", "status": "error"}], automation_config)
        assert all(t["error_today"] == 0 for t in triggers.values())


class TestComputeNextCronRun:
    def test_never_ran(self):
        assert compute_next_cron_run(None, NOW) is None

    def test_five_minutes_after_last_run(self):
        last = (NOW - timedelta(minutes=2)).isoformat()
        assert compute_next_cron_run(last, NOW) == (NOW + timedelta(minutes=3)).isoformat()

    def test_overdue_uses_next_boundary(self):
        now = datetime(2026, 1, 15, 12, 12, 40, tzinfo=timezone.utc)
        assert compute_next_cron_run("2026-01-15T11:00:00Z", now) == "2026-01-15T12:15:00+00:00"

    def test_overdue_inside_boundary_minute(self):
        now = datetime(2026, 1, 15, 12, 10, 30, tzinfo=timezone.utc)
        assert compute_next_cron_run("2026-01-15T11:00:00Z", now) == "2026-01-15T12:15:00+00:00"

    def test_overdue_crosses_the_hour(self):
        now = datetime(2026, 1, 15, 12, 57, tzinfo=timezone.utc)
        assert compute_next_cron_run("2026-01-15T11:00:00Z", now) == "2026-01-15T13:00:00+00:00"


@patch(f"{MODULE}.get_supabase")
@patch(f"{MODULE}.get_automation_config")
class TestGetAutomationStatus:
    """Tests for get_automation_status."""

    def test_status(self, mock_config, mock_sb, mock_supabase, automation_config):
        mock_config.return_value = {
            **automation_config,
            "last_cron_run": (NOW - timedelta(minutes=1)).isoformat(),
            "last_cron_status": "success",
        }
        logs = mock_supabase.set_table_data(
            "automation_logs",
            [
                {"trigger_type": "analysis", "status": "error", "triggered_at": "t1"},
                {"trigger_type": "live", "status": "error", "triggered_at": "t0"},
            ],
        )
        mock_sb.return_value = mock_supabase

        status = get_automation_status(now=NOW)

        assert status["is_enabled"] is True
        assert status["last_cron_status"] == "success"
        assert status["next_cron_run"] == (NOW + timedelta(minutes=4)).isoformat()
        assert status["errors_today"] == 2
        assert status["config"]["analysis_enabled"] is True
        assert logs.filters("gte") == [("triggered_at", "2026-01-15T00:00:00+00:00")]
        assert logs.filters("neq") == [("trigger_type", "cron-check")]

    def test_missing_config(self, mock_config, mock_sb):
        mock_config.return_value = None
        with pytest.raises(AutomationConfigMissing):
            get_automation_status(now=NOW)

    def test_log_read_error(self, mock_config, mock_sb, mock_supabase, automation_config):
        mock_config.return_value = automation_config
        mock_supabase.set_table_error("automation_logs", RuntimeError("db"))
        mock_sb.return_value = mock_supabase
        with pytest.raises(RuntimeError, match="Failed to fetch logs"):
            get_automation_status(now=NOW)


class TestParseLogLimit:
    @pytest.mark.parametrize("raw,expected", [(None, 50), ("", 50), ("10", 10), (200, 200), ("1", 1)])
    def test_valid(self, raw, expected):
        assert parse_log_limit(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "0", "201", -5, "2.5"])
    def test_invalid(self, raw):
        with pytest.raises(ValueError):
            parse_log_limit(raw)


class TestParseLogDate:
    def test_valid(self):
        assert parse_log_date("2024-02-29") == "2024-02-29"

    @pytest.mark.parametrize("raw", ["2026-13-45", "2026-02-30", "2025-02-29", "2026-01-15\n", "2026-1-5", "20260115"])
    def test_invalid(self, raw):
        with pytest.raises(ValueError, match="YYYY-MM-DD"):
            parse_log_date(raw)


@patch(f"{MODULE}.get_supabase")
class TestGetAutomationLogs:
    """Tests for get_automation_logs."""

    def test_filters_and_flattening(self, mock_sb, mock_supabase):
        table = mock_supabase.set_table_data(
            "automation_logs",
            [{"id": "l1", "trigger_type": "live", "league": {"id": "pl", "name": "Premier League"}}],
        )
        mock_sb.return_value = mock_supabase

        logs = get_automation_logs(limit="20", trigger_type="live", status="success", date="2026-01-15", cron_run_id="r1")

        assert logs == [{"id": "l1", "trigger_type": "live", "league_name": "Premier League"}]
        assert table.filters("limit") == [(20,)]
        assert ("trigger_type", "live") in table.filters("eq")
        assert ("cron_run_id", "r1") in table.filters("eq")
        assert table.filters("gte") == [("triggered_at", "2026-01-15T00:00:00Z")]
        assert table.filters("lte") == [("triggered_at", "2026-01-15T23:59:59Z")]

    def test_missing_league(self, mock_sb, mock_supabase):
        mock_supabase.set_table_data("automation_logs", [{"id": "l1", "league": None}])
        mock_sb.return_value = mock_supabase
        assert get_automation_logs()[0]["league_name"] is None

    def test_bad_date(self, mock_sb):
        with pytest.raises(ValueError, match="YYYY-MM-DD"):
            get_automation_logs(date="15/01/2026")
        mock_sb.assert_not_called()

    def test_read_error(self, mock_sb, mock_supabase):
        mock_supabase.set_table_error("automation_logs", RuntimeError("db"))
        mock_sb.return_value = mock_supabase
        with pytest.raises(RuntimeError):
            get_automation_logs()
