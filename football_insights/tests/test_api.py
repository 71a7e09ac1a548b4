"""
Tests des routes FastAPI (TestClient) — automatisation et refresh.

Le scheduler est désactivé par ``DISABLE_SCHEDULER`` (conftest).
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from football_insights.api.main import app, build_scheduler
from football_insights.automation.status import AutomationConfigMissing
from football_insights.models.dataclasses import RefreshResult
from football_insights.refresh import InvalidPhaseError, PhaseDetectionError

AUTOMATION = "football_insights.api.routers.automation"
REFRESH = "football_insights.api.routers.refresh"


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


# ═══════════════════════════════════════════════════════════════════
#  APP
# ═══════════════════════════════════════════════════════════════════


def test_health(client):
    data = client.get("/health").json()
    assert data["status"] == "ok"
    assert "refresh_schedule" in data


def test_scheduler_jobs():
    scheduler = build_scheduler()
    assert {job.id for job in scheduler.get_jobs()} == {"automation_cycle", "smart_refresh"}


class TestApiKey:
    @patch(f"{AUTOMATION}.get_automation_status", return_value={"is_enabled": True})
    def test_open_when_no_key_configured(self, _mock_status, client):
        assert client.get("/api/automation/status").status_code == 200

    @patch(f"{AUTOMATION}.get_automation_status", return_value={"is_enabled": True})
    def test_wrong_key(self, _mock_status, client, monkeypatch):
        monkeypatch.setattr("football_insights.config.ADMIN_API_KEY", "s3cret")
        assert client.get("/api/automation/status").status_code == 403
        assert client.get("/api/automation/status", headers={"X-API-Key": "nope"}).status_code == 403
        assert client.get("/api/automation/status", headers={"X-API-Key": "s3cret"}).status_code == 200


# ═══════════════════════════════════════════════════════════════════
#  AUTOMATISATION
# ═══════════════════════════════════════════════════════════════════


class TestAutomationRoutes:
    @patch(f"{AUTOMATION}.run_automation_cycle", return_value={"success": True, "cron_run_id": "r1"})
    def test_trigger_get_and_post(self, _mock_run, client):
        assert client.get("/api/automation/trigger").json()["cron_run_id"] == "r1"
        assert client.post("/api/automation/trigger").status_code == 200

    @patch(f"{AUTOMATION}.run_automation_cycle", return_value={"success": False, "error": "Automation config not found"})
    def test_trigger_failure(self, _mock_run, client):
        resp = client.post("/api/automation/trigger")
        assert resp.status_code == 500
        assert resp.json()["detail"] == "Automation config not found"

    @patch(f"{AUTOMATION}.get_automation_status", side_effect=AutomationConfigMissing("Automation config not found"))
    def test_status_without_config(self, _mock_status, client):
        assert client.get("/api/automation/status").status_code == 500

    @patch(f"{AUTOMATION}.get_automation_logs", return_value=[{"id": "l1"}])
    def test_logs(self, mock_logs, client):
        resp = client.get("/api/automation/logs", params={"limit": "10", "trigger_type": "live"})
        assert resp.json() == {"logs": [{"id": "l1"}], "count": 1}
        assert mock_logs.call_args.kwargs["limit"] == "10"
        assert mock_logs.call_args.kwargs["trigger_type"] == "live"

    def test_logs_bad_limit(self, client):
        resp = client.get("/api/automation/logs", params={"limit": "500"})
        assert resp.status_code == 400

    def test_logs_bad_date(self, client):
        resp = client.get("/api/automation/logs", params={"date": "yesterday"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid date format. Use YYYY-MM-DD"

    def test_logs_impossible_date(self, client):
        resp = client.get("/api/automation/logs", params={"date": "2026-02-30"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid date format. Use YYYY-MM-DD"

    @patch(f"{AUTOMATION}.update_automation_config", side_effect=lambda updates: updates)
    def test_update_config(self, mock_update, client):
        resp = client.patch("/api/automation/config", json={"live_enabled": False})
        assert resp.status_code == 200
        assert mock_update.call_args.args[0]["live_enabled"] is False
        assert "updated_at" in mock_update.call_args.args[0]

    def test_update_config_empty(self, client):
        assert client.patch("/api/automation/config", json={}).status_code == 400

    @patch(f"{AUTOMATION}.update_automation_config", return_value=None)
    def test_update_config_without_row(self, _mock_update, client):
        assert client.patch("/api/automation/config", json={"is_enabled": True}).status_code == 500


class TestWebhookRoutes:
    @patch(f"{AUTOMATION}.describe_webhook_config", return_value={"webhook_secret_set": False})
    def test_get(self, _mock_describe, client):
        assert client.get("/api/automation/webhooks").json() == {"webhook_secret_set": False}

    @patch(f"{AUTOMATION}.describe_webhook_config", return_value={})
    @patch(f"{AUTOMATION}.update_automation_config", side_effect=lambda updates: updates)
    def test_update_and_reset(self, mock_update, _mock_describe, client):
        resp = client.patch(
            "/api/automation/webhooks",
            json={"live_webhook_url": "https://n8n.example.com/live", "analysis_webhook_url": ""},
        )
        assert resp.status_code == 200
        updates = mock_update.call_args.args[0]
        assert updates["live_webhook_url"] == "https://n8n.example.com/live"
        assert updates["analysis_webhook_url"] is None
        assert "prediction_webhook_url" not in updates

    @patch(f"{AUTOMATION}.update_automation_config")
    def test_internal_url_refused(self, mock_update, client):
        resp = client.patch("/api/automation/webhooks", json={"live_webhook_url": "http://169.254.169.254/x"})
        assert resp.status_code == 400
        mock_update.assert_not_called()

    def test_nothing_to_update(self, client):
        assert client.patch("/api/automation/webhooks", json={}).status_code == 400


class TestPromptRoutes:
    @patch(f"{AUTOMATION}.get_automation_config", return_value={"custom_prediction_prompt": "Be bold"})
    def test_get(self, _mock_config, client):
        assert client.get("/api/automation/prompt").json() == {"custom_prompt": "Be bold", "has_custom_prompt": True}

    @patch(f"{AUTOMATION}.update_automation_config", side_effect=lambda updates: updates)
    def test_save(self, mock_update, client):
        resp = client.patch("/api/automation/prompt", json={"custom_prompt": "  Focus on form  "})
        assert resp.json()["message"] == "Custom prompt saved"
        assert mock_update.call_args.args[0]["custom_prediction_prompt"] == "Focus on form"

    @patch(f"{AUTOMATION}.update_automation_config", side_effect=lambda updates: updates)
    def test_clear(self, mock_update, client):
        resp = client.patch("/api/automation/prompt", json={"custom_prompt": "   "})
        assert resp.json()["has_custom_prompt"] is False
        assert mock_update.call_args.args[0]["custom_prediction_prompt"] is None


# ═══════════════════════════════════════════════════════════════════
#  REFRESH
# ═══════════════════════════════════════════════════════════════════


@patch(f"{REFRESH}.load_league")
class TestRefreshRoutes:
    @patch(f"{REFRESH}.smart_refresh", return_value={"success": True, "phase": "live"})
    def test_smart(self, mock_smart, mock_league, client, league):
        mock_league.return_value = league
        resp = client.post("/api/data/refresh/smart", params={"dry_run": "true"})
        assert resp.json()["phase"] == "live"
        assert mock_smart.call_args.kwargs["dry_run"] is True

    def test_league_not_found(self, mock_league, client):
        mock_league.return_value = None
        assert client.get("/api/data/refresh/smart", params={"league_id": "nope"}).status_code == 404

    @patch(f"{REFRESH}.phase_refresh", side_effect=InvalidPhaseError("Invalid or unable to detect phase"))
    def test_phase_invalid(self, _mock_phase, mock_league, client, league):
        mock_league.return_value = league
        assert client.post("/api/data/refresh/phase", params={"phase": "halftime"}).status_code == 400

    @patch(f"{REFRESH}.phase_refresh", side_effect=PhaseDetectionError("Unable to read fixtures for Premier League: timeout"))
    def test_phase_detection_error(self, _mock_phase, mock_league, client, league):
        mock_league.return_value = league
        resp = client.post("/api/data/refresh/phase")
        assert resp.status_code == 500
        assert resp.json()["detail"] == "Unable to read fixtures for Premier League: timeout"

    @patch(f"{REFRESH}.execute_route")
    def test_single_route(self, mock_execute, mock_league, client, league):
        mock_league.return_value = league
        mock_execute.return_value = RefreshResult(endpoint="fixtures", success=True, duration=5, details={"imported": 3})

        resp = client.post("/api/data/refresh/fixtures", params={"mode": "next", "count": 5})

        assert resp.status_code == 200
        assert resp.json()["league"] == "Premier League"
        assert mock_execute.call_args.args[0] == "fixtures?mode=next&count=5"

    def test_unknown_route(self, mock_league, client):
        assert client.post("/api/data/refresh/transfers").status_code == 404
        mock_league.assert_not_called()

    @patch(f"{REFRESH}.execute_route")
    def test_route_failure(self, mock_execute, mock_league, client, league):
        mock_league.return_value = league
        mock_execute.return_value = RefreshResult(endpoint="odds", success=False, duration=5, error="quota")
        resp = client.post("/api/data/refresh/odds")
        assert resp.status_code == 500
        assert resp.json()["detail"] == "quota"
