"""
Tests unitaires pour automation/webhooks.py.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from football_insights.automation.webhooks import (
    describe_webhook_config,
    get_webhook_config,
    get_webhook_url,
    send_webhook,
    validate_webhook_url,
)
from football_insights.constants import DEFAULT_WEBHOOKS

PATCH_SB = "football_insights.automation.webhooks.get_supabase"


# ═══════════════════════════════════════════════════════════════════
#  RÉSOLUTION DES URL
# ═══════════════════════════════════════════════════════════════════


@patch(PATCH_SB)
class TestGetWebhookUrl:
    """Tests for get_webhook_url."""

    def test_database_wins(self, mock_sb, mock_supabase, monkeypatch):
        mock_supabase.set_table_data("automation_config", [{"prediction_webhook_url": "https://db.example/p"}])
        mock_sb.return_value = mock_supabase
        monkeypatch.setenv("N8N_PREDICTION_WEBHOOK", "https://env.example/p")
        assert get_webhook_url("prediction") == "https://db.example/p"

    def test_env_full_url(self, mock_sb, mock_supabase, monkeypatch):
        mock_sb.return_value = mock_supabase
        monkeypatch.setenv("N8N_ANALYSIS_WEBHOOK", "https://env.example/a")
        assert get_webhook_url("analysis") == "https://env.example/a"

    def test_env_base_url(self, mock_sb, mock_supabase, monkeypatch):
        mock_sb.return_value = mock_supabase
        monkeypatch.setenv("N8N_WEBHOOK_BASE_URL", "https://n8n.example/webhook/")
        assert get_webhook_url("post-match") == "https://n8n.example/webhook/trigger/post-match"

    def test_default(self, mock_sb, mock_supabase):
        mock_sb.return_value = mock_supabase
        assert get_webhook_url("live") == DEFAULT_WEBHOOKS["live"]

    def test_unknown_kind(self, mock_sb):
        with pytest.raises(ValueError):
            get_webhook_url("halftime")

    def test_read_error_falls_back(self, mock_sb, mock_supabase):
        mock_supabase.set_table_error("automation_config", RuntimeError("db"))
        mock_sb.return_value = mock_supabase
        assert get_webhook_url("pre-match") == DEFAULT_WEBHOOKS["pre-match"]


@patch(PATCH_SB)
class TestWebhookConfigCache:
    def test_cached_between_calls(self, mock_sb, mock_supabase):
        mock_supabase.set_table_data("automation_config", [{"live_webhook_url": "https://db.example/l"}])
        mock_sb.return_value = mock_supabase

        get_webhook_config()
        get_webhook_config()

        assert mock_sb.call_count == 1

    def test_errors_are_not_cached(self, mock_sb, mock_supabase):
        mock_supabase.set_table_error("automation_config", RuntimeError("db"))
        mock_sb.return_value = mock_supabase

        get_webhook_config()
        get_webhook_config()

        assert mock_sb.call_count == 2

    def test_ignores_other_columns(self, mock_sb, mock_supabase):
        mock_supabase.set_table_data("automation_config", [{"live_webhook_url": None, "is_enabled": True}])
        mock_sb.return_value = mock_supabase
        assert "is_enabled" not in get_webhook_config()


# ═══════════════════════════════════════════════════════════════════
#  ENVOI
# ═══════════════════════════════════════════════════════════════════


@patch("football_insights.automation.webhooks.requests.post")
class TestSendWebhook:
    """Tests for send_webhook."""

    def test_success_json(self, mock_post):
        resp = MagicMock(ok=True, status_code=200)
        resp.json.return_value = {"received": True}
        mock_post.return_value = resp

        result = send_webhook("https://n8n.example/hook", {"fixture_id": "a"})

        assert result.success is True
        assert result.status == 200
        assert result.response == {"received": True}
        assert "X-Webhook-Secret" not in mock_post.call_args.kwargs["headers"]

    def test_secret_header(self, mock_post, monkeypatch):
        monkeypatch.setenv("N8N_WEBHOOK_SECRET", "s3cret")
        mock_post.return_value = MagicMock(ok=True, status_code=200)
        send_webhook("https://n8n.example/hook", {})
        assert mock_post.call_args.kwargs["headers"]["X-Webhook-Secret"] == "s3cret"

    def test_non_json_body(self, mock_post):
        resp = MagicMock(ok=False, status_code=502, text="Bad Gateway")
        resp.json.side_effect = ValueError("no json")
        mock_post.return_value = resp

        result = send_webhook("https://n8n.example/hook", {})

        assert result.success is False
        assert result.status == 502
        assert result.response == {"raw": "Bad Gateway"}

    def test_timeout(self, mock_post):
        mock_post.side_effect = requests.exceptions.Timeout("read timeout")

        result = send_webhook("https://n8n.example/hook", {}, timeout=1)

        assert result.success is False
        assert result.status == 0
        assert "read timeout" in result.error
        assert mock_post.call_args.kwargs["timeout"] == 1


# ═══════════════════════════════════════════════════════════════════
#  ADMINISTRATION
# ═══════════════════════════════════════════════════════════════════


class TestValidateWebhookUrl:
    def test_public_https(self):
        assert validate_webhook_url("https://n8n.example.com/webhook/x") == "https://n8n.example.com/webhook/x"

    @pytest.mark.parametrize(
        "url",
        [
            "ftp://n8n.example.com/x",
            "not a url",
            "http://localhost:5678/webhook",
            "http://127.0.0.1/x",
            "http://10.0.0.4/x",
            "http://192.168.1.10/x",
            "http://169.254.169.254/latest/meta-data",
            "http://metadata.google.internal/computeMetadata",
        ],
    )
    def test_refused(self, url):
        with pytest.raises(ValueError):
            validate_webhook_url(url)


@patch(PATCH_SB)
def test_describe_webhook_config(mock_sb, mock_supabase, monkeypatch):
    mock_supabase.set_table_data("automation_config", [{"analysis_webhook_url": "https://db.example/a"}])
    mock_sb.return_value = mock_supabase
    monkeypatch.setenv("N8N_WEBHOOK_SECRET", "x")

    described = describe_webhook_config()

    assert described["analysis_webhook_url"] == "https://db.example/a"
    assert described["live_webhook_url"] == DEFAULT_WEBHOOKS["live"]
    assert described["is_custom"]["analysis"] is True
    assert described["is_custom"]["post_match"] is False
    assert described["webhook_secret_set"] is True
    assert "x" not in described.values()
