"""
Tests unitaires pour config.py — validation de l'environnement et client
API-Football.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from football_insights import config
from football_insights.config import ConfigError, api_get, get_request_count, reset_request_count, validate_env


def _response(status=200, payload=None, headers=None):
    resp = MagicMock(status_code=status, headers=headers or {})
    resp.json.return_value = payload if payload is not None else {"response": []}
    return resp


# ═══════════════════════════════════════════════════════════════════
#  ENVIRONNEMENT
# ═══════════════════════════════════════════════════════════════════


class TestValidateEnv:
    """Tests for validate_env."""

    @pytest.fixture
    def full_env(self, monkeypatch):
        for name, _required, _desc in config.ENV_VARS:
            monkeypatch.setenv(name, "x")
        monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")

    def test_complete_env(self, full_env):
        result = validate_env()
        assert result.valid
        assert result.warnings == []

    def test_missing_required(self, full_env, monkeypatch):
        monkeypatch.delenv("API_FOOTBALL_KEY")
        result = validate_env()
        assert not result.valid
        assert "API_FOOTBALL_KEY" in result.errors[0]

    def test_missing_optional_is_a_warning(self, full_env, monkeypatch):
        monkeypatch.delenv("OPENWEATHER_API_KEY")
        result = validate_env()
        assert result.valid
        assert any("OPENWEATHER_API_KEY" in w for w in result.warnings)

    def test_insecure_supabase_url(self, full_env, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "http://project.supabase.co")
        assert "SUPABASE_URL must be an https:// URL" in validate_env().errors

    def test_strict_raises(self, full_env, monkeypatch):
        monkeypatch.delenv("SUPABASE_KEY")
        with pytest.raises(ConfigError, match="SUPABASE_KEY"):
            validate_env(strict=True)


# ═══════════════════════════════════════════════════════════════════
#  API-FOOTBALL
# ═══════════════════════════════════════════════════════════════════


@patch("football_insights.config.time.sleep")
@patch("football_insights.config.requests.get")
@patch("football_insights.config.API_FOOTBALL_KEY", "test-key")
class TestApiGet:
    """Tests for api_get."""

    def test_success(self, mock_get, mock_sleep):
        reset_request_count()
        mock_get.return_value = _response(payload={"response": [1, 2]})

        assert api_get("fixtures", {"league": 39}) == {"response": [1, 2]}
        assert mock_get.call_args.args[0].endswith("/fixtures")
        assert mock_get.call_args.kwargs["params"] == {"league": 39}
        assert get_request_count() == 1

    def test_retries_on_rate_limit(self, mock_get, mock_sleep):
        mock_get.side_effect = [_response(429), _response(payload={"response": ["ok"]})]

        assert api_get("standings") == {"response": ["ok"]}
        assert mock_get.call_count == 2
        assert mock_sleep.call_args_list[0].args == (config.API_BACKOFF_DELAYS[0],)

    def test_gives_up_after_retries(self, mock_get, mock_sleep):
        mock_get.return_value = _response(503)
        assert api_get("odds") is None
        assert mock_get.call_count == config.API_MAX_RETRIES + 1

    def test_network_error_retried(self, mock_get, mock_sleep):
        mock_get.side_effect = [requests.exceptions.ConnectionError("reset"), _response()]
        assert api_get("injuries") == {"response": []}

    def test_client_error_not_retried(self, mock_get, mock_sleep):
        mock_get.return_value = _response(403)
        assert api_get("fixtures") is None
        assert mock_get.call_count == 1

    def test_api_level_errors(self, mock_get, mock_sleep):
        mock_get.return_value = _response(payload={"errors": {"token": "Invalid key"}, "response": []})
        assert api_get("fixtures") is None


@patch("football_insights.config.requests.get")
@patch("football_insights.config.API_FOOTBALL_KEY", None)
def test_api_get_without_key(mock_get):
    assert api_get("fixtures") is None
    mock_get.assert_not_called()
