"""
Fixtures pytest partagées pour tous les tests de Football Insights.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from football_insights.models.dataclasses import League
from football_insights.tests.factories import NOW


# ═══════════════════════════════════════════════════════════════════
#  HELPER : MOCK SUPABASE
# ═══════════════════════════════════════════════════════════════════


class MockSupabaseQuery:
    """Mock chainable pour supabase.table(...).select(...).eq(...).execute().

    Chaque appel est enregistré dans ``calls`` sous la forme
    ``(méthode, args, kwargs)``.
    """

    def __init__(self, data=None, count=None, error=None):
        self._data = data or []
        self._count = count
        self._error = error
        self._write_data = {}
        self._pending = []
        self.calls = []

    def _record(self, name, args, kwargs):
        self.calls.append((name, args, kwargs))
        self._pending.append(name)
        return self

    def returns_on(self, method, data):
        """Données renvoyées par ``execute`` après ``update``/``upsert``/``insert``."""
        self._write_data[method] = data
        return self

    def select(self, *args, **kwargs):
        return self._record("select", args, kwargs)

    def eq(self, *args, **kwargs):
        return self._record("eq", args, kwargs)

    def neq(self, *args, **kwargs):
        return self._record("neq", args, kwargs)

    def gte(self, *args, **kwargs):
        return self._record("gte", args, kwargs)

    def lte(self, *args, **kwargs):
        return self._record("lte", args, kwargs)

    def in_(self, *args, **kwargs):
        return self._record("in_", args, kwargs)

    def order(self, *args, **kwargs):
        return self._record("order", args, kwargs)

    def limit(self, *args, **kwargs):
        return self._record("limit", args, kwargs)

    def insert(self, *args, **kwargs):
        return self._record("insert", args, kwargs)

    def upsert(self, *args, **kwargs):
        return self._record("upsert", args, kwargs)

    def update(self, *args, **kwargs):
        return self._record("update", args, kwargs)

    def execute(self):
        pending, self._pending = self._pending, []
        if self._error is not None:
            raise self._error
        result = MagicMock()
        result.data = self._data
        for method in pending:
            if method in self._write_data:
                result.data = self._write_data[method]
        result.count = self._count
        return result

    def payloads(self, method):
        """Premiers arguments de tous les appels à ``method``."""
        return [args[0] for name, args, _ in self.calls if name == method]

    def filters(self, method):
        return [args for name, args, _ in self.calls if name == method]


class MockSupabase:
    """Mock complet du client Supabase avec routage par table."""

    def __init__(self):
        self._tables = {}

    def set_table_data(self, table_name, data, count=None):
        """Configure les données retournées pour une table."""
        self._tables[table_name] = MockSupabaseQuery(data, count)
        return self._tables[table_name]

    def set_table_error(self, table_name, error):
        """Fait échouer toute requête sur une table."""
        self._tables[table_name] = MockSupabaseQuery(error=error)
        return self._tables[table_name]

    def table(self, name):
        if name not in self._tables:
            self._tables[name] = MockSupabaseQuery()
        return self._tables[name]


@pytest.fixture
def mock_supabase():
    """Retourne un MockSupabase configurable."""
    return MockSupabase()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Variables d'environnement neutres pour chaque test."""
    for name in (
        "N8N_WEBHOOK_SECRET",
        "N8N_WEBHOOK_BASE_URL",
        "N8N_PREDICTION_WEBHOOK",
        "N8N_ANALYSIS_WEBHOOK",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DISABLE_SCHEDULER", "1")
    monkeypatch.setattr("football_insights.config.ADMIN_API_KEY", "")

    from football_insights.automation.webhooks import clear_webhook_config_cache

    clear_webhook_config_cache()
    yield
    clear_webhook_config_cache()


# ═══════════════════════════════════════════════════════════════════
#  FIXTURES : DONNÉES DE TEST
# ═══════════════════════════════════════════════════════════════════


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def league():
    """La Premier League telle que stockée dans ``leagues``."""
    return League(id="lg-1", api_id=39, name="Premier League", current_season=2025)


@pytest.fixture
def automation_config():
    """La ligne singleton ``automation_config``, tout activé."""
    return {
        "id": 1,
        "is_enabled": True,
        "pre_match_enabled": True,
        "prediction_enabled": True,
        "live_enabled": True,
        "post_match_enabled": True,
        "analysis_enabled": True,
        "last_cron_run": None,
        "last_cron_status": None,
        "custom_prediction_prompt": None,
        "prediction_webhook_url": None,
        "analysis_webhook_url": None,
        "pre_match_webhook_url": None,
        "live_webhook_url": None,
        "post_match_webhook_url": None,
    }
