"""
Tests unitaires pour models/dataclasses.py —
vérification des structures de données typées de Football Insights.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from football_insights.models.dataclasses import (
    FixtureForTrigger,
    FixtureForWindow,
    League,
    RefreshResult,
    TriggerResult,
    WebhookResult,
    first_embed,
    parse_datetime,
)
from football_insights.tests.factories import make_trigger_row

# ═══════════════════════════════════════════════════════════════════
#  HELPERS
# ═══════════════════════════════════════════════════════════════════


class TestParseDatetime:
    def test_z_suffix(self):
        assert parse_datetime("2026-01-15T12:00:00Z") == datetime(2026, 1, 15, 12, tzinfo=timezone.utc)

    def test_offset_kept(self):
        dt = parse_datetime("2026-01-15T13:00:00+01:00")
        assert dt.utcoffset() == timedelta(hours=1)
        assert dt == datetime(2026, 1, 15, 12, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        assert parse_datetime("2026-01-15T12:00:00").tzinfo == timezone.utc

    def test_datetime_passthrough(self):
        dt = datetime(2026, 1, 15, 12, tzinfo=timezone.utc)
        assert parse_datetime(dt) is dt


class TestFirstEmbed:
    def test_list(self):
        assert first_embed([{"name": "A"}, {"name": "B"}]) == {"name": "A"}

    def test_empty_list(self):
        assert first_embed([]) is None

    def test_object(self):
        assert first_embed({"name": "A"}) == {"name": "A"}


# ═══════════════════════════════════════════════════════════════════
#  LIGNES SUPABASE
# ═══════════════════════════════════════════════════════════════════


class TestLeague:
    """Tests for League.from_row."""

    def test_from_row(self):
        league = League.from_row({"id": 7, "api_id": "39", "name": "Premier League", "current_season": 2025})
        assert league.id == "7"
        assert league.api_id == 39
        assert league.is_active is True

    def test_defaults(self):
        league = League.from_row({"id": "x", "api_id": 61, "name": None, "current_season": None})
        assert league.name == "Unknown"
        assert league.current_season == 2025


class TestFixtureForWindow:
    def test_from_row(self):
        fixture = FixtureForWindow.from_row(
            {"id": "fx", "api_id": 10, "match_date": "2026-01-15T15:00:00Z", "status": None, "lineup_home": [1]}
        )
        assert fixture.status == "NS"
        assert fixture.match_date.hour == 15
        assert fixture.has_lineup is True

    def test_without_lineup(self):
        fixture = FixtureForWindow.from_row({"id": "fx", "match_date": "2026-01-15T15:00:00Z"})
        assert fixture.api_id == 0
        assert fixture.has_lineup is False


class TestFixtureForTrigger:
    """Tests for FixtureForTrigger.from_row."""

    def test_embeds_flattened(self):
        fixture = FixtureForTrigger.from_row(make_trigger_row(venue=[{"name": "Emirates Stadium"}]))
        assert fixture.home_team == "Arsenal"
        assert fixture.away_team == "Chelsea"
        assert fixture.venue == "Emirates Stadium"
        assert fixture.round == "Regular Season - 21"

    def test_missing_embeds(self):
        row = make_trigger_row(home_team=None, away_team=[])
        fixture = FixtureForTrigger.from_row(row)
        assert fixture.home_team is None
        assert fixture.away_team is None
        assert fixture.venue is None


# ═══════════════════════════════════════════════════════════════════
#  RÉSULTATS
# ═══════════════════════════════════════════════════════════════════


def test_trigger_result_as_dict_hides_webhook_details():
    result = TriggerResult(
        trigger_type="live",
        status="success",
        fixture_count=3,
        webhook_result=WebhookResult(success=True, status=200, duration=40),
    )
    assert result.as_dict() == {"trigger_type": "live", "status": "success", "fixture_count": 3, "error": None}


def test_refresh_result_as_dict():
    result = RefreshResult(endpoint="odds", success=True, duration=12, details={"imported": 4})
    assert result.as_dict() == {
        "endpoint": "odds",
        "success": True,
        "duration": 12,
        "details": {"imported": 4},
        "error": None,
    }
