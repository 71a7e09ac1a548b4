"""
Constructeurs de données de test (matchs, lignes Supabase).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from football_insights.models.dataclasses import FixtureForWindow

# Mi-janvier : Europe/London = UTC, pas d'ambiguïté sur les bornes de journée
NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_fixture(
    offset_hours: float,
    status: str = "NS",
    fixture_id: str = "fx-1",
    now: datetime = NOW,
    **kwargs,
) -> FixtureForWindow:
    """Un match dont le coup d'envoi est à ``now + offset_hours``."""
    return FixtureForWindow(
        id=fixture_id,
        api_id=kwargs.pop("api_id", 1000),
        match_date=now + timedelta(hours=offset_hours),
        status=status,
        **kwargs,
    )


def make_trigger_row(
    fixture_id: str = "fx-1",
    league_id: str = "lg-1",
    league_name: str = "Premier League",
    offset_minutes: float = 30,
    status: str = "NS",
    now: datetime = NOW,
    **extra,
) -> dict:
    """Une ligne ``fixtures`` avec les jointures des requêtes d'automatisation."""
    row = {
        "id": fixture_id,
        "api_id": 1000,
        "league_id": league_id,
        "match_date": (now + timedelta(minutes=offset_minutes)).isoformat(),
        "status": status,
        "round": "Regular Season - 21",
        "home_team_id": "t-home",
        "away_team_id": "t-away",
        "goals_home": None,
        "goals_away": None,
        "home_team": {"id": "t-home", "name": "Arsenal"},
        "away_team": {"id": "t-away", "name": "Chelsea"},
        "league": {"id": league_id, "name": league_name, "is_active": True},
    }
    row.update(extra)
    return row


