"""
leagues.py — Lecture des ligues suivies et de leurs matchs en fenêtre.
"""

from __future__ import annotations

from datetime import datetime

from football_insights.config import get_supabase, logger
from football_insights.models.dataclasses import FixtureForWindow, League
from football_insights.windows import get_fixture_windows

DEFAULT_LEAGUE_API_ID: int = 39  # Premier League

WINDOW_FIXTURE_COLUMNS = (
    "id, api_id, match_date, status, goals_home, goals_away, home_team_id, away_team_id"
)


def load_active_leagues() -> list[League]:
    """Return every league flagged ``is_active``; empty on error."""
    try:
        rows = (
            get_supabase()
            .table("leagues")
            .select("id, api_id, name, current_season, is_active")
            .eq("is_active", True)
            .execute()
            .data
            or []
        )
    except Exception as e:
        logger.error("Erreur lecture des ligues actives : %s", e)
        return []
    return [League.from_row(r) for r in rows]


def load_league(league_id: str | None = None) -> League | None:
    """Load one league by database id, or the default league.

    Args:
        league_id: Database id. When omitted, the Premier League row is
            used, then the first active league.

    Returns:
        The league, or ``None`` if nothing matches.
    """
    supabase = get_supabase()
    columns = "id, api_id, name, current_season, is_active"
    try:
        if league_id:
            rows = supabase.table("leagues").select(columns).eq("id", league_id).limit(1).execute().data
        else:
            rows = (
                supabase.table("leagues")
                .select(columns)
                .eq("api_id", DEFAULT_LEAGUE_API_ID)
                .limit(1)
                .execute()
                .data
            )
    except Exception as e:
        logger.error("Erreur lecture ligue %s : %s", league_id, e)
        return None

    if rows:
        return League.from_row(rows[0])
    if league_id:
        return None

    active = load_active_leagues()
    return active[0] if active else None


def load_window_fixtures(league: League, now: datetime | None = None) -> list[FixtureForWindow]:
    """Fixtures of ``league`` inside the active window (recent → upcoming end)."""
    windows = get_fixture_windows(now=now)
    try:
        rows = (
            get_supabase()
            .table("fixtures")
            .select(WINDOW_FIXTURE_COLUMNS)
            .eq("league_id", league.id)
            .gte("match_date", windows.recent.isoformat())
            .lte("match_date", windows.upcoming_end.isoformat())
            .order("match_date")
            .execute()
            .data
            or []
        )
    except Exception as e:
        logger.error("Erreur lecture des matchs de %s : %s", league.name, e)
        return []
    return [FixtureForWindow.from_row(r) for r in rows]
