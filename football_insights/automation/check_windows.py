"""
automation/check_windows.py — Sélection des matchs dans chaque fenêtre
de déclenchement.

  - pre-match  : coup d'envoi dans 25 à 35 min
  - prediction : coup d'envoi dans 20 à 30 min, sans prédiction
  - live       : matchs en cours
  - post-match : terminés, coup d'envoi il y a 230 à 250 min
  - analysis   : terminés, coup d'envoi il y a 245 à 265 min, avec
                 prédiction mais sans analyse

Seules les ligues actives sont prises en compte. Les colonnes
``*_triggered_at`` évitent de redéclencher un match déjà traité.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from football_insights.config import get_supabase, logger
from football_insights.constants import (
    ANALYSIS_WINDOW,
    IN_PLAY_STATUSES,
    MAX_ANALYSES_PER_RUN,
    MAX_PREDICTIONS_PER_RUN,
    POST_MATCH_WINDOW,
    PRE_MATCH_WINDOW,
    PREDICTION_WINDOW,
    PROCESSING_BUFFER_MINUTES,
)
from football_insights.models.dataclasses import (
    FixtureForTrigger,
    LeagueFixtureCount,
    LeagueWithFixtures,
    first_embed,
    parse_datetime,
)
from football_insights.windows import utc_now

TRIGGER_TYPES: tuple[str, ...] = ("pre-match", "prediction", "live", "post-match", "analysis")

TRIGGER_COLUMNS = (
    "id, api_id, league_id, match_date, status, home_team_id, away_team_id, round, "
    "goals_home, goals_away, "
    "home_team:teams!fixtures_home_team_id_fkey(id, name), "
    "away_team:teams!fixtures_away_team_id_fkey(id, name), "
    "league:leagues!inner(id, name, is_active)"
)


def timing_windows() -> dict[str, Any]:
    """The trigger windows, as reported in cron run results."""
    return {
        "pre_match": {"min_before": PRE_MATCH_WINDOW[0], "max_before": PRE_MATCH_WINDOW[1]},
        "prediction": {"min_before": PREDICTION_WINDOW[0], "max_before": PREDICTION_WINDOW[1]},
        "live": {"statuses": list(IN_PLAY_STATUSES)},
        "post_match": {"min_after": POST_MATCH_WINDOW[0], "max_after": POST_MATCH_WINDOW[1]},
        "analysis": {"min_after": ANALYSIS_WINDOW[0], "max_after": ANALYSIS_WINDOW[1]},
    }


def _league_name(row: dict) -> str:
    league = first_embed(row.get("league")) or {}
    return league.get("name") or "Unknown"


def _has_rows(value: Any) -> bool:
    if isinstance(value, list):
        return len(value) > 0
    return bool(value)


def _outside_buffer(triggered_at: str | None, now: datetime) -> bool:
    """True when never triggered, or triggered longer ago than the buffer."""
    if not triggered_at:
        return True
    return parse_datetime(triggered_at) < now - timedelta(minutes=PROCESSING_BUFFER_MINUTES)


def _fetch(columns: str, status_filter: tuple[str, Any], start: datetime, end: datetime) -> list[dict]:
    method, value = status_filter
    try:
        query = get_supabase().table("fixtures").select(columns)
        query = query.eq("status", value) if method == "eq" else query.in_("status", value)
        return (
            query.gte("match_date", start.isoformat())
            .lte("match_date", end.isoformat())
            .eq("league.is_active", True)
            .execute()
            .data
            or []
        )
    except Exception as e:
        logger.error("Erreur lecture fenêtre de déclenchement : %s", e)
        return []


def group_by_league(rows: list[dict]) -> list[LeagueWithFixtures]:
    """Group fixture rows under their league, keeping first-seen order."""
    grouped: dict[str, LeagueWithFixtures] = {}
    for row in rows:
        league_id = str(row.get("league_id"))
        if league_id not in grouped:
            grouped[league_id] = LeagueWithFixtures(league_id=league_id, league_name=_league_name(row))
        grouped[league_id].fixtures.append(FixtureForTrigger.from_row(row))
    return list(grouped.values())


def _count_by_league(rows: list[dict]) -> list[LeagueFixtureCount]:
    counts: dict[str, LeagueFixtureCount] = {}
    for row in rows:
        league_id = str(row.get("league_id"))
        if league_id not in counts:
            counts[league_id] = LeagueFixtureCount(
                league_id=league_id, league_name=_league_name(row), count=0
            )
        counts[league_id].count += 1
        counts[league_id].fixture_ids.append(str(row["id"]))
    return list(counts.values())


# ═══════════════════════════════════════════════════════════════════
#  FENÊTRES
# ═══════════════════════════════════════════════════════════════════


def query_pre_match_fixtures(now: datetime | None = None) -> list[LeagueWithFixtures]:
    """Not-started fixtures 25-35 minutes before kickoff, grouped by league."""
    now = now or utc_now()
    rows = _fetch(
        TRIGGER_COLUMNS + ", venue:venues(name), pre_match_triggered_at",
        ("eq", "NS"),
        now + timedelta(minutes=PRE_MATCH_WINDOW[0]),
        now + timedelta(minutes=PRE_MATCH_WINDOW[1]),
    )
    return group_by_league([r for r in rows if not r.get("pre_match_triggered_at")])


def query_prediction_fixtures(now: datetime | None = None) -> list[FixtureForTrigger]:
    """Fixtures 20-30 minutes before kickoff that still need a prediction.

    Fixtures triggered less than ``PROCESSING_BUFFER_MINUTES`` ago are
    still being processed and are left out; older triggers without a
    prediction are retried. At most ``MAX_PREDICTIONS_PER_RUN`` are
    returned, earliest kickoff first.
    """
    now = now or utc_now()
    rows = _fetch(
        TRIGGER_COLUMNS + ", venue:venues(name), predictions(id), prediction_triggered_at",
        ("eq", "NS"),
        now + timedelta(minutes=PREDICTION_WINDOW[0]),
        now + timedelta(minutes=PREDICTION_WINDOW[1]),
    )
    pending = [
        r
        for r in rows
        if not _has_rows(r.get("predictions"))
        and _outside_buffer(r.get("prediction_triggered_at"), now)
    ]
    pending.sort(key=lambda r: r.get("match_date", ""))
    return [FixtureForTrigger.from_row(r) for r in pending[:MAX_PREDICTIONS_PER_RUN]]


def query_live_leagues() -> list[LeagueFixtureCount]:
    """Count in-play fixtures per active league."""
    try:
        rows = (
            get_supabase()
            .table("fixtures")
            .select("id, league_id, league:leagues!inner(id, name, is_active)")
            .in_("status", list(IN_PLAY_STATUSES))
            .eq("league.is_active", True)
            .execute()
            .data
            or []
        )
    except Exception as e:
        logger.error("Erreur lecture des matchs en cours : %s", e)
        return []
    return _count_by_league(rows)


def query_post_match_leagues(now: datetime | None = None) -> list[LeagueFixtureCount]:
    """Count finished fixtures 230-250 minutes after kickoff per league."""
    now = now or utc_now()
    rows = _fetch(
        "id, league_id, league:leagues!inner(id, name, is_active), post_match_triggered_at",
        ("eq", "FT"),
        now - timedelta(minutes=POST_MATCH_WINDOW[1]),
        now - timedelta(minutes=POST_MATCH_WINDOW[0]),
    )
    return _count_by_league([r for r in rows if not r.get("post_match_triggered_at")])


def query_analysis_fixtures(now: datetime | None = None) -> list[FixtureForTrigger]:
    """Finished fixtures 245-265 minutes after kickoff awaiting an analysis.

    Only fixtures with a prediction and without an analysis qualify. Same
    processing buffer and cap rules as predictions.
    """
    now = now or utc_now()
    rows = _fetch(
        TRIGGER_COLUMNS + ", predictions(id), match_analysis(id), analysis_triggered_at",
        ("eq", "FT"),
        now - timedelta(minutes=ANALYSIS_WINDOW[1]),
        now - timedelta(minutes=ANALYSIS_WINDOW[0]),
    )
    pending = [
        r
        for r in rows
        if _has_rows(r.get("predictions"))
        and not _has_rows(r.get("match_analysis"))
        and _outside_buffer(r.get("analysis_triggered_at"), now)
    ]
    pending.sort(key=lambda r: r.get("match_date", ""))
    return [FixtureForTrigger.from_row(r) for r in pending[:MAX_ANALYSES_PER_RUN]]


# ═══════════════════════════════════════════════════════════════════
#  CONFIGURATION & SUIVI
# ═══════════════════════════════════════════════════════════════════


def get_automation_config() -> dict | None:
    """Return the singleton ``automation_config`` row, or ``None``."""
    try:
        rows = get_supabase().table("automation_config").select("*").limit(1).execute().data
    except Exception as e:
        logger.error("Lecture automation_config impossible : %s", e)
        return None
    return rows[0] if rows else None


def update_automation_config(updates: dict[str, Any]) -> dict | None:
    """Apply ``updates`` to the config row and return the updated row."""
    existing = get_automation_config()
    if not existing:
        return None
    try:
        rows = (
            get_supabase()
            .table("automation_config")
            .update(updates)
            .eq("id", existing["id"])
            .execute()
            .data
        )
    except Exception as e:
        logger.error("Mise à jour automation_config impossible : %s", e)
        return None
    return rows[0] if rows else {**existing, **updates}


def mark_fixtures_triggered(fixture_ids: list[str], column: str, now: datetime | None = None) -> int:
    """Stamp ``column`` (e.g. ``prediction_triggered_at``) on the fixtures.

    Returns:
        The number of fixtures stamped (0 on error).
    """
    if not fixture_ids:
        return 0
    now = now or utc_now()
    try:
        get_supabase().table("fixtures").update({column: now.isoformat()}).in_(
            "id", fixture_ids
        ).execute()
    except Exception as e:
        logger.error("Marquage %s impossible : %s", column, e)
        return 0
    return len(fixture_ids)
