"""
fetchers/match_data.py — Données détaillées par match :
  - Compositions (GET /fixtures/lineups)
  - Statistiques d'équipe (GET /fixtures/statistics)
  - Événements : buts, cartons, remplacements (GET /fixtures/events)

Un appel API par match : on ne traite que les matchs qui en ont besoin
(compos proches du coup d'envoi, stats/événements manquants).
"""

from __future__ import annotations

from datetime import datetime, timedelta

from football_insights.config import api_get, get_supabase, logger
from football_insights.constants import (
    COMPLETED_STATUSES,
    LINEUP_HOURS,
    RECENT_DAYS,
    STATS_BACKFILL_DAYS,
)
from football_insights.fetchers import FetchError, check_failures
from football_insights.fetchers.teams import load_team_map
from football_insights.models.dataclasses import FixtureForWindow, League
from football_insights.windows import (
    is_completed_status,
    is_not_started_status,
    needs_lineup_data,
    utc_now,
)

STATS_MODES: tuple[str, ...] = ("smart", "recent", "missing", "all")


def safe_int(val) -> int | None:
    """Parse API-Football stat values (``12``, ``"54%"``, ``None``)."""
    if val is None:
        return None
    try:
        return int(str(val).rstrip("%"))
    except (ValueError, TypeError):
        return None


def _existing_fixture_ids(table: str, fixture_ids: list[str]) -> set[str]:
    if not fixture_ids:
        return set()
    try:
        rows = (
            get_supabase().table(table).select("fixture_id").in_("fixture_id", fixture_ids).execute().data
            or []
        )
    except Exception as e:
        logger.error("Erreur lecture %s : %s", table, e)
        return set()
    return {r["fixture_id"] for r in rows}


def _completed_fixtures(league: League, mode: str, now: datetime) -> list[dict]:
    query = (
        get_supabase()
        .table("fixtures")
        .select("id, api_id, match_date")
        .eq("league_id", league.id)
        .in_("status", sorted(COMPLETED_STATUSES))
    )
    if mode in ("smart", "recent"):
        query = query.gte("match_date", (now - timedelta(days=STATS_BACKFILL_DAYS)).isoformat())
    try:
        return query.execute().data or []
    except Exception as e:
        raise FetchError(f"completed fixtures read failed: {e}") from e


def _fixtures_to_process(league: League, table: str, mode: str, now: datetime) -> list[dict]:
    if mode not in STATS_MODES:
        logger.warning("Mode '%s' inconnu, utilisation de 'smart'", mode)
        mode = "smart"
    fixtures = _completed_fixtures(league, mode, now)
    if mode == "all":
        return fixtures
    existing = _existing_fixture_ids(table, [f["id"] for f in fixtures])
    return [f for f in fixtures if f["id"] not in existing]


# ── COMPOSITIONS ─────────────────────────────────────────────────
def lineup_row(fixture_id: str, team_id: str, lineup: dict) -> dict:
    return {
        "fixture_id": fixture_id,
        "team_id": team_id,
        "formation": lineup.get("formation"),
        "starting_xi": [
            {
                "id": (p.get("player") or {}).get("id"),
                "name": (p.get("player") or {}).get("name"),
                "number": (p.get("player") or {}).get("number"),
                "pos": (p.get("player") or {}).get("pos"),
                "grid": (p.get("player") or {}).get("grid"),
            }
            for p in lineup.get("startXI") or []
        ],
        "substitutes": [
            {
                "id": (p.get("player") or {}).get("id"),
                "name": (p.get("player") or {}).get("name"),
                "number": (p.get("player") or {}).get("number"),
                "pos": (p.get("player") or {}).get("pos"),
            }
            for p in lineup.get("substitutes") or []
        ],
        "coach_name": (lineup.get("coach") or {}).get("name"),
        "coach_id": (lineup.get("coach") or {}).get("id"),
    }


def fetch_lineups(league: League, mode: str = "prematch", now: datetime | None = None) -> int:
    """Fetch lineups for the fixtures that need them.

    Args:
        league: Target league.
        mode: ``"prematch"`` for not-started fixtures around kickoff
            (lineups are published ~1h before), ``"recent"`` to backfill
            completed fixtures of the last ``RECENT_DAYS`` days without
            lineups.
        now: Reference instant.

    Returns:
        The number of team lineups written.
    """
    now = now or utc_now()
    logger.info("📋 %s : compositions (%s)", league.name, mode)

    try:
        rows = (
            get_supabase()
            .table("fixtures")
            .select("id, api_id, match_date, status")
            .eq("league_id", league.id)
            .gte("match_date", (now - timedelta(days=RECENT_DAYS)).isoformat())
            .lte("match_date", (now + timedelta(hours=LINEUP_HOURS)).isoformat())
            .execute()
            .data
            or []
        )
    except Exception as e:
        raise FetchError(f"fixtures read failed: {e}") from e

    existing = _existing_fixture_ids("lineups", [r["id"] for r in rows])
    candidates: list[FixtureForWindow] = []
    for row in rows:
        fixture = FixtureForWindow.from_row(row)
        fixture.has_lineup = fixture.id in existing
        if not needs_lineup_data(fixture, now=now):
            continue
        if mode == "prematch" and not is_not_started_status(fixture.status):
            continue
        if mode == "recent" and not is_completed_status(fixture.status):
            continue
        candidates.append(fixture)

    if not candidates:
        logger.info("   Aucun match à traiter.")
        return 0

    team_map = load_team_map(league.id)
    imported: int = 0
    failures: int = 0
    for fixture in candidates:
        data = api_get("fixtures/lineups", {"fixture": fixture.api_id})
        if data is None:
            failures += 1
            continue
        if not data.get("response"):
            continue

        batch = [
            lineup_row(fixture.id, team_map[lineup["team"]["id"]], lineup)
            for lineup in data["response"]
            if (lineup.get("team") or {}).get("id") in team_map
        ]
        if not batch:
            continue
        try:
            get_supabase().table("lineups").upsert(batch, on_conflict="fixture_id,team_id").execute()
            imported += len(batch)
        except Exception as e:
            failures += 1
            logger.error("   ❌ Compos fixture %s : %s", fixture.api_id, e)

    check_failures("lineups", failures, len(candidates), imported)
    logger.info("   ✅ %d compositions importées", imported)
    return imported


# ── STATISTIQUES ─────────────────────────────────────────────────
def statistics_row(fixture_id: str, team_id: str, statistics: list[dict]) -> dict:
    """Flatten the ``[{type, value}]`` stat list of one team."""
    stats: dict = {}
    for stat in statistics:
        key = (stat.get("type") or "").lower().replace(" ", "_")
        if key:
            stats[key] = stat.get("value")

    xg = stats.get("expected_goals")
    try:
        expected_goals = float(xg) if xg is not None else None
    except (ValueError, TypeError):
        expected_goals = None

    return {
        "fixture_id": fixture_id,
        "team_id": team_id,
        "shots_total": safe_int(stats.get("total_shots")),
        "shots_on_goal": safe_int(stats.get("shots_on_goal")),
        "shots_off_goal": safe_int(stats.get("shots_off_goal")),
        "shots_blocked": safe_int(stats.get("blocked_shots")),
        "shots_inside_box": safe_int(stats.get("shots_insidebox")),
        "shots_outside_box": safe_int(stats.get("shots_outsidebox")),
        "corners": safe_int(stats.get("corner_kicks")),
        "offsides": safe_int(stats.get("offsides")),
        "fouls": safe_int(stats.get("fouls")),
        "ball_possession": safe_int(stats.get("ball_possession")),
        "yellow_cards": safe_int(stats.get("yellow_cards")),
        "red_cards": safe_int(stats.get("red_cards")),
        "goalkeeper_saves": safe_int(stats.get("goalkeeper_saves")),
        "passes_total": safe_int(stats.get("total_passes")),
        "passes_accurate": safe_int(stats.get("passes_accurate")),
        "passes_pct": safe_int(stats.get("passes_%")),
        "expected_goals": expected_goals,
    }


def fetch_fixture_statistics(league: League, mode: str = "smart", now: datetime | None = None) -> int:
    """Fetch team statistics for completed fixtures.

    ``smart``/``recent`` only look at fixtures played in the last
    ``STATS_BACKFILL_DAYS`` days, ``missing`` at every completed fixture
    without stats, ``all`` re-fetches everything.

    Returns:
        The number of team statistic rows written.
    """
    now = now or utc_now()
    logger.info("📊 %s : statistiques de match (%s)", league.name, mode)

    fixtures = _fixtures_to_process(league, "fixture_statistics", mode, now)
    if not fixtures:
        logger.info("   Aucun match à traiter.")
        return 0

    team_map = load_team_map(league.id)
    imported: int = 0
    failures: int = 0
    for fixture in fixtures:
        data = api_get("fixtures/statistics", {"fixture": fixture["api_id"]})
        if data is None:
            failures += 1
            continue
        if not data.get("response"):
            continue

        batch = [
            statistics_row(fixture["id"], team_map[item["team"]["id"]], item.get("statistics") or [])
            for item in data["response"]
            if (item.get("team") or {}).get("id") in team_map
        ]
        if not batch:
            continue
        try:
            get_supabase().table("fixture_statistics").upsert(
                batch, on_conflict="fixture_id,team_id"
            ).execute()
            imported += len(batch)
        except Exception as e:
            failures += 1
            logger.error("   ❌ Stats fixture %s : %s", fixture["api_id"], e)

    check_failures("fixture-statistics", failures, len(fixtures), imported)
    logger.info("   ✅ %d lignes de statistiques importées", imported)
    return imported


# ── ÉVÉNEMENTS ───────────────────────────────────────────────────
def event_row(fixture_id: str, team_map: dict[int, str], event: dict) -> dict | None:
    """Map one API event; events without an elapsed minute are dropped."""
    time_info = event.get("time") or {}
    if time_info.get("elapsed") is None:
        return None
    player = event.get("player") or {}
    assist = event.get("assist") or {}
    return {
        "fixture_id": fixture_id,
        "team_id": team_map.get((event.get("team") or {}).get("id")),
        "elapsed": time_info["elapsed"],
        "extra_time": time_info.get("extra"),
        "type": event.get("type") or "Unknown",
        "detail": event.get("detail"),
        "player_name": player.get("name"),
        "player_id": player.get("id"),
        "assist_name": assist.get("name"),
        "assist_id": assist.get("id"),
        "comments": event.get("comments"),
    }


def fetch_fixture_events(league: League, mode: str = "smart", now: datetime | None = None) -> int:
    """Fetch goals, cards and substitutions for completed fixtures.

    Same fixture selection as :func:`fetch_fixture_statistics`.

    Returns:
        The number of event rows written.
    """
    now = now or utc_now()
    logger.info("⚽ %s : événements de match (%s)", league.name, mode)

    fixtures = _fixtures_to_process(league, "fixture_events", mode, now)
    if not fixtures:
        logger.info("   Aucun match à traiter.")
        return 0

    team_map = load_team_map(league.id)
    imported: int = 0
    failures: int = 0
    for fixture in fixtures:
        data = api_get("fixtures/events", {"fixture": fixture["api_id"]})
        if data is None:
            failures += 1
            continue
        if not data.get("response"):
            continue

        batch = [
            row
            for row in (event_row(fixture["id"], team_map, e) for e in data["response"])
            if row is not None
        ]
        if not batch:
            continue
        try:
            get_supabase().table("fixture_events").upsert(
                batch,
                on_conflict="fixture_id,elapsed,type,player_name",
                ignore_duplicates=True,
            ).execute()
            imported += len(batch)
        except Exception as e:
            failures += 1
            logger.error("   ❌ Événements fixture %s : %s", fixture["api_id"], e)

    check_failures("fixture-events", failures, len(fixtures), imported)
    logger.info("   ✅ %d événements importés", imported)
    return imported
