"""
fetchers/teams.py — Équipes, stades, classements et statistiques de saison.

Endpoints utilisés :
  - GET /teams?league={id}&season={saison}                    (1 requête)
  - GET /standings?league={id}&season={saison}                (1 requête)
  - GET /teams/statistics?league={id}&season={saison}&team=X  (1 par équipe)

Les équipes doivent être importées en premier : les autres fetchers
retrouvent leurs ``team_id`` via :func:`load_team_map`.
"""

from __future__ import annotations

from football_insights.config import api_get, get_supabase, logger
from football_insights.fetchers import FetchError, check_failures, require_response
from football_insights.models.dataclasses import League
from football_insights.models.schemas import validate_standings_response
from football_insights.windows import utc_now


def load_team_map(league_id: str | None = None) -> dict[int, str]:
    """Return the ``api_id -> id`` mapping of the teams table.

    Args:
        league_id: Restrict to the teams of one league.

    Returns:
        Mapping from API-Football team id to database id.

    Raises:
        FetchError: If the teams table cannot be read.
    """
    try:
        query = get_supabase().table("teams").select("id, api_id")
        if league_id:
            query = query.eq("league_id", league_id)
        teams = query.execute().data or []
    except Exception as e:
        raise FetchError(f"teams read failed: {e}") from e
    return {t["api_id"]: t["id"] for t in teams if t.get("api_id")}


def load_venue_map() -> dict[int, str]:
    """``api_id -> id`` of the venues table; empty when unreadable."""
    try:
        venues = get_supabase().table("venues").select("id, api_id").execute().data or []
    except Exception as e:
        logger.warning("Stades non chargés : %s", e)
        return {}
    return {v["api_id"]: v["id"] for v in venues if v.get("api_id")}


# ── ÉQUIPES & STADES ─────────────────────────────────────────────
def venue_row(venue: dict, country: str | None) -> dict:
    return {
        "api_id": venue["id"],
        "name": venue.get("name") or "Unknown",
        "city": venue.get("city"),
        "country": country,
        "capacity": venue.get("capacity"),
        "surface": venue.get("surface"),
    }


def fetch_teams(league: League) -> int:
    """Fetch the league's teams and their venues and upsert both.

    Venues are written first so that each team row can reference its
    ``venue_id``.

    Returns:
        The number of teams written.

    Raises:
        FetchError: If the API returns nothing or a write is refused.
    """
    logger.info("📋 %s : équipes (saison %s)", league.name, league.current_season)

    data = require_response(
        api_get("teams", {"league": league.api_id, "season": league.current_season}), "teams"
    )
    items = [item for item in data.get("response") or [] if (item.get("team") or {}).get("id")]
    if not items:
        raise FetchError("No teams returned from API")
    logger.info("   %d équipes reçues.", len(items))

    venues = {
        item["venue"]["id"]: venue_row(item["venue"], item["team"].get("country"))
        for item in items
        if (item.get("venue") or {}).get("id")
    }
    venue_map: dict[int, str] = {}
    if venues:
        try:
            stored = (
                get_supabase()
                .table("venues")
                .upsert(list(venues.values()), on_conflict="api_id")
                .execute()
                .data
                or []
            )
        except Exception as e:
            raise FetchError(f"venues upsert failed: {e}") from e
        venue_map = {v["api_id"]: v["id"] for v in stored if v.get("api_id")}

    batch = [
        {
            "api_id": item["team"]["id"],
            "league_id": league.id,
            "name": item["team"].get("name"),
            "code": item["team"].get("code"),
            "country": item["team"].get("country"),
            "logo": item["team"].get("logo"),
            "venue_id": venue_map.get((item.get("venue") or {}).get("id")),
        }
        for item in items
    ]
    try:
        get_supabase().table("teams").upsert(batch, on_conflict="api_id,league_id").execute()
    except Exception as e:
        raise FetchError(f"teams upsert failed: {e}") from e

    logger.info("   ✅ %d équipes, %d stades enregistrés.", len(batch), len(venue_map))
    return len(batch)


# ── CLASSEMENT ───────────────────────────────────────────────────
def fetch_standings(league: League) -> int:
    """Fetch the league table and upsert one row per team into ``standings``.

    Only the first group is stored (league format). Home/away splits are
    kept as JSON records.

    Returns:
        The number of standing rows written.

    Raises:
        FetchError: If the API returns nothing usable or the upsert fails.
    """
    logger.info("📊 %s : classement (saison %s)", league.name, league.current_season)

    data = require_response(
        api_get("standings", {"league": league.api_id, "season": league.current_season}),
        "standings",
    )
    validated = validate_standings_response(data)
    if not validated or not validated.response or not validated.response[0].league.standings:
        raise FetchError("No standings returned from API")

    groups = validated.response[0].league.standings
    team_map = load_team_map(league.id)
    now = utc_now().isoformat()
    batch: list[dict] = []
    missing: list[str] = []

    for row in groups[0]:
        team_id = team_map.get(row.team.id)
        if not team_id:
            missing.append(row.team.name)
            continue
        totals = row.all
        goals = totals.goals if totals else {}
        batch.append(
            {
                "league_id": league.id,
                "season": league.current_season,
                "team_id": team_id,
                "rank": row.rank,
                "points": row.points,
                "goal_diff": row.goalsDiff,
                "form": row.form,
                "description": row.description,
                "played": totals.played if totals else 0,
                "won": totals.win if totals else 0,
                "drawn": totals.draw if totals else 0,
                "lost": totals.lose if totals else 0,
                "goals_for": goals.get("for"),
                "goals_against": goals.get("against"),
                "home_record": row.home.model_dump() if row.home else None,
                "away_record": row.away.model_dump() if row.away else None,
                "updated_at": now,
            }
        )

    if missing:
        logger.warning("   Équipes inconnues : %s", ", ".join(missing))
    if not batch:
        return 0

    try:
        get_supabase().table("standings").upsert(
            batch, on_conflict="league_id,season,team_id"
        ).execute()
    except Exception as e:
        logger.error("   ❌ Erreur upsert classement : %s", e)
        raise FetchError(f"standings upsert failed: {e}") from e

    logger.info("   ✅ %d lignes de classement enregistrées.", len(batch))
    return len(batch)


# ── STATISTIQUES DE SAISON ───────────────────────────────────────
def _split(stats: dict, side: str) -> dict | None:
    fixtures = stats.get("fixtures") or {}
    played = (fixtures.get("played") or {}).get(side)
    if not played:
        return None
    goals = stats.get("goals") or {}
    return {
        "played": played,
        "wins": (fixtures.get("wins") or {}).get(side),
        "draws": (fixtures.get("draws") or {}).get(side),
        "losses": (fixtures.get("loses") or {}).get(side),
        "goals_for": ((goals.get("for") or {}).get("total") or {}).get(side),
        "goals_against": ((goals.get("against") or {}).get("total") or {}).get(side),
    }


def team_stats_row(stats: dict, team_id: str, league: League) -> dict:
    """Flatten a ``/teams/statistics`` payload into a ``team_season_stats`` row."""
    fixtures = stats.get("fixtures") or {}
    goals = stats.get("goals") or {}
    goals_for = goals.get("for") or {}
    goals_against = goals.get("against") or {}
    return {
        "team_id": team_id,
        "league_id": league.id,
        "season": league.current_season,
        "fixtures_played": (fixtures.get("played") or {}).get("total") or 0,
        "wins": (fixtures.get("wins") or {}).get("total") or 0,
        "draws": (fixtures.get("draws") or {}).get("total") or 0,
        "losses": (fixtures.get("loses") or {}).get("total") or 0,
        "goals_for": (goals_for.get("total") or {}).get("total") or 0,
        "goals_against": (goals_against.get("total") or {}).get("total") or 0,
        "goals_for_avg": (goals_for.get("average") or {}).get("total"),
        "goals_against_avg": (goals_against.get("average") or {}).get("total"),
        "clean_sheets": (stats.get("clean_sheet") or {}).get("total") or 0,
        "failed_to_score": (stats.get("failed_to_score") or {}).get("total") or 0,
        "form": stats.get("form"),
        "home_stats": _split(stats, "home"),
        "away_stats": _split(stats, "away"),
        "updated_at": utc_now().isoformat(),
    }


def fetch_team_stats(league: League) -> int:
    """Fetch season statistics for every team of the league.

    Returns:
        The number of teams updated.

    Raises:
        FetchError: If no team could be fetched or stored.
    """
    logger.info("📈 %s : statistiques des équipes", league.name)
    team_map = load_team_map(league.id)
    if not team_map:
        logger.info("   Aucune équipe en base.")
        return 0

    total: int = 0
    failures: int = 0
    for api_id, team_id in team_map.items():
        data = api_get(
            "teams/statistics",
            {"league": league.api_id, "season": league.current_season, "team": api_id},
        )
        if data is None:
            failures += 1
            continue
        if not data.get("response"):
            continue

        try:
            get_supabase().table("team_season_stats").upsert(
                team_stats_row(data["response"], team_id, league),
                on_conflict="team_id,league_id,season",
            ).execute()
            total += 1
        except Exception as e:
            failures += 1
            logger.error("   ❌ Équipe %s : %s", api_id, e)

    check_failures("team-stats", failures, len(team_map), total)
    logger.info("   ✅ %d équipes mises à jour.", total)
    return total
