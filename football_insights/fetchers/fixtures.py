"""
fetchers/fixtures.py — Import des matchs d'une ligue depuis API-Football.

Modes de récupération :
  - smart    : fenêtre active (J-3 → J+7), mode par défaut
  - full     : toute la saison
  - upcoming : maintenant → J+7
  - recent   : J-3 → maintenant
  - live     : matchs en cours uniquement
  - next     : les N prochains matchs (``count``)
  - last     : les N derniers matchs (``count``)

Plus la resynchro des matchs restés "en cours" en base alors qu'ils sont
sans doute terminés (un seul appel ``fixtures?ids=``).
"""

from __future__ import annotations

from datetime import datetime, timedelta

from football_insights.config import api_get, get_supabase, logger
from football_insights.constants import IN_PLAY_STATUSES
from football_insights.fetchers import FetchError, require_response
from football_insights.fetchers.teams import load_team_map, load_venue_map
from football_insights.models.dataclasses import League
from football_insights.models.schemas import APIFixtureItem, validate_fixture_response
from football_insights.windows import format_date_for_api, get_fixture_windows, utc_now

FIXTURE_MODES: tuple[str, ...] = ("smart", "full", "upcoming", "recent", "live", "next", "last")

# Un match normal dure ~110 min : au-delà de 80 min on revérifie le statut
STALE_AFTER_MINUTES: int = 80
STALE_LOOKBACK_HOURS: int = 4


def build_fixture_params(
    league: League, mode: str = "smart", count: int = 10, now: datetime | None = None
) -> dict:
    """Build the ``/fixtures`` query string for a refresh mode.

    Args:
        league: Target league.
        mode: One of :data:`FIXTURE_MODES`. Unknown modes fall back to
            ``"smart"``.
        count: Number of fixtures for the ``next``/``last`` modes.
        now: Reference instant for the date windows.

    Returns:
        Query parameters for :func:`config.api_get`.
    """
    if mode == "live":
        return {"live": str(league.api_id)}

    params: dict = {"league": league.api_id, "season": league.current_season}
    if mode == "full":
        return params
    if mode == "next":
        params["next"] = count
        return params
    if mode == "last":
        params["last"] = count
        return params

    windows = get_fixture_windows(now=now)
    if mode == "upcoming":
        params["from"] = format_date_for_api(windows.now)
        params["to"] = format_date_for_api(windows.upcoming_end)
    elif mode == "recent":
        params["from"] = format_date_for_api(windows.recent)
        params["to"] = format_date_for_api(windows.now)
    else:
        params["from"] = format_date_for_api(windows.recent)
        params["to"] = format_date_for_api(windows.upcoming_end)
    return params


def fixture_row(
    item: APIFixtureItem,
    league: League,
    team_map: dict[int, str],
    venue_map: dict[int, str] | None = None,
) -> dict | None:
    """Map one validated API item to a ``fixtures`` row.

    Returns ``None`` when either team is unknown in the database.
    """
    home_id = team_map.get(item.teams["home"].id)
    away_id = team_map.get(item.teams["away"].id)
    if not home_id or not away_id:
        return None

    status = item.fixture.status or {}
    score = item.score or {}
    return {
        "api_id": item.fixture.id,
        "league_id": league.id,
        "season": league.current_season,
        "round": item.league.get("round"),
        "home_team_id": home_id,
        "away_team_id": away_id,
        "venue_id": (venue_map or {}).get((item.fixture.venue or {}).get("id")),
        "match_date": item.fixture.date,
        "referee": item.fixture.referee,
        "status": status.get("short", "NS"),
        "elapsed": status.get("elapsed"),
        "goals_home": item.goals.home,
        "goals_away": item.goals.away,
        "score_halftime": score.get("halftime"),
        "score_fulltime": score.get("fulltime"),
        "updated_at": utc_now().isoformat(),
    }


def fetch_fixtures(
    league: League,
    mode: str = "smart",
    count: int = 10,
    now: datetime | None = None,
) -> int:
    """Fetch the fixtures of a league for a refresh mode and upsert them.

    Args:
        league: Target league.
        mode: One of :data:`FIXTURE_MODES`.
        count: Number of fixtures for the ``next``/``last`` modes.
        now: Reference instant for the date windows.

    Returns:
        The number of fixtures written; 0 when the API has none for the
        window (no live match, off-season...).

    Raises:
        FetchError: If the API call fails, the payload is malformed or the
            upsert is refused.
    """
    if mode not in FIXTURE_MODES:
        logger.warning("Mode fixtures inconnu '%s', utilisation de 'smart'", mode)
        mode = "smart"

    params = build_fixture_params(league, mode=mode, count=int(count), now=now)
    logger.info("📅 %s : fixtures (%s) %s", league.name, mode, params)

    data = require_response(api_get("fixtures", params), "fixtures")
    if not data.get("response"):
        logger.info("   Aucun match renvoyé par l'API.")
        return 0
    validated = validate_fixture_response(data)
    if validated is None:
        raise FetchError("API-Football fixtures: invalid payload")

    team_map = load_team_map(league.id)
    venue_map = load_venue_map()
    rows: list[dict] = []
    missing: int = 0
    for item in validated.response:
        row = fixture_row(item, league, team_map, venue_map)
        if row is None:
            missing += 1
            continue
        rows.append(row)

    if missing:
        logger.warning("   %d matchs ignorés (équipes inconnues)", missing)
    if not rows:
        return 0

    try:
        get_supabase().table("fixtures").upsert(rows, on_conflict="api_id,league_id").execute()
    except Exception as e:
        logger.error("   ❌ Erreur upsert fixtures %s : %s", league.name, e)
        raise FetchError(f"fixtures upsert failed: {e}") from e

    logger.info("   ✅ %d matchs enregistrés.", len(rows))
    return len(rows)


def sync_finished_matches(league_id: str | None = None, now: datetime | None = None) -> int:
    """Re-fetch fixtures still marked in play long after kickoff.

    Fixtures whose kickoff was between 4 hours and 80 minutes ago but
    whose stored status is still in play are refreshed in a single
    ``fixtures?ids=`` request so that finished matches flip to ``FT``
    without waiting for the next full refresh.

    Args:
        league_id: Restrict the sync to one league.
        now: Reference instant.

    Returns:
        The number of fixtures updated.
    """
    now = now or utc_now()
    supabase = get_supabase()

    try:
        query = (
            supabase.table("fixtures")
            .select("id, api_id, status")
            .in_("status", list(IN_PLAY_STATUSES))
            .lte("match_date", (now - timedelta(minutes=STALE_AFTER_MINUTES)).isoformat())
            .gte("match_date", (now - timedelta(hours=STALE_LOOKBACK_HOURS)).isoformat())
        )
        if league_id:
            query = query.eq("league_id", league_id)
        stale = query.execute().data or []
    except Exception as e:
        logger.error("Erreur lecture des matchs en cours : %s", e)
        return 0

    api_ids = [str(m["api_id"]) for m in stale if m.get("api_id")]
    if not api_ids:
        return 0

    logger.info("🔄 Resynchro de %d matchs potentiellement terminés", len(api_ids))
    data = api_get("fixtures", {"ids": "-".join(api_ids)})
    if not data or not isinstance(data.get("response"), list):
        return 0

    updated: int = 0
    for item in data["response"]:
        fixture = item.get("fixture") or {}
        status = fixture.get("status") or {}
        if not fixture.get("id") or not status.get("short"):
            continue

        goals = item.get("goals") or {}
        try:
            supabase.table("fixtures").update(
                {
                    "status": status["short"],
                    "elapsed": status.get("elapsed"),
                    "goals_home": goals.get("home"),
                    "goals_away": goals.get("away"),
                    "updated_at": now.isoformat(),
                }
            ).eq("api_id", fixture["id"]).execute()
            updated += 1
        except Exception as e:
            logger.error("  [DB ERROR] fixture %s : %s", fixture["id"], e)

    logger.info("   ✅ %d matchs resynchronisés", updated)
    return updated
