"""
fetchers/context.py — Contexte des matchs à venir d'une ligue :
  - Blessures/suspensions (GET /injuries)
  - Cotes bookmakers (GET /odds, Bet365)
  - Head-to-Head (GET /fixtures/headtohead)
  - Météo (OpenWeatherMap, optionnel)

Chaque fonction renvoie le nombre de lignes écrites en base et lève
FetchError quand la source ou la base est injoignable.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import requests

from football_insights.config import OPENWEATHER_API_KEY, api_get, get_supabase, logger
from football_insights.constants import H2H_MATCHES, ODDS_DAYS, UPCOMING_DAYS, WEATHER_HOURS
from football_insights.fetchers import FetchError, check_failures, require_response
from football_insights.fetchers.teams import load_team_map
from football_insights.models.dataclasses import League, first_embed, parse_datetime
from football_insights.models.schemas import validate_injury_response, validate_odds_response
from football_insights.windows import utc_now

BET365_BOOKMAKER_ID: int = 8
OPENWEATHER_FORECAST_URL: str = "https://api.openweathermap.org/data/2.5/forecast"


def _upcoming_fixtures(league: League, columns: str, hours: float, now: datetime) -> list[dict]:
    """Not-started fixtures of the league kicking off within ``hours``."""
    try:
        return (
            get_supabase()
            .table("fixtures")
            .select(columns)
            .eq("league_id", league.id)
            .eq("status", "NS")
            .gte("match_date", now.isoformat())
            .lte("match_date", (now + timedelta(hours=hours)).isoformat())
            .order("match_date")
            .execute()
            .data
            or []
        )
    except Exception as e:
        raise FetchError(f"fixtures read failed: {e}") from e


# ── BLESSURES ────────────────────────────────────────────────────
def fetch_injuries(league: League, mode: str = "all", now: datetime | None = None) -> int:
    """Fetch injuries/suspensions of the league and upsert them.

    Args:
        league: Target league.
        mode: ``"all"`` for the whole season, ``"upcoming"`` to keep only
            reports attached to fixtures that have not kicked off yet.
        now: Reference instant for the ``upcoming`` filter.

    Returns:
        The number of injury rows written.
    """
    now = now or utc_now()
    logger.info("🏥 %s : blessures/suspensions (%s)", league.name, mode)

    data = require_response(
        api_get("injuries", {"league": league.api_id, "season": league.current_season}), "injuries"
    )
    if not data.get("response"):
        logger.info("   Aucune blessure renvoyée.")
        return 0
    validated = validate_injury_response(data)
    if validated is None:
        raise FetchError("API-Football injuries: invalid payload")

    team_map = load_team_map(league.id)
    try:
        players = get_supabase().table("players").select("id, api_id").execute().data or []
    except Exception as e:
        logger.warning("   Joueurs non chargés : %s", e)
        players = []
    player_map = {p["api_id"]: p["id"] for p in players if p.get("api_id")}

    batch: list[dict] = []
    skipped: int = 0
    for item in validated.response:
        team_id = team_map.get(item.team.get("id"))
        if not team_id:
            skipped += 1
            continue

        fixture_date = item.fixture.get("date")
        if mode == "upcoming" and (not fixture_date or parse_datetime(fixture_date) < now):
            continue

        batch.append(
            {
                "player_id": player_map.get(item.player.id),
                "player_name": item.player.name,
                "team_id": team_id,
                "type": item.player.type,  # Missing Fixture, Questionable...
                "reason": item.player.reason,  # Knee Injury, Suspended...
                "reported_date": fixture_date[:10] if fixture_date else None,
            }
        )

    if skipped:
        logger.info("   %d blessures ignorées (équipes hors base)", skipped)
    if not batch:
        return 0

    try:
        get_supabase().table("injuries").upsert(
            batch, on_conflict="player_id,reported_date"
        ).execute()
    except Exception as e:
        raise FetchError(f"injuries upsert failed: {e}") from e

    logger.info("   ✅ %d blessures/suspensions", len(batch))
    return len(batch)


# ── COTES BOOKMAKERS ─────────────────────────────────────────────
def fetch_odds(league: League, now: datetime | None = None) -> int:
    """Fetch pre-match Bet365 odds for the league's upcoming fixtures.

    Only fixtures kicking off within ``ODDS_DAYS`` are queried. One row
    per market (bet type) is upserted into ``odds``.

    Returns:
        The number of fixtures with odds stored.
    """
    now = now or utc_now()
    logger.info("💰 %s : cotes bookmakers", league.name)

    fixtures = _upcoming_fixtures(league, "id, api_id, match_date", ODDS_DAYS * 24, now)
    if not fixtures:
        logger.info("   Aucun match à venir.")
        return 0

    total: int = 0
    failures: int = 0
    for i, fix in enumerate(fixtures):
        if (i + 1) % 20 == 0:
            logger.info("  Odds : %d/%d...", i + 1, len(fixtures))

        data = api_get("odds", {"fixture": fix["api_id"], "bookmaker": BET365_BOOKMAKER_ID})
        if data is None:
            failures += 1
            continue
        validated = validate_odds_response(data)
        if not validated or not validated.response:
            continue

        rows: list[dict] = []
        for item in validated.response:
            for bookmaker in item.bookmakers:
                for bet in bookmaker.bets:
                    rows.append(
                        {
                            "fixture_id": fix["id"],
                            "bookmaker": bookmaker.name,
                            "bet_type": bet.name,
                            "values": [
                                {"value": v.value, "odd": safe_float(v.odd)} for v in bet.values
                            ],
                            "updated_at": now.isoformat(),
                        }
                    )
        if not rows:
            continue

        try:
            get_supabase().table("odds").upsert(
                rows, on_conflict="fixture_id,bookmaker,bet_type"
            ).execute()
            total += 1
        except Exception as e:
            failures += 1
            logger.error("   ❌ Cotes fixture %s : %s", fix["api_id"], e)

    check_failures("odds", failures, len(fixtures), total)
    logger.info("   ✅ %d matchs avec cotes importées", total)
    return total


# ── HEAD TO HEAD ─────────────────────────────────────────────────
def aggregate_h2h(matches: list[dict], team1_api_id: int) -> dict:
    """Aggregate head-to-head results from ``team1``'s point of view.

    Args:
        matches: Raw ``/fixtures/headtohead`` items.
        team1_api_id: API id of the reference team.

    Returns:
        Dict with matches_played, team1/team2 wins, draws, goals and the
        last fixtures summary.
    """
    team1_wins = team2_wins = draws = team1_goals = team2_goals = 0
    last_fixtures: list[dict] = []

    for m in matches:
        goals = m.get("goals") or {}
        teams = m.get("teams") or {}
        gh: int = goals.get("home") or 0
        ga: int = goals.get("away") or 0

        # Déterminer qui est l'équipe 1
        if (teams.get("home") or {}).get("id") == team1_api_id:
            g1, g2 = gh, ga
        else:
            g1, g2 = ga, gh

        team1_goals += g1
        team2_goals += g2
        if g1 > g2:
            team1_wins += 1
        elif g1 < g2:
            team2_wins += 1
        else:
            draws += 1

        if len(last_fixtures) < H2H_MATCHES:
            last_fixtures.append(
                {
                    "date": (m.get("fixture") or {}).get("date"),
                    "home": (teams.get("home") or {}).get("name"),
                    "away": (teams.get("away") or {}).get("name"),
                    "score": f"{gh}-{ga}",
                }
            )

    return {
        "matches_played": len(matches),
        "team1_wins": team1_wins,
        "team2_wins": team2_wins,
        "draws": draws,
        "team1_goals": team1_goals,
        "team2_goals": team2_goals,
        "last_fixtures": last_fixtures,
    }


def fetch_h2h(league: League, now: datetime | None = None) -> int:
    """Fetch head-to-head history for the league's upcoming pairings.

    For each not-started fixture of the next ``UPCOMING_DAYS`` days,
    retrieves the last ``H2H_MATCHES`` encounters between the two teams.
    Each pairing is fetched once.

    Returns:
        The number of pairings stored in ``head_to_head``.
    """
    now = now or utc_now()
    logger.info("⚔️ %s : head-to-head", league.name)

    fixtures = _upcoming_fixtures(
        league,
        "id, home_team_id, away_team_id, "
        "home_team:teams!fixtures_home_team_id_fkey(api_id, name), "
        "away_team:teams!fixtures_away_team_id_fkey(api_id, name)",
        UPCOMING_DAYS * 24,
        now,
    )

    total: int = 0
    failures: int = 0
    seen_pairs: set[tuple[str, str]] = set()

    for fix in fixtures:
        home = first_embed(fix.get("home_team")) or {}
        away = first_embed(fix.get("away_team")) or {}
        if not home.get("api_id") or not away.get("api_id"):
            continue

        # Éviter les doublons (même paire)
        pair = tuple(sorted([fix["home_team_id"], fix["away_team_id"]]))
        if pair in seen_pairs:
            continue
        seen_pairs.add(pair)

        data = api_get(
            "fixtures/headtohead",
            {"h2h": f"{home['api_id']}-{away['api_id']}", "last": H2H_MATCHES},
        )
        if data is None:
            failures += 1
            continue
        if not data.get("response"):
            continue

        row = aggregate_h2h(data["response"], home["api_id"])
        row.update(
            {
                "team1_id": fix["home_team_id"],
                "team2_id": fix["away_team_id"],
                "updated_at": now.isoformat(),
            }
        )
        try:
            get_supabase().table("head_to_head").upsert(
                row, on_conflict="team1_id,team2_id"
            ).execute()
            total += 1
        except Exception as e:
            failures += 1
            logger.error("   ❌ H2H %s vs %s : %s", home.get("name"), away.get("name"), e)

    check_failures("head-to-head", failures, len(seen_pairs), total)
    logger.info("   ✅ %d H2H importés", total)
    return total


# ── MÉTÉO (optionnel) ────────────────────────────────────────────
def closest_forecast(entries: list[dict], match_dt: datetime) -> dict | None:
    """Pick the OpenWeatherMap 3-hour forecast entry closest to kickoff."""
    target = match_dt.timestamp()
    return min(entries, key=lambda w: abs(w["dt"] - target), default=None)


def weather_row(fixture_id: str, forecast: dict, now: datetime) -> dict:
    main = forecast.get("main") or {}
    wind = forecast.get("wind") or {}
    conditions = (forecast.get("weather") or [{}])[0]
    return {
        "fixture_id": fixture_id,
        "temperature": main.get("temp"),
        "feels_like": main.get("feels_like"),
        "humidity": main.get("humidity"),
        "wind_speed": wind.get("speed"),
        "wind_direction": wind.get("deg"),
        "precipitation": (forecast.get("rain") or {}).get("3h", 0),
        "weather_code": conditions.get("id"),
        "description": conditions.get("description"),
        "fetched_at": now.isoformat(),
    }


def fetch_weather(league: League, now: datetime | None = None) -> int:
    """Fetch venue forecasts for fixtures kicking off within ``WEATHER_HOURS``.

    Requires ``OPENWEATHER_API_KEY``; without it the refresh is skipped.

    Returns:
        The number of fixtures with a forecast stored.
    """
    if not OPENWEATHER_API_KEY:
        logger.warning("⏭️  OPENWEATHER_API_KEY non configurée, météo ignorée.")
        return 0

    now = now or utc_now()
    logger.info("🌦️ %s : météo", league.name)

    fixtures = _upcoming_fixtures(
        league,
        "id, api_id, match_date, venue:venues!fixtures_venue_id_fkey(name, city)",
        WEATHER_HOURS,
        now,
    )

    total: int = 0
    failures: int = 0
    for fix in fixtures:
        venue = first_embed(fix.get("venue")) or {}
        city: str | None = venue.get("city")
        if not city:
            continue

        try:
            resp = requests.get(
                OPENWEATHER_FORECAST_URL,
                params={
                    "q": city,
                    "appid": OPENWEATHER_API_KEY,
                    "units": "metric",
                    "cnt": 16,  # 48h de prévision par pas de 3h
                },
                timeout=5,
            )
            weather_data = resp.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            failures += 1
            logger.warning("   Météo %s indisponible : %s", city, e)
            continue

        if str(weather_data.get("cod")) != "200":
            failures += 1
            continue

        forecast = closest_forecast(weather_data.get("list", []), parse_datetime(fix["match_date"]))
        if not forecast:
            continue

        try:
            get_supabase().table("weather").upsert(
                weather_row(fix["id"], forecast, now), on_conflict="fixture_id"
            ).execute()
            total += 1
        except Exception as e:
            failures += 1
            logger.error("   ❌ Météo fixture %s : %s", fix["api_id"], e)

    check_failures("weather", failures, len(fixtures), total)
    logger.info("   ✅ Météo récupérée pour %d matchs", total)
    return total


def safe_float(val: str | float | None) -> float | None:
    """Safely cast a value to float.

    Args:
        val: Raw value (string, number, or ``None``).

    Returns:
        The float representation, or ``None`` on failure.
    """
    if val is None:
        return None
    try:
        return float(val)
    except (ValueError, TypeError):
        return None
