"""
refresh.py — Orchestration des rafraîchissements de données.

Deux orchestrateurs :
  - smart_refresh : détecte la phase de la ligue et exécute, l'une après
    l'autre, les sources recommandées par la table des phases.
  - phase_refresh : exécute en parallèle un jeu d'endpoints fixe par
    phase (avant-match, imminent, live, après-match).

Chaque refresh exécuté est tracé dans la table ``refresh_logs``.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable
from urllib.parse import parse_qsl

from football_insights.config import get_supabase, logger
from football_insights.constants import RECENT_DAYS, SMART_REFRESH_DELAY_SECONDS, UPCOMING_DAYS
from football_insights.fetchers.context import fetch_h2h, fetch_injuries, fetch_odds, fetch_weather
from football_insights.fetchers.fixtures import fetch_fixtures
from football_insights.fetchers.match_data import (
    fetch_fixture_events,
    fetch_fixture_statistics,
    fetch_lineups,
)
from football_insights.fetchers.teams import fetch_standings, fetch_team_stats, fetch_teams
from football_insights.leagues import WINDOW_FIXTURE_COLUMNS, load_window_fixtures
from football_insights.models.dataclasses import FixtureForWindow, League, RefreshResult
from football_insights.phase import (
    MatchPhase,
    PhaseDetectionResult,
    detect_current_phase,
    get_phase_display_info,
    get_recommended_refreshes,
    phase_result_as_dict,
)
from football_insights.windows import utc_now


class InvalidPhaseError(ValueError):
    """Raised when a phase cannot be orchestrated or detected."""


class PhaseDetectionError(RuntimeError):
    """Raised when the fixtures needed to detect a phase cannot be read."""


# ═══════════════════════════════════════════════════════════════════
#  ROUTES DE REFRESH
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class RefreshRoute:
    """A fetcher and the query parameters it understands."""

    fetcher: Callable[..., int]
    params: tuple[str, ...] = ()
    accepts_now: bool = True


ROUTES: dict[str, RefreshRoute] = {
    "teams": RefreshRoute(fetch_teams, accepts_now=False),
    "fixtures": RefreshRoute(fetch_fixtures, ("mode", "count")),
    "standings": RefreshRoute(fetch_standings, accepts_now=False),
    "team-stats": RefreshRoute(fetch_team_stats, accepts_now=False),
    "injuries": RefreshRoute(fetch_injuries, ("mode",)),
    "odds": RefreshRoute(fetch_odds),
    "weather": RefreshRoute(fetch_weather),
    "head-to-head": RefreshRoute(fetch_h2h),
    "lineups": RefreshRoute(fetch_lineups, ("mode",)),
    "fixture-statistics": RefreshRoute(fetch_fixture_statistics, ("mode",)),
    "fixture-events": RefreshRoute(fetch_fixture_events, ("mode",)),
}

# Source recommandée par la table des phases -> (route, mode)
SMART_SOURCES: dict[str, tuple[str, str | None]] = {
    "fixtures": ("fixtures", "smart"),
    "lineups": ("lineups", "prematch"),
    "statistics": ("fixture-statistics", "smart"),
    "events": ("fixture-events", "smart"),
    "standings": ("standings", None),
    "injuries": ("injuries", None),
    "odds": ("odds", None),
    "weather": ("weather", None),
    "team-stats": ("team-stats", None),
    "live-scores": ("fixtures", "smart"),
    "h2h": ("head-to-head", None),
}

ORCHESTRATABLE_PHASES: tuple[str, ...] = ("pre-match", "imminent", "live", "post-match")

PHASE_ENDPOINTS: dict[str, dict[str, list[str]]] = {
    "pre-match": {
        "required": ["fixtures?mode=next&count=10", "standings", "injuries?mode=upcoming"],
        "optional": ["head-to-head", "team-stats", "weather", "odds"],
    },
    "imminent": {
        "required": ["lineups?mode=prematch", "odds"],
        "optional": ["injuries?mode=upcoming"],
    },
    "live": {
        "required": ["fixtures?mode=live"],
        "optional": ["fixture-statistics", "fixture-events"],
    },
    "post-match": {
        "required": [
            "fixtures?mode=last&count=5",
            "fixture-statistics?mode=smart",
            "fixture-events?mode=smart",
            "standings",
        ],
        "optional": [],
    },
}

# Phase détaillée -> phase orchestrable
DETECTED_TO_ORCHESTRATED: dict[MatchPhase, str] = {
    MatchPhase.DAY_BEFORE: "pre-match",
    MatchPhase.MATCHDAY_MORNING: "pre-match",
    MatchPhase.PRE_MATCH: "pre-match",
    MatchPhase.IMMINENT: "imminent",
    MatchPhase.LIVE: "live",
    MatchPhase.POST_MATCH: "post-match",
    MatchPhase.DAY_AFTER: "post-match",
}


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def parse_endpoint(endpoint: str) -> tuple[str, dict[str, str]]:
    """Split ``"fixtures?mode=next&count=10"`` into route and parameters."""
    route, _, query = endpoint.partition("?")
    return route, dict(parse_qsl(query))


def log_refresh(
    category: str,
    status: str,
    message: str,
    details: dict | None = None,
    league_id: str | None = None,
) -> None:
    """Insert one row into ``refresh_logs``; failures are only logged."""
    try:
        get_supabase().table("refresh_logs").insert(
            {
                "category": category,
                "type": "refresh",
                "status": status,
                "message": message,
                "details": details,
                "league_id": league_id,
            }
        ).execute()
    except Exception as e:
        logger.warning("refresh_logs non écrit (%s) : %s", category, e)


def run_route(
    route: str,
    league: League,
    params: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> int:
    """Run one refresh route for a league.

    Args:
        route: Key of :data:`ROUTES`.
        league: Target league.
        params: Query parameters; those the route does not understand are
            ignored.
        now: Reference instant forwarded to time-aware fetchers.

    Returns:
        The fetcher's count of rows written.

    Raises:
        ValueError: If ``route`` is unknown.
    """
    entry = ROUTES.get(route)
    if entry is None:
        raise ValueError(f"Unknown refresh route: {route}")

    kwargs: dict[str, Any] = {k: v for k, v in (params or {}).items() if k in entry.params and v}
    if entry.accepts_now and now is not None:
        kwargs["now"] = now
    return entry.fetcher(league, **kwargs)


def execute_route(
    endpoint: str,
    league: League,
    now: datetime | None = None,
    label: str | None = None,
) -> RefreshResult:
    """Run an endpoint string (route plus query) and wrap the outcome.

    Never raises: unknown routes and fetcher failures produce a failed
    :class:`RefreshResult`.
    """
    start = time.monotonic()
    label = label or endpoint
    route, params = parse_endpoint(endpoint)

    if route not in ROUTES:
        return RefreshResult(
            endpoint=label,
            success=False,
            duration=_elapsed_ms(start),
            error=f"Unknown endpoint: {route}",
        )

    try:
        imported = run_route(route, league, params, now=now)
    except Exception as e:
        logger.error("Refresh %s (%s) en échec : %s", endpoint, league.name, e)
        log_refresh(route, "error", str(e), {"endpoint": endpoint}, league.id)
        return RefreshResult(endpoint=label, success=False, duration=_elapsed_ms(start), error=str(e))

    duration = _elapsed_ms(start)
    log_refresh(
        route,
        "success",
        f"{imported} enregistrements ({league.name})",
        {"endpoint": endpoint, "imported": imported, "duration": duration},
        league.id,
    )
    return RefreshResult(
        endpoint=label, success=True, duration=duration, details={"imported": imported}
    )


# ═══════════════════════════════════════════════════════════════════
#  REFRESH INTELLIGENT
# ═══════════════════════════════════════════════════════════════════


def execute_smart_source(source: str, league: League, now: datetime | None = None) -> RefreshResult:
    """Refresh one recommended source (``"lineups"``, ``"h2h"``...)."""
    mapping = SMART_SOURCES.get(source)
    if mapping is None:
        return RefreshResult(
            endpoint=source, success=False, duration=0, error=f"Unknown endpoint: {source}"
        )
    route, mode = mapping
    endpoint = f"{route}?mode={mode}" if mode else route
    return execute_route(endpoint, league, now=now, label=source)


def smart_refresh(
    league: League,
    dry_run: bool = False,
    include_optional: bool = False,
    now: datetime | None = None,
    delay_seconds: float = SMART_REFRESH_DELAY_SECONDS,
) -> dict[str, Any]:
    """Detect the league's match phase and refresh what the phase needs.

    Sources run sequentially with a short pause between them to spread
    the API-Football load.

    Args:
        league: Target league.
        dry_run: Only return the detected phase and recommendation.
        include_optional: Also refresh the optional sources.
        now: Reference instant.
        delay_seconds: Pause between two sources.

    Returns:
        JSON-ready dict with the phase, display info, per-source results,
        a summary and ``next_check_minutes``.
    """
    start = time.monotonic()
    fixtures = load_window_fixtures(league, now=now)
    detection = detect_current_phase(fixtures, now=now)
    display = get_phase_display_info(detection)
    recommendation = detection.recommendation

    logger.info(
        "🧠 %s : phase %s (%d matchs en fenêtre)", league.name, detection.phase.value, len(fixtures)
    )

    if dry_run:
        payload = phase_result_as_dict(detection)
        payload.update(
            {
                "success": True,
                "dry_run": True,
                "league": league.name,
                "display": display,
                "fixtures_in_window": len(fixtures),
            }
        )
        return payload

    sources = list(recommendation.required) + (
        list(recommendation.optional) if include_optional else []
    )
    results: list[RefreshResult] = []
    for i, source in enumerate(sources):
        if i and delay_seconds:
            time.sleep(delay_seconds)
        results.append(execute_smart_source(source, league, now=now))

    successful = sum(1 for r in results if r.success)
    failed = len(results) - successful
    return {
        "success": failed == 0,
        "league": league.name,
        "phase": detection.phase.value,
        "display": display,
        "refreshed": sources,
        "skipped": list(recommendation.skip),
        "results": [r.as_dict() for r in results],
        "summary": {
            "total": len(sources),
            "successful": successful,
            "failed": failed,
            "duration": _elapsed_ms(start),
        },
        "next_check_minutes": recommendation.next_check_minutes,
    }


# ═══════════════════════════════════════════════════════════════════
#  REFRESH PAR PHASE
# ═══════════════════════════════════════════════════════════════════


def detect_phase_for_league(league: League, now: datetime | None = None) -> str | None:
    """Detect the orchestratable phase of a league.

    Looks at fixtures between ``RECENT_DAYS`` ago and ``UPCOMING_DAYS``
    ahead. Returns ``None`` when there is none.

    Raises:
        PhaseDetectionError: If the fixtures cannot be read.
    """
    now = now or utc_now()
    try:
        rows = (
            get_supabase()
            .table("fixtures")
            .select(WINDOW_FIXTURE_COLUMNS)
            .eq("league_id", league.id)
            .gte("match_date", (now - timedelta(days=RECENT_DAYS)).isoformat())
            .lte("match_date", (now + timedelta(days=UPCOMING_DAYS)).isoformat())
            .order("match_date")
            .execute()
            .data
            or []
        )
    except Exception as e:
        logger.error("Erreur détection de phase (%s) : %s", league.name, e)
        raise PhaseDetectionError(f"Unable to read fixtures for {league.name}: {e}") from e

    if not rows:
        return None

    detection = detect_current_phase([FixtureForWindow.from_row(r) for r in rows], now=now)
    return DETECTED_TO_ORCHESTRATED.get(detection.phase, "pre-match")


def _run_parallel(endpoints: list[str], league: League, now: datetime | None) -> list[RefreshResult]:
    if not endpoints:
        return []
    with ThreadPoolExecutor(max_workers=len(endpoints)) as executor:
        return list(executor.map(lambda ep: execute_route(ep, league, now=now), endpoints))


def phase_refresh(
    league: League,
    phase: str | None = None,
    include_optional: bool = False,
    dry_run: bool = False,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Run the fixed endpoint set of a phase for a league.

    Required endpoints run in parallel, then optional ones in parallel.

    Args:
        league: Target league.
        phase: One of :data:`ORCHESTRATABLE_PHASES`; detected from the
            league's fixtures when omitted.
        include_optional: Also run the optional endpoints.
        dry_run: Only return what would be executed.
        now: Reference instant.

    Returns:
        JSON-ready dict with results and a summary.

    Raises:
        InvalidPhaseError: If the phase is invalid or cannot be detected.
        PhaseDetectionError: If detection failed on a database error.
    """
    if not phase:
        phase = detect_phase_for_league(league, now=now)
    if not phase or phase not in PHASE_ENDPOINTS:
        raise InvalidPhaseError("Invalid or unable to detect phase")

    config = PHASE_ENDPOINTS[phase]
    endpoints = config["required"] + (config["optional"] if include_optional else [])

    if dry_run:
        return {
            "success": True,
            "dry_run": True,
            "league": league.name,
            "phase": phase,
            "endpoints": {
                "required": config["required"],
                "optional": config["optional"],
                "to_execute": endpoints,
            },
        }

    logger.info("🚦 %s : phase %s, endpoints %s", league.name, phase, ", ".join(endpoints))
    start = time.monotonic()
    results = _run_parallel(config["required"], league, now)
    if include_optional:
        results += _run_parallel(config["optional"], league, now)

    successful = sum(1 for r in results if r.success)
    display = get_phase_display_info(
        PhaseDetectionResult(
            phase=MatchPhase(phase),
            next_match=None,
            next_match_time=None,
            hours_until_next=None,
            live_matches=1 if phase == "live" else 0,
            upcoming_today=0,
            recently_completed=0,
            recommendation=get_recommended_refreshes(phase),
        )
    )
    return {
        "success": successful == len(results),
        "league": league.name,
        "phase": phase,
        "display": display,
        "results": [r.as_dict() for r in results],
        "summary": {
            "total": len(results),
            "successful": successful,
            "failed": len(results) - successful,
            "duration": _elapsed_ms(start),
        },
    }
