"""
api/routers/refresh.py — Rafraîchissement des données à la demande.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from football_insights.api.security import verify_api_key
from football_insights.leagues import load_league
from football_insights.models.dataclasses import League
from football_insights.refresh import (
    ROUTES,
    InvalidPhaseError,
    PhaseDetectionError,
    execute_route,
    phase_refresh,
    smart_refresh,
)

router = APIRouter(prefix="/api/data/refresh", tags=["refresh"], dependencies=[Depends(verify_api_key)])


def _league_or_404(league_id: Optional[str]) -> League:
    league = load_league(league_id)
    if league is None:
        raise HTTPException(status_code=404, detail=f"League not found: {league_id or 'default'}")
    return league


@router.api_route("/smart", methods=["GET", "POST"])
def refresh_smart(
    league_id: Optional[str] = None,
    dry_run: bool = False,
    include_optional: bool = False,
):
    """Detect the league's match phase and refresh what it needs."""
    league = _league_or_404(league_id)
    return smart_refresh(league, dry_run=dry_run, include_optional=include_optional)


@router.api_route("/phase", methods=["GET", "POST"])
def refresh_phase(
    league_id: Optional[str] = None,
    phase: Optional[str] = Query(None, description="pre-match, imminent, live or post-match"),
    include_optional: bool = False,
    dry_run: bool = False,
):
    league = _league_or_404(league_id)
    try:
        return phase_refresh(league, phase=phase, include_optional=include_optional, dry_run=dry_run)
    except InvalidPhaseError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PhaseDetectionError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{route}")
def refresh_route(
    route: str,
    league_id: Optional[str] = None,
    mode: Optional[str] = None,
    count: Optional[int] = Query(None, ge=1, le=50),
):
    """Run a single refresh route (``fixtures``, ``standings``...)."""
    if route not in ROUTES:
        raise HTTPException(status_code=404, detail=f"Unknown endpoint: {route}")

    league = _league_or_404(league_id)
    params = {k: v for k, v in (("mode", mode), ("count", count)) if v is not None}
    query = "&".join(f"{k}={v}" for k, v in params.items())
    result = execute_route(f"{route}?{query}" if query else route, league)
    if not result.success:
        raise HTTPException(status_code=500, detail=result.error or f"{route} refresh failed")
    return {**result.as_dict(), "league": league.name}
