"""
scheduler.py — Planification des refresh intelligents par ligue.

Chaque refresh renvoie un ``next_check_minutes`` (table des phases). Le
planificateur retient l'échéance par ligue pour que la boucle de polling
n'appelle les API que lorsque la phase le demande.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Any

from football_insights.config import logger
from football_insights.leagues import load_active_leagues
from football_insights.refresh import smart_refresh
from football_insights.windows import utc_now


class RefreshPlanner:
    """In-memory map of league id -> next smart refresh due time."""

    def __init__(self) -> None:
        self._due: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def due_leagues(self, league_ids: list[str], now: datetime | None = None) -> list[str]:
        """Return the leagues whose refresh is due at ``now``.

        Leagues never refreshed are always due.
        """
        now = now or utc_now()
        with self._lock:
            return [lid for lid in league_ids if lid not in self._due or self._due[lid] <= now]

    def record(self, league_id: str, next_check_minutes: int, now: datetime | None = None) -> datetime:
        """Store the next due time for ``league_id`` and return it."""
        now = now or utc_now()
        due = now + timedelta(minutes=max(next_check_minutes, 1))
        with self._lock:
            self._due[league_id] = due
        return due

    def next_due(self, league_id: str) -> datetime | None:
        with self._lock:
            return self._due.get(league_id)

    def forget(self, league_id: str) -> None:
        """Drop a league so that it is refreshed on the next tick."""
        with self._lock:
            self._due.pop(league_id, None)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return {lid: due.isoformat() for lid, due in self._due.items()}


def run_due_smart_refreshes(planner: RefreshPlanner, now: datetime | None = None) -> dict[str, Any]:
    """Smart-refresh every active league whose refresh is due.

    A league whose refresh raised is forgotten so that it is retried on
    the next tick.

    Returns:
        ``{league_id: result}`` for the leagues refreshed.
    """
    now = now or utc_now()
    leagues = {league.id: league for league in load_active_leagues()}
    results: dict[str, Any] = {}

    for league_id in planner.due_leagues(list(leagues), now=now):
        league = leagues[league_id]
        try:
            result = smart_refresh(league, now=now)
        except Exception as e:
            logger.error("❌ Refresh intelligent %s en échec : %s", league.name, e)
            planner.forget(league_id)
            continue
        due = planner.record(league_id, result["next_check_minutes"], now=now)
        logger.info("📅 %s : prochain refresh à %s", league.name, due.strftime("%H:%M"))
        results[league_id] = result

    return results
