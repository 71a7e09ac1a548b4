"""
dataclasses.py — Structures de données typées pour Football Insights.

Remplace les dicts renvoyés par Supabase par des objets structurés.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any


def parse_datetime(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix accepted) into an aware datetime.

    Naive values are assumed to be UTC.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def first_embed(value: Any) -> Any:
    """PostgREST embeds come back as a list or an object depending on the FK."""
    if isinstance(value, list):
        return value[0] if value else None
    return value


# ═══════════════════════════════════════════════════════════════════
#  LIGUE
# ═══════════════════════════════════════════════════════════════════


@dataclass
class League:
    """A tracked competition, as stored in the ``leagues`` table."""

    id: str
    api_id: int
    name: str
    current_season: int
    is_active: bool = True

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> League:
        return cls(
            id=str(row["id"]),
            api_id=int(row["api_id"]),
            name=row.get("name") or "Unknown",
            current_season=int(row.get("current_season") or 2025),
            is_active=bool(row.get("is_active", True)),
        )


# ═══════════════════════════════════════════════════════════════════
#  FIXTURE (détection de phase)
# ═══════════════════════════════════════════════════════════════════


@dataclass
class FixtureForWindow:
    """Timing view of a fixture used by the window and phase logic."""

    id: str
    api_id: int
    match_date: datetime
    status: str
    goals_home: int | None = None
    goals_away: int | None = None
    home_team_id: str | None = None
    away_team_id: str | None = None
    has_lineup: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> FixtureForWindow:
        return cls(
            id=str(row["id"]),
            api_id=int(row.get("api_id") or 0),
            match_date=parse_datetime(row["match_date"]),
            status=row.get("status") or "NS",
            goals_home=row.get("goals_home"),
            goals_away=row.get("goals_away"),
            home_team_id=row.get("home_team_id"),
            away_team_id=row.get("away_team_id"),
            has_lineup=bool(row.get("lineup_home")),
        )


# ═══════════════════════════════════════════════════════════════════
#  FIXTURE (déclencheurs d'automatisation)
# ═══════════════════════════════════════════════════════════════════


@dataclass
class FixtureForTrigger:
    """A fixture selected by one of the automation trigger windows."""

    id: str
    api_id: int
    league_id: str
    match_date: str
    status: str
    home_team_id: str | None = None
    away_team_id: str | None = None
    home_team: str | None = None
    away_team: str | None = None
    venue: str | None = None
    round: str | None = None
    goals_home: int | None = None
    goals_away: int | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> FixtureForTrigger:
        home = first_embed(row.get("home_team")) or {}
        away = first_embed(row.get("away_team")) or {}
        venue = first_embed(row.get("venue")) or {}
        return cls(
            id=str(row["id"]),
            api_id=int(row.get("api_id") or 0),
            league_id=str(row.get("league_id")),
            match_date=row.get("match_date", ""),
            status=row.get("status", ""),
            home_team_id=row.get("home_team_id"),
            away_team_id=row.get("away_team_id"),
            home_team=home.get("name"),
            away_team=away.get("name"),
            venue=venue.get("name"),
            round=row.get("round"),
            goals_home=row.get("goals_home"),
            goals_away=row.get("goals_away"),
        )


@dataclass
class LeagueWithFixtures:
    """Fixtures of a trigger window grouped under their league."""

    league_id: str
    league_name: str
    fixtures: list[FixtureForTrigger] = field(default_factory=list)


@dataclass
class LeagueFixtureCount:
    """Number of fixtures of one league in a live or post-match window."""

    league_id: str
    league_name: str
    count: int
    fixture_ids: list[str] = field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════
#  RÉSULTATS
# ═══════════════════════════════════════════════════════════════════


@dataclass
class WebhookResult:
    """Outcome of a single webhook call."""

    success: bool
    status: int
    duration: int  # ms
    response: Any = None
    error: str | None = None


@dataclass
class TriggerResult:
    """Outcome of one trigger type for one league or fixture batch."""

    trigger_type: str
    status: str  # "success" | "error" | "no-action"
    fixture_count: int
    webhook_result: WebhookResult | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "trigger_type": self.trigger_type,
            "status": self.status,
            "fixture_count": self.fixture_count,
            "error": self.error,
        }


@dataclass
class RefreshResult:
    """Outcome of one data-source refresh."""

    endpoint: str
    success: bool
    duration: int  # ms
    details: dict[str, Any] | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)
