"""
phase.py — Détection de la phase du cycle de vie des matchs.

Associe l'état des fixtures d'une ligue à une phase (veille de match,
avant-match, live, après-match...) et à la liste des sources de données
à rafraîchir pour cette phase. Sert à éviter le polling inutile des API.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from football_insights.constants import (
    DAY_BEFORE_HOURS,
    IMMINENT_HOURS,
    POST_MATCH_PHASE_HOURS,
    PRE_MATCH_HOURS,
    WEEK_BEFORE_HOURS,
)
from football_insights.models.dataclasses import FixtureForWindow
from football_insights.windows import categorize_fixtures, is_not_started_status, utc_now


class MatchPhase(str, Enum):
    """Lifecycle phase of the matches in the active window."""

    NO_MATCHES = "no-matches"  # Aucun match dans la fenêtre
    WEEK_BEFORE = "week-before"  # Matchs dans 2 à 7 jours
    DAY_BEFORE = "day-before"  # Match demain
    MATCHDAY_MORNING = "matchday-morning"  # Match aujourd'hui, dans plus de 3h
    PRE_MATCH = "pre-match"  # Match dans 1 à 3h
    IMMINENT = "imminent"  # Coup d'envoi dans moins d'1h
    LIVE = "live"  # Matchs en cours
    POST_MATCH = "post-match"  # Matchs terminés il y a moins de 2h
    DAY_AFTER = "day-after"  # Résultats de la veille à synchroniser


@dataclass(frozen=True)
class PhaseRecommendation:
    """Which data sources to refresh for a phase and when to look again."""

    required: tuple[str, ...]
    optional: tuple[str, ...]
    skip: tuple[str, ...]
    next_check_minutes: int
    description: str

    def as_dict(self) -> dict:
        return {
            "required": list(self.required),
            "optional": list(self.optional),
            "skip": list(self.skip),
            "next_check_minutes": self.next_check_minutes,
            "description": self.description,
        }


@dataclass
class PhaseDetectionResult:
    phase: MatchPhase
    next_match: FixtureForWindow | None
    next_match_time: datetime | None
    hours_until_next: float | None
    live_matches: int
    upcoming_today: int
    recently_completed: int
    recommendation: PhaseRecommendation = field(repr=False)


PHASE_RECOMMENDATIONS: dict[MatchPhase, PhaseRecommendation] = {
    MatchPhase.NO_MATCHES: PhaseRecommendation(
        required=(),
        optional=("standings", "injuries"),
        skip=("fixtures", "lineups", "odds", "statistics", "events"),
        next_check_minutes=360,
        description="No matches in the next week. Minimal data sync needed.",
    ),
    MatchPhase.WEEK_BEFORE: PhaseRecommendation(
        required=("team-stats",),
        optional=("injuries", "standings", "h2h"),
        skip=("lineups", "live-scores"),
        next_check_minutes=240,
        description="Matches coming up this week. Sync team stats and injuries.",
    ),
    MatchPhase.DAY_BEFORE: PhaseRecommendation(
        required=("injuries", "odds"),
        optional=("fixtures", "weather", "team-stats"),
        skip=("lineups", "statistics"),
        next_check_minutes=120,
        description="Match tomorrow. Sync odds and final injury updates.",
    ),
    MatchPhase.MATCHDAY_MORNING: PhaseRecommendation(
        required=("fixtures", "injuries", "odds"),
        optional=("weather",),
        skip=("team-stats", "standings"),
        next_check_minutes=60,
        description="Matchday! Sync odds and check for any late injury news.",
    ),
    MatchPhase.PRE_MATCH: PhaseRecommendation(
        required=("lineups", "odds"),
        optional=("weather", "injuries"),
        skip=("team-stats", "standings", "statistics"),
        next_check_minutes=30,
        description="Match starting soon. Lineups should be available.",
    ),
    MatchPhase.IMMINENT: PhaseRecommendation(
        required=("lineups",),
        optional=("odds",),
        skip=("team-stats", "standings", "injuries"),
        next_check_minutes=15,
        description="Match starting very soon! Final lineup check.",
    ),
    MatchPhase.LIVE: PhaseRecommendation(
        required=("live-scores",),
        optional=("events",),
        skip=("lineups", "odds", "team-stats", "injuries"),
        next_check_minutes=1,
        description="Match in progress! Live score updates.",
    ),
    MatchPhase.POST_MATCH: PhaseRecommendation(
        required=("statistics", "events", "fixtures"),
        optional=("lineups", "standings"),
        skip=("odds", "weather", "injuries"),
        next_check_minutes=30,
        description="Match just finished. Sync full statistics.",
    ),
    MatchPhase.DAY_AFTER: PhaseRecommendation(
        required=("standings", "statistics"),
        optional=("events", "team-stats"),
        skip=("lineups", "odds", "weather"),
        next_check_minutes=120,
        description="Processing yesterday's results. Update standings.",
    ),
}

UNKNOWN_PHASE_RECOMMENDATION = PhaseRecommendation(
    required=(),
    optional=("fixtures",),
    skip=(),
    next_check_minutes=60,
    description="Unknown phase. Default refresh.",
)


def _hours_between(moment: datetime, now: datetime) -> float:
    return (moment - now).total_seconds() / 3600


def detect_current_phase(
    fixtures: list[FixtureForWindow], now: datetime | None = None
) -> PhaseDetectionResult:
    """Classify the current match phase from the fixtures of a league.

    Rules are evaluated in priority order: live matches first, then the
    distance to the next kickoff, then recently finished matches, then
    the broader day/week horizons.

    Args:
        fixtures: Fixtures in the active window (typically the last 3 days
            and the next 7 days).
        now: Reference instant. Defaults to the current UTC time.

    Returns:
        The detected phase with its counters and refresh recommendation.
    """
    now = now or utc_now()
    categorized = categorize_fixtures(fixtures, now=now)

    upcoming = sorted(categorized.upcoming, key=lambda f: f.match_date)
    next_match = upcoming[0] if upcoming else None
    next_match_time = next_match.match_date if next_match else None
    hours_until_next = _hours_between(next_match_time, now) if next_match_time else None

    live_matches = len(categorized.live)
    upcoming_today = sum(1 for f in categorized.today if is_not_started_status(f.status))
    recently_completed = len(categorized.recently_completed)

    if live_matches > 0:
        phase = MatchPhase.LIVE
    elif hours_until_next is not None and 0 < hours_until_next <= IMMINENT_HOURS:
        phase = MatchPhase.IMMINENT
    elif hours_until_next is not None and IMMINENT_HOURS < hours_until_next <= PRE_MATCH_HOURS:
        phase = MatchPhase.PRE_MATCH
    elif upcoming_today > 0 and hours_until_next is not None and hours_until_next > PRE_MATCH_HOURS:
        phase = MatchPhase.MATCHDAY_MORNING
    elif recently_completed > 0 and upcoming_today == 0:
        # Distance au coup d'envoi le plus récent, plafonnée à 24h
        hours_since_last = min(
            [abs(_hours_between(f.match_date, now)) for f in categorized.recently_completed]
            + [24.0]
        )
        phase = (
            MatchPhase.POST_MATCH
            if hours_since_last <= POST_MATCH_PHASE_HOURS
            else MatchPhase.DAY_AFTER
        )
    elif hours_until_next is not None and hours_until_next <= DAY_BEFORE_HOURS:
        phase = MatchPhase.DAY_BEFORE
    elif hours_until_next is not None and hours_until_next <= WEEK_BEFORE_HOURS:
        phase = MatchPhase.WEEK_BEFORE
    else:
        phase = MatchPhase.NO_MATCHES

    return PhaseDetectionResult(
        phase=phase,
        next_match=next_match,
        next_match_time=next_match_time,
        hours_until_next=hours_until_next,
        live_matches=live_matches,
        upcoming_today=upcoming_today,
        recently_completed=recently_completed,
        recommendation=get_recommended_refreshes(phase),
    )


def get_recommended_refreshes(phase: MatchPhase | str) -> PhaseRecommendation:
    """Look up the refresh recommendation for a phase.

    Unrecognised phase values get a conservative default (optional
    fixtures refresh, check again in an hour).
    """
    try:
        return PHASE_RECOMMENDATIONS[MatchPhase(phase)]
    except ValueError:
        return UNKNOWN_PHASE_RECOMMENDATION


def get_phase_display_info(result: PhaseDetectionResult) -> dict[str, str]:
    """Human-readable title, subtitle, urgency and icon for a phase."""
    phase = result.phase
    hours = result.hours_until_next

    if phase == MatchPhase.LIVE:
        plural = "es" if result.live_matches > 1 else ""
        return {
            "title": f"{result.live_matches} match{plural} in progress",
            "subtitle": "Live score sync active",
            "urgency": "critical",
            "icon": "play-circle",
        }
    if phase == MatchPhase.IMMINENT:
        return {
            "title": "Kick-off imminent",
            "subtitle": f"{round(hours * 60)} minutes away" if hours else "Starting soon",
            "urgency": "critical",
            "icon": "clock",
        }
    if phase == MatchPhase.PRE_MATCH:
        return {
            "title": "Pre-match phase",
            "subtitle": f"Match in {hours:.1f} hours" if hours else "Match approaching",
            "urgency": "high",
            "icon": "users",
        }
    if phase == MatchPhase.MATCHDAY_MORNING:
        return {
            "title": "Matchday",
            "subtitle": f"First match in {hours:.0f} hours" if hours else "Matches today",
            "urgency": "medium",
            "icon": "calendar",
        }
    if phase == MatchPhase.POST_MATCH:
        return {
            "title": "Post-match processing",
            "subtitle": "Syncing match statistics",
            "urgency": "medium",
            "icon": "bar-chart",
        }
    if phase == MatchPhase.DAY_BEFORE:
        return {
            "title": "Match tomorrow",
            "subtitle": "Preparing match data",
            "urgency": "low",
            "icon": "calendar",
        }
    if phase == MatchPhase.WEEK_BEFORE:
        subtitle = (
            f"Next: {result.next_match.match_date.date().isoformat()}"
            if result.next_match
            else "This week"
        )
        return {
            "title": "Upcoming matches",
            "subtitle": subtitle,
            "urgency": "low",
            "icon": "calendar",
        }
    if phase == MatchPhase.DAY_AFTER:
        return {
            "title": "Post-matchday",
            "subtitle": "Finalizing results",
            "urgency": "low",
            "icon": "check-circle",
        }
    return {
        "title": "No upcoming matches",
        "subtitle": "Check back later",
        "urgency": "low",
        "icon": "pause-circle",
    }


def should_refresh(source: str, phase: MatchPhase | str) -> tuple[bool, str]:
    """Whether ``source`` should be refreshed in ``phase``, and with what priority.

    Returns:
        ``(True, "required")``, ``(True, "optional")`` or ``(False, "skip")``.
    """
    recommendation = get_recommended_refreshes(phase)
    if source in recommendation.required:
        return True, "required"
    if source in recommendation.optional:
        return True, "optional"
    return False, "skip"


def phase_result_as_dict(result: PhaseDetectionResult) -> dict:
    """Serialize a detection result for JSON responses."""
    next_match = result.next_match
    return {
        "phase": result.phase.value,
        "next_match": (
            {
                "id": next_match.id,
                "match_date": next_match.match_date.isoformat(),
                "hours_until": result.hours_until_next,
            }
            if next_match
            else None
        ),
        "live_matches": result.live_matches,
        "upcoming_today": result.upcoming_today,
        "recently_completed": result.recently_completed,
        "recommendation": result.recommendation.as_dict(),
    }
