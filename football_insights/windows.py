"""
windows.py — Fenêtres temporelles autour des matchs.

Filtrage par date des fixtures pour limiter les appels API : on ne
récupère que ce qui tombe dans une fenêtre utile (à venir, récents,
aujourd'hui). Toutes les fonctions acceptent un ``now`` explicite.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytz

from football_insights.config import APP_TIMEZONE
from football_insights.constants import (
    COMPLETED_STATUSES,
    LINEUP_HOURS,
    LIVE_STATUSES,
    NOT_STARTED_STATUSES,
    POST_MATCH_HOURS,
    POSTPONED_STATUSES,
    RECENT_DAYS,
    UPCOMING_DAYS,
)
from football_insights.models.dataclasses import FixtureForWindow, parse_datetime


@dataclass
class FixtureWindow:
    """Boundaries of the active fixture window."""

    now: datetime
    recent: datetime  # Début de la fenêtre "récents" (minuit, J-X)
    upcoming: datetime  # Début de la fenêtre "à venir" (maintenant)
    upcoming_end: datetime  # Fin de la fenêtre "à venir" (23:59:59, J+X)
    today_start: datetime
    today_end: datetime


@dataclass
class CategorizedFixtures:
    """Fixtures bucketed by state. A fixture can sit in several buckets."""

    upcoming: list[FixtureForWindow] = field(default_factory=list)
    today: list[FixtureForWindow] = field(default_factory=list)
    live: list[FixtureForWindow] = field(default_factory=list)
    recently_completed: list[FixtureForWindow] = field(default_factory=list)
    completed: list[FixtureForWindow] = field(default_factory=list)
    postponed: list[FixtureForWindow] = field(default_factory=list)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _local_day_bounds(moment: datetime, tz_name: str = APP_TIMEZONE) -> tuple[datetime, datetime]:
    tz = pytz.timezone(tz_name)
    local = moment.astimezone(tz)
    start = tz.localize(datetime(local.year, local.month, local.day))
    end = tz.localize(datetime(local.year, local.month, local.day, 23, 59, 59, 999000))
    return start, end


def get_fixture_windows(
    upcoming_days: int | None = None,
    recent_days: int | None = None,
    now: datetime | None = None,
) -> FixtureWindow:
    """Compute the window boundaries used for smart fixture filtering.

    Args:
        upcoming_days: Days ahead to include. Defaults to ``UPCOMING_DAYS``.
        recent_days: Days back to include. Defaults to ``RECENT_DAYS``.
        now: Reference instant (aware). Defaults to the current UTC time.

    Returns:
        A :class:`FixtureWindow`; day boundaries are local midnights.
    """
    now = now or utc_now()
    upcoming_days = UPCOMING_DAYS if upcoming_days is None else upcoming_days
    recent_days = RECENT_DAYS if recent_days is None else recent_days

    recent, _ = _local_day_bounds(now - timedelta(days=recent_days))
    _, upcoming_end = _local_day_bounds(now + timedelta(days=upcoming_days))
    today_start, today_end = _local_day_bounds(now)

    return FixtureWindow(
        now=now,
        recent=recent,
        upcoming=now,
        upcoming_end=upcoming_end,
        today_start=today_start,
        today_end=today_end,
    )


# ── Statuts ──────────────────────────────────────────────────────


def is_live_status(status: str) -> bool:
    return status in LIVE_STATUSES


def is_completed_status(status: str) -> bool:
    return status in COMPLETED_STATUSES


def is_not_started_status(status: str) -> bool:
    return status in NOT_STARTED_STATUSES


def is_postponed_status(status: str) -> bool:
    return status in POSTPONED_STATUSES


# ── Catégorisation ───────────────────────────────────────────────


def categorize_fixtures(
    fixtures: list[FixtureForWindow], now: datetime | None = None
) -> CategorizedFixtures:
    """Bucket fixtures by their current state relative to ``now``.

    Args:
        fixtures: Fixtures to classify.
        now: Reference instant. Defaults to the current UTC time.

    Returns:
        A :class:`CategorizedFixtures`.
    """
    windows = get_fixture_windows(now=now)
    now = windows.now
    recently_completed_cutoff = now - timedelta(hours=POST_MATCH_HOURS)

    result = CategorizedFixtures()

    for fixture in fixtures:
        match_date = fixture.match_date

        if is_live_status(fixture.status):
            result.live.append(fixture)

        if is_completed_status(fixture.status):
            result.completed.append(fixture)
            if match_date >= recently_completed_cutoff:
                result.recently_completed.append(fixture)

        if is_postponed_status(fixture.status):
            result.postponed.append(fixture)

        if is_not_started_status(fixture.status) and match_date > now:
            result.upcoming.append(fixture)

        if windows.today_start <= match_date <= windows.today_end:
            result.today.append(fixture)

    return result


def get_fixtures_starting_soon(
    fixtures: list[FixtureForWindow],
    hours: float = LINEUP_HOURS,
    now: datetime | None = None,
) -> list[FixtureForWindow]:
    """Return not-started fixtures kicking off within the next ``hours``."""
    now = now or utc_now()
    cutoff = now + timedelta(hours=hours)
    return [
        f
        for f in fixtures
        if is_not_started_status(f.status) and now <= f.match_date <= cutoff
    ]


def get_recently_completed_fixtures(
    fixtures: list[FixtureForWindow],
    hours: float = POST_MATCH_HOURS,
    now: datetime | None = None,
) -> list[FixtureForWindow]:
    """Return completed fixtures that kicked off within the last ``hours``."""
    now = now or utc_now()
    cutoff = now - timedelta(hours=hours)
    return [f for f in fixtures if is_completed_status(f.status) and f.match_date >= cutoff]


# ── Formatage ────────────────────────────────────────────────────


def format_date_for_api(dt: datetime) -> str:
    """Format a date for API-Football queries (``YYYY-MM-DD``, UTC)."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d")


def get_smart_date_range(
    upcoming_days: int | None = None,
    recent_days: int | None = None,
    now: datetime | None = None,
) -> dict[str, str]:
    """Return the ``from``/``to`` parameters for a windowed fixtures query."""
    windows = get_fixture_windows(upcoming_days=upcoming_days, recent_days=recent_days, now=now)
    return {
        "from": format_date_for_api(windows.recent),
        "to": format_date_for_api(windows.upcoming_end),
    }


def get_time_until_match(match_date: datetime | str, now: datetime | None = None) -> dict:
    """Describe the time left before (or since) kickoff.

    Returns:
        Dict with ``hours``, ``minutes``, ``is_in_past`` and a short
        ``display`` string such as ``"2d 3h"``, ``"4h 10m"`` or
        ``"12m ago"``.
    """
    match = parse_datetime(match_date)
    now = now or utc_now()
    diff_seconds = (match - now).total_seconds()
    is_in_past = diff_seconds < 0

    abs_seconds = abs(diff_seconds)
    hours = int(abs_seconds // 3600)
    minutes = int((abs_seconds % 3600) // 60)

    if hours >= 24:
        display = f"{hours // 24}d {hours % 24}h"
    elif hours > 0:
        display = f"{hours}h {minutes}m"
    else:
        display = f"{minutes}m"

    if is_in_past:
        display = f"{display} ago"

    return {"hours": hours, "minutes": minutes, "is_in_past": is_in_past, "display": display}


def needs_lineup_data(fixture: FixtureForWindow, now: datetime | None = None) -> bool:
    """Whether lineups should be fetched for this fixture.

    True when the fixture has not started and kicks off within the lineup
    window (up to two hours late), or when it is completed but no lineup
    was ever stored.
    """
    now = now or utc_now()
    hours_until = (fixture.match_date - now).total_seconds() / 3600

    is_upcoming = is_not_started_status(fixture.status) and -2 <= hours_until <= LINEUP_HOURS
    needs_backfill = is_completed_status(fixture.status) and not fixture.has_lineup
    return is_upcoming or needs_backfill


def get_window_summary(fixtures: list[FixtureForWindow], now: datetime | None = None) -> str:
    """One-line summary of the categorized fixtures, for logs."""
    categorized = categorize_fixtures(fixtures, now=now)
    return " | ".join(
        [
            f"Total: {len(fixtures)}",
            f"Live: {len(categorized.live)}",
            f"Today: {len(categorized.today)}",
            f"Upcoming: {len(categorized.upcoming)}",
            f"Recently Completed: {len(categorized.recently_completed)}",
        ]
    )
