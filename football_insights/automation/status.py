"""
automation/status.py — État de l'automatisation et journal des déclenchements.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Any

from football_insights.automation.check_windows import get_automation_config
from football_insights.config import get_supabase, logger
from football_insights.constants import CRON_INTERVAL_MINUTES
from football_insights.models.dataclasses import first_embed, parse_datetime
from football_insights.windows import utc_now

# trigger_type des logs -> (clé de l'état, drapeau de config)
TRIGGER_KEYS: dict[str, tuple[str, str]] = {
    "pre-match": ("pre_match", "pre_match_enabled"),
    "prediction": ("prediction", "prediction_enabled"),
    "live": ("live", "live_enabled"),
    "post-match": ("post_match", "post_match_enabled"),
    "analysis": ("analysis", "analysis_enabled"),
}

CONFIG_FLAGS: tuple[str, ...] = tuple(flag for _, flag in TRIGGER_KEYS.values())

LOG_COLUMNS = (
    "id, trigger_type, cron_run_id, league_id, fixture_ids, fixture_count, webhook_url, "
    "webhook_status, webhook_response, webhook_duration_ms, status, message, error_message, "
    "triggered_at, completed_at, details, league:leagues(id, name)"
)

DEFAULT_LOG_LIMIT: int = 50
MAX_LOG_LIMIT: int = 200

_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
INVALID_DATE_MESSAGE = "Invalid date format. Use YYYY-MM-DD"


class AutomationConfigMissing(RuntimeError):
    """Raised when the ``automation_config`` row does not exist."""


def summarize_trigger_logs(logs: list[dict], config: dict) -> dict[str, dict[str, Any]]:
    """Aggregate today's log rows per trigger type.

    Args:
        logs: ``automation_logs`` rows, most recent first.
        config: The ``automation_config`` row (for the enabled flags).

    Returns:
        ``{key: {success_today, error_today, last_triggered, enabled}}``.
        ``no-action`` rows never count as the last trigger.
    """
    triggers = {
        key: {
            "success_today": 0,
            "error_today": 0,
            "last_triggered": None,
            "enabled": bool(config.get(flag)),
        }
        for key, flag in TRIGGER_KEYS.values()
    }

    for log in logs:
        mapping = TRIGGER_KEYS.get(log.get("trigger_type"))
        if mapping is None:
            continue
        stats = triggers[mapping[0]]
        if log.get("status") == "success":
            stats["success_today"] += 1
        elif log.get("status") == "error":
            stats["error_today"] += 1
        if stats["last_triggered"] is None and log.get("status") != "no-action":
            stats["last_triggered"] = log.get("triggered_at")

    return triggers


def compute_next_cron_run(last_cron_run: str | None, now: datetime | None = None) -> str | None:
    """Expected time of the next cron run.

    ``last_cron_run`` + 5 minutes, or the next 5-minute boundary after
    ``now`` when that moment is already past. ``None`` if the cron never
    ran.
    """
    if not last_cron_run:
        return None
    now = now or utc_now()
    next_run = parse_datetime(last_cron_run) + timedelta(minutes=CRON_INTERVAL_MINUTES)
    if next_run >= now:
        return next_run.isoformat()

    next_minute = (now.minute // CRON_INTERVAL_MINUTES + 1) * CRON_INTERVAL_MINUTES
    boundary = now.replace(minute=0, second=0, microsecond=0) + timedelta(minutes=next_minute)
    return boundary.isoformat()


def get_automation_status(now: datetime | None = None) -> dict[str, Any]:
    """Current automation state with today's per-trigger statistics.

    Raises:
        AutomationConfigMissing: If there is no config row.
        RuntimeError: If the logs cannot be read.
    """
    now = now or utc_now()
    config = get_automation_config()
    if not config:
        raise AutomationConfigMissing("Automation config not found")

    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    try:
        logs = (
            get_supabase()
            .table("automation_logs")
            .select("trigger_type, status, triggered_at")
            .gte("triggered_at", today_start.isoformat())
            .neq("trigger_type", "cron-check")
            .order("triggered_at", desc=True)
            .execute()
            .data
            or []
        )
    except Exception as e:
        logger.error("Lecture automation_logs impossible : %s", e)
        raise RuntimeError("Failed to fetch logs") from e

    triggers = summarize_trigger_logs(logs, config)
    return {
        "is_enabled": bool(config.get("is_enabled")),
        "last_cron_run": config.get("last_cron_run"),
        "last_cron_status": config.get("last_cron_status"),
        "next_cron_run": compute_next_cron_run(config.get("last_cron_run"), now),
        "triggers": triggers,
        "errors_today": sum(t["error_today"] for t in triggers.values()),
        "config": {flag: config.get(flag) for flag in CONFIG_FLAGS},
    }


def parse_log_limit(value: str | int | None) -> int:
    """Validate the ``limit`` of a log query (1-200, default 50).

    Raises:
        ValueError: If the value is not an integer or is out of range.
    """
    if value is None or value == "":
        return DEFAULT_LOG_LIMIT
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise ValueError("limit must be a valid number") from None
    if not 1 <= limit <= MAX_LOG_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_LOG_LIMIT}")
    return limit


def parse_log_date(value: str) -> str:
    """Validate a ``YYYY-MM-DD`` calendar date (``2026-02-30`` is refused).

    Raises:
        ValueError: If the value is not an existing date in that format.
    """
    if not _DATE_RE.fullmatch(value):
        raise ValueError(INVALID_DATE_MESSAGE)
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise ValueError(INVALID_DATE_MESSAGE) from None
    return value


def get_automation_logs(
    limit: str | int | None = DEFAULT_LOG_LIMIT,
    trigger_type: str | None = None,
    status: str | None = None,
    date: str | None = None,
    cron_run_id: str | None = None,
) -> list[dict]:
    """Most recent ``automation_logs`` rows matching the filters.

    Args:
        limit: Maximum rows, 1 to 200.
        trigger_type: Only this trigger type.
        status: Only this status.
        date: ``YYYY-MM-DD``, restricts to that UTC day.
        cron_run_id: Only the events of one cron run.

    Returns:
        Log rows with a flat ``league_name`` instead of the embed.

    Raises:
        ValueError: On an invalid limit or date.
        RuntimeError: If the logs cannot be read.
    """
    limit = parse_log_limit(limit)
    if date:
        date = parse_log_date(date)

    try:
        query = (
            get_supabase()
            .table("automation_logs")
            .select(LOG_COLUMNS)
            .order("triggered_at", desc=True)
            .limit(limit)
        )
        if trigger_type:
            query = query.eq("trigger_type", trigger_type)
        if status:
            query = query.eq("status", status)
        if cron_run_id:
            query = query.eq("cron_run_id", cron_run_id)
        if date:
            query = query.gte("triggered_at", f"{date}T00:00:00Z").lte(
                "triggered_at", f"{date}T23:59:59Z"
            )
        rows = query.execute().data or []
    except Exception as e:
        logger.error("Lecture automation_logs impossible : %s", e)
        raise RuntimeError("Failed to fetch logs") from e

    logs = []
    for row in rows:
        league = first_embed(row.get("league")) or {}
        logs.append({**{k: v for k, v in row.items() if k != "league"}, "league_name": league.get("name")})
    return logs
