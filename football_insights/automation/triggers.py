"""
automation/triggers.py — Déclencheurs de l'automatisation.

  - pre-match / live / post-match : un webhook de refresh par ligue
  - prediction / analysis         : un appel IA par match, par lots
                                    traités en parallèle

Chaque déclencheur écrit une ligne ``automation_logs`` rattachée au
``cron_run_id`` et horodate les colonnes ``*_triggered_at`` des matchs.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any

from football_insights.automation.check_windows import get_automation_config, mark_fixtures_triggered
from football_insights.automation.webhooks import get_webhook_url, send_webhook
from football_insights.config import AI_MODEL, get_supabase, logger
from football_insights.constants import BATCH_SIZE
from football_insights.models.dataclasses import (
    FixtureForTrigger,
    LeagueFixtureCount,
    LeagueWithFixtures,
    TriggerResult,
    WebhookResult,
)
from football_insights.windows import utc_now


# ═══════════════════════════════════════════════════════════════════
#  JOURNAL
# ═══════════════════════════════════════════════════════════════════


def log_automation_event(
    cron_run_id: str,
    trigger_type: str,
    status: str,
    league_id: str | None = None,
    fixture_ids: list[str] | None = None,
    fixture_count: int = 0,
    webhook_url: str | None = None,
    webhook_status: int | None = None,
    webhook_response: Any = None,
    webhook_duration_ms: int | None = None,
    message: str | None = None,
    error_message: str | None = None,
    details: dict | None = None,
) -> dict | None:
    """Insert one ``automation_logs`` row.

    Args:
        cron_run_id: Id grouping every event of one cron run.
        trigger_type: ``pre-match``, ``prediction``, ``live``,
            ``post-match``, ``analysis`` or ``cron-check``.
        status: ``success``, ``error``, ``skipped`` or ``no-action``.

    Returns:
        The inserted row, or ``None`` if the insert failed.
    """
    row = {
        "cron_run_id": cron_run_id,
        "trigger_type": trigger_type,
        "league_id": league_id,
        "fixture_ids": fixture_ids or [],
        "fixture_count": fixture_count,
        "webhook_url": webhook_url,
        "webhook_status": webhook_status or None,
        "webhook_response": webhook_response,
        "webhook_duration_ms": webhook_duration_ms,
        "status": status,
        "message": message,
        "error_message": error_message,
        "completed_at": utc_now().isoformat(),
        "details": details,
    }
    try:
        data = get_supabase().table("automation_logs").insert(row).execute().data
    except Exception as e:
        logger.error("Échec écriture automation_logs (%s) : %s", trigger_type, e)
        return None
    return data[0] if data else row


def log_no_action(cron_run_id: str, trigger_type: str) -> dict | None:
    return log_automation_event(
        cron_run_id,
        trigger_type,
        "no-action",
        message=f"No fixtures in {trigger_type} window",
    )


def _fixture_summary(fixture: FixtureForTrigger) -> dict:
    return {
        "id": fixture.id,
        "home_team": fixture.home_team,
        "away_team": fixture.away_team,
        "match_date": fixture.match_date,
    }


# ═══════════════════════════════════════════════════════════════════
#  REFRESH PAR LIGUE (pre-match, live, post-match)
# ═══════════════════════════════════════════════════════════════════


def _league_trigger(
    cron_run_id: str,
    trigger_type: str,
    webhook_url: str,
    league_id: str,
    league_name: str,
    payload: dict,
    fixture_ids: list[str],
    fixture_count: int,
    details: dict | None = None,
) -> TriggerResult:
    result = send_webhook(webhook_url, payload)
    status = "success" if result.success else "error"
    log_automation_event(
        cron_run_id,
        trigger_type,
        status,
        league_id=league_id,
        fixture_ids=fixture_ids,
        fixture_count=fixture_count,
        webhook_url=webhook_url,
        webhook_status=result.status,
        webhook_response=result.response,
        webhook_duration_ms=result.duration,
        message=(
            f"Triggered {trigger_type} for {fixture_count} fixtures in {league_name}"
            if result.success
            else f"{trigger_type} webhook failed for {league_name}"
        ),
        error_message=result.error,
        details=details,
    )
    return TriggerResult(
        trigger_type=trigger_type,
        status=status,
        fixture_count=fixture_count,
        webhook_result=result,
        error=result.error,
    )


def trigger_pre_match(
    cron_run_id: str, leagues: list[LeagueWithFixtures], now: datetime | None = None
) -> list[TriggerResult]:
    """Send the pre-match refresh webhook once per league.

    Fixtures of leagues whose webhook succeeded are stamped with
    ``pre_match_triggered_at``.
    """
    webhook_url = get_webhook_url("pre-match")
    results: list[TriggerResult] = []

    for league in leagues:
        fixtures = [_fixture_summary(f) for f in league.fixtures]
        fixture_ids = [f.id for f in league.fixtures]
        result = _league_trigger(
            cron_run_id,
            "pre-match",
            webhook_url,
            league.league_id,
            league.league_name,
            {
                "league_id": league.league_id,
                "league_name": league.league_name,
                "fixtures": fixtures,
                "trigger_type": "pre-match",
            },
            fixture_ids,
            len(fixture_ids),
            details={"fixtures": fixtures},
        )
        if result.status == "success":
            mark_fixtures_triggered(fixture_ids, "pre_match_triggered_at", now=now)
        results.append(result)

    return results


def trigger_live(cron_run_id: str, leagues: list[LeagueFixtureCount]) -> list[TriggerResult]:
    """Send the live refresh webhook once per league with in-play fixtures."""
    webhook_url = get_webhook_url("live")
    return [
        _league_trigger(
            cron_run_id,
            "live",
            webhook_url,
            league.league_id,
            league.league_name,
            {
                "leagues": [{"league_id": league.league_id, "live_count": league.count}],
                "trigger_type": "live",
            },
            league.fixture_ids,
            league.count,
        )
        for league in leagues
    ]


def trigger_post_match(
    cron_run_id: str, leagues: list[LeagueFixtureCount], now: datetime | None = None
) -> list[TriggerResult]:
    """Send the post-match refresh webhook once per league.

    Fixtures of leagues whose webhook succeeded are stamped with
    ``post_match_triggered_at``.
    """
    webhook_url = get_webhook_url("post-match")
    results: list[TriggerResult] = []

    for league in leagues:
        result = _league_trigger(
            cron_run_id,
            "post-match",
            webhook_url,
            league.league_id,
            league.league_name,
            {
                "leagues": [{"league_id": league.league_id, "finished_count": league.count}],
                "trigger_type": "post-match",
            },
            league.fixture_ids,
            league.count,
        )
        if result.status == "success":
            mark_fixtures_triggered(league.fixture_ids, "post_match_triggered_at", now=now)
        results.append(result)

    return results


# ═══════════════════════════════════════════════════════════════════
#  GÉNÉRATION IA (prediction, analysis)
# ═══════════════════════════════════════════════════════════════════


def _send_in_batches(url: str, payloads: list[dict]) -> list[WebhookResult]:
    """Send ``payloads`` in batches of ``BATCH_SIZE``, each batch concurrently."""
    results: list[WebhookResult] = []
    for start in range(0, len(payloads), BATCH_SIZE):
        batch = payloads[start : start + BATCH_SIZE]
        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            results.extend(executor.map(lambda p: send_webhook(url, p), batch))
    return results


def _generation_trigger(
    cron_run_id: str,
    trigger_type: str,
    fixtures: list[FixtureForTrigger],
    payloads: list[dict],
    tracking_column: str,
    summaries: list[dict],
    now: datetime | None,
) -> TriggerResult:
    webhook_url = get_webhook_url(trigger_type)
    fixture_ids = [f.id for f in fixtures]

    # Horodatage avant l'envoi : un appel lent ne doit pas être relancé au cron suivant
    mark_fixtures_triggered(fixture_ids, tracking_column, now=now)

    webhook_results = _send_in_batches(webhook_url, payloads)
    per_fixture = [
        {"fixture_id": f.id, "success": r.success, "error": r.error}
        for f, r in zip(fixtures, webhook_results)
    ]
    success_count = sum(1 for r in webhook_results if r.success)
    failed = len(fixtures) - success_count
    duration = sum(r.duration for r in webhook_results)
    error = f"{failed} {trigger_type} calls failed" if failed else None
    status = "error" if failed else "success"

    log_automation_event(
        cron_run_id,
        trigger_type,
        status,
        fixture_ids=fixture_ids,
        fixture_count=len(fixtures),
        webhook_url=webhook_url,
        webhook_status=500 if failed else 200,
        webhook_response={"results": per_fixture, "model": AI_MODEL},
        webhook_duration_ms=duration,
        message=(
            f"{trigger_type}: {success_count}/{len(fixtures)} succeeded"
            if failed
            else f"Triggered {trigger_type} for {len(fixtures)} fixtures"
        ),
        error_message=error,
        details={"fixtures": summaries, "results": per_fixture},
    )

    return TriggerResult(
        trigger_type=trigger_type,
        status=status,
        fixture_count=len(fixtures),
        webhook_result=WebhookResult(
            success=not failed,
            status=500 if failed else 200,
            duration=duration,
            response={"results": per_fixture},
        ),
        error=error,
    )


def trigger_predictions(
    cron_run_id: str, fixtures: list[FixtureForTrigger], now: datetime | None = None
) -> TriggerResult:
    """Ask the AI workflow for a prediction on each fixture.

    The custom prediction prompt stored in ``automation_config`` (if any)
    is forwarded with every request.
    """
    config = get_automation_config() or {}
    custom_prompt = config.get("custom_prediction_prompt")
    payloads = [
        {
            "fixture_id": f.id,
            "api_id": f.api_id,
            "league_id": f.league_id,
            "home_team": f.home_team,
            "away_team": f.away_team,
            "venue": f.venue,
            "round": f.round,
            "match_date": f.match_date,
            "model": AI_MODEL,
            "custom_prompt": custom_prompt,
            "trigger_type": "prediction",
        }
        for f in fixtures
    ]
    return _generation_trigger(
        cron_run_id,
        "prediction",
        fixtures,
        payloads,
        "prediction_triggered_at",
        [_fixture_summary(f) for f in fixtures],
        now,
    )


def trigger_analysis(
    cron_run_id: str, fixtures: list[FixtureForTrigger], now: datetime | None = None
) -> TriggerResult:
    """Ask the AI workflow for a post-match analysis on each fixture."""
    payloads = [
        {
            "fixture_id": f.id,
            "api_id": f.api_id,
            "league_id": f.league_id,
            "home_team": f.home_team,
            "away_team": f.away_team,
            "goals_home": f.goals_home,
            "goals_away": f.goals_away,
            "match_date": f.match_date,
            "model": AI_MODEL,
            "trigger_type": "analysis",
        }
        for f in fixtures
    ]
    summaries = [
        {**_fixture_summary(f), "score": f"{f.goals_home or 0}-{f.goals_away or 0}"}
        for f in fixtures
    ]
    return _generation_trigger(
        cron_run_id,
        "analysis",
        fixtures,
        payloads,
        "analysis_triggered_at",
        summaries,
        now,
    )
