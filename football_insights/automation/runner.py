"""
automation/runner.py — Cycle d'automatisation (toutes les 5 minutes).

Un cycle :
  1. lit ``automation_config`` (interrupteur général + un par déclencheur)
  2. lance les cinq vérifications en parallèle ; l'échec de l'une ne
     bloque pas les autres
  3. enregistre le statut final dans ``automation_config`` et renvoie un
     résumé par déclencheur
"""

from __future__ import annotations

import time
import uuid
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from football_insights.automation.check_windows import (
    get_automation_config,
    query_analysis_fixtures,
    query_live_leagues,
    query_post_match_leagues,
    query_pre_match_fixtures,
    query_prediction_fixtures,
    timing_windows,
    update_automation_config,
)
from football_insights.automation.triggers import (
    log_automation_event,
    log_no_action,
    trigger_analysis,
    trigger_live,
    trigger_post_match,
    trigger_pre_match,
    trigger_predictions,
)
from football_insights.config import logger
from football_insights.constants import (
    BATCH_SIZE,
    LIVE_REFRESH_TIMEOUT_SECONDS,
    MAX_ANALYSES_PER_RUN,
    MAX_PREDICTIONS_PER_RUN,
    PROCESSING_BUFFER_MINUTES,
)
from football_insights.fetchers.fixtures import fetch_fixtures, sync_finished_matches
from football_insights.leagues import load_active_leagues
from football_insights.models.dataclasses import TriggerResult
from football_insights.windows import utc_now


@dataclass
class CheckOutcome:
    """What one trigger check saw and did during a cycle."""

    checked: int = 0
    triggered: int = 0
    errors: int = 0
    results: list[TriggerResult] = field(default_factory=list)

    def summary(self) -> dict[str, int]:
        return {"checked": self.checked, "triggered": self.triggered, "errors": self.errors}


def processing_config() -> dict[str, int]:
    return {
        "max_predictions_per_run": MAX_PREDICTIONS_PER_RUN,
        "max_analyses_per_run": MAX_ANALYSES_PER_RUN,
        "batch_size": BATCH_SIZE,
        "processing_buffer_minutes": PROCESSING_BUFFER_MINUTES,
    }


def _errors(results: list[TriggerResult]) -> int:
    return sum(1 for r in results if r.status == "error")


def _run_trigger(
    trigger_type: str, checked: int, send: Callable[[], list[TriggerResult]]
) -> CheckOutcome:
    """Call a trigger for ``checked`` fixtures found in its window.

    A trigger that raises still reports what was checked, with one error
    result in place of its own.
    """
    outcome = CheckOutcome(checked=checked)
    try:
        outcome.results = send()
    except Exception as e:
        logger.error("❌ Déclencheur %s en échec : %s", trigger_type, e)
        outcome.results = [TriggerResult(trigger_type, "error", checked, error=str(e))]
        outcome.errors = 1
        return outcome
    outcome.triggered = checked
    outcome.errors = _errors(outcome.results)
    return outcome


# ═══════════════════════════════════════════════════════════════════
#  VÉRIFICATIONS
# ═══════════════════════════════════════════════════════════════════


def check_pre_match(cron_run_id: str, now: datetime) -> CheckOutcome:
    leagues = query_pre_match_fixtures(now=now)
    if not leagues:
        log_no_action(cron_run_id, "pre-match")
        return CheckOutcome()

    total = sum(len(league.fixtures) for league in leagues)
    logger.info("⏰ Pre-match : %d matchs sur %d ligues", total, len(leagues))
    return _run_trigger("pre-match", total, lambda: trigger_pre_match(cron_run_id, leagues, now=now))


def check_predictions(cron_run_id: str, now: datetime) -> CheckOutcome:
    fixtures = query_prediction_fixtures(now=now)
    if not fixtures:
        log_no_action(cron_run_id, "prediction")
        return CheckOutcome()

    logger.info("🔮 Prédictions demandées pour %d matchs", len(fixtures))
    return _run_trigger(
        "prediction", len(fixtures), lambda: [trigger_predictions(cron_run_id, fixtures, now=now)]
    )


def refresh_live_statuses(now: datetime, timeout: float = LIVE_REFRESH_TIMEOUT_SECONDS) -> int:
    """Refresh live fixture statuses of every active league in parallel.

    Waits at most ``timeout`` seconds; leagues still running after that
    are abandoned and the existing data is used. Then re-syncs fixtures
    stuck in an in-play status.

    Returns:
        The number of leagues refreshed in time.
    """
    leagues = load_active_leagues()
    refreshed = 0
    if leagues:
        executor = ThreadPoolExecutor(max_workers=len(leagues))
        futures = {executor.submit(fetch_fixtures, league, "live", now=now): league for league in leagues}
        done, pending = wait(futures, timeout=timeout)
        executor.shutdown(wait=False, cancel_futures=True)

        for future in done:
            league = futures[future]
            try:
                future.result()
                refreshed += 1
            except Exception as e:
                logger.warning("Refresh live de %s en échec : %s", league.name, e)
        for future in pending:
            logger.warning("Refresh live de %s : délai de %.0fs dépassé", futures[future].name, timeout)

    sync_finished_matches(now=now)
    return refreshed


def check_live(cron_run_id: str, now: datetime) -> CheckOutcome:
    try:
        refresh_live_statuses(now)
    except Exception as e:
        logger.warning("Refresh des statuts impossible, données existantes utilisées : %s", e)

    leagues = query_live_leagues()
    if not leagues:
        log_no_action(cron_run_id, "live")
        return CheckOutcome()

    total = sum(league.count for league in leagues)
    logger.info("🔴 Live : %d matchs sur %d ligues", total, len(leagues))
    return _run_trigger("live", total, lambda: trigger_live(cron_run_id, leagues))


def check_post_match(cron_run_id: str, now: datetime) -> CheckOutcome:
    leagues = query_post_match_leagues(now=now)
    if not leagues:
        log_no_action(cron_run_id, "post-match")
        return CheckOutcome()

    total = sum(league.count for league in leagues)
    logger.info("🏁 Post-match : %d matchs sur %d ligues", total, len(leagues))
    return _run_trigger("post-match", total, lambda: trigger_post_match(cron_run_id, leagues, now=now))


def check_analysis(cron_run_id: str, now: datetime) -> CheckOutcome:
    fixtures = query_analysis_fixtures(now=now)
    if not fixtures:
        log_no_action(cron_run_id, "analysis")
        return CheckOutcome()

    logger.info("📝 Analyses demandées pour %d matchs", len(fixtures))
    return _run_trigger(
        "analysis", len(fixtures), lambda: [trigger_analysis(cron_run_id, fixtures, now=now)]
    )


# Clé du résumé -> (drapeau de config, vérification)
CHECKS: dict[str, tuple[str, Callable[[str, datetime], CheckOutcome]]] = {
    "pre_match": ("pre_match_enabled", check_pre_match),
    "prediction": ("prediction_enabled", check_predictions),
    "live": ("live_enabled", check_live),
    "post_match": ("post_match_enabled", check_post_match),
    "analysis": ("analysis_enabled", check_analysis),
}


def _run_checks(cron_run_id: str, config: dict, now: datetime) -> dict[str, CheckOutcome]:
    enabled = {key: check for key, (flag, check) in CHECKS.items() if config.get(flag)}
    outcomes = {key: CheckOutcome() for key in CHECKS}
    if not enabled:
        return outcomes

    with ThreadPoolExecutor(max_workers=len(enabled)) as executor:
        futures = {key: executor.submit(check, cron_run_id, now) for key, check in enabled.items()}

    for key, future in futures.items():
        try:
            outcomes[key] = future.result()
        except Exception as e:
            logger.error("❌ Vérification %s en échec : %s", key, e)
    return outcomes


# ═══════════════════════════════════════════════════════════════════
#  CYCLE
# ═══════════════════════════════════════════════════════════════════


def run_automation_cycle(now: datetime | None = None) -> dict[str, Any]:
    """Run one automation cycle.

    Args:
        now: Reference instant (defaults to the current UTC time).

    Returns:
        JSON-ready dict with the cron run id, timestamps, duration, a
        per-trigger summary (checked / triggered / errors), the trigger
        results, the timing windows and the processing limits.
    """
    now = now or utc_now()
    cron_run_id = str(uuid.uuid4())
    start = time.monotonic()
    logger.info("🤖 Cycle d'automatisation %s", cron_run_id)

    config = get_automation_config()
    if not config:
        logger.error("❌ automation_config introuvable")
        return {"success": False, "cron_run_id": cron_run_id, "error": "Automation config not found"}

    if not config.get("is_enabled"):
        log_automation_event(cron_run_id, "cron-check", "skipped", message="Automation is disabled")
        return {
            "success": True,
            "cron_run_id": cron_run_id,
            "timestamp": now.isoformat(),
            "message": "Automation is disabled",
            "results": None,
        }

    update_automation_config({"last_cron_run": now.isoformat(), "last_cron_status": "running"})
    outcomes = {key: CheckOutcome() for key in CHECKS}

    try:
        outcomes = _run_checks(cron_run_id, config, now)
        results = [r for outcome in outcomes.values() for r in outcome.results]
        has_errors = any(r.status == "error" for r in results)
        update_automation_config({"last_cron_status": "error" if has_errors else "success"})
    except Exception as e:
        duration = int((time.monotonic() - start) * 1000)
        logger.error("❌ Cycle %s en échec : %s", cron_run_id, e)
        update_automation_config({"last_cron_status": "error"})
        log_automation_event(
            cron_run_id,
            "cron-check",
            "error",
            message="Cron run failed with error",
            error_message=str(e),
        )
        return {
            "success": False,
            "cron_run_id": cron_run_id,
            "timestamp": now.isoformat(),
            "duration": duration,
            "error": str(e),
            "summary": {key: outcome.summary() for key, outcome in outcomes.items()},
        }

    duration = int((time.monotonic() - start) * 1000)
    logger.info("✅ Cycle %s terminé en %d ms", cron_run_id, duration)
    return {
        "success": True,
        "cron_run_id": cron_run_id,
        "timestamp": now.isoformat(),
        "completed_at": utc_now().isoformat(),
        "duration": duration,
        "processing": processing_config(),
        "timing_windows": timing_windows(),
        "summary": {key: outcome.summary() for key, outcome in outcomes.items()},
        "results": [r.as_dict() for r in results],
    }
