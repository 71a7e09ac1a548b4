#!/usr/bin/env python3
"""
run_pipeline.py — Lancement manuel des traitements Football Insights.

Usage :
  python3 -m football_insights.run_pipeline automation          → Un cycle d'automatisation
  python3 -m football_insights.run_pipeline smart [league_id]   → Refresh intelligent
  python3 -m football_insights.run_pipeline phase [phase] [id]  → Refresh par phase
  python3 -m football_insights.run_pipeline status              → État de l'automatisation
"""

from __future__ import annotations

import json
import sys
import time

from football_insights.automation.runner import run_automation_cycle
from football_insights.automation.status import get_automation_status
from football_insights.config import get_request_count, logger, reset_request_count, validate_env
from football_insights.leagues import load_active_leagues, load_league
from football_insights.refresh import (
    ORCHESTRATABLE_PHASES,
    InvalidPhaseError,
    PhaseDetectionError,
    phase_refresh,
    smart_refresh,
)

USAGE = "Usage : python3 -m football_insights.run_pipeline [automation|smart|phase|status] [args]"


def _print(payload: dict) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def run_smart(league_id: str | None = None, dry_run: bool = False) -> list[dict]:
    """Smart refresh of one league, or of every active league."""
    leagues = [load_league(league_id)] if league_id else load_active_leagues()
    results = []
    for league in leagues:
        if league is None:
            logger.error("❌ Ligue introuvable : %s", league_id)
            continue
        logger.info("── %s ──", league.name)
        results.append(smart_refresh(league, dry_run=dry_run, include_optional=True))
    return results


def run_phase(phase: str | None = None, league_id: str | None = None) -> dict | None:
    league = load_league(league_id)
    if league is None:
        logger.error("❌ Ligue introuvable : %s", league_id or "par défaut")
        return None
    try:
        return phase_refresh(league, phase=phase, include_optional=True)
    except InvalidPhaseError as e:
        logger.error("❌ %s (phases : %s)", e, ", ".join(ORCHESTRATABLE_PHASES))
        return None
    except PhaseDetectionError as e:
        logger.error("❌ %s", e)
        return None


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    mode = argv[0] if argv else "automation"
    args = argv[1:]

    logger.info("╔══════════════════════════════════════════════════════════╗")
    logger.info("║          ⚽ FOOTBALL INSIGHTS — %-24s ║", mode)
    logger.info("╚══════════════════════════════════════════════════════════╝")

    if not validate_env().valid:
        return 1

    reset_request_count()
    start = time.time()

    if mode == "automation":
        result = run_automation_cycle()
        _print(result)
        ok = bool(result.get("success"))
    elif mode == "smart":
        dry_run = "--dry-run" in args
        league_id = next((a for a in args if not a.startswith("--")), None)
        results = run_smart(league_id, dry_run=dry_run)
        for result in results:
            _print(result)
        ok = all(r.get("success") for r in results)
    elif mode == "phase":
        phase = args[0] if args else None
        result = run_phase(phase, args[1] if len(args) > 1 else None)
        if result:
            _print(result)
        ok = bool(result and result.get("success"))
    elif mode == "status":
        try:
            _print(get_automation_status())
            ok = True
        except RuntimeError as e:
            # AutomationConfigMissing inclus
            logger.error("❌ Statut indisponible : %s", e)
            ok = False
    else:
        logger.info("Mode inconnu : %s", mode)
        logger.info(USAGE)
        return 2

    logger.info("✅ Terminé en %.0fs (%d requêtes API)", time.time() - start, get_request_count())
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
