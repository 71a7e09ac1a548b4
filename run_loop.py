"""
run_loop.py — Boucle d'automatisation sans serveur HTTP.

  - Cycle d'automatisation n8n : toutes les 5 minutes (xx:00, xx:05...)
  - Refresh intelligent : chaque minute, pour les ligues dont l'échéance
    (``next_check_minutes``) est atteinte
"""

import time

from football_insights.automation.runner import run_automation_cycle
from football_insights.config import logger
from football_insights.constants import CRON_INTERVAL_MINUTES
from football_insights.scheduler import RefreshPlanner, run_due_smart_refreshes
from football_insights.windows import utc_now

POLL_SECONDS = 30


def main():
    logger.info("🤖 Démarrage de la boucle d'automatisation Football Insights")
    logger.info("   - Cycle n8n : toutes les %d minutes", CRON_INTERVAL_MINUTES)
    logger.info("   - Refresh intelligent : selon la phase de chaque ligue")

    planner = RefreshPlanner()
    last_cycle = None
    last_tick = None

    while True:
        now = utc_now()
        slot = now.replace(second=0, microsecond=0)

        if now.minute % CRON_INTERVAL_MINUTES == 0 and slot != last_cycle:
            try:
                run_automation_cycle(now=now)
            except Exception as e:
                logger.error("❌ Erreur du cycle d'automatisation : %s", e)
            last_cycle = slot

        if slot != last_tick:
            try:
                run_due_smart_refreshes(planner, now=now)
            except Exception as e:
                logger.error("❌ Erreur du refresh intelligent : %s", e)
            last_tick = slot

        time.sleep(POLL_SECONDS)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logger.info("👋 Arrêt de la boucle.")
