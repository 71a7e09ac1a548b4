"""
Football Insights API — FastAPI backend for data refresh and n8n automation.

The APScheduler lifespan runs the automation cycle every 5 minutes and a
one-minute smart-refresh tick gated by the refresh planner.
"""
from __future__ import annotations

import os
from contextlib import asynccontextmanager

import pytz
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from football_insights import __version__
from football_insights.api.routers import automation, refresh
from football_insights.automation.runner import run_automation_cycle
from football_insights.config import APP_TIMEZONE, logger, validate_env
from football_insights.constants import CRON_INTERVAL_MINUTES
from football_insights.scheduler import RefreshPlanner, run_due_smart_refreshes
from football_insights.windows import utc_now

planner = RefreshPlanner()


# ── Scheduler ────────────────────────────────────────────────
def _scheduled_automation_cycle():
    """Called by APScheduler every 5 minutes."""
    try:
        run_automation_cycle()
    except Exception as e:
        logger.error("[scheduler] Cycle d'automatisation en erreur : %s", e)


def _scheduled_smart_refresh():
    """Called by APScheduler every minute; only due leagues are refreshed."""
    try:
        run_due_smart_refreshes(planner)
    except Exception as e:
        logger.error("[scheduler] Refresh intelligent en erreur : %s", e)


def build_scheduler() -> BackgroundScheduler:
    tz = pytz.timezone(APP_TIMEZONE)
    scheduler = BackgroundScheduler(timezone=tz)
    scheduler.add_job(
        _scheduled_automation_cycle,
        trigger=CronTrigger(minute=f"*/{CRON_INTERVAL_MINUTES}", timezone=tz),
        id="automation_cycle",
        name="Cycle d'automatisation n8n",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=60,
    )
    scheduler.add_job(
        _scheduled_smart_refresh,
        trigger=IntervalTrigger(minutes=1, timezone=tz),
        id="smart_refresh",
        name="Refresh intelligent par ligue",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


@asynccontextmanager
async def lifespan(app_instance):
    """Start/stop APScheduler with the FastAPI app."""
    validate_env()

    scheduler = None
    if os.getenv("DISABLE_SCHEDULER", "").lower() not in ("1", "true", "yes"):
        try:
            scheduler = build_scheduler()
            scheduler.start()
            logger.info("[scheduler] ✅ Démarré — automatisation (%d min) + refresh intelligent (1 min)", CRON_INTERVAL_MINUTES)
        except Exception as e:
            logger.warning("[scheduler] ⚠️  Impossible de démarrer : %s", e)
            scheduler = None

    yield  # L'app tourne ici

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("[scheduler] Arrêté.")


app = FastAPI(title="Football Insights API", version=__version__, lifespan=lifespan)

app.include_router(automation.router)
app.include_router(refresh.router)

origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "ok",
        "timestamp": utc_now().isoformat(),
        "version": __version__,
        "refresh_schedule": planner.snapshot(),
    }
