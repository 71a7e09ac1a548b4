"""
api/routers/automation.py — Pilotage de l'automatisation n8n.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from football_insights.automation.check_windows import get_automation_config, update_automation_config
from football_insights.automation.runner import run_automation_cycle
from football_insights.automation.status import (
    AutomationConfigMissing,
    get_automation_logs,
    get_automation_status,
)
from football_insights.automation.webhooks import (
    WEBHOOK_COLUMNS,
    clear_webhook_config_cache,
    describe_webhook_config,
    validate_webhook_url,
)
from football_insights.api.security import verify_api_key
from football_insights.config import logger
from football_insights.windows import utc_now

router = APIRouter(prefix="/api/automation", tags=["automation"], dependencies=[Depends(verify_api_key)])


class WebhookUpdate(BaseModel):
    prediction_webhook_url: Optional[str] = None
    analysis_webhook_url: Optional[str] = None
    pre_match_webhook_url: Optional[str] = None
    live_webhook_url: Optional[str] = None
    post_match_webhook_url: Optional[str] = None


class PromptUpdate(BaseModel):
    custom_prompt: Optional[str] = None


class ConfigUpdate(BaseModel):
    is_enabled: Optional[bool] = None
    pre_match_enabled: Optional[bool] = None
    prediction_enabled: Optional[bool] = None
    live_enabled: Optional[bool] = None
    post_match_enabled: Optional[bool] = None
    analysis_enabled: Optional[bool] = None


def _save(updates: dict) -> dict:
    updates["updated_at"] = utc_now().isoformat()
    row = update_automation_config(updates)
    if row is None:
        raise HTTPException(status_code=500, detail="Failed to update automation config")
    return row


# ── Cycle ────────────────────────────────────────────────────


@router.api_route("/trigger", methods=["GET", "POST"])
def trigger_cycle():
    """Run one automation cycle now (the cron calls this every 5 minutes)."""
    result = run_automation_cycle()
    if not result.get("success"):
        raise HTTPException(status_code=500, detail=result.get("error", "Cron run failed"))
    return result


@router.get("/status")
def automation_status():
    try:
        return get_automation_status()
    except AutomationConfigMissing as e:
        raise HTTPException(status_code=500, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/logs")
def automation_logs(
    limit: Optional[str] = Query(None, description="1-200, default 50"),
    trigger_type: Optional[str] = None,
    status: Optional[str] = None,
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    cron_run_id: Optional[str] = None,
):
    try:
        logs = get_automation_logs(
            limit=limit,
            trigger_type=trigger_type,
            status=status,
            date=date,
            cron_run_id=cron_run_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"logs": logs, "count": len(logs)}


# ── Configuration ────────────────────────────────────────────


@router.patch("/config")
def update_config(payload: ConfigUpdate):
    updates = payload.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    row = _save(updates)
    logger.info("⚙️  automation_config mis à jour : %s", ", ".join(sorted(updates)))
    return {"success": True, "config": row}


@router.get("/webhooks")
def webhooks_config():
    return describe_webhook_config()


@router.patch("/webhooks")
def update_webhooks(payload: WebhookUpdate):
    """Update webhook URLs. Empty strings reset a URL to its default.

    The shared secret is not configurable here (``N8N_WEBHOOK_SECRET``).
    """
    updates: dict = {}
    for column in WEBHOOK_COLUMNS.values():
        if column not in payload.model_fields_set:
            continue
        value = getattr(payload, column)
        if not value:
            updates[column] = None
            continue
        try:
            updates[column] = validate_webhook_url(value)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Invalid webhook URL for {column}: {e}")

    if not updates:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    _save(updates)
    clear_webhook_config_cache()
    return {"success": True, **describe_webhook_config()}


@router.get("/prompt")
def get_prompt():
    config = get_automation_config()
    if config is None:
        raise HTTPException(status_code=500, detail="Failed to fetch prompt")
    prompt = config.get("custom_prediction_prompt")
    return {"custom_prompt": prompt or None, "has_custom_prompt": bool(prompt)}


@router.patch("/prompt")
def update_prompt(payload: PromptUpdate):
    """Save the custom prediction prompt; empty clears it."""
    prompt = payload.custom_prompt.strip() if payload.custom_prompt else ""
    _save({"custom_prediction_prompt": prompt or None})
    return {
        "success": True,
        "message": "Custom prompt saved" if prompt else "Custom prompt cleared",
        "has_custom_prompt": bool(prompt),
    }
