"""
automation/webhooks.py — Appels aux webhooks n8n.

Résolution des URL : base de données (``automation_config``, mise en
cache 60 s) → variables d'environnement → valeurs par défaut. Le secret
partagé ne vient que de l'environnement (``N8N_WEBHOOK_SECRET``).
"""

from __future__ import annotations

import ipaddress
import os
import threading
import time
from typing import Any
from urllib.parse import urlparse

import requests

from football_insights.config import get_supabase, logger
from football_insights.constants import (
    DEFAULT_WEBHOOKS,
    WEBHOOK_CONFIG_CACHE_TTL,
    WEBHOOK_TIMEOUT_SECONDS,
)
from football_insights.models.dataclasses import WebhookResult

WEBHOOK_COLUMNS: dict[str, str] = {
    "prediction": "prediction_webhook_url",
    "analysis": "analysis_webhook_url",
    "pre-match": "pre_match_webhook_url",
    "live": "live_webhook_url",
    "post-match": "post_match_webhook_url",
}

# URL complètes fournies par l'environnement (sinon N8N_WEBHOOK_BASE_URL)
_ENV_URLS: dict[str, str] = {
    "prediction": "N8N_PREDICTION_WEBHOOK",
    "analysis": "N8N_ANALYSIS_WEBHOOK",
}

_cache_lock = threading.Lock()
_cached_config: dict[str, str | None] | None = None
_cache_timestamp: float = 0.0


def _empty_config() -> dict[str, str | None]:
    return {column: None for column in WEBHOOK_COLUMNS.values()}


def get_webhook_config() -> dict[str, str | None]:
    """Return the webhook URLs stored in ``automation_config``.

    The row is cached for ``WEBHOOK_CONFIG_CACHE_TTL`` seconds. A failed
    read returns an all-``None`` config (not cached) so that environment
    and default URLs apply.
    """
    global _cached_config, _cache_timestamp

    with _cache_lock:
        if _cached_config is not None and time.monotonic() - _cache_timestamp < WEBHOOK_CONFIG_CACHE_TTL:
            return _cached_config

    try:
        rows = (
            get_supabase()
            .table("automation_config")
            .select(", ".join(WEBHOOK_COLUMNS.values()))
            .limit(1)
            .execute()
            .data
        )
    except Exception as e:
        logger.error("[Webhook Config] Lecture impossible : %s", e)
        return _empty_config()

    config = _empty_config()
    if rows:
        config.update({k: v for k, v in rows[0].items() if k in config})

    with _cache_lock:
        _cached_config = config
        _cache_timestamp = time.monotonic()
    return config


def clear_webhook_config_cache() -> None:
    """Drop the cached config (after an update)."""
    global _cached_config, _cache_timestamp
    with _cache_lock:
        _cached_config = None
        _cache_timestamp = 0.0


def get_webhook_url(kind: str) -> str:
    """Resolve the URL of a webhook type.

    Args:
        kind: ``prediction``, ``analysis``, ``pre-match``, ``live`` or
            ``post-match``.

    Returns:
        The database URL, else the environment URL, else the default.

    Raises:
        ValueError: If ``kind`` is unknown.
    """
    if kind not in WEBHOOK_COLUMNS:
        raise ValueError(f"Unknown webhook type: {kind}")

    configured = get_webhook_config().get(WEBHOOK_COLUMNS[kind])
    if configured:
        return configured

    if kind in _ENV_URLS:
        env_url = os.getenv(_ENV_URLS[kind])
    else:
        base_url = os.getenv("N8N_WEBHOOK_BASE_URL")
        env_url = f"{base_url.rstrip('/')}/trigger/{kind}" if base_url else None

    return env_url or DEFAULT_WEBHOOKS[kind]


def get_webhook_secret() -> str:
    return os.getenv("N8N_WEBHOOK_SECRET", "")


def is_webhook_secret_set() -> bool:
    return bool(os.getenv("N8N_WEBHOOK_SECRET"))


def send_webhook(
    url: str, payload: dict[str, Any], timeout: float = WEBHOOK_TIMEOUT_SECONDS
) -> WebhookResult:
    """POST ``payload`` as JSON to a webhook.

    Never raises: transport failures and timeouts come back as a failed
    result with status 0. Non-JSON bodies are wrapped as ``{"raw": text}``.

    Args:
        url: Webhook URL.
        payload: JSON-serialisable body.
        timeout: Seconds before giving up.

    Returns:
        A :class:`WebhookResult` with the duration in milliseconds.
    """
    headers = {"Content-Type": "application/json"}
    secret = get_webhook_secret()
    if secret:
        headers["X-Webhook-Secret"] = secret

    start = time.monotonic()
    try:
        resp = requests.post(url, json=payload, headers=headers, timeout=timeout)
    except requests.exceptions.RequestException as e:
        duration = int((time.monotonic() - start) * 1000)
        logger.error("Webhook %s en échec : %s", url, e)
        return WebhookResult(success=False, status=0, duration=duration, error=str(e))

    duration = int((time.monotonic() - start) * 1000)
    try:
        body = resp.json()
    except ValueError:
        body = {"raw": resp.text}

    if not resp.ok:
        logger.warning("Webhook %s : HTTP %d", url, resp.status_code)
    return WebhookResult(success=resp.ok, status=resp.status_code, duration=duration, response=body)


# ═══════════════════════════════════════════════════════════════════
#  ADMINISTRATION
# ═══════════════════════════════════════════════════════════════════

_BLOCKED_HOSTNAMES: tuple[str, ...] = ("metadata", "metadata.google.internal", "instance-data")


def validate_webhook_url(url: str) -> str:
    """Check that a webhook URL is http(s) and not an internal address.

    Raises:
        ValueError: With the reason the URL is refused.
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValueError("Invalid URL format, must be http or https")

    hostname = parsed.hostname.lower()
    if hostname in ("localhost", "0.0.0.0"):
        raise ValueError("Localhost addresses are not allowed")
    if any(blocked in hostname for blocked in _BLOCKED_HOSTNAMES):
        raise ValueError("Cloud metadata endpoints not allowed")

    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return url
    if address.is_loopback or address.is_private or address.is_link_local or address.is_unspecified:
        raise ValueError(f"Internal address {hostname} not allowed")
    return url


def describe_webhook_config() -> dict[str, Any]:
    """Effective webhook URLs for the admin view.

    The shared secret is never returned, only whether it is set.
    """
    config = get_webhook_config()
    return {
        **{column: get_webhook_url(kind) for kind, column in WEBHOOK_COLUMNS.items()},
        "is_custom": {kind.replace("-", "_"): bool(config.get(column)) for kind, column in WEBHOOK_COLUMNS.items()},
        "webhook_secret_set": is_webhook_secret_set(),
        "defaults": dict(DEFAULT_WEBHOOKS),
    }
