from __future__ import annotations

"""
Configuration partagée pour tous les modules Football Insights.
"""
import logging
import os
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

import requests
from dotenv import load_dotenv
from supabase import Client, create_client


# ── Logging structuré ────────────────────────────────────────────
def setup_logger(name: str = "football_insights", level: int = logging.INFO) -> logging.Logger:
    """Create (or retrieve) a timestamped console logger.

    If the logger already has handlers attached, no new handler is added
    so that duplicate output is avoided when called multiple times.

    Args:
        name: Logger name passed to :func:`logging.getLogger`.
        level: Logging level (e.g. ``logging.INFO``, ``logging.DEBUG``).

    Returns:
        Configured :class:`logging.Logger` instance.
    """
    log: logging.Logger = logging.getLogger(name)
    if not log.handlers:
        handler: logging.StreamHandler = logging.StreamHandler()
        formatter: logging.Formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        handler.setFormatter(formatter)
        log.addHandler(handler)
    log.setLevel(level)
    return log


# ── Chargement .env ──────────────────────────────────────────────
load_dotenv()

logger: logging.Logger = setup_logger(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
)

SUPABASE_URL: Optional[str] = os.getenv("SUPABASE_URL")
SUPABASE_KEY: Optional[str] = os.getenv("SUPABASE_KEY")
API_FOOTBALL_KEY: Optional[str] = os.getenv("API_FOOTBALL_KEY")
OPENWEATHER_API_KEY: Optional[str] = os.getenv("OPENWEATHER_API_KEY")

# n8n (workflows IA)
N8N_WEBHOOK_BASE_URL: Optional[str] = os.getenv("N8N_WEBHOOK_BASE_URL")
N8N_PREDICTION_WEBHOOK: Optional[str] = os.getenv("N8N_PREDICTION_WEBHOOK")
N8N_ANALYSIS_WEBHOOK: Optional[str] = os.getenv("N8N_ANALYSIS_WEBHOOK")

ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")
AI_MODEL: str = os.getenv("AI_MODEL", "openai/gpt-5-mini")
APP_TIMEZONE: str = os.getenv("APP_TIMEZONE", "Europe/London")


# ── Client Supabase ──────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Return the shared Supabase client, created on first use.

    Uses the service-role key from ``SUPABASE_KEY``; all server-side
    reads and writes go through this client.
    """
    return create_client(SUPABASE_URL or "", SUPABASE_KEY or "")


# ── Validation de l'environnement ────────────────────────────────
class ConfigError(RuntimeError):
    """Raised when required environment variables are missing or invalid."""


@dataclass
class EnvValidationResult:
    """Outcome of :func:`validate_env`."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


# (name, required, description)
ENV_VARS: list[tuple[str, bool, str]] = [
    ("SUPABASE_URL", True, "Supabase project URL"),
    ("SUPABASE_KEY", True, "Supabase service role key for server-side operations"),
    ("API_FOOTBALL_KEY", True, "API-Football API key"),
    ("ADMIN_API_KEY", False, "Shared key protecting the admin routes"),
    ("N8N_WEBHOOK_SECRET", False, "Shared secret sent to n8n webhooks"),
    ("N8N_WEBHOOK_BASE_URL", False, "Base URL of the n8n trigger webhooks"),
    ("OPENWEATHER_API_KEY", False, "OpenWeatherMap key for match-day forecasts"),
]


def validate_env(strict: bool = False) -> EnvValidationResult:
    """Check the environment for missing or malformed settings.

    Args:
        strict: Raise :class:`ConfigError` instead of returning when a
            required variable is missing or invalid.

    Returns:
        The collected errors and warnings.
    """
    result = EnvValidationResult()

    for name, required, description in ENV_VARS:
        value = os.getenv(name)
        if not value:
            if required:
                result.errors.append(f"Missing required env var {name} ({description})")
            else:
                result.warnings.append(f"Optional env var {name} not set ({description})")

    url = os.getenv("SUPABASE_URL")
    if url and not url.startswith("https://"):
        result.errors.append("SUPABASE_URL must be an https:// URL")

    for warning in result.warnings:
        logger.warning(warning)
    for error in result.errors:
        logger.error(error)

    if strict and result.errors:
        raise ConfigError("; ".join(result.errors))
    return result


# ── API-Football ─────────────────────────────────────────────────
API_BASE_URL: str = os.getenv("API_FOOTBALL_BASE_URL", "https://v3.football.api-sports.io")
API_HEADERS: dict[str, Optional[str]] = {
    "x-apisports-key": API_FOOTBALL_KEY,
}

# Compteur de requêtes pour monitoring
_request_count: int = 0


# Retry configuration
API_MAX_RETRIES: int = 3
API_BACKOFF_DELAYS: list[float] = [1.0, 3.0, 10.0]
API_THROTTLE_SECONDS: float = 0.25


def api_get(endpoint: str, params: dict | None = None) -> dict | None:
    """Perform a GET request against the API-Football v3 endpoint.

    Retries with a fixed backoff schedule on 429/5xx errors and network
    failures, sleeps briefly after each successful call to stay inside the
    plan's per-minute quota, and logs HTTP or API-level errors.

    Args:
        endpoint: API path appended to :data:`API_BASE_URL`
            (e.g. ``"fixtures"``).
        params: Optional query-string parameters forwarded to
            :func:`requests.get`.

    Returns:
        Parsed JSON response as a dict, or ``None`` on error.
    """
    global _request_count
    if not API_FOOTBALL_KEY:
        logger.error("API_FOOTBALL_KEY manquante, appel %s ignoré", endpoint)
        return None

    url: str = f"{API_BASE_URL}/{endpoint}"

    for attempt in range(API_MAX_RETRIES + 1):
        try:
            resp: requests.Response = requests.get(
                url, headers=API_HEADERS, params=params or {}, timeout=15
            )
            _request_count += 1

            # Retry on rate limit / server error
            if resp.status_code == 429 or resp.status_code >= 500:
                if attempt < API_MAX_RETRIES:
                    delay = API_BACKOFF_DELAYS[min(attempt, len(API_BACKOFF_DELAYS) - 1)]
                    logger.warning(
                        "HTTP %d on %s, retrying in %.0fs...", resp.status_code, endpoint, delay
                    )
                    time.sleep(delay)
                    continue
                logger.error(
                    "HTTP %d on %s after %d retries", resp.status_code, endpoint, API_MAX_RETRIES
                )
                return None

            # Non-retryable HTTP error
            if resp.status_code != 200:
                logger.error("HTTP %d sur %s", resp.status_code, endpoint)
                return None

            data: dict = resp.json()

            errors = data.get("errors")
            if errors:
                logger.error("API-Football: %s", errors)
                return None

            remaining = resp.headers.get("x-ratelimit-requests-remaining")
            if remaining is not None:
                logger.debug("API-Football quota restant : %s", remaining)

            time.sleep(API_THROTTLE_SECONDS)
            return data

        except requests.exceptions.RequestException as e:
            if attempt < API_MAX_RETRIES:
                delay = API_BACKOFF_DELAYS[min(attempt, len(API_BACKOFF_DELAYS) - 1)]
                logger.warning("Request error on %s: %s, retrying in %.0fs...", endpoint, e, delay)
                time.sleep(delay)
            else:
                logger.error("Request failed on %s after %d retries: %s", endpoint, API_MAX_RETRIES, e)
                return None

    return None


def get_request_count() -> int:
    """Return the cumulative number of API-Football requests made."""
    return _request_count


def reset_request_count() -> None:
    """Reset the API-Football request counter to zero."""
    global _request_count
    _request_count = 0
