"""
Fetchers API-Football / OpenWeatherMap -> Supabase.

Un fetcher renvoie le nombre de lignes écrites. Une source injoignable
ou une écriture refusée lève :class:`FetchError` : "0 ligne" signifie
uniquement qu'il n'y avait rien à importer.
"""

from __future__ import annotations

from football_insights.config import logger


class FetchError(RuntimeError):
    """Raised when a refresh cannot read its source or store its rows."""


def require_response(data: dict | None, endpoint: str) -> dict:
    """Return ``data`` or raise when :func:`config.api_get` gave up."""
    if data is None:
        raise FetchError(f"API-Football {endpoint}: no response")
    return data


def check_failures(label: str, failures: int, attempts: int, written: int) -> None:
    """Raise when every per-item call failed; log partial failures.

    Args:
        label: Name used in messages (``"lineups"``...).
        failures: Number of items whose request or write failed.
        attempts: Number of items processed.
        written: Rows written despite the failures.
    """
    if not failures:
        return
    if not written:
        raise FetchError(f"{label}: {failures}/{attempts} requests failed")
    logger.warning("   ⚠️ %s : %d/%d échecs", label, failures, attempts)
