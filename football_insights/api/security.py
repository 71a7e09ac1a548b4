"""
api/security.py — Contrôle d'accès des routes d'administration.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException

from football_insights import config


def verify_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> bool:
    """Vérifie la clé API. BLOQUE si invalide (sauf si non configurée)."""
    if not config.ADMIN_API_KEY:
        return True
    if x_api_key != config.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid API key")
    return True
