"""
constants.py — Toutes les constantes de Football Insights.

Centralise les fenêtres temporelles, les codes de statut API-Football
et les réglages de l'automatisation.
"""

from __future__ import annotations

# ═══════════════════════════════════════════════════════════════════
#  FENÊTRES DE DATES (refresh intelligent)
# ═══════════════════════════════════════════════════════════════════

UPCOMING_DAYS: int = 7  # Fixtures des 7 prochains jours
RECENT_DAYS: int = 3  # Fixtures terminés des 3 derniers jours
LINEUP_HOURS: int = 2  # Compos dispo ~1h avant, fenêtre de 2h
ODDS_DAYS: int = 14  # Cotes dispo jusqu'à 2 semaines avant
WEATHER_HOURS: int = 48  # Prévisions fiables à 48h
H2H_MATCHES: int = 10  # 10 dernières confrontations
POST_MATCH_HOURS: int = 24  # Match "récemment terminé" pendant 24h
STATS_BACKFILL_DAYS: int = 7  # Rattrapage des stats jusqu'à 7 jours


# ═══════════════════════════════════════════════════════════════════
#  STATUTS API-FOOTBALL
# ═══════════════════════════════════════════════════════════════════

NOT_STARTED_STATUSES: frozenset[str] = frozenset({"NS", "TBD"})
LIVE_STATUSES: frozenset[str] = frozenset({"1H", "2H", "HT", "ET", "BT", "P", "INT", "LIVE"})
COMPLETED_STATUSES: frozenset[str] = frozenset({"FT", "AET", "PEN"})
POSTPONED_STATUSES: frozenset[str] = frozenset({"PST", "SUSP", "CANC", "ABD", "AWD", "WO"})

# Statuts "en jeu" utilisés par les déclencheurs live et la resynchro
IN_PLAY_STATUSES: tuple[str, ...] = ("1H", "2H", "HT", "ET", "BT", "P")


# ═══════════════════════════════════════════════════════════════════
#  DÉTECTION DE PHASE
# ═══════════════════════════════════════════════════════════════════

IMMINENT_HOURS: float = 1.0
PRE_MATCH_HOURS: float = 3.0
POST_MATCH_PHASE_HOURS: float = 2.0
DAY_BEFORE_HOURS: float = 24.0
WEEK_BEFORE_HOURS: float = 168.0


# ═══════════════════════════════════════════════════════════════════
#  FENÊTRES DES DÉCLENCHEURS (minutes)
# ═══════════════════════════════════════════════════════════════════

PRE_MATCH_WINDOW: tuple[int, int] = (25, 35)  # 30 min ± 5 avant le coup d'envoi
PREDICTION_WINDOW: tuple[int, int] = (20, 30)  # 25 min ± 5 avant le coup d'envoi
POST_MATCH_WINDOW: tuple[int, int] = (230, 250)  # 4h ± 10 min après le coup d'envoi
ANALYSIS_WINDOW: tuple[int, int] = (245, 265)  # 4h15 ± 10 min après le coup d'envoi


# ═══════════════════════════════════════════════════════════════════
#  TRAITEMENT PAR LOTS
# ═══════════════════════════════════════════════════════════════════

MAX_PREDICTIONS_PER_RUN: int = 9
MAX_ANALYSES_PER_RUN: int = 9
BATCH_SIZE: int = 3
PROCESSING_BUFFER_MINUTES: int = 7  # Relance si déclenché il y a > 7 min sans résultat


# ═══════════════════════════════════════════════════════════════════
#  WEBHOOKS & CRON
# ═══════════════════════════════════════════════════════════════════

DEFAULT_WEBHOOKS: dict[str, str] = {
    "prediction": "https://nn.analyserinsights.com/webhook/football-prediction",
    "analysis": "https://nn.analyserinsights.com/webhook/post-match-analysis",
    "pre-match": "https://nn.analyserinsights.com/webhook/trigger/pre-match",
    "live": "https://nn.analyserinsights.com/webhook/trigger/live",
    "post-match": "https://nn.analyserinsights.com/webhook/trigger/post-match",
}

WEBHOOK_TIMEOUT_SECONDS: float = 180.0
WEBHOOK_CONFIG_CACHE_TTL: float = 60.0
LIVE_REFRESH_TIMEOUT_SECONDS: float = 30.0
CRON_INTERVAL_MINUTES: int = 5

# Pause entre deux sources lors d'un refresh intelligent
SMART_REFRESH_DELAY_SECONDS: float = 0.5
