"""
schemas.py — Contrôle de forme des réponses API-Football.

Seuls les champs lus par les fetchers sont déclarés ; le reste du
payload est ignoré. Une réponse invalide est journalisée puis écartée
(``None``) afin qu'un changement de format côté API ne corrompe pas la
base.

    validated = validate_fixture_response(api_get("fixtures", params))
    if validated:
        for item in validated.response: ...
"""
from __future__ import annotations

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from football_insights.config import logger


class APIModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


ItemT = TypeVar("ItemT", bound=APIModel)


class APIEnvelope(APIModel, Generic[ItemT]):
    """Common ``{results, response: [...]}`` wrapper of every endpoint."""

    results: Optional[int] = None
    response: List[ItemT] = Field(default_factory=list)


# ── /fixtures ────────────────────────────────────────────────────


class APITeamRef(APIModel):
    id: int
    name: str


class APIFixtureInfo(APIModel):
    id: int
    date: str
    referee: Optional[str] = None
    status: Dict[str, Any] = Field(default_factory=dict)  # {"short": "FT", "elapsed": 90}
    venue: Optional[Dict[str, Any]] = None


class APIGoals(APIModel):
    home: Optional[int] = None
    away: Optional[int] = None


class APIFixtureItem(APIModel):
    """One fixture; ``teams`` must carry both ``home`` and ``away``."""

    fixture: APIFixtureInfo
    league: Dict[str, Any]
    teams: Dict[str, APITeamRef]
    goals: APIGoals
    score: Dict[str, Any] = Field(default_factory=dict)


# ── /standings ───────────────────────────────────────────────────


class APIRecord(APIModel):
    """Played/won/drawn/lost split (overall, home or away)."""

    played: int = 0
    win: int = 0
    draw: int = 0
    lose: int = 0
    goals: Dict[str, Optional[int]] = Field(default_factory=dict)


class APIStandingRow(APIModel):
    rank: int
    team: APITeamRef
    points: int = 0
    goalsDiff: int = 0
    form: Optional[str] = None
    description: Optional[str] = None
    all: Optional[APIRecord] = None
    home: Optional[APIRecord] = None
    away: Optional[APIRecord] = None


class APIStandingLeague(APIModel):
    id: Optional[int] = None
    # Une liste de lignes par groupe (un seul groupe en championnat)
    standings: List[List[APIStandingRow]] = Field(default_factory=list)


class APIStandingItem(APIModel):
    league: APIStandingLeague


# ── /odds ────────────────────────────────────────────────────────


class APIOddValue(APIModel):
    value: str
    odd: str  # décimal sous forme de texte, ex. "1.85"


class APIOddBet(APIModel):
    id: Optional[int] = None
    name: str
    values: List[APIOddValue] = Field(default_factory=list)


class APIOddBookmaker(APIModel):
    id: Optional[int] = None
    name: str
    bets: List[APIOddBet] = Field(default_factory=list)


class APIOddItem(APIModel):
    bookmakers: List[APIOddBookmaker] = Field(default_factory=list)


# ── /injuries ────────────────────────────────────────────────────


class APIInjuredPlayer(APIModel):
    id: Optional[int] = None
    name: Optional[str] = None
    type: Optional[str] = None  # "Missing Fixture", "Questionable"
    reason: Optional[str] = None


class APIInjuryItem(APIModel):
    player: APIInjuredPlayer
    team: Dict[str, Any]
    fixture: Dict[str, Any]


# ── Validation ───────────────────────────────────────────────────


def _validate(model: Type[APIEnvelope], data: Optional[dict], label: str) -> Optional[APIEnvelope]:
    if not data:
        return None
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning("Réponse %s invalide (%d erreurs) : %s", label, e.error_count(), e.errors()[0]["loc"])
        return None


def validate_fixture_response(data: Optional[dict]) -> Optional[APIEnvelope[APIFixtureItem]]:
    """Validate a ``/fixtures`` payload; ``None`` if empty or malformed."""
    return _validate(APIEnvelope[APIFixtureItem], data, "fixtures")


def validate_standings_response(data: Optional[dict]) -> Optional[APIEnvelope[APIStandingItem]]:
    return _validate(APIEnvelope[APIStandingItem], data, "standings")


def validate_odds_response(data: Optional[dict]) -> Optional[APIEnvelope[APIOddItem]]:
    return _validate(APIEnvelope[APIOddItem], data, "odds")


def validate_injury_response(data: Optional[dict]) -> Optional[APIEnvelope[APIInjuryItem]]:
    return _validate(APIEnvelope[APIInjuryItem], data, "injuries")
