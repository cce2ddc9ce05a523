from typing import Dict, List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator, ConfigDict

from .config import MATCH_DEFAULTS
from .services.validation import SCORER_PIN_LENGTH, MIN_COURT, MAX_COURT
from .time_utils import require_utc


def _require_text(value: str, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValueError(f"{field_name} must not be empty")
    return trimmed


def _check_pin(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError("scorerPin must be a string")
    trimmed = value.strip()
    if len(trimmed) != SCORER_PIN_LENGTH or not trimmed.isdigit():
        raise ValueError(f"PIN must be {SCORER_PIN_LENGTH} digits")
    return trimmed


class TournamentCreate(BaseModel):
    """Schema for creating an arena."""

    name: str = Field(..., min_length=1, max_length=200)
    scorerPin: Optional[str] = None
    isPublic: bool = True

    model_config = ConfigDict(extra="forbid")

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _require_text(value, "name")

    @field_validator("scorerPin", mode="before")
    @classmethod
    def _validate_pin(cls, value: Optional[str]) -> Optional[str]:
        return _check_pin(value)


class TournamentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    isLocked: Optional[bool] = None
    scorerPin: Optional[str] = None
    isPublic: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("scorerPin", mode="before")
    @classmethod
    def _validate_pin(cls, value: Optional[str]) -> Optional[str]:
        return _check_pin(value)


class TournamentOut(BaseModel):
    """Returned representation of an arena."""

    id: str
    name: str
    uniqueId: str
    organizerId: Optional[str] = None
    isLocked: bool = False
    isPublic: bool = True
    hasScorerPin: bool = False
    rankingCriteria: List[str] = Field(default_factory=list)
    participants: List[str] = Field(default_factory=list)


class JoinOut(BaseModel):
    status: Literal["member", "joined", "requested"]
    tournament: TournamentOut
    requestId: Optional[str] = None


class JoinRequestOut(BaseModel):
    id: str
    tournamentId: str
    userId: str
    username: str
    status: Literal["pending", "approved", "rejected"]
    createdAt: Optional[datetime] = None
    resolvedAt: Optional[datetime] = None


class JoinRequestResolve(BaseModel):
    approved: bool


class RankingCriteriaIn(BaseModel):
    criteria: List[str]


class RankingCriterionMove(BaseModel):
    index: int = Field(..., ge=0)
    direction: Literal["up", "down"]


class PoolPlayerIn(BaseModel):
    """Add one player by display name, or by ``@username`` for registered users."""

    query: str = Field(..., min_length=1, max_length=200)

    @field_validator("query", mode="before")
    @classmethod
    def _validate_query(cls, value: str) -> str:
        return _require_text(value, "query")


class PoolImportIn(BaseModel):
    text: str = Field(..., max_length=20000)


class PoolPlayerOut(BaseModel):
    id: Optional[str] = None
    name: str
    username: Optional[str] = None
    isRegistered: bool = False


class PoolImportOut(BaseModel):
    added: int
    players: List[PoolPlayerOut] = Field(default_factory=list)


class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    playerNames: List[str] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _require_text(value, "name")


class TeamOut(BaseModel):
    id: str
    tournamentId: str
    name: str
    playerNames: List[str] = Field(default_factory=list)


class SetScoreIn(BaseModel):
    A: int = Field(..., ge=0)
    B: int = Field(..., ge=0)


class MatchCreate(BaseModel):
    """Schema for scheduling a match between two teams."""

    tournamentId: str
    teamAId: str
    teamBId: str
    pointsTo: int = MATCH_DEFAULTS["pointsTo"]
    maxPoint: int = MATCH_DEFAULTS["maxPoint"]
    bestOf: int = MATCH_DEFAULTS["bestOf"]
    court: int = Field(default=MIN_COURT, ge=MIN_COURT, le=MAX_COURT)
    umpireName: Optional[str] = Field(default=None, max_length=200)
    startTime: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("startTime")
    @classmethod
    def _validate_start_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return require_utc(value, field_name="startTime")


class MatchIdOut(BaseModel):
    id: str


class MatchOut(BaseModel):
    id: str
    tournamentId: str
    teamAId: str
    teamBId: str
    status: str
    winnerId: Optional[str] = None
    pointsTo: int
    winBy: int
    maxPoint: int
    bestOf: int
    requiredWins: int
    sets: List[Dict[str, int]] = Field(default_factory=list)
    setWinners: List[Optional[str]] = Field(default_factory=list)
    setsWon: Dict[str, int] = Field(default_factory=dict)
    activeSet: int = 0
    court: Optional[int] = None
    umpireName: Optional[str] = None
    startTime: Optional[datetime] = None
    completedAt: Optional[datetime] = None


class PointIn(BaseModel):
    setIndex: int = Field(..., ge=0)
    side: Literal["A", "B"]
    delta: Literal[1, -1] = 1
    pin: Optional[str] = None

    @field_validator("side", mode="before")
    @classmethod
    def _normalize_side(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class PointOut(BaseModel):
    accepted: bool
    result: str
    setOutcome: Optional[str] = None
    match: MatchOut


class ScoreSheetIn(BaseModel):
    sets: List[SetScoreIn] = Field(..., min_length=1)
    pin: Optional[str] = None


class StandingOut(BaseModel):
    """One ranked row of the arena table."""

    rank: int
    teamId: str
    name: Optional[str] = None
    played: int
    won: int
    lost: int
    setsWon: int
    setsLost: int
    pointsScored: int
    pointsConceded: int
    pointsDiff: int


class StandingsOut(BaseModel):
    tournamentId: str
    criteria: List[str] = Field(default_factory=list)
    standings: List[StandingOut] = Field(default_factory=list)
    rejectedMatchIds: List[str] = Field(default_factory=list)


class QuickPointIn(BaseModel):
    """A point against an unsaved match; the caller carries the score."""

    pointsTo: int = MATCH_DEFAULTS["pointsTo"]
    maxPoint: int = MATCH_DEFAULTS["maxPoint"]
    bestOf: int = MATCH_DEFAULTS["bestOf"]
    sets: List[SetScoreIn] = Field(default_factory=list)
    setIndex: int = Field(..., ge=0)
    side: Literal["A", "B"]
    delta: Literal[1, -1] = 1

    model_config = ConfigDict(extra="forbid")

    @field_validator("side", mode="before")
    @classmethod
    def _normalize_side(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class QuickMatchOut(BaseModel):
    status: str
    winner: Optional[Literal["A", "B"]] = None
    pointsTo: int
    winBy: int
    maxPoint: int
    bestOf: int
    requiredWins: int
    sets: List[Dict[str, int]] = Field(default_factory=list)
    setWinners: List[Optional[str]] = Field(default_factory=list)
    setsWon: Dict[str, int] = Field(default_factory=dict)
    totals: Dict[str, int] = Field(default_factory=dict)
    activeSet: int = 0


class QuickPointOut(BaseModel):
    accepted: bool
    result: str
    setOutcome: Optional[str] = None
    match: QuickMatchOut
