from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

MAX_SCORE_LENGTH = 200


def _require_id(value, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValueError(f"{field_name} must not be empty")
    return trimmed


class MatchResultIn(BaseModel):
    matchId: str
    winnerId: str
    score: str = Field(default="", max_length=MAX_SCORE_LENGTH)
    isRetirement: bool = False

    @field_validator("matchId", mode="before")
    @classmethod
    def _validate_match_id(cls, value: str) -> str:
        return _require_id(value, "matchId")

    @field_validator("winnerId", mode="before")
    @classmethod
    def _validate_winner_id(cls, value: str) -> str:
        return _require_id(value, "winnerId")

    @field_validator("score", mode="before")
    @classmethod
    def _normalize_score(cls, value: Optional[str]) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("score must be a string")
        return value.strip()


class SettlementResult(BaseModel):
    """Uniform outcome of a settlement attempt, for every entry point."""

    success: bool
    message: str
    code: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)


class MatchOut(BaseModel):
    id: str
    tournamentId: str
    player1Id: str
    player2Id: str
    challengeId: Optional[str] = None
    status: str
    winnerId: Optional[str] = None
    score: Optional[str] = None
    isRetirement: bool = False
    completedAt: Optional[datetime] = None
    rankingsProcessed: bool = False


class LadderEntryOut(BaseModel):
    inscriptionId: str
    playerId: str
    position: int
    status: str


class LadderSwapIn(BaseModel):
    winnerId: str
    loserId: str

    @field_validator("winnerId", "loserId", mode="before")
    @classmethod
    def _validate_ids(cls, value: str, info) -> str:
        return _require_id(value, info.field_name)


class LadderSwapOut(BaseModel):
    success: bool = True
    message: str
    positions: dict[str, int]


class ReconciliationOut(BaseModel):
    success: bool = True
    message: str
    matchesProcessed: int
    playersUpdated: int
    skippedMatchIds: list[str] = Field(default_factory=list)
