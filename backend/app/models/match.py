"""
backend/app/models/match.py

Purpose:
    Match document, lifecycle status, admin request models, and the API
    response mapping. ``result`` is always derived from the goal counts.

Dependencies:
    - pydantic
    - app.utils
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.utils import as_utc


class MatchStatus(str, Enum):
    open = "open"            # Market open for betting
    closed = "closed"        # Market closed, match not yet finished
    finished = "finished"    # Final score recorded, settlement triggered
    deleted = "deleted"      # Soft-deleted because bets reference it


class MatchInDB(BaseModel):
    """Match document as stored in MongoDB.

    ``result`` is derived from the goal counts and rewritten on every goal
    mutation, so it always reads ``"{home_goals}-{away_goals}"``.
    """
    home: str
    away: str
    date: str                             # "2026-10-19"
    time: str = "00:00"
    odds: Dict[str, Any] = {}             # {"1X2": {"home": 1.85, ...}, "OU": {...}}
    home_goals: int = 0
    away_goals: int = 0
    result: str = "0-0"
    status: MatchStatus = MatchStatus.open
    is_live: bool = False
    finished_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# ---------- Request / Response models ----------

class CreateMatchRequest(BaseModel):
    """Admin request to create a match."""
    home: str = Field(min_length=1)
    away: str = Field(min_length=1)
    date: Optional[str] = None
    time: Optional[str] = None
    odds: Dict[str, Any]
    is_live: bool = False


class UpdateMatchRequest(BaseModel):
    """Partial update of match fields. Status changes go through the dedicated endpoints."""
    home: Optional[str] = Field(default=None, min_length=1)
    away: Optional[str] = Field(default=None, min_length=1)
    date: Optional[str] = None
    time: Optional[str] = None
    odds: Optional[Dict[str, Any]] = None
    home_goals: Optional[int] = Field(default=None, ge=0)
    away_goals: Optional[int] = Field(default=None, ge=0)


class UpdateGoalsRequest(BaseModel):
    home_goals: int = Field(ge=0)
    away_goals: int = Field(ge=0)


class MatchResponse(BaseModel):
    """Match data returned to the client."""
    id: str
    home: str
    away: str
    date: Optional[str] = None
    time: Optional[str] = None
    odds: Dict[str, Any] = {}
    home_goals: int
    away_goals: int
    result: str
    status: str
    is_live: bool
    finished_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def format_result(home_goals: int, away_goals: int) -> str:
    return f"{home_goals}-{away_goals}"


def db_to_response(doc: dict) -> MatchResponse:
    """Convert a MongoDB match document to an API response."""
    home_goals = doc.get("home_goals", 0)
    away_goals = doc.get("away_goals", 0)
    return MatchResponse(
        id=str(doc["_id"]),
        home=doc.get("home", ""),
        away=doc.get("away", ""),
        date=doc.get("date"),
        time=doc.get("time"),
        odds=doc.get("odds") or {},
        home_goals=home_goals,
        away_goals=away_goals,
        result=doc.get("result") or format_result(home_goals, away_goals),
        status=doc.get("status", MatchStatus.open.value),
        is_live=bool(doc.get("is_live", False)),
        finished_at=as_utc(doc.get("finished_at")),
        created_at=as_utc(doc.get("created_at")),
        updated_at=as_utc(doc.get("updated_at")),
    )
