"""
backend/app/models/bet.py

Purpose:
    Parlay bet documents and API models: the stored bet with its frozen legs,
    the placement request, and the per-run settlement summary.

Dependencies:
    - pydantic
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class SelectionResult(str, Enum):
    pending = "pending"
    won = "won"
    lost = "lost"


class BetStatus(str, Enum):
    pending = "pending"    # At least one leg unresolved, none lost
    won = "won"            # Every leg won; paid exactly once (is_paid)
    lost = "lost"          # At least one leg lost


class SelectionInDB(BaseModel):
    """One leg of a parlay bet.

    ``odd`` is frozen at placement and never re-priced from the match's
    current odds. ``reason`` records why the leg resolved the way it did
    (score summary, ``match_missing``, ``unsupported_market``).
    """
    match_id: str
    market_key: str                       # 1X2 | GG | OU | DC
    selection_key: str                    # home | yes | over_2.5 | 1X ...
    odd: float
    label: str = ""
    result: SelectionResult = SelectionResult.pending
    reason: Optional[str] = None


class BetInDB(BaseModel):
    """Bet document as stored in MongoDB."""
    user_id: str
    selections: List[SelectionInDB]
    stake: float
    combined_odd: float                   # Product of selection odds, 2dp
    potential_win: float                  # stake * combined_odd, 2dp
    status: BetStatus = BetStatus.pending
    is_paid: bool = False                 # false -> true once, only with status=won
    settled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# ---------- Request / Response models ----------

class BetSelectionCreate(BaseModel):
    """One selection in a bet placement request."""
    match_id: str = Field(min_length=1)
    market_key: str = Field(min_length=1)
    selection_key: str = Field(min_length=1)
    odd: float = Field(ge=1.0)
    label: str = ""

    @field_validator("market_key", "selection_key")
    @classmethod
    def strip_keys(cls, value: str) -> str:
        return value.strip()


class PlaceBetRequest(BaseModel):
    user_id: str = Field(min_length=1)
    selections: List[BetSelectionCreate] = Field(min_length=1)
    stake: float = Field(gt=0)


class BetResponse(BaseModel):
    """Bet data returned to the client."""
    id: str
    user_id: str
    selections: List[dict]
    stake: float
    combined_odd: float
    potential_win: float
    status: str
    is_paid: bool
    settled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class SettlementSummary(BaseModel):
    """Outcome counts of one settlement run."""
    checked: int = 0
    won: int = 0
    lost: int = 0
    pending: int = 0
    skipped: int = 0       # Already settled by a concurrent pass
    failed: int = 0        # Storage error, left for the next trigger
    unsupported: int = 0   # Legs resolved through the fail-closed market path
