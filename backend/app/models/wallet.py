"""Ledger models: user balance, transactions, deposits, withdrawals."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ---------- Balance ----------

class BalanceResponse(BaseModel):
    """User balance and lifetime counters returned to the client."""
    user_id: str
    balance: float
    total_deposited: float = 0.0
    total_withdrawn: float = 0.0
    total_staked: float = 0.0
    total_won: float = 0.0


# ---------- Ledger Transactions ----------

class TransactionType(str, Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    BET_PLACED = "BET_PLACED"
    BET_WON = "BET_WON"
    BET_REFUND = "BET_REFUND"


class TransactionInDB(BaseModel):
    """Immutable audit trail for every balance movement."""
    user_id: str
    type: TransactionType
    amount: float  # positive = credit, negative = debit
    balance_after: float
    reference_type: Optional[str] = None  # "bet" | "deposit" | "withdrawal"
    reference_id: Optional[str] = None
    description: str
    created_at: datetime


class TransactionResponse(BaseModel):
    """Transaction data returned to the client."""
    id: str
    type: str
    amount: float
    balance_after: float
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    description: str
    created_at: datetime


# ---------- Deposits / Withdrawals ----------

class RequestStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class DepositCreate(BaseModel):
    user_id: str = Field(min_length=1)
    amount: float = Field(gt=0)
    method: str = "Bank Transfer"
    reference: Optional[str] = None       # Payer's transfer reference


class WithdrawalCreate(BaseModel):
    user_id: str = Field(min_length=1)
    amount: float = Field(gt=0)
    method: str = "Bank Transfer"


class ReviewRequest(BaseModel):
    """Optional admin note attached to an approve/reject decision."""
    admin_note: Optional[str] = None


class MoneyRequestResponse(BaseModel):
    """Deposit or withdrawal request returned to the client."""
    id: str
    user_id: str
    amount: float
    method: str
    status: str
    admin_note: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
