"""Wallet endpoints: balance, transactions, deposit and withdrawal requests."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.models.wallet import (
    BalanceResponse,
    DepositCreate,
    MoneyRequestResponse,
    ReviewRequest,
    TransactionResponse,
    WithdrawalCreate,
)
from app.services import wallet_service
from app.services.auth_service import require_admin
from app.utils import as_utc

router = APIRouter(prefix="/api/wallet", tags=["wallet"])


def _request_to_response(doc: dict) -> MoneyRequestResponse:
    return MoneyRequestResponse(
        id=str(doc["_id"]),
        user_id=doc["user_id"],
        amount=doc["amount"],
        method=doc.get("method", ""),
        status=doc["status"],
        admin_note=doc.get("admin_note"),
        processed_at=as_utc(doc.get("processed_at")),
        created_at=as_utc(doc.get("created_at")),
    )


def _note(body: Optional[ReviewRequest]) -> Optional[str]:
    return body.admin_note if body else None


# ---------- Deposits ----------

@router.post("/deposits", status_code=status.HTTP_201_CREATED)
async def create_deposit(body: DepositCreate):
    """Submit a deposit request. The balance moves once an admin approves it."""
    deposit = await wallet_service.create_deposit(
        body.user_id, body.amount, body.method, body.reference,
    )
    return {"message": "Deposit request submitted.", "deposit": _request_to_response(deposit)}


@router.put("/deposits/{deposit_id}/approve")
async def approve_deposit(deposit_id: str, body: Optional[ReviewRequest] = None, admin=Depends(require_admin)):
    deposit = await wallet_service.approve_deposit(deposit_id, _note(body))
    return {"message": "Deposit approved.", "deposit": _request_to_response(deposit)}


@router.put("/deposits/{deposit_id}/reject")
async def reject_deposit(deposit_id: str, body: Optional[ReviewRequest] = None, admin=Depends(require_admin)):
    deposit = await wallet_service.reject_deposit(deposit_id, _note(body))
    return {"message": "Deposit rejected.", "deposit": _request_to_response(deposit)}


# ---------- Withdrawals ----------

@router.post("/withdrawals", status_code=status.HTTP_201_CREATED)
async def create_withdrawal(body: WithdrawalCreate):
    """Submit a withdrawal request. The balance is checked now and deducted on approval."""
    withdrawal = await wallet_service.create_withdrawal(body.user_id, body.amount, body.method)
    return {"message": "Withdrawal request submitted.", "withdrawal": _request_to_response(withdrawal)}


@router.put("/withdrawals/{withdrawal_id}/approve")
async def approve_withdrawal(withdrawal_id: str, body: Optional[ReviewRequest] = None, admin=Depends(require_admin)):
    withdrawal = await wallet_service.approve_withdrawal(withdrawal_id, _note(body))
    return {"message": "Withdrawal approved.", "withdrawal": _request_to_response(withdrawal)}


@router.put("/withdrawals/{withdrawal_id}/reject")
async def reject_withdrawal(withdrawal_id: str, body: Optional[ReviewRequest] = None, admin=Depends(require_admin)):
    withdrawal = await wallet_service.reject_withdrawal(withdrawal_id, _note(body))
    return {"message": "Withdrawal rejected.", "withdrawal": _request_to_response(withdrawal)}


# ---------- Balance ----------

@router.get("/{user_id}", response_model=BalanceResponse)
async def get_balance(user_id: str):
    user = await wallet_service.get_user(user_id)
    return BalanceResponse(
        user_id=str(user["_id"]),
        balance=user.get("balance", 0.0),
        total_deposited=user.get("total_deposited", 0.0),
        total_withdrawn=user.get("total_withdrawn", 0.0),
        total_staked=user.get("total_staked", 0.0),
        total_won=user.get("total_won", 0.0),
    )


@router.get("/{user_id}/transactions", response_model=list[TransactionResponse])
async def get_transactions(
    user_id: str,
    limit: int = Query(50, ge=1, le=200),
    skip: int = Query(0, ge=0),
):
    """Get ledger history, newest first."""
    txs = await wallet_service.get_transactions(user_id, limit=limit, skip=skip)
    return [
        TransactionResponse(
            id=str(tx["_id"]),
            type=tx["type"],
            amount=tx["amount"],
            balance_after=tx["balance_after"],
            reference_type=tx.get("reference_type"),
            reference_id=tx.get("reference_id"),
            description=tx["description"],
            created_at=as_utc(tx["created_at"]),
        )
        for tx in txs
    ]
