"""Balance ledger: atomic balance operations on the users collection.

Every balance change is one ``$inc`` relative to the stored value; debits carry
a ``balance >= amount`` guard in the same filter so a deduction can never drive
the balance negative. Each movement appends an insert-only transaction record.
"""

import logging
from typing import Optional

from fastapi import HTTPException, status
from pymongo.errors import PyMongoError

import app.database as _db
from app.config import settings
from app.models.wallet import RequestStatus, TransactionType
from app.services.odds_service import round_money
from app.utils import to_object_id, utcnow

logger = logging.getLogger("betarena.wallet_service")

_COUNTERS = {
    TransactionType.DEPOSIT: "total_deposited",
    TransactionType.WITHDRAWAL: "total_withdrawn",
    TransactionType.BET_PLACED: "total_staked",
    TransactionType.BET_WON: "total_won",
}


def _user_oid(user_id: str):
    oid = to_object_id(user_id)
    if oid is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found.")
    return oid


async def get_user(user_id: str) -> dict:
    user = await _db.db.users.find_one({"_id": _user_oid(user_id)})
    if not user:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found.")
    return user


async def credit(
    user_id: str, amount: float, *,
    tx_type: TransactionType,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    description: str,
    session=None,
) -> dict:
    """Atomically add ``amount`` to the user's balance. Returns the updated user."""
    amount = round_money(amount)
    inc = {"balance": amount}
    counter = _COUNTERS.get(tx_type)
    if counter:
        inc[counter] = amount

    user = await _db.db.users.find_one_and_update(
        {"_id": _user_oid(user_id)},
        {"$inc": inc, "$set": {"updated_at": utcnow()}},
        return_document=True,
        session=session,
    )
    if not user:
        logger.error("User not found for credit: %s (%s %.2f)", user_id, tx_type.value, amount)
        raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found.")

    await _log_transaction(
        user_id=user_id,
        tx_type=tx_type,
        amount=amount,
        balance_after=user["balance"],
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
        session=session,
    )
    return user


async def debit(
    user_id: str, amount: float, *,
    tx_type: TransactionType,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    description: str,
    session=None,
) -> dict:
    """Atomically deduct ``amount``. Returns the updated user.

    Uses find_one_and_update with balance >= amount guard to prevent overdraft.
    """
    amount = round_money(amount)
    inc = {"balance": -amount}
    counter = _COUNTERS.get(tx_type)
    if counter:
        inc[counter] = amount

    oid = _user_oid(user_id)
    user = await _db.db.users.find_one_and_update(
        {"_id": oid, "balance": {"$gte": amount}},
        {"$inc": inc, "$set": {"updated_at": utcnow()}},
        return_document=True,
        session=session,
    )
    if not user:
        exists = await _db.db.users.find_one({"_id": oid}, {"_id": 1}, session=session)
        if not exists:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found.")
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Insufficient balance.")

    await _log_transaction(
        user_id=user_id,
        tx_type=tx_type,
        amount=-amount,
        balance_after=user["balance"],
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
        session=session,
    )
    return user


async def _log_transaction(
    user_id: str,
    tx_type: TransactionType,
    amount: float,
    balance_after: float,
    description: str,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    session=None,
) -> None:
    """Insert an immutable transaction record.

    Runs after the balance ``$inc``. Inside a transaction a failure aborts
    both writes; without one the balance change stands and the lost record
    is logged.
    """
    record = {
        "user_id": user_id,
        "type": tx_type.value,
        "amount": amount,
        "balance_after": balance_after,
        "reference_type": reference_type,
        "reference_id": reference_id,
        "description": description,
        "created_at": utcnow(),
    }
    try:
        await _db.db.transactions.insert_one(record, session=session)
    except PyMongoError:
        if session is not None:
            raise
        logger.exception(
            "Ledger record lost after balance change: user=%s type=%s amount=%.2f ref=%s/%s",
            user_id, tx_type.value, amount, reference_type, reference_id,
        )


async def get_transactions(user_id: str, limit: int = 50, skip: int = 0) -> list[dict]:
    """Get transaction history for a user, newest first."""
    return await _db.db.transactions.find(
        {"user_id": user_id}
    ).sort("created_at", -1).skip(skip).to_list(length=limit)


# ---------- Deposits ----------

async def create_deposit(
    user_id: str, amount: float, method: str, reference: Optional[str] = None,
) -> dict:
    """Record a pending deposit. The balance moves only on approval."""
    await get_user(user_id)
    now = utcnow()
    doc = {
        "user_id": user_id,
        "amount": round_money(amount),
        "method": method,
        "reference": reference,
        "status": RequestStatus.pending.value,
        "admin_note": None,
        "processed_at": None,
        "created_at": now,
        "updated_at": now,
    }
    result = await _db.db.deposits.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Deposit requested: user=%s amount=%.2f method=%s", user_id, doc["amount"], method)
    return doc


async def approve_deposit(deposit_id: str, admin_note: Optional[str] = None) -> dict:
    """Flip a pending deposit to approved and credit the user once."""
    async with _db.transaction() as session:
        deposit = await _claim_review(
            "deposits", deposit_id, RequestStatus.approved, admin_note, session,
        )
        try:
            await credit(
                deposit["user_id"], deposit["amount"],
                tx_type=TransactionType.DEPOSIT,
                reference_type="deposit",
                reference_id=str(deposit["_id"]),
                description=f"Deposit approved via {deposit.get('method', 'transfer')}",
                session=session,
            )
        except Exception:
            if session is None:
                await _release_review("deposits", deposit["_id"], RequestStatus.approved)
            raise

    logger.info("Deposit approved: id=%s user=%s amount=%.2f", deposit_id, deposit["user_id"], deposit["amount"])
    return deposit


async def reject_deposit(deposit_id: str, admin_note: Optional[str] = None) -> dict:
    deposit = await _claim_review("deposits", deposit_id, RequestStatus.rejected, admin_note)
    logger.info("Deposit rejected: id=%s user=%s", deposit_id, deposit["user_id"])
    return deposit


# ---------- Withdrawals ----------

async def create_withdrawal(user_id: str, amount: float, method: str) -> dict:
    """Record a pending withdrawal. Balance is checked now but deducted on approval."""
    amount = round_money(amount)
    if amount < settings.MIN_WITHDRAWAL:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            f"Minimum withdrawal is {settings.MIN_WITHDRAWAL:.2f}.",
        )
    user = await get_user(user_id)
    if float(user.get("balance", 0)) < amount:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Insufficient balance.")

    now = utcnow()
    doc = {
        "user_id": user_id,
        "amount": amount,
        "method": method,
        "status": RequestStatus.pending.value,
        "admin_note": None,
        "processed_at": None,
        "created_at": now,
        "updated_at": now,
    }
    result = await _db.db.withdrawals.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Withdrawal requested: user=%s amount=%.2f", user_id, amount)
    return doc


async def approve_withdrawal(withdrawal_id: str, admin_note: Optional[str] = None) -> dict:
    """Flip a pending withdrawal to approved and deduct the balance once.

    If the balance no longer covers the amount the withdrawal stays pending.
    """
    async with _db.transaction() as session:
        withdrawal = await _claim_review(
            "withdrawals", withdrawal_id, RequestStatus.approved, admin_note, session,
        )
        try:
            await debit(
                withdrawal["user_id"], withdrawal["amount"],
                tx_type=TransactionType.WITHDRAWAL,
                reference_type="withdrawal",
                reference_id=str(withdrawal["_id"]),
                description=f"Withdrawal via {withdrawal.get('method', 'transfer')}",
                session=session,
            )
        except Exception:
            if session is None:
                await _release_review("withdrawals", withdrawal["_id"], RequestStatus.approved)
            raise

    logger.info(
        "Withdrawal approved: id=%s user=%s amount=%.2f",
        withdrawal_id, withdrawal["user_id"], withdrawal["amount"],
    )
    return withdrawal


async def reject_withdrawal(withdrawal_id: str, admin_note: Optional[str] = None) -> dict:
    withdrawal = await _claim_review("withdrawals", withdrawal_id, RequestStatus.rejected, admin_note)
    logger.info("Withdrawal rejected: id=%s user=%s", withdrawal_id, withdrawal["user_id"])
    return withdrawal


# ---------- Review helpers ----------

async def _claim_review(
    collection: str, request_id: str, new_status: RequestStatus,
    admin_note: Optional[str], session=None,
) -> dict:
    """Atomically move a pending request to ``new_status``.

    Only one reviewer can win the pending -> approved/rejected flip, so a
    double-click or a racing admin can never move money twice.
    """
    label = collection[:-1].capitalize()
    oid = to_object_id(request_id)
    if oid is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"{label} not found.")

    coll = getattr(_db.db, collection)
    now = utcnow()
    doc = await coll.find_one_and_update(
        {"_id": oid, "status": RequestStatus.pending.value},
        {"$set": {
            "status": new_status.value,
            "admin_note": admin_note,
            "processed_at": now,
            "updated_at": now,
        }},
        return_document=True,
        session=session,
    )
    if doc:
        return doc

    existing = await coll.find_one({"_id": oid}, session=session)
    if not existing:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"{label} not found.")
    raise HTTPException(
        status.HTTP_409_CONFLICT,
        f"{label} already {existing.get('status')}.",
    )


async def _release_review(collection: str, oid, claimed: RequestStatus) -> None:
    """Undo a claim whose balance movement failed (no-transaction mode)."""
    coll = getattr(_db.db, collection)
    await coll.update_one(
        {"_id": oid, "status": claimed.value},
        {"$set": {
            "status": RequestStatus.pending.value,
            "processed_at": None,
            "updated_at": utcnow(),
        }},
    )
    logger.warning("Rolled back %s review for %s", collection, oid)
