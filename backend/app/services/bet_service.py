"""
backend/app/services/bet_service.py

Purpose:
    Parlay bet placement and bet queries. Placement validates the selections,
    prices the ticket, deducts the stake atomically, and stores the bet with
    the odds frozen at placement time.

Dependencies:
    - app.database
    - app.services.odds_service
    - app.services.selection_evaluator
    - app.services.wallet_service
"""

import logging
from typing import Optional

from bson import ObjectId
from fastapi import HTTPException, status

import app.database as _db
from app.config import settings
from app.models.bet import BetStatus, SelectionResult
from app.models.match import MatchStatus
from app.models.wallet import TransactionType
from app.services import wallet_service
from app.services.odds_service import calc_combined_odd, calc_potential_win, round_money
from app.services.selection_evaluator import is_supported
from app.utils import as_utc, to_object_id, utcnow

logger = logging.getLogger("betarena.bet_service")


async def place_bet(user_id: str, selections: list[dict], stake: float) -> dict:
    """Create a pending parlay bet and deduct its stake.

    Each selection dict: {match_id, market_key, selection_key, odd, label}

    Validates:
    - 1..MAX_SELECTIONS selections, no match twice
    - Every match exists and its market is open
    - Stake >= MIN_STAKE and covered by the balance (checked in the debit)

    Returns {"bet", "combined_odd", "potential_win", "balance"}.
    """
    if not selections:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "At least one selection is required.")
    if len(selections) > settings.MAX_SELECTIONS:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            f"A bet may contain at most {settings.MAX_SELECTIONS} selections.",
        )
    stake = round_money(stake)
    if stake < settings.MIN_STAKE:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            f"Minimum stake is {settings.MIN_STAKE:.2f}.",
        )

    match_ids = [str(s["match_id"]) for s in selections]
    if len(set(match_ids)) != len(match_ids):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Duplicate match in selections.")

    oids = []
    for match_id in match_ids:
        oid = to_object_id(match_id)
        if oid is None:
            raise HTTPException(status.HTTP_404_NOT_FOUND, f"Match {match_id} not found.")
        oids.append(oid)

    matches_by_id = {
        str(m["_id"]): m
        async for m in _db.db.matches.find({"_id": {"$in": oids}}, {"status": 1, "home": 1, "away": 1})
    }

    legs: list[dict] = []
    for sel in selections:
        match = matches_by_id.get(str(sel["match_id"]))
        if not match:
            raise HTTPException(status.HTTP_404_NOT_FOUND, f"Match {sel['match_id']} not found.")
        if match.get("status") != MatchStatus.open.value:
            raise HTTPException(
                status.HTTP_400_BAD_REQUEST,
                f"Match {sel['match_id']} is not open for betting.",
            )
        if settings.REJECT_UNSUPPORTED_MARKETS and not is_supported(sel["market_key"], sel["selection_key"]):
            raise HTTPException(
                status.HTTP_400_BAD_REQUEST,
                f"Unsupported selection {sel['market_key']}/{sel['selection_key']}.",
            )
        legs.append({
            "match_id": str(sel["match_id"]),
            "market_key": sel["market_key"],
            "selection_key": sel["selection_key"],
            "odd": float(sel["odd"]),
            "label": sel.get("label") or f"{match.get('home')} vs {match.get('away')}",
            "result": SelectionResult.pending.value,
        })

    combined_odd = calc_combined_odd(legs)
    potential_win = calc_potential_win(stake, combined_odd)

    now = utcnow()
    bet_id = ObjectId()
    bet_doc = {
        "_id": bet_id,
        "user_id": user_id,
        "selections": legs,
        "stake": stake,
        "combined_odd": combined_odd,
        "potential_win": potential_win,
        "status": BetStatus.pending.value,
        "is_paid": False,
        "settled_at": None,
        "created_at": now,
        "updated_at": now,
    }

    async with _db.transaction() as session:
        user = await wallet_service.debit(
            user_id, stake,
            tx_type=TransactionType.BET_PLACED,
            reference_type="bet",
            reference_id=str(bet_id),
            description=f"Bet placed: {len(legs)} selections, odds {combined_odd:.2f}",
            session=session,
        )
        try:
            await _db.db.bets.insert_one(bet_doc, session=session)
        except Exception:
            if session is None:
                await wallet_service.credit(
                    user_id, stake,
                    tx_type=TransactionType.BET_REFUND,
                    reference_type="bet",
                    reference_id=str(bet_id),
                    description="Stake refunded: bet could not be stored",
                )
            logger.exception("Bet insert failed for user=%s, stake returned", user_id)
            raise

    logger.info(
        "Bet placed: user=%s selections=%d odds=%.2f stake=%.2f potential=%.2f",
        user_id, len(legs), combined_odd, stake, potential_win,
    )
    return {
        "bet": bet_doc,
        "combined_odd": combined_odd,
        "potential_win": potential_win,
        "balance": user["balance"],
    }


# ---------- Query + Serialization ----------

async def get_user_bets(user_id: str, status_filter: Optional[str] = None, limit: int = 100) -> list[dict]:
    """Get bets for a user, newest first."""
    query: dict = {"user_id": user_id}
    if status_filter:
        query["status"] = status_filter
    return await _db.db.bets.find(query).sort("created_at", -1).to_list(length=limit)


async def get_all_bets(status_filter: Optional[str] = None, limit: int = 500) -> list[dict]:
    query: dict = {}
    if status_filter:
        query["status"] = status_filter
    return await _db.db.bets.find(query).sort("created_at", -1).to_list(length=limit)


def bet_to_response(doc: dict) -> dict:
    """Convert a bets document to a response dict."""
    return {
        "id": str(doc["_id"]),
        "user_id": doc["user_id"],
        "selections": [dict(s) for s in doc.get("selections", [])],
        "stake": doc["stake"],
        "combined_odd": doc["combined_odd"],
        "potential_win": doc["potential_win"],
        "status": doc["status"],
        "is_paid": bool(doc.get("is_paid", False)),
        "settled_at": as_utc(doc.get("settled_at")),
        "created_at": as_utc(doc.get("created_at")),
    }
