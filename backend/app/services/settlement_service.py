"""
backend/app/services/settlement_service.py

Purpose:
    Settlement orchestration for parlay bets. Finishing a match, re-settling a
    match, and settling a single bet all run the same pass: load the bet's
    matches, ask the bet state machine for the next state, persist it with
    conditional writes, and pay out a won bet exactly once.

    The payout gate is a compare-and-swap on ``{status: pending, is_paid:
    false}``. Only the pass that wins that claim credits the balance, so
    concurrent or repeated passes over the same bet can never double-pay.
    With MONGO_TRANSACTIONS_ENABLED the claim and the credit commit together;
    otherwise a failed credit releases the claim so the next trigger retries.

Dependencies:
    - app.database
    - app.services.bet_state_machine
    - app.services.match_service
    - app.services.wallet_service
"""

import logging
from typing import Optional

from fastapi import HTTPException, status
from pymongo.errors import PyMongoError

import app.database as _db
from app.config import settings
from app.models.bet import BetStatus, SettlementSummary
from app.models.match import MatchStatus
from app.models.wallet import TransactionType
from app.services import bet_state_machine, match_service, wallet_service
from app.services.bet_state_machine import BetEvaluation
from app.utils import to_object_id, utcnow

logger = logging.getLogger("betarena.settlement")

SKIPPED = "skipped"


# ---------- Triggers ----------

async def finish_match(match_id: str) -> dict:
    """Mark a match finished exactly once, then settle its pending bets.

    Returns {"match", "summary"}. A second finish is rejected with 409 and does
    not re-run payouts.
    """
    match = await match_service.get_match(match_id)
    if match.get("home_goals") is None or match.get("away_goals") is None:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Cannot finish match without goals.")

    now = utcnow()
    finished = await _db.db.matches.find_one_and_update(
        {
            "_id": match["_id"],
            "status": {"$in": [MatchStatus.open.value, MatchStatus.closed.value]},
        },
        {"$set": {
            "status": MatchStatus.finished.value,
            "is_live": False,
            "finished_at": now,
            "updated_at": now,
        }},
        return_document=True,
    )
    if not finished:
        current = await match_service.get_match(match_id)
        if current.get("status") == MatchStatus.finished.value:
            raise HTTPException(status.HTTP_409_CONFLICT, "Match already finished.")
        raise HTTPException(
            status.HTTP_409_CONFLICT,
            f"Cannot finish a {current.get('status')} match.",
        )

    logger.info(
        "Match finished: %s %s vs %s result=%s",
        match_id, finished.get("home"), finished.get("away"), finished.get("result"),
    )
    summary = await _settle_pending_for(finished)
    return {"match": finished, "summary": summary}


async def settle_match(match_id: str) -> SettlementSummary:
    """Re-run settlement for every pending bet referencing the match."""
    match = await match_service.get_match(match_id)
    return await _settle_pending_for(match)


async def settle_bet(bet_id: str) -> Optional[dict]:
    """Settle one bet on demand. Returns the stored bet after the pass.

    None means "not found or already settled"; nothing is written then.
    """
    oid = to_object_id(bet_id)
    if oid is None:
        return None
    bet = await _db.db.bets.find_one({"_id": oid})
    if not bet or bet.get("status") != BetStatus.pending.value:
        return None

    outcome, _ = await _settle_one(bet)
    logger.info("Manual settle: bet=%s outcome=%s", bet_id, outcome)
    return await _db.db.bets.find_one({"_id": oid})


# ---------- Settlement pass ----------

async def _settle_pending_for(match: dict) -> SettlementSummary:
    match_id = str(match["_id"])
    summary = SettlementSummary()
    last_id = None

    # Page by _id: bets left pending by this pass are not fetched again
    while True:
        query: dict = {"status": BetStatus.pending.value, "selections.match_id": match_id}
        if last_id is not None:
            query["_id"] = {"$gt": last_id}
        page = await _db.db.bets.find(query).sort("_id", 1).to_list(
            length=settings.SETTLEMENT_BATCH_SIZE,
        )
        if not page:
            break
        last_id = page[-1]["_id"]

        for bet in page:
            await _settle_into(summary, bet, match_id)

    logger.info(
        "Settled match=%s: checked=%d won=%d lost=%d pending=%d skipped=%d failed=%d unsupported=%d",
        match_id, summary.checked, summary.won, summary.lost, summary.pending,
        summary.skipped, summary.failed, summary.unsupported,
    )
    return summary


async def _settle_into(summary: SettlementSummary, bet: dict, match_id: str) -> None:
    summary.checked += 1
    try:
        outcome, unsupported = await _settle_one(bet)
    except (PyMongoError, HTTPException):
        # Storage outage or payout target gone: this bet stays pending
        # and is picked up by the next trigger.
        logger.exception("Settlement failed for bet=%s match=%s", bet["_id"], match_id)
        summary.failed += 1
        return

    summary.unsupported += unsupported
    if outcome == BetStatus.won.value:
        summary.won += 1
    elif outcome == BetStatus.lost.value:
        summary.lost += 1
    elif outcome == BetStatus.pending.value:
        summary.pending += 1
    else:
        summary.skipped += 1


async def _settle_one(bet: dict) -> tuple[str, int]:
    """Evaluate and persist one bet. Returns (outcome, unsupported leg count)."""
    matches_by_id = await _load_matches(bet)
    evaluation = bet_state_machine.evaluate(bet, matches_by_id)

    for leg in evaluation.unsupported:
        logger.warning(
            "Unsupported market resolved as lost: bet=%s match=%s market=%s selection=%s",
            bet["_id"], leg.get("match_id"), leg.get("market_key"), leg.get("selection_key"),
        )

    outcome = await _apply_evaluation(bet, evaluation)
    return outcome, len(evaluation.unsupported)


async def _load_matches(bet: dict) -> dict[str, Optional[dict]]:
    """Map every selection's match_id to its match, None when it does not exist."""
    match_ids = {str(sel.get("match_id")) for sel in bet.get("selections", [])}
    by_id: dict[str, Optional[dict]] = {mid: None for mid in match_ids}
    oids = [oid for oid in (to_object_id(mid) for mid in match_ids) if oid is not None]
    if oids:
        docs = await _db.db.matches.find(
            {"_id": {"$in": oids}},
            {"status": 1, "home_goals": 1, "away_goals": 1},
        ).to_list(length=len(oids))
        for doc in docs:
            by_id[str(doc["_id"])] = doc
    return by_id


async def _apply_evaluation(bet: dict, evaluation: BetEvaluation) -> str:
    """Persist one evaluation with writes conditional on the bet still pending.

    Returns the outcome, or "skipped" when another pass settled the bet first.
    """
    now = utcnow()

    if evaluation.status == BetStatus.pending:
        if evaluation.changed:
            result = await _db.db.bets.update_one(
                {"_id": bet["_id"], "status": BetStatus.pending.value},
                {"$set": {"selections": evaluation.selections, "updated_at": now}},
            )
            if result.matched_count == 0:
                return SKIPPED
        return BetStatus.pending.value

    if evaluation.status == BetStatus.lost:
        result = await _db.db.bets.update_one(
            {"_id": bet["_id"], "status": BetStatus.pending.value},
            {"$set": {
                "selections": evaluation.selections,
                "status": BetStatus.lost.value,
                "settled_at": now,
                "updated_at": now,
            }},
        )
        if result.matched_count == 0:
            return SKIPPED
        logger.info("Bet lost: bet=%s user=%s", bet["_id"], bet.get("user_id"))
        return BetStatus.lost.value

    if not evaluation.pay_out:
        # Won and already paid: nothing left to credit
        return SKIPPED
    return await _pay_out(bet, evaluation, now)


async def _pay_out(bet: dict, evaluation: BetEvaluation, now) -> str:
    async with _db.transaction() as session:
        claimed = await _db.db.bets.find_one_and_update(
            {"_id": bet["_id"], "status": BetStatus.pending.value, "is_paid": False},
            {"$set": {
                "selections": evaluation.selections,
                "status": BetStatus.won.value,
                "is_paid": True,
                "settled_at": now,
                "updated_at": now,
            }},
            return_document=True,
            session=session,
        )
        if not claimed:
            logger.info("Bet already settled by another pass: bet=%s", bet["_id"])
            return SKIPPED

        try:
            await wallet_service.credit(
                claimed["user_id"], claimed["potential_win"],
                tx_type=TransactionType.BET_WON,
                reference_type="bet",
                reference_id=str(claimed["_id"]),
                description=(
                    f"Bet won: {len(claimed.get('selections', []))} selections, "
                    f"odds {claimed['combined_odd']:.2f}"
                ),
                session=session,
            )
        except Exception:
            if session is None:
                await _release_claim(bet["_id"])
            raise

    logger.info(
        "Bet won and paid: bet=%s user=%s amount=%.2f",
        bet["_id"], claimed["user_id"], claimed["potential_win"],
    )
    return BetStatus.won.value


async def _release_claim(bet_oid) -> None:
    """Return a claimed-but-unpaid bet to pending (no-transaction mode)."""
    await _db.db.bets.update_one(
        {"_id": bet_oid, "status": BetStatus.won.value, "is_paid": True},
        {"$set": {
            "status": BetStatus.pending.value,
            "is_paid": False,
            "settled_at": None,
            "updated_at": utcnow(),
        }},
    )
    logger.error("Payout failed, bet returned to pending for retry: bet=%s", bet_oid)
