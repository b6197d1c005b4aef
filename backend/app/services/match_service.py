"""
backend/app/services/match_service.py

Purpose:
    Admin-side match lifecycle: create, edit, live goal updates, live/close
    toggles, and soft/hard deletion. Finishing a match lives in
    settlement_service because it triggers bet settlement.

Dependencies:
    - app.database
    - app.models.match
"""

import logging
from datetime import date
from typing import Optional

from fastapi import HTTPException, status

import app.database as _db
from app.models.match import MatchStatus, format_result
from app.utils import to_object_id, utcnow

logger = logging.getLogger("betarena.match_service")

# Goals may only move while the match is still running
_GOAL_EDITABLE = [MatchStatus.open.value, MatchStatus.closed.value]


def match_oid(match_id: str):
    oid = to_object_id(match_id)
    if oid is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Match not found.")
    return oid


async def get_match(match_id: str) -> dict:
    match = await _db.db.matches.find_one({"_id": match_oid(match_id)})
    if not match:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Match not found.")
    return match


async def get_matches(status_filter: Optional[str] = None, limit: int = 200) -> list[dict]:
    """List matches newest first. Deleted matches only show when asked for."""
    query: dict = {}
    if status_filter:
        query["status"] = status_filter
    else:
        query["status"] = {"$ne": MatchStatus.deleted.value}
    return await _db.db.matches.find(query).sort("created_at", -1).to_list(length=limit)


async def create_match(
    home: str, away: str, odds: dict,
    match_date: Optional[str] = None, match_time: Optional[str] = None,
    is_live: bool = False,
) -> dict:
    if not odds:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Missing odds object.")

    now = utcnow()
    doc = {
        "home": home.strip(),
        "away": away.strip(),
        "date": match_date or date.today().isoformat(),
        "time": match_time or "00:00",
        "odds": odds,
        "home_goals": 0,
        "away_goals": 0,
        "result": format_result(0, 0),
        "status": MatchStatus.open.value,
        "is_live": bool(is_live),
        "finished_at": None,
        "created_at": now,
        "updated_at": now,
    }
    result = await _db.db.matches.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Match created: %s vs %s id=%s", doc["home"], doc["away"], doc["_id"])
    return doc


async def update_match(match_id: str, fields: dict) -> dict:
    """Apply a partial update. Goal edits resync ``result`` and need a running match."""
    match = await get_match(match_id)
    if match.get("status") == MatchStatus.deleted.value:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Match is deleted.")

    fields = {k: v for k, v in fields.items() if v is not None}
    if not fields:
        return match

    query: dict = {"_id": match["_id"]}
    if "home_goals" in fields or "away_goals" in fields:
        if match.get("status") not in _GOAL_EDITABLE:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Cannot change goals of a finished match.")
        home_goals = fields.get("home_goals", match.get("home_goals", 0))
        away_goals = fields.get("away_goals", match.get("away_goals", 0))
        fields["result"] = format_result(home_goals, away_goals)
        query["status"] = {"$in": _GOAL_EDITABLE}

    fields["updated_at"] = utcnow()
    updated = await _db.db.matches.find_one_and_update(
        query, {"$set": fields}, return_document=True,
    )
    if not updated:
        raise HTTPException(status.HTTP_409_CONFLICT, "Match changed during update, retry.")
    return updated


async def update_goals(match_id: str, home_goals: int, away_goals: int) -> dict:
    """Set live goal counts. Both counts and the result string move together."""
    oid = match_oid(match_id)
    updated = await _db.db.matches.find_one_and_update(
        {"_id": oid, "status": {"$in": _GOAL_EDITABLE}},
        {"$set": {
            "home_goals": home_goals,
            "away_goals": away_goals,
            "result": format_result(home_goals, away_goals),
            "updated_at": utcnow(),
        }},
        return_document=True,
    )
    if updated:
        logger.info("Goals updated: match=%s result=%s", match_id, updated["result"])
        return updated

    match = await get_match(match_id)
    raise HTTPException(
        status.HTTP_400_BAD_REQUEST,
        f"Cannot update goals of a {match.get('status')} match.",
    )


async def toggle_live(match_id: str) -> dict:
    match = await get_match(match_id)
    if match.get("status") in (MatchStatus.finished.value, MatchStatus.deleted.value):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Cannot set live on a finished match.")

    current = bool(match.get("is_live", False))
    updated = await _db.db.matches.find_one_and_update(
        {"_id": match["_id"], "is_live": current, "status": {"$in": _GOAL_EDITABLE}},
        {"$set": {"is_live": not current, "updated_at": utcnow()}},
        return_document=True,
    )
    if not updated:
        raise HTTPException(status.HTTP_409_CONFLICT, "Match changed during update, retry.")
    return updated


async def toggle_close(match_id: str) -> dict:
    """Open <-> closed betting market."""
    match = await get_match(match_id)
    current = match.get("status")
    if current not in _GOAL_EDITABLE:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, f"Cannot reopen a {current} match.")

    new_status = MatchStatus.open.value if current == MatchStatus.closed.value else MatchStatus.closed.value
    updated = await _db.db.matches.find_one_and_update(
        {"_id": match["_id"], "status": current},
        {"$set": {"status": new_status, "updated_at": utcnow()}},
        return_document=True,
    )
    if not updated:
        raise HTTPException(status.HTTP_409_CONFLICT, "Match changed during update, retry.")
    return updated


async def delete_match(match_id: str) -> tuple[dict, bool]:
    """Soft-delete when bets reference the match, hard-delete otherwise.

    Returns (match, soft_deleted).
    """
    match = await get_match(match_id)
    referenced = await _db.db.bets.find_one({"selections.match_id": str(match["_id"])}, {"_id": 1})
    if referenced:
        await _db.db.matches.update_one(
            {"_id": match["_id"]},
            {"$set": {"status": MatchStatus.deleted.value, "is_live": False, "updated_at": utcnow()}},
        )
        match["status"] = MatchStatus.deleted.value
        match["is_live"] = False
        logger.info("Match soft-deleted (bets exist): %s", match_id)
        return match, True

    await _db.db.matches.delete_one({"_id": match["_id"]})
    logger.info("Match deleted: %s", match_id)
    return match, False
