"""
backend/app/routers/matches.py

Purpose:
    Match API: public reads plus the admin lifecycle (create, edit, live goal
    updates, live/close toggles, finish with settlement, re-settle, delete).

Dependencies:
    - app.services.match_service
    - app.services.settlement_service
    - app.models.match
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.models.match import (
    CreateMatchRequest,
    MatchResponse,
    UpdateGoalsRequest,
    UpdateMatchRequest,
    db_to_response,
)
from app.services import match_service, settlement_service
from app.services.auth_service import require_admin

logger = logging.getLogger("betarena.matches")

router = APIRouter(prefix="/api/matches", tags=["matches"])


# ---------- Public reads ----------

@router.get("/", response_model=list[MatchResponse])
async def list_matches(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by match status"),
    limit: int = Query(200, ge=1, le=500),
):
    """Get matches, newest first."""
    matches = await match_service.get_matches(status_filter=status_filter, limit=limit)
    return [db_to_response(m) for m in matches]


@router.get("/{match_id}", response_model=MatchResponse)
async def get_match(match_id: str):
    return db_to_response(await match_service.get_match(match_id))


# ---------- Admin lifecycle ----------

@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_match(body: CreateMatchRequest, admin=Depends(require_admin)):
    match = await match_service.create_match(
        home=body.home,
        away=body.away,
        odds=body.odds,
        match_date=body.date,
        match_time=body.time,
        is_live=body.is_live,
    )
    return {"message": "Match created.", "match": db_to_response(match)}


@router.put("/{match_id}")
async def update_match(match_id: str, body: UpdateMatchRequest, admin=Depends(require_admin)):
    """Edit match fields. Goal edits keep ``result`` in sync."""
    match = await match_service.update_match(match_id, body.model_dump(exclude_unset=True))
    return {"message": "Match updated.", "match": db_to_response(match)}


@router.put("/{match_id}/goals")
async def update_goals(match_id: str, body: UpdateGoalsRequest, admin=Depends(require_admin)):
    match = await match_service.update_goals(match_id, body.home_goals, body.away_goals)
    return {"message": "Goals updated.", "match": db_to_response(match)}


@router.put("/{match_id}/live")
async def toggle_live(match_id: str, admin=Depends(require_admin)):
    match = await match_service.toggle_live(match_id)
    state = "live" if match.get("is_live") else "not live"
    return {"message": f"Match is now {state}.", "match": db_to_response(match)}


@router.put("/{match_id}/close")
async def toggle_close(match_id: str, admin=Depends(require_admin)):
    """Close or reopen the betting market."""
    match = await match_service.toggle_close(match_id)
    return {"message": f"Match is now {match['status']}.", "match": db_to_response(match)}


@router.put("/{match_id}/finish")
async def finish_match(match_id: str, admin=Depends(require_admin)):
    """Finish the match exactly once and settle every pending bet on it."""
    outcome = await settlement_service.finish_match(match_id)
    return {
        "message": "Match finished and bets settled.",
        "match": db_to_response(outcome["match"]),
        "summary": outcome["summary"],
    }


@router.put("/{match_id}/settle")
async def settle_match(match_id: str, admin=Depends(require_admin)):
    """Re-run settlement for the match's pending bets."""
    summary = await settlement_service.settle_match(match_id)
    return {"message": "Bets settled.", "summary": summary}


@router.delete("/{match_id}")
async def delete_match(match_id: str, admin=Depends(require_admin)):
    match, soft_deleted = await match_service.delete_match(match_id)
    if soft_deleted:
        message = "Match has bets and was marked as deleted."
    else:
        message = "Match deleted."
    return {"message": message, "match": db_to_response(match), "soft_deleted": soft_deleted}
