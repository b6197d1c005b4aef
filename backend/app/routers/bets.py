"""Parlay bet API: placement, per-user history, and admin settlement triggers."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.models.bet import PlaceBetRequest
from app.services import settlement_service
from app.services.auth_service import require_admin
from app.services.bet_service import bet_to_response, get_all_bets, get_user_bets, place_bet

router = APIRouter(prefix="/api/bets", tags=["bets"])


@router.post("/place", status_code=status.HTTP_201_CREATED)
async def place(body: PlaceBetRequest):
    """Place a parlay bet. The stake is deducted immediately."""
    placed = await place_bet(
        user_id=body.user_id,
        selections=[s.model_dump() for s in body.selections],
        stake=body.stake,
    )
    return {
        "message": "Bet placed.",
        "combined_odd": placed["combined_odd"],
        "potential_win": placed["potential_win"],
        "bet": bet_to_response(placed["bet"]),
        "balance": placed["balance"],
    }


# ---------- Settlement (admin) ----------

@router.post("/check/{match_id}")
async def check_match(match_id: str, admin=Depends(require_admin)):
    """Re-settle every pending bet that references the match."""
    summary = await settlement_service.settle_match(match_id)
    return {"message": "Bets checked.", "summary": summary}


@router.post("/settle-bet/{bet_id}")
async def settle_bet(bet_id: str, admin=Depends(require_admin)):
    bet = await settlement_service.settle_bet(bet_id)
    if bet is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Bet not found or already settled.")
    return {"message": f"Bet is {bet['status']}.", "bet": bet_to_response(bet)}


# ---------- Queries ----------

@router.get("/user/{user_id}")
async def user_bets(
    user_id: str,
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
):
    bets = await get_user_bets(user_id, status_filter=status_filter, limit=limit)
    return [bet_to_response(b) for b in bets]


@router.get("/all")
async def all_bets(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(500, ge=1, le=2000),
    admin=Depends(require_admin),
):
    bets = await get_all_bets(status_filter=status_filter, limit=limit)
    return [bet_to_response(b) for b in bets]
