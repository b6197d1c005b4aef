"""
backend/tests/test_routers.py

Purpose:
    Router-level contract: admin key guard, response payload shapes, and the
    not-found message for manual settlement.
"""

from __future__ import annotations

import pytest
from bson import ObjectId
from fastapi import HTTPException

from app.config import settings
from app.models.bet import BetSelectionCreate, PlaceBetRequest
from app.models.match import CreateMatchRequest, UpdateGoalsRequest
from app.models.wallet import DepositCreate, ReviewRequest
from app.routers import bets as bets_router
from app.routers import matches as matches_router
from app.routers import wallet as wallet_router
from app.services.auth_service import require_admin


@pytest.mark.asyncio
async def test_admin_guard(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", "")
    with pytest.raises(HTTPException) as exc:
        await require_admin("anything")
    assert exc.value.status_code == 503

    monkeypatch.setattr(settings, "ADMIN_API_KEY", "s3cret")
    with pytest.raises(HTTPException) as exc:
        await require_admin("wrong")
    assert exc.value.status_code == 403
    with pytest.raises(HTTPException):
        await require_admin("")

    assert await require_admin("s3cret") is None


@pytest.mark.asyncio
async def test_match_lifecycle_through_routes(fake_db):
    user_id = fake_db.add_user(balance=100.0)

    created = await matches_router.create_match(
        CreateMatchRequest(home="Ajax", away="PSV", odds={"1X2": {"home": 1.9}}), admin=None,
    )
    match_id = created["match"].id

    placed = await bets_router.place(PlaceBetRequest(
        user_id=user_id,
        selections=[BetSelectionCreate(match_id=match_id, market_key=" 1X2 ", selection_key="home", odd=1.9)],
        stake=10,
    ))
    assert placed["message"] == "Bet placed."
    assert placed["potential_win"] == 19.0
    assert placed["bet"]["selections"][0]["market_key"] == "1X2"
    assert placed["balance"] == 90.0

    await matches_router.update_goals(match_id, UpdateGoalsRequest(home_goals=1, away_goals=0), admin=None)
    finished = await matches_router.finish_match(match_id, admin=None)

    assert finished["match"].status == "finished"
    assert finished["match"].result == "1-0"
    assert finished["summary"].won == 1
    assert fake_db.user(user_id)["balance"] == 109.0

    history = await bets_router.user_bets(user_id, status_filter=None, limit=100)
    assert history[0]["status"] == "won"
    assert history[0]["is_paid"] is True

    balance = await wallet_router.get_balance(user_id)
    assert balance.balance == 109.0
    assert balance.total_won == 19.0


@pytest.mark.asyncio
async def test_settle_bet_route_reports_missing(fake_db):
    with pytest.raises(HTTPException) as exc:
        await bets_router.settle_bet(str(ObjectId()), admin=None)

    assert exc.value.status_code == 404
    assert exc.value.detail == "Bet not found or already settled."


@pytest.mark.asyncio
async def test_check_route_returns_summary(fake_db):
    user_id = fake_db.add_user(balance=0.0)
    match_id = fake_db.add_match(status="finished", home_goals=0, away_goals=0)
    fake_db.add_bet(user_id, [{"match_id": match_id, "market_key": "DC", "selection_key": "1X", "odd": 1.3}], stake=10)

    response = await bets_router.check_match(match_id, admin=None)

    assert response["summary"].checked == 1
    assert response["summary"].won == 1
    assert fake_db.user(user_id)["balance"] == 13.0


@pytest.mark.asyncio
async def test_delete_route_messages(fake_db):
    user_id = fake_db.add_user()
    kept = fake_db.add_match()
    gone = fake_db.add_match()
    fake_db.add_bet(user_id, [{"match_id": kept, "market_key": "1X2", "selection_key": "home", "odd": 2.0}])

    soft = await matches_router.delete_match(kept, admin=None)
    hard = await matches_router.delete_match(gone, admin=None)

    assert soft["soft_deleted"] is True
    assert soft["match"].status == "deleted"
    assert hard["soft_deleted"] is False
    assert hard["message"] == "Match deleted."


@pytest.mark.asyncio
async def test_deposit_routes(fake_db):
    user_id = fake_db.add_user(balance=0.0)

    created = await wallet_router.create_deposit(DepositCreate(user_id=user_id, amount=75.0))
    deposit_id = created["deposit"].id
    assert created["deposit"].status == "pending"

    approved = await wallet_router.approve_deposit(deposit_id, ReviewRequest(admin_note="checked"), admin=None)
    assert approved["deposit"].status == "approved"

    txs = await wallet_router.get_transactions(user_id, limit=50, skip=0)
    assert [t.type for t in txs] == ["DEPOSIT"]
    assert txs[0].amount == 75.0
