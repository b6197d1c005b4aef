"""
backend/tests/test_match_service.py

Purpose:
    Match administration: result string kept in sync with goals, live and
    close toggles, and soft versus hard deletion.
"""

from __future__ import annotations

import pytest
from fastapi import HTTPException

from app.services import match_service


@pytest.mark.asyncio
async def test_create_match_starts_open_at_nil_nil(fake_db):
    match = await match_service.create_match(
        " Roma ", "Lazio", {"1X2": {"home": 2.1, "draw": 3.3, "away": 3.4}},
        match_date="2026-10-25", match_time="18:00",
    )

    assert match["home"] == "Roma"
    assert match["status"] == "open"
    assert match["result"] == "0-0"
    assert match["is_live"] is False
    assert len(fake_db.matches.docs) == 1


@pytest.mark.asyncio
async def test_create_match_requires_odds(fake_db):
    with pytest.raises(HTTPException) as exc:
        await match_service.create_match("A", "B", {})
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_goal_updates_resync_result(fake_db):
    match_id = fake_db.add_match()

    updated = await match_service.update_goals(match_id, 2, 1)
    assert updated["result"] == "2-1"

    edited = await match_service.update_match(match_id, {"away_goals": 3})
    assert (edited["home_goals"], edited["away_goals"], edited["result"]) == (2, 3, "2-3")

    renamed = await match_service.update_match(match_id, {"home": "Napoli", "home_goals": None})
    assert renamed["home"] == "Napoli"
    assert renamed["result"] == "2-3"


@pytest.mark.asyncio
async def test_finished_match_goals_are_frozen(fake_db):
    match_id = fake_db.add_match(status="finished", home_goals=1, away_goals=0)

    with pytest.raises(HTTPException):
        await match_service.update_goals(match_id, 5, 5)
    with pytest.raises(HTTPException):
        await match_service.update_match(match_id, {"home_goals": 5})

    assert fake_db.match(match_id)["result"] == "1-0"


@pytest.mark.asyncio
async def test_toggle_live_and_close(fake_db):
    match_id = fake_db.add_match()

    assert (await match_service.toggle_live(match_id))["is_live"] is True
    assert (await match_service.toggle_live(match_id))["is_live"] is False

    assert (await match_service.toggle_close(match_id))["status"] == "closed"
    assert (await match_service.toggle_close(match_id))["status"] == "open"


@pytest.mark.asyncio
async def test_toggle_live_rejected_after_finish(fake_db):
    match_id = fake_db.add_match(status="finished")

    with pytest.raises(HTTPException) as exc:
        await match_service.toggle_live(match_id)
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_delete_without_bets_removes_match(fake_db):
    match_id = fake_db.add_match()

    match, soft = await match_service.delete_match(match_id)

    assert soft is False
    assert fake_db.matches.docs == []


@pytest.mark.asyncio
async def test_delete_with_bets_soft_deletes(fake_db):
    user_id = fake_db.add_user()
    match_id = fake_db.add_match()
    fake_db.add_bet(user_id, [{"match_id": match_id, "market_key": "1X2", "selection_key": "home", "odd": 2.0}])

    match, soft = await match_service.delete_match(match_id)

    assert soft is True
    assert fake_db.match(match_id)["status"] == "deleted"
    listed = await match_service.get_matches()
    assert listed == []
    deleted = await match_service.get_matches(status_filter="deleted")
    assert len(deleted) == 1


@pytest.mark.asyncio
async def test_unknown_match_is_not_found(fake_db):
    with pytest.raises(HTTPException) as exc:
        await match_service.get_match("123")
    assert exc.value.status_code == 404
