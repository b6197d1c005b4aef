"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import paths for the backend package and an
    in-memory stand-in for the Motor database used by service and router
    tests.
"""

from __future__ import annotations

import asyncio
import copy
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest
from bson import ObjectId

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]
_REPO_ROOT = _THIS_FILE.parents[2]

for candidate in (str(_BACKEND_DIR), str(_REPO_ROOT)):
    if candidate not in sys.path:
        sys.path.insert(0, candidate)


def _values_at(doc, path: str) -> list:
    """All values reachable at a dotted path, descending into arrays."""
    nodes = [doc]
    for part in path.split("."):
        nxt = []
        for node in nodes:
            if isinstance(node, list):
                for item in node:
                    if isinstance(item, dict) and part in item:
                        nxt.append(item[part])
            elif isinstance(node, dict) and part in node:
                nxt.append(node[part])
        nodes = nxt
    return nodes


def _cond_matches(values: list, cond) -> bool:
    if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
        present = values or [None]
        for op, arg in cond.items():
            if op == "$in":
                ok = any(v in arg for v in present)
            elif op == "$nin":
                ok = not any(v in arg for v in present)
            elif op == "$ne":
                ok = all(v != arg for v in present)
            elif op == "$gte":
                ok = any(v is not None and v >= arg for v in present)
            elif op == "$gt":
                ok = any(v is not None and v > arg for v in present)
            elif op == "$lte":
                ok = any(v is not None and v <= arg for v in present)
            elif op == "$lt":
                ok = any(v is not None and v < arg for v in present)
            elif op == "$exists":
                ok = bool(values) == bool(arg)
            else:
                raise NotImplementedError(op)
            if not ok:
                return False
        return True
    if not values:
        return cond is None
    return any(v == cond or (isinstance(v, list) and cond in v) for v in values)


def matches_query(doc: dict, query: dict | None) -> bool:
    return all(_cond_matches(_values_at(doc, key), cond) for key, cond in (query or {}).items())


def _apply_update(doc: dict, update: dict) -> None:
    for key, value in (update.get("$set") or {}).items():
        doc[key] = copy.deepcopy(value)
    for key, value in (update.get("$inc") or {}).items():
        doc[key] = doc.get(key, 0) + value


class FakeCursor:
    def __init__(self, docs: list[dict]):
        self._docs = docs
        self._skip = 0
        self._limit = None

    def sort(self, key: str, direction: int = 1):
        self._docs = sorted(self._docs, key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def skip(self, value: int):
        self._skip = value
        return self

    def limit(self, value: int):
        self._limit = value
        return self

    def _window(self, length=None) -> list[dict]:
        docs = self._docs[self._skip:]
        for bound in (self._limit, length):
            if bound:
                docs = docs[:bound]
        return [copy.deepcopy(d) for d in docs]

    async def to_list(self, length=None):
        return self._window(length)

    def __aiter__(self):
        self._iter = iter(self._window())
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    """Single-process Mongo collection: each write matches and applies in one step."""

    def __init__(self, name: str):
        self.name = name
        self.docs: list[dict] = []
        self.session_writes = 0

    def _track(self, session) -> None:
        if session is not None:
            self.session_writes += 1

    def _find_raw(self, query) -> list[dict]:
        return [d for d in self.docs if matches_query(d, query)]

    async def create_index(self, *args, **kwargs):
        return None

    async def find_one(self, query=None, projection=None, session=None):
        found = self._find_raw(query)
        return copy.deepcopy(found[0]) if found else None

    def find(self, query=None, projection=None, session=None):
        return FakeCursor(self._find_raw(query))

    async def count_documents(self, query=None, session=None):
        return len(self._find_raw(query))

    async def insert_one(self, doc: dict, session=None):
        self._track(session)
        doc.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    async def update_one(self, query, update, upsert=False, session=None):
        self._track(session)
        found = self._find_raw(query)
        if not found:
            return SimpleNamespace(matched_count=0, modified_count=0)
        _apply_update(found[0], update)
        return SimpleNamespace(matched_count=1, modified_count=1)

    async def find_one_and_update(self, query, update, projection=None, return_document=False, session=None):
        # Yield first so concurrent callers interleave between operations,
        # never inside one.
        await asyncio.sleep(0)
        self._track(session)
        found = self._find_raw(query)
        if not found:
            return None
        before = copy.deepcopy(found[0])
        _apply_update(found[0], update)
        return copy.deepcopy(found[0]) if return_document else before

    async def delete_one(self, query, session=None):
        found = self._find_raw(query)
        if not found:
            return SimpleNamespace(deleted_count=0)
        self.docs.remove(found[0])
        return SimpleNamespace(deleted_count=1)


class FakeDatabase:
    def __init__(self):
        for name in ("users", "matches", "bets", "transactions", "deposits", "withdrawals"):
            setattr(self, name, FakeCollection(name))

    async def command(self, name: str):
        return {"ok": 1.0}

    # ---------- Seeding helpers ----------

    def add_user(self, balance: float = 0.0, **fields) -> str:
        oid = ObjectId()
        self.users.docs.append({
            "_id": oid,
            "username": fields.pop("username", f"user-{oid}"),
            "balance": balance,
            "total_deposited": 0.0,
            "total_withdrawn": 0.0,
            "total_staked": 0.0,
            "total_won": 0.0,
            **fields,
        })
        return str(oid)

    def add_match(
        self, home: str = "Home FC", away: str = "Away FC",
        status: str = "open", home_goals: int = 0, away_goals: int = 0, **fields,
    ) -> str:
        oid = ObjectId()
        now = datetime.now(timezone.utc) + timedelta(seconds=len(self.matches.docs))
        self.matches.docs.append({
            "_id": oid,
            "home": home,
            "away": away,
            "date": "2026-10-19",
            "time": "20:45",
            "odds": {"1X2": {"home": 2.0, "draw": 3.2, "away": 3.6}},
            "home_goals": home_goals,
            "away_goals": away_goals,
            "result": f"{home_goals}-{away_goals}",
            "status": status,
            "is_live": False,
            "finished_at": None,
            "created_at": now,
            "updated_at": now,
            **fields,
        })
        return str(oid)

    def add_bet(
        self, user_id: str, selections: list[dict], stake: float = 100.0,
        status: str = "pending", is_paid: bool = False, **fields,
    ) -> str:
        oid = ObjectId()
        combined = 1.0
        for sel in selections:
            combined *= sel.get("odd", 1.0)
        combined = round(combined, 2)
        now = datetime.now(timezone.utc) + timedelta(seconds=len(self.bets.docs))
        legs = [{"label": "", "result": "pending", **sel} for sel in selections]
        self.bets.docs.append({
            "_id": oid,
            "user_id": user_id,
            "selections": legs,
            "stake": stake,
            "combined_odd": combined,
            "potential_win": round(stake * combined, 2),
            "status": status,
            "is_paid": is_paid,
            "settled_at": None,
            "created_at": now,
            "updated_at": now,
            **fields,
        })
        return str(oid)

    def user(self, user_id: str) -> dict:
        return next(d for d in self.users.docs if d["_id"] == ObjectId(user_id))

    def match(self, match_id: str) -> dict:
        return next(d for d in self.matches.docs if d["_id"] == ObjectId(match_id))

    def bet(self, bet_id: str) -> dict:
        return next(d for d in self.bets.docs if d["_id"] == ObjectId(bet_id))


@pytest.fixture
def fake_db(monkeypatch):
    import app.database as _db
    from app.config import settings

    db = FakeDatabase()
    monkeypatch.setattr(_db, "db", db)
    monkeypatch.setattr(_db, "client", None)
    monkeypatch.setattr(settings, "MONGO_TRANSACTIONS_ENABLED", False)
    return db


class FakeTransaction:
    def __init__(self, session: "FakeSession"):
        self.session = session

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.session.committed += 1
        else:
            self.session.aborted += 1
        return False


class FakeSession:
    """Records commit/abort only; writes are not rolled back."""

    def __init__(self):
        self.committed = 0
        self.aborted = 0
        self.ended = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.ended = True
        return False

    def start_transaction(self):
        return FakeTransaction(self)


class FakeClient:
    def __init__(self):
        self.sessions: list[FakeSession] = []

    async def start_session(self):
        session = FakeSession()
        self.sessions.append(session)
        return session


@pytest.fixture
def fake_client(fake_db, monkeypatch):
    """Turn on MongoDB transactions backed by a recording client."""
    import app.database as _db
    from app.config import settings

    client = FakeClient()
    monkeypatch.setattr(_db, "client", client)
    monkeypatch.setattr(settings, "MONGO_TRANSACTIONS_ENABLED", True)
    return client
