"""
backend/app/database.py

Purpose:
    MongoDB connection bootstrap, index management, and the transaction helper
    shared by money-moving services.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - app.config
"""

import logging
from contextlib import asynccontextmanager

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("betarena.database")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=5,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()
    logger.info(
        "Connected to MongoDB database=%s transactions=%s",
        settings.MONGO_DB, settings.MONGO_TRANSACTIONS_ENABLED,
    )


async def close_db() -> None:
    global client
    if client:
        client.close()


async def get_db() -> AsyncIOMotorDatabase:
    return db


@asynccontextmanager
async def transaction():
    """Yield a session bound to a MongoDB transaction, or None when disabled.

    Callers pass the yielded value as ``session=`` to every collection call.
    With transactions disabled each write stands alone and callers rely on
    conditional updates for consistency.
    """
    if not settings.MONGO_TRANSACTIONS_ENABLED or client is None:
        yield None
        return

    async with await client.start_session() as session:
        async with session.start_transaction():
            yield session


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent, safe to run repeatedly."""

    # ---- Users (owned by the auth layer, balance lives here) ----
    await db.users.create_index("email", unique=True, sparse=True)
    await db.users.create_index([("balance", -1)])

    # ---- Matches ----
    await db.matches.create_index([("status", 1), ("created_at", -1)])
    await db.matches.create_index("created_at")

    # ---- Bets ----
    # Settlement fan-out: pending bets touching one match
    await db.bets.create_index([("selections.match_id", 1), ("status", 1)])
    await db.bets.create_index([("user_id", 1), ("created_at", -1)])
    await db.bets.create_index([("status", 1), ("is_paid", 1)])
    await db.bets.create_index("created_at")

    # ---- Ledger ----
    await db.transactions.create_index([("user_id", 1), ("created_at", -1)])
    await db.transactions.create_index([("reference_type", 1), ("reference_id", 1)])

    # ---- Deposits / Withdrawals ----
    await db.deposits.create_index([("status", 1), ("created_at", -1)])
    await db.deposits.create_index([("user_id", 1), ("created_at", -1)])
    await db.withdrawals.create_index([("status", 1), ("created_at", -1)])
    await db.withdrawals.create_index([("user_id", 1), ("created_at", -1)])
