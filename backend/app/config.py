"""
backend/app/config.py

Purpose:
    Central settings loading for backend services.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "betarena"
    # Requires a replica set; standalone servers reject multi-document transactions.
    MONGO_TRANSACTIONS_ENABLED: bool = False
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"

    # Admin routes are closed while this is empty
    ADMIN_API_KEY: str = ""

    LOG_LEVEL: str = "INFO"

    # Bet placement
    MIN_STAKE: float = 1.0
    MAX_SELECTIONS: int = 20
    REJECT_UNSUPPORTED_MARKETS: bool = False

    # Ledger
    MIN_WITHDRAWAL: float = 1000.0

    # Settlement
    SETTLEMENT_BATCH_SIZE: int = 500

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
