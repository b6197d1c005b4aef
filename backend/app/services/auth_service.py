"""
backend/app/services/auth_service.py

Purpose:
    Admin guard for operator endpoints. User sessions live in the external
    auth layer; operator calls carry a shared key in the X-Admin-Key header.

Dependencies:
    - app.config
"""

import logging
import secrets

from fastapi import Header, HTTPException, status

from app.config import settings

logger = logging.getLogger("betarena.auth")


async def require_admin(x_admin_key: str = Header("")) -> None:
    """FastAPI dependency: requires the configured admin API key."""
    if not settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API key not configured on server.",
        )
    if not x_admin_key or not secrets.compare_digest(x_admin_key, settings.ADMIN_API_KEY):
        logger.warning("Rejected admin request with invalid key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required.",
        )
