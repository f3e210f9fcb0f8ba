"""
Authentication and service dependencies for the admin API.
"""

import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from fairway.database import db
from fairway.database.repositories import SettlementGateway
from fairway.services.settings_service import SettlementSettings, load_settings


def get_settings() -> SettlementSettings:
    """Dependency returning settings read from the environment."""
    return load_settings()


def get_settlement_gateway() -> SettlementGateway:
    """Dependency returning the database-backed persistence gateway."""
    return SettlementGateway.from_session_factory(db.AsyncSessionLocal)


async def require_admin_token(
    x_admin_token: Optional[str] = Header(default=None),
    settings: SettlementSettings = Depends(get_settings),
) -> None:
    """
    Dependency that guards operator endpoints with a shared admin token.

    Raises:
        HTTPException: 503 if no token is configured, 401 if the header is
            missing or does not match
    """
    if not settings.admin_token:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API is disabled (SETTLEMENT_ADMIN_TOKEN not set)",
        )
    if not x_admin_token or not secrets.compare_digest(x_admin_token, settings.admin_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )
