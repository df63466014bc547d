"""FastAPI dependencies for database sessions, authentication and the payment gateway."""
from typing import Optional
from uuid import UUID

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt

from agency_billing.adapters.stripe_adapter import StripeAdapter
from agency_billing.auth.jwt import session_auth
from agency_billing.database import get_db  # noqa: F401

logger = structlog.get_logger(__name__)

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict[str, str]:
    """
    Get current authenticated user from the session token.

    Returns:
        dict: Token claims (sub, role)

    Raises:
        HTTPException: If token is invalid, expired, or missing
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials

    try:
        payload = session_auth.verify_token(token)
        logger.debug("user_authenticated", user_id=payload.get("sub"), role=payload.get("role"))
        return payload

    except jwt.ExpiredSignatureError:
        logger.warning("token_expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        logger.warning("invalid_token", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def current_user_id(current_user: dict) -> UUID:
    """User ID from token claims."""
    return UUID(current_user["sub"])


def get_payment_gateway() -> StripeAdapter:
    """Payment gateway dependency (overridden in tests)."""
    return StripeAdapter()
