"""Session token verification.

Tokens are issued by the hosted auth provider and signed with a shared HS256
secret. They carry the user ID in ``sub`` and the portal role in ``role``.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from uuid import UUID

import jwt

from agency_billing.config import settings


class SessionTokenAuth:
    """JWT session token handler."""

    def __init__(self, secret_key: str | None = None, algorithm: str | None = None):
        """Initialize with the shared signing secret."""
        self.secret_key = secret_key or settings.jwt_secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        self.access_token_expire_minutes = 60

    def create_access_token(
        self,
        user_id: UUID,
        role: str,
        additional_claims: Optional[Dict] = None,
    ) -> str:
        """
        Create a session token.

        Used by local tooling and tests; production tokens come from the auth provider.

        Args:
            user_id: User UUID
            role: Portal role (CLIENT, TALENT, MANAGER, ADMIN)
            additional_claims: Additional JWT claims

        Returns:
            Encoded JWT token
        """
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(user_id),
            "role": role,
            "iat": now,
            "exp": now + timedelta(minutes=self.access_token_expire_minutes),
        }

        if additional_claims:
            claims.update(additional_claims)

        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Dict:
        """
        Verify and decode a session token.

        Raises:
            jwt.ExpiredSignatureError: If token is expired
            jwt.InvalidTokenError: If token is invalid or lacks sub/role
        """
        payload = jwt.decode(
            token,
            self.secret_key,
            algorithms=[self.algorithm],
            options={"require": ["sub", "exp"]},
        )

        if not payload.get("role"):
            raise jwt.InvalidTokenError("Token has no role claim")

        try:
            UUID(payload["sub"])
        except ValueError:
            raise jwt.InvalidTokenError("Token subject is not a user ID") from None

        return payload


# Global session token auth instance
session_auth = SessionTokenAuth()
