# backend/partsportal/core/auth/identity_service.py
"""
Identity service: verification of tokens issued by the external identity provider.

The portal never issues credentials or sessions. It only checks the bearer
token presented by the caller and resolves the ``sub`` claim to a Principal
row in the catalog.

Usage:
    from partsportal.core.auth.identity_service import identity_service

    payload = identity_service.decode_token(token)
    principal = await identity_service.get_principal(session, payload["sub"])

Dependencies:
    - PyJWT for token verification

Configuration:
    Uses settings from config.py:
    - JWT_SECRET_KEY: Shared verification secret
    - JWT_ALGORITHM: Signing algorithm (default: HS256)
    - JWT_AUDIENCE: Expected audience claim (optional)
"""

import logging
from typing import Any, Dict, Optional, Union
from uuid import UUID

import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from partsportal.config import settings
from partsportal.core.database.models import Principal


class IdentityService:
    """
    Verifies identity provider tokens and loads the matching principal.

    Attributes:
        jwt_secret: Verification secret
        jwt_algorithm: Accepted algorithm
        jwt_audience: Expected audience, or None to skip the check
    """

    def __init__(self):
        self._logger = logging.getLogger("partsportal.identity")
        self.jwt_secret = settings.jwt_secret_key
        self.jwt_algorithm = settings.jwt_algorithm
        self.jwt_audience = settings.jwt_audience

    def decode_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate a bearer token.

        Validates the signature, expiration and (when configured) audience.

        Args:
            token: JWT string from the Authorization header

        Returns:
            Token payload

        Raises:
            jwt.ExpiredSignatureError: Token has expired
            jwt.InvalidTokenError: Token is invalid (bad signature, malformed, wrong audience)
        """
        options = {"require": ["sub", "exp"]}
        try:
            if self.jwt_audience:
                return jwt.decode(
                    token,
                    self.jwt_secret,
                    algorithms=[self.jwt_algorithm],
                    audience=self.jwt_audience,
                    options=options,
                )
            return jwt.decode(
                token,
                self.jwt_secret,
                algorithms=[self.jwt_algorithm],
                options={**options, "verify_aud": False},
            )
        except jwt.ExpiredSignatureError:
            self._logger.warning("Token has expired")
            raise
        except jwt.InvalidTokenError as e:
            self._logger.warning(f"Invalid token: {e}")
            raise

    async def get_principal(
        self, session: AsyncSession, principal_id: Union[str, UUID]
    ) -> Optional[Principal]:
        """
        Load the principal named by a token subject.

        Returns:
            Principal, or None if the subject is not a UUID or is unknown
        """
        try:
            principal_uuid = principal_id if isinstance(principal_id, UUID) else UUID(str(principal_id))
        except ValueError:
            self._logger.warning(f"Token subject is not a principal id: {principal_id}")
            return None

        result = await session.execute(select(Principal).where(Principal.id == principal_uuid))
        return result.scalar_one_or_none()


identity_service = IdentityService()
