# backend/partsportal/dependencies.py
"""
FastAPI dependency injection functions for authentication and authorization.

The identity provider issues bearer tokens; these dependencies verify them,
resolve the principal and derive the caller's scope. Route handlers pass the
scope explicitly into the core services.

Key Dependencies:
    - get_current_principal: Validate Bearer token and load the Principal
    - get_scope: Visibility scope for the current principal
    - require_vendor: Ensure the caller is a vendor
    - get_blob_store: MinIO service, 503 when object storage is disabled

Usage:
    from fastapi import Depends
    from partsportal.dependencies import get_scope

    @router.get("/uploads")
    async def list_uploads(scope: Scope = Depends(get_scope)):
        ...
"""

import logging
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from partsportal.core.auth.authorization import Scope, scope_for
from partsportal.core.auth.identity_service import identity_service
from partsportal.core.database.models import Principal, Role
from partsportal.core.shared.database_service import database_service
from partsportal.core.storage.minio_service import MinIOService, get_minio_service

logger = logging.getLogger("partsportal.dependencies")

# HTTP Bearer scheme for identity provider tokens
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    """
    Extract and validate the principal from a Bearer token.

    Raises:
        HTTPException: 401 if the token is missing, expired, invalid, or names
            an unknown principal
    """
    if not credentials:
        raise _unauthorized("Missing authentication credentials")

    try:
        payload = identity_service.decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError:
        raise _unauthorized("Invalid token")

    async with database_service.get_session() as session:
        principal = await identity_service.get_principal(session, payload["sub"])

    if principal is None:
        raise _unauthorized("Principal not found")

    logger.debug(f"Principal authenticated: {principal.email} ({principal.role.value})")
    return principal


async def get_scope(principal: Principal = Depends(get_current_principal)) -> Scope:
    return scope_for(principal)


async def require_vendor(principal: Principal = Depends(get_current_principal)) -> Principal:
    """
    Ensure the caller is a vendor.

    Raises:
        HTTPException: 403 if the caller is a manager
    """
    if principal.role != Role.vendor:
        logger.warning(f"Manager {principal.id} attempted a vendor-only action")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only vendors can submit uploads",
        )
    return principal


def get_blob_store() -> MinIOService:
    """
    MinIO service for request handlers.

    Raises:
        HTTPException: 503 if object storage is disabled
    """
    minio = get_minio_service()
    if minio is None:
        raise HTTPException(status_code=503, detail="Object storage is not enabled")
    return minio
