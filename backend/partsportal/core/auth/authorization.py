"""
Authorization gate.

Derives a visibility scope from a principal's role and checks uploads
against it. Every catalog read and every download goes through here;
services take the scope as an explicit argument instead of reading
ambient session state.

Usage:
    from partsportal.core.auth.authorization import scope_for, ensure_owner_visible

    scope = scope_for(principal)
    ensure_owner_visible(scope, upload.owner_id, target=f"upload {upload.id}")
"""

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from partsportal.core.database.models import Principal, Role
from partsportal.core.errors import AuthorizationError

logger = logging.getLogger("partsportal.authorization")


@dataclass(frozen=True)
class Scope:
    """
    Visibility restriction for one caller.

    Attributes:
        principal_id: Caller the scope was derived for
        role: Caller's role
        can_see_all_uploads: True for managers
        owner_filter: Vendor id uploads are restricted to, None for managers
    """
    principal_id: UUID
    role: Role
    can_see_all_uploads: bool
    owner_filter: Optional[UUID]

    def allows_owner(self, owner_id: UUID) -> bool:
        return self.can_see_all_uploads or owner_id == self.owner_filter


def scope_for(principal: Principal) -> Scope:
    """
    Build the scope for a principal.

    Managers see every upload. Vendors see only their own.

    Raises:
        ValueError: If the principal carries a role this gate doesn't know
    """
    role = Role(principal.role)
    if role is Role.manager:
        return Scope(
            principal_id=principal.id,
            role=role,
            can_see_all_uploads=True,
            owner_filter=None,
        )
    if role is Role.vendor:
        return Scope(
            principal_id=principal.id,
            role=role,
            can_see_all_uploads=False,
            owner_filter=principal.id,
        )
    raise ValueError(f"Unhandled role: {role}")


def ensure_owner_visible(scope: Scope, owner_id: UUID, target: str) -> None:
    """
    Raise AuthorizationError when ``owner_id`` is outside ``scope``.

    Args:
        scope: Caller scope
        owner_id: Owner of the upload being touched
        target: Human-readable target for the log line
    """
    if not scope.allows_owner(owner_id):
        logger.warning(f"Denied {scope.role.value} {scope.principal_id} access to {target}")
        raise AuthorizationError(f"Not allowed to access {target}")


def ensure_role(scope: Scope, role: Role, action: str) -> None:
    """Raise AuthorizationError unless the caller holds ``role``."""
    if scope.role is not role:
        logger.warning(f"Denied {scope.role.value} {scope.principal_id}: {action} requires {role.value}")
        raise AuthorizationError(f"Only {role.value} principals may {action}")


def effective_owner_filter(scope: Scope, requested_owner_id: Optional[UUID]) -> Optional[UUID]:
    """
    Owner filter to apply to a catalog query.

    Restricted scopes always force their own owner id, whatever the caller
    asked for.
    """
    if scope.can_see_all_uploads:
        return requested_owner_id
    return scope.owner_filter
