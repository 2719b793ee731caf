"""Principal endpoints: current caller profile and the vendor list for filtering."""

from typing import List

from fastapi import APIRouter, Depends

from ....core.auth.authorization import Scope
from ....core.catalog.catalog_service import catalog_service
from ....core.database.models import Principal, Role
from ....core.shared.database_service import database_service
from ....dependencies import get_current_principal, get_scope
from ..models import PrincipalResponse, VendorOptionResponse

router = APIRouter(prefix="/principals", tags=["principals"])

HOME_BY_ROLE = {
    Role.vendor: "/vendor/upload",
    Role.manager: "/manager/dashboard",
}


@router.get("/me", response_model=PrincipalResponse, summary="Current principal")
async def whoami(principal: Principal = Depends(get_current_principal)) -> PrincipalResponse:
    role = Role(principal.role)
    return PrincipalResponse(
        id=principal.id,
        email=principal.email,
        display_name=principal.display_name,
        role=role.value,
        organization_name=principal.organization_name,
        home=HOME_BY_ROLE[role],
    )


@router.get(
    "/vendors",
    response_model=List[VendorOptionResponse],
    summary="List vendors",
    description="Vendors available in the manager dashboard's owner filter.",
)
async def list_vendors(scope: Scope = Depends(get_scope)) -> List[VendorOptionResponse]:
    async with database_service.get_session() as session:
        vendors = await catalog_service.list_vendors(session, scope)
    return [VendorOptionResponse.model_validate(v) for v in vendors]
