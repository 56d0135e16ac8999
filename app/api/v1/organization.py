from typing import List

from fastapi import APIRouter, Depends, status

from app.core.dependencies import (
    get_organization_service, require_admin, require_super_admin
)
from app.db.schema import User
from app.models.organization import OrganizationCreate, OrganizationRead
from app.services.organization import OrganizationService

router = APIRouter()


@router.get(
    "/",
    response_model=List[OrganizationRead],
    summary="List Organizations"
)
def list_organizations(
    current_user: User = Depends(require_admin),
    service: OrganizationService = Depends(get_organization_service)
):
    return service.list_organizations()


@router.post(
    "/",
    response_model=OrganizationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create Organization",
    description="Super administrators only. The id becomes the prefix of the organization's certificate ids."
)
def create_organization(
    payload: OrganizationCreate,
    current_user: User = Depends(require_super_admin),
    service: OrganizationService = Depends(get_organization_service)
):
    return service.create_organization(current_user, payload)
