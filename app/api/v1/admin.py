from typing import List, Optional

from fastapi import APIRouter, Depends, status
from loguru import logger

from app.core.config import settings
from app.core.dependencies import (
    get_certificate_service, get_template_service, require_admin
)
from app.db.schema import User
from app.models.template import (
    InitializeDatabaseRequest, InitializeDatabaseResponse, TemplateCreate,
    TemplateRead, TemplateUpdate
)
from app.services.certificate import CertificateService
from app.services.template import TemplateService

router = APIRouter()


@router.post(
    "/initialize-database",
    response_model=InitializeDatabaseResponse,
    status_code=status.HTTP_200_OK,
    summary="Initialize Defaults",
    description=(
        "Seeds the default issuing organization and certificate templates. "
        "Safe to repeat. Existing default templates keep their edits unless "
        "force_override resets them."
    )
)
def initialize_database(
    payload: Optional[InitializeDatabaseRequest] = None,
    current_user: User = Depends(require_admin),
    service: CertificateService = Depends(get_certificate_service)
):
    force_override = bool(payload and payload.force_override)
    logger.info(
        f"Database initialization requested by {current_user.email} "
        f"(force_override={force_override})")

    service.initialize_defaults(force_override=force_override)

    return InitializeDatabaseResponse(
        success=True,
        message="Database initialized with default templates and organization.",
        force_override=force_override,
        template_count=service.get_template_count(),
        organization_id=settings.default_organization_id
    )


@router.get(
    "/certificate-templates",
    response_model=List[TemplateRead],
    summary="List Templates",
    description="Every template, inactive ones included, newest first."
)
def list_templates(
    category: Optional[str] = None,
    is_active: Optional[bool] = None,
    current_user: User = Depends(require_admin),
    service: TemplateService = Depends(get_template_service)
):
    return service.list_templates(category=category, is_active=is_active)


@router.post(
    "/certificate-templates",
    response_model=TemplateRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create Template"
)
def create_template(
    payload: TemplateCreate,
    current_user: User = Depends(require_admin),
    service: TemplateService = Depends(get_template_service)
):
    return service.create_template(current_user, payload)


@router.get(
    "/certificate-templates/{template_id}",
    response_model=TemplateRead,
    summary="Get Template"
)
def get_template(
    template_id: str,
    current_user: User = Depends(require_admin),
    service: TemplateService = Depends(get_template_service)
):
    return service.get_template(template_id)


@router.put(
    "/certificate-templates/{template_id}",
    response_model=TemplateRead,
    summary="Update Template",
    description="Partial update. Renaming regenerates the type code but keeps the id."
)
def update_template(
    template_id: str,
    payload: TemplateUpdate,
    current_user: User = Depends(require_admin),
    service: TemplateService = Depends(get_template_service)
):
    return service.update_template(current_user, template_id, payload)


@router.delete(
    "/certificate-templates/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Template",
    description="Refused with 409 while certificates reference the template. Deactivate it instead."
)
def delete_template(
    template_id: str,
    current_user: User = Depends(require_admin),
    service: TemplateService = Depends(get_template_service)
):
    service.delete_template(current_user, template_id)
