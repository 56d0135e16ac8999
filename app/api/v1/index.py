from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from app.core.config import settings
from app.core.dependencies import get_certificate_service
from app.core.exceptions import StoreFailure
from app.services.certificate import CertificateService

router = APIRouter()


@router.get("/", status_code=status.HTTP_200_OK)
def index():
    return {"status": "API is running", "name": settings.app_name}


@router.get("/readiness", status_code=status.HTTP_200_OK)
def readiness_check(service: CertificateService = Depends(get_certificate_service)):
    """Ready once the store answers. Reports whether default templates exist."""
    try:
        template_count = service.get_template_count()
    except StoreFailure:
        logger.exception("Database readiness check failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not ready"
        )

    return {
        "status": "ready",
        "database": "online",
        "templates_seeded": template_count > 0,
    }
