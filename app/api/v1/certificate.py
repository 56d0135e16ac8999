from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse

from app.core.dependencies import (
    get_certificate_service, get_current_user, require_admin
)
from app.db.schema import User
from app.models.certificate import (
    BulkRevokeRequest, BulkRevokeResult, CertificateAnalytics,
    CertificateIssue, CertificateRead, CertificateRevoke,
    ExpireOverdueResult, IssuedCertificatePage, VerificationAttemptRead,
    VerificationResult
)
from app.models.template import TemplateOptionsResponse
from app.services.certificate import CertificateService
from app.utils.certificate_security import client_origin_from_header

router = APIRouter()


# Static paths first: everything below "/{certificate_id}" would shadow them.

@router.get(
    "/verify",
    summary="Verify Certificate",
    description=(
        "Public endpoint used by verification links and QR codes. "
        "Returns 400 with a reason when the certificate is not valid."
    ),
    tags=["Public"]
)
def verify_certificate_by_query(
    id: Optional[str] = None,
    sig: Optional[str] = None,
    x_forwarded_for: Optional[str] = Header(default=None),
    service: CertificateService = Depends(get_certificate_service)
):
    if not id:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"valid": False, "error": "Certificate ID is required"}
        )

    result = service.verify_certificate(
        id,
        signature=sig,
        client_origin=client_origin_from_header(x_forwarded_for)
    )

    if not result.valid:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"valid": False, "error": result.reason.value}
        )

    return {"valid": True, "certificate": result.certificate}


@router.get(
    "/verify/{certificate_id}",
    response_model=VerificationResult,
    summary="Verify Certificate By Id",
    description="Public endpoint. Returns 404 when the certificate is missing or not valid.",
    tags=["Public"]
)
def verify_certificate(
    certificate_id: str,
    method: str = "web",
    x_forwarded_for: Optional[str] = Header(default=None),
    service: CertificateService = Depends(get_certificate_service)
):
    result = service.verify_certificate(
        certificate_id,
        method=method,
        client_origin=client_origin_from_header(x_forwarded_for)
    )

    if not result.valid:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=result.reason.value
        )
    return result


@router.get(
    "/user",
    response_model=List[CertificateRead],
    summary="My Certificates",
    description="Certificates held by the signed-in user, optionally filtered by status."
)
def get_user_certificates(
    status: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    service: CertificateService = Depends(get_certificate_service)
):
    return service.get_user_certificates(current_user.id, status=status)


@router.get(
    "/template-options",
    response_model=TemplateOptionsResponse,
    summary="Template Options",
    description="Active templates for the issuance form, ordered by name."
)
def get_template_options(
    service: CertificateService = Depends(get_certificate_service)
):
    return TemplateOptionsResponse(templates=service.get_template_options())


@router.post(
    "/issue",
    response_model=CertificateRead,
    status_code=status.HTTP_201_CREATED,
    summary="Issue Certificate"
)
def issue_certificate(
    payload: CertificateIssue,
    current_user: User = Depends(require_admin),
    service: CertificateService = Depends(get_certificate_service)
):
    return service.issue_certificate(current_user, payload)


@router.get(
    "/issued",
    response_model=IssuedCertificatePage,
    summary="Issued Certificates",
    description="Paginated list of every issued certificate with search and filters."
)
def list_issued_certificates(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[str] = None,
    template_id: Optional[str] = None,
    current_user: User = Depends(require_admin),
    service: CertificateService = Depends(get_certificate_service)
):
    return service.list_issued(
        page=page, limit=limit, search=search, status=status, template_id=template_id)


@router.get(
    "/analytics",
    response_model=CertificateAnalytics,
    summary="Certificate Analytics"
)
def get_certificate_analytics(
    current_user: User = Depends(require_admin),
    service: CertificateService = Depends(get_certificate_service)
):
    return service.get_certificate_analytics()


@router.post(
    "/bulk-revoke",
    response_model=BulkRevokeResult,
    summary="Bulk Revoke",
    description="Revokes every active certificate in the list. Fails with 404 if any id is unknown."
)
def bulk_revoke_certificates(
    payload: BulkRevokeRequest,
    current_user: User = Depends(require_admin),
    service: CertificateService = Depends(get_certificate_service)
):
    return service.bulk_revoke(current_user, payload.certificate_ids, reason=payload.reason)


@router.post(
    "/expire-overdue",
    response_model=ExpireOverdueResult,
    summary="Persist Expiry",
    description="Marks active certificates past their expiry date as expired."
)
def expire_overdue_certificates(
    current_user: User = Depends(require_admin),
    service: CertificateService = Depends(get_certificate_service)
):
    return ExpireOverdueResult(expired=service.expire_overdue())


@router.get(
    "/{certificate_id}",
    response_model=CertificateRead,
    summary="Get Certificate",
    description="Full certificate record for its holder or an administrator."
)
def get_certificate(
    certificate_id: str,
    current_user: User = Depends(get_current_user),
    service: CertificateService = Depends(get_certificate_service)
):
    return service.get_certificate(current_user, certificate_id)


@router.post(
    "/{certificate_id}/revoke",
    response_model=CertificateRead,
    summary="Revoke Certificate",
    description="Permanently revokes an active certificate. Revoked and expired certificates cannot change."
)
def revoke_certificate(
    certificate_id: str,
    payload: Optional[CertificateRevoke] = None,
    current_user: User = Depends(require_admin),
    service: CertificateService = Depends(get_certificate_service)
):
    reason = payload.reason if payload else None
    return service.revoke_certificate(current_user, certificate_id, reason=reason)


@router.post(
    "/{certificate_id}/link-recipient",
    response_model=CertificateRead,
    summary="Link Recipient",
    description="Attaches the registered account whose email matches the certificate's recipient."
)
def link_recipient(
    certificate_id: str,
    current_user: User = Depends(require_admin),
    service: CertificateService = Depends(get_certificate_service)
):
    return service.link_recipient(current_user, certificate_id)


@router.get(
    "/{certificate_id}/verifications",
    response_model=List[VerificationAttemptRead],
    summary="Verification History"
)
def get_verification_history(
    certificate_id: str,
    current_user: User = Depends(require_admin),
    service: CertificateService = Depends(get_certificate_service)
):
    return service.get_verification_history(certificate_id)
