from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import EmailStr, StringConstraints
from sqlmodel import SQLModel, Field
from typing_extensions import Annotated

from app.db.schema import CertificateStatus, SecurityLevel


class VerificationReason(str, Enum):
    NOT_FOUND = "not found"
    REVOKED = "revoked"
    EXPIRED = "expired"
    SIGNATURE_REQUIRED = "signature required"
    SIGNATURE_MISMATCH = "signature mismatch"


class CertificatePublicRead(SQLModel):
    """
    What anyone holding a certificate id may see. Never carries the signature.
    """
    id: str
    template_name: str
    recipient_name: str
    organization_id: str
    issue_date: datetime
    expiry_date: Optional[datetime] = None
    status: CertificateStatus = Field(
        description="Effective status: an active certificate past its expiry reads as 'expired'.")
    issuer_name: str
    security_level: SecurityLevel
    verification_url: str


class CertificateRead(CertificatePublicRead):
    """
    Owner / administrator view.
    """
    template_id: str
    recipient_email: str
    qr_code_url: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    revocation_reason: Optional[str] = None
    revoked_at: Optional[datetime] = None


class VerificationResult(SQLModel):
    valid: bool
    reason: Optional[VerificationReason] = None
    certificate: Optional[CertificatePublicRead] = None


class CertificateIssue(SQLModel):
    """
    Payload for issuing a certificate.
    """
    template: str = Field(
        min_length=1, max_length=150,
        description="Template id or name. Example: 'Certificate of Appreciation'")
    recipient_name: str = Field(min_length=1, max_length=150)
    recipient_email: Annotated[EmailStr, StringConstraints(to_lower=True)] = Field(
        max_length=255)
    organization_id: Optional[str] = Field(
        default=None, description="Defaults to the configured issuing organization.")
    authorizing_official: Optional[str] = Field(
        default=None, max_length=150,
        description="Recorded as the issuer name. Defaults to the issuing admin's name.")
    issue_date: Optional[datetime] = None
    validity_days: Optional[int] = Field(
        default=None, gt=0, description="Omit for certificates that never expire.")
    security_level: Optional[SecurityLevel] = Field(
        default=None, description="Defaults to the template's security level.")
    custom_fields: Dict[str, Any] = Field(default_factory=dict)


class CertificateRevoke(SQLModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class BulkRevokeRequest(SQLModel):
    certificate_ids: List[str] = Field(min_length=1)
    reason: Optional[str] = Field(default=None, max_length=500)


class BulkRevokeResult(SQLModel):
    requested: int
    revoked: int
    already_inactive: int
    revoked_ids: List[str]


class ExpireOverdueResult(SQLModel):
    expired: int


class IssuedCertificatePage(SQLModel):
    items: List[CertificateRead]
    page: int
    limit: int
    total: int
    total_pages: int


class VerificationAttemptRead(SQLModel):
    id: UUID
    certificate_id: str
    method: str
    client_origin: str
    valid: bool
    reason: Optional[str] = None
    timestamp: datetime


class RecentCertificate(SQLModel):
    id: str
    template_name: str
    recipient_name: str
    issuer_name: str
    issue_date: datetime
    status: CertificateStatus


class CertificateAnalytics(SQLModel):
    total: int
    by_status: Dict[str, int]
    by_template: Dict[str, int]
    by_security_level: Dict[str, int]
    recent_issued: List[RecentCertificate]
