import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import HTTPException, status
from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, and_, col, func, or_, select

from app.core.audit import record_verification_attempt
from app.core.config import settings
from app.core.exceptions import StoreFailure, guard_store
from app.db.schema import (
    Certificate, CertificateStatus, CertificateTemplate, Organization,
    SecurityLevel, User, UserRole, VerificationAttempt, VerificationMethod
)
from app.models.certificate import (
    BulkRevokeResult, CertificateAnalytics, CertificateIssue,
    CertificatePublicRead, CertificateRead, IssuedCertificatePage,
    RecentCertificate, VerificationAttemptRead, VerificationReason,
    VerificationResult
)
from app.models.template import TemplateOption
from app.services.authorization import policy
from app.services.template_catalog import (
    DEFAULT_ORGANIZATION, DEFAULT_TEMPLATES, category_for,
    default_security_level_for, template_design, template_slug, type_code_for
)
from app.utils.certificate_security import (
    build_verification_url, generate_certificate_id, sign_certificate,
    signatures_match
)
from app.utils.qr import generate_and_save_qr


MAX_CERTIFICATE_ID_LENGTH = 64
MAX_ID_ATTEMPTS = 10


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """The store keeps naive UTC datetimes."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def effective_status(cert: Certificate, now: Optional[datetime] = None) -> CertificateStatus:
    """
    Reconciles the stored status with the expiry date at read time.
    Revocation wins over expiry; an active certificate past its expiry date
    is expired even if the stored status has not caught up yet.
    """
    stored = CertificateStatus(cert.status)
    if stored != CertificateStatus.ACTIVE:
        return stored

    now = now or datetime.utcnow()
    expiry = as_naive_utc(cert.expiry_date)
    if expiry is not None and now > expiry:
        return CertificateStatus.EXPIRED
    return CertificateStatus.ACTIVE


class CertificateService:
    def __init__(self, session: Session):
        self.session = session

    def _store(self, action: str):
        return guard_store(self.session, action)

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def _verification_url(self, cert: Certificate) -> str:
        return build_verification_url(cert.id, cert.signature)

    def to_public(self, cert: Certificate) -> CertificatePublicRead:
        return CertificatePublicRead(
            id=cert.id,
            template_name=cert.template.name,
            recipient_name=cert.recipient_name,
            organization_id=cert.organization_id,
            issue_date=cert.issue_date,
            expiry_date=cert.expiry_date,
            status=effective_status(cert),
            issuer_name=cert.issuer_name,
            security_level=cert.security_level,
            verification_url=self._verification_url(cert)
        )

    def to_read(self, cert: Certificate) -> CertificateRead:
        return CertificateRead(
            **self.to_public(cert).model_dump(),
            template_id=cert.template_id,
            recipient_email=cert.recipient_email,
            qr_code_url=cert.qr_code_url,
            custom_fields=cert.custom_fields or {},
            revocation_reason=cert.revocation_reason,
            revoked_at=cert.revoked_at
        )

    # ------------------------------------------------------------------
    # Templates & seeding
    # ------------------------------------------------------------------

    def get_template_count(self) -> int:
        with self._store("count certificate templates"):
            return self.session.exec(
                select(func.count()).select_from(CertificateTemplate)
            ).one()

    def _ensure_default_organization(self) -> Organization:
        org = self.session.get(Organization, DEFAULT_ORGANIZATION["id"])
        if org:
            logger.info(f"Existing Organization: {org.name}")
            return org

        org = Organization(**DEFAULT_ORGANIZATION)
        self.session.add(org)
        logger.info(f"Created Organization: {org.name}")
        return org

    def _upsert_template(self, name: str, description: str,
                         force_override: bool = False) -> CertificateTemplate:
        template_id = template_slug(name)
        values = dict(
            name=name,
            description=description,
            category=category_for(name),
            type_code=type_code_for(name),
            default_security_level=default_security_level_for(name),
            is_active=True,
            template_data=template_design(name),
        )

        template = self.session.get(CertificateTemplate, template_id)
        if not template:
            template = CertificateTemplate(id=template_id, **values)
            logger.info(f"Created Template: {name} ({template_id})")
        elif force_override:
            # Discards administrator edits to the shipped templates
            for key, value in values.items():
                setattr(template, key, value)
            logger.info(f"Reset Template: {name} ({template_id})")
        else:
            logger.info(f"Existing Template: {template.name} ({template_id})")
            return template

        self.session.add(template)
        return template

    def initialize_defaults(self, force_override: bool = False) -> None:
        """
        Create-if-absent seeding of the default organization and templates.
        Existing default templates keep any administrator edits unless
        `force_override` resets them to the shipped definition.
        Runs in a single transaction: either every default exists afterwards
        or nothing from this call was committed.
        """
        logger.info("--- Initializing default organization & templates ---")
        try:
            self._ensure_default_organization()
            for entry in DEFAULT_TEMPLATES:
                self._upsert_template(
                    entry["name"], entry["description"], force_override=force_override)
            self.session.commit()

        except IntegrityError as e:
            # Lost the race against a concurrent initializer. Its rows stand.
            self.session.rollback()
            logger.warning(f"Default seeding conflicted with a concurrent run: {e}")
            if self.get_template_count() == 0:
                raise StoreFailure("Could not initialize default templates.") from e

        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Default seeding failed: {e}")
            raise StoreFailure("Could not initialize default templates.") from e

        logger.info("Default organization & templates are in place.")

    def ensure_seeded(self) -> bool:
        """
        Startup step. Seeds only when no template exists yet.
        Returns True if seeding ran.
        """
        if self.get_template_count() > 0:
            return False
        self.initialize_defaults()
        return True

    def get_template_options(self) -> List[TemplateOption]:
        statement = (
            select(CertificateTemplate)
            .where(CertificateTemplate.is_active == True)
            .order_by(CertificateTemplate.name.asc())
        )
        with self._store("list certificate templates"):
            templates = self.session.exec(statement).all()

        return [
            TemplateOption(
                key=t.id,
                label=t.name,
                description=t.description,
                category=t.category,
                type_code=t.type_code,
                security_level=t.default_security_level
            )
            for t in templates
        ]

    def _resolve_template(self, identifier: str) -> Optional[CertificateTemplate]:
        """Looks a template up by id, then exact name, then by slug of the name."""
        template = self.session.get(CertificateTemplate, identifier)
        if template:
            return template

        template = self.session.exec(
            select(CertificateTemplate).where(CertificateTemplate.name == identifier)
        ).first()
        if template:
            return template

        return self.session.get(CertificateTemplate, template_slug(identifier))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _parse_status(self, value: Optional[str]) -> Optional[CertificateStatus]:
        if not value:
            return None
        try:
            return CertificateStatus(value)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown certificate status '{value}'."
            )

    def _status_condition(self, wanted: CertificateStatus, now: datetime):
        """SQL equivalent of `effective_status(cert) == wanted`."""
        if wanted == CertificateStatus.ACTIVE:
            return and_(
                Certificate.status == CertificateStatus.ACTIVE,
                or_(Certificate.expiry_date == None,
                    Certificate.expiry_date >= now)
            )
        if wanted == CertificateStatus.EXPIRED:
            return or_(
                Certificate.status == CertificateStatus.EXPIRED,
                and_(Certificate.status == CertificateStatus.ACTIVE,
                     Certificate.expiry_date < now)
            )
        return Certificate.status == CertificateStatus.REVOKED

    def get_user_certificates(self, user_id: uuid.UUID,
                              status: Optional[str] = None) -> List[CertificateRead]:
        """
        Certificates linked to the user at issuance. Newest first.
        A matching recipient email alone never grants ownership: signup does
        not prove control of the address.
        """
        wanted = self._parse_status(status)

        with self._store("fetch user certificates"):
            statement = select(Certificate).where(Certificate.recipient_id == user_id)
            if wanted:
                statement = statement.where(
                    self._status_condition(wanted, datetime.utcnow()))

            statement = statement.order_by(
                Certificate.issue_date.desc(), Certificate.id.asc())
            results = self.session.exec(statement).all()

        return [self.to_read(c) for c in results]

    def _get_or_404(self, certificate_id: str) -> Certificate:
        with self._store("fetch certificate"):
            cert = self.session.get(Certificate, certificate_id)
        if not cert:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Certificate not found."
            )
        return cert

    def get_certificate(self, user: User, certificate_id: str) -> CertificateRead:
        cert = self._get_or_404(certificate_id)

        # ACCESS CONTROL: holder or administrator
        is_holder = cert.recipient_id is not None and cert.recipient_id == user.id
        if not is_holder and not policy.has_role(user, UserRole.ADMIN):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return self.to_read(cert)

    def list_issued(self, page: int = 1, limit: int = 10, search: Optional[str] = None,
                    status: Optional[str] = None,
                    template_id: Optional[str] = None) -> IssuedCertificatePage:
        conditions = []
        if search:
            search_fmt = f"%{search}%"
            conditions.append(or_(
                col(Certificate.recipient_name).ilike(search_fmt),
                col(Certificate.recipient_email).ilike(search_fmt),
                col(Certificate.id).ilike(search_fmt)
            ))

        wanted = self._parse_status(status)
        if wanted:
            conditions.append(self._status_condition(wanted, datetime.utcnow()))

        if template_id:
            conditions.append(Certificate.template_id == template_id)

        with self._store("list issued certificates"):
            total = self.session.exec(
                select(func.count()).select_from(Certificate).where(*conditions)
            ).one()
            results = self.session.exec(
                select(Certificate)
                .where(*conditions)
                .order_by(Certificate.created_at.desc(), Certificate.id.asc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).all()

        return IssuedCertificatePage(
            items=[self.to_read(c) for c in results],
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0
        )

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def _evaluate(self, certificate_id: Optional[str],
                  signature: Optional[str]) -> VerificationResult:
        if (
            not isinstance(certificate_id, str)
            or not certificate_id.strip()
            or len(certificate_id) > MAX_CERTIFICATE_ID_LENGTH
        ):
            return VerificationResult(valid=False, reason=VerificationReason.NOT_FOUND)

        with self._store("look up certificate for verification"):
            cert = self.session.get(Certificate, certificate_id.strip())

        if not cert:
            return VerificationResult(valid=False, reason=VerificationReason.NOT_FOUND)

        current = effective_status(cert)
        if current == CertificateStatus.REVOKED:
            return VerificationResult(valid=False, reason=VerificationReason.REVOKED)
        if current == CertificateStatus.EXPIRED:
            return VerificationResult(valid=False, reason=VerificationReason.EXPIRED)

        if SecurityLevel(cert.security_level).requires_signature:
            if not signature:
                return VerificationResult(
                    valid=False, reason=VerificationReason.SIGNATURE_REQUIRED)
            if not cert.signature or not signatures_match(signature, cert.signature):
                return VerificationResult(
                    valid=False, reason=VerificationReason.SIGNATURE_MISMATCH)

        elif signature and cert.signature and not signatures_match(signature, cert.signature):
            # Optional at this level, but a presented token must still be genuine
            return VerificationResult(
                valid=False, reason=VerificationReason.SIGNATURE_MISMATCH)

        return VerificationResult(valid=True, certificate=self.to_public(cert))

    def verify_certificate(self, certificate_id: Optional[str], signature: Optional[str] = None,
                           method: Optional[str] = VerificationMethod.WEB.value,
                           client_origin: Optional[str] = None) -> VerificationResult:
        """
        Public verification. Invalid certificates are an expected outcome and
        come back as a result, never as an exception. Every call is recorded
        as a VerificationAttempt on a best-effort basis.
        """
        try:
            method = VerificationMethod(method).value
        except ValueError:
            method = VerificationMethod.WEB.value
        client_origin = client_origin or "unknown"

        result = self._evaluate(certificate_id, signature)

        record_verification_attempt(
            self.session.get_bind(),
            certificate_id=str(certificate_id or "")[:MAX_CERTIFICATE_ID_LENGTH],
            method=method,
            client_origin=client_origin,
            valid=result.valid,
            reason=result.reason.value if result.reason else None
        )

        logger.info(
            f"Verification of {certificate_id!r} via {method} from {client_origin}: "
            f"{'valid' if result.valid else result.reason.value}")
        return result

    def get_verification_history(self, certificate_id: str) -> List[VerificationAttemptRead]:
        statement = (
            select(VerificationAttempt)
            .where(VerificationAttempt.certificate_id == certificate_id)
            .order_by(VerificationAttempt.timestamp.desc())
        )
        with self._store("fetch verification history"):
            attempts = self.session.exec(statement).all()
        return [VerificationAttemptRead.model_validate(a) for a in attempts]

    # ------------------------------------------------------------------
    # Issuance & lifecycle
    # ------------------------------------------------------------------

    def _next_certificate_id(self, org: Organization, template: CertificateTemplate,
                             year: int) -> str:
        existing = self.session.exec(
            select(func.count()).select_from(Certificate)
            .where(Certificate.template_id == template.id)
        ).one()

        for _ in range(MAX_ID_ATTEMPTS):
            candidate = generate_certificate_id(
                org.slug, template.type_code, existing + 1, year=year)
            if not self.session.get(Certificate, candidate):
                return candidate

        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Could not allocate a unique certificate id. Please retry."
        )

    def issue_certificate(self, issuer: User, data: CertificateIssue) -> CertificateRead:
        template = self._resolve_template(data.template)
        if not template or not template.is_active:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Certificate template not found."
            )

        org_id = data.organization_id or settings.default_organization_id
        org = self.session.get(Organization, org_id)
        if not org:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Issuing organization not found."
            )

        issue_date = as_naive_utc(data.issue_date) or datetime.utcnow()
        expiry_date = None
        if data.validity_days:
            expiry_date = issue_date + timedelta(days=data.validity_days)

        security_level = data.security_level or template.default_security_level
        issuer_name = (data.authorizing_official or issuer.full_name).strip() \
            or "Unknown Issuer"
        recipient_email = data.recipient_email.lower()

        with self._store("issue certificate"):
            recipient = self.session.exec(
                select(User).where(User.email == recipient_email)
            ).first()

            certificate_id = self._next_certificate_id(org, template, issue_date.year)

            signature = None
            if security_level in (SecurityLevel.STANDARD, SecurityLevel.HIGH):
                signature = sign_certificate(
                    certificate_id, data.recipient_name, template.name,
                    issue_date, issuer_name)

            qr_code_url = None
            if settings.generate_qr_codes:
                try:
                    qr_code_url = generate_and_save_qr(
                        build_verification_url(certificate_id, signature),
                        certificate_id)
                except OSError as e:
                    logger.warning(f"QR code generation failed for {certificate_id}: {e}")

            cert = Certificate(
                id=certificate_id,
                template_id=template.id,
                organization_id=org.id,
                recipient_name=data.recipient_name,
                recipient_email=recipient_email,
                recipient_id=recipient.id if recipient else None,
                issued_by_id=issuer.id,
                issuer_name=issuer_name,
                issue_date=issue_date,
                expiry_date=expiry_date,
                status=CertificateStatus.ACTIVE,
                security_level=security_level,
                signature=signature,
                qr_code_url=qr_code_url,
                custom_fields=data.custom_fields
            )
            self.session.add(cert)
            self.session.commit()
            self.session.refresh(cert)

        logger.info(
            f"Issued certificate {cert.id} ({template.name}) to {recipient_email} "
            f"by {issuer.email}")
        return self.to_read(cert)

    def _mark_revoked(self, cert: Certificate, actor: User, reason: Optional[str]):
        cert.status = CertificateStatus.REVOKED
        cert.revocation_reason = reason
        cert.revoked_at = datetime.utcnow()
        cert.revoked_by_id = actor.id
        self.session.add(cert)

    def revoke_certificate(self, actor: User, certificate_id: str,
                           reason: Optional[str] = None) -> CertificateRead:
        cert = self._get_or_404(certificate_id)

        current = effective_status(cert)
        if current != CertificateStatus.ACTIVE:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Certificate is already {current.value}."
            )

        with self._store("revoke certificate"):
            self._mark_revoked(cert, actor, reason)
            self.session.commit()
            self.session.refresh(cert)

        logger.info(f"Certificate {cert.id} revoked by {actor.email}")
        return self.to_read(cert)

    def link_recipient(self, actor: User, certificate_id: str) -> CertificateRead:
        """
        Administrator step for certificates issued before the recipient
        registered: attaches the account whose email matches the certificate.
        """
        cert = self._get_or_404(certificate_id)

        with self._store("link certificate recipient"):
            recipient = self.session.exec(
                select(User).where(User.email == cert.recipient_email.lower())
            ).first()

        if not recipient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No registered user has the recipient email."
            )
        if cert.recipient_id is not None and cert.recipient_id != recipient.id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Certificate is already linked to another user."
            )

        with self._store("link certificate recipient"):
            cert.recipient_id = recipient.id
            self.session.add(cert)
            self.session.commit()
            self.session.refresh(cert)

        logger.info(f"Certificate {cert.id} linked to {recipient.email} by {actor.email}")
        return self.to_read(cert)

    def bulk_revoke(self, actor: User, certificate_ids: List[str],
                    reason: Optional[str] = None) -> BulkRevokeResult:
        requested = list(dict.fromkeys(certificate_ids))

        with self._store("bulk revoke certificates"):
            found = self.session.exec(
                select(Certificate).where(col(Certificate.id).in_(requested))
            ).all()

        found_ids = {c.id for c in found}
        missing = [cid for cid in requested if cid not in found_ids]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={
                    "message": f"Certificates not found: {', '.join(missing)}",
                    "not_found": missing,
                }
            )

        revoked_ids = []
        with self._store("bulk revoke certificates"):
            for cert in found:
                if effective_status(cert) == CertificateStatus.ACTIVE:
                    self._mark_revoked(cert, actor, reason)
                    revoked_ids.append(cert.id)
            self.session.commit()

        logger.info(
            f"Bulk revoke by {actor.email}: requested={len(requested)} "
            f"revoked={len(revoked_ids)}")
        return BulkRevokeResult(
            requested=len(requested),
            revoked=len(revoked_ids),
            already_inactive=len(requested) - len(revoked_ids),
            revoked_ids=revoked_ids
        )

    def expire_overdue(self) -> int:
        """
        Persists the expired status for active certificates past their expiry.
        Verification never depends on this having run.
        """
        now = datetime.utcnow()
        with self._store("expire overdue certificates"):
            overdue = self.session.exec(
                select(Certificate).where(
                    Certificate.status == CertificateStatus.ACTIVE,
                    Certificate.expiry_date < now
                )
            ).all()
            for cert in overdue:
                cert.status = CertificateStatus.EXPIRED
                self.session.add(cert)
            self.session.commit()

        if overdue:
            logger.info(f"Marked {len(overdue)} certificate(s) as expired")
        return len(overdue)

    def get_certificate_analytics(self) -> CertificateAnalytics:
        now = datetime.utcnow()
        with self._store("compute certificate analytics"):
            total = self.session.exec(
                select(func.count()).select_from(Certificate)).one()

            # Effective status, so unswept expiries already count as expired
            by_status = {}
            for wanted in CertificateStatus:
                count = self.session.exec(
                    select(func.count()).select_from(Certificate)
                    .where(self._status_condition(wanted, now))
                ).one()
                if count:
                    by_status[wanted.value] = count

            by_template = self.session.exec(
                select(CertificateTemplate.name, func.count(Certificate.id))
                .join(CertificateTemplate, Certificate.template_id == CertificateTemplate.id)
                .group_by(CertificateTemplate.name)
            ).all()

            by_level = self.session.exec(
                select(Certificate.security_level, func.count(Certificate.id))
                .group_by(Certificate.security_level)
            ).all()

            recent = self.session.exec(
                select(Certificate)
                .order_by(Certificate.created_at.desc(), Certificate.id.asc())
                .limit(10)
            ).all()

        return CertificateAnalytics(
            total=total,
            by_status=by_status,
            by_template={name: n for name, n in by_template},
            by_security_level={getattr(l, "value", l): n for l, n in by_level},
            recent_issued=[
                RecentCertificate(
                    id=c.id,
                    template_name=c.template.name,
                    recipient_name=c.recipient_name,
                    issuer_name=c.issuer_name,
                    issue_date=c.issue_date,
                    status=effective_status(c, now)
                )
                for c in recent
            ]
        )
