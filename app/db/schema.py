from typing import Optional, List, Dict, Any
from datetime import datetime
import uuid
from sqlmodel import SQLModel, Field, Relationship, JSON
from enum import Enum


class UserRole(str, Enum):
    MEMBER = "member"
    TEACHER = "teacher"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class CaseInsensitiveEnum(str, Enum):
    """Accepts 'ACTIVE' as well as 'active' when parsing."""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value == value.strip().lower():
                    return member
        return None


class CertificateStatus(CaseInsensitiveEnum):
    ACTIVE = "active"
    REVOKED = "revoked"     # Administrative, terminal
    EXPIRED = "expired"     # Time triggered, terminal


class SecurityLevel(CaseInsensitiveEnum):
    """Ordered from weakest to strongest."""
    BASIC = "basic"
    STANDARD = "standard"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return list(SecurityLevel).index(self)

    @property
    def requires_signature(self) -> bool:
        return self.rank > SecurityLevel.STANDARD.rank


class VerificationMethod(CaseInsensitiveEnum):
    WEB = "web"
    MANUAL = "manual"
    API = "api"
    QR = "qr"


class TimestampMixin(SQLModel):
    """
    Standard audit timestamps shared by every persisted entity.
    """
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="UTC timestamp when this record was first persisted. Example: '2026-03-01 14:30:00'"
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column_kwargs={"onupdate": datetime.utcnow},
        description="UTC timestamp of the last modification. Updates automatically."
    )


class User(TimestampMixin, SQLModel, table=True):
    """
    A person who can sign in: ministry members receive certificates,
    administrators issue and revoke them.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        description="The unique identifier for the user."
    )
    email: str = Field(
        unique=True,
        index=True,
        description="The login email address. Example: 'grace@fomjesus.org'"
    )
    hashed_password: str = Field(
        description="Salted bcrypt hash. Never store plain text."
    )
    first_name: str = Field(description="Example: 'Grace'")
    last_name: str = Field(description="Example: 'Dongbo'")
    role: UserRole = Field(
        default=UserRole.MEMBER,
        description="Platform role used by the authorization policy. Example: 'admin'"
    )
    is_active: bool = Field(
        default=True,
        description="Soft delete flag. If False, user cannot sign in."
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Organization(TimestampMixin, SQLModel, table=True):
    """
    An issuing organization. Its branding and leadership appear on the
    certificates it issues.
    """
    id: str = Field(
        primary_key=True,
        description="Stable identifier, doubles as the slug. Example: 'fom'"
    )
    slug: str = Field(unique=True, index=True)
    name: str = Field(description="Example: 'FISHERS OF MEN'")
    tagline: Optional[str] = Field(default=None)
    logo_url: Optional[str] = Field(default=None)
    color_primary: Optional[str] = Field(default=None)
    color_secondary: Optional[str] = Field(default=None)
    color_accent: Optional[str] = Field(default=None)
    color_text: Optional[str] = Field(default=None)
    covenant_text: Optional[str] = Field(default=None)
    covenant_reference: Optional[str] = Field(default=None)
    executive_director: Optional[str] = Field(default=None)
    chairperson: Optional[str] = Field(default=None)
    secretary: Optional[str] = Field(default=None)

    certificates: List["Certificate"] = Relationship(
        back_populates="organization")


class CertificateTemplate(TimestampMixin, SQLModel, table=True):
    """
    A named presentation and policy profile that certificates are issued
    against. The id is a predictable slug of the name so seeding can upsert.
    """
    id: str = Field(
        primary_key=True,
        max_length=50,
        description="Slug derived from the name. Example: 'certificate-of-appreciation'"
    )
    name: str = Field(
        unique=True,
        index=True,
        description="Unique display name. Example: 'Certificate of Appreciation'"
    )
    description: str = Field(default="")
    category: str = Field(
        default="appreciation",
        description="Grouping used by the UI. Example: 'baptism'"
    )
    type_code: str = Field(
        max_length=3,
        description="Three letter code embedded in certificate ids. Example: 'APP'"
    )
    default_security_level: SecurityLevel = Field(default=SecurityLevel.BASIC)
    is_active: bool = Field(default=True)
    template_data: Dict[str, Any] = Field(
        default_factory=dict,
        sa_type=JSON,
        description="Design payload consumed by the front-end renderer."
    )
    created_by_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="user.id",
        description="Administrator who created the template. Empty for seeded defaults."
    )

    certificates: List["Certificate"] = Relationship(back_populates="template")


class Certificate(TimestampMixin, SQLModel, table=True):
    """
    An issued certificate. Permanent and auditable: rows are never deleted and
    identity fields never change after issuance.
    """
    id: str = Field(
        primary_key=True,
        description="Public lookup key. Example: 'FOM-2026-APP-0001-K7'"
    )
    template_id: str = Field(foreign_key="certificatetemplate.id", index=True)
    organization_id: str = Field(foreign_key="organization.id", index=True)

    recipient_name: str = Field(description="Example: 'Patience Fero'")
    recipient_email: str = Field(index=True)
    recipient_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="user.id",
        index=True,
        description="Linked when the recipient email belongs to a registered user."
    )
    issued_by_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="user.id")
    issuer_name: str = Field(
        description="Authorizing official recorded at issuance. Example: 'Mr. Enoch Kwateh Dongbo'"
    )

    issue_date: datetime = Field(default_factory=datetime.utcnow)
    expiry_date: Optional[datetime] = Field(default=None)
    status: CertificateStatus = Field(
        default=CertificateStatus.ACTIVE, index=True)

    security_level: SecurityLevel = Field(default=SecurityLevel.BASIC)
    signature: Optional[str] = Field(
        default=None,
        description="Opaque token checked on verification. Never exposed publicly."
    )
    qr_code_url: Optional[str] = Field(default=None)
    custom_fields: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)

    revocation_reason: Optional[str] = Field(default=None)
    revoked_at: Optional[datetime] = Field(default=None)
    revoked_by_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="user.id")

    template: CertificateTemplate = Relationship(back_populates="certificates")
    organization: Organization = Relationship(back_populates="certificates")


class VerificationAttempt(SQLModel, table=True):
    """
    Append-only audit record of a verification call, whatever its outcome.
    certificate_id is not a foreign key: lookups of unknown ids are recorded
    too.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    certificate_id: str = Field(index=True)
    method: str = Field(default=VerificationMethod.WEB.value)
    client_origin: str = Field(default="unknown")
    valid: bool = Field(default=False)
    reason: Optional[str] = Field(default=None)
    timestamp: datetime = Field(default_factory=datetime.utcnow, index=True)
