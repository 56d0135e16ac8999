from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlmodel import SQLModel, Field

from app.db.schema import SecurityLevel


class TemplateOption(SQLModel):
    """
    A template as offered in the issuance form.
    """
    key: str = Field(description="Template id. Example: 'baptism-certificate'")
    label: str = Field(description="Template name. Example: 'Baptism Certificate'")
    description: str
    category: str
    type_code: str
    security_level: SecurityLevel


class TemplateOptionsResponse(SQLModel):
    success: bool = True
    templates: List[TemplateOption]


class InitializeDatabaseRequest(SQLModel):
    force_override: bool = False


class InitializeDatabaseResponse(SQLModel):
    success: bool
    message: str
    force_override: bool
    template_count: int
    organization_id: Optional[str] = None


class TemplateCreate(SQLModel):
    """
    Payload for an administrator-defined template. The id is derived from
    the name and the type code from its keywords.
    """
    name: str = Field(min_length=1, max_length=100, description="Example: 'Choir Service Award'")
    description: str = Field(default="", max_length=500)
    category: Optional[str] = Field(
        default=None, max_length=50, description="Derived from the name when omitted.")
    default_security_level: Optional[SecurityLevel] = Field(
        default=None, description="Derived from the name when omitted.")
    template_data: Dict[str, Any] = Field(default_factory=dict)


class TemplateUpdate(SQLModel):
    """Partial update. Renaming regenerates the type code; the id stays."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=50)
    default_security_level: Optional[SecurityLevel] = None
    template_data: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class TemplateRead(SQLModel):
    id: str
    name: str
    description: str
    category: str
    type_code: str
    default_security_level: SecurityLevel
    is_active: bool
    template_data: Dict[str, Any]
    created_at: datetime
    created_by_id: Optional[UUID] = None
    certificates_issued: int = 0
