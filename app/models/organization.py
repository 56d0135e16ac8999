from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field


class OrganizationCreate(SQLModel):
    """
    Payload for registering another issuing organization.
    """
    id: Optional[str] = Field(
        default=None, min_length=2, max_length=20,
        description="Doubles as the slug and the certificate id prefix. Slugified; derived from the name when omitted.")
    name: str = Field(min_length=1, max_length=150, description="Example: 'Grace Chapel'")
    tagline: Optional[str] = Field(default=None, max_length=200)
    logo_url: Optional[str] = None
    color_primary: str = Field(default="#0c436a")
    color_secondary: str = Field(default="#2596be")
    color_accent: str = Field(default="#436c87")
    color_text: str = Field(default="#505050")
    covenant_text: Optional[str] = None
    covenant_reference: Optional[str] = None
    executive_director: Optional[str] = None
    chairperson: Optional[str] = None
    secretary: Optional[str] = None


class OrganizationRead(SQLModel):
    id: str
    slug: str
    name: str
    tagline: Optional[str] = None
    logo_url: Optional[str] = None
    color_primary: Optional[str] = None
    color_secondary: Optional[str] = None
    color_accent: Optional[str] = None
    color_text: Optional[str] = None
    covenant_text: Optional[str] = None
    covenant_reference: Optional[str] = None
    executive_director: Optional[str] = None
    chairperson: Optional[str] = None
    secretary: Optional[str] = None
    created_at: datetime
