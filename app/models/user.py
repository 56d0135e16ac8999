from uuid import UUID

from pydantic import EmailStr, StringConstraints
from sqlmodel import SQLModel, Field
from typing_extensions import Annotated

from app.db.schema import UserRole


# bcrypt only looks at the first 72 bytes
Password = Annotated[str, StringConstraints(min_length=8, max_length=72)]
Email = Annotated[EmailStr, StringConstraints(to_lower=True)]


class UserRead(SQLModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool


class UserSignin(SQLModel):
    email: Email = Field(max_length=255, description="Registered email address.")
    password: Password


class UserCreate(SQLModel):
    """
    Member registration. Accounts always start as members; roles are
    granted by an administrator.
    """
    first_name: str = Field(min_length=1, max_length=50, description="Example: 'Grace'")
    last_name: str = Field(min_length=1, max_length=50, description="Example: 'Fero'")
    email: Email = Field(max_length=255, description="Unique sign-in email.")
    password: Password
