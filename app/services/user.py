from typing import Optional
import uuid
from datetime import datetime, timedelta

import jwt
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.config import settings
from app.db.schema import User, UserRole
from app.models.auth import Token, TokenData
from app.models.user import UserCreate
from .password import get_password_hash, verify_password


class UserService:
    ALGORITHM = "HS256"
    ACCESS_TOKEN_TYPE = "access"

    def __init__(self, session: Session):
        self.session = session

    def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        statement = select(User).where(User.email == email.lower())
        return self.session.exec(statement).first()

    def create_user(self, user_in: UserCreate, role: UserRole = UserRole.MEMBER) -> User:
        """
        Registers an account. Raises ValueError when the email is taken,
        including when a concurrent signup wins the unique constraint.
        """
        email = user_in.email.lower()
        if self.get_user_by_email(email):
            raise ValueError("A user with this email already exists.")

        user = User(
            email=email,
            hashed_password=get_password_hash(user_in.password),
            first_name=user_in.first_name,
            last_name=user_in.last_name,
            role=role,
        )
        try:
            self.session.add(user)
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ValueError("A user with this email already exists.")

        self.session.refresh(user)
        logger.info(f"Registered {user.email} as {user.role.value}")
        return user

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        user = self.get_user_by_email(email)
        if user and verify_password(password, user.hashed_password):
            return user
        return None

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def generate_access_token(self, user: User) -> str:
        expires = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
        claims = {
            "sub": str(user.id),
            "exp": expires,
            "type": self.ACCESS_TOKEN_TYPE,
        }
        return jwt.encode(claims, settings.secret_key, algorithm=self.ALGORITHM)

    def generate_tokens(self, user: User) -> Token:
        return Token(access_token=self.generate_access_token(user), token_type="bearer")

    def verify_access_token(self, token: str) -> Optional[TokenData]:
        """Returns the token's subject, or None for anything not a live access token."""
        try:
            payload = jwt.decode(token, settings.secret_key, algorithms=[self.ALGORITHM])
            if payload.get("type") != self.ACCESS_TOKEN_TYPE or not payload.get("sub"):
                return None
            return TokenData(user_id=uuid.UUID(payload["sub"]))
        except (jwt.PyJWTError, ValueError):
            return None
