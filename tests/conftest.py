import os
import tempfile
from datetime import datetime
from typing import Callable, Dict, Generator, Optional

# Settings are read at import time, so the environment must be in place first
_TMP_ROOT = tempfile.mkdtemp(prefix="fom-certificates-tests-")
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CERTIFICATE_SECRET_KEY"] = "test-certificate-key"
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_ROOT}/app.db"
os.environ["STATIC_DIR"] = os.path.join(_TMP_ROOT, "static")
os.environ["LOG_DIR"] = os.path.join(_TMP_ROOT, "logs")
os.environ["PUBLIC_URL"] = "https://fomjesus.org"
os.environ["SEED_ON_STARTUP"] = "false"
os.environ["GENERATE_QR_CODES"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from app.db.core import get_session  # noqa: E402
from app.db.schema import (  # noqa: E402
    Certificate, CertificateStatus, SecurityLevel, User, UserRole
)
from app.main import app  # noqa: E402
from app.services.certificate import CertificateService  # noqa: E402
from app.services.user import UserService  # noqa: E402

DEFAULT_TEMPLATE_ID = "certificate-of-appreciation"


@pytest.fixture
def engine(tmp_path) -> Generator[Engine, None, None]:
    """A fresh file backed SQLite database per test."""
    engine = create_engine(
        f"sqlite:///{tmp_path}/test.db",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def service(session) -> CertificateService:
    return CertificateService(session)


@pytest.fixture
def seeded(service) -> CertificateService:
    service.initialize_defaults()
    return service


def _create_user(session: Session, email: str, role: UserRole) -> User:
    user = User(
        email=email,
        hashed_password="not-a-real-hash",
        first_name=email.split("@")[0].title(),
        last_name="Tester",
        role=role,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def admin_user(session) -> User:
    return _create_user(session, "admin@fomjesus.org", UserRole.ADMIN)


@pytest.fixture
def super_admin_user(session) -> User:
    return _create_user(session, "root@fomjesus.org", UserRole.SUPER_ADMIN)


@pytest.fixture
def member_user(session) -> User:
    return _create_user(session, "grace@example.com", UserRole.MEMBER)


@pytest.fixture
def other_member(session) -> User:
    return _create_user(session, "john@example.com", UserRole.MEMBER)


@pytest.fixture
def make_certificate(session, seeded) -> Callable[..., Certificate]:
    """Inserts certificate rows directly, bypassing issuance."""

    def _make(
        id: str,
        status: CertificateStatus = CertificateStatus.ACTIVE,
        expiry_date: Optional[datetime] = None,
        security_level: SecurityLevel = SecurityLevel.STANDARD,
        signature: Optional[str] = None,
        recipient: Optional[User] = None,
        recipient_email: str = "recipient@example.com",
        issue_date: Optional[datetime] = None,
        template_id: str = DEFAULT_TEMPLATE_ID,
    ) -> Certificate:
        cert = Certificate(
            id=id,
            template_id=template_id,
            organization_id="fom",
            recipient_name="Patience Fero",
            recipient_email=recipient.email if recipient else recipient_email,
            recipient_id=recipient.id if recipient else None,
            issuer_name="Mr. Enoch Kwateh Dongbo",
            issue_date=issue_date or datetime(2024, 6, 1),
            expiry_date=expiry_date,
            status=status,
            security_level=security_level,
            signature=signature,
        )
        session.add(cert)
        session.commit()
        session.refresh(cert)
        return cert

    return _make


@pytest.fixture
def client(engine) -> Generator[TestClient, None, None]:
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(session) -> Callable[[User], Dict[str, str]]:
    def _headers(user: User) -> Dict[str, str]:
        token = UserService(session).generate_access_token(user)
        return {"Authorization": f"Bearer {token}"}

    return _headers
