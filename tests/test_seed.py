from sqlmodel import select

from app.core.config import settings
from app.db.schema import User, UserRole
from app.services.password import verify_password
from seed import seed_super_admin


def test_skips_without_credentials(session, monkeypatch):
    monkeypatch.setattr(settings, "super_admin_email", "")

    seed_super_admin(session)
    session.commit()

    assert session.exec(select(User)).all() == []


def test_creates_super_admin(session, monkeypatch):
    monkeypatch.setattr(settings, "super_admin_email", "Office@FomJesus.org")
    monkeypatch.setattr(settings, "super_admin_password", "change-me-now")

    seed_super_admin(session)
    session.commit()

    user = session.exec(select(User)).one()
    assert user.email == "office@fomjesus.org"
    assert user.role == UserRole.SUPER_ADMIN
    assert verify_password("change-me-now", user.hashed_password)


def test_promotes_existing_account(session, member_user, monkeypatch):
    monkeypatch.setattr(settings, "super_admin_email", member_user.email)
    monkeypatch.setattr(settings, "super_admin_password", "change-me-now")

    seed_super_admin(session)
    session.commit()

    session.refresh(member_user)
    assert member_user.role == UserRole.SUPER_ADMIN
    assert len(session.exec(select(User)).all()) == 1
