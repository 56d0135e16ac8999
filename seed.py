from loguru import logger
from sqlmodel import Session, select

from app.core.config import settings
from app.db.core import create_db_and_tables, engine
from app.db.schema import User, UserRole
from app.services.certificate import CertificateService
from app.services.password import get_password_hash


def seed_super_admin(session: Session):
    """Creates the configured super admin if missing, or promotes it."""
    logger.info("--- Seeding Super Admin ---")

    if not settings.super_admin_email or not settings.super_admin_password:
        logger.info("SUPER_ADMIN_EMAIL / SUPER_ADMIN_PASSWORD not set, skipping")
        return

    email = settings.super_admin_email.lower()
    user = session.exec(select(User).where(User.email == email)).first()

    if not user:
        user = User(
            email=email,
            hashed_password=get_password_hash(settings.super_admin_password),
            first_name="Super",
            last_name="Admin",
            role=UserRole.SUPER_ADMIN,
        )
        session.add(user)
        logger.info(f"Created Super Admin: {email}")
    elif user.role != UserRole.SUPER_ADMIN:
        user.role = UserRole.SUPER_ADMIN
        session.add(user)
        logger.info(f"Promoted to Super Admin: {email}")
    else:
        logger.info(f"Existing Super Admin: {email}")


def main():
    create_db_and_tables()

    with Session(engine) as session:
        try:
            seed_super_admin(session)
            session.commit()

            # Commits on its own, all-or-nothing
            CertificateService(session).initialize_defaults()

            logger.info("Database seeding completed successfully.")

        except Exception as e:
            session.rollback()
            logger.error(f"Seeding failed: {e}")
            raise e


if __name__ == "__main__":
    main()
