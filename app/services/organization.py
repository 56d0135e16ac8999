from typing import List

from fastapi import HTTPException, status
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.exceptions import guard_store
from app.db.schema import Organization, User
from app.models.organization import OrganizationCreate
from app.services.template_catalog import template_slug


class OrganizationService:
    def __init__(self, session: Session):
        self.session = session

    def list_organizations(self) -> List[Organization]:
        with guard_store(self.session, "list organizations"):
            return self.session.exec(
                select(Organization).order_by(Organization.name.asc())
            ).all()

    def create_organization(self, actor: User, data: OrganizationCreate) -> Organization:
        """
        The id is the slug of the given id or name, at most 20 characters.
        It prefixes every certificate id the organization issues.
        """
        org_id = template_slug(data.id or data.name)[:20].strip("-")
        if len(org_id) < 2:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Organization id must have at least two letters or digits."
            )

        org = Organization(
            **data.model_dump(exclude={"id"}),
            id=org_id,
            slug=org_id,
        )

        with guard_store(self.session, "create organization"):
            if self.session.get(Organization, org_id):
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Organization '{org_id}' already exists."
                )
            self.session.add(org)
            try:
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Organization '{org_id}' already exists."
                )
            self.session.refresh(org)

        logger.info(f"Organization {org.id} created by {actor.email}")
        return org
