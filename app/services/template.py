from typing import List, Optional

from fastapi import HTTPException, status
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, func, select

from app.core.exceptions import guard_store
from app.db.schema import Certificate, CertificateTemplate, User
from app.models.template import TemplateCreate, TemplateRead, TemplateUpdate
from app.services.template_catalog import (
    category_for, default_security_level_for, template_design, template_slug,
    type_code_for
)


class TemplateService:
    """Administrator management of certificate templates."""

    def __init__(self, session: Session):
        self.session = session

    def _issued_count(self, template_id: str) -> int:
        return self.session.exec(
            select(func.count()).select_from(Certificate)
            .where(Certificate.template_id == template_id)
        ).one()

    def _to_read(self, template: CertificateTemplate) -> TemplateRead:
        return TemplateRead(
            **template.model_dump(exclude={"updated_at"}),
            certificates_issued=self._issued_count(template.id)
        )

    def _get_or_404(self, template_id: str) -> CertificateTemplate:
        with guard_store(self.session, "fetch certificate template"):
            template = self.session.get(CertificateTemplate, template_id)
        if not template:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Certificate template not found."
            )
        return template

    def _name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        statement = select(CertificateTemplate).where(CertificateTemplate.name == name)
        if exclude_id:
            statement = statement.where(CertificateTemplate.id != exclude_id)
        return self.session.exec(statement).first() is not None

    def list_templates(self, category: Optional[str] = None,
                       is_active: Optional[bool] = None) -> List[TemplateRead]:
        statement = select(CertificateTemplate)
        if category:
            statement = statement.where(CertificateTemplate.category == category)
        if is_active is not None:
            statement = statement.where(CertificateTemplate.is_active == is_active)
        statement = statement.order_by(
            CertificateTemplate.created_at.desc(), CertificateTemplate.id.asc())

        with guard_store(self.session, "list certificate templates"):
            return [self._to_read(t) for t in self.session.exec(statement).all()]

    def get_template(self, template_id: str) -> TemplateRead:
        template = self._get_or_404(template_id)
        with guard_store(self.session, "fetch certificate template"):
            return self._to_read(template)

    def create_template(self, actor: User, data: TemplateCreate) -> TemplateRead:
        name = data.name.strip()
        template_id = template_slug(name)
        if not template_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Template name must contain letters or digits."
            )

        with guard_store(self.session, "create certificate template"):
            if self.session.get(CertificateTemplate, template_id) or self._name_taken(name):
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="A template with this name already exists."
                )

            template = CertificateTemplate(
                id=template_id,
                name=name,
                description=data.description,
                category=data.category or category_for(name),
                type_code=type_code_for(name),
                default_security_level=(
                    data.default_security_level or default_security_level_for(name)),
                template_data=data.template_data or template_design(name),
                created_by_id=actor.id,
            )
            self.session.add(template)
            try:
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="A template with this name already exists."
                )
            self.session.refresh(template)
            result = self._to_read(template)

        logger.info(f"Template {template.id} created by {actor.email}")
        return result

    def update_template(self, actor: User, template_id: str,
                        data: TemplateUpdate) -> TemplateRead:
        template = self._get_or_404(template_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        with guard_store(self.session, "update certificate template"):
            if "name" in changes:
                changes["name"] = changes["name"].strip()
                if self._name_taken(changes["name"], exclude_id=template.id):
                    raise HTTPException(
                        status_code=status.HTTP_409_CONFLICT,
                        detail="A template with this name already exists."
                    )
                # The id stays put: issued certificates reference it
                changes["type_code"] = type_code_for(changes["name"])

            for key, value in changes.items():
                setattr(template, key, value)
            self.session.add(template)
            self.session.commit()
            self.session.refresh(template)
            result = self._to_read(template)

        logger.info(f"Template {template.id} updated by {actor.email}: {sorted(changes)}")
        return result

    def delete_template(self, actor: User, template_id: str) -> None:
        template = self._get_or_404(template_id)

        with guard_store(self.session, "delete certificate template"):
            if self._issued_count(template.id) > 0:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Cannot delete a template with issued certificates. Deactivate it instead."
                )
            self.session.delete(template)
            self.session.commit()

        logger.info(f"Template {template_id} deleted by {actor.email}")
