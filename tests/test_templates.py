import pytest
from fastapi import HTTPException
from sqlmodel import Session, create_engine, func, select

from app.core.exceptions import StoreFailure
from app.db.schema import CertificateTemplate, Organization, SecurityLevel
from app.models.certificate import CertificateIssue
from app.models.organization import OrganizationCreate
from app.models.template import TemplateCreate, TemplateUpdate
from app.services.certificate import CertificateService
from app.services.organization import OrganizationService
from app.services.template_catalog import (
    DEFAULT_TEMPLATES, default_security_level_for, template_slug, type_code_for
)
from app.services.template import TemplateService


def _organization_count(session: Session) -> int:
    return session.exec(select(func.count()).select_from(Organization)).one()


def test_empty_store_has_no_templates(service):
    assert service.get_template_count() == 0


def test_initialize_seeds_all_defaults(service, session):
    service.initialize_defaults()

    assert service.get_template_count() == len(DEFAULT_TEMPLATES)
    assert _organization_count(session) == 1

    org = session.get(Organization, "fom")
    assert org.name == "FISHERS OF MEN"
    assert org.executive_director == "Mr. Enoch Kwateh Dongbo"


def test_initialize_is_idempotent(service, session):
    service.initialize_defaults()
    service.initialize_defaults()

    assert service.get_template_count() == len(DEFAULT_TEMPLATES)
    assert _organization_count(session) == 1


def test_initialize_restores_shipped_definition(seeded, session):
    template = session.get(CertificateTemplate, "baptism-certificate")
    template.description = "edited by hand"
    template.is_active = False
    session.add(template)
    session.commit()

    seeded.initialize_defaults(force_override=True)

    session.refresh(template)
    assert template.description.startswith("Sacred design")
    assert template.is_active is True


def test_initialize_keeps_administrator_edits(seeded, session):
    template = session.get(CertificateTemplate, "baptism-certificate")
    template.description = "edited by hand"
    template.is_active = False
    session.add(template)
    session.commit()

    seeded.initialize_defaults()

    session.refresh(template)
    assert template.description == "edited by hand"
    assert template.is_active is False
    assert seeded.get_template_count() == len(DEFAULT_TEMPLATES)


def test_stored_timestamps_are_naive_utc(seeded, session):
    org = session.get(Organization, "fom")
    template = session.get(CertificateTemplate, "baptism-certificate")

    assert org.created_at.tzinfo is None
    assert template.created_at.tzinfo is None


def test_concurrent_initializers_leave_one_set(engine):
    with Session(engine) as first, Session(engine) as second:
        CertificateService(first).initialize_defaults()
        CertificateService(second).initialize_defaults()

    with Session(engine) as session:
        assert CertificateService(session).get_template_count() == len(DEFAULT_TEMPLATES)
        assert _organization_count(session) == 1


def test_losing_the_seeding_race_is_not_an_error(engine, monkeypatch):
    with Session(engine) as winner:
        CertificateService(winner).initialize_defaults()

    with Session(engine) as loser:
        # Simulates a run that checked before the winner committed
        monkeypatch.setattr(loser, "get", lambda *args, **kwargs: None)
        CertificateService(loser).initialize_defaults()

    with Session(engine) as session:
        assert CertificateService(session).get_template_count() == len(DEFAULT_TEMPLATES)


def test_ensure_seeded_only_runs_once(service):
    assert service.ensure_seeded() is True
    assert service.ensure_seeded() is False
    assert service.get_template_count() == len(DEFAULT_TEMPLATES)


def test_template_options_are_active_and_sorted(seeded, session):
    retired = session.get(CertificateTemplate, "youth-achievement")
    retired.is_active = False
    session.add(retired)
    session.commit()

    options = seeded.get_template_options()
    labels = [o.label for o in options]

    assert labels == sorted(labels)
    assert "Youth Achievement" not in labels
    assert len(options) == len(DEFAULT_TEMPLATES) - 1

    baptism = next(o for o in options if o.key == "baptism-certificate")
    assert baptism.type_code == "BAP"
    assert baptism.category == "baptism"
    assert baptism.security_level == SecurityLevel.HIGH


def test_template_options_on_empty_store(service):
    assert service.get_template_options() == []


def test_unreachable_store_raises_store_failure(tmp_path):
    broken = create_engine(f"sqlite:///{tmp_path}/missing/dir/store.db")

    with Session(broken) as session:
        service = CertificateService(session)
        with pytest.raises(StoreFailure):
            service.get_template_count()
        with pytest.raises(StoreFailure):
            service.initialize_defaults()
        with pytest.raises(StoreFailure):
            service.get_template_options()


@pytest.mark.parametrize("name,slug,code,level", [
    ("Certificate of Appreciation", "certificate-of-appreciation", "APP", SecurityLevel.BASIC),
    ("Certificate of Excellence", "certificate-of-excellence", "EXC", SecurityLevel.STANDARD),
    ("Ministry Leadership Certificate", "ministry-leadership-certificate", "LED", SecurityLevel.HIGH),
    ("Executive Director Appreciation", "executive-director-appreciation", "EXD", SecurityLevel.HIGH),
    ("Mission Completion", "mission-completion", "MSN", SecurityLevel.STANDARD),
    ("Faithful Service Award", "faithful-service-award", "SRV", SecurityLevel.BASIC),
])
def test_template_derivations(name, slug, code, level):
    assert template_slug(name) == slug
    assert type_code_for(name) == code
    assert default_security_level_for(name) == level


def test_unknown_names_fall_back_to_capitals():
    assert type_code_for("Good News Award") == "GNA"
    assert type_code_for("Prayer") == "PXX"


@pytest.fixture
def templates(seeded, session) -> TemplateService:
    return TemplateService(session)


def test_created_template_derives_id_code_and_category(templates, seeded, admin_user):
    created = templates.create_template(
        admin_user, TemplateCreate(name="  Choir Service Award ", description="For the choir"))

    assert created.id == "choir-service-award"
    assert created.name == "Choir Service Award"
    assert created.type_code == "SRV"
    assert created.category == "service"
    assert created.default_security_level == SecurityLevel.BASIC
    assert created.created_by_id == admin_user.id
    assert created.certificates_issued == 0
    assert "choir-service-award" in {o.key for o in seeded.get_template_options()}


def test_duplicate_template_name_is_a_conflict(templates, admin_user):
    with pytest.raises(HTTPException) as exc:
        templates.create_template(admin_user, TemplateCreate(name="Baptism Certificate"))

    assert exc.value.status_code == 409


def test_template_name_without_letters_is_rejected(templates, admin_user):
    with pytest.raises(HTTPException) as exc:
        templates.create_template(admin_user, TemplateCreate(name="!!!"))

    assert exc.value.status_code == 400


def test_rename_regenerates_type_code_and_keeps_id(templates, admin_user):
    templates.create_template(admin_user, TemplateCreate(name="Choir Service Award"))

    updated = templates.update_template(
        admin_user, "choir-service-award", TemplateUpdate(name="Choir Volunteer Award"))

    assert updated.id == "choir-service-award"
    assert updated.name == "Choir Volunteer Award"
    assert updated.type_code == "VOL"


def test_rename_onto_existing_name_is_a_conflict(templates, admin_user):
    with pytest.raises(HTTPException) as exc:
        templates.update_template(
            admin_user, "youth-achievement", TemplateUpdate(name="Baptism Certificate"))

    assert exc.value.status_code == 409


def test_deactivated_template_leaves_the_options(templates, seeded, admin_user):
    updated = templates.update_template(
        admin_user, "youth-achievement", TemplateUpdate(is_active=False))

    assert updated.is_active is False
    assert updated.type_code == "YTH"
    assert "youth-achievement" not in {o.key for o in seeded.get_template_options()}


def test_list_templates_filters(templates, admin_user):
    templates.update_template(admin_user, "youth-achievement", TemplateUpdate(is_active=False))

    assert len(templates.list_templates()) == len(DEFAULT_TEMPLATES)
    assert [t.id for t in templates.list_templates(is_active=False)] == ["youth-achievement"]
    assert {t.category for t in templates.list_templates(category="baptism")} == {"baptism"}


def test_template_in_use_cannot_be_deleted(templates, make_certificate, admin_user, session):
    make_certificate("T1", template_id="baptism-certificate")

    with pytest.raises(HTTPException) as exc:
        templates.delete_template(admin_user, "baptism-certificate")

    assert exc.value.status_code == 409
    assert session.get(CertificateTemplate, "baptism-certificate") is not None
    assert templates.get_template("baptism-certificate").certificates_issued == 1


def test_unused_template_is_deleted(templates, admin_user, session):
    templates.delete_template(admin_user, "youth-achievement")

    assert session.get(CertificateTemplate, "youth-achievement") is None


@pytest.mark.parametrize("call", [
    lambda t, actor: t.get_template("missing"),
    lambda t, actor: t.update_template(actor, "missing", TemplateUpdate(description="x")),
    lambda t, actor: t.delete_template(actor, "missing"),
])
def test_unknown_template_is_not_found(templates, admin_user, call):
    with pytest.raises(HTTPException) as exc:
        call(templates, admin_user)

    assert exc.value.status_code == 404


def test_organization_id_is_derived_from_name(seeded, session, super_admin_user):
    organizations = OrganizationService(session)

    org = organizations.create_organization(
        super_admin_user, OrganizationCreate(name="Grace Chapel"))

    assert org.id == "grace-chapel"
    assert org.slug == "grace-chapel"
    assert [o.id for o in organizations.list_organizations()] == ["fom", "grace-chapel"]


def test_duplicate_organization_is_a_conflict(seeded, session, super_admin_user):
    organizations = OrganizationService(session)

    with pytest.raises(HTTPException) as exc:
        organizations.create_organization(
            super_admin_user, OrganizationCreate(id="FOM", name="Another Fishers"))

    assert exc.value.status_code == 409


def test_new_organization_prefixes_its_certificate_ids(seeded, session, super_admin_user):
    OrganizationService(session).create_organization(
        super_admin_user, OrganizationCreate(id="gcm", name="Grace Chapel"))

    cert = seeded.issue_certificate(super_admin_user, CertificateIssue(
        template="Certificate of Appreciation",
        recipient_name="Ruth Doe",
        recipient_email="ruth@example.com",
        organization_id="gcm",
    ))

    assert cert.id.startswith("GCM-")
    assert cert.organization_id == "gcm"
