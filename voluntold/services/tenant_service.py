import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from voluntold.core.config import get_settings
from voluntold.core.errors import Conflict
from voluntold.models.tenants import OrganizationApplication, Role, Tenant, UserProfile
from voluntold.models.tokens import TokenPurpose
from voluntold.schemas.tenants import OrganizationApplicationIn, TenantCreate
from voluntold.services.authorization import ActingContext, Action, authorize
from voluntold.services.email_service import EmailDeliveryError, EmailDispatcher
from voluntold.services.email_templates import renderer
from voluntold.services.member_service import normalize_email
from voluntold.services.password_service import send_password_email

logger = logging.getLogger(__name__)


def create_tenant(
    db: Session,
    dispatcher: EmailDispatcher,
    actor: ActingContext,
    payload: TenantCreate,
) -> tuple[Tenant, bool | None]:
    """Create a tenant, optionally with its first admin.

    Returns the tenant and whether the admin's setup email went out (None
    when no admin was requested).
    """
    authorize(actor, Action.manage_tenants, None)
    if db.scalars(select(Tenant.id).where(Tenant.slug == payload.slug)).first():
        raise Conflict("An organization with this slug already exists")

    tenant = Tenant(name=payload.name.strip(), slug=payload.slug)
    db.add(tenant)
    db.flush()

    admin = None
    if payload.admin is not None:
        admin = UserProfile(
            email=normalize_email(payload.admin.email),
            tenant_id=tenant.id,
            first_name=payload.admin.first_name,
            last_name=payload.admin.last_name,
            role=Role.tenant_admin.value,
        )
        db.add(admin)
    db.commit()
    db.refresh(tenant)
    logger.info("Tenant %s (%s) created by %s", tenant.id, tenant.slug, actor.email)

    if admin is None:
        return tenant, None
    try:
        send_password_email(
            db,
            dispatcher,
            admin,
            TokenPurpose.admin_password_setup,
            created_by=actor.profile_id,
        )
    except EmailDeliveryError:
        return tenant, False
    return tenant, True


def list_tenants(db: Session) -> list[Tenant]:
    return list(db.scalars(select(Tenant).order_by(Tenant.name)))


def submit_application(
    db: Session, dispatcher: EmailDispatcher, payload: OrganizationApplicationIn
) -> OrganizationApplication:
    application = OrganizationApplication(
        name=payload.name.strip(),
        email=normalize_email(payload.email),
        phone=payload.phone.strip(),
        club_name=payload.club_name.strip(),
        description=payload.description.strip(),
        member_count=payload.member_count.strip(),
        community=payload.community.strip(),
    )
    db.add(application)
    db.commit()
    db.refresh(application)

    admin_email = get_settings().admin_email
    if not admin_email:
        logger.info("ADMIN_EMAIL not set; skipping application notification")
        return application

    message = renderer.render(
        "organization_application",
        club_name=application.club_name,
        community=application.community,
        name=application.name,
        email=application.email,
        phone=application.phone,
        member_count=application.member_count,
        description=application.description,
    )
    try:
        dispatcher.send(admin_email, message.subject, message.html, message.text)
    except EmailDeliveryError:
        logger.exception("Failed to notify admin about application %s", application.id)
    return application
