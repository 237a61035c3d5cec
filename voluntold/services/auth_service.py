import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from voluntold.core.errors import Forbidden, Unauthenticated, ValidationFailed
from voluntold.core.security import verify_password
from voluntold.models.tenants import Credential, Role, Tenant, UserProfile
from voluntold.schemas.auth import AccessOption, LoginOut, OrganizationOption, RoleCheckOut
from voluntold.services.authorization import SessionPrincipal
from voluntold.services.member_service import normalize_email
from voluntold.services.password_service import find_admin_profiles
from voluntold.services.tenant_service import list_tenants

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    body: LoginOut
    principal: SessionPrincipal | None


def _authenticate(db: Session, email: str, password: str) -> Credential:
    credential = db.scalars(select(Credential).where(Credential.email == email)).first()
    if credential is None or not verify_password(password, credential.password_hash):
        raise Unauthenticated("Invalid email or password")
    return credential


def admin_login(
    db: Session, email: str, password: str, selected_tenant_id: int | None = None
) -> LoginResult:
    """Check the credential and pick the organization the session is bound to.

    `principal` is None when the admin must still choose an organization.
    """
    email = normalize_email(email)
    _authenticate(db, email, password)

    profiles = find_admin_profiles(db, email)
    if not profiles:
        raise Forbidden("Access denied. No administrator account found.")

    super_admin = next((p for p in profiles if p.role == Role.super_admin), None)
    if super_admin is not None:
        if selected_tenant_id is None:
            return LoginResult(
                body=LoginOut(
                    requires_org_selection=True,
                    organizations=[
                        OrganizationOption(
                            tenant_id=t.id,
                            tenant_name=t.name,
                            tenant_slug=t.slug,
                            role=Role.super_admin.value,
                        )
                        for t in list_tenants(db)
                    ],
                    user_role=Role.super_admin.value,
                ),
                principal=SessionPrincipal.from_profile(super_admin),
            )
        tenant = db.get(Tenant, selected_tenant_id)
        if tenant is None:
            raise ValidationFailed("Invalid organization selection")
        return LoginResult(
            body=LoginOut(
                tenant_id=tenant.id,
                organization_name=tenant.name,
                user_role=Role.super_admin.value,
            ),
            principal=SessionPrincipal.from_profile(super_admin, tenant_id=tenant.id),
        )

    if selected_tenant_id is None and len(profiles) > 1:
        return LoginResult(
            body=LoginOut(
                requires_org_selection=True,
                organizations=[
                    OrganizationOption(
                        tenant_id=p.tenant.id,
                        tenant_name=p.tenant.name,
                        tenant_slug=p.tenant.slug,
                        role=p.role,
                    )
                    for p in profiles
                ],
                user_role=Role.tenant_admin.value,
            ),
            principal=None,
        )

    profile = profiles[0]
    if selected_tenant_id is not None:
        profile = next((p for p in profiles if p.tenant_id == selected_tenant_id), None)
        if profile is None:
            raise Forbidden("You do not have admin access to this organization")

    logger.info("Admin %s signed in to tenant %s", profile.id, profile.tenant_id)
    return LoginResult(
        body=LoginOut(
            tenant_id=profile.tenant_id,
            organization_name=profile.tenant.name,
            user_role=profile.role,
        ),
        principal=SessionPrincipal.from_profile(profile),
    )


def check_role(db: Session, email: str) -> RoleCheckOut:
    profiles = db.scalars(
        select(UserProfile)
        .where(UserProfile.email == normalize_email(email))
        .order_by(UserProfile.tenant_id)
    ).all()

    options: list[AccessOption] = []
    for profile in profiles:
        if profile.role == Role.super_admin:
            options.append(
                AccessOption(
                    id="super_admin",
                    name="Super Admin Dashboard",
                    access_type=Role.super_admin.value,
                )
            )
        if profile.tenant is None:
            continue
        if profile.role == Role.tenant_admin:
            options.append(
                AccessOption(
                    id=f"admin-{profile.tenant_id}",
                    name=f"{profile.tenant.name} (Admin)",
                    access_type=Role.tenant_admin.value,
                    tenant_id=profile.tenant_id,
                )
            )
        options.append(
            AccessOption(
                id=f"member-{profile.tenant_id}",
                name=f"{profile.tenant.name} (Member Portal)",
                access_type=Role.member.value,
                tenant_id=profile.tenant_id,
            )
        )

    return RoleCheckOut(
        has_admin_access=any(o.access_type != Role.member for o in options),
        has_member_access=any(o.access_type == Role.member for o in options),
        access_options=options,
        total_options=len(options),
    )
