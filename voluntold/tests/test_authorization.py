import pytest
from sqlalchemy import select

from voluntold.core.errors import Forbidden
from voluntold.core.security import create_portal_session
from voluntold.models.tenants import Role, UserProfile
from voluntold.models.tokens import TokenPurpose
from voluntold.services import token_service
from voluntold.services.authorization import (
    ActingContext,
    Action,
    SessionPrincipal,
    TokenCapability,
    authorize,
)


def _admin(role: Role, tenant_id: int | None) -> ActingContext:
    return ActingContext(
        email="admin@example.com", tenant_id=tenant_id, scope="admin", role=role.value
    )


def test_tenant_admin_may_act_on_own_tenant():
    authorize(_admin(Role.tenant_admin, 1), Action.manage_members, 1)


def test_tenant_admin_of_a_cannot_act_on_b():
    with pytest.raises(Forbidden):
        authorize(_admin(Role.tenant_admin, 1), Action.manage_members, 2)


def test_tenant_admin_cannot_manage_tenants():
    with pytest.raises(Forbidden):
        authorize(_admin(Role.tenant_admin, 1), Action.manage_tenants, 1)


def test_super_admin_may_act_anywhere():
    actor = _admin(Role.super_admin, None)
    for action in Action:
        authorize(actor, action, 7)
    authorize(actor, Action.manage_tenants, None)


def test_member_role_is_never_authorized():
    with pytest.raises(Forbidden):
        authorize(_admin(Role.member, 1), Action.manage_polls, 1)


def test_token_capability_is_never_an_admin(db_session, tenant):
    issued = token_service.issue(
        db_session,
        TokenPurpose.member_portal_access,
        "member@example.com",
        tenant_id=tenant.id,
    )
    actor = TokenCapability.from_token(issued.token).acting_context()

    assert actor.email == "member@example.com"
    assert actor.tenant_id == tenant.id
    assert actor.scope == TokenPurpose.member_portal_access
    with pytest.raises(Forbidden):
        authorize(actor, Action.manage_members, tenant.id)


def test_session_principal_uses_selected_tenant_for_super_admin(super_admin, tenant):
    actor = SessionPrincipal.from_profile(super_admin, tenant_id=tenant.id).acting_context()
    assert actor.tenant_id == tenant.id
    assert actor.profile_id == super_admin.id


def test_admin_endpoints_require_session(client, tenant):
    response = client.get(f"/tenants/{tenant.id}/members")

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHENTICATED"


def test_tenant_admin_cannot_read_other_tenant_roster(admin_client, other_tenant):
    client, _ = admin_client
    response = client.get(f"/tenants/{other_tenant.id}/members")

    assert response.status_code == 403
    assert response.json() == {
        "error": "You do not have access to this organization",
        "code": "FORBIDDEN",
    }


def test_forbidden_request_mutates_nothing(admin_client, db_session, other_tenant):
    client, _ = admin_client
    response = client.post(
        f"/tenants/{other_tenant.id}/members/bulk",
        json={"emails": "new@example.com"},
    )

    assert response.status_code == 403
    assert (
        db_session.scalars(
            select(UserProfile).where(UserProfile.tenant_id == other_tenant.id)
        ).all()
        == []
    )


def test_portal_session_is_not_an_admin_session(client, member, tenant):
    client.cookies.set(
        "access_token", create_portal_session(str(member.id), tenant.id), path="/"
    )
    response = client.get(f"/tenants/{tenant.id}/members")

    assert response.status_code == 401
