from conftest import make_profile
from sqlalchemy import select

from voluntold.models.tenants import GroupMember, Role, UserProfile
from voluntold.models.tokens import AccessToken, TokenPurpose
from voluntold.services import member_service, token_service


def _tenant_emails(db_session, tenant):
    return set(
        db_session.scalars(
            select(UserProfile.email).where(UserProfile.tenant_id == tenant.id)
        )
    )


def test_bulk_import_skips_existing_members(admin_client, db_session, tenant):
    client, _ = admin_client
    for i in range(3):
        make_profile(db_session, f"member{i}@example.com", tenant)
    rows = ["email,first_name,last_name,phone,position,address"]
    rows += [f"Member{i}@Example.com,First{i},Last{i},555-000{i},,1 Main St" for i in range(10)]

    response = client.post(
        f"/tenants/{tenant.id}/members/bulk", json={"csv_text": "\n".join(rows)}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["processed"] == 10
    assert (body["success"], body["skipped"], body["errors"]) == (7, 3, 0)
    added = db_session.scalars(
        select(UserProfile).where(UserProfile.email == "member9@example.com")
    ).one()
    assert added.first_name == "First9"
    assert added.phone_number == "555-0009"
    assert added.position is None
    assert added.role == Role.member


def test_bulk_import_counts_invalid_rows_and_batch_duplicates(admin_client, db_session, tenant):
    client, admin = admin_client
    csv_text = "\n".join(
        [
            "new@example.com,New,Person",
            "not-an-email,Bad,Row",
            "NEW@example.com,Dup,Row",
            "",
            "another@example.com",
        ]
    )

    response = client.post(f"/tenants/{tenant.id}/members/bulk", json={"csv_text": csv_text})

    body = response.json()
    assert (body["success"], body["skipped"], body["errors"]) == (2, 1, 1)
    assert _tenant_emails(db_session, tenant) == {
        admin.email,
        "new@example.com",
        "another@example.com",
    }


def test_bulk_import_accepts_comma_separated_emails(admin_client, db_session, tenant):
    client, _ = admin_client

    response = client.post(
        f"/tenants/{tenant.id}/members/bulk",
        json={"emails": "a@example.com, b@example.com ,,c@example.com"},
    )

    assert response.json()["success"] == 3


def test_bulk_import_requires_a_source(admin_client, tenant):
    client, _ = admin_client

    response = client.post(f"/tenants/{tenant.id}/members/bulk", json={})

    assert response.status_code == 400


def test_parse_member_rows_without_header():
    rows = member_service.parse_member_rows("x@example.com,X,Y\ny@example.com")

    assert rows == [
        {"email": "x@example.com", "first_name": "X", "last_name": "Y"},
        {"email": "y@example.com"},
    ]


def test_roster_is_sorted_by_name(admin_client, db_session, tenant):
    client, _ = admin_client
    make_profile(db_session, "zed@example.com", tenant, Role.member, "Zed", "Adams")
    make_profile(db_session, "amy@example.com", tenant, Role.member, "Amy", "Young")

    response = client.get(f"/tenants/{tenant.id}/members")

    assert response.status_code == 200
    names = [m["last_name"] for m in response.json()]
    assert names == sorted(names)


def test_elevate_member_sends_setup_email(
    admin_client, db_session, dispatcher, tenant, member
):
    client, _ = admin_client

    response = client.post(
        f"/tenants/{tenant.id}/members/{member.id}/elevate",
        json={"custom_message": "Welcome to the board!"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["email_sent"] is True
    assert body["member"]["role"] == "tenant_admin"
    [email] = dispatcher.to(member.email)
    assert "Welcome to the board!" in email.text
    assert "Alex Admin" in email.text
    token = db_session.execute(select(AccessToken)).scalar_one()
    assert token.purpose == TokenPurpose.admin_password_setup


def test_elevation_email_failure_keeps_role_and_drops_token(
    admin_client, db_session, dispatcher, tenant, member
):
    client, _ = admin_client
    dispatcher.fail_all = True

    response = client.post(f"/tenants/{tenant.id}/members/{member.id}/elevate", json={})

    assert response.status_code == 200
    assert response.json()["email_sent"] is False
    db_session.refresh(member)
    assert member.role == Role.tenant_admin
    assert db_session.scalars(select(AccessToken)).all() == []


def test_elevating_an_admin_conflicts(admin_client, tenant):
    client, admin = admin_client

    response = client.post(f"/tenants/{tenant.id}/members/{admin.id}/elevate", json={})

    assert response.status_code == 409


def test_groups_and_membership(admin_client, db_session, tenant, member):
    client, _ = admin_client

    created = client.post(f"/tenants/{tenant.id}/groups", json={"name": "Board"})
    assert created.status_code == 201
    group_id = created.json()["id"]

    added = client.post(
        f"/tenants/{tenant.id}/groups/{group_id}/members",
        json={"profile_ids": [member.id, member.id]},
    )
    assert added.json() == {"added": 1, "already_members": 0}

    again = client.post(
        f"/tenants/{tenant.id}/groups/{group_id}/members",
        json={"profile_ids": [member.id]},
    )
    assert again.json() == {"added": 0, "already_members": 1}
    assert len(db_session.scalars(select(GroupMember)).all()) == 1


def test_group_members_must_belong_to_tenant(admin_client, db_session, tenant, other_tenant):
    client, _ = admin_client
    outsider = make_profile(db_session, "outsider@example.com", other_tenant)
    group_id = client.post(f"/tenants/{tenant.id}/groups", json={"name": "Board"}).json()["id"]

    response = client.post(
        f"/tenants/{tenant.id}/groups/{group_id}/members",
        json={"profile_ids": [outsider.id]},
    )

    assert response.status_code == 404


def test_failed_elevation_email_leaves_earlier_setup_link_alone(
    admin_client, db_session, dispatcher, tenant, member
):
    client, _ = admin_client
    earlier = token_service.issue(
        db_session, TokenPurpose.admin_password_setup, member.email, tenant_id=tenant.id
    )
    dispatcher.fail_all = True

    response = client.post(f"/tenants/{tenant.id}/members/{member.id}/elevate", json={})

    assert response.json()["email_sent"] is False
    [token] = db_session.scalars(select(AccessToken)).all()
    assert token.id == earlier.token.id
    assert token.consumed_at is None


def test_elevation_email_retires_earlier_setup_link(
    admin_client, db_session, dispatcher, tenant, member
):
    client, _ = admin_client
    earlier = token_service.issue(
        db_session, TokenPurpose.admin_password_setup, member.email, tenant_id=tenant.id
    )

    client.post(f"/tenants/{tenant.id}/members/{member.id}/elevate", json={})

    db_session.refresh(earlier.token)
    assert earlier.token.consumed_at is not None
    newest = db_session.scalars(
        select(AccessToken).where(AccessToken.id != earlier.token.id)
    ).one()
    assert newest.consumed_at is None
