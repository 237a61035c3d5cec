import pytest
from conftest import make_profile
from sqlalchemy import select

from voluntold.core.errors import Conflict
from voluntold.core.security import create_portal_session
from voluntold.models.projects import Opportunity, Project, Signup
from voluntold.models.tokens import TokenPurpose
from voluntold.services import signup_service, token_service


@pytest.fixture
def opportunity(db_session, tenant) -> Opportunity:
    project = Project(tenant_id=tenant.id, name="Park Cleanup")
    db_session.add(project)
    db_session.flush()
    opp = Opportunity(
        tenant_id=tenant.id,
        project_id=project.id,
        title="Pick up litter",
        volunteers_needed=2,
        skills_required=["gloves"],
    )
    db_session.add(opp)
    db_session.commit()
    db_session.refresh(opp)
    return opp


def _signup_token(db_session, opportunity, email, name="Morgan Member"):
    return token_service.issue(
        db_session,
        TokenPurpose.opportunity_signup,
        email,
        tenant_id=opportunity.tenant_id,
        context_ref=opportunity.id,
        subject_name=name,
    )


def test_describe_shows_opportunity_and_status(client, db_session, tenant, opportunity):
    issued = _signup_token(db_session, opportunity, "member@example.com")

    response = client.get(f"/signup/{issued.raw_token}")

    assert response.status_code == 200
    body = response.json()
    assert body["member_name"] == "Morgan Member"
    assert body["tenant_name"] == tenant.name
    assert body["token_status"] == "valid"
    assert body["existing_signup"] is False
    assert body["opportunity"]["project_name"] == "Park Cleanup"
    assert body["opportunity"]["spots_remaining"] == 2
    assert body["opportunity"]["skills_required"] == ["gloves"]


def test_confirm_claims_a_spot_and_consumes_token(client, db_session, opportunity):
    issued = _signup_token(db_session, opportunity, "member@example.com")

    response = client.post(f"/signup/{issued.raw_token}")

    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"
    db_session.refresh(opportunity)
    assert opportunity.filled_count == 1
    signup = db_session.execute(select(Signup)).scalar_one()
    assert signup.member_email == "member@example.com"
    assert signup.token_id == issued.token.id

    again = client.post(f"/signup/{issued.raw_token}")
    assert again.status_code == 410

    described = client.get(f"/signup/{issued.raw_token}")
    assert described.status_code == 200
    assert described.json()["token_status"] == "used"
    assert described.json()["existing_signup"] is True


def test_existing_signup_is_refreshed_without_second_claim(client, db_session, opportunity):
    first = _signup_token(db_session, opportunity, "member@example.com")
    client.post(f"/signup/{first.raw_token}")
    second = _signup_token(db_session, opportunity, "member@example.com")

    response = client.post(f"/signup/{second.raw_token}")

    assert response.status_code == 200
    assert response.json()["status"] == "updated"
    db_session.refresh(opportunity)
    assert opportunity.filled_count == 1
    assert len(db_session.scalars(select(Signup)).all()) == 1


def test_claim_at_full_capacity_is_rejected(client, db_session, opportunity):
    for email in ("one@example.com", "two@example.com"):
        issued = _signup_token(db_session, opportunity, email)
        assert client.post(f"/signup/{issued.raw_token}").status_code == 200

    late = _signup_token(db_session, opportunity, "three@example.com")
    response = client.post(f"/signup/{late.raw_token}")

    assert response.status_code == 409
    assert response.json()["code"] == "OPPORTUNITY_FULL"
    db_session.refresh(opportunity)
    assert opportunity.filled_count == opportunity.volunteers_needed == 2
    db_session.refresh(late.token)
    assert late.token.consumed_at is None


def test_capacity_never_exceeded_by_direct_claims(db_session, opportunity):
    opportunity.volunteers_needed = 1
    db_session.commit()

    assert signup_service.claim_spot(db_session, opportunity, "a@example.com") == "confirmed"
    db_session.commit()
    with pytest.raises(Conflict):
        signup_service.claim_spot(db_session, opportunity, "b@example.com")

    db_session.refresh(opportunity)
    assert opportunity.filled_count == 1


def test_cancelled_signup_is_reconfirmed_with_claim(db_session, opportunity):
    db_session.add(
        Signup(
            opportunity_id=opportunity.id,
            tenant_id=opportunity.tenant_id,
            member_email="member@example.com",
            status="cancelled",
        )
    )
    db_session.commit()

    status = signup_service.claim_spot(db_session, opportunity, "member@example.com")
    db_session.commit()

    assert status == "confirmed"
    db_session.refresh(opportunity)
    assert opportunity.filled_count == 1
    signup = db_session.execute(select(Signup)).scalar_one()
    assert signup.status == "confirmed"


def test_signup_token_for_other_tenant_opportunity_is_not_found(
    client, db_session, opportunity, other_tenant
):
    issued = token_service.issue(
        db_session,
        TokenPurpose.opportunity_signup,
        "member@example.com",
        tenant_id=other_tenant.id,
        context_ref=opportunity.id,
    )

    response = client.post(f"/signup/{issued.raw_token}")

    assert response.status_code == 404
    db_session.refresh(opportunity)
    assert opportunity.filled_count == 0


def test_portal_signup_requires_member_of_same_tenant(client, db_session, other_tenant, opportunity):
    outsider = make_profile(db_session, "outsider@example.com", other_tenant)
    client.cookies.set(
        "portal_session",
        create_portal_session(str(outsider.id), other_tenant.id),
        path="/",
    )

    response = client.post(f"/portal/opportunities/{opportunity.id}/signup")

    assert response.status_code == 404


def test_racing_claims_for_the_last_spot_only_one_wins(
    db_session, second_session, opportunity
):
    opportunity.filled_count = opportunity.volunteers_needed - 1
    db_session.commit()
    requests = [
        (db_session, "olive@example.com"),
        (second_session, "pat@example.com"),
    ]
    # Both requests read the opportunity before either writes.
    loaded = [session.get(Opportunity, opportunity.id) for session, _ in requests]
    assert [o.spots_remaining for o in loaded] == [1, 1]
    for session, email in requests:
        assert signup_service.find_signup(session, opportunity.id, email) is None

    outcomes = []
    for (session, email), opp in zip(requests, loaded, strict=True):
        try:
            outcomes.append(signup_service.claim_spot(session, opp, email))
        except Conflict as exc:
            outcomes.append(exc.code)
            continue
        session.commit()

    assert outcomes == ["confirmed", "OPPORTUNITY_FULL"]
    db_session.refresh(opportunity)
    assert opportunity.filled_count == opportunity.volunteers_needed
    [signup] = db_session.scalars(select(Signup)).all()
    assert signup.member_email == "olive@example.com"
