from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from conftest import make_profile, raw_token_from
from sqlalchemy import select

from voluntold.core.errors import Gone
from voluntold.core.security import create_portal_session
from voluntold.models.polls import Poll, PollResponse
from voluntold.models.projects import EmailBroadcast
from voluntold.models.tenants import Group, GroupMember, Role
from voluntold.models.tokens import AccessToken, TokenPurpose
from voluntold.schemas.polls import PollCreate
from voluntold.services import poll_service, token_service


@pytest.fixture
def members(db_session, tenant, member):
    other = make_profile(db_session, "olive@example.com", tenant, Role.member, "Olive", "Oak")
    return [member, other]


def _create_poll(client, tenant, **overrides):
    payload = {"title": "Picnic", "question": "Will you come to the picnic?", **overrides}
    return client.post(f"/tenants/{tenant.id}/polls", json=payload)


def _vote_links(dispatcher, email):
    [message] = dispatcher.to(email)
    return {parse_qs(urlparse(link).query)["response"][0]: link for link in message.links}


def test_create_poll_precreates_response_rows(admin_client, db_session, tenant, members):
    client, admin = admin_client

    response = _create_poll(client, tenant)

    assert response.status_code == 201
    body = response.json()
    # All profiles in the tenant are reached, admins included.
    assert body["recipients"] == 3
    rows = db_session.scalars(
        select(PollResponse).where(PollResponse.poll_id == body["id"])
    ).all()
    assert {r.member_email for r in rows} == {m.email for m in members} | {admin.email}
    assert all(r.response is None for r in rows)


def test_create_poll_for_groups(admin_client, db_session, tenant, members):
    client, _ = admin_client
    group = Group(tenant_id=tenant.id, name="Board")
    db_session.add(group)
    db_session.flush()
    db_session.add(GroupMember(group_id=group.id, profile_id=members[1].id))
    db_session.commit()

    response = _create_poll(
        client, tenant, target_all_members=False, target_groups=[group.id]
    )

    assert response.status_code == 201
    assert response.json()["recipients"] == 1


def test_multiple_choice_needs_two_options(admin_client, tenant, members):
    client, _ = admin_client

    response = _create_poll(client, tenant, poll_type="multiple_choice", options=["Only"])

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_send_poll_emails_one_link_per_option(
    admin_client, db_session, dispatcher, tenant, members
):
    client, admin = admin_client
    poll_id = _create_poll(client, tenant).json()["id"]

    response = client.post(f"/tenants/{tenant.id}/polls/{poll_id}/send")

    assert response.status_code == 200
    body = response.json()
    assert body["sent"] == 3
    assert body["failed"] == 0
    assert body["targeting_info"] == "All Members"
    links = _vote_links(dispatcher, members[0].email)
    assert set(links) == {"yes", "no"}
    assert all(link.startswith("https://frontend.local/vote/") for link in links.values())

    row = db_session.scalars(
        select(PollResponse).where(PollResponse.member_email == members[0].email)
    ).one()
    token = db_session.get(AccessToken, row.token_id)
    assert token.purpose == TokenPurpose.poll_response
    assert token.context_ref == poll_id
    poll = db_session.get(Poll, poll_id)
    assert poll.last_emailed_at is not None
    broadcast = db_session.execute(select(EmailBroadcast)).scalar_one()
    assert broadcast.broadcast_type == "poll"
    assert broadcast.successful == 3


def test_send_poll_failure_revokes_that_members_token(
    admin_client, db_session, dispatcher, tenant, members
):
    client, _ = admin_client
    poll_id = _create_poll(client, tenant).json()["id"]
    dispatcher.fail_for.add(members[1].email)

    response = client.post(f"/tenants/{tenant.id}/polls/{poll_id}/send")

    body = response.json()
    assert body["sent"] == 2
    assert body["failed"] == 1
    assert body["failed_emails"] == [members[1].email]
    tokens = db_session.scalars(
        select(AccessToken).where(AccessToken.subject_email == members[1].email)
    ).all()
    assert tokens == []


def test_vote_recorded_then_unchanged_then_changed(
    admin_client, db_session, dispatcher, tenant, members
):
    client, _ = admin_client
    poll_id = _create_poll(client, tenant).json()["id"]
    client.post(f"/tenants/{tenant.id}/polls/{poll_id}/send")
    raw = raw_token_from(_vote_links(dispatcher, members[0].email)["yes"])

    first = client.post(f"/vote/{raw}", json={"response": "yes"})
    assert first.status_code == 200
    assert first.json()["outcome"] == "recorded"
    row = db_session.scalars(
        select(PollResponse).where(PollResponse.member_email == members[0].email)
    ).one()
    db_session.refresh(row)
    responded_at = row.responded_at
    poll = db_session.get(Poll, poll_id)
    db_session.refresh(poll)
    assert poll.total_responses == 1

    same = client.post(f"/vote/{raw}", json={"response": "YES"})
    assert same.json()["outcome"] == "unchanged"
    db_session.refresh(row)
    db_session.refresh(poll)
    assert row.responded_at == responded_at
    assert row.updated_at is None
    assert poll.total_responses == 1

    changed = client.post(f"/vote/{raw}", json={"response": "no"})
    assert changed.json()["outcome"] == "changed"
    db_session.refresh(row)
    db_session.refresh(poll)
    assert row.response == "no"
    assert row.responded_at == responded_at
    assert row.updated_at is not None
    assert poll.total_responses == 1


def test_vote_with_invalid_option_is_rejected(admin_client, dispatcher, tenant, members):
    client, _ = admin_client
    poll_id = _create_poll(client, tenant).json()["id"]
    client.post(f"/tenants/{tenant.id}/polls/{poll_id}/send")
    raw = raw_token_from(_vote_links(dispatcher, members[0].email)["no"])

    response = client.post(f"/vote/{raw}", json={"response": "maybe"})

    assert response.status_code == 400


def test_vote_on_closed_poll_is_gone(admin_client, dispatcher, tenant, members):
    client, _ = admin_client
    poll_id = _create_poll(client, tenant).json()["id"]
    client.post(f"/tenants/{tenant.id}/polls/{poll_id}/send")
    raw = raw_token_from(_vote_links(dispatcher, members[0].email)["yes"])

    closed = client.post(f"/tenants/{tenant.id}/polls/{poll_id}/close")
    assert closed.json()["status"] == "closed"

    response = client.post(f"/vote/{raw}", json={"response": "yes"})
    assert response.status_code == 410
    assert response.json()["code"] == "POLL_CLOSED"


def test_expired_poll_transitions_to_closed(db_session, admin_actor, tenant, members):
    poll, _ = poll_service.create_poll(
        db_session,
        admin_actor,
        tenant.id,
        PollCreate(
            title="Dinner",
            question="Dinner on Friday?",
            expires_at=token_service.utcnow() + timedelta(days=1),
        ),
    )
    row = db_session.scalars(
        select(PollResponse).where(
            PollResponse.poll_id == poll.id,
            PollResponse.member_email == members[0].email,
        )
    ).one()

    with pytest.raises(Gone) as exc:
        poll_service.record_vote(
            db_session, row, "yes", now=token_service.utcnow() + timedelta(days=2)
        )
    assert exc.value.code == "POLL_EXPIRED"
    assert poll.status == "closed"


def test_vote_link_after_poll_expiry_closes_the_poll(
    db_session, dispatcher, throttle, admin_actor, tenant, members
):
    poll, _ = poll_service.create_poll(
        db_session,
        admin_actor,
        tenant.id,
        PollCreate(
            title="Dinner",
            question="Dinner on Friday?",
            expires_at=token_service.utcnow() + timedelta(days=1),
        ),
    )
    poll_service.send_poll_emails(
        db_session, dispatcher, throttle, admin_actor, tenant.id, poll.id
    )
    link = _vote_links(dispatcher, members[0].email)["yes"]

    with pytest.raises(Gone) as exc:
        poll_service.vote(
            db_session,
            raw_token_from(link),
            "yes",
            now=token_service.utcnow() + timedelta(days=2),
        )

    assert exc.value.code == "POLL_EXPIRED"
    db_session.refresh(poll)
    assert poll.status == "closed"


def test_vote_tokens_capped_at_poll_expiry(
    db_session, dispatcher, throttle, admin_actor, tenant, members
):
    expires_at = token_service.utcnow() + timedelta(days=5)
    poll, _ = poll_service.create_poll(
        db_session,
        admin_actor,
        tenant.id,
        PollCreate(title="Dinner", question="Dinner on Friday?", expires_at=expires_at),
    )

    poll_service.send_poll_emails(
        db_session, dispatcher, throttle, admin_actor, tenant.id, poll.id
    )

    for token in db_session.scalars(select(AccessToken)):
        assert token_service.as_utc(token.expires_at) <= expires_at


def test_results_hide_emails_for_anonymous_polls(
    admin_client, db_session, dispatcher, tenant, members
):
    client, _ = admin_client
    poll_id = _create_poll(client, tenant, is_anonymous=True).json()["id"]
    client.post(f"/tenants/{tenant.id}/polls/{poll_id}/send")
    raw = raw_token_from(_vote_links(dispatcher, members[0].email)["yes"])
    client.post(f"/vote/{raw}", json={"response": "yes"})

    response = client.get(f"/tenants/{tenant.id}/polls/{poll_id}/results")

    assert response.status_code == 200
    body = response.json()
    assert body["counts"] == {"yes": 1, "no": 0}
    assert body["not_responded"] == 2
    assert body["responses"] == [
        {
            "member_email": None,
            "member_name": None,
            "response": "yes",
            "responded_at": body["responses"][0]["responded_at"],
        }
    ]


def test_poll_anonymity_is_frozen(db_session, admin_actor, tenant, members):
    poll, _ = poll_service.create_poll(
        db_session,
        admin_actor,
        tenant.id,
        PollCreate(title="Dinner", question="Dinner on Friday?"),
    )

    with pytest.raises(ValueError):
        poll.is_anonymous = True


def test_member_votes_from_portal_session(client, db_session, admin_actor, tenant, members):
    poll, _ = poll_service.create_poll(
        db_session,
        admin_actor,
        tenant.id,
        PollCreate(
            title="Colour",
            question="Pick a shirt colour",
            poll_type="multiple_choice",
            options=["Red", "Blue"],
        ),
    )
    client.cookies.set(
        "portal_session",
        create_portal_session(str(members[0].id), tenant.id),
        path="/",
    )

    response = client.post(f"/portal/polls/{poll.id}/vote", json={"response": "Blue"})

    assert response.status_code == 200
    assert response.json()["outcome"] == "recorded"
    db_session.refresh(poll)
    assert poll.total_responses == 1
