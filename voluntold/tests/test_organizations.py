import pytest
from sqlalchemy import select

from voluntold.models.tenants import OrganizationApplication


@pytest.fixture
def application():
    return {
        "name": "Jordan Lee",
        "email": "Jordan@Example.com",
        "phone": "555-0100",
        "club_name": "Northside Optimists",
        "description": "Youth mentoring and park cleanups.",
        "member_count": "25-50",
        "community": "Northside",
    }


def test_application_is_stored_and_announced(client, db_session, dispatcher, application):
    response = client.post("/organizations/apply", json=application)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    stored = db_session.get(OrganizationApplication, body["id"])
    assert stored.email == "jordan@example.com"
    assert stored.club_name == "Northside Optimists"

    [email] = dispatcher.to("platform@example.com")
    assert email.subject == "New Organization Signup: Northside Optimists"
    assert "<jordan@example.com>" in email.text
    assert "&lt;jordan@example.com&gt;" in email.html


def test_missing_field_is_rejected(client, db_session, dispatcher, application):
    del application["community"]

    response = client.post("/organizations/apply", json=application)

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert "community" in response.json()["error"]
    assert db_session.scalars(select(OrganizationApplication)).all() == []
    assert dispatcher.sent == []


def test_notification_failure_still_accepts(client, db_session, dispatcher, application):
    dispatcher.fail_all = True

    response = client.post("/organizations/apply", json=application)

    assert response.status_code == 201
    assert len(db_session.scalars(select(OrganizationApplication)).all()) == 1
