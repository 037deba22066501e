"""Tests for application intake and moderation."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from resolve_api.db.models import Application, Notification

APPLICATION = {
    "fullName": "Jo Tradie",
    "phone": "0400 123 456",
    "email": "jo@example.com",
    "trade": "plumber",
    "state": "nsw",
    "issueType": "unpaid_payment",
    "amount": "8500.00",
    "description": "Final invoice unpaid for 60 days.",
}


@pytest.fixture
def mock_email():
    service = MagicMock()
    with patch("resolve_api.routers.applications.get_email_service", return_value=service):
        yield service


def test_anonymous_submission_is_pending(test_client: TestClient, db_session: Session, mock_email):
    resp = test_client.post("/api/applications", json=APPLICATION)

    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "pending"
    assert data["workflow_stage"] == "submitted"
    assert data["user_id"] is None
    assert db_session.get(Application, data["id"]) is not None


def test_submission_sends_welcome_and_admin_emails(test_client: TestClient, mock_email):
    resp = test_client.post("/api/applications", json=APPLICATION)

    app_id = resp.json()["id"]
    mock_email.send_welcome_email.assert_called_once_with("jo@example.com", "Jo Tradie", app_id)
    mock_email.send_admin_new_application_email.assert_called_once_with(app_id, "plumber", "nsw")


def test_email_failure_does_not_fail_submission(test_client: TestClient, mock_email):
    mock_email.send_welcome_email.side_effect = RuntimeError("SES down")

    resp = test_client.post("/api/applications", json=APPLICATION)

    assert resp.status_code == 201


def test_signed_in_submission_is_linked(test_client: TestClient, make_user, mock_email):
    user, headers = make_user()

    resp = test_client.post("/api/applications", json=APPLICATION, headers=headers)

    assert resp.json()["user_id"] == user.id


def test_submission_notifies_admins(test_client: TestClient, make_user, db_session: Session, mock_email):
    admin, _ = make_user(role="admin")

    test_client.post("/api/applications", json=APPLICATION)

    notes = db_session.query(Notification).filter(Notification.user_id == admin.id).all()
    assert [n.type for n in notes] == ["new_application"]


def test_invalid_email_is_rejected(test_client: TestClient, mock_email):
    resp = test_client.post("/api/applications", json={**APPLICATION, "email": "not-an-email"})
    assert resp.status_code == 422


@pytest.mark.parametrize("field", ["fullName", "phone", "email", "trade", "state", "issueType", "description"])
def test_missing_required_field_persists_nothing(
    field: str, test_client: TestClient, db_session: Session, mock_email
):
    body = {k: v for k, v in APPLICATION.items() if k != field}

    resp = test_client.post("/api/applications", json=body)

    assert resp.status_code == 422
    assert db_session.query(Application).count() == 0
    mock_email.send_welcome_email.assert_not_called()


@pytest.mark.parametrize("field", ["fullName", "trade", "description"])
def test_blank_required_field_is_rejected(field: str, test_client: TestClient, db_session: Session, mock_email):
    resp = test_client.post("/api/applications", json={**APPLICATION, field: "   "})

    assert resp.status_code == 422
    assert db_session.query(Application).count() == 0


def test_list_is_owner_scoped(test_client: TestClient, make_user, mock_email):
    _, headers_a = make_user()
    _, headers_b = make_user()
    _, admin_headers = make_user(role="admin")
    test_client.post("/api/applications", json=APPLICATION, headers=headers_a)
    test_client.post("/api/applications", json=APPLICATION, headers=headers_b)

    assert len(test_client.get("/api/applications", headers=headers_a).json()) == 1
    assert len(test_client.get("/api/applications", headers=admin_headers).json()) == 2


def test_other_users_application_is_forbidden(test_client: TestClient, make_user, mock_email):
    _, owner_headers = make_user()
    _, other_headers = make_user()
    app_id = test_client.post("/api/applications", json=APPLICATION, headers=owner_headers).json()["id"]

    assert test_client.get(f"/api/applications/{app_id}", headers=other_headers).status_code == 403
    assert test_client.get(f"/api/applications/{app_id}", headers=owner_headers).status_code == 200


def test_moderator_approves(test_client: TestClient, make_user, db_session: Session, mock_email):
    applicant, headers = make_user()
    _, moderator_headers = make_user(role="moderator")
    app_id = test_client.post("/api/applications", json=APPLICATION, headers=headers).json()["id"]

    resp = test_client.put(
        f"/api/applications/{app_id}/status",
        json={"status": "approved"},
        headers=moderator_headers,
    )

    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert resp.json()["workflow_stage"] == "payment_pending"
    mock_email.send_approval_email.assert_called_once_with("jo@example.com", "Jo Tradie", app_id)
    note = db_session.query(Notification).filter(Notification.user_id == applicant.id).one()
    assert note.type == "application_update"


def test_moderator_rejects(test_client: TestClient, make_user, mock_email):
    _, moderator_headers = make_user(role="moderator")
    app_id = test_client.post("/api/applications", json=APPLICATION).json()["id"]

    resp = test_client.put(
        f"/api/applications/{app_id}/status",
        json={"status": "rejected"},
        headers=moderator_headers,
    )

    assert resp.json()["status"] == "rejected"
    assert resp.json()["workflow_stage"] == "closed"
    mock_email.send_rejection_email.assert_called_once_with("jo@example.com", "Jo Tradie")


def test_status_change_requires_moderator(test_client: TestClient, make_user, mock_email):
    _, headers = make_user()
    app_id = test_client.post("/api/applications", json=APPLICATION).json()["id"]

    resp = test_client.put(f"/api/applications/{app_id}/status", json={"status": "approved"}, headers=headers)

    assert resp.status_code == 403


def test_invalid_status_returns_400(test_client: TestClient, make_user, mock_email):
    _, moderator_headers = make_user(role="moderator")
    app_id = test_client.post("/api/applications", json=APPLICATION).json()["id"]

    resp = test_client.put(
        f"/api/applications/{app_id}/status",
        json={"status": "pending"},
        headers=moderator_headers,
    )

    assert resp.status_code == 400


def test_status_change_unknown_application_returns_404(test_client: TestClient, make_user, mock_email):
    _, moderator_headers = make_user(role="moderator")

    resp = test_client.put(
        "/api/applications/999/status",
        json={"status": "approved"},
        headers=moderator_headers,
    )

    assert resp.status_code == 404
