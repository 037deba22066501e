"""Tests for case management and strategy pack generation."""

from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from resolve_api.config import env
from resolve_api.db.models import Case, Document, Notification, TimelineEvent, User


# ============================================================================
# CRUD
# ============================================================================


def test_create_case_assigns_number_and_fallback_analysis(test_client: TestClient, make_user, create_case):
    user, headers = make_user()

    data = create_case(headers)

    assert data["user_id"] == user.id
    assert data["case_number"].startswith("CASE-")
    assert data["status"] == "active"
    assert data["ai_analysis"]["source"] == "fallback"
    assert data["ai_analysis"]["legalFramework"]


def test_case_numbers_are_unique(test_client: TestClient, make_user, create_case):
    _, headers = make_user()
    numbers = {create_case(headers, title=f"Case {i}")["case_number"] for i in range(5)}
    assert len(numbers) == 5


def test_create_case_records_timeline_event(test_client: TestClient, make_user, create_case, db_session: Session):
    _, headers = make_user()
    case = create_case(headers)

    events = db_session.query(TimelineEvent).filter(TimelineEvent.case_id == case["id"]).all()
    assert [e.event_type for e in events] == ["case_created"]


def test_other_users_case_is_forbidden(test_client: TestClient, make_user, create_case):
    _, owner_headers = make_user()
    _, other_headers = make_user()
    case = create_case(owner_headers)

    assert test_client.get(f"/api/cases/{case['id']}", headers=other_headers).status_code == 403
    assert test_client.put(
        f"/api/cases/{case['id']}", json={"title": "Hijacked"}, headers=other_headers
    ).status_code == 403


def test_admin_reads_any_case(test_client: TestClient, make_user, create_case):
    _, owner_headers = make_user()
    _, admin_headers = make_user(role="admin")
    case = create_case(owner_headers)

    assert test_client.get(f"/api/cases/{case['id']}", headers=admin_headers).status_code == 200
    assert len(test_client.get("/api/cases", headers=admin_headers).json()) == 1


def test_list_cases_is_owner_scoped_newest_first(test_client: TestClient, make_user, create_case):
    _, headers = make_user()
    _, other_headers = make_user()
    create_case(headers, title="First")
    create_case(headers, title="Second")
    create_case(other_headers, title="Not mine")

    titles = [c["title"] for c in test_client.get("/api/cases", headers=headers).json()]
    assert titles == ["Second", "First"]


def test_partial_update_keeps_unset_fields(test_client: TestClient, make_user, create_case):
    _, headers = make_user()
    case = create_case(headers)

    resp = test_client.put(
        f"/api/cases/{case['id']}",
        json={"progress": 40, "clientName": "Acme Builders"},
        headers=headers,
    )

    data = resp.json()
    assert resp.status_code == 200
    assert data["progress"] == 40
    assert data["client_name"] == "Acme Builders"
    assert data["title"] == case["title"]
    assert data["case_number"] == case["case_number"]


def test_update_rejects_null_for_required_fields(test_client: TestClient, make_user, create_case):
    _, headers = make_user()
    case = create_case(headers)

    for body in ({"title": None}, {"status": None}, {"issueType": None}, {"priority": None}):
        resp = test_client.put(f"/api/cases/{case['id']}", json=body, headers=headers)
        assert resp.status_code == 422, body
        assert resp.headers["content-type"] == "application/problem+json"

    # Nullable fields can still be cleared.
    cleared = test_client.put(f"/api/cases/{case['id']}", json={"nextAction": None}, headers=headers)
    assert cleared.status_code == 200
    assert cleared.json()["title"] == case["title"]


def test_update_mood(test_client: TestClient, make_user, create_case):
    _, headers = make_user()
    case = create_case(headers)

    resp = test_client.put(
        f"/api/cases/{case['id']}/mood",
        json={"moodScore": 3, "stressLevel": "high", "urgencyFeeling": "urgent", "confidenceLevel": 4},
        headers=headers,
    )

    data = resp.json()
    assert data["mood_score"] == 3
    assert data["stress_level"] == "high"
    assert data["last_mood_update"] is not None


def test_mood_score_out_of_range_is_rejected(test_client: TestClient, make_user, create_case):
    _, headers = make_user()
    case = create_case(headers)

    resp = test_client.put(f"/api/cases/{case['id']}/mood", json={"moodScore": 11}, headers=headers)

    assert resp.status_code == 422


def test_outcome_resolves_case(test_client: TestClient, make_user, create_case):
    _, headers = make_user()
    case = create_case(headers)

    resp = test_client.put(
        f"/api/cases/{case['id']}/outcome",
        json={"outcome": "settled", "amountRecovered": "9000", "clientSatisfactionScore": 8},
        headers=headers,
    )

    data = resp.json()
    assert data["status"] == "resolved"
    assert data["progress"] == 100
    assert data["resolved_at"] is not None

    events = test_client.get(f"/api/cases/{case['id']}/timeline", headers=headers).json()
    assert "case_resolved" in [e["event_type"] for e in events]


def test_ongoing_outcome_keeps_case_active(test_client: TestClient, make_user, create_case):
    _, headers = make_user()
    case = create_case(headers)

    resp = test_client.put(f"/api/cases/{case['id']}/outcome", json={"outcome": "ongoing"}, headers=headers)

    assert resp.json()["status"] == "active"
    assert resp.json()["resolved_at"] is None


# ============================================================================
# Strategy pack
# ============================================================================


def test_generate_strategy_without_credit_returns_402(test_client: TestClient, make_user, create_case):
    _, headers = make_user()
    case = create_case(headers)

    resp = test_client.post(f"/api/cases/{case['id']}/generate-strategy", headers=headers)

    assert resp.status_code == 402
    assert resp.json()["title"] == "Payment Required"


def test_generate_strategy_consumes_credit_and_stores_documents(
    test_client: TestClient, make_user, create_case, db_session: Session
):
    user, headers = make_user(strategy_packs_remaining=1, plan_type="strategy_pack")
    case = create_case(headers)

    resp = test_client.post(f"/api/cases/{case['id']}/generate-strategy", headers=headers)

    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["case_id"] == case["id"]
    assert data["strategy"]["caseTitle"] == case["title"]
    assert {d["mime_type"] for d in data["documents"]} == {
        "application/pdf",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }

    for document in db_session.query(Document).filter(Document.case_id == case["id"]):
        assert document.category == "generated"
        assert Path(document.upload_path).is_file()

    db_session.expire_all()
    assert db_session.get(User, user.id).strategy_packs_remaining == 0
    assert db_session.get(Case, case["id"]).strategy_pack is not None
    assert db_session.query(Notification).filter(Notification.type == "document_ready").count() == 1

    again = test_client.post(f"/api/cases/{case['id']}/generate-strategy", headers=headers)
    assert again.status_code == 402


def test_active_subscription_does_not_consume_credit(
    test_client: TestClient, make_user, create_case, db_session: Session
):
    from datetime import datetime, timedelta, timezone

    user, headers = make_user(
        plan_type="monthly_subscription",
        subscription_status="active",
        subscription_expires_at=datetime.now(timezone.utc) + timedelta(days=10),
    )
    case = create_case(headers)

    resp = test_client.post(f"/api/cases/{case['id']}/generate-strategy", headers=headers)

    assert resp.status_code == 200
    db_session.expire_all()
    assert db_session.get(User, user.id).strategy_packs_remaining == 0


def test_admin_is_exempt_from_payment(test_client: TestClient, make_user, create_case):
    _, owner_headers = make_user()
    _, admin_headers = make_user(role="admin")
    case = create_case(owner_headers)

    resp = test_client.post(f"/api/cases/{case['id']}/generate-strategy", headers=admin_headers)

    assert resp.status_code == 200


def test_render_failure_returns_500_and_keeps_credit(
    test_client: TestClient, make_user, create_case, db_session: Session
):
    user, headers = make_user(strategy_packs_remaining=1)
    case = create_case(headers)

    with patch("resolve_api.routers.cases.render_strategy_pdf", side_effect=OSError("disk full")):
        resp = test_client.post(f"/api/cases/{case['id']}/generate-strategy", headers=headers)

    assert resp.status_code == 500
    db_session.expire_all()
    assert db_session.get(User, user.id).strategy_packs_remaining == 1
    assert db_session.query(Document).count() == 0


def test_word_render_failure_removes_rendered_pdf(
    test_client: TestClient, make_user, create_case, db_session: Session
):
    user, headers = make_user(strategy_packs_remaining=1)
    case = create_case(headers)

    with patch("resolve_api.routers.cases.render_strategy_docx", side_effect=OSError("disk full")):
        resp = test_client.post(f"/api/cases/{case['id']}/generate-strategy", headers=headers)

    assert resp.status_code == 500
    assert list(env.get_documents_dir().glob("*.pdf")) == []
    assert db_session.query(Document).count() == 0
    db_session.expire_all()
    assert db_session.get(User, user.id).strategy_packs_remaining == 1


def test_case_documents_listing(test_client: TestClient, make_user, create_case):
    _, headers = make_user(strategy_packs_remaining=1)
    case = create_case(headers)
    test_client.post(f"/api/cases/{case['id']}/generate-strategy", headers=headers)

    docs = test_client.get(f"/api/cases/{case['id']}/documents", headers=headers).json()

    assert len(docs) == 2
    assert "upload_path" not in docs[0]
