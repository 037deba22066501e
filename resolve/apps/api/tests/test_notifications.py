"""Tests for the notification center and notification generators."""

from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from resolve_api.db.models import Case, Notification, utcnow
from resolve_api.services import notification_service
from resolve_api.services.notification_service import create_notification


def _seed(db: Session, user_id: str, **overrides) -> Notification:
    fields = {"type": "system", "title": "Hello", "message": "Welcome aboard", "priority": "medium"}
    fields.update(overrides)
    return create_notification(db, user_id=user_id, **fields)


def test_list_orders_by_priority_then_newest_and_hides_expired(
    test_client: TestClient, make_user, db_session: Session
):
    user, headers = make_user()
    _seed(db_session, user.id, title="low", priority="low")
    _seed(db_session, user.id, title="critical", priority="critical")
    _seed(db_session, user.id, title="medium", priority="medium")
    _seed(db_session, user.id, title="expired", priority="critical", expires_at=utcnow() - timedelta(hours=1))

    titles = [n["title"] for n in test_client.get("/api/notifications", headers=headers).json()]

    assert titles == ["critical", "medium", "low"]


def test_list_is_scoped_to_caller(test_client: TestClient, make_user, db_session: Session):
    user, headers = make_user()
    other, _ = make_user()
    _seed(db_session, other.id)

    assert test_client.get("/api/notifications", headers=headers).json() == []


def test_summary_counts(test_client: TestClient, make_user, db_session: Session):
    user, headers = make_user()
    _seed(db_session, user.id, type="deadline", priority="critical")
    _seed(db_session, user.id, type="deadline", priority="high")
    archived = _seed(db_session, user.id, type="legal_tip", priority="low")
    notification_service.archive(db_session, archived.id, user.id)

    data = test_client.get("/api/notifications/summary", headers=headers).json()

    assert data["total"] == 2
    assert data["unread"] == 2
    assert data["critical"] == 1
    assert data["high"] == 1
    assert data["byType"] == {"deadline": 2}


def test_mark_read_decrements_unread(test_client: TestClient, make_user, db_session: Session):
    user, headers = make_user()
    first = _seed(db_session, user.id)
    _seed(db_session, user.id)

    resp = test_client.put(f"/api/notifications/{first.id}/read", headers=headers)

    assert resp.status_code == 200
    assert resp.json()["status"] == "read"
    assert resp.json()["read_at"] is not None
    assert test_client.get("/api/notifications/summary", headers=headers).json()["unread"] == 1


def test_read_all(test_client: TestClient, make_user, db_session: Session):
    user, headers = make_user()
    _seed(db_session, user.id)
    _seed(db_session, user.id)

    resp = test_client.put("/api/notifications/read-all", headers=headers)

    assert resp.json() == {"updated": 2}
    assert test_client.get("/api/notifications/summary", headers=headers).json()["unread"] == 0


def test_archive_and_delete(test_client: TestClient, make_user, db_session: Session):
    user, headers = make_user()
    note = _seed(db_session, user.id)

    archived = test_client.put(f"/api/notifications/{note.id}/archive", headers=headers).json()
    assert archived["status"] == "archived"

    assert test_client.delete(f"/api/notifications/{note.id}", headers=headers).status_code == 204
    assert test_client.get("/api/notifications", headers=headers).json() == []


def test_other_users_notification_is_not_found(test_client: TestClient, make_user, db_session: Session):
    owner, _ = make_user()
    _, headers = make_user()
    note = _seed(db_session, owner.id)

    assert test_client.put(f"/api/notifications/{note.id}/read", headers=headers).status_code == 404
    assert test_client.delete(f"/api/notifications/{note.id}", headers=headers).status_code == 404
    db_session.refresh(note)
    assert note.status == "unread"


def test_generate_creates_deadline_alert_and_tip(test_client: TestClient, make_user, create_case):
    _, headers = make_user()
    due = (utcnow() + timedelta(days=2)).isoformat()
    create_case(headers, nextActionDue=due)

    first = test_client.post("/api/notifications/generate", headers=headers).json()
    assert first == {"created": 2}

    deadline = test_client.get("/api/notifications", params={"type": "deadline"}, headers=headers).json()
    assert len(deadline) == 1
    assert deadline[0]["priority"] == "high"
    assert deadline[0]["metadata"]["daysUntilDeadline"] == 2

    # Deadline alert is not repeated within 24 hours; the tip is.
    second = test_client.post("/api/notifications/generate", headers=headers).json()
    assert second == {"created": 1}


def test_deadline_priorities(db_session: Session, make_user):
    user, _ = make_user()
    now = utcnow()
    for title, days in (("today", 0.5), ("soon", 3), ("week", 6), ("later", 20)):
        db_session.add(
            Case(
                user_id=user.id,
                title=title,
                case_number=f"CASE-{title}",
                issue_type="unpaid_payment",
                next_action_due=now + timedelta(days=days),
            )
        )
    db_session.commit()

    created = notification_service.generate_deadline_notifications(db_session, user.id, now=now)

    assert created == 3
    by_title = {
        n.meta["daysUntilDeadline"]: n.priority
        for n in db_session.query(Notification).filter(Notification.type == "deadline")
    }
    assert by_title == {1: "critical", 3: "high", 6: "medium"}


def test_idle_case_gets_action_required(db_session: Session, make_user):
    user, _ = make_user()
    case = Case(user_id=user.id, title="Idle", case_number="CASE-IDLE", issue_type="unpaid_payment")
    db_session.add(case)
    db_session.commit()

    created = notification_service.generate_smart_notifications(
        db_session, user.id, now=utcnow() + timedelta(days=10)
    )

    assert created == 2
    types = sorted(n.type for n in db_session.query(Notification).filter(Notification.user_id == user.id))
    assert types == ["action_required", "legal_tip"]
