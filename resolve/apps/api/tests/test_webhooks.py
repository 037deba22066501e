"""Tests for the Stripe webhook: signature verification, dedup and billing state.

Payloads are signed with the real Stripe scheme (HMAC-SHA256 over
"{timestamp}.{body}") so the SDK verification path runs unmodified.
"""

import hashlib
import hmac
import json
import time
from datetime import timedelta
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from resolve_api.db.models import Notification, StripeWebhookEvent, User, utcnow

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def webhook_secret(monkeypatch) -> str:
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    return WEBHOOK_SECRET


def _sign(body: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    ts = timestamp or int(time.time())
    signed = f"{ts}.".encode() + body
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={signature}"


def _event(event_id: str, event_type: str, obj: dict) -> bytes:
    return json.dumps(
        {"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}}
    ).encode()


def _post(client: TestClient, body: bytes, signature: str | None = None):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["Stripe-Signature"] = signature
    return client.post("/webhooks/stripe", content=body, headers=headers)


# ============================================================================
# Verification failures
# ============================================================================


def test_missing_signature_header_returns_400(test_client: TestClient, webhook_secret):
    resp = _post(test_client, _event("evt_1", "invoice.paid", {}))

    assert resp.status_code == 400
    assert resp.json()["error_code"] == "WEBHOOK_MISSING_HEADERS"
    assert resp.headers["content-type"].startswith("application/problem+json")


def test_invalid_signature_returns_401(test_client: TestClient, webhook_secret, db_session: Session):
    body = _event("evt_1", "payment_intent.succeeded", {})

    resp = _post(test_client, body, _sign(body, secret="whsec_wrong"))

    assert resp.status_code == 401
    assert resp.json()["error_code"] == "WEBHOOK_SIGNATURE_INVALID"
    assert len(resp.json()["payload_hash"]) == 64
    assert db_session.query(StripeWebhookEvent).count() == 0


def test_missing_secret_returns_500_with_retry_after(test_client: TestClient):
    body = _event("evt_1", "invoice.paid", {})

    resp = _post(test_client, body, _sign(body))

    assert resp.status_code == 500
    assert resp.json()["error_code"] == "WEBHOOK_PROVIDER_MISCONFIG"
    assert resp.headers["retry-after"] == "60"


def test_signed_invalid_json_returns_400(test_client: TestClient, webhook_secret):
    body = b"{not json"

    resp = _post(test_client, body, _sign(body))

    assert resp.status_code == 400
    assert resp.json()["error_code"] == "WEBHOOK_INVALID_JSON"


# ============================================================================
# Billing effects
# ============================================================================


def test_payment_succeeded_grants_credit_once(
    test_client: TestClient, webhook_secret, make_user, db_session: Session
):
    user, _ = make_user()
    body = _event(
        "evt_pi_1",
        "payment_intent.succeeded",
        {"id": "pi_1", "object": "payment_intent", "metadata": {"type": "strategy_pack", "user_id": user.id}},
    )

    first = _post(test_client, body, _sign(body))
    second = _post(test_client, body, _sign(body))

    assert first.json() == {"status": "processed"}
    assert second.json() == {"status": "already_processed"}
    db_session.expire_all()
    refreshed = db_session.get(User, user.id)
    assert refreshed.strategy_packs_remaining == 1
    assert refreshed.plan_type == "strategy_pack"
    assert db_session.query(Notification).filter(Notification.type == "payment_received").count() == 1
    assert db_session.query(StripeWebhookEvent).one().status == "done"


def test_other_payment_intents_do_not_grant_credit(
    test_client: TestClient, webhook_secret, make_user, db_session: Session
):
    user, _ = make_user()
    body = _event(
        "evt_pi_2",
        "payment_intent.succeeded",
        {"id": "pi_2", "metadata": {"type": "donation", "user_id": user.id}},
    )

    _post(test_client, body, _sign(body))

    db_session.expire_all()
    assert db_session.get(User, user.id).strategy_packs_remaining == 0


def test_invoice_paid_activates_monthly_plan(
    test_client: TestClient, webhook_secret, make_user, db_session: Session
):
    user, _ = make_user(stripe_customer_id="cus_1", stripe_subscription_id="sub_1")
    body = _event(
        "evt_inv_1",
        "invoice.paid",
        {"id": "in_1", "customer": "cus_1", "parent": {"subscription_details": {"subscription": "sub_1"}}},
    )

    resp = _post(test_client, body, _sign(body))

    assert resp.json() == {"status": "processed"}
    db_session.expire_all()
    refreshed = db_session.get(User, user.id)
    assert refreshed.plan_type == "monthly_subscription"
    assert refreshed.subscription_status == "active"
    assert refreshed.subscription_expires_at is not None


def test_subscription_past_due(test_client: TestClient, webhook_secret, make_user, db_session: Session):
    user, _ = make_user(
        stripe_subscription_id="sub_2",
        plan_type="monthly_subscription",
        subscription_status="active",
        subscription_expires_at=utcnow() + timedelta(days=5),
    )
    body = _event("evt_sub_2", "customer.subscription.updated", {"id": "sub_2", "status": "past_due"})

    _post(test_client, body, _sign(body))

    db_session.expire_all()
    assert db_session.get(User, user.id).subscription_status == "past_due"


def test_subscription_deleted_cancels(test_client: TestClient, webhook_secret, make_user, db_session: Session):
    user, _ = make_user(
        stripe_subscription_id="sub_3",
        plan_type="monthly_subscription",
        subscription_status="active",
    )
    body = _event("evt_sub_3", "customer.subscription.deleted", {"id": "sub_3", "status": "canceled"})

    resp = _post(test_client, body, _sign(body))

    assert resp.status_code == 200
    db_session.expire_all()
    assert db_session.get(User, user.id).subscription_status == "canceled"


def test_unknown_event_is_acknowledged(test_client: TestClient, webhook_secret):
    body = _event("evt_x", "customer.created", {"id": "cus_9"})

    resp = _post(test_client, body, _sign(body))

    assert resp.status_code == 200
    assert resp.json() == {"status": "ignored"}


def test_processing_error_returns_500_and_allows_retry(
    test_client: TestClient, webhook_secret, make_user, db_session: Session
):
    user, _ = make_user()
    body = _event(
        "evt_pi_fail",
        "payment_intent.succeeded",
        {"id": "pi_3", "metadata": {"type": "strategy_pack", "user_id": user.id}},
    )

    with patch(
        "resolve_api.routers.webhooks.subscription.grant_strategy_pack",
        side_effect=RuntimeError("db exploded"),
    ):
        failed = _post(test_client, body, _sign(body))

    assert failed.status_code == 500
    assert failed.json()["error_code"] == "WEBHOOK_INTERNAL_ERROR"
    assert db_session.query(StripeWebhookEvent).one().status == "failed"

    retried = _post(test_client, body, _sign(body))

    assert retried.json() == {"status": "processed"}
    db_session.expire_all()
    assert db_session.get(User, user.id).strategy_packs_remaining == 1
