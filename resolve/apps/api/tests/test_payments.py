"""Tests for payment creation, Idempotency-Key replay and plan status.

Stripe and Redis are replaced with doubles; no network calls.
"""

import json
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import stripe
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from resolve_api.billing.idempotency import build_cache_key
from resolve_api.db.models import User, utcnow


class _StripeObject(dict):
    """dict with attribute access, the shape stripe SDK objects expose."""

    __getattr__ = dict.__getitem__


class _FakeRedis:
    def __init__(self):
        self.store: dict[str, str] = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.store[key] = value


@pytest.fixture
def fake_redis():
    redis_double = _FakeRedis()
    with patch("resolve_api.billing.idempotency.RedisClient") as client_cls:
        client_cls.get_client.return_value = redis_double
        yield redis_double


@pytest.fixture
def mock_stripe():
    client = MagicMock()
    client.create_payment_intent.return_value = SimpleNamespace(id="pi_123", client_secret="pi_123_secret_abc")
    with patch("resolve_api.routers.payments.get_stripe_client", return_value=client):
        yield client


# ============================================================================
# Payment intents
# ============================================================================


def test_payment_intent_without_stripe_config_returns_500(test_client: TestClient, make_user):
    _, headers = make_user()

    resp = test_client.post("/api/create-payment-intent", json={}, headers=headers)

    assert resp.status_code == 500
    assert resp.json()["title"] == "Internal Server Error"


def test_payment_intent_created_with_strategy_pack_metadata(
    test_client: TestClient, make_user, create_case, mock_stripe
):
    user, headers = make_user()
    case = create_case(headers)

    resp = test_client.post("/api/create-payment-intent", json={"caseId": case["id"]}, headers=headers)

    assert resp.status_code == 200
    assert resp.json() == {"clientSecret": "pi_123_secret_abc", "paymentIntentId": "pi_123"}
    kwargs = mock_stripe.create_payment_intent.call_args.kwargs
    assert kwargs["amount"] == 29900
    assert kwargs["metadata"] == {"type": "strategy_pack", "user_id": user.id, "case_id": str(case["id"])}


def test_payment_intent_for_other_users_case_is_forbidden(
    test_client: TestClient, make_user, create_case, mock_stripe
):
    _, owner_headers = make_user()
    _, other_headers = make_user()
    case = create_case(owner_headers)

    resp = test_client.post("/api/create-payment-intent", json={"caseId": case["id"]}, headers=other_headers)

    assert resp.status_code == 403
    mock_stripe.create_payment_intent.assert_not_called()


def test_stripe_error_returns_502(test_client: TestClient, make_user, mock_stripe):
    _, headers = make_user()
    mock_stripe.create_payment_intent.side_effect = stripe.APIConnectionError("network down")

    resp = test_client.post("/api/create-payment-intent", json={}, headers=headers)

    assert resp.status_code == 502


def test_idempotency_key_replays_cached_response(test_client: TestClient, make_user, mock_stripe, fake_redis):
    user, headers = make_user()
    headers = {**headers, "Idempotency-Key": "checkout-42"}

    first = test_client.post("/api/create-payment-intent", json={}, headers=headers)
    second = test_client.post("/api/create-payment-intent", json={}, headers=headers)

    assert first.json() == second.json()
    assert mock_stripe.create_payment_intent.call_count == 1
    assert mock_stripe.create_payment_intent.call_args.kwargs["idempotency_key"] == "checkout-42"
    cached = json.loads(fake_redis.store[build_cache_key("payment_intent", "checkout-42", user.id)])
    assert cached["clientSecret"] == "pi_123_secret_abc"


def test_cache_key_hashes_the_idempotency_key():
    key = build_cache_key("subscription", "my-secret-key", "user-1")
    assert key.startswith("idem:subscription:user-1:")
    assert "my-secret-key" not in key


# ============================================================================
# Subscriptions
# ============================================================================


def test_create_subscription_creates_customer_and_subscription(
    test_client: TestClient, make_user, mock_stripe, db_session: Session
):
    user, headers = make_user(first_name="Jo", last_name="Tradie")
    mock_stripe.create_customer.return_value = SimpleNamespace(id="cus_1")
    mock_stripe.create_monthly_subscription.return_value = _StripeObject(
        id="sub_1",
        status="incomplete",
        latest_invoice=_StripeObject(payment_intent=_StripeObject(client_secret="seti_secret")),
    )

    resp = test_client.post("/api/create-subscription", headers=headers)

    assert resp.status_code == 200
    assert resp.json() == {"subscriptionId": "sub_1", "clientSecret": "seti_secret", "status": "incomplete"}
    mock_stripe.create_customer.assert_called_once_with(email=user.email, name="Jo Tradie", user_id=user.id)
    db_session.expire_all()
    refreshed = db_session.get(User, user.id)
    assert refreshed.stripe_customer_id == "cus_1"
    assert refreshed.stripe_subscription_id == "sub_1"
    # Plan is activated only by the webhook.
    assert refreshed.plan_type == "none"


def test_existing_subscription_is_returned(test_client: TestClient, make_user, mock_stripe):
    _, headers = make_user(stripe_customer_id="cus_1", stripe_subscription_id="sub_1")
    mock_stripe.retrieve_subscription.return_value = _StripeObject(id="sub_1", status="active", latest_invoice=None)

    resp = test_client.post("/api/create-subscription", headers=headers)

    assert resp.json() == {"subscriptionId": "sub_1", "clientSecret": None, "status": "active"}
    mock_stripe.create_monthly_subscription.assert_not_called()


def test_canceled_subscription_is_replaced(test_client: TestClient, make_user, mock_stripe, db_session: Session):
    user, headers = make_user(
        stripe_customer_id="cus_1",
        stripe_subscription_id="sub_old",
        subscription_status="canceled",
    )
    mock_stripe.retrieve_subscription.return_value = _StripeObject(id="sub_old", status="canceled", latest_invoice=None)
    mock_stripe.create_monthly_subscription.return_value = _StripeObject(
        id="sub_new",
        status="incomplete",
        latest_invoice=_StripeObject(payment_intent=_StripeObject(client_secret="pi_new_secret")),
    )

    resp = test_client.post("/api/create-subscription", headers=headers)

    assert resp.status_code == 200
    assert resp.json() == {"subscriptionId": "sub_new", "clientSecret": "pi_new_secret", "status": "incomplete"}
    mock_stripe.create_customer.assert_not_called()
    mock_stripe.create_monthly_subscription.assert_called_once()
    db_session.expire_all()
    assert db_session.get(User, user.id).stripe_subscription_id == "sub_new"


# ============================================================================
# Plan status
# ============================================================================


def test_status_for_new_user(test_client: TestClient, make_user):
    _, headers = make_user()

    data = test_client.get("/api/subscription/status", headers=headers).json()

    assert data["hasActiveSubscription"] is False
    assert data["canGenerateStrategy"] is False
    assert data["strategyPacksRemaining"] == 0


def test_status_with_active_plan(test_client: TestClient, make_user):
    _, headers = make_user(
        plan_type="monthly_subscription",
        subscription_status="active",
        subscription_expires_at=utcnow() + timedelta(days=3),
    )

    data = test_client.get("/api/subscription/status", headers=headers).json()

    assert data["hasActiveSubscription"] is True
    assert data["canGenerateStrategy"] is True
