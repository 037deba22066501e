"""Payment endpoints: strategy pack PaymentIntent, monthly subscription, plan status.

Credits and plan activation are granted only by the Stripe webhook after
payment is confirmed; these endpoints just open the payment.

Idempotency: an optional Idempotency-Key header is forwarded to Stripe and the
response is cached in Redis for 24h, so a retried request replays the same
client secret.
"""

import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from resolve_api.auth.session_auth import AuthUser, get_current_user, get_owned_or_404
from resolve_api.billing import subscription
from resolve_api.billing.idempotency import build_cache_key, get_cached_response, store_response
from resolve_api.billing.stripe_client import StripeClient, get_stripe_client, latest_invoice_client_secret
from resolve_api.db.models import Case, User
from resolve_api.db.session import get_db
from resolve_api.schemas import (
    PaymentIntentRequest,
    PaymentIntentResponse,
    SubscriptionResponse,
    SubscriptionStatusResponse,
)
from resolve_api.utils.sanitize import sanitize_str

router = APIRouter(prefix="/api", tags=["payments"])
logger = logging.getLogger(__name__)

ENDED_SUBSCRIPTION_STATUSES = frozenset({"canceled", "incomplete_expired"})


def _require_stripe() -> StripeClient:
    try:
        return get_stripe_client()
    except ValueError as e:
        logger.error(
            "stripe.misconfigured",
            extra={"event": "stripe.misconfigured", "error_msg": sanitize_str(str(e))},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Payment provider is not configured.",
        )


def _stripe_failure(operation: str, exc: stripe.StripeError) -> HTTPException:
    logger.error(
        "stripe.request.failed",
        extra={
            "event": "stripe.request.failed",
            "operation": operation,
            "error_type": type(exc).__name__,
            "error_msg": sanitize_str(str(exc)),
        },
    )
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail="Payment provider request failed. Please try again.",
    )


def _load_user(db: Session, user: AuthUser) -> User:
    db_user = db.get(User, user.id)
    if db_user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return db_user


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    request: PaymentIntentRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=255),
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PaymentIntentResponse:
    """Open a strategy pack payment (AUD, default $299).

    Raises:
        HTTPException 403/404: caseId not owned / not found
        HTTPException 500: Stripe not configured
        HTTPException 502: Stripe rejected the request
    """
    if request.case_id is not None:
        get_owned_or_404(db, Case, request.case_id, user, "case")

    cache_key = build_cache_key("payment_intent", idempotency_key, user.id) if idempotency_key else None
    if cache_key:
        cached = get_cached_response(cache_key)
        if cached is not None:
            return PaymentIntentResponse.model_validate(cached)

    client = _require_stripe()
    metadata = {"type": "strategy_pack", "user_id": user.id}
    if request.case_id is not None:
        metadata["case_id"] = str(request.case_id)

    try:
        intent = client.create_payment_intent(
            amount=request.amount,
            metadata=metadata,
            idempotency_key=idempotency_key,
        )
    except stripe.StripeError as e:
        raise _stripe_failure("create_payment_intent", e)

    response = PaymentIntentResponse(client_secret=intent.client_secret, payment_intent_id=intent.id)
    if cache_key:
        store_response(cache_key, response.model_dump(by_alias=True))
    return response


@router.post("/create-subscription", response_model=SubscriptionResponse)
async def create_subscription(
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=255),
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SubscriptionResponse:
    """Start (or resume) the $49/month plan.

    A live existing subscription is returned as-is with the client secret of
    its latest invoice. A canceled or expired one is replaced.

    Raises:
        HTTPException 400: No email on file
        HTTPException 500: Stripe not configured
        HTTPException 502: Stripe rejected the request
    """
    db_user = _load_user(db, user)

    cache_key = build_cache_key("subscription", idempotency_key, user.id) if idempotency_key else None
    if cache_key:
        cached = get_cached_response(cache_key)
        if cached is not None:
            return SubscriptionResponse.model_validate(cached)

    client = _require_stripe()

    if db_user.stripe_subscription_id:
        try:
            existing = client.retrieve_subscription(db_user.stripe_subscription_id)
        except stripe.StripeError as e:
            raise _stripe_failure("retrieve_subscription", e)
        if existing.status not in ENDED_SUBSCRIPTION_STATUSES:
            return SubscriptionResponse(
                subscription_id=existing.id,
                client_secret=latest_invoice_client_secret(existing),
                status=existing.status,
            )
        logger.info(
            "subscription.replacing_ended",
            extra={"event": "subscription.replacing_ended", "subscription_id": existing.id, "status": existing.status},
        )

    if not db_user.email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No user email on file")

    try:
        if not db_user.stripe_customer_id:
            name = " ".join(p for p in (db_user.first_name, db_user.last_name) if p)
            customer = client.create_customer(email=db_user.email, name=name, user_id=db_user.id)
            db_user.stripe_customer_id = customer.id
            db.commit()

        created = client.create_monthly_subscription(
            customer_id=db_user.stripe_customer_id,
            user_id=db_user.id,
            idempotency_key=idempotency_key,
        )
    except stripe.StripeError as e:
        raise _stripe_failure("create_subscription", e)

    db_user.stripe_subscription_id = created.id
    db.commit()

    logger.info(
        "subscription.created",
        extra={"event": "subscription.created", "subscription_id": created.id, "status": created.status},
    )

    response = SubscriptionResponse(
        subscription_id=created.id,
        client_secret=latest_invoice_client_secret(created),
        status=created.status,
    )
    if cache_key:
        store_response(cache_key, response.model_dump(by_alias=True))
    return response


@router.get("/subscription/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SubscriptionStatusResponse:
    db_user = _load_user(db, user)
    return SubscriptionStatusResponse(**subscription.subscription_status(db_user))
