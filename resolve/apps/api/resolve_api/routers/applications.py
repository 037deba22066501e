"""Application intake endpoints.

Public lead capture: anyone may submit; a signed-in submitter is linked to
the application. Moderators and admins approve or reject, which emails the
applicant in the background.
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from resolve_api.auth.session_auth import (
    AuthUser,
    get_current_user,
    get_owned_or_404,
    optional_auth,
    require_moderator,
    scope_to_owner,
)
from resolve_api.db.models import Application
from resolve_api.db.session import get_db
from resolve_api.schemas import ApplicationCreateRequest, ApplicationResponse, ApplicationStatusRequest
from resolve_api.services import notification_service
from resolve_api.services.email_service import get_email_service

router = APIRouter(prefix="/api/applications", tags=["applications"])
logger = logging.getLogger(__name__)

DECISION_STAGES = {
    "approved": "payment_pending",
    "rejected": "closed",
}


def _send_email(template: str, method_name: str, *args) -> None:
    """Background email dispatch. Failures are logged, never raised."""
    try:
        getattr(get_email_service(), method_name)(*args)
    except Exception as e:
        logger.error(
            "email.dispatch.failed",
            extra={"event": "email.dispatch.failed", "template": template, "error_type": type(e).__name__},
        )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ApplicationResponse)
async def create_application(
    request: ApplicationCreateRequest,
    background_tasks: BackgroundTasks,
    user: Optional[AuthUser] = Depends(optional_auth),
    db: Session = Depends(get_db),
) -> Application:
    """Submit a dispute application.

    Returns 201 with status "pending". The welcome email and the admin email
    are sent after the response.
    """
    application = Application(
        user_id=user.id if user else None,
        full_name=request.full_name,
        phone=request.phone,
        email=request.email,
        trade=request.trade,
        state=request.state,
        issue_type=request.issue_type,
        amount=request.amount,
        start_date=request.start_date,
        description=request.description,
        status="pending",
        workflow_stage="submitted",
        payment_status="pending",
    )
    db.add(application)
    db.commit()
    db.refresh(application)

    logger.info(
        "application.created",
        extra={
            "event": "application.created",
            "application_id": application.id,
            "trade": application.trade,
            "state": application.state,
            "linked": user is not None,
        },
    )

    notification_service.notify_admins(
        db,
        type="new_application",
        title="New Application",
        message=f"New {application.trade} application from {application.state.upper()} ({application.issue_type}).",
        priority="high",
        category="applications",
        related_id=application.id,
        related_type="application",
        action_url=f"/admin/applications/{application.id}",
        action_label="Review",
    )

    background_tasks.add_task(
        _send_email, "welcome", "send_welcome_email", application.email, application.full_name, application.id
    )
    background_tasks.add_task(
        _send_email,
        "admin_new_application",
        "send_admin_new_application_email",
        application.id,
        application.trade,
        application.state,
    )
    return application


@router.get("", response_model=list[ApplicationResponse])
async def list_applications(
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[Application]:
    """Caller's applications, or every application for an admin."""
    query = scope_to_owner(db.query(Application), Application, user)
    return query.order_by(Application.created_at.desc(), Application.id.desc()).all()


@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Application:
    return get_owned_or_404(db, Application, application_id, user, "application")


@router.put("/{application_id}/status", response_model=ApplicationResponse)
async def update_application_status(
    application_id: int,
    request: ApplicationStatusRequest,
    background_tasks: BackgroundTasks,
    moderator: AuthUser = Depends(require_moderator),
    db: Session = Depends(get_db),
) -> Application:
    """Approve or reject an application (moderator/admin).

    Raises:
        HTTPException 400: status is not approved or rejected
        HTTPException 404: Application not found
    """
    if request.status not in DECISION_STAGES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid status. Must be 'approved' or 'rejected'.",
        )

    application = db.get(Application, application_id)
    if application is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Application not found: {application_id}",
        )

    application.status = request.status
    application.workflow_stage = DECISION_STAGES[request.status]
    db.commit()
    db.refresh(application)

    logger.info(
        "application.status.changed",
        extra={
            "event": "application.status.changed",
            "application_id": application.id,
            "new_status": application.status,
            "actor_id": moderator.id,
        },
    )

    if application.user_id:
        approved = application.status == "approved"
        notification_service.create_notification(
            db,
            user_id=application.user_id,
            type="application_update",
            title="Application approved" if approved else "Application update",
            message=(
                "Your application has been approved. Complete payment to receive your strategy pack."
                if approved
                else "We're unable to take on this matter. Check your email for details."
            ),
            priority="high" if approved else "medium",
            category="applications",
            related_id=application.id,
            related_type="application",
            action_url=f"/application/{application.id}/complete" if approved else None,
            action_label="Continue" if approved else None,
        )

    if application.status == "approved":
        background_tasks.add_task(
            _send_email, "approval", "send_approval_email", application.email, application.full_name, application.id
        )
    else:
        background_tasks.add_task(
            _send_email, "rejection", "send_rejection_email", application.email, application.full_name
        )
    return application
