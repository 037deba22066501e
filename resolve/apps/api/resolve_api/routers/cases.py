"""Case management endpoints.

A case is a paid dispute owned by exactly one user. Every read and write is
scoped to the owner unless the caller is an admin. Strategy generation is
gated on a strategy pack credit or an active monthly plan.
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from resolve_api.auth.session_auth import AuthUser, get_current_user, get_owned_or_404, scope_to_owner
from resolve_api.billing import subscription
from resolve_api.config import env
from resolve_api.context import case_id_var
from resolve_api.db.models import Application, Case, Document, TimelineEvent, User, utcnow
from resolve_api.db.session import get_db
from resolve_api.schemas import (
    CaseCreateRequest,
    CaseMoodRequest,
    CaseOutcomeRequest,
    CaseResponse,
    CaseUpdateRequest,
    DocumentResponse,
    StrategyGenerationResponse,
    TimelineEventResponse,
)
from resolve_api.services import notification_service
from resolve_api.services.ai_generation import CaseFacts, analyze_case, generate_strategy
from resolve_api.services.docx_generator import render_strategy_docx
from resolve_api.services.email_service import get_email_service
from resolve_api.services.numbering import insert_with_reference
from resolve_api.services.pdf_generator import GeneratedDocument, render_strategy_pdf
from resolve_api.services.timeline_service import record_event
from resolve_api.storage.local_storage import get_local_storage

router = APIRouter(prefix="/api/cases", tags=["cases"])
logger = logging.getLogger(__name__)


def _load_case(db: Session, case_id: int, user: AuthUser) -> Case:
    case = get_owned_or_404(db, Case, case_id, user, "case")
    case_id_var.set(str(case.id))
    return case


def _case_state(db: Session, case: Case) -> Optional[str]:
    if case.application_id is None:
        return None
    application = db.get(Application, case.application_id)
    return application.state if application else None


def _case_facts(db: Session, case: Case, owner: Optional[User]) -> CaseFacts:
    client_name = case.client_name
    if not client_name and owner is not None:
        client_name = " ".join(p for p in (owner.first_name, owner.last_name) if p) or None
    return CaseFacts(
        title=case.title,
        issue_type=case.issue_type,
        amount=case.amount,
        description=case.description,
        client_name=client_name,
        state=_case_state(db, case),
    )


def _send_document_ready_email(to: str, case_title: str, case_id: int) -> None:
    try:
        get_email_service().send_document_ready_email(to, case_title, case_id)
    except Exception as e:
        logger.error(
            "email.dispatch.failed",
            extra={"event": "email.dispatch.failed", "template": "document_ready", "error_type": type(e).__name__},
        )


# ============================================================================
# CRUD
# ============================================================================


@router.post("", status_code=status.HTTP_201_CREATED, response_model=CaseResponse)
async def create_case(
    request: CaseCreateRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Case:
    """Open a case for the caller.

    The case number is generated server-side and ai_analysis is always
    populated (model output or fallback content).
    """
    state = None
    if request.application_id is not None:
        application = db.get(Application, request.application_id)
        state = application.state if application else None

    analysis = await analyze_case(
        CaseFacts(
            title=request.title,
            issue_type=request.issue_type,
            amount=request.amount,
            description=request.description,
            client_name=request.client_name,
            state=state,
        )
    )

    def build(reference: str) -> Case:
        return Case(
            user_id=user.id,
            application_id=request.application_id,
            title=request.title,
            case_number=reference,
            status="active",
            issue_type=request.issue_type,
            amount=request.amount,
            description=request.description,
            client_name=request.client_name,
            priority=request.priority,
            next_action=request.next_action,
            next_action_due=request.next_action_due,
            ai_analysis=analysis,
        )

    case = insert_with_reference(db, "CASE", build)
    case_id_var.set(str(case.id))

    record_event(
        db,
        user_id=user.id,
        case_id=case.id,
        event_type="case_created",
        title="Case created",
        description=f"Case {case.case_number} opened: {case.title}",
    )
    db.commit()
    db.refresh(case)

    logger.info(
        "case.created",
        extra={
            "event": "case.created",
            "case_id": case.id,
            "case_number": case.case_number,
            "analysis_source": analysis.get("source"),
        },
    )
    return case


@router.get("", response_model=list[CaseResponse])
async def list_cases(
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[Case]:
    """Caller's cases (all cases for an admin), newest first."""
    query = scope_to_owner(db.query(Case), Case, user)
    return query.order_by(Case.created_at.desc(), Case.id.desc()).all()


@router.get("/{case_id}", response_model=CaseResponse)
async def get_case(
    case_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Case:
    """Fetch one case.

    Raises:
        HTTPException 404: Case not found
        HTTPException 403: Caller is neither owner nor admin
    """
    return _load_case(db, case_id, user)


@router.put("/{case_id}", response_model=CaseResponse)
async def update_case(
    case_id: int,
    request: CaseUpdateRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Case:
    """Partial update. Owner and case number are not part of the payload."""
    case = _load_case(db, case_id, user)
    changes = request.model_dump(exclude_unset=True)

    for field, value in changes.items():
        setattr(case, field, value)
    case.updated_at = utcnow()

    if changes:
        record_event(
            db,
            user_id=user.id,
            case_id=case.id,
            event_type="case_updated",
            title="Case updated",
            description="Updated: " + ", ".join(sorted(changes)),
        )
    db.commit()
    db.refresh(case)

    logger.info(
        "case.updated",
        extra={"event": "case.updated", "case_id": case.id, "fields": sorted(changes)},
    )
    return case


@router.put("/{case_id}/mood", response_model=CaseResponse)
async def update_case_mood(
    case_id: int,
    request: CaseMoodRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Case:
    case = _load_case(db, case_id, user)
    case.mood_score = request.mood_score
    case.stress_level = request.stress_level
    case.urgency_feeling = request.urgency_feeling
    case.confidence_level = request.confidence_level
    case.mood_notes = request.mood_notes
    case.last_mood_update = utcnow()
    db.commit()
    db.refresh(case)

    logger.info(
        "case.mood.updated",
        extra={"event": "case.mood.updated", "case_id": case.id, "mood_score": case.mood_score},
    )
    return case


@router.put("/{case_id}/outcome", response_model=CaseResponse)
async def update_case_outcome(
    case_id: int,
    request: CaseOutcomeRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Case:
    """Record how the dispute ended. Any outcome other than "ongoing" resolves the case."""
    case = _load_case(db, case_id, user)
    case.outcome = request.outcome
    case.resolution_method = request.resolution_method
    case.amount_recovered = request.amount_recovered
    case.client_satisfaction_score = request.client_satisfaction_score
    case.outcome_notes = request.outcome_notes

    if request.outcome != "ongoing":
        case.status = "resolved"
        case.resolved_at = utcnow()
        case.progress = 100
        record_event(
            db,
            user_id=user.id,
            case_id=case.id,
            event_type="case_resolved",
            title="Case resolved",
            description=f"Outcome: {request.outcome.replace('_', ' ')}",
        )
    db.commit()
    db.refresh(case)

    logger.info(
        "case.outcome.recorded",
        extra={"event": "case.outcome.recorded", "case_id": case.id, "outcome": case.outcome},
    )
    return case


# ============================================================================
# Strategy pack
# ============================================================================


def _document_row(case: Case, generated: GeneratedDocument, label: str) -> Document:
    return Document(
        user_id=case.user_id,
        case_id=case.id,
        filename=generated.filename,
        original_name=generated.filename,
        file_type="document",
        mime_type=generated.mime_type,
        file_size=generated.size,
        upload_path=str(generated.path),
        category="generated",
        description=f"AI strategy pack ({label})",
        tags=["Strategy Pack"],
    )


def _discard_rendered(rendered: list[GeneratedDocument]) -> None:
    storage = get_local_storage()
    for generated in rendered:
        storage.delete(str(generated.path))


@router.post("/{case_id}/generate-strategy", response_model=StrategyGenerationResponse)
async def generate_case_strategy(
    case_id: int,
    background_tasks: BackgroundTasks,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StrategyGenerationResponse:
    """Generate the strategy pack (PDF + Word) for a case.

    Raises:
        HTTPException 402: No strategy pack credit and no active monthly plan
        HTTPException 403/404: Ownership / existence
        HTTPException 500: Document rendering failed
    """
    case = _load_case(db, case_id, user)
    caller = db.get(User, user.id)

    if not user.is_admin and (caller is None or not subscription.can_generate_strategy(caller)):
        logger.info(
            "strategy.payment_required",
            extra={"event": "strategy.payment_required", "case_id": case.id},
        )
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="A strategy pack purchase or an active monthly subscription is required.",
        )

    owner = caller if case.user_id == user.id else db.get(User, case.user_id)
    strategy = await generate_strategy(_case_facts(db, case, owner))

    output_dir = env.get_documents_dir()
    rendered: list[GeneratedDocument] = []
    try:
        rendered.append(await run_in_threadpool(render_strategy_pdf, case, strategy, output_dir))
        rendered.append(await run_in_threadpool(render_strategy_docx, case, strategy, output_dir))
    except Exception as e:
        _discard_rendered(rendered)
        logger.error(
            "strategy.render.failed",
            extra={"event": "strategy.render.failed", "case_id": case.id, "error_type": type(e).__name__},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to render strategy documents.",
        )

    pdf, docx = rendered
    documents = [_document_row(case, pdf, "PDF"), _document_row(case, docx, "Word")]
    db.add_all(documents)

    case.strategy_pack = strategy.to_dict()
    case.updated_at = utcnow()
    if not user.is_admin and caller is not None:
        subscription.consume_strategy_credit(caller)

    record_event(
        db,
        user_id=user.id,
        case_id=case.id,
        event_type="strategy_generated",
        title="Strategy pack generated",
        description="Your strategy pack is ready in PDF and Word formats.",
    )
    notification_service.create_notification(
        db,
        user_id=case.user_id,
        type="document_ready",
        title="Strategy pack ready",
        message=f'Your strategy pack for "{case.title}" is ready to download.',
        priority="high",
        category="documents",
        related_id=case.id,
        related_type="case",
        action_url=f"/cases/{case.id}",
        action_label="View Documents",
        commit=False,
    )
    try:
        db.commit()
    except Exception:
        db.rollback()
        _discard_rendered(rendered)
        raise
    for document in documents:
        db.refresh(document)

    logger.info(
        "strategy.pack.generated",
        extra={"event": "strategy.pack.generated", "case_id": case.id, "documents": len(documents)},
    )

    if owner is not None and owner.email:
        background_tasks.add_task(_send_document_ready_email, owner.email, case.title, case.id)

    return StrategyGenerationResponse(
        case_id=case.id,
        strategy=case.strategy_pack,
        documents=[DocumentResponse.model_validate(d) for d in documents],
    )


# ============================================================================
# Sub-resources
# ============================================================================


@router.get("/{case_id}/timeline", response_model=list[TimelineEventResponse])
async def get_case_timeline(
    case_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[TimelineEvent]:
    case = _load_case(db, case_id, user)
    return (
        db.query(TimelineEvent)
        .filter(TimelineEvent.case_id == case.id)
        .order_by(TimelineEvent.event_date.desc(), TimelineEvent.id.desc())
        .all()
    )


@router.get("/{case_id}/documents", response_model=list[DocumentResponse])
async def get_case_documents(
    case_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[Document]:
    case = _load_case(db, case_id, user)
    return (
        db.query(Document)
        .filter(Document.case_id == case.id)
        .order_by(Document.created_at.desc(), Document.id.desc())
        .all()
    )
