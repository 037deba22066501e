"""Contract management endpoints (same ownership rules as cases)."""

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from resolve_api.auth.session_auth import AuthUser, get_current_user, get_owned_or_404, scope_to_owner
from resolve_api.db.models import Contract, Document, TimelineEvent, utcnow
from resolve_api.db.session import get_db
from resolve_api.schemas import (
    ContractCreateRequest,
    ContractResponse,
    ContractUpdateRequest,
    ContractVersionRequest,
    DocumentResponse,
    TimelineEventResponse,
)
from resolve_api.services.numbering import insert_with_reference
from resolve_api.services.timeline_service import record_event

router = APIRouter(prefix="/api/contracts", tags=["contracts"])
logger = logging.getLogger(__name__)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ContractResponse)
async def create_contract(
    request: ContractCreateRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Contract:
    def build(reference: str) -> Contract:
        return Contract(
            user_id=user.id,
            contract_number=reference,
            status="draft",
            version=1,
            **request.model_dump(),
        )

    contract = insert_with_reference(db, "CONTRACT", build)

    record_event(
        db,
        user_id=user.id,
        contract_id=contract.id,
        event_type="contract_created",
        title="Contract created",
        description=f"Contract {contract.contract_number} drafted for {contract.client_name}",
    )
    db.commit()
    db.refresh(contract)

    logger.info(
        "contract.created",
        extra={"event": "contract.created", "contract_id": contract.id, "contract_number": contract.contract_number},
    )
    return contract


@router.get("", response_model=list[ContractResponse])
async def list_contracts(
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[Contract]:
    query = scope_to_owner(db.query(Contract), Contract, user)
    return query.order_by(Contract.created_at.desc(), Contract.id.desc()).all()


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Contract:
    return get_owned_or_404(db, Contract, contract_id, user, "contract")


@router.put("/{contract_id}", response_model=ContractResponse)
async def update_contract(
    contract_id: int,
    request: ContractUpdateRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Contract:
    contract = get_owned_or_404(db, Contract, contract_id, user, "contract")
    changes = request.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(contract, field, value)
    contract.updated_at = utcnow()

    if changes:
        record_event(
            db,
            user_id=user.id,
            contract_id=contract.id,
            event_type="contract_updated",
            title="Contract updated",
            description="Updated: " + ", ".join(sorted(changes)),
        )
    db.commit()
    db.refresh(contract)
    return contract


@router.delete("/{contract_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contract(
    contract_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    """Delete a contract and its timeline. Linked documents are kept and unlinked."""
    contract = get_owned_or_404(db, Contract, contract_id, user, "contract")

    db.query(TimelineEvent).filter(TimelineEvent.contract_id == contract.id).delete(synchronize_session=False)
    db.query(Document).filter(Document.contract_id == contract.id).update(
        {Document.contract_id: None}, synchronize_session=False
    )
    db.delete(contract)
    db.commit()

    logger.info("contract.deleted", extra={"event": "contract.deleted", "contract_id": contract_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{contract_id}/versions", response_model=ContractResponse)
async def create_contract_version(
    contract_id: int,
    request: ContractVersionRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Contract:
    """Replace the terms and bump the version number."""
    contract = get_owned_or_404(db, Contract, contract_id, user, "contract")
    contract.version += 1
    contract.terms = request.terms
    contract.updated_at = utcnow()

    record_event(
        db,
        user_id=user.id,
        contract_id=contract.id,
        event_type="contract_version",
        title=f"Version {contract.version} saved",
        description=request.change_summary,
    )
    db.commit()
    db.refresh(contract)

    logger.info(
        "contract.version.created",
        extra={"event": "contract.version.created", "contract_id": contract.id, "version": contract.version},
    )
    return contract


@router.get("/{contract_id}/timeline", response_model=list[TimelineEventResponse])
async def get_contract_timeline(
    contract_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[TimelineEvent]:
    contract = get_owned_or_404(db, Contract, contract_id, user, "contract")
    return (
        db.query(TimelineEvent)
        .filter(TimelineEvent.contract_id == contract.id)
        .order_by(TimelineEvent.event_date.desc(), TimelineEvent.id.desc())
        .all()
    )


@router.get("/{contract_id}/documents", response_model=list[DocumentResponse])
async def get_contract_documents(
    contract_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[Document]:
    contract = get_owned_or_404(db, Contract, contract_id, user, "contract")
    return (
        db.query(Document)
        .filter(Document.contract_id == contract.id)
        .order_by(Document.created_at.desc(), Document.id.desc())
        .all()
    )
