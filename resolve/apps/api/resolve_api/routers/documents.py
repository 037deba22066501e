"""Document upload, listing, download and deletion.

Uploads are validated (MIME allow-list, ownership of the target case or
contract, size limit) before any row is written; a rejected upload leaves
neither a file nor a row.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from resolve_api.auth.session_auth import AuthUser, get_current_user, get_owned_or_404, scope_to_owner
from resolve_api.config import env
from resolve_api.db.models import AITagSuggestion, Case, Contract, Document, DocumentTagAssignment
from resolve_api.db.session import get_db
from resolve_api.schemas import DocumentResponse
from resolve_api.services.timeline_service import record_event
from resolve_api.storage.local_storage import (
    ALLOWED_UPLOAD_MIME_TYPES,
    UploadTooLargeError,
    get_local_storage,
    is_image,
)

router = APIRouter(prefix="/api/documents", tags=["documents"])
logger = logging.getLogger(__name__)


def _too_large(max_bytes: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail=f"File exceeds the maximum upload size of {max_bytes} bytes.",
    )


@router.post("/upload", status_code=status.HTTP_201_CREATED, response_model=DocumentResponse)
async def upload_document(
    file: UploadFile = File(...),
    case_id: Optional[int] = Form(None, alias="caseId"),
    contract_id: Optional[int] = Form(None, alias="contractId"),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Document:
    """Upload evidence or correspondence, optionally linked to a case or contract.

    Raises:
        HTTPException 403: Caller does not own the target case/contract
        HTTPException 404: Target case/contract not found
        HTTPException 413: File larger than UPLOAD_MAX_BYTES
        HTTPException 415: MIME type not allowed
    """
    mime_type = (file.content_type or "").lower()
    if mime_type not in ALLOWED_UPLOAD_MIME_TYPES:
        logger.info(
            "document.upload.rejected",
            extra={"event": "document.upload.rejected", "reason": "mime_type", "mime_type": mime_type},
        )
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Unsupported file type: {mime_type or 'unknown'}",
        )

    if case_id is not None:
        get_owned_or_404(db, Case, case_id, user, "case")
    if contract_id is not None:
        get_owned_or_404(db, Contract, contract_id, user, "contract")

    max_bytes = env.get_upload_max_bytes()
    if file.size is not None and file.size > max_bytes:
        raise _too_large(max_bytes)

    storage = get_local_storage()
    try:
        stored = await storage.save_upload(file, max_bytes)
    except UploadTooLargeError:
        logger.info(
            "document.upload.rejected",
            extra={"event": "document.upload.rejected", "reason": "too_large", "max_bytes": max_bytes},
        )
        raise _too_large(max_bytes)

    photo = is_image(mime_type)
    original_name = file.filename or stored.filename
    document = Document(
        user_id=user.id,
        case_id=case_id,
        contract_id=contract_id,
        filename=stored.filename,
        original_name=original_name,
        file_type="photo" if photo else "document",
        mime_type=mime_type,
        file_size=stored.size,
        upload_path=str(stored.path),
        category=category or ("photos" if photo else "evidence"),
        description=description,
    )
    db.add(document)

    if case_id is not None or contract_id is not None:
        record_event(
            db,
            user_id=user.id,
            case_id=case_id,
            contract_id=contract_id,
            event_type="document_uploaded",
            title="Document uploaded",
            description=original_name,
        )

    try:
        db.commit()
    except Exception:
        db.rollback()
        storage.delete(str(stored.path))
        raise
    db.refresh(document)

    logger.info(
        "document.uploaded",
        extra={
            "event": "document.uploaded",
            "document_id": document.id,
            "case_id": case_id,
            "contract_id": contract_id,
            "size": stored.size,
            "mime_type": mime_type,
        },
    )
    return document


@router.get("", response_model=list[DocumentResponse])
async def list_documents(
    case_id: Optional[int] = Query(None, alias="caseId"),
    contract_id: Optional[int] = Query(None, alias="contractId"),
    category: Optional[str] = Query(None),
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[Document]:
    """Caller's documents (all for an admin), newest first."""
    query = scope_to_owner(db.query(Document), Document, user)
    if case_id is not None:
        query = query.filter(Document.case_id == case_id)
    if contract_id is not None:
        query = query.filter(Document.contract_id == contract_id)
    if category:
        query = query.filter(Document.category == category)
    return query.order_by(Document.created_at.desc(), Document.id.desc()).all()


@router.get("/{document_id}/download")
async def download_document(
    document_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> FileResponse:
    document = get_owned_or_404(db, Document, document_id, user, "document")
    path = Path(document.upload_path)
    if not path.is_file():
        logger.error(
            "document.file.missing",
            extra={"event": "document.file.missing", "document_id": document.id},
        )
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Stored file is no longer available.",
        )
    return FileResponse(path, media_type=document.mime_type, filename=document.original_name)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    document = get_owned_or_404(db, Document, document_id, user, "document")
    path = document.upload_path

    db.query(DocumentTagAssignment).filter(DocumentTagAssignment.document_id == document.id).delete(
        synchronize_session=False
    )
    db.query(AITagSuggestion).filter(AITagSuggestion.document_id == document.id).delete(
        synchronize_session=False
    )
    db.delete(document)
    db.commit()

    get_local_storage().delete(path)
    logger.info("document.deleted", extra={"event": "document.deleted", "document_id": document_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
