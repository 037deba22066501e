"""Document tag vocabulary and per-document tagging endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from resolve_api.auth.session_auth import AuthUser, get_current_user, get_owned_or_404
from resolve_api.db.models import Document, DocumentTag
from resolve_api.db.session import get_db
from resolve_api.schemas import (
    AnalyzeTagsRequest,
    ApplyTagsRequest,
    DocumentAnalysis,
    DocumentTagResponse,
    TagCreateRequest,
    TagResponse,
    TagSuggestionResponse,
)
from resolve_api.services import tagging_service

router = APIRouter(tags=["tags"])
logger = logging.getLogger(__name__)


@router.get("/api/tags", response_model=list[TagResponse])
async def list_tags(
    category: Optional[str] = Query(None),
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[DocumentTag]:
    return tagging_service.list_tags(db, category)


@router.post("/api/tags", status_code=status.HTTP_201_CREATED, response_model=TagResponse)
async def create_tag(
    request: TagCreateRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DocumentTag:
    """Create a custom tag.

    Raises:
        HTTPException 409: Tag name already exists
    """
    try:
        return tagging_service.create_custom_tag(
            db,
            name=request.name,
            category=request.category,
            created_by=user.id,
            color=request.color,
            description=request.description,
        )
    except tagging_service.DuplicateTagError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/api/documents/{document_id}/analyze-tags", response_model=DocumentAnalysis)
async def analyze_document_tags(
    document_id: int,
    request: Optional[AnalyzeTagsRequest] = None,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DocumentAnalysis:
    document = get_owned_or_404(db, Document, document_id, user, "document")
    return await tagging_service.analyze_document(
        db,
        document.id,
        document.original_name,
        request.content if request else None,
    )


@router.get("/api/documents/{document_id}/tag-suggestions", response_model=Optional[TagSuggestionResponse])
async def get_tag_suggestions(
    document_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Most recent suggestion for the document, or null if none was produced yet."""
    document = get_owned_or_404(db, Document, document_id, user, "document")
    return tagging_service.get_latest_suggestions(db, document.id)


@router.get("/api/documents/{document_id}/tags", response_model=list[DocumentTagResponse])
async def get_document_tags(
    document_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[DocumentTagResponse]:
    document = get_owned_or_404(db, Document, document_id, user, "document")
    return [
        DocumentTagResponse(
            tag=TagResponse.model_validate(row["tag"]),
            assigned_by=row["assigned_by"],
            confidence=row["confidence"],
            created_at=row["created_at"],
        )
        for row in tagging_service.get_document_tags(db, document.id)
    ]


@router.post("/api/documents/{document_id}/tags", response_model=list[DocumentTagResponse])
async def apply_document_tags(
    document_id: int,
    request: ApplyTagsRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[DocumentTagResponse]:
    """Assign tags; returns the document's full tag list afterwards.

    Raises:
        HTTPException 404: Document or any tag id not found
    """
    document = get_owned_or_404(db, Document, document_id, user, "document")
    assigned_by = "ai" if request.source == "ai" else user.id
    try:
        tagging_service.apply_tags(db, document, request.tag_ids, assigned_by)
    except tagging_service.TagNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return await get_document_tags(document_id, user, db)
