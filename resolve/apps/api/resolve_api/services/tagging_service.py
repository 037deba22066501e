"""Document tagging: system tag vocabulary, AI suggestions and tag assignment."""

import logging
import re
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from resolve_api.db.models import AITagSuggestion, Document, DocumentTag, DocumentTagAssignment
from resolve_api.schemas import DocumentAnalysis, TagSuggestion
from resolve_api.services.ai_generation import get_openai_client, request_json_completion

logger = logging.getLogger(__name__)

TAGGING_TEMPERATURE = 0.3
CONTENT_PREVIEW_CHARS = 2000
AI_CONFIDENCE = 0.8
MANUAL_CONFIDENCE = 1.0

CATEGORY_COLORS = {
    "legal": "#DC2626",
    "financial": "#059669",
    "evidence": "#7C3AED",
    "communication": "#2563EB",
    "administrative": "#D97706",
}
DEFAULT_TAG_COLOR = "#3B82F6"

PREDEFINED_TAGS: tuple[tuple[str, str, str], ...] = (
    ("Contract", "legal", "Contract documents and agreements"),
    ("Invoice", "financial", "Invoices and billing documents"),
    ("Payment Claim", "legal", "SOPA payment claims"),
    ("Demand Letter", "legal", "Legal demand correspondence"),
    ("Evidence", "evidence", "Supporting evidence documents"),
    ("Photos", "evidence", "Photographic evidence"),
    ("Email", "communication", "Email correspondence"),
    ("Letter", "communication", "Formal letters"),
    ("Quote", "financial", "Project quotes and estimates"),
    ("Receipt", "financial", "Payment receipts"),
    ("Report", "administrative", "Reports and assessments"),
    ("Notice", "legal", "Legal notices and formal notifications"),
    ("Variation", "legal", "Contract variations and changes"),
    ("Warranty", "legal", "Warranty documents"),
    ("Insurance", "administrative", "Insurance related documents"),
    ("Permit", "administrative", "Permits and approvals"),
    ("Specification", "administrative", "Technical specifications"),
    ("Progress Report", "administrative", "Project progress updates"),
    ("Dispute", "legal", "Dispute related documents"),
    ("Settlement", "legal", "Settlement agreements"),
)

TAGGING_SYSTEM_PROMPT = (
    "You are an AI assistant specialized in legal document analysis for Australian "
    "construction and trade industries. Provide accurate, practical document tagging "
    "suggestions."
)

_IMAGE_NAME = re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)


class TagNotFoundError(LookupError):
    """One or more tag ids do not exist."""


class DuplicateTagError(ValueError):
    """A tag with the same name already exists."""


def category_color(category: str) -> str:
    return CATEGORY_COLORS.get(category, DEFAULT_TAG_COLOR)


def seed_predefined_tags(db: Session) -> int:
    """Insert any missing system tags. Safe to call repeatedly.

    Returns:
        Number of tags inserted
    """
    existing = {name for (name,) in db.query(DocumentTag.name).all()}
    added = 0
    for name, category, description in PREDEFINED_TAGS:
        if name in existing:
            continue
        db.add(
            DocumentTag(
                name=name,
                category=category,
                description=description,
                color=category_color(category),
                is_system=True,
            )
        )
        added += 1

    if added:
        db.commit()
        logger.info("tags.seeded", extra={"event": "tags.seeded", "count": added})
    return added


def fallback_analysis(filename: str) -> DocumentAnalysis:
    """Filename keyword rules used when AI tagging is unavailable."""
    lower = filename.lower()
    suggestions: list[TagSuggestion] = []

    if "invoice" in lower or "bill" in lower:
        suggestions.append(
            TagSuggestion(
                tag="Invoice",
                confidence=0.8,
                reasoning="Filename contains invoice-related terms",
                category="financial",
            )
        )
    if "contract" in lower or "agreement" in lower:
        suggestions.append(
            TagSuggestion(
                tag="Contract",
                confidence=0.8,
                reasoning="Filename contains contract-related terms",
                category="legal",
            )
        )
    if "photo" in lower or "img" in lower or _IMAGE_NAME.search(lower):
        suggestions.append(
            TagSuggestion(
                tag="Photos",
                confidence=0.9,
                reasoning="Image file format detected",
                category="evidence",
            )
        )
    if "email" in lower or "correspondence" in lower:
        suggestions.append(
            TagSuggestion(
                tag="Email",
                confidence=0.8,
                reasoning="Filename contains communication-related terms",
                category="communication",
            )
        )
    if "quote" in lower or "estimate" in lower:
        suggestions.append(
            TagSuggestion(
                tag="Quote",
                confidence=0.8,
                reasoning="Filename contains quote-related terms",
                category="financial",
            )
        )

    return DocumentAnalysis(
        summary=f"Document: {filename}",
        document_type="General document",
        legal_relevance="Standard document - requires manual review for legal significance",
        suggested_tags=suggestions,
    )


def _tagging_prompt(filename: str, content: Optional[str]) -> str:
    preview = f"Document content preview: {content[:CONTENT_PREVIEW_CHARS]}..." if content else ""
    return f"""Analyze this legal document and provide tagging suggestions for an Australian construction law platform.

Document filename: {filename}
{preview}

Available tag categories:
- legal: Contracts, payment claims, demand letters, notices, disputes
- financial: Invoices, quotes, receipts, financial statements
- evidence: Photos, reports, witness statements, expert opinions
- communication: Emails, letters, meeting notes, correspondence
- administrative: Permits, insurance, specifications, progress reports

Return JSON with keys: summary, documentType, legalRelevance, and suggestedTags
(a list of objects with tag, confidence between 0 and 1, reasoning, category).
"""


def _store_suggestions(db: Session, document_id: int, analysis: DocumentAnalysis, status: str) -> AITagSuggestion:
    suggestion = AITagSuggestion(
        document_id=document_id,
        suggested_tags=[s.model_dump() for s in analysis.suggested_tags],
        document_analysis=(
            f"{analysis.summary}\n\nType: {analysis.document_type}\n\n"
            f"Legal Relevance: {analysis.legal_relevance}"
        ),
        processing_status=status,
    )
    db.add(suggestion)
    db.commit()
    db.refresh(suggestion)
    return suggestion


async def analyze_document(
    db: Session,
    document_id: int,
    filename: str,
    content: Optional[str] = None,
) -> DocumentAnalysis:
    """Suggest tags for a document and record the suggestion. Never raises on AI failure.

    Args:
        db: Database session
        document_id: Document being analysed
        filename: Original filename (drives the fallback rules)
        content: Optional text preview

    Returns:
        DocumentAnalysis from the model, or from filename rules on fallback
    """
    client = get_openai_client()
    analysis: Optional[DocumentAnalysis] = None

    if client is not None:
        try:
            raw = await request_json_completion(
                client,
                _tagging_prompt(filename, content),
                system_prompt=TAGGING_SYSTEM_PROMPT,
                temperature=TAGGING_TEMPERATURE,
            )
            analysis = DocumentAnalysis.model_validate(raw)
        except Exception as e:
            logger.error(
                "tags.analysis.fallback",
                extra={
                    "event": "tags.analysis.fallback",
                    "document_id": document_id,
                    "error_type": type(e).__name__,
                },
            )

    status = "completed"
    if analysis is None:
        analysis = fallback_analysis(filename)
        status = "fallback"

    _store_suggestions(db, document_id, analysis, status)
    logger.info(
        "tags.analysis.stored",
        extra={
            "event": "tags.analysis.stored",
            "document_id": document_id,
            "status": status,
            "suggestions": len(analysis.suggested_tags),
        },
    )
    return analysis


def apply_tags(db: Session, document: Document, tag_ids: list[int], assigned_by: str) -> list[DocumentTagAssignment]:
    """Assign tags to a document.

    Args:
        db: Database session
        document: Target document (ownership already checked)
        tag_ids: Tags to assign
        assigned_by: "ai" or the assigning user id

    Returns:
        Newly created assignments (already-assigned tags are skipped)

    Raises:
        TagNotFoundError: Any tag id is unknown
    """
    unique_ids = list(dict.fromkeys(tag_ids))
    tags = {t.id: t for t in db.query(DocumentTag).filter(DocumentTag.id.in_(unique_ids)).all()}
    missing = [tag_id for tag_id in unique_ids if tag_id not in tags]
    if missing:
        raise TagNotFoundError(f"Unknown tag ids: {missing}")

    already = {
        tag_id
        for (tag_id,) in db.query(DocumentTagAssignment.tag_id)
        .filter(DocumentTagAssignment.document_id == document.id)
        .all()
    }
    confidence = AI_CONFIDENCE if assigned_by == "ai" else MANUAL_CONFIDENCE

    created: list[DocumentTagAssignment] = []
    names = list(document.tags or [])
    for tag_id in unique_ids:
        if tag_id in already:
            continue
        tag = tags[tag_id]
        assignment = DocumentTagAssignment(
            document_id=document.id,
            tag_id=tag_id,
            assigned_by=assigned_by,
            confidence=confidence,
        )
        db.add(assignment)
        tag.usage_count = (tag.usage_count or 0) + 1
        if tag.name not in names:
            names.append(tag.name)
        created.append(assignment)

    document.tags = names
    db.commit()
    for assignment in created:
        db.refresh(assignment)

    logger.info(
        "tags.applied",
        extra={
            "event": "tags.applied",
            "document_id": document.id,
            "assigned_by": "ai" if assigned_by == "ai" else "user",
            "count": len(created),
        },
    )
    return created


def get_document_tags(db: Session, document_id: int) -> list[dict[str, Any]]:
    rows = (
        db.query(DocumentTagAssignment, DocumentTag)
        .join(DocumentTag, DocumentTag.id == DocumentTagAssignment.tag_id)
        .filter(DocumentTagAssignment.document_id == document_id)
        .order_by(DocumentTagAssignment.created_at.asc(), DocumentTagAssignment.id.asc())
        .all()
    )
    return [
        {
            "tag": tag,
            "assigned_by": assignment.assigned_by,
            "confidence": assignment.confidence,
            "created_at": assignment.created_at,
        }
        for assignment, tag in rows
    ]


def get_latest_suggestions(db: Session, document_id: int) -> Optional[AITagSuggestion]:
    return (
        db.query(AITagSuggestion)
        .filter(AITagSuggestion.document_id == document_id)
        .order_by(AITagSuggestion.processed_at.desc(), AITagSuggestion.id.desc())
        .first()
    )


def list_tags(db: Session, category: Optional[str] = None) -> list[DocumentTag]:
    """All tags, most used first, then alphabetical."""
    query = db.query(DocumentTag)
    if category:
        query = query.filter(DocumentTag.category == category)
    return query.order_by(DocumentTag.usage_count.desc(), DocumentTag.name.asc()).all()


def create_custom_tag(
    db: Session,
    *,
    name: str,
    category: str,
    created_by: str,
    color: Optional[str] = None,
    description: Optional[str] = None,
) -> DocumentTag:
    """Create a user-defined tag.

    Raises:
        DuplicateTagError: Name already taken (case-insensitive)
    """
    clean_name = name.strip()
    exists = db.query(DocumentTag).filter(func.lower(DocumentTag.name) == clean_name.lower()).first()
    if exists is not None:
        raise DuplicateTagError(f"Tag '{clean_name}' already exists")

    tag = DocumentTag(
        name=clean_name,
        category=category,
        color=color or category_color(category),
        description=description,
        is_system=False,
        created_by=created_by,
    )
    db.add(tag)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateTagError(f"Tag '{clean_name}' already exists") from e
    db.refresh(tag)

    logger.info("tags.created", extra={"event": "tags.created", "tag_id": tag.id, "category": category})
    return tag
