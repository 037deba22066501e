"""Tests for strategy pack PDF and Word rendering."""

from datetime import datetime, timezone

from docx import Document as WordDocument

from resolve_api.db.models import Case
from resolve_api.services.ai_generation import CaseFacts, build_fallback_strategy
from resolve_api.services.docx_generator import DOCX_MIME_TYPE, render_strategy_docx
from resolve_api.services.pdf_generator import (
    FOOTER_TEXT,
    PDF_MIME_TYPE,
    build_document_filename,
    render_strategy_pdf,
)

STRATEGY = build_fallback_strategy(
    CaseFacts(
        title="Variation dispute <kitchen & laundry>",
        issue_type="variation_dispute",
        amount="$4,200",
        client_name="Sam Sparky",
    )
)
CASE = Case(title="Variation dispute", case_number="CASE-1718000000000-AB12", issue_type="variation_dispute")


def test_filename_is_safe_and_timestamped():
    now = datetime(2026, 1, 2, tzinfo=timezone.utc)
    name = build_document_filename("CASE-1/../x", "pdf", now=now)
    assert name == f"resolve_CASE-1____x_{int(now.timestamp() * 1000)}.pdf"


def test_render_pdf_writes_file(tmp_path):
    generated = render_strategy_pdf(CASE, STRATEGY, tmp_path / "out")

    assert generated.path.is_file()
    assert generated.path.parent == tmp_path / "out"
    assert generated.mime_type == PDF_MIME_TYPE
    assert generated.size == generated.path.stat().st_size
    assert generated.path.read_bytes().startswith(b"%PDF")
    assert generated.filename.startswith("resolve_CASE-1718000000000-AB12_")


def test_render_docx_has_sections_and_footer(tmp_path):
    generated = render_strategy_docx(CASE, STRATEGY, tmp_path)

    assert generated.mime_type == DOCX_MIME_TYPE
    doc = WordDocument(str(generated.path))
    text = "\n".join(p.text for p in doc.paragraphs)
    assert "RESOLVE" in text
    assert "Security of Payment" in text
    assert doc.sections[0].footer.paragraphs[0].text == FOOTER_TEXT
