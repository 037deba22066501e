"""Strategy pack Word document rendering (python-docx)."""

import logging
from datetime import datetime, timezone
from pathlib import Path

from docx import Document as WordDocument
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt, RGBColor

from resolve_api.db.models import Case
from resolve_api.services.ai_generation import StrategyDocument
from resolve_api.services.pdf_generator import (
    FOOTER_TEXT,
    GeneratedDocument,
    build_document_filename,
)

logger = logging.getLogger(__name__)

DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
_BRAND = RGBColor(0x1E, 0x3A, 0x8A)
_ACCENT = RGBColor(0xF5, 0x9E, 0x0B)


def render_strategy_docx(
    case: Case,
    strategy: StrategyDocument,
    output_dir: Path,
) -> GeneratedDocument:
    """Render the strategy pack as an editable .docx with the same sections as the PDF."""
    case_number = case.case_number
    output_dir.mkdir(parents=True, exist_ok=True)
    filename = build_document_filename(case_number, "docx")
    path = output_dir / filename

    doc = WordDocument()

    footer = doc.sections[0].footer.paragraphs[0]
    footer.text = FOOTER_TEXT
    footer.alignment = WD_ALIGN_PARAGRAPH.CENTER

    brand = doc.add_paragraph()
    brand.alignment = WD_ALIGN_PARAGRAPH.CENTER
    run = brand.add_run("RESOLVE")
    run.bold = True
    run.font.size = Pt(36)
    run.font.color.rgb = _BRAND

    tagline = doc.add_paragraph()
    tagline.alignment = WD_ALIGN_PARAGRAPH.CENTER
    run = tagline.add_run("FOR TRADIES. POWERED BY AI")
    run.bold = True
    run.font.color.rgb = _ACCENT

    for line in (
        f"Prepared for {strategy.client_name}",
        strategy.case_title,
        f"Case {case_number}",
        datetime.now(timezone.utc).strftime("%d %B %Y"),
    ):
        doc.add_paragraph(line).alignment = WD_ALIGN_PARAGRAPH.CENTER

    doc.add_page_break()

    doc.add_heading("01  Purpose of this document", level=1)
    doc.add_paragraph(
        "This strategy pack explains where you stand, what the Security of Payment "
        "process looks like for your dispute, and the practical steps to get paid."
    )

    doc.add_heading("02  Welcome to Resolve", level=1)
    doc.add_paragraph(strategy.welcome_message)

    doc.add_heading("03  Your case and what you can do now", level=1)
    doc.add_paragraph(f"Issue: {strategy.issue_type}")
    doc.add_paragraph(f"Amount in dispute: {strategy.amount}")
    if strategy.description:
        doc.add_paragraph(strategy.description)
    doc.add_paragraph(strategy.legal_analysis)

    doc.add_heading("04  How it works", level=1)
    sopa = strategy.security_of_payment_act
    doc.add_paragraph(sopa.reasoning)
    for step in sopa.steps:
        doc.add_heading(f"Step {step.step}: {step.title} ({step.timeframe})", level=2)
        doc.add_paragraph(step.description)

    doc.add_heading("05  Timeline", level=1)
    table = doc.add_table(rows=1, cols=3)
    table.style = "Table Grid"
    header = table.rows[0].cells
    header[0].text, header[1].text, header[2].text = "When", "Action", "Deadline"
    for item in strategy.timeline:
        cells = table.add_row().cells
        cells[0].text, cells[1].text, cells[2].text = item.day, item.action, item.deadline or ""

    doc.add_heading("06  Cost Estimate", level=1)
    cost = strategy.cost_estimate
    for label, value in (
        ("Adjudication application fee", cost.adjudication_fee),
        ("Adjudicator fee", cost.adjudicator_fee),
        ("Likelihood of recovery", cost.recovery_likelihood),
        ("Total estimated cost", cost.total_estimated_cost),
    ):
        para = doc.add_paragraph(style="List Bullet")
        para.add_run(f"{label}: ").bold = True
        para.add_run(value)

    doc.add_heading("07  Risk Assessment", level=1)
    doc.add_paragraph(strategy.risk_assessment)

    doc.add_heading("08  Next Steps and Enforcement", level=1)
    doc.add_paragraph(strategy.next_steps)
    doc.add_paragraph(strategy.enforcement_info)

    doc.add_heading("09  Attachments", level=1)
    for name in strategy.attachments:
        doc.add_paragraph(name, style="List Bullet")

    doc.save(str(path))

    size = path.stat().st_size
    logger.info(
        "document.docx.rendered",
        extra={"event": "document.docx.rendered", "document_filename": filename, "size": size},
    )
    return GeneratedDocument(filename=filename, path=path, mime_type=DOCX_MIME_TYPE, size=size)
