"""Strategy pack PDF rendering (reportlab platypus).

Layout: A4, 50pt margins, branded cover page followed by numbered sections,
with the Resolve footer and page numbering stamped on every page.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.pdfgen import canvas
from reportlab.platypus import (
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from resolve_api.db.models import Case
from resolve_api.services.ai_generation import StrategyDocument

logger = logging.getLogger(__name__)

PAGE_MARGIN = 50
BRAND_COLOR = colors.HexColor("#1E3A8A")
ACCENT_COLOR = colors.HexColor("#F59E0B")
FOOTER_TEXT = "Resolve for tradies. Empowering you to resolve legal issues without the legal fees."
PDF_MIME_TYPE = "application/pdf"


@dataclass(frozen=True)
class GeneratedDocument:
    """A rendered file on local disk."""

    filename: str
    path: Path
    mime_type: str
    size: int


def build_document_filename(case_number: str, extension: str, now: datetime | None = None) -> str:
    """resolve_{case number}_{timestamp}.{ext}, with unsafe characters replaced."""
    safe_number = re.sub(r"[^A-Za-z0-9_-]", "_", case_number) or "case"
    stamp = int((now or datetime.now(timezone.utc)).timestamp() * 1000)
    return f"resolve_{safe_number}_{stamp}.{extension}"


class _NumberedCanvas(canvas.Canvas):
    """Canvas that defers page output so the footer can show the page total."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._saved_page_states: list[dict[str, Any]] = []

    def showPage(self) -> None:  # noqa: N802 (reportlab API)
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self) -> None:
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(total)
            super().showPage()
        super().save()

    def _draw_footer(self, total_pages: int) -> None:
        width, _height = A4
        self.saveState()
        self.setStrokeColor(ACCENT_COLOR)
        self.setLineWidth(1)
        self.line(PAGE_MARGIN, PAGE_MARGIN - 12, width - PAGE_MARGIN, PAGE_MARGIN - 12)
        self.setFont("Helvetica", 8)
        self.setFillColor(colors.grey)
        self.drawString(PAGE_MARGIN, PAGE_MARGIN - 26, FOOTER_TEXT)
        self.drawRightString(
            width - PAGE_MARGIN,
            PAGE_MARGIN - 26,
            f"Page {self._pageNumber} of {total_pages}",
        )
        self.restoreState()


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "brand": ParagraphStyle(
            "Brand",
            parent=base["Title"],
            fontName="Helvetica-Bold",
            fontSize=40,
            leading=46,
            textColor=BRAND_COLOR,
            alignment=TA_CENTER,
        ),
        "tagline": ParagraphStyle(
            "Tagline",
            parent=base["Normal"],
            fontName="Helvetica-Bold",
            fontSize=12,
            textColor=ACCENT_COLOR,
            alignment=TA_CENTER,
            spaceAfter=40,
        ),
        "cover": ParagraphStyle(
            "Cover",
            parent=base["Normal"],
            fontSize=14,
            leading=20,
            alignment=TA_CENTER,
        ),
        "heading": ParagraphStyle(
            "SectionHeading",
            parent=base["Heading2"],
            fontName="Helvetica-Bold",
            fontSize=15,
            textColor=BRAND_COLOR,
            spaceBefore=18,
            spaceAfter=8,
        ),
        "step": ParagraphStyle(
            "StepTitle",
            parent=base["Heading3"],
            fontName="Helvetica-Bold",
            fontSize=11,
            textColor=BRAND_COLOR,
            spaceBefore=6,
            spaceAfter=2,
        ),
        "body": ParagraphStyle(
            "Body",
            parent=base["Normal"],
            fontSize=10.5,
            leading=15,
            spaceAfter=6,
        ),
        "bullet": ParagraphStyle(
            "Bullet",
            parent=base["Normal"],
            fontSize=10.5,
            leading=15,
            leftIndent=14,
            bulletIndent=4,
        ),
    }


def _p(text: str, style: ParagraphStyle) -> Paragraph:
    return Paragraph(escape(text).replace("\n", "<br/>"), style)


def _table(rows: list[list[str]], col_widths: list[float], body: ParagraphStyle) -> Table:
    data = [[_p(cell, body) for cell in row] for row in rows]
    table = Table(data, colWidths=col_widths, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), BRAND_COLOR),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#CBD5E1")),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F1F5F9")]),
            ]
        )
    )
    return table


def _cover(case_number: str, strategy: StrategyDocument, styles: dict[str, ParagraphStyle]) -> list[Any]:
    generated = datetime.now(timezone.utc).strftime("%d %B %Y")
    return [
        Spacer(1, 140),
        _p("RESOLVE", styles["brand"]),
        _p("FOR TRADIES. POWERED BY AI", styles["tagline"]),
        _p(f"Prepared for {strategy.client_name}", styles["cover"]),
        Spacer(1, 12),
        _p(strategy.case_title, styles["cover"]),
        _p(f"Case {case_number}", styles["cover"]),
        _p(generated, styles["cover"]),
        PageBreak(),
    ]


def _sections(strategy: StrategyDocument, styles: dict[str, ParagraphStyle]) -> Iterable[tuple[str, list[Any]]]:
    body = styles["body"]
    bullet = styles["bullet"]
    usable_width = A4[0] - 2 * PAGE_MARGIN

    yield "Purpose of this document", [
        _p(
            "This strategy pack explains where you stand, what the Security of Payment "
            "process looks like for your dispute, and the practical steps to get paid. "
            "It is general information prepared from the details you gave us.",
            body,
        )
    ]

    yield "Welcome to Resolve", [_p(strategy.welcome_message, body)]

    yield "Your case and what you can do now", [
        _p(f"Issue: {strategy.issue_type}", body),
        _p(f"Amount in dispute: {strategy.amount}", body),
        _p(strategy.description or "No description provided.", body),
        _p(strategy.legal_analysis, body),
    ]

    sopa = strategy.security_of_payment_act
    steps: list[Any] = [_p(sopa.reasoning, body)]
    for step in sopa.steps:
        steps.append(_p(f"Step {step.step}: {step.title} ({step.timeframe})", styles["step"]))
        steps.append(_p(step.description, body))
    yield "How it works", steps

    rows = [["When", "Action", "Deadline"]] + [
        [item.day, item.action, item.deadline or ""] for item in strategy.timeline
    ]
    yield "Timeline", [_table(rows, [usable_width * 0.2, usable_width * 0.5, usable_width * 0.3], body)]

    cost = strategy.cost_estimate
    cost_rows = [
        ["Item", "Estimate"],
        ["Adjudication application fee", cost.adjudication_fee],
        ["Adjudicator fee", cost.adjudicator_fee],
        ["Likelihood of recovery", cost.recovery_likelihood],
        ["Total estimated cost", cost.total_estimated_cost],
    ]
    yield "Cost Estimate", [_table(cost_rows, [usable_width * 0.45, usable_width * 0.55], body)]

    yield "Risk Assessment", [_p(strategy.risk_assessment, body)]

    yield "Next Steps and Enforcement", [
        _p(strategy.next_steps, body),
        _p(strategy.enforcement_info, body),
    ]

    yield "Attachments", [
        Paragraph(escape(name), bullet, bulletText="•") for name in strategy.attachments
    ] or [_p("No attachments.", body)]


def render_strategy_pdf(
    case: Case,
    strategy: StrategyDocument,
    output_dir: Path,
) -> GeneratedDocument:
    """Render the strategy pack PDF to ``output_dir``.

    Args:
        case: Case row; its case number is embedded in the filename and cover
        strategy: Structured strategy content
        output_dir: Directory to write to (created if missing)

    Returns:
        GeneratedDocument describing the written file

    Raises:
        OSError / reportlab errors: propagated to the caller
    """
    case_number = case.case_number
    output_dir.mkdir(parents=True, exist_ok=True)
    filename = build_document_filename(case_number, "pdf")
    path = output_dir / filename

    styles = _styles()
    doc = SimpleDocTemplate(
        str(path),
        pagesize=A4,
        leftMargin=PAGE_MARGIN,
        rightMargin=PAGE_MARGIN,
        topMargin=PAGE_MARGIN,
        bottomMargin=PAGE_MARGIN + 20,
        title=f"Resolve strategy pack {case_number}",
        author="Resolve",
    )

    elements: list[Any] = _cover(case_number, strategy, styles)
    for number, (title, flowables) in enumerate(_sections(strategy, styles), start=1):
        elements.append(_p(f"{number:02d}  {title}", styles["heading"]))
        elements.extend(flowables)

    doc.build(elements, canvasmaker=_NumberedCanvas)

    size = path.stat().st_size
    logger.info(
        "document.pdf.rendered",
        extra={"event": "document.pdf.rendered", "document_filename": filename, "size": size},
    )
    return GeneratedDocument(filename=filename, path=path, mime_type=PDF_MIME_TYPE, size=size)
