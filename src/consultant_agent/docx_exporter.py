"""Render consultation proposals as Word documents."""

from __future__ import annotations

import re
from dataclasses import dataclass
from io import BytesIO
from typing import TYPE_CHECKING, Any, Iterator, Optional

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Inches, Pt, RGBColor

from .templates import (
    BRAND_COLOR,
    CONSULTANT_EMAIL,
    CONSULTANT_NAME,
    CONSULTANT_PHONE,
    CLOSING_LINE,
    DATE_FORMAT,
    IMPLEMENTATION_PHASES,
    NEXT_STEPS,
    PROPOSAL_TITLE,
)

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .proposal import ProposalData

NOT_SPECIFIED = "Not specified"
ASSESSMENT_HEADERS = ("Assessment Category", "Score", "Key Insights")
ASSESSMENT_COLUMN_WIDTHS = (Inches(2.6), Inches(1.3), Inches(2.6))


@dataclass(slots=True)
class _NarrativeBlock:
    """A logical block of the recommendation narrative."""

    kind: str
    text: str = ""


class ProposalDocumentExporter:
    """Lay out the fixed proposal template with ``python-docx``."""

    _BULLET_RE = re.compile(r"^\s*[-*•]\s+(?P<text>.+)$")
    _ORDERED_RE = re.compile(r"^\s*(?P<number>\d+)[.)]\s+(?P<text>.+)$")
    _HEADING_RE = re.compile(r"^#{1,6}\s+(?P<text>.+)$")

    def render(self, data: "ProposalData") -> bytes:
        document: Any = Document()
        document.core_properties.title = (
            f"Marketing & PR Strategy Proposal - {data.company_name}"
        )
        document.core_properties.author = CONSULTANT_NAME

        self._title_block(document, data)
        self._executive_summary(document, data)
        self._business_context(document, data)
        if data.assessments:
            self._assessment_table(document, data)
        self._recommendations(document, data.recommendations)
        self._timeline(document)
        self._next_steps(document)
        self._contact(document)

        buffer = BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    def _title_block(self, document: Any, data: "ProposalData") -> None:
        self._centered(
            document, PROPOSAL_TITLE, size=16, bold=True, color=BRAND_COLOR,
            space_after=20,
        )
        self._centered(
            document, f"Prepared for: {data.company_name}", size=12, bold=True,
        )
        self._centered(document, f"Contact: {data.contact_name}", size=10)
        self._centered(
            document,
            f"Date: {data.prepared_on.strftime(DATE_FORMAT)}",
            size=10,
            space_after=20,
        )
        self._centered(
            document, f"Prepared by: {CONSULTANT_NAME}", size=8, italic=True,
            space_after=40,
        )

    def _executive_summary(self, document: Any, data: "ProposalData") -> None:
        self._heading(document, "EXECUTIVE SUMMARY")
        industry = data.business_context.industry or NOT_SPECIFIED
        self._body(
            document,
            "This proposal outlines a comprehensive marketing and PR strategy "
            f"for {data.company_name} in the {industry} industry. Based on our "
            "consultation analysis, we have identified key opportunities and "
            "challenges that require strategic attention to maximize business "
            "growth and market presence.",
        )

    def _business_context(self, document: Any, data: "ProposalData") -> None:
        context = data.business_context
        self._heading(document, "BUSINESS CONTEXT ANALYSIS")
        self._labeled(document, "Industry", context.industry or NOT_SPECIFIED)
        self._labeled(document, "Company Size", context.size or NOT_SPECIFIED)
        self._labeled(
            document,
            "Primary Goals",
            context.goals or "To be defined during implementation",
        )
        self._labeled(
            document,
            "Key Challenges",
            context.challenges or "To be identified during strategy development",
        )

    def _assessment_table(self, document: Any, data: "ProposalData") -> None:
        self._heading(document, "STRATEGIC ASSESSMENT RESULTS")
        table = document.add_table(rows=1, cols=len(ASSESSMENT_HEADERS))
        table.style = "Table Grid"
        for cell, header, width in zip(
            table.rows[0].cells, ASSESSMENT_HEADERS, ASSESSMENT_COLUMN_WIDTHS
        ):
            cell.width = width
            cell.paragraphs[0].add_run(header).bold = True

        for assessment in data.assessments:
            cells = table.add_row().cells
            for cell, width in zip(cells, ASSESSMENT_COLUMN_WIDTHS):
                cell.width = width
            cells[0].paragraphs[0].add_run(assessment.category)
            score_run = cells[1].paragraphs[0].add_run(
                f"{assessment.score}/100"
            )
            score_run.bold = True
            score_run.font.color.rgb = RGBColor.from_string(assessment.color)
            insight_cell = cells[2]
            for index, insight in enumerate(assessment.insights):
                paragraph = (
                    insight_cell.paragraphs[0]
                    if index == 0
                    else insight_cell.add_paragraph()
                )
                paragraph.add_run(f"• {insight}")
        document.add_paragraph()

    def _recommendations(self, document: Any, narrative: str) -> None:
        self._heading(document, "STRATEGIC RECOMMENDATIONS")
        blocks = list(self._iter_blocks(narrative))
        if not blocks:
            self._body(
                document,
                "Based on our analysis, detailed recommendations will be "
                "provided in the implementation phase.",
            )
            return
        for block in blocks:
            if block.kind == "heading":
                paragraph = document.add_paragraph()
                run = paragraph.add_run(block.text)
                run.bold = True
                run.font.size = Pt(11)
            elif block.kind == "bullet":
                document.add_paragraph(block.text, style="List Bullet")
            elif block.kind == "numbered":
                document.add_paragraph(block.text, style="List Number")
            else:
                self._body(document, block.text)

    def _timeline(self, document: Any) -> None:
        self._heading(document, "IMPLEMENTATION TIMELINE")
        for phase in IMPLEMENTATION_PHASES:
            paragraph = document.add_paragraph()
            run = paragraph.add_run(phase.title)
            run.bold = True
            run.font.size = Pt(11)
            for activity in phase.activities:
                bullet = document.add_paragraph(style="List Bullet")
                bullet.add_run(activity).font.size = Pt(10)

    def _next_steps(self, document: Any) -> None:
        self._heading(document, "NEXT STEPS")
        for index, step in enumerate(NEXT_STEPS, start=1):
            self._body(document, f"{index}. {step}", space_after=2)

    def _contact(self, document: Any) -> None:
        self._heading(document, "CONTACT INFORMATION")
        self._body(
            document,
            "For questions or to proceed with this proposal, please contact:",
        )
        self._body(document, CONSULTANT_NAME, space_after=2)
        self._body(document, f"Email: {CONSULTANT_EMAIL}", space_after=2)
        self._body(document, f"Phone: {CONSULTANT_PHONE}")
        self._body(
            document,
            "Thank you for choosing our services. " + CLOSING_LINE,
        )

    def _iter_blocks(self, narrative: str) -> Iterator[_NarrativeBlock]:
        for raw_line in narrative.splitlines():
            stripped = raw_line.strip()
            if not stripped:
                continue
            heading = self._HEADING_RE.match(stripped)
            if heading:
                yield _NarrativeBlock(
                    kind="heading",
                    text=self._clean_inline(heading.group("text")),
                )
                continue
            if stripped.startswith("**") and stripped.endswith("**"):
                yield _NarrativeBlock(
                    kind="heading", text=self._clean_inline(stripped)
                )
                continue
            bullet = self._BULLET_RE.match(stripped)
            if bullet:
                yield _NarrativeBlock(
                    kind="bullet",
                    text=self._clean_inline(bullet.group("text")),
                )
                continue
            ordered = self._ORDERED_RE.match(stripped)
            if ordered:
                yield _NarrativeBlock(
                    kind="numbered",
                    text=self._clean_inline(ordered.group("text")),
                )
                continue
            yield _NarrativeBlock(
                kind="paragraph", text=self._clean_inline(stripped)
            )

    @staticmethod
    def _clean_inline(text: str) -> str:
        cleaned = text.replace("**", "").replace("__", "").replace("`", "")
        cleaned = re.sub(r"\[(.*?)\]\((.*?)\)", r"\1 (\2)", cleaned)
        return cleaned.strip()

    @staticmethod
    def _heading(document: Any, text: str) -> None:
        heading = document.add_heading("", level=1)
        run = heading.add_run(text)
        run.bold = True
        run.font.size = Pt(12)
        run.font.color.rgb = RGBColor.from_string(BRAND_COLOR)
        heading.paragraph_format.space_before = Pt(20)
        heading.paragraph_format.space_after = Pt(10)

    @staticmethod
    def _body(document: Any, text: str, *, space_after: int = 12) -> None:
        paragraph = document.add_paragraph()
        paragraph.add_run(text).font.size = Pt(11)
        paragraph.paragraph_format.space_after = Pt(space_after)

    @staticmethod
    def _labeled(document: Any, label: str, value: str) -> None:
        paragraph = document.add_paragraph()
        label_run = paragraph.add_run(f"{label}: ")
        label_run.bold = True
        label_run.font.size = Pt(11)
        paragraph.add_run(value).font.size = Pt(11)
        paragraph.paragraph_format.space_after = Pt(4)

    @staticmethod
    def _centered(
        document: Any,
        text: str,
        *,
        size: int,
        bold: bool = False,
        italic: bool = False,
        color: Optional[str] = None,
        space_after: int = 10,
    ) -> None:
        paragraph = document.add_paragraph()
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = paragraph.add_run(text)
        run.bold = bold
        run.italic = italic
        run.font.size = Pt(size)
        if color:
            run.font.color.rgb = RGBColor.from_string(color)
        paragraph.paragraph_format.space_after = Pt(space_after)
