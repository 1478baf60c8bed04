"""Render consultation proposals as PowerPoint decks."""

from __future__ import annotations

from io import BytesIO
from typing import TYPE_CHECKING, Any, Optional, Sequence, Tuple

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.text import PP_ALIGN
from pptx.util import Inches, Pt

from .templates import (
    BRAND_COLOR,
    CONSULTANT_COMPANY,
    CONSULTANT_EMAIL,
    CONSULTANT_NAME,
    CONSULTANT_PHONE,
    CLOSING_LINE,
    DATE_FORMAT,
    DECK_NEXT_STEPS,
    IMPLEMENTATION_PHASES,
    KEY_OPPORTUNITIES,
    RECOMMENDATION_HORIZONS,
    THANK_YOU_LINE,
)

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .proposal import ProposalData

BLANK_LAYOUT = 6
TITLE_SIZE = Pt(32)
BODY_SIZE = Pt(16)
MUTED_COLOR = "6B7280"

_LEFT = Inches(0.5)
_WIDTH = Inches(9)


class ProposalDeckExporter:
    """Build the proposal deck on blank slides with text boxes and tables.

    The deck always carries title, summary, context, recommendations,
    timeline, next-steps and contact slides; the assessment slide is only
    added when the session has assessments.
    """

    def render(self, data: "ProposalData") -> bytes:
        presentation: Any = Presentation()
        presentation.core_properties.title = (
            f"Marketing & PR Strategy - {data.company_name}"
        )
        presentation.core_properties.author = CONSULTANT_NAME

        self._title_slide(presentation, data)
        self._summary_slide(presentation, data)
        self._context_slide(presentation, data)
        if data.assessments:
            self._assessment_slide(presentation, data)
        self._recommendations_slide(presentation, data)
        self._timeline_slide(presentation)
        self._next_steps_slide(presentation)
        self._contact_slide(presentation)

        buffer = BytesIO()
        presentation.save(buffer)
        return buffer.getvalue()

    def _title_slide(self, presentation: Any, data: "ProposalData") -> None:
        slide = self._blank(presentation)
        self._text(
            slide,
            "Marketing & PR Strategy Proposal",
            top=Inches(2),
            height=Inches(1.2),
            size=Pt(40),
            bold=True,
            color=BRAND_COLOR,
            align=PP_ALIGN.CENTER,
        )
        self._text(
            slide,
            f"Prepared for {data.company_name}",
            top=Inches(3.4),
            height=Inches(0.6),
            size=Pt(24),
            align=PP_ALIGN.CENTER,
        )
        self._text(
            slide,
            data.prepared_on.strftime(DATE_FORMAT),
            top=Inches(4.2),
            height=Inches(0.5),
            size=BODY_SIZE,
            color=MUTED_COLOR,
            align=PP_ALIGN.CENTER,
        )

    def _summary_slide(self, presentation: Any, data: "ProposalData") -> None:
        slide = self._blank(presentation)
        self._title(slide, "Executive Summary")
        industry = data.business_context.industry or "their"
        lines = [
            f"Comprehensive marketing and PR strategy for {data.company_name} "
            f"in the {industry} industry.",
            "",
            "Key Opportunities:",
        ]
        lines.extend(f"• {item}" for item in KEY_OPPORTUNITIES)
        self._bullets(slide, lines, top=Inches(1.6), height=Inches(5))

    def _context_slide(self, presentation: Any, data: "ProposalData") -> None:
        context = data.business_context
        slide = self._blank(presentation)
        self._title(slide, "Business Context")
        rows = [
            ("Industry", context.industry or "Not specified"),
            ("Company Size", context.size or "Not specified"),
            ("Primary Goals", context.goals or "To be defined"),
            ("Key Challenges", context.challenges or "To be identified"),
        ]
        self._table(
            slide,
            ("Category", "Details"),
            rows,
            widths=(Inches(3), Inches(6)),
        )

    def _assessment_slide(self, presentation: Any, data: "ProposalData") -> None:
        slide = self._blank(presentation)
        self._title(slide, "Strategic Assessment")
        rows = [
            (assessment.category, f"{assessment.score}/100", assessment.status)
            for assessment in data.assessments
        ]
        self._table(
            slide,
            ("Category", "Score", "Status"),
            rows,
            widths=(Inches(4.5), Inches(2), Inches(2.5)),
        )

    def _recommendations_slide(
        self, presentation: Any, data: "ProposalData"
    ) -> None:
        slide = self._blank(presentation)
        self._title(slide, "Strategic Recommendations")
        lines = []
        for horizon, actions in RECOMMENDATION_HORIZONS:
            if lines:
                lines.append("")
            lines.append(horizon)
            lines.extend(f"• {action}" for action in actions)
        self._bullets(slide, lines, top=Inches(1.6), height=Inches(5.4))
        if data.recommendations:
            slide.notes_slide.notes_text_frame.text = data.recommendations

    def _timeline_slide(self, presentation: Any) -> None:
        slide = self._blank(presentation)
        self._title(slide, "Implementation Timeline")
        rows = [
            (phase.short_name, phase.duration, phase.summary)
            for phase in IMPLEMENTATION_PHASES
        ]
        self._table(
            slide,
            ("Phase", "Duration", "Key Activities"),
            rows,
            widths=(Inches(3), Inches(2), Inches(4)),
        )

    def _next_steps_slide(self, presentation: Any) -> None:
        slide = self._blank(presentation)
        self._title(slide, "Next Steps")
        lines = []
        for heading, detail in DECK_NEXT_STEPS:
            if lines:
                lines.append("")
            lines.append(heading)
            lines.append(f"   {detail}")
        self._bullets(slide, lines, top=Inches(1.6), height=Inches(5))

    def _contact_slide(self, presentation: Any) -> None:
        slide = self._blank(presentation)
        self._title(slide, "Contact Information")
        lines = [
            CONSULTANT_NAME,
            CONSULTANT_COMPANY,
            "",
            f"Email: {CONSULTANT_EMAIL}",
            f"Phone: {CONSULTANT_PHONE}",
            "",
            THANK_YOU_LINE,
            CLOSING_LINE,
        ]
        self._bullets(slide, lines, top=Inches(1.8), height=Inches(5))

    @staticmethod
    def _blank(presentation: Any) -> Any:
        return presentation.slides.add_slide(presentation.slide_layouts[BLANK_LAYOUT])

    def _title(self, slide: Any, text: str) -> None:
        self._text(
            slide,
            text,
            top=Inches(0.4),
            height=Inches(1),
            size=TITLE_SIZE,
            bold=True,
            color=BRAND_COLOR,
        )

    @staticmethod
    def _text(
        slide: Any,
        text: str,
        *,
        top: Any,
        height: Any,
        size: Any,
        bold: bool = False,
        color: Optional[str] = None,
        align: Optional[Any] = None,
    ) -> None:
        frame = slide.shapes.add_textbox(_LEFT, top, _WIDTH, height).text_frame
        frame.word_wrap = True
        paragraph = frame.paragraphs[0]
        if align is not None:
            paragraph.alignment = align
        run = paragraph.add_run()
        run.text = text
        run.font.size = size
        run.font.bold = bold
        if color:
            run.font.color.rgb = RGBColor.from_string(color)

    @staticmethod
    def _bullets(slide: Any, lines: Sequence[str], *, top: Any, height: Any) -> None:
        frame = slide.shapes.add_textbox(_LEFT, top, _WIDTH, height).text_frame
        frame.word_wrap = True
        for index, line in enumerate(lines):
            paragraph = frame.paragraphs[0] if index == 0 else frame.add_paragraph()
            run = paragraph.add_run()
            run.text = line
            run.font.size = BODY_SIZE

    @staticmethod
    def _table(
        slide: Any,
        headers: Tuple[str, ...],
        rows: Sequence[Tuple[str, ...]],
        *,
        widths: Tuple[Any, ...],
    ) -> None:
        shape = slide.shapes.add_table(
            len(rows) + 1,
            len(headers),
            _LEFT,
            Inches(1.6),
            _WIDTH,
            Inches(0.5) * (len(rows) + 1),
        )
        table = shape.table
        for column, width in zip(table.columns, widths):
            column.width = width
        for col, header in enumerate(headers):
            cell = table.cell(0, col)
            cell.text = header
            for paragraph in cell.text_frame.paragraphs:
                for run in paragraph.runs:
                    run.font.bold = True
                    run.font.size = Pt(14)
        for row_index, row in enumerate(rows, start=1):
            for col, value in enumerate(row):
                cell = table.cell(row_index, col)
                cell.text = value
                for paragraph in cell.text_frame.paragraphs:
                    for run in paragraph.runs:
                        run.font.size = Pt(12)
