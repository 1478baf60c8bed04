"""Proposal export: narrative generation and artifact rendering."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

from .assessment import Assessment
from .conversation import Message
from .docx_exporter import ProposalDocumentExporter
from .maf_client import ChatBackend, ChatMessage
from .pptx_exporter import ProposalDeckExporter
from .prompts import (
    RECOMMENDATIONS_FALLBACK,
    build_recommendations_prompt,
    build_report_prompt,
)

logger = logging.getLogger(__name__)

DEFAULT_COMPANY_NAME = "Your Company"
DEFAULT_CONTACT_NAME = "Client"

_WHITESPACE_RE = re.compile(r"\s+")
_PATH_UNSAFE_RE = re.compile(r'[\\/"]')


class ProposalExportError(RuntimeError):
    """Raised when an export artifact cannot be produced."""


class ExportKind(str, Enum):
    """Artifact formats offered in the export dialog."""

    TEXT = "text"
    DOCX = "docx"
    PPTX = "pptx"

    @classmethod
    def from_string(cls, kind: str | None) -> "ExportKind":
        normalized = (kind or "").strip().lower().lstrip(".")
        aliases = {"txt": "text", "word": "docx", "powerpoint": "pptx"}
        normalized = aliases.get(normalized, normalized)
        for candidate in cls:
            if candidate.value == normalized:
                return candidate
        raise ValueError(f"Unsupported export format: {kind}")

    @property
    def prefix(self) -> str:
        if self is ExportKind.TEXT:
            return "Marketing-PR-Requirements-Report"
        return "Marketing-PR-Proposal"

    @property
    def extension(self) -> str:
        return "txt" if self is ExportKind.TEXT else self.value

    @property
    def media_type(self) -> str:
        return _MEDIA_TYPES[self]


_MEDIA_TYPES = {
    ExportKind.TEXT: "text/plain; charset=utf-8",
    ExportKind.DOCX: (
        "application/vnd.openxmlformats-officedocument."
        "wordprocessingml.document"
    ),
    ExportKind.PPTX: (
        "application/vnd.openxmlformats-officedocument."
        "presentationml.presentation"
    ),
}


@dataclass(slots=True)
class BusinessContext:
    """User-editable context used as extra prompt material for exports."""

    industry: str = ""
    size: str = ""
    goals: str = ""
    challenges: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "industry": self.industry,
            "size": self.size,
            "goals": self.goals,
            "challenges": self.challenges,
        }


def _today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass(frozen=True, slots=True)
class ProposalData:
    """Everything a proposal document is rendered from."""

    messages: Tuple[Message, ...]
    assessments: Tuple[Assessment, ...]
    business_context: BusinessContext
    recommendations: str
    company_name: str = DEFAULT_COMPANY_NAME
    contact_name: str = DEFAULT_CONTACT_NAME
    prepared_on: date = field(default_factory=_today)


@dataclass(frozen=True, slots=True)
class ExportArtifact:
    """A rendered export ready to be offered as a download."""

    kind: ExportKind
    filename: str
    content: bytes

    @property
    def media_type(self) -> str:
        return self.kind.media_type


def sanitize_company_name(company_name: str) -> str:
    cleaned = _PATH_UNSAFE_RE.sub("", company_name)
    return _WHITESPACE_RE.sub("-", cleaned.strip())


def export_filename(
    kind: ExportKind,
    company_name: str,
    on: Optional[date] = None,
) -> str:
    """Build ``<Prefix>-<Company>-<YYYY-MM-DD>.<ext>`` for a download."""

    company = sanitize_company_name(company_name) or sanitize_company_name(
        DEFAULT_COMPANY_NAME
    )
    day = on or _today()
    return f"{kind.prefix}-{company}-{day.isoformat()}.{kind.extension}"


class ProposalExporter:
    """Produces text, Word and PowerPoint artifacts for a session.

    Exports on one exporter are serialized: a second request waits for the
    first to finish instead of running concurrently.
    """

    def __init__(
        self,
        backend: ChatBackend,
        *,
        document_exporter: Optional[ProposalDocumentExporter] = None,
        deck_exporter: Optional[ProposalDeckExporter] = None,
    ) -> None:
        self._backend = backend
        self._document_exporter = document_exporter or ProposalDocumentExporter()
        self._deck_exporter = deck_exporter or ProposalDeckExporter()
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def generate_recommendations(
        self,
        messages: Sequence[Message],
        assessments: Sequence[Assessment],
        context: BusinessContext,
    ) -> str:
        """Ask the model for a recommendation narrative, best-effort."""

        prompt = build_recommendations_prompt(messages, assessments, context)
        try:
            response = await self._backend.complete(
                [ChatMessage(role="user", content=prompt)]
            )
        except Exception:
            logger.exception("Error generating recommendations")
            return RECOMMENDATIONS_FALLBACK
        text = response.content.strip()
        return text or RECOMMENDATIONS_FALLBACK

    async def export(
        self,
        kind: ExportKind,
        *,
        messages: Sequence[Message],
        assessments: Sequence[Assessment],
        context: BusinessContext,
        company_name: str = "",
        contact_name: str = "",
        today: Optional[date] = None,
    ) -> ExportArtifact:
        company = company_name.strip() or DEFAULT_COMPANY_NAME
        contact = contact_name.strip() or DEFAULT_CONTACT_NAME
        day = today or _today()
        async with self._lock:
            if kind is ExportKind.TEXT:
                content = await self._render_report(messages, assessments)
            else:
                recommendations = await self.generate_recommendations(
                    messages, assessments, context
                )
                data = ProposalData(
                    messages=tuple(messages),
                    assessments=tuple(assessments),
                    business_context=BusinessContext(**context.to_dict()),
                    recommendations=recommendations,
                    company_name=company,
                    contact_name=contact,
                    prepared_on=day,
                )
                content = await self._render_document(kind, data)
        artifact = ExportArtifact(
            kind=kind,
            filename=export_filename(kind, company, day),
            content=content,
        )
        logger.info(
            "Built %s export %s (%d bytes)",
            kind.value,
            artifact.filename,
            len(content),
        )
        return artifact

    async def _render_report(
        self,
        messages: Sequence[Message],
        assessments: Sequence[Assessment],
    ) -> bytes:
        prompt = build_report_prompt(messages, assessments)
        try:
            response = await self._backend.complete(
                [ChatMessage(role="user", content=prompt)]
            )
        except Exception as exc:
            logger.exception("Error generating report")
            raise ProposalExportError("Unable to generate the text report.") from exc
        return response.content.encode("utf-8")

    async def _render_document(self, kind: ExportKind, data: ProposalData) -> bytes:
        renderer: Any = (
            self._document_exporter
            if kind is ExportKind.DOCX
            else self._deck_exporter
        )
        try:
            return await asyncio.to_thread(renderer.render, data)
        except Exception as exc:
            logger.exception("Error generating %s proposal", kind.value)
            raise ProposalExportError(
                f"Unable to render the {kind.value} proposal."
            ) from exc
