"""Shared session orchestration for marketing and PR consultations."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, Optional, Set

from .assessment import AssessmentEngine
from .config import AppSettings
from .conversation import (
    ChunkCallback,
    ConversationSession,
    Message,
    ReplyInFlightError,
)
from .maf_client import ChatBackend
from .profile import BusinessProfile
from .prompts import build_system_prompt, build_welcome_message
from .proposal import BusinessContext, ExportArtifact, ExportKind, ProposalExporter

logger = logging.getLogger(__name__)

MIN_EXPORT_MESSAGES = 3


class ProfileRequiredError(RuntimeError):
    """Raised when chatting before a business profile is known."""


class ExportNotReadyError(RuntimeError):
    """Raised when an export is requested for a too-short consultation."""


@dataclass(slots=True)
class ConsultationSession:
    """Encapsulates the state of a single user's consultation."""

    user_id: str
    backend: ChatBackend
    conversation: ConversationSession
    assessments: AssessmentEngine
    exporter: ProposalExporter
    profile: Optional[BusinessProfile] = None
    context: BusinessContext = field(default_factory=BusinessContext)
    company_name: str = ""
    contact_name: str = ""
    background_tasks: Set["asyncio.Task[Any]"] = field(default_factory=set)

    @classmethod
    def create(
        cls,
        user_id: str,
        backend: ChatBackend,
        settings: Optional[AppSettings] = None,
        profile: Optional[BusinessProfile] = None,
    ) -> "ConsultationSession":
        threshold = settings.assessment_threshold if settings else 4
        session = cls(
            user_id=user_id,
            backend=backend,
            conversation=ConversationSession(),
            assessments=AssessmentEngine(backend, threshold=threshold),
            exporter=ProposalExporter(backend),
        )
        if profile is not None:
            session.apply_profile(profile)
        return session

    def apply_profile(self, profile: BusinessProfile) -> None:
        """Adopt a profile: seed context, proposal names and the welcome."""

        self.profile = profile
        self.context.industry = profile.industry
        self.context.size = profile.company_size.value
        self.company_name = profile.company_name
        self.contact_name = profile.full_name
        self.conversation.seed(build_welcome_message(profile))

    @property
    def can_export(self) -> bool:
        return len(self.conversation) >= MIN_EXPORT_MESSAGES

    def submit(self, text: str) -> Message:
        if self.profile is None:
            raise ProfileRequiredError(
                "A business profile is required before chatting."
            )
        return self.conversation.submit(text)

    async def receive_reply(
        self,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> Message:
        """Stream the assistant reply and fire the assessment when due."""

        completed_before = self.conversation.reply_count
        reply = await self.conversation.receive_reply(
            self.backend,
            build_system_prompt(self.profile),
            on_chunk,
        )
        succeeded = self.conversation.reply_count > completed_before
        transcript_length = len(self.conversation)
        if succeeded and self.assessments.should_trigger(transcript_length):
            logger.info(
                "Scheduling assessment for %s at %d messages",
                self.user_id,
                transcript_length,
            )
            self._schedule(
                self.assessments.refresh(self.conversation.messages, reply.content)
            )
        return reply

    async def refresh_assessments(self) -> bool:
        latest = ""
        for message in reversed(self.conversation.messages):
            if message.role == "assistant":
                latest = message.content
                break
        return await self.assessments.refresh(self.conversation.messages, latest)

    def update_context(
        self,
        *,
        industry: Optional[str] = None,
        size: Optional[str] = None,
        goals: Optional[str] = None,
        challenges: Optional[str] = None,
        company_name: Optional[str] = None,
        contact_name: Optional[str] = None,
    ) -> None:
        if industry is not None:
            self.context.industry = industry
        if size is not None:
            self.context.size = size
        if goals is not None:
            self.context.goals = goals
        if challenges is not None:
            self.context.challenges = challenges
        if company_name is not None:
            self.company_name = company_name
        if contact_name is not None:
            self.contact_name = contact_name

    def reset(self) -> None:
        """Start the consultation over, keeping profile and context."""

        if self.conversation.is_generating:
            raise ReplyInFlightError(
                "Cannot reset while a reply is being generated."
            )
        self.conversation.reset()
        self.assessments.reset()
        if self.profile is not None:
            self.conversation.seed(build_welcome_message(self.profile))
        logger.info("Consultation reset for %s", self.user_id)

    async def export(self, kind: ExportKind) -> ExportArtifact:
        if not self.can_export:
            raise ExportNotReadyError(
                "Have a longer consultation before exporting a proposal."
            )
        artifact = await self.exporter.export(
            kind,
            messages=self.conversation.messages,
            assessments=self.assessments.assessments,
            context=self.context,
            company_name=self.company_name,
            contact_name=self.contact_name,
        )
        return artifact

    def mark_delivered(self) -> None:
        """Record that an exported proposal was handed to the user."""

        self.conversation.mark_complete()

    def snapshot(self) -> Dict[str, Any]:
        """JSON-serializable view of the session for the browser client."""

        return {
            "userId": self.user_id,
            "profile": self.profile.to_dict() if self.profile else None,
            "messages": [
                message.to_dict()
                for message in self.conversation.visible_messages()
            ],
            "state": self.conversation.state.value,
            "progress": self.conversation.progress,
            "assessments": [
                assessment.to_dict()
                for assessment in self.assessments.assessments
            ],
            "context": self.context.to_dict(),
            "companyName": self.company_name,
            "contactName": self.contact_name,
            "isGenerating": self.conversation.is_generating,
            "canExport": self.can_export,
        }

    async def drain(self) -> None:
        """Wait for outstanding background work (assessments)."""

        while self.background_tasks:
            await asyncio.gather(*list(self.background_tasks))

    def _schedule(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self.background_tasks.add(task)
        task.add_done_callback(self.background_tasks.discard)
