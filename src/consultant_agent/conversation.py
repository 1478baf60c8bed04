"""Conversation state machine for a single consultation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from .maf_client import ChatBackend, ChatMessage
from .prompts import APOLOGY_MESSAGE

logger = logging.getLogger(__name__)

PROGRESS_STEP = 8
PROGRESS_CAP = 95
PROGRESS_COMPLETE = 100

ChunkCallback = Callable[[str], Awaitable[None]]


class ConversationState(str, Enum):
    """Implicit states of the chat input."""

    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"
    READY = "ready"


class EmptyMessageError(ValueError):
    """Raised when a blank message is submitted."""


class ReplyInFlightError(RuntimeError):
    """Raised when a message is submitted while a reply is still streaming."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


@dataclass(slots=True)
class Message:
    """A single user or assistant turn."""

    role: str
    content: str
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=_now)

    def as_chat_message(self) -> ChatMessage:
        return ChatMessage(role=self.role, content=self.content)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


class ConversationSession:
    """Ordered transcript plus the single in-flight assistant reply.

    The transcript only ever grows by appending. While a reply streams, its
    text lives in a separate pending slot and is committed to the transcript
    once the stream ends (or fails).
    """

    def __init__(self) -> None:
        self._messages: List[Message] = []
        self._pending: Optional[Message] = None
        self._state = ConversationState.IDLE
        self._progress = 0
        self._reply_count = 0
        self._length_at_submit = 0

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def pending(self) -> Optional[Message]:
        return self._pending

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def is_generating(self) -> bool:
        return self._state is ConversationState.AWAITING_REPLY

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def reply_count(self) -> int:
        """Number of assistant replies that streamed to completion."""

        return self._reply_count

    def __len__(self) -> int:
        return len(self._messages)

    def visible_messages(self) -> List[Message]:
        visible = list(self._messages)
        if self._pending is not None:
            visible.append(self._pending)
        return visible

    def seed(self, content: str) -> Optional[Message]:
        """Add an opening assistant message to an empty transcript."""

        if self._messages:
            return None
        message = Message(role="assistant", content=content)
        self._messages.append(message)
        return message

    def submit(self, text: str) -> Message:
        """Append a user message and wait for the assistant reply."""

        if not text or not text.strip():
            raise EmptyMessageError("Message is empty.")
        if self._state is ConversationState.AWAITING_REPLY:
            raise ReplyInFlightError("A reply is already being generated.")
        self._length_at_submit = len(self._messages)
        message = Message(role="user", content=text)
        self._messages.append(message)
        self._state = ConversationState.AWAITING_REPLY
        return message

    async def receive_reply(
        self,
        backend: ChatBackend,
        system_prompt: str,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> Message:
        """Stream the assistant reply for the last submitted message.

        Returns the committed reply, or the apology message when the
        completion service fails.
        """

        if self._state is not ConversationState.AWAITING_REPLY:
            raise RuntimeError("No submitted message is awaiting a reply.")

        payload = [ChatMessage(role="system", content=system_prompt)]
        payload.extend(message.as_chat_message() for message in self._messages)
        accumulated = ""
        try:
            async for chunk in backend.stream(payload):
                if not chunk:
                    continue
                accumulated += chunk
                if self._pending is None:
                    self._pending = Message(role="assistant", content=accumulated)
                else:
                    self._pending.content = accumulated
                if on_chunk is not None:
                    await on_chunk(accumulated)
        except asyncio.CancelledError:
            self._commit_pending()
            self._state = ConversationState.READY
            raise
        except Exception:
            logger.exception("Error generating response")
            self._commit_pending()
            apology = Message(role="assistant", content=APOLOGY_MESSAGE)
            self._messages.append(apology)
            self._state = ConversationState.READY
            return apology

        if self._pending is None:
            self._pending = Message(role="assistant", content="")
        reply = self._pending
        self._commit_pending()
        self._reply_count += 1
        self._advance_progress(
            min(PROGRESS_CAP, (self._length_at_submit + 1) * PROGRESS_STEP)
        )
        self._state = ConversationState.READY
        return reply

    def mark_complete(self) -> None:
        """Record the completion milestone (a delivered proposal)."""

        self._advance_progress(PROGRESS_COMPLETE)

    def reset(self) -> None:
        self._messages = []
        self._pending = None
        self._state = ConversationState.IDLE
        self._progress = 0
        self._reply_count = 0
        self._length_at_submit = 0

    def _commit_pending(self) -> None:
        if self._pending is None:
            return
        self._messages.append(self._pending)
        self._pending = None

    def _advance_progress(self, value: int) -> None:
        if value > self._progress:
            self._progress = value
