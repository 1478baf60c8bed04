from __future__ import annotations

import asyncio

import pytest

from consultant_agent.conversation import (
    PROGRESS_CAP,
    ConversationSession,
    ConversationState,
    EmptyMessageError,
    ReplyInFlightError,
)
from consultant_agent.prompts import APOLOGY_MESSAGE


def test_seed_only_applies_to_empty_transcript():
    conversation = ConversationSession()

    assert conversation.seed("Welcome!") is not None
    assert conversation.seed("Welcome again!") is None
    assert [m.content for m in conversation.messages] == ["Welcome!"]
    assert conversation.state is ConversationState.IDLE


def test_blank_message_is_rejected():
    conversation = ConversationSession()

    with pytest.raises(EmptyMessageError):
        conversation.submit("   ")
    assert len(conversation) == 0


def test_streamed_reply_is_committed(make_backend):
    backend = make_backend(["Hel", "lo", "", "!"])
    conversation = ConversationSession()
    conversation.seed("Welcome!")
    seen = []

    async def on_chunk(accumulated):
        seen.append(accumulated)
        assert conversation.pending is not None
        assert conversation.pending.content == accumulated
        assert conversation.is_generating

    conversation.submit("We need more leads")
    reply = asyncio.run(conversation.receive_reply(backend, "system", on_chunk))

    assert seen == ["Hel", "Hello", "Hello!"]
    assert reply.content == "Hello!"
    assert [m.role for m in conversation.messages] == [
        "assistant",
        "user",
        "assistant",
    ]
    assert conversation.pending is None
    assert conversation.state is ConversationState.READY
    assert conversation.reply_count == 1
    sent = backend.stream_calls[0]
    assert sent[0].role == "system" and sent[0].content == "system"
    assert sent[-1].content == "We need more leads"


def test_second_submit_while_generating_is_rejected():
    conversation = ConversationSession()
    conversation.submit("first")

    with pytest.raises(ReplyInFlightError):
        conversation.submit("second")
    assert len(conversation) == 1


def test_transcript_prefix_is_preserved_across_turns(make_backend):
    backend = make_backend(["ok"])
    conversation = ConversationSession()
    conversation.seed("Welcome!")

    async def run():
        snapshots = []
        for text in ("one", "two", "three"):
            before = conversation.messages
            conversation.submit(text)
            await conversation.receive_reply(backend, "system")
            after = conversation.messages
            assert after[: len(before)] == before
            snapshots.append(len(after))
        return snapshots

    assert asyncio.run(run()) == [3, 5, 7]


def test_stream_failure_keeps_partial_text_and_apologizes(make_backend):
    backend = make_backend(["Partial"], stream_error=RuntimeError("boom"))
    conversation = ConversationSession()
    conversation.submit("hi")

    reply = asyncio.run(conversation.receive_reply(backend, "system"))

    assert reply.content == APOLOGY_MESSAGE
    assert [m.content for m in conversation.messages] == [
        "hi",
        "Partial",
        APOLOGY_MESSAGE,
    ]
    assert conversation.state is ConversationState.READY
    assert conversation.reply_count == 0
    assert conversation.progress == 0


def test_failure_before_any_chunk_only_adds_apology(make_backend):
    backend = make_backend([], stream_error=ConnectionError("offline"))
    conversation = ConversationSession()
    conversation.submit("hi")

    asyncio.run(conversation.receive_reply(backend, "system"))

    assert [m.content for m in conversation.messages] == ["hi", APOLOGY_MESSAGE]


def test_progress_is_monotonic_and_capped(make_backend):
    backend = make_backend(["ok"])
    conversation = ConversationSession()
    conversation.seed("Welcome!")

    async def run():
        values = []
        for index in range(15):
            conversation.submit(f"answer {index}")
            await conversation.receive_reply(backend, "system")
            values.append(conversation.progress)
        return values

    values = asyncio.run(run())

    assert values[0] == 16
    assert values == sorted(values)
    assert max(values) == PROGRESS_CAP
    conversation.mark_complete()
    assert conversation.progress == 100


def test_reset_clears_everything(make_backend):
    backend = make_backend(["ok"])
    conversation = ConversationSession()
    conversation.seed("Welcome!")
    conversation.submit("hi")
    asyncio.run(conversation.receive_reply(backend, "system"))

    conversation.reset()

    assert conversation.messages == ()
    assert conversation.progress == 0
    assert conversation.reply_count == 0
    assert conversation.state is ConversationState.IDLE
