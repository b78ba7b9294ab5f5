"""Tests for MessagePipeline: send, failure, reveal commit and debounced sync."""

import asyncio

import pytest

from chat_core.conversations import ConversationStore
from chat_core.errors import CompletionError
from chat_core.models import (
    NO_RESPONSE_TEXT,
    Attachment,
    PipelineState,
    Role,
    SessionState,
)
from chat_core.pipeline import MessagePipeline, describe_error, fold_attachments

from .conftest import ScriptedCompletion


@pytest.fixture
def session():
    return SessionState()


@pytest.fixture
def store(persistence, session):
    return ConversationStore(persistence, session)


@pytest.fixture
def pipeline(completion, store, session):
    return MessagePipeline(completion, store, session, reveal_interval=0, sync_delay=0)


async def finish(pipeline):
    await pipeline.reveal.wait()
    for _ in range(3):
        await asyncio.sleep(0)


# =========================================================================
# Helpers
# =========================================================================


def test_fold_attachments():
    files = [Attachment("a.txt", 12), Attachment("b.png", 3400)]
    assert fold_attachments("look", files) == (
        "look\n\n📎 a.txt (12 bytes)\n📎 b.png (3400 bytes)"
    )
    assert fold_attachments("", files[:1]) == "📎 a.txt (12 bytes)"
    assert fold_attachments("plain", None) == "plain"


def test_describe_error():
    assert describe_error(CompletionError("HTTP 401")) == "Error: HTTP 401"
    assert describe_error(RuntimeError()) == "Error: Unknown error occurred"


# =========================================================================
# Send
# =========================================================================


@pytest.mark.asyncio
async def test_user_message_is_appended_before_the_reply(pipeline, completion):
    """The user message is visible while the completion is still pending."""
    gate = completion.hold()
    task = pipeline.send("Hello")

    assert [m.role for m in pipeline.messages] == [Role.USER]
    assert pipeline.messages[0].content == "Hello"
    assert pipeline.state is PipelineState.SENDING

    gate.set()
    await task
    assert pipeline.state is PipelineState.REVEALING
    await finish(pipeline)
    assert pipeline.state is PipelineState.SETTLED


@pytest.mark.asyncio
async def test_reply_is_revealed_then_committed(completion, pipeline):
    completion.replies.append("Hi there")
    await pipeline.send("Hello")

    reply = pipeline.messages[-1]
    assert reply.role is Role.ASSISTANT
    assert reply.is_structured_text
    assert reply.content == ""
    assert pipeline.reveal.message_id == reply.id

    await finish(pipeline)
    assert reply.content == "Hi there"


@pytest.mark.asyncio
async def test_completion_request_carries_model_and_text(pipeline, completion, session):
    session.preferences.selected_model_id = "openai/gpt-4"
    await pipeline.send("Hello")
    assert completion.calls == [("openai/gpt-4", [{"role": "user", "content": "Hello"}])]


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
async def test_blank_send_is_ignored(pipeline, completion, text):
    assert pipeline.send(text) is None
    assert pipeline.messages == []
    assert completion.calls == []


@pytest.mark.asyncio
async def test_attachments_only_send(pipeline, completion):
    """With no text, the attachment lines are both the message and the prompt."""
    await pipeline.send("", [Attachment("notes.md", 42)])
    assert pipeline.messages[0].content == "📎 notes.md (42 bytes)"
    assert completion.calls[0][1][0]["content"] == "📎 notes.md (42 bytes)"


@pytest.mark.asyncio
async def test_prompt_is_raw_text_when_attachments_present(pipeline, completion):
    await pipeline.send("summarise", [Attachment("notes.md", 42)])
    assert "📎" in pipeline.messages[0].content
    assert completion.calls[0][1][0]["content"] == "summarise"


@pytest.mark.asyncio
async def test_second_send_while_sending_is_ignored(pipeline, completion):
    gate = completion.hold()
    first = pipeline.send("one")
    assert pipeline.send("two") is None
    gate.set()
    await first
    assert [m.content for m in pipeline.messages if m.role is Role.USER] == ["one"]
    assert len(completion.calls) == 1


@pytest.mark.asyncio
async def test_send_during_switch_is_ignored(pipeline, session):
    session.switching = True
    assert pipeline.send("hi") is None
    assert pipeline.messages == []


@pytest.mark.asyncio
async def test_send_while_revealing_cancels_reveal(completion, store, session):
    """A new send preempts a running reveal; the old reply is not committed."""
    slow = MessagePipeline(completion, store, session, reveal_interval=10, sync_delay=0)
    completion.replies.extend(["a long answer", "second"])
    await slow.send("first")
    first_reply = slow.messages[-1]
    assert slow.reveal.is_revealing

    slow.reveal.interval = 0
    await slow.send("again")
    await finish(slow)

    assert first_reply.content == ""
    assert slow.messages[-1].content == "second"


# =========================================================================
# Failures
# =========================================================================


@pytest.mark.asyncio
async def test_failure_becomes_an_assistant_message(pipeline, completion):
    completion.replies.append(CompletionError("HTTP 429: rate limited", status_code=429))
    reply = await pipeline.send("Hello")

    assert reply.role is Role.ASSISTANT
    assert reply.content == "Error: HTTP 429: rate limited"
    assert not reply.is_structured_text
    assert pipeline.state is PipelineState.FAILED
    assert not pipeline.reveal.is_revealing


@pytest.mark.asyncio
async def test_failed_state_accepts_a_new_send(pipeline, completion):
    completion.replies.extend([RuntimeError(), "recovered"])
    await pipeline.send("one")
    assert pipeline.messages[-1].content == "Error: Unknown error occurred"

    assert await pipeline.send("two") is not None
    await finish(pipeline)
    assert pipeline.messages[-1].content == "recovered"


@pytest.mark.asyncio
async def test_empty_reply_uses_fallback_text(pipeline, completion):
    completion.replies.append("")
    await pipeline.send("Hello")
    await finish(pipeline)
    assert pipeline.messages[-1].content == NO_RESPONSE_TEXT


# =========================================================================
# Edit and abort
# =========================================================================


@pytest.mark.asyncio
async def test_edit_last_truncates_and_resends(pipeline, completion):
    completion.replies.extend(["A1", "A2", "A2 edited"])
    await pipeline.send("Q1")
    await finish(pipeline)
    await pipeline.send("Q2")
    await finish(pipeline)

    await pipeline.edit_last("Q2 fixed")
    await finish(pipeline)

    assert [m.content for m in pipeline.messages] == ["Q1", "A1", "Q2 fixed", "A2 edited"]


@pytest.mark.asyncio
async def test_edit_last_rejects_blank_text(pipeline):
    await pipeline.send("Q1")
    await finish(pipeline)
    before = list(pipeline.messages)
    assert pipeline.edit_last("  ") is None
    assert pipeline.messages == before


@pytest.mark.asyncio
async def test_edit_last_without_user_message(pipeline):
    assert pipeline.edit_last("anything") is None


@pytest.mark.asyncio
async def test_abort_discards_the_in_flight_reply(pipeline, completion):
    gate = completion.hold()
    task = pipeline.send("Hello")
    await asyncio.sleep(0)
    pipeline.abort()
    gate.set()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert [m.role for m in pipeline.messages] == [Role.USER]
    assert pipeline.state is PipelineState.IDLE


# =========================================================================
# Sync
# =========================================================================


@pytest.mark.asyncio
async def test_settled_exchange_is_stored(pipeline, store, completion):
    completion.replies.append("Hi there")
    await pipeline.send("Hello")
    await finish(pipeline)

    convs = store.conversations()
    assert len(convs) == 1
    assert convs[0].title == "Hello"
    assert [m.content for m in convs[0].messages] == ["Hello", "Hi there"]


@pytest.mark.asyncio
async def test_debounced_sync_coalesces_bursts(completion, store, session, monkeypatch):
    """Several triggers inside the window produce a single store write."""
    writes = []
    monkeypatch.setattr(
        store, "upsert_from_messages", lambda msgs: writes.append(len(msgs))
    )
    p = MessagePipeline(completion, store, session, reveal_interval=0, sync_delay=0.05)
    await p.send("Hello")
    await p.reveal.wait()
    await asyncio.sleep(0.1)
    assert writes == [2]


@pytest.mark.asyncio
async def test_flush_writes_immediately(completion, store, session):
    p = MessagePipeline(completion, store, session, reveal_interval=0, sync_delay=60)
    await p.send("Hello")
    await p.reveal.wait()
    assert len(store) == 0
    p.flush()
    assert len(store) == 1


@pytest.mark.asyncio
async def test_scripted_completion_default_reply():
    assert await ScriptedCompletion().complete("m", []) == "ok"
