"""End-to-end tests for ChatSessionController with fakes behind every port."""

import asyncio
from datetime import date

import pytest
import pytest_asyncio

from chat_core.controller import ChatSessionController
from chat_core.errors import CompletionError
from chat_core.models import GUEST, Preferences, Role
from chat_core.persistence import PersistenceAdapter

from .conftest import GatedDocumentStore, ScriptedCompletion, settle


@pytest_asyncio.fixture
async def started(controller):
    await controller.start(None)
    yield controller
    await controller.close()


async def chat(controller, text):
    await controller.send(text)
    await settle(controller)


# =========================================================================
# Full exchange
# =========================================================================


@pytest.mark.asyncio
async def test_first_exchange_creates_a_titled_conversation(started, completion):
    """User message shows at once; the reply is revealed and stored."""
    completion.replies.append("Paris is the capital of France.")
    gate = completion.hold()
    task = started.send("What is the capital of France today?")

    assert started.is_loading
    assert [m.content for m in started.messages] == [
        "What is the capital of France today?"
    ]

    gate.set()
    await task
    assert started.is_typewriting
    assert started.revealing_message_id == started.messages[-1].id
    await settle(started)

    assert not started.is_typewriting
    assert started.messages[-1].content == "Paris is the capital of France."
    [conv] = started.conversations
    assert conv.title == "What is the capital of France…"
    assert started.current_conversation_id == conv.id


@pytest.mark.asyncio
async def test_failed_send_shows_error_and_is_stored(started, completion):
    completion.replies.append(CompletionError("401 Unauthorized", status_code=401))
    await chat(started, "Hello")

    assert started.messages[-1].role is Role.ASSISTANT
    assert started.messages[-1].content == "Error: 401 Unauthorized"
    assert len(started.conversations) == 1


@pytest.mark.asyncio
async def test_follow_up_updates_the_same_conversation(started):
    await chat(started, "First")
    await chat(started, "Second")
    [conv] = started.conversations
    assert [m.content for m in conv.messages] == ["First", "ok", "Second", "ok"]
    assert conv.title == "First"


@pytest.mark.asyncio
async def test_edit_last_resends(started, completion):
    completion.replies.extend(["A1", "A2"])
    await chat(started, "Q1")
    await started.edit_last("Q1 again")
    await settle(started)
    assert [m.content for m in started.messages] == ["Q1 again", "A2"]
    assert started.conversations[0].title == "Q1 again"


# =========================================================================
# Navigation
# =========================================================================


@pytest.mark.asyncio
async def test_new_chat_keeps_previous_conversation(started):
    await chat(started, "Old topic")
    started.new_chat()

    assert started.messages == []
    assert started.current_conversation_id is None
    assert [c.title for c in started.conversations] == ["Old topic"]

    await chat(started, "New topic")
    assert [c.title for c in started.conversations] == ["New topic", "Old topic"]


@pytest.mark.asyncio
async def test_new_chat_during_reveal_saves_nothing_partial(completion, persistence):
    controller = ChatSessionController(
        completion, persistence, reveal_interval=10, sync_delay=60
    )
    await controller.start(None)
    completion.replies.append("slow reply")
    await controller.send("Question")
    assert controller.is_typewriting

    controller.new_chat()

    assert not controller.is_typewriting
    [conv] = controller.conversations
    assert [m.content for m in conv.messages] == ["Question", ""]


@pytest.mark.asyncio
async def test_load_conversation(started):
    await chat(started, "Topic A")
    first_id = started.current_conversation_id
    started.new_chat()
    await chat(started, "Topic B")

    assert started.load_conversation(first_id)
    assert started.current_conversation_id == first_id
    assert [m.content for m in started.messages] == ["Topic A", "ok"]
    assert not started.load_conversation("missing")
    assert started.current_conversation_id == first_id


@pytest.mark.asyncio
async def test_delete_open_conversation_clears_chat(started):
    await chat(started, "Doomed")
    conv_id = started.current_conversation_id
    started.delete_conversation(conv_id)
    started.delete_conversation(conv_id)

    assert started.conversations == []
    assert started.messages == []
    assert started.current_conversation_id is None


@pytest.mark.asyncio
async def test_delete_other_conversation_keeps_open_chat(started):
    await chat(started, "Keep")
    keep_id = started.current_conversation_id
    started.new_chat()
    await chat(started, "Drop")
    drop_id = started.current_conversation_id
    started.load_conversation(keep_id)

    started.delete_conversation(drop_id)

    assert [c.id for c in started.conversations] == [keep_id]
    assert [m.content for m in started.messages] == ["Keep", "ok"]


@pytest.mark.asyncio
async def test_clear_chat_requires_confirmation(started):
    await chat(started, "Hello")
    assert not started.clear_chat(lambda: False)
    assert started.messages
    assert started.clear_chat(lambda: True)
    assert started.messages == []


# =========================================================================
# Preferences
# =========================================================================


@pytest.mark.asyncio
async def test_preferences_persist_for_guest(started, persistence):
    assert started.toggle_theme() is True
    assert started.set_selected_model("openai/gpt-4") == "openai/gpt-4"
    snapshot = await persistence.load(GUEST)
    assert snapshot.preferences == Preferences(True, "openai/gpt-4")


@pytest.mark.asyncio
async def test_unknown_model_is_replaced_by_default(started):
    assert started.set_selected_model("nope") == Preferences().selected_model_id


@pytest.mark.asyncio
async def test_preferences_persist_for_user(controller, remote_store):
    await controller.start("user-1")
    controller.toggle_theme()
    await controller.persistence.drain()
    assert remote_store.users["user-1"]["isDarkMode"] is True


@pytest.mark.asyncio
async def test_selected_model_is_used_for_sends(started, completion):
    started.set_selected_model("anthropic/claude-3-haiku")
    await chat(started, "Hi")
    assert completion.calls[-1][0] == "anthropic/claude-3-haiku"


# =========================================================================
# Voice, export, copy
# =========================================================================


@pytest.mark.asyncio
async def test_dictation_fills_compose_text_without_sending(started, completion):
    await started.start_listening()
    assert started.voice.compose_text == "dictated words"
    assert started.messages == []
    assert completion.calls == []


@pytest.mark.asyncio
async def test_speak_message(started, synthesizer):
    started.speak_message("**Hello** there")
    assert synthesizer.spoken[-1].text == "Hello there"
    started.stop_speaking()
    assert not started.voice.is_speaking


@pytest.mark.asyncio
async def test_export_chat(started):
    await chat(started, "Export me")
    filename, markdown = started.export_chat(date(2026, 10, 18))
    assert filename == "chat-export-2026-10-18.md"
    assert markdown.startswith("**You** (")
    assert "\nExport me\n\n**Assistant** (" in markdown


def test_copy_message():
    assert ChatSessionController.copy_message("**x**", True) == "x"
    assert ChatSessionController.copy_message("**x**") == "**x**"


@pytest.mark.asyncio
async def test_close_stops_everything(controller, completion, synthesizer):
    await controller.start(None)
    gate = completion.hold()
    task = controller.send("never answered")
    controller.speak_message("hello")

    await controller.close()
    gate.set()
    await asyncio.sleep(0)

    assert task.cancelled()
    assert not controller.is_typewriting
    assert synthesizer.cancels >= 2


# =========================================================================
# UI snapshot and teardown
# =========================================================================


@pytest.mark.asyncio
async def test_view_is_a_detached_copy(started):
    """Later changes on the loop do not show through an earlier view."""
    await chat(started, "First")
    view = started.view(date(2026, 10, 18))

    await chat(started, "Second")
    started.toggle_theme()
    started.new_chat()

    assert [m.content for m in view.messages] == ["First", "ok"]
    assert [c.title for c in view.conversations] == ["First"]
    assert [m.content for m in view.conversations[0].messages] == ["First", "ok"]
    assert view.preferences.theme_is_dark is False
    assert view.current_conversation_id is not None
    assert view.export[0] == "chat-export-2026-10-18.md"
    assert "First" in view.export[1]
    assert not view.is_loading


@pytest.mark.asyncio
async def test_reveal_frame(started, completion):
    completion.replies.append("Hi there")
    await started.send("Hello")
    partial, revealing = started.reveal_frame()
    assert revealing
    assert "Hi there".startswith(partial)
    await settle(started)
    assert started.reveal_frame() == ("", False)


@pytest.mark.asyncio
async def test_close_cancels_a_loading_transition(local_storage):
    store = GatedDocumentStore()
    store.gate("user-1")
    controller = ChatSessionController(
        ScriptedCompletion(), PersistenceAdapter(local_storage, store)
    )
    await controller.start(None)
    transition = controller.on_auth_state_changed("user-1")
    await asyncio.sleep(0)
    assert controller.is_switching

    await controller.close()

    assert transition.cancelled()
    assert not controller.is_switching
