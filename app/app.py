"""
UI layer
Purpose: Streamlit-only glue. Renders the sidebar, transcript and inputs, and
delegates all work to the ChatSessionController. The controller lives on a
background asyncio loop so the typewriter reveal and debounced saves keep
running between Streamlit reruns.
"""

import hashlib
import time

import streamlit as st
from audio_recorder_streamlit import audio_recorder

from chat_core.catalog import AI_MODELS
from chat_core.config import configure_logging
from chat_core.factory import build_controller, is_guest_id, new_guest_id
from chat_core.models import Attachment, Role
from chat_core.services.speech import AudioQueue
from chat_core.services.voice import autoplay_html
from chat_core.utils.loop import BackgroundLoop


# ---------------------------
# Page config
# ---------------------------
st.set_page_config(
    page_title="AI Chat",
    page_icon="💬",
    layout="wide",
    initial_sidebar_state="expanded",
)

# ---------------------------
# UI constants
# ---------------------------
MODEL_IDS = [m.id for m in AI_MODELS]
MODEL_NAMES = {m.id: m.name for m in AI_MODELS}
TRANSITION_TIMEOUT = 30
SEND_TIMEOUT = 120
DARK_CSS = """
<style>
  .stApp { background-color: #0E1218; color: #F6FAFF; }
  section[data-testid="stSidebar"] { background-color: #151C26; }
</style>
"""


@st.cache_resource
def get_loop() -> BackgroundLoop:
    """One event loop thread for the whole server process."""
    configure_logging()
    return BackgroundLoop()


def browser_guest_id() -> str:
    """Private guest namespace for this browser, kept in the page URL across reloads."""
    guest_id = st.query_params.get("guest")
    if not is_guest_id(guest_id):
        guest_id = new_guest_id()
        st.query_params["guest"] = guest_id
    return guest_id


# ---------------------------
# Session state init
# ---------------------------
runtime = get_loop()
st_session = st.session_state
st_session.setdefault("audio_queue", AudioQueue())
st_session.setdefault("controller", None)
st_session.setdefault("seen_user", "<unset>")
st_session.setdefault("speak_replies", False)
st_session.setdefault("voice_mode", False)
st_session.setdefault("last_voice_sig", None)
st_session.setdefault("compose", "")

if st_session.controller is None:
    try:
        st_session.controller = build_controller(
            guest_id=browser_guest_id(), audio_queue=st_session.audio_queue
        )
    except RuntimeError as e:
        st.error(f"Chat is not configured: {e}")
        st.stop()


# ---------------------------
# Helpers
# ---------------------------
def get_controller():
    """Return the controller object."""
    return st_session.controller


def auth_configured() -> bool:
    """True if OIDC sign-in is set up in secrets.toml."""
    try:
        return "auth" in st.secrets
    except Exception:
        return False


def current_user_id():
    """Stable id of the signed-in user, or None for guests."""
    if not auth_configured() or not st.user.is_logged_in:
        return None
    return st.user.get("sub") or st.user.get("email")


def sync_identity() -> None:
    """Forward a sign-in / sign-out edge to the identity monitor."""
    user_id = current_user_id()
    if user_id == st_session.seen_user:
        return
    controller = get_controller()
    with st.spinner("Loading your chats…"):
        runtime.submit(controller.start(user_id)).result(timeout=TRANSITION_TIMEOUT)
    st_session.seen_user = user_id


async def wait_for(task):
    return await task


async def send_and_wait(controller, text, attachments=None, *, edit=False):
    """Run one exchange on the loop; returns False if the send was ignored."""
    if edit:
        task = controller.edit_last(text)
    else:
        task = controller.send(text, attachments)
    if task is None:
        return False
    await task
    return True


def load_view():
    """Copy of the controller state for this rerun, taken on the loop thread."""
    return runtime.call(get_controller().view)


def last_text(messages, role) -> str:
    for msg in reversed(messages):
        if msg.role is role:
            return msg.content
    return ""


def run_exchange(text, attachments=None, *, edit=False) -> None:
    controller = get_controller()
    with st.spinner("Thinking…"):
        sent = runtime.submit(
            send_and_wait(controller, text, attachments, edit=edit)
        ).result(timeout=SEND_TIMEOUT)
    if not sent:
        return
    play_reveal()
    if st_session.speak_replies:
        reply = last_text(load_view().messages, Role.ASSISTANT)
        if reply and not reply.startswith("Error:"):
            runtime.call(controller.speak_message, reply)
    st.rerun()


def play_reveal() -> None:
    """Mirror the typewriter text into a placeholder until the reveal settles."""
    controller = get_controller()
    with transcript:
        with st.chat_message(Role.ASSISTANT.value):
            placeholder = st.empty()
            partial, revealing = runtime.call(controller.reveal_frame)
            while revealing:
                placeholder.markdown(partial + "▌")
                time.sleep(0.03)
                partial, revealing = runtime.call(controller.reveal_frame)
            placeholder.empty()


def render_message(msg) -> None:
    controller = get_controller()
    with st.chat_message(msg.role.value):
        if msg.is_structured_text:
            st.markdown(msg.content)
        else:
            st.text(msg.content)
        st.caption(f"{msg.created_at:%Y-%m-%d %H:%M}")
        if msg.role is Role.ASSISTANT and msg.content:
            c1, c2 = st.columns([1, 8])
            with c1.popover("Copy"):
                st.code(
                    controller.copy_message(msg.content, msg.is_structured_text),
                    language=None,
                )
            if c2.button("🔊", key=f"speak_{msg.id}", help="Read aloud"):
                runtime.call(controller.speak_message, msg.content)


@st.fragment(run_every=1.0)
def audio_player() -> None:
    """Drain synthesized clips into hidden autoplay elements."""
    item = st_session.audio_queue.pop()
    if item is None:
        return
    clip, utterance = item
    st.html(autoplay_html(clip, volume=utterance.volume))


# ---------------------------
# Identity
# ---------------------------
sync_identity()
controller = get_controller()
view = load_view()

if view.preferences.theme_is_dark:
    st.markdown(DARK_CSS, unsafe_allow_html=True)

# ---------------------------
# Sidebar
# ---------------------------
with st.sidebar:
    st.title("💬 AI Chat")
    if auth_configured():
        if st.user.is_logged_in:
            st.caption(f"Signed in as **{st.user.get('name') or st.user.get('email')}**")
            if st.button("Sign out", use_container_width=True):
                st.logout()
        else:
            st.caption("Guest mode: chats are kept on this device only.")
            if st.button("Sign in", use_container_width=True):
                st.login()
    else:
        st.caption("Guest mode: chats are kept on this device only.")

    if st.button("➕ New chat", use_container_width=True, type="primary"):
        runtime.call(controller.new_chat)
        st.rerun()

    st.subheader("Chats")
    if not view.conversations:
        st.caption("No saved chats yet.")
    for conv in view.conversations:
        col_title, col_del = st.columns([5, 1])
        active = conv.id == view.current_conversation_id
        label = f"**{conv.title}**" if active else conv.title
        if col_title.button(label, key=f"open_{conv.id}", use_container_width=True):
            runtime.call(controller.load_conversation, conv.id)
            st.rerun()
        if col_del.button("🗑", key=f"del_{conv.id}", help="Delete chat"):
            runtime.call(controller.delete_conversation, conv.id)
            st.rerun()

    st.divider()
    st.subheader("Settings")
    selected = st.selectbox(
        "Model",
        MODEL_IDS,
        index=MODEL_IDS.index(view.preferences.selected_model_id),
        format_func=lambda mid: MODEL_NAMES[mid],
    )
    if selected != view.preferences.selected_model_id:
        runtime.call(controller.set_selected_model, selected)
        st.rerun()

    dark = st.toggle("🌙 Dark mode", value=view.preferences.theme_is_dark)
    if dark != view.preferences.theme_is_dark:
        runtime.call(controller.toggle_theme)
        st.rerun()

    st_session.voice_mode = st.toggle("🎙️ Voice input", value=st_session.voice_mode)
    st_session.speak_replies = st.toggle(
        "🔊 Speak assistant replies", value=st_session.speak_replies
    )
    if view.is_speaking and st.button("⏹ Stop speaking"):
        runtime.call(controller.stop_speaking)

    st.divider()
    filename, markdown = view.export
    st.download_button(
        "⬇️ Export chat",
        data=markdown,
        file_name=filename,
        mime="text/markdown",
        disabled=not view.messages,
        use_container_width=True,
    )
    confirm_clear = st.checkbox("Confirm clear")
    if st.button("Clear chat", disabled=not view.messages):
        if runtime.call(controller.clear_chat, lambda: confirm_clear):
            st.rerun()
        else:
            st.toast("Tick “Confirm clear” first.", icon="⚠️")

# ---------------------------
# Transcript
# ---------------------------
audio_player()

transcript = st.container(height=560, border=True)
with transcript:
    if not view.messages:
        st.info("Ask anything to start a new conversation.")
    for msg in view.messages:
        render_message(msg)

if view.is_typewriting:
    play_reveal()
    st.rerun()

# ---------------------------
# Edit last message
# ---------------------------
previous = last_text(view.messages, Role.USER)
if previous:
    with st.expander("✏️ Edit last message"):
        edited = st.text_area("Edit", value=previous, key="edit_text")
        if st.button("Resend", disabled=view.is_loading):
            run_exchange(edited, edit=True)

# ---------------------------
# Inputs
# ---------------------------
if st_session.voice_mode:
    wav_bytes = audio_recorder(
        pause_threshold=2,
        sample_rate=16_000,
        text="Press to dictate",
        icon_size="2x",
    )
    if wav_bytes:
        sig = hashlib.sha1(wav_bytes).hexdigest()
        if sig != st_session.last_voice_sig:
            st_session.last_voice_sig = sig
            listen = runtime.call(controller.start_listening)
            if listen is not None:
                runtime.call(controller.voice.recognizer.submit_audio, wav_bytes)
                with st.spinner("Transcribing…"):
                    runtime.submit(wait_for(listen)).result(timeout=SEND_TIMEOUT)
                dictated = runtime.call(controller.voice.take_compose_text)
                if dictated:
                    st_session.compose = f"{st_session.compose} {dictated}".strip()
                else:
                    st.toast("Could not understand the recording.", icon="⚠️")

    st.text_area("Dictated message", key="compose", height=100)
    if st.button("Send", type="primary", disabled=view.is_loading):
        text = st_session.compose
        st_session.pop("compose", None)
        run_exchange(text)
else:
    prompt = st.chat_input(
        "Message…", accept_file="multiple", disabled=view.is_switching
    )
    if prompt is not None:
        attachments = [Attachment(f.name, f.size) for f in (prompt.files or [])]
        if not prompt.text.strip() and not attachments:
            st.toast("Please enter a non-empty message.", icon="⚠️")
        else:
            run_exchange(prompt.text, attachments)
