"""Chat tab of the Moonlight UI."""

import asyncio
import json
from collections.abc import AsyncIterable
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import gradio as gr

from moonlight.llms.models import DEFAULT_MODEL_ID, KNOWN_MODELS
from moonlight.log import logger
from moonlight.session import (
    ChatSender,
    LastConversationError,
    LocalStorage,
    SessionError,
    SessionStore,
)
from moonlight.ui.api_client import MoonlightAPIClient
from moonlight.ui.images import save_data_uri

LOADING_TEXT = "Thinking..."
IMAGE_ERROR_TEXT = "[Image could not be displayed]"

ChatOutputs = Tuple[Dict, List[Dict[str, Any]], str, str, str]


def render_conversation(store: SessionStore, conversation_id: str, cache_dir: Path) -> List[Dict[str, Any]]:
    """Render a conversation as Gradio chatbot messages.

    Images that cannot be decoded are flagged on the stored message so they are not
    retried on the next render.

    Args:
        store: The session store.
        conversation_id: The conversation to render.
        cache_dir: Where decoded images are written.

    Returns:
        The messages in Gradio's ``messages`` format.
    """
    rendered = []
    for message in list(store.get_conversation(conversation_id).messages):
        role = "user" if message.sender == "user" else "assistant"
        if message.is_loading:
            rendered.append({"role": role, "content": LOADING_TEXT})
            continue

        if message.text:
            rendered.append({"role": role, "content": message.text})

        if message.image_url:
            try:
                path = save_data_uri(message.image_url, cache_dir)
            except (ValueError, OSError) as e:
                logger.warning(f"Failed to display image of message {message.id}: {e}")
                store.mark_image_error(conversation_id, message.id)
                rendered.append({"role": role, "content": IMAGE_ERROR_TEXT})
            else:
                rendered.append({"role": role, "content": {"path": str(path)}})
        elif message.image_error and not message.text.startswith("Error:"):
            rendered.append({"role": role, "content": IMAGE_ERROR_TEXT})
    return rendered


def conversation_choices(store: SessionStore) -> List[Tuple[str, str]]:
    return [(conversation.name, conversation_id) for conversation_id, conversation in store.conversations.items()]


def set_interactive(enabled: bool) -> Tuple[Any, Any, Any]:
    """Enable or disable the message box, the send button and the upload field together."""
    return (gr.update(interactive=enabled),) * 3


def _debug_json(value: Optional[Dict[str, Any]]) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False) if value else ""


class ChatPage:
    """State and event handlers of the chat tab.

    The page owns the session store; notices raised while loading it are shown on the
    next render.
    """

    def __init__(self, storage: LocalStorage, cache_dir: Path, url: str, token: Optional[str] = None):
        self.notices: List[str] = []
        self.store = SessionStore(storage, notify=self.notices.append)
        self.cache_dir = Path(cache_dir)
        self.url = url
        self.token = token

    def refresh(self) -> ChatOutputs:
        """Render the active conversation and the conversation list.

        Returns:
            A tuple of (conversation_list_update, chat_history, last_request, last_response, notice).
        """
        store = self.store
        notice = "\n".join(f"⚠️ {n}" for n in self.notices)
        self.notices.clear()
        return (
            gr.update(choices=conversation_choices(store), value=store.active_id),
            render_conversation(store, store.active_id, self.cache_dir),
            _debug_json(store.last_request),
            _debug_json(store.last_response),
            notice,
        )

    def select_conversation(self, conversation_id: str) -> ChatOutputs:
        if conversation_id:
            self.store.set_active(conversation_id)
        return self.refresh()

    def new_conversation(self) -> ChatOutputs:
        self.store.create_conversation()
        return self.refresh()

    def rename_conversation(self, name: str) -> Tuple[Dict, str]:
        store = self.store
        if not store.rename_conversation(store.active_id, name or ""):
            raise gr.Error("Chat name cannot be empty.")
        return gr.update(choices=conversation_choices(store), value=store.active_id), ""

    def commit_rename(self, name: str) -> Tuple[Dict, str]:
        """Rename from the inline box; a blank box discards the edit instead of failing."""
        store = self.store
        store.rename_conversation(store.active_id, name or "")
        return gr.update(choices=conversation_choices(store), value=store.active_id), ""

    def delete_conversation(self) -> ChatOutputs:
        try:
            self.store.delete_conversation(self.store.active_id)
        except LastConversationError as e:
            raise gr.Error(str(e))
        return self.refresh()

    def update_studio_mode(self, enabled: bool) -> Dict:
        self.store.set_studio_mode(enabled)
        return gr.update(visible=enabled)

    def update_temperature(self, temperature: float) -> None:
        self.store.set_temperature(temperature)

    async def _send(self, text: str, upload: Optional[str], model_id: Optional[str], system_prompt: str) -> None:
        self.store.studio_system_prompt = system_prompt or ""

        client = MoonlightAPIClient(self.url, self.token)
        sender = ChatSender(self.store, partial(client.search_and_summarize, model=model_id or None))
        try:
            if upload:
                await sender.send_image_upload(upload, text or "")
            else:
                await sender.send_text(text or "")
        except SessionError as e:
            raise gr.Error(str(e))
        finally:
            await client.close()

    async def send_message(
        self,
        text: str,
        upload: Optional[str],
        model_id: Optional[str],
        system_prompt: str,
    ) -> AsyncIterable[Tuple[Any, ...]]:
        """Send the typed text, or the uploaded image with the typed text, to the chat flow.

        Yields:
            A tuple clearing the inputs, followed by the refreshed chat outputs: once with the
            loading placeholder and once with the answer.
        """
        if not (text or "").strip() and not upload:
            yield ("", None, *self.refresh())
            return

        task = asyncio.create_task(self._send(text, upload, model_id, system_prompt))
        # Let the sender append the user turn and the placeholder
        await asyncio.sleep(0)
        if not task.done():
            yield ("", None, *self.refresh())
        await task
        yield ("", None, *self.refresh())


def create_chat_interface(page: ChatPage) -> gr.Blocks:
    """Create the chat tab.

    Args:
        page: The chat page state and handlers.

    Returns:
        A Gradio Blocks component for the chat tab.
    """
    store = page.store

    with gr.Blocks() as chat_page:
        notice = gr.Markdown("")

        with gr.Row():
            with gr.Column(scale=1):
                new_chat_btn = gr.Button("New Chat", variant="primary")
                conversation_list = gr.Radio(label="Chats", choices=conversation_choices(store), value=store.active_id)
                with gr.Accordion("Manage", open=False):
                    new_name = gr.Textbox(label="Rename current chat", placeholder="New name")
                    rename_btn = gr.Button("Rename")
                    delete_btn = gr.Button("Delete current chat", variant="stop")

            with gr.Column(scale=3):
                model = gr.Dropdown(
                    label="Model",
                    choices=[(m.name, m.id) for m in KNOWN_MODELS],
                    value=DEFAULT_MODEL_ID,
                )
                chatbot = gr.Chatbot(height=500, show_copy_button=True, render_markdown=True, type="messages")
                with gr.Row():
                    with gr.Column(scale=8):
                        msg = gr.Textbox(placeholder="Type a message...", show_label=False, container=False)
                    with gr.Column(scale=1):
                        submit_btn = gr.Button("Send", variant="primary")
                upload = gr.File(label="Attach image", file_types=["image"], type="filepath")

                studio_mode = gr.Checkbox(label="Studio mode", value=store.studio_mode)
                with gr.Column(visible=store.studio_mode) as studio_panel:
                    temperature = gr.Slider(
                        minimum=0.0,
                        maximum=1.0,
                        value=store.temperature,
                        step=0.1,
                        label="Temperature",
                    )
                    system_prompt = gr.Textbox(
                        label="System instructions",
                        placeholder="Replaces the default assistant instructions",
                        lines=4,
                    )
                    with gr.Row():
                        last_request = gr.Code(label="Last request", language="json")
                        last_response = gr.Code(label="Last response", language="json")

        chat_outputs = [conversation_list, chatbot, last_request, last_response, notice]

        chat_page.load(fn=page.refresh, outputs=chat_outputs)
        conversation_list.input(fn=page.select_conversation, inputs=[conversation_list], outputs=chat_outputs)
        new_chat_btn.click(fn=page.new_conversation, outputs=chat_outputs)
        rename_btn.click(fn=page.rename_conversation, inputs=[new_name], outputs=[conversation_list, new_name])
        new_name.submit(fn=page.commit_rename, inputs=[new_name], outputs=[conversation_list, new_name])
        new_name.blur(fn=page.commit_rename, inputs=[new_name], outputs=[conversation_list, new_name])
        delete_btn.click(fn=page.delete_conversation, outputs=chat_outputs)
        studio_mode.change(fn=page.update_studio_mode, inputs=[studio_mode], outputs=[studio_panel])
        temperature.release(fn=page.update_temperature, inputs=[temperature])

        send_inputs = [msg, upload, model, system_prompt]
        send_outputs = [msg, upload, *chat_outputs]
        send_controls = [msg, submit_btn, upload]
        for trigger in (submit_btn.click, msg.submit):
            trigger(
                fn=lambda: set_interactive(False),
                outputs=send_controls,
            ).then(
                fn=page.send_message,
                inputs=send_inputs,
                outputs=send_outputs,
            ).then(
                fn=lambda: set_interactive(True),
                outputs=send_controls,
            )

    return chat_page
