from __future__ import annotations

import asyncio
import mimetypes
import os
from collections.abc import Awaitable, Callable
from pathlib import Path

from moonlight.flows.schemas import ChatQuery, SearchAndSummarizeInput, SearchAndSummarizeOutput
from moonlight.log import logger
from moonlight.media import to_data_uri
from moonlight.session.models import ChatMessage
from moonlight.session.store import InvalidUploadError, SessionStore

ChatFlow = Callable[[SearchAndSummarizeInput], Awaitable[SearchAndSummarizeOutput]]


async def read_image_as_data_uri(path: os.PathLike | str) -> str:
    """Read an image file off the event loop and encode it as a data URI.

    Raises:
        InvalidUploadError: If the file is not an image or cannot be read.
    """
    path = Path(path)
    mime_type, _ = mimetypes.guess_type(path.name)
    if not mime_type or not mime_type.startswith("image/"):
        raise InvalidUploadError("Please upload an image file (PNG, JPG, GIF, WEBP).")
    try:
        data = await asyncio.to_thread(path.read_bytes)
    except OSError as e:
        raise InvalidUploadError(f"Could not read {path.name}: {e}") from e
    return to_data_uri(mime_type, data)


class ChatSender:
    """Sends user turns of a ``SessionStore`` conversation through the chat flow."""

    def __init__(self, store: SessionStore, chat_flow: ChatFlow):
        self.store = store
        self.chat_flow = chat_flow

    async def send_text(self, text: str, conversation_id: str | None = None) -> ChatMessage | None:
        if not text.strip():
            return None
        return await self._send(conversation_id or self.store.active_id, text.strip(), None)

    async def send_image_upload(
        self, path: os.PathLike | str, text: str = "", conversation_id: str | None = None
    ) -> ChatMessage:
        image_url = await read_image_as_data_uri(path)
        return await self._send(conversation_id or self.store.active_id, text.strip(), image_url)

    async def _send(self, conversation_id: str, text: str, image_url: str | None) -> ChatMessage:
        store = self.store
        # History is taken before the new turn is appended; the turn travels as the query
        history = store.history_for(conversation_id)

        store.append_message(conversation_id, store.new_message("user", text=text, image_url=image_url))
        placeholder = store.append_message(conversation_id, store.new_message("bot", is_loading=True))

        try:
            query = ChatQuery(text=text or None, image_url=image_url) if image_url else text
            params = SearchAndSummarizeInput(query=query, history=history, **store.studio_overrides())
            if store.studio_mode:
                store.last_request = params.to_wire()
                store.last_response = None
            result = await self.chat_flow(params)
        except Exception as e:
            logger.error(f"Chat flow failed for {conversation_id}: {e}")
            if store.studio_mode:
                store.last_response = {"error": str(e)}
            return store.update_message(
                conversation_id,
                placeholder.id,
                text=f"Error: {e}",
                image_url=None,
                is_loading=False,
                image_error=True,
            )

        if store.studio_mode:
            store.last_response = result.to_wire()
        return store.update_message(
            conversation_id,
            placeholder.id,
            text=result.summary,
            image_url=result.image_url,
            is_loading=False,
        )
