from __future__ import annotations

import json
import math
import re
import time
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from moonlight.flows.schemas import HistoryMessage
from moonlight.log import logger
from moonlight.session.models import ChatMessage, Conversation
from moonlight.session.storage import LocalStorage

CHAT_DATA_STORAGE_KEY = "noxGptChatData_v2"
CHAT_ACTIVE_DIALOG_ID_STORAGE_KEY = "noxGptChatActiveDialogId_v1"
STUDIO_MODE_STORAGE_KEY = "noxGptStudioMode_v1"
STUDIO_TEMPERATURE_STORAGE_KEY = "noxGptStudioTemperature_v1"

DEFAULT_CONVERSATION_ID = "chat-1"
DEFAULT_TEMPERATURE = 0.7
MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 1.0

_CONVERSATION_ID_RE = re.compile(r"^chat-(\d+)$")


class SessionError(Exception):
    pass


class ConversationNotFoundError(SessionError, KeyError):
    def __str__(self) -> str:
        return f"Conversation {self.args[0]!r} not found"


class LastConversationError(SessionError):
    def __init__(self) -> None:
        super().__init__("You must have at least one chat open.")


class InvalidUploadError(SessionError):
    pass


def conversation_name(conversation_id: str) -> str:
    name = conversation_id.replace("-", " ")
    return name[:1].upper() + name[1:]


def _format_temperature(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _valid_temperature(value: float) -> bool:
    return math.isfinite(value) and MIN_TEMPERATURE <= value <= MAX_TEMPERATURE


class SessionStore:
    """All conversations of one client plus their local-storage mirror.

    Every mutating operation writes the whole state back to storage before returning.
    """

    def __init__(self, storage: LocalStorage, notify: Callable[[str], None] | None = None):
        self.storage = storage
        self.notify = notify or (lambda message: None)

        self.conversations: dict[str, Conversation] = {}
        self.active_id: str | None = None
        self.studio_mode: bool = False
        self.temperature: float = DEFAULT_TEMPERATURE
        # Not persisted
        self.studio_system_prompt: str = ""
        self.last_request: dict[str, Any] | None = None
        self.last_response: dict[str, Any] | None = None

        self._last_message_ts = 0
        self.load()

    # Loading and saving

    def _load_studio_settings(self) -> None:
        try:
            saved_mode = self.storage.get_item(STUDIO_MODE_STORAGE_KEY)
            self.studio_mode = bool(json.loads(saved_mode)) if saved_mode else False
        except ValueError as e:
            logger.warning(f"Ignoring invalid studio mode: {e}")
            self.studio_mode = False

        saved_temperature = self.storage.get_item(STUDIO_TEMPERATURE_STORAGE_KEY)
        self.temperature = DEFAULT_TEMPERATURE
        if saved_temperature:
            try:
                temperature = float(saved_temperature)
            except ValueError:
                temperature = math.nan
            if _valid_temperature(temperature):
                self.temperature = temperature
            else:
                logger.warning(f"Ignoring invalid studio temperature: {saved_temperature!r}")

    @staticmethod
    def _parse_message(raw: Any) -> ChatMessage:
        message = ChatMessage.model_validate({**raw, "isLoading": False})
        if message.image_error:
            message.image_url = None
        return message

    def _parse_conversations(self, raw: str | None) -> dict[str, Conversation]:
        if not raw:
            return {}

        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("Stored chat data is not an object")

        conversations = {}
        for conversation_id, item in data.items():
            if not isinstance(item, dict) or not isinstance(item.get("messages"), list):
                continue
            if not isinstance(item.get("name"), str):
                continue
            try:
                messages = [self._parse_message(message) for message in item["messages"]]
            except (TypeError, ValidationError) as e:
                logger.warning(f"Skipping conversation {conversation_id!r} with invalid messages: {e}")
                continue
            conversations[conversation_id] = Conversation(id=conversation_id, name=item["name"], messages=messages)
        return conversations

    def _default_conversations(self) -> dict[str, Conversation]:
        return {
            DEFAULT_CONVERSATION_ID: Conversation(
                id=DEFAULT_CONVERSATION_ID, name=conversation_name(DEFAULT_CONVERSATION_ID)
            )
        }

    def load(self) -> None:
        """Rehydrate from storage, starting fresh when nothing usable is stored."""
        self._load_studio_settings()

        try:
            conversations = self._parse_conversations(self.storage.get_item(CHAT_DATA_STORAGE_KEY))
            active_id = self.storage.get_item(CHAT_ACTIVE_DIALOG_ID_STORAGE_KEY)
        except (ValueError, TypeError, ValidationError) as e:
            logger.error(f"Failed to load chat data from storage: {e}")
            self.notify("Could not load previous chat data. Starting fresh.")
            self.storage.remove_item(CHAT_DATA_STORAGE_KEY)
            self.storage.remove_item(CHAT_ACTIVE_DIALOG_ID_STORAGE_KEY)
            conversations, active_id = {}, None

        if not conversations:
            conversations = self._default_conversations()
            active_id = DEFAULT_CONVERSATION_ID
        elif not active_id or active_id not in conversations:
            active_id = next(iter(conversations))

        self.conversations = conversations
        self.active_id = active_id
        self._last_message_ts = max(
            (int(m.id) for c in conversations.values() for m in c.messages if m.id.isdigit()),
            default=0,
        )
        self.save()

    def save(self) -> None:
        try:
            self.storage.set_item(STUDIO_MODE_STORAGE_KEY, json.dumps(self.studio_mode))
            self.storage.set_item(STUDIO_TEMPERATURE_STORAGE_KEY, _format_temperature(self.temperature))
            self.storage.set_item(
                CHAT_DATA_STORAGE_KEY,
                json.dumps({cid: c.to_storage() for cid, c in self.conversations.items()}, ensure_ascii=False),
            )
            if self.active_id:
                self.storage.set_item(CHAT_ACTIVE_DIALOG_ID_STORAGE_KEY, self.active_id)
            else:
                self.storage.remove_item(CHAT_ACTIVE_DIALOG_ID_STORAGE_KEY)
        except OSError as e:
            logger.error(f"Failed to save chat data to storage: {e}")

    # Conversations

    def get_conversation(self, conversation_id: str) -> Conversation:
        try:
            return self.conversations[conversation_id]
        except KeyError:
            raise ConversationNotFoundError(conversation_id) from None

    @property
    def active_conversation(self) -> Conversation:
        return self.get_conversation(self.active_id)

    def next_conversation_id(self) -> str:
        used = {
            int(match.group(1))
            for conversation_id in self.conversations
            if (match := _CONVERSATION_ID_RE.match(conversation_id))
        }
        number = 1
        while number in used:
            number += 1
        return f"chat-{number}"

    def create_conversation(self) -> Conversation:
        conversation_id = self.next_conversation_id()
        conversation = Conversation(id=conversation_id, name=conversation_name(conversation_id))
        self.conversations[conversation_id] = conversation
        self.active_id = conversation_id
        self.save()
        logger.debug(f"Created conversation {conversation_id}")
        return conversation

    def rename_conversation(self, conversation_id: str, name: str) -> bool:
        """Rename a conversation; blank names are discarded and ``False`` is returned."""
        conversation = self.get_conversation(conversation_id)
        if not name.strip():
            return False
        conversation.name = name.strip()
        self.save()
        return True

    def delete_conversation(self, conversation_id: str) -> None:
        """Delete a conversation.

        Raises:
            LastConversationError: If it is the only conversation left; nothing changes.
        """
        self.get_conversation(conversation_id)
        if len(self.conversations) <= 1:
            raise LastConversationError()

        del self.conversations[conversation_id]
        if self.active_id == conversation_id:
            self.active_id = next(iter(self.conversations))
        self.save()
        logger.debug(f"Deleted conversation {conversation_id}, active is now {self.active_id}")

    def set_active(self, conversation_id: str) -> Conversation:
        conversation = self.get_conversation(conversation_id)
        self.active_id = conversation_id
        self.save()
        return conversation

    # Messages

    def new_message_id(self) -> str:
        # Millisecond timestamps, bumped when two messages land in the same millisecond
        self._last_message_ts = max(time.time_ns() // 1_000_000, self._last_message_ts + 1)
        return str(self._last_message_ts)

    def new_message(self, sender: str, text: str = "", image_url: str | None = None, is_loading: bool = False) -> ChatMessage:
        return ChatMessage(id=self.new_message_id(), sender=sender, text=text, image_url=image_url, is_loading=is_loading)

    def append_message(self, conversation_id: str, message: ChatMessage) -> ChatMessage:
        self.get_conversation(conversation_id).messages.append(message)
        self.save()
        return message

    def update_message(self, conversation_id: str, message_id: str, **changes: Any) -> ChatMessage:
        """Replace a message in place with a copy carrying ``changes``."""
        messages = self.get_conversation(conversation_id).messages
        for index, message in enumerate(messages):
            if message.id == message_id:
                messages[index] = message.model_copy(update=changes)
                self.save()
                return messages[index]
        raise KeyError(f"Message {message_id!r} not found in {conversation_id!r}")

    def mark_image_error(self, conversation_id: str, message_id: str) -> ChatMessage:
        return self.update_message(conversation_id, message_id, image_error=True, image_url=None)

    def history_for(self, conversation_id: str) -> list[HistoryMessage]:
        return [
            HistoryMessage(sender=m.sender, text=m.text or "", image_url=m.image_url)
            for m in self.get_conversation(conversation_id).messages
            if not m.is_loading and (m.text.strip() or m.image_url)
        ]

    # Studio mode

    def set_studio_mode(self, enabled: bool) -> None:
        self.studio_mode = bool(enabled)
        self.save()

    def set_temperature(self, temperature: float) -> None:
        """Set the sampling temperature, clamped to the slider range."""
        temperature = float(temperature)
        if math.isnan(temperature):
            temperature = DEFAULT_TEMPERATURE
        self.temperature = min(max(temperature, MIN_TEMPERATURE), MAX_TEMPERATURE)
        self.save()

    def studio_overrides(self) -> dict[str, Any]:
        if not self.studio_mode:
            return {}
        return {
            "temperature": self.temperature,
            "custom_system_instructions": self.studio_system_prompt.strip() or None,
        }
