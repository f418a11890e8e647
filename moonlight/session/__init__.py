"""Client-side conversation state, mirrored into local storage."""

from moonlight.session.models import ChatMessage, Conversation
from moonlight.session.sender import ChatSender, read_image_as_data_uri
from moonlight.session.storage import InMemoryStorage, JsonFileStorage, LocalStorage
from moonlight.session.store import (
    ConversationNotFoundError,
    InvalidUploadError,
    LastConversationError,
    SessionError,
    SessionStore,
)

__all__ = [
    "ChatMessage",
    "ChatSender",
    "Conversation",
    "ConversationNotFoundError",
    "InMemoryStorage",
    "InvalidUploadError",
    "JsonFileStorage",
    "LastConversationError",
    "LocalStorage",
    "SessionError",
    "SessionStore",
    "read_image_as_data_uri",
]
