"""Session models for the Moonlight chat client."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ChatMessage(BaseModel):
    """A chat message.

    ``is_loading`` only exists while a flow call is outstanding and is never persisted.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    sender: Literal["user", "bot"]
    text: str = ""
    image_url: str | None = None
    is_loading: bool = False
    image_error: bool = False

    def to_storage(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude={"is_loading"}, exclude_none=True)
        if self.image_error:
            data.pop("imageUrl", None)
        return data


class Conversation(BaseModel):
    """A named conversation tab."""

    id: str
    name: str
    messages: list[ChatMessage] = Field(default_factory=list)

    def to_storage(self) -> dict[str, Any]:
        return {"name": self.name, "messages": [m.to_storage() for m in self.messages]}
