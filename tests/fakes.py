"""Test doubles for the external text and image models."""

from __future__ import annotations

from collections.abc import Callable
from typing import Union

from pydantic_ai.messages import ModelMessage, ModelRequest, ModelResponse, TextPart, ToolCallPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from moonlight.config import Config, SafetySettings
from moonlight.flows.runtime import FlowRuntime
from moonlight.llms.agent import Agent
from moonlight.llms.images import GeneratedMedia, ImageModel
from moonlight.media import to_data_uri

# Large enough that its data URI passes the minimum length check
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + bytes(range(256)) * 4
PNG_DATA_URI = to_data_uri("image/png", PNG_BYTES)

ScriptedResponse = Union[str, ModelResponse, Exception, Callable[[list[ModelMessage], AgentInfo], ModelResponse]]


def text(content: str) -> ModelResponse:
    return ModelResponse(parts=[TextPart(content=content)])


def tool_call(tool_name: str, **args) -> ModelResponse:
    return ModelResponse(parts=[ToolCallPart(tool_name=tool_name, args=args)])


def request_parts(messages: list[ModelMessage]) -> list:
    return [part for message in messages if isinstance(message, ModelRequest) for part in message.parts]


class ScriptedModel:
    """A ``FunctionModel`` answering each request with the next scripted response.

    Strings become text answers, exceptions are raised and callables are invoked with the
    request messages and ``AgentInfo``.
    """

    def __init__(self, *responses: ScriptedResponse):
        self.responses = list(responses)
        self.calls: list[tuple[list[ModelMessage], AgentInfo]] = []
        self.model = FunctionModel(self._respond)

    def _respond(self, messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        self.calls.append((list(messages), info))
        if not self.responses:
            raise AssertionError("Model called more often than scripted")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return text(response)
        if callable(response):
            return response(messages, info)
        return response

    def offered_tools(self, call: int = 0) -> list[str]:
        return [tool.name for tool in self.calls[call][1].function_tools]


class FakeImageModel(ImageModel):
    def __init__(self, data: bytes | None = PNG_BYTES, mime_type: str = "image/png"):
        self.data = data
        self.mime_type = mime_type
        self.calls: list[dict] = []

    async def generate(
        self,
        prompt: str,
        safety: SafetySettings,
        reference_image: str | None = None,
    ) -> GeneratedMedia | None:
        self.calls.append({"prompt": prompt, "safety": safety, "reference_image": reference_image})
        if self.data is None:
            return None
        return GeneratedMedia(mime_type=self.mime_type, data=self.data)


def make_runtime(scripted: ScriptedModel, image_model: ImageModel | None = None, **config) -> FlowRuntime:
    return FlowRuntime(
        agent=Agent(scripted.model),
        image_model=image_model or FakeImageModel(),
        config=Config(**config),
    )
