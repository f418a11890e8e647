from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError
from pydantic_ai.direct import model_request
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    RetryPromptPart,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models import Model, ModelRequestParameters
from pydantic_ai.settings import ModelSettings
from pydantic_ai.tools import ToolDefinition

from moonlight.flows.errors import ToolLoopExceededError
from moonlight.log import logger


@dataclass
class FlowTool:
    """A callable the model may request mid-generation.

    ``render`` converts the tool output into what is sent back to the model; by default the
    output model is dumped with its aliases.
    """

    name: str
    description: str
    args_model: type[BaseModel]
    function: Callable[[Any], Awaitable[BaseModel]]
    render: Callable[[BaseModel], Any] | None = None

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters_json_schema=self.args_model.model_json_schema(by_alias=True),
        )

    async def __call__(self, args: BaseModel) -> Any:
        result = await self.function(args)
        if self.render:
            return self.render(result)
        return result.model_dump(by_alias=True, exclude_none=True)


def response_text(response: ModelResponse) -> str:
    return "".join(part.content for part in response.parts if isinstance(part, TextPart))


def tool_call_parts(message: ModelMessage) -> list[ToolCallPart]:
    if not isinstance(message, ModelResponse):
        return []
    return [part for part in message.parts if isinstance(part, ToolCallPart)]


class Agent:
    """Drives one external model through plain requests and the tool-call protocol."""

    def __init__(self, model: Model | str):
        self.model = model

    async def request(
        self,
        messages: list[ModelMessage],
        model_settings: ModelSettings | None = None,
        tools: Sequence[FlowTool] = (),
    ) -> ModelResponse:
        model_request_parameters = ModelRequestParameters(
            function_tools=[tool.definition for tool in tools],
            allow_text_output=True,
        )
        return await model_request(
            self.model,
            messages,
            model_settings=model_settings,
            model_request_parameters=model_request_parameters,
        )

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        model_settings: ModelSettings | None = None,
    ) -> str:
        parts: list[SystemPromptPart | UserPromptPart] = []
        if system_prompt:
            parts.append(SystemPromptPart(content=system_prompt))
        parts.append(UserPromptPart(content=prompt))
        response = await self.request([ModelRequest(parts=parts)], model_settings)
        return response_text(response)

    async def _execute_one_tool_call_part(
        self, tools: dict[str, FlowTool], tool_call_part: ToolCallPart
    ) -> ToolReturnPart | RetryPromptPart:
        tool = tools.get(tool_call_part.tool_name)
        if tool is None:
            logger.warning(f"Model requested unknown tool: {tool_call_part.tool_name}")
            return RetryPromptPart(
                content=f"Unknown tool {tool_call_part.tool_name!r}. Available tools: {', '.join(tools)}",
                tool_name=tool_call_part.tool_name,
                tool_call_id=tool_call_part.tool_call_id,
            )

        try:
            args = tool.args_model.model_validate(tool_call_part.args_as_dict())
        except (ValidationError, ValueError) as e:
            logger.warning(f"Invalid arguments for {tool.name}: {e}")
            return RetryPromptPart(
                content=f"Invalid arguments for {tool.name}: {e}",
                tool_name=tool_call_part.tool_name,
                tool_call_id=tool_call_part.tool_call_id,
            )

        logger.info(f"Executing tool {tool.name}")
        return ToolReturnPart(
            tool_name=tool_call_part.tool_name,
            content=await tool(args),
            tool_call_id=tool_call_part.tool_call_id,
        )

    async def execute_tool_calls(self, message: ModelMessage, tools: Sequence[FlowTool]) -> list[ModelRequest]:
        tools_by_name = {tool.name: tool for tool in tools}
        parts = await asyncio.gather(
            *(self._execute_one_tool_call_part(tools_by_name, part) for part in tool_call_parts(message))
        )
        return [ModelRequest(parts=list(parts))]

    async def run(
        self,
        messages: list[ModelMessage],
        tools: Sequence[FlowTool] = (),
        model_settings: ModelSettings | None = None,
        max_rounds: int = 4,
    ) -> ModelResponse:
        """Request until the model answers without tool calls.

        Each round that ends in tool calls is answered with the tool results and resubmitted.
        Exceptions raised by a tool propagate unchanged.
        """
        conversation = list(messages)
        for _ in range(max_rounds):
            response = await self.request(conversation, model_settings, tools)
            conversation.append(response)
            if not tool_call_parts(response):
                return response
            conversation.extend(await self.execute_tool_calls(response, tools))

        raise ToolLoopExceededError(f"Model did not produce a final answer within {max_rounds} rounds")
