"""Chat flow: answer the latest turn, optionally searching and generating images.

The flow always returns a well-formed ``{summary, imageUrl?}``. The only exception that
crosses its boundary is ``ImageGenerationError`` from the image tool.
"""

from __future__ import annotations

from pydantic_ai.messages import (
    BinaryContent,
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserContent,
    UserPromptPart,
)
from pydantic_ai.settings import ModelSettings

from moonlight.flows.errors import ImageGenerationError
from moonlight.flows.policy import IMAGE_TOOL_NAME, SEARCH_TOOL_NAME, ChatDecision, decide, render_directives
from moonlight.flows.runtime import FlowRuntime
from moonlight.flows.schemas import HistoryMessage, SearchAndSummarizeInput, SearchAndSummarizeOutput
from moonlight.flows.tools import GeneratedImages, build_image_tool, build_search_tool
from moonlight.flows.validation import Err, ViolationKind, parse_json_object, validate_chat_output
from moonlight.llms.agent import FlowTool, response_text
from moonlight.log import logger
from moonlight.media import parse_data_uri
from moonlight.prompts import get_chat_system_instructions, load_prompt

EMPTY_RESPONSE_MESSAGE = "I received an empty response from the AI. Could you try rephrasing your question?"
UNEXPECTED_RESULT_MESSAGE = (
    "I'm having trouble processing that request right now. The AI returned an unexpected result."
)
UNEXPECTED_ERROR_MESSAGE = (
    "An unexpected error occurred while trying to get a response. Please try again or rephrase your request."
)
IMAGE_ONLY_PROMPT = "(The user sent this image without any text.)"


def build_system_prompt(decision: ChatDecision, custom_system_instructions: str | None = None) -> str:
    base = (custom_system_instructions or "").strip() or get_chat_system_instructions()
    return "\n\n".join([base, render_directives(decision), load_prompt("chat_output")])


def _image_content(image_url: str) -> BinaryContent | None:
    try:
        media_type, data = parse_data_uri(image_url)
    except ValueError as e:
        logger.warning(f"Skipping unreadable image in chat input: {e}")
        return None
    return BinaryContent(data=data, media_type=media_type)


def user_content(text: str | None, image_url: str | None) -> list[UserContent]:
    content: list[UserContent] = []
    if text and text.strip():
        content.append(text)
    if image_url:
        image = _image_content(image_url)
        if image is not None:
            if not content:
                content.append(IMAGE_ONLY_PROMPT)
            content.append(image)
    return content


def history_messages(history: list[HistoryMessage]) -> list[ModelMessage]:
    messages: list[ModelMessage] = []
    for item in history:
        if item.sender == "user":
            content = user_content(item.text, item.image_url)
            if content:
                messages.append(ModelRequest(parts=[UserPromptPart(content=content)]))
        else:
            text = item.text.strip() or ("[image]" if item.image_url else "")
            if text:
                messages.append(ModelResponse(parts=[TextPart(content=text)]))
    return messages


def build_messages(params: SearchAndSummarizeInput, system_prompt: str) -> list[ModelMessage]:
    messages = history_messages(params.history)
    latest = user_content(params.query_text, params.query_image_url) or [params.query_text]
    messages.append(ModelRequest(parts=[UserPromptPart(content=latest)]))

    first = messages[0]
    if isinstance(first, ModelRequest):
        messages[0] = ModelRequest(parts=[SystemPromptPart(content=system_prompt), *first.parts])
    else:
        messages.insert(0, ModelRequest(parts=[SystemPromptPart(content=system_prompt)]))
    return messages


def select_tools(decision: ChatDecision, runtime: FlowRuntime, images: GeneratedImages) -> list[FlowTool]:
    tools = []
    if SEARCH_TOOL_NAME in decision.tools:
        tools.append(build_search_tool())
    if IMAGE_TOOL_NAME in decision.tools:
        tools.append(
            build_image_tool(runtime.image_model, runtime.safety, runtime.config.min_image_data_uri_length, images)
        )
    return tools


def _last_user_text(history: list[HistoryMessage]) -> str:
    return next((m.text for m in reversed(history) if m.sender == "user" and m.text.strip()), "")


async def _search_and_summarize(params: SearchAndSummarizeInput, runtime: FlowRuntime) -> SearchAndSummarizeOutput:
    decision = decide(
        params.query_text,
        has_uploaded_image=params.query_image_url is not None,
        history_text=_last_user_text(params.history),
    )
    logger.info(
        f"Chat decision: intent={decision.intent.value} language={decision.language} "
        f"tools={list(decision.tools)} json={decision.json_summary}"
    )

    images = GeneratedImages()
    model_settings = ModelSettings(temperature=params.temperature) if params.temperature is not None else None
    response = await runtime.agent.run(
        build_messages(params, build_system_prompt(decision, params.custom_system_instructions)),
        tools=select_tools(decision, runtime, images),
        model_settings=model_settings,
        max_rounds=runtime.config.max_tool_rounds,
    )

    text = response_text(response)
    parsed = parse_json_object(text)
    if isinstance(parsed, Err):
        if parsed.kind is ViolationKind.NO_OUTPUT:
            logger.warning("Chat model returned an empty response")
            return SearchAndSummarizeOutput(summary=EMPTY_RESPONSE_MESSAGE, image_url=images.last)
        if parsed.kind is ViolationKind.NOT_JSON and not decision.json_summary:
            # Prose answers without the envelope are still usable answers
            logger.debug("Chat model answered without the JSON envelope, using its text as the summary")
            parsed_payload = {"summary": text.strip()}
        else:
            logger.error(f"Chat output rejected ({parsed.kind.value}): {parsed.detail}")
            return SearchAndSummarizeOutput(summary=UNEXPECTED_RESULT_MESSAGE, image_url=images.last)
    else:
        parsed_payload = parsed.value

    validated = validate_chat_output(parsed_payload, json_summary=decision.json_summary)
    if isinstance(validated, Err):
        logger.error(f"Chat output rejected ({validated.kind.value}): {validated.detail}")
        message = EMPTY_RESPONSE_MESSAGE if validated.kind is ViolationKind.EMPTY else UNEXPECTED_RESULT_MESSAGE
        return SearchAndSummarizeOutput(summary=message, image_url=images.last)

    image_url = images.resolve(validated.value["imageUrl"]) or images.last
    return SearchAndSummarizeOutput(summary=validated.value["summary"], image_url=image_url)


async def search_and_summarize(params: SearchAndSummarizeInput, runtime: FlowRuntime) -> SearchAndSummarizeOutput:
    """Answer the latest chat turn.

    Raises:
        ImageGenerationError: If the model called the image tool and the generation failed.
    """
    try:
        return await _search_and_summarize(params, runtime)
    except ImageGenerationError:
        raise
    except Exception as e:
        logger.exception(f"Chat flow failed: {e}")
        return SearchAndSummarizeOutput(summary=UNEXPECTED_ERROR_MESSAGE)
