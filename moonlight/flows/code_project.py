"""Code-project generation.

Top-level shape problems never reach the caller: they are replaced by a single ``error.txt``
file describing what happened. A file entry with the wrong field types is the one violation
that is raised.
"""

from __future__ import annotations

from moonlight.flows.errors import InvalidGeneratedFileError
from moonlight.flows.runtime import FlowRuntime
from moonlight.flows.schemas import GenerateCodeProjectInput, GenerateCodeProjectOutput, GeneratedFile
from moonlight.flows.validation import Err, ViolationKind, parse_json_object, validate_code_project
from moonlight.llms.agent import Agent
from moonlight.log import logger
from moonlight.prompts import render_prompt

DEFAULT_EXPLANATION = "The project files were generated from your request."


async def enhance_request(agent: Agent, request: str) -> str:
    """Expand ``request`` into a detailed specification, or return it unchanged on failure."""
    try:
        enhanced = await agent.complete(render_prompt("code_enhance", request=request))
    except Exception as e:
        logger.warning(f"Request enhancement failed, using the original request: {e}")
        return request

    if not enhanced or not enhanced.strip():
        logger.warning("Request enhancement returned nothing, using the original request")
        return request
    return enhanced.strip()


def degraded_project(
    request: str,
    enhanced_request: str | None,
    reason: str,
    explanation: str | None = None,
) -> GenerateCodeProjectOutput:
    lines = [
        "// The AI could not generate the project files.",
        f"// Reason: {reason}",
        "//",
        "// Original request:",
        *(f"// {line}" for line in request.splitlines() or [""]),
    ]
    if enhanced_request and enhanced_request != request:
        lines += ["//", "// Enhanced request:", *(f"// {line}" for line in enhanced_request.splitlines())]
    if explanation:
        lines += ["//", "// Partial explanation from the AI:", *(f"// {line}" for line in explanation.splitlines())]

    return GenerateCodeProjectOutput(
        files=[GeneratedFile(file_name="error.txt", code="\n".join(lines) + "\n")],
        explanation=explanation
        or f"The AI did not return a valid project ({reason}). Please try rephrasing your request or try again.",
    )


async def generate_code_project(params: GenerateCodeProjectInput, runtime: FlowRuntime) -> GenerateCodeProjectOutput:
    """Generate the files of a project described in natural language.

    Raises:
        InvalidGeneratedFileError: If a generated file lacks a string ``fileName`` or ``code``.
    """
    enhanced_request = None
    request = params.request
    if params.enhance_request:
        enhanced_request = await enhance_request(runtime.agent, params.request)
        request = enhanced_request

    prompt = render_prompt("code_project", request=request, stack=runtime.config.code_project_stack)
    try:
        text = await runtime.agent.complete(prompt)
    except Exception as e:
        logger.exception(f"Code project generation failed: {e}")
        return degraded_project(params.request, enhanced_request, f"the model call failed: {e}")

    parsed = parse_json_object(text)
    if isinstance(parsed, Err):
        logger.warning(f"Code project output rejected ({parsed.kind.value}): {parsed.detail}")
        return degraded_project(params.request, enhanced_request, parsed.detail)

    result = validate_code_project(parsed.value)
    if isinstance(result, Err):
        if result.kind is ViolationKind.FIELD_TYPE:
            raise InvalidGeneratedFileError(result.detail)
        logger.warning(f"Code project output rejected ({result.kind.value}): {result.detail}")
        explanation = parsed.value.get("explanation")
        return degraded_project(
            params.request,
            enhanced_request,
            result.detail,
            explanation if isinstance(explanation, str) and explanation.strip() else None,
        )

    if result.value.legacy:
        logger.info("Model answered with a single code blob, wrapping it as one file")
    logger.info(f"Generated code project with {len(result.value.files)} file(s)")
    return GenerateCodeProjectOutput(
        files=result.value.files,
        explanation=result.value.explanation or DEFAULT_EXPLANATION,
    )
