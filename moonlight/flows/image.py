from __future__ import annotations

from moonlight.flows.runtime import FlowRuntime
from moonlight.flows.schemas import GenerateEnhancedImageInput, GenerateEnhancedImageOutput
from moonlight.flows.tools import generate_image_data_uri
from moonlight.llms.agent import Agent
from moonlight.log import logger
from moonlight.prompts import render_prompt


async def enhance_prompt(agent: Agent, prompt: str) -> str:
    """Rewrite ``prompt`` into a detailed image prompt, keeping the original on any failure."""
    try:
        enhanced = await agent.complete(render_prompt("image_enhance", prompt=prompt))
    except Exception as e:
        logger.warning(f"Prompt enhancement failed, using the original prompt: {e}")
        return prompt

    if not enhanced or not enhanced.strip():
        logger.warning("Prompt enhancement returned nothing, using the original prompt")
        return prompt

    logger.info(f"Using enhanced prompt: {enhanced.strip()[:120]}")
    return enhanced.strip()


async def generate_enhanced_image(
    params: GenerateEnhancedImageInput, runtime: FlowRuntime
) -> GenerateEnhancedImageOutput:
    """Generate an image, optionally enhancing the prompt or refining a first draft.

    Raises:
        ImageGenerationError: If any generation call returns no image or an implausibly small one.
    """
    min_length = runtime.config.min_image_data_uri_length

    if params.enhance and params.strategy == "refine":
        base = await generate_image_data_uri(runtime.image_model, params.prompt, runtime.safety, min_length)
        logger.info("Base image generated, requesting refinement")
        refined = await generate_image_data_uri(
            runtime.image_model,
            render_prompt("image_refine", prompt=params.prompt),
            runtime.safety,
            min_length,
            reference_image=base,
        )
        return GenerateEnhancedImageOutput(image_url=refined)

    prompt = params.prompt
    if params.enhance:
        prompt = await enhance_prompt(runtime.agent, params.prompt)

    image_url = await generate_image_data_uri(runtime.image_model, prompt, runtime.safety, min_length)
    return GenerateEnhancedImageOutput(image_url=image_url)
