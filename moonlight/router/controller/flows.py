from __future__ import annotations

from fastapi import Depends, HTTPException, status
from pydantic_ai.models import Model

from moonlight.config import Config, get_config
from moonlight.flows.chat import search_and_summarize
from moonlight.flows.code_project import generate_code_project
from moonlight.flows.errors import ImageGenerationError, InvalidGeneratedFileError
from moonlight.flows.image import generate_enhanced_image
from moonlight.flows.runtime import FlowRuntime
from moonlight.flows.schemas import (
    GenerateCodeProjectInput,
    GenerateCodeProjectOutput,
    GenerateEnhancedImageInput,
    GenerateEnhancedImageOutput,
    SearchAndSummarizeInput,
    SearchAndSummarizeOutput,
)
from moonlight.llms.agent import Agent
from moonlight.llms.images import ImageModel
from moonlight.llms.models import KNOWN_MODELS, get_image_model, get_known_model, get_text_model
from moonlight.log import logger


def get_flow_controller(
    config: Config = Depends(get_config),
    text_model: Model | str = Depends(get_text_model),
    image_model: ImageModel = Depends(get_image_model),
) -> FlowController:
    return FlowController(config, text_model, image_model)


class FlowController:
    def __init__(self, config: Config, text_model: Model | str, image_model: ImageModel) -> None:
        self.config = config
        self.text_model = text_model
        self.image_model = image_model

    def get_runtime(self, model_id: str | None) -> FlowRuntime:
        model = self.text_model
        if model_id:
            known = get_known_model(model_id)
            if not known:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"Unknown model {model_id!r}, expected one of: {', '.join(m.id for m in KNOWN_MODELS)}",
                )
            model = known.model_name
        return FlowRuntime(agent=Agent(model), image_model=self.image_model, config=self.config)

    async def generate_code_project(
        self, params: GenerateCodeProjectInput, model_id: str | None = None
    ) -> GenerateCodeProjectOutput:
        try:
            return await generate_code_project(params, self.get_runtime(model_id))
        except InvalidGeneratedFileError as e:
            logger.error(f"Generated project rejected: {e}")
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    async def generate_image(
        self, params: GenerateEnhancedImageInput, model_id: str | None = None
    ) -> GenerateEnhancedImageOutput:
        try:
            return await generate_enhanced_image(params, self.get_runtime(model_id))
        except ImageGenerationError as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    async def chat(self, params: SearchAndSummarizeInput, model_id: str | None = None) -> SearchAndSummarizeOutput:
        try:
            return await search_and_summarize(params, self.get_runtime(model_id))
        except ImageGenerationError as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
