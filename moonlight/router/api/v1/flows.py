from fastapi import APIRouter, Depends

from moonlight.flows.schemas import (
    GenerateCodeProjectInput,
    GenerateCodeProjectOutput,
    GenerateEnhancedImageInput,
    GenerateEnhancedImageOutput,
    SearchAndSummarizeInput,
    SearchAndSummarizeOutput,
)
from moonlight.router.controller.flows import FlowController, get_flow_controller

router = APIRouter(
    tags=["flows"],
    prefix="/api/v1/flows",
)


@router.post("/code-project", response_model_exclude_none=True)
async def generate_code_project(
    params: GenerateCodeProjectInput,
    model: str | None = None,
    flow_controller: FlowController = Depends(get_flow_controller),
) -> GenerateCodeProjectOutput:
    return await flow_controller.generate_code_project(params, model)


@router.post("/image", response_model_exclude_none=True)
async def generate_image(
    params: GenerateEnhancedImageInput,
    model: str | None = None,
    flow_controller: FlowController = Depends(get_flow_controller),
) -> GenerateEnhancedImageOutput:
    return await flow_controller.generate_image(params, model)


@router.post("/chat", response_model_exclude_none=True)
async def chat(
    params: SearchAndSummarizeInput,
    model: str | None = None,
    flow_controller: FlowController = Depends(get_flow_controller),
) -> SearchAndSummarizeOutput:
    return await flow_controller.chat(params, model)
