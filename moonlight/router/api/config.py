from fastapi import APIRouter

from moonlight.llms.models import DEFAULT_MODEL_ID, KNOWN_MODELS
from moonlight.router.api.params import GetModelsResponse, ModelInfo

router = APIRouter(
    tags=["config"],
    prefix="/api/config",
)


@router.get("/models")
async def get_models() -> GetModelsResponse:
    return GetModelsResponse(
        models=[ModelInfo(id=m.id, name=m.name, model_name=m.model_name) for m in KNOWN_MODELS],
        default=DEFAULT_MODEL_ID,
    )
