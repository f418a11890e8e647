from __future__ import annotations

from fastapi import Depends
from pydantic import BaseModel

from moonlight.config import Config, get_config
from moonlight.llms.images import GeminiImageModel, ImageModel


class KnownModel(BaseModel):
    id: str
    name: str
    model_name: str


KNOWN_MODELS: list[KnownModel] = [
    KnownModel(id="moonlight-go", name="Moonlight Go (Gemini 1.5 Flash)", model_name="google-gla:gemini-1.5-flash"),
    KnownModel(id="moonlight-lite", name="Moonlight Lite (Gemini 1.5 Pro)", model_name="google-gla:gemini-1.5-pro"),
    KnownModel(id="moonlight", name="Moonlight (Gemini 2.0 Flash)", model_name="google-gla:gemini-2.0-flash"),
    KnownModel(
        id="moonlight-flash",
        name="Moonlight Flash (Gemini 2.0 Flash lite)",
        model_name="google-gla:gemini-2.0-flash-lite",
    ),
    KnownModel(id="moonlight-pro", name="Moonlight Pro (Gemini 2.5 Flash)", model_name="google-gla:gemini-2.5-flash"),
]

DEFAULT_MODEL_ID = "moonlight"


def get_known_model(model_id: str) -> KnownModel | None:
    return next((m for m in KNOWN_MODELS if m.id == model_id), None)


def resolve_model_name(model: str) -> str:
    """Map a catalogue id to its pydantic-ai model string; anything else is returned as is."""
    known = get_known_model(model)
    return known.model_name if known else model


def get_text_model(config: Config = Depends(get_config)) -> str:
    return resolve_model_name(config.text_model)


def get_image_model(config: Config = Depends(get_config)) -> ImageModel:
    return GeminiImageModel(config.image_model, api_key=config.gemini_api_key)
