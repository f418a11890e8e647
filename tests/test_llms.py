from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.genai import types

from moonlight.config import Config, SafetySettings
from moonlight.llms.images import GeminiImageModel
from moonlight.llms.models import DEFAULT_MODEL_ID, get_known_model, get_text_model, resolve_model_name
from moonlight.media import parse_data_uri, to_data_uri

from fakes import PNG_BYTES, PNG_DATA_URI


def gemini_response(*parts) -> SimpleNamespace:
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def part(text=None, data=None, mime_type="image/png") -> SimpleNamespace:
    inline_data = SimpleNamespace(data=data, mime_type=mime_type) if data else None
    return SimpleNamespace(text=text, inline_data=inline_data)


def test_model_catalogue():
    assert get_known_model(DEFAULT_MODEL_ID).model_name == "google-gla:gemini-2.0-flash"
    assert get_known_model("gpt-4o") is None
    assert resolve_model_name("moonlight-pro") == "google-gla:gemini-2.5-flash"
    assert resolve_model_name("openai:gpt-4o") == "openai:gpt-4o"
    assert get_text_model(Config()) == "google-gla:gemini-2.0-flash"
    assert get_text_model(Config(text_model="test")) == "test"


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("MOONLIGHT_MIN_IMAGE_DATA_URI_LENGTH", "50")
    monkeypatch.setenv("MOONLIGHT_HATE_SPEECH_THRESHOLD", "BLOCK_MEDIUM_AND_ABOVE")

    config = Config()

    assert config.min_image_data_uri_length == 50
    assert config.safety_settings().hate_speech == "BLOCK_MEDIUM_AND_ABOVE"


def test_media_helpers():
    assert parse_data_uri(PNG_DATA_URI) == ("image/png", PNG_BYTES)
    assert parse_data_uri(to_data_uri("image/jpeg", b"abc")) == ("image/jpeg", b"abc")
    with pytest.raises(ValueError):
        parse_data_uri("data:image/png,plain")


def test_gemini_build_config():
    config = GeminiImageModel("gemini-2.0-flash-exp").build_config(SafetySettings())

    assert config.response_modalities == ["TEXT", "IMAGE"]
    assert [(s.category, s.threshold) for s in config.safety_settings] == [
        (types.HarmCategory.HARM_CATEGORY_HATE_SPEECH, types.HarmBlockThreshold.BLOCK_ONLY_HIGH),
        (types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT, types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE),
        (types.HarmCategory.HARM_CATEGORY_HARASSMENT, types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE),
        (types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT, types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE),
    ]


@pytest.mark.asyncio
async def test_gemini_generate_returns_first_inline_image():
    model = GeminiImageModel("gemini-2.0-flash-exp")
    model._client = MagicMock()
    model._client.aio.models.generate_content = AsyncMock(
        return_value=gemini_response(part(text="Here is a fox. "), part(data=PNG_BYTES), part(data=b"second"))
    )

    media = await model.generate("a fox", SafetySettings(), reference_image=PNG_DATA_URI)

    assert media.data == PNG_BYTES
    assert media.text == "Here is a fox. "
    assert media.data_uri == PNG_DATA_URI
    call = model._client.aio.models.generate_content.call_args
    assert call.kwargs["model"] == "gemini-2.0-flash-exp"
    reference, prompt = call.kwargs["contents"]
    assert prompt == "a fox"
    assert reference.inline_data.data == PNG_BYTES


@pytest.mark.asyncio
async def test_gemini_generate_without_media():
    model = GeminiImageModel("gemini-2.0-flash-exp")
    model._client = MagicMock()
    model._client.aio.models.generate_content = AsyncMock(return_value=gemini_response(part(text="I can't do that.")))

    assert await model.generate("a fox", SafetySettings()) is None
