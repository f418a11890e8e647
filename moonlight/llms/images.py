from __future__ import annotations

from abc import ABC, abstractmethod

from google import genai
from google.genai import types
from pydantic import BaseModel

from moonlight.config import SafetySettings
from moonlight.log import logger
from moonlight.media import parse_data_uri, to_data_uri


class GeneratedMedia(BaseModel):
    mime_type: str
    data: bytes
    text: str | None = None

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.mime_type, self.data)


class ImageModel(ABC):
    @abstractmethod
    async def generate(
        self,
        prompt: str,
        safety: SafetySettings,
        reference_image: str | None = None,
    ) -> GeneratedMedia | None:
        """Generate one image for ``prompt``.

        ``reference_image`` is a data URI passed alongside the prompt for image-to-image requests.
        Returns ``None`` when the model answered without any media.
        """


class GeminiImageModel(ImageModel):
    """Image generation through the Gemini combined text+image output mode."""

    def __init__(self, model_name: str, api_key: str | None = None, **client_kwargs):
        self.model_name = model_name
        self._api_key = api_key
        self._client_kwargs = client_kwargs
        self._client: genai.Client | None = None

    @property
    def client(self) -> genai.Client:
        # Created on first use so the API can start without credentials
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key, **self._client_kwargs)
        return self._client

    def build_config(self, safety: SafetySettings) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            response_modalities=["TEXT", "IMAGE"],
            safety_settings=[
                types.SafetySetting(category=category, threshold=threshold)
                for category, threshold in safety.as_categories().items()
            ],
        )

    async def generate(
        self,
        prompt: str,
        safety: SafetySettings,
        reference_image: str | None = None,
    ) -> GeneratedMedia | None:
        contents: list[types.Part | str] = []
        if reference_image:
            mime_type, data = parse_data_uri(reference_image)
            contents.append(types.Part.from_bytes(data=data, mime_type=mime_type))
        contents.append(prompt)

        logger.debug(f"Requesting image from {self.model_name} (reference image: {bool(reference_image)})")
        response = await self.client.aio.models.generate_content(
            model=self.model_name,
            contents=contents,
            config=self.build_config(safety),
        )

        texts = []
        for candidate in response.candidates or []:
            if not candidate.content or not candidate.content.parts:
                continue
            for part in candidate.content.parts:
                if part.text:
                    texts.append(part.text)
                if part.inline_data and part.inline_data.data:
                    return GeneratedMedia(
                        mime_type=part.inline_data.mime_type or "image/png",
                        data=part.inline_data.data,
                        text="".join(texts) or None,
                    )

        logger.warning(f"{self.model_name} returned no media for prompt: {prompt[:80]}")
        return None
