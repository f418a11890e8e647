from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

SafetyThreshold = Literal["BLOCK_ONLY_HIGH", "BLOCK_MEDIUM_AND_ABOVE"]


def get_config() -> Config:
    return Config()


class SafetySettings(BaseModel):
    hate_speech: SafetyThreshold = "BLOCK_ONLY_HIGH"
    dangerous_content: SafetyThreshold = "BLOCK_MEDIUM_AND_ABOVE"
    harassment: SafetyThreshold = "BLOCK_MEDIUM_AND_ABOVE"
    sexually_explicit: SafetyThreshold = "BLOCK_MEDIUM_AND_ABOVE"

    def as_categories(self) -> dict[str, SafetyThreshold]:
        return {
            "HARM_CATEGORY_HATE_SPEECH": self.hate_speech,
            "HARM_CATEGORY_DANGEROUS_CONTENT": self.dangerous_content,
            "HARM_CATEGORY_HARASSMENT": self.harassment,
            "HARM_CATEGORY_SEXUALLY_EXPLICIT": self.sexually_explicit,
        }


class Config(BaseSettings):
    text_model: str = "moonlight"
    image_model: str = "gemini-2.0-flash-exp"
    gemini_api_key: str | None = None

    min_image_data_uri_length: int = 1000
    max_tool_rounds: int = 4

    hate_speech_threshold: SafetyThreshold = "BLOCK_ONLY_HIGH"
    dangerous_content_threshold: SafetyThreshold = "BLOCK_MEDIUM_AND_ABOVE"
    harassment_threshold: SafetyThreshold = "BLOCK_MEDIUM_AND_ABOVE"
    sexually_explicit_threshold: SafetyThreshold = "BLOCK_MEDIUM_AND_ABOVE"

    code_project_stack: str = (
        "Next.js (App Router) with TypeScript, React functional components and Tailwind CSS for styling"
    )

    api_url: str = "http://localhost:9772"
    api_token: str | None = None
    host: str = "127.0.0.1"
    port: int = 9772

    storage_path: str = (Path.cwd() / "moonlight-storage.json").expanduser().resolve().absolute().as_posix()
    media_cache_dir: str = (Path.cwd() / ".moonlight-media").expanduser().resolve().absolute().as_posix()

    model_config = SettingsConfigDict(env_prefix="moonlight_", case_sensitive=False, frozen=True)

    def safety_settings(self) -> SafetySettings:
        return SafetySettings(
            hate_speech=self.hate_speech_threshold,
            dangerous_content=self.dangerous_content_threshold,
            harassment=self.harassment_threshold,
            sexually_explicit=self.sexually_explicit_threshold,
        )
