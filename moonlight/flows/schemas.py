"""Request and response shapes of the three flows.

Field names follow the camelCase wire format of the browser client; snake_case is accepted
as well so Python callers can build the models naturally.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FlowModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class GenerateCodeProjectInput(FlowModel):
    request: str = Field(description="The user request for the code project.")
    enhance_request: bool = Field(
        default=False,
        description="Whether to expand the request into a detailed specification before generating.",
    )


class GeneratedFile(FlowModel):
    file_name: str = Field(description="Relative path of the file, e.g. src/app/page.tsx.")
    code: str = Field(description="Full content of the file.")


class GenerateCodeProjectOutput(FlowModel):
    files: list[GeneratedFile]
    explanation: str


class GenerateEnhancedImageInput(FlowModel):
    prompt: str = Field(description="The prompt for generating the image.")
    enhance: bool = Field(default=False, description="Whether to enhance the prompt or refine the first image.")
    strategy: Literal["rewrite", "refine"] = Field(
        default="rewrite",
        description="How enhancement works: rewrite the prompt first, or generate then refine the image.",
    )


class GenerateEnhancedImageOutput(FlowModel):
    image_url: str = Field(description="The data URI of the generated image.")


class ChatQuery(FlowModel):
    text: str | None = None
    image_url: str = Field(description="Data URI of the image uploaded by the user.")


class HistoryMessage(FlowModel):
    sender: Literal["user", "bot"]
    text: str = ""
    image_url: str | None = None


class SearchAndSummarizeInput(FlowModel):
    query: str | ChatQuery = Field(description="The latest user turn: plain text or an uploaded image with text.")
    history: list[HistoryMessage] = Field(default_factory=list)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    custom_system_instructions: str | None = None

    @property
    def query_text(self) -> str:
        if isinstance(self.query, ChatQuery):
            return self.query.text or ""
        return self.query

    @property
    def query_image_url(self) -> str | None:
        if isinstance(self.query, ChatQuery):
            return self.query.image_url
        return None


class SearchAndSummarizeOutput(FlowModel):
    summary: str
    image_url: str | None = None


class SearchToolInput(FlowModel):
    search_query: str = Field(description="The query to search the internet for.")


class SearchToolOutput(FlowModel):
    content: str = Field(description="The textual content found by the search.")
    source: str = Field(description="The simulated URL or source of the information.")


class ImageToolInput(FlowModel):
    image_prompt: str = Field(description="A clear, descriptive prompt for the image to generate.")


class ImageToolOutput(FlowModel):
    image_url: str = Field(description="The data URI of the generated image.")
