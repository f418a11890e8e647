"""API client for the Moonlight UI."""

import logging
from typing import Any, Dict, Optional

import httpx

from moonlight.flows.schemas import (
    GenerateCodeProjectInput,
    GenerateCodeProjectOutput,
    GenerateEnhancedImageInput,
    GenerateEnhancedImageOutput,
    SearchAndSummarizeInput,
    SearchAndSummarizeOutput,
)

# Set up logging
logger = logging.getLogger(__name__)


class MoonlightAPIError(Exception):
    """An error response from the Moonlight backend, carrying its ``detail``."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


class MoonlightAPIClient:
    """API client for the Moonlight backend."""

    def __init__(self, base_url: str, api_token: Optional[str] = None, timeout: float = 120.0):
        """Initialize the API client.

        Args:
            base_url: The base URL of the API.
            api_token: Optional API token for authentication.
            timeout: Request timeout in seconds. Image generation is slow.
        """
        self.base_url = base_url.rstrip("/")
        self.headers = {"Authorization": f"Bearer {api_token}"} if api_token else {}
        self.client = httpx.AsyncClient(headers=self.headers, timeout=timeout)
        logger.info(f"Initialized API client with base URL: {self.base_url}")

    @staticmethod
    def _raise_for_error(response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text
        if not isinstance(detail, str):
            detail = str(detail)
        logger.error(f"Request to {response.request.url} failed with {response.status_code}: {detail}")
        raise MoonlightAPIError(response.status_code, detail)

    async def _post(self, path: str, payload: Dict[str, Any], model: Optional[str] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        params = {"model": model} if model else None
        logger.info(f"Making POST request to: {url}")
        response = await self.client.post(url, json=payload, params=params)
        self._raise_for_error(response)
        return response.json()

    async def generate_code_project(
        self, params: GenerateCodeProjectInput, model: Optional[str] = None
    ) -> GenerateCodeProjectOutput:
        """Generate a multi-file code project.

        Args:
            params: The project request.
            model: Optional model id to use instead of the backend default.

        Returns:
            The generated files and their explanation.
        """
        data = await self._post("/api/v1/flows/code-project", params.to_wire(), model)
        result = GenerateCodeProjectOutput.model_validate(data)
        logger.info(f"Generated code project with {len(result.files)} files")
        return result

    async def generate_image(
        self, params: GenerateEnhancedImageInput, model: Optional[str] = None
    ) -> GenerateEnhancedImageOutput:
        """Generate an image, optionally enhancing the prompt first.

        Args:
            params: The image request.
            model: Optional model id used for prompt enhancement.

        Returns:
            The generated image as a data URI.
        """
        data = await self._post("/api/v1/flows/image", params.to_wire(), model)
        return GenerateEnhancedImageOutput.model_validate(data)

    async def search_and_summarize(
        self, params: SearchAndSummarizeInput, model: Optional[str] = None
    ) -> SearchAndSummarizeOutput:
        """Send one chat turn with its history.

        Args:
            params: The query, history and optional studio settings.
            model: Optional model id to use instead of the backend default.

        Returns:
            The answer and an optional image.
        """
        data = await self._post("/api/v1/flows/chat", params.to_wire(), model)
        return SearchAndSummarizeOutput.model_validate(data)

    async def close(self) -> None:
        """Close the client."""
        logger.info("Closing API client")
        await self.client.aclose()
