"""Tests for the Moonlight UI API client."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from moonlight.flows.schemas import (
    ChatQuery,
    GenerateCodeProjectInput,
    GenerateEnhancedImageInput,
    HistoryMessage,
    SearchAndSummarizeInput,
)
from moonlight.ui.api_client import MoonlightAPIClient, MoonlightAPIError


@pytest.fixture
def mock_httpx_client():
    """Mock the httpx client."""
    with patch("httpx.AsyncClient") as mock_client:
        yield mock_client


def mock_response(data, status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.is_success = 200 <= status_code < 300
    response.status_code = status_code
    response.json.return_value = data
    response.text = str(data)
    return response


@pytest.mark.asyncio
async def test_client_headers(mock_httpx_client):
    """Test the authorization header and timeout."""
    MoonlightAPIClient("http://localhost:9772/", api_token="secret")

    mock_httpx_client.assert_called_once_with(headers={"Authorization": "Bearer secret"}, timeout=120.0)


@pytest.mark.asyncio
async def test_generate_code_project(mock_httpx_client):
    """Test generating a code project."""
    # Setup
    mock_client_instance = AsyncMock()
    mock_client_instance.post.return_value = mock_response(
        {"files": [{"fileName": "index.html", "code": "<html></html>"}], "explanation": "A page."}
    )
    mock_httpx_client.return_value = mock_client_instance

    # Execute
    client = MoonlightAPIClient("http://localhost:9772")
    result = await client.generate_code_project(GenerateCodeProjectInput(request="a page", enhance_request=True))

    # Assert
    assert [f.file_name for f in result.files] == ["index.html"]
    assert result.explanation == "A page."
    mock_client_instance.post.assert_called_once_with(
        "http://localhost:9772/api/v1/flows/code-project",
        json={"request": "a page", "enhanceRequest": True},
        params=None,
    )


@pytest.mark.asyncio
async def test_generate_image_with_model(mock_httpx_client):
    """Test generating an image with an explicit model."""
    # Setup
    mock_client_instance = AsyncMock()
    mock_client_instance.post.return_value = mock_response({"imageUrl": "data:image/png;base64,AAAA"})
    mock_httpx_client.return_value = mock_client_instance

    # Execute
    client = MoonlightAPIClient("http://localhost:9772")
    result = await client.generate_image(
        GenerateEnhancedImageInput(prompt="a fox", enhance=True, strategy="refine"), model="moonlight-pro"
    )

    # Assert
    assert result.image_url == "data:image/png;base64,AAAA"
    mock_client_instance.post.assert_called_once_with(
        "http://localhost:9772/api/v1/flows/image",
        json={"prompt": "a fox", "enhance": True, "strategy": "refine"},
        params={"model": "moonlight-pro"},
    )


@pytest.mark.asyncio
async def test_search_and_summarize(mock_httpx_client):
    """Test sending a chat turn."""
    # Setup
    mock_client_instance = AsyncMock()
    mock_client_instance.post.return_value = mock_response({"summary": "A cat."})
    mock_httpx_client.return_value = mock_client_instance

    # Execute
    client = MoonlightAPIClient("http://localhost:9772")
    result = await client.search_and_summarize(
        SearchAndSummarizeInput(
            query=ChatQuery(image_url="data:image/png;base64,AAAA"),
            history=[HistoryMessage(sender="user", text="Hi")],
        )
    )

    # Assert
    assert result.summary == "A cat."
    assert result.image_url is None
    mock_client_instance.post.assert_called_once_with(
        "http://localhost:9772/api/v1/flows/chat",
        json={
            "query": {"imageUrl": "data:image/png;base64,AAAA"},
            "history": [{"sender": "user", "text": "Hi"}],
        },
        params=None,
    )


@pytest.mark.asyncio
async def test_error_carries_detail(mock_httpx_client):
    """Test that an error response raises with the server detail."""
    # Setup
    mock_client_instance = AsyncMock()
    mock_client_instance.post.return_value = mock_response(
        {"detail": "Failed to generate image. The model did not return an image."}, status_code=502
    )
    mock_httpx_client.return_value = mock_client_instance

    # Execute
    client = MoonlightAPIClient("http://localhost:9772")
    with pytest.raises(MoonlightAPIError) as exc_info:
        await client.generate_image(GenerateEnhancedImageInput(prompt="a fox"))

    # Assert
    assert exc_info.value.status_code == 502
    assert exc_info.value.detail == "Failed to generate image. The model did not return an image."
    assert str(exc_info.value) == exc_info.value.detail


@pytest.mark.asyncio
async def test_close(mock_httpx_client):
    """Test closing the client."""
    # Setup
    mock_client_instance = AsyncMock()
    mock_httpx_client.return_value = mock_client_instance

    # Execute
    client = MoonlightAPIClient("http://localhost:9772")
    await client.close()

    # Assert
    mock_client_instance.aclose.assert_called_once()
