import pytest
from inline_snapshot import snapshot

from moonlight.config import SafetySettings
from moonlight.flows.errors import ImageGenerationError
from moonlight.flows.schemas import ImageToolInput, SearchToolInput
from moonlight.flows.tools import (
    GeneratedImages,
    build_image_tool,
    build_search_tool,
    generate_image_data_uri,
    search,
)

from fakes import PNG_DATA_URI, FakeImageModel


def test_search_canned_result():
    assert search("Tell me about Ubuntu").model_dump(by_alias=True) == snapshot(
        {
            "content": "Ubuntu is a popular open-source Linux distribution based on Debian. It is developed by Canonical Ltd. and is known for its ease of use, strong community support, and regular release cycle. Ubuntu is widely used for desktops, servers, and cloud computing.",
            "source": "simulated-search-engine.com/ubuntu-overview",
        }
    )


@pytest.mark.parametrize(
    "query,source",
    [
        ("What is NEXT.JS?", "simulated-search-engine.com/nextjs-framework"),
        ("weather in Paris today", "simulated-weather-service.com/paris"),
        ("Linux kernel", "simulated-search-engine.com/linux-general"),
        ("ubuntu vs other linux distributions", "simulated-search-engine.com/ubuntu-overview"),
    ],
)
def test_search_keyword_priority(query, source):
    assert search(query).source == source


def test_search_default_result():
    result = search("rust & go?")

    assert result.content == (
        'This is a general simulated search result for "rust & go?". Specific details would require a real search.'
    )
    assert result.source == "simulated-search-engine.com/search?q=rust%20%26%20go%3F"


@pytest.mark.asyncio
async def test_search_tool_renders_aliased_output():
    tool = build_search_tool()

    assert tool.name == "internetSearch"
    assert tool.definition.parameters_json_schema["properties"].keys() == {"searchQuery"}
    assert await tool(SearchToolInput(search_query="linux")) == {
        "content": search("linux").content,
        "source": "simulated-search-engine.com/linux-general",
    }


@pytest.mark.asyncio
async def test_image_tool_hands_out_handles():
    images = GeneratedImages()
    image_model = FakeImageModel()
    tool = build_image_tool(image_model, SafetySettings(), 1000, images)

    assert tool.definition.parameters_json_schema["properties"].keys() == {"imagePrompt"}
    assert await tool(ImageToolInput(image_prompt="a fox")) == {"imageUrl": "generated-image://1"}
    assert await tool(ImageToolInput(image_prompt="a wolf")) == {"imageUrl": "generated-image://2"}
    assert images.resolve("generated-image://2") == PNG_DATA_URI
    assert images.last == PNG_DATA_URI


def test_generated_images_resolve():
    images = GeneratedImages()
    assert images.last is None
    assert images.resolve(None) is None

    handle = images.add("data:image/png;base64,AAAA")

    assert images.resolve(handle) == "data:image/png;base64,AAAA"
    assert images.resolve("data:image/png;base64,AAAA") == "data:image/png;base64,AAAA"
    assert images.resolve("generated-image://7") is None
    assert images.resolve("generated-image://x") is None
    assert images.resolve("https://example.com/cat.png") is None


@pytest.mark.asyncio
async def test_generate_image_data_uri_passes_reference_image():
    image_model = FakeImageModel()

    result = await generate_image_data_uri(
        image_model, "refine it", SafetySettings(), 1000, reference_image=PNG_DATA_URI
    )

    assert result == PNG_DATA_URI
    assert image_model.calls[0]["reference_image"] == PNG_DATA_URI


@pytest.mark.asyncio
async def test_generate_image_data_uri_error_message():
    with pytest.raises(ImageGenerationError) as exc_info:
        await generate_image_data_uri(FakeImageModel(data=None), "a fox", SafetySettings(), 1000)

    assert str(exc_info.value) == "Failed to generate image. The model did not return an image."
