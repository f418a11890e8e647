from __future__ import annotations

from urllib.parse import quote

from moonlight.config import SafetySettings
from moonlight.flows.errors import ImageGenerationError
from moonlight.flows.policy import IMAGE_TOOL_NAME, SEARCH_TOOL_NAME
from moonlight.flows.schemas import ImageToolInput, ImageToolOutput, SearchToolInput, SearchToolOutput
from moonlight.flows.validation import Err, validate_image_media
from moonlight.llms.agent import FlowTool
from moonlight.llms.images import ImageModel
from moonlight.log import logger

SEARCH_TOOL_DESCRIPTION = (
    "Performs a simulated internet search to find up-to-date information or information beyond the AI's "
    "training data. Returns the content found and its source URL. The tool returns plain text content; "
    "format it as JSON yourself if the user asked for JSON."
)
IMAGE_TOOL_DESCRIPTION = (
    "Generates a new image from a descriptive prompt and returns its imageUrl. Use it when the user asks "
    "to create, draw or generate an image, or when an illustration would significantly help the answer."
)

# Left unescaped in URI components
_URI_COMPONENT_SAFE = "!~*'()"

# Checked in order, first substring match wins
CANNED_RESULTS: list[tuple[str, SearchToolOutput]] = [
    (
        "ubuntu",
        SearchToolOutput(
            content=(
                "Ubuntu is a popular open-source Linux distribution based on Debian. It is developed by "
                "Canonical Ltd. and is known for its ease of use, strong community support, and regular release "
                "cycle. Ubuntu is widely used for desktops, servers, and cloud computing."
            ),
            source="simulated-search-engine.com/ubuntu-overview",
        ),
    ),
    (
        "next.js",
        SearchToolOutput(
            content=(
                "Next.js is an open-source web development framework created by Vercel, enabling React-based web "
                "applications with server-side rendering and static site generation."
            ),
            source="simulated-search-engine.com/nextjs-framework",
        ),
    ),
    (
        "weather in paris",
        SearchToolOutput(
            content=(
                "The simulated weather in Paris is currently sunny with a high of 22°C. Remember, this is not "
                "real-time data!"
            ),
            source="simulated-weather-service.com/paris",
        ),
    ),
    (
        "linux",
        SearchToolOutput(
            content=(
                "Linux is a family of open-source Unix-like operating systems based on the Linux kernel. "
                "Distributions include the Linux kernel and supporting system software and libraries, many of "
                "which are provided by the GNU Project. Popular Linux distributions include Debian, Ubuntu, "
                "Fedora, CentOS, and Mint."
            ),
            source="simulated-search-engine.com/linux-general",
        ),
    ),
]


def search(query: str) -> SearchToolOutput:
    """Simulated web search over a fixed table of canned results."""
    logger.info(f"Simulated internet search for: {query}")
    lower_query = query.lower()
    for keyword, result in CANNED_RESULTS:
        if keyword in lower_query:
            return result

    return SearchToolOutput(
        content=f'This is a general simulated search result for "{query}". Specific details would require a real search.',
        source=f"simulated-search-engine.com/search?q={quote(query, safe=_URI_COMPONENT_SAFE)}",
    )


async def generate_image_data_uri(
    image_model: ImageModel,
    prompt: str,
    safety: SafetySettings,
    min_length: int,
    reference_image: str | None = None,
) -> str:
    """One image generation call plus the plausibility checks.

    Raises:
        ImageGenerationError: When no media came back or it is below ``min_length``.
    """
    media = await image_model.generate(prompt, safety, reference_image=reference_image)
    result = validate_image_media(media.data_uri if media else None, min_length)
    if isinstance(result, Err):
        logger.error(f"Image generation failed ({result.kind.value}): {result.detail}")
        raise ImageGenerationError(f"Failed to generate image. {result.detail}.")
    return result.value


def build_search_tool() -> FlowTool:
    async def run(args: SearchToolInput) -> SearchToolOutput:
        return search(args.search_query)

    return FlowTool(
        name=SEARCH_TOOL_NAME,
        description=SEARCH_TOOL_DESCRIPTION,
        args_model=SearchToolInput,
        function=run,
    )


class GeneratedImages:
    """Images produced by the image tool during one chat call.

    The model only sees a short handle per image; the data URIs stay here and are resolved
    when the final answer is assembled.
    """

    HANDLE_PREFIX = "generated-image://"

    def __init__(self):
        self.data_uris: list[str] = []

    def add(self, data_uri: str) -> str:
        self.data_uris.append(data_uri)
        return f"{self.HANDLE_PREFIX}{len(self.data_uris)}"

    def resolve(self, reference: str | None) -> str | None:
        if not reference:
            return None
        if reference.startswith(self.HANDLE_PREFIX):
            index = reference[len(self.HANDLE_PREFIX) :]
            if index.isdigit() and 1 <= int(index) <= len(self.data_uris):
                return self.data_uris[int(index) - 1]
            return None
        # Models occasionally echo the whole data URI back
        return reference if reference in self.data_uris else None

    @property
    def last(self) -> str | None:
        return self.data_uris[-1] if self.data_uris else None


def build_image_tool(
    image_model: ImageModel,
    safety: SafetySettings,
    min_length: int,
    images: GeneratedImages,
) -> FlowTool:
    async def run(args: ImageToolInput) -> ImageToolOutput:
        return ImageToolOutput(
            image_url=await generate_image_data_uri(image_model, args.image_prompt, safety, min_length)
        )

    return FlowTool(
        name=IMAGE_TOOL_NAME,
        description=IMAGE_TOOL_DESCRIPTION,
        args_model=ImageToolInput,
        function=run,
        render=lambda output: {"imageUrl": images.add(output.image_url)},
    )
