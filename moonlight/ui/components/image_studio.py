"""Image Studio tab of the Moonlight UI."""

from pathlib import Path
from typing import Optional, Tuple

import gradio as gr

from moonlight.config import get_config
from moonlight.flows.schemas import GenerateEnhancedImageInput
from moonlight.llms.models import DEFAULT_MODEL_ID, KNOWN_MODELS
from moonlight.log import logger
from moonlight.ui.api_client import MoonlightAPIClient, MoonlightAPIError
from moonlight.ui.images import save_data_uri


async def generate_image(
    prompt: str,
    enhance: bool,
    strategy: str,
    model_id: Optional[str],
    url: str,
    token: Optional[str] = None,
) -> Tuple[Optional[str], str]:
    """Generate an image through the backend.

    Args:
        prompt: The image prompt.
        enhance: Whether to enhance the prompt or refine the first image.
        strategy: ``rewrite`` or ``refine``.
        model_id: The text model used for enhancement.
        url: The URL of the backend.
        token: Optional API token.

    Returns:
        A tuple of (image_path, status_message).
    """
    if not (prompt or "").strip():
        raise gr.Error("Please describe the image you want.")

    client = MoonlightAPIClient(url, token)
    try:
        result = await client.generate_image(
            GenerateEnhancedImageInput(prompt=prompt.strip(), enhance=enhance, strategy=strategy),
            model=model_id or None,
        )
    except MoonlightAPIError as e:
        return None, f"Error: {e.detail}"
    finally:
        await client.close()

    try:
        path = save_data_uri(result.image_url, Path(get_config().media_cache_dir))
    except (ValueError, OSError) as e:
        logger.warning(f"Failed to display generated image: {e}")
        return None, "Error: the generated image could not be displayed."
    return str(path), ""


def create_image_studio(url: str, token: Optional[str] = None) -> gr.Blocks:
    with gr.Blocks() as image_page:
        backend_url = gr.State(url)
        api_token = gr.State(token)

        with gr.Row():
            with gr.Column(scale=1):
                prompt = gr.Textbox(label="Prompt", lines=4, placeholder="A lighthouse under a full moon...")
                enhance = gr.Checkbox(label="Enhance", value=False)
                strategy = gr.Radio(
                    label="Enhancement strategy",
                    choices=[("Rewrite the prompt", "rewrite"), ("Refine the first image", "refine")],
                    value="rewrite",
                )
                model = gr.Dropdown(
                    label="Model",
                    choices=[(m.name, m.id) for m in KNOWN_MODELS],
                    value=DEFAULT_MODEL_ID,
                )
                generate_btn = gr.Button("Generate", variant="primary")
            with gr.Column(scale=2):
                image = gr.Image(label="Result", type="filepath", interactive=False)
                status = gr.Markdown("")

        generate_btn.click(
            fn=generate_image,
            inputs=[prompt, enhance, strategy, model, backend_url, api_token],
            outputs=[image, status],
        )

    return image_page
