"""Gradio UI for Moonlight."""

from pathlib import Path
from typing import Optional

import gradio as gr

from moonlight.config import get_config
from moonlight.session import JsonFileStorage
from moonlight.ui.components.chat_interface import ChatPage, create_chat_interface
from moonlight.ui.components.code_studio import create_code_studio
from moonlight.ui.components.image_studio import create_image_studio


def create_ui(url: Optional[str] = None, token: Optional[str] = None) -> gr.Blocks:
    """Create the UI.

    Args:
        url: The URL of the backend. Defaults to the configured ``api_url``.
        token: Optional API token. Defaults to the configured ``api_token``.

    Returns:
        A Gradio Blocks component for the UI.
    """
    config = get_config()
    url = url or config.api_url
    token = token or config.api_token
    chat_page = ChatPage(JsonFileStorage(config.storage_path), Path(config.media_cache_dir), url, token)

    with gr.Blocks(title="Moonlight") as app:
        with gr.Tabs():
            with gr.TabItem("Chat", id=0):
                create_chat_interface(chat_page)

            with gr.TabItem("Image Studio", id=1):
                create_image_studio(url, token)

            with gr.TabItem("Code Studio", id=2):
                create_code_studio(url, token)

    return app


def main():
    """Run the UI."""
    app = create_ui()
    app.launch(inbrowser=True)


if __name__ == "__main__":
    main()
