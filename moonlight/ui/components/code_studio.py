"""Code Studio tab of the Moonlight UI."""

import zipfile
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Tuple

import gradio as gr

from moonlight.config import get_config
from moonlight.flows.schemas import GeneratedFile, GenerateCodeProjectInput
from moonlight.llms.models import DEFAULT_MODEL_ID, KNOWN_MODELS
from moonlight.ui.api_client import MoonlightAPIClient, MoonlightAPIError

ARCHIVE_NAME = "noxstudio-project.zip"


def _archive_path(file_name: str) -> str:
    # Keep generated paths inside the archive root
    parts = [p for p in PurePosixPath(file_name.replace("\\", "/")).parts if p not in ("", ".", "..", "/")]
    return "/".join(parts) or "untitled.txt"


def build_project_archive(files: Iterable[GeneratedFile], target_dir: Path) -> Path:
    """Write all generated files into ``target_dir / noxstudio-project.zip``.

    Args:
        files: The generated files.
        target_dir: Directory the archive is written to.

    Returns:
        The path of the archive.
    """
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / ARCHIVE_NAME
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for file in files:
            archive.writestr(_archive_path(file.file_name), file.code)
    return path


def render_files(files: List[GeneratedFile]) -> str:
    sections = []
    for file in files:
        language = PurePosixPath(file.file_name).suffix.lstrip(".")
        sections.append(f"### `{file.file_name}`\n\n```{language}\n{file.code}\n```")
    return "\n\n".join(sections)


async def generate_project(
    request: str,
    enhance_request: bool,
    model_id: Optional[str],
    url: str,
    token: Optional[str] = None,
) -> Tuple[str, str, Optional[str]]:
    """Generate a code project through the backend.

    Args:
        request: What to build.
        enhance_request: Whether to expand the request first.
        model_id: The text model to use.
        url: The URL of the backend.
        token: Optional API token.

    Returns:
        A tuple of (explanation, files_markdown, archive_path).
    """
    if not (request or "").strip():
        raise gr.Error("Please describe the project you want.")

    client = MoonlightAPIClient(url, token)
    try:
        result = await client.generate_code_project(
            GenerateCodeProjectInput(request=request.strip(), enhance_request=enhance_request),
            model=model_id or None,
        )
    except MoonlightAPIError as e:
        return f"Error: {e.detail}", "", None
    finally:
        await client.close()

    archive = build_project_archive(result.files, Path(get_config().media_cache_dir) / "projects")
    return result.explanation, render_files(result.files), str(archive)


def create_code_studio(url: str, token: Optional[str] = None) -> gr.Blocks:
    with gr.Blocks() as code_page:
        backend_url = gr.State(url)
        api_token = gr.State(token)

        with gr.Row():
            with gr.Column(scale=1):
                request = gr.Textbox(label="What should we build?", lines=6)
                enhance_request = gr.Checkbox(label="Enhance request", value=False)
                model = gr.Dropdown(
                    label="Model",
                    choices=[(m.name, m.id) for m in KNOWN_MODELS],
                    value=DEFAULT_MODEL_ID,
                )
                generate_btn = gr.Button("Generate project", variant="primary")
                download = gr.File(label="Download", interactive=False)
            with gr.Column(scale=2):
                explanation = gr.Markdown("")
                files = gr.Markdown("")

        generate_btn.click(
            fn=generate_project,
            inputs=[request, enhance_request, model, backend_url, api_token],
            outputs=[explanation, files, download],
        )

    return code_page
