import click

from moonlight.config import get_config


@click.group()
@click.version_option(package_name="moonlight")
def cli():
    pass


@cli.command()
@click.option("--host", default=None, help="Host to bind, defaults to MOONLIGHT_HOST.")
@click.option("--port", default=None, type=int, help="Port to bind, defaults to MOONLIGHT_PORT.")
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes.")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the Moonlight API server."""
    import uvicorn

    config = get_config()
    uvicorn.run("moonlight.app:app", host=host or config.host, port=port or config.port, reload=reload)


@cli.command()
@click.option("--api-url", default=None, help="Backend URL, defaults to MOONLIGHT_API_URL.")
@click.option("--share", is_flag=True, default=False, help="Create a public Gradio link.")
def ui(api_url: str | None, share: bool):
    """Launch the Moonlight web UI."""
    from moonlight.ui.app import create_ui

    create_ui(url=api_url).launch(inbrowser=True, share=share)


if __name__ == "__main__":
    cli()
