"""Main entry point for image-insight web server."""

import logging
import os

import click
import uvicorn

from image_insight.config import CONFIG_FILE_PATH, ENV_GOOGLE_API_KEY


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", default=8000, show_default=True, type=int, help="Port to listen on.")
@click.option("--reload", is_flag=True, help="Reload on source changes (development).")
@click.option("--log-level", default="info", show_default=True,
              type=click.Choice(["critical", "error", "warning", "info", "debug"]))
def main(host: str, port: int, reload: bool, log_level: str) -> None:
    """Run the web server."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    click.echo("Starting image-insight web server...")
    click.echo(f"API documentation: http://{host}:{port}/docs")
    click.echo(f"Configuration file: {CONFIG_FILE_PATH}")
    if not os.environ.get(ENV_GOOGLE_API_KEY):
        click.echo(f"\nNote: {ENV_GOOGLE_API_KEY} is not set, answers come from the mock analyzer.")

    # Factory form so the app is built inside the server process
    uvicorn.run(
        "image_insight.web.api:create_app",
        factory=True,
        host=host,
        port=port,
        log_level=log_level,
        reload=reload,
    )


if __name__ == "__main__":
    main()
