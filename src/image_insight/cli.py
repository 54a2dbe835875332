"""CLI interface for image-insight."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .config import InsightConfig

logger = logging.getLogger(__name__)

DEFAULT_USER = "local"


def _load_config(ctx: click.Context, **overrides) -> InsightConfig:
    config_path = ctx.obj.get("config_path")
    return InsightConfig.load_from_file(
        Path(config_path) if config_path else None, **overrides
    )


def _build_analyzer(ctx: click.Context, config: InsightConfig, mock: bool):
    from image_insight.analysis.factory import create_analyzer

    model = "mock" if mock else config.model
    try:
        return create_analyzer(
            model=model,
            api_key=config.google_api_key,
            language=config.language,
            **({} if mock else {"timeout": config.timeout})
        )
    except (ValueError, ImportError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="image-insight")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--debug", is_flag=True, help="Enable debug mode.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Configuration file path.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, config_path: Optional[str]) -> None:
    """image-insight - AI-generated titles, captions and literary excerpts for your photos."""
    # Ensure ctx.obj exists
    if ctx.obj is None:
        ctx.obj = {}

    # Configure logging
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = config_path

    if debug:
        logger.debug("Debug mode enabled")
    elif verbose:
        logger.info("Verbose mode enabled")


@cli.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@click.option("--api-key", help="Google AI Studio API key (or set GOOGLE_API_KEY env var)")
@click.option("--model", help="Gemini model to use (e.g., gemini-2.5-flash, gemini-2.5-pro)")
@click.option("--language", help="Output language (fr/en)")
@click.option("--db-path", help="Database file path")
@click.option("--user", "user_id", default=DEFAULT_USER, show_default=True, help="User identity for the analysis history")
@click.option("--save/--no-save", default=False, help="Save the result to the analysis history")
@click.option("--mock", is_flag=True, help="Use mock analyzer for testing (no API calls)")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def analyze(ctx, image, api_key, model, language, db_path, user_id, save, mock, as_json):
    """Generate titles, captions and literary excerpts for an image."""
    from image_insight.analysis.models import UploadedImage
    from image_insight.analysis.orchestrator import AnalysisOrchestrator, AnalysisStatus
    from image_insight.analysis.store import AnalysisHistoryStore

    config = _load_config(ctx, google_api_key=api_key, model=model, language=language, db_path=db_path)
    analyzer = _build_analyzer(ctx, config, mock)
    if mock and not as_json:
        click.echo("Using mock analyzer (no API calls)", err=True)

    history_store = AnalysisHistoryStore(config.db_path, config.data_dir) if save else None
    orchestrator = AnalysisOrchestrator(
        analyzer, language=config.language, history_store=history_store, user_id=user_id,
    )
    asyncio.run(orchestrator.analyze(UploadedImage.from_path(image)))

    snapshot = orchestrator.snapshot()
    if orchestrator.status is AnalysisStatus.FAILED:
        click.echo(f"Error: {snapshot['error']}", err=True)
        ctx.exit(1)

    if as_json:
        click.echo(json.dumps(
            {"metadata": snapshot["metadata"], "result": snapshot["result"]},
            indent=2, ensure_ascii=False,
        ))
        return

    result = orchestrator.state.result
    click.echo("Titles:")
    for title in result.titles:
        click.echo(f"  - {title}")
    click.echo("Captions:")
    for caption in result.captions:
        click.echo(f"  - {caption}")
    click.echo("Literary excerpts:")
    for excerpt in result.excerpts:
        click.echo(f"  « {excerpt.excerpt} »")
        click.echo(f"     {excerpt.author}, {excerpt.work}")
        if excerpt.translation:
            click.echo(f"     ({excerpt.translation})")
    if result.location is not None:
        parts = [p for p in (result.location.city, result.location.region, result.location.country) if p]
        click.echo(f"Location: {', '.join(parts)}")
    _echo_metadata(snapshot["metadata"])


def _echo_metadata(metadata: Optional[dict]) -> None:
    if not metadata:
        return
    click.echo("Metadata:")
    for key, value in metadata.items():
        if key == "gps":
            value = f"{value['latitude']}, {value['longitude']}"
        click.echo(f"  {key}: {value}")


@cli.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def metadata(ctx, image):
    """Show the EXIF metadata of an image."""
    from image_insight.analysis.exif import extract_metadata_from_path

    result = extract_metadata_from_path(image)
    if result is None:
        click.echo("No metadata found.")
        return
    _echo_metadata(result.to_dict())


@cli.command()
@click.option("--api-key", help="Google AI Studio API key (or set GOOGLE_API_KEY env var)")
@click.option("--model", help="Gemini model to use")
@click.option("--language", help="Reply language (fr/en)")
@click.option("--db-path", help="Database file path")
@click.option("--user", "user_id", default=DEFAULT_USER, show_default=True, help="User identity for the chat history")
@click.option("--mock", is_flag=True, help="Use mock analyzer for testing (no API calls)")
@click.pass_context
def chat(ctx, api_key, model, language, db_path, user_id, mock):
    """Chat with the assistant. An empty line or 'exit' quits."""
    from image_insight.analysis.chat import ChatSessionManager, ChatState
    from image_insight.analysis.models import Role
    from image_insight.analysis.store import ChatStore

    config = _load_config(ctx, google_api_key=api_key, model=model, language=language, db_path=db_path)
    analyzer = _build_analyzer(ctx, config, mock)
    store = ChatStore(config.db_path)

    printed = set()

    def show_new_turns(messages):
        for message in messages:
            if message.id in printed:
                continue
            printed.add(message.id)
            if message.role == Role.MODEL.value:
                click.echo(f"assistant> {message.text}")

    with ChatSessionManager(analyzer, store, user_id, language=config.language) as manager:
        if ctx.obj.get("verbose"):
            click.echo(f"{len(manager.messages)} previous messages")
        # Earlier turns are history, not new replies
        printed.update(message.id for message in manager.messages)
        manager.subscribe(show_new_turns)

        def show_failure(state):
            if state is ChatState.FAILED and ctx.obj.get("verbose"):
                click.echo(f"Reply failed: {manager.last_error}", err=True)

        manager.subscribe_state(show_failure)

        while True:
            try:
                text = click.prompt("you", default="", show_default=False)
            except (EOFError, click.Abort):
                break
            if not text.strip() or text.strip().lower() in ("exit", "quit"):
                break
            asyncio.run(manager.send(text))


@cli.command()
@click.option("--db-path", help="Database file path")
@click.option("--user", "user_id", default=DEFAULT_USER, show_default=True, help="User identity")
@click.option("--limit", default=20, help="Maximum records to show")
@click.option("--output-format", type=click.Choice(["text", "json"]), default="text", help="Output format")
@click.pass_context
def history(ctx, db_path, user_id, limit, output_format):
    """List previous analyses."""
    from image_insight.analysis.store import AnalysisHistoryStore

    config = _load_config(ctx, db_path=db_path)
    store = AnalysisHistoryStore(config.db_path, config.data_dir)
    records = store.list_records(user_id, limit=limit)

    if output_format == "json":
        click.echo(json.dumps([record.to_dict() for record in records], indent=2, ensure_ascii=False))
        return

    if not records:
        click.echo("No analyses found.")
        return

    click.echo(f"Found {len(records)} analyses:")
    for i, record in enumerate(records, 1):
        click.echo(f"\n{i}. {record.file_name} ({record.created_at:%Y-%m-%d %H:%M})")
        if record.result.titles:
            click.echo(f"   Title: {record.result.titles[0]}")
        click.echo(f"   Image: {record.image_ref}")


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Display version and effective configuration."""
    import platform
    click.echo(f"image-insight v{__version__}")
    click.echo(f"Python {platform.python_version()} on {platform.system()} {platform.release()}")

    config = _load_config(ctx)
    for key, value in config.to_dict().items():
        click.echo(f"  {key}: {value}")


def main() -> None:
    """Entry point for the CLI."""
    try:
        cli(obj={})
    except Exception as e:
        click.echo(f"Fatal error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
