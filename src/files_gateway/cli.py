# cli.py
import logging

import click
import pydantic

from files_gateway.settings import get_settings

# Configure logging
logger = logging.getLogger(__name__)


def _load_settings():
    """Resolve settings, turning missing configuration into a readable CLI error."""
    try:
        return get_settings()
    except pydantic.ValidationError as e:
        missing = ", ".join(str(err["loc"][0]) for err in e.errors())
        raise click.ClickException(f"Invalid or missing configuration: {missing}") from e


@click.group()
def cli():
    """CLI commands for the files gateway"""
    pass


@cli.command()
def show_config():
    """Show current configuration"""
    settings = _load_settings()

    click.echo("Current Configuration:")
    for key, value in settings.masked().items():
        if hasattr(value, "value"):
            value = value.value
        click.echo(f"  {key}: {value}")


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind")
@click.option("--port", type=int, default=None, help="Port to bind (defaults to the PORT setting)")
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes")
def serve(host, port, reload):
    """Run the HTTP gateway with uvicorn"""
    import uvicorn

    settings = _load_settings()
    port = port or settings.port
    click.echo(f"Serving bucket '{settings.s3_bucket_name}' on http://{host}:{port}")
    uvicorn.run(
        "files_gateway.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    cli()
