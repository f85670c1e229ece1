"""CLI for the Janus calendar service."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from janus import __version__
from janus.calendar.errors import UnsupportedProviderError
from janus.calendar.registry import get_calendar_provider
from janus.calendar.types import ProviderId, UserId
from janus.config import ConfigError, JanusConfig, build_token_source, load_config
from janus.core.logging import configure_logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(".")


def _load_or_exit(config_dir: Path) -> JanusConfig:
    try:
        return load_config(config_dir)
    except ConfigError as exc:
        click.echo(f"Config error: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Janus: one calendar API over Google Calendar and Microsoft Graph."""


@cli.command()
@click.option(
    "--config",
    "config_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_DIR,
    help="Directory containing janus.toml",
)
@click.option("--host", default=None, help="Override janus.host")
@click.option("--port", type=int, default=None, help="Override janus.port")
def serve(config_dir: Path, host: str | None, port: int | None) -> None:
    """Run the REST API with uvicorn."""
    import uvicorn

    from janus.api.app import create_app

    config = _load_or_exit(config_dir)
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=Path(config.logging.log_root) if config.logging.log_root else None,
        service_name=config.name,
    )

    app = create_app(config, token_source=build_token_source(config))
    bind_host = host or config.host
    bind_port = port or config.port
    logger.info("Starting %s on %s:%d", config.name, bind_host, bind_port)
    uvicorn.run(app, host=bind_host, port=bind_port, log_config=None)


@cli.command("check-config")
@click.option(
    "--config",
    "config_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_DIR,
    help="Directory containing janus.toml",
)
def check_config(config_dir: Path) -> None:
    """Validate janus.toml and print a summary."""
    config = _load_or_exit(config_dir)

    click.echo(f"Config OK: {config.name}")
    click.echo(f"  listen:           {config.host}:{config.port}")
    click.echo(f"  default provider: {config.default_provider.value}")
    click.echo(f"  google api:       {config.providers.google.api_base_url}")
    click.echo(f"  outlook api:      {config.providers.outlook.api_base_url}")
    click.echo(f"  logging:          {config.logging.level} ({config.logging.format})")
    if config.auth.dev_user_id:
        linked = ", ".join(sorted(config.auth.tokens)) or "none"
        click.echo(f"  dev user:         {config.auth.dev_user_id} (tokens: {linked})")


@cli.command()
@click.option(
    "--config",
    "config_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_DIR,
    help="Directory containing janus.toml",
)
@click.option("--user-id", default=None, help="User whose calendars the tools act on")
@click.option(
    "--provider",
    "provider_name",
    type=click.Choice([p.value for p in ProviderId], case_sensitive=False),
    default=None,
    help="Override janus.default_provider",
)
@click.option(
    "--transport",
    type=click.Choice(["stdio", "http"]),
    default="stdio",
    show_default=True,
)
@click.option("--host", default=None, help="Bind host for the http transport")
@click.option("--port", type=int, default=None, help="Bind port for the http transport")
def mcp(
    config_dir: Path,
    user_id: str | None,
    provider_name: str | None,
    transport: str,
    host: str | None,
    port: int | None,
) -> None:
    """Serve the calendar tools for one user over MCP."""
    from janus.agent.tools import create_calendar_mcp

    config = _load_or_exit(config_dir)
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=Path(config.logging.log_root) if config.logging.log_root else None,
        service_name=config.name,
    )

    user_id = user_id or config.auth.dev_user_id
    if not user_id:
        click.echo("Error: --user-id is required when auth.dev_user_id is not set", err=True)
        sys.exit(1)

    provider_id = ProviderId(provider_name.lower()) if provider_name else config.default_provider
    try:
        provider = get_calendar_provider(
            UserId(user_id),
            provider_id,
            token_source=build_token_source(config),
            settings=config.providers,
        )
    except UnsupportedProviderError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    server = create_calendar_mcp(user_id, provider)
    logger.info("Serving calendar tools for %s via %s (%s)", user_id, provider_id, transport)
    if transport == "stdio":
        server.run(transport="stdio")
        return

    import uvicorn

    uvicorn.run(
        server.http_app(),
        host=host or config.host,
        port=port or config.port,
        log_config=None,
    )
