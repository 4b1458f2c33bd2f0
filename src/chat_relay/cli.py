"""Chat Relay CLI.

Usage:
    chat-relay                          # Run the HTTP server
    chat-relay --port 8080              # Custom port
    chat-relay --health                 # Check a running server's health
    chat-relay ask "Hello"              # Stream a reply from a running server
    chat-relay config                   # Show effective configuration
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click
import httpx
from dotenv import load_dotenv

from .config import RelaySettings
from .errors import ConfigurationError

DEFAULT_URL = "http://localhost:3001"
LOG_LEVELS = ["debug", "info", "warning", "error"]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_settings() -> RelaySettings:
    try:
        return RelaySettings.from_env()
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e


@click.group(invoke_without_command=True)
@click.option("--host", default=None, help="Host to bind to (default: $HOST or 127.0.0.1)")
@click.option("--port", type=int, default=None, help="Port to bind to (default: $PORT or 3001)")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.option("--log-level", type=click.Choice(LOG_LEVELS), default="info", show_default=True)
@click.option("--env-file", type=click.Path(dir_okay=False), default=".env", show_default=True)
@click.option("--health", "health_check", is_flag=True, help="Check server health and exit")
@click.option("--health-url", default=DEFAULT_URL, help="Server URL for health check")
@click.pass_context
def main(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    reload: bool,
    log_level: str,
    env_file: str,
    health_check: bool,
    health_url: str,
) -> None:
    """Chat Relay - stream chat completions to browsers over SSE."""
    load_dotenv(env_file)
    _configure_logging(log_level)

    # If a subcommand is invoked, let it handle everything
    if ctx.invoked_subcommand is not None:
        return

    if health_check:
        _do_health_check(health_url)
        return

    settings = _load_settings()
    _run_http_server(host or settings.host, port or settings.port, reload, log_level)


def _do_health_check(url: str) -> None:
    """Check server health."""

    async def check() -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{url}/health")
                if response.status_code == 200:
                    data = response.json()
                    click.echo(f"Server is healthy: {data}")
                else:
                    click.echo(f"Server returned {response.status_code}", err=True)
                    sys.exit(1)
        except httpx.ConnectError:
            click.echo(f"Cannot connect to server at {url}", err=True)
            sys.exit(1)

    asyncio.run(check())


def _run_http_server(host: str, port: int, reload: bool, log_level: str) -> None:
    """Run HTTP server mode."""
    import uvicorn

    click.echo(f"Starting chat relay on http://{host}:{port}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(
        "chat_relay.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


@main.command("ask")
@click.argument("prompt")
@click.option("--url", default=DEFAULT_URL, show_default=True, help="Relay server URL")
def ask(prompt: str, url: str) -> None:
    """Send PROMPT to a running relay and print the reply as it streams.

    Examples:

        chat-relay ask "Write a haiku about rivers"
    """
    from .client import RelayClient, RelayClientError

    async def execute() -> int:
        async with RelayClient(url) as client:
            try:
                async for message in client.chat(prompt):
                    if message.type == "chunk":
                        click.echo(message.text, nl=False)
                    elif message.type == "error":
                        click.echo(f"\nError: {message.text}", err=True)
                        return 1
            except RelayClientError as e:
                click.echo(f"Error: {e.message}", err=True)
                return 1
            except httpx.ConnectError:
                click.echo(f"Cannot connect to server at {url}", err=True)
                return 1
        click.echo()
        return 0

    sys.exit(asyncio.run(execute()))


@main.command("config")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def show_config(output_json: bool) -> None:
    """Show effective configuration (API key masked)."""
    info = _load_settings().to_dict()

    if output_json:
        click.echo(json.dumps(info, indent=2))
        return

    for key, value in info.items():
        click.echo(f"{key + ':':<17} {value if value is not None else 'N/A'}")


if __name__ == "__main__":
    main()
