"""
FreeTunnel CLI entry point.

Usage:
    freetunnel [OPTIONS] SERVER [TO]

Examples:
    # Expose localhost:3000 as https://myapp.example.com
    freetunnel myapp.example.com localhost:3000

    # Explicit WebSocket URL and token
    freetunnel myapp.example.com -s wss://tunnel.example.com/ws -t SECRET

Every option can also come from the environment (or a .env file in the
current directory): SERVER_WS_URL, AUTH_TOKEN, TO, TO_HOST, TO_PORT,
TO_PROTO, FORWARD_TIMEOUT, LOG_LEVEL.
"""

import asyncio
from typing import Annotated

import typer
from dotenv import find_dotenv, load_dotenv

from freetunnel.cli.inference import (
    build_candidates,
    infer_subdomain,
    resolve_target_url,
)
from freetunnel.cli.output import console, print_error
from freetunnel.client.config import config
from freetunnel.client.exceptions import TunnelFatalError
from freetunnel.client.services.manager import ConnectionManager
from freetunnel.models.enums import ExitCode, LogLevel
from freetunnel.utils.logger import configure_logging

app = typer.Typer(
    name="freetunnel",
    help="Reverse tunnel client (connects to server and forwards to local target)",
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool):
    if value:
        from freetunnel import __version__

        console.print(f"FreeTunnel v{__version__}")
        raise typer.Exit()


@app.command()
def main(
    server: Annotated[
        str,
        typer.Argument(
            help="Public tunnel host (subdomain.domain) or full ws(s) URL. "
            "Example: myapp.example.com or wss://myapp.example.com/ws"
        ),
    ],
    to_arg: Annotated[
        str | None,
        typer.Argument(
            metavar="[TO]",
            help="Local target host:port (e.g., localhost:3000)",
            show_default=False,
        ),
    ] = None,
    server_ws_url: Annotated[
        str | None,
        typer.Option(
            "--server-ws-url",
            "-s",
            help="WebSocket server URL (overrides host-based inference)",
            envvar="SERVER_WS_URL",
        ),
    ] = None,
    token: Annotated[
        str | None,
        typer.Option("--token", "-t", help="Auth token", envvar="AUTH_TOKEN"),
    ] = None,
    to: Annotated[
        str | None,
        typer.Option(
            "--to",
            "-T",
            help="Local target URL (overrides host:port and --to-* options)",
            envvar="TO",
        ),
    ] = None,
    to_host: Annotated[
        str,
        typer.Option("--to-host", help="Local target hostname", envvar="TO_HOST"),
    ] = "localhost",
    to_port: Annotated[
        int,
        typer.Option("--to-port", help="Local target port", envvar="TO_PORT"),
    ] = 3000,
    to_proto: Annotated[
        str,
        typer.Option(
            "--to-proto",
            help="Local target protocol (http|https)",
            envvar="TO_PROTO",
        ),
    ] = "http",
    forward_timeout: Annotated[
        float | None,
        typer.Option(
            "--forward-timeout",
            help="Timeout in seconds for each local request (default: none)",
            envvar="FORWARD_TIMEOUT",
        ),
    ] = None,
    log_level: Annotated[
        LogLevel,
        typer.Option("--log-level", help="Log verbosity", envvar="LOG_LEVEL"),
    ] = LogLevel.INFO,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version information.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = False,
):
    """
    Expose a local HTTP service through a FreeTunnel server.

    Connects out to the tunnel server, receives public requests over the
    tunnel and replays them against the local target.
    """
    if to_proto.lower() not in ("http", "https"):
        print_error(f"Invalid protocol: {to_proto}. Use 'http' or 'https'.")
        raise typer.Exit(int(ExitCode.NO_CANDIDATES))

    candidates, host = build_candidates(server, server_ws_url)
    subdomain = infer_subdomain(host) if host else None
    if not subdomain:
        print_error(
            "Could not infer subdomain from server host. Provide a subdomain "
            'host like "myapp.example.com" or a full ws(s) URL.'
        )
        raise typer.Exit(int(ExitCode.NO_CANDIDATES))

    target_url = resolve_target_url(to, to_arg, to_proto.lower(), to_host, to_port)

    config.SERVER_URLS = candidates
    config.SUBDOMAIN = subdomain
    config.TOKEN = token or None
    config.TARGET_URL = target_url
    config.FORWARD_TIMEOUT = forward_timeout
    config.LOG_LEVEL = log_level

    configure_logging(config.LOG_LEVEL)

    console.print("[bold]Preparing to connect...[/bold]")
    console.print(f"  Server candidates: [cyan]{', '.join(candidates)}[/cyan]")
    console.print(f"  Inferred subdomain: [yellow]{subdomain}[/yellow]")
    console.print(f"  Local target: [green]{target_url}[/green]")
    console.print("[dim]Press Ctrl+C to stop.[/dim]")

    try:
        asyncio.run(ConnectionManager(config).run())
    except TunnelFatalError as e:
        print_error(str(e))
        raise typer.Exit(int(e.exit_code))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")


def run():
    """Entry point for the CLI."""
    # Real environment variables win over .env entries
    load_dotenv(find_dotenv(usecwd=True), override=False)
    app()


if __name__ == "__main__":
    run()
