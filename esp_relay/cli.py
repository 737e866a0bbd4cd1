#!/usr/bin/env python3
"""
ESP Relay CLI

Usage:
    esp-relay serve
    esp-relay status
    esp-relay send start
    esp-relay device --reply
"""

import asyncio
import dataclasses
import json
import logging
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from websockets.exceptions import WebSocketException

from . import __version__
from .client import DeviceStub, RelayAPIClient, RelayAPIError, send_command
from .config import get_config

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

console = Console()


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )


@click.group()
@click.option('--config', '-c', 'config_path', type=click.Path(), help='Config file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, config_path, verbose):
    """ESP Relay - forward controller commands to an ESP32 over WebSocket."""
    ctx.ensure_object(dict)

    # Per-invocation copy; flags must not leak into the cached config
    cfg = dataclasses.replace(get_config(config_path))
    if verbose:
        cfg.log_level = "DEBUG"
    configure_logging(cfg.log_level)

    ctx.obj['config'] = cfg
    ctx.obj['verbose'] = verbose


@cli.command()
@click.option('--host', help='Host to bind to')
@click.option('--ws-port', type=int, help='WebSocket port')
@click.option('--http-port', type=int, help='Control page / API port')
@click.option('--public-host', help='Address shown on the control page')
@click.option('--no-http', is_flag=True, help='Disable the control page and API')
@click.pass_context
def serve(ctx, host, ws_port, http_port, public_host, no_http):
    """Run the relay server."""
    from .relay_server import run

    cfg = ctx.obj['config']
    if host:
        cfg.host = host
    if ws_port is not None:
        cfg.ws_port = ws_port
    if http_port is not None:
        cfg.http_port = http_port
    if public_host:
        cfg.public_host = public_host

    asyncio.run(run(cfg, with_http=not no_http))


@cli.command()
@click.option('--url', '-u', help='Relay API URL')
@click.option('--json', 'as_json', is_flag=True, help='Output as JSON')
@click.pass_context
def status(ctx, url, as_json):
    """Show connected sessions and the current device."""
    api_url = url or ctx.obj['config'].relay_api_url

    async def _fetch():
        async with RelayAPIClient(api_url) as client:
            return await client.get_status()

    try:
        relay_status = asyncio.run(_fetch())
    except RelayAPIError as e:
        console.print(f"Relay not reachable at {api_url}: {e}", style="bold red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(relay_status, indent=2))
        return

    _show_status(relay_status)


def _show_status(relay_status):
    console.print(Panel.fit(
        "[bold blue]ESP Relay Status[/bold blue]",
        border_style="blue"
    ))
    console.print(f"\n[bold]WebSocket:[/bold] {relay_status.get('ws_url', '-')}")
    console.print(f"[bold]Sessions:[/bold] {relay_status.get('sessions_connected', 0)}")

    device = relay_status.get('device')
    if device:
        console.print(f"[bold]Device:[/bold] [green]{device['session_id'][:8]}[/green] "
                      f"({device.get('remote_address') or '-'})")
    else:
        console.print("[bold]Device:[/bold] [yellow]not connected[/yellow]")

    controllers = relay_status.get('controllers', [])
    if not controllers:
        console.print("\n[dim]No controllers connected[/dim]")
        return

    console.print("\n[bold underline]Controllers[/bold underline]")
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Session", style="dim")
    table.add_column("Address")
    table.add_column("Connected")
    table.add_column("Frames in", justify="right")

    for c in controllers:
        table.add_row(
            c['session_id'][:8],
            c.get('remote_address') or "-",
            c.get('connected_at', '')[:19] or "-",
            str(c.get('frames_received', 0))
        )

    console.print(table)


@cli.command()
@click.argument('command')
@click.option('--url', '-u', help='Relay WebSocket URL')
@click.pass_context
def send(ctx, command, url):
    """Send COMMAND to the device as a controller."""
    relay_url = url or ctx.obj['config'].relay_url
    try:
        asyncio.run(send_command(relay_url, command))
    except (OSError, WebSocketException) as e:
        console.print(f"Could not send to {relay_url}: {e}", style="bold red")
        sys.exit(1)
    click.echo(f"Sent {command!r}")


@cli.command()
@click.option('--url', '-u', help='Relay WebSocket URL')
@click.option('--announce', default="ESP32 connected", show_default=True,
              help='Identity announcement to send')
@click.option('--reply/--no-reply', default=False,
              help='Answer each command with "<command> received"')
@click.pass_context
def device(ctx, url, announce, reply):
    """Act as the device: announce, then print received commands."""
    relay_url = url or ctx.obj['config'].relay_url

    async def handle(command):
        click.echo(command)
        if reply:
            return f"{command} received"
        return None

    stub = DeviceStub(relay_url, handle, announcement=announce)
    try:
        asyncio.run(stub.run())
    except (OSError, WebSocketException) as e:
        console.print(f"Connection to {relay_url} failed: {e}", style="bold red")
        sys.exit(1)
    except KeyboardInterrupt:
        pass


@cli.command()
@click.pass_context
def config(ctx):
    """Show current configuration."""
    cfg = ctx.obj['config']
    click.echo("ESP Relay Configuration:")
    click.echo(f"  Config file: {cfg.config_path}")
    click.echo(f"  Listen: {cfg.host} (ws {cfg.ws_port}, http {cfg.http_port})")
    click.echo(f"  Public host: {cfg.public_host or '(auto)'}")
    click.echo(f"  Relay URL: {cfg.relay_url}")
    click.echo(f"  Relay API URL: {cfg.relay_api_url}")
    click.echo(f"  Log level: {cfg.log_level}")


@cli.command()
def version():
    """Show version information."""
    click.echo(f"ESP Relay v{__version__}")


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
