#!/usr/bin/env python3
"""
WiTransfer CLI

Command-line interface for finding other WiTransfer devices on the LAN.

Usage:
    witransfer discover              # Announce ourselves and list nearby devices
    witransfer discover -p 54321     # Use a specific discovery port
    witransfer whoami                # Show what this device announces
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import click
from rich.color import ColorParseError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from . import __version__
from .config import Config, load_config
from .discovery import DiscoverySession, InitializationError, get_local_ip
from .display import PeerTableDisplay
from .identity import LocalDescriptorProvider

console = Console()


def setup_logging(verbose: bool = False, level: str = 'INFO'):
    """Configure logging with rich output."""
    if verbose:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False, path_type=Path),
              help='JSON config file')
@click.version_option(__version__, prog_name='witransfer')
@click.pass_context
def cli(ctx, verbose, config_path):
    """WiTransfer - transfer files between devices on the same Wi-Fi."""
    ctx.ensure_object(dict)
    config = load_config(config_path)
    setup_logging(verbose, config.log_level)
    ctx.obj['config'] = config


@cli.command()
@click.option('--port', '-p', type=click.IntRange(0, 65535), default=None,
              help='UDP discovery port (default: 54321)')
@click.option('--bind', '-b', 'bind_address', default=None, help='Local address to bind')
@click.option('--broadcast', 'broadcast_address', default=None,
              help='Address announcements are sent to (default: 255.255.255.255)')
@click.option('--interval', type=click.FloatRange(min=0.01), default=None,
              help='Seconds between announcements')
@click.option('--timeout', 'read_timeout', type=click.FloatRange(min=0.01), default=None,
              help='Receive timeout in seconds')
@click.option('--ttl', type=click.FloatRange(min=0.01), default=None,
              help='Forget devices not heard from for this many seconds')
@click.option('--name', default=None, help='Name shown to other devices')
@click.option('--duration', type=click.FloatRange(min=0), default=None,
              help='Stop after this many seconds')
@click.option('--color', 'text_color', default=None, help='Text color of the device list')
@click.option('--background', 'background_color', default=None,
              help='Background color of the device list')
@click.pass_context
def discover(ctx, port, bind_address, broadcast_address, interval, read_timeout, ttl,
             name, duration, text_color, background_color):
    """Announce this device and list other devices on the network."""
    config: Config = ctx.obj['config']

    if port is not None:
        config.port = port
    if bind_address:
        config.host = bind_address
    if broadcast_address:
        config.broadcast_address = broadcast_address
    if interval is not None:
        config.announce_interval = interval
    if read_timeout is not None:
        config.read_timeout = read_timeout
    if ttl is not None:
        config.peer_ttl = ttl
    if name:
        config.display_name = name

    try:
        display = PeerTableDisplay(
            console=console,
            prompt="Press Ctrl+C to stop",
            text_color=text_color,
            background_color=background_color,
        )
    except ColorParseError as e:
        raise click.BadParameter(str(e), param_hint="'--color' / '--background'")

    provider = LocalDescriptorProvider(config.display_name)

    async def run() -> int:
        session = DiscoverySession(provider, config, sinks=[display.on_change])

        try:
            await session.start()
        except InitializationError as e:
            console.print(f"[red]✗ {escape(str(e))}[/red]")
            return 1

        try:
            with display:
                await _wait(session, duration)
        finally:
            await session.stop()

        for component, error in session.errors.items():
            console.print(f"[yellow]{component} stopped early: {escape(str(error))}[/yellow]")
        return 0

    try:
        exit_code = asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Discovery stopped[/yellow]")
        exit_code = 0

    ctx.exit(exit_code)


async def _wait(session: DiscoverySession, duration: Optional[float]):
    """Wait for the session to stop on its own, or for `duration` seconds."""
    if duration is None:
        await session.wait()
        return
    try:
        await asyncio.wait_for(session.wait(), timeout=duration)
    except asyncio.TimeoutError:
        pass


@cli.command()
@click.option('--name', default=None, help='Name shown to other devices')
@click.pass_context
def whoami(ctx, name):
    """Show what this device announces to others."""
    config: Config = ctx.obj['config']
    descriptor = LocalDescriptorProvider(name or config.display_name).current()
    address = config.local_address or get_local_ip()

    console.print(Panel.fit(
        f"Name: [cyan]{descriptor.display_name}[/cyan]\n"
        f"User: [cyan]{descriptor.user_name}[/cyan]\n"
        f"Device: [cyan]{descriptor.host_name}[/cyan]\n"
        f"Platform: [yellow]{descriptor.platform}[/yellow]\n"
        f"Distro: [yellow]{descriptor.distro}[/yellow]\n"
        f"Threads: [yellow]{descriptor.concurrency_hint}[/yellow]\n"
        f"Address: [green]{address}[/green]",
        title="This Device"
    ))


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
