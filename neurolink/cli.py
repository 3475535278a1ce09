#!/usr/bin/env python3
"""
NeuroLink CLI

Command-line interface for the chunked file transfer service.

Usage:
    neurolink serve                  # Start the transfer server
    neurolink send FILE [FILE...]    # Upload files to a server
    neurolink uploads                # List completed upload batches
    neurolink config                 # Print an example config file
"""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Optional

import click
import httpx
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn
from rich.panel import Panel
from rich.logging import RichHandler

from .config import EXAMPLE_CONFIG, load_config
from .service import TransferService

console = Console()

CLIENT_TIMEOUT = 30.0


def setup_logging(verbose: bool = False, level_name: str = 'INFO'):
    """Configure logging with rich output."""
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False),
              help='JSON config file')
@click.pass_context
def cli(ctx, verbose, config_path):
    """NeuroLink - chunked file transfer over the local network."""
    config = load_config(Path(config_path) if config_path else None)
    setup_logging(verbose, config.log_level)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command()
@click.option('--host', default=None, help='Address to bind')
@click.option('--port', type=int, default=None, help='Port to listen on')
@click.option('--storage', type=click.Path(file_okay=False), default=None,
              help='Directory for completed files')
@click.pass_context
def serve(ctx, host, port, storage):
    """Start the transfer server."""
    config = ctx.obj['config']
    if host:
        config.host = host
    if port:
        config.port = port
    if storage:
        config.storage_dir = Path(storage)

    async def run():
        service = TransferService(config)

        console.print(Panel.fit(
            f"[bold green]NeuroLink Server Started[/bold green]\n\n"
            f"Listening: [yellow]http://{config.host}:{config.port}[/yellow]\n"
            f"Storage: [blue]{config.storage_dir}[/blue]\n"
            f"Atomic reassembly: [cyan]{'on' if config.atomic_reassembly else 'off'}[/cyan]",
            title="Server Info"
        ))
        console.print(f"\n[dim]API docs at http://localhost:{config.port}/docs[/dim]\n")

        from .api import run_api_server
        await run_api_server(service, host=config.host, port=config.port,
                             log_level=config.log_level.lower())

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Shutting down...[/yellow]")
    console.print("[green]Server stopped[/green]")


def send_file(client: httpx.Client, path: Path, chunk_size: int,
              batch_id: Optional[str], progress: Progress, task) -> dict:
    """
    Upload one file through the init / chunk / complete protocol.

    Returns:
        The server's completion payload

    Raises:
        click.ClickException: If the server rejects any step
    """
    total_size = path.stat().st_size

    init = _unwrap(client.post('/transfer/init', json={
        'filename': path.name,
        'total_size': total_size,
        'chunk_size': chunk_size,
        'batch_id': batch_id,
    }))
    transfer_id = init['transfer_id']
    total_chunks = init['total_chunks']
    progress.update(task, total=max(total_chunks, 1), completed=0)

    with open(path, 'rb') as f:
        for index in range(total_chunks):
            data = f.read(chunk_size)
            _unwrap(client.post(
                '/transfer/chunk',
                data={'transfer_id': transfer_id, 'chunk_index': str(index)},
                files={'chunk': (f"{path.name}.part{index}", data,
                                 'application/octet-stream')},
            ))
            progress.update(task, advance=1)

    result = _unwrap(client.post('/transfer/complete', json={'transfer_id': transfer_id}))
    progress.update(task, completed=max(total_chunks, 1))
    return result


def _unwrap(response: httpx.Response) -> dict:
    """Return the envelope's data, or raise with the server's error."""
    try:
        body = response.json()
    except ValueError:
        raise click.ClickException(f"HTTP {response.status_code}: {response.text}")

    if response.status_code >= 400 or not body.get('success', False):
        error = body.get('error') or body.get('detail') or f"HTTP {response.status_code}"
        raise click.ClickException(str(error))
    return body['data']


@cli.command()
@click.argument('paths', nargs=-1, required=True,
                type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('-H', '--host', default='localhost', help='Target host')
@click.option('-p', '--port', type=int, default=3030, help='Target port')
@click.option('-c', '--chunk-size', type=int, default=None,
              help='Chunk size in KB (default: chunk_size from config)')
@click.pass_context
def send(ctx, paths, host, port, chunk_size):
    """Send files to a NeuroLink server."""
    if chunk_size is None:
        chunk_bytes = ctx.obj['config'].chunk_size
    else:
        chunk_bytes = chunk_size * 1024
    if chunk_bytes <= 0:
        raise click.BadParameter('must be greater than 0', param_hint='--chunk-size')

    base_url = f"http://{host}:{port}"
    batch_id = f"batch_{uuid.uuid4().hex}"

    console.print("[bold cyan]NeuroLink[/bold cyan]")
    console.print(f"[dim]Sending to: {host}:{port}[/dim]\n")

    with httpx.Client(base_url=base_url, timeout=CLIENT_TIMEOUT) as client:
        for path in paths:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                console=console,
            ) as progress:
                task = progress.add_task(f"Sending {path.name}...", total=None)
                try:
                    result = send_file(client, path, chunk_bytes, batch_id,
                                       progress, task)
                except httpx.HTTPError as e:
                    raise click.ClickException(f"Connection to {base_url} failed: {e}")

            console.print(f"[green]✓ {path.name}[/green] "
                          f"[dim](sha256 {result['final_hash'][:16]}...)[/dim]")

    console.print(f"\n[bold green]Sent {len(paths)} file(s)[/bold green] [dim]batch {batch_id}[/dim]")


@cli.command()
@click.option('-H', '--host', default='localhost', help='Server host')
@click.option('-p', '--port', type=int, default=3030, help='Server port')
def uploads(host, port):
    """List completed upload batches on a server."""
    base_url = f"http://{host}:{port}"
    try:
        with httpx.Client(base_url=base_url, timeout=CLIENT_TIMEOUT) as client:
            batches = _unwrap(client.get('/uploads'))
    except httpx.HTTPError as e:
        raise click.ClickException(f"Connection to {base_url} failed: {e}")

    if not batches:
        console.print("[yellow]No uploads yet[/yellow]")
        return

    table = Table(title="Upload Batches")
    table.add_column("Batch", style="cyan")
    table.add_column("Uploaded", style="green")
    table.add_column("File")
    table.add_column("Size", justify="right", style="yellow")

    for batch in batches:
        for i, f in enumerate(batch['files']):
            table.add_row(
                batch['batch_id'] if i == 0 else "",
                batch['uploaded_at'] if i == 0 else "",
                f['name'],
                format_size(f['size']),
            )

    console.print(table)


@cli.command('config')
def show_config():
    """Print an example configuration file."""
    console.print("Example configuration file (config.json):")
    console.print(EXAMPLE_CONFIG, markup=False, highlight=False)


def format_size(bytes_count: int) -> str:
    """Format bytes as human-readable size."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024
    return f"{bytes_count:.1f} PB"


if __name__ == '__main__':
    cli()
