"""
Command-line interface for the Dropbox API SDK.

This module exposes the client's operations as commands. Credentials are
passed as options or read from DROPBOX_* environment variables; nothing
is written to disk.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from rich.table import Table

from .client import DropboxClient
from .config import DEFAULT_CHUNK_SIZE, SHARE_LINK_VISIBILITIES
from .crypto import generate_pkce_pair
from .exceptions import DropboxError
from .models import FileMetadata, Result, SharedLink, UploadProgress
from .utils import format_file_size, parse_file_size


# Initialize Rich console
console = Console()


class CLIContext:
    """CLI context object to share state between commands."""

    def __init__(self):
        self.client: Optional[DropboxClient] = None
        self.options: Dict[str, Any] = {}

    def get_client(self) -> DropboxClient:
        """Get a client built from the global options."""
        if self.client is None:
            self.client = DropboxClient(self.options)
        return self.client

    def close(self):
        """Release the client's HTTP sessions, if a client was built."""
        if self.client is not None:
            self.client.close()
            self.client = None


def _client(ctx: click.Context) -> DropboxClient:
    try:
        return ctx.obj.get_client()
    except DropboxError as e:
        console.print(f"❌ {escape(e.message)}")
        sys.exit(1)


def _unwrap(result: Result, action: str) -> Any:
    if not result:
        console.print(f"❌ {action} failed: {escape(result.error_message)}")
        sys.exit(1)
    return result.value


def _print_json(value: Any):
    console.print_json(json.dumps(value, default=str))


@click.group()
@click.option('--app-key', envvar='DROPBOX_APP_KEY', help='App key')
@click.option('--app-secret', envvar='DROPBOX_APP_SECRET', help='App secret')
@click.option('--access-token', envvar='DROPBOX_ACCESS_TOKEN', help='Access token')
@click.option('--refresh-token', envvar='DROPBOX_REFRESH_TOKEN', help='Refresh token')
@click.option('--redirect-url', envvar='DROPBOX_REDIRECT_URL', help='OAuth redirect URL')
@click.option('--home-dir', default='/', help='Default remote folder')
@click.option('--auto-refresh', is_flag=True, help='Refresh the access token on startup')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, app_key, app_secret, access_token, refresh_token, redirect_url, home_dir, auto_refresh, debug):
    """Dropbox CLI - files, uploads and shared links."""
    ctx.obj = CLIContext()
    ctx.call_on_close(ctx.obj.close)
    ctx.obj.options = {
        'app_key': app_key,
        'app_secret': app_secret,
        'access_token': access_token,
        'refresh_token': refresh_token,
        'redirect_url': redirect_url,
        'home_dir': home_dir,
        'auto_refresh': auto_refresh,
    }

    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )
        console.print("[dim]Debug mode enabled[/dim]")


@cli.command(name='auth-url')
@click.option('--state', default='', help='Opaque state echoed to the redirect URL')
@click.option('--pkce', is_flag=True, help='Use PKCE and print the code verifier')
@click.pass_context
def auth_url(ctx, state, pkce):
    """Print the authorization URL to visit."""
    client = _client(ctx)

    code_challenge = None
    if pkce:
        code_verifier, code_challenge = generate_pkce_pair()
        console.print(f"Code verifier (keep it for 'exchange'): {code_verifier}")

    console.print(client.get_auth_url(state=state, code_challenge=code_challenge), soft_wrap=True)


@cli.command()
@click.argument('code')
@click.option('--code-verifier', help='PKCE code verifier printed by auth-url')
@click.pass_context
def exchange(ctx, code, code_verifier):
    """Exchange an authorization code for tokens."""
    client = _client(ctx)
    _unwrap(client.exchange_code(code, code_verifier=code_verifier), "Code exchange")

    table = Table(title="Tokens")
    table.add_column("Token", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Access token", client.access_token)
    table.add_row("Refresh token", client.refresh_token or "-")
    console.print(table)


@cli.command()
@click.pass_context
def refresh(ctx):
    """Refresh the access token with the refresh token."""
    client = _client(ctx)
    _unwrap(client.refresh_access_token(), "Token refresh")
    console.print(f"✅ Access token: {client.access_token}")


@cli.command(name='ls')
@click.argument('path', default='')
@click.option('--json', 'output_json', is_flag=True, help='Output as JSON')
@click.pass_context
def list_folder(ctx, path, output_json):
    """List a folder (default: the home folder)."""
    client = _client(ctx)
    data = _unwrap(client.list_folder(path), "Listing")

    if output_json:
        _print_json(data)
        return

    entries = [FileMetadata.from_dict(entry) for entry in data.get("entries", [])]
    if not entries:
        console.print("No entries found.")
        return

    table = Table(title=path or client.config.home_dir)
    table.add_column("Name", style="green")
    table.add_column("Type", style="blue")
    table.add_column("Size", style="yellow")
    table.add_column("Modified", style="magenta")

    for entry in entries:
        table.add_row(
            entry.name,
            entry.tag,
            "" if entry.is_folder else format_file_size(entry.size),
            entry.server_modified.strftime('%Y-%m-%d %H:%M') if entry.server_modified else "",
        )

    console.print(table)


@cli.command()
@click.argument('path')
@click.option('--json', 'output_json', is_flag=True, help='Output as JSON')
@click.pass_context
def info(ctx, path, output_json):
    """Show metadata for a file or folder."""
    client = _client(ctx)
    data = _unwrap(client.file_info(path), "Metadata lookup")

    if output_json:
        _print_json(data)
        return

    metadata = FileMetadata.from_dict(data)
    table = Table(title=f"Metadata: {metadata.name}")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Path", metadata.path_display or "")
    table.add_row("Type", metadata.tag)
    table.add_row("ID", metadata.id or "")
    if not metadata.is_folder:
        table.add_row("Size", format_file_size(metadata.size))
        table.add_row("Revision", metadata.rev or "")
        table.add_row("Content hash", metadata.content_hash or "")
        table.add_row("Modified", metadata.server_modified.isoformat() if metadata.server_modified else "")

    console.print(table)


@cli.command()
@click.argument('path')
@click.option('--autorename', is_flag=True, help='Rename on conflict')
@click.pass_context
def mkdir(ctx, path, autorename):
    """Create a folder."""
    client = _client(ctx)
    data = _unwrap(client.create_folder(path, autorename=autorename), "Create folder")
    console.print(f"✅ Created: {FileMetadata.from_dict(data).path_display or path}")


@cli.command(name='rm')
@click.argument('path')
@click.confirmation_option(prompt='Are you sure you want to delete this path?')
@click.pass_context
def remove(ctx, path):
    """Delete a file or folder."""
    client = _client(ctx)
    _unwrap(client.delete(path), "Delete")
    console.print(f"✅ Deleted: {path}")


@cli.command()
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--dest', default='', help='Destination folder (default: the home folder)')
@click.option('--chunked', is_flag=True, help='Use a resumable upload session')
@click.option('--chunk-size', default=str(DEFAULT_CHUNK_SIZE), help='Chunk size, e.g. 8MB')
@click.pass_context
def put(ctx, files, dest, chunked, chunk_size):
    """Upload files."""
    client = _client(ctx)

    try:
        chunk_bytes = parse_file_size(chunk_size)
    except ValueError as e:
        console.print(f"❌ {e}")
        sys.exit(1)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console
    ) as progress:

        for file_path in files:
            file_path = Path(file_path)
            task = progress.add_task(f"Uploading {file_path.name}", total=100)

            def progress_callback(prog: UploadProgress):
                progress.update(
                    task,
                    completed=prog.percentage,
                    description=f"Uploading {file_path.name} ({prog.speed_mbps:.1f} MB/s)",
                )

            if chunked:
                result = client.upload_large_file(
                    file_path,
                    dest,
                    chunk_size=chunk_bytes,
                    progress_callback=progress_callback,
                )
            else:
                result = client.upload(file_path, dest)

            data = _unwrap(result, f"Upload of {file_path.name}")
            progress.update(task, completed=100)
            console.print(f"✅ Uploaded: {data.get('path_display', file_path.name)}")


@cli.command()
@click.argument('path')
@click.option('--output', '-o', type=click.Path(), default='.', help='Output file or directory')
@click.pass_context
def get(ctx, path, output):
    """Download a file."""
    client = _client(ctx)
    data = _unwrap(client.download_to_file(path, output), "Download")
    console.print(f"✅ Downloaded: {data['local_path']}")


@cli.command()
@click.argument('path')
@click.pass_context
def share(ctx, path):
    """Create a public shared link."""
    client = _client(ctx)
    link = SharedLink.from_dict(_unwrap(client.create_share_link(path), "Create shared link"))

    console.print(Panel(
        f"URL: {link.url}\n"
        f"Visibility: {link.visibility or 'public'}",
        title="Shared Link",
        border_style="green"
    ))


@cli.command()
@click.argument('path')
@click.pass_context
def links(ctx, path):
    """List shared links of a path."""
    client = _client(ctx)
    data = _unwrap(client.get_share_link(path), "List shared links")

    shared_links = [SharedLink.from_dict(link) for link in data.get("links", [])]
    if not shared_links:
        console.print("No shared links.")
        return

    table = Table(title=f"Shared links: {path}")
    table.add_column("URL", style="green")
    table.add_column("Visibility", style="cyan")
    table.add_column("Expires", style="magenta")

    for link in shared_links:
        table.add_row(
            link.url,
            link.visibility or "",
            link.expires.isoformat() if link.expires else "never",
        )

    console.print(table)


@cli.command()
@click.argument('url')
@click.pass_context
def unshare(ctx, url):
    """Revoke a shared link."""
    client = _client(ctx)
    _unwrap(client.delete_share_link(url), "Revoke shared link")
    console.print(f"✅ Revoked: {url}")


@cli.command(name='share-settings')
@click.argument('url')
@click.option('--visibility', type=click.Choice(SHARE_LINK_VISIBILITIES), default='public')
@click.option('--password', help="Link password (visibility 'password')")
@click.option('--expires', help='Expiry, ISO 8601 UTC (e.g. 2030-01-01T00:00:00Z)')
@click.option('--remove-expire', is_flag=True, help='Remove the expiry')
@click.pass_context
def share_settings(ctx, url, visibility, password, expires, remove_expire):
    """Update the settings of a shared link."""
    client = _client(ctx)
    data = _unwrap(
        client.update_share_link_settings(url, visibility, password, expires, remove_expire),
        "Update shared link",
    )
    link = SharedLink.from_dict(data)
    console.print(f"✅ Updated: {link.url} ({link.visibility or visibility})")


if __name__ == '__main__':
    cli()
