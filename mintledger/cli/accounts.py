"""
mintledger keygen / address — account key management.

Keys are PEM-encoded Ed25519 private keys stored as <key_dir>/<NAME>.pem.
An account's address is derived from its public key.
"""

import click

from mintledger.cli.common import EXIT_ERROR, get_config, load_key
from mintledger.core.crypto import Ed25519KeyManager


@click.command(name="keygen")
@click.argument("name")
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing key.")
@click.pass_context
def keygen_command(ctx: click.Context, name: str, force: bool) -> None:
    """Generate a key NAME and print its address."""
    config = get_config(ctx)
    path   = config.key_path(name)
    if path.exists() and not force:
        click.echo(f"error: key {name!r} already exists at {path}", err=True)
        ctx.exit(EXIT_ERROR)

    key = Ed25519KeyManager.generate()
    key.save(path)
    click.echo(key.address)


@click.command(name="address")
@click.argument("name")
@click.pass_context
def address_command(ctx: click.Context, name: str) -> None:
    """Print the address of key NAME."""
    click.echo(load_key(get_config(ctx), name).address)
