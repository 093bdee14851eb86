"""
mintledger/cli/__init__.py

mintledger CLI — root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    mintledger = "mintledger.cli:cli"

Adding a new command:
    1. Create mintledger/cli/your_command.py with a @click.command()
    2. Import it here
    3. cli.add_command(your_command)
"""

import logging
from pathlib import Path
from typing import Optional

import click

from mintledger.cli.accounts import address_command, keygen_command
from mintledger.cli.common import _Color, fail
from mintledger.cli.operations import (
    add_emitter_command,
    allowance_command,
    approve_command,
    balance_command,
    burn_command,
    deploy_command,
    finish_minting_command,
    is_emitter_command,
    mint_command,
    status_command,
    supply_command,
    transfer_command,
    transfer_from_command,
)
from mintledger.cli.verify import verify_command
from mintledger.config import LedgerConfig
from mintledger.core.exceptions import ConfigError


@click.group()
@click.version_option(package_name="mintledger")
@click.option(
    "--config", "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="YAML config file (default: ./mintledger.yaml if present).",
)
@click.option("-v", "--verbose", count=True, help="-v for INFO, -vv for DEBUG logging.")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], verbose: int) -> None:
    """
    mintledger — fungible-token ledger with a minting phase.

    \b
    Quick start:
      mintledger keygen owner
      mintledger deploy --key owner
      mintledger mint --key owner owner=1000
      mintledger finish-minting --key owner
      mintledger transfer --key owner 0x... 250
      mintledger verify
    """
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    _Color.configure(True)

    try:
        ctx.obj = LedgerConfig.load(Path(config_file) if config_file else None)
    except ConfigError as exc:
        fail(exc)


for _command in (
    keygen_command,
    address_command,
    deploy_command,
    mint_command,
    finish_minting_command,
    add_emitter_command,
    burn_command,
    transfer_command,
    approve_command,
    transfer_from_command,
    balance_command,
    allowance_command,
    supply_command,
    is_emitter_command,
    status_command,
    verify_command,
):
    cli.add_command(_command)
