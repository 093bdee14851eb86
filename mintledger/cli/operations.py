"""
mintledger ledger commands.

Mutating commands sign with --key NAME and print the journaled tx_id.
Query commands only read the journal.

    mintledger deploy --key owner
    mintledger mint --key owner alice=100 bob=250
    mintledger finish-minting --key owner
    mintledger transfer --key alice bob 40
    mintledger approve --key alice carol 10
    mintledger transfer-from --key carol alice bob 10
    mintledger balance bob
"""

from typing import Any, Callable, Dict, Tuple

import click

from mintledger.cli.common import (
    _Color,
    fail,
    get_config,
    load_key,
    open_journal,
    resolve_account,
    row,
)
from mintledger.core.exceptions import MintLedgerError
from mintledger.core.journal import JournaledLedger
from mintledger.core.transaction import Op

_key_option = click.option(
    "--key", "key_name",
    required=True,
    metavar="NAME",
    help="Name of the caller's key in key_dir.",
)


def _submit(ctx: click.Context, key_name: str, op: str, build: Callable[[Any], Dict[str, Any]]) -> None:
    """Open the journal, resolve arguments, submit one call, print the tx id."""
    config  = get_config(ctx)
    key     = load_key(config, key_name)
    args    = build(config)
    journal = open_journal(config)
    try:
        tx = journal.submit(op, key, args)
    except MintLedgerError as exc:
        fail(exc)
    click.echo(tx.tx_id)


# ── Lifecycle ─────────────────────────────────────────────────

@click.command(name="deploy")
@_key_option
@click.pass_context
def deploy_command(ctx: click.Context, key_name: str) -> None:
    """Start a new journal owned by the key's address."""
    config = get_config(ctx)
    key    = load_key(config, key_name)
    try:
        journal = JournaledLedger.deploy(config.journal_path, key)
    except MintLedgerError as exc:
        fail(exc)
    click.echo(journal.ledger.owner)


@click.command(name="mint")
@_key_option
@click.argument("allocations", nargs=-1, required=True, metavar="ACCOUNT=AMOUNT...")
@click.pass_context
def mint_command(ctx: click.Context, key_name: str, allocations: Tuple[str, ...]) -> None:
    """Mint tokens to one or more accounts in a single batch."""
    pairs = []
    for item in allocations:
        account, sep, amount = item.partition("=")
        if not sep or not (amount.isascii() and amount.isdigit()):
            raise click.BadParameter(
                f"{item!r} is not ACCOUNT=AMOUNT", param_hint="ALLOCATIONS"
            )
        pairs.append((account, int(amount)))

    _submit(ctx, key_name, Op.MINT, lambda config: {
        "recipients": [resolve_account(config, a) for a, _ in pairs],
        "amounts":    [n for _, n in pairs],
    })


@click.command(name="finish-minting")
@_key_option
@click.pass_context
def finish_minting_command(ctx: click.Context, key_name: str) -> None:
    """Close the minting phase and enable transfers. Owner only."""
    _submit(ctx, key_name, Op.FINISH_MINTING, lambda config: {})


@click.command(name="add-emitter")
@_key_option
@click.argument("account")
@click.pass_context
def add_emitter_command(ctx: click.Context, key_name: str, account: str) -> None:
    """Authorize ACCOUNT to mint and burn. Owner only."""
    _submit(ctx, key_name, Op.ADD_EMITTER, lambda config: {
        "account": resolve_account(config, account),
    })


@click.command(name="burn")
@_key_option
@click.argument("account")
@click.argument("amount", type=int)
@click.pass_context
def burn_command(ctx: click.Context, key_name: str, account: str, amount: int) -> None:
    """Destroy AMOUNT from ACCOUNT while minting is open. Emitters only."""
    _submit(ctx, key_name, Op.BURN, lambda config: {
        "account": resolve_account(config, account),
        "amount":  amount,
    })


# ── Transfers ─────────────────────────────────────────────────

@click.command(name="transfer")
@_key_option
@click.argument("to")
@click.argument("amount", type=int)
@click.pass_context
def transfer_command(ctx: click.Context, key_name: str, to: str, amount: int) -> None:
    """Send AMOUNT from the key's account to TO."""
    _submit(ctx, key_name, Op.TRANSFER, lambda config: {
        "to":     resolve_account(config, to),
        "amount": amount,
    })


@click.command(name="approve")
@_key_option
@click.argument("spender")
@click.argument("amount", type=int)
@click.pass_context
def approve_command(ctx: click.Context, key_name: str, spender: str, amount: int) -> None:
    """Allow SPENDER to move up to AMOUNT from the key's account."""
    _submit(ctx, key_name, Op.APPROVE, lambda config: {
        "spender": resolve_account(config, spender),
        "amount":  amount,
    })


@click.command(name="transfer-from")
@_key_option
@click.argument("owner")
@click.argument("to")
@click.argument("amount", type=int)
@click.pass_context
def transfer_from_command(
    ctx: click.Context, key_name: str, owner: str, to: str, amount: int,
) -> None:
    """Move AMOUNT from OWNER to TO using the key's allowance."""
    _submit(ctx, key_name, Op.TRANSFER_FROM, lambda config: {
        "owner":  resolve_account(config, owner),
        "to":     resolve_account(config, to),
        "amount": amount,
    })


# ── Queries ───────────────────────────────────────────────────

@click.command(name="balance")
@click.argument("account")
@click.pass_context
def balance_command(ctx: click.Context, account: str) -> None:
    """Print the balance of ACCOUNT."""
    config = get_config(ctx)
    address = resolve_account(config, account)
    click.echo(open_journal(config).ledger.balance_of(address))


@click.command(name="allowance")
@click.argument("owner")
@click.argument("spender")
@click.pass_context
def allowance_command(ctx: click.Context, owner: str, spender: str) -> None:
    """Print how much SPENDER may still move from OWNER."""
    config = get_config(ctx)
    owner_address   = resolve_account(config, owner)
    spender_address = resolve_account(config, spender)
    click.echo(open_journal(config).ledger.allowance(owner_address, spender_address))


@click.command(name="supply")
@click.pass_context
def supply_command(ctx: click.Context) -> None:
    """Print the total supply."""
    click.echo(open_journal(get_config(ctx)).ledger.total_supply())


@click.command(name="is-emitter")
@click.argument("account")
@click.pass_context
def is_emitter_command(ctx: click.Context, account: str) -> None:
    """Print true if ACCOUNT may mint, else false."""
    config = get_config(ctx)
    address = resolve_account(config, account)
    click.echo("true" if open_journal(config).ledger.is_emitter(address) else "false")


@click.command(name="status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """Show owner, phase, supply, emitters and holders."""
    ledger = open_journal(get_config(ctx)).ledger

    click.echo()
    click.echo(row("Owner",  ledger.owner))
    phase = ledger.phase.value
    click.echo(row("Phase",  _Color.green(phase) if ledger.minting_finished else _Color.yellow(phase)))
    click.echo(row("Supply", f"{ledger.total_supply():,}"))
    click.echo(row("Emitters", ", ".join(sorted(ledger.emitters()))))
    click.echo()
    holders = ledger.holders()
    if not holders:
        click.echo(row("Holders", "none"))
    for address, balance in sorted(holders.items(), key=lambda kv: (-kv[1], kv[0])):
        click.echo(row("", f"{address}  {balance:>20,}"))
    click.echo()
