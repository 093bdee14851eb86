"""
mintledger/cli/common.py

Helpers shared by every CLI command: colors, error output, key and
account resolution, journal opening.

Exit codes (POSIX-standard, shell-scriptable):
    0  success
    1  the ledger rejected the call, or the journal has violations
    2  usage or file error (missing key, missing journal, bad config)
"""

import sys
from typing import NoReturn

import click

from mintledger.config import LedgerConfig
from mintledger.core.crypto import Ed25519KeyManager
from mintledger.core.exceptions import (
    ConfigError,
    InvalidArgument,
    JournalError,
    MintLedgerError,
)
from mintledger.core.journal import JournaledLedger
from mintledger.core.models import Address, normalize_address

EXIT_OK       = 0
EXIT_REJECTED = 1
EXIT_ERROR    = 2


class _Color:
    """
    Minimal ANSI color wrapper.
    Auto-disables when not a TTY or --no-color is passed.
    """
    _on: bool = True

    @classmethod
    def configure(cls, enabled: bool) -> None:
        cls._on = enabled and sys.stdout.isatty()

    @classmethod
    def green(cls, s: str) -> str:
        return f"\033[32m{s}\033[0m" if cls._on else s

    @classmethod
    def red(cls, s: str) -> str:
        return f"\033[31m{s}\033[0m" if cls._on else s

    @classmethod
    def yellow(cls, s: str) -> str:
        return f"\033[33m{s}\033[0m" if cls._on else s

    @classmethod
    def bold(cls, s: str) -> str:
        return f"\033[1m{s}\033[0m" if cls._on else s

    @classmethod
    def dim(cls, s: str) -> str:
        return f"\033[2m{s}\033[0m" if cls._on else s


def row(label: str, value: str) -> str:
    return f"  {_Color.dim(f'{label:<14}')}  {value}"


def fail(exc: Exception) -> NoReturn:
    """Report an error on stderr and exit with the matching code."""
    if isinstance(exc, (JournalError, ConfigError, FileNotFoundError)):
        code = EXIT_ERROR
    elif isinstance(exc, MintLedgerError):
        code = EXIT_REJECTED
    else:
        code = EXIT_ERROR
    click.echo(_Color.red(f"error: {type(exc).__name__}: {exc}"), err=True)
    sys.exit(code)


def get_config(ctx: click.Context) -> LedgerConfig:
    return ctx.find_object(LedgerConfig)


def load_key(config: LedgerConfig, name: str) -> Ed25519KeyManager:
    path = config.key_path(name)
    try:
        return Ed25519KeyManager.from_file(path)
    except FileNotFoundError:
        raise click.BadParameter(f"no key named {name!r} in {config.key_dir}")
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def resolve_account(config: LedgerConfig, value: str) -> Address:
    """An account argument is either an address or the name of a key."""
    try:
        return normalize_address(value)
    except InvalidArgument:
        pass
    if config.key_path(value).exists():
        return load_key(config, value).address
    raise click.BadParameter(f"{value!r} is neither an address nor a key name")


def open_journal(config: LedgerConfig) -> JournaledLedger:
    try:
        return JournaledLedger.open(config.journal_path)
    except MintLedgerError as exc:
        fail(exc)
