"""
mintledger verify — Journal Verification CLI

Usage:
    mintledger verify                         Human output (default)
    mintledger verify --format json           Machine-readable JSON
    mintledger verify --export report.json    Export full report
    mintledger verify --quiet                 Exit code only

Exit codes:
    0  Journal fully valid  (chain + signatures + replay)
    1  Journal has violations
    2  Error  (file missing, malformed JSON, schema failure)
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from mintledger.cli.common import (
    EXIT_ERROR,
    EXIT_OK,
    EXIT_REJECTED,
    _Color,
    get_config,
    row,
)
from mintledger.core.replay import ReplayEngine, ReplaySummary


@click.command(name="verify")
@click.option(
    "--journal", "journal_opt",
    type=click.Path(),
    default=None,
    help="Journal to verify. Defaults to journal_path from the config.",
)
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
)
@click.option(
    "--export", "export_path",
    type=click.Path(),
    default=None,
    metavar="PATH",
    help="Export the verification summary to a JSON file.",
)
@click.option("--quiet", is_flag=True, default=False, help="Exit code only.")
@click.option("--no-color", is_flag=True, default=False, help="Disable ANSI color output.")
@click.pass_context
def verify_command(
    ctx:         click.Context,
    journal_opt: Optional[str],
    fmt:         str,
    export_path: Optional[str],
    quiet:       bool,
    no_color:    bool,
) -> None:
    """
    Verify a journal: chain, signatures, caller binding, and replay.
    """
    _Color.configure(not no_color)
    journal = Path(journal_opt) if journal_opt else get_config(ctx).journal_path

    engine = ReplayEngine()
    try:
        engine.load(journal)
    except (FileNotFoundError, ValueError) as e:
        _emit_error(str(e), fmt, quiet)
        sys.exit(EXIT_ERROR)

    summary = engine.verify()

    if export_path:
        try:
            engine.export_json(Path(export_path), summary)
        except OSError as e:
            if not quiet:
                click.echo(_Color.yellow(f"export failed: {e}"), err=True)

    if quiet:
        sys.exit(EXIT_OK if summary.valid else EXIT_REJECTED)

    if fmt == "json":
        out = summary.to_dict()
        out["journal"] = str(journal)
        click.echo(json.dumps({"mintledger_verify": out}, indent=2))
    else:
        _output_human(summary, journal)

    sys.exit(EXIT_OK if summary.valid else EXIT_REJECTED)


def _output_human(summary: ReplaySummary, journal: Path) -> None:
    bar = "─" * 68
    click.echo()
    click.echo(row("Journal", str(journal)))
    click.echo(row("Entries", f"{summary.total_entries:,}"))
    click.echo(row("Owner",   summary.owner or "—"))
    click.echo(row("Chain",   "intact" if summary.chain_valid else _Color.red("broken")))
    click.echo(row(
        "Signatures",
        f"{summary.valid_signatures:,} valid"
        + (_Color.red(f", {summary.invalid_signatures:,} INVALID")
           if summary.invalid_signatures else ""),
    ))
    if summary.op_counts:
        click.echo(row("Ops", "  ".join(
            f"{op}: {n}" for op, n in sorted(summary.op_counts.items())
        )))
    if summary.state_hash:
        click.echo(row("State hash", summary.state_hash))
    click.echo()

    if summary.violations:
        click.echo(f"  {bar}")
        for v in summary.violations:
            click.echo(
                f"  {_Color.red(str(v.at_sequence)):>6}  "
                f"{_Color.yellow(f'{v.violation_type:<18}')}  {v.detail}"
            )
        click.echo(f"  {bar}")
        click.echo(_Color.red(_Color.bold(
            f"  INVALID  ·  {len(summary.violations)} violation(s)"
        )))
    else:
        click.echo(_Color.green(_Color.bold("  VALID  ·  0 violations")))
    click.echo()


def _emit_error(msg: str, fmt: str, quiet: bool) -> None:
    """Emit error in the correct format. Never raises."""
    if quiet:
        return
    if fmt == "json":
        click.echo(json.dumps({"mintledger_verify": {"error": msg, "valid": False}}))
    else:
        click.echo(_Color.red(f"error: {msg}"), err=True)
