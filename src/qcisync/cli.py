"""
qcisync CLI

Command-line interface for the QCI governance proposal registry.

The registry contract is authoritative for proposal records and statuses;
proposal bodies live in IPFS and are addressed by CIDv1.

Commands:
  list         - List proposals (filter by status, author, chain)
  show         - Show one proposal with its body
  history      - Show a proposal's version history
  statuses     - Show the registered status vocabulary
  set-status   - Request a status change
  next-number  - Next free proposal number
  publish      - Submit a proposal on-chain, then upload its content
  link-vote    - Link an off-chain vote to a proposal
  cid          - Compute a content address offline
  hash         - Compute a proposal's on-chain content hash
  fetch        - Fetch and parse content by address
  export       - Export a proposal as markdown or JSON
  import       - Turn a JSON export back into a proposal file
  health       - Check the content store round-trips content
  abi          - List the functions of an ABI
  validate     - Validate a value against a Solidity type
  encode-tx    - Build an embedded transaction string
  decode-tx    - Parse an embedded transaction string
  info         - Show configuration
"""

from __future__ import annotations

import sys

import click

from .config import QCISYNC_ENV, Settings

# ============ Constants ============

VERSION = "0.3.0"


# ============ Banner ============


def _print_banner(compact: bool = False) -> None:
    """Print the qcisync banner.

    Args:
        compact: If True, print a single-line banner (for subcommands).
    """
    if compact:
        click.echo(
            click.style("  ◆ ", fg="cyan")
            + click.style("Q C I S Y N C", fg="bright_white", bold=True)
            + click.style(f"  v{VERSION}", dim=True)
        )
        click.echo()
        return

    border = click.style("  ◆ ═══════════════════════════════════════ ◆", fg="cyan")
    click.echo()
    click.echo(border)
    click.echo()
    click.echo(
        click.style("        Q C I S Y N C", fg="bright_white", bold=True)
        + click.style(f"        v{VERSION}", dim=True)
    )
    click.secho("        ─── Governance Proposal Registry ───", fg="cyan")
    click.echo()
    click.echo(border)
    click.echo()


# ============ Main CLI Group ============


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="qcisync")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """qcisync: QCI proposal registry tooling."""
    if ctx.invoked_subcommand is None:
        _print_banner()
        click.echo(ctx.get_help())


# ============ Subcommands ============

from .commands.content import (
    cid,
    content_hash,
    export_proposal,
    fetch,
    health,
    import_proposal,
    link_vote,
    publish,
)
from .commands.encoder import abi, decode_tx, encode_tx, validate
from .commands.registry import history, list_proposals, next_number, set_status, show, statuses

for command in (
    list_proposals,
    show,
    history,
    statuses,
    set_status,
    next_number,
    publish,
    link_vote,
    cid,
    content_hash,
    fetch,
    export_proposal,
    import_proposal,
    health,
    abi,
    validate,
    encode_tx,
    decode_tx,
):
    cli.add_command(command)


# ============ Info ============


@cli.command()
def info() -> None:
    """Show configuration."""
    _print_banner()
    settings = Settings.from_env()

    click.secho("  Configuration ──────────────────────────", fg="cyan")
    click.echo()

    def row(label: str, value: str, ok: bool = True) -> None:
        click.echo(
            click.style(f"  {label:<13}", dim=True)
            + click.style(value, fg="bright_white" if ok else "yellow")
        )

    row("Env file:", str(QCISYNC_ENV) if QCISYNC_ENV.exists() else "not found", QCISYNC_ENV.exists())
    row("Registry:", settings.registry_address or "not configured", bool(settings.registry_address))
    row("Chain ID:", str(settings.chain_id))
    endpoints = settings.rpc_endpoints()
    row("RPC:", f"{endpoints[0]} (+{len(endpoints) - 1} more)" if len(endpoints) > 1 else endpoints[0])
    row("IPFS:", settings.ipfs_provider)
    row("Snapshot:", f"{settings.snapshot_space} @ {settings.snapshot_hub}")
    row("Signer:", "configured" if settings.private_key else "none (read-only)", bool(settings.private_key))

    problems = settings.validate()
    if problems:
        click.echo()
        for problem in problems:
            click.secho(f"  ⚠ {problem}", fg="yellow")
    click.echo()


# ============ Entry Points ============


def main() -> None:
    """qcisync CLI entry point."""
    # Ensure UTF-8 output on Windows (for Unicode box-drawing / symbols)
    if sys.platform == "win32":
        try:
            sys.stdout.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
            sys.stderr.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
        except (AttributeError, OSError):
            pass  # Fallback: old Python or non-tty
    cli()


if __name__ == "__main__":
    main()
