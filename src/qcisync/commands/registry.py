"""
Registry commands - list, inspect and move proposals through their statuses.
"""

from __future__ import annotations

import json
from typing import Optional

import click

from ..registry.models import Proposal
from ..registry.sync import ProposalFilter
from ..registry.transitions import PermissionSession, Role, StatusTransitionService, allowed_targets
from ..snapshot import SnapshotClient
from ..utils import unix_to_date
from . import load_settings, open_runtime, require_registry, run


def _echo_proposal_line(proposal: Proposal) -> None:
    status = click.style(proposal.status, fg="cyan")
    flag = click.style("  (frontmatter differs)", fg="yellow") if proposal.status_discrepancy else ""
    click.echo(f"  QCI-{proposal.number:<5} {status:<30} {proposal.title}{flag}")


@click.command("list")
@click.option("--status", help="Only proposals with this on-chain status")
@click.option("--author", help="Only proposals by this author address")
@click.option("--chain", help="Only proposals for this chain")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
def list_proposals(status: Optional[str], author: Optional[str], chain: Optional[str], as_json: bool) -> None:
    """List registry proposals merged with their content."""
    settings = load_settings()
    require_registry(settings)

    async def _list() -> list[Proposal]:
        async with open_runtime(settings) as rt:
            return await rt.engine.list_proposals(ProposalFilter(status=status, author=author, chain=chain))

    proposals = run(_list())
    if as_json:
        click.echo(json.dumps([p.to_dict() for p in proposals], indent=2, sort_keys=True))
        return

    if not proposals:
        click.echo("No proposals found.")
        return
    for proposal in proposals:
        _echo_proposal_line(proposal)
    click.echo(f"\n  {len(proposals)} proposal(s)")


@click.command()
@click.argument("number", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
def show(number: int, as_json: bool) -> None:
    """Show one proposal with its body."""
    settings = load_settings()
    require_registry(settings)

    async def _show() -> Proposal:
        async with open_runtime(settings) as rt:
            return await rt.engine.get_proposal(number)

    proposal = run(_show())
    if as_json:
        click.echo(proposal.to_json())
        return

    click.secho(f"QCI-{proposal.number}: {proposal.title}", bold=True)
    click.echo(f"  Status:       {proposal.status}")
    if proposal.status_discrepancy:
        click.secho(f"  Frontmatter:  {proposal.frontmatter_status} (differs from on-chain status)", fg="yellow")
    click.echo(f"  Chain:        {proposal.chain}")
    click.echo(f"  Author:       {proposal.author}")
    click.echo(f"  Implementor:  {proposal.implementor}")
    click.echo(f"  Created:      {proposal.created or '-'}")
    click.echo(f"  Version:      {proposal.version}")
    click.echo(f"  Content:      {proposal.storage_address}")
    click.echo(f"  Vote:         {proposal.external_vote_id or '-'}")
    click.echo()
    click.echo(proposal.body)


@click.command()
@click.argument("number", type=int)
def history(number: int) -> None:
    """Show the version history of a proposal."""
    settings = load_settings()
    require_registry(settings)

    async def _history():
        async with open_runtime(settings) as rt:
            return await rt.engine.get_proposal_with_history(number)

    proposal, versions = run(_history())
    click.secho(f"QCI-{proposal.number}: {proposal.title} (v{proposal.version})", bold=True)
    for index, version in enumerate(versions, start=1):
        note = version.change_note or "-"
        click.echo(f"  v{index}  {unix_to_date(version.timestamp) or '-'}  {version.storage_address}  {note}")


@click.command()
def statuses() -> None:
    """List the registered status vocabulary."""
    settings = load_settings()
    require_registry(settings)

    async def _statuses():
        async with open_runtime(settings) as rt:
            return await rt.engine.status_vocabulary()

    vocabulary = run(_statuses())
    if not vocabulary.live:
        click.secho("  (registry unreachable, showing last-known statuses)", fg="yellow")
    for definition in vocabulary:
        click.echo(f"  {definition.index:>2}  {definition.name:<24} {definition.id}")


@click.command("set-status")
@click.argument("number", type=int)
@click.argument("status")
def set_status(number: int, status: str) -> None:
    """Request a status change for a proposal.

    The signing address must be the proposal's author (limited moves) or
    hold the editor role (any registered status).
    """
    settings = load_settings()
    require_registry(settings)

    async def _set_status() -> tuple[str, str]:
        async with open_runtime(settings, signing=True) as rt:
            proposal = await rt.engine.get_proposal(number)
            vocabulary = await rt.engine.status_vocabulary()
            session = PermissionSession(rt.registry, rt.registry.writer.address)
            role = await session.role_for(proposal)
            if role is Role.AUTHOR:
                targets = ", ".join(sorted(allowed_targets(role, proposal.status, vocabulary))) or "none"
                click.echo(f"  Author moves from {proposal.status}: {targets}")
            service = StatusTransitionService(rt.registry, vocabulary)
            tx_hash = await service.request_transition(number, proposal.status, status, role)
            return proposal.status, tx_hash

    previous, tx_hash = run(_set_status())
    click.secho(f"QCI-{number}: {previous} -> {status}", fg="green")
    click.echo(f"  tx: {tx_hash}")


@click.command("next-number")
def next_number() -> None:
    """Show the next free proposal number across registry and votes."""
    settings = load_settings()
    require_registry(settings)

    async def _next() -> int:
        snapshot = SnapshotClient(settings.snapshot_hub, settings.snapshot_space)
        try:
            async with open_runtime(settings) as rt:
                return await rt.engine.latest_known_number(snapshot)
        finally:
            await snapshot.aclose()

    click.echo(run(_next()) + 1)
