"""
Content commands - offline addressing, fetch, export and import, store
health, and the two-phase publish.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import click

from ..content.frontmatter import ProposalContent, format_body, parse_frontmatter
from ..content.pipeline import (
    ContentAddressingPipeline,
    PublishOutcome,
    compute_content_hash,
    compute_expected_address,
)
from ..content.storage import StoreHealth, build_store
from ..errors import FrontmatterError, MalformedError, TransientNetworkError
from ..registry.export import export_filename, format_json, format_markdown, load_import
from . import fail, load_settings, open_runtime, require_registry, run


def _read_content(path: Path) -> ProposalContent:
    try:
        document = parse_frontmatter(path.read_text(encoding="utf-8"))
    except FrontmatterError as exc:
        fail(f"{path}: {exc}", exc.exit_code)
    return ProposalContent.from_document(document)


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def cid(file: Path) -> None:
    """Compute the content address FILE will get, without uploading."""
    click.echo(compute_expected_address(file.read_bytes()))


@click.command("hash")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def content_hash(file: Path) -> None:
    """Compute the on-chain content hash of a proposal FILE."""
    click.echo(compute_content_hash(_read_content(file)))


@click.command()
@click.argument("address")
@click.option("--json", "as_json", is_flag=True, help="Print frontmatter as JSON")
def fetch(address: str, as_json: bool) -> None:
    """Fetch content by ADDRESS and split off its frontmatter."""
    settings = load_settings()

    async def _fetch():
        store = build_store(settings)
        try:
            return await ContentAddressingPipeline(store).fetch_and_parse(address)
        finally:
            closer = getattr(store, "aclose", None)
            if closer is not None:
                await closer()

    document = run(_fetch())
    if as_json:
        click.echo(json.dumps({"frontmatter": document.frontmatter, "body": document.body}, indent=2))
        return
    for key, value in document.frontmatter.items():
        click.echo(click.style(f"  {key}: ", dim=True) + value)
    click.echo()
    click.echo(document.body)


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--qci", "number", type=int, help="Update this proposal instead of creating one")
@click.option("--note", default="", help="Change note for an update")
def publish(file: Path, number: Optional[int], note: str) -> None:
    """Submit a proposal FILE on-chain, then upload its content."""
    settings = load_settings()
    require_registry(settings)
    content = _read_content(file)
    if number is None and not content.title:
        fail("Proposal frontmatter needs a title.")

    async def _publish() -> PublishOutcome:
        async with open_runtime(settings, signing=True) as rt:

            async def submit(hash_hex: str, storage_url: str) -> object:
                if number is None:
                    return await rt.registry.create_proposal(content.title, content.chain, hash_hex, storage_url)
                return await rt.registry.update_proposal(
                    number,
                    content.title,
                    content.chain,
                    content.implementor,
                    hash_hex,
                    storage_url,
                    note,
                )

            return await rt.pipeline.submit_proposal(content, submit, number=number)

    outcome = run(_publish())
    if number is None:
        click.secho(f"Created QCI-{outcome.submission}", fg="green")
    else:
        click.secho(f"Updated QCI-{number} (tx {outcome.submission})", fg="green")
    click.echo(f"  Content hash: {outcome.content_hash}")
    click.echo(f"  Address:      {outcome.actual_address}")
    if outcome.conflict:
        click.secho(f"  WARNING: store returned a different address than expected ({outcome.expected_address})", fg="yellow")


@click.command("link-vote")
@click.argument("number", type=int)
@click.argument("vote_id")
def link_vote(number: int, vote_id: str) -> None:
    """Link an off-chain vote to a proposal."""
    settings = load_settings()
    require_registry(settings)

    async def _link() -> str:
        async with open_runtime(settings, signing=True) as rt:
            return await rt.registry.link_external_vote(number, vote_id)

    click.echo(f"Linked {vote_id} to QCI-{number} (tx {run(_link())})")


@click.command("export")
@click.argument("number", type=int)
@click.option("--format", "fmt", type=click.Choice(["md", "json"]), default="md", show_default=True)
@click.option("--no-metadata", is_flag=True, help="Leave export notes out of markdown")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="File to write, or a directory to write a dated file into",
)
def export_proposal(number: int, fmt: str, no_metadata: bool, output: Optional[Path]) -> None:
    """Export a proposal as markdown or JSON."""
    settings = load_settings()
    require_registry(settings)

    async def _load():
        async with open_runtime(settings) as rt:
            return await rt.engine.get_proposal_with_history(number)

    proposal, versions = run(_load())
    if fmt == "json":
        document = format_json(proposal, versions, settings.registry_address)
        text = json.dumps(document, indent=2) + "\n"
    else:
        text = format_markdown(proposal, include_metadata=not no_metadata)

    if output is None:
        click.echo(text, nl=False)
        return
    if output.is_dir():
        output = output / export_filename(number, fmt, proposal.version)
    output.write_text(text, encoding="utf-8")
    click.echo(f"Exported QCI-{number} to {output}")


@click.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write the proposal file here")
def import_proposal(file: Path, output: Optional[Path]) -> None:
    """Turn a JSON export FILE back into a proposal file for publish."""
    try:
        content = load_import(file.read_text(encoding="utf-8"))
    except MalformedError as exc:
        for field, problem in exc.errors.items():
            click.secho(f"  {field}: {problem}", fg="red", err=True)
        fail(str(exc), exc.exit_code)

    body = format_body(content)
    if output is None:
        click.echo(body)
        return
    output.write_text(body, encoding="utf-8")
    click.echo(f"Wrote {output}")
    if content.qci:
        click.echo(f"  Publish with: qcisync publish {output} --qci {content.qci} --note 'Imported'")


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def health(as_json: bool) -> None:
    """Check the content store is reachable and round-trips content."""
    settings = load_settings()

    async def _check() -> StoreHealth:
        store = build_store(settings)
        try:
            return await store.health()
        finally:
            closer = getattr(store, "aclose", None)
            if closer is not None:
                await closer()

    result = run(_check())
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, sort_keys=True))
    else:
        click.echo(f"  Provider:    {result.provider}")
        click.echo(f"  Available:   {'yes' if result.available else 'no'}")
        if result.version:
            click.echo(f"  Version:     {result.version}")
        if result.round_trip is not None:
            click.echo(f"  Round trip:  {'ok' if result.round_trip else 'failed'}")
        if result.address:
            click.echo(f"  Address:     {result.address}")
        if result.error:
            click.secho(f"  Error:       {result.error}", fg="red")
    if not result.ok:
        sys.exit(TransientNetworkError.exit_code)
