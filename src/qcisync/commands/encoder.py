"""
Encoder commands - inspect ABIs, validate arguments, build embedded transactions.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from ..encoder.abi_parser import classify, find_parsed, parse_interface
from ..encoder.embedded import build_transaction, calldata, decode, encode
from ..encoder.types import parse_type
from ..encoder.validation import describe_type, validate_input
from ..errors import MalformedError, MalformedTransaction
from . import fail


def _load_functions(path: Path):
    try:
        return parse_interface(path.read_text(encoding="utf-8"))
    except MalformedError as exc:
        for field, problem in exc.errors.items():
            click.secho(f"  {field}: {problem}", fg="red", err=True)
        fail(str(exc), exc.exit_code)


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def abi(file: Path) -> None:
    """List the functions of an ABI FILE, grouped by mutability."""
    groups = classify(_load_functions(file))
    for title, functions in (("Read-only", groups.read_only), ("State-changing", groups.state_changing)):
        click.secho(f"  {title} ({len(functions)})", fg="cyan")
        for function in functions:
            click.echo(f"    {function.signature}  [{function.state_mutability}]")


@click.command()
@click.argument("value")
@click.argument("type_name", metavar="TYPE")
def validate(value: str, type_name: str) -> None:
    """Check VALUE against a Solidity TYPE."""
    try:
        tag = parse_type(type_name)
    except MalformedError as exc:
        fail(str(exc), exc.exit_code)

    result = validate_input(value, tag)
    if result.valid:
        click.secho(f"valid {tag}: {result.parsed!r}", fg="green")
        return
    click.secho(f"invalid {tag}: {result.error}", fg="red")
    click.echo(f"  expected: {describe_type(tag)}")
    sys.exit(MalformedError.exit_code)


@click.command("encode-tx")
@click.option("--abi", "abi_file", required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--chain", required=True, help="Chain label, e.g. Base")
@click.option("--to", "address", required=True, help="Target contract address")
@click.option("--function", "function_name", required=True, help="Function name or full signature")
@click.option("--calldata", "show_calldata", is_flag=True, help="Also print ABI-encoded calldata")
@click.argument("args", nargs=-1)
def encode_tx(abi_file: Path, chain: str, address: str, function_name: str, show_calldata: bool, args: tuple[str, ...]) -> None:
    """Build an embedded transaction string from free-text ARGS."""
    function = find_parsed(_load_functions(abi_file), function_name)
    if function is None:
        fail(f"Function {function_name} not found in {abi_file}", MalformedError.exit_code)

    try:
        tx = build_transaction(chain, address, function, list(args))
    except MalformedError as exc:
        for field, problem in exc.errors.items():
            click.secho(f"  {field}: {problem}", fg="red", err=True)
        fail(str(exc), exc.exit_code)

    click.echo(encode(tx))
    if show_calldata:
        click.echo(calldata(tx))


@click.command("decode-tx")
@click.argument("text")
def decode_tx(text: str) -> None:
    """Parse an embedded transaction string."""
    try:
        tx = decode(text)
    except MalformedTransaction as exc:
        fail(str(exc), exc.exit_code)

    click.echo(f"  Chain:     {tx.chain}")
    click.echo(f"  To:        {tx.to}")
    click.echo(f"  Function:  {tx.signature or tx.function}")
    for index, arg in enumerate(tx.args):
        click.echo(f"  Arg {index}:     {arg!r}")
