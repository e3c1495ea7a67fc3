"""
Proposal export and import.

A proposal exports either as markdown with a frontmatter block, ready to
be edited and published again, or as a versioned JSON document that also
carries the registry's version history. Imports accept the JSON document
and turn it back into publishable content.
"""

from __future__ import annotations

import json
import time
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Sequence

import jsonschema

from ..content.frontmatter import ProposalContent
from ..errors import MalformedError
from ..utils import unix_to_iso
from .models import Proposal, ProposalVersionRecord

EXPORT_VERSION = "1.0"
REGISTRY_CHAIN = "Base"

SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schemas" / "proposal-export.schema.json"


@lru_cache(maxsize=1)
def _validator() -> jsonschema.Validator:
    with SCHEMA_PATH.open("r", encoding="utf-8") as f:
        schema = json.load(f)
    validator_cls = jsonschema.validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _or_none(value: Optional[str]) -> str:
    return value or "None"


def format_markdown(
    proposal: Proposal,
    include_metadata: bool = True,
    exported_at: Optional[float] = None,
) -> str:
    """Render a proposal as markdown with frontmatter.

    With ``include_metadata`` the frontmatter also records the version and
    content address, and HTML comments note when the export was taken.
    """
    lines = [
        "---",
        f"qci: {proposal.number}",
        f"title: {proposal.title}",
        f"chain: {proposal.chain}",
        f"status: {proposal.status}",
        f"author: {proposal.author}",
        f"implementor: {_or_none(proposal.implementor)}",
        f"implementation-date: {_or_none(proposal.implementation_date)}",
        f"proposal: {_or_none(proposal.external_vote_id)}",
        f"created: {proposal.created or ''}",
    ]
    if include_metadata:
        lines += [f"version: {proposal.version or 1}", f"ipfs: {proposal.storage_address}"]
    lines += ["---", ""]

    markdown = "\n".join(lines) + proposal.body
    if include_metadata:
        stamp = unix_to_iso(time.time() if exported_at is None else exported_at)
        markdown += "\n\n<!-- Export Metadata -->\n"
        markdown += f"<!-- Exported from QCI Registry at {stamp} -->\n"
        if proposal.version > 1:
            markdown += f"<!-- Version {proposal.version} -->\n"
    return markdown


def format_json(
    proposal: Proposal,
    versions: Sequence[ProposalVersionRecord] = (),
    registry_address: str = "",
    exported_at: Optional[float] = None,
) -> dict[str, Any]:
    """Build the JSON export document for a proposal and its history."""
    document: dict[str, Any] = {
        "metadata": {
            "exportedAt": unix_to_iso(time.time() if exported_at is None else exported_at),
            "contractAddress": registry_address,
            "chain": REGISTRY_CHAIN,
            "exportVersion": EXPORT_VERSION,
        },
        "qci": {
            "qciNumber": proposal.number,
            "title": proposal.title,
            "chain": proposal.chain,
            "status": proposal.status,
            "statusId": proposal.status_id,
            "author": proposal.author,
            "implementor": _or_none(proposal.implementor),
            "implementationDate": _or_none(proposal.implementation_date),
            "snapshotProposalId": _or_none(proposal.external_vote_id),
            "created": proposal.created or "",
            "lastUpdated": unix_to_iso(proposal.last_updated) if proposal.last_updated else "",
            "version": proposal.version or 1,
            "ipfsUrl": proposal.storage_address,
            "contentHash": proposal.content_hash,
            "content": proposal.body,
        },
    }
    if versions:
        document["versions"] = [
            {
                "version": index,
                "contentHash": version.content_hash,
                "ipfsUrl": version.storage_address,
                "timestamp": unix_to_iso(version.timestamp),
                "changeNote": version.change_note,
            }
            for index, version in enumerate(versions, start=1)
        ]
    return document


def validate_import(data: Any) -> dict[str, str]:
    """Check an import document, mapping each offending path to its problem."""
    problems: dict[str, str] = {}
    for error in sorted(_validator().iter_errors(data), key=lambda e: (list(map(str, e.path)), e.message)):
        key = "/".join(str(part) for part in error.path) or "<root>"
        problems[key] = f"{problems[key]}; {error.message}" if key in problems else error.message
    return problems


def load_import(text: str) -> ProposalContent:
    """
    Parse an exported JSON document back into publishable content.

    The imported proposal keeps its number, so publishing it with
    ``--qci`` updates the original; its status restarts at Draft unless
    the document names one.

    Raises:
        MalformedError: Invalid JSON, or ``errors`` holds each validation problem.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, RecursionError) as exc:
        raise MalformedError(f"Invalid import JSON: {exc}") from exc

    errors = validate_import(data)
    if errors:
        raise MalformedError("Import data failed validation", errors=errors)

    qci = data["qci"]
    return ProposalContent(
        qci=qci.get("qciNumber", 0),
        title=qci["title"],
        chain=qci["chain"],
        status=qci.get("status") or "Draft",
        author=qci.get("author", ""),
        implementor=qci.get("implementor") or "None",
        implementation_date=qci.get("implementationDate") or "None",
        proposal=qci.get("snapshotProposalId") or "None",
        created=qci.get("created", ""),
        content=qci["content"],
    )


def export_filename(number: int, fmt: str, version: Optional[int] = None, today: Optional[date] = None) -> str:
    stamp = (today or date.today()).isoformat()
    suffix = f"-v{version}" if version and version > 1 else ""
    if fmt == "md":
        return f"QCI-{number}{suffix}-{stamp}.md"
    if fmt == "json":
        return f"QCI-{number}{suffix}-export-{stamp}.json"
    return f"QCI-{number}-{stamp}.txt"
