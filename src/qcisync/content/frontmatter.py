"""
Proposal body formatting and frontmatter parsing.

A published body is a ``---`` delimited ``key: value`` block followed by
free-form markdown, optionally ending in a fenced JSON list of embedded
transactions.
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from ..errors import FrontmatterError

_DOCUMENT = re.compile(r"^---\r?\n(.+?)\r?\n---\r?\n(.*)$", re.DOTALL)

FRONTMATTER_KEYS = (
    "qci",
    "title",
    "chain",
    "status",
    "author",
    "implementor",
    "implementation-date",
    "proposal",
    "created",
)


@dataclass(frozen=True)
class ProposalContent:
    """Structured proposal content, the input to hashing and formatting."""

    qci: int
    title: str
    chain: str
    status: str
    author: str
    implementor: str = "None"
    implementation_date: str = "None"
    proposal: str = "None"
    created: str = ""
    content: str = ""
    transactions: tuple[str, ...] = field(default_factory=tuple)

    def frontmatter(self) -> dict[str, str]:
        return {
            "qci": str(self.qci),
            "title": self.title,
            "chain": self.chain,
            "status": self.status,
            "author": self.author,
            "implementor": self.implementor,
            "implementation-date": self.implementation_date,
            "proposal": self.proposal,
            "created": self.created,
        }

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["transactions"] = list(self.transactions)
        return data

    @classmethod
    def from_document(cls, document: "ParsedDocument") -> "ProposalContent":
        fm = document.frontmatter
        digits = re.sub(r"\D", "", fm.get("qci", ""))
        return cls(
            qci=int(digits) if digits else 0,
            title=fm.get("title", ""),
            chain=fm.get("chain", ""),
            status=fm.get("status", ""),
            author=fm.get("author", ""),
            implementor=fm.get("implementor", "None"),
            implementation_date=fm.get("implementation-date", "None"),
            proposal=fm.get("proposal", "None"),
            created=fm.get("created", ""),
            content=document.body,
        )


@dataclass(frozen=True)
class ParsedDocument:
    frontmatter: dict[str, str]
    body: str


def format_body(content: ProposalContent) -> str:
    lines = [f"{key}: {value}" for key, value in content.frontmatter().items()]
    text = "---\n" + "\n".join(lines) + "\n---\n\n" + content.content

    transactions = []
    for raw in content.transactions:
        try:
            transactions.append(json.loads(raw))
        except json.JSONDecodeError:
            # Legacy colon-form strings are not carried into the JSON block
            continue

    if transactions:
        text += "\n\n## Transactions\n\n```json\n"
        text += json.dumps(transactions, indent=2)
        text += "\n```\n"

    return text


def parse_frontmatter(text: str) -> ParsedDocument:
    """
    Split a body into its metadata block and remaining markdown.

    Raises:
        FrontmatterError: If the text does not start with a delimited block.
    """
    match = _DOCUMENT.match(text)
    if not match:
        raise FrontmatterError("Invalid proposal format: missing frontmatter")

    frontmatter: dict[str, str] = {}
    for line in match.group(1).splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip():
            frontmatter[key.strip()] = value.strip()

    return ParsedDocument(frontmatter=frontmatter, body=match.group(2).strip())


def status_discrepancy(on_chain_status: str, frontmatter_status: Optional[str]) -> bool:
    """True when a published body carries a status other than the on-chain one."""
    if not frontmatter_status:
        return False
    return on_chain_status.strip().lower() != frontmatter_status.strip().lower()
