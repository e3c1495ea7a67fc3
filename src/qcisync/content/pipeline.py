"""
Content addressing pipeline.

Publishing is two-phase: the storage address and content hash are
computed offline, the on-chain transaction referencing them is submitted
and confirmed, and only then are the bytes written to the store. The
realized address is compared against the precomputed one; a mismatch is
logged and recorded but never fatal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import rfc8785

from ..errors import ConflictError, MalformedError
from ..observability import get_logger
from ..utils import keccak_hex
from .cid import compute_cid, ipfs_url, strip_ipfs_scheme
from .frontmatter import ParsedDocument, ProposalContent, format_body, parse_frontmatter
from .storage import ContentStore

log = get_logger(__name__)

SubmitFn = Callable[[str, str], Awaitable[Any]]


@dataclass(frozen=True)
class PublishOutcome:
    expected_address: str
    actual_address: str
    content_hash: str
    submission: Any = None

    @property
    def conflict(self) -> bool:
        return self.expected_address != self.actual_address

    @property
    def storage_url(self) -> str:
        return ipfs_url(self.expected_address)


def compute_expected_address(body: bytes) -> str:
    return compute_cid(body)


def compute_content_hash(content: ProposalContent) -> str:
    """Keccak-256 over the RFC 8785 canonical JSON of the structured content."""
    return keccak_hex(rfc8785.dumps(content.to_dict()))


class ContentAddressingPipeline:
    """Stateless apart from ``last_conflict``; safe to share across tasks."""

    def __init__(self, store: ContentStore) -> None:
        self.store = store
        self.last_conflict: Optional[ConflictError] = None

    def compute_expected_address(self, body: bytes) -> str:
        return compute_expected_address(body)

    def compute_content_hash(self, content: ProposalContent) -> str:
        return compute_content_hash(content)

    def format_body(self, content: ProposalContent) -> bytes:
        return format_body(content).encode("utf-8")

    async def publish(self, body: bytes, metadata: Optional[dict[str, str]] = None) -> str:
        expected = self.compute_expected_address(body)
        actual = strip_ipfs_scheme(await self.store.put(body, metadata))
        if actual != expected:
            self.last_conflict = ConflictError(expected, actual)
            log.warning("content_address_mismatch", expected=expected, actual=actual)
        else:
            log.info("content_published", address=actual, size=len(body))
        return actual

    async def fetch_and_parse(self, address: str) -> ParsedDocument:
        """
        Fetch a body and split it into frontmatter and markdown.

        Raises:
            NotFoundError: The store has no content at ``address``.
            MalformedError: The content is not UTF-8 or lacks frontmatter.
            TransientNetworkError: The store could not be reached.
        """
        raw = await self.store.get(strip_ipfs_scheme(address))
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedError(f"Content at {address} is not valid UTF-8") from exc
        return parse_frontmatter(text)

    async def submit_proposal(
        self,
        content: ProposalContent,
        submit: SubmitFn,
        number: Optional[int] = None,
    ) -> PublishOutcome:
        """
        Run the two-phase publish for one proposal version.

        ``submit(content_hash, storage_url)`` performs the on-chain write and
        must only return once it is confirmed. Errors it raises propagate and
        nothing is uploaded.

        ``number`` names the proposal being updated. For a new proposal the
        number ``submit`` returns is recorded in the upload metadata, or
        "pending" when it returned none.
        """
        body = self.format_body(content)
        expected = self.compute_expected_address(body)
        content_hash = self.compute_content_hash(content)
        log.info("proposal_submit_pending", qci=content.qci, expected=expected, content_hash=content_hash)

        submission = await submit(content_hash, ipfs_url(expected))

        assigned = number if number is not None else submission
        metadata = {
            "qciNumber": str(assigned) if isinstance(assigned, int) and assigned > 0 else "pending",
            "title": content.title,
        }
        actual = await self.publish(body, metadata)
        return PublishOutcome(
            expected_address=expected,
            actual_address=actual,
            content_hash=content_hash,
            submission=submission,
        )
