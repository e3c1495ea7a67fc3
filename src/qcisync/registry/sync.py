"""
Registry sync engine.

The registry exposes a "next number" counter and per-number lookups but no
index of valid numbers, so listing is:

  1. discover the candidate range from the counter,
  2. resolve the status vocabulary (live, or the fallback snapshot),
  3. fetch records in small multicall batches, strictly one batch at a
     time with a linearly growing, capped pause between batches,
  4. fetch each record's content concurrently and merge.

Per-record and per-batch failures are logged and skipped so a listing
always returns whatever could be read.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence

from ..content.pipeline import ContentAddressingPipeline
from ..errors import NotFoundError
from ..observability import get_logger
from .models import FALLBACK_STATUSES, Proposal, ProposalRecord, ProposalVersionRecord, StatusVocabulary

log = get_logger(__name__)

# First QCI number of the current registry; lower numbers predate it
DEFAULT_START_OFFSET = 209
# Last number known to exist, used only if the counter cannot be read
DEFAULT_FALLBACK_UPPER_BOUND = 248


class VoteSource(Protocol):
    async def latest_number(self) -> int:
        ...


@dataclass(frozen=True)
class ProposalFilter:
    status: Optional[str] = None
    author: Optional[str] = None
    chain: Optional[str] = None

    def matches(self, proposal: Proposal) -> bool:
        if self.status and proposal.status.lower() != self.status.lower():
            return False
        if self.author and proposal.author.lower() != self.author.lower():
            return False
        if self.chain and proposal.chain.lower() != self.chain.lower():
            return False
        return True


class RegistrySyncEngine:
    def __init__(
        self,
        registry: Any,
        content: ContentAddressingPipeline,
        *,
        start_offset: int = DEFAULT_START_OFFSET,
        fallback_upper_bound: int = DEFAULT_FALLBACK_UPPER_BOUND,
        batch_size: int = 5,
        delay_step: float = 0.1,
        max_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.registry = registry
        self.content = content
        self.start_offset = start_offset
        self.fallback_upper_bound = fallback_upper_bound
        self.batch_size = batch_size
        self.delay_step = delay_step
        self.max_delay = max_delay
        self._sleep = sleep

    def batch_delay(self, batch_index: int) -> float:
        return min(self.delay_step * (batch_index + 1), self.max_delay)

    async def discover_range(self) -> list[int]:
        """
        Candidate proposal numbers, ascending.

        With a counter value ``n`` the range is ``[start_offset, n - 1]``,
        extended to ``n`` only when the record at ``n`` already decodes with
        a non-zero number. If the counter cannot be read the static range
        ``[start_offset, fallback_upper_bound]`` is used instead.
        """
        try:
            counter = await self.registry.next_number()
        except Exception as exc:
            log.warning(
                "counter_read_failed",
                error=str(exc),
                fallback_upper_bound=self.fallback_upper_bound,
            )
            return list(range(self.start_offset, self.fallback_upper_bound + 1))

        numbers = list(range(self.start_offset, counter))
        if counter >= self.start_offset and await self._boundary_exists(counter):
            log.info("boundary_record_included", qci=counter)
            numbers.append(counter)
        return numbers

    async def _boundary_exists(self, number: int) -> bool:
        try:
            record = await self.registry.get_record(number)
        except Exception as exc:
            log.debug("boundary_check_failed", qci=number, error=str(exc))
            return False
        return record.exists

    async def status_vocabulary(self) -> StatusVocabulary:
        try:
            vocabulary = await self.registry.get_status_vocabulary()
        except Exception as exc:
            log.warning("status_vocabulary_fallback", error=str(exc))
            return FALLBACK_STATUSES
        if not len(vocabulary):
            log.warning("status_vocabulary_fallback", error="registry reported no statuses")
            return FALLBACK_STATUSES
        return vocabulary

    async def list_proposals(self, filter: Optional[ProposalFilter] = None) -> list[Proposal]:
        numbers = await self.discover_range()
        vocabulary = await self.status_vocabulary()
        batches = [numbers[i : i + self.batch_size] for i in range(0, len(numbers), self.batch_size)]

        proposals: list[Proposal] = []
        for index, batch in enumerate(batches):
            proposals.extend(await self._sync_batch(batch, vocabulary))
            if index < len(batches) - 1:
                await self._sleep(self.batch_delay(index))

        log.info("proposals_synced", candidates=len(numbers), loaded=len(proposals), batches=len(batches))
        if filter is not None:
            proposals = [p for p in proposals if filter.matches(p)]
        return proposals

    async def _sync_batch(self, batch: Sequence[int], vocabulary: StatusVocabulary) -> list[Proposal]:
        try:
            records = await self.registry.get_records(batch)
        except Exception as exc:
            log.warning("batch_failed", first=batch[0], last=batch[-1], error=str(exc))
            return []

        present = [r for r in records if r is not None and r.exists]
        results = await asyncio.gather(
            *(self._merge(record, vocabulary) for record in present),
            return_exceptions=True,
        )

        merged: list[Proposal] = []
        for record, result in zip(present, results):
            if isinstance(result, Exception):
                log.warning(
                    "content_fetch_failed",
                    qci=record.number,
                    address=record.storage_address,
                    error=str(result),
                )
                continue
            if isinstance(result, BaseException):
                raise result
            merged.append(result)
        return merged

    async def _merge(self, record: ProposalRecord, vocabulary: StatusVocabulary) -> Proposal:
        document = await self.content.fetch_and_parse(record.storage_address)
        return Proposal.from_record(
            record,
            vocabulary.resolve(record.status_id),
            frontmatter=document.frontmatter,
            body=document.body,
        )

    async def get_proposal(self, number: int) -> Proposal:
        """
        Raises:
            NotFoundError: No record, or the content is missing from the store.
        """
        record = await self.registry.get_record(number)
        if not record.exists:
            raise NotFoundError(f"QCI {number} does not exist")
        return await self._merge(record, await self.status_vocabulary())

    async def get_proposal_with_history(self, number: int) -> tuple[Proposal, list[ProposalVersionRecord]]:
        record, versions = await self.registry.get_record_with_history(number)
        proposal = await self._merge(record, await self.status_vocabulary())
        return proposal, versions

    async def latest_known_number(self, vote_source: Optional[VoteSource] = None) -> int:
        """Highest number used either on the registry or in external vote titles."""
        numbers = await self.discover_range()
        highest = max(numbers, default=0)
        if vote_source is None:
            return highest
        try:
            from_votes = await vote_source.latest_number()
        except Exception as exc:
            log.warning("vote_source_failed", error=str(exc))
            return highest
        return max(highest, from_votes)
