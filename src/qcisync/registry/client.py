"""
QCIRegistry contract client.

Reads go through ``eth_call`` (batched via Multicall3 where several records
or statuses are needed at once); writes go through a ``ContractWriter``
bound to the caller's signing key.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from ..chain.abi import event_topic, registry_abi
from ..chain.contract import ContractReader
from ..chain.multicall import Multicall
from ..chain.rpc import RpcTransport
from ..chain.tx import ContractWriter
from ..errors import NotFoundError, RpcError, UnauthorizedError
from ..observability import get_logger
from ..utils import from_hex, to_hex
from .models import ProposalRecord, ProposalVersionRecord, StatusVocabulary

log = get_logger(__name__)


class RegistryClient:
    def __init__(
        self,
        transport: RpcTransport,
        address: str,
        multicall: Multicall,
        abi: Optional[Sequence[dict[str, Any]]] = None,
        writer: Optional[ContractWriter] = None,
    ) -> None:
        self.abi = tuple(abi) if abi is not None else registry_abi()
        self.reader = ContractReader(transport, address, self.abi)
        self.multicall = multicall
        self.writer = writer

    @property
    def address(self) -> str:
        return self.reader.address

    # ============ Reads ============

    async def next_number(self) -> int:
        return int(await self.reader.call("nextQCINumber"))

    async def get_record(self, number: int) -> ProposalRecord:
        values = await self.reader.call("qcis", number)
        return ProposalRecord.from_tuple(values)

    async def get_records(self, numbers: Sequence[int]) -> list[Optional[ProposalRecord]]:
        """
        Fetch several records in one multicall round trip.

        A failed individual call yields ``None`` in its slot; a failure of
        the round trip itself propagates.
        """
        calls = [self.reader.prepare("qcis", n) for n in numbers]
        results = await self.multicall.aggregate(calls, allow_failure=True)

        records: list[Optional[ProposalRecord]] = []
        for number, (ok, data) in zip(numbers, results):
            if not ok or not data:
                log.warning("record_call_failed", qci=number)
                records.append(None)
                continue
            records.append(ProposalRecord.from_tuple(self.reader.decode("qcis", data)))
        return records

    async def get_record_with_history(self, number: int) -> tuple[ProposalRecord, list[ProposalVersionRecord]]:
        record_values, versions = await self.reader.call("getQCIWithVersions", number)
        record = ProposalRecord.from_tuple(record_values)
        if not record.exists:
            raise NotFoundError(f"QCI {number} does not exist")
        return record, [ProposalVersionRecord.from_tuple(v) for v in versions]

    async def get_status_vocabulary(self) -> StatusVocabulary:
        """
        Read every registered status in registration order.

        ``statusCount`` is read directly; the ids and their names are each
        fetched with one multicall.
        """
        count = int(await self.reader.call("statusCount"))
        if count == 0:
            return StatusVocabulary(definitions=())

        id_results = await self.multicall.aggregate([self.reader.prepare("statusAt", i) for i in range(count)])
        ids = [to_hex(self.reader.decode("statusAt", data)) for ok, data in id_results if ok and data]

        name_results = await self.multicall.aggregate(
            [self.reader.prepare("getStatusName", from_hex(sid)) for sid in ids]
        )
        names = []
        for sid, (ok, data) in zip(ids, name_results):
            if not ok:
                raise RpcError(f"getStatusName failed for {sid}")
            names.append(self.reader.decode("getStatusName", data))
        return StatusVocabulary.from_pairs(ids, names)

    async def status_name(self, status_id: str) -> str:
        return await self.reader.call("getStatusName", from_hex(status_id))

    async def has_role(self, role: str, account: str) -> bool:
        return bool(await self.reader.call("hasRole", from_hex(role), account))

    async def editor_role(self) -> str:
        return to_hex(await self.reader.call("EDITOR_ROLE"))

    async def admin_role(self) -> str:
        return to_hex(await self.reader.call("DEFAULT_ADMIN_ROLE"))

    async def paused(self) -> bool:
        return bool(await self.reader.call("paused"))

    async def verify_content(self, number: int, content: str) -> bool:
        return bool(await self.reader.call("verifyContent", number, content))

    # ============ Writes ============

    def _require_writer(self) -> ContractWriter:
        if self.writer is None:
            raise UnauthorizedError("Registry writes require a signing key (set PRIVATE_KEY)")
        return self.writer

    async def create_proposal(self, title: str, chain: str, content_hash: str, storage_url: str) -> int:
        """
        Submit ``createQCI`` and return the number assigned by the registry.

        The number is read from the first topic of the ``QCICreated`` log.
        """
        writer = self._require_writer()
        result = await writer.send("createQCI", [title, chain, from_hex(content_hash), storage_url])

        created_topic = event_topic(_find_event(self.abi, "QCICreated"))
        for entry in result["receipt"].get("logs", []):
            topics = entry.get("topics") or []
            if topics and topics[0].lower() == created_topic:
                number = int(topics[1], 16)
                log.info("proposal_created", qci=number, tx_hash=result["tx_hash"])
                return number

        raise RpcError("QCICreated event not found in receipt", tx_hash=result["tx_hash"])

    async def update_proposal(
        self,
        number: int,
        title: str,
        chain: str,
        implementor: str,
        content_hash: str,
        storage_url: str,
        change_note: str,
    ) -> str:
        writer = self._require_writer()
        result = await writer.send(
            "updateQCI",
            [number, title, chain, implementor, from_hex(content_hash), storage_url, change_note],
        )
        return result["tx_hash"]

    async def request_status_change(self, number: int, status_name: str) -> str:
        writer = self._require_writer()
        result = await writer.send("updateStatus", [number, status_name])
        return result["tx_hash"]

    async def link_external_vote(self, number: int, vote_id: str) -> str:
        writer = self._require_writer()
        result = await writer.send("linkSnapshotProposal", [number, vote_id])
        return result["tx_hash"]


def _find_event(abi: Sequence[dict[str, Any]], name: str) -> dict[str, Any]:
    for entry in abi:
        if entry.get("type") == "event" and entry.get("name") == name:
            return entry
    raise KeyError(f"Event {name} not found in ABI")
