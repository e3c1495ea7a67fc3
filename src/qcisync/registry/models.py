from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Iterator, Optional, Sequence

from ..content.frontmatter import status_discrepancy
from ..utils import keccak_hex, to_hex, unix_to_date

PLACEHOLDER_VOTE_IDS = {"", "tbu", "none"}


def status_id(name: str) -> str:
    """Deterministic on-chain identifier for a status display name."""
    return keccak_hex(name.encode("utf-8"))


def _hex32(value: Any) -> str:
    return to_hex(value) if isinstance(value, (bytes, bytearray)) else str(value).lower()


def normalize_vote_id(value: str) -> Optional[str]:
    if value is None or value.strip().lower() in PLACEHOLDER_VOTE_IDS:
        return None
    return value


@dataclass(frozen=True)
class ProposalRecord:
    """A registry record exactly as decoded from ``qcis(uint256)``."""

    number: int
    author: str
    title: str
    chain: str
    content_hash: str
    storage_address: str
    created_at: int
    last_updated: int
    status_id: str
    implementor: str
    implementation_date: int
    external_vote_id: str
    version: int

    @classmethod
    def from_tuple(cls, values: Sequence[Any]) -> "ProposalRecord":
        (
            number,
            author,
            title,
            chain,
            content_hash,
            storage_address,
            created_at,
            last_updated,
            status,
            implementor,
            implementation_date,
            vote_id,
            version,
        ) = values
        return cls(
            number=int(number),
            author=str(author),
            title=title,
            chain=chain,
            content_hash=_hex32(content_hash),
            storage_address=storage_address,
            created_at=int(created_at),
            last_updated=int(last_updated),
            status_id=_hex32(status),
            implementor=implementor,
            implementation_date=int(implementation_date),
            external_vote_id=vote_id,
            version=int(version),
        )

    @property
    def exists(self) -> bool:
        # Unset mapping slots decode to an all-zero struct
        return self.number > 0


@dataclass(frozen=True)
class ProposalVersionRecord:
    content_hash: str
    storage_address: str
    timestamp: int
    change_note: str

    @classmethod
    def from_tuple(cls, values: Sequence[Any]) -> "ProposalVersionRecord":
        content_hash, storage_address, timestamp, change_note = values
        return cls(
            content_hash=_hex32(content_hash),
            storage_address=storage_address,
            timestamp=int(timestamp),
            change_note=change_note,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Proposal:
    """
    A registry record merged with its externally stored content.

    ``status`` is the on-chain status name and is authoritative.
    ``frontmatter_status`` is whatever the published body last said.
    """

    number: int
    title: str
    chain: str
    author: str
    implementor: str
    status: str
    status_id: str
    content_hash: str
    storage_address: str
    created_at: int
    last_updated: int
    version: int
    external_vote_id: Optional[str] = None
    implementation_date: Optional[str] = None
    frontmatter: dict[str, str] = field(default_factory=dict)
    body: str = ""

    @property
    def frontmatter_status(self) -> Optional[str]:
        return self.frontmatter.get("status") or None

    @property
    def status_discrepancy(self) -> bool:
        return status_discrepancy(self.status, self.frontmatter_status)

    @property
    def created(self) -> Optional[str]:
        return self.frontmatter.get("created") or unix_to_date(self.created_at)

    @classmethod
    def from_record(
        cls,
        record: ProposalRecord,
        status_name: str,
        frontmatter: Optional[dict[str, str]] = None,
        body: str = "",
    ) -> "Proposal":
        frontmatter = dict(frontmatter or {})
        return cls(
            number=record.number,
            title=record.title,
            chain=record.chain,
            author=frontmatter.get("author") or record.author,
            implementor=record.implementor,
            status=status_name,
            status_id=record.status_id,
            content_hash=record.content_hash,
            storage_address=record.storage_address,
            created_at=record.created_at,
            last_updated=record.last_updated,
            version=record.version,
            external_vote_id=normalize_vote_id(record.external_vote_id),
            implementation_date=unix_to_date(record.implementation_date),
            frontmatter=frontmatter,
            body=body,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["frontmatter_status"] = self.frontmatter_status
        data["status_discrepancy"] = self.status_discrepancy
        data["created"] = self.created
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))


@dataclass(frozen=True)
class StatusDefinition:
    id: str
    name: str
    index: int

    @classmethod
    def from_name(cls, name: str, index: int) -> "StatusDefinition":
        return cls(id=status_id(name), name=name, index=index)


@dataclass(frozen=True)
class StatusVocabulary:
    """
    Ordered (id, name) registry of statuses, as registered on-chain.

    Indexes are registration order; removed statuses leave holes and the
    indexes of the remaining entries are not renumbered.
    """

    definitions: tuple[StatusDefinition, ...]
    live: bool = True

    @classmethod
    def from_pairs(cls, ids: Sequence[str], names: Sequence[str], live: bool = True) -> "StatusVocabulary":
        if len(ids) != len(names):
            raise ValueError("Status ids and names must have the same length")
        seen: set[str] = set()
        definitions = []
        for index, (sid, name) in enumerate(zip(ids, names)):
            key = _hex32(sid)
            if key in seen:
                raise ValueError(f"Duplicate status id {key}")
            seen.add(key)
            definitions.append(StatusDefinition(id=key, name=name, index=index))
        return cls(definitions=tuple(definitions), live=live)

    def __iter__(self) -> Iterator[StatusDefinition]:
        return iter(self.definitions)

    def __len__(self) -> int:
        return len(self.definitions)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.by_name(name) is not None

    def ids(self) -> list[str]:
        return [d.id for d in self.definitions]

    def names(self) -> list[str]:
        return [d.name for d in self.definitions]

    def by_id(self, sid: str) -> Optional[StatusDefinition]:
        key = _hex32(sid)
        for definition in self.definitions:
            if definition.id == key:
                return definition
        return None

    def by_name(self, name: str) -> Optional[StatusDefinition]:
        wanted = name.strip().lower()
        for definition in self.definitions:
            if definition.name.lower() == wanted:
                return definition
        return None

    def resolve(self, sid: str) -> str:
        definition = self.by_id(sid)
        return definition.name if definition else "Unknown"


DRAFT = "Draft"
READY_FOR_SNAPSHOT = "Ready for Snapshot"
POSTED_TO_SNAPSHOT = "Posted to Snapshot"

# Last-known on-chain vocabulary, used only when the live read fails
FALLBACK_STATUSES = StatusVocabulary(
    definitions=(
        StatusDefinition(
            id="0xbffca6d7a13b72cfdfdf4a97d0ffb89fac6c686a62ced4a04137794363a3e382",
            name=DRAFT,
            index=0,
        ),
        StatusDefinition(
            id="0x7070e08f253402b7697ed999df8646627439945a954330fcee1b731dac30d7fb",
            name=READY_FOR_SNAPSHOT,
            index=1,
        ),
        StatusDefinition(
            id="0x4ea8e9bba2b921001f72db15ceea1abf86759499f1e2f63f81995578937fc34c",
            name=POSTED_TO_SNAPSHOT,
            index=2,
        ),
    ),
    live=False,
)
