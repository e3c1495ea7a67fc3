"""
Snapshot (off-chain voting) client.

Only what the registry workflow needs: list a space's proposals to find
the highest number already used in vote titles, and post a new vote as an
EIP-712 signed message.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import httpx
from eth_account import Account
from eth_account.messages import encode_typed_data

from .errors import MalformedError, TransientNetworkError
from .observability import get_logger
from .utils import to_hex

log = get_logger(__name__)

DEFAULT_HUB = "https://hub.snapshot.org"

# Tolerates the spellings seen in historical titles ("QIP-12:", "qip 12", "12. ...")
_NUMBER_PATTERNS = (
    re.compile(r"(?:QIP|QCI)[-\s#]*(\d+):", re.IGNORECASE),
    re.compile(r"(?:QIP|QCI)[-\s#]*(\d+)\b", re.IGNORECASE),
    re.compile(r"^(\d+)[:.-]\s*"),
)

PROPOSALS_QUERY = """
query Proposals($space: String!, $first: Int!) {
  proposals(
    first: $first
    skip: 0
    where: { space_in: [$space] }
    orderBy: "created"
    orderDirection: desc
  ) {
    id
    title
  }
}
"""

DOMAIN = {"name": "snapshot", "version": "0.1.4"}

PROPOSAL_TYPES = {
    "Proposal": [
        {"name": "from", "type": "address"},
        {"name": "space", "type": "string"},
        {"name": "timestamp", "type": "uint64"},
        {"name": "type", "type": "string"},
        {"name": "title", "type": "string"},
        {"name": "body", "type": "string"},
        {"name": "discussion", "type": "string"},
        {"name": "choices", "type": "string[]"},
        {"name": "start", "type": "uint64"},
        {"name": "end", "type": "uint64"},
        {"name": "snapshot", "type": "uint64"},
        {"name": "plugins", "type": "string"},
        {"name": "app", "type": "string"},
    ]
}


@dataclass(frozen=True)
class Vote:
    id: str
    title: str


@dataclass(frozen=True)
class VoteSpec:
    space: str
    title: str
    body: str
    start: int
    end: int
    snapshot: int
    choices: Sequence[str] = field(default=("For", "Against", "Abstain"))
    type: str = "single-choice"
    discussion: str = ""
    plugins: str = "{}"
    app: str = "snapshot"
    timestamp: Optional[int] = None


def extract_number(title: str) -> Optional[int]:
    for pattern in _NUMBER_PATTERNS:
        match = pattern.search(title)
        if match:
            number = int(match.group(1))
            if 0 < number < 10000:
                return number
    return None


class SnapshotClient:
    def __init__(
        self,
        hub: str = DEFAULT_HUB,
        space: str = "qidao.eth",
        graphql_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self.hub = hub.rstrip("/")
        self.space = space
        self.graphql_url = graphql_url or f"{self.hub}/graphql"
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, url: str, payload: dict[str, Any]) -> Any:
        try:
            response = await self._client.post(url, json=payload)
        except httpx.TransportError as exc:
            raise TransientNetworkError(f"Snapshot hub unreachable: {exc}") from exc
        if response.status_code == 429 or response.status_code >= 500:
            raise TransientNetworkError(f"Snapshot hub error {response.status_code}")
        if response.status_code >= 400:
            raise MalformedError(f"Snapshot rejected request {response.status_code}: {response.text[:200]}")
        return response.json()

    async def get_votes(self, space: Optional[str] = None, first: int = 100) -> list[Vote]:
        data = await self._post(
            self.graphql_url,
            {"query": PROPOSALS_QUERY, "variables": {"space": space or self.space, "first": first}},
        )
        if data.get("errors"):
            raise MalformedError(f"GraphQL error: {data['errors']}")
        return [Vote(id=p["id"], title=p.get("title") or "") for p in data["data"]["proposals"]]

    async def latest_number(self, space: Optional[str] = None) -> int:
        highest = 0
        for vote in await self.get_votes(space):
            number = extract_number(vote.title)
            if number is not None and number > highest:
                highest = number
        log.debug("latest_vote_number", space=space or self.space, number=highest)
        return highest

    async def create_vote(self, spec: VoteSpec, private_key: str) -> str:
        """
        Sign and submit a vote proposal.

        Returns:
            The vote id assigned by the hub
        """
        account = Account.from_key(private_key)
        message = {
            "from": account.address,
            "space": spec.space,
            "timestamp": spec.timestamp if spec.timestamp is not None else int(time.time()),
            "type": spec.type,
            "title": spec.title,
            "body": spec.body,
            "discussion": spec.discussion,
            "choices": list(spec.choices),
            "start": spec.start,
            "end": spec.end,
            "snapshot": spec.snapshot,
            "plugins": spec.plugins,
            "app": spec.app,
        }
        signable = encode_typed_data(domain_data=DOMAIN, message_types=PROPOSAL_TYPES, message_data=message)
        signed = account.sign_message(signable)

        receipt = await self._post(
            f"{self.hub}/api/msg",
            {
                "address": account.address,
                "sig": to_hex(bytes(signed.signature)),
                "data": {"domain": DOMAIN, "types": PROPOSAL_TYPES, "message": message},
            },
        )
        log.info("vote_created", space=spec.space, vote_id=receipt.get("id"))
        return receipt["id"]
