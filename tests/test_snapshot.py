"""Snapshot vote listing, number extraction and signed vote creation."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from qcisync.errors import MalformedError, TransientNetworkError
from qcisync.snapshot import SnapshotClient, VoteSpec, extract_number

PRIVATE_KEY = "0x" + "22" * 32


@pytest.mark.parametrize(
    "title,expected",
    [
        ("QIP-123: Raise the debt ceiling", 123),
        ("QCI-250: Fee switch", 250),
        ("qip 45 follow-up", 45),
        ("QIP#7: Old style", 7),
        ("12. Treasury diversification", 12),
        ("Treasury diversification", None),
        ("QIP-0: Placeholder", None),
        ("QIP-99999: Typo", None),
    ],
)
def test_extract_number(title, expected):
    assert extract_number(title) == expected


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _proposals(*titles: str):
    def handler(request: httpx.Request) -> httpx.Response:
        handler.payloads.append(json.loads(request.content))
        proposals = [{"id": f"0x{i:02x}", "title": t} for i, t in enumerate(titles)]
        return httpx.Response(200, json={"data": {"proposals": proposals}})

    handler.payloads = []
    return handler


def test_get_votes_queries_the_space():
    handler = _proposals("QIP-210: A", "QIP-211: B")
    snapshot = SnapshotClient(space="qidao.eth", client=_client(handler))

    votes = asyncio.run(snapshot.get_votes(first=50))

    assert [v.title for v in votes] == ["QIP-210: A", "QIP-211: B"]
    assert handler.payloads[0]["variables"] == {"space": "qidao.eth", "first": 50}


def test_latest_number_ignores_unnumbered_titles():
    handler = _proposals("QIP-210: A", "Community call", "QCI-233: C", "QIP-219: D")
    snapshot = SnapshotClient(client=_client(handler))
    assert asyncio.run(snapshot.latest_number()) == 233


def test_latest_number_of_empty_space():
    snapshot = SnapshotClient(client=_client(_proposals()))
    assert asyncio.run(snapshot.latest_number("empty.eth")) == 0


def test_graphql_errors_are_malformed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"errors": [{"message": "bad space"}]})

    with pytest.raises(MalformedError):
        asyncio.run(SnapshotClient(client=_client(handler)).get_votes())


def test_hub_outage_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(TransientNetworkError):
        asyncio.run(SnapshotClient(client=_client(handler)).latest_number())


def test_create_vote_posts_a_recoverable_signature():
    posted = []

    def handler(request: httpx.Request) -> httpx.Response:
        posted.append((request.url, json.loads(request.content)))
        return httpx.Response(200, json={"id": "0xvote", "relayer": {}})

    snapshot = SnapshotClient(hub="https://hub.test/", client=_client(handler))
    spec = VoteSpec(
        space="qidao.eth",
        title="QIP-249: Raise vault debt ceiling",
        body="Body",
        start=1_735_689_600,
        end=1_736_294_400,
        snapshot=20_000_000,
        timestamp=1_735_689_000,
    )

    assert asyncio.run(snapshot.create_vote(spec, PRIVATE_KEY)) == "0xvote"

    url, payload = posted[0]
    assert str(url) == "https://hub.test/api/msg"
    message = payload["data"]["message"]
    assert message["choices"] == ["For", "Against", "Abstain"]
    assert message["timestamp"] == 1_735_689_000

    signable = encode_typed_data(
        domain_data=payload["data"]["domain"],
        message_types=payload["data"]["types"],
        message_data=message,
    )
    signer = Account.recover_message(signable, signature=payload["sig"])
    assert signer == payload["address"] == Account.from_key(PRIVATE_KEY).address
