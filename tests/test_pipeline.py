"""Frontmatter handling, content hashing and the two-phase publish."""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace

import pytest

from qcisync.content.cid import compute_cid, ipfs_url
from qcisync.content.frontmatter import (
    ProposalContent,
    format_body,
    parse_frontmatter,
    status_discrepancy,
)
from qcisync.content.pipeline import ContentAddressingPipeline, compute_content_hash
from qcisync.content.storage import MemoryStore
from qcisync.errors import FrontmatterError, MalformedError, NotFoundError, RpcError

CONTENT = ProposalContent(
    qci=249,
    title="Raise vault debt ceiling",
    chain="Polygon",
    status="Draft",
    author="0x1111111111111111111111111111111111111111",
    created="2025-03-01",
    content="## Summary\n\nRaise the ceiling.",
)


# ============ Frontmatter ============


def test_format_then_parse():
    document = parse_frontmatter(format_body(CONTENT))
    assert document.frontmatter["qci"] == "249"
    assert document.frontmatter["title"] == "Raise vault debt ceiling"
    assert document.frontmatter["implementation-date"] == "None"
    assert document.body == "## Summary\n\nRaise the ceiling."


def test_from_document_rebuilds_content():
    rebuilt = ProposalContent.from_document(parse_frontmatter(format_body(CONTENT)))
    assert rebuilt == CONTENT


def test_transactions_block_only_includes_json_entries():
    tx = '{"args":[],"chain":"Base","function":"pause","to":"0x2222222222222222222222222222222222222222"}'
    content = replace(CONTENT, transactions=(tx, "Base:0xabc:pause:[]"))
    body = format_body(content)

    assert "## Transactions" in body
    block = body.split("```json\n", 1)[1].split("\n```", 1)[0]
    assert json.loads(block) == [json.loads(tx)]


def test_missing_frontmatter_raises():
    with pytest.raises(FrontmatterError):
        parse_frontmatter("# Just markdown\n")


def test_frontmatter_accepts_crlf_and_colons_in_values():
    document = parse_frontmatter("---\r\ntitle: QCI-250: Fees\r\nstatus: Draft\r\n---\r\nBody\r\n")
    assert document.frontmatter["title"] == "QCI-250: Fees"
    assert document.body == "Body"


@pytest.mark.parametrize(
    "on_chain,frontmatter,expected",
    [
        ("Draft", "Draft", False),
        ("Ready for Snapshot", "ready for snapshot", False),
        ("Posted to Snapshot", "Draft", True),
        ("Draft", None, False),
        ("Draft", "", False),
    ],
)
def test_status_discrepancy(on_chain, frontmatter, expected):
    assert status_discrepancy(on_chain, frontmatter) is expected


# ============ Content hash ============


def test_content_hash_is_deterministic_and_sensitive():
    first = compute_content_hash(CONTENT)
    assert first == compute_content_hash(replace(CONTENT))
    assert first.startswith("0x") and len(first) == 66
    assert first != compute_content_hash(replace(CONTENT, title="Lower vault debt ceiling"))


# ============ Publish ============


class MisaddressingStore(MemoryStore):
    """A store that re-chunks content and so reports another address."""

    async def put(self, data, metadata=None):
        await super().put(data, metadata)
        return compute_cid(data + b"\n")


def test_publish_matches_precomputed_address():
    pipeline = ContentAddressingPipeline(MemoryStore())
    body = format_body(CONTENT).encode("utf-8")

    expected = pipeline.compute_expected_address(body)
    assert expected == pipeline.compute_expected_address(body)
    assert asyncio.run(pipeline.publish(body)) == expected
    assert pipeline.last_conflict is None


def test_publish_mismatch_is_recorded_not_raised():
    pipeline = ContentAddressingPipeline(MisaddressingStore())
    body = b"---\nqci: 1\n---\nx"

    actual = asyncio.run(pipeline.publish(body))

    assert actual == compute_cid(body + b"\n")
    assert pipeline.last_conflict is not None
    assert pipeline.last_conflict.expected == compute_cid(body)
    assert pipeline.last_conflict.actual == actual


def test_submit_proposal_uploads_after_submission():
    store = MemoryStore()
    pipeline = ContentAddressingPipeline(store)
    calls = []

    async def submit(content_hash, storage_url):
        calls.append((content_hash, storage_url, dict(store.blobs)))
        return 249

    outcome = asyncio.run(pipeline.submit_proposal(CONTENT, submit))

    content_hash, storage_url, blobs_at_submit = calls[0]
    assert blobs_at_submit == {}
    assert content_hash == compute_content_hash(CONTENT)
    assert storage_url == ipfs_url(outcome.expected_address)
    assert outcome.actual_address == outcome.expected_address
    assert not outcome.conflict
    assert outcome.submission == 249
    assert store.metadata[outcome.actual_address]["qciNumber"] == "249"


@pytest.mark.parametrize(
    "returned,number,expected",
    [(251, None, "251"), (0, None, "pending"), ("0xtxhash", 210, "210")],
)
def test_upload_metadata_uses_registry_number(returned, number, expected):
    store = MemoryStore()
    draft = replace(CONTENT, qci=0)

    async def submit(content_hash, storage_url):
        return returned

    outcome = asyncio.run(ContentAddressingPipeline(store).submit_proposal(draft, submit, number=number))
    assert store.metadata[outcome.actual_address]["qciNumber"] == expected


def test_failed_submission_uploads_nothing():
    store = MemoryStore()

    async def submit(content_hash, storage_url):
        raise RpcError("execution reverted: paused", code=3)

    with pytest.raises(RpcError, match="paused"):
        asyncio.run(ContentAddressingPipeline(store).submit_proposal(CONTENT, submit))
    assert store.blobs == {}


# ============ Fetch ============


def test_fetch_and_parse():
    store = MemoryStore()
    pipeline = ContentAddressingPipeline(store)
    address = asyncio.run(store.put(format_body(CONTENT).encode("utf-8")))

    document = asyncio.run(pipeline.fetch_and_parse(ipfs_url(address)))
    assert document.frontmatter["status"] == "Draft"


def test_fetch_errors_are_typed():
    store = MemoryStore()
    pipeline = ContentAddressingPipeline(store)
    binary = asyncio.run(store.put(b"\xff\xfe\x00"))
    plain = asyncio.run(store.put(b"no frontmatter here"))

    with pytest.raises(MalformedError):
        asyncio.run(pipeline.fetch_and_parse(binary))
    with pytest.raises(FrontmatterError):
        asyncio.run(pipeline.fetch_and_parse(plain))
    with pytest.raises(NotFoundError):
        asyncio.run(pipeline.fetch_and_parse(compute_cid(b"never stored")))
