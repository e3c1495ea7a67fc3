"""Offline CID computation and the content store backends."""

from __future__ import annotations

import asyncio
import json
import re

import httpx
import pytest

from qcisync.content.cid import compute_cid, ipfs_url, strip_ipfs_scheme
from qcisync.content.storage import KuboStore, LocalDirStore, MemoryStore, PinataStore
from qcisync.errors import MalformedError, NotFoundError, TransientNetworkError


# ============ CID ============


def test_empty_body_matches_known_raw_cid():
    assert compute_cid(b"") == "bafkreihdwdcefgh4dqkjv67uzcmw7ojee6xedzdetojuzjevtenxquvyku"


def test_single_chunk_is_raw_leaf():
    cid = compute_cid(b"---\nqci: 209\n---\n\nbody")
    assert cid.startswith("bafkrei")
    assert len(cid) == 59


def test_cid_is_deterministic():
    body = ("# Proposal\n" * 1000).encode("utf-8")
    assert compute_cid(body) == compute_cid(bytes(body))


def test_multi_chunk_body_gets_dag_pb_root():
    small_chunks = compute_cid(b"abcdef", chunk_size=2)
    assert small_chunks.startswith("bafybei")
    assert small_chunks != compute_cid(b"abcdef")


def test_deep_tree_is_stable():
    data = bytes(range(256)) * 2
    first = compute_cid(data, chunk_size=1)
    assert first == compute_cid(data, chunk_size=1)
    assert first.startswith("bafybei")


def test_ipfs_scheme_helpers():
    cid = compute_cid(b"x")
    assert ipfs_url(cid) == f"ipfs://{cid}"
    assert strip_ipfs_scheme(ipfs_url(cid)) == cid
    assert strip_ipfs_scheme(cid) == cid


# ============ MemoryStore / LocalDirStore ============


def test_memory_store_put_get():
    store = MemoryStore()
    address = asyncio.run(store.put(b"hello", {"qciNumber": "1"}))
    assert address == compute_cid(b"hello")
    assert asyncio.run(store.get(address)) == b"hello"
    assert asyncio.run(store.get(ipfs_url(address))) == b"hello"
    assert store.metadata[address] == {"qciNumber": "1"}


def test_memory_store_missing_raises_not_found():
    with pytest.raises(NotFoundError):
        asyncio.run(MemoryStore().get(compute_cid(b"nothing")))


def test_local_dir_store_roundtrip(tmp_path):
    store = LocalDirStore(root=tmp_path)
    address = asyncio.run(store.put(b"proposal body", {"title": "T"}))

    blob = tmp_path / "blobs" / address
    assert blob.read_bytes() == b"proposal body"
    assert json.loads(blob.with_suffix(".meta.json").read_text()) == {"title": "T"}
    assert not list(tmp_path.rglob("*.tmp"))
    assert asyncio.run(store.get(address)) == b"proposal body"


def test_local_dir_store_missing(tmp_path):
    with pytest.raises(NotFoundError):
        asyncio.run(LocalDirStore(root=tmp_path).get(compute_cid(b"absent")))


def test_local_dir_store_rejects_traversal(tmp_path):
    with pytest.raises(MalformedError):
        asyncio.run(LocalDirStore(root=tmp_path / "store").get("../../etc/passwd"))


# ============ HTTP backends ============


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_kubo_put_requests_cidv1_raw_leaves():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json={"Hash": compute_cid(b"data"), "Size": "4"})

    store = KuboStore("http://ipfs.test:5001", client=_client(handler))
    address = asyncio.run(store.put(b"data"))

    assert address == compute_cid(b"data")
    assert seen["url"].path == "/api/v0/add"
    assert seen["url"].params["cid-version"] == "1"
    assert seen["url"].params["raw-leaves"] == "true"


def test_kubo_get_maps_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        arg = request.url.params["arg"]
        if arg == "missing":
            return httpx.Response(404, text="not found")
        if arg == "busy":
            return httpx.Response(503, text="overloaded")
        return httpx.Response(200, content=b"content")

    store = KuboStore("http://ipfs.test:5001", client=_client(handler))
    assert asyncio.run(store.get("ipfs://ok")) == b"content"
    with pytest.raises(NotFoundError):
        asyncio.run(store.get("missing"))
    with pytest.raises(TransientNetworkError):
        asyncio.run(store.get("busy"))


def test_network_failure_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    store = KuboStore("http://ipfs.test:5001", client=_client(handler))
    with pytest.raises(TransientNetworkError):
        asyncio.run(store.get("anything"))


def test_pinata_put_and_gateway_get():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "POST":
            return httpx.Response(200, json={"IpfsHash": "bafkreiexample"})
        return httpx.Response(200, content=b"from gateway")

    store = PinataStore("jwt-token", "https://gw.test", client=_client(handler))
    assert asyncio.run(store.put(b"body", {"qciNumber": "210"})) == "bafkreiexample"
    assert asyncio.run(store.get("ipfs://bafkreiexample")) == b"from gateway"

    upload, fetch = requests
    assert upload.headers["Authorization"] == "Bearer jwt-token"
    assert b'"cidVersion": 1' in upload.content
    assert str(fetch.url) == "https://gw.test/ipfs/bafkreiexample"


# ============ Health ============


def _kubo_node(serve=None):
    """Handler for a Kubo node that stores what it is given."""
    blobs = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v0/version":
            return httpx.Response(200, json={"Version": "0.29.0"})
        if request.url.path == "/api/v0/add":
            data = re.search(rb"IPFS test content - \d+", request.content).group(0)
            cid = compute_cid(data)
            blobs[cid] = data
            return httpx.Response(200, json={"Hash": cid})
        cid = request.url.params["arg"]
        return httpx.Response(200, content=serve(blobs[cid]) if serve else blobs[cid])

    return handler


def test_kubo_health_round_trip():
    health = asyncio.run(KuboStore("http://ipfs.test:5001", client=_client(_kubo_node())).health())
    assert health.ok
    assert health.available and health.round_trip
    assert health.version == "0.29.0"
    assert health.address.startswith("bafkrei")
    assert health.error is None


def test_kubo_health_reports_content_mismatch():
    store = KuboStore("http://ipfs.test:5001", client=_client(_kubo_node(serve=lambda data: data + b"!")))
    health = asyncio.run(store.health())
    assert not health.ok
    assert health.available
    assert health.round_trip is False
    assert health.error == "Content mismatch"


def test_kubo_health_when_daemon_is_down():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    health = asyncio.run(KuboStore("http://ipfs.test:5001", client=_client(handler)).health())
    assert not health.ok
    assert not health.available
    assert health.round_trip is None
    assert "unreachable" in health.error


@pytest.mark.parametrize("status,available", [(200, True), (401, False)])
def test_pinata_health_only_checks_authentication(status, available):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status, json={"message": "Congratulations!"})

    health = asyncio.run(PinataStore("jwt-token", client=_client(handler)).health())
    assert health.available is available
    assert health.ok is available
    assert health.round_trip is None
    (request,) = requests
    assert request.method == "GET"
    assert request.headers["Authorization"] == "Bearer jwt-token"


def test_local_and_memory_health(tmp_path):
    for store, provider in ((LocalDirStore(tmp_path), "directory"), (MemoryStore(), "memory")):
        health = asyncio.run(store.health())
        assert health.ok
        assert health.provider == provider
        assert health.to_dict()["ok"] is True
