from __future__ import annotations

import asyncio
import json
import os
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional, Protocol

import httpx

from ..config import Settings
from ..errors import MalformedError, NotFoundError, QciError, TransientNetworkError
from .cid import compute_cid, strip_ipfs_scheme


class ContentStore(Protocol):
    async def put(self, data: bytes, metadata: Optional[dict[str, str]] = None) -> str:
        ...

    async def get(self, address: str) -> bytes:
        ...

    def compute_address(self, data: bytes) -> str:
        ...

    async def health(self) -> StoreHealth:
        ...


def _raise_for_status(response: httpx.Response, address: str = "") -> None:
    if response.status_code == 404:
        raise NotFoundError(f"Content not found: {address or response.request.url}")
    if response.status_code == 429 or response.status_code >= 500:
        raise TransientNetworkError(f"Content store error {response.status_code}: {response.text[:200]}")
    if response.status_code >= 400:
        raise MalformedError(f"Content store rejected request {response.status_code}: {response.text[:200]}")


@dataclass(frozen=True)
class StoreHealth:
    """Outcome of a store health check.

    ``round_trip`` is None when no upload was attempted.
    """

    provider: str
    available: bool
    round_trip: Optional[bool] = None
    address: Optional[str] = None
    version: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.available and self.round_trip is not False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["ok"] = self.ok
        return data


async def round_trip(store: ContentStore, provider: str, version: Optional[str] = None) -> StoreHealth:
    """Upload a small sample, read it back and compare bytes and address."""
    sample = f"IPFS test content - {int(time.time() * 1000)}".encode("utf-8")
    try:
        address = strip_ipfs_scheme(await store.put(sample, {"type": "health-check"}))
        retrieved = await store.get(address)
    except QciError as exc:
        return StoreHealth(provider, available=True, round_trip=False, version=version, error=str(exc))

    error = None
    if retrieved != sample:
        error = "Content mismatch"
    elif address != store.compute_address(sample):
        error = f"Address mismatch: expected {store.compute_address(sample)}"
    return StoreHealth(provider, True, error is None, address, version, error)


@dataclass
class MemoryStore:
    """In-process store keyed by the computed CID."""

    blobs: dict[str, bytes] = field(default_factory=dict)
    metadata: dict[str, dict[str, str]] = field(default_factory=dict)

    def compute_address(self, data: bytes) -> str:
        return compute_cid(data)

    async def put(self, data: bytes, metadata: Optional[dict[str, str]] = None) -> str:
        address = self.compute_address(data)
        self.blobs[address] = data
        self.metadata[address] = dict(metadata or {})
        return address

    async def get(self, address: str) -> bytes:
        cid = strip_ipfs_scheme(address)
        if cid not in self.blobs:
            raise NotFoundError(f"Content not found: {cid}")
        return self.blobs[cid]

    async def health(self) -> StoreHealth:
        return await round_trip(self, "memory")


@dataclass(frozen=True)
class LocalDirStore:
    """Blobs as files named by CID under ``root/blobs``."""

    root: Path

    def compute_address(self, data: bytes) -> str:
        return compute_cid(data)

    def _path(self, cid: str) -> Path:
        path = (self.root / "blobs" / cid).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise MalformedError(f"Path traversal detected: {cid}")
        return path

    async def put(self, data: bytes, metadata: Optional[dict[str, str]] = None) -> str:
        address = self.compute_address(data)
        target = self._path(address)
        await asyncio.to_thread(self._write, target, data, metadata or {})
        return address

    async def get(self, address: str) -> bytes:
        path = self._path(strip_ipfs_scheme(address))
        if not path.is_file():
            raise NotFoundError(f"Content not found: {address}")
        return await asyncio.to_thread(path.read_bytes)

    async def health(self) -> StoreHealth:
        return await round_trip(self, "directory")

    def _write(self, target: Path, data: bytes, metadata: dict[str, str]) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        self._atomic_write(target, data)
        if metadata:
            meta = target.with_suffix(".meta.json")
            self._atomic_write(meta, json.dumps(metadata, sort_keys=True).encode("utf-8"))

    def _atomic_write(self, path: Path, data: bytes) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            with tmp.open("wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            tmp.replace(path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise


class _HttpStore:
    def __init__(self, client: Optional[httpx.AsyncClient], timeout: float) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    def compute_address(self, data: bytes) -> str:
        return compute_cid(data)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise TransientNetworkError(f"Content store unreachable: {exc}") from exc


class KuboStore(_HttpStore):
    """Local IPFS daemon via the Kubo RPC API."""

    def __init__(
        self,
        api_url: str = "http://localhost:5001",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(client, timeout)
        self.api_url = api_url.rstrip("/")

    async def put(self, data: bytes, metadata: Optional[dict[str, str]] = None) -> str:
        response = await self._send(
            "POST",
            f"{self.api_url}/api/v0/add",
            params={"cid-version": "1", "raw-leaves": "true", "pin": "true"},
            files={"file": ("proposal.md", data, "text/plain")},
        )
        _raise_for_status(response)
        return response.json()["Hash"]

    async def get(self, address: str) -> bytes:
        cid = strip_ipfs_scheme(address)
        response = await self._send("POST", f"{self.api_url}/api/v0/cat", params={"arg": cid})
        # Kubo reports unknown/invalid CIDs as 500 with a JSON message body
        if response.status_code == 500 and "invalid" in response.text.lower():
            raise MalformedError(f"Invalid content address: {cid}")
        _raise_for_status(response, cid)
        return response.content

    async def health(self) -> StoreHealth:
        """Check the daemon answers, then round-trip a sample through it."""
        try:
            response = await self._send("POST", f"{self.api_url}/api/v0/version")
            _raise_for_status(response)
            version = response.json().get("Version")
        except (QciError, ValueError) as exc:
            return StoreHealth("local", available=False, error=str(exc))
        return await round_trip(self, "local", version)


class PinataStore(_HttpStore):
    """Pinning service upload, public gateway fetch."""

    PIN_FILE_URL = "https://api.pinata.cloud/pinning/pinFileToIPFS"
    AUTH_TEST_URL = "https://api.pinata.cloud/data/testAuthentication"

    def __init__(
        self,
        jwt: str,
        gateway: str = "https://gateway.pinata.cloud",
        group_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(client, timeout)
        self.jwt = jwt
        self.gateway = gateway.rstrip("/")
        self.group_id = group_id

    async def put(self, data: bytes, metadata: Optional[dict[str, str]] = None) -> str:
        keyvalues = {"type": "qci-content", **(metadata or {})}
        options: dict[str, Any] = {"cidVersion": 1}
        if self.group_id:
            options["groupId"] = self.group_id
        response = await self._send(
            "POST",
            self.PIN_FILE_URL,
            headers={"Authorization": f"Bearer {self.jwt}"},
            files={"file": ("qci-content.md", data, "text/plain")},
            data={
                "pinataMetadata": json.dumps({"name": "qci-content.md", "keyvalues": keyvalues}),
                "pinataOptions": json.dumps(options),
            },
        )
        _raise_for_status(response)
        return response.json()["IpfsHash"]

    async def get(self, address: str) -> bytes:
        cid = strip_ipfs_scheme(address)
        response = await self._send("GET", f"{self.gateway}/ipfs/{cid}")
        _raise_for_status(response, cid)
        return response.content

    async def health(self) -> StoreHealth:
        """Verify the JWT. Nothing is uploaded."""
        try:
            response = await self._send("GET", self.AUTH_TEST_URL, headers={"Authorization": f"Bearer {self.jwt}"})
            _raise_for_status(response)
        except QciError as exc:
            return StoreHealth("pinata", available=False, error=str(exc))
        return StoreHealth("pinata", available=True)


def build_store(settings: Settings) -> ContentStore:
    if settings.ipfs_provider == "pinata":
        return PinataStore(settings.pinata_jwt, settings.pinata_gateway)
    if settings.ipfs_provider == "memory":
        return MemoryStore()
    return KuboStore(settings.local_ipfs_api)
