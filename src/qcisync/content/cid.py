"""
Offline IPFS content addressing.

Computes the CIDv1 a content store will assign to a body *before* it is
uploaded, mirroring ``ipfs add --cid-version=1 --raw-leaves``: bodies are
split into 256 KiB chunks stored as raw leaves; a single chunk is its own
root, larger bodies get a balanced UnixFS dag-pb tree.
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass

CHUNK_SIZE = 256 * 1024
MAX_LINKS = 174

CODEC_RAW = 0x55
CODEC_DAG_PB = 0x70
SHA2_256 = 0x12
UNIXFS_FILE = 2


def _varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _field_varint(number: int, value: int) -> bytes:
    return _varint(number << 3) + _varint(value)


def _field_bytes(number: int, value: bytes) -> bytes:
    return _varint((number << 3) | 2) + _varint(len(value)) + value


def multihash_sha256(data: bytes) -> bytes:
    digest = hashlib.sha256(data).digest()
    return _varint(SHA2_256) + _varint(len(digest)) + digest


def cid_v1_bytes(codec: int, data: bytes) -> bytes:
    return _varint(1) + _varint(codec) + multihash_sha256(data)


def encode_cid(cid: bytes) -> str:
    """Multibase base32 (lowercase, unpadded) string form."""
    return "b" + base64.b32encode(cid).decode("ascii").lower().rstrip("=")


@dataclass(frozen=True)
class _Node:
    cid: bytes
    tsize: int
    filesize: int


def _unixfs_file(filesize: int, blocksizes: list[int]) -> bytes:
    data = _field_varint(1, UNIXFS_FILE) + _field_varint(3, filesize)
    for size in blocksizes:
        data += _field_varint(4, size)
    return data


def _dag_pb_node(children: list[_Node]) -> _Node:
    encoded = b""
    for child in children:
        link = _field_bytes(1, child.cid) + _field_bytes(2, b"") + _field_varint(3, child.tsize)
        encoded += _field_bytes(2, link)
    filesize = sum(c.filesize for c in children)
    encoded += _field_bytes(1, _unixfs_file(filesize, [c.filesize for c in children]))
    return _Node(
        cid=cid_v1_bytes(CODEC_DAG_PB, encoded),
        tsize=len(encoded) + sum(c.tsize for c in children),
        filesize=filesize,
    )


def compute_cid(data: bytes, chunk_size: int = CHUNK_SIZE) -> str:
    """Return the CIDv1 string for ``data``. Pure, no I/O."""
    if len(data) <= chunk_size:
        return encode_cid(cid_v1_bytes(CODEC_RAW, data))

    level = [
        _Node(cid=cid_v1_bytes(CODEC_RAW, chunk), tsize=len(chunk), filesize=len(chunk))
        for chunk in (data[i : i + chunk_size] for i in range(0, len(data), chunk_size))
    ]
    while True:
        level = [_dag_pb_node(level[i : i + MAX_LINKS]) for i in range(0, len(level), MAX_LINKS)]
        if len(level) == 1:
            return encode_cid(level[0].cid)


def ipfs_url(cid: str) -> str:
    return f"ipfs://{cid}"


def strip_ipfs_scheme(address: str) -> str:
    return address[len("ipfs://") :] if address.startswith("ipfs://") else address
