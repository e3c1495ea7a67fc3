from __future__ import annotations

from datetime import datetime, timezone

from eth_hash.auto import keccak


def keccak256(data: bytes) -> bytes:
    # NOTE: Keccak-256 != SHA3-256 (NIST). Never use hashlib.sha3_256 here.
    return keccak(data)


def keccak_hex(data: bytes) -> str:
    return "0x" + keccak256(data).hex()


def to_hex(data: bytes) -> str:
    return "0x" + data.hex()


def from_hex(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith(("0x", "0X")) else value)


def unix_to_date(timestamp: int) -> str | None:
    """Render a unix timestamp as an ISO date, or None for the zero sentinel."""
    if timestamp <= 0:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).date().isoformat()


def unix_to_iso(timestamp: float) -> str:
    """ISO 8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
