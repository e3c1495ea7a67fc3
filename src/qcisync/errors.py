"""
Error taxonomy shared by the chain, content and encoder layers.

Only ``TransientNetworkError`` is safe to retry automatically. The sync
engine swallows per-record and per-batch failures; everything else hands
these typed errors back to the caller.
"""

from __future__ import annotations

from typing import Any, Optional


class QciError(RuntimeError):
    exit_code: int = 1
    retryable: bool = False


class TransientNetworkError(QciError):
    exit_code = 2
    retryable = True


class NotFoundError(QciError):
    exit_code = 3


class MalformedError(QciError):
    exit_code = 4

    def __init__(self, message: str, errors: Optional[dict[str, str]] = None) -> None:
        super().__init__(message)
        self.errors = errors or {}


class MalformedInterface(MalformedError):
    pass


class MalformedTransaction(MalformedError):
    pass


class FrontmatterError(MalformedError):
    pass


class UnauthorizedError(QciError):
    exit_code = 5


class ConflictError(QciError):
    """Realized content address differs from the precomputed one."""

    exit_code = 6

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"Content address mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class RpcError(QciError):
    """JSON-RPC error object or reverted transaction, surfaced verbatim."""

    exit_code = 7

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        data: Any = None,
        tx_hash: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.data = data
        self.tx_hash = tx_hash
