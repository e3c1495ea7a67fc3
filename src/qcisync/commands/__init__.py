"""
Commands - CLI subcommands and the wiring they share.

``open_runtime`` builds the long-lived transport, registry client, content
pipeline and sync engine from ``Settings`` and closes them on exit.
"""

from __future__ import annotations

import asyncio
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Coroutine, NoReturn, Optional, TypeVar

import click

from ..chain.abi import registry_abi
from ..chain.multicall import Multicall
from ..chain.rpc import RpcTransport
from ..chain.tx import ContractWriter
from ..config import Settings
from ..content.pipeline import ContentAddressingPipeline
from ..content.storage import ContentStore, build_store
from ..errors import QciError, UnauthorizedError
from ..observability import configure_logging
from ..registry.client import RegistryClient
from ..registry.sync import RegistrySyncEngine

T = TypeVar("T")


@dataclass
class Runtime:
    settings: Settings
    transport: RpcTransport
    registry: RegistryClient
    store: ContentStore
    pipeline: ContentAddressingPipeline
    engine: RegistrySyncEngine


def load_settings() -> Settings:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return settings


def require_registry(settings: Settings) -> None:
    if not settings.registry_address:
        fail("QCI_REGISTRY_ADDRESS is not configured.")


@asynccontextmanager
async def open_runtime(settings: Settings, signing: bool = False) -> AsyncIterator[Runtime]:
    transport = RpcTransport(settings.rpc_endpoints())
    writer: Optional[ContractWriter] = None
    if signing:
        if not settings.private_key:
            await transport.aclose()
            raise UnauthorizedError("PRIVATE_KEY is required for this command")
        writer = ContractWriter(
            transport,
            settings.registry_address,
            registry_abi(),
            settings.private_key,
            chain_id=settings.chain_id,
        )

    registry = RegistryClient(
        transport,
        settings.registry_address,
        Multicall(transport, settings.multicall_address),
        writer=writer,
    )
    store = build_store(settings)
    pipeline = ContentAddressingPipeline(store)
    try:
        yield Runtime(
            settings=settings,
            transport=transport,
            registry=registry,
            store=store,
            pipeline=pipeline,
            engine=RegistrySyncEngine(registry, pipeline),
        )
    finally:
        await transport.aclose()
        closer = getattr(store, "aclose", None)
        if closer is not None:
            await closer()


def fail(message: str, exit_code: int = 1) -> NoReturn:
    click.secho(f"ERROR: {message}", fg="red", err=True)
    sys.exit(exit_code)


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Drive a command coroutine, mapping typed errors to exit codes."""
    try:
        return asyncio.run(coro)
    except QciError as exc:
        for field, problem in getattr(exc, "errors", {}).items():
            click.secho(f"  {field}: {problem}", fg="red", err=True)
        fail(str(exc), exc.exit_code)
