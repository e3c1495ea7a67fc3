"""
Runtime configuration.

Values come from the process environment, optionally seeded from
~/.qcisync/.env (loaded with python-dotenv, like the wallet key file).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

QCISYNC_DIR = Path.home() / ".qcisync"
QCISYNC_ENV = QCISYNC_DIR / ".env"

DEFAULT_RPC_URL = "https://mainnet.base.org"
DEFAULT_CHAIN_ID = 8453  # Base mainnet
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"

# Several public providers, spread round-robin to stay under rate limits
BASE_RPC_ENDPOINTS = [
    "https://mainnet.base.org",
    "https://base.llamarpc.com",
    "https://base-mainnet.public.blastapi.io",
    "https://base.blockpi.network/v1/rpc/public",
    "https://base.meowrpc.com",
    "https://base.publicnode.com",
    "https://1rpc.io/base",
]


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    registry_address: str = ""
    rpc_url: str = DEFAULT_RPC_URL
    rpc_urls: tuple[str, ...] = ()
    local_mode: bool = False
    chain_id: int = DEFAULT_CHAIN_ID
    multicall_address: str = MULTICALL3_ADDRESS
    ipfs_provider: str = "local"
    local_ipfs_api: str = "http://localhost:5001"
    pinata_jwt: str = ""
    pinata_gateway: str = "https://gateway.pinata.cloud"
    snapshot_hub: str = "https://hub.snapshot.org"
    snapshot_space: str = "qidao.eth"
    log_level: str = "INFO"
    private_key: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "Settings":
        env_path = env_path or QCISYNC_ENV
        if env_path.exists():
            load_dotenv(env_path, override=False)

        urls = os.environ.get("BASE_RPC_URLS", "")
        return cls(
            registry_address=os.environ.get("QCI_REGISTRY_ADDRESS", ""),
            rpc_url=os.environ.get("BASE_RPC_URL", DEFAULT_RPC_URL),
            rpc_urls=tuple(u.strip() for u in urls.split(",") if u.strip()),
            local_mode=_env_bool("LOCAL_MODE"),
            chain_id=int(os.environ.get("CHAIN_ID", str(DEFAULT_CHAIN_ID))),
            multicall_address=os.environ.get("MULTICALL_ADDRESS", MULTICALL3_ADDRESS),
            ipfs_provider=os.environ.get("IPFS_PROVIDER", "local").lower(),
            local_ipfs_api=os.environ.get("LOCAL_IPFS_API", "http://localhost:5001"),
            pinata_jwt=os.environ.get("PINATA_JWT", ""),
            pinata_gateway=os.environ.get("PINATA_GATEWAY", "https://gateway.pinata.cloud"),
            snapshot_hub=os.environ.get("SNAPSHOT_HUB", "https://hub.snapshot.org"),
            snapshot_space=os.environ.get("SNAPSHOT_SPACE", "qidao.eth"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            private_key=os.environ.get("PRIVATE_KEY") or None,
        )

    def rpc_endpoints(self) -> list[str]:
        """
        Resolve the list of RPC endpoints to balance across.

        A local node is always used alone. An explicit BASE_RPC_URLS list wins
        over the defaults; a single non-local URL is prepended to them.
        """
        is_local = "localhost" in self.rpc_url or "127.0.0.1" in self.rpc_url
        if self.local_mode or is_local:
            return [self.rpc_url]
        if self.rpc_urls:
            return list(self.rpc_urls)
        if self.rpc_url not in BASE_RPC_ENDPOINTS:
            return [self.rpc_url, *BASE_RPC_ENDPOINTS]
        return list(BASE_RPC_ENDPOINTS)

    def validate(self) -> list[str]:
        problems: list[str] = []
        if not self.registry_address:
            problems.append("QCI_REGISTRY_ADDRESS is not configured")
        if self.ipfs_provider == "pinata" and not self.pinata_jwt:
            problems.append("IPFS_PROVIDER=pinata requires PINATA_JWT")
        if self.ipfs_provider not in ("local", "pinata", "memory"):
            problems.append(f"Unknown IPFS_PROVIDER: {self.ipfs_provider}")
        return problems
