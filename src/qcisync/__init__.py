__all__ = [
    # Configuration
    "Settings",
    # Errors
    "QciError",
    "TransientNetworkError",
    "NotFoundError",
    "MalformedError",
    "MalformedInterface",
    "MalformedTransaction",
    "FrontmatterError",
    "UnauthorizedError",
    "ConflictError",
    "RpcError",
    # Chain
    "RpcTransport",
    "Multicall",
    "ContractReader",
    "ContractWriter",
    # Registry
    "RegistryClient",
    "RegistrySyncEngine",
    "ProposalFilter",
    "Proposal",
    "ProposalVersionRecord",
    "StatusDefinition",
    "StatusVocabulary",
    "FALLBACK_STATUSES",
    "format_markdown",
    "format_json",
    "load_import",
    # Transitions
    "Role",
    "allowed_targets",
    "check_transition",
    "StatusTransitionService",
    "PermissionSession",
    # Content
    "ProposalContent",
    "ParsedDocument",
    "ContentAddressingPipeline",
    "PublishOutcome",
    "ContentStore",
    "MemoryStore",
    "LocalDirStore",
    "KuboStore",
    "PinataStore",
    "StoreHealth",
    "compute_cid",
    "format_body",
    "parse_frontmatter",
    # Encoder
    "parse_type",
    "parse_interface",
    "classify",
    "validate_input",
    "EmbeddedTransaction",
    "encode",
    "decode",
    "build_transaction",
    # Votes
    "SnapshotClient",
]

from .config import Settings
from .errors import (
    ConflictError,
    FrontmatterError,
    MalformedError,
    MalformedInterface,
    MalformedTransaction,
    NotFoundError,
    QciError,
    RpcError,
    TransientNetworkError,
    UnauthorizedError,
)
from .chain.contract import ContractReader
from .chain.multicall import Multicall
from .chain.rpc import RpcTransport
from .chain.tx import ContractWriter
from .registry.client import RegistryClient
from .registry.models import (
    FALLBACK_STATUSES,
    Proposal,
    ProposalVersionRecord,
    StatusDefinition,
    StatusVocabulary,
)
from .registry.export import format_json, format_markdown, load_import
from .registry.sync import ProposalFilter, RegistrySyncEngine
from .registry.transitions import (
    PermissionSession,
    Role,
    StatusTransitionService,
    allowed_targets,
    check_transition,
)
from .content.cid import compute_cid
from .content.frontmatter import ParsedDocument, ProposalContent, format_body, parse_frontmatter
from .content.pipeline import ContentAddressingPipeline, PublishOutcome
from .content.storage import ContentStore, KuboStore, LocalDirStore, MemoryStore, PinataStore, StoreHealth
from .encoder.abi_parser import classify, parse_interface
from .encoder.embedded import EmbeddedTransaction, build_transaction, decode, encode
from .encoder.types import parse_type
from .encoder.validation import validate_input
from .snapshot import SnapshotClient
