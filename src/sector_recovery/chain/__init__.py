"""Chain identity, value types, and the full-node query client."""

from sector_recovery.chain.address import AddressProtocol, ProviderIdentity, resolve_provider
from sector_recovery.chain.client import (
    CancelToken,
    LotusClient,
    build_chain_client,
    parse_api_info,
)
from sector_recovery.chain.types import (
    EMPTY_TIPSET_KEY,
    ChainStateService,
    DomainSeparationTag,
    OnChainSectorInfo,
    PreCommitInfo,
    RegisteredSealProof,
    Tipset,
    TipsetKey,
    format_sector_size,
)

__all__ = [
    "AddressProtocol",
    "ProviderIdentity",
    "resolve_provider",
    "CancelToken",
    "LotusClient",
    "build_chain_client",
    "parse_api_info",
    "EMPTY_TIPSET_KEY",
    "ChainStateService",
    "DomainSeparationTag",
    "OnChainSectorInfo",
    "PreCommitInfo",
    "RegisteredSealProof",
    "Tipset",
    "TipsetKey",
    "format_sector_size",
]
