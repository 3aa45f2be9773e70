"""Chain-state value types exchanged with the full-node service."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Protocol

from sector_recovery.chain.address import ProviderIdentity

KIB = 1 << 10
MIB = 1 << 20
GIB = 1 << 30


class DomainSeparationTag(IntEnum):
    """Personalization tags for chain randomness draws."""

    TICKET_PRODUCTION = 1
    ELECTION_PROOF_PRODUCTION = 2
    WINNING_POST_CHALLENGE_SEED = 3
    WINDOWED_POST_CHALLENGE_SEED = 4
    SEAL_RANDOMNESS = 5
    INTERACTIVE_SEAL_CHALLENGE_SEED = 6
    WINDOWED_POST_DEADLINE_ASSIGNMENT = 7
    MARKET_DEAL_CRON_SEED = 8
    POST_CHAIN_COMMIT = 9


class RegisteredSealProof(IntEnum):
    """On-chain seal proof type; determines the sector size class."""

    STACKED_DRG_2KIB_V1 = 0
    STACKED_DRG_8MIB_V1 = 1
    STACKED_DRG_512MIB_V1 = 2
    STACKED_DRG_32GIB_V1 = 3
    STACKED_DRG_64GIB_V1 = 4
    STACKED_DRG_2KIB_V1_1 = 5
    STACKED_DRG_8MIB_V1_1 = 6
    STACKED_DRG_512MIB_V1_1 = 7
    STACKED_DRG_32GIB_V1_1 = 8
    STACKED_DRG_64GIB_V1_1 = 9
    STACKED_DRG_2KIB_V1_1_SYNTHETIC = 10
    STACKED_DRG_8MIB_V1_1_SYNTHETIC = 11
    STACKED_DRG_512MIB_V1_1_SYNTHETIC = 12
    STACKED_DRG_32GIB_V1_1_SYNTHETIC = 13
    STACKED_DRG_64GIB_V1_1_SYNTHETIC = 14
    STACKED_DRG_2KIB_V1_2_NI = 15
    STACKED_DRG_8MIB_V1_2_NI = 16
    STACKED_DRG_512MIB_V1_2_NI = 17
    STACKED_DRG_32GIB_V1_2_NI = 18
    STACKED_DRG_64GIB_V1_2_NI = 19

    @property
    def sector_size(self) -> int:
        return _SECTOR_SIZE_BY_CLASS[self.value % 5]


_SECTOR_SIZE_BY_CLASS: tuple[int, ...] = (2 * KIB, 8 * MIB, 512 * MIB, 32 * GIB, 64 * GIB)


def format_sector_size(size: int) -> str:
    """Render a sector size in bytes as ``32GiB`` style text."""

    for unit, label in ((GIB, "GiB"), (MIB, "MiB"), (KIB, "KiB")):
        if size >= unit and size % unit == 0:
            return f"{size // unit}{label}"
    return f"{size}B"


@dataclass(frozen=True, slots=True)
class TipsetKey:
    """Ordered block CIDs identifying one tipset. Empty means the chain head."""

    cids: tuple[str, ...] = ()

    @property
    def is_head(self) -> bool:
        return not self.cids

    def to_json(self) -> list[dict[str, str]]:
        return [{"/": cid} for cid in self.cids]


EMPTY_TIPSET_KEY = TipsetKey()


@dataclass(frozen=True, slots=True)
class Tipset:
    """Tipset position resolved from the chain."""

    key: TipsetKey
    height: int


@dataclass(frozen=True, slots=True)
class OnChainSectorInfo:
    """Metadata of a proven (committed) sector."""

    sector_number: int
    seal_proof: RegisteredSealProof
    sealed_cid: str
    activation: int


@dataclass(frozen=True, slots=True)
class PreCommitInfo:
    """Metadata of a sector that was pre-committed but not yet proven."""

    sector_number: int
    seal_proof: RegisteredSealProof
    sealed_cid: str
    pre_commit_epoch: int


class ChainStateService(Protocol):
    """Read-only chain-state queries consumed by the recovery pipeline."""

    def get_provider_sector_size(self, provider: ProviderIdentity) -> int:
        ...

    def get_committed_sector_info(
        self, provider: ProviderIdentity, sector_number: int
    ) -> OnChainSectorInfo | None:
        ...

    def get_pre_committed_sector_info(
        self, provider: ProviderIdentity, sector_number: int
    ) -> PreCommitInfo | None:
        ...

    def get_tipset_at_epoch(self, epoch: int, search_from: TipsetKey) -> Tipset:
        ...

    def derive_seal_randomness(
        self,
        tag: DomainSeparationTag,
        epoch: int,
        entropy: bytes,
        tipset_key: TipsetKey,
    ) -> bytes:
        ...
