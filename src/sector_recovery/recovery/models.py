"""Typed models for sector recovery runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Literal, Union

from sector_recovery.chain.address import ProviderIdentity
from sector_recovery.chain.types import RegisteredSealProof

FailureStage = Literal["classify", "randomness"]


@dataclass(slots=True)
class SectorInfo:
    """Recovery parameters for one sector.

    ``activation_epoch`` is the pre-commit epoch for sectors that were never
    proven. ``ticket`` stays ``None`` until seal randomness is resolved and is
    assigned at most once.
    """

    sector_number: int
    activation_epoch: int
    seal_proof: RegisteredSealProof
    sealed_cid: str
    ticket: bytes | None = None

    def __post_init__(self) -> None:
        if self.sector_number < 0:
            raise ValueError(f"sector_number must be non-negative, got {self.sector_number}")
        if self.activation_epoch < 0:
            raise ValueError(f"activation_epoch must be non-negative, got {self.activation_epoch}")

    def attach_ticket(self, ticket: bytes) -> None:
        if self.ticket is not None:
            raise ValueError(f"sector {self.sector_number} already carries a ticket")
        self.ticket = bytes(ticket)


@dataclass(frozen=True, slots=True)
class CommittedSector:
    """Sector with proven on-chain metadata and a true activation epoch."""

    sector_number: int
    seal_proof: RegisteredSealProof
    sealed_cid: str
    activation_epoch: int

    def to_sector_info(self) -> SectorInfo:
        return SectorInfo(
            sector_number=self.sector_number,
            activation_epoch=self.activation_epoch,
            seal_proof=self.seal_proof,
            sealed_cid=self.sealed_cid,
        )


@dataclass(frozen=True, slots=True)
class PreCommittedSector:
    """Sector known only through its pre-commit record."""

    sector_number: int
    seal_proof: RegisteredSealProof
    sealed_cid: str
    pre_commit_epoch: int

    def to_sector_info(self) -> SectorInfo:
        # The pre-commit epoch stands in for activation; it is not a proven
        # activation epoch and the seal randomness is drawn at this epoch.
        return SectorInfo(
            sector_number=self.sector_number,
            activation_epoch=self.pre_commit_epoch,
            seal_proof=self.seal_proof,
            sealed_cid=self.sealed_cid,
        )


SectorClassification = Union[CommittedSector, PreCommittedSector]


@dataclass(frozen=True, slots=True)
class SectorFailure:
    """Why one sector could not be fully recovered."""

    sector_number: int
    stage: FailureStage
    reason: str


SectorOutcome = Union[CommittedSector, PreCommittedSector, SectorFailure]


class FailureSet:
    """Additive set of failed sector numbers, kept in first-failure order."""

    def __init__(self) -> None:
        self._numbers: dict[int, None] = {}
        self._failures: list[SectorFailure] = []

    def record(self, failure: SectorFailure) -> None:
        self._numbers.setdefault(failure.sector_number, None)
        self._failures.append(failure)

    def __contains__(self, sector_number: object) -> bool:
        return sector_number in self._numbers

    def __len__(self) -> int:
        return len(self._numbers)

    def __iter__(self) -> Iterator[int]:
        return iter(self._numbers)

    @property
    def failures(self) -> tuple[SectorFailure, ...]:
        return tuple(self._failures)

    def sector_numbers(self) -> list[int]:
        """Failed sector numbers in the order they first failed."""

        return list(self._numbers)

    def for_stage(self, stage: FailureStage) -> list[int]:
        return [failure.sector_number for failure in self._failures if failure.stage == stage]


@dataclass(slots=True)
class RecoveryBatch:
    """Ordered recovery parameters for one provider, as found in chain state."""

    provider: ProviderIdentity
    sector_size: int
    sectors: list[SectorInfo] = field(default_factory=list)

    @property
    def sector_numbers(self) -> list[int]:
        return [info.sector_number for info in self.sectors]

    @property
    def with_ticket_count(self) -> int:
        return sum(1 for info in self.sectors if info.ticket is not None)
