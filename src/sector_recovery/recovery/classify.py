"""Classify requested sectors as committed or pre-committed from chain state."""

from __future__ import annotations

import logging
from typing import Iterable

from sector_recovery.chain.address import ProviderIdentity
from sector_recovery.chain.types import ChainStateService
from sector_recovery.errors import ChainQueryFailed
from sector_recovery.recovery.models import (
    CommittedSector,
    FailureSet,
    PreCommittedSector,
    SectorFailure,
    SectorInfo,
    SectorOutcome,
)

LOGGER = logging.getLogger(__name__)


def normalize_sector_numbers(
    sector_numbers: Iterable[int],
    logger: logging.Logger | None = None,
) -> list[int]:
    """Validate requested sector numbers and drop repeats, keeping first occurrence."""

    effective_logger = logger or LOGGER
    seen: dict[int, None] = {}
    for raw in sector_numbers:
        number = int(raw)
        if number < 0:
            raise ValueError(f"sector numbers must be non-negative, got {number}")
        if number in seen:
            effective_logger.warning("classify.duplicate_sector sector=%s", number)
            continue
        seen[number] = None
    return list(seen)


def classify_sector(
    service: ChainStateService,
    provider: ProviderIdentity,
    sector_number: int,
) -> SectorOutcome:
    """Look up one sector, falling back to its pre-commit record when it is not proven."""

    try:
        committed = service.get_committed_sector_info(provider, sector_number)
    except ChainQueryFailed as exc:
        return SectorFailure(sector_number, "classify", str(exc))

    if committed is not None:
        return CommittedSector(
            sector_number=sector_number,
            seal_proof=committed.seal_proof,
            sealed_cid=committed.sealed_cid,
            activation_epoch=committed.activation,
        )

    try:
        pre_commit = service.get_pre_committed_sector_info(provider, sector_number)
    except ChainQueryFailed as exc:
        return SectorFailure(sector_number, "classify", str(exc))

    if pre_commit is None:
        return SectorFailure(sector_number, "classify", "no committed or pre-commit info on chain")

    return PreCommittedSector(
        sector_number=sector_number,
        seal_proof=pre_commit.seal_proof,
        sealed_cid=pre_commit.sealed_cid,
        pre_commit_epoch=pre_commit.pre_commit_epoch,
    )


def classify_sectors(
    service: ChainStateService,
    provider: ProviderIdentity,
    sector_numbers: Iterable[int],
    failures: FailureSet,
    *,
    progress_every: int = 100,
    logger: logging.Logger | None = None,
) -> list[SectorInfo]:
    """Classify every requested sector, recording failures instead of aborting."""

    effective_logger = logger or LOGGER
    progress_every = max(1, progress_every)
    numbers = list(sector_numbers)
    sectors: list[SectorInfo] = []
    committed_count = 0
    pre_committed_count = 0

    for processed_idx, sector_number in enumerate(numbers, start=1):
        outcome = classify_sector(service, provider, sector_number)
        info: SectorInfo | None = None
        if not isinstance(outcome, SectorFailure):
            try:
                info = outcome.to_sector_info()
            except ValueError as exc:
                outcome = SectorFailure(sector_number, "classify", f"malformed sector record: {exc}")

        if isinstance(outcome, SectorFailure):
            failures.record(outcome)
            effective_logger.error(
                "classify.sector_failed sector=%s error=%s", sector_number, outcome.reason
            )
        elif info is not None:
            if isinstance(outcome, PreCommittedSector):
                pre_committed_count += 1
                effective_logger.warning(
                    "classify.pre_commit_only sector=%s pre_commit_epoch=%s",
                    sector_number,
                    outcome.pre_commit_epoch,
                )
            else:
                committed_count += 1
            sectors.append(info)

        if processed_idx % progress_every == 0 or processed_idx == len(numbers):
            effective_logger.info(
                "classify.progress processed=%s/%s committed=%s pre_committed=%s failed=%s",
                processed_idx,
                len(numbers),
                committed_count,
                pre_committed_count,
                len(failures.for_stage("classify")),
            )
    return sectors
