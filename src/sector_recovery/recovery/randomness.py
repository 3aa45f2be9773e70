"""Resolve sealing randomness (tickets) with a single backward tipset walk.

Sectors arrive ordered by activation epoch, newest first. Each tipset lookup
starts from the tipset the previous lookup resolved instead of the chain head,
so the whole batch costs one monotonic walk back through the chain. The walk
state is threaded through the loop sequentially and must not be shared across
concurrent runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from sector_recovery.chain.address import ProviderIdentity
from sector_recovery.chain.types import (
    EMPTY_TIPSET_KEY,
    ChainStateService,
    DomainSeparationTag,
    Tipset,
    TipsetKey,
)
from sector_recovery.errors import ChainQueryFailed
from sector_recovery.recovery.models import FailureSet, SectorFailure, SectorInfo
from sector_recovery.recovery.ordering import is_activation_ordered

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class TipsetWalk:
    """Current position of the backward walk; starts at the chain head.

    ``last_epoch`` is the epoch most recently asked for. When null rounds made
    that lookup land lower, at ``height``, every epoch in
    ``(height, last_epoch]`` resolves to the current tipset.
    """

    key: TipsetKey = EMPTY_TIPSET_KEY
    height: int | None = None
    last_epoch: int | None = None
    resolved_heights: list[int] = field(default_factory=list)

    def covers(self, epoch: int) -> bool:
        if self.height is None or self.last_epoch is None:
            return False
        return self.height < epoch <= self.last_epoch

    def current(self) -> Tipset:
        if self.height is None:
            raise ValueError("tipset walk has not resolved a tipset yet")
        return Tipset(key=self.key, height=self.height)

    def advance(self, epoch: int, tipset: Tipset) -> None:
        self.key = tipset.key
        self.height = tipset.height
        self.last_epoch = epoch
        self.resolved_heights.append(tipset.height)


def resolve_sector_ticket(
    service: ChainStateService,
    info: SectorInfo,
    entropy: bytes,
    walk: TipsetWalk,
) -> SectorFailure | None:
    """Attach the seal ticket for one sector, advancing ``walk`` on tipset success.

    The walk advances as soon as the tipset lookup succeeds, even if the
    randomness draw that follows fails.
    """

    if walk.covers(info.activation_epoch):
        tipset = walk.current()
    else:
        try:
            tipset = service.get_tipset_at_epoch(info.activation_epoch, walk.key)
        except ChainQueryFailed as exc:
            return SectorFailure(info.sector_number, "randomness", str(exc))
    walk.advance(info.activation_epoch, tipset)

    try:
        ticket = service.derive_seal_randomness(
            DomainSeparationTag.SEAL_RANDOMNESS,
            info.activation_epoch,
            entropy,
            tipset.key,
        )
    except ChainQueryFailed as exc:
        return SectorFailure(info.sector_number, "randomness", str(exc))

    info.attach_ticket(ticket)
    return None


def resolve_seal_randomness(
    service: ChainStateService,
    provider: ProviderIdentity,
    sectors: Sequence[SectorInfo],
    failures: FailureSet,
    *,
    walk: TipsetWalk | None = None,
    progress_every: int = 100,
    logger: logging.Logger | None = None,
) -> TipsetWalk:
    """Resolve tickets for ``sectors`` in order, recording per-sector failures."""

    effective_logger = logger or LOGGER
    progress_every = max(1, progress_every)
    state = walk or TipsetWalk()
    entropy = provider.to_cbor()

    if not is_activation_ordered(sectors):
        effective_logger.warning(
            "randomness.unordered_input sectors=%s; tipset walk may restart from later positions",
            len(sectors),
        )

    resolved = 0
    for processed_idx, info in enumerate(sectors, start=1):
        failure = resolve_sector_ticket(service, info, entropy, state)
        if failure is None:
            resolved += 1
        else:
            failures.record(failure)
            effective_logger.error(
                "randomness.sector_failed sector=%s epoch=%s error=%s",
                info.sector_number,
                info.activation_epoch,
                failure.reason,
            )

        if processed_idx % progress_every == 0 or processed_idx == len(sectors):
            effective_logger.info(
                "randomness.progress processed=%s/%s resolved=%s failed=%s tipset_height=%s",
                processed_idx,
                len(sectors),
                resolved,
                processed_idx - resolved,
                state.height,
            )
    return state
