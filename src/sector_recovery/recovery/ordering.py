"""Activation-epoch ordering for the backward tipset walk."""

from __future__ import annotations

from typing import Iterable, Sequence

from sector_recovery.recovery.models import SectorInfo


def activation_sort_key(info: SectorInfo) -> tuple[int, int]:
    """Newest activation first; lower sector number first within an epoch."""

    return (-info.activation_epoch, info.sector_number)


def sort_by_activation(sectors: Iterable[SectorInfo]) -> list[SectorInfo]:
    """Return sectors in the order the randomness walk must visit them."""

    return sorted(sectors, key=activation_sort_key)


def is_activation_ordered(sectors: Sequence[SectorInfo]) -> bool:
    """Check that every adjacent pair respects the activation ordering."""

    return all(
        activation_sort_key(left) < activation_sort_key(right)
        for left, right in zip(sectors, sectors[1:])
    )
