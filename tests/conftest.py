from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from sector_recovery.chain.address import ProviderIdentity
from sector_recovery.chain.types import (
    DomainSeparationTag,
    OnChainSectorInfo,
    PreCommitInfo,
    RegisteredSealProof,
    Tipset,
    TipsetKey,
)
from sector_recovery.config import AppSettings, load_settings
from sector_recovery.errors import ChainQueryFailed

SECTOR_SIZE_32GIB = 34359738368
PROOF = RegisteredSealProof.STACKED_DRG_32GIB_V1_1
HEAD_HEIGHT = 10_000


def tipset_key_for(height: int) -> TipsetKey:
    return TipsetKey((f"bafy2bzace-ts-{height}-a", f"bafy2bzace-ts-{height}-b"))


def height_of(key: TipsetKey) -> int:
    return int(key.cids[0].split("-")[2])


class FakeChainService:
    """In-memory chain that behaves like a Lotus node for the recovery queries."""

    def __init__(self, *, sector_size: int = SECTOR_SIZE_32GIB, null_rounds: set[int] | None = None) -> None:
        self.sector_size = sector_size
        self.committed: dict[int, OnChainSectorInfo] = {}
        self.pre_committed: dict[int, PreCommitInfo] = {}
        self.null_rounds = set(null_rounds or ())
        self.fail_size = False
        self.fail_committed: set[int] = set()
        self.fail_pre_commit: set[int] = set()
        self.fail_tipset_epochs: set[int] = set()
        self.fail_randomness_epochs: set[int] = set()
        self.tipset_calls: list[tuple[int, TipsetKey]] = []
        self.randomness_calls: list[tuple[DomainSeparationTag, int, bytes, TipsetKey]] = []
        self.closed = False

    def add_committed(self, sector_number: int, activation: int, sealed_cid: str | None = None) -> None:
        self.committed[sector_number] = OnChainSectorInfo(
            sector_number=sector_number,
            seal_proof=PROOF,
            sealed_cid=sealed_cid or f"bagboea4b5abc-sealed-{sector_number}",
            activation=activation,
        )

    def add_pre_committed(self, sector_number: int, pre_commit_epoch: int, sealed_cid: str | None = None) -> None:
        self.pre_committed[sector_number] = PreCommitInfo(
            sector_number=sector_number,
            seal_proof=PROOF,
            sealed_cid=sealed_cid or f"bagboea4b5abc-precommit-{sector_number}",
            pre_commit_epoch=pre_commit_epoch,
        )

    def get_provider_sector_size(self, provider: ProviderIdentity) -> int:
        if self.fail_size:
            raise ChainQueryFailed("Filecoin.StateMinerInfo", "actor not found")
        return self.sector_size

    def get_committed_sector_info(self, provider: ProviderIdentity, sector_number: int) -> OnChainSectorInfo | None:
        if sector_number in self.fail_committed:
            raise ChainQueryFailed("Filecoin.StateSectorGetInfo", "connection reset")
        return self.committed.get(sector_number)

    def get_pre_committed_sector_info(self, provider: ProviderIdentity, sector_number: int) -> PreCommitInfo | None:
        if sector_number in self.fail_pre_commit:
            raise ChainQueryFailed("Filecoin.StateSectorPreCommitInfo", "connection reset")
        return self.pre_committed.get(sector_number)

    def get_tipset_at_epoch(self, epoch: int, search_from: TipsetKey) -> Tipset:
        self.tipset_calls.append((epoch, search_from))
        if epoch in self.fail_tipset_epochs:
            raise ChainQueryFailed("Filecoin.ChainGetTipSetByHeight", "blockstore error")
        start = HEAD_HEIGHT if search_from.is_head else height_of(search_from)
        if epoch > start:
            raise ChainQueryFailed(
                "Filecoin.ChainGetTipSetByHeight",
                f"looking for tipset with height greater than start point {start}",
            )
        height = epoch
        while height in self.null_rounds and height > 0:
            height -= 1
        return Tipset(key=tipset_key_for(height), height=height)

    def derive_seal_randomness(
        self,
        tag: DomainSeparationTag,
        epoch: int,
        entropy: bytes,
        tipset_key: TipsetKey,
    ) -> bytes:
        self.randomness_calls.append((tag, epoch, entropy, tipset_key))
        if epoch in self.fail_randomness_epochs:
            raise ChainQueryFailed("Filecoin.StateGetRandomnessFromTickets", "randomness unavailable")
        material = f"{int(tag)}|{epoch}|{'/'.join(tipset_key.cids)}|".encode("utf-8") + entropy
        return hashlib.sha256(material).digest()

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def chain() -> FakeChainService:
    return FakeChainService()


def write_settings_file(root: Path, extra: str = "") -> Path:
    settings_file = root / "configs" / "settings.yaml"
    settings_file.parent.mkdir(parents=True, exist_ok=True)
    settings_file.write_text(
        "paths:\n"
        "  output_root: ./records\n"
        "  artifacts_root: ./artifacts\n"
        "  logs_root: ./logs\n"
        "chain:\n"
        "  api_url: http://127.0.0.1:1234/rpc/v1\n"
        "  api_info_env: SECTOR_RECOVERY_TEST_API_INFO\n"
        "  timeout_sec: 5\n" + extra,
        encoding="utf-8",
    )
    return settings_file


@pytest.fixture
def settings_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for name in ("SECTOR_RECOVERY_SETTINGS_FILE", "SECTOR_RECOVERY_TEST_API_INFO"):
        monkeypatch.delenv(name, raising=False)
    return write_settings_file(tmp_path)


@pytest.fixture
def settings(settings_file: Path) -> AppSettings:
    return load_settings(settings_file)
