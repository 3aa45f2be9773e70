from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import PROOF, SECTOR_SIZE_32GIB
from sector_recovery.chain.address import resolve_provider
from sector_recovery.recovery.models import FailureSet, RecoveryBatch, SectorFailure, SectorInfo
from sector_recovery.recovery.record import (
    build_export_summary,
    build_recovery_record,
    format_summary,
    load_recovery_record,
    parse_recovery_record,
    record_file_name,
    render_recovery_record,
)
from sector_recovery.recovery.writer import sector_results_frame, write_recovery_record


def _batch() -> RecoveryBatch:
    with_ticket = SectorInfo(5, 200, PROOF, "bagboea-sealed-5")
    with_ticket.attach_ticket(b"\x00\x01\x02\xff")
    without_ticket = SectorInfo(3, 150, PROOF, "bagboea-precommit-3")
    return RecoveryBatch(
        provider=resolve_provider("f01000"),
        sector_size=SECTOR_SIZE_32GIB,
        sectors=[with_ticket, without_ticket],
    )


def test_record_keeps_field_names_and_sector_order() -> None:
    record = build_recovery_record(_batch())

    assert list(record) == ["Miner", "SectorSize", "SectorInfos"]
    assert record["Miner"] == "f01000"
    assert record["SectorSize"] == SECTOR_SIZE_32GIB
    assert record["SectorInfos"] == [
        {
            "SectorNumber": 5,
            "Activation": 200,
            "Ticket": "AAEC/w==",
            "SealProof": int(PROOF),
            "SealedCID": {"/": "bagboea-sealed-5"},
        },
        {
            "SectorNumber": 3,
            "Activation": 150,
            "Ticket": None,
            "SealProof": int(PROOF),
            "SealedCID": {"/": "bagboea-precommit-3"},
        },
    ]


def test_empty_batch_still_renders() -> None:
    batch = RecoveryBatch(provider=resolve_provider("f01000"), sector_size=SECTOR_SIZE_32GIB)

    payload = json.loads(render_recovery_record(batch))

    assert payload["SectorInfos"] == []


def test_written_record_is_tab_indented_and_named_after_the_miner(tmp_path: Path) -> None:
    path = write_recovery_record(_batch(), tmp_path / "out")

    assert path.name == record_file_name(resolve_provider("f01000")) == "sectors-recovery-f01000.json"
    text = path.read_text(encoding="utf-8")
    assert text.startswith('{\n\t"Miner": "f01000"')
    assert not list(path.parent.glob(".*.tmp"))


def test_written_record_is_byte_identical_across_writes(tmp_path: Path) -> None:
    first = write_recovery_record(_batch(), tmp_path / "a").read_bytes()
    second = write_recovery_record(_batch(), tmp_path / "b").read_bytes()

    assert first == second


def test_load_recovery_record_restores_every_field(tmp_path: Path) -> None:
    original = _batch()
    path = write_recovery_record(original, tmp_path)

    loaded = load_recovery_record(path)

    assert loaded.provider == original.provider
    assert loaded.sector_size == original.sector_size
    assert loaded.sectors == original.sectors


def test_parse_recovery_record_requires_top_level_fields() -> None:
    with pytest.raises(ValueError):
        parse_recovery_record({"Miner": "f01000"})


def test_summary_lists_failed_sectors_and_elapsed_time() -> None:
    failures = FailureSet()
    failures.record(SectorFailure(9, "classify", "no committed or pre-commit info on chain"))
    failures.record(SectorFailure(3, "randomness", "randomness unavailable"))

    summary = build_export_summary(_batch(), failures, requested=3, elapsed_sec=1.5)

    assert summary.exported == 2
    assert summary.with_ticket == 1
    assert summary.failed_sectors == (9, 3)
    assert format_summary(summary) == "export 2 sectors, failed sectors: [9 3], elapsed: 1.500s"
    assert summary.as_dict()["failures"][0] == {
        "sector_number": 9,
        "stage": "classify",
        "reason": "no committed or pre-commit info on chain",
    }


def test_sector_results_frame_covers_every_requested_sector() -> None:
    failures = FailureSet()
    failures.record(SectorFailure(9, "classify", "missing"))
    failures.record(SectorFailure(3, "randomness", "randomness unavailable"))

    frame = sector_results_frame(_batch(), failures)

    assert frame["sector_number"].to_list() == [5, 3, 9]
    assert frame["success"].to_list() == [True, False, False]
    assert frame["failure_stage"].to_list() == [None, "randomness", "classify"]
    assert frame["has_ticket"].to_list() == [True, False, False]
