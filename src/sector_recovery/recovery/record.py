"""Recovery record assembly, (de)serialization, and the run summary."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sector_recovery.chain.address import ProviderIdentity, resolve_provider
from sector_recovery.chain.types import RegisteredSealProof
from sector_recovery.recovery.models import FailureSet, RecoveryBatch, SectorFailure, SectorInfo
from sector_recovery.utils.time_utils import format_elapsed

RECORD_FILE_PREFIX = "sectors-recovery-"
RECORD_FILE_SUFFIX = ".json"


def record_file_name(provider: ProviderIdentity) -> str:
    """File name of the recovery record, e.g. ``sectors-recovery-f01000.json``."""

    return f"{RECORD_FILE_PREFIX}{provider}{RECORD_FILE_SUFFIX}"


def sector_entry(info: SectorInfo) -> dict[str, Any]:
    return {
        "SectorNumber": info.sector_number,
        "Activation": info.activation_epoch,
        "Ticket": base64.b64encode(info.ticket).decode("ascii") if info.ticket is not None else None,
        "SealProof": int(info.seal_proof),
        "SealedCID": {"/": info.sealed_cid},
    }


def build_recovery_record(batch: RecoveryBatch) -> dict[str, Any]:
    """Assemble the serializable record; missing tickets and empty batches are kept as-is."""

    return {
        "Miner": str(batch.provider),
        "SectorSize": batch.sector_size,
        "SectorInfos": [sector_entry(info) for info in batch.sectors],
    }


def render_recovery_record(batch: RecoveryBatch) -> str:
    """Render the record as tab-indented JSON with a stable key order."""

    return json.dumps(build_recovery_record(batch), indent="\t") + "\n"


def _parse_sector_entry(entry: dict[str, Any]) -> SectorInfo:
    ticket_text = entry.get("Ticket")
    sealed = entry.get("SealedCID")
    if not isinstance(sealed, dict) or not isinstance(sealed.get("/"), str):
        raise ValueError(f"sector {entry.get('SectorNumber')} has no SealedCID")
    return SectorInfo(
        sector_number=int(entry["SectorNumber"]),
        activation_epoch=int(entry["Activation"]),
        seal_proof=RegisteredSealProof(int(entry["SealProof"])),
        sealed_cid=sealed["/"],
        ticket=base64.b64decode(ticket_text) if ticket_text else None,
    )


def parse_recovery_record(payload: dict[str, Any]) -> RecoveryBatch:
    """Rebuild a ``RecoveryBatch`` from a decoded record."""

    missing = {"Miner", "SectorSize", "SectorInfos"}.difference(payload)
    if missing:
        raise ValueError(f"recovery record missing fields: {', '.join(sorted(missing))}")
    return RecoveryBatch(
        provider=resolve_provider(str(payload["Miner"])),
        sector_size=int(payload["SectorSize"]),
        sectors=[_parse_sector_entry(entry) for entry in payload["SectorInfos"] or []],
    )


def load_recovery_record(path: Path) -> RecoveryBatch:
    return parse_recovery_record(json.loads(path.read_text(encoding="utf-8")))


@dataclass(frozen=True, slots=True)
class ExportSummary:
    """Human-facing outcome of one export run."""

    provider: str
    requested: int
    exported: int
    with_ticket: int
    failed_sectors: tuple[int, ...]
    failures: tuple[SectorFailure, ...]
    elapsed_sec: float
    record_path: Path | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "requested": self.requested,
            "exported": self.exported,
            "with_ticket": self.with_ticket,
            "failed_sectors": list(self.failed_sectors),
            "failures": [
                {"sector_number": f.sector_number, "stage": f.stage, "reason": f.reason}
                for f in self.failures
            ],
            "elapsed_sec": round(self.elapsed_sec, 3),
            "record_path": str(self.record_path) if self.record_path else None,
        }


def build_export_summary(
    batch: RecoveryBatch,
    failures: FailureSet,
    *,
    requested: int,
    elapsed_sec: float,
    record_path: Path | None = None,
) -> ExportSummary:
    return ExportSummary(
        provider=str(batch.provider),
        requested=requested,
        exported=len(batch.sectors),
        with_ticket=batch.with_ticket_count,
        failed_sectors=tuple(failures.sector_numbers()),
        failures=failures.failures,
        elapsed_sec=elapsed_sec,
        record_path=record_path,
    )


def format_summary(summary: ExportSummary) -> str:
    """One-line console summary: exported count, failed sectors, elapsed time."""

    failed = "[" + " ".join(str(number) for number in summary.failed_sectors) + "]"
    return (
        f"export {summary.exported} sectors, failed sectors: {failed}, "
        f"elapsed: {format_elapsed(summary.elapsed_sec)}"
    )
