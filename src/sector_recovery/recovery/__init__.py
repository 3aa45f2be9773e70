"""Sector recovery pipeline stages."""

from sector_recovery.recovery.classify import (
    classify_sector,
    classify_sectors,
    normalize_sector_numbers,
)
from sector_recovery.recovery.models import (
    CommittedSector,
    FailureSet,
    PreCommittedSector,
    RecoveryBatch,
    SectorFailure,
    SectorInfo,
)
from sector_recovery.recovery.ordering import activation_sort_key, is_activation_ordered, sort_by_activation
from sector_recovery.recovery.pipeline import (
    ExportRunOptions,
    ExportRunResult,
    build_recovery_batch,
    run_export_pipeline,
)
from sector_recovery.recovery.randomness import TipsetWalk, resolve_sector_ticket, resolve_seal_randomness
from sector_recovery.recovery.record import (
    ExportSummary,
    build_recovery_record,
    format_summary,
    load_recovery_record,
    record_file_name,
)
from sector_recovery.recovery.writer import write_recovery_record, write_run_summary

__all__ = [
    "classify_sector",
    "classify_sectors",
    "normalize_sector_numbers",
    "CommittedSector",
    "FailureSet",
    "PreCommittedSector",
    "RecoveryBatch",
    "SectorFailure",
    "SectorInfo",
    "activation_sort_key",
    "is_activation_ordered",
    "sort_by_activation",
    "ExportRunOptions",
    "ExportRunResult",
    "build_recovery_batch",
    "run_export_pipeline",
    "TipsetWalk",
    "resolve_sector_ticket",
    "resolve_seal_randomness",
    "ExportSummary",
    "build_recovery_record",
    "format_summary",
    "load_recovery_record",
    "record_file_name",
    "write_recovery_record",
    "write_run_summary",
]
