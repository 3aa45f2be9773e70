"""Recovery artifact writers with atomic file replacement."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import polars as pl

from sector_recovery.recovery.models import FailureSet, RecoveryBatch
from sector_recovery.recovery.record import record_file_name, render_recovery_record
from sector_recovery.utils.paths import atomic_temp_path, write_json_atomically, write_text_atomically

SECTOR_RESULTS_SCHEMA: dict[str, pl.DataType] = {
    "sector_number": pl.Int64,
    "activation_epoch": pl.Int64,
    "seal_proof": pl.Int64,
    "sealed_cid": pl.String,
    "has_ticket": pl.Boolean,
    "success": pl.Boolean,
    "failure_stage": pl.String,
    "error_message": pl.String,
}


@dataclass(frozen=True, slots=True)
class RunSummaryPaths:
    """Where one run's summary artifacts were written."""

    summary_path: Path
    sector_results_path: Path


def write_recovery_record(batch: RecoveryBatch, output_dir: Path) -> Path:
    """Write the recovery record for ``batch`` under ``output_dir`` and return its path."""

    output_path = output_dir / record_file_name(batch.provider)
    return write_text_atomically(render_recovery_record(batch), output_path)


def _write_parquet_atomically(df: pl.DataFrame, output_path: Path) -> Path:
    """Write parquet atomically via temporary file then os.replace."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = atomic_temp_path(output_path)
    try:
        df.write_parquet(temp_path)
        os.replace(temp_path, output_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()
    return output_path


def sector_results_frame(batch: RecoveryBatch, failures: FailureSet) -> pl.DataFrame:
    """One row per requested sector: exported sectors in record order, then classify failures."""

    reasons = {failure.sector_number: failure for failure in failures.failures}
    rows: list[dict[str, object]] = []
    for info in batch.sectors:
        failure = reasons.get(info.sector_number)
        rows.append(
            {
                "sector_number": info.sector_number,
                "activation_epoch": info.activation_epoch,
                "seal_proof": int(info.seal_proof),
                "sealed_cid": info.sealed_cid,
                "has_ticket": info.ticket is not None,
                "success": failure is None,
                "failure_stage": failure.stage if failure else None,
                "error_message": failure.reason if failure else None,
            }
        )
    for failure in failures.failures:
        if failure.stage != "classify":
            continue
        rows.append(
            {
                "sector_number": failure.sector_number,
                "activation_epoch": None,
                "seal_proof": None,
                "sealed_cid": None,
                "has_ticket": False,
                "success": False,
                "failure_stage": failure.stage,
                "error_message": failure.reason,
            }
        )
    if not rows:
        return pl.DataFrame(schema=SECTOR_RESULTS_SCHEMA)
    return pl.DataFrame(rows, schema_overrides=SECTOR_RESULTS_SCHEMA)


def write_run_summary(
    *,
    run_id: str,
    summary: dict[str, Any],
    batch: RecoveryBatch,
    failures: FailureSet,
    artifacts_root: Path,
) -> RunSummaryPaths:
    """Persist the JSON run summary and the per-sector results table."""

    artifacts_dir = artifacts_root / "run_summaries"
    summary_path = write_json_atomically(
        {"run_id": run_id, **summary},
        artifacts_dir / f"{run_id}_export_summary.json",
    )
    sector_results_path = _write_parquet_atomically(
        sector_results_frame(batch, failures),
        artifacts_dir / f"{run_id}_sector_results.parquet",
    )
    return RunSummaryPaths(summary_path=summary_path, sector_results_path=sector_results_path)
