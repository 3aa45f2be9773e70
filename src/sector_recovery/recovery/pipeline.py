"""Export pipeline: identity, classification, ordering, randomness, record."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence
from uuid import uuid4

from sector_recovery.chain.address import resolve_provider
from sector_recovery.chain.types import ChainStateService, format_sector_size
from sector_recovery.config import AppSettings
from sector_recovery.recovery.classify import classify_sectors, normalize_sector_numbers
from sector_recovery.recovery.models import FailureSet, RecoveryBatch
from sector_recovery.recovery.ordering import sort_by_activation
from sector_recovery.recovery.randomness import TipsetWalk, resolve_seal_randomness
from sector_recovery.recovery.record import ExportSummary, build_export_summary
from sector_recovery.recovery.writer import write_recovery_record, write_run_summary
from sector_recovery.utils.paths import expand_output_dir

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExportRunOptions:
    """Runtime options for one export run."""

    output_dir: Path | None = None
    write_record: bool = True
    write_run_summary: bool | None = None
    progress_every: int | None = None


@dataclass(frozen=True, slots=True)
class ExportRunResult:
    """Return object for export run outcomes."""

    run_id: str
    batch: RecoveryBatch
    failures: FailureSet
    walk: TipsetWalk
    summary: ExportSummary
    record_path: Path | None
    summary_path: Path | None
    sector_results_path: Path | None


def build_recovery_batch(
    service: ChainStateService,
    miner: str,
    sector_numbers: Sequence[int],
    *,
    progress_every: int = 100,
    logger: logging.Logger | None = None,
) -> tuple[RecoveryBatch, FailureSet, TipsetWalk]:
    """Run the in-memory stages and return the ordered batch with its failures.

    Identity resolution and the sector size query are fatal; every per-sector
    query degrades to an entry in the returned ``FailureSet``.
    """

    effective_logger = logger or LOGGER
    provider = resolve_provider(miner)
    numbers = normalize_sector_numbers(sector_numbers, logger=effective_logger)

    sector_size = service.get_provider_sector_size(provider)
    effective_logger.info(
        "export.provider provider=%s sector_size=%s requested=%s",
        provider,
        format_sector_size(sector_size),
        len(numbers),
    )

    failures = FailureSet()
    classified = classify_sectors(
        service,
        provider,
        numbers,
        failures,
        progress_every=progress_every,
        logger=effective_logger,
    )
    ordered = sort_by_activation(classified)
    walk = resolve_seal_randomness(
        service,
        provider,
        ordered,
        failures,
        progress_every=progress_every,
        logger=effective_logger,
    )
    return RecoveryBatch(provider=provider, sector_size=sector_size, sectors=ordered), failures, walk


def run_export_pipeline(
    settings: AppSettings,
    service: ChainStateService,
    *,
    miner: str,
    sector_numbers: Sequence[int],
    options: ExportRunOptions | None = None,
    logger: logging.Logger | None = None,
) -> ExportRunResult:
    """Rebuild recovery parameters for ``sector_numbers`` and write the record."""

    effective_logger = logger or LOGGER
    run_options = options or ExportRunOptions()
    progress_every = run_options.progress_every or settings.export.progress_every
    run_id = f"export-run-{uuid4().hex[:12]}"
    started_mono = time.monotonic()

    effective_logger.info("export.start run_id=%s miner=%s sectors=%s", run_id, miner, len(sector_numbers))
    batch, failures, walk = build_recovery_batch(
        service,
        miner,
        sector_numbers,
        progress_every=progress_every,
        logger=effective_logger,
    )

    record_path: Path | None = None
    if run_options.write_record:
        output_dir = expand_output_dir(run_options.output_dir or settings.paths.output_root)
        record_path = write_recovery_record(batch, output_dir)

    summary = build_export_summary(
        batch,
        failures,
        requested=len(set(sector_numbers)),
        elapsed_sec=time.monotonic() - started_mono,
        record_path=record_path,
    )

    summary_path: Path | None = None
    sector_results_path: Path | None = None
    should_write_summary = (
        settings.export.write_run_summary
        if run_options.write_run_summary is None
        else run_options.write_run_summary
    )
    if should_write_summary:
        paths = write_run_summary(
            run_id=run_id,
            summary=summary.as_dict(),
            batch=batch,
            failures=failures,
            artifacts_root=settings.paths.artifacts_root,
        )
        summary_path = paths.summary_path
        sector_results_path = paths.sector_results_path

    effective_logger.info(
        "export.complete run_id=%s exported=%s with_ticket=%s failed=%s record_path=%s",
        run_id,
        summary.exported,
        summary.with_ticket,
        list(summary.failed_sectors),
        record_path,
    )

    return ExportRunResult(
        run_id=run_id,
        batch=batch,
        failures=failures,
        walk=walk,
        summary=summary,
        record_path=record_path,
        summary_path=summary_path,
        sector_results_path=sector_results_path,
    )
