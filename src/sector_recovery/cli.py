"""Typer CLI entrypoint for sector_recovery."""

from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import polars as pl
import typer
import yaml

from sector_recovery.chain.client import CancelToken, build_chain_client
from sector_recovery.chain.types import format_sector_size
from sector_recovery.config import AppSettings, load_settings
from sector_recovery.errors import Cancelled, ChainQueryFailed, InvalidIdentity
from sector_recovery.logging_utils import LOG_FILE_NAME, configure_logging
from sector_recovery.recovery.pipeline import ExportRunOptions, run_export_pipeline
from sector_recovery.recovery.record import format_summary, load_recovery_record

EXIT_FAILURE = 1
EXIT_CANCELLED = 130

app = typer.Typer(
    add_completion=False,
    help="sector_recovery command line interface.",
    no_args_is_help=True,
)


@contextmanager
def cancel_on_interrupt(cancel_token: CancelToken) -> Iterator[None]:
    """Turn the first SIGINT/SIGTERM into a cancel request; a second Ctrl-C interrupts."""

    if threading.current_thread() is not threading.main_thread():
        yield
        return

    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _handle_signal(signum: int, frame: object) -> None:
        cancel_token.cancel()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)
    try:
        yield
    finally:
        if original_sigint is not None:
            signal.signal(signal.SIGINT, original_sigint)
        if original_sigterm is not None:
            signal.signal(signal.SIGTERM, original_sigterm)


def _load_and_optionally_configure_logger(
    config_file: Path | None,
    configure: bool,
    verbose: bool = False,
) -> tuple[AppSettings, logging.Logger]:
    settings = load_settings(config_file=config_file)
    if configure:
        level = logging.DEBUG if verbose else logging.INFO
        logger = configure_logging(settings.paths.logs_root / LOG_FILE_NAME, level=level)
    else:
        logger = logging.getLogger("sector_recovery")
    return settings, logger


@app.command("show-config")
def show_config(
    config_file: Path | None = typer.Option(
        None,
        "--config-file",
        help="Optional settings YAML path.",
        exists=False,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Print the effective configuration after env overrides."""

    settings, _ = _load_and_optionally_configure_logger(config_file, configure=False)
    rendered = yaml.safe_dump(settings.as_dict(), sort_keys=False)
    typer.echo(rendered)


@app.command("export")
def export(
    miner: str = typer.Option(
        ...,
        "--miner",
        help="Filecoin miner. Such as: f01000",
    ),
    sector: list[int] = typer.Option(
        ...,
        "--sector",
        min=0,
        help="Sector number to be recovered. Repeat for more sectors. Such as: 0",
    ),
    output_dir: Path | None = typer.Option(
        None,
        "--output-dir",
        help="Directory for the recovery record (defaults to paths.output_root).",
        file_okay=False,
        dir_okay=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Log every chain query.",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config-file",
        help="Optional settings YAML path.",
        exists=False,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Rebuild recovery parameters for sectors of one miner from chain state."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=True, verbose=verbose)
    cancel_token = CancelToken()
    try:
        client = build_chain_client(settings.chain, cancel_token=cancel_token, logger=logger)
    except ChainQueryFailed as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=EXIT_FAILURE) from exc

    try:
        with cancel_on_interrupt(cancel_token):
            result = run_export_pipeline(
                settings,
                client,
                miner=miner,
                sector_numbers=sector,
                options=ExportRunOptions(output_dir=output_dir),
                logger=logger,
            )
    except InvalidIdentity as exc:
        typer.echo(f"error: invalid miner address {miner!r}: {exc}", err=True)
        raise typer.Exit(code=EXIT_FAILURE) from exc
    except ChainQueryFailed as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=EXIT_FAILURE) from exc
    except (Cancelled, KeyboardInterrupt) as exc:
        typer.echo("cancelled", err=True)
        raise typer.Exit(code=EXIT_CANCELLED) from exc
    finally:
        client.close()

    typer.echo(format_summary(result.summary))
    typer.echo(f"record_path: {result.record_path}")
    if result.summary_path is not None:
        typer.echo(f"summary_path: {result.summary_path}")


@app.command("inspect-record")
def inspect_record(
    record_path: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        help="Recovery record JSON written by `export`.",
    ),
) -> None:
    """Print the sectors contained in a recovery record."""

    try:
        batch = load_recovery_record(record_path)
    except (ValueError, KeyError) as exc:
        typer.echo(f"error: unreadable recovery record: {exc}", err=True)
        raise typer.Exit(code=EXIT_FAILURE) from exc

    typer.echo(f"miner: {batch.provider}")
    typer.echo(f"sector_size: {format_sector_size(batch.sector_size)}")
    typer.echo(f"sectors: {len(batch.sectors)}")
    typer.echo(f"sectors_with_ticket: {batch.with_ticket_count}")
    if not batch.sectors:
        return
    preview = pl.DataFrame(
        {
            "sector_number": [info.sector_number for info in batch.sectors],
            "activation": [info.activation_epoch for info in batch.sectors],
            "seal_proof": [info.seal_proof.name for info in batch.sectors],
            "proof_size": [format_sector_size(info.seal_proof.sector_size) for info in batch.sectors],
            "has_ticket": [info.ticket is not None for info in batch.sectors],
        }
    )
    typer.echo(str(preview))


def main() -> None:
    """CLI script entrypoint."""

    app()


if __name__ == "__main__":
    main()
