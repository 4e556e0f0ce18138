"""Typer application entrypoint."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich import print as rprint
from rich.table import Table

from anonymize import run_anonymization
from anonymize.config import AnonymizeConfig, StageRecord, load_config
from anonymize.errors import AnonymizeError
from anonymize.pipeline import StagePipeline
from anonymize.stages import build_stages
from logging_config import configure_logging


app = typer.Typer(help="Produce anonymised copies of media library databases")


@app.callback()
def main(log_level: Optional[str] = typer.Option(None, help="Log level (defaults to LOG_LEVEL or INFO)")) -> None:
    configure_logging(log_level)


def _build_config(
    source: Path,
    destination: Path,
    config_path: Optional[Path],
    overrides: dict,
) -> AnonymizeConfig:
    if config_path is not None:
        return load_config(config_path, source_path=source, output_path=destination, **overrides)
    data = {key: value for key, value in overrides.items() if value is not None}
    return AnonymizeConfig(source_path=source, output_path=destination, **data)


def _stage_table(records: list[StageRecord], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Stage")
    table.add_column("Status")
    table.add_column("Rows", justify="right")
    table.add_column("Duration (s)", justify="right")
    for record in records:
        table.add_row(record.title, record.status.value, str(record.rows), f"{record.duration_seconds:.2f}")
    return table


@app.command("run")
def anonymize_run(
    source: Path = typer.Argument(..., help="Database to anonymise (never modified)"),
    destination: Path = typer.Argument(..., help="Output path; must not exist"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="JSON or YAML configuration file"),
    page_size: Optional[int] = typer.Option(None, min=1, help="Rows per transaction"),
    log_every: Optional[int] = typer.Option(None, min=1, help="Log progress every N rows"),
    separator: Optional[str] = typer.Option(None, help="Separator for rewritten folder paths"),
    verify: Optional[bool] = typer.Option(None, "--verify/--no-verify", help="Compare row counts with the source"),
    optimise: Optional[bool] = typer.Option(None, "--optimise/--no-optimise", help="Compact the output database"),
) -> None:
    """Write an anonymised copy of SOURCE to DESTINATION."""

    overrides = {
        "page_size": page_size,
        "log_every": log_every,
        "path_separator": separator,
        "verify_row_counts": verify,
        "optimise": optimise,
    }
    try:
        config = _build_config(source, destination, config_path, overrides)
    except (ValidationError, OSError, ValueError) as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=1)

    pipeline = StagePipeline(build_stages(config))
    try:
        result = run_anonymization(config, pipeline=pipeline)
    except AnonymizeError as exc:
        rprint(_stage_table(pipeline.records, "Anonymisation aborted"))
        typer.echo(f"Anonymisation failed: {exc}", err=True)
        raise typer.Exit(code=1)

    rprint(_stage_table(result.stages, "Anonymisation summary"))
    typer.echo(f"Anonymised database written to {result.output_path}")


@app.command("stages")
def list_stages(
    source: Path = typer.Argument(..., help="Database the stages would run against"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="JSON or YAML configuration file"),
) -> None:
    """List the stages a run would execute, in order."""

    placeholder = source.with_name(f"{source.name}.anonymised")
    try:
        config = _build_config(source, placeholder, config_path, {})
    except (ValidationError, OSError, ValueError) as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=1)

    for index, stage in enumerate(build_stages(config), start=1):
        typer.echo(f"{index:2d}. {stage.name} ({stage.title})")


if __name__ == "__main__":  # pragma: no cover
    app()
