"""CLI entry point for oas-aggregator."""

import logging
from pathlib import Path

import click

from oas_aggregator.config import AggregatorConfig
from oas_aggregator.emit import format_for_path, write_document
from oas_aggregator.errors import AggregatorError
from oas_aggregator.pipeline import aggregate
from oas_aggregator.resolver.bundler import bundle

LOG_LEVELS = ["error", "warning", "info", "debug"]


@click.group()
@click.option("--log-level", default="warning", type=click.Choice(LOG_LEVELS), help="Logging verbosity.")
def main(log_level: str):
    """OpenAPI Aggregator: bundle multi-file specs and merge them into one."""
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")


@main.command("bundle")
@click.argument("entry", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output file for the bundled spec.")
@click.option("--format", "fmt", default=None, type=click.Choice(["yaml", "json"]), help="Output format (default: from the output suffix).")
def bundle_cmd(entry: Path, output: Path, fmt: str | None):
    """Resolve every external $ref of ENTRY into one self-contained document."""
    click.echo(f"Bundling {entry}...")
    try:
        resolved = bundle(entry)
    except AggregatorError as e:
        raise click.ClickException(f"[{e.code}] {e.message}") from e

    write_document(resolved.tree, output, fmt)
    click.echo(f"Bundled spec saved to {output}")


@main.command("merge")
@click.argument("specs", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output file for the aggregate spec.")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="YAML settings file.")
@click.option("--title", default=None, help="info.title of the aggregate.")
@click.option("--version", "api_version", default=None, help="info.version of the aggregate.")
@click.option("--format", "fmt", default=None, type=click.Choice(["yaml", "json"]), help="Output format.")
@click.option("--schema-policy", default=None, type=click.Choice(["auto", "rename", "prefer_first"]), help="How clashing schema names are settled.")
@click.option("--workers", default=None, type=click.IntRange(min=1), help="Parallel bundling tasks.")
@click.option("--fill-operation-ids", is_flag=True, default=False, help="Generate missing operationIds.")
def merge_cmd(
    specs: tuple[Path, ...],
    output: Path,
    config_path: Path | None,
    title: str | None,
    api_version: str | None,
    fmt: str | None,
    schema_policy: str | None,
    workers: int | None,
    fill_operation_ids: bool,
):
    """Bundle each of SPECS and merge them, in order, into one document."""
    config = AggregatorConfig.from_file(config_path) if config_path else AggregatorConfig()
    overrides = {
        "title": title,
        "version": api_version,
        "max_workers": workers,
        "output_format": fmt,
    }
    config = config.model_copy(update={k: v for k, v in overrides.items() if v is not None})
    if schema_policy:
        config = config.model_copy(update={"policy": config.policy.model_copy(update={"schemas": schema_policy})})
    if fill_operation_ids:
        config = config.model_copy(update={"fill_operation_ids": True})

    click.echo(f"Merging {len(specs)} specs...")
    result = aggregate(list(specs), config=config)

    for failure in result.failures:
        click.echo(f"  FAILED {failure.source}: [{failure.code}] {failure.message}", err=True)
    for warning in result.warnings:
        click.echo(f"  warning: {warning.message}", err=True)

    if result.document is None:
        raise click.ClickException("No spec could be bundled; nothing written.")

    write_document(result.document, output, fmt or format_for_path(output, config.output_format))
    click.echo(f"Aggregate spec saved to {output} ({len(result.warnings)} warnings, {len(result.failures)} failed)")
