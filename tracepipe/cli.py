"""
TracePipe Command Line Interface
Load diagnostic trace files, report what was found, and export it.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from tracepipe.config import PipelineConfig
from tracepipe.core.schema import FilesSource
from tracepipe.core.utils import format_size
from tracepipe.formats.registry import ParserRegistry
from tracepipe.pipeline.orchestrator import TracePipeline
from tracepipe.pipeline.progress import LoggingProgressListener, WarningCollector


# Configure logging
def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )


def _summarize(pipeline: TracePipeline) -> Dict[str, Any]:
    converter = pipeline.get_timestamp_converter()
    traces: List[Dict[str, Any]] = []

    for trace in pipeline.get_traces():
        item: Dict[str, Any] = {
            "type": trace.type.display_name,
            "source": trace.source_kind.value,
            "files": [f.name for f in trace.source_files],
            "state": type(trace.state).__name__,
        }
        if trace.is_built:
            item["entries"] = len(trace)
            time_range = trace.time_range_ns()
            if time_range is not None and converter is not None and converter.has_real_time:
                start, end = time_range
                item["start"] = converter.make_timestamp_from_monotonic_ns(start).format()
                item["end"] = converter.make_timestamp_from_monotonic_ns(end).format()
        traces.append(item)

    return {
        "state": pipeline.state.value,
        "source": (pipeline.get_files_source() or FilesSource.UNKNOWN).value,
        "utc_offset": converter.get_utc_offset() if converter else None,
        "download_filename": pipeline.get_download_archive_filename(),
        "traces": traces,
        "warnings": [w.to_dict() for w in pipeline.get_warnings()],
    }


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """
    TracePipe

    Ingest device diagnostic traces (legacy protobuf, perfetto, screen
    recordings, screenshots, bugreports) into one time-aligned collection.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--source", "-s", default=FilesSource.UPLOADED.value,
              type=click.Choice([s.value for s in FilesSource]),
              help="Where the files came from")
@click.option("--config", "-c", "config_path", default=None,
              type=click.Path(dir_okay=False), help="Pipeline YAML config")
@click.option("--build/--no-build", default=True, help="Decode trace entries after loading")
@click.option("--json", "as_json", is_flag=True, help="Print a JSON summary")
@click.option("--export-zip", default=None, type=click.Path(dir_okay=False),
              help="Write the loaded trace files to a zip archive")
@click.option("--parquet", default=None, type=click.Path(dir_okay=False),
              help="Write built entries to a Parquet file")
def load(
    files: Tuple[str, ...],
    source: str,
    config_path: Optional[str],
    build: bool,
    as_json: bool,
    export_zip: Optional[str],
    parquet: Optional[str],
) -> None:
    """
    Load trace files and print what was found.

    Archives are expanded one level; bugreports are filtered down to
    their trace directories.
    """
    logger = logging.getLogger("tracepipe.cli.load")

    config = PipelineConfig.from_yaml(config_path)
    pipeline = TracePipeline(config=config)
    collector = WarningCollector()

    pipeline.load_files(
        list(files),
        source=FilesSource(source),
        notification_sink=collector,
        progress_sink=LoggingProgressListener(logger),
    )

    if len(pipeline.get_traces()) == 0:
        for warning in collector.warnings:
            click.echo(click.style(f"  ! {warning}", fg="yellow"), err=True)
        click.echo(click.style("No traces loaded.", fg="red"), err=True)
        sys.exit(1)

    if build:
        pipeline.build_traces()

    if export_zip:
        archive = pipeline.make_zip_archive_with_loaded_trace_files()
        Path(export_zip).write_bytes(archive)
        logger.info(f"Wrote {format_size(len(archive))} to {export_zip}")

    if parquet:
        from tracepipe.traces.table import write_parquet
        write_parquet(pipeline.get_traces(), parquet, pipeline.get_timestamp_converter())

    summary = _summarize(pipeline)

    if as_json:
        click.echo(json.dumps(summary, indent=2))
        return

    click.echo(click.style("\n═══ Loaded Traces ═══", fg="cyan", bold=True))
    click.echo(f"{'Type':<30} {'Source':<10} {'Entries':>8}  Files")
    click.echo("─" * 75)
    for item in summary["traces"]:
        entries = item.get("entries", "-")
        click.echo(f"{item['type']:<30} {item['source']:<10} {entries!s:>8}  {', '.join(item['files'])}")

    click.echo(f"\nUTC offset:    {summary['utc_offset']}")
    click.echo(f"Download name: {summary['download_filename']}")

    if summary["warnings"]:
        click.echo(click.style(f"\n{len(summary['warnings'])} warning(s):", fg="yellow"))
        for warning in pipeline.get_warnings():
            click.echo(f"  - {warning}")


@cli.command()
def formats() -> None:
    """
    List the registered format handlers in dispatch order.
    """
    registry = ParserRegistry()

    click.echo(click.style("\n═══ Format Handlers ═══", fg="cyan", bold=True))
    for position, handler in enumerate(registry.handlers, start=1):
        click.echo(f"{position}. {handler.name}")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
