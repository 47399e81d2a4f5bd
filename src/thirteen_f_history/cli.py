"""13F History CLI."""

import logging
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import Config, get_config
from .crawl.assembly import QueueStats, run_queue, seed_from_feed, seed_from_index
from .crawl.writer import ChunkedRecordWriter
from .edgar.client import EdgarClient
from .edgar.feed import iter_recent_filings
from .edgar.index import Period, generate_periods, periods_for_last_year
from .errors import SourceFormatError
from .storage.consolidate import consolidate_dataset
from .storage.dataset import DatasetSink, PassReport
from .storage.enrich import enrich_dataset, load_lookup_tables
from .storage.exports import EXPORT_FORMATS, export_tables, export_timeseries

log = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _print_reports(title: str, reports: list[PassReport]) -> None:
    table = Table(title=title)
    table.add_column("Pass", style="cyan")
    table.add_column("Groups", justify="right")
    table.add_column("Written", justify="right")
    table.add_column("Deleted", justify="right")
    table.add_column("Failed", justify="right", style="red")
    for r in reports:
        table.add_row(r.name, str(r.groups), str(r.written), str(r.deleted), str(r.failed))
    Console().print(table)


def _print_crawl_stats(rows: list[tuple[str, QueueStats]]) -> None:
    table = Table(title="Crawl Summary")
    table.add_column("Source", style="cyan")
    table.add_column("Steps", justify="right")
    table.add_column("Completed", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    for source, stats in rows:
        table.add_row(source, str(stats.steps), str(stats.completed), str(stats.failed))
    Console().print(table)


def _writer(config: Config) -> ChunkedRecordWriter:
    return ChunkedRecordWriter(DatasetSink(config.dataset_dir), config.max_record_bytes)


@click.group()
@click.option(
    "--base-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="THIRTEEN_F_HISTORY_HOME",
    help="Project directory holding data/ (default: the repository root)",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, base_dir: Path | None, verbose: bool) -> None:
    """13F History - SEC 13F holdings ingestion and position history."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = get_config(base_dir)
    except ValueError as e:
        raise click.ClickException(str(e))


@cli.command("crawl-index")
@click.option("--year", type=int, help="Year of a single quarter to crawl")
@click.option("--quarter", type=click.IntRange(1, 4), help="Quarter to crawl (with --year)")
@click.option("--since-year", type=int, help="Crawl every quarter from this year to today")
@click.option("--last-year", is_flag=True, help="Crawl the four most recent quarters")
@click.pass_context
def crawl_index(
    ctx: click.Context,
    year: int | None,
    quarter: int | None,
    since_year: int | None,
    last_year: bool,
) -> None:
    """Assemble every 13F filing listed in quarterly master index files."""
    config = ctx.obj["config"]

    if (year is None) != (quarter is None):
        raise click.UsageError("--year and --quarter go together")

    if year is not None:
        periods = [Period(year, quarter)]
    elif last_year:
        periods = periods_for_last_year()
    else:
        periods = generate_periods(start=date(since_year or config.xml_start_year, 1, 1))

    click.echo(f"Crawling {len(periods)} quarter(s): {periods[0]} .. {periods[-1]}")

    writer = _writer(config)
    rows = []
    with EdgarClient(config) as client:
        for period in periods:
            try:
                content = client.get_index_file(period)
                items = seed_from_index(content, config.base_url, config.index_delimiter)
            except (httpx.HTTPError, SourceFormatError) as e:
                log.error("Skipping index of %s: %s", period, e)
                continue

            click.echo(f"{period}: {len(items)} 13F filings")
            rows.append((str(period), run_queue(items, client.fetch, writer)))

    _print_crawl_stats(rows)


@cli.command("crawl-recent")
@click.option("--since-days", default=1, show_default=True, help="How far back to look")
@click.option("--per-page", type=int, help="Feed page size")
@click.option("--max-pages", type=int, help="Maximum feed pages to read")
@click.pass_context
def crawl_recent(
    ctx: click.Context, since_days: int, per_page: int | None, max_pages: int | None
) -> None:
    """Assemble 13F filings announced in the latest-filings feed."""
    config = ctx.obj["config"]
    filed_since = datetime.now(timezone.utc) - timedelta(days=since_days)

    with EdgarClient(config) as client:
        entries = iter_recent_filings(
            client.get_current_feed_page,
            filed_since=filed_since,
            per_page=per_page or config.feed_page_size,
            max_pages=max_pages or config.feed_max_pages,
        )
        try:
            items = seed_from_feed(entries)
        except (httpx.HTTPError, SourceFormatError) as e:
            raise click.ClickException(f"Failed to read the filings feed: {e}")

        click.echo(f"{len(items)} 13F filings since {filed_since:%Y-%m-%d %H:%M} UTC")
        stats = run_queue(items, client.fetch, _writer(config))

    _print_crawl_stats([("feed", stats)])


@cli.command("consolidate")
@click.option("--per-period", is_flag=True, help="Only merge amendments of the same report date")
@click.pass_context
def consolidate(ctx: click.Context, per_period: bool) -> None:
    """Reassemble fragmented records and merge amended filings."""
    config = ctx.obj["config"]
    reports = consolidate_dataset(config.dataset_dir, per_period=per_period)
    _print_reports("Consolidation", reports)


@cli.command("enrich")
@click.option("--cik-cusip", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--cik-names", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def enrich(ctx: click.Context, cik_cusip: Path | None, cik_names: Path | None) -> None:
    """Add CUSIP-8, owning CIKs and company names to every record."""
    config = ctx.obj["config"]
    reports = _enrich(config, cik_cusip, cik_names)
    if reports is None:
        raise click.ClickException(
            f"No lookup files given and none found in {config.lookups_dir}"
        )
    _print_reports("Enrichment", reports)


def _enrich(config: Config, cik_cusip: Path | None, cik_names: Path | None) -> list[PassReport] | None:
    if cik_cusip is None and config.cik_cusip_file.exists():
        cik_cusip = config.cik_cusip_file
    if cik_names is None and config.cik_names_file.exists():
        cik_names = config.cik_names_file
    if cik_cusip is None and cik_names is None:
        return None

    tables = load_lookup_tables(cik_cusip, cik_names)
    return [enrich_dataset(config.dataset_dir, tables)]


@cli.command("export")
@click.option("--format", "fmt", type=click.Choice(EXPORT_FORMATS), default="csv")
@click.option("--output", "-o", type=click.Path(file_okay=False, path_type=Path), help="Output directory")
@click.pass_context
def export(ctx: click.Context, fmt: str, output: Path | None) -> None:
    """Export funds, filings and holdings tables."""
    config = ctx.obj["config"]
    for name, path in export_tables(config.dataset_dir, output or config.exports_dir, fmt).items():
        click.echo(f"Exported {name}: {path}")


@cli.command("timeseries")
@click.option("--format", "fmt", type=click.Choice(EXPORT_FORMATS), default="csv")
@click.option("--output", "-o", type=click.Path(file_okay=False, path_type=Path), help="Output directory")
@click.pass_context
def timeseries(ctx: click.Context, fmt: str, output: Path | None) -> None:
    """Export the report dates and quarter-over-quarter positions."""
    config = ctx.obj["config"]
    for name, path in export_timeseries(config.dataset_dir, output or config.exports_dir, fmt).items():
        click.echo(f"Exported {name}: {path}")


@cli.command("postprocess")
@click.option("--format", "fmt", type=click.Choice(EXPORT_FORMATS), default="csv")
@click.option("--per-period", is_flag=True, help="Only merge amendments of the same report date")
@click.pass_context
def postprocess(ctx: click.Context, fmt: str, per_period: bool) -> None:
    """Consolidate, enrich (when lookup files exist), export and build the time series."""
    config = ctx.obj["config"]

    reports = consolidate_dataset(config.dataset_dir, per_period=per_period)
    enriched = _enrich(config, None, None)
    if enriched is None:
        click.echo(f"No lookup files in {config.lookups_dir}, skipping enrichment")
    else:
        reports.extend(enriched)
    _print_reports("Post-processing", reports)

    paths = export_tables(config.dataset_dir, config.exports_dir, fmt)
    paths.update(export_timeseries(config.dataset_dir, config.exports_dir, fmt))
    for name, path in paths.items():
        click.echo(f"Exported {name}: {path}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
