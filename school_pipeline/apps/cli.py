"""
Command-line interface for the school details pipeline.
Usage examples:
  school-pipeline scrape-details
  school-pipeline scrape-details --force-refresh --deadline-hours 2
  school-pipeline summary
  school-pipeline clear-cache
  school-pipeline scrape-statistics
  school-pipeline debug-school "https://www.bildung.berlin.de/Schulverzeichnis/Schulportrait.aspx?IDSchulzweig=12345" --headful
"""

import json
import sys
from typing import Optional

import click

from ..common.deadline import Deadline
from ..common.logging_utils import configure_logging, get_logger
from ..common.playwright_utils import BrowserError
from ..core.config import Settings
from ..data_collection.scrapers.school_details_scraper import ListingFetchError
from ..data_collection.scrapers.statistics_scraper import StatisticsScrapeError
from ..database.manager import DatabaseError
from .school_details_app import SchoolDetailsApp


def _build_app(ctx: click.Context) -> SchoolDetailsApp:
    factory = ctx.obj.get("app_factory") if ctx.obj else None
    if factory is not None:
        return factory()
    return SchoolDetailsApp(Settings())


@click.group()
@click.pass_context
def cli(ctx: click.Context):
    """Berlin school directory pipeline"""
    ctx.ensure_object(dict)
    configure_logging(service="school-details", level=Settings().log_level)


@cli.command(name="scrape-details")
@click.option("--clear-cache", "clear_cache_first", is_flag=True, help="Delete the content cache before scraping.")
@click.option("--no-cache", is_flag=True, help="Neither read nor write the content cache.")
@click.option("--force-refresh", is_flag=True, help="Ignore cached pages but store fresh ones.")
@click.option("--deadline-hours", type=float, default=None, help="Overall run deadline (default from settings).")
@click.pass_context
def scrape_details(
    ctx: click.Context,
    clear_cache_first: bool,
    no_cache: bool,
    force_refresh: bool,
    deadline_hours: Optional[float],
):
    """Scrape all school detail pages and store them in the database"""
    logger = get_logger("school_pipeline.cli")
    app = _build_app(ctx)
    try:
        if clear_cache_first and not app.clear_cache():
            logger.error("Failed to clear cache")
            sys.exit(1)

        deadline = Deadline(deadline_hours * 3600.0) if deadline_hours is not None else None
        summary = app.scrape_and_store_details(
            force_refresh=force_refresh,
            deadline=deadline,
            use_cache=False if no_cache else None,
        )
    except (ListingFetchError, DatabaseError) as e:
        logger.error(f"School details scrape failed: {e}")
        sys.exit(1)
    finally:
        app.close()

    if summary.errors:
        logger.warning(f"School details scrape completed with {summary.errors} errors")
    else:
        logger.info("School details scrape completed successfully")
    click.echo(json.dumps(summary.as_dict(), indent=2, ensure_ascii=False))


@cli.command()
@click.pass_context
def summary(ctx: click.Context):
    """Print the number of stored schools"""
    app = _build_app(ctx)
    try:
        data = app.get_summary()
    except DatabaseError as e:
        get_logger("school_pipeline.cli").error(f"Failed to read summary: {e}")
        sys.exit(1)
    finally:
        app.close()

    click.echo(f"Total schools:                 {data['total_schools']}")
    click.echo(f"Available after 4th grade:     {data['available_after_4th_grade']}")
    click.echo(f"Not available after 4th grade: {data['not_available_after_4th']}")


@cli.command(name="clear-cache")
@click.pass_context
def clear_cache(ctx: click.Context):
    """Delete the content cache"""
    app = _build_app(ctx)
    if not app.clear_cache():
        click.echo("Failed to clear cache", err=True)
        sys.exit(1)
    click.echo("Cache cleared")


@cli.command(name="debug-school")
@click.argument("url")
@click.option("--headful", is_flag=True, help="Show the browser window.")
@click.pass_context
def debug_school(ctx: click.Context, url: str, headful: bool):
    """Scrape a single school page (no cache) and print the result as JSON"""
    app = _build_app(ctx)
    try:
        record = app.debug_school(url, headless=not headful)
    except BrowserError as e:
        get_logger("school_pipeline.cli").error(f"Failed to scrape {url}: {e}")
        sys.exit(1)

    click.echo(record.model_dump_json(indent=2))
    click.echo(
        f"Tables found: {record.tables_found}/4, available after 4th grade: "
        f"{record.available_after_4th_grade}",
        err=True,
    )


@cli.command(name="scrape-statistics")
@click.pass_context
def scrape_statistics(ctx: click.Context):
    """Scrape the school statistics listing and store it in the database"""
    logger = get_logger("school_pipeline.cli")
    app = _build_app(ctx)
    try:
        run = app.scrape_and_store_statistics()
        stored = app.get_statistics_summary()
    except (StatisticsScrapeError, DatabaseError) as e:
        logger.error(f"Statistics scrape failed: {e}")
        sys.exit(1)
    finally:
        app.close()

    logger.info(f"Statistics scrape completed: {run.persisted} rows stored")
    click.echo(json.dumps({"run": run.as_dict(), "stored": stored}, indent=2, ensure_ascii=False))


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
