"""Command line entry point.

Usage:
    navsweep discover
    navsweep all-pages --use-cache
    navsweep colors --env-file staging.env
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from navsweep.config import CrawlerConfig
from navsweep.exceptions import LoginError, NotAuthenticatedError
from navsweep.lib.gui.link_discovery import NavigationLink
from navsweep.runner import QaCrawler, RunReport

_LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

EXIT_OK = 0
EXIT_ERRORS = 1
EXIT_FATAL = 2

MODES = ("discover", "all-pages", "navigation", "requests", "colors", "text")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="navsweep",
        description="Log into a web application, map its navigation and check every page",
    )
    parser.add_argument(
        "mode",
        nargs="?",
        default="all-pages",
        choices=MODES,
        help="What to run (default: all-pages)",
    )
    parser.add_argument(
        "--use-cache",
        action="store_true",
        help="Reuse the saved link map instead of discovering links again",
    )
    parser.add_argument(
        "--env-file",
        help="Load configuration from this .env file (default: ./.env)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def setup_logging(verbose: bool, log_file: Path | None) -> None:
    """Configure console logging and the plain-text run log."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.setLevel(level)
        logging.getLogger().addHandler(handler)


def print_links(console: Console, links: list[NavigationLink]) -> None:
    table = Table(title=f"Discovered links ({len(links)})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Text", style="cyan")
    table.add_column("Href", style="green")
    for index, link in enumerate(links, start=1):
        table.add_row(str(index), link.text, link.href)
    console.print(table)


def print_summary(console: Console, report: RunReport) -> None:
    results = report.results
    if results is None:
        return

    table = Table(title="Run summary")
    table.add_column("Category")
    table.add_column("Errors", justify="right")
    for category, count in results.counts.items():
        style = "red" if count else "green"
        table.add_row(category.replace("_", " "), f"[{style}]{count}[/{style}]")
    table.add_row("[bold]total[/bold]", f"[bold]{results.total_errors}[/bold]")
    console.print(table)
    console.print(f"Pages opened: {results.visited}/{len(results.outcomes)}")

    for outcome in results.failures:
        console.print(f"[red]Failed:[/red] {outcome.link.text} ({outcome.link.href}): {outcome.error}")
    for name, lines in report.check_reports.items():
        if lines:
            console.print(f"\n[bold]{name}[/bold]")
            for line in lines:
                console.print(f"  {line}")


def run(args: argparse.Namespace, config: CrawlerConfig, console: Console) -> int:
    crawler = QaCrawler(config)
    if args.mode == "discover":
        links = crawler.discover_only()
        print_links(console, links)
        return EXIT_OK

    if args.mode == "all-pages":
        report = crawler.full_crawl(use_cache=args.use_cache)
    elif args.mode == "navigation":
        report = crawler.navigation_only(use_cache=args.use_cache)
    else:
        report = crawler.single_check(args.mode, use_cache=True)

    print_summary(console, report)
    return EXIT_ERRORS if report.total_errors else EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config = CrawlerConfig.from_env(env_file=args.env_file)
    setup_logging(args.verbose, config.log_file)
    console = Console()

    _LOGGER.info("navsweep %s against %s", args.mode, config.target_url)
    try:
        code = run(args, config, console)
    except (LoginError, NotAuthenticatedError) as e:
        _LOGGER.error("Fatal: %s", e)
        code = EXIT_FATAL
    except KeyboardInterrupt:
        _LOGGER.warning("Interrupted")
        code = EXIT_FATAL

    if config.log_file is not None:
        _LOGGER.info("Run log saved to %s", config.log_file)
    return code


if __name__ == "__main__":
    sys.exit(main())
