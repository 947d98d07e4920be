#!/usr/bin/env python3
"""
Command-line entry point for one ingestion run.

Environment variables (SCRAPER_SOURCE, SCRAPE_MAX_PAGES, ...) provide the
defaults; flags override them for a single run.

Usage:
    vehicle-scraper automart --max-pages 5 --no-completed
    vehicle-scraper onbid
    vehicle-scraper --list
"""

import argparse
import asyncio
import logging
import re
import sys
from pathlib import Path
from typing import List, Optional

from .base import AdapterConfig, Colors
from .errors import UnknownSourceError
from .manager import ScraperManager
from .settings import Settings


class ColorStripFormatter(logging.Formatter):
    """Formatter that strips ANSI color codes from log messages."""
    ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

    def format(self, record):
        message = super().format(record)
        return self.ansi_escape.sub('', message)


def setup_logging(settings: Settings) -> None:
    """Console handler with colors; optional file handler without them."""
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(settings.log_format))
    handlers: List[logging.Handler] = [console_handler]

    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
        file_handler.setFormatter(ColorStripFormatter(settings.log_format))
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        handlers=handlers,
        force=True  # Override any existing configuration
    )
    # httpx logs every request at INFO
    logging.getLogger('httpx').setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape vehicle auctions and submit them to the backend.")
    parser.add_argument("source", nargs="?", help="Source key (automart, court_auction, onbid); defaults to SCRAPER_SOURCE")
    parser.add_argument("--max-pages", type=int, help="Pagination ceiling")
    parser.add_argument("--no-completed", action="store_true", help="Skip the completed-auctions listing")
    parser.add_argument("--no-details", action="store_true", help="Skip detail page enrichment")
    parser.add_argument("--inspections", action="store_true", help="Fetch and parse inspection reports")
    parser.add_argument("--output-dir", help="Directory for the JSON backups")
    parser.add_argument("--list", action="store_true", help="List configured sources and exit")
    return parser


def build_config(args: argparse.Namespace, settings: Settings) -> AdapterConfig:
    """Settings-derived adapter options with CLI overrides applied."""
    config = AdapterConfig.from_settings(settings)
    if args.max_pages is not None:
        config.max_pages = args.max_pages
    if args.no_completed:
        config.include_completed = False
    if args.no_details:
        config.fetch_detail_pages = False
    if args.inspections:
        config.fetch_inspection_reports = True
    return config


async def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    """
    Run the scraper.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)
    settings = settings or Settings()
    if args.output_dir:
        settings.output_dir = Path(args.output_dir)

    manager = ScraperManager(settings)

    if args.list:
        for source in manager.list_sources():
            print(f"{source['key']:<15} {source['name']:<10} {source['type']:<11} {source['url']}")
        return 0

    setup_logging(settings)
    logger = logging.getLogger(__name__)

    source = args.source or settings.scraper_source
    try:
        result = await manager.run(source, build_config(args, settings))
    except UnknownSourceError as e:
        logger.error(Colors.red(str(e)))
        return 1

    return result.exit_code


def cli():
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
