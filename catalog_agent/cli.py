from __future__ import annotations
import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Tuple

from dotenv import load_dotenv

from .agents.coordinator import CoordinatorAgent
from .config import Settings, load_settings
from .errors import CatalogAgentError
from .models import CatalogRecord, HarvestSummary
from .utils.browser import BrowserSession
from .utils.logging import RunLogger


def build_parser() -> argparse.ArgumentParser:
    """
    Builds and returns an argument parser for the command-line interface.

    Returns:
        argparse.ArgumentParser: An argument parser configured with all the available command-line options.
    """
    p = argparse.ArgumentParser(
        prog="catalog-agent",
        description="Download the currently published catalogs and write a metadata snapshot",
    )
    p.add_argument("--url", help="Catalog listing page (default from env CATALOG_PAGE_URL)")
    p.add_argument("--out", "-o", help="Data root directory (default from env CATALOG_DATA_ROOT, else ./data)")
    p.add_argument("--nav-timeout", type=float, help="Seconds allowed for the page to load (default: 60)")
    p.add_argument("--selector-timeout", type=float, help="Seconds allowed for catalog entries to appear (default: 60)")
    p.add_argument("--download-timeout", type=float,
                   help="Seconds allowed per catalog download, 0 for no bound (default: 120)")
    p.add_argument("--max-concurrency", type=int,
                   help="Maximum parallel downloads, 0 for one per catalog (default: 0)")
    p.add_argument("--headful", action="store_true", help="Show the browser window")
    p.add_argument("--debug", action="store_true", help="Write DEBUG lines to the run log")
    return p


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Environment settings with command-line overrides applied."""
    s = load_settings()
    if args.url:
        s.page_url = args.url
    if args.out:
        s.data_root = Path(args.out).expanduser().resolve()
    if args.nav_timeout is not None:
        s.navigation_timeout = args.nav_timeout
    if args.selector_timeout is not None:
        s.selector_timeout = args.selector_timeout
    if args.download_timeout is not None:
        s.download_timeout = args.download_timeout
    if args.max_concurrency is not None:
        s.max_concurrency = max(0, args.max_concurrency)
    if args.headful:
        s.headless = False
    if args.debug:
        s.debug = True
    return s


async def harvest(settings: Settings) -> Tuple[List[CatalogRecord], HarvestSummary]:
    """Starts the browser, runs one harvest, and shuts everything down again."""
    logger = RunLogger(settings.data_root, debug=settings.debug)
    async with BrowserSession(headless=settings.headless, logger=logger) as browser:
        async with CoordinatorAgent(browser=browser, settings=settings, logger=logger) as coordinator:
            return await coordinator.run_with_summary()


def main(argv: List[str] | None = None) -> int:
    """
    Parses command-line arguments, runs one harvest, and prints a summary.

    Returns 0 when the run completed (even if some downloads failed), 1 on a fatal error.
    """
    load_dotenv(override=False)
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)

    try:
        records, summary = asyncio.run(harvest(settings))
    except (CatalogAgentError, OSError) as e:
        print(f"✖ Harvest failed: {e}", file=sys.stderr)
        return 1

    for r in records:
        mark = "✓" if r.local_path else "✗"
        print(f"  {mark} {r.title or '(untitled)'} [{r.valid_from} → {r.valid_until}]")
    print(
        f"✅ Finished. {summary.downloaded}/{summary.found} catalogs downloaded "
        f"to {settings.catalogs_dir}; metadata in {summary.snapshot}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
