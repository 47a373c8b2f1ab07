"""Command-line interface for the price-matrix engine."""

import argparse
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from dotenv import load_dotenv

from superscraper.catalog import Catalog, default_catalog
from superscraper.classifier import AIClassifier
from superscraper.config import DB_PATH, VIETNAM_REGIONS
from superscraper.errors import MissingCredentialsError, StoreSearchError
from superscraper.export import export_report
from superscraper.extraction import ProductExtractor
from superscraper.html_utils import fetch_html
from superscraper.keys import KeyRotator, parse_keys
from superscraper.logging_config import setup_logging
from superscraper.matcher import ProductMatcher
from superscraper.models import MarketplaceType, RawProductRecord, SourceConfig
from superscraper.pipeline import AppStatus, RunState, run_classification, run_extraction
from superscraper.reconcile import KIND_ALL, KIND_COMBO, KIND_RETAIL, filter_groups, reconcile, summarize
from superscraper.shutdown import get_stop_handler
from superscraper.sources import default_sources
from superscraper.stores import StoreSearcher
from superscraper.storage import (
    clear_records,
    init_db,
    load_api_keys,
    load_records,
    load_sources,
    save_api_keys,
    save_records,
    save_sources,
)

__all__ = ["main", "parse_args", "show_stats", "print_report"]

# Load environment variables from .env file at the repo root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_MISSING_KEY = 2


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Cross-marketplace price matrix: extract, classify and compare listings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Configure source 1 with a Shopee shop page and a 10% voucher
  superscraper --set-source 1 --name SHOPEE --voucher 10 --url https://shopee.vn/shop

  # Paste saved page HTML into source 3
  superscraper --set-source 3 --html-file tiktok_shop.html

  # Extract raw listings, then classify them with the fuzzy matcher
  superscraper --crawl --optimize code

  # Show multi-source combos containing "sen"
  superscraper --report --search sen --type combo --duplicates-only

  # Export the matrix and the raw rows
  superscraper --export data/matrix.xlsx

  # Find stores across the southern provinces
  superscraper --search-stores "Nước tẩy trang sen Hậu Giang 140ml" --region SOUTH
        """,
    )

    # Source configuration
    parser.add_argument("--set-source", type=int, metavar="N", help="Edit source N (1-based)")
    parser.add_argument("--name", help="Display name for --set-source")
    parser.add_argument("--voucher", type=float, metavar="PERCENT", help="Voucher percent for --set-source")
    parser.add_argument(
        "--marketplace",
        choices=[m.value for m in MarketplaceType],
        help="Marketplace type for --set-source (default: inferred from the name)",
    )
    parser.add_argument(
        "--url",
        action="append",
        default=[],
        help="Listing URL to add to --set-source (repeatable)",
    )
    parser.add_argument("--html-file", metavar="PATH", help="Saved page HTML for --set-source")
    parser.add_argument(
        "--set-keys",
        metavar="KEYS",
        help="API keys separated by commas or newlines (overrides OPENAI_API_KEY)",
    )

    # Pipeline
    parser.add_argument("--crawl", action="store_true", help="Extract raw products from all sources")
    parser.add_argument(
        "--fetch",
        action="store_true",
        help="With --crawl, download pages for sources that only have URLs",
    )
    parser.add_argument(
        "--optimize",
        choices=["code", "ai"],
        help="Classify records with the fuzzy matcher (code) or the LLM (ai)",
    )

    # Reporting
    parser.add_argument("--report", action="store_true", help="Print the price comparison table")
    parser.add_argument("--search", default="", help="Filter the report by product name")
    parser.add_argument(
        "--type",
        choices=[KIND_ALL, KIND_RETAIL, KIND_COMBO],
        default=KIND_ALL,
        help="Filter the report by single items or combos",
    )
    parser.add_argument(
        "--duplicates-only",
        action="store_true",
        help="Only products sold by more than one source",
    )
    parser.add_argument("--export", metavar="PATH", help="Export to .xlsx or .csv")

    # Store search
    parser.add_argument("--search-stores", metavar="PRODUCT", help="Find stores selling a product")
    parser.add_argument("--location", help="Area for --search-stores")
    parser.add_argument(
        "--region",
        choices=sorted(VIETNAM_REGIONS),
        help="Sweep every province of a region for --search-stores",
    )

    # State and info
    parser.add_argument("--clear", action="store_true", help="Delete all saved records")
    parser.add_argument("--stats", action="store_true", help="Show saved state summary")
    parser.add_argument("--catalog", metavar="PATH", help="Catalog file, one official name per line")
    parser.add_argument("--db", default=DB_PATH, help=f"SQLite state path (default: {DB_PATH})")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    if args.search_stores and not (args.location or args.region):
        parser.error("--search-stores needs --location or --region")
    return args


def _apply_source_edit(sources: List[SourceConfig], args: argparse.Namespace) -> SourceConfig:
    if not 1 <= args.set_source <= len(sources):
        raise ValueError(f"Source must be between 1 and {len(sources)}")
    source = sources[args.set_source - 1]
    if args.name:
        source.name = args.name.strip().upper()
        if not args.marketplace:
            source.marketplace = MarketplaceType.from_name(source.name)
    if args.marketplace:
        source.marketplace = MarketplaceType(args.marketplace)
    if args.voucher is not None:
        source.voucher_percent = min(max(args.voucher, 0.0), 100.0)
    for url in args.url:
        url = url.strip()
        if url and url not in source.urls:
            source.urls = [u for u in source.urls if u.strip()] + [url]
    if args.html_file:
        source.html_hint = Path(args.html_file).read_text(encoding="utf-8")
    return source


def print_report(groups, sources: Sequence[SourceConfig]) -> None:
    """Print the comparison table, one block per product."""
    if not groups:
        print("No products to show.")
        return
    for group in groups:
        gap = f"  gap {group.gap_percent}%" if group.gap_percent is not None else ""
        print(f"\n{group.display_name}")
        print(f"  [{group.bundle_label}] {group.category} / {group.sub_category}{gap}")
        for idx, src in enumerate(sources, start=1):
            price = group.prices.get(idx)
            shown = f"{price:,.0f}đ" if price else "N/A"
            print(f"    {src.name:<12} {shown}")


def show_stats(records: Sequence[RawProductRecord], sources: Sequence[SourceConfig], db_path: str) -> None:
    groups = reconcile(records, sources)
    report = summarize(records, groups, sources)

    print(f"\n{'=' * 50}")
    print(f"State: {db_path}")
    print(f"{'=' * 50}")
    print(f"\nRaw records:      {report.total_raw}")
    print(f"Canonical groups: {report.total_groups}")
    print(f"Average gap:      {report.avg_gap}%")
    print(f"Top category:     {report.top_category or '-'}")

    print("\nSources:")
    for idx, (src, stat) in enumerate(zip(sources, report.source_stats), start=1):
        voucher = f" voucher {src.voucher_percent:g}%" if src.voucher_percent else ""
        mix = ", ".join(f"{k}: {v}" for k, v in stat.bundle_counts.items())
        print(f"  {idx}. {src.name} [{src.marketplace.value}]{voucher} - {stat.total} records ({mix})")
        for url in src.urls:
            print(f"       {url}")
        if src.html_hint:
            print(f"       (HTML input, {len(src.html_hint)} chars)")

    if report.top_gaps:
        print("\nLargest price gaps:")
        for group in report.top_gaps:
            print(f"  {group.gap_percent:>4}%  {group.display_name}")
    print()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for CLI."""
    args = parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    init_db(args.db)
    sources = load_sources(args.db) or default_sources()
    records = load_records(args.db)
    catalog = Catalog.from_file(args.catalog) if args.catalog else default_catalog()
    rotator = KeyRotator(override_source=lambda: load_api_keys(args.db))
    exit_code = EXIT_OK

    if args.clear:
        clear_records(args.db)
        records = []
        print("Cleared saved records.")

    if args.set_keys is not None:
        save_api_keys(args.set_keys, args.db)
        print(f"Saved {len(parse_keys(args.set_keys))} API key(s).")

    if args.set_source is not None:
        try:
            source = _apply_source_edit(sources, args)
        except (ValueError, OSError) as e:
            print(f"Cannot update source {args.set_source}: {e}")
            return EXIT_ERROR
        save_sources(sources, args.db)
        print(f"Source {args.set_source} updated: {source.name} [{source.marketplace.value}]")

    state = RunState()
    handler = get_stop_handler().install()
    handler.register_stop(state.request_stop)
    try:
        if args.crawl:
            extractor = ProductExtractor(rotator, fetch=fetch_html if args.fetch else None)
            records = run_extraction(sources, extractor, state, records)
            save_records(records, args.db)
            if state.status == AppStatus.ERROR:
                print("Extraction halted: no usable API key. Use --set-keys or set OPENAI_API_KEY.")
                return EXIT_MISSING_KEY

        if args.optimize:
            matcher = ProductMatcher(catalog)
            classifier = AIClassifier(rotator, matcher, catalog=catalog) if args.optimize == "ai" else None
            try:
                run_classification(records, args.optimize, classifier, matcher, state)
            except MissingCredentialsError:
                print("No usable API key: records were classified with the fuzzy matcher instead.")
                exit_code = EXIT_MISSING_KEY
            save_records(records, args.db)

        if args.search_stores:
            searcher = StoreSearcher(rotator)
            try:
                if args.region:
                    stores = searcher.search_region(args.search_stores, args.region, state)
                else:
                    stores = searcher.search(args.search_stores, args.location)
            except MissingCredentialsError:
                print("Store search needs an API key. Use --set-keys or set OPENAI_API_KEY.")
                return EXIT_MISSING_KEY
            except StoreSearchError as e:
                print(f"Store search failed: {e}")
                return EXIT_ERROR
            print(f"\nFound {len(stores)} store(s):")
            for store in stores:
                print(f"  - {store.store_name} | {store.address} | {store.phone} | {store.price_estimate}")
    finally:
        handler.uninstall()

    if args.report:
        groups = filter_groups(
            reconcile(records, sources),
            search=args.search,
            kind=args.type,
            duplicates_only=args.duplicates_only,
        )
        print_report(groups, sources)

    if args.export:
        path = export_report(args.export, records, sources)
        print(f"Exported to {path}")

    if args.stats:
        show_stats(records, sources, args.db)

    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
