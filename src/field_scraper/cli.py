"""Command-line interface for FieldScraper."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from field_scraper.config import CACHE_BACKENDS, Settings
from field_scraper.errors import ScraperError
from field_scraper.orchestrator import ScrapeOrchestrator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="field-scraper",
        description="Fetch a web page and extract fields with CSS selectors or meta tags.",
    )
    parser.add_argument("url", help="URL of the page to scrape")
    parser.add_argument(
        "fields",
        help='Fields as JSON (e.g. \'{"title": "h1"}\') or path to a .json file containing them',
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-attempt connect/read timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=None,
        help="Maximum fetch attempts for transient failures (default: 3)",
    )
    parser.add_argument(
        "--cache-backend",
        choices=CACHE_BACKENDS,
        default=None,
        help="Where results are cached (default: from .env, else memory)",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Disable result caching for this run",
    )
    parser.add_argument(
        "--invalidate",
        action="store_true",
        help="Drop any cached result for this URL and field set before scraping",
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Output file path (default: stdout)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    settings = Settings.from_env()

    # Apply CLI overrides
    overrides = {}
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    if args.max_retries is not None:
        overrides["max_retries"] = args.max_retries
    if args.cache_backend:
        overrides["cache_backend"] = args.cache_backend
    if args.no_cache:
        overrides["cache_backend"] = "none"
    if overrides:
        settings = replace(settings, **overrides)

    # Load fields from file if it looks like a file path
    fields = args.fields
    fields_path = Path(fields)
    if fields_path.suffix == ".json" and fields_path.is_file():
        fields = fields_path.read_text(encoding="utf-8")
        print(f"Loaded fields from {fields_path}", file=sys.stderr)

    orchestrator = ScrapeOrchestrator.from_settings(settings)
    if args.invalidate:
        try:
            orchestrator.invalidate(args.url, fields)
        except ScraperError as exc:
            print(f"Cannot invalidate cache: {exc}", file=sys.stderr)

    result = orchestrator.scrape(args.url, fields)
    output = json.dumps(result.to_response(), indent=2, ensure_ascii=False)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(output)
        print(f"Output written to {args.output}", file=sys.stderr)
    else:
        print(output)

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
