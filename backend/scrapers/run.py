#!/usr/bin/env python3
"""
Manual runner for the price scrapers.

Usage:
    cd backend
    python -m scrapers.run [site_key] [identifier ...]

Examples:
    python -m scrapers.run dm 4005808730735          # Look up one GTIN on dm
    python -m scrapers.run metro 4005808730735 --json
    python -m scrapers.run --list                    # List all scrapers
"""

import asyncio
import argparse
import logging
import json

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

from api.config import settings
from scrapers.manager import ScraperManager, summarize_results
from scrapers.config import get_site_config, get_site_summary


async def run_lookup(site_key: str, identifiers, headless: bool = True, as_json: bool = False):
    """Scrape identifiers on one site and print the results."""
    config = get_site_config(site_key)
    print(f"\n{'='*60}")
    print(f"Looking up {len(identifiers)} identifiers on {config.name}")
    print(f"{'='*60}\n")

    manager = ScraperManager.from_settings(settings)
    manager.options.headless = headless

    async with manager:
        results = await manager.scrape(site_key, identifiers)

    if as_json:
        print(json.dumps({key: result.to_dict() for key, result in results.items()}, indent=2))
    else:
        for identifier, result in results.items():
            if result.error:
                print(f"✗ {identifier}: {result.error}")
            else:
                price = f"€{result.price}" if result.price is not None else "no price"
                print(f"✓ {identifier}: {price}")
                print(f"   Name: {result.product_name or '-'}")
                print(f"   URL: {result.product_url}")

    summary = summarize_results(results)
    print(f"\nSummary: {json.dumps(summary.to_dict())}")


def list_scrapers():
    """List all configured scrapers."""
    print(f"\n{'='*60}")
    print("Available Scrapers")
    print(f"{'='*60}\n")

    for site in get_site_summary():
        status = "✅" if site['enabled'] else "⏳"
        variant = f" (variant of {site['variant_of']})" if site['variant_of'] else ""
        print(f"{status} {site['key']:14} - {site['name']}{variant}")
        print(f"                 Access: {site['type']}")
        print()


async def main():
    parser = argparse.ArgumentParser(description='Look up product prices on retailer sites')
    parser.add_argument('site_key', nargs='?', help='Site key (e.g., dm, mueller, metro)')
    parser.add_argument('identifiers', nargs='*', help='GTIN/EAN codes to look up')
    parser.add_argument('--list', action='store_true', help='List all scrapers')
    parser.add_argument('--show-browser', action='store_true', help='Run the local browser with a window')
    parser.add_argument('--json', action='store_true', help='Print results as JSON')

    args = parser.parse_args()

    if args.list:
        list_scrapers()
        return

    if not args.site_key or not args.identifiers:
        parser.print_help()
        print("\nExample: python -m scrapers.run dm 4005808730735")
        return

    await run_lookup(
        args.site_key.lower(),
        args.identifiers,
        headless=not args.show_browser,
        as_json=args.json,
    )


if __name__ == '__main__':
    asyncio.run(main())
