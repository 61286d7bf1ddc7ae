#!/usr/bin/env python3
"""
VetDir -- Unified person profile lookup across the school's record systems.

Usage:
  python main.py --global-id 1000123456
  python main.py --legacy-id LEGACY99
  python main.py --global-id X123 --legacy-id LEGACY99
  python main.py --global-id 1000123456 --json
  python main.py --global-id 1000123456 --no-color

Environment variables (or .env):
  PERSON_DB_URL, HR_DB_URL, BADGE_DB_URL, KEY_DB_URL, LOAN_DB_URL
                Per-system database URLs. Unset systems fall back to RECORDS_DB_URL.
  CONTACT_DIRECTORY_URL
                Base URL of the campus contact directory.
  CREDENTIAL_API_URL, CREDENTIAL_USERNAME, CREDENTIAL_PASSWORD
                Credentialing platform GraphQL endpoint and service account.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from cache.token import get_token_cache
from core.config import get_settings
from core.formatter import disable_color, print_terminal, to_json
from core.models import UnifiedProfile
from core.pipeline import build_aggregator
from records.store import RecordsStore


def lookup(global_id: Optional[str], legacy_id: Optional[str]) -> Optional[UnifiedProfile]:
    """Build the profile for one person. Returns None if neither identifier resolves.

    Owns the RecordsStore for the duration of the call. The token cache is
    process-wide and outlives it.
    """
    settings = get_settings()
    records = RecordsStore.from_settings(settings)
    try:
        aggregator = build_aggregator(settings, records, get_token_cache())
        return asyncio.run(aggregator.aggregate(global_id=global_id, legacy_id=legacy_id))
    finally:
        records.close()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="vetdir",
        description="Unified person profile: identity, contact, employment, badges, keys, loans, platform account.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --global-id 1000123456
  python main.py --global-id X123 --legacy-id LEGACY99 --json
        """,
    )
    parser.add_argument(
        "--global-id",
        metavar="ID",
        help="Primary cross-system identifier",
    )
    parser.add_argument(
        "--legacy-id",
        metavar="ID",
        help="Legacy identifier, tried when the global id does not resolve",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output structured JSON",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable ANSI color codes in terminal output",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log source activity to stderr",
    )
    args = parser.parse_args(argv)

    if not (args.global_id or "").strip() and not (args.legacy_id or "").strip():
        parser.print_help()
        return 2

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        stream=sys.stderr,
    )

    # Apply color preference before any output
    if args.no_color:
        disable_color()

    profile = lookup(args.global_id, args.legacy_id)
    if profile is None:
        print("  [!] No person found for the given identifier(s).", file=sys.stderr)
        return 1

    if args.json:
        print(to_json(profile))
    else:
        print_terminal(profile)

    if profile.unavailable_sources:
        print(f"  [!] Unavailable: {', '.join(profile.unavailable_sources)}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
