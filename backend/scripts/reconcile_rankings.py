#!/usr/bin/env python3
"""Run the ranking reconciliation job once, outside the HTTP scheduler hook."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from matchpoint.context import build_context  # noqa: E402
from matchpoint.exceptions import DomainException  # noqa: E402
from matchpoint.services import reconcile_rankings  # noqa: E402


async def _run() -> dict:
    context = build_context()
    try:
        report = await reconcile_rankings(context)
    finally:
        await context.dispose()
    return {
        "message": report.message,
        "matchesProcessed": report.matches_processed,
        "playersUpdated": report.players_updated,
        "skippedMatchIds": report.skipped_match_ids,
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--json", action="store_true", help="print the report as JSON"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logging"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        summary = asyncio.run(_run())
    except DomainException as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        print(summary["message"])
        if summary["skippedMatchIds"]:
            print("skipped: " + ", ".join(summary["skippedMatchIds"]))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
