#!/usr/bin/env python3
"""Print the credit-score table and hotspot summary for one company.

    python -m lastmile.scripts.reputation_report --company "Acme" --limit 20
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(PROJECT_ROOT / ".env")

from lastmile.database import SessionLocal
from lastmile.models.account import CompanyProfile
from lastmile.services.driver_registry import find_company_profile
from lastmile.services.reputation import address_credit_scores, company_delivery_stats, delivery_hotspots


def _print_report(profile: CompanyProfile, stats: dict, rows: list[dict], hotspots: dict, limit: int) -> None:
    print(f"\nREPUTATION REPORT | {profile.company_name} (profile {profile.id})")
    print("-" * 64)
    print(f"Deliveries:        {stats['totalDeliveries']}")
    print(f"Successful:        {stats['successfulDeliveries']}")
    print(f"Failed:            {stats['failedDeliveries']}")
    print(f"Success rate:      {stats['successRate']:.1f}%")
    print(f"Avg location:      {stats['avgLocationScore']:.1f} / 5")
    print("-" * 64)

    if rows:
        print(f"{'Digital ID':<12}{'Total':>7}{'OK':>6}{'Fail':>6}{'Loc':>6}{'Score':>7}  Address")
        for row in rows[:limit]:
            print(
                f"{row['addressDigitalId']:<12}"
                f"{row['totalDeliveries']:>7}"
                f"{row['successfulDeliveries']:>6}"
                f"{row['failedDeliveries']:>6}"
                f"{row['avgLocationScore']:>6.1f}"
                f"{row['creditScore']:>7}  "
                f"{(row['textAddress'] or '-')[:40]}"
            )
        if len(rows) > limit:
            print(f"... {len(rows) - limit} more address(es)")
    else:
        print("No driver feedback recorded yet.")

    summary = hotspots["summary"]
    print("-" * 64)
    print(f"Hotspots: {summary['uniqueAddresses']} plotted, {summary['unplottedAddresses']} without coordinates")
    print(
        f"Lookups {summary['totalLookups']} | completed {summary['totalCompleted']} | "
        f"failed {summary['totalFailed']} | success {summary['avgSuccessRate']:.1f}%"
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Company delivery reputation report")
    parser.add_argument("--company", required=True, help="Company name (case-insensitive)")
    parser.add_argument("--limit", type=int, default=25, help="Max address rows to print")
    args = parser.parse_args()

    with SessionLocal() as db:
        profile = find_company_profile(db, args.company)
        if not profile:
            print(f"No company profile named {args.company!r}.", file=sys.stderr)
            return 1
        stats = company_delivery_stats(db, profile)
        rows = address_credit_scores(db, profile)
        hotspots = delivery_hotspots(db, profile)

    _print_report(profile, stats, rows, hotspots, max(args.limit, 0))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
