#!/usr/bin/env python
"""
One scheduler tick against the fixture store.

Expires Offers past their validity, then runs every scheduled Pricing
Policy that is due at the given instant.

Usage:
    python scripts/run_scheduled.py [--at 2026-06-01T06:00:00Z]
"""
import argparse
import sys
from pathlib import Path

import pandas as pd

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from commercial_pricing.api.state import CommercialContext
from commercial_pricing.data.load_fixtures import load_fixtures


def main():
    parser = argparse.ArgumentParser(description="Run due scheduled pricing policies")
    parser.add_argument('--at', help="Instant to run at (ISO 8601, defaults to now)")
    args = parser.parse_args()

    store, report = load_fixtures()
    if report["status"] != "success":
        print("\n❌ FIXTURE LOAD FAILED")
        for error in report["errors"]:
            print(f"  ERROR: {error}")
        sys.exit(1)

    ctx = CommercialContext.from_store(store, report=report)
    at = pd.Timestamp(args.at).to_pydatetime() if args.at else None
    run = ctx.scheduler.run(at)

    print(f"Scheduler tick at {run.at.isoformat()}")
    print(f"  {run.summary()}")
    for offer in run.expired_offers:
        print(f"  Expired offer: {offer.id} ({offer.name})")
    for result in run.executed:
        print(f"  {result.policy.id}: {result.log_summary}")
        frame = result.changes_frame()
        if not frame.empty:
            print(frame.to_string(index=False))
    for failure in run.failures:
        print(f"  FAILED {failure.policy_id}: {failure.log_summary}")


if __name__ == "__main__":
    main()
