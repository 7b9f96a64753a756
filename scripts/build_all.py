#!/usr/bin/env python
"""
Build pipeline - loads fixtures and runs the test suite.

Usage:
    python scripts/build_all.py
"""
import subprocess
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from commercial_pricing.data.load_fixtures import load_fixtures, save_report


def main():
    print("=" * 60)
    print("COMMERCIAL PRICING BUILD PIPELINE")
    print("=" * 60)
    print()

    print("[1/2] Loading fixtures...")
    _, report = load_fixtures()
    report_path = save_report(report, Path(__file__).parent.parent / 'build' / 'fixture_report.json')

    if report["status"] != "success":
        print("\n❌ BUILD FAILED")
        for error in report["errors"]:
            print(f"  ERROR: {error}")
        sys.exit(1)

    print()
    print("[2/2] Running tests...")
    test_result = subprocess.run(
        [sys.executable, '-m', 'pytest', 'tests', '-v', '--tb=short'],
        cwd=Path(__file__).parent.parent
    )

    if test_result.returncode != 0:
        print("\n❌ TESTS FAILED")
        sys.exit(1)

    print()
    print("=" * 60)
    print("✅ BUILD COMPLETE")
    print("=" * 60)
    print()
    print("Summary:")
    for key, count in report["metrics"].items():
        print(f"  {key}: {count}")
    if report["warnings"]:
        print()
        print("Warnings:")
        for warning in report["warnings"]:
            print(f"  {warning}")
    print()
    print(f"Report saved to: {report_path}")


if __name__ == "__main__":
    main()
