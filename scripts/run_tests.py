#!/usr/bin/env python3
"""
Run the fleet agent test suites.

Suites map onto the pytest markers declared in pyproject.toml:

    unit         single-component tests          (-m unit)
    integration  supervisor and runtime wiring   (-m integration)
    quick        everything except real-timer runs (-m "not slow")
    all          the whole suite

A --markers expression is AND-ed with the suite's own expression so the
two never shadow each other.

Usage:
    python run_tests.py unit
    python run_tests.py integration --markers "not slow" --no-coverage
    python run_tests.py -k help_request -x
"""

import argparse
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

PROJECT_ROOT = Path(__file__).parent.parent
TESTS_DIR = "src/fleet_agent/tests"

SUITES = {
    "all": (None, TESTS_DIR),
    "unit": ("unit", f"{TESTS_DIR}/unit"),
    "integration": ("integration", f"{TESTS_DIR}/integration"),
    "quick": ("not slow", TESTS_DIR),
}


def combine_markers(*expressions: Optional[str]) -> Optional[str]:
    """AND together the non-empty mark expressions"""
    parts = [f"({expr})" for expr in expressions if expr]
    if not parts:
        return None
    return parts[0][1:-1] if len(parts) == 1 else " and ".join(parts)


def build_command(args) -> List[str]:
    suite_marker, target = SUITES[args.suite]
    cmd = [sys.executable, "-m", "pytest", target, "-vv" if args.verbose else "-q"]

    marker = combine_markers(suite_marker, args.markers)
    if marker:
        cmd.extend(["-m", marker])
    if args.keyword:
        cmd.extend(["-k", args.keyword])
    if args.failfast:
        cmd.append("-x")
    if args.coverage:
        cmd.extend(["--cov=fleet_agent", "--cov-report=term-missing"])
    return cmd


def parse_args():
    parser = argparse.ArgumentParser(
        description="Run fleet agent tests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument("suite", nargs="?", default="all", choices=sorted(SUITES), help="Suite to run (default: all)")
    parser.add_argument("--markers", "-m", help="Extra mark expression, combined with the suite's")
    parser.add_argument("--keyword", "-k", help="Only tests matching this keyword expression")
    parser.add_argument("--failfast", "-x", action="store_true", help="Stop on first failure")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--no-coverage", dest="coverage", action="store_false", help="Skip the coverage report")
    return parser.parse_args()


def main():
    cmd = build_command(parse_args())
    print(f"Running: {' '.join(cmd)}")
    return subprocess.call(cmd, cwd=PROJECT_ROOT)


if __name__ == "__main__":
    sys.exit(main())
