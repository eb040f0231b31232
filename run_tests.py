#!/usr/bin/env python3
"""
Test runner for the Guesty housekeeping sync service.

Unit tests cover single components against the in-memory store and a mocked
Guesty transport; integration tests drive the FastAPI app and the click CLI
through a full ServiceContainer.
"""
import sys
import subprocess
import argparse


def build_command(test_type="all", coverage=True, verbose=False, keyword=None):
    """
    Build the pytest command line.

    Args:
        test_type: Marker to select ('all', 'unit', 'integration')
        coverage: Whether to collect coverage for src/
        verbose: Whether to run with verbose output
        keyword: Optional -k expression
    """
    cmd = [sys.executable, "-m", "pytest"]

    if test_type != "all":
        cmd.extend(["-m", test_type])

    if keyword:
        cmd.extend(["-k", keyword])

    if coverage:
        cmd.extend(["--cov=src", "--cov=config", "--cov-report=term-missing"])

    if verbose:
        cmd.append("-v")

    cmd.append("tests/")
    return cmd


def run_tests(test_type="all", coverage=True, verbose=False, keyword=None):
    cmd = build_command(test_type, coverage, verbose, keyword)

    print(f"Running tests: {' '.join(cmd)}")
    print("=" * 60)

    result = subprocess.run(cmd)
    print("\n" + "=" * 60)
    if result.returncode == 0:
        print("✅ All tests passed!")
    else:
        print(f"❌ Tests failed with exit code {result.returncode}")
    return result.returncode


def main():
    parser = argparse.ArgumentParser(description="Test runner for the Guesty housekeeping sync service")
    parser.add_argument(
        "--type",
        choices=["all", "unit", "integration"],
        default="all",
        help="Marker group to run"
    )
    parser.add_argument(
        "--no-coverage",
        action="store_true",
        help="Run tests without coverage"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Run with verbose output"
    )
    parser.add_argument(
        "-k",
        dest="keyword",
        help="Only run tests matching the given expression"
    )

    args = parser.parse_args()

    return run_tests(
        test_type=args.type,
        coverage=not args.no_coverage,
        verbose=args.verbose,
        keyword=args.keyword,
    )


if __name__ == "__main__":
    sys.exit(main())
