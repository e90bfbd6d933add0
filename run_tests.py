#!/usr/bin/env python
"""Test runner for FreeOCR."""

import argparse
import subprocess
import sys


def main():
    """Run the relay and offline cache test suites."""
    parser = argparse.ArgumentParser(description="Run FreeOCR tests")
    parser.add_argument("--unit", action="store_true", help="Decoder, relay and cache tests only")
    parser.add_argument("--integration", action="store_true", help="HTTP app tests only")
    parser.add_argument("--coverage", action="store_true", help="Report coverage for the freeocr package")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("-k", dest="keyword", help="Only run tests matching this expression")

    args = parser.parse_args()

    cmd = ["pytest", "tests"]

    if args.unit and not args.integration:
        cmd.extend(["-m", "unit"])
    elif args.integration and not args.unit:
        cmd.extend(["-m", "integration"])

    if args.keyword:
        cmd.extend(["-k", args.keyword])

    if args.verbose:
        cmd.append("-vv")

    if args.coverage:
        cmd.extend([
            "--cov=freeocr",
            "--cov-report=term-missing",
        ])

    print(f"Running: {' '.join(cmd)}")
    return subprocess.run(cmd).returncode


if __name__ == "__main__":
    sys.exit(main())
