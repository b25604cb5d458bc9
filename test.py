#!/usr/bin/env python
"""Test runner script for proofmark tests."""

import sys
import subprocess


def main():
    """Run pytest with coverage."""
    cmd = [
        sys.executable,
        "-m",
        "pytest",
        "--cov=proofmark",
        "--cov-report=term-missing",
        "--cov-report=html",
        "-v",
    ]

    print("Running tests with coverage...\n")
    result = subprocess.run(cmd)

    if result.returncode == 0:
        print("\n✓ All tests passed!")
        print("Coverage report: htmlcov/index.html")
    else:
        print("\n✗ Tests failed!")

    return result.returncode


if __name__ == "__main__":
    sys.exit(main())
