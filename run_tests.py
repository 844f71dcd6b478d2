#!/usr/bin/env python3
"""
Test runner script for the weather relay.

Wraps pytest with the unit/integration split and optional coverage.
"""

import argparse
import os
import subprocess
import sys
from pathlib import Path


SOURCE_MODULES = (
    'main',
    'weather_providers',
    'weather_models',
    'weather_units',
    'weather_settings',
    'geocoding_cache',
    'location_resolver',
    'live_mode',
)


def run_command(cmd, description):
    """Run a command and return success status"""
    print(f"\n🚀 {description}")
    print(f"Command: {' '.join(cmd)}")
    print("-" * 50)

    result = subprocess.run(cmd, capture_output=False)
    success = result.returncode == 0

    if success:
        print(f"✅ {description} - SUCCESS")
    else:
        print(f"❌ {description} - FAILED")

    return success


def build_pytest_command(args):
    cmd = [sys.executable, '-m', 'pytest']

    if args.unit:
        cmd.append('tests/unit')
    elif args.integration:
        cmd.append('tests/integration')
    else:
        cmd.append('tests')

    if args.fast:
        cmd.extend(['-m', 'not slow'])
    if args.pattern:
        cmd.extend(['-k', args.pattern])
    if args.verbose:
        cmd.append('-v')
    if args.coverage:
        for module in SOURCE_MODULES:
            cmd.append(f'--cov={module}')
        cmd.extend(['--cov-report=term-missing', '--cov-report=html'])

    return cmd


def main():
    parser = argparse.ArgumentParser(description='Run weather relay tests')
    parser.add_argument('--unit', action='store_true', help='Run only unit tests')
    parser.add_argument('--integration', action='store_true', help='Run only integration tests')
    parser.add_argument('--fast', action='store_true', help='Skip slow tests')
    parser.add_argument('--coverage', action='store_true', help='Generate coverage report')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose output')
    parser.add_argument('--pattern', '-k', help='Run tests matching pattern')
    parser.add_argument('--install', action='store_true', help='Install test dependencies first')

    args = parser.parse_args()

    # Change to project directory
    os.chdir(Path(__file__).parent)

    if args.install:
        success = run_command(
            [sys.executable, '-m', 'pip', 'install', '-e', '.[test]'],
            "Installing test dependencies",
        )
        if not success:
            return 1

    success = run_command(build_pytest_command(args), "Running tests")

    if success:
        print("\n🎉 All tests passed!")
        if args.coverage:
            print("📈 Coverage report generated at: htmlcov/index.html")
    else:
        print("\n💥 Some tests failed!")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
