"""Test runner script for agy-top.

Usage: python run_tests.py [unit|integration|tests|type|lint|all]
"""

import subprocess
import sys
from pathlib import Path
from typing import Callable, Dict, List

ROOT = Path(__file__).parent
PACKAGES = ["config", "models", "routers", "services", "ui", "utils", "main.py"]


def _run(args: List[str]) -> bool:
    return subprocess.run([sys.executable, "-m", *args], cwd=ROOT).returncode == 0


def run_unit_tests() -> bool:
    """Run unit tests with coverage."""
    print("Running unit tests...")
    coverage = [f"--cov={name.removesuffix('.py')}" for name in PACKAGES]
    return _run(["pytest", "tests/unit/", "-v", "--tb=short", *coverage, "--cov-report=term-missing"])


def run_integration_tests() -> bool:
    """Run integration tests (binds a local callback port)."""
    print("Running integration tests...")
    return _run(["pytest", "tests/integration/", "-v", "--tb=short"])


def run_all_tests() -> bool:
    print("Running all tests...")
    return _run(["pytest", "tests/", "-v", "--tb=short"])


def run_type_check() -> bool:
    print("Running type checking...")
    return _run(["mypy", *PACKAGES, "--ignore-missing-imports"])


def run_linting() -> bool:
    print("Running linting...")
    flake8_ok = _run(["flake8", *PACKAGES, "tests/", "--max-line-length=120"])
    black_ok = _run(["black", "--check", "--diff", "--line-length=120", *PACKAGES, "tests/"])
    return flake8_ok and black_ok


COMMANDS: Dict[str, Callable[[], bool]] = {
    "unit": run_unit_tests,
    "integration": run_integration_tests,
    "tests": run_all_tests,
    "type": run_type_check,
    "lint": run_linting,
}


def run_all_checks() -> int:
    """Run all quality checks and print a summary."""
    print("=" * 60)
    print("Running complete test and quality check suite")
    print("=" * 60)

    checks = [
        ("Type Checking", run_type_check),
        ("Code Linting", run_linting),
        ("Unit Tests", run_unit_tests),
        ("Integration Tests", run_integration_tests),
    ]

    results = {}
    for name, check_func in checks:
        print(f"\n--- {name} ---")
        results[name] = check_func()

    print("\n" + "=" * 60)
    print("SUMMARY")
    print("=" * 60)
    for name, passed in results.items():
        print(f"{name}: {'PASSED' if passed else 'FAILED'}")

    if all(results.values()):
        print("\nAll checks passed!")
        return 0
    print("\nSome checks failed. Please fix the issues above.")
    return 1


if __name__ == "__main__":
    command = sys.argv[1] if len(sys.argv) > 1 else "all"
    if command == "all":
        sys.exit(run_all_checks())
    if command not in COMMANDS:
        print(f"Unknown command: {command}")
        sys.exit(1)
    sys.exit(0 if COMMANDS[command]() else 1)
