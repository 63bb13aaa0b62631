"""Command-line interface for the stable engine.

Provides CLI entry points for:
- Replaying a scenario file against a local engine
- Running a seeded invariant fuzzing campaign

Both commands write an audit journal under the configured log directory.
"""

from __future__ import annotations

import argparse
import json
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any, Sequence

from pydantic import ValidationError as ModelValidationError

from stable_engine.core.config import load_settings
from stable_engine.core.errors import ConfigError
from stable_engine.core.logging import AuditLogger
from stable_engine.data.constants import PRECISION
from stable_engine.data.models import FuzzReport, ScenarioReport
from stable_engine.simulation.fuzz import FuzzConfig, InvariantHandler
from stable_engine.simulation.scenario import ScenarioRunner, load_scenario


def _format_wad(value: int) -> str:
    """Format an 18-decimal integer for display."""
    return f"{Decimal(value) / Decimal(PRECISION):,.6f}"


def _format_health_factor(value: int | None) -> str:
    if value is None:
        return "-"
    if value >= 2**255:
        return "inf"
    return _format_wad(value)


def _scenario_to_dict(report: ScenarioReport) -> dict[str, Any]:
    """Convert ScenarioReport to JSON-serializable dict."""
    return {
        "name": report.name,
        "all_expectations_met": report.all_expectations_met,
        "total_debt": str(report.total_debt),
        "stable_supply": str(report.stable_supply),
        "steps": [
            {
                "index": o.index,
                "action": o.action,
                "actor": o.actor,
                "success": o.success,
                "error": o.error,
                "expected_error": o.expected_error,
                "message": o.message,
                "health_factor": str(o.health_factor) if o.health_factor is not None else None,
            }
            for o in report.outcomes
        ],
    }


def _fuzz_to_dict(report: FuzzReport) -> dict[str, Any]:
    """Convert FuzzReport to JSON-serializable dict."""
    data = report.model_dump(mode="json")
    data["revert_rate"] = str(report.revert_rate)
    data["passed"] = report.passed
    return data


def _write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    print(f"Results saved to {path}")


def run_replay(args: argparse.Namespace) -> int:
    """Replay a scenario file; exit non-zero if any expectation is unmet."""
    settings = load_settings()
    try:
        scenario = load_scenario(args.scenario)
    except (OSError, ModelValidationError) as e:
        print(f"ERROR: could not load scenario {args.scenario}: {e}", file=sys.stderr)
        return 2

    journal = AuditLogger.create_journal(
        "replay", log_dir=args.log_dir or settings.log_dir, console=args.verbose
    )
    try:
        report = ScenarioRunner(scenario, settings=settings, logger=journal).run()
    finally:
        journal.close()

    print("=" * 60)
    print(f"Scenario: {report.name}")
    print("=" * 60)
    for o in report.outcomes:
        status = "ok" if o.success else o.error
        mark = "✓" if o.matched_expectation else "✗"
        print(
            f"  {mark} [{o.index:>3}] {o.action:<18} {o.actor or '-':<12} "
            f"{status:<24} hf={_format_health_factor(o.health_factor)}"
        )
    print()
    print(f"Total debt:    {_format_wad(report.total_debt)}")
    print(f"Stable supply: {_format_wad(report.stable_supply)}")
    print(f"Journal:       {journal.json_log_path}")

    if args.output_json:
        _write_json(args.output_json, _scenario_to_dict(report))

    return 0 if report.all_expectations_met else 1


def run_fuzz(args: argparse.Namespace) -> int:
    """Run an invariant fuzzing campaign; exit non-zero on any violation."""
    settings = load_settings()
    config = FuzzConfig(
        num_runs=args.runs,
        depth=args.depth,
        base_seed=args.seed,
        num_actors=args.actors,
        price_moves=not args.no_price_moves,
    )

    journal = AuditLogger.create_journal(
        "fuzz", log_dir=args.log_dir or settings.log_dir, console=args.verbose
    )
    try:
        report = InvariantHandler(config, settings=settings, logger=journal).run()
    finally:
        journal.close()

    print("=" * 60)
    print("Invariant fuzzing")
    print("=" * 60)
    print(f"Runs: {report.num_runs} x {report.depth} calls (seed {report.base_seed})")
    print(f"Calls: {report.total_calls} ({report.successful_calls} ok, "
          f"{report.reverted_calls} reverted, {float(report.revert_rate) * 100:.1f}%)")
    print(f"Liquidations: {report.liquidations}")
    if report.mean_final_collateral_ratio is not None:
        print(f"Mean final collateral ratio: {float(report.mean_final_collateral_ratio):.4f}")
    if report.reverts_by_error:
        print("Revert breakdown:")
        for error, count in sorted(report.reverts_by_error.items(), key=lambda x: -x[1]):
            print(f"  {error}: {count}")
    print()
    if report.passed:
        print("All invariants held.")
    else:
        print(f"{len(report.violations)} invariant violations:")
        for violation in report.violations[:20]:
            print(f"  {violation}")

    if args.output_json:
        _write_json(args.output_json, _fuzz_to_dict(report))

    return 0 if report.passed else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stable-engine",
        description="Local tooling for the overcollateralized stable engine",
    )
    parser.add_argument("--log-dir", type=Path, default=None, help="Journal directory")
    parser.add_argument("--verbose", action="store_true", help="Mirror journal to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    replay_parser = subparsers.add_parser("replay", help="Replay a scenario file")
    replay_parser.add_argument("scenario", type=Path, help="Path to scenario JSON")
    replay_parser.add_argument("--output-json", type=Path, help="Write report as JSON")
    replay_parser.set_defaults(func=run_replay)

    fuzz_parser = subparsers.add_parser("fuzz", help="Run invariant fuzzing")
    fuzz_parser.add_argument("--runs", type=int, default=16, help="Seeded runs (default: 16)")
    fuzz_parser.add_argument("--depth", type=int, default=50, help="Calls per run (default: 50)")
    fuzz_parser.add_argument("--seed", type=int, default=42, help="Base random seed (default: 42)")
    fuzz_parser.add_argument("--actors", type=int, default=3, help="Number of actors (default: 3)")
    fuzz_parser.add_argument(
        "--no-price-moves",
        action="store_true",
        help="Keep prices fixed and also check collateral value >= supply",
    )
    fuzz_parser.add_argument("--output-json", type=Path, help="Write report as JSON")
    fuzz_parser.set_defaults(func=run_fuzz)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point with subcommands."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
