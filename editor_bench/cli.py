"""Editor startup/open latency benchmark.

Usage:
    editor-bench fixtures            # generate test files (skipped if present)
    editor-bench run baseline        # benchmark before a change
    editor-bench run after           # benchmark after a change
    editor-bench compare             # latest baseline vs latest after
"""
from __future__ import annotations

import argparse
import pathlib
import sys
from typing import List, Optional

from . import __version__
from .bench_ab_compare import compare, print_table, warn_backend_mismatch, write_report
from .bench_config import BACKEND_CHOICES, DEFAULT_EXIT_ARGS, BenchConfig, FixtureSizes
from .bench_fixtures import ensure_fixtures
from .bench_suite import run_suite


def common_parser() -> argparse.ArgumentParser:
    defaults = FixtureSizes()
    ap = argparse.ArgumentParser(add_help=False)
    ap.add_argument("--fixture-dir", default=None, help="Fixture directory (default: <base>/.test-files)")
    ap.add_argument("--results-dir", default=None, help="Results root (default: <base>/.benchmark-results)")
    ap.add_argument("--runs", type=int, default=10, help="Timed runs per scenario (default: 10)")
    ap.add_argument("--warmup", type=int, default=2, help="Discarded warmup runs per scenario (default: 2)")
    ap.add_argument("--timeout-s", type=float, default=30.0, help="Per-invocation timeout in seconds (default: 30)")
    ap.add_argument("--backend", choices=BACKEND_CHOICES, default="auto", help="Timing backend (default: auto)")
    ap.add_argument("--target", default=None, help="Editor executable (default: $EDITOR_BENCH_TARGET or nvim)")
    ap.add_argument(
        "--exit-arg",
        action="append",
        dest="exit_args",
        default=None,
        help=f"Argument that makes the target exit after load; repeatable (default: {' '.join(DEFAULT_EXIT_ARGS)})",
    )
    ap.add_argument("--json-target-bytes", type=int, default=defaults.json_target_bytes)
    ap.add_argument("--log-target-bytes", type=int, default=defaults.log_target_bytes)
    ap.add_argument("--code-target-lines", type=int, default=defaults.code_target_lines)
    return ap


def build_parser() -> argparse.ArgumentParser:
    common = common_parser()
    ap = argparse.ArgumentParser(
        prog="editor-bench",
        description="Benchmark editor cold start and file-open latency, and compare labeled runs.",
    )
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = ap.add_subparsers(dest="command", metavar="{fixtures,run,compare}")
    sub.required = True

    p_fix = sub.add_parser("fixtures", parents=[common], help="Generate benchmark fixtures if missing")
    p_fix.add_argument("--force", action="store_true", help="Regenerate even if fixtures exist")

    p_run = sub.add_parser("run", parents=[common], help="Run all scenarios under a label")
    p_run.add_argument("label", help="Run label, e.g. baseline or after")

    p_cmp = sub.add_parser("compare", parents=[common], help="Compare the latest runs of two labels")
    p_cmp.add_argument("--baseline", default="baseline", help="Baseline label (default: baseline)")
    p_cmp.add_argument("--after", default="after", help="After label (default: after)")
    p_cmp.add_argument(
        "--threshold-pct",
        type=float,
        default=5.0,
        help="Minimum delta%% to classify as slower/faster (default: 5.0)",
    )
    p_cmp.add_argument("--out", help="Output JSON path for comparison results")
    p_cmp.add_argument(
        "--require-same-backend",
        action="store_true",
        help="Fail instead of warning when the two runs used different backends",
    )
    return ap


def config_from_args(args: argparse.Namespace) -> BenchConfig:
    overrides = {
        "run_count": args.runs,
        "warmup_count": args.warmup,
        "timeout_s": args.timeout_s,
        "backend": args.backend,
        "sizes": FixtureSizes(
            json_target_bytes=args.json_target_bytes,
            log_target_bytes=args.log_target_bytes,
            code_target_lines=args.code_target_lines,
        ),
    }
    if args.target:
        overrides["target"] = args.target
    if args.exit_args:
        overrides["exit_args"] = list(args.exit_args)
    cfg = BenchConfig.default(**overrides)
    if args.fixture_dir:
        cfg.fixture_dir = pathlib.Path(args.fixture_dir).expanduser().resolve()
    if args.results_dir:
        cfg.results_root = pathlib.Path(args.results_dir).expanduser().resolve()
    return cfg


def cmd_fixtures(args: argparse.Namespace, cfg: BenchConfig) -> int:
    fixtures = ensure_fixtures(cfg.fixture_dir, cfg.sizes, force=args.force)
    print(f"fixture_dir\t{cfg.fixture_dir}")
    print(f"fixtures\t{len(fixtures)}")
    return 0


def cmd_run(args: argparse.Namespace, cfg: BenchConfig) -> int:
    out_dir = run_suite(args.label, cfg)
    print(out_dir)
    return 0


def cmd_compare(args: argparse.Namespace, cfg: BenchConfig) -> int:
    result = compare(
        cfg.results_root,
        args.baseline,
        args.after,
        threshold_pct=args.threshold_pct,
        require_same_backend=args.require_same_backend,
    )
    warn_backend_mismatch(result)
    print_table(result)
    if args.out:
        out_path = pathlib.Path(args.out)
        write_report(result, out_path)
        print(f"\nResults written to: {out_path}")
    return 0


COMMANDS = {
    "fixtures": cmd_fixtures,
    "run": cmd_run,
    "compare": cmd_compare,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = config_from_args(args)
        cfg.validate()
        return COMMANDS[args.command](args, cfg)
    except FileNotFoundError as ex:
        print(f"error: {ex}", file=sys.stderr)
        if args.command == "compare":
            print(f"Run: editor-bench run {args.baseline}   # then make changes", file=sys.stderr)
            print(f"Run: editor-bench run {args.after}      # then compare", file=sys.stderr)
        return 1
    except (OSError, ValueError, RuntimeError) as ex:
        print(f"error: {ex}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
