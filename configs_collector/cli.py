from __future__ import annotations

import argparse
import sys
import traceback
from pathlib import Path

from .errors import ConfigError
from .pipeline import run_collection
from .settings import load_settings


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="configs_collector", add_help=True)
    sub = p.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Collect every configuration from the store and write JSON.")
    run.add_argument("--config", help="Optional JSON file overriding the default settings.")
    run.add_argument("--url", help="Request template; its start/length parameters are rewritten.")
    run.add_argument("--max-concurrent", type=int, help="Batches in flight per round.")
    run.add_argument("--page-size", type=int, help="Records requested per batch.")
    run.add_argument("--max-records", type=int, help="Stop once this many records are collected.")
    run.add_argument("--delay", type=float, help="Pause between rounds, in seconds.")
    run.add_argument("--checkpoint-every", type=int, help="Save progress when the total is a multiple of this.")
    run.add_argument("--out", help="Final output file (deduplicated records).")
    run.add_argument("--checkpoint", help="Progress file (raw records, overwritten).")
    run.add_argument("--timeout", type=float, help="Per-request timeout in seconds.")
    run.add_argument("--no-manifest", action="store_true", help="Do not write the run manifest.")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    if args.cmd == "run":
        try:
            settings = load_settings(
                Path(args.config).expanduser() if args.config else None,
                endpoint=args.url,
                max_concurrent=args.max_concurrent,
                page_size=args.page_size,
                max_records=args.max_records,
                delay_seconds=args.delay,
                checkpoint_every=args.checkpoint_every,
                output_path=args.out,
                checkpoint_path=args.checkpoint,
                timeout_seconds=args.timeout,
                write_manifest=False if args.no_manifest else None,
            )
        except ConfigError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 2

        print("[start] collecting configurations...")
        try:
            result = run_collection(settings)
        except Exception as exc:
            print(f"Fatal error: {exc}", file=sys.stderr)
            traceback.print_exc(file=sys.stderr)
            return 1
        return int(result.exit_code)

    raise RuntimeError(f"Unsupported command: {args.cmd}")
