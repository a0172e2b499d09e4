from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import pandas as pd
import requests

from .collector import collect_state
from .models import CollectionSummary, Record
from .settings import CollectionSettings
from .utils import Timer, environment_info, sha256_text, utc_now_iso, write_json


@dataclass(frozen=True)
class PipelineResult:
    ok: bool
    exit_code: int
    summary: CollectionSummary | None


def dedupe_by_id(records: Iterable[Record]) -> list[Record]:
    """Keep the first record seen for each id, in collection order."""
    seen: set[Any] = set()
    unique: list[Record] = []
    for record in records:
        # Non-object rows count as id-less; True and 1 stay distinct ids.
        value = record.get("id") if isinstance(record, dict) else None
        key = (type(value) is bool, value)
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def distinct_values(records: list[Record], field: str) -> list[Any]:
    """Distinct non-empty values of one column, in order of first appearance."""
    df = pd.DataFrame([r for r in records if isinstance(r, dict)])
    if df.empty or field not in df.columns:
        return []
    values = df[field].dropna()
    # falsy values (empty string, 0, False) are not reported
    values = values[values.map(bool).astype(bool)]
    return values.astype(str).unique().tolist()


def manifest_path_for(output_path: Path) -> Path:
    return output_path.with_name(f"{output_path.stem}.manifest.json")


def _print_summary(summary: CollectionSummary) -> None:
    print(f"[done] completed in {summary.elapsed_seconds:.2f}s")
    print(f"[done] rate: {summary.records_per_second:.2f} records/second")
    print(f"[ok] collected {summary.unique_records} unique configurations")
    print(
        f"[ok] saved to {summary.output_path} "
        f"({summary.duplicates_removed} duplicates removed)"
    )
    print(f"[stats] browsers: {', '.join(summary.browsers)}")
    print(f"[stats] os types: {', '.join(summary.os_types)}")


def run_collection(
    settings: CollectionSettings,
    *,
    session: requests.Session | None = None,
) -> PipelineResult:
    started_at = utc_now_iso()
    t = Timer.start_new()

    state = asyncio.run(collect_state(settings, session=session))

    elapsed = t.elapsed_seconds()
    rate = state.fetched / elapsed if elapsed > 0 else 0.0

    if state.fetched == 0:
        print("No configurations were collected.", file=sys.stderr)
        return PipelineResult(ok=False, exit_code=1, summary=None)

    unique = dedupe_by_id(state.records)
    write_json(settings.output_path, unique)

    summary = CollectionSummary(
        raw_records=state.fetched,
        unique_records=len(unique),
        duplicates_removed=state.fetched - len(unique),
        elapsed_seconds=elapsed,
        records_per_second=rate,
        rounds=state.rounds,
        failed_batches=state.failed_batches,
        browsers=distinct_values(unique, "browser_type"),
        os_types=distinct_values(unique, "os_type"),
        output_path=settings.output_path,
        checkpoint_path=settings.checkpoint_path,
    )
    _print_summary(summary)

    if settings.write_manifest:
        manifest = {
            "started_at": started_at,
            "ended_at": utc_now_iso(),
            "elapsed_ms": t.elapsed_ms(),
            "endpoint_sha256": sha256_text(settings.endpoint),
            "environment": environment_info(),
            "settings": settings.to_dict(),
            "summary": {
                "raw_records": summary.raw_records,
                "unique_records": summary.unique_records,
                "duplicates_removed": summary.duplicates_removed,
                "rounds": summary.rounds,
                "failed_batches": summary.failed_batches,
                "records_per_second": round(summary.records_per_second, 2),
                "browsers": summary.browsers,
                "os_types": summary.os_types,
            },
        }
        write_json(manifest_path_for(settings.output_path), manifest)

    return PipelineResult(ok=True, exit_code=0, summary=summary)
