from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# One row of the store table, kept exactly as the endpoint returned it.
Record = dict[str, Any]


@dataclass(frozen=True)
class BatchResult:
    """
    Outcome of one page request.

    A batch is either a success (records, possibly empty) or a failure
    carrying an error description. Failures never hold records and never
    report more data, so a failed lane cannot keep a collection running.
    """

    offset: int
    page_size: int
    records: list[Record] = field(default_factory=list)
    has_more: bool = False
    error: str | None = None
    records_total: int | None = None
    records_filtered: int | None = None

    @classmethod
    def success(
        cls,
        offset: int,
        page_size: int,
        records: list[Record],
        *,
        records_total: int | None = None,
        records_filtered: int | None = None,
    ) -> "BatchResult":
        # An exact-size page means the source may hold more beyond it.
        return cls(
            offset=offset,
            page_size=page_size,
            records=list(records),
            has_more=len(records) == page_size,
            records_total=records_total,
            records_filtered=records_filtered,
        )

    @classmethod
    def empty(cls, offset: int, page_size: int) -> "BatchResult":
        return cls(offset=offset, page_size=page_size)

    @classmethod
    def failure(cls, offset: int, page_size: int, error: str) -> "BatchResult":
        return cls(offset=offset, page_size=page_size, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class CollectionState:
    """Mutable state of one collection run, owned by the round loop."""

    records: list[Record] = field(default_factory=list)
    offset: int = 0
    has_more: bool = True
    rounds: int = 0
    failed_batches: int = 0

    @property
    def fetched(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class CollectionSummary:
    raw_records: int
    unique_records: int
    duplicates_removed: int
    elapsed_seconds: float
    records_per_second: float
    rounds: int
    failed_batches: int
    browsers: list[Any]
    os_types: list[Any]
    output_path: Path | None
    checkpoint_path: Path
