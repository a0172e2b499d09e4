from __future__ import annotations

import asyncio
import functools
import sys
from concurrent.futures import ThreadPoolExecutor

import requests

from .fetcher import build_session, fetch_batch
from .models import BatchResult, CollectionState, Record
from .settings import CollectionSettings
from .utils import write_json


def plan_lanes(offset: int, max_concurrent: int, page_size: int, max_records: int) -> list[int]:
    """Start offsets for one round; lanes at or beyond the cap are not issued."""
    lanes: list[int] = []
    for i in range(max_concurrent):
        start = offset + i * page_size
        if start >= max_records:
            break
        lanes.append(start)
    return lanes


async def _run_round(
    executor: ThreadPoolExecutor,
    session: requests.Session,
    settings: CollectionSettings,
    lanes: list[int],
) -> list[BatchResult]:
    loop = asyncio.get_running_loop()
    tasks = [
        loop.run_in_executor(
            executor,
            functools.partial(
                fetch_batch,
                session,
                settings.endpoint,
                start,
                settings.page_size,
                timeout=settings.timeout_seconds,
            ),
        )
        for start in lanes
    ]
    # gather keeps lane order, whatever order the requests finish in.
    return list(await asyncio.gather(*tasks))


def _absorb(state: CollectionState, results: list[BatchResult]) -> tuple[int, bool]:
    round_count = 0
    any_more = False
    for result in results:
        if result.error:
            state.failed_batches += 1
            print(f"[error] batch {result.offset}: {result.error}", file=sys.stderr)
            continue
        if result.records:
            state.records.extend(result.records)
            round_count += len(result.records)
            if result.records_total is not None:
                print(
                    f"[fetch] start={result.offset} got={len(result.records)} "
                    f"total={result.records_total} filtered={result.records_filtered}"
                )
        any_more = any_more or result.has_more
    return round_count, any_more


async def collect_state(
    settings: CollectionSettings,
    *,
    session: requests.Session | None = None,
) -> CollectionState:
    """
    Page through the endpoint in rounds of concurrent batches.

    Each round issues up to ``max_concurrent`` pages, waits for all of them,
    appends their records in lane order and then advances the offset by a
    full window, even where lanes came back short or failed. Collection
    stops once no lane reports more data or the record cap is reached.
    """
    state = CollectionState()
    own_session = session is None
    if session is None:
        session = build_session(settings.max_concurrent)
    # One worker per lane so a whole round is in flight at once.
    executor = ThreadPoolExecutor(max_workers=settings.max_concurrent, thread_name_prefix="lane")

    print(
        f"[start] max_concurrent={settings.max_concurrent} page_size={settings.page_size} "
        f"max_records={settings.max_records} delay={settings.delay_seconds}s"
    )
    try:
        while state.has_more and state.fetched < settings.max_records:
            lanes = plan_lanes(
                state.offset, settings.max_concurrent, settings.page_size, settings.max_records
            )
            results = await _run_round(executor, session, settings, lanes)
            round_count, any_more = _absorb(state, results)

            state.rounds += 1
            state.offset += settings.max_concurrent * settings.page_size
            state.has_more = any_more and state.fetched < settings.max_records
            print(f"[round] {state.rounds}: fetched {round_count} records, total {state.fetched}")

            if state.fetched % settings.checkpoint_every == 0 or not state.has_more:
                write_json(settings.checkpoint_path, state.records)
                print(f"[checkpoint] saved {state.fetched} records -> {settings.checkpoint_path}")

            if state.has_more:
                await asyncio.sleep(settings.delay_seconds)
    finally:
        executor.shutdown(wait=True)
        if own_session:
            session.close()

    return state


async def collect(
    settings: CollectionSettings,
    *,
    session: requests.Session | None = None,
) -> list[Record]:
    state = await collect_state(settings, session=session)
    return state.records
