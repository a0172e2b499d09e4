from __future__ import annotations

import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable
from urllib.parse import parse_qs, urlsplit

import pytest
import requests

from configs_collector.settings import CollectionSettings


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, *, reason: str = "OK", text: str | None = None) -> None:
        self.status_code = status_code
        self.reason = reason
        self._payload = payload
        self._text = text

    def json(self) -> Any:
        if self._text is not None:
            # Same failure mode as requests for a non-JSON body.
            raise requests.exceptions.JSONDecodeError("Expecting value", self._text, 0)
        return self._payload


class FakeStore:
    """
    Stands in for a requests.Session talking to a DataTables endpoint.

    Serves ``rows`` by start/length. ``overrides`` maps a start offset to a
    response (or an exception to raise) for that page only.
    """

    def __init__(
        self,
        rows: list[dict[str, Any]],
        *,
        overrides: dict[int, FakeResponse | Exception] | None = None,
        handler: Callable[[int, int], FakeResponse] | None = None,
    ) -> None:
        self.rows = rows
        self.overrides = overrides or {}
        self.handler = handler
        self.calls: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self.closed = False

    def get(self, url: str, headers: dict[str, str] | None = None, timeout: float | None = None) -> FakeResponse:
        qs = parse_qs(urlsplit(url).query, keep_blank_values=True)
        start = int(qs["start"][0])
        length = int(qs["length"][0])
        with self._lock:
            self.calls.append({"url": url, "start": start, "length": length, "headers": headers, "timeout": timeout})

        override = self.overrides.get(start)
        if isinstance(override, Exception):
            raise override
        if override is not None:
            return override
        if self.handler is not None:
            return self.handler(start, length)

        page = self.rows[start : start + length]
        return FakeResponse(
            payload={"draw": 1, "recordsTotal": len(self.rows), "recordsFiltered": len(self.rows), "data": page}
        )

    @property
    def starts(self) -> list[int]:
        return sorted(c["start"] for c in self.calls)

    def close(self) -> None:
        self.closed = True


def make_rows(n: int, *, first_id: int = 1) -> list[dict[str, Any]]:
    browsers = ["Chrome", "Firefox", "Edge"]
    systems = ["Windows", "Mac OS", "Linux"]
    return [
        {
            "id": first_id + i,
            "browser_type": browsers[i % 3],
            "os_type": systems[i % 3],
            "useragent": f"ua-{first_id + i}",
        }
        for i in range(n)
    ]


@pytest.fixture()
def settings(tmp_path: Path) -> CollectionSettings:
    """Fast settings writing into the test's temporary directory."""
    return replace(
        CollectionSettings(),
        endpoint="https://store.example/configs/store-json?draw=16&search%5Bvalue%5D=&start=0&length=100",
        max_concurrent=2,
        page_size=2,
        max_records=100,
        delay_seconds=0,
        checkpoint_every=5000,
        checkpoint_path=tmp_path / "configs-progress.json",
        output_path=tmp_path / "configs.json",
    )
