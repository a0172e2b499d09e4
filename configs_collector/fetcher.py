from __future__ import annotations

from typing import Any
from urllib.parse import unquote_plus, urlsplit, urlunsplit

import requests
from requests.adapters import HTTPAdapter

from .errors import FetchError
from .models import BatchResult

OFFSET_PARAM = "start"
LENGTH_PARAM = "length"

DEFAULT_HEADERS = {
    "accept": "application/json,text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "accept-language": "en-US,en;q=0.9,vi;q=0.8",
    "cache-control": "no-cache",
    "user-agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36"
    ),
    "sec-ch-ua": '"Chromium";v="130", "Google Chrome";v="130", "Not?A_Brand";v="99"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-origin",
}


def build_session(pool_size: int = 10) -> requests.Session:
    """Session whose connection pool can serve every lane of a round."""
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=1, pool_maxsize=max(pool_size, 1))
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def build_batch_url(template: str, offset: int, page_size: int) -> str:
    """
    Rewrite the pagination parameters of a request template.

    Every other query parameter is kept byte-for-byte and in order; missing
    pagination parameters are appended.
    """
    if offset < 0:
        raise ValueError(f"offset must be >= 0 (got {offset})")
    if page_size <= 0:
        raise ValueError(f"page_size must be > 0 (got {page_size})")

    wanted = {OFFSET_PARAM: str(offset), LENGTH_PARAM: str(page_size)}
    parts = urlsplit(template)
    out: list[str] = []
    seen: set[str] = set()
    for item in parts.query.split("&") if parts.query else []:
        name = unquote_plus(item.split("=", 1)[0])
        if name in wanted:
            if name in seen:
                continue
            seen.add(name)
            out.append(f"{name}={wanted[name]}")
        else:
            out.append(item)
    for name, value in wanted.items():
        if name not in seen:
            out.append(f"{name}={value}")

    return urlunsplit((parts.scheme, parts.netloc, parts.path, "&".join(out), parts.fragment))


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _get_page(
    session: requests.Session,
    url: str,
    timeout: float | None,
) -> Any:
    try:
        resp = session.get(url, headers=DEFAULT_HEADERS, timeout=timeout)
    except requests.RequestException as exc:
        raise FetchError(code="NETWORK_ERROR", message=f"{type(exc).__name__}: {exc}") from exc

    if resp.status_code >= 400:
        raise FetchError(
            code="HTTP_ERROR",
            message=f"HTTP {resp.status_code}: {resp.reason}",
            http_status=resp.status_code,
        )

    try:
        return resp.json()
    except ValueError as exc:
        raise FetchError(
            code="PARSE_ERROR",
            message=f"Response is not valid JSON ({exc})",
            http_status=resp.status_code,
        ) from exc


def fetch_batch(
    session: requests.Session,
    template: str,
    offset: int,
    page_size: int,
    *,
    timeout: float | None = 30.0,
) -> BatchResult:
    """
    Fetch one page of records starting at ``offset``.

    Never raises for network, HTTP or decoding problems: those come back as
    a failed BatchResult with the error text, and are not retried. A body
    without a ``data`` list is treated as an empty page.
    """
    url = build_batch_url(template, offset, page_size)
    print(f"[fetch] start={offset} length={page_size}")

    try:
        payload = _get_page(session, url, timeout)
    except FetchError as err:
        return BatchResult.failure(offset, page_size, str(err))

    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, list):
        return BatchResult.empty(offset, page_size)

    return BatchResult.success(
        offset,
        page_size,
        data,
        records_total=_int_or_none(payload.get("recordsTotal")),
        records_filtered=_int_or_none(payload.get("recordsFiltered")),
    )
