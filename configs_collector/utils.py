from __future__ import annotations

import hashlib
import json
import platform
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def json_dumps(obj: Any) -> str:
    # Record key order is kept as received from the endpoint.
    return json.dumps(obj, ensure_ascii=False, indent=2)


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def write_json(path: Path, payload: Any) -> None:
    """Write the whole document in one call, replacing any previous content."""
    ensure_dir(path.parent)
    path.write_text(json_dumps(payload) + "\n", encoding="utf-8")


@dataclass
class Timer:
    start: float

    @classmethod
    def start_new(cls) -> "Timer":
        return cls(start=time.perf_counter())

    def elapsed_seconds(self) -> float:
        return time.perf_counter() - self.start

    def elapsed_ms(self) -> int:
        return int(self.elapsed_seconds() * 1000)


def environment_info() -> dict[str, Any]:
    return {
        "python_version": sys.version,
        "platform": platform.platform(),
        "executable": sys.executable,
    }

