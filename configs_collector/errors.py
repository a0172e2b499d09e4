from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FetchError(Exception):
    code: str
    message: str
    http_status: int | None = None

    def __str__(self) -> str:
        return self.message


class ConfigError(ValueError):
    """Invalid collection settings or config file."""
