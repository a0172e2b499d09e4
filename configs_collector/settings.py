from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

from .errors import ConfigError

# DataTables request captured from the configs store page. Only start/length
# are rewritten per batch; filters, column and order directives pass through.
DEFAULT_STORE_URL = (
    "https://app.undetectable.io/configs/store-json?draw=16"
    "&columns%5B0%5D%5Bdata%5D=&columns%5B0%5D%5Bname%5D=&columns%5B0%5D%5Bsearchable%5D=true"
    "&columns%5B0%5D%5Borderable%5D=false&columns%5B0%5D%5Bsearch%5D%5Bvalue%5D="
    "&columns%5B0%5D%5Bsearch%5D%5Bregex%5D=false"
    "&columns%5B1%5D%5Bdata%5D=id&columns%5B1%5D%5Bname%5D=&columns%5B1%5D%5Bsearchable%5D=true"
    "&columns%5B1%5D%5Borderable%5D=true&columns%5B1%5D%5Bsearch%5D%5Bvalue%5D="
    "&columns%5B1%5D%5Bsearch%5D%5Bregex%5D=false"
    "&columns%5B2%5D%5Bdata%5D=os_type&columns%5B2%5D%5Bname%5D=&columns%5B2%5D%5Bsearchable%5D=true"
    "&columns%5B2%5D%5Borderable%5D=true"
    "&columns%5B2%5D%5Bsearch%5D%5Bvalue%5D=Windows%2CMac%20OS%2CLinux"
    "&columns%5B2%5D%5Bsearch%5D%5Bregex%5D=false"
    "&columns%5B3%5D%5Bdata%5D=browser_type&columns%5B3%5D%5Bname%5D=&columns%5B3%5D%5Bsearchable%5D=true"
    "&columns%5B3%5D%5Borderable%5D=true&columns%5B3%5D%5Bsearch%5D%5Bvalue%5D="
    "&columns%5B3%5D%5Bsearch%5D%5Bregex%5D=false"
    "&columns%5B4%5D%5Bdata%5D=browser_version&columns%5B4%5D%5Bname%5D="
    "&columns%5B4%5D%5Bsearchable%5D=true&columns%5B4%5D%5Borderable%5D=true"
    "&columns%5B4%5D%5Bsearch%5D%5Bvalue%5D=&columns%5B4%5D%5Bsearch%5D%5Bregex%5D=false"
    "&columns%5B5%5D%5Bdata%5D=useragent&columns%5B5%5D%5Bname%5D=&columns%5B5%5D%5Bsearchable%5D=true"
    "&columns%5B5%5D%5Borderable%5D=true&columns%5B5%5D%5Bsearch%5D%5Bvalue%5D="
    "&columns%5B5%5D%5Bsearch%5D%5Bregex%5D=false"
    "&columns%5B6%5D%5Bdata%5D=webgl&columns%5B6%5D%5Bname%5D=&columns%5B6%5D%5Bsearchable%5D=true"
    "&columns%5B6%5D%5Borderable%5D=true&columns%5B6%5D%5Bsearch%5D%5Bvalue%5D="
    "&columns%5B6%5D%5Bsearch%5D%5Bregex%5D=false"
    "&columns%5B7%5D%5Bdata%5D=screen&columns%5B7%5D%5Bname%5D=&columns%5B7%5D%5Bsearchable%5D=true"
    "&columns%5B7%5D%5Borderable%5D=true"
    "&columns%5B7%5D%5Bsearch%5D%5Bvalue%5D=1024x768%2C1024x1366%2C1280x720%2C1280x800%2C1280x1024"
    "%2C1360x768%2C1366x768%2C1440x900%2C1536x864%2C1600x900%2C1680x1050%2C1920x1080%2C1920x1200"
    "&columns%5B7%5D%5Bsearch%5D%5Bregex%5D=false"
    "&columns%5B8%5D%5Bdata%5D=hardware_concurrency&columns%5B8%5D%5Bname%5D="
    "&columns%5B8%5D%5Bsearchable%5D=true&columns%5B8%5D%5Borderable%5D=true"
    "&columns%5B8%5D%5Bsearch%5D%5Bvalue%5D=&columns%5B8%5D%5Bsearch%5D%5Bregex%5D=false"
    "&columns%5B9%5D%5Bdata%5D=device_memory&columns%5B9%5D%5Bname%5D="
    "&columns%5B9%5D%5Bsearchable%5D=true&columns%5B9%5D%5Borderable%5D=true"
    "&columns%5B9%5D%5Bsearch%5D%5Bvalue%5D=&columns%5B9%5D%5Bsearch%5D%5Bregex%5D=false"
    "&columns%5B10%5D%5Bdata%5D=created_at&columns%5B10%5D%5Bname%5D="
    "&columns%5B10%5D%5Bsearchable%5D=true&columns%5B10%5D%5Borderable%5D=true"
    "&columns%5B10%5D%5Bsearch%5D%5Bvalue%5D=&columns%5B10%5D%5Bsearch%5D%5Bregex%5D=false"
    "&order%5B0%5D%5Bcolumn%5D=1&order%5B0%5D%5Bdir%5D=desc&start=0&length=100"
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class CollectionSettings:
    endpoint: str = DEFAULT_STORE_URL
    max_concurrent: int = 10
    page_size: int = 1000
    max_records: int = 50000
    delay_seconds: float = 0.05
    checkpoint_every: int = 5000
    checkpoint_path: Path = Path("configs-progress.json")
    output_path: Path = Path("configs.json")
    timeout_seconds: float | None = 30.0
    write_manifest: bool = True

    def validate(self) -> "CollectionSettings":
        if not self.endpoint:
            raise ConfigError("endpoint must be a non-empty URL")
        for name in ("max_concurrent", "page_size", "max_records", "checkpoint_every"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer (got {value!r})")
        if not _is_number(self.delay_seconds) or self.delay_seconds < 0:
            raise ConfigError(f"delay_seconds must be a number >= 0 (got {self.delay_seconds!r})")
        if self.timeout_seconds is not None and (
            not _is_number(self.timeout_seconds) or self.timeout_seconds <= 0
        ):
            raise ConfigError(f"timeout_seconds must be a number > 0 or null (got {self.timeout_seconds!r})")
        return self

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["checkpoint_path"] = str(self.checkpoint_path)
        out["output_path"] = str(self.output_path)
        return out


_PATH_FIELDS = {"checkpoint_path", "output_path"}


def _coerce(values: dict[str, Any]) -> dict[str, Any]:
    known = {f.name for f in fields(CollectionSettings)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown settings: {', '.join(unknown)}")
    out: dict[str, Any] = {}
    for key, value in values.items():
        if key in _PATH_FIELDS and value is not None:
            value = Path(value).expanduser()
        out[key] = value
    return out


def load_settings(config_path: Path | None = None, **overrides: Any) -> CollectionSettings:
    """
    Build settings from the literal defaults, an optional JSON config file
    (flat object using the field names) and explicit overrides.

    Overrides set to None are ignored so CLI flags can be passed through as-is.
    """
    settings = CollectionSettings()

    if config_path is not None:
        try:
            cfg = json.loads(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ConfigError(f"config not found at {config_path}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(f"config is not valid JSON: {exc}") from exc
        if not isinstance(cfg, dict):
            raise ConfigError("config must be a JSON object")
        settings = replace(settings, **_coerce(cfg))

    given = {k: v for k, v in overrides.items() if v is not None}
    if given:
        settings = replace(settings, **_coerce(given))

    return settings.validate()
