"""
Runtime settings.

Defaults live in module constants; each can be overridden through an
environment variable, and load_settings() accepts explicit overrides on top
(used by the CLI flags and by tests).
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


PACKAGE_DIR = Path(__file__).resolve().parent

DEFAULT_TIMEZONE = "Asia/Jakarta"
DEFAULT_SCAN_PERIOD = 15.0  # seconds between reminder scans
DEFAULT_LEAD_MINUTES = 0
DEFAULT_MAX_VISIBLE = 3
DEFAULT_AUTO_DISMISS = 6.0  # seconds a floating notification stays on screen
DEFAULT_ACTIVITY_LIMIT = 100


def _default_data_dir() -> Path:
    return PACKAGE_DIR / "data"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    timezone: str = DEFAULT_TIMEZONE
    scan_period: float = DEFAULT_SCAN_PERIOD
    lead_minutes: int = DEFAULT_LEAD_MINUTES
    max_visible: int = DEFAULT_MAX_VISIBLE
    auto_dismiss: float = DEFAULT_AUTO_DISMISS
    activity_limit: int = DEFAULT_ACTIVITY_LIMIT
    persist_fired_ledger: bool = False
    api_url: Optional[str] = None

    @property
    def lead_ms(self) -> int:
        return self.lead_minutes * 60_000

    def ledger_path(self, owner_id: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]+", "_", owner_id.strip()) or "_"
        return self.data_dir / f"{safe}.fired.json"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _validate(settings: Settings) -> None:
    if not 0 < settings.scan_period < float("inf"):
        raise ValueError(f"scan period must be a positive number of seconds, got {settings.scan_period!r}")
    try:
        ZoneInfo(settings.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown time zone: {settings.timezone!r}") from None


def load_settings(**overrides: Any) -> Settings:
    """
    Build Settings from defaults, then environment, then explicit overrides.

    None values in overrides are ignored so argparse namespaces can be passed through.
    """
    env_dir = os.environ.get("JADWALIN_DATA_DIR", "").strip()
    settings = Settings(
        data_dir=Path(env_dir) if env_dir else _default_data_dir(),
        timezone=os.environ.get("JADWALIN_TZ", "").strip() or DEFAULT_TIMEZONE,
        scan_period=_env_float("JADWALIN_SCAN_PERIOD", DEFAULT_SCAN_PERIOD),
        api_url=os.environ.get("JADWALIN_API_URL", "").strip() or None,
    )

    known = {f.name for f in fields(Settings)}
    unknown = set(overrides) - known
    if unknown:
        raise TypeError(f"Unknown settings: {', '.join(sorted(unknown))}")

    clean = {k: v for k, v in overrides.items() if v is not None}
    if "data_dir" in clean:
        clean["data_dir"] = Path(clean["data_dir"])
    settings = replace(settings, **clean)
    _validate(settings)
    return settings
