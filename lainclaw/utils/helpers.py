"""Utility functions for lainclaw."""

import os
from datetime import datetime, timezone
from pathlib import Path


def ensure_dir(path: Path, mode: int = 0o700) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True, mode=mode)
    return path


def get_data_path() -> Path:
    """Get the lainclaw data directory (~/.lainclaw, or $LAINCLAW_HOME)."""
    override = os.environ.get("LAINCLAW_HOME", "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".lainclaw"


def utc_now_iso(now: datetime | None = None) -> str:
    """Format a UTC timestamp as ISO-8601 with milliseconds and a Z suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso_ms(raw: str) -> int:
    """
    Parse an ISO-8601 timestamp into epoch milliseconds.

    Returns 0 for anything unparseable, so callers can treat it as "no timestamp".
    """
    if not raw or not isinstance(raw, str):
        return 0
    try:
        parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)
