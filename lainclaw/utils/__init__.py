"""Utility functions for lainclaw."""

from lainclaw.utils.helpers import ensure_dir, get_data_path, utc_now_iso, parse_iso_ms

__all__ = ["ensure_dir", "get_data_path", "utc_now_iso", "parse_iso_ms"]
