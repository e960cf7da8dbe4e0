"""Utility functions for uilocate.

This sub-package provides utility functions for:
- File and path operations (JSON export of debug bundles)
- Retry with backoff and small numeric helpers
"""

from .file_utils import ensure_directory, get_timestamp, save_json
from .helpers import clamp, format_duration, retry_with_backoff

__all__ = [
    "ensure_directory",
    "get_timestamp",
    "save_json",
    "clamp",
    "format_duration",
    "retry_with_backoff",
]
