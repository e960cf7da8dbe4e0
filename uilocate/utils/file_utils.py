"""Filesystem helpers for debug bundles and overlay images."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.logger import log


def ensure_directory(directory_path: str) -> str:
    """Create *directory_path* if needed and return it as an absolute path."""
    path = Path(directory_path).resolve()
    path.mkdir(parents=True, exist_ok=True)
    return str(path)


def get_timestamp() -> str:
    """Filename-safe local timestamp, e.g. ``2024-05-01_13-45-10``."""
    return datetime.now().strftime("%Y-%m-%d_%H-%M-%S")


def save_json(data: Any, filepath: str, indent: int = 2) -> bool:
    """Serialise *data* to *filepath*, creating parent directories.

    Values JSON cannot represent natively (enums, timestamps) are written with
    ``str``. Returns False instead of raising so a failed debug export never
    breaks an analysis run.
    """
    target = Path(filepath)
    try:
        if target.parent != Path("."):
            ensure_directory(str(target.parent))
        target.write_text(json.dumps(data, indent=indent, ensure_ascii=False, default=str), encoding="utf-8")
    except (OSError, TypeError, ValueError) as e:
        log.error(f"Could not write debug JSON {filepath}: {e}")
        return False

    log.debug(f"Wrote {target.stat().st_size} bytes to {filepath}")
    return True


