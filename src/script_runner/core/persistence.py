# src/script_runner/core/persistence.py

"""
Whole-collection JSON files.

Every write serializes the full collection to <path>.tmp and os.replace()s it
onto the target, so readers only ever see the previous or the new document.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from .errors import IOFailure

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def write_collection(path: Path, key: str, records: list[dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    doc = {"version": FORMAT_VERSION, key: records}
    try:
        tmp.write_text(json.dumps(doc, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, path)
    except OSError as e:
        logger.exception("Failed to write %s", path)
        raise IOFailure(f"Failed to persist {key} to {path}: {e}", str(path)) from e


def read_collection(path: Path, key: str) -> list[dict[str, Any]]:
    """
    Load the records stored under `key`.

    Missing file -> empty collection. Unreadable or malformed file -> IOFailure
    (the durable file is ground truth and must not be overwritten blindly).
    Non-dict entries are skipped.
    """
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text("utf-8"))
    except (OSError, ValueError) as e:
        logger.exception("Failed to read %s", path)
        raise IOFailure(f"Failed to load {key} from {path}: {e}", str(path)) from e

    if not isinstance(data, dict) or not isinstance(data.get(key), list):
        raise IOFailure(f"Malformed {key} file {path}: expected an object with a '{key}' list", str(path))

    out: list[dict[str, Any]] = []
    for item in data[key]:
        if isinstance(item, dict):
            out.append(item)
        else:
            logger.warning("Skipping malformed %s entry in %s: %r", key, path, item)
    return out
