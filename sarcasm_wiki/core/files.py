"""Helpers for the small JSON documents that hold shared pipeline state."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from sarcasm_wiki.core.logging import get_logger

logger = get_logger().bind(module="files")


def read_json(path: Path) -> Any | None:
    """Read a JSON document.

    Args:
        path: File to read

    Returns:
        Parsed document, or None when the file is missing or unreadable
    """
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Ignoring corrupt state file", path=str(path), error=str(e))
        return None


def write_json(path: Path, data: Any) -> None:
    """Write a JSON document so readers never observe a partial file.

    The document is written to a temporary file in the same directory and
    moved into place with ``os.replace``.

    Args:
        path: Destination file
        data: JSON serialisable document
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
