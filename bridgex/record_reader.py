"""Reads exported records from a JSON-lines file."""

import json
from pathlib import Path
from typing import Any, Dict, Iterator

from bridgex.logging_config import get_logger

logger = get_logger(__name__)


def iter_records(path: Path) -> Iterator[Dict[str, Any]]:
    """Yield one record per non-blank line.

    Lines that aren't a JSON object are logged with their line number and
    skipped.

    Example:
        >>> for record in iter_records(Path("records.jsonl")):
        ...     print(record["id"])
    """
    with open(path, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                logger.error(f"Skipping invalid JSON on line {line_number} of {path}: {e}")
                continue
            if not isinstance(record, dict):
                logger.error(f"Skipping non-object record on line {line_number} of {path}")
                continue
            yield record
