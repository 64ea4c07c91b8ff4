"""Input/output utilities for reading and writing JSONL files."""

import json
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

from pydantic import BaseModel


def read_jsonl(path: Path | str) -> Iterator[dict[str, Any]]:
    """Read a JSONL file and yield each record.

    Blank lines are skipped.

    Args:
        path: Path to the JSONL file.

    Yields:
        Each parsed JSON record.

    Raises:
        ValueError: If a line is not valid JSON or not a JSON object.
    """
    with open(path, encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON on line {line_num}: {e}") from e
            if not isinstance(record, dict):
                raise ValueError(f"Line {line_num} is not a JSON object")
            yield record


def to_json_dict(record: BaseModel | dict[str, Any]) -> dict[str, Any]:
    """JSON-ready dict of a record.

    Models are dumped with their camelCase aliases and without unset
    entries, the shape visit records are exchanged in.
    """
    if isinstance(record, BaseModel):
        return record.model_dump(by_alias=True, exclude_none=True, mode="json")
    return record


def write_jsonl(path: Path | str, records: Iterable[BaseModel | dict[str, Any]]) -> int:
    """Write records to a JSONL file.

    Args:
        path: Path to write the JSONL file.
        records: Records to write; plain dicts or pydantic models such as
            VisitRecord.

    Returns:
        Number of records written.
    """
    count = 0
    with open(path, "w", encoding="utf-8") as f:
        for record in records:
            f.write(json.dumps(to_json_dict(record), ensure_ascii=False) + "\n")
            count += 1
    return count
