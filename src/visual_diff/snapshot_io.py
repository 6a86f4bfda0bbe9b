"""Reading and writing snapshot and change files.

Snapshots are JSON arrays of crawler element objects. Change files are JSON
arrays of report-facing change records.
"""

import json
from pathlib import Path
from typing import Any

import structlog

from .exceptions import InvalidSnapshotError
from .models import ChangeRecord, ElementSnapshot

logger = structlog.get_logger()


def _read_json_array(path: Path, kind: str) -> list[dict[str, Any]]:
    if not path.exists():
        raise InvalidSnapshotError(f"{kind} file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InvalidSnapshotError(f"{kind} file is not valid JSON: {path}: {e}") from e

    # Crawler output may wrap the element list
    if isinstance(data, dict) and isinstance(data.get("elements"), list):
        data = data["elements"]
    if not isinstance(data, list):
        raise InvalidSnapshotError(f"{kind} file must contain a JSON array: {path}")
    return data


def _write_json(path: Path, payload: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def load_snapshot(path: str | Path) -> list[ElementSnapshot]:
    """Load a snapshot file.

    Raises:
        InvalidSnapshotError: If the file is missing or malformed
    """
    path = Path(path)
    elements = [ElementSnapshot.from_dict(item) for item in _read_json_array(path, "Snapshot")]
    logger.info("Loaded snapshot", path=str(path), elements=len(elements))
    return elements


def save_snapshot(path: str | Path, elements: list[ElementSnapshot]) -> Path:
    return _write_json(Path(path), [element.to_dict() for element in elements])


def save_changes(path: str | Path, changes: list[ChangeRecord]) -> Path:
    """Write change records, creating parent directories as needed."""
    written = _write_json(Path(path), [change.to_dict() for change in changes])
    logger.info("Saved changes", path=str(written), changes=len(changes))
    return written


def load_changes(path: str | Path) -> list[ChangeRecord]:
    return [ChangeRecord.from_dict(item) for item in _read_json_array(Path(path), "Changes")]
