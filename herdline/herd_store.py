from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .models import Animal, animal_to_record, animals_from_records

# Default snapshot directory (relative to project root)
DEFAULT_SNAPSHOT_DIR = Path(".cache") / "herds"

SNAPSHOT_VERSION = 1


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def snapshot_path(herd_id: str, snapshot_dir: Path = DEFAULT_SNAPSHOT_DIR) -> Path:
    # One file per herd
    return Path(snapshot_dir) / f"{herd_id}.json"


def load_snapshot(path: Path) -> Optional[dict[str, Any]]:
    """
    Snapshot file format:
      {
        "snapshot_version": <int>,
        "created_at": "<iso>",
        "animals": [ ... camelCase animal records ... ]
      }

    Returns the parsed object, or None if the file is missing, corrupted or
    written by an incompatible version (treated as a cache miss).
    """
    path = Path(path)
    if not path.exists():
        return None

    try:
        obj = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None

    if not isinstance(obj, dict):
        return None
    if obj.get("snapshot_version") != SNAPSHOT_VERSION:
        return None
    animals = obj.get("animals")
    if not isinstance(animals, list):
        return None
    if animals and not isinstance(animals[0], dict):
        return None

    return obj


def save_snapshot(path: Path, animals: list[Animal]) -> None:
    """
    Persist a herd snapshot locally.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    obj = {
        "snapshot_version": SNAPSHOT_VERSION,
        "created_at": _utc_now_iso(),
        "animals": [animal_to_record(a) for a in animals],
    }

    # Write atomically to avoid partial files on crash
    tmp_path = path.with_suffix(".json.tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)

    tmp_path.replace(path)
    print(f"[herd_store] Snapshot saved (v{SNAPSHOT_VERSION}, {len(animals)} animals) -> {path}")


def read_animals_json(path: Path, *, strict: bool = False) -> list[Animal]:
    """
    Read animals from a JSON export: either a bare list of records, a
    {"animals": [...]} object, or a snapshot written by save_snapshot.

    Raises ValueError if the file does not hold animal records at all.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        records = data.get("animals")
    else:
        records = data

    if not isinstance(records, list):
        raise ValueError(f"{path}: expected a list of animal records or an object with 'animals'")

    animals = animals_from_records(records, strict=strict)
    print(f"[herd_store] Loaded {len(animals)} animals from {path}")
    return animals
