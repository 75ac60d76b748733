from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest

from herdline.herd_store import (
    SNAPSHOT_VERSION,
    load_snapshot,
    read_animals_json,
    save_snapshot,
    snapshot_path,
)
from herdline.models import Animal


def test_snapshot_save_then_load(tmp_path: Path) -> None:
    path = snapshot_path("herd-1", tmp_path)
    animals = [
        Animal(id="S", sex="male"),
        Animal(id="K", sex="female", birth_date=date(2022, 1, 2), father_id="S"),
    ]
    save_snapshot(path, animals)

    obj = load_snapshot(path)
    assert obj is not None
    assert obj["snapshot_version"] == SNAPSHOT_VERSION
    assert [r["id"] for r in obj["animals"]] == ["S", "K"]
    assert not path.with_suffix(".json.tmp").exists()


def test_corrupt_or_old_snapshot_is_a_miss(tmp_path: Path) -> None:
    assert load_snapshot(tmp_path / "missing.json") is None

    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text("{not json", encoding="utf-8")
    assert load_snapshot(corrupt) is None

    old = tmp_path / "old.json"
    old.write_text(json.dumps({"snapshot_version": 0, "animals": []}), encoding="utf-8")
    assert load_snapshot(old) is None


def test_read_animals_json_accepts_list_and_object(tmp_path: Path) -> None:
    as_list = tmp_path / "list.json"
    as_list.write_text(json.dumps([{"id": "a", "sex": "male"}]), encoding="utf-8")
    assert [a.id for a in read_animals_json(as_list)] == ["a"]

    as_obj = tmp_path / "obj.json"
    as_obj.write_text(json.dumps({"animals": [{"id": "b", "sex": "doe"}]}), encoding="utf-8")
    assert [a.sex for a in read_animals_json(as_obj)] == ["female"]

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"goats": []}), encoding="utf-8")
    with pytest.raises(ValueError):
        read_animals_json(bad)
