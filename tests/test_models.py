from __future__ import annotations

from datetime import date

import pytest

from herdline.models import (
    animal_from_record,
    animal_to_record,
    animals_from_records,
    normalize_sex,
    parse_birth_date,
)


def test_camelcase_record() -> None:
    a = animal_from_record({
        "id": 17,
        "name": "Bella",
        "gender": "Doe",
        "dateOfBirth": "2021-04-03T00:00:00Z",
        "fatherId": "unknown",
        "motherId": "G-2",
        "genetics": {"hornStatus": "polled", "fertilityScore": 7},
        "breed": "Saanen",
    })
    assert a.id == "17"
    assert a.sex == "female"
    assert a.birth_date == date(2021, 4, 3)
    assert a.father_id is None
    assert a.mother_id == "G-2"
    assert a.traits == {"horn_status": "polled", "fertility_score": 7}


def test_bad_records() -> None:
    with pytest.raises(ValueError):
        animal_from_record({"sex": "male"})
    with pytest.raises(ValueError):
        animal_from_record({"id": "x", "sex": "hermaphrodite"})


def test_animals_from_records_skips_bad_rows(capsys) -> None:
    animals = animals_from_records([{"id": "a", "sex": "m"}, {"id": "b"}, "junk"])
    assert [a.id for a in animals] == ["a"]
    assert capsys.readouterr().out.count("[herd] WARNING") == 2

    with pytest.raises(ValueError):
        animals_from_records([{"id": "b"}], strict=True)


def test_helpers() -> None:
    assert normalize_sex(" Buck ") == "male"
    assert normalize_sex("x") is None
    assert parse_birth_date("not a date") is None
    assert parse_birth_date(date(2020, 1, 2)) == date(2020, 1, 2)


def test_record_round_trip() -> None:
    a = animal_from_record({"id": "k", "sex": "f", "birth_date": "2022-05-06", "father_id": "s"})
    rec = animal_to_record(a)
    assert rec["birthDate"] == "2022-05-06"
    assert animal_from_record(rec) == a
