from __future__ import annotations

from datetime import date

import pytest

from herdline.breeding_advisor import (
    recommend_mates,
    trait_compatibility,
    validate_parentage,
    validate_relationship,
)
from herdline.genealogy_graph import GenealogyGraph
from herdline.models import Animal


def _herd() -> list[Animal]:
    return [
        Animal(id="S1", sex="male", birth_date=date(2018, 4, 1)),
        Animal(id="D1", sex="female", birth_date=date(2018, 5, 1)),
        Animal(id="C1", sex="male", birth_date=date(2021, 3, 1), father_id="S1", mother_id="D1"),
        Animal(id="C2", sex="female", birth_date=date(2021, 3, 1), father_id="S1", mother_id="D1"),
        Animal(id="U", sex="female", birth_date=date(2020, 2, 1)),
        Animal(id="V", sex="male", birth_date=date(2019, 6, 1)),
    ]


def test_recommendations_exclude_self_same_sex_and_direct_lineage() -> None:
    animals = _herd()
    graph = GenealogyGraph(animals)
    c1 = graph.animal("C1")

    recs = recommend_mates(c1, animals, graph)
    ids = [r.candidate_id for r in recs]

    assert "C1" not in ids
    assert not {"S1", "V"} & set(ids)
    assert "D1" not in ids          # his dam
    assert ids == ["U", "C2"]


def test_recommendations_sorted_by_confidence() -> None:
    animals = _herd()
    graph = GenealogyGraph(animals)
    recs = recommend_mates(graph.animal("C1"), animals, graph)

    scores = [r.confidence_score for r in recs]
    assert scores == sorted(scores, reverse=True)
    assert recs[0].confidence_score == pytest.approx(0.8)
    assert recs[0].expected_outcome.risk == "low"
    assert recs[1].expected_outcome.inbreeding_coefficient == 0.25
    assert recs[1].reason.startswith("no trait data") or "extreme" in recs[1].reason


def test_unknown_candidate_is_skipped_not_fatal(capsys) -> None:
    animals = _herd()
    graph = GenealogyGraph(animals)
    pool = animals + [Animal(id="STRAY", sex="female")]

    recs = recommend_mates(graph.animal("C1"), pool, graph)

    assert "STRAY" not in [r.candidate_id for r in recs]
    assert "[breeding_advisor] WARNING" in capsys.readouterr().out


def test_limit_and_max_coefficient() -> None:
    animals = _herd()
    graph = GenealogyGraph(animals)
    c1 = graph.animal("C1")
    assert len(recommend_mates(c1, animals, graph, limit=1)) == 1
    assert [r.candidate_id for r in recommend_mates(c1, animals, graph, max_coefficient=0.1)] == ["U"]


def test_horn_pairing_scores() -> None:
    polled = Animal(id="P", sex="male", traits={"horn_status": "polled"})
    polled_doe = Animal(id="Q", sex="female", traits={"horn_genotype": "PP"})
    horned = Animal(id="H", sex="female", traits={"horn_status": "horned"})

    score, notes = trait_compatibility(polled, horned)
    assert score == 1.0
    assert notes == ["complementary horn genetics"]

    score, notes = trait_compatibility(polled, polled_doe)
    assert score == 0.2
    assert "intersex" in notes[0]


def test_coat_colour_term_only_with_both_colours() -> None:
    buck = Animal(id="B", sex="male", traits={"horn_status": "polled", "coat_color": "white"})
    doe = Animal(id="D", sex="female", traits={"horn_status": "horned", "coat_color": "black"})
    score, notes = trait_compatibility(buck, doe)
    assert score == 1.0
    assert notes == ["complementary horn genetics", "adds coat colour variation"]

    twin = Animal(id="T", sex="female", traits={"coat_color": "White"})
    assert trait_compatibility(buck, twin) == (0.5, ["same coat colour"])

    uncoloured = Animal(id="U", sex="female")
    assert trait_compatibility(buck, uncoloured) == (0.5, ["no trait data"])


def test_goal_trait_gain() -> None:
    doe = Animal(id="D", sex="female", traits={"milk_yield_genetics": 800})
    buck = Animal(id="B", sex="male", traits={"milk_yield_genetics": 1000})
    score, notes = trait_compatibility(doe, buck, goal="milk_yield_genetics")
    # mid-parent 900 is +12.5% over the doe
    assert score == 0.625
    assert notes == ["improves milk_yield_genetics (+12.5%)"]


def test_no_trait_data_is_neutral() -> None:
    score, notes = trait_compatibility(Animal(id="a", sex="male"), Animal(id="b", sex="female"))
    assert score == 0.5
    assert notes == ["no trait data"]


def test_female_father_is_an_error() -> None:
    animals = _herd()
    kid = Animal(id="NEW", sex="female", birth_date=date(2023, 3, 1))
    result = validate_relationship(kid, animals[4], animals, role="father")
    assert not result.is_valid
    assert any("expected male" in e for e in result.errors)


def test_male_mother_is_an_error() -> None:
    animals = _herd()
    kid = Animal(id="NEW", sex="female", birth_date=date(2023, 3, 1))
    result = validate_relationship(kid, animals[5], animals, role="mother")
    assert not result.is_valid
    assert any("expected female" in e for e in result.errors)

    ok = validate_relationship(kid, animals[4], animals, role="mother")
    assert not any("expected" in e for e in ok.errors)


def test_parent_born_after_child_is_an_error() -> None:
    animals = _herd()
    kid = Animal(id="OLD", sex="female", birth_date=date(2015, 1, 1))
    result = validate_relationship(kid, animals[0], animals)
    assert "Parent must be born before the child." in result.errors


def test_descendant_as_parent_is_circular() -> None:
    animals = _herd()
    result = validate_relationship(animals[0], animals[3], animals, role="mother")
    assert any("circular" in e for e in result.errors)


def test_warnings_for_missing_dates_and_close_kin() -> None:
    animals = _herd()
    kid = Animal(id="NEW", sex="male", mother_id="C2")
    result = validate_relationship(kid, animals[2], animals + [kid], role="father")
    assert result.is_valid
    assert "Birth date missing; parent age could not be verified." in result.warnings
    assert any("25.0%" in w for w in result.warnings)


def test_validate_parentage_checks_both_links() -> None:
    animals = _herd()
    kid = Animal(id="NEW", sex="male", birth_date=date(2023, 3, 1))

    same = validate_parentage(kid, "U", "U", animals)
    assert any("both father and mother" in e for e in same.errors)

    missing = validate_parentage(kid, "GHOST", "U", animals)
    assert "Proposed father 'GHOST' does not exist." in missing.errors

    ok = validate_parentage(kid, "V", "U", animals)
    assert ok.is_valid
