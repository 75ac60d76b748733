from __future__ import annotations

import pytest

from herdline.genealogy_graph import GenealogyGraph, UnknownAnimalError
from herdline.models import Animal
from herdline.traversal import (
    ancestor_paths,
    ancestors_of,
    descendants_of,
    is_descendant,
    is_tree_root,
    lineage_of,
    maternal_roots,
)


def _a(aid: str, sex: str, father: str | None = None, mother: str | None = None) -> Animal:
    return Animal(id=aid, sex=sex, father_id=father, mother_id=mother)


def _three_generations() -> GenealogyGraph:
    return GenealogyGraph([
        _a("GS", "male"),
        _a("GD", "female"),
        _a("S", "male", "GS", "GD"),
        _a("D", "female"),
        _a("K", "female", "S", "D"),
        _a("KK", "male", None, "K"),
    ])


def test_ancestors_by_generation() -> None:
    graph = _three_generations()
    assert ancestors_of(graph, "K") == {1: {"S", "D"}, 2: {"GS", "GD"}}
    assert ancestors_of(graph, "K", max_generations=1) == {1: {"S", "D"}}
    assert ancestors_of(graph, "GS") == {}


def test_descendants_by_generation() -> None:
    graph = _three_generations()
    assert descendants_of(graph, "S") == {1: {"K"}, 2: {"KK"}}
    assert is_descendant(graph, "KK", "GS")
    assert not is_descendant(graph, "GS", "KK")


def test_repeated_ancestor_listed_once_at_nearest_generation() -> None:
    # X is both the sire of K and the sire of K's dam
    graph = GenealogyGraph([
        _a("X", "male"),
        _a("M", "female", "X", None),
        _a("K", "female", "X", "M"),
    ])
    by_gen = ancestors_of(graph, "K")
    assert by_gen == {1: {"X", "M"}}


def test_cycle_terminates() -> None:
    graph = GenealogyGraph([
        _a("A", "male", "B", None),
        _a("B", "male", "C", None),
        _a("C", "male", "A", None),
    ])
    by_gen = ancestors_of(graph, "A", max_generations=None)
    assert by_gen == {1: {"B"}, 2: {"C"}}
    paths = ancestor_paths(graph, "A")
    assert paths["A"] == [("A",)]
    assert paths["C"] == [("A", "B", "C")]


def test_paths_enumerate_every_lineage() -> None:
    graph = GenealogyGraph([
        _a("X", "male"),
        _a("M", "female", "X", None),
        _a("K", "female", "X", "M"),
    ])
    assert sorted(ancestor_paths(graph, "K")["X"]) == [("K", "M", "X"), ("K", "X")]


def test_lineage_lines() -> None:
    graph = _three_generations()
    assert lineage_of(graph, "KK", "mother") == ["K", "D"]
    assert lineage_of(graph, "K", "father") == ["S", "GS"]
    with pytest.raises(ValueError):
        lineage_of(graph, "K", "uncle")


def test_unknown_root_raises() -> None:
    with pytest.raises(UnknownAnimalError):
        ancestors_of(_three_generations(), "missing")


def test_maternal_roots_are_animals_without_a_known_dam() -> None:
    animals = [
        _a("GS", "male"),
        _a("GD", "female"),
        _a("S", "male", "GS", "GD"),
        _a("D", "female"),
        _a("K", "female", "S", "D"),
        Animal(id="Z", sex="female", mother_id="ghost", status="sold"),
    ]
    graph = GenealogyGraph(animals)

    assert maternal_roots(graph) == ["D", "GD", "GS"]
    assert maternal_roots(graph, active_only=False) == ["D", "GD", "GS", "Z"]
    assert is_tree_root(graph, "Z")
    assert not is_tree_root(graph, "K")
    with pytest.raises(UnknownAnimalError):
        is_tree_root(graph, "nope")
