from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .models import Animal


class UnknownAnimalError(KeyError):
    """
    Raised when a caller asks about an id that is not in the snapshot at all.

    This is the only hard failure in the core: bad parent data degrades
    gracefully, but there is nothing to compute from a missing root.
    """

    def __init__(self, animal_id: str):
        super().__init__(animal_id)
        self.animal_id = animal_id

    def __str__(self) -> str:
        return f"Animal {self.animal_id!r} is not in the supplied animal set"


@dataclass(frozen=True)
class Parents:
    father: Optional[str] = None
    mother: Optional[str] = None

    def known(self) -> List[str]:
        return [p for p in (self.father, self.mother) if p is not None]


class GenealogyGraph:
    """
    Read-only view over one snapshot of animals.

    Guarantees:
      - O(1) lookup by id, O(1) parents_of / children_of
      - a parent reference resolves only if it names an animal in the
        snapshot and is not a self reference; everything else is "unknown"
      - duplicate ids: the last record wins (overwritten ids are listed in
        duplicate_ids so the caller can report them)
      - construction never fails and never mutates the Animal records
    """

    def __init__(self, animals: Iterable[Animal]):
        self._animals: Dict[str, Animal] = {}
        self.duplicate_ids: Set[str] = set()

        for animal in animals:
            if animal.id in self._animals:
                self.duplicate_ids.add(animal.id)
            self._animals[animal.id] = animal

        self._parents: Dict[str, Parents] = {}
        self._children: Dict[str, Set[str]] = {aid: set() for aid in self._animals}
        self.dangling_references: List[Tuple[str, str, str]] = []  # (child_id, role, missing_id)

        for aid, animal in self._animals.items():
            father = self._resolve(aid, "father", animal.father_id)
            mother = self._resolve(aid, "mother", animal.mother_id)
            self._parents[aid] = Parents(father=father, mother=mother)
            for pid in {father, mother}:
                if pid is not None:
                    self._children[pid].add(aid)

    def _resolve(self, child_id: str, role: str, parent_id: Optional[str]) -> Optional[str]:
        if parent_id is None or parent_id == child_id:
            return None
        if parent_id not in self._animals:
            self.dangling_references.append((child_id, role, parent_id))
            return None
        return parent_id

    # -- accessors -----------------------------------------------------------

    def __contains__(self, animal_id: object) -> bool:
        return animal_id in self._animals

    def __len__(self) -> int:
        return len(self._animals)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids())

    def ids(self) -> List[str]:
        """
        All ids in stable (sorted) order.
        """
        return sorted(self._animals)

    def animals(self) -> List[Animal]:
        return [self._animals[aid] for aid in self.ids()]

    def get(self, animal_id: Optional[str]) -> Optional[Animal]:
        if animal_id is None:
            return None
        return self._animals.get(animal_id)

    def animal(self, animal_id: str) -> Animal:
        """
        Like get(), but an unknown id is a caller error.
        """
        try:
            return self._animals[animal_id]
        except KeyError:
            raise UnknownAnimalError(animal_id) from None

    def require(self, *animal_ids: str) -> None:
        for aid in animal_ids:
            if aid not in self._animals:
                raise UnknownAnimalError(aid)

    def parents_of(self, animal_id: str) -> Parents:
        return self._parents.get(animal_id, Parents())

    def children_of(self, animal_id: str) -> frozenset:
        return frozenset(self._children.get(animal_id, ()))

    def is_founder(self, animal_id: str) -> bool:
        """
        True if neither parent resolves.
        """
        return not self.parents_of(animal_id).known()
