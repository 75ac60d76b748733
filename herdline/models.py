from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Animal records (ingestion boundary)
# ---------------------------------------------------------------------------

MALE = "male"
FEMALE = "female"

_SEX_ALIASES = {
    "m": MALE,
    "male": MALE,
    "buck": MALE,
    "ram": MALE,
    "bull": MALE,
    "sire": MALE,
    "wether": MALE,
    "f": FEMALE,
    "female": FEMALE,
    "doe": FEMALE,
    "ewe": FEMALE,
    "cow": FEMALE,
    "dam": FEMALE,
}

_MISSING_TOKENS = ("", "unknown", "none", "null", "?")

# Trait keys understood by the recommender, with the camelCase spelling the
# records service uses.
_TRAIT_KEYS = {
    "fertility_score": "fertility_score",
    "fertilityScore": "fertility_score",
    "horn_status": "horn_status",
    "hornStatus": "horn_status",
    "horn_genotype": "horn_genotype",
    "hornGenotype": "horn_genotype",
    "coat_color": "coat_color",
    "coatColor": "coat_color",
    "milk_yield_genetics": "milk_yield_genetics",
    "milkYieldGenetics": "milk_yield_genetics",
    "breed": "breed",
}


@dataclass
class Animal:
    """
    One animal in the herd snapshot.

    Parent references are kept exactly as supplied; whether they resolve is
    decided by GenealogyGraph, not here.
    """
    id: str
    sex: str                               # "male" | "female"
    birth_date: Optional[date] = None
    father_id: Optional[str] = None
    mother_id: Optional[str] = None
    status: str = "active"                 # display/filtering only
    name: Optional[str] = None
    traits: Dict[str, Any] = field(default_factory=dict)

    def label(self) -> str:
        """
        Short human-readable label for messages and CLI output.
        """
        if self.name:
            return f"{self.name} ({self.id})"
        return self.id


def _is_missing(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, str) and v.strip().lower() in _MISSING_TOKENS:
        return True
    return False


def _clean_id(v: Any) -> Optional[str]:
    if _is_missing(v):
        return None
    return str(v).strip()


def normalize_sex(raw: Any) -> Optional[str]:
    """
    Map free-form sex labels onto "male"/"female". Returns None if unrecognized.
    """
    if raw is None:
        return None
    return _SEX_ALIASES.get(str(raw).strip().lower())


def parse_birth_date(raw: Any) -> Optional[date]:
    """
    Accept date, datetime, or ISO strings ("2021-03-04", "2021-03-04T00:00:00Z").
    Anything unparseable is treated as an absent birth date.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str):
        s = raw.strip()
        if len(s) < 10:
            return None
        try:
            return date.fromisoformat(s[:10])
        except ValueError:
            return None
    return None


def _pick(record: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in record and record[k] is not None:
            return record[k]
    return None


def _extract_traits(record: Dict[str, Any]) -> Dict[str, Any]:
    traits: Dict[str, Any] = {}
    for source in (record, record.get("genetics") or {}, record.get("traits") or {}):
        if not isinstance(source, dict):
            continue
        for key, value in source.items():
            canon = _TRAIT_KEYS.get(key)
            if canon is not None and not _is_missing(value):
                traits[canon] = value
    return traits


def animal_from_record(record: Dict[str, Any]) -> Animal:
    """
    Build an Animal from a loosely-typed record.

    Accepts snake_case keys and the records service's camelCase keys
    (fatherId, motherId, birthDate/dateOfBirth, gender, genetics).
    Unknown keys are dropped here so they never reach the graph algorithms.

    Raises ValueError if the record has no id or an unrecognized sex.
    """
    animal_id = _clean_id(_pick(record, "id", "animal_id", "animalId"))
    if animal_id is None:
        raise ValueError(f"Animal record has no id: {record!r}")

    raw_sex = _pick(record, "sex", "gender")
    sex = normalize_sex(raw_sex)
    if sex is None:
        raise ValueError(f"Animal {animal_id!r} has unrecognized sex {raw_sex!r}")

    return Animal(
        id=animal_id,
        sex=sex,
        birth_date=parse_birth_date(_pick(record, "birth_date", "birthDate", "dateOfBirth")),
        father_id=_clean_id(_pick(record, "father_id", "fatherId")),
        mother_id=_clean_id(_pick(record, "mother_id", "motherId")),
        status=str(_pick(record, "status") or "active"),
        name=_pick(record, "name"),
        traits=_extract_traits(record),
    )


def animals_from_records(records: List[Dict[str, Any]], *, strict: bool = False) -> List[Animal]:
    """
    Convert a list of raw records. Bad records are skipped with a warning,
    or raise if strict=True.
    """
    animals: List[Animal] = []
    for idx, record in enumerate(records):
        if not isinstance(record, dict):
            if strict:
                raise ValueError(f"Record #{idx} is not an object: {record!r}")
            print(f"[herd] WARNING: skipping record #{idx}: not an object")
            continue
        try:
            animals.append(animal_from_record(record))
        except ValueError as e:
            if strict:
                raise
            print(f"[herd] WARNING: skipping record #{idx}: {e}")
    return animals


def animal_to_record(animal: Animal) -> Dict[str, Any]:
    """
    Inverse of animal_from_record (camelCase, JSON-safe).
    """
    return {
        "id": animal.id,
        "name": animal.name,
        "sex": animal.sex,
        "birthDate": animal.birth_date.isoformat() if animal.birth_date else None,
        "fatherId": animal.father_id,
        "motherId": animal.mother_id,
        "status": animal.status,
        "traits": dict(animal.traits),
    }


# ---------------------------------------------------------------------------
# Layout output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Position:
    x: float
    y: float


@dataclass
class PedigreeNode:
    """
    One positioned node in a pedigree layout.

    generation is the offset from the root: negative = ancestor,
    positive = descendant, 0 = root (and the root's mates).
    """
    id: str
    generation: int
    position: Position
    sex: Optional[str] = None
    is_synthetic: bool = False
    is_root: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "generation": self.generation,
            "position": {"x": self.position.x, "y": self.position.y},
            "sex": self.sex,
            "isSynthetic": self.is_synthetic,
            "isRoot": self.is_root,
        }


PARENT_CHILD = "parent-child"
PAIR_BOND = "pair-bond"


@dataclass(frozen=True)
class PedigreeEdge:
    id: str
    source: str
    target: str
    kind: str                              # PARENT_CHILD | PAIR_BOND

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "source": self.source, "target": self.target, "kind": self.kind}


@dataclass
class PedigreeLayout:
    root_id: str
    nodes: List[PedigreeNode]
    edges: List[PedigreeEdge]

    def node(self, node_id: str) -> Optional[PedigreeNode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    @property
    def nodes_by_generation(self) -> Dict[int, List[PedigreeNode]]:
        """
        Convenience grouping: {generation: [nodes...]}.
        """
        by_gen: Dict[int, List[PedigreeNode]] = {}
        for node in self.nodes:
            by_gen.setdefault(node.generation, []).append(node)
        return by_gen

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rootId": self.root_id,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


# ---------------------------------------------------------------------------
# Inbreeding & recommendations
# ---------------------------------------------------------------------------

@dataclass
class InbreedingResult:
    """
    Expected inbreeding coefficient of a hypothetical offspring of sire x dam.
    """
    sire_id: str
    dam_id: str
    coefficient: float                     # clamped to [0, 1]
    risk: str                              # low | moderate | high | extreme
    common_ancestors: set = field(default_factory=set)
    recommendations: List[str] = field(default_factory=list)
    direct_lineage: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sireId": self.sire_id,
            "damId": self.dam_id,
            "coefficient": self.coefficient,
            "risk": self.risk,
            "commonAncestors": sorted(self.common_ancestors),
            "recommendations": list(self.recommendations),
            "directLineage": self.direct_lineage,
        }


@dataclass
class GeneticGain:
    trait: str
    value: float                           # mid-parent value
    improvement: float                     # percent vs. the animal being mated

    def to_dict(self) -> Dict[str, Any]:
        return {"trait": self.trait, "value": self.value, "improvement": self.improvement}


@dataclass
class ExpectedOutcome:
    inbreeding_coefficient: float
    risk: str
    genetic_gain: List[GeneticGain] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inbreedingCoefficient": self.inbreeding_coefficient,
            "risk": self.risk,
            "geneticGain": [g.to_dict() for g in self.genetic_gain],
        }


@dataclass
class Recommendation:
    animal_id: str
    candidate_id: str
    confidence_score: float                # [0, 1]
    reason: str
    expected_outcome: ExpectedOutcome

    def to_dict(self) -> Dict[str, Any]:
        return {
            "animalId": self.animal_id,
            "candidateId": self.candidate_id,
            "confidenceScore": self.confidence_score,
            "reason": self.reason,
            "expectedOutcome": self.expected_outcome.to_dict(),
        }


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def merge(self, other: "ValidationResult") -> None:
        for e in other.errors:
            if e not in self.errors:
                self.errors.append(e)
        for w in other.warnings:
            if w not in self.warnings:
                self.warnings.append(w)

    def to_dict(self) -> Dict[str, Any]:
        return {"isValid": self.is_valid, "errors": list(self.errors), "warnings": list(self.warnings)}
