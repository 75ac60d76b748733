from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .age_gap import MAX_PARENT_AGE_MONTHS, MIN_PARENT_AGE_MONTHS, classify_gap, months_between
from .genealogy_graph import GenealogyGraph
from .inbreeding import RISK_EXTREME, RISK_HIGH, InbreedingCalculator
from .models import FEMALE, MALE, Animal, ExpectedOutcome, Recommendation, ValidationResult
from .trait_genetics import coat_diversity, fertility_score, genetic_gain, horn_genotype, is_polled
from .traversal import descendants_of, flatten_generations

INBREEDING_WEIGHT = 0.6
TRAIT_WEIGHT = 0.4

# coefficient at which the inbreeding term bottoms out (full siblings)
INBREEDING_NORMALIZER = 0.25

NEUTRAL_TRAIT_SCORE = 0.5

_HORN_PAIR_SCORES = {
    (True, True): (0.2, "polled x polled pairing risks intersex kids"),
    (True, False): (1.0, "complementary horn genetics"),
    (False, True): (1.0, "complementary horn genetics"),
    (False, False): (0.7, "both horned"),
}


def _clamp01(v: float) -> float:
    return min(1.0, max(0.0, v))


# ---------------------------------------------------------------------------
# Mate scoring
# ---------------------------------------------------------------------------

def trait_compatibility(
    animal: Animal,
    candidate: Animal,
    goal: Optional[str] = None,
) -> Tuple[float, List[str]]:
    """
    Trait complementarity in [0, 1] plus short notes for the reason string.

    Terms (each in [0, 1], averaged over the ones that can be computed):
      - fertility: mean fertility score of the pair / 10
      - horn: polled x polled is penalized (polled-intersex risk)
      - coat: differing coat colours favoured, only when both are recorded
      - goal trait: mid-parent improvement over the animal, centred at 0.5

    With no usable trait data the score is neutral (0.5).
    """
    terms: List[float] = []
    notes: List[str] = []

    a_fert = fertility_score(animal)
    c_fert = fertility_score(candidate)
    if a_fert is not None or c_fert is not None:
        known = [f for f in (a_fert, c_fert) if f is not None]
        fert = _clamp01(sum(known) / len(known) / 10.0)
        terms.append(fert)
        if fert >= 0.7:
            notes.append("complementary fertility traits")
        elif fert < 0.4:
            notes.append("low fertility scores")

    a_horn = horn_genotype(animal)
    c_horn = horn_genotype(candidate)
    if a_horn and c_horn:
        score, note = _HORN_PAIR_SCORES[(is_polled(a_horn), is_polled(c_horn))]
        terms.append(score)
        notes.append(note)

    coat = coat_diversity(animal, candidate)
    if coat is not None:
        terms.append(coat[0])
        notes.append(coat[1])

    if goal:
        gain = genetic_gain(animal, candidate, goal)
        if gain is not None:
            terms.append(_clamp01(0.5 + max(-0.5, min(0.5, gain.improvement / 100.0))))
            if gain.improvement > 0:
                notes.append(f"improves {goal} ({gain.improvement:+.1f}%)")
            elif gain.improvement < 0:
                notes.append(f"lowers {goal} ({gain.improvement:+.1f}%)")

    if not terms:
        return NEUTRAL_TRAIT_SCORE, ["no trait data"]
    return sum(terms) / len(terms), notes


def _inbreeding_note(coefficient: float, risk: str) -> str:
    if coefficient == 0:
        return "no common ancestors"
    return f"{risk} inbreeding risk ({coefficient * 100:.1f}%)"


def recommend_mates(
    animal: Animal,
    candidate_pool: Iterable[Animal],
    graph: GenealogyGraph,
    *,
    goal: Optional[str] = None,
    limit: Optional[int] = None,
    max_coefficient: Optional[float] = None,
    calculator: Optional[InbreedingCalculator] = None,
) -> List[Recommendation]:
    """
    Rank candidate mates for `animal`.

    Skipped: the animal itself, same-sex candidates, duplicates, and direct
    ancestors/descendants (always extreme risk). A candidate that cannot be
    scored (not in the graph) is skipped with a warning; it never aborts
    the pass.

    confidence = 0.6 * (1 - normalized inbreeding) + 0.4 * trait score.
    Sorted by descending confidence, ties by candidate id.
    """
    graph.require(animal.id)
    calc = calculator or InbreedingCalculator(graph)

    out: List[Recommendation] = []
    seen: set = set()

    for candidate in candidate_pool:
        if candidate.id == animal.id or candidate.id in seen:
            continue
        if candidate.sex == animal.sex:
            continue
        seen.add(candidate.id)

        if candidate.id not in graph:
            print(f"[breeding_advisor] WARNING: candidate {candidate.id!r} is not in the animal set; skipping")
            continue

        if animal.sex == MALE:
            result = calc.coefficient(animal.id, candidate.id)
        else:
            result = calc.coefficient(candidate.id, animal.id)

        if result.direct_lineage:
            continue
        if max_coefficient is not None and result.coefficient > max_coefficient:
            continue

        norm = min(result.coefficient / INBREEDING_NORMALIZER, 1.0)
        trait_score, notes = trait_compatibility(animal, candidate, goal)

        inbreeding_part = INBREEDING_WEIGHT * (1.0 - norm)
        trait_part = TRAIT_WEIGHT * trait_score
        confidence = _clamp01(inbreeding_part + trait_part)

        inbreeding_note = _inbreeding_note(result.coefficient, result.risk)
        if inbreeding_part >= trait_part:
            reason_parts = [inbreeding_note] + notes
        else:
            reason_parts = notes + [inbreeding_note]

        gains = []
        if goal:
            gain = genetic_gain(animal, candidate, goal)
            if gain is not None:
                gains.append(gain)

        out.append(Recommendation(
            animal_id=animal.id,
            candidate_id=candidate.id,
            confidence_score=confidence,
            reason=", ".join(reason_parts),
            expected_outcome=ExpectedOutcome(
                inbreeding_coefficient=result.coefficient,
                risk=result.risk,
                genetic_gain=gains,
            ),
        ))

    out.sort(key=lambda r: (-r.confidence_score, r.candidate_id))
    if limit is not None:
        out = out[:limit]
    return out


# ---------------------------------------------------------------------------
# Relationship validation
# ---------------------------------------------------------------------------

AnimalSet = Union[GenealogyGraph, Sequence[Animal]]


def _as_graph(all_animals: AnimalSet) -> GenealogyGraph:
    if isinstance(all_animals, GenealogyGraph):
        return all_animals
    return GenealogyGraph(all_animals)


def validate_relationship(
    animal: Animal,
    proposed_parent: Animal,
    all_animals: AnimalSet,
    role: Optional[str] = None,
) -> ValidationResult:
    """
    Check a proposed parent link before it is saved.

    Errors (biologically impossible):
      - the animal as its own parent
      - the proposed parent is a descendant of the animal (circular pedigree)
      - the proposed parent's sex does not match the role
      - the proposed parent was born on/after the animal

    Warnings (suspicious but possible):
      - parent less than 5 months or more than 12 years older
      - a birth date is missing, so age cannot be checked
      - high/extreme inbreeding with the animal's other known parent

    role is "father" or "mother"; if omitted it follows the parent's sex.
    """
    if role is None:
        role = "father" if proposed_parent.sex == MALE else "mother"
    if role not in ("father", "mother"):
        raise ValueError("role must be 'father' or 'mother'")

    graph = _as_graph(all_animals)
    result = ValidationResult()

    if proposed_parent.id == animal.id:
        result.errors.append("An animal cannot be its own parent.")
    elif animal.id in graph:
        below = flatten_generations(descendants_of(graph, animal.id, max_generations=None))
        if proposed_parent.id in below:
            result.errors.append(
                f"Assigning {proposed_parent.label()} as {role} of {animal.label()} "
                f"would create a circular pedigree."
            )

    expected_sex = MALE if role == "father" else FEMALE
    if proposed_parent.sex != expected_sex:
        result.errors.append(
            f"Proposed {role} {proposed_parent.label()} is {proposed_parent.sex}, expected {expected_sex}."
        )

    gap = months_between(proposed_parent.birth_date, animal.birth_date)
    gap_class = classify_gap(gap)
    if gap_class == "impossible":
        result.errors.append("Parent must be born before the child.")
    elif gap_class == "very_unusual":
        result.warnings.append(
            f"Parent is less than {MIN_PARENT_AGE_MONTHS} months older than the child, "
            f"which is biologically unlikely."
        )
    elif gap_class == "suspicious":
        result.warnings.append(
            f"Parent is more than {MAX_PARENT_AGE_MONTHS // 12} years older than the child; check the birth dates."
        )
    elif gap_class == "unknown":
        result.warnings.append("Birth date missing; parent age could not be verified.")

    other_id = animal.mother_id if role == "father" else animal.father_id
    if (
        not result.errors
        and other_id is not None
        and other_id != proposed_parent.id
        and other_id in graph
        and proposed_parent.id in graph
    ):
        calc = InbreedingCalculator(graph)
        if role == "father":
            inbreeding = calc.coefficient(proposed_parent.id, other_id)
        else:
            inbreeding = calc.coefficient(other_id, proposed_parent.id)
        if inbreeding.risk in (RISK_HIGH, RISK_EXTREME):
            result.warnings.append(
                f"Offspring inbreeding coefficient would be {inbreeding.coefficient * 100:.1f}% "
                f"({inbreeding.risk} risk)."
            )

    return result


def validate_parentage(
    animal: Animal,
    father_id: Optional[str],
    mother_id: Optional[str],
    all_animals: AnimalSet,
) -> ValidationResult:
    """
    Validate assigning both parents at once (as a record form does).
    """
    graph = _as_graph(all_animals)
    result = ValidationResult()

    if father_id and mother_id and father_id == mother_id:
        result.errors.append("An animal cannot have the same parent as both father and mother.")

    # judge each link against the record as it would be saved
    proposed = replace(animal, father_id=father_id, mother_id=mother_id)
    hypothetical = GenealogyGraph([a for a in graph.animals() if a.id != animal.id] + [proposed])

    for role, pid in (("father", father_id), ("mother", mother_id)):
        if pid is None:
            continue
        parent = proposed if pid == animal.id else graph.get(pid)
        if parent is None:
            result.errors.append(f"Proposed {role} {pid!r} does not exist.")
            continue
        result.merge(validate_relationship(proposed, parent, hypothetical, role=role))

    return result
