from __future__ import annotations

from typing import Dict, List, Set, Tuple

from .genealogy_graph import GenealogyGraph
from .models import InbreedingResult
from .traversal import DEFAULT_PATH_GENERATIONS, ancestor_paths, is_direct_lineage


# ---------------------------------------------------------------------------
# Risk buckets
# ---------------------------------------------------------------------------

RISK_LOW = "low"
RISK_MODERATE = "moderate"
RISK_HIGH = "high"
RISK_EXTREME = "extreme"

# full siblings ~0.25, half siblings ~0.125, first cousins ~0.0625
LOW_BELOW = 0.03
MODERATE_BELOW = 0.06
HIGH_BELOW = 0.125

PARENT_OFFSPRING_FLOOR = 0.25

RISK_RECOMMENDATIONS: Dict[str, List[str]] = {
    RISK_EXTREME: [
        "Strongly avoid this breeding - extremely high inbreeding risk",
        "Consider using unrelated breeding stock",
    ],
    RISK_HIGH: [
        "High inbreeding risk - proceed with caution",
        "Monitor offspring closely for genetic defects",
        "Consider outcrossing in next generation",
    ],
    RISK_MODERATE: [
        "Moderate inbreeding - acceptable but monitor offspring",
        "Ensure genetic diversity in future breedings",
    ],
    RISK_LOW: [
        "Low inbreeding risk - generally acceptable",
    ],
}


def risk_for(coefficient: float) -> str:
    if coefficient < LOW_BELOW:
        return RISK_LOW
    if coefficient < MODERATE_BELOW:
        return RISK_MODERATE
    if coefficient < HIGH_BELOW:
        return RISK_HIGH
    return RISK_EXTREME


def recommendations_for(risk: str) -> List[str]:
    """
    Human-readable advice, derived only from the risk bucket.
    """
    return list(RISK_RECOMMENDATIONS.get(risk, []))


def _clamp(v: float) -> float:
    return min(1.0, max(0.0, v))


# ---------------------------------------------------------------------------
# Wright's path method
# ---------------------------------------------------------------------------

class InbreedingCalculator:
    """
    Wright's coefficient for the hypothetical offspring of a sire x dam pair:

        F = sum_A sum_(p, q) (1/2)^(n_p + n_q + 1) * (1 + F_A)

    over every common ancestor A and every pair of paths p (sire -> A) and
    q (dam -> A) that share no animal other than A. Each animal is its own
    ancestor at distance 0, which is what makes parent x offspring pairs
    come out at 0.25.

    Path sets and ancestor F values are memoized on the instance, so reuse
    one calculator when scoring many pairs against the same graph.
    """

    def __init__(self, graph: GenealogyGraph, max_generations: int = DEFAULT_PATH_GENERATIONS):
        self.graph = graph
        self.max_generations = max_generations
        self._paths: Dict[str, Dict[str, List[Tuple[str, ...]]]] = {}
        self._f_cache: Dict[str, float] = {}
        self._in_progress: Set[str] = set()

    def _paths_for(self, animal_id: str) -> Dict[str, List[Tuple[str, ...]]]:
        if animal_id not in self._paths:
            self._paths[animal_id] = ancestor_paths(self.graph, animal_id, self.max_generations)
        return self._paths[animal_id]

    def _coancestry(self, a_id: str, b_id: str) -> Tuple[float, Set[str]]:
        a_paths = self._paths_for(a_id)
        b_paths = self._paths_for(b_id)
        common = set(a_paths) & set(b_paths)

        total = 0.0
        for anc in sorted(common):
            f_anc = None
            for p in a_paths[anc]:
                p_inner = set(p[:-1])
                for q in b_paths[anc]:
                    if p_inner.intersection(q[:-1]):
                        continue
                    if f_anc is None:
                        f_anc = self.individual_inbreeding(anc)
                    total += 0.5 ** ((len(p) - 1) + (len(q) - 1) + 1) * (1.0 + f_anc)

        return total, common

    def individual_inbreeding(self, animal_id: str) -> float:
        """
        F of an existing animal: the coefficient of its own parents.
        0 when either parent is unknown.
        """
        if animal_id in self._f_cache:
            return self._f_cache[animal_id]
        if animal_id in self._in_progress:
            # cyclic parentage: stop the recursion here
            return 0.0

        parents = self.graph.parents_of(animal_id)
        if parents.father is None or parents.mother is None:
            value = 0.0
        else:
            self._in_progress.add(animal_id)
            try:
                if parents.father == parents.mother:
                    value = 0.5 * (1.0 + self.individual_inbreeding(parents.father))
                else:
                    value, _ = self._coancestry(parents.father, parents.mother)
            finally:
                self._in_progress.discard(animal_id)

        value = _clamp(value)
        self._f_cache[animal_id] = value
        return value

    def coefficient(self, sire_id: str, dam_id: str) -> InbreedingResult:
        """
        Raises UnknownAnimalError if either id is not in the graph; missing
        or corrupted parentage never raises.
        """
        self.graph.require(sire_id, dam_id)

        if sire_id == dam_id:
            value = _clamp(0.5 * (1.0 + self.individual_inbreeding(sire_id)))
            return InbreedingResult(
                sire_id=sire_id,
                dam_id=dam_id,
                coefficient=value,
                risk=RISK_EXTREME,
                common_ancestors={sire_id},
                recommendations=recommendations_for(RISK_EXTREME),
                direct_lineage=True,
            )

        value, common = self._coancestry(sire_id, dam_id)
        value = _clamp(value)

        direct = is_direct_lineage(self.graph, sire_id, dam_id)
        if direct:
            # path enumeration can undercount for shallow trees
            if sire_id in self.graph.parents_of(dam_id).known() or dam_id in self.graph.parents_of(sire_id).known():
                value = max(value, PARENT_OFFSPRING_FLOOR)
            risk = RISK_EXTREME
        else:
            risk = risk_for(value)

        return InbreedingResult(
            sire_id=sire_id,
            dam_id=dam_id,
            coefficient=value,
            risk=risk,
            common_ancestors=common,
            recommendations=recommendations_for(risk),
            direct_lineage=direct,
        )


def inbreeding_coefficient(
    sire_id: str,
    dam_id: str,
    graph: GenealogyGraph,
    *,
    max_generations: int = DEFAULT_PATH_GENERATIONS,
) -> InbreedingResult:
    return InbreedingCalculator(graph, max_generations=max_generations).coefficient(sire_id, dam_id)
