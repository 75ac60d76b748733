from __future__ import annotations

from collections import Counter, defaultdict
from typing import Any

from .genealogy_graph import GenealogyGraph
from .traversal import (
    DEFAULT_MAX_GENERATIONS,
    ancestors_of,
    descendants_of,
    flatten_generations,
)


def generation_summary(
    graph: GenealogyGraph,
    *,
    root_id: str,
    max_generations: int | None = DEFAULT_MAX_GENERATIONS,
) -> tuple[dict[str, Any], dict[int, int]]:
    """
    UNIQUE ancestor summary (deduplicated by id), root included at gen 0.
    Returns:
      summary: {total_nodes, max_generation, open_nodes, closed_nodes}
      gen_counts: {generation: count}

    open_nodes have exactly one known parent, closed_nodes have none
    (founders or the edge of the recorded pedigree).
    """
    by_gen = ancestors_of(graph, root_id, max_generations)

    gen_counts: dict[int, int] = {0: 1}
    for gen, ids in by_gen.items():
        gen_counts[gen] = len(ids)

    open_nodes = 0
    closed_nodes = 0
    for nid in flatten_generations(by_gen) | {root_id}:
        known = len(graph.parents_of(nid).known())
        if known == 0:
            closed_nodes += 1
        elif known == 1:
            open_nodes += 1

    summary = {
        "total_nodes": sum(gen_counts.values()),
        "max_generation": max(gen_counts),
        "open_nodes": open_nodes,
        "closed_nodes": closed_nodes,
    }
    return summary, dict(sorted(gen_counts.items()))


def tree_stats(
    graph: GenealogyGraph,
    root_id: str,
    max_generations: int | None = DEFAULT_MAX_GENERATIONS,
) -> dict[str, int]:
    ancestors = ancestors_of(graph, root_id, max_generations)
    descendants = descendants_of(graph, root_id, max_generations)
    return {
        "total_ancestors": len(flatten_generations(ancestors)),
        "total_descendants": len(flatten_generations(descendants)),
        "generations_back": max(ancestors) if ancestors else 0,
    }


def ancestor_contributions(
    graph: GenealogyGraph,
    *,
    root_id: str,
    max_generations: int = DEFAULT_MAX_GENERATIONS,
) -> dict[str, dict[str, float]]:
    """
    Expected genetic share of each ancestor in root_id.

    "count" is an APPEARANCE COUNT on the expanded tree: an ancestor reached
    through both the sire and dam side counts twice, which is exactly what
    linebreeding looks like. "share" is sum((1/2)^gen) over those
    appearances.

      {ancestor_id: {"count": float, "share": float, "nearest": float}}

    The expansion carries the path so far; a parent already on the path is
    not followed (corrupted cyclic data).
    """
    graph.require(root_id)

    counts: dict[str, int] = Counter()
    shares: dict[str, float] = defaultdict(float)
    nearest: dict[str, int] = {}

    current: list[tuple[str, frozenset]] = [(root_id, frozenset({root_id}))]
    for gen in range(1, max_generations + 1):
        nxt: list[tuple[str, frozenset]] = []
        for aid, on_path in current:
            for pid in graph.parents_of(aid).known():
                if pid in on_path:
                    continue
                nxt.append((pid, on_path | {pid}))

        if not nxt:
            break

        for pid, _ in nxt:
            counts[pid] += 1
            shares[pid] += 0.5 ** gen
            nearest.setdefault(pid, gen)
        current = nxt

    return {
        aid: {
            "count": float(counts[aid]),
            "share": shares[aid],
            "nearest": float(nearest[aid]),
        }
        for aid in sorted(counts, key=lambda a: (-shares[a], a))
    }


def pedigree_insights(graph: GenealogyGraph, root_id: str) -> list[str]:
    """
    Short data-quality notes for one animal's record.
    """
    animal = graph.animal(root_id)
    insights: list[str] = []

    if animal.father_id is None and animal.mother_id is None:
        insights.append("No parentage information available - consider adding if known")
    elif animal.father_id is None:
        insights.append("Father information missing - adds to genetic record if available")
    elif animal.mother_id is None:
        insights.append("Mother information missing - important for breeding decisions")

    for child_id, role, missing_id in graph.dangling_references:
        if child_id == root_id:
            insights.append(f"Recorded {role} {missing_id!r} is not in the herd records")

    ancestors = flatten_generations(ancestors_of(graph, root_id, max_generations=None))
    if len(ancestors) > 10:
        insights.append(f"Rich pedigree with {len(ancestors)} known ancestors")
    elif len(ancestors) > 5:
        insights.append("Good pedigree depth for breeding decisions")
    elif ancestors:
        insights.append("Basic pedigree information available")

    return insights


# herd diversity score: base plus capped bonuses, minus the inbreeding penalty
DIVERSITY_BASE = 50
BREED_POINTS, BREED_CAP = 5, 25
COLOR_POINTS, COLOR_CAP = 3, 15
INBREEDING_RATE_LIMIT = 0.2
INBREEDING_PENALTY = 20

_DIVERSITY_BANDS = (
    (80, "Excellent genetic diversity"),
    (60, "Good genetic diversity with room for improvement"),
    (40, "Moderate genetic diversity - action recommended"),
)


def _distinct_trait(graph: GenealogyGraph, key: str) -> set[str]:
    out: set[str] = set()
    for animal in graph.animals():
        v = animal.traits.get(key)
        if isinstance(v, str) and v.strip():
            out.add(v.strip().lower())
    return out


def potential_inbreeding_rate(graph: GenealogyGraph) -> float:
    """
    Share of animals with both parents recorded whose parents are half or
    full siblings (same known sire or same known dam). Parents that do not
    resolve still count in the denominator.
    """
    recorded = 0
    related = 0
    for animal in graph.animals():
        if animal.father_id is None or animal.mother_id is None:
            continue
        recorded += 1
        parents = graph.parents_of(animal.id)
        if parents.father is None or parents.mother is None:
            continue
        sire = graph.parents_of(parents.father)
        dam = graph.parents_of(parents.mother)
        if (sire.father is not None and sire.father == dam.father) or (
            sire.mother is not None and sire.mother == dam.mother
        ):
            related += 1
    return related / recorded if recorded else 0.0


def genetic_diversity(graph: GenealogyGraph) -> dict[str, Any]:
    """
    Herd-level diversity check from breed, coat colour and horn status
    variety plus the potential inbreeding rate.

      {score, analysis, recommendations, potential_inbreeding}
    """
    breeds = _distinct_trait(graph, "breed")
    colors = _distinct_trait(graph, "coat_color")
    horn_statuses = _distinct_trait(graph, "horn_status")

    score = DIVERSITY_BASE
    recommendations: list[str] = []

    score += min(len(breeds) * BREED_POINTS, BREED_CAP)
    if len(breeds) < 3:
        recommendations.append("Consider introducing different breeds to increase genetic diversity")

    if len(horn_statuses) < 2:
        recommendations.append("Limited horn status variation - consider breeding polled and horned lines")

    score += min(len(colors) * COLOR_POINTS, COLOR_CAP)
    if len(colors) < 3:
        recommendations.append("Limited color variation may indicate reduced genetic diversity")

    rate = potential_inbreeding_rate(graph)
    if rate > INBREEDING_RATE_LIMIT:
        score -= INBREEDING_PENALTY
        recommendations.append("High potential for inbreeding detected - introduce new bloodlines")

    analysis = "Low genetic diversity - immediate action needed"
    for floor, label in _DIVERSITY_BANDS:
        if score >= floor:
            analysis = label
            break

    return {
        "score": max(0, min(100, score)),
        "analysis": analysis,
        "recommendations": recommendations,
        "potential_inbreeding": rate,
    }
