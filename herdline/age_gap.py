# herdline/age_gap.py

from __future__ import annotations
from datetime import date
from typing import List, Dict, Any, Optional

from .genealogy_graph import GenealogyGraph

# Average month length in days, as used for gestation/maturity arithmetic.
DAYS_PER_MONTH = 30.44

MIN_PARENT_AGE_MONTHS = 5
MAX_PARENT_AGE_MONTHS = 12 * 12


def months_between(older: Optional[date], younger: Optional[date]) -> Optional[float]:
    """
    Age gap in months (positive if `older` was born first). None if either
    birth date is missing.
    """
    if older is None or younger is None:
        return None
    return (younger - older).days / DAYS_PER_MONTH


def classify_gap(gap_months: Optional[float]) -> str:
    """
    Categorize a parent/child age gap for quality checks.
    """
    if gap_months is None:
        return "unknown"
    if gap_months <= 0:
        return "impossible"
    if gap_months < MIN_PARENT_AGE_MONTHS:
        return "very_unusual"
    if gap_months > MAX_PARENT_AGE_MONTHS:
        return "suspicious"
    return "normal"


def compute_age_gaps(graph: GenealogyGraph) -> List[Dict[str, Any]]:
    """
    Sire and dam age gaps for every animal with a resolved parent.

    Output format example:

    {
        "child_id": "G-104",
        "parent_role": "mother",
        "parent_id": "G-017",
        "child_birth_date": "2022-03-01",
        "parent_birth_date": "2019-02-11",
        "gap_months": 36.6,
        "classification": "normal"
    }
    """
    results = []

    for child in graph.animals():
        parents = graph.parents_of(child.id)

        for role, parent_id in (("father", parents.father), ("mother", parents.mother)):
            if parent_id is None:
                continue
            parent = graph.animal(parent_id)

            gap = months_between(parent.birth_date, child.birth_date)

            results.append({
                "child_id": child.id,
                "parent_role": role,
                "parent_id": parent_id,
                "child_birth_date": child.birth_date.isoformat() if child.birth_date else None,
                "parent_birth_date": parent.birth_date.isoformat() if parent.birth_date else None,
                "gap_months": round(gap, 1) if gap is not None else None,
                "classification": classify_gap(gap),
            })

    return results
