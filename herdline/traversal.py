from __future__ import annotations

from collections import deque
from typing import Callable, Dict, Iterable, List, Set, Tuple

from .genealogy_graph import GenealogyGraph

# Matches the practical depth of the visual layout.
DEFAULT_MAX_GENERATIONS = 4

# Depth used for path enumeration when computing inbreeding.
DEFAULT_PATH_GENERATIONS = 10


def _bfs(
    graph: GenealogyGraph,
    animal_id: str,
    max_generations: int | None,
    step: Callable[[str], Iterable[str]],
) -> Dict[int, Set[str]]:
    graph.require(animal_id)

    # visited is checked before enqueueing: this is what terminates cyclic data
    visited: Set[str] = {animal_id}
    by_gen: Dict[int, Set[str]] = {}
    q = deque([(animal_id, 0)])

    while q:
        nid, d = q.popleft()
        if max_generations is not None and d >= max_generations:
            continue

        for nxt in sorted(step(nid)):
            if nxt in visited:
                continue
            visited.add(nxt)
            by_gen.setdefault(d + 1, set()).add(nxt)
            q.append((nxt, d + 1))

    return by_gen


def ancestors_of(
    graph: GenealogyGraph,
    animal_id: str,
    max_generations: int | None = DEFAULT_MAX_GENERATIONS,
) -> Dict[int, Set[str]]:
    """
    Generation-indexed ancestors: {1: parents, 2: grandparents, ...}.

    Each ancestor is listed once, at the nearest generation it is reached.
    Unknown/dangling parents are leaves. The root itself is never included,
    even if corrupted data makes it its own ancestor.

    Raises UnknownAnimalError if animal_id is not in the graph.
    """
    return _bfs(graph, animal_id, max_generations, lambda nid: graph.parents_of(nid).known())


def descendants_of(
    graph: GenealogyGraph,
    animal_id: str,
    max_generations: int | None = DEFAULT_MAX_GENERATIONS,
) -> Dict[int, Set[str]]:
    """
    Generation-indexed descendants: {1: children, 2: grandchildren, ...}.
    """
    return _bfs(graph, animal_id, max_generations, graph.children_of)


def flatten_generations(by_gen: Dict[int, Set[str]]) -> Set[str]:
    out: Set[str] = set()
    for ids in by_gen.values():
        out.update(ids)
    return out


def ancestor_paths(
    graph: GenealogyGraph,
    animal_id: str,
    max_generations: int = DEFAULT_PATH_GENERATIONS,
) -> Dict[str, List[Tuple[str, ...]]]:
    """
    Every distinct upward path from animal_id to each ancestor.

    Returns {ancestor_id: [path, ...]} where a path is the tuple of ids
    walked, starting with animal_id and ending with the ancestor, so
    len(path) - 1 is the number of parent-child edges. The animal itself is
    included with the single path (animal_id,) of length 0.

    Paths are enumerated by edge sequence, not by reachability: an ancestor
    reached through two lineages gets two paths. A path never revisits an
    id, so cycles in corrupted data cannot loop.
    """
    graph.require(animal_id)

    paths: Dict[str, List[Tuple[str, ...]]] = {animal_id: [(animal_id,)]}

    def walk(path: Tuple[str, ...], on_path: Set[str]) -> None:
        if len(path) - 1 >= max_generations:
            return
        for pid in graph.parents_of(path[-1]).known():
            if pid in on_path:
                continue
            nxt = path + (pid,)
            paths.setdefault(pid, []).append(nxt)
            on_path.add(pid)
            walk(nxt, on_path)
            on_path.discard(pid)

    walk((animal_id,), {animal_id})
    return paths


def is_descendant(graph: GenealogyGraph, candidate_id: str, ancestor_id: str) -> bool:
    """
    True if candidate_id descends from ancestor_id (unbounded, cycle-safe).
    """
    if candidate_id not in graph or ancestor_id not in graph or candidate_id == ancestor_id:
        return False
    below = flatten_generations(descendants_of(graph, ancestor_id, max_generations=None))
    return candidate_id in below


def is_direct_lineage(graph: GenealogyGraph, a_id: str, b_id: str) -> bool:
    """
    True if one animal is an ancestor of the other.
    """
    return is_descendant(graph, a_id, b_id) or is_descendant(graph, b_id, a_id)


def lineage_of(
    graph: GenealogyGraph,
    animal_id: str,
    role: str = "mother",
    max_generations: int | None = DEFAULT_PATH_GENERATIONS,
) -> List[str]:
    """
    Straight maternal (role="mother") or paternal (role="father") line,
    nearest first. Stops at the first unknown parent or repeated id.
    """
    if role not in ("mother", "father"):
        raise ValueError("role must be 'mother' or 'father'")
    graph.require(animal_id)

    line: List[str] = []
    seen: Set[str] = {animal_id}
    current = animal_id

    while max_generations is None or len(line) < max_generations:
        parents = graph.parents_of(current)
        nxt = parents.mother if role == "mother" else parents.father
        if nxt is None or nxt in seen:
            break
        line.append(nxt)
        seen.add(nxt)
        current = nxt

    return line


def is_tree_root(graph: GenealogyGraph, animal_id: str) -> bool:
    """
    True if the animal starts a maternal line: its dam is unrecorded or not
    in the herd.
    """
    graph.require(animal_id)
    return graph.parents_of(animal_id).mother is None


def maternal_roots(graph: GenealogyGraph, active_only: bool = True) -> List[str]:
    """
    Ids of the animals that head a maternal family tree, sorted.
    """
    return [
        a.id
        for a in graph.animals()
        if graph.parents_of(a.id).mother is None and (not active_only or a.status == "active")
    ]
