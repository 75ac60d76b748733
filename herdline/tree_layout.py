from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from .genealogy_graph import GenealogyGraph
from .models import (
    FEMALE,
    MALE,
    PAIR_BOND,
    PARENT_CHILD,
    Animal,
    PedigreeEdge,
    PedigreeLayout,
    PedigreeNode,
    Position,
)
from .traversal import DEFAULT_MAX_GENERATIONS, descendants_of

SLOT_WIDTH = 150.0
VERTICAL_SPACING = 200.0

LINEAGES = ("full", "maternal", "paternal")

UNKNOWN_DATE = "unknown-date"


def parent_child_edge_id(source: str, target: str) -> str:
    return f"{PARENT_CHILD}:{source}->{target}"


def pair_bond_edge_id(a: str, b: str) -> str:
    lo, hi = sorted((a, b))
    return f"{PAIR_BOND}:{lo}--{hi}"


@dataclass
class _Family:
    partner_id: str
    place_partner: bool
    children: List["_Subtree"] = field(default_factory=list)


@dataclass
class _Subtree:
    animal_id: str
    families: List[_Family] = field(default_factory=list)
    width: float = 1.0


class _LayoutRun:
    """
    State for one layout call. Never reused.

    Ancestors (rows above the root) use a tidy leaf-counter layout: leaves
    take successive slots and every node is centred between the parents it
    placed, so each subtree owns a contiguous run of slots. Descendants
    (rows below) are measured first and then given disjoint intervals, with
    an animal and the mates of its offspring groups side by side on its row.
    Both halves are shifted so the root sits at x = 0.
    """

    def __init__(
        self,
        graph: GenealogyGraph,
        root_id: str,
        max_generations: int,
        lineage: str,
        include_descendants: bool,
        slot_width: float,
        vertical_spacing: float,
    ):
        self.graph = graph
        self.root_id = root_id
        self.max_generations = max_generations
        self.lineage = lineage
        self.include_descendants = include_descendants
        self.slot_width = slot_width
        self.vertical_spacing = vertical_spacing

        # visited discipline shared by both halves: an id is placed at most once
        self.placed: Set[str] = set()

        self.synthetic_ids: Dict[str, str] = {}          # stable key -> "unknown-N"
        self.synthetic_sex: Dict[str, str] = {}
        self.edges: Dict[str, PedigreeEdge] = {}

        self.ancestor_slots: Dict[str, Tuple[float, int]] = {}    # id -> (slot, generation)
        self.descendant_slots: Dict[str, Tuple[float, int]] = {}
        self.descendant_depth: Dict[str, int] = {}               # id -> nearest generation below root
        self.next_leaf = 0

    # -- nodes & edges -------------------------------------------------------

    def _synthetic(self, key: str, sex: str) -> str:
        sid = self.synthetic_ids.get(key)
        if sid is None:
            sid = f"unknown-{len(self.synthetic_ids)}"
            self.synthetic_ids[key] = sid
            self.synthetic_sex[sid] = sex
            self.placed.add(sid)
        return sid

    def _parent_child(self, source: str, target: str) -> None:
        eid = parent_child_edge_id(source, target)
        if eid not in self.edges:
            self.edges[eid] = PedigreeEdge(id=eid, source=source, target=target, kind=PARENT_CHILD)

    def _pair_bond(self, father: str, mother: str) -> None:
        if father == mother:
            # same animal recorded as both parents
            return
        eid = pair_bond_edge_id(father, mother)
        if eid not in self.edges:
            self.edges[eid] = PedigreeEdge(id=eid, source=father, target=mother, kind=PAIR_BOND)

    def _leaf(self) -> float:
        x = float(self.next_leaf)
        self.next_leaf += 1
        return x

    # -- ancestors -----------------------------------------------------------

    def _place_ancestors(self, animal_id: str, depth: int) -> float:
        generation = -depth

        if depth >= self.max_generations:
            x = self._leaf()
            self.ancestor_slots[animal_id] = (x, generation)
            return x

        parents = self.graph.parents_of(animal_id)
        shown: List[Tuple[str, Optional[str]]] = []
        if self.lineage != "maternal":
            shown.append(("father", parents.father))
        if self.lineage != "paternal":
            shown.append(("mother", parents.mother))

        parent_nodes: Dict[str, str] = {}
        xs: List[float] = []

        for role, pid in shown:
            if pid is None:
                sid = self._synthetic(f"{animal_id}|{role}", MALE if role == "father" else FEMALE)
                px = self._leaf()
                self.ancestor_slots[sid] = (px, generation - 1)
                parent_nodes[role] = sid
                xs.append(px)
            elif pid in self.placed:
                # pedigree collapse or cyclic data: link to the existing node
                parent_nodes[role] = pid
            else:
                self.placed.add(pid)
                parent_nodes[role] = pid
                xs.append(self._place_ancestors(pid, depth + 1))

        x = sum(xs) / len(xs) if xs else self._leaf()
        self.ancestor_slots[animal_id] = (x, generation)

        father = parent_nodes.get("father")
        mother = parent_nodes.get("mother")
        if father is not None and mother is not None:
            self._pair_bond(father, mother)
        bridge = father if father is not None else mother
        if bridge is not None:
            self._parent_child(bridge, animal_id)

        return x

    # -- descendants ---------------------------------------------------------

    def _offspring_groups(self, animal_id: str) -> List[Tuple[str, Optional[str], str, List[str]]]:
        """
        Children grouped by co-parent: [(role, coparent_id, birth_key, kids)].

        role is the animal's own role for that group. Children whose
        co-parent is unknown are sub-grouped by birth date, so separate
        unknown-sire litters are not merged behind one placeholder.
        """
        def sort_key(cid: str):
            bd = self.graph.animal(cid).birth_date
            return (bd is None, bd.isoformat() if bd else "", cid)

        groups: Dict[Tuple[str, Optional[str], str], List[str]] = {}
        for cid in sorted(self.graph.children_of(animal_id), key=sort_key):
            parents = self.graph.parents_of(cid)
            if parents.father == animal_id:
                role, coparent = "father", parents.mother
            else:
                role, coparent = "mother", parents.father
            if coparent == animal_id:
                coparent = None

            if coparent is None:
                bd = self.graph.animal(cid).birth_date
                birth_key = bd.isoformat() if bd else UNKNOWN_DATE
            else:
                birth_key = ""
            groups.setdefault((role, coparent, birth_key), []).append(cid)

        return [(role, coparent, birth_key, kids) for (role, coparent, birth_key), kids in groups.items()]

    def _collect(self, animal_id: str, depth: int) -> _Subtree:
        tree = _Subtree(animal_id=animal_id)
        if depth >= self.max_generations:
            return tree

        for role, coparent, birth_key, kids in self._offspring_groups(animal_id):
            if coparent is None:
                partner = self._synthetic(
                    f"{animal_id}|{role}|coparent-unknown|{birth_key}",
                    FEMALE if role == "father" else MALE,
                )
                place_partner = True
            elif coparent in self.placed or coparent in self.descendant_depth:
                # a mate that descends from the root gets its own subtree
                # at its own generation; here it is only linked
                partner = coparent
                place_partner = False
            else:
                self.placed.add(coparent)
                partner = coparent
                place_partner = True

            father, mother = (animal_id, partner) if role == "father" else (partner, animal_id)
            self._pair_bond(father, mother)

            family = _Family(partner_id=partner, place_partner=place_partner)
            for kid in kids:
                # the father is the bridge: the mother connects only via the pair bond
                self._parent_child(father, kid)
                # collected only under a parent on its nearest generation
                if kid in self.placed or self.descendant_depth.get(kid) != depth + 1:
                    continue
                self.placed.add(kid)
                family.children.append(self._collect(kid, depth + 1))
            tree.families.append(family)

        return tree

    def _measure(self, tree: _Subtree) -> float:
        kids = sum(self._measure(c) for f in tree.families for c in f.children)
        block = 1 + sum(1 for f in tree.families if f.place_partner)
        tree.width = max(float(block), kids)
        return tree.width

    def _assign(self, tree: _Subtree, left: float, generation: int) -> None:
        partners = [f.partner_id for f in tree.families if f.place_partner]
        start = left + (tree.width - (1 + len(partners))) / 2

        self.descendant_slots[tree.animal_id] = (start, generation)
        for i, pid in enumerate(partners, start=1):
            self.descendant_slots[pid] = (start + i, generation)

        cursor = left
        for family in tree.families:
            for child in family.children:
                self._assign(child, cursor, generation + 1)
                cursor += child.width

    # -- assembly ------------------------------------------------------------

    def _node(self, node_id: str, slot: float, origin: float, generation: int) -> PedigreeNode:
        animal = self.graph.get(node_id)
        synthetic = node_id in self.synthetic_sex
        return PedigreeNode(
            id=node_id,
            generation=generation,
            position=Position(
                x=(slot - origin) * self.slot_width,
                y=generation * self.vertical_spacing,
            ),
            sex=self.synthetic_sex[node_id] if synthetic else (animal.sex if animal else None),
            is_synthetic=synthetic,
            is_root=node_id == self.root_id,
        )

    def run(self) -> PedigreeLayout:
        self.placed.add(self.root_id)
        self._place_ancestors(self.root_id, 0)

        if self.include_descendants:
            by_gen = descendants_of(self.graph, self.root_id, self.max_generations)
            self.descendant_depth = {aid: gen for gen, ids in by_gen.items() for aid in ids}
            self.descendant_depth[self.root_id] = 0
            tree = self._collect(self.root_id, 0)
            self._measure(tree)
            self._assign(tree, 0.0, 0)

        nodes: Dict[str, PedigreeNode] = {}

        a_origin = self.ancestor_slots[self.root_id][0]
        for nid, (slot, gen) in self.ancestor_slots.items():
            nodes[nid] = self._node(nid, slot, a_origin, gen)

        if self.descendant_slots:
            d_origin = self.descendant_slots[self.root_id][0]
            for nid, (slot, gen) in self.descendant_slots.items():
                if nid not in nodes:
                    nodes[nid] = self._node(nid, slot, d_origin, gen)

        ordered = sorted(nodes.values(), key=lambda n: (n.generation, n.position.x, n.id))
        edges = [self.edges[eid] for eid in sorted(self.edges)]
        return PedigreeLayout(root_id=self.root_id, nodes=ordered, edges=edges)


class TreeLayoutEngine:
    """
    Turns a root animal plus the herd into positioned nodes and edges.

    Invariants of the result:
      - every real animal appears at most once; placeholders for unknown
        parents are created once per missing role (ancestors) or once per
        co-parent group (offspring), never once per child
      - parent-child edges run from the father (the bridge) to the child;
        the mother is connected through a pair-bond edge with the father
      - edge ids derive from endpoint ids, so identical input gives an
        identical layout
      - cyclic/corrupted parentage terminates, because no id is placed twice
    """

    def __init__(self, slot_width: float = SLOT_WIDTH, vertical_spacing: float = VERTICAL_SPACING):
        self.slot_width = slot_width
        self.vertical_spacing = vertical_spacing

    def layout(
        self,
        root_id: str,
        animals: Union[GenealogyGraph, Iterable[Animal]],
        max_generations: int = DEFAULT_MAX_GENERATIONS,
        *,
        lineage: str = "full",
        include_descendants: bool = True,
    ) -> PedigreeLayout:
        if lineage not in LINEAGES:
            raise ValueError(f"lineage must be one of {LINEAGES}")
        if max_generations < 0:
            raise ValueError("max_generations must be >= 0")

        graph = animals if isinstance(animals, GenealogyGraph) else GenealogyGraph(animals)
        graph.require(root_id)

        return _LayoutRun(
            graph,
            root_id,
            max_generations,
            lineage,
            include_descendants,
            self.slot_width,
            self.vertical_spacing,
        ).run()


def layout(
    root_id: str,
    all_animals: Union[GenealogyGraph, Iterable[Animal]],
    max_generations: int = DEFAULT_MAX_GENERATIONS,
    **kwargs,
) -> PedigreeLayout:
    return TreeLayoutEngine().layout(root_id, all_animals, max_generations, **kwargs)
