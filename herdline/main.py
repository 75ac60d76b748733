from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

from .age_gap import compute_age_gaps
from .breeding_advisor import recommend_mates, validate_relationship
from .genealogy_graph import GenealogyGraph, UnknownAnimalError
from .herd_api import DEFAULT_BASE_URL, build_client, fetch_animals
from .herd_store import (
    SNAPSHOT_VERSION,
    load_snapshot,
    read_animals_json,
    save_snapshot,
)
from .inbreeding import InbreedingCalculator
from .models import Animal, animals_from_records
from .pedigree_summary import (
    ancestor_contributions,
    generation_summary,
    genetic_diversity,
    pedigree_insights,
    tree_stats,
)
from .recommendations_xlsx import upsert_recommendations
from .trait_genetics import predict_offspring_traits
from .traversal import DEFAULT_MAX_GENERATIONS, lineage_of, maternal_roots
from .tree_layout import LINEAGES, TreeLayoutEngine


# ---------------------------------------------------------------------------

def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Inspect a herd's genealogy: pedigree layout, inbreeding and mate recommendations.",
    )

    # ---- data source ----
    parser.add_argument("--animals", metavar="PATH", help="JSON file with animal records.")
    parser.add_argument(
        "--source-url",
        metavar="URL",
        default=None,
        help=f"Fetch animal records from the herd records service (e.g. {DEFAULT_BASE_URL}).",
    )
    parser.add_argument("--herd-id", default=None, help="Herd id passed to the records service.")
    parser.add_argument("--token", default=None, help="Bearer token for the records service.")
    parser.add_argument(
        "--snapshot",
        metavar="PATH",
        default=None,
        help="Versioned snapshot file: read if valid, written after a fetch.",
    )
    parser.add_argument(
        "--refresh-snapshot",
        action="store_true",
        help="Ignore an existing snapshot and fetch again (overwrites it).",
    )

    # ---- root animal ----
    parser.add_argument("--root", help="Id of the animal to inspect.")
    parser.add_argument(
        "--max-generations",
        type=int,
        default=DEFAULT_MAX_GENERATIONS,
        help=f"Generations to walk up/down for layout and summaries (default: {DEFAULT_MAX_GENERATIONS}).",
    )

    # ---- actions ----
    parser.add_argument("--layout", action="store_true", help="Compute the pedigree chart layout.")
    parser.add_argument("--lineage", choices=LINEAGES, default="full")
    parser.add_argument("--summary", action="store_true", help="Generation summary, stats and insights.")
    parser.add_argument("--diversity", action="store_true", help="Herd genetic diversity check and maternal lines.")
    parser.add_argument("--inbreeding", metavar="SIRE,DAM", help="Inbreeding coefficient of a pairing.")
    parser.add_argument("--recommend", action="store_true", help="Rank candidate mates for --root.")
    parser.add_argument("--goal", default=None, help="Numeric trait to improve (e.g. milk_yield_genetics).")
    parser.add_argument("--limit", type=int, default=10)
    parser.add_argument(
        "--include-inactive",
        action="store_true",
        help="Also consider candidates whose status is not 'active'.",
    )
    parser.add_argument("--validate-parent", metavar="ID", help="Check a proposed parent for --root.")
    parser.add_argument("--role", choices=("father", "mother"), default=None)
    parser.add_argument("--age-gaps", action="store_true", help="Parent/child age gap report.")

    parser.add_argument("--json", action="store_true")

    # ---- recommendation export ----
    parser.add_argument(
        "--append-recommendations",
        action="store_true",
        help="Upsert the recommendations into an Excel file.",
    )
    parser.add_argument(
        "--recommendations-xlsx",
        type=str,
        default="recommendations.xlsx",
        help="Path to recommendations Excel file (default: recommendations.xlsx).",
    )
    parser.add_argument(
        "--sheet",
        type=str,
        default="Recommendations",
        help="Worksheet name in the recommendations Excel file (default: Recommendations).",
    )

    return parser.parse_args(argv)


# ---------------------------------------------------------------------------

def _parse_pair(raw: str) -> tuple[str, str]:
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 2 or not all(parts):
        raise SystemExit("[main] ERROR: --inbreeding expects SIRE,DAM")
    return parts[0], parts[1]


def _load_animals(args: argparse.Namespace, log) -> list[Animal]:
    if args.animals and args.source_url:
        raise SystemExit("[main] ERROR: use either --animals or --source-url, not both")

    if args.animals:
        return read_animals_json(Path(args.animals))

    snapshot = Path(args.snapshot) if args.snapshot else None

    if snapshot is not None and not args.refresh_snapshot:
        cached = load_snapshot(snapshot)
        if cached is not None:
            log(f"[main] Snapshot hit ({len(cached['animals'])} animals) v{cached.get('snapshot_version')}")
            return animals_from_records(cached["animals"])
        if snapshot.exists():
            log(f"[main] Snapshot exists but is incompatible (expected v{SNAPSHOT_VERSION}): {snapshot}")

    if not args.source_url:
        raise SystemExit("[main] ERROR: --animals, --source-url or a valid --snapshot is required")

    session = build_client(args.token)
    animals = fetch_animals(session, args.source_url, herd_id=args.herd_id)

    if snapshot is not None:
        try:
            save_snapshot(snapshot, animals)
        except OSError as e:
            log("[main] WARNING: failed to save snapshot:", e)

    return animals


def _require_root(args: argparse.Namespace, graph: GenealogyGraph, what: str) -> Animal:
    if not args.root:
        raise SystemExit(f"[main] ERROR: {what} requires --root")
    try:
        return graph.animal(args.root)
    except UnknownAnimalError as e:
        raise SystemExit(f"[main] ERROR: {e}") from None


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)

    # Keep stdout JSON-clean for --json pipelines
    real_stdout = sys.stdout
    if args.json:
        sys.stdout = sys.stderr

    def _log(*a: Any) -> None:
        print(*a, file=sys.stderr if args.json else sys.stdout)

    try:
        animals = _load_animals(args, _log)
        graph = GenealogyGraph(animals)
        _log(f"[main] Herd loaded: {len(graph)} animals")

        if graph.duplicate_ids:
            _log(f"[main] WARNING: duplicate ids (last record kept): {', '.join(sorted(graph.duplicate_ids))}")
        if graph.dangling_references:
            _log(f"[main] WARNING: {len(graph.dangling_references)} parent references point outside the herd")

        if args.max_generations < 0:
            raise SystemExit("[main] ERROR: --max-generations must be >= 0")

        result: dict[str, Any] = {}
        calc = InbreedingCalculator(graph)

        # ---- Pedigree layout ----
        if args.layout:
            root = _require_root(args, graph, "--layout")
            layout = TreeLayoutEngine().layout(
                root.id,
                graph,
                args.max_generations,
                lineage=args.lineage,
            )
            result["layout"] = layout.to_dict()

            _log(f"\n[main] Pedigree layout for {root.label()} ({args.lineage})")
            _log("-" * 60)
            for gen, nodes in sorted(layout.nodes_by_generation.items()):
                names = []
                for n in nodes:
                    a = graph.get(n.id)
                    names.append(a.label() if a else f"[{n.id}]")
                _log(f"  Generation {gen:+d}: {', '.join(names)}")
            _log(f"  Edges: {len(layout.edges)}")

        # ---- Summary ----
        if args.summary:
            root = _require_root(args, graph, "--summary")
            summary, gen_counts = generation_summary(
                graph, root_id=root.id, max_generations=args.max_generations
            )
            stats = tree_stats(graph, root.id, args.max_generations)
            contributions = ancestor_contributions(
                graph, root_id=root.id, max_generations=args.max_generations
            )
            insights = pedigree_insights(graph, root.id)

            result["summary"] = {
                **summary,
                "generations": gen_counts,
                "stats": stats,
                "contributions": contributions,
                "maternal_line": lineage_of(graph, root.id, "mother"),
                "paternal_line": lineage_of(graph, root.id, "father"),
                "individual_inbreeding": calc.individual_inbreeding(root.id),
                "insights": insights,
            }

            _log(f"\n[main] Pedigree Summary for {root.label()}")
            _log("-" * 60)
            _log(f"Total unique nodes: {summary['total_nodes']}")
            _log(f"Max generation: {summary['max_generation']}")
            _log(f"Open nodes: {summary['open_nodes']}")
            _log(f"Closed nodes: {summary['closed_nodes']}\n")
            for g, c in gen_counts.items():
                _log(f"  Generation {g}: {c} unique")
            _log(f"\nAncestors: {stats['total_ancestors']}  Descendants: {stats['total_descendants']}")
            _log(f"Own inbreeding coefficient: {calc.individual_inbreeding(root.id) * 100:.2f}%")

            if contributions:
                _log("\n[main] Top ancestors by genetic contribution")
                _log("-" * 60)
                for aid, d in list(contributions.items())[:10]:
                    _log(f"  {graph.animal(aid).label()}: share={d['share']:.4f} (count={int(d['count'])})")

            for note in insights:
                _log(f"  * {note}")

        # ---- Herd diversity ----
        if args.diversity:
            diversity = genetic_diversity(graph)
            roots = maternal_roots(graph, active_only=not args.include_inactive)
            result["diversity"] = {**diversity, "maternal_roots": roots}

            _log("\n[main] Herd genetic diversity")
            _log("-" * 60)
            _log(f"Score: {diversity['score']} ({diversity['analysis']})")
            _log(f"Potential inbreeding: {diversity['potential_inbreeding'] * 100:.1f}%")
            _log(f"Maternal lines: {len(roots)}")
            for note in diversity["recommendations"]:
                _log(f"  * {note}")

        # ---- Inbreeding of a pairing ----
        if args.inbreeding:
            sire_id, dam_id = _parse_pair(args.inbreeding)
            try:
                ib = calc.coefficient(sire_id, dam_id)
            except UnknownAnimalError as e:
                raise SystemExit(f"[main] ERROR: {e}") from None

            offspring = predict_offspring_traits(graph.animal(sire_id), graph.animal(dam_id))
            result["inbreeding"] = {**ib.to_dict(), "predictedTraits": offspring}

            _log(f"\n[main] Inbreeding {sire_id} x {dam_id}: {ib.coefficient * 100:.2f}% ({ib.risk})")
            if ib.common_ancestors:
                _log(f"  Common ancestors: {', '.join(sorted(ib.common_ancestors))}")
            for line in ib.recommendations:
                _log(f"  - {line}")
            for k, v in offspring.items():
                _log(f"  {k}: {v}")

        # ---- Mate recommendations ----
        recommendations = None
        if args.recommend or args.append_recommendations:
            root = _require_root(args, graph, "--recommend")
            pool = [
                a for a in graph.animals()
                if args.include_inactive or a.status == "active"
            ]
            recommendations = recommend_mates(
                root,
                pool,
                graph,
                goal=args.goal,
                limit=args.limit,
                calculator=calc,
            )
            result["recommendations"] = [r.to_dict() for r in recommendations]

            _log(f"\n[main] Mate recommendations for {root.label()}")
            _log("-" * 60)
            if not recommendations:
                _log("  (no eligible candidates)")
            for r in recommendations:
                _log(
                    f"  {graph.animal(r.candidate_id).label()}: confidence={r.confidence_score:.3f} "
                    f"F={r.expected_outcome.inbreeding_coefficient * 100:.2f}% - {r.reason}"
                )

        if args.append_recommendations and recommendations is not None:
            n = upsert_recommendations(
                xlsx_path=Path(args.recommendations_xlsx),
                recommendations=recommendations,
                sheet_name=args.sheet,
            )
            _log(f"[main] {n} recommendations upserted -> {args.recommendations_xlsx} [{args.sheet}]")

        # ---- Parent validation ----
        if args.validate_parent:
            root = _require_root(args, graph, "--validate-parent")
            parent = graph.get(args.validate_parent)
            if parent is None:
                raise SystemExit(f"[main] ERROR: unknown animal id {args.validate_parent!r}")
            validation = validate_relationship(root, parent, graph, role=args.role)
            result["validation"] = validation.to_dict()

            status = "OK" if validation.is_valid else "INVALID"
            _log(f"\n[main] Parent check {parent.label()} -> {root.label()}: {status}")
            for e in validation.errors:
                _log(f"  ERROR: {e}")
            for w in validation.warnings:
                _log(f"  WARNING: {w}")

        # ---- Age gaps ----
        if args.age_gaps:
            age_gaps = compute_age_gaps(graph)
            result["age_gaps"] = age_gaps

            def cls(g): return str(g.get("classification", "")).lower()

            counts = {
                c: sum(1 for g in age_gaps if cls(g) == c)
                for c in ("normal", "very_unusual", "suspicious", "impossible", "unknown")
            }
            result["age_gap_summary"] = counts

            _log("\n[main] Parent age gaps")
            _log("-" * 60)
            for c, n in counts.items():
                _log(f"  {c}: {n}")
            for g in age_gaps:
                if cls(g) in ("impossible", "very_unusual", "suspicious"):
                    _log(
                        f"  {g['child_id']} <- {g['parent_role']} {g['parent_id']}: "
                        f"{g['gap_months']} months ({g['classification']})"
                    )

        # ---- JSON output ----
        if args.json:
            result["herd"] = {
                "animals": len(graph),
                "duplicate_ids": sorted(graph.duplicate_ids),
                "dangling_references": [
                    {"child_id": c, "role": r, "missing_id": m}
                    for c, r, m in graph.dangling_references
                ],
            }

            # Restore real stdout JUST for JSON output
            sys.stdout = real_stdout
            print(json.dumps(result, ensure_ascii=False, indent=2))
            sys.stdout = sys.stderr

        _log("\n[main] Done.")

    finally:
        sys.stdout = real_stdout


if __name__ == "__main__":
    main()
