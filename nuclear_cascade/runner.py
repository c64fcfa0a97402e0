"""
Runner script for the nuclear cascade engine.

Loads a JSON config, builds the table-backed discovery and lookup services
from the CSV files named in its ``data`` section, runs one simulation and
reports the outcome.

Usage
-----
    python runner.py config.json [--output-dir results/]

Data paths are resolved relative to the config file.  Outputs written to the
output directory:

* ``summary.json``             – run summary, energy statistics, top products,
                                 pathways and feedback cycles.
* ``config_snapshot.json``     – the config with its SHA-256 hash.
* ``experiment_metadata.json`` – file locations, hash and timestamp.
"""

from __future__ import annotations

import argparse
import hashlib
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

from .cascade import LoopProgress
from .config import load_config, parameters_from_config
from .discovery import DEFAULT_ROW_LIMIT, TableReactionDiscovery
from .errors import CascadeError
from .lookup import NullNuclideLookup, NuclideLookupService, TableNuclideLookup
from .metrics import energy_histogram, energy_statistics, product_summary
from .network import build_reaction_graph, detect_cycles
from .pathways import analyze_pathways
from .results import CascadeResults
from .simulation import simulate


DEFAULT_DATA = {
    "fusion_table": "data/fusion.csv",
    "two_to_two_table": "data/two_to_two.csv",
}

TOP_K = 10


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Nuclear cascade engine: fusion and two-to-two cascade runner."
    )
    parser.add_argument("config", help="Path to JSON configuration file.")
    parser.add_argument(
        "--output-dir",
        default="results",
        help="Directory for output files (default: results/).",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Do not print per-loop progress.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for the engine (default: WARNING).",
    )
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Filesystem helpers
# ---------------------------------------------------------------------------


def _ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _config_hash(cfg: dict) -> str:
    """Compute a SHA-256 hash of the JSON-serialised config for reproducibility."""
    serialised = json.dumps(cfg, sort_keys=True).encode("utf-8")
    return hashlib.sha256(serialised).hexdigest()


def _save_config_snapshot(output_dir: Path, cfg: dict) -> None:
    snapshot = {
        "config": cfg,
        "sha256": _config_hash(cfg),
    }
    (output_dir / "config_snapshot.json").write_text(json.dumps(snapshot, indent=2))


def _resolve(base: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else base / path


# ---------------------------------------------------------------------------
# Service construction
# ---------------------------------------------------------------------------


def build_services(
    cfg: dict,
    base_dir: Path,
) -> tuple[TableReactionDiscovery, NuclideLookupService]:
    """Build discovery and lookup services from the config ``data`` section.

    Parameters
    ----------
    cfg : dict
        Validated configuration.
    base_dir : Path
        Directory that relative data paths are resolved against.

    Returns
    -------
    (discovery, lookup)
        ``lookup`` is a ``NullNuclideLookup`` when no nuclide table is named.

    Raises
    ------
    FileNotFoundError
        If a named CSV file does not exist.
    """
    data_cfg = {**DEFAULT_DATA, **cfg.get("data", {})}
    row_limit = data_cfg.get("row_limit", DEFAULT_ROW_LIMIT)

    discovery = TableReactionDiscovery.from_csv(
        _resolve(base_dir, data_cfg["fusion_table"]),
        _resolve(base_dir, data_cfg["two_to_two_table"]),
        row_limit=row_limit,
    )

    lookup: NuclideLookupService
    if data_cfg.get("nuclide_table"):
        element_path = data_cfg.get("element_table")
        lookup = TableNuclideLookup.from_csv(
            _resolve(base_dir, data_cfg["nuclide_table"]),
            _resolve(base_dir, element_path) if element_path else None,
        )
    else:
        lookup = NullNuclideLookup()
    return discovery, lookup


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


def _print_progress(p: LoopProgress) -> None:
    products = ", ".join(str(n) for n in p.new_products) or "-"
    print(
        f"  [loop {p.loop + 1}/{p.max_loops}] pool={p.pool_size} "
        f"new reactions={p.new_reactions_count} new products: {products}"
    )


def build_report(results: CascadeResults, top_k: int = TOP_K) -> dict[str, Any]:
    """Collect the JSON-serialisable report written to ``summary.json``."""
    graph = build_reaction_graph(results.reactions)
    cycles = detect_cycles(graph)
    pathways = analyze_pathways(results.reactions)
    return {
        **results.summary_dict(),
        "energy_statistics": energy_statistics(results.reactions),
        "energy_histogram": energy_histogram(results.reactions),
        "top_products": product_summary(results, top_k=top_k),
        "top_pathways": [
            {
                "type": p.type,
                "inputs": [str(n) for n in p.inputs],
                "outputs": [str(n) for n in p.outputs],
                "mev": p.mev,
                "frequency": p.frequency,
                "total_energy": p.total_energy,
                "loops": list(p.loops),
                "is_feedback": p.is_feedback,
                "rarity_score": p.rarity_score,
            }
            for p in pathways[:top_k]
        ],
        "network": {
            "n_nodes": graph.number_of_nodes(),
            "n_edges": graph.number_of_edges(),
            "cycle_count": cycles.cycle_count,
            "cycle_nuclides": sorted(str(n) for n in cycles.cycle_nuclides),
        },
    }


def _print_summary(results: CascadeResults, report: dict[str, Any]) -> None:
    sep = "-" * 58
    stats = report["energy_statistics"]
    print(sep)
    print("  Nuclear Cascade Engine")
    print(sep)
    print(f"  Mode                  : {'weighted' if results.is_weighted else 'unweighted'}")
    print(f"  Termination           : {results.termination_reason}")
    print(f"  Loops executed        : {results.loops_executed}")
    print(f"  Reactions             : {len(results.reactions)} "
          f"(fusion {report['n_fusion']}, two-to-two {report['n_two_to_two']})")
    print(f"  Nuclides / elements   : {len(results.nuclides)} / {len(results.elements)}")
    print(f"  Total energy          : {results.total_energy:.3f} MeV")
    print(f"  Elapsed               : {results.execution_time:.2f}s")
    print()
    print("  Reaction Energy Statistics (MeV)")
    print(f"    Mean   : {stats['mean']:.3f}")
    print(f"    Median : {stats['median']:.3f}")
    print(f"    Std    : {stats['std']:.3f}")
    print(f"    Min    : {stats['min']:.3f}")
    print(f"    Max    : {stats['max']:.3f}")
    if report["top_products"]:
        print()
        print("  Top Products")
        print(f"  {'Nuclide':>10}  {'Count':>10}  {'Share':>7}")
        for row in report["top_products"]:
            print(f"  {row['nuclide']:>10}  {row['count']:>10.4g}  {row['share']:>7.2%}")
    print()
    print(f"  Feedback cycles       : {report['network']['cycle_count']}")
    print(sep)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    output_dir = Path(args.output_dir)
    _ensure_dir(output_dir)

    config_path = Path(args.config)
    try:
        cfg = load_config(config_path)
    except (FileNotFoundError, ValueError) as exc:
        print(f"ERROR: {exc}")
        sys.exit(1)
    _save_config_snapshot(output_dir, cfg)

    # Log experiment metadata
    (output_dir / "experiment_metadata.json").write_text(
        json.dumps(
            {
                "config_file": str(config_path.resolve()),
                "output_dir": str(output_dir.resolve()),
                "config_sha256": _config_hash(cfg),
                "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            },
            indent=2,
        )
    )

    params = parameters_from_config(cfg)
    try:
        discovery, lookup = build_services(cfg, config_path.resolve().parent)
    except (FileNotFoundError, ValueError) as exc:
        print(f"ERROR: {exc}")
        sys.exit(1)

    mode = "weighted" if params.use_weighted_mode else "unweighted"
    print(f"[Cascade] {mode} | max_loops={params.max_loops} | max_nuclides={params.max_nuclides}")
    try:
        results = simulate(
            params,
            discovery,
            lookup,
            progress=None if args.quiet else _print_progress,
        )
    except CascadeError as exc:
        print(f"ERROR: {exc}")
        sys.exit(1)

    report = build_report(results)
    (output_dir / "summary.json").write_text(json.dumps(report, indent=2))

    _print_summary(results, report)
    print(f"  Results saved to : {output_dir.resolve()}")


if __name__ == "__main__":
    main()
