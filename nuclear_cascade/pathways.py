"""
Pathway aggregation.

A pathway is a distinct reaction (same type, inputs and outputs) that may
have been discovered in several loops.  Frequencies are weight sums, with
unweighted reactions counting 1.0 each, so weighted and unweighted runs are
read the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import pandas as pd

from .cascade import CascadeReaction
from .nuclide import NuclideId


@dataclass(frozen=True)
class Pathway:
    """Aggregate statistics for one distinct reaction.

    Attributes
    ----------
    type : str
        ``"fusion"`` or ``"twotwo"``.
    inputs, outputs : tuple of NuclideId
    mev : float
        Per-occurrence energy.
    frequency : float
        Sum of occurrence weights (1.0 for unweighted occurrences).
    total_energy : float
        Sum of ``MeV * weight`` over occurrences.
    avg_energy : float
        ``total_energy / frequency``; ``mev`` when frequency is zero.
    loops : tuple of int
        Sorted distinct loops in which the pathway occurred.
    is_feedback : bool
        Some input was produced by a reaction in an earlier loop.
    rarity_score : float
        ``100 * frequency / max frequency`` across all pathways.
    """

    type: str
    inputs: tuple[NuclideId, ...]
    outputs: tuple[NuclideId, ...]
    mev: float
    frequency: float
    total_energy: float
    avg_energy: float
    loops: tuple[int, ...]
    is_feedback: bool
    rarity_score: float


def _first_production_loop(reactions: list[CascadeReaction]) -> dict[NuclideId, int]:
    first: dict[NuclideId, int] = {}
    for reaction in reactions:
        for product in reaction.outputs:
            if product not in first or reaction.loop < first[product]:
                first[product] = reaction.loop
    return first


def analyze_pathways(reactions: Iterable[CascadeReaction]) -> list[Pathway]:
    """Group reactions into pathways, most frequent first.

    Parameters
    ----------
    reactions : iterable of CascadeReaction

    Returns
    -------
    list of Pathway
        Sorted by descending frequency; ties keep first-seen order.
    """
    reactions = list(reactions)
    if not reactions:
        return []

    produced_at = _first_production_loop(reactions)

    keys: dict[tuple, int] = {}
    for r in reactions:
        keys.setdefault((r.type, r.inputs, r.outputs), len(keys))
    key_of = {index: key for key, index in keys.items()}

    frame = pd.DataFrame(
        {
            "pathway": [keys[(r.type, r.inputs, r.outputs)] for r in reactions],
            "mev": [r.mev for r in reactions],
            "weight": [1.0 if r.weight is None else r.weight for r in reactions],
            "loop": [r.loop for r in reactions],
            "feedback": [
                any(produced_at.get(n, r.loop) < r.loop for n in r.inputs)
                for r in reactions
            ],
        }
    )
    frame["weighted_energy"] = frame["mev"] * frame["weight"]

    grouped = frame.groupby("pathway", sort=True).agg(
        mev=("mev", "first"),
        frequency=("weight", "sum"),
        total_energy=("weighted_energy", "sum"),
        is_feedback=("feedback", "any"),
    )
    loops = frame.groupby("pathway", sort=True)["loop"].unique()
    max_frequency = float(grouped["frequency"].max())

    pathways: list[Pathway] = []
    for index, row in grouped.iterrows():
        kind, inputs, outputs = key_of[index]
        frequency = float(row["frequency"])
        total = float(row["total_energy"])
        pathways.append(
            Pathway(
                type=kind,
                inputs=inputs,
                outputs=outputs,
                mev=float(row["mev"]),
                frequency=frequency,
                total_energy=total,
                avg_energy=total / frequency if frequency > 0 else float(row["mev"]),
                loops=tuple(sorted(int(x) for x in loops[index])),
                is_feedback=bool(row["is_feedback"]),
                rarity_score=frequency / max_frequency * 100.0 if max_frequency > 0 else 0.0,
            )
        )

    pathways.sort(key=lambda p: -p.frequency)
    return pathways
