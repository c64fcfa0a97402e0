"""
Result assembly.

Once the loop has terminated, the assembler collects every nuclide and
element that appeared in any reaction, resolves their descriptive records
with a single lookup call, sums reaction energies and packages everything in
an immutable ``CascadeResults``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

import numpy as np
import pandas as pd

from .cascade import CascadeLoopState, CascadeReaction, TERMINATION_REASONS
from .fuel import FuelComposition, format_proportion
from .lookup import NuclideLookupService
from .nuclide import NuclideId, parse_nuclide


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CascadeResults:
    """Immutable container for one simulation run.

    Attributes
    ----------
    reactions : tuple of CascadeReaction
        Every retained reaction in discovery order.
    product_distribution : dict
        ``NuclideId -> count`` (int, unweighted) or accumulated weight
        (float, weighted).
    nuclides : list of dict
        Descriptive records for every nuclide involved in a reaction.
    elements : list of dict
        Descriptive records for every element involved in a reaction.
    total_energy : float
        Unweighted sum of reaction energies in MeV, in both modes.
    loops_executed : int
        Completed iterations that produced new nuclides.
    termination_reason : str
        ``"max_loops"``, ``"no_new_products"`` or ``"max_nuclides"``.
    is_weighted : bool
        Whether weighted accounting was used.
    fuel_composition : FuelComposition or None
        Normalised fuel, present only in weighted mode.
    execution_time : float
        Wall-clock seconds for the whole run.
    pool_sizes : tuple of int
        Active pool size at the start of each iteration.
    """

    reactions: tuple[CascadeReaction, ...]
    product_distribution: dict[NuclideId, float]
    nuclides: list[dict[str, Any]]
    elements: list[dict[str, Any]]
    total_energy: float
    loops_executed: int
    termination_reason: str
    is_weighted: bool
    fuel_composition: FuelComposition | None = None
    execution_time: float = 0.0
    pool_sizes: tuple[int, ...] = field(default_factory=tuple)

    def product_count(self, nuclide: str | NuclideId) -> float:
        """Accumulated count or weight for *nuclide* (0 if never produced)."""
        return self.product_distribution.get(parse_nuclide(nuclide), 0)

    def reactions_frame(self) -> pd.DataFrame:
        """One row per reaction; nuclides rendered as text labels."""
        columns = ["type", "inputs", "outputs", "MeV", "loop", "neutrino", "weight"]
        records = [r.as_record() for r in self.reactions]
        frame = pd.DataFrame.from_records(records, columns=columns)
        frame["inputs"] = frame["inputs"].map(" + ".join)
        frame["outputs"] = frame["outputs"].map(" + ".join)
        return frame

    def summary_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable summary (no per-reaction data)."""
        summary: dict[str, Any] = {
            "termination_reason": self.termination_reason,
            "loops_executed": self.loops_executed,
            "n_reactions": len(self.reactions),
            "n_fusion": sum(1 for r in self.reactions if r.type == "fusion"),
            "n_two_to_two": sum(1 for r in self.reactions if r.type == "twotwo"),
            "n_nuclides": len(self.nuclides),
            "n_elements": len(self.elements),
            "total_energy_mev": self.total_energy,
            "execution_time_s": self.execution_time,
            "is_weighted": self.is_weighted,
            "pool_sizes": list(self.pool_sizes),
            "product_distribution": {
                str(k): v for k, v in sorted(self.product_distribution.items())
            },
        }
        if self.fuel_composition is not None:
            summary["fuel_composition"] = [
                {
                    "nuclide": str(entry.nuclide),
                    "proportion": entry.proportion,
                    "display": format_proportion(entry),
                }
                for entry in self.fuel_composition
            ]
        return summary


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def involved_species(
    reactions: Iterable[CascadeReaction],
) -> tuple[frozenset[NuclideId], frozenset[str]]:
    """Union of every input/output nuclide and their element symbols."""
    nuclides: set[NuclideId] = set()
    for reaction in reactions:
        nuclides.update(reaction.inputs)
        nuclides.update(reaction.outputs)
    return frozenset(nuclides), frozenset(n.element for n in nuclides)


def total_energy(reactions: Iterable[CascadeReaction]) -> float:
    """Plain sum of reaction energies; weights are ignored."""
    return float(np.sum([r.mev for r in reactions], dtype=np.float64))


def assemble_results(
    state: CascadeLoopState,
    fuel: FuelComposition,
    weighted: bool,
    lookup: NuclideLookupService,
    execution_time: float = 0.0,
) -> CascadeResults:
    """Package a terminated loop state into ``CascadeResults``.

    The lookup service is called exactly once, with the full set of involved
    nuclides and elements.

    Raises
    ------
    ValueError
        If *state* has not reached a termination state.
    """
    if state.status not in TERMINATION_REASONS:
        raise ValueError(
            f"Cannot assemble results from a non-terminated run (status={state.status!r})."
        )

    nuclide_ids, element_ids = involved_species(state.reactions)
    records = lookup.lookup(nuclide_ids, element_ids)

    return CascadeResults(
        reactions=tuple(state.reactions),
        product_distribution=dict(state.product_distribution),
        nuclides=list(records.nuclides),
        elements=list(records.elements),
        total_energy=total_energy(state.reactions),
        loops_executed=state.loop_count,
        termination_reason=state.status,
        is_weighted=weighted,
        fuel_composition=fuel if weighted else None,
        execution_time=execution_time,
        pool_sizes=tuple(state.pool_sizes),
    )
