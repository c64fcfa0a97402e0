"""
Reaction network analysis.

Uses NetworkX to turn a reaction list into a directed nuclide graph with an
edge from every input to every output of each reaction, then looks for
feedback loops: sets of nuclides that can regenerate one another.

Convention: node = ``NuclideId``; edge attribute ``reactions`` counts the
reactions that contribute the edge and ``first_loop`` is the earliest loop in
which the edge appeared.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import networkx as nx

from .cascade import CascadeReaction
from .nuclide import NuclideId


@dataclass(frozen=True)
class CycleDetectionResult:
    """Feedback-loop summary of a reaction network.

    Attributes
    ----------
    cycle_nuclides : frozenset of NuclideId
        Nuclides that take part in at least one cycle.
    strongly_connected_components : list of list of NuclideId
        Components with more than one node, or a single node with a
        self-loop; members sorted, components in discovery order.
    cycle_count : int
        Number of such components.
    """

    cycle_nuclides: frozenset[NuclideId]
    strongly_connected_components: list[list[NuclideId]]
    cycle_count: int


def build_reaction_graph(reactions: Iterable[CascadeReaction]) -> nx.DiGraph:
    """Build the input -> output nuclide graph for *reactions*."""
    G: nx.DiGraph = nx.DiGraph()
    for reaction in reactions:
        G.add_nodes_from(reaction.inputs)
        G.add_nodes_from(reaction.outputs)
        for source in dict.fromkeys(reaction.inputs):
            for target in dict.fromkeys(reaction.outputs):
                if G.has_edge(source, target):
                    data = G.edges[source, target]
                    data["reactions"] += 1
                    data["first_loop"] = min(data["first_loop"], reaction.loop)
                else:
                    G.add_edge(source, target, reactions=1, first_loop=reaction.loop)
    return G


def detect_cycles(G: nx.DiGraph) -> CycleDetectionResult:
    """Find every strongly connected component that forms a feedback loop."""
    components: list[list[NuclideId]] = []
    members: set[NuclideId] = set()
    for scc in nx.strongly_connected_components(G):
        if len(scc) > 1 or any(G.has_edge(n, n) for n in scc):
            components.append(sorted(scc))
            members.update(scc)
    return CycleDetectionResult(
        cycle_nuclides=frozenset(members),
        strongly_connected_components=components,
        cycle_count=len(components),
    )


def is_in_cycle(G: nx.DiGraph, nuclide: NuclideId) -> bool:
    """True if *nuclide* can reach itself through one or more reactions."""
    if nuclide not in G:
        return False
    return any(nx.has_path(G, successor, nuclide) for successor in G.successors(nuclide))


def find_simple_cycles(
    G: nx.DiGraph,
    start: NuclideId,
    max_depth: int = 10,
) -> list[list[NuclideId]]:
    """All simple cycles through *start* with at most *max_depth* nuclides.

    Each cycle is returned rotated so that it begins with *start*; the edge
    from the last element back to *start* is implied.
    """
    if start not in G or max_depth < 1:
        return []
    cycles: list[list[NuclideId]] = []
    for cycle in nx.simple_cycles(G, length_bound=max_depth):
        if start not in cycle:
            continue
        i = cycle.index(start)
        cycles.append(cycle[i:] + cycle[:i])
    cycles.sort(key=lambda c: (len(c), c))
    return cycles
