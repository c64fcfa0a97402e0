"""Unit tests for result assembly, pathway aggregation, the reaction network
and energy metrics."""

from __future__ import annotations
import json, math, sys, unittest
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))
from nuclear_cascade.cascade import CascadeLoopState, CascadeReaction, TERMINATED_NO_NEW_PRODUCTS
from nuclear_cascade.fuel import normalize_fuel
from nuclear_cascade.lookup import NullNuclideLookup
from nuclear_cascade.metrics import (
    energy_confidence_interval,
    energy_histogram,
    energy_statistics,
    product_summary,
    sturges_bin_width,
)
from nuclear_cascade.network import (
    build_reaction_graph,
    detect_cycles,
    find_simple_cycles,
    is_in_cycle,
)
from nuclear_cascade.nuclide import parse_nuclide
from nuclear_cascade.pathways import analyze_pathways
from nuclear_cascade.results import CascadeResults, assemble_results, involved_species


def _n(token):
    return parse_nuclide(token)


def _r(kind, inputs, outputs, mev, loop=0, weight=None):
    return CascadeReaction(
        type=kind,
        inputs=tuple(_n(t) for t in inputs),
        outputs=tuple(_n(t) for t in outputs),
        mev=mev,
        loop=loop,
        weight=weight,
    )


def _results(reactions, distribution, weighted=False):
    return CascadeResults(
        reactions=tuple(reactions),
        product_distribution=distribution,
        nuclides=[],
        elements=[],
        total_energy=float(sum(r.mev for r in reactions)),
        loops_executed=1,
        termination_reason=TERMINATED_NO_NEW_PRODUCTS,
        is_weighted=weighted,
    )


# ---------------------------------------------------------------------------
# Result assembly
# ---------------------------------------------------------------------------


class TestAssembleResults(unittest.TestCase):

    def _state(self):
        fuel = normalize_fuel({"H-1": 0.5, "Li-7": 0.5})
        state = CascadeLoopState.seed(fuel)
        state.reactions.append(_r("fusion", ["H-1", "Li-7"], ["Be-8"], 17.26, weight=0.25))
        state.reactions.append(_r("twotwo", ["H-1", "Li-7"], ["He-4", "He-4"], 17.35, weight=0.25))
        state.product_distribution.update({_n("Be-8"): 0.25, _n("He-4"): 0.25})
        state.pool_sizes.append(2)
        return fuel, state

    def test_non_terminated_state_rejected(self):
        fuel, state = self._state()
        with self.assertRaises(ValueError):
            assemble_results(state, fuel, True, NullNuclideLookup())

    def test_weighted_results(self):
        fuel, state = self._state()
        state.status = TERMINATED_NO_NEW_PRODUCTS
        results = assemble_results(state, fuel, True, NullNuclideLookup(), execution_time=0.5)
        self.assertAlmostEqual(results.total_energy, 34.61)
        self.assertIs(results.fuel_composition, fuel)
        self.assertEqual(results.pool_sizes, (2,))
        self.assertAlmostEqual(results.product_count("He-4"), 0.25)
        self.assertEqual(results.product_count("C-12"), 0)

    def test_summary_dict_serialisable(self):
        fuel, state = self._state()
        state.status = TERMINATED_NO_NEW_PRODUCTS
        summary = assemble_results(state, fuel, True, NullNuclideLookup()).summary_dict()
        decoded = json.loads(json.dumps(summary))
        self.assertEqual(decoded["n_fusion"], 1)
        self.assertEqual(decoded["n_two_to_two"], 1)
        self.assertEqual(decoded["fuel_composition"][0]["display"], "50.00%")
        self.assertIn("He-4", decoded["product_distribution"])

    def test_reactions_frame_labels(self):
        fuel, state = self._state()
        state.status = TERMINATED_NO_NEW_PRODUCTS
        frame = assemble_results(state, fuel, True, NullNuclideLookup()).reactions_frame()
        self.assertEqual(list(frame["inputs"]), ["H-1 + Li-7", "H-1 + Li-7"])
        self.assertEqual(frame.loc[1, "outputs"], "He-4 + He-4")

    def test_involved_species(self):
        nuclides, elements = involved_species([_r("fusion", ["D", "T"], ["He-5"], 16.8)])
        self.assertEqual(nuclides, frozenset({_n("D-2"), _n("T-3"), _n("He-5")}))
        self.assertEqual(elements, frozenset({"D", "T", "He"}))


# ---------------------------------------------------------------------------
# Pathways
# ---------------------------------------------------------------------------


class TestPathways(unittest.TestCase):

    def test_repeated_reaction_aggregated(self):
        reactions = [
            _r("fusion", ["H-1", "H-1"], ["D-2"], 0.42, loop=0),
            _r("fusion", ["H-1", "D-2"], ["He-3"], 5.49, loop=1),
            _r("fusion", ["H-1", "H-1"], ["D-2"], 0.42, loop=2),
        ]
        pathways = analyze_pathways(reactions)
        self.assertEqual(len(pathways), 2)
        top = pathways[0]
        self.assertEqual(top.outputs, (_n("D-2"),))
        self.assertEqual(top.frequency, 2.0)
        self.assertEqual(top.loops, (0, 2))
        self.assertAlmostEqual(top.total_energy, 0.84)
        self.assertAlmostEqual(top.avg_energy, 0.42)
        self.assertEqual(top.rarity_score, 100.0)
        self.assertEqual(pathways[1].rarity_score, 50.0)

    def test_feedback_flag(self):
        reactions = [
            _r("fusion", ["H-1", "H-1"], ["D-2"], 0.42, loop=0),
            _r("fusion", ["H-1", "D-2"], ["He-3"], 5.49, loop=1),
        ]
        by_output = {p.outputs: p for p in analyze_pathways(reactions)}
        self.assertFalse(by_output[(_n("D-2"),)].is_feedback)
        self.assertTrue(by_output[(_n("He-3"),)].is_feedback)

    def test_weighted_frequencies(self):
        reactions = [
            _r("fusion", ["Li-7", "Li-7"], ["C-14"], 26.79, weight=0.81),
            _r("fusion", ["Li-6", "Li-7"], ["C-13"], 25.0, weight=0.09),
        ]
        pathways = analyze_pathways(reactions)
        self.assertEqual(pathways[0].outputs, (_n("C-14"),))
        self.assertAlmostEqual(pathways[0].total_energy, 26.79 * 0.81)
        self.assertAlmostEqual(pathways[1].rarity_score, 100.0 * 0.09 / 0.81)

    def test_zero_weight_avg_energy_falls_back_to_mev(self):
        pathways = analyze_pathways([_r("fusion", ["D-2", "D-2"], ["He-4"], 23.85, weight=0.0)])
        self.assertEqual(pathways[0].avg_energy, 23.85)
        self.assertEqual(pathways[0].rarity_score, 0.0)

    def test_empty(self):
        self.assertEqual(analyze_pathways([]), [])


# ---------------------------------------------------------------------------
# Reaction network
# ---------------------------------------------------------------------------


CYCLIC = [
    _r("fusion", ["H-1", "D-2"], ["He-3"], 5.49),
    _r("twotwo", ["D-2", "He-3"], ["H-1", "He-4"], 18.35, loop=1),
    _r("fusion", ["He-4", "He-4"], ["Be-8"], -0.09, loop=1),
]


class TestNetwork(unittest.TestCase):

    def test_graph_edges(self):
        G = build_reaction_graph(CYCLIC)
        self.assertTrue(G.has_edge(_n("H-1"), _n("He-3")))
        self.assertTrue(G.has_edge(_n("He-3"), _n("H-1")))
        self.assertEqual(G.edges[_n("He-4"), _n("Be-8")]["reactions"], 1)
        self.assertEqual(G.number_of_nodes(), 5)

    def test_repeated_edge_counted(self):
        G = build_reaction_graph(CYCLIC[:1] * 2)
        self.assertEqual(G.edges[_n("H-1"), _n("He-3")]["reactions"], 2)

    def test_detect_cycles(self):
        result = detect_cycles(build_reaction_graph(CYCLIC))
        self.assertEqual(result.cycle_count, 1)
        # D-2 only feeds the loop; nothing regenerates it.
        self.assertEqual(result.cycle_nuclides, frozenset({_n("H-1"), _n("He-3")}))
        self.assertEqual(result.strongly_connected_components, [[_n("H-1"), _n("He-3")]])
        self.assertNotIn(_n("Be-8"), result.cycle_nuclides)

    def test_self_loop_is_a_cycle(self):
        G = build_reaction_graph([_r("twotwo", ["H-1", "Li-7"], ["H-1", "Li-6"], -5.0)])
        result = detect_cycles(G)
        self.assertIn(_n("H-1"), result.cycle_nuclides)
        self.assertTrue(is_in_cycle(G, _n("H-1")))
        self.assertFalse(is_in_cycle(G, _n("Li-7")))

    def test_acyclic_graph(self):
        G = build_reaction_graph(CYCLIC[2:])
        self.assertEqual(detect_cycles(G).cycle_count, 0)
        self.assertFalse(is_in_cycle(G, _n("He-4")))
        self.assertFalse(is_in_cycle(G, _n("U-235")))

    def test_find_simple_cycles_start_first(self):
        G = build_reaction_graph(CYCLIC)
        cycles = find_simple_cycles(G, _n("He-3"))
        self.assertTrue(cycles)
        for cycle in cycles:
            self.assertEqual(cycle[0], _n("He-3"))
        self.assertIn([_n("He-3"), _n("H-1")], cycles)

    def test_find_simple_cycles_depth_bound(self):
        G = build_reaction_graph(CYCLIC)
        self.assertTrue(all(len(c) <= 2 for c in find_simple_cycles(G, _n("He-3"), max_depth=2)))
        self.assertEqual(find_simple_cycles(G, _n("Be-8")), [])


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


class TestEnergyMetrics(unittest.TestCase):

    def test_statistics(self):
        stats = energy_statistics([1.0, 2.0, 3.0, 4.0])
        self.assertEqual(stats["count"], 4)
        self.assertAlmostEqual(stats["mean"], 2.5)
        self.assertAlmostEqual(stats["median"], 2.5)
        self.assertAlmostEqual(stats["std"], math.sqrt(1.25))
        self.assertEqual(stats["range"], 3.0)

    def test_statistics_from_reactions(self):
        stats = energy_statistics(CYCLIC)
        self.assertEqual(stats["min"], -0.09)
        self.assertEqual(stats["max"], 18.35)

    def test_empty_statistics_are_zero(self):
        stats = energy_statistics([])
        self.assertEqual(stats["count"], 0)
        self.assertEqual(stats["mean"], 0.0)

    def test_sturges(self):
        self.assertEqual(sturges_bin_width(8, 8.0), 2.0)
        self.assertEqual(sturges_bin_width(0, 5.0), 1.0)
        self.assertEqual(sturges_bin_width(10, 0.0), 1.0)

    def test_histogram_counts(self):
        bins = energy_histogram(np.arange(9, dtype=float), bin_width=2.0)
        self.assertEqual([b["count"] for b in bins], [2, 2, 2, 3])
        self.assertEqual(bins[0]["bin_center"], 1.0)
        self.assertEqual(sum(b["count"] for b in bins), 9)

    def test_histogram_single_value(self):
        bins = energy_histogram([5.0, 5.0, 5.0])
        self.assertEqual(bins, [{"bin_start": 5.0, "bin_end": 5.0, "count": 3, "bin_center": 5.0}])

    def test_histogram_default_width(self):
        bins = energy_histogram(np.linspace(0.0, 8.0, 8))
        self.assertEqual(len(bins), 4)

    def test_histogram_rejects_bad_width(self):
        with self.assertRaises(ValueError):
            energy_histogram([1.0, 2.0], bin_width=0.0)

    def test_confidence_interval_contains_mean(self):
        lo, hi = energy_confidence_interval([1.0, 2.0, 3.0, 4.0])
        self.assertLess(lo, 2.5)
        self.assertGreater(hi, 2.5)

    def test_confidence_interval_needs_two(self):
        with self.assertRaises(ValueError):
            energy_confidence_interval([1.0])


def test_product_summary_orders_by_count():
    results = _results(CYCLIC, {_n("He-3"): 1, _n("He-4"): 3, _n("Be-8"): 1})
    summary = product_summary(results, top_k=2)
    assert [row["nuclide"] for row in summary] == ["He-4", "Be-8"]
    assert summary[0]["share"] == pytest.approx(0.6)


def test_product_summary_rejects_bad_k():
    with pytest.raises(ValueError):
        product_summary(_results([], {}), top_k=0)
