"""Tests for the pandas-backed discovery and lookup services, end to end."""

from __future__ import annotations
import sys, unittest, warnings
from pathlib import Path

import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))
from nuclear_cascade.cascade import TERMINATION_REASONS
from nuclear_cascade.config import CascadeParameters
from nuclear_cascade.discovery import (
    DiscoveryQuery,
    FusionCandidate,
    TableReactionDiscovery,
    TwoToTwoCandidate,
)
from nuclear_cascade.lookup import NullNuclideLookup, TableNuclideLookup
from nuclear_cascade.nuclide import NuclideId, parse_nuclide
from nuclear_cascade.simulation import simulate

DATA_DIR = Path(__file__).parent.parent / "data"


def _fusion_table() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "E1": ["H", "H", "Li", "He"],
            "A1": [1, 1, 7, 4],
            "E2": ["H", "Li", "Li", "He"],
            "A2": [1, 7, 7, 4],
            "E": ["D", "Be", "C", "Be"],
            "A": [2, 8, 14, 8],
            "MeV": [0.42, 17.26, 26.79, -0.09],
        }
    )


def _two_to_two_table() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "E1": ["H"], "A1": [1], "E2": ["Li"], "A2": [7],
            "E3": ["He"], "A3": [4], "E4": ["He"], "A4": [4],
            "MeV": [17.35], "neutrino": ["none"],
        }
    )


class TestTableReactionDiscovery(unittest.TestCase):

    def setUp(self):
        self.service = TableReactionDiscovery(_fusion_table(), _two_to_two_table())

    def test_element_filter(self):
        rows = self.service.fusion_reactions(DiscoveryQuery(("H",), 0.0))
        self.assertEqual(len(rows), 1)
        self.assertIsInstance(rows[0], FusionCandidate)
        self.assertEqual(rows[0].outputs, (NuclideId("D", 2),))

    def test_energy_threshold(self):
        rows = self.service.fusion_reactions(DiscoveryQuery(("H", "Li", "He"), 1.0))
        self.assertEqual(sorted(str(r.outputs[0]) for r in rows), ["Be-8", "C-14"])

    def test_negative_threshold_admits_endothermic(self):
        rows = self.service.fusion_reactions(DiscoveryQuery(("He",), -1.0))
        self.assertEqual(len(rows), 1)

    def test_missing_neutrino_column_defaults(self):
        rows = self.service.fusion_reactions(DiscoveryQuery(("H",), 0.0))
        self.assertEqual(rows[0].neutrino, "none")

    def test_two_to_two_candidates(self):
        rows = self.service.two_to_two_reactions(DiscoveryQuery(("H", "Li"), 0.0))
        self.assertIsInstance(rows[0], TwoToTwoCandidate)
        self.assertEqual(rows[0].outputs, (NuclideId("He", 4), NuclideId("He", 4)))

    def test_row_limit_truncates_with_warning(self):
        service = TableReactionDiscovery(_fusion_table(), _two_to_two_table(), row_limit=1)
        with self.assertWarns(UserWarning):
            rows = service.fusion_reactions(DiscoveryQuery(("H", "Li"), 0.0))
        self.assertEqual(len(rows), 1)

    def test_missing_column_raises(self):
        with self.assertRaises(ValueError):
            TableReactionDiscovery(_fusion_table().drop(columns=["MeV"]), _two_to_two_table())

    def test_invalid_row_limit_raises(self):
        with self.assertRaises(ValueError):
            TableReactionDiscovery(_fusion_table(), _two_to_two_table(), row_limit=0)

    def test_missing_csv_raises(self):
        with self.assertRaises(FileNotFoundError):
            TableReactionDiscovery.from_csv("/nonexistent/fusion.csv", DATA_DIR / "two_to_two.csv")


class TestTableNuclideLookup(unittest.TestCase):

    def test_lookup_filters_requested_species(self):
        lookup = TableNuclideLookup.from_csv(DATA_DIR / "nuclides.csv", DATA_DIR / "elements.csv")
        records = lookup.lookup(
            frozenset({parse_nuclide("He-4"), parse_nuclide("D")}),
            frozenset({"He", "D"}),
        )
        self.assertEqual(sorted((r["E"], int(r["A"])) for r in records.nuclides), [("D", 2), ("He", 4)])
        self.assertEqual(sorted(r["E"] for r in records.elements), ["D", "He"])

    def test_lookup_without_element_table(self):
        lookup = TableNuclideLookup(pd.DataFrame({"E": ["H"], "A": [1]}))
        records = lookup.lookup(frozenset({parse_nuclide("H-1")}), frozenset({"H"}))
        self.assertEqual(len(records.nuclides), 1)
        self.assertEqual(records.elements, [])

    def test_missing_columns_raise(self):
        with self.assertRaises(ValueError):
            TableNuclideLookup(pd.DataFrame({"E": ["H"]}))

    def test_null_lookup_is_empty(self):
        records = NullNuclideLookup().lookup(frozenset(), frozenset())
        self.assertEqual((records.nuclides, records.elements), ([], []))


def test_bundled_tables_first_generation():
    discovery = TableReactionDiscovery.from_csv(DATA_DIR / "fusion.csv", DATA_DIR / "two_to_two.csv")
    lookup = TableNuclideLookup.from_csv(DATA_DIR / "nuclides.csv", DATA_DIR / "elements.csv")
    params = CascadeParameters(fuel_nuclides=["H-1", "Li-7"], max_loops=5, max_nuclides=50)

    results = simulate(params, discovery, lookup)

    first = {str(n) for r in results.reactions if r.loop == 0 for n in r.outputs}
    assert first == {"D-2", "Be-8", "C-14", "He-4", "Be-10"}
    assert results.termination_reason in TERMINATION_REASONS
    assert results.total_energy == pytest.approx(sum(r.mev for r in results.reactions))
    assert {r["E"] for r in results.elements} >= {"H", "Li", "He"}
    assert results.reactions_frame().shape[0] == len(results.reactions)
