"""
nuclear_cascade: Fusion / Two-to-Two Reaction Cascade Engine
===============================================================

Starting from a fuel of one or more nuclides, each loop discovers the
fusion (A + B -> C) and two-to-two (A + B -> C + D) reactions available
among the nuclides present, keeps those that make something new, and feeds
the new products back in for the next loop.

  Unweighted mode
      Every retained reaction counts 1 toward each new product.

  Weighted mode
      Reactions are weighted by the product of their reactants' proportions;
      products inherit weight additively, so later generations attenuate.

Quick start
-----------
>>> from nuclear_cascade import CascadeParameters, TableReactionDiscovery, simulate
>>> discovery = TableReactionDiscovery.from_csv("data/fusion.csv", "data/two_to_two.csv")
>>> params = CascadeParameters(fuel_nuclides=["H-1", "Li-7"], max_loops=5)
>>> results = simulate(params, discovery)
>>> results.termination_reason, results.total_energy
"""

from .nuclide import NuclideId, parse_nuclide, parse_nuclides
from .errors import (
    CascadeError,
    FuelValidationError,
    InvalidNuclideFormat,
    EmptyFuelComposition,
    ZeroTotalProportion,
    NegativeProportion,
    DuplicateFuelNuclide,
    InvalidConfigurationError,
    DiscoveryServiceFailure,
    CascadeCancelled,
)
from .fuel import (
    FuelNuclide,
    FuelComposition,
    UnweightedFuel,
    WeightedFuel,
    normalize_fuel,
    parse_fuel_nuclides,
    validate_fuel_proportions,
    convert_proportion_format,
    parse_mass_ratios,
    format_proportion,
)
from .weighting import reaction_weight
from .discovery import (
    DiscoveryFilters,
    DiscoveryQuery,
    FusionCandidate,
    TwoToTwoCandidate,
    ReactionDiscoveryService,
    TableReactionDiscovery,
)
from .lookup import LookupRecords, NuclideLookupService, NullNuclideLookup, TableNuclideLookup
from .config import CascadeParameters, load_config, parameters_from_config
from .cascade import (
    CascadeReaction,
    LoopProgress,
    run_cascade_loop,
    TERMINATED_MAX_LOOPS,
    TERMINATED_NO_NEW_PRODUCTS,
    TERMINATED_MAX_NUCLIDES,
)
from .results import CascadeResults, assemble_results
from .simulation import simulate
from .pathways import Pathway, analyze_pathways
from .network import build_reaction_graph, detect_cycles, is_in_cycle, find_simple_cycles
from .metrics import (
    energy_statistics,
    energy_confidence_interval,
    energy_histogram,
    sturges_bin_width,
    product_summary,
)

__all__ = [
    # nuclides
    "NuclideId", "parse_nuclide", "parse_nuclides",
    # errors
    "CascadeError", "FuelValidationError", "InvalidNuclideFormat",
    "EmptyFuelComposition", "ZeroTotalProportion", "NegativeProportion",
    "DuplicateFuelNuclide", "InvalidConfigurationError",
    "DiscoveryServiceFailure", "CascadeCancelled",
    # fuel
    "FuelNuclide", "FuelComposition", "UnweightedFuel", "WeightedFuel",
    "normalize_fuel", "parse_fuel_nuclides", "validate_fuel_proportions",
    "convert_proportion_format", "parse_mass_ratios", "format_proportion",
    # weighting
    "reaction_weight",
    # discovery / lookup
    "DiscoveryFilters", "DiscoveryQuery", "FusionCandidate", "TwoToTwoCandidate",
    "ReactionDiscoveryService", "TableReactionDiscovery",
    "LookupRecords", "NuclideLookupService", "NullNuclideLookup", "TableNuclideLookup",
    # config
    "CascadeParameters", "load_config", "parameters_from_config",
    # cascade
    "CascadeReaction", "LoopProgress", "run_cascade_loop",
    "TERMINATED_MAX_LOOPS", "TERMINATED_NO_NEW_PRODUCTS", "TERMINATED_MAX_NUCLIDES",
    # results
    "CascadeResults", "assemble_results", "simulate",
    # analysis
    "Pathway", "analyze_pathways",
    "build_reaction_graph", "detect_cycles", "is_in_cycle", "find_simple_cycles",
    "energy_statistics", "energy_confidence_interval", "energy_histogram",
    "sturges_bin_width", "product_summary",
]
