"""
Simulation entry point.

``simulate`` wires the pieces together: validate parameters, normalise the
fuel (failing fast, before any discovery call), run the cascade loop, and
assemble the results.  No state survives between calls.
"""

from __future__ import annotations

import logging
import time
import warnings

from .cascade import CancelSignal, ProgressSink, check_cancel, run_cascade_loop
from .config import CascadeParameters, validate_parameters
from .discovery import ReactionDiscoveryService
from .fuel import normalize_fuel
from .lookup import NuclideLookupService, NullNuclideLookup
from .results import CascadeResults, assemble_results


logger = logging.getLogger(__name__)


def simulate(
    params: CascadeParameters,
    discovery: ReactionDiscoveryService,
    lookup: NuclideLookupService | None = None,
    progress: ProgressSink | None = None,
    cancel_event: CancelSignal | None = None,
) -> CascadeResults:
    """Run one cascade simulation.

    Parameters
    ----------
    params : CascadeParameters
        Fuel, thresholds, bounds and pass-through filters.
    discovery : ReactionDiscoveryService
        Reaction candidate source.
    lookup : NuclideLookupService or None, optional
        Resolves descriptive records at the end of the run.  Defaults to a
        lookup that returns no records.
    progress : callable or None, optional
        Receives a ``LoopProgress`` after every iteration.
    cancel_event : CancelSignal or None, optional
        Cooperative cancellation flag, e.g. ``threading.Event``.

    Returns
    -------
    CascadeResults

    Raises
    ------
    InvalidConfigurationError
        If numeric bounds or flags in *params* are invalid.
    InvalidNuclideFormat, EmptyFuelComposition, ZeroTotalProportion,
    NegativeProportion, DuplicateFuelNuclide
        If the fuel cannot be normalised.  Raised before any discovery call.
    DiscoveryServiceFailure
        If discovery fails mid-run; nothing partial is returned.
    CascadeCancelled
        If *cancel_event* is set during the run.
    """
    t0 = time.perf_counter()

    validate_parameters(params)
    weighted = bool(params.use_weighted_mode)
    fuel = normalize_fuel(params.fuel_nuclides)
    logger.debug(
        "Starting cascade: fuel=%s weighted=%s max_loops=%d max_nuclides=%d",
        [str(n) for n in fuel.nuclides], weighted, params.max_loops, params.max_nuclides,
    )

    state = run_cascade_loop(
        fuel,
        params,
        discovery,
        weighted=weighted,
        progress=progress,
        cancel_event=cancel_event,
    )

    if weighted and state.reactions and all(r.weight == 0.0 for r in state.reactions):
        warnings.warn(
            f"simulate: all {len(state.reactions)} reaction weights are zero. "
            "Every reacting fuel nuclide has a zero proportion.",
            UserWarning,
            stacklevel=2,
        )

    check_cancel(cancel_event, state.loop_count)
    results = assemble_results(
        state,
        fuel,
        weighted,
        lookup if lookup is not None else NullNuclideLookup(),
        execution_time=time.perf_counter() - t0,
    )
    return results
