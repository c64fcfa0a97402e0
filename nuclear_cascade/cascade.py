"""
Core cascade loop.

Starting from the fuel nuclides, each iteration discovers fusion and
two-to-two reactions among the currently active nuclides, keeps only those
that produce something new, and feeds the new products back into the pool
for the next iteration.  The pool only ever grows.

States
------
    running          -> initial
    max_loops        -> iteration budget exhausted
    no_new_products  -> an iteration produced nothing new
    max_nuclides     -> pool grew past the size bound

The three terminal states are absorbing.  Cancellation is not a state: it
raises ``CascadeCancelled`` and discards everything.

A product discovered in loop N cannot react until loop N+1: every iteration
works on an immutable snapshot of the pool taken at its start.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Protocol

from .config import CascadeParameters
from .discovery import (
    FUSION,
    REACTION_TYPES,
    TWO_TO_TWO,
    DiscoveryQuery,
    FusionCandidate,
    ReactionDiscoveryService,
    TwoToTwoCandidate,
)
from .errors import CascadeCancelled, DiscoveryServiceFailure
from .fuel import FuelComposition
from .nuclide import NuclideId, element_symbols
from .weighting import accumulate, reaction_weight


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# State constants
# ---------------------------------------------------------------------------

STATE_RUNNING: str = "running"
TERMINATED_MAX_LOOPS: str = "max_loops"
TERMINATED_NO_NEW_PRODUCTS: str = "no_new_products"
TERMINATED_MAX_NUCLIDES: str = "max_nuclides"

TERMINATION_REASONS = {
    TERMINATED_MAX_LOOPS,
    TERMINATED_NO_NEW_PRODUCTS,
    TERMINATED_MAX_NUCLIDES,
}


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CascadeReaction:
    """One retained reaction event.

    Attributes
    ----------
    type : str
        ``"fusion"`` or ``"twotwo"``.
    inputs : tuple of NuclideId
        Exactly two reactants.
    outputs : tuple of NuclideId
        One product for fusion, two for two-to-two.
    mev : float
        Energy released (exothermic positive).
    loop : int
        0-based generation in which the reaction was discovered.
    neutrino : str
        Categorical tag carried through from the reaction table.
    weight : float or None
        Product of the reactants' proportions; ``None`` in unweighted mode.
    """

    type: str
    inputs: tuple[NuclideId, ...]
    outputs: tuple[NuclideId, ...]
    mev: float
    loop: int
    neutrino: str = "none"
    weight: float | None = None

    def as_record(self) -> dict[str, Any]:
        """Flat, JSON-serialisable view with nuclides as text labels."""
        return {
            "type": self.type,
            "inputs": [str(n) for n in self.inputs],
            "outputs": [str(n) for n in self.outputs],
            "MeV": self.mev,
            "loop": self.loop,
            "neutrino": self.neutrino,
            "weight": self.weight,
        }


@dataclass(frozen=True)
class LoopProgress:
    """Emitted at the end of every iteration that ran discovery."""

    loop: int
    max_loops: int
    new_reactions: tuple[CascadeReaction, ...]
    new_products: tuple[NuclideId, ...]
    pool_size: int

    @property
    def new_reactions_count(self) -> int:
        return len(self.new_reactions)


ProgressSink = Callable[[LoopProgress], None]


class CancelSignal(Protocol):
    """Cooperative cancellation flag, e.g. ``threading.Event``."""

    def is_set(self) -> bool:
        ...


# ---------------------------------------------------------------------------
# Run-owned mutable state
# ---------------------------------------------------------------------------


@dataclass
class CascadeLoopState:
    """Everything one run owns and mutates.

    ``pool`` maps each active nuclide to the generation in which it joined
    (0 for fuel, N + 1 for a product of loop N) and preserves insertion
    order.  ``processed`` holds every product ever added to the pool.
    """

    pool: dict[NuclideId, int] = field(default_factory=dict)
    processed: set[NuclideId] = field(default_factory=set)
    proportions: dict[NuclideId, float] = field(default_factory=dict)
    product_distribution: dict[NuclideId, float] = field(default_factory=dict)
    reactions: list[CascadeReaction] = field(default_factory=list)
    pool_sizes: list[int] = field(default_factory=list)
    loop_count: int = 0
    status: str = STATE_RUNNING

    @classmethod
    def seed(cls, fuel: FuelComposition) -> "CascadeLoopState":
        return cls(
            pool={nuclide: 0 for nuclide in fuel.nuclides},
            proportions=fuel.proportions(),
        )

    @property
    def terminated(self) -> bool:
        return self.status in TERMINATION_REASONS


# ---------------------------------------------------------------------------
# Discovery helpers
# ---------------------------------------------------------------------------


def check_cancel(cancel_event: CancelSignal | None, loop: int) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info("Cascade cancelled at loop %d", loop)
        raise CascadeCancelled(loop)


def _fetch(
    fetch: Callable[[DiscoveryQuery], Iterable[Any]],
    query: DiscoveryQuery,
    label: str,
    loop: int,
) -> list[Any]:
    """Call the discovery service and fully materialise its answer."""
    try:
        return list(fetch(query))
    except (CascadeCancelled, DiscoveryServiceFailure):
        raise
    except Exception as exc:
        raise DiscoveryServiceFailure(
            f"{label} discovery failed: {exc}", loop=loop
        ) from exc


def _resolve_candidate(
    raw: Any,
    kind: str,
    loop: int,
) -> tuple[tuple[NuclideId, ...], tuple[NuclideId, ...], float, str]:
    """Validate one candidate and return ``(inputs, outputs, mev, neutrino)``."""
    if kind not in REACTION_TYPES:
        raise ValueError(f"kind must be one of {sorted(REACTION_TYPES)}; got {kind!r}.")
    candidate_cls = FusionCandidate if kind == FUSION else TwoToTwoCandidate
    try:
        candidate = candidate_cls.from_row(raw) if isinstance(raw, Mapping) else raw
        inputs = tuple(candidate.inputs)
        outputs = tuple(candidate.outputs)
        mev = float(candidate.mev)
        neutrino = str(candidate.neutrino)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise DiscoveryServiceFailure(
            f"malformed {kind} candidate {raw!r}: {exc}", loop=loop
        ) from exc

    expected_outputs = 1 if kind == FUSION else 2
    if len(inputs) != 2 or len(outputs) != expected_outputs:
        raise DiscoveryServiceFailure(
            f"{kind} candidate {raw!r} has {len(inputs)} input(s) and "
            f"{len(outputs)} output(s)",
            loop=loop,
        )
    if not math.isfinite(mev):
        raise DiscoveryServiceFailure(
            f"{kind} candidate {raw!r} has non-finite energy {mev}", loop=loop
        )
    return inputs, outputs, mev, neutrino


# ---------------------------------------------------------------------------
# Single iteration
# ---------------------------------------------------------------------------


def cascade_step(
    state: CascadeLoopState,
    current: frozenset[NuclideId],
    discovery: ReactionDiscoveryService,
    params: CascadeParameters,
    weighted: bool,
    cancel_event: CancelSignal | None = None,
) -> tuple[list[CascadeReaction], list[NuclideId]]:
    """Run discovery for one iteration and record the retained reactions.

    Parameters
    ----------
    state : CascadeLoopState
        Run state; ``reactions``, ``product_distribution`` and
        ``proportions`` are updated in place.  The pool is not touched.
    current : frozenset of NuclideId
        Snapshot of the pool taken at the start of the iteration.
    discovery : ReactionDiscoveryService
        Candidate source.
    params : CascadeParameters
        Thresholds and pass-through filters.
    weighted : bool
        Whether to compute reaction weights.
    cancel_event : CancelSignal or None, optional
        Checked between the two discovery calls.

    Returns
    -------
    new_reactions : list of CascadeReaction
        Reactions retained in this iteration, fusion first.
    new_products : list of NuclideId
        Distinct outputs not in *current*, in discovery order.

    Notes
    -----
    Retention policy:

    * fusion: both inputs in *current* and the output is not;
    * two-to-two: both inputs in *current* and at least one output is not.

    Identical candidates returned more than once in the same query are
    processed once.
    """
    loop = state.loop_count
    elements = tuple(element_symbols(n for n in state.pool if n in current))
    filters = params.discovery_filters()

    fusion_raw = _fetch(
        discovery.fusion_reactions,
        DiscoveryQuery(elements, params.min_fusion_mev, params.temperature, filters),
        FUSION,
        loop,
    )
    check_cancel(cancel_event, loop)
    two_to_two_raw = _fetch(
        discovery.two_to_two_reactions,
        DiscoveryQuery(elements, params.min_two_to_two_mev, params.temperature, filters),
        TWO_TO_TWO,
        loop,
    )

    new_reactions: list[CascadeReaction] = []
    new_products: dict[NuclideId, None] = {}
    seen: set[tuple] = set()

    for kind, batch in ((FUSION, fusion_raw), (TWO_TO_TWO, two_to_two_raw)):
        for raw in batch:
            inputs, outputs, mev, neutrino = _resolve_candidate(raw, kind, loop)

            key = (kind, inputs, outputs, mev, neutrino)
            if key in seen:
                continue
            seen.add(key)

            if not all(n in current for n in inputs):
                continue
            fresh = [n for n in dict.fromkeys(outputs) if n not in current]
            if kind == FUSION and len(fresh) != len(set(outputs)):
                continue
            if not fresh:
                continue

            weight = (
                reaction_weight(inputs[0], inputs[1], state.proportions)
                if weighted
                else None
            )
            reaction = CascadeReaction(
                type=kind,
                inputs=inputs,
                outputs=outputs,
                mev=mev,
                loop=loop,
                neutrino=neutrino,
                weight=weight,
            )
            state.reactions.append(reaction)
            new_reactions.append(reaction)

            increment = weight if weighted else 1
            for product in fresh:
                accumulate(state.product_distribution, product, increment)
                if weighted:
                    accumulate(state.proportions, product, weight)
                new_products[product] = None

    return new_reactions, list(new_products)


# ---------------------------------------------------------------------------
# Full loop
# ---------------------------------------------------------------------------


def run_cascade_loop(
    fuel: FuelComposition,
    params: CascadeParameters,
    discovery: ReactionDiscoveryService,
    weighted: bool = False,
    progress: ProgressSink | None = None,
    cancel_event: CancelSignal | None = None,
) -> CascadeLoopState:
    """Iterate discovery and feedback until a termination condition holds.

    Parameters
    ----------
    fuel : FuelComposition
        Normalised starting nuclides; seeds the pool and proportion map.
    params : CascadeParameters
        Bounds (``max_loops``, ``max_nuclides``), thresholds and filters.
    discovery : ReactionDiscoveryService
        Candidate source, called twice per iteration.
    weighted : bool, optional
        Weighted accounting (default ``False``).
    progress : callable or None, optional
        Called with a ``LoopProgress`` after every iteration that ran
        discovery.
    cancel_event : CancelSignal or None, optional
        Checked at the top of every iteration and between discovery calls.

    Returns
    -------
    CascadeLoopState
        Final state; ``status`` is one of ``TERMINATION_REASONS``.

    Raises
    ------
    CascadeCancelled
        If *cancel_event* is set while the loop is running.
    DiscoveryServiceFailure
        If the discovery service fails or returns malformed candidates.
    """
    state = CascadeLoopState.seed(fuel)

    while state.loop_count < params.max_loops:
        loop = state.loop_count
        check_cancel(cancel_event, loop)

        current = frozenset(state.pool)
        state.pool_sizes.append(len(current))
        if len(current) > params.max_nuclides:
            state.status = TERMINATED_MAX_NUCLIDES
            break

        new_reactions, new_products = cascade_step(
            state, current, discovery, params, weighted, cancel_event
        )
        logger.debug(
            "loop %d: pool=%d, new reactions=%d, new products=%s",
            loop, len(current), len(new_reactions), [str(p) for p in new_products],
        )

        if progress is not None:
            progress(
                LoopProgress(
                    loop=loop,
                    max_loops=params.max_loops,
                    new_reactions=tuple(new_reactions),
                    new_products=tuple(new_products),
                    pool_size=len(current),
                )
            )

        if not any(p not in state.processed for p in new_products):
            state.status = TERMINATED_NO_NEW_PRODUCTS
            break

        for product in new_products:
            state.pool.setdefault(product, loop + 1)
            state.processed.add(product)

        state.loop_count += 1

    if not state.terminated:
        state.status = TERMINATED_MAX_LOOPS

    logger.info(
        "Cascade terminated (%s) after %d loop(s): %d reactions, %d nuclides in pool",
        state.status, state.loop_count, len(state.reactions), len(state.pool),
    )
    return state
