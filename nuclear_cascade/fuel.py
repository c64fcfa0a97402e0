"""
Fuel composition model.

A fuel is one or more starting nuclides, each carrying a relative abundance
("proportion").  Callers may hand over either a plain list of nuclide tokens
(equal proportions) or an explicit weighted list; both are resolved exactly
once, at the boundary, into the tagged ``FuelInput`` variant and then into a
normalised ``FuelComposition`` whose proportions sum to 1.0.

All functions here are pure: they never mutate their inputs.
"""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass, replace
from typing import Any, Iterable, Iterator, Mapping, Sequence, Union

import numpy as np

from .errors import (
    DuplicateFuelNuclide,
    EmptyFuelComposition,
    FuelValidationError,
    NegativeProportion,
    ZeroTotalProportion,
)
from .nuclide import NuclideId, parse_nuclide, parse_nuclides


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PROPORTION_FORMATS = {"percentage", "atomic_ratio", "mass_ratio"}

# Tolerance used when checking that normalised proportions sum to one.
SUM_TOLERANCE: float = 1e-3


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FuelNuclide:
    """One fuel entry.

    Attributes
    ----------
    nuclide : NuclideId
        Canonical identifier.
    proportion : float
        Normalised relative abundance in [0, 1].
    display_value : float or None
        Value as the user entered or should see it (e.g. 92.5 for 92.5 %).
    proportion_format : str
        One of ``PROPORTION_FORMATS``; controls how ``display_value`` reads.
    """

    nuclide: NuclideId
    proportion: float
    display_value: float | None = None
    proportion_format: str = "percentage"


@dataclass(frozen=True)
class FuelComposition:
    """Ordered, immutable collection of fuel entries."""

    entries: tuple[FuelNuclide, ...]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[FuelNuclide]:
        return iter(self.entries)

    def __getitem__(self, index: int) -> FuelNuclide:
        return self.entries[index]

    @property
    def nuclides(self) -> list[NuclideId]:
        return [entry.nuclide for entry in self.entries]

    @property
    def total(self) -> float:
        return float(np.sum([entry.proportion for entry in self.entries]))

    def proportions(self) -> dict[NuclideId, float]:
        """Return a fresh ``{nuclide: proportion}`` mapping."""
        return {entry.nuclide: entry.proportion for entry in self.entries}


@dataclass(frozen=True)
class UnweightedFuel:
    """Plain nuclide list; every entry gets an equal share."""

    nuclides: tuple[str | NuclideId, ...]


@dataclass(frozen=True)
class WeightedFuel:
    """Explicit ``(nuclide, proportion)`` pairs, not necessarily normalised."""

    entries: tuple[tuple[str | NuclideId, float], ...]
    display_values: tuple[float | None, ...] | None = None


FuelInput = Union[UnweightedFuel, WeightedFuel]


# ---------------------------------------------------------------------------
# Boundary resolution
# ---------------------------------------------------------------------------


def _weighted_entry(item: Any) -> tuple[str | NuclideId, float, float | None] | None:
    """Interpret one raw list item as a weighted entry, or None if unweighted."""
    if isinstance(item, (str, NuclideId)):
        return None
    if isinstance(item, FuelNuclide):
        return item.nuclide, item.proportion, item.display_value
    if isinstance(item, Mapping):
        for key in ("nuclide", "nuclideId", "nuclide_id"):
            if key in item:
                if "proportion" not in item:
                    raise FuelValidationError(
                        f"Fuel entry {dict(item)!r} is missing 'proportion'."
                    )
                display = item.get("display_value", item.get("displayValue"))
                return item[key], item["proportion"], display
        if len(item) == 1:
            ((nuclide, proportion),) = item.items()
            return nuclide, proportion, None
        raise FuelValidationError(
            f"Cannot interpret fuel entry {dict(item)!r}; expected "
            "{'nuclide': ..., 'proportion': ...} or {'<nuclide>': <proportion>}."
        )
    if isinstance(item, Sequence) and len(item) == 2:
        nuclide, proportion = item
        return nuclide, proportion, None
    raise FuelValidationError(f"Cannot interpret fuel entry {item!r}.")


def coerce_fuel_input(raw: FuelInput | Iterable[Any] | Mapping[Any, float]) -> FuelInput:
    """Resolve a raw caller value into the tagged ``FuelInput`` variant.

    Accepted shapes: an existing ``UnweightedFuel``/``WeightedFuel``; a list
    of nuclide tokens; a list of ``(nuclide, proportion)`` pairs, single-key
    dicts ``{nuclide: proportion}``, dicts with ``nuclide`` and
    ``proportion`` keys, or ``FuelNuclide`` objects; or a single
    ``{nuclide: proportion}`` mapping.

    Raises
    ------
    FuelValidationError
        If weighted and unweighted entries are mixed or an entry cannot be
        interpreted.
    """
    if isinstance(raw, (UnweightedFuel, WeightedFuel)):
        return raw
    if isinstance(raw, str):
        return UnweightedFuel((raw,))
    if isinstance(raw, Mapping):
        return WeightedFuel(tuple((k, v) for k, v in raw.items()))

    items = list(raw)
    interpreted = [_weighted_entry(item) for item in items]
    weighted = [entry is not None for entry in interpreted]

    if not items or not any(weighted):
        return UnweightedFuel(tuple(items))
    if not all(weighted):
        raise FuelValidationError(
            "Fuel list mixes plain nuclide tokens with weighted entries."
        )
    return WeightedFuel(
        entries=tuple((nuclide, proportion) for nuclide, proportion, _ in interpreted),
        display_values=tuple(display for _, _, display in interpreted),
    )


# ---------------------------------------------------------------------------
# Parsing and normalisation
# ---------------------------------------------------------------------------


def parse_fuel_nuclides(raw_ids: Iterable[str | NuclideId]) -> list[NuclideId]:
    """Normalise raw nuclide tokens; fails on the first malformed entry."""
    return parse_nuclides(raw_ids)


def create_equal_proportion_fuel(nuclides: Sequence[NuclideId]) -> FuelComposition:
    """Give every nuclide an equal ``1/n`` share (percentage display)."""
    if not nuclides:
        return FuelComposition(())
    n = len(nuclides)
    proportion = 1.0 / n
    return FuelComposition(
        tuple(
            FuelNuclide(nuclide, proportion, 100.0 / n, "percentage")
            for nuclide in nuclides
        )
    )


def _normalize_unweighted(fuel: UnweightedFuel) -> FuelComposition:
    parsed = parse_fuel_nuclides(fuel.nuclides)
    if not parsed:
        raise EmptyFuelComposition()

    unique = list(dict.fromkeys(parsed))
    if len(unique) != len(parsed):
        warnings.warn(
            f"normalize_fuel: {len(parsed) - len(unique)} duplicate fuel "
            f"nuclide(s) collapsed; proportions are shared among {len(unique)} "
            "distinct nuclides.",
            UserWarning,
            stacklevel=3,
        )
    return create_equal_proportion_fuel(unique)


def _normalize_weighted(fuel: WeightedFuel, proportion_format: str) -> FuelComposition:
    if not fuel.entries:
        raise EmptyFuelComposition()

    nuclides: list[NuclideId] = []
    raw_values: list[float] = []
    seen: set[NuclideId] = set()
    for raw_id, raw_proportion in fuel.entries:
        nuclide = parse_nuclide(raw_id)
        if nuclide in seen:
            raise DuplicateFuelNuclide(nuclide)
        seen.add(nuclide)

        try:
            value = float(raw_proportion)
        except (TypeError, ValueError):
            raise FuelValidationError(
                f"Proportion for {nuclide} is not a number: {raw_proportion!r}"
            ) from None
        if not math.isfinite(value):
            raise FuelValidationError(f"Proportion for {nuclide} is not finite: {value}")
        if value < 0:
            raise NegativeProportion(nuclide, value)

        nuclides.append(nuclide)
        raw_values.append(value)

    props = np.asarray(raw_values, dtype=np.float64)
    if float(np.max(props)) == 0.0:
        raise ZeroTotalProportion()
    # Scale by the largest entry so huge finite inputs cannot sum to inf.
    scaled = props / np.max(props)
    normalized = scaled / np.sum(scaled)

    displays = fuel.display_values or (None,) * len(nuclides)
    return FuelComposition(
        tuple(
            FuelNuclide(nuclide, float(p), display, proportion_format)
            for nuclide, p, display in zip(nuclides, normalized, displays)
        )
    )


def normalize_fuel(
    fuel_input: FuelInput | Iterable[Any] | Mapping[Any, float],
    proportion_format: str = "percentage",
) -> FuelComposition:
    """Resolve and normalise a fuel specification.

    Parameters
    ----------
    fuel_input : FuelInput or raw list/mapping
        See ``coerce_fuel_input`` for accepted shapes.
    proportion_format : str, optional
        Format tag recorded on weighted entries (default ``"percentage"``).

    Returns
    -------
    FuelComposition
        Entries in input order with proportions summing to 1.0.

    Raises
    ------
    InvalidNuclideFormat
        On the first malformed nuclide token.
    EmptyFuelComposition
        If no fuel nuclides remain after parsing.
    DuplicateFuelNuclide, NegativeProportion, ZeroTotalProportion
        For invalid explicit proportions.
    """
    if proportion_format not in PROPORTION_FORMATS:
        raise FuelValidationError(
            f"proportion_format must be one of {PROPORTION_FORMATS}, "
            f"got {proportion_format!r}"
        )
    fuel = coerce_fuel_input(fuel_input)
    if isinstance(fuel, UnweightedFuel):
        return _normalize_unweighted(fuel)
    return _normalize_weighted(fuel, proportion_format)


# ---------------------------------------------------------------------------
# Validation and display helpers
# ---------------------------------------------------------------------------


def validate_fuel_proportions(
    composition: FuelComposition,
    tolerance: float = SUM_TOLERANCE,
) -> list[str]:
    """List every problem with an already-built composition.

    Returns an empty list when the composition is valid.  Unlike
    ``normalize_fuel`` this never raises; it is meant for form-style feedback.
    """
    errors: list[str] = []
    if len(composition) == 0:
        return ["At least one fuel nuclide is required"]

    for entry in composition:
        if entry.proportion < 0:
            errors.append(
                f"Negative proportion not allowed: {entry.nuclide} = {entry.proportion}"
            )

    total = composition.total
    if abs(total - 1.0) > tolerance:
        errors.append(f"Proportions must sum to 1.0 (current sum: {total:.3f})")

    seen: set[NuclideId] = set()
    for entry in composition:
        if entry.nuclide in seen:
            errors.append(f"Duplicate nuclide: {entry.nuclide}")
        seen.add(entry.nuclide)

    return errors


def atomic_mass_from_id(nuclide: str | NuclideId) -> int:
    """Mass number of a nuclide token (``"Li-7"`` -> 7)."""
    return parse_nuclide(nuclide).mass_number


def convert_proportion_format(
    composition: FuelComposition,
    target_format: str,
    atomic_masses: Mapping[NuclideId, float] | None = None,
) -> FuelComposition:
    """Recompute ``display_value`` for a different proportion format.

    Proportions are untouched; only the display representation changes.
    ``atomic_ratio`` and ``mass_ratio`` are expressed relative to the
    smallest entry.  ``mass_ratio`` falls back to the mass number when no
    atomic mass is supplied for a nuclide.
    """
    if target_format not in PROPORTION_FORMATS:
        raise FuelValidationError(
            f"target_format must be one of {PROPORTION_FORMATS}, got {target_format!r}"
        )
    if len(composition) == 0:
        return composition

    props = np.array([entry.proportion for entry in composition], dtype=np.float64)

    if target_format == "percentage":
        displays = props * 100.0
    elif target_format == "atomic_ratio":
        displays = props / np.min(props) if np.min(props) > 0 else props * np.nan
    else:
        masses = np.array(
            [
                (atomic_masses or {}).get(entry.nuclide, atomic_mass_from_id(entry.nuclide))
                for entry in composition
            ],
            dtype=np.float64,
        )
        mass_props = props * masses
        displays = (
            mass_props / np.min(mass_props) if np.min(mass_props) > 0 else mass_props * np.nan
        )

    return FuelComposition(
        tuple(
            replace(entry, display_value=float(d), proportion_format=target_format)
            for entry, d in zip(composition, displays)
        )
    )


def parse_mass_ratios(
    mass_ratios: Mapping[str | NuclideId, float],
    atomic_masses: Mapping[NuclideId, float] | None = None,
) -> FuelComposition:
    """Turn per-nuclide masses into a normalised molar composition.

    Each mass is divided by the nuclide's atomic mass (mass number when not
    supplied) before normalisation.

    Raises
    ------
    FuelValidationError
        If an atomic mass is not positive.
    """
    entries: list[tuple[NuclideId, float]] = []
    displays: list[float | None] = []
    for raw_id, mass_value in mass_ratios.items():
        nuclide = parse_nuclide(raw_id)
        atomic_mass = float((atomic_masses or {}).get(nuclide, atomic_mass_from_id(nuclide)))
        if atomic_mass <= 0:
            raise FuelValidationError(f"Atomic mass for {nuclide} must be positive.")
        entries.append((nuclide, float(mass_value) / atomic_mass))
        displays.append(float(mass_value))

    return normalize_fuel(
        WeightedFuel(tuple(entries), tuple(displays)),
        proportion_format="mass_ratio",
    )


def format_proportion(entry: FuelNuclide) -> str:
    """Human-readable proportion, e.g. ``"92.50%"``, ``"3.00"``, ``"7.00g"``."""
    value = entry.display_value
    if value is None:
        value = entry.proportion * 100.0

    if entry.proportion_format == "percentage":
        return f"{value:.2f}%"
    if entry.proportion_format == "atomic_ratio":
        return f"{value:.2f}"
    if entry.proportion_format == "mass_ratio":
        return f"{value:.2f}g"
    return f"{entry.proportion * 100.0:.2f}%"
