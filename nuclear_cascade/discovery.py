"""
Reaction discovery boundary.

The cascade loop asks a ``ReactionDiscoveryService`` for candidate fusion
(A + B -> C) and two-to-two (A + B -> C + D) reactions among a set of element
symbols above an energy threshold.  The query is element-level and therefore
over-fetches; the loop re-checks isotope membership locally and assumes
nothing about ordering or duplicates in what comes back.

``TableReactionDiscovery`` is the reference service: it answers queries from
pandas DataFrames laid out like the fusion (``Fus_Fis``) and two-to-two
(``TwoToTwo``) reaction tables, e.g. loaded from CSV exports.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

import pandas as pd

from .nuclide import NuclideId


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

FUSION = "fusion"
TWO_TO_TWO = "twotwo"
REACTION_TYPES = {FUSION, TWO_TO_TWO}

FUSION_COLUMNS = ("E1", "A1", "E2", "A2", "E", "A", "MeV", "neutrino")
TWO_TO_TWO_COLUMNS = (
    "E1", "A1", "E2", "A2", "E3", "A3", "E4", "A4", "MeV", "neutrino",
)

# Per-query row cap.
DEFAULT_ROW_LIMIT: int = 10_000


# ---------------------------------------------------------------------------
# Query and candidate types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DiscoveryFilters:
    """Extra filters passed through to the service; the engine ignores them."""

    feedback_bosons: bool = True
    feedback_fermions: bool = True
    allow_dimers: bool = False
    exclude_melted: bool = False
    exclude_boiled_off: bool = False


@dataclass(frozen=True)
class DiscoveryQuery:
    """One discovery request: reactions among *elements* with MeV >= *min_mev*."""

    elements: tuple[str, ...]
    min_mev: float
    temperature: float | None = None
    filters: DiscoveryFilters = field(default_factory=DiscoveryFilters)


@dataclass(frozen=True)
class FusionCandidate:
    """Raw fusion row: (E1, A1) + (E2, A2) -> (E, A)."""

    element1: str
    mass1: int
    element2: str
    mass2: int
    element: str
    mass: int
    mev: float
    neutrino: str = "none"

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "FusionCandidate":
        return cls(
            row["E1"], row["A1"], row["E2"], row["A2"], row["E"], row["A"],
            row["MeV"], row.get("neutrino", "none"),
        )

    @property
    def inputs(self) -> tuple[NuclideId, NuclideId]:
        return (
            NuclideId.from_parts(self.element1, self.mass1),
            NuclideId.from_parts(self.element2, self.mass2),
        )

    @property
    def outputs(self) -> tuple[NuclideId]:
        return (NuclideId.from_parts(self.element, self.mass),)


@dataclass(frozen=True)
class TwoToTwoCandidate:
    """Raw two-to-two row: (E1, A1) + (E2, A2) -> (E3, A3) + (E4, A4)."""

    element1: str
    mass1: int
    element2: str
    mass2: int
    element3: str
    mass3: int
    element4: str
    mass4: int
    mev: float
    neutrino: str = "none"

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TwoToTwoCandidate":
        return cls(
            row["E1"], row["A1"], row["E2"], row["A2"],
            row["E3"], row["A3"], row["E4"], row["A4"],
            row["MeV"], row.get("neutrino", "none"),
        )

    @property
    def inputs(self) -> tuple[NuclideId, NuclideId]:
        return (
            NuclideId.from_parts(self.element1, self.mass1),
            NuclideId.from_parts(self.element2, self.mass2),
        )

    @property
    def outputs(self) -> tuple[NuclideId, NuclideId]:
        return (
            NuclideId.from_parts(self.element3, self.mass3),
            NuclideId.from_parts(self.element4, self.mass4),
        )


class ReactionDiscoveryService(Protocol):
    """Anything that can answer fusion and two-to-two discovery queries."""

    def fusion_reactions(self, query: DiscoveryQuery) -> Sequence[FusionCandidate]:
        ...

    def two_to_two_reactions(self, query: DiscoveryQuery) -> Sequence[TwoToTwoCandidate]:
        ...


# ---------------------------------------------------------------------------
# Table-backed implementation
# ---------------------------------------------------------------------------


def _require_columns(table: pd.DataFrame, columns: Sequence[str], label: str) -> None:
    missing = [c for c in columns if c not in table.columns and c != "neutrino"]
    if missing:
        raise ValueError(f"{label} table is missing required column(s): {missing}")


def _prepare_table(table: pd.DataFrame, columns: Sequence[str], label: str) -> pd.DataFrame:
    _require_columns(table, columns, label)
    out = table.copy()
    if "neutrino" not in out.columns:
        out["neutrino"] = "none"
    out["neutrino"] = out["neutrino"].fillna("none").astype(str)
    out["MeV"] = pd.to_numeric(out["MeV"], errors="coerce")
    return out.reset_index(drop=True)


def _read_csv(path: str | Path) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Reaction table not found: {path}")
    return pd.read_csv(path)


class TableReactionDiscovery:
    """Answer discovery queries from in-memory reaction tables.

    Parameters
    ----------
    fusion_table : pd.DataFrame
        Columns ``E1, A1, E2, A2, E, A, MeV`` and optionally ``neutrino``.
    two_to_two_table : pd.DataFrame
        Columns ``E1, A1, E2, A2, E3, A3, E4, A4, MeV`` and optionally
        ``neutrino``.
    row_limit : int or None, optional
        Maximum rows returned per query (default ``DEFAULT_ROW_LIMIT``).
        ``None`` disables the cap.

    Notes
    -----
    The pass-through filters on ``DiscoveryQuery`` (boson/fermion feedback,
    dimers, melted/boiled-off elements) need per-nuclide and per-element
    physical data that these tables do not carry; they are accepted and
    ignored here.
    """

    def __init__(
        self,
        fusion_table: pd.DataFrame,
        two_to_two_table: pd.DataFrame,
        row_limit: int | None = DEFAULT_ROW_LIMIT,
    ) -> None:
        if row_limit is not None and row_limit <= 0:
            raise ValueError(f"row_limit must be positive or None; got {row_limit}.")
        self.fusion_table = _prepare_table(fusion_table, FUSION_COLUMNS, "fusion")
        self.two_to_two_table = _prepare_table(
            two_to_two_table, TWO_TO_TWO_COLUMNS, "two-to-two"
        )
        self.row_limit = row_limit

    @classmethod
    def from_csv(
        cls,
        fusion_path: str | Path,
        two_to_two_path: str | Path,
        row_limit: int | None = DEFAULT_ROW_LIMIT,
    ) -> "TableReactionDiscovery":
        """Load both tables from CSV files."""
        return cls(_read_csv(fusion_path), _read_csv(two_to_two_path), row_limit)

    def _select(self, table: pd.DataFrame, query: DiscoveryQuery, label: str) -> pd.DataFrame:
        elements = list(query.elements)
        mask = (
            table["E1"].isin(elements)
            & table["E2"].isin(elements)
            & (table["MeV"] >= query.min_mev)
        )
        selected = table.loc[mask]
        if self.row_limit is not None and len(selected) > self.row_limit:
            warnings.warn(
                f"TableReactionDiscovery: {label} query matched {len(selected)} rows; "
                f"truncated to row_limit={self.row_limit}.",
                UserWarning,
                stacklevel=3,
            )
            selected = selected.head(self.row_limit)
        return selected

    def fusion_reactions(self, query: DiscoveryQuery) -> list[FusionCandidate]:
        rows = self._select(self.fusion_table, query, "fusion").to_dict("records")
        return [FusionCandidate.from_row(row) for row in rows]

    def two_to_two_reactions(self, query: DiscoveryQuery) -> list[TwoToTwoCandidate]:
        rows = self._select(self.two_to_two_table, query, "two-to-two").to_dict("records")
        return [TwoToTwoCandidate.from_row(row) for row in rows]
