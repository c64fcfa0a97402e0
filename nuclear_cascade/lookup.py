"""
Nuclide and element lookup boundary.

After a run, the result assembler resolves descriptive records (for display
only) for every nuclide and element the cascade touched, in one call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import pandas as pd

from .nuclide import NuclideId


Record = dict[str, Any]


@dataclass(frozen=True)
class LookupRecords:
    """Descriptive records returned by a lookup service."""

    nuclides: list[Record] = field(default_factory=list)
    elements: list[Record] = field(default_factory=list)


class NuclideLookupService(Protocol):
    """Anything that can resolve nuclide/element records in one call."""

    def lookup(
        self,
        nuclides: frozenset[NuclideId],
        elements: frozenset[str],
    ) -> LookupRecords:
        ...


class NullNuclideLookup:
    """Lookup service for runs without descriptive data; always empty."""

    def lookup(
        self,
        nuclides: frozenset[NuclideId],
        elements: frozenset[str],
    ) -> LookupRecords:
        return LookupRecords()


class TableNuclideLookup:
    """Resolve records from nuclide (``E``, ``A``, ...) and element (``E``, ...) tables."""

    def __init__(
        self,
        nuclide_table: pd.DataFrame,
        element_table: pd.DataFrame | None = None,
    ) -> None:
        for col in ("E", "A"):
            if col not in nuclide_table.columns:
                raise ValueError(f"nuclide table is missing required column {col!r}")
        if element_table is not None and "E" not in element_table.columns:
            raise ValueError("element table is missing required column 'E'")
        self.nuclide_table = nuclide_table.reset_index(drop=True)
        self.element_table = (
            element_table.reset_index(drop=True)
            if element_table is not None
            else pd.DataFrame(columns=["E"])
        )

    @classmethod
    def from_csv(
        cls,
        nuclide_path: str | Path,
        element_path: str | Path | None = None,
    ) -> "TableNuclideLookup":
        nuclide_path = Path(nuclide_path)
        if not nuclide_path.exists():
            raise FileNotFoundError(f"Nuclide table not found: {nuclide_path}")
        element_table = None
        if element_path is not None:
            element_path = Path(element_path)
            if not element_path.exists():
                raise FileNotFoundError(f"Element table not found: {element_path}")
            element_table = pd.read_csv(element_path)
        return cls(pd.read_csv(nuclide_path), element_table)

    def lookup(
        self,
        nuclides: frozenset[NuclideId],
        elements: frozenset[str],
    ) -> LookupRecords:
        wanted = {(n.element, n.mass_number) for n in nuclides}
        table = self.nuclide_table
        nuclide_mask = [
            (str(e), int(a)) in wanted for e, a in zip(table["E"], table["A"])
        ]
        element_mask = self.element_table["E"].astype(str).isin(sorted(elements))
        return LookupRecords(
            nuclides=table.loc[nuclide_mask].to_dict("records"),
            elements=self.element_table.loc[element_mask].to_dict("records"),
        )
