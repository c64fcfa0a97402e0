"""
Nuclide identifiers.

A nuclide is identified by its element symbol and mass number.  The canonical
text form is ``"<Element>-<MassNumber>"`` (``"He-4"``).  Parsing also accepts
the legacy unseparated form (``"He4"``), a space separator, and the hydrogen
shorthands ``D`` and ``T``, which the reaction tables store as their own
element symbols (``D-2``, ``T-3``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from .errors import InvalidNuclideFormat


_NUCLIDE_PATTERN = re.compile(r"^([A-Z][a-z]?)[-\s]?(\d+)$", re.ASCII)

SPECIAL_TOKENS: dict[str, tuple[str, int]] = {
    "D": ("D", 2),
    "T": ("T", 3),
}


@dataclass(frozen=True, order=True)
class NuclideId:
    """Element symbol plus mass number, usable directly as a dict/set key."""

    element: str
    mass_number: int

    def __str__(self) -> str:
        return f"{self.element}-{self.mass_number}"

    @classmethod
    def from_parts(cls, element: object, mass_number: object) -> "NuclideId":
        """Build an identifier from raw table fields (``E``, ``A`` columns).

        Raises
        ------
        ValueError
            If the element is not a symbol or the mass number is not a
            positive integer.
        """
        symbol = str(element).strip()
        if not re.fullmatch(r"[A-Z][a-z]?", symbol):
            raise ValueError(f"Invalid element symbol: {element!r}")
        try:
            mass_float = float(mass_number)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid mass number: {mass_number!r}") from None
        if not mass_float.is_integer() or mass_float <= 0:
            raise ValueError(f"Invalid mass number: {mass_number!r}")
        return cls(symbol, int(mass_float))


def parse_nuclide(raw: str | NuclideId) -> NuclideId:
    """Parse one nuclide token into its canonical identifier.

    Raises
    ------
    InvalidNuclideFormat
        If *raw* does not match the accepted grammar.
    """
    if isinstance(raw, NuclideId):
        return raw
    if not isinstance(raw, str):
        raise InvalidNuclideFormat(raw)

    token = raw.strip()
    if token in SPECIAL_TOKENS:
        element, mass = SPECIAL_TOKENS[token]
        return NuclideId(element, mass)

    match = _NUCLIDE_PATTERN.match(token)
    if match is None:
        raise InvalidNuclideFormat(raw)
    element, mass = match.groups()
    if int(mass) == 0:
        raise InvalidNuclideFormat(raw)
    return NuclideId(element, int(mass))


def parse_nuclides(raw_ids: Iterable[str | NuclideId]) -> list[NuclideId]:
    """Parse a list of tokens, skipping blank entries.

    Fails on the first malformed entry, naming it in the exception.
    """
    parsed: list[NuclideId] = []
    for raw in raw_ids:
        if isinstance(raw, str) and not raw.strip():
            continue
        parsed.append(parse_nuclide(raw))
    return parsed


def element_symbols(nuclides: Iterable[NuclideId]) -> list[str]:
    """Distinct element symbols in first-seen order."""
    return list(dict.fromkeys(n.element for n in nuclides))
