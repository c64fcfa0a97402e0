"""
Reaction weighting.

A reaction's weight is the product of its two reactants' proportions: the
reactants are modelled as independent events and the weight is the joint
probability that both are present in the required relative abundance.

This is a relative-frequency heuristic, not a branching-ratio model.  Weights
are never renormalised across reactions, and products inherit weight
additively so that later generations are attenuated.
"""

from __future__ import annotations

from typing import Hashable, Mapping, MutableMapping, TypeVar

K = TypeVar("K", bound=Hashable)


def reaction_weight(
    input1: K,
    input2: K,
    proportions: Mapping[K, float],
) -> float:
    """Return ``proportions[input1] * proportions[input2]``.

    Unknown nuclides contribute a proportion of 0.  For a self-reaction
    (``input1 == input2``) the proportion is squared.
    """
    return proportions.get(input1, 0.0) * proportions.get(input2, 0.0)


def accumulate(mapping: MutableMapping[K, float], key: K, amount: float) -> None:
    """Add *amount* to ``mapping[key]``, starting from 0 for new keys."""
    mapping[key] = mapping.get(key, 0) + amount
