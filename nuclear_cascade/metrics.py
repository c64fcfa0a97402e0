"""
Energy and product metrics for a finished cascade.

All metrics are pure functions with no global state.

* ``energy_statistics``   – count / mean / median / min / max / std / range.
* ``energy_confidence_interval`` – t-distribution CI for the mean energy.
* ``sturges_bin_width``   – bin width from Sturges' rule.
* ``energy_histogram``    – fixed-width bins over reaction energies.
* ``product_summary``     – top products of a run by count or weight.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Sequence

import numpy as np
import scipy.stats as stats

from .cascade import CascadeReaction
from .results import CascadeResults


# ---------------------------------------------------------------------------
# Energy statistics
# ---------------------------------------------------------------------------


def _energies(values: Iterable[CascadeReaction] | Sequence[float] | np.ndarray) -> np.ndarray:
    values = list(values)
    if values and isinstance(values[0], CascadeReaction):
        values = [r.mev for r in values]
    return np.asarray(values, dtype=np.float64)


def energy_statistics(values) -> dict[str, int | float]:
    """Summary statistics of reaction energies.

    Parameters
    ----------
    values : iterable of CascadeReaction or array-like of float
        Reactions (their ``mev`` is used) or raw energies in MeV.

    Returns
    -------
    dict
        Keys ``count``, ``mean``, ``median``, ``min``, ``max``, ``std``
        (population standard deviation) and ``range``.  All zero for an empty
        input.
    """
    energies = _energies(values)
    if energies.size == 0:
        return {"count": 0, "mean": 0.0, "median": 0.0, "min": 0.0,
                "max": 0.0, "std": 0.0, "range": 0.0}

    lo = float(energies.min())
    hi = float(energies.max())
    return {
        "count": int(energies.size),
        "mean": float(np.mean(energies)),
        "median": float(np.median(energies)),
        "min": lo,
        "max": hi,
        "std": float(np.std(energies)),
        "range": hi - lo,
    }


def energy_confidence_interval(
    values,
    confidence: float = 0.95,
) -> tuple[float, float]:
    """Confidence interval for the mean reaction energy via t-distribution.

    Raises
    ------
    ValueError
        If fewer than 2 energies are given or *confidence* is not in (0, 1).
    """
    energies = _energies(values)
    m = energies.size
    if m < 2:
        raise ValueError("Need at least 2 energies for CI computation.")
    if not (0 < confidence < 1):
        raise ValueError(f"confidence must be in (0, 1); got {confidence}.")
    mean = float(np.mean(energies))
    se = float(stats.sem(energies))
    if se == 0.0:
        return mean, mean
    interval = stats.t.interval(confidence, df=m - 1, loc=mean, scale=se)
    return float(interval[0]), float(interval[1])


# ---------------------------------------------------------------------------
# Histogram
# ---------------------------------------------------------------------------


def sturges_bin_width(n: int, value_range: float) -> float:
    """Bin width from Sturges' rule, ``range / ceil(log2(n) + 1)``.

    Returns 1.0 when there is no data or the range is zero.
    """
    if n <= 0 or value_range == 0:
        return 1.0
    bin_count = math.ceil(math.log2(n) + 1)
    return value_range / bin_count


def energy_histogram(
    values,
    bin_width: float | None = None,
) -> list[dict[str, float | int]]:
    """Count energies in fixed-width bins starting at the minimum.

    Parameters
    ----------
    values : iterable of CascadeReaction or array-like of float
    bin_width : float or None, optional
        Width of each bin.  Defaults to ``sturges_bin_width``.

    Returns
    -------
    list of dict
        One dict per bin with ``bin_start``, ``bin_end``, ``count`` and
        ``bin_center``.  The maximum falls in the last bin.  When every
        energy is identical a single zero-width bin holds them all.

    Raises
    ------
    ValueError
        If *bin_width* is given and is not positive.
    """
    energies = _energies(values)
    if energies.size == 0:
        return []
    if bin_width is not None and not bin_width > 0:
        raise ValueError(f"bin_width must be positive; got {bin_width}.")

    lo = float(energies.min())
    hi = float(energies.max())
    value_range = hi - lo
    if value_range == 0:
        return [{"bin_start": lo, "bin_end": lo, "count": int(energies.size), "bin_center": lo}]

    width = bin_width if bin_width is not None else sturges_bin_width(energies.size, value_range)
    n_bins = max(1, math.ceil(value_range / width))
    index = np.minimum(np.floor((energies - lo) / width).astype(np.int64), n_bins - 1)
    counts = np.bincount(index, minlength=n_bins)

    bins = []
    for i in range(n_bins):
        start = lo + i * width
        bins.append({
            "bin_start": start,
            "bin_end": start + width,
            "count": int(counts[i]),
            "bin_center": start + width / 2,
        })
    return bins


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


def product_summary(results: CascadeResults, top_k: int = 10) -> list[dict[str, Any]]:
    """Most frequent products of a run.

    Returns
    -------
    list of dict
        Up to *top_k* entries with ``nuclide`` (text label), ``count`` (count
        or accumulated weight) and ``share`` (fraction of the distribution
        total), largest first; ties broken by nuclide order.
    """
    if top_k < 1:
        raise ValueError(f"top_k must be >= 1; got {top_k}.")
    items = sorted(results.product_distribution.items(), key=lambda kv: (-kv[1], kv[0]))
    total = float(np.sum([v for _, v in items])) if items else 0.0
    return [
        {
            "nuclide": str(nuclide),
            "count": value,
            "share": float(value) / total if total > 0 else 0.0,
        }
        for nuclide, value in items[:top_k]
    ]
