"""
Configuration for the nuclear cascade engine.

``CascadeParameters`` is the in-process configuration object handed to
``simulate``.  ``load_config`` reads the same options from a JSON file,
validates fields, and ``parameters_from_config`` turns the validated dict
into parameters.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .discovery import DiscoveryFilters
from .errors import InvalidConfigurationError


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

ConfigDict = dict[str, Any]


# ---------------------------------------------------------------------------
# Schema constants
# ---------------------------------------------------------------------------

REQUIRED_FIELDS = {"fuel_nuclides", "max_loops", "max_nuclides"}

BOOL_FIELDS = (
    "use_weighted_mode",
    "feedback_bosons",
    "feedback_fermions",
    "allow_dimers",
    "exclude_melted",
    "exclude_boiled_off",
)

DATA_FIELDS = {
    "fusion_table",
    "two_to_two_table",
    "nuclide_table",
    "element_table",
    "row_limit",
}


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CascadeParameters:
    """Options recognised by ``simulate``.

    Attributes
    ----------
    fuel_nuclides : list
        Plain nuclide tokens (equal proportions) or a weighted list; see
        ``fuel.coerce_fuel_input`` for accepted shapes.
    use_weighted_mode : bool
        Weighted vs unweighted accounting.
    temperature : float or None
        Passed through to discovery; not interpreted by the engine.
    min_fusion_mev, min_two_to_two_mev : float
        Energy thresholds passed to discovery.
    max_nuclides : int
        Pool-size termination bound.
    max_loops : int
        Iteration-count termination bound.
    feedback_bosons, feedback_fermions, allow_dimers, exclude_melted,
    exclude_boiled_off : bool
        Passed through to discovery as additional filters.
    """

    fuel_nuclides: Any = field(default_factory=list)
    use_weighted_mode: bool = False
    temperature: float | None = 2400.0
    min_fusion_mev: float = 0.0
    min_two_to_two_mev: float = 0.0
    max_nuclides: int = 100
    max_loops: int = 10
    feedback_bosons: bool = True
    feedback_fermions: bool = True
    allow_dimers: bool = False
    exclude_melted: bool = False
    exclude_boiled_off: bool = False

    def discovery_filters(self) -> DiscoveryFilters:
        return DiscoveryFilters(
            feedback_bosons=self.feedback_bosons,
            feedback_fermions=self.feedback_fermions,
            allow_dimers=self.allow_dimers,
            exclude_melted=self.exclude_melted,
            exclude_boiled_off=self.exclude_boiled_off,
        )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def validate_parameters(params: CascadeParameters) -> None:
    """Check numeric bounds and types of *params*.

    Fuel contents are validated separately by ``fuel.normalize_fuel``.

    Raises
    ------
    InvalidConfigurationError
        On any validation failure.
    """
    if not _is_int(params.max_loops) or params.max_loops < 0:
        raise InvalidConfigurationError(
            f"max_loops must be a non-negative integer; got {params.max_loops!r}"
        )
    if not _is_int(params.max_nuclides) or params.max_nuclides < 0:
        raise InvalidConfigurationError(
            f"max_nuclides must be a non-negative integer; got {params.max_nuclides!r}"
        )
    for name in ("min_fusion_mev", "min_two_to_two_mev"):
        value = getattr(params, name)
        if not _is_finite_number(value):
            raise InvalidConfigurationError(
                f"{name} must be a finite number; got {value!r}"
            )
    if params.temperature is not None and not _is_finite_number(params.temperature):
        raise InvalidConfigurationError(
            f"temperature must be a finite number or None; got {params.temperature!r}"
        )
    for name in BOOL_FIELDS:
        value = getattr(params, name)
        if not isinstance(value, bool):
            raise InvalidConfigurationError(f"{name} must be a bool; got {value!r}")


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def load_config(path: str | Path) -> ConfigDict:
    """Load and validate a JSON configuration file.

    Parameters
    ----------
    path : str or Path
        Path to the JSON configuration file.

    Returns
    -------
    ConfigDict
        Validated configuration dictionary.

    Raises
    ------
    InvalidConfigurationError
        If required fields are missing or values are invalid.
    FileNotFoundError
        If the config file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r") as fh:
        try:
            cfg: ConfigDict = json.load(fh)
        except json.JSONDecodeError as exc:
            raise InvalidConfigurationError(f"Invalid JSON in {path}: {exc}") from exc

    _validate_config(cfg)
    return cfg


def _validate_config(cfg: ConfigDict) -> None:
    """Validate top-level config fields.

    Raises
    ------
    InvalidConfigurationError
        On any validation failure.
    """
    if not isinstance(cfg, dict):
        raise InvalidConfigurationError("Config root must be a JSON object.")

    missing = REQUIRED_FIELDS - cfg.keys()
    if missing:
        raise InvalidConfigurationError(f"Config missing required fields: {missing}")

    if not isinstance(cfg["fuel_nuclides"], (list, dict)):
        raise InvalidConfigurationError(
            "fuel_nuclides must be a list of nuclides or weighted entries, "
            f"got {type(cfg['fuel_nuclides']).__name__}"
        )

    data_cfg = cfg.get("data", {})
    if not isinstance(data_cfg, dict):
        raise InvalidConfigurationError("data must be an object if present.")
    unknown = set(data_cfg) - DATA_FIELDS
    if unknown:
        raise InvalidConfigurationError(
            f"data contains unknown field(s): {unknown}; expected a subset of {DATA_FIELDS}"
        )
    for name in sorted(DATA_FIELDS - {"row_limit"}):
        if name in data_cfg and not isinstance(data_cfg[name], str):
            raise InvalidConfigurationError(f"data.{name} must be a file path string.")
    row_limit = data_cfg.get("row_limit")
    if row_limit is not None and (
        isinstance(row_limit, bool) or not isinstance(row_limit, int) or row_limit <= 0
    ):
        raise InvalidConfigurationError(
            f"data.row_limit must be a positive integer or null; got {row_limit!r}."
        )

    # Field-level checks are shared with in-process parameters.
    validate_parameters(parameters_from_config(cfg))


def parameters_from_config(cfg: ConfigDict) -> CascadeParameters:
    """Build ``CascadeParameters`` from a config dict, applying defaults."""
    defaults = CascadeParameters()
    kwargs: dict[str, Any] = {"fuel_nuclides": cfg["fuel_nuclides"]}
    for name in (
        "use_weighted_mode",
        "temperature",
        "min_fusion_mev",
        "min_two_to_two_mev",
        "max_nuclides",
        "max_loops",
        *BOOL_FIELDS[1:],
    ):
        kwargs[name] = cfg.get(name, getattr(defaults, name))
    return CascadeParameters(**kwargs)
