"""
Exception taxonomy for the nuclear cascade engine.

Validation errors are raised synchronously before any loop state exists and
also subclass ``ValueError`` so callers that only care about "bad input" can
catch that.  ``DiscoveryServiceFailure`` aborts a run mid-flight.
``CascadeCancelled`` sits outside the ``CascadeError`` hierarchy:
it is a normal outcome, not a fault.
"""

from __future__ import annotations


class CascadeError(Exception):
    """Base class for all cascade engine errors."""


# ---------------------------------------------------------------------------
# Pre-run validation
# ---------------------------------------------------------------------------


class FuelValidationError(CascadeError, ValueError):
    """Raised when a fuel specification cannot be turned into a composition."""


class InvalidNuclideFormat(FuelValidationError):
    """Raised when a nuclide token does not match the accepted grammar."""

    def __init__(self, raw: object) -> None:
        self.raw = raw
        super().__init__(
            f"Invalid nuclide format: {raw!r}. "
            "Expected format 'E-A' (e.g. 'H-1', 'Li-7'), 'EA', 'D' or 'T'."
        )


class EmptyFuelComposition(FuelValidationError):
    """Raised when no fuel nuclides were supplied."""

    def __init__(self, message: str = "No valid fuel nuclides provided.") -> None:
        super().__init__(message)


class ZeroTotalProportion(FuelValidationError):
    """Raised when explicit fuel proportions sum to zero."""

    def __init__(self) -> None:
        super().__init__("Sum of fuel proportions cannot be zero.")


class NegativeProportion(FuelValidationError):
    """Raised when an explicit fuel proportion is below zero."""

    def __init__(self, nuclide_id: object, proportion: float) -> None:
        self.nuclide_id = nuclide_id
        self.proportion = proportion
        super().__init__(
            f"Negative proportion not allowed: {nuclide_id} = {proportion}"
        )


class DuplicateFuelNuclide(FuelValidationError):
    """Raised when a weighted fuel list names the same nuclide twice."""

    def __init__(self, nuclide_id: object) -> None:
        self.nuclide_id = nuclide_id
        super().__init__(f"Duplicate nuclide in weighted fuel: {nuclide_id}")


class InvalidConfigurationError(CascadeError, ValueError):
    """Raised when cascade parameters or a config file are invalid."""


# ---------------------------------------------------------------------------
# Mid-run
# ---------------------------------------------------------------------------


class DiscoveryServiceFailure(CascadeError, RuntimeError):
    """Raised when the reaction discovery boundary fails during a run.

    The run is aborted and no partial results are returned.
    """

    def __init__(self, message: str, loop: int | None = None) -> None:
        self.loop = loop
        if loop is not None:
            message = f"{message} (loop {loop})"
        super().__init__(message)


class CascadeCancelled(Exception):
    """Signals that a run was cancelled cooperatively between steps."""

    def __init__(self, loop: int) -> None:
        self.loop = loop
        super().__init__(f"Cascade simulation cancelled at loop {loop}.")
