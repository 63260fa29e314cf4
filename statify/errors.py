"""Exception taxonomy shared by every calculator.

All calculator failures derive from :class:`StatifyError`, which subclasses
``ValueError`` so callers that already guard numeric input with
``except ValueError`` keep working.
"""

from __future__ import annotations


class StatifyError(ValueError):
    """Base class for algorithmic failures reported across the boundary."""


class InsufficientDataError(StatifyError):
    """Too few valid cases, too few observations, or a constant regressor."""


class SingularMatrixError(StatifyError):
    """Gauss-Jordan elimination found no usable pivot."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "Matrix is singular and cannot be inverted; "
            "consider removing collinear variables."
        )
