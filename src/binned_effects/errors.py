"""Exceptions raised by the quantile-binned effect size pipeline."""


class BinnedEffectsError(Exception):
    """Base class for all pipeline errors."""

    pass


class MalformedInputError(BinnedEffectsError, ValueError):
    """Raised when the input table or configuration cannot be analysed."""

    pass


class DegenerateSampleError(BinnedEffectsError, ValueError):
    """Raised when a group has too few observations to estimate variance or quantiles."""

    pass


class KeyMismatchError(BinnedEffectsError, KeyError):
    """Raised when binning and mean-difference results cannot be joined."""

    pass
