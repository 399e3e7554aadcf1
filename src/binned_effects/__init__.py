"""Quantile-binned effect sizes: how a group difference varies across the outcome distribution."""

from src.binned_effects.binning import QuantileBin, bin_values, quantile_counts
from src.binned_effects.config import AnalysisConfig, build_config, parse_quantiles
from src.binned_effects.effect_sizes import (
    EffectSizeRecord,
    assemble_effect_sizes,
    quantile_effect_sizes,
    standard_error,
)
from src.binned_effects.errors import (
    BinnedEffectsError,
    DegenerateSampleError,
    KeyMismatchError,
    MalformedInputError,
)
from src.binned_effects.mean_diffs import quantile_mean_diffs
from src.binned_effects.pooled_variance import pooled_sd, pooled_standard_deviation

__all__ = [
    # Public operations
    "pooled_sd",
    "quantile_mean_diffs",
    "quantile_counts",
    "quantile_effect_sizes",
    # Building blocks
    "assemble_effect_sizes",
    "bin_values",
    "pooled_standard_deviation",
    "standard_error",
    # Data types
    "AnalysisConfig",
    "EffectSizeRecord",
    "QuantileBin",
    "build_config",
    "parse_quantiles",
    # Errors
    "BinnedEffectsError",
    "DegenerateSampleError",
    "KeyMismatchError",
    "MalformedInputError",
]
