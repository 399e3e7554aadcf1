import logging
from dataclasses import asdict, dataclass, fields

import numpy as np
import pandas as pd

from src.binned_effects.binning import bin_groups, counts_frame
from src.binned_effects.config import build_config
from src.binned_effects.errors import KeyMismatchError, MalformedInputError
from src.binned_effects.mean_diffs import MEAN_DIFF_COLUMNS, pairwise_mean_diffs
from src.binned_effects.pooled_variance import estimate_pooled_sds, pooled_sd_frame
from src.binned_effects.splitting import drop_missing, split_groups

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = [
    "focal_group",
    "reference_group",
    "low_fraction",
    "high_fraction",
    "midpoint",
    "effect_size",
    "standard_error",
]


@dataclass(frozen=True)
class EffectSizeRecord:
    """Effect size of one focal group against the reference group in one quantile bin."""

    focal_group: object
    reference_group: object
    low_fraction: float
    high_fraction: float
    midpoint: float
    estimate: float
    pooled_sd: float
    effect_size: float
    reference_n: int
    focal_n: int
    standard_error: float


DETAILED_COLUMNS = [f.name for f in fields(EffectSizeRecord)]


def standard_error(reference_n, focal_n, effect_size):
    """
    Standard error of a standardized mean difference.

    sqrt((n1 + n2) / (n1 * n2) + d^2 / (2 * (n1 + n2)))

    Empty bins (n == 0) give a non-finite result rather than an error.
    """
    n1 = np.float64(reference_n)
    n2 = np.float64(focal_n)
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.sqrt((n1 + n2) / (n1 * n2) + effect_size**2 / (2 * (n1 + n2)))


def highest_mean_group(split: dict):
    """Label of the group with the highest mean outcome (first in group order on ties)."""
    means = {}
    for g, values in split.items():
        observed = drop_missing(values)
        if observed.size > 0:
            means[g] = float(np.mean(observed))
    return max(means, key=means.get)


def _lookup(mapping: dict, key, what: str):
    try:
        return mapping[key]
    except KeyError as e:
        raise KeyMismatchError(f"No {what} found for key {key!r}") from e


def assemble_effect_sizes(
    mean_diffs: pd.DataFrame,
    pooled: pd.DataFrame,
    counts: pd.DataFrame,
    reference_group,
    detailed: bool = False,
) -> pd.DataFrame:
    """
    Join mean differences, pooled SDs and bin counts into an effect size table.

    Parameters
    ----------
    mean_diffs : pd.DataFrame
        Output of quantile_mean_diffs().
    pooled : pd.DataFrame
        Output of pooled_sd(); matched on the unordered (reference, focal) pair.
    counts : pd.DataFrame
        Output of quantile_counts(); matched on (group, low_fraction, high_fraction).
    reference_group
        Only mean differences with this reference group are kept.
    detailed : bool, optional
        If True, return every EffectSizeRecord field. Defaults to False.

    Returns
    -------
    pd.DataFrame
        One row per (focal group, bin), sorted by bin midpoint (stable).

    Raises
    ------
    KeyMismatchError
        If a pooled SD or bin count is missing for a mean difference row, or no
        row has the requested reference group.
    """
    pooled_lookup = {
        frozenset((row["reference_group"], row["focal_group"])): row["pooled_sd"]
        for row in pooled.to_dict("records")
    }
    count_lookup = {
        (row["group"], row["low_fraction"], row["high_fraction"]): row["n"]
        for row in counts.to_dict("records")
    }

    selected = [r for r in mean_diffs.to_dict("records") if r["reference_group"] == reference_group]
    if not selected:
        raise KeyMismatchError(f"No mean differences with reference group {reference_group!r}")

    records = []
    for row in selected:
        ref, foc = row["reference_group"], row["focal_group"]
        low, high = row["low_fraction"], row["high_fraction"]

        sd = _lookup(pooled_lookup, frozenset((ref, foc)), "pooled SD")
        ref_n = int(_lookup(count_lookup, (ref, low, high), "bin count"))
        foc_n = int(_lookup(count_lookup, (foc, low, high), "bin count"))

        with np.errstate(divide="ignore", invalid="ignore"):
            es = np.float64(row["estimate"]) / np.float64(sd)

        records.append(
            EffectSizeRecord(
                focal_group=foc,
                reference_group=ref,
                low_fraction=low,
                high_fraction=high,
                midpoint=(low + high) / 2,
                estimate=float(row["estimate"]),
                pooled_sd=float(sd),
                effect_size=float(es),
                reference_n=ref_n,
                focal_n=foc_n,
                standard_error=float(standard_error(ref_n, foc_n, es)),
            )
        )

    # list.sort is stable: ties keep pair/bin generation order
    records.sort(key=lambda r: r.midpoint)

    columns = DETAILED_COLUMNS if detailed else SUMMARY_COLUMNS
    return pd.DataFrame([asdict(r) for r in records], columns=DETAILED_COLUMNS)[columns]


def quantile_effect_sizes(
    outcome,
    group_column,
    table,
    reference_group=None,
    quantile_spec=None,
    detailed: bool = False,
) -> pd.DataFrame:
    """
    Compute effect sizes (Cohen's d) by matched quantile bins.

    Parameters
    ----------
    outcome : str
        Name of the numeric outcome column.
    group_column : str
        Name of the grouping column.
    table : pd.DataFrame
        Observations.
    reference_group : optional
        Label of the reference group. Defaults to the highest scoring group.
    quantile_spec : sequence of float, optional
        Cut fractions. Defaults to thirds (lower, middle, upper);
        ``numpy.linspace(0, 1, 11)`` gives deciles.
    detailed : bool, optional
        If True, also return estimate, pooled_sd, reference_n and focal_n.

    Returns
    -------
    pd.DataFrame
        Columns: focal_group, reference_group, low_fraction, high_fraction,
        midpoint, effect_size, standard_error; sorted by midpoint.

    Raises
    ------
    MalformedInputError
        If the table or arguments are invalid, or reference_group is not a group.
    DegenerateSampleError
        If a group has too few non-missing observations.

    Examples
    --------
    >>> quantile_effect_sizes("reading", "condition", df)
    >>> quantile_effect_sizes("reading", "condition", df, reference_group="reg",
    ...                       quantile_spec=np.linspace(0, 1, 6))
    """
    config = build_config(outcome, group_column, quantile_spec, reference_group)
    split = split_groups(table, config)

    if config.reference_group is not None and config.reference_group not in split:
        raise MalformedInputError(
            f"Reference group {config.reference_group!r} not found in '{config.group}'; "
            f"available groups: {list(split)}"
        )

    pooled = pooled_sd_frame(split, estimate_pooled_sds(split))
    binned = bin_groups(split, config)
    mean_diffs = pd.DataFrame(pairwise_mean_diffs(binned), columns=MEAN_DIFF_COLUMNS)
    counts = counts_frame(binned)

    if config.reference_group is None:
        reference = highest_mean_group(split)
        logger.info(f"No reference group given, using highest scoring group '{reference}'")
    else:
        reference = config.reference_group

    effects = assemble_effect_sizes(mean_diffs, pooled, counts, reference, detailed=detailed)
    logger.info(
        f"Computed {len(effects)} effect sizes for {config.n_bins} bin(s) "
        f"relative to reference group '{reference}'"
    )
    return effects
