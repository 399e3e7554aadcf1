import logging

import numpy as np
import pandas as pd

from src.binned_effects.config import build_config
from src.binned_effects.errors import DegenerateSampleError
from src.binned_effects.splitting import drop_missing, split_groups, unordered_pairs

logger = logging.getLogger(__name__)

POOLED_SD_COLUMNS = ["reference_group", "focal_group", "pooled_sd"]


def pooled_standard_deviation(a, b) -> float:
    """
    Pooled standard deviation of two samples, missing values excluded.

    sqrt(((n_a - 1) * var_a + (n_b - 1) * var_b) / (n_a + n_b - 2))

    Raises
    ------
    DegenerateSampleError
        If either sample is empty or n_a + n_b <= 2.
    """
    a = drop_missing(a)
    b = drop_missing(b)
    n_a, n_b = len(a), len(b)

    if n_a == 0 or n_b == 0:
        raise DegenerateSampleError("Cannot pool variance with an empty sample")
    if n_a + n_b <= 2:
        raise DegenerateSampleError(
            f"Cannot pool variance: n_a + n_b = {n_a + n_b} leaves no degrees of freedom"
        )

    # (n - 1) * var == sum of squared deviations; also well defined for n == 1
    ss_a = np.sum((a - a.mean()) ** 2)
    ss_b = np.sum((b - b.mean()) ** 2)
    return float(np.sqrt((ss_a + ss_b) / (n_a + n_b - 2)))


def estimate_pooled_sds(split: dict) -> dict[frozenset, float]:
    """
    Pooled SD for every unordered pair of groups.

    Parameters
    ----------
    split : dict
        Output of split_groups().

    Returns
    -------
    dict
        {frozenset({a, b}): pooled_sd}, one entry per unordered pair.

    Raises
    ------
    DegenerateSampleError
        If a group has no non-missing outcomes or a pair has n_a + n_b <= 2.
    """
    for g, values in split.items():
        if drop_missing(values).size == 0:
            raise DegenerateSampleError(f"Group '{g}' has no non-missing outcome values")

    out = {}
    for a, b in unordered_pairs(list(split)):
        try:
            sd = pooled_standard_deviation(split[a], split[b])
        except DegenerateSampleError as e:
            raise DegenerateSampleError(f"Groups '{a}' and '{b}': {e}") from e
        if sd == 0:
            logger.warning(f"Pooled SD is zero for groups '{a}' and '{b}'")
        logger.debug(f"Pooled SD for ('{a}', '{b}'): {sd:.4f}")
        out[frozenset((a, b))] = sd
    return out


def pooled_sd_frame(split: dict, pooled: dict[frozenset, float]) -> pd.DataFrame:
    """One row per unordered pair, the first label of the pair as reference."""
    rows = [
        {"reference_group": a, "focal_group": b, "pooled_sd": pooled[frozenset((a, b))]}
        for a, b in unordered_pairs(list(split))
    ]
    return pd.DataFrame(rows, columns=POOLED_SD_COLUMNS)


def pooled_sd(outcome, group_column, table) -> pd.DataFrame:
    """
    Compute pooled standard deviations between groups.

    Parameters
    ----------
    outcome : str
        Name of the numeric outcome column.
    group_column : str
        Name of the grouping column.
    table : pd.DataFrame
        Observations.

    Returns
    -------
    pd.DataFrame
        Columns: reference_group, focal_group, pooled_sd. One row per unordered
        pair of groups (a single row for a two-group table).

    Examples
    --------
    >>> pooled_sd("math", "condition", df)
    """
    config = build_config(outcome, group_column)
    split = split_groups(table, config)
    return pooled_sd_frame(split, estimate_pooled_sds(split))
