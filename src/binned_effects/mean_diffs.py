import logging

import numpy as np
import pandas as pd

from src.binned_effects.binning import QuantileBin, bin_groups
from src.binned_effects.config import build_config
from src.binned_effects.splitting import oriented_pairs, split_groups

logger = logging.getLogger(__name__)

MEAN_DIFF_COLUMNS = ["reference_group", "focal_group", "low_fraction", "high_fraction", "estimate"]


def _bin_mean(b: QuantileBin) -> float:
    # Empty bins give NaN instead of numpy's "mean of empty slice" warning
    return float(np.mean(b.values)) if b.n > 0 else np.nan


def pairwise_mean_diffs(binned: dict[object, list[QuantileBin]]) -> list[dict]:
    """
    Focal minus reference mean in every matched bin, for both orientations of every pair.

    Parameters
    ----------
    binned : dict
        Output of bin_groups(); all groups must have the same number of bins.

    Returns
    -------
    list of dict
        Rows with keys reference_group, focal_group, low_fraction,
        high_fraction, estimate. The estimate is NaN when either bin is empty.
    """
    rows = []
    for reference, focal in oriented_pairs(list(binned)):
        for ref_bin, foc_bin in zip(binned[reference], binned[focal]):
            estimate = _bin_mean(foc_bin) - _bin_mean(ref_bin)
            rows.append(
                {
                    "reference_group": reference,
                    "focal_group": focal,
                    "low_fraction": ref_bin.low_fraction,
                    "high_fraction": ref_bin.high_fraction,
                    "estimate": estimate,
                }
            )

    n_undefined = sum(np.isnan(r["estimate"]) for r in rows)
    if n_undefined > 0:
        logger.debug(f"{n_undefined} of {len(rows)} mean differences undefined (empty bins)")
    return rows


def quantile_mean_diffs(outcome, group_column, table, quantile_spec=None) -> pd.DataFrame:
    """
    Compute mean differences between groups within matched quantile bins.

    Parameters
    ----------
    outcome : str
        Name of the numeric outcome column.
    group_column : str
        Name of the grouping column.
    table : pd.DataFrame
        Observations.
    quantile_spec : sequence of float, optional
        Cut fractions. Defaults to thirds; ``numpy.linspace(0, 1, 6)`` gives quintiles.

    Returns
    -------
    pd.DataFrame
        Columns: reference_group, focal_group, low_fraction, high_fraction,
        estimate. Every pair appears in both orientations.
    """
    config = build_config(outcome, group_column, quantile_spec)
    split = split_groups(table, config)
    return pd.DataFrame(pairwise_mean_diffs(bin_groups(split, config)), columns=MEAN_DIFF_COLUMNS)
