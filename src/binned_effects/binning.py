import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from src.binned_effects.config import AnalysisConfig, build_config
from src.binned_effects.errors import DegenerateSampleError
from src.binned_effects.splitting import drop_missing, split_groups

logger = logging.getLogger(__name__)

COUNT_COLUMNS = ["group", "low_fraction", "high_fraction", "n"]


@dataclass(frozen=True, eq=False)
class QuantileBin:
    """Values of one group falling between two quantile cut points."""

    low_fraction: float
    high_fraction: float
    values: np.ndarray

    @property
    def n(self) -> int:
        return len(self.values)


def quantile_edges(values, quantiles) -> np.ndarray:
    """
    Empirical quantiles of the non-missing values at each cut fraction.

    Uses linear interpolation between order statistics (R's type 7).
    """
    return np.quantile(drop_missing(values), quantiles, method="linear")


def bin_values(values, quantiles, group=None) -> list[QuantileBin]:
    """
    Partition one group's values into quantile bins.

    Bins are right-closed, (q_i, q_i+1], except the lowest bin which also
    includes its lower edge. Values outside [q_0, q_last] fall into no bin.
    Tied edges give empty bins.

    Parameters
    ----------
    values : array-like
        Outcome values of a single group; NaNs are excluded.
    quantiles : sequence of float
        Strictly increasing cut fractions.
    group : optional
        Group label, used in error messages only.

    Returns
    -------
    list of QuantileBin
        One bin per consecutive pair of fractions, in order. Empty bins are kept.

    Raises
    ------
    DegenerateSampleError
        If the group has no non-missing values.
    """
    observed = drop_missing(values)
    if observed.size == 0:
        raise DegenerateSampleError(f"Group '{group}' has no non-missing outcome values")

    edges = quantile_edges(observed, quantiles)
    # Index of the bin whose upper edge is the first edge >= value
    positions = np.searchsorted(edges, observed, side="left") - 1
    positions[observed == edges[0]] = 0

    bins = []
    for i, (low, high) in enumerate(zip(quantiles[:-1], quantiles[1:])):
        bins.append(QuantileBin(float(low), float(high), observed[positions == i]))
    return bins


def bin_groups(split: dict, config: AnalysisConfig) -> dict[object, list[QuantileBin]]:
    """Bin every group independently; bins are matched across groups by index."""
    binned = {}
    for g, values in split.items():
        binned[g] = bin_values(values, config.quantiles, group=g)
        logger.debug(f"Bin counts for '{g}': {[b.n for b in binned[g]]}")
    return binned


def counts_frame(binned: dict[object, list[QuantileBin]]) -> pd.DataFrame:
    """One row per (group, bin), zero counts included."""
    rows = [
        {"group": g, "low_fraction": b.low_fraction, "high_fraction": b.high_fraction, "n": b.n}
        for g, bins in binned.items()
        for b in bins
    ]
    return pd.DataFrame(rows, columns=COUNT_COLUMNS)


def quantile_counts(outcome, group_column, table, quantile_spec=None) -> pd.DataFrame:
    """
    Count the observations of every group in every quantile bin.

    Parameters
    ----------
    outcome : str
        Name of the numeric outcome column.
    group_column : str
        Name of the grouping column.
    table : pd.DataFrame
        Observations.
    quantile_spec : sequence of float, optional
        Cut fractions. Defaults to thirds.

    Returns
    -------
    pd.DataFrame
        Columns: group, low_fraction, high_fraction, n.
    """
    config = build_config(outcome, group_column, quantile_spec)
    split = split_groups(table, config)
    return counts_frame(bin_groups(split, config))
