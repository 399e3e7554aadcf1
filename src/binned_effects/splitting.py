import itertools
import logging

import numpy as np
import pandas as pd
from pandas.api.types import is_bool_dtype, is_numeric_dtype

from src.binned_effects.config import AnalysisConfig
from src.binned_effects.errors import MalformedInputError

logger = logging.getLogger(__name__)


def split_groups(table, config: AnalysisConfig) -> dict:
    """
    Split a table of observations into per-group outcome arrays.

    Parameters
    ----------
    table : pd.DataFrame or dict-like
        Observations with one outcome column and one group column.
    config : AnalysisConfig
        Names the outcome and group columns.

    Returns
    -------
    dict
        {group_label: np.ndarray of outcomes}, missing outcomes retained as NaN.
        Groups are ordered by the string form of their label.

    Raises
    ------
    MalformedInputError
        If a column is absent, the outcome is not numeric or holds infinite
        values, or fewer than two distinct group labels are present.
    """
    df = table if isinstance(table, pd.DataFrame) else pd.DataFrame(table)

    missing_cols = [c for c in (config.outcome, config.group) if c not in df.columns]
    if missing_cols:
        raise MalformedInputError(f"Column(s) not found in table: {missing_cols}")

    outcome = df[config.outcome]
    if is_bool_dtype(outcome) or not is_numeric_dtype(outcome):
        raise MalformedInputError(
            f"Outcome column '{config.outcome}' must be numeric, got dtype {outcome.dtype}"
        )

    values = outcome.to_numpy(dtype=float, na_value=np.nan)
    n_infinite = int(np.isinf(values).sum())
    if n_infinite > 0:
        raise MalformedInputError(
            f"Outcome column '{config.outcome}' contains {n_infinite} infinite value(s); "
            f"outcomes must be finite or missing"
        )

    labels = df[config.group]
    labelled = labels.notna()
    n_unlabelled = int((~labelled).sum())
    if n_unlabelled > 0:
        logger.warning(
            f"Dropping {n_unlabelled} observation(s) with missing '{config.group}' label"
        )

    group_ids = sorted(labels[labelled].drop_duplicates().tolist(), key=str)
    if len(group_ids) < 2:
        raise MalformedInputError(
            f"Group column '{config.group}' must contain at least 2 distinct labels, "
            f"found {len(group_ids)}"
        )

    split = {g: values[(labelled & (labels == g)).to_numpy()] for g in group_ids}
    logger.info(
        f"Found {len(split)} groups in '{config.group}': "
        + ", ".join(f"{g} (n={len(v)})" for g, v in split.items())
    )
    return split


def drop_missing(values) -> np.ndarray:
    """Return the non-missing entries of a numeric array."""
    values = np.asarray(values, dtype=float)
    return values[~np.isnan(values)]


def unordered_pairs(group_ids) -> list[tuple]:
    """All C(k, 2) pairs of group labels, in group order."""
    return list(itertools.combinations(group_ids, 2))


def oriented_pairs(group_ids) -> list[tuple]:
    """
    (reference, focal) assignments for every unordered pair.

    Each pair (a, b) yields (a, b) immediately followed by (b, a).
    """
    out = []
    for a, b in unordered_pairs(group_ids):
        out.append((a, b))
        out.append((b, a))
    return out
