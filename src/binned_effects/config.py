"""Analysis configuration: column names, quantile bins and reference group."""

import math
import os
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from src.binned_effects.errors import MalformedInputError

# Default bin edges (thirds); can be overridden via environment variable, e.g. "0,0.25,0.5,0.75,1"
DEFAULT_QUANTILES_SPEC = os.getenv("BINNED_ES_QUANTILES", "0,0.3333,0.6667,1")


def parse_quantiles(text: str) -> tuple[float, ...]:
    """
    Parse a comma-separated list of cut fractions.

    Parameters
    ----------
    text : str
        Fractions such as ``"0,0.5,1"``.

    Returns
    -------
    tuple of float
        The parsed fractions, unvalidated.

    Raises
    ------
    MalformedInputError
        If any entry is not a number.
    """
    try:
        return tuple(float(part) for part in text.split(",") if part.strip())
    except ValueError as e:
        raise MalformedInputError(f"Invalid quantile specification: {text!r}") from e


def get_default_quantiles() -> tuple[float, ...]:
    """Return the default quantile cut fractions (thirds unless overridden)."""
    return parse_quantiles(DEFAULT_QUANTILES_SPEC)


class AnalysisConfig(BaseModel):
    """Names the outcome and group columns and fixes the quantile bins for one call."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    outcome: str
    group: str
    quantiles: tuple[float, ...] = Field(default_factory=get_default_quantiles)
    reference_group: Any = None

    @field_validator("outcome", "group")
    @classmethod
    def _non_empty_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("column name must not be empty")
        return value

    @field_validator("quantiles")
    @classmethod
    def _valid_fractions(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        if len(value) < 2:
            raise ValueError("at least two cut fractions are required to define a bin")
        if any(not math.isfinite(q) or q < 0 or q > 1 for q in value):
            raise ValueError(f"cut fractions must lie in [0, 1], got {list(value)}")
        if any(high <= low for low, high in zip(value[:-1], value[1:])):
            raise ValueError(f"cut fractions must be strictly increasing, got {list(value)}")
        return value

    @field_validator("reference_group")
    @classmethod
    def _hashable_label(cls, value: Any) -> Any:
        try:
            hash(value)
        except TypeError as e:
            raise ValueError(
                f"reference_group must be a hashable group label, got {type(value).__name__}"
            ) from e
        return value

    @model_validator(mode="after")
    def _distinct_columns(self):
        if self.outcome == self.group:
            raise ValueError("outcome and group must be different columns")
        return self

    @property
    def n_bins(self) -> int:
        return len(self.quantiles) - 1


def build_config(outcome, group, quantile_spec=None, reference_group=None) -> AnalysisConfig:
    """
    Validate call arguments into an AnalysisConfig.

    Raises
    ------
    MalformedInputError
        If the column names or the quantile specification are invalid.
    """
    kwargs = {"outcome": outcome, "group": group, "reference_group": reference_group}
    if quantile_spec is not None:
        if isinstance(quantile_spec, str):
            kwargs["quantiles"] = parse_quantiles(quantile_spec)
        else:
            try:
                kwargs["quantiles"] = tuple(np.asarray(quantile_spec, dtype=float).ravel().tolist())
            except (TypeError, ValueError) as e:
                raise MalformedInputError(f"Invalid quantile specification: {quantile_spec!r}") from e

    try:
        return AnalysisConfig(**kwargs)
    except ValidationError as e:
        raise MalformedInputError(f"Invalid analysis configuration: {e}") from e
