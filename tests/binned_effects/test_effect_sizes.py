"""Unit tests for src.binned_effects.effect_sizes."""

import numpy as np
import pandas as pd
import pytest

from src.binned_effects.binning import quantile_counts
from src.binned_effects.effect_sizes import (
    DETAILED_COLUMNS,
    SUMMARY_COLUMNS,
    assemble_effect_sizes,
    quantile_effect_sizes,
    standard_error,
)
from src.binned_effects.errors import (
    DegenerateSampleError,
    KeyMismatchError,
    MalformedInputError,
)
from src.binned_effects.mean_diffs import quantile_mean_diffs
from src.binned_effects.pooled_variance import pooled_sd

# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


def make_table(groups: dict) -> pd.DataFrame:
    """Long-format table from {label: values}."""
    return pd.DataFrame(
        {
            "score": [v for values in groups.values() for v in values],
            "arm": [g for g, values in groups.items() for _ in values],
        }
    )


@pytest.fixture
def shifted_df():
    """Group B is group A shifted up by 2."""
    return make_table({"A": list(range(1, 11)), "B": list(range(3, 13))})


@pytest.fixture
def three_group_df():
    rng = np.random.default_rng(11)
    return make_table(
        {
            "ctrl": rng.normal(0, 1, 80).tolist(),
            "small": rng.normal(0.5, 1, 70).tolist(),
            "aide": rng.normal(0.2, 1.2, 75).tolist(),
        }
    )


# ─────────────────────────────────────────────────────────────────────────────
# Tests for standard_error
# ─────────────────────────────────────────────────────────────────────────────


class TestStandardError:
    def test_formula(self):
        expected = np.sqrt((10 + 20) / (10 * 20) + 0.5**2 / (2 * (10 + 20)))
        assert standard_error(10, 20, 0.5) == pytest.approx(expected)

    def test_symmetric_in_sample_sizes(self):
        assert standard_error(10, 20, 0.5) == standard_error(20, 10, 0.5)

    def test_sign_of_effect_size_does_not_matter(self):
        assert standard_error(10, 20, 0.5) == standard_error(10, 20, -0.5)

    def test_empty_bin_gives_non_finite_without_error(self):
        assert not np.isfinite(standard_error(0, 5, np.nan))
        assert not np.isfinite(standard_error(0, 0, 0.0))


# ─────────────────────────────────────────────────────────────────────────────
# Tests for quantile_effect_sizes
# ─────────────────────────────────────────────────────────────────────────────


class TestQuantileEffectSizes:
    def test_summary_columns(self, shifted_df):
        result = quantile_effect_sizes("score", "arm", shifted_df, reference_group="A")
        assert list(result.columns) == SUMMARY_COLUMNS

    def test_detailed_columns(self, shifted_df):
        result = quantile_effect_sizes(
            "score", "arm", shifted_df, reference_group="A", detailed=True
        )
        assert list(result.columns) == DETAILED_COLUMNS

    def test_uniform_shift_gives_stable_positive_effect(self, shifted_df):
        result = quantile_effect_sizes(
            "score", "arm", shifted_df, reference_group="A", detailed=True
        )
        assert (result["estimate"] > 0).all()
        expected_es = 2.0 / np.std(np.arange(1, 11), ddof=1)
        assert result["effect_size"].tolist() == pytest.approx([expected_es] * 3)

    def test_standard_error_uses_bin_counts(self, shifted_df):
        result = quantile_effect_sizes(
            "score", "arm", shifted_df, reference_group="A", detailed=True
        )
        assert result["reference_n"].tolist() == [3, 4, 3]
        assert result["focal_n"].tolist() == [3, 4, 3]
        for row in result.to_dict("records"):
            n1, n2, d = row["reference_n"], row["focal_n"], row["effect_size"]
            expected = np.sqrt((n1 + n2) / (n1 * n2) + d**2 / (2 * (n1 + n2)))
            assert row["standard_error"] == pytest.approx(expected)

    def test_midpoints(self, shifted_df):
        result = quantile_effect_sizes("score", "arm", shifted_df, reference_group="A")
        assert result["midpoint"].tolist() == pytest.approx([0.16665, 0.5, 0.83335])

    def test_default_reference_is_highest_mean_group(self, shifted_df):
        result = quantile_effect_sizes("score", "arm", shifted_df)
        assert set(result["reference_group"]) == {"B"}
        assert (result["effect_size"] < 0).all()

    def test_row_count_after_reference_filter(self, three_group_df):
        quantile_spec = np.linspace(0, 1, 6)
        result = quantile_effect_sizes(
            "score", "arm", three_group_df, reference_group="ctrl", quantile_spec=quantile_spec
        )
        assert len(result) == (3 - 1) * 5
        assert set(result["focal_group"]) == {"aide", "small"}

    def test_sorted_by_midpoint_with_stable_ties(self, three_group_df):
        result = quantile_effect_sizes("score", "arm", three_group_df, reference_group="ctrl")
        assert result["midpoint"].is_monotonic_increasing
        # Pairs are generated in label order: (aide, ctrl) before (ctrl, small)
        assert result["focal_group"].tolist() == ["aide", "small"] * 3

    def test_reversing_roles_negates_effect_and_keeps_se(self, three_group_df):
        as_ctrl = quantile_effect_sizes("score", "arm", three_group_df, reference_group="ctrl")
        as_small = quantile_effect_sizes("score", "arm", three_group_df, reference_group="small")
        forward = as_ctrl[as_ctrl["focal_group"] == "small"].reset_index(drop=True)
        reverse = as_small[as_small["focal_group"] == "ctrl"].reset_index(drop=True)

        assert forward["low_fraction"].tolist() == reverse["low_fraction"].tolist()
        assert forward["effect_size"].tolist() == (-reverse["effect_size"]).tolist()
        assert forward["standard_error"].tolist() == reverse["standard_error"].tolist()

    def test_single_bin_equals_cohens_d(self):
        rng = np.random.default_rng(3)
        a = rng.normal(0, 1, 40)
        b = rng.normal(0.5, 1.3, 55)
        a[[3, 17]] = np.nan
        df = make_table({"a": a.tolist(), "b": b.tolist()})

        result = quantile_effect_sizes("score", "arm", df, reference_group="a", quantile_spec=[0, 1])

        a_obs = a[~np.isnan(a)]
        n_a, n_b = len(a_obs), len(b)
        pooled = np.sqrt(
            ((n_a - 1) * np.var(a_obs, ddof=1) + (n_b - 1) * np.var(b, ddof=1)) / (n_a + n_b - 2)
        )
        cohens_d = (b.mean() - a_obs.mean()) / pooled

        assert len(result) == 1
        assert result.iloc[0]["effect_size"] == pytest.approx(cohens_d, rel=1e-10)

    def test_empty_bin_propagates_nan(self):
        df = make_table({"A": [1, 1, 1, 1, 5], "B": [1, 2, 3, 4, 5]})
        result = quantile_effect_sizes(
            "score", "arm", df, reference_group="B", quantile_spec=[0, 0.25, 0.5, 1], detailed=True
        )
        assert len(result) == 3
        middle = result[result["low_fraction"] == 0.25].iloc[0]
        assert middle["focal_n"] == 0
        assert np.isnan(middle["effect_size"])
        assert np.isnan(middle["standard_error"])

    def test_repeated_calls_are_identical(self, three_group_df):
        before = three_group_df.copy()
        first = quantile_effect_sizes("score", "arm", three_group_df)
        second = quantile_effect_sizes("score", "arm", three_group_df)
        pd.testing.assert_frame_equal(first, second, check_exact=True)
        pd.testing.assert_frame_equal(three_group_df, before)

    def test_integer_group_labels(self):
        df = make_table({1: [1.0, 2.0, 3.0, 4.0], 2: [2.0, 3.0, 4.0, 5.0]})
        result = quantile_effect_sizes("score", "arm", df, reference_group=1, quantile_spec=[0, 1])
        assert result.iloc[0]["focal_group"] == 2

    def test_unknown_reference_group_raises(self, shifted_df):
        with pytest.raises(MalformedInputError, match="Reference group 'Z' not found"):
            quantile_effect_sizes("score", "arm", shifted_df, reference_group="Z")

    def test_unhashable_reference_group_raises(self, shifted_df):
        with pytest.raises(MalformedInputError, match="hashable"):
            quantile_effect_sizes("score", "arm", shifted_df, reference_group=["A"])

    def test_infinite_outcome_raises(self):
        df = make_table({"a": [1.0, 2.0, 3.0, np.inf], "b": [5.0, 6.0, 3.0, 4.0]})
        with pytest.raises(MalformedInputError, match="infinite"):
            quantile_effect_sizes("score", "arm", df, reference_group="a", detailed=True)

    def test_group_with_only_missing_values_raises(self):
        df = make_table({"A": [1.0, 2.0, 3.0], "B": [np.nan, np.nan, np.nan]})
        with pytest.raises(DegenerateSampleError):
            quantile_effect_sizes("score", "arm", df)

    def test_non_numeric_outcome_raises(self):
        df = make_table({"A": ["x", "y"], "B": ["z", "w"]})
        with pytest.raises(MalformedInputError):
            quantile_effect_sizes("score", "arm", df)


# ─────────────────────────────────────────────────────────────────────────────
# Tests for assemble_effect_sizes
# ─────────────────────────────────────────────────────────────────────────────


class TestAssembleEffectSizes:
    @pytest.fixture
    def parts(self, shifted_df):
        return (
            quantile_mean_diffs("score", "arm", shifted_df),
            pooled_sd("score", "arm", shifted_df),
            quantile_counts("score", "arm", shifted_df),
        )

    def test_matches_pipeline(self, parts, shifted_df):
        mean_diffs, pooled, counts = parts
        result = assemble_effect_sizes(mean_diffs, pooled, counts, "A")
        expected = quantile_effect_sizes("score", "arm", shifted_df, reference_group="A")
        pd.testing.assert_frame_equal(result, expected)

    def test_pooled_sd_matched_in_either_orientation(self, parts):
        mean_diffs, pooled, counts = parts
        result = assemble_effect_sizes(mean_diffs, pooled, counts, "B", detailed=True)
        assert (result["pooled_sd"] == pooled.iloc[0]["pooled_sd"]).all()

    def test_missing_count_raises(self, parts):
        mean_diffs, pooled, counts = parts
        with pytest.raises(KeyMismatchError, match="bin count"):
            assemble_effect_sizes(mean_diffs, pooled, counts.iloc[:-1], "A")

    def test_missing_pooled_sd_raises(self, parts):
        mean_diffs, pooled, counts = parts
        with pytest.raises(KeyMismatchError, match="pooled SD"):
            assemble_effect_sizes(mean_diffs, pooled.iloc[0:0], counts, "A")

    def test_mismatched_bins_raise(self, parts):
        mean_diffs, pooled, counts = parts
        shifted = counts.assign(low_fraction=counts["low_fraction"] + 0.01)
        with pytest.raises(KeyMismatchError):
            assemble_effect_sizes(mean_diffs, pooled, shifted, "A")

    def test_unknown_reference_raises(self, parts):
        mean_diffs, pooled, counts = parts
        with pytest.raises(KeyMismatchError, match="No mean differences"):
            assemble_effect_sizes(mean_diffs, pooled, counts, "Z")
