"""Tests for report module."""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from src.reporting.report import generate_markdown_report, summarize_effects


@pytest.fixture
def effects():
    return pd.DataFrame(
        {
            "focal_group": ["small", "aide", "small", "aide"],
            "reference_group": ["reg"] * 4,
            "low_fraction": [0.0, 0.0, 0.5, 0.5],
            "high_fraction": [0.5, 0.5, 1.0, 1.0],
            "midpoint": [0.25, 0.25, 0.75, 0.75],
            "effect_size": [0.2, -0.1, 0.6, np.nan],
            "standard_error": [0.3, 0.3, 0.31, np.nan],
        }
    )


def test_summarize_effects(effects):
    stats = summarize_effects(effects)
    assert stats["reference_groups"] == ["reg"]
    assert stats["focal_groups"] == ["small", "aide"]
    assert stats["n_bins"] == 2
    assert stats["n_undefined"] == 1
    assert stats["per_group"]["small"]["range"] == pytest.approx(0.4)
    assert stats["per_group"]["small"]["peak_bin"] == "0.50-1.00"
    assert stats["per_group"]["aide"]["peak_bin"] == "0.00-0.50"


def test_generate_markdown_report_creates_valid_report(tmp_path, effects):
    """Test that generate_markdown_report creates a valid Markdown file."""
    report_path = tmp_path / "reports" / "report.md"
    plot_path = tmp_path / "reports" / "figures" / "plot.png"
    result = generate_markdown_report(
        effects, str(report_path), outcome="math", group="condition", plot_path=str(plot_path)
    )

    assert Path(result).exists()
    content = report_path.read_text()
    assert "# Quantile-Binned Effect Size Report" in content
    assert "`math ~ condition`" in content
    assert "| small | 0.00-0.50 | 0.250 | 0.200 | 0.300 |" in content
    assert "| aide | 0.50-1.00 | 0.750 | - | - |" in content
    assert 'src="figures/plot.png"' in content
