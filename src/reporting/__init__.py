"""Downstream consumers of the effect size table: plots and Markdown reports."""

from src.reporting.plotting import binned_plot
from src.reporting.report import generate_markdown_report, summarize_effects

__all__ = [
    "binned_plot",
    "generate_markdown_report",
    "summarize_effects",
]
