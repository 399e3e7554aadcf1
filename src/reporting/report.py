"""
Report generation for quantile-binned effect sizes.

This module renders an effect size table from quantile_effect_sizes() as a
Markdown report with a summary, the full table and per-group details.
"""

import logging
import os
from datetime import datetime
from pathlib import Path

import numpy as np

logger = logging.getLogger(__name__)


def _fmt(value) -> str:
    return f"{value:.3f}" if np.isfinite(value) else "-"


def _fmt_bin(low, high) -> str:
    return f"{low:.2f}-{high:.2f}"


def summarize_effects(effects) -> dict:
    """
    Summary statistics of an effect size table.

    Parameters
    ----------
    effects : pd.DataFrame
        Output of quantile_effect_sizes().

    Returns
    -------
    dict
        Reference group(s), focal groups, bin count and per-focal-group
        min/max/range of the defined effect sizes.
    """
    es = effects["effect_size"].to_numpy(dtype=float)
    per_group = {}
    for group, rows in effects.groupby("focal_group", sort=False):
        values = rows["effect_size"].to_numpy(dtype=float)
        defined = values[np.isfinite(values)]
        if defined.size == 0:
            per_group[group] = {"min": np.nan, "max": np.nan, "range": np.nan, "peak_bin": None}
            continue
        peak = rows.iloc[int(np.nanargmax(np.where(np.isfinite(values), np.abs(values), np.nan)))]
        per_group[group] = {
            "min": float(defined.min()),
            "max": float(defined.max()),
            "range": float(defined.max() - defined.min()),
            "peak_bin": _fmt_bin(peak["low_fraction"], peak["high_fraction"]),
        }

    return {
        "reference_groups": list(dict.fromkeys(effects["reference_group"])),
        "focal_groups": list(per_group),
        "n_bins": len(effects[["low_fraction", "high_fraction"]].drop_duplicates()),
        "n_undefined": int((~np.isfinite(es)).sum()),
        "per_group": per_group,
    }


def generate_markdown_report(
    effects,
    output_path: str,
    outcome: str = None,
    group: str = None,
    plot_path: str = None,
) -> str:
    """
    Generate a Markdown report from an effect size table.

    Parameters
    ----------
    effects : pd.DataFrame
        Output of quantile_effect_sizes().
    output_path : str
        Path to save the Markdown report.
    outcome, group : str, optional
        Column names, shown in the report header.
    plot_path : str, optional
        Path to a saved binned effect size plot to embed.

    Returns
    -------
    str
        Path to the generated report.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    stats = summarize_effects(effects)
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    lines = []

    # Header
    lines.append("# Quantile-Binned Effect Size Report")
    lines.append("")
    lines.append(f"**Generated:** {timestamp}")
    lines.append("")
    if outcome and group:
        lines.append(f"**Model:** `{outcome} ~ {group}`")
        lines.append("")

    # Summary section
    lines.append("## Summary")
    lines.append("")
    lines.append(
        f"- **Reference group:** {', '.join(str(g) for g in stats['reference_groups'])}"
    )
    lines.append(f"- **Focal groups:** {', '.join(str(g) for g in stats['focal_groups'])}")
    lines.append(f"- **Quantile bins:** {stats['n_bins']}")
    lines.append(f"- **Undefined effect sizes (empty bins):** {stats['n_undefined']}")
    lines.append("")

    # Results table
    lines.append("## Effect Sizes")
    lines.append("")
    lines.append("| Focal group | Bin | Midpoint | Effect size | SE |")
    lines.append("|:------------|:----|:---------|:------------|:---|")

    for row in effects.to_dict("records"):
        lines.append(
            f"| {row['focal_group']} | {_fmt_bin(row['low_fraction'], row['high_fraction'])} "
            f"| {row['midpoint']:.3f} | {_fmt(row['effect_size'])} | {_fmt(row['standard_error'])} |"
        )

    lines.append("")

    # Detailed results section
    lines.append("## Focal Groups")
    lines.append("")

    for g, s in stats["per_group"].items():
        lines.append(f"### {g}")
        lines.append("")
        if s["peak_bin"] is None:
            lines.append("All effect sizes undefined.")
            lines.append("")
            continue
        lines.append(f"- Effect size range: [{_fmt(s['min'])}, {_fmt(s['max'])}]")
        lines.append(f"- Spread across bins: {_fmt(s['range'])}")
        lines.append(f"- Largest absolute effect in bin: {s['peak_bin']}")
        lines.append("")

    # Plot
    if plot_path:
        # Path relative to the report directory
        plot_rel_path = Path(os.path.relpath(plot_path, output_path.parent)).as_posix()
        lines.append(f'<img src="{plot_rel_path}" alt="Binned effect size plot" height="300">')
        lines.append("")

    # Write report
    report_content = "\n".join(lines)
    output_path.write_text(report_content)

    logger.info(f"Report generated: {output_path}")
    return str(output_path)
