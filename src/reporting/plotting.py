import logging

import matplotlib.pyplot as plt
import numpy as np
from scipy.stats import norm

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = [
    "focal_group",
    "reference_group",
    "low_fraction",
    "high_fraction",
    "midpoint",
    "effect_size",
    "standard_error",
]

LIGHT_RECT_COLORS = [(0.2, 0.2, 0.2, 0.1), (0.2, 0.2, 0.2, 0.0)]
DARK_RECT_COLORS = [(1.0, 1.0, 1.0, 0.2), (0.1, 0.3, 0.4, 0.0)]
DARK_BACKGROUND = "#363636"


def _default_ylim(effect_sizes):
    """Pad the finite effect size range by 5%, always keeping zero in view."""
    finite = effect_sizes[np.isfinite(effect_sizes)]
    if finite.size == 0:
        return -0.1, 0.1
    low, high = finite.min(), finite.max()
    ylim_low = low + 0.05 * low if low < 0 else -0.1
    ylim_high = high + 0.05 * high if high > 0 else 0.1
    return ylim_low, ylim_high


def _plot_bin_rects(ax, low_fractions, high_fractions, colors):
    """
    Shade the background of each quantile bin, alternating colors.

    Parameters
    ----------
    ax : matplotlib.axes.Axes
        Axes object to plot on.
    low_fractions, high_fractions : array-like
        Bin edges along the x-axis.
    colors : list
        Colors cycled across bins.
    """
    for i, (low, high) in enumerate(zip(low_fractions, high_fractions)):
        ax.axvspan(low, high, color=colors[i % len(colors)], linewidth=0, zorder=0)


def _plot_se_band(ax, midpoints, effect_sizes, standard_errors, color, alpha, multiplier):
    """Shade effect size +/- multiplier * SE, widened slightly past the outer points."""
    x = np.array(midpoints, dtype=float)
    if x.size > 0:
        x[0] -= 0.01
        x[-1] += 0.01
    lower = effect_sizes - multiplier * standard_errors
    upper = effect_sizes + multiplier * standard_errors
    ax.fill_between(x, lower, upper, color=color, alpha=alpha, linewidth=0, zorder=1)


def binned_plot(
    effects,
    ax=None,
    se: bool = True,
    shade_alpha: float = 0.3,
    coverage: float = None,
    rects: bool = True,
    lines: bool = True,
    points: bool = True,
    refline: bool = True,
    legend: str = None,
    theme: str = None,
    colors: list = None,
    title: str = None,
    save_path: str = None,
):
    """
    Plot effect sizes by matched quantile bins.

    Matched quantiles go along the x-axis and the effect size along the
    y-axis, one line per focal group, to show how (if) the magnitude of the
    effect varies across the distribution.

    Parameters
    ----------
    effects : pd.DataFrame
        Output of quantile_effect_sizes(). Not modified.
    ax : matplotlib.axes.Axes, optional
        Axes to draw on. A new figure is created if None.
    se : bool, optional
        Shade the standard error around each line. Defaults to True.
    shade_alpha : float, optional
        Transparency of the standard error shading. Defaults to 0.3.
    coverage : float, optional
        If given (e.g. 0.95), shade a normal-approximation band of this
        coverage instead of +/- 1 SE.
    rects : bool, optional
        Alternate background shading per bin. Defaults to True.
    lines, points : bool, optional
        Connect / mark the effect sizes. Both default to True.
    refline : bool, optional
        Draw a dashed horizontal line at zero. Defaults to True.
    legend : {"side", "base", "none"}, optional
        Defaults to "side" with more than one focal group, "none" otherwise.
    theme : {None, "dark"}, optional
        Standard white or dark gray background.
    colors : list, optional
        One color per focal group. Defaults to the matplotlib color cycle.
    title : str, optional
        Plot title.
    save_path : str, optional
        Path to save the plot image.

    Returns
    -------
    matplotlib.axes.Axes
        The axes the plot was drawn on.

    Raises
    ------
    ValueError
        If required columns are missing or options are invalid.
    RuntimeError
        If the effect size table is empty.
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in effects.columns]
    if missing:
        raise ValueError(f"Effect size table is missing column(s): {missing}")
    if len(effects) == 0:
        raise RuntimeError("No effect sizes to plot")
    if theme not in (None, "dark"):
        raise ValueError(f"Unknown theme: {theme}")
    if coverage is not None and not 0 < coverage < 1:
        raise ValueError("coverage must be between 0 and 1")

    d = effects.sort_values("midpoint", kind="stable")
    focal_groups = list(dict.fromkeys(d["focal_group"]))
    reference = ", ".join(str(g) for g in dict.fromkeys(d["reference_group"]))

    if legend is None:
        legend = "side" if len(focal_groups) > 1 else "none"
    if legend not in ("side", "base", "none"):
        raise ValueError(f"Unknown legend type: {legend}")

    if colors is None:
        cycle = plt.rcParams["axes.prop_cycle"].by_key()["color"]
        colors = [cycle[i % len(cycle)] for i in range(len(focal_groups))]
    elif len(colors) < len(focal_groups):
        raise ValueError(f"Need {len(focal_groups)} colors, got {len(colors)}")

    if ax is None:
        fig, ax = plt.subplots(figsize=(7 if legend == "side" else 6, 5))
    else:
        fig = ax.figure

    dark = theme == "dark"
    if dark:
        fig.patch.set_facecolor(DARK_BACKGROUND)
        ax.set_facecolor(DARK_BACKGROUND)
        ax.tick_params(colors="white")
        for spine in ax.spines.values():
            spine.set_color("white")
    text_color = "white" if dark else "black"

    multiplier = 1.0 if coverage is None else norm.ppf(0.5 + coverage / 2)

    if rects:
        bins = d[["low_fraction", "high_fraction"]].drop_duplicates()
        _plot_bin_rects(
            ax,
            bins["low_fraction"],
            bins["high_fraction"],
            DARK_RECT_COLORS if dark else LIGHT_RECT_COLORS,
        )

    for group, color in zip(focal_groups, colors):
        rows = d[d["focal_group"] == group]
        x = rows["midpoint"].to_numpy(dtype=float)
        es = rows["effect_size"].to_numpy(dtype=float)

        if se:
            _plot_se_band(
                ax, x, es, rows["standard_error"].to_numpy(dtype=float), color, shade_alpha, multiplier
            )
        if lines:
            ax.plot(x, es, color=color, linewidth=2, label=str(group), zorder=2)
        if points:
            ax.scatter(
                x,
                es,
                color=color,
                edgecolors=text_color if dark else color,
                zorder=3,
                label=None if lines else str(group),
            )

    n_undefined = int((~np.isfinite(d["effect_size"].to_numpy(dtype=float))).sum())
    if n_undefined > 0:
        logger.warning(f"{n_undefined} undefined effect size(s) not drawn (empty bins)")

    if refline:
        ax.axhline(0, color=text_color, linestyle="--", linewidth=2, zorder=1)

    ax.set_xlim(0, 1)
    ax.set_ylim(*_default_ylim(d["effect_size"].to_numpy(dtype=float)))
    ax.set_xlabel(f"Quantiles (ref group: {reference})", color=text_color)
    ax.set_ylabel("Effect Size", color=text_color)
    if title:
        ax.set_title(title, color=text_color)

    if legend == "side":
        leg = ax.legend(loc="center left", bbox_to_anchor=(1.02, 0.5), frameon=False)
    elif legend == "base":
        leg = ax.legend(loc="best")
    else:
        leg = None
    if leg is not None and dark:
        for text in leg.get_texts():
            text.set_color("white")

    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        logger.info(f"Plot saved to {save_path}")

    return ax
