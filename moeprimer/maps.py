"""
Static figures for the primer: choropleths, interval charts and envelopes.

Every function draws on an Axes supplied by the caller and returns it,
so figures can be composed into multi-panel layouts.
"""

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.colors import to_hex
from matplotlib.patches import Patch
from scipy import stats

from .moe import HATCHES, Z90, assign_class, class_overlap, confidence_interval

CB, CO, CG, CR, CP, CY = "#2171B5", "#E6550D", "#31A354", "#DE2D26", "#756BB1", "#888"

OVERLAP_COLORS = {"within": CY, "below": CB, "above": CO, "both": CR}

STYLE = {
    "figure.facecolor": "#FAFAFA", "axes.facecolor": "#FAFAFA",
    "axes.edgecolor": "#333", "axes.labelcolor": "#222",
    "xtick.color": "#555", "ytick.color": "#555", "text.color": "#222",
    "font.size": 10, "axes.titlesize": 12, "axes.titleweight": "bold",
    "axes.grid": True, "grid.alpha": 0.25, "grid.color": "#AAA", "figure.dpi": 140,
}


def apply_style():
    plt.rcParams.update(STYLE)


def quantile_breaks(values, n_classes=5):
    """
    Interior class breaks that put roughly equal counts in each class.

    Duplicate quantiles (heavily tied data) are dropped, so fewer than
    n_classes classes may result.
    """
    values = np.asarray(values, dtype=float)
    qs = np.linspace(0, 1, n_classes + 1)[1:-1]
    return np.unique(np.quantile(values, qs))


def _class_labels(breaks, fmt):
    edges = ["min"] + [format(b, fmt) for b in breaks] + ["max"]
    return [f"{lo} - {hi}" for lo, hi in zip(edges[:-1], edges[1:])]


def plot_choropleth(ax, gdf, column, breaks, cmap="Blues", fmt=".1f", title=None):
    """Classed choropleth of gdf[column] with a legend of class ranges."""
    classes = assign_class(gdf[column].to_numpy(), breaks)
    n_classes = len(breaks) + 1
    palette = plt.get_cmap(cmap)(np.linspace(0.2, 0.9, n_classes))

    gdf.plot(ax=ax, color=[to_hex(c) for c in palette[classes]],
             edgecolor="white", linewidth=0.3)
    handles = [Patch(facecolor=palette[i], edgecolor="#555", label=label)
               for i, label in enumerate(_class_labels(breaks, fmt))]
    ax.legend(handles=handles, fontsize=7.5, loc="lower left", framealpha=0.9)
    ax.set_axis_off()
    if title:
        ax.set_title(title)
    return ax


def plot_overlap_hatching(ax, gdf, categories):
    """
    Overlay hatching on counties whose interval crosses a class break.

    categories : array of "within" / "below" / "above" / "both"
        (see moe.class_overlap). "within" counties are left plain.
    """
    categories = np.asarray(categories)
    handles = []
    for cat, hatch in HATCHES.items():
        if cat == "within":
            continue
        subset = gdf[categories == cat]
        if len(subset):
            subset.plot(ax=ax, facecolor="none", edgecolor="#333",
                        hatch=hatch, linewidth=0.3)
        handles.append(Patch(facecolor="white", edgecolor="#333", hatch=hatch,
                             label=f"{cat} ({len(subset)})"))
    ax.legend(handles=handles, fontsize=7.5, loc="lower right",
              title="CI crosses break", title_fontsize=7.5, framealpha=0.9)
    return ax


def plot_ci_bars(ax, values, errors, breaks, k=Z90, xlabel="County (sorted)",
                 ylabel="Estimate"):
    """
    Sorted estimates with their intervals, colored by class overlap.

    Horizontal lines mark the class breaks, so every bar that crosses a
    line is a county whose map color is not settled by the data.
    """
    values = np.asarray(values, dtype=float)
    errors = np.asarray(errors, dtype=float)
    order = np.argsort(values)
    v, e = values[order], errors[order]
    lo, hi = confidence_interval(v, e, k=k)
    cats = class_overlap(v, e, breaks, k=k)
    pos = np.arange(len(v))

    for cat, color in OVERLAP_COLORS.items():
        m = cats == cat
        if m.any():
            ax.errorbar(pos[m], v[m], yerr=[v[m] - lo[m], hi[m] - v[m]],
                        fmt="o", ms=2.5, lw=0.8, color=color, label=cat)
    for b in breaks:
        ax.axhline(b, color="#333", ls="--", lw=0.8)
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.legend(fontsize=8)
    return ax


def plot_truncated_draws(ax, draws, value, error, k=Z90, bins=40):
    """Histogram of simulated draws for one estimate against the truncated normal pdf."""
    draws = np.asarray(draws, dtype=float)
    lo, hi = max(value - k * error, 0.0), value + k * error
    ax.hist(draws, bins=bins, density=True, alpha=0.6, color=CB, edgecolor="white")
    if error > 0:
        a, b = (lo - value) / error, (hi - value) / error
        grid = np.linspace(lo, hi, 200)
        ax.plot(grid, stats.truncnorm.pdf(grid, a, b, loc=value, scale=error),
                c=CR, lw=2, label="Truncated normal")
        full = np.linspace(value - 3.5 * error, value + 3.5 * error, 300)
        ax.plot(full, stats.norm.pdf(full, value, error), c=CY, ls=":", lw=1.5,
                label="Untruncated normal")
    ax.axvline(lo, color=CO, ls="--", lw=1.5, label=f"Bounds [{lo:.2f}, {hi:.2f}]")
    ax.axvline(hi, color=CO, ls="--", lw=1.5)
    ax.axvline(value, color=CG, lw=2, label=f"Estimate = {value:.2f}")
    ax.legend(fontsize=7.5)
    return ax


def plot_envelope(ax, x, y, result, x_grid, band=None, point_fit=None,
                  n_lines=200, xlabel="x", ylabel="y"):
    """
    Scatter of the estimates with simulated regression lines.

    Parameters
    ----------
    result : dict
        Output of envelope.simulate_envelope.
    band : dict, optional
        Output of envelope.envelope_band, drawn as a shaded region.
    point_fit : dict, optional
        Output of regression.estimate on the published estimates.
    n_lines : int
        Number of simulated lines drawn (all are used for the band).
    """
    x_grid = np.asarray(x_grid, dtype=float)
    ax.scatter(x, y, alpha=0.5, s=14, c=CB, edgecolors="none", zorder=5)

    keep = np.flatnonzero(~result["singular"])[:n_lines]
    for i in keep:
        ax.plot(x_grid, result["intercepts"][i] + result["slopes"][i] * x_grid,
                c=CO, alpha=0.04, lw=1)
    if band is not None:
        ax.fill_between(band["x"], band["lower"], band["upper"], color=CO,
                        alpha=0.2, label="5-95% envelope")
    if point_fit is not None:
        ax.plot(x_grid, point_fit["intercept"] + point_fit["slope"] * x_grid,
                c=CR, lw=2.5, label="OLS on published estimates")
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    if band is not None or point_fit is not None:
        ax.legend(fontsize=8)
    return ax
