"""Matplotlib/seaborn rendering of hierarchical clustering diagnostics."""
from __future__ import annotations

import io
import logging
import math
import warnings
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import seaborn as sns  # noqa: E402
from matplotlib.figure import Figure  # noqa: E402
from matplotlib.ticker import PercentFormatter  # noqa: E402
from scipy.cluster.hierarchy import dendrogram  # noqa: E402

from mvstats.analysis.hclus.diagnostics import (  # noqa: E402
    change_series,
    normalized_linkage,
    pairwise_frame,
    scree_series,
)
from mvstats.analysis.hclus.models import HclusFailure, HclusOutcome, HclusResult  # noqa: E402
from mvstats.data.datasets import is_numeric_column  # noqa: E402

logger = logging.getLogger(__name__)

PLOT_KINDS = ("scree", "change", "dendro", "pairwise")
DENDRO_ALONE_NOTE = (
    "When dendrogram is selected no other plots can be shown.\n"
    "Request the other plot types separately to view them."
)
PAIRWISE_WARNING = "Not enough variables to create a Pairwise scatter plot."

# pixels at 100 dpi, matching the web panel
PANEL_WIDTH = 650
PANEL_HEIGHT = 400
PAIRWISE_SIZE = 750


def parse_plots(plots: Union[None, str, Iterable[str]]) -> List[str]:
    """Normalize ``"scree,change"`` / lists to known plot kinds, in order."""
    if plots is None:
        return []
    if isinstance(plots, str):
        plots = plots.split(",")
    kinds: List[str] = []
    for kind in plots:
        kind = kind.strip()
        if not kind or kind == "none":
            continue
        if kind == "pairwise_hc":
            kind = "pairwise"
        if kind not in PLOT_KINDS:
            raise ValueError(f"Unknown plot type '{kind}'. Choose from: {', '.join(PLOT_KINDS)}")
        if kind not in kinds:
            kinds.append(kind)
    return kinds


def plot_size(plots: Sequence[str]) -> Tuple[int, int]:
    """Width and height in pixels for a combination of plots."""
    kinds = parse_plots(plots)
    if "dendro" in kinds:
        return PANEL_WIDTH, PANEL_WIDTH
    if "pairwise" in kinds:
        return PAIRWISE_SIZE, PAIRWISE_SIZE
    grid = [k for k in kinds if k in ("scree", "change")]
    if len(grid) <= 1:
        return PANEL_WIDTH, PANEL_HEIGHT
    return PANEL_WIDTH * 2, PANEL_HEIGHT


def plot(
    result: HclusOutcome,
    plots: Union[str, Sequence[str]] = ("scree", "change"),
    cutoff: Optional[float] = 0.05,
    nr_clusters: int = 3,
) -> Optional[Figure]:
    """Draw the requested diagnostics; returns ``None`` when there is nothing to draw."""
    kinds = parse_plots(plots)
    if not kinds or isinstance(result, HclusFailure):
        return None
    if cutoff is None or (isinstance(cutoff, float) and math.isnan(cutoff)):
        cutoff = 0.0

    if "dendro" in kinds:
        return plot_dendrogram(result, cutoff, note=DENDRO_ALONE_NOTE if len(kinds) > 1 else "")

    if "pairwise" in kinds:
        fig = plot_pairwise(result, nr_clusters)
        if fig is not None:
            return fig
        kinds = [k for k in kinds if k != "pairwise"]
        if not kinds:
            return None

    width, height = plot_size(kinds)
    fig = Figure(figsize=(width / 100, height / 100))
    axes = fig.subplots(1, len(kinds), squeeze=False).ravel()
    for ax, kind in zip(axes, kinds):
        if kind == "scree":
            draw_scree(ax, result.heights, cutoff)
        else:
            draw_change(ax, result.heights, cutoff)
    fig.tight_layout()
    return fig


def draw_scree(ax, heights: np.ndarray, cutoff: float) -> None:
    series = scree_series(heights, cutoff)
    x = np.arange(len(series))
    ax.plot(
        x,
        series["height"],
        color="blue",
        linestyle="-.",
        linewidth=0.7,
        marker="o",
        markersize=8,
        markerfacecolor="white",
    )
    ax.set_xticks(x)
    ax.set_xticklabels(series["nr_clus"].astype(str))
    ax.yaxis.set_major_formatter(PercentFormatter(xmax=1.0))
    ax.set_title("Scree plot")
    ax.set_xlabel("# clusters")
    ax.set_ylabel("Within-cluster heterogeneity")


def draw_change(ax, heights: np.ndarray, cutoff: float) -> None:
    series = change_series(heights, cutoff)
    x = np.arange(len(series))
    ax.bar(x, series["bump"], color="blue", alpha=0.5)
    ax.set_xticks(x)
    ax.set_xticklabels(series["nr_clus"], rotation=45 if len(series) > 12 else 0)
    ax.yaxis.set_major_formatter(PercentFormatter(xmax=1.0))
    ax.set_title("Change in within-cluster heterogeneity")
    ax.set_xlabel("# clusters")
    ax.set_ylabel("Change in within-cluster heterogeneity")


def plot_dendrogram(result: HclusResult, cutoff: float = 0.0, note: str = "") -> Figure:
    width, height = plot_size(["dendro"])
    fig = Figure(figsize=(width / 100, height / 100))
    ax = fig.add_subplot(1, 1, 1)
    full = cutoff == 0
    dendrogram(
        normalized_linkage(result),
        ax=ax,
        labels=list(result.labels),
        no_labels=not full,
        link_color_func=lambda _: "black",
    )
    if not full:
        ax.set_ylim(cutoff, 1)
    ax.set_title("Dendrogram" if full else "Cutoff dendrogram")
    ax.set_ylabel("Within-cluster heterogeneity")
    ax.set_xlabel(note)
    fig.tight_layout()
    return fig


def _annotate_corr(ax, frame, x_var: str, y_var: str) -> None:
    lines = [f"Corr: {frame[x_var].corr(frame[y_var]):.3f}"]
    for level, group in frame.groupby("Cluster", observed=True):
        if len(group) > 2:
            lines.append(f"{level}: {group[x_var].corr(group[y_var]):.3f}")
    ax.text(0.5, 0.5, "\n".join(lines), ha="center", va="center", transform=ax.transAxes, fontsize=9)


def plot_pairwise(result: HclusResult, nr_clusters: int = 3) -> Optional[Figure]:
    """Scatter matrix of the clustered variables colored by cluster."""
    numeric = [c for c in result.data.columns if is_numeric_column(result.data[c])]
    if len(numeric) < 2:
        logger.warning("pairwise plot skipped: %d numeric variable(s)", len(numeric))
        warnings.warn(PAIRWISE_WARNING, UserWarning, stacklevel=2)
        return None

    frame = pairwise_frame(result, nr_clusters)
    grid = sns.PairGrid(frame, vars=numeric, hue="Cluster", diag_sharey=False)
    grid.map_lower(sns.scatterplot, alpha=0.6)
    grid.map_diag(sns.kdeplot, fill=True, alpha=0.3, warn_singular=False)
    for i, y_var in enumerate(numeric):
        for j, x_var in enumerate(numeric):
            if j > i:
                _annotate_corr(grid.axes[i, j], frame, x_var, y_var)
    grid.add_legend(title="Cluster")
    width, height = plot_size(["pairwise"])
    grid.figure.set_size_inches(width / 100, height / 100)
    grid.figure.suptitle("Pairwise Scatter plot with Hierarchical clustering", y=1.02)
    return grid.figure


def figure_to_png(fig: Figure, dpi: int = 144) -> bytes:
    """Serialize a figure to PNG bytes and release it."""
    buffer = io.BytesIO()
    try:
        fig.savefig(buffer, format="png", dpi=dpi, bbox_inches="tight")
    finally:
        plt.close(fig)
    return buffer.getvalue()
