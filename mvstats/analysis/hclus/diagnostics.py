"""Series behind the scree, change and dendrogram views."""
from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import dendrogram

from mvstats.analysis.hclus.core import cut
from mvstats.analysis.hclus.models import HclusResult


def _cutoff(cutoff: Optional[float]) -> float:
    if cutoff is None:
        return 0.0
    cutoff = float(cutoff)
    return 0.0 if np.isnan(cutoff) else cutoff


def normalized_heights(heights: np.ndarray) -> np.ndarray:
    """Merge heights as a share of the final (largest) merge."""
    heights = np.asarray(heights, dtype=float)
    top = heights.max() if heights.size else 0.0
    if top <= 0:
        return np.zeros_like(heights)
    return heights / top


def retained_heights(heights: np.ndarray, cutoff: Optional[float]) -> np.ndarray:
    """Normalized heights above ``cutoff`` (early merges are dropped)."""
    normed = normalized_heights(heights)
    return normed[normed > _cutoff(cutoff)]


def scree_series(heights: np.ndarray, cutoff: Optional[float] = 0.05) -> pd.DataFrame:
    """Within-cluster heterogeneity per number of clusters.

    The last retained merge corresponds to one cluster, the one before it
    to two, and so on.
    """
    kept = retained_heights(heights, cutoff)
    return pd.DataFrame({"nr_clus": np.arange(len(kept), 0, -1, dtype=int), "height": kept})


def change_series(heights: np.ndarray, cutoff: Optional[float] = 0.05) -> pd.DataFrame:
    """Relative change in heterogeneity between consecutive merges.

    ``[0.2, 0.5, 1.0]`` gives ``3-2: 1.5`` and ``2-1: 1.0``; the leading
    step has no predecessor and is dropped with any non-finite ratio.
    """
    kept = retained_heights(heights, cutoff)
    m = len(kept)
    labels = [f"{m + 1 - i}-{m - i}" for i in range(m)]
    with np.errstate(divide="ignore", invalid="ignore"):
        previous = np.concatenate(([np.nan], kept[:-1])) if m else kept
        bump = (kept - previous) / previous
    frame = pd.DataFrame({"nr_clus": labels, "bump": bump})
    return frame[np.isfinite(frame["bump"].to_numpy(dtype=float))].reset_index(drop=True)


def normalized_linkage(result: HclusResult) -> np.ndarray:
    Z = result.linkage.copy()
    Z[:, 2] = normalized_heights(Z[:, 2])
    return Z


def dendrogram_data(result: HclusResult, cutoff: Optional[float] = 0.0) -> Dict[str, Any]:
    """Dendrogram coordinates on the normalized height scale.

    Leaf labels are left out when a cutoff is set, the tree is then meant
    to be read from ``cutoff`` upwards only.
    """
    cutoff = _cutoff(cutoff)
    tree = dendrogram(normalized_linkage(result), labels=list(result.labels), no_plot=True)
    return {
        "icoord": [[float(v) for v in row] for row in tree["icoord"]],
        "dcoord": [[float(v) for v in row] for row in tree["dcoord"]],
        "leaves": [int(v) for v in tree["leaves"]],
        "leaf_labels": [] if cutoff > 0 else [str(v) for v in tree["ivl"]],
        "ylim": [cutoff, 1.0],
        "title": "Dendrogram" if cutoff == 0 else "Cutoff dendrogram",
        "nr_obs": result.nr_obs,
    }


def pairwise_frame(result: HclusResult, nr_clusters: int = 3) -> pd.DataFrame:
    """Clustered features with a categorical ``Cluster`` column appended."""
    frame = result.data.copy()
    frame["Cluster"] = pd.Categorical(cut(result, nr_clusters))
    return frame
