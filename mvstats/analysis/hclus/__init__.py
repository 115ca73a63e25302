"""Hierarchical cluster analysis over named datasets."""

from .core import cluster, cut, membership_csv, membership_frame, store_membership, summarize
from .diagnostics import change_series, dendrogram_data, pairwise_frame, scree_series
from .models import (
    NO_LABELS,
    Distance,
    FailureKind,
    HclusFailure,
    HclusOutcome,
    HclusRequest,
    HclusResult,
    Linkage,
)
from .plots import figure_to_png, plot, plot_size

__all__ = [
    "NO_LABELS",
    "Distance",
    "FailureKind",
    "HclusFailure",
    "HclusOutcome",
    "HclusRequest",
    "HclusResult",
    "Linkage",
    "change_series",
    "cluster",
    "cut",
    "dendrogram_data",
    "figure_to_png",
    "membership_csv",
    "membership_frame",
    "pairwise_frame",
    "plot",
    "plot_size",
    "scree_series",
    "store_membership",
    "summarize",
]
