"""Hierarchical cluster analysis: run, summarize, cut and store."""
from __future__ import annotations

import logging
import time
from typing import List, Optional

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import linkage

from mvstats.analysis.hclus.distance import categorical_columns, distance_matrix, standardize
from mvstats.analysis.hclus.models import (
    MAX_CASES_MESSAGE,
    Distance,
    FailureKind,
    HclusFailure,
    HclusOutcome,
    HclusRequest,
    HclusResult,
    Linkage,
)
from mvstats.data.datasets import DatasetStore, dates_to_numeric, expand_vars, selected_columns

logger = logging.getLogger(__name__)

NON_UNIQUE_LABELS_MESSAGE = "The provided labels are not unique. Please select another labels variable"
GOWER_NOTE = '** When {factor} variables are included "Gower" distance is used **'


def cluster(request: HclusRequest, store: DatasetStore) -> HclusOutcome:
    """Run a hierarchical cluster analysis.

    Precondition failures (no variables, no rows, too many rows) come back
    as :class:`HclusFailure`; unknown datasets, columns or a malformed
    filter raise ``KeyError``/``ValueError``.
    """
    start = time.time()
    columns = store.get(request.dataset).columns
    variables = expand_vars(columns, request.vars)
    labels = request.labels if request.has_labels else None
    if labels is not None:
        if labels not in columns:
            raise KeyError(f"Label variable '{labels}' not found")
        variables = [v for v in variables if v != labels]
    if not variables:
        return HclusFailure(
            "This analysis requires one or more variables of type numeric, integer or factor.",
            FailureKind.NO_VARIABLES,
            request.dataset,
        )

    resolved = store.resolve(request.dataset, selected_columns(labels, variables), request.data_filter)
    frame = dates_to_numeric(resolved.frame)
    n = len(frame)
    if n == 0:
        return HclusFailure("No cases left to cluster after filtering.", FailureKind.NO_DATA, request.dataset)
    if n > request.max_cases:
        logger.warning(
            "hclus refused dataset=%s rows=%d max_cases=%d", request.dataset, n, request.max_cases
        )
        return HclusFailure(MAX_CASES_MESSAGE, FailureKind.TOO_MANY_CASES, request.dataset)
    if n < 2:
        return HclusFailure("At least two cases are required to cluster.", FailureKind.TOO_FEW_CASES, request.dataset)

    notes: List[str] = []
    if labels is not None:
        label_values = frame[labels].astype(str)
        if label_values.is_unique:
            row_labels = label_values.tolist()
        else:
            logger.warning("hclus labels '%s' not unique; using row numbers", labels)
            notes.append(NON_UNIQUE_LABELS_MESSAGE)
            row_labels = [str(i) for i in range(1, n + 1)]
        features = frame.drop(columns=[labels])
    else:
        row_labels = [str(i) for i in range(1, n + 1)]
        features = frame

    # the label column counts: a text label also switches to gower
    any_categorical = bool(categorical_columns(frame))
    distance = request.distance
    if any_categorical and distance is not Distance.GOWER:
        logger.info("hclus non-numeric variables present; %s replaced by gower", distance.value)
        distance = Distance.GOWER

    if request.standardize:
        features = standardize(features)

    condensed = distance_matrix(features, distance)
    linkage_matrix = _agglomerate(condensed, request.method)

    logger.info(
        "hclus done dataset=%s n=%d/%d vars=%d distance=%s method=%s in %.2fs",
        request.dataset,
        n,
        resolved.total_rows,
        len(variables),
        distance.value,
        request.method.value,
        time.time() - start,
    )
    return HclusResult(
        linkage=linkage_matrix,
        labels=row_labels,
        data=features.set_axis(row_labels, axis=0),
        row_index=resolved.row_index,
        vars=list(variables),
        distance=distance,
        requested_distance=request.distance,
        method=request.method,
        standardize=request.standardize,
        any_categorical=any_categorical,
        dataset=request.dataset,
        data_filter=request.data_filter,
        warnings=notes,
    )


def _agglomerate(condensed: np.ndarray, method: Linkage) -> np.ndarray:
    if method.updates_on_squared:
        Z = linkage(np.sqrt(condensed), method=method.scipy_method)
        Z[:, 2] = Z[:, 2] ** 2
        return Z
    return linkage(condensed, method=method.scipy_method)


def summarize(result: HclusOutcome) -> str:
    """Plain-text report of an analysis (or the failure message)."""
    if isinstance(result, HclusFailure):
        return result.message

    lines = [
        "Hierarchical cluster analysis",
        f"Data        : {result.dataset}",
    ]
    if result.data_filter:
        lines.append(f"Filter      : {result.data_filter.replace(chr(10), '')}")
    lines.extend(
        [
            f"Variables   : {', '.join(result.vars)}",
            f"Method      : {result.method.value}",
            f"Distance    : {result.distance.value}",
            f"Standardize : {result.standardize}",
            f"Observations: {result.nr_obs:,}",
        ]
    )
    for note in result.warnings:
        lines.append(f"Note        : {note}")
    if result.gower_override:
        lines.append(GOWER_NOTE)
    return "\n".join(lines) + "\n"


def cut(result: HclusResult, nr_clus: int) -> np.ndarray:
    """Cluster ids ``1..nr_clus`` per case, numbered by first appearance.

    The tree is cut by merge order (the state after the first
    ``n - nr_clus`` merges), so tied or inverted heights still give
    exactly ``nr_clus`` groups.
    """
    nr_clus = int(nr_clus)
    if nr_clus < 1:
        raise ValueError(f"Number of clusters must be at least 1; received {nr_clus}")
    n = result.nr_obs
    nr_clus = min(nr_clus, n)

    members = {i: [i] for i in range(n)}
    for step, (left, right) in enumerate(result.linkage[: n - nr_clus, :2].astype(int)):
        members[n + step] = members.pop(int(left)) + members.pop(int(right))
    raw = np.empty(n, dtype=int)
    for group, rows in enumerate(members.values()):
        raw[rows] = group

    _, first_seen = np.unique(raw, return_index=True)
    order = raw[np.sort(first_seen)]
    renumber = {int(old): new for new, old in enumerate(order, start=1)}
    return np.array([renumber[int(c)] for c in raw], dtype=int)


def store_membership(
    dataset: pd.DataFrame,
    result: HclusOutcome,
    nr_clus: int = 2,
    name: Optional[str] = "",
) -> pd.DataFrame:
    """Return a copy of ``dataset`` with a categorical cluster column appended.

    Rows that were not clustered (filtered out or incomplete) get a missing
    value. ``dataset`` must be the full frame the analysis was resolved from.
    """
    if isinstance(result, HclusFailure):
        raise ValueError(f"No cluster solution to store: {result.message}")
    if not name:
        name = f"hclus{nr_clus}"
    if len(result.row_index) and int(result.row_index.max()) >= len(dataset):
        raise ValueError("Dataset is smaller than the one the analysis was run on")

    membership = pd.Series(pd.NA, index=range(len(dataset)), dtype="Int64")
    membership.iloc[result.row_index] = cut(result, nr_clus)
    out = dataset.copy()
    out[name] = pd.Categorical(membership.to_numpy(dtype=object, na_value=np.nan))
    logger.info("hclus stored membership '%s' (k=%d) on %s", name, nr_clus, result.dataset)
    return out


def membership_frame(result: HclusResult, nr_clus: int) -> pd.DataFrame:
    return pd.DataFrame({"label": result.labels, "cluster": cut(result, nr_clus)})


def membership_csv(result: HclusResult, nr_clus: int) -> str:
    """CSV (``label,cluster``) with one row per clustered case."""
    return membership_frame(result, nr_clus).to_csv(index=False)
