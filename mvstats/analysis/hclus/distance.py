"""Standardization and dissimilarity computation for cluster analysis."""
from __future__ import annotations

import logging

import gower
import numpy as np
import pandas as pd
from scipy.spatial.distance import pdist, squareform

from mvstats.analysis.hclus.models import Distance
from mvstats.data.datasets import is_numeric_column

logger = logging.getLogger(__name__)


def standardize(frame: pd.DataFrame) -> pd.DataFrame:
    """Z-score numeric columns (sample mean and sd); other columns pass through.

    A column without variance (or a single row) becomes all zeros.
    """
    out = frame.copy()
    for name in out.columns:
        if not is_numeric_column(out[name]):
            continue
        col = out[name].astype(float)
        sd = col.std(ddof=1)
        if not np.isfinite(sd) or sd == 0:
            out[name] = 0.0
        else:
            out[name] = (col - col.mean()) / sd
    return out


def categorical_columns(frame: pd.DataFrame) -> list:
    return [name for name in frame.columns if not is_numeric_column(frame[name])]


def gower_condensed(frame: pd.DataFrame) -> np.ndarray:
    """Gower dissimilarities in scipy condensed form.

    Non-numeric columns are compared as strings (match/mismatch), numeric
    columns by range-scaled absolute difference.
    """
    cat_mask = np.array([not is_numeric_column(frame[c]) for c in frame.columns])
    data = frame.copy()
    for name, is_cat in zip(frame.columns, cat_mask):
        if is_cat:
            data[name] = data[name].astype(str).astype(object)
        else:
            # gower scales by the column max; shift so max == range
            col = data[name].astype(float)
            data[name] = col - col.min()
    square = np.asarray(gower.gower_matrix(data, cat_features=cat_mask), dtype=float)
    # gower works in float32; tidy rounding so squareform accepts the matrix
    square = (square + square.T) / 2.0
    np.fill_diagonal(square, 0.0)
    square = np.clip(square, 0.0, None)
    return squareform(square, checks=False)


def distance_matrix(frame: pd.DataFrame, distance: Distance) -> np.ndarray:
    """Condensed dissimilarities between the rows of ``frame``."""
    distance = Distance.parse(distance)
    if distance is Distance.GOWER:
        return gower_condensed(frame)

    values = frame.astype(float).to_numpy()
    if distance is Distance.SQ_EUCLIDEAN:
        return pdist(values, metric="euclidean") ** 2
    if distance is Distance.MINKOWSKI:
        return pdist(values, metric="minkowski", p=2)
    if distance is Distance.CANBERRA:
        return canberra_condensed(values)
    return pdist(values, metric=distance.scipy_metric)


def canberra_condensed(values: np.ndarray) -> np.ndarray:
    """Canberra distance with 0/0 terms left out of the sum.

    The sum over the remaining terms is scaled by ``p / (p - omitted)``.
    Rows that are zero on every column are at distance 0.
    """
    values = np.asarray(values, dtype=float)
    n, p = values.shape
    out = []
    for i in range(n - 1):
        rest = values[i + 1:]
        num = np.abs(values[i] - rest)
        den = np.abs(values[i]) + np.abs(rest)
        used = den > 0
        terms = np.divide(num, den, out=np.zeros_like(num), where=used)
        counts = used.sum(axis=1)
        scale = np.divide(p, counts, out=np.zeros(len(rest)), where=counts > 0)
        out.append(terms.sum(axis=1) * scale)
    return np.concatenate(out) if out else np.empty(0)
