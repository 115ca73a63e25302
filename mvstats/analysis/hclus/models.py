"""Data models for hierarchical cluster analysis."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

import numpy as np
import pandas as pd

NO_LABELS = "none"

MAX_CASES_MESSAGE = (
    "The number of cases to cluster exceed the maximum set. Change\n"
    "the number of cases allowed using the 'Max cases' input box."
)


class Distance(str, Enum):
    """Dissimilarity measures accepted by :func:`cluster`."""

    SQ_EUCLIDEAN = "sq.euclidian"
    GOWER = "gower"
    EUCLIDEAN = "euclidean"
    MAXIMUM = "maximum"
    MANHATTAN = "manhattan"
    CANBERRA = "canberra"
    MINKOWSKI = "minkowski"

    @classmethod
    def parse(cls, value: Union[str, "Distance"]) -> "Distance":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            options = ", ".join(d.value for d in cls)
            raise ValueError(f"Unknown distance '{value}'. Choose one of: {options}") from None

    @property
    def scipy_metric(self) -> Optional[str]:
        """Metric name for ``scipy.spatial.distance.pdist`` (None for Gower)."""
        return _SCIPY_METRICS[self]


_SCIPY_METRICS = {
    Distance.SQ_EUCLIDEAN: "euclidean",
    Distance.GOWER: None,
    Distance.EUCLIDEAN: "euclidean",
    Distance.MAXIMUM: "chebyshev",
    Distance.MANHATTAN: "cityblock",
    Distance.CANBERRA: "canberra",
    Distance.MINKOWSKI: "minkowski",
}


class Linkage(str, Enum):
    """Agglomeration rules, named as in R's ``hclust``."""

    WARD_D = "ward.D"
    WARD_D2 = "ward.D2"
    SINGLE = "single"
    COMPLETE = "complete"
    AVERAGE = "average"
    MCQUITTY = "mcquitty"
    MEDIAN = "median"
    CENTROID = "centroid"

    @classmethod
    def parse(cls, value: Union[str, "Linkage"]) -> "Linkage":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            options = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown linkage method '{value}'. Choose one of: {options}") from None

    @property
    def scipy_method(self) -> str:
        return _SCIPY_METHODS[self][0]

    @property
    def updates_on_squared(self) -> bool:
        """True when the rule is applied to the dissimilarities as given.

        scipy's ward/median/centroid square their inputs inside the
        Lance-Williams update, so these are run on ``sqrt(d)`` and the
        resulting heights squared back.
        """
        return _SCIPY_METHODS[self][1]


_SCIPY_METHODS = {
    Linkage.WARD_D: ("ward", True),
    Linkage.WARD_D2: ("ward", False),
    Linkage.SINGLE: ("single", False),
    Linkage.COMPLETE: ("complete", False),
    Linkage.AVERAGE: ("average", False),
    Linkage.MCQUITTY: ("weighted", False),
    Linkage.MEDIAN: ("median", True),
    Linkage.CENTROID: ("centroid", True),
}


class FailureKind(str, Enum):
    TOO_MANY_CASES = "too_many_cases"
    TOO_FEW_CASES = "too_few_cases"
    NO_DATA = "no_data"
    NO_VARIABLES = "no_variables"


@dataclass(frozen=True)
class HclusRequest:
    """Parameters of one hierarchical cluster analysis."""

    dataset: str
    vars: Tuple[str, ...]
    labels: str = NO_LABELS
    distance: Distance = Distance.SQ_EUCLIDEAN
    method: Linkage = Linkage.WARD_D
    max_cases: int = 5000
    standardize: bool = True
    data_filter: str = ""

    def __post_init__(self) -> None:
        # Accept plain strings/lists from callers, store the closed types.
        object.__setattr__(self, "vars", tuple(self.vars))
        object.__setattr__(self, "distance", Distance.parse(self.distance))
        object.__setattr__(self, "method", Linkage.parse(self.method))
        object.__setattr__(self, "labels", self.labels or NO_LABELS)
        object.__setattr__(self, "data_filter", (self.data_filter or "").strip())
        if int(self.max_cases) < 1:
            raise ValueError(f"max_cases must be a positive integer; received {self.max_cases}")
        object.__setattr__(self, "max_cases", int(self.max_cases))

    @property
    def has_labels(self) -> bool:
        return self.labels != NO_LABELS


@dataclass
class HclusFailure:
    """An analysis that could not be computed, with a user-facing message."""

    message: str
    kind: FailureKind
    dataset: str = ""

    def __str__(self) -> str:
        return self.message


@dataclass
class HclusResult:
    """Merge history plus everything needed to summarize, plot and store it."""

    linkage: np.ndarray  # (n - 1, 4) scipy linkage matrix
    labels: List[str]
    data: pd.DataFrame  # features after standardization, one row per case
    row_index: np.ndarray  # positions of the clustered rows in the full dataset
    vars: List[str]
    distance: Distance
    requested_distance: Distance
    method: Linkage
    standardize: bool
    any_categorical: bool
    dataset: str
    data_filter: str = ""
    warnings: List[str] = field(default_factory=list)

    @property
    def heights(self) -> np.ndarray:
        return self.linkage[:, 2]

    @property
    def nr_obs(self) -> int:
        return int(self.linkage.shape[0] + 1)

    @property
    def gower_override(self) -> bool:
        return self.any_categorical and self.requested_distance is not Distance.GOWER


HclusOutcome = Union[HclusResult, HclusFailure]
