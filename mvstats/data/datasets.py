"""In-memory registry of the tabular datasets analyses run against."""
from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from pandas.api import types as ptypes

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".csv", ".parquet")


@dataclass(frozen=True)
class ResolvedData:
    """Selected columns after filtering, plus where each row came from."""

    frame: pd.DataFrame
    row_index: np.ndarray  # positions in the full dataset
    total_rows: int


def column_type(series: pd.Series) -> str:
    """Classify a column the way the variable pickers do."""
    if ptypes.is_bool_dtype(series):
        return "logical"
    if ptypes.is_datetime64_any_dtype(series):
        return "date"
    if isinstance(series.dtype, pd.CategoricalDtype):
        return "factor"
    if ptypes.is_integer_dtype(series):
        return "integer"
    if ptypes.is_numeric_dtype(series):
        return "numeric"
    return "character"


def is_numeric_column(series: pd.Series) -> bool:
    return column_type(series) in ("integer", "numeric")


def dates_to_numeric(frame: pd.DataFrame) -> pd.DataFrame:
    """Replace datetime columns with days since the epoch."""
    out = frame.copy()
    for name in out.columns:
        if ptypes.is_datetime64_any_dtype(out[name]):
            col = out[name]
            if getattr(col.dt, "tz", None) is not None:
                col = col.dt.tz_convert(None)
            out[name] = (col - pd.Timestamp("1970-01-01")).dt.total_seconds() / 86400.0
    return out


def expand_vars(columns: Sequence[str], variables: Iterable[str]) -> List[str]:
    """Expand ``"a:b"`` ranges to every column from ``a`` to ``b`` inclusive.

    Unknown names raise ``KeyError``. Duplicates are dropped, first wins.
    """
    columns = list(columns)
    expanded: List[str] = []
    for item in variables:
        item = str(item).strip()
        if not item:
            continue
        if item not in columns and ":" in item:
            start, end = (part.strip() for part in item.split(":", 1))
            for endpoint in (start, end):
                if endpoint not in columns:
                    raise KeyError(f"Variable '{endpoint}' not found")
            i, j = columns.index(start), columns.index(end)
            if i > j:
                i, j = j, i
            names = columns[i : j + 1]
        elif item in columns:
            names = [item]
        else:
            raise KeyError(f"Variable '{item}' not found")
        for name in names:
            if name not in expanded:
                expanded.append(name)
    return expanded


def fix_names(name: str) -> str:
    """Turn free text into a usable column name (``my var!`` -> ``my_var_``)."""
    fixed = re.sub(r"\W", "_", str(name).strip())
    if fixed and fixed[0].isdigit():
        fixed = f"X{fixed}"
    return fixed


def apply_filter(frame: pd.DataFrame, data_filter: str) -> pd.DataFrame:
    """Apply a pandas query expression; an empty expression keeps all rows."""
    expr = (data_filter or "").replace("\n", " ").strip()
    if not expr:
        return frame
    try:
        filtered = frame.query(expr)
    except Exception as exc:
        raise ValueError(f"Invalid filter expression '{expr}': {exc}") from exc
    if not isinstance(filtered, pd.DataFrame):
        raise ValueError(f"Filter expression '{expr}' did not select rows")
    return filtered


class DatasetStore:
    """Named datasets shared by the API and command-line tools.

    Frames are stored with a fresh ``RangeIndex`` so row positions double
    as row keys when results are merged back.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frames: Dict[str, pd.DataFrame] = {}

    def add(self, name: str, frame: pd.DataFrame) -> None:
        with self._lock:
            self._frames[name] = frame.reset_index(drop=True)
        logger.info("Dataset '%s' registered: %d rows, %d columns", name, len(frame), frame.shape[1])

    def load_dir(self, data_dir: Path) -> List[str]:
        """Load every CSV/parquet file in ``data_dir``; names are file stems."""
        data_dir = Path(data_dir)
        if not data_dir.is_dir():
            logger.warning("Data directory %s not found; no datasets loaded", data_dir)
            return []
        loaded = []
        for path in sorted(data_dir.iterdir()):
            if path.suffix.lower() not in SUPPORTED_SUFFIXES:
                continue
            try:
                self.add(path.stem, read_table(path))
                loaded.append(path.stem)
            except (OSError, ValueError) as exc:
                logger.warning("Skipping %s: %s", path, exc)
        return loaded

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._frames)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._frames

    def get(self, name: str) -> pd.DataFrame:
        with self._lock:
            try:
                return self._frames[name]
            except KeyError:
                raise KeyError(f"Dataset '{name}' not found") from None

    def describe(self, name: str) -> Dict[str, object]:
        frame = self.get(name)
        return {
            "name": name,
            "rows": int(len(frame)),
            "columns": [{"name": str(c), "type": column_type(frame[c])} for c in frame.columns],
        }

    def resolve(
        self,
        name: str,
        variables: Sequence[str],
        data_filter: str = "",
    ) -> ResolvedData:
        """Select ``variables`` (already expanded), filter, and drop incomplete rows."""
        frame = self.get(name)
        missing = [v for v in variables if v not in frame.columns]
        if missing:
            raise KeyError(f"Variable(s) not found in '{name}': {', '.join(missing)}")
        filtered = apply_filter(frame, data_filter)
        selected = filtered.loc[:, list(variables)]
        selected = selected.dropna()
        return ResolvedData(
            frame=selected.copy(),
            row_index=selected.index.to_numpy(dtype=int),
            total_rows=len(frame),
        )

    def replace(self, name: str, frame: pd.DataFrame) -> None:
        with self._lock:
            if name not in self._frames:
                raise KeyError(f"Dataset '{name}' not found")
            self._frames[name] = frame

    def to_csv(self, name: str) -> str:
        return self.get(name).to_csv(index=False)


def read_table(path: Path) -> pd.DataFrame:
    if path.suffix.lower() == ".parquet":
        return pd.read_parquet(path)
    return pd.read_csv(path)


def build_store(data_dir: Optional[Path] = None, frames: Optional[Dict[str, pd.DataFrame]] = None) -> DatasetStore:
    """Create a store from a directory and/or in-memory frames."""
    store = DatasetStore()
    if data_dir is not None:
        store.load_dir(data_dir)
    for name, frame in (frames or {}).items():
        store.add(name, frame)
    return store


def selected_columns(labels: Optional[str], variables: Sequence[str]) -> Tuple[str, ...]:
    """Label column first, then variables, as analyses expect them."""
    if labels:
        return (labels, *[v for v in variables if v != labels])
    return tuple(variables)
