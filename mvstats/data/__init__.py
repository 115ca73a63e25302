"""Dataset loading and resolution."""

from .datasets import DatasetStore, ResolvedData, build_store, column_type, expand_vars, fix_names

__all__ = [
    "DatasetStore",
    "ResolvedData",
    "build_store",
    "column_type",
    "expand_vars",
    "fix_names",
]
