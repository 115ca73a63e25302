"""Configuration helpers for the multivariate statistics analyzer."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_PATH = PROJECT_ROOT / ".env"

# Load environment variables early so downstream modules can rely on them.
load_dotenv(ENV_PATH, override=False)

DATA_DIR_ENV = "DATA_DIR"
MAX_CASES_ENV = "HCLUS_MAX_CASES"
PLOT_DPI_ENV = "PLOT_DPI"
RESULT_CACHE_SIZE_ENV = "RESULT_CACHE_SIZE"
RESULT_CACHE_TTL_ENV = "RESULT_CACHE_TTL_SECONDS"

DEFAULT_DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_MAX_CASES = 5000
DEFAULT_PLOT_DPI = 144
DEFAULT_RESULT_CACHE_SIZE = 20
DEFAULT_RESULT_CACHE_TTL_SECONDS = 3600


@dataclass(frozen=True)
class AnalysisSettings:
    """Defaults applied to analyses that do not override them."""

    max_cases: int
    plot_dpi: int


@dataclass(frozen=True)
class ResultCacheSettings:
    """Sizing for the in-memory cache of clustering results."""

    max_entries: int
    ttl_seconds: int


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_int(name: str, default: int, minimum: int = 1) -> int:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer; received '{raw}'.") from exc
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}; received {value}.")
    return value


def get_data_dir() -> Path:
    """Resolve the directory holding the datasets served by the API."""

    raw_path = _get_env(DATA_DIR_ENV, str(DEFAULT_DATA_DIR))
    return Path(raw_path).expanduser().resolve()


def get_analysis_settings() -> AnalysisSettings:
    """Resolve analysis defaults from environment with sensible fallbacks."""

    return AnalysisSettings(
        max_cases=_get_int(MAX_CASES_ENV, DEFAULT_MAX_CASES),
        plot_dpi=_get_int(PLOT_DPI_ENV, DEFAULT_PLOT_DPI),
    )


def get_result_cache_settings() -> ResultCacheSettings:
    return ResultCacheSettings(
        max_entries=_get_int(RESULT_CACHE_SIZE_ENV, DEFAULT_RESULT_CACHE_SIZE),
        ttl_seconds=_get_int(RESULT_CACHE_TTL_ENV, DEFAULT_RESULT_CACHE_TTL_SECONDS),
    )
