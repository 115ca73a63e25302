"""Shared pytest configuration and fixtures for the test suite.

This module centralizes:
- Path setup (eliminates sys.path hacks in individual test files)
- Pytest markers for test categorization (unit, integration)
- Synthetic datasets with a known three-group structure
- A Flask app/client wired to an in-memory dataset store
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

os.environ.setdefault("MPLBACKEND", "Agg")

import numpy as np
import pandas as pd
import pytest


# ==============================================================================
# Path Setup - Ensures mvstats/ and scripts/ are importable
# ==============================================================================

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# ==============================================================================
# Pytest Configuration
# ==============================================================================

def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "unit: Fast tests with no I/O",
    )
    config.addinivalue_line(
        "markers",
        "integration: Tests hitting the Flask app, file system or plotting backends",
    )


# ==============================================================================
# Dataset Fixtures
# ==============================================================================

GROUP_CENTERS = np.array(
    [
        [0.0, 0.0, 0.0, 0.0],
        [6.0, 6.0, 6.0, 6.0],
        [12.0, 0.0, 12.0, 0.0],
    ]
)
ROWS_PER_GROUP = 5


@pytest.fixture
def shopping() -> pd.DataFrame:
    """15 cases in three well separated groups of five (rows 0-4, 5-9, 10-14).

    Columns: id (unique labels), v1..v4 (numeric), segment (categorical),
    region (non-unique strings), const (zero variance), when (dates).
    """
    rng = np.random.default_rng(42)
    values = np.repeat(GROUP_CENTERS, ROWS_PER_GROUP, axis=0)
    values = values + rng.normal(scale=0.3, size=values.shape)
    n = len(values)
    return pd.DataFrame(
        {
            "id": [f"case{i:02d}" for i in range(n)],
            "v1": values[:, 0],
            "v2": values[:, 1],
            "v3": values[:, 2],
            "v4": values[:, 3],
            "segment": pd.Categorical(["a", "b", "c"] * ROWS_PER_GROUP),
            "region": ["north", "south", "east"] * ROWS_PER_GROUP,
            "const": 3.0,
            "when": pd.date_range("2024-01-01", periods=n, freq="D"),
        }
    )


@pytest.fixture
def store(shopping):
    from mvstats.data.datasets import build_store

    return build_store(frames={"shopping": shopping})


@pytest.fixture
def groups() -> np.ndarray:
    """True group of each row in the ``shopping`` fixture."""
    return np.repeat(np.arange(len(GROUP_CENTERS)), ROWS_PER_GROUP)


# ==============================================================================
# Flask Fixtures
# ==============================================================================

@pytest.fixture
def app(store, tmp_path):
    from mvstats.api.server import create_app

    app = create_app(
        config_overrides={"TESTING": True, "LOG_DIR": str(tmp_path / "logs")},
        store=store,
    )
    return app


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()
