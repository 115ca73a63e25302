"""Tests for scripts/run_hclus.py - the command line entry point."""
from __future__ import annotations

import logging
import logging.handlers

import pandas as pd
import pytest

from scripts.run_hclus import main

pytestmark = pytest.mark.integration


@pytest.fixture
def workdir(tmp_path, shopping, monkeypatch):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    shopping.to_csv(data_dir / "shopping.csv", index=False)
    monkeypatch.chdir(tmp_path)
    yield tmp_path
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            root.removeHandler(handler)
            handler.close()


def _argv(workdir, *extra):
    return ["--data-dir", str(workdir / "data"), "--dataset", "shopping", "--quiet", *extra]


def test_prints_summary(workdir, capsys):
    code = main(_argv(workdir, "--vars", "v1:v4", "--labels", "id"))

    out = capsys.readouterr().out
    assert code == 0
    assert out.startswith("Hierarchical cluster analysis")
    assert "Variables   : v1, v2, v3, v4" in out
    assert (workdir / "logs" / "analysis.log").exists()


def test_writes_plots_and_membership(workdir):
    png = workdir / "out.png"
    csv = workdir / "out.csv"
    code = main(
        _argv(
            workdir,
            "--vars", "v1", "v2", "v3", "v4",
            "--plots", "scree", "change",
            "--png", str(png),
            "--store", "grp",
            "--nr-clus", "3",
            "--output", str(csv),
        )
    )

    assert code == 0
    assert png.read_bytes().startswith(b"\x89PNG")
    stored = pd.read_csv(csv)
    assert stored["grp"].nunique() == 3
    assert len(stored) == 15


def test_failure_returns_one(workdir, capsys):
    code = main(_argv(workdir, "--vars", "v1:v4", "--max-cases", "5"))

    assert code == 1
    assert "Max cases" in capsys.readouterr().out


def test_unknown_dataset_returns_two(workdir):
    code = main(["--data-dir", str(workdir / "data"), "--dataset", "nope", "--vars", "v1", "--quiet"])
    assert code == 2


@pytest.mark.parametrize(
    "extra",
    [
        ["--vars", "v1", "zzz"],
        ["--vars", "v1:v4", "--filter", "v1 >>> 2"],
        ["--vars", "v1:v4", "--max-cases", "0"],
    ],
)
def test_invalid_input_returns_two(workdir, capsys, extra):
    code = main(_argv(workdir, *extra))

    assert code == 2
    assert capsys.readouterr().out == ""
    assert "Cannot run analysis" in (workdir / "logs" / "analysis.log").read_text()


def test_png_without_plots_is_reported(workdir):
    png = workdir / "out.png"
    code = main(_argv(workdir, "--vars", "v1:v4", "--png", str(png)))

    assert code == 0
    assert not png.exists()
    assert "--png given without --plots" in (workdir / "logs" / "analysis.log").read_text()
