"""Integration tests for the hierarchical clustering API endpoints."""
from __future__ import annotations

import json

import pytest

pytestmark = pytest.mark.integration


def _run(client, **payload):
    body = {"dataset": "shopping", "vars": ["v1:v4"]}
    body.update(payload)
    return client.post("/api/hclus", json=body)


@pytest.fixture
def result_id(client):
    response = _run(client, labels="id")
    assert response.status_code == 200, response.get_json()
    return response.get_json()["result_id"]


# ==============================================================================
# Running analyses
# ==============================================================================

def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_run_returns_summary_and_metadata(client):
    response = _run(client, method="complete", distance="euclidean")
    data = response.get_json()

    assert response.status_code == 200
    assert data["nr_obs"] == 15
    assert data["vars"] == ["v1", "v2", "v3", "v4"]
    assert data["distance"] == "euclidean"
    assert data["method"] == "complete"
    assert data["gower_override"] is False
    assert data["summary"].startswith("Hierarchical cluster analysis")


def test_run_accepts_comma_separated_vars(client):
    response = _run(client, vars="v1,v2")
    assert response.get_json()["vars"] == ["v1", "v2"]


def test_run_reports_gower_override(client):
    data = _run(client, vars=["v1", "segment"]).get_json()

    assert data["distance"] == "gower"
    assert data["gower_override"] is True
    assert "Gower" in data["summary"]


def test_too_many_cases_is_unprocessable(client):
    response = _run(client, max_cases=2)
    data = response.get_json()

    assert response.status_code == 422
    assert data["kind"] == "too_many_cases"
    assert "Max cases" in data["error"]


def test_max_cases_defaults_to_app_config(store, tmp_path):
    from mvstats.api.server import create_app

    app = create_app(
        config_overrides={"TESTING": True, "LOG_DIR": str(tmp_path / "logs"), "MAX_CASES": 10},
        store=store,
    )
    response = _run(app.test_client())
    assert response.status_code == 422


def test_filter_leaving_no_rows(client):
    response = _run(client, data_filter="v1 > 1000")
    assert response.status_code == 422
    assert response.get_json()["kind"] == "no_data"


@pytest.mark.parametrize(
    "payload",
    [
        {"distance": "cosine"},
        {"method": "ward"},
        {"vars": ["zzz"]},
        {"data_filter": "v1 >>> 1"},
        {"max_cases": 0},
    ],
)
def test_bad_requests(client, payload):
    assert _run(client, **payload).status_code == 400


def test_missing_dataset_field(client):
    response = client.post("/api/hclus", json={"vars": ["v1"]})
    assert response.status_code == 400


def test_invalid_json(client):
    response = client.post("/api/hclus", data="not json", content_type="application/json")
    assert response.status_code == 400
    assert response.get_json()["error"] == "Invalid JSON"


def test_unknown_dataset(client):
    assert _run(client, dataset="nope").status_code == 404


def test_unknown_result_id(client):
    response = client.get("/api/hclus/deadbeef/summary")
    assert response.status_code == 404
    assert "not found" in response.get_json()["error"]


# ==============================================================================
# Outputs of a cached result
# ==============================================================================

def test_summary_text(client, result_id):
    response = client.get(f"/api/hclus/{result_id}/summary")

    assert response.status_code == 200
    assert response.mimetype == "text/plain"
    assert "Observations: 15" in response.get_data(as_text=True)


def test_series(client, result_id):
    data = client.get(f"/api/hclus/{result_id}/series?cutoff=0").get_json()

    assert [row["nr_clus"] for row in data["scree"]] == list(range(14, 0, -1))
    assert data["scree"][-1]["height"] == pytest.approx(1.0)
    assert data["change"][-1]["nr_clus"] == "2-1"


def test_series_with_nan_cutoff_is_strict_json(client, result_id):
    response = client.get(f"/api/hclus/{result_id}/series?cutoff=nan")
    assert "NaN" not in response.get_data(as_text=True)
    data = json.loads(response.get_data(as_text=True))

    assert response.status_code == 200
    assert data["cutoff"] is None
    assert len(data["scree"]) == 14


def test_dendrogram(client, result_id):
    data = client.get(f"/api/hclus/{result_id}/dendrogram").get_json()

    assert data["title"] == "Dendrogram"
    assert sorted(data["leaf_labels"]) == sorted(f"case{i:02d}" for i in range(15))
    assert len(data["icoord"]) == 14


def test_plot_png(client, result_id):
    response = client.get(f"/api/hclus/{result_id}/plot.png?plots=scree,change")

    assert response.status_code == 200
    assert response.mimetype == "image/png"
    assert response.data.startswith(b"\x89PNG")


def test_plot_unknown_kind(client, result_id):
    response = client.get(f"/api/hclus/{result_id}/plot.png?plots=histogram")
    assert response.status_code == 400


def test_plot_none_selected(client, result_id):
    response = client.get(f"/api/hclus/{result_id}/plot.png?plots=none")
    assert response.status_code == 422
    assert response.get_json()["error"] == "Please select a plot type"


def test_pairwise_with_one_variable(client):
    result_id = _run(client, vars=["v1"]).get_json()["result_id"]

    response = client.get(f"/api/hclus/{result_id}/plot.png?plots=pairwise")
    assert response.status_code == 422
    assert "Pairwise" in response.get_json()["error"]


def test_membership_csv(client, result_id):
    response = client.get(f"/api/hclus/{result_id}/membership.csv?k=3")
    lines = response.get_data(as_text=True).splitlines()

    assert response.mimetype == "text/csv"
    assert lines[0] == "label,cluster"
    assert lines[1] == "case00,1"
    assert len(lines) == 16


def test_membership_csv_rejects_bad_k(client, result_id):
    assert client.get(f"/api/hclus/{result_id}/membership.csv?k=0").status_code == 400


def test_store_membership(client, store, result_id):
    response = client.post(f"/api/hclus/{result_id}/store", json={"nr_clus": 3, "name": "my grp"})
    data = response.get_json()

    assert response.status_code == 200
    assert data == {"dataset": "shopping", "name": "my_grp", "nr_clus": 3, "rows": 15}
    stored = store.get("shopping")["my_grp"]
    assert stored.nunique() == 3


def test_store_default_name(client, store, result_id):
    data = client.post(f"/api/hclus/{result_id}/store", json={}).get_json()

    assert data["name"] == "hclus2"
    assert "hclus2" in store.get("shopping").columns


def test_store_rejects_bad_nr_clus(client, result_id):
    response = client.post(f"/api/hclus/{result_id}/store", json={"nr_clus": "many"})
    assert response.status_code == 400


def test_report(client, result_id):
    response = client.get(f"/api/hclus/{result_id}/report?plots=scree&store_name=grp&nr_clus=4")
    text = response.get_data(as_text=True)

    assert response.mimetype == "text/plain"
    assert "labels='id'" in text
    assert "fig = plot(result, plots=['scree'])" in text
    assert "nr_clus=4, name='grp'" in text


# ==============================================================================
# Datasets
# ==============================================================================

def test_list_datasets(client):
    data = client.get("/api/datasets").get_json()
    assert [d["name"] for d in data["datasets"]] == ["shopping"]


def test_dataset_unknown(client):
    assert client.get("/api/datasets/nope").status_code == 404


def test_dataset_csv_includes_stored_membership(client, result_id):
    client.post(f"/api/hclus/{result_id}/store", json={"nr_clus": 2, "name": "grp"})

    response = client.get("/api/datasets/shopping/csv")
    header = response.get_data(as_text=True).splitlines()[0]
    assert response.mimetype == "text/csv"
    assert header.split(",")[-1] == "grp"
