"""Flask routes for hierarchical cluster analysis."""
from __future__ import annotations

import logging
import os
import time
import warnings
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from flask import Blueprint, Response, current_app, jsonify, request

from mvstats.analysis.hclus import (
    HclusFailure,
    HclusRequest,
    cluster,
    dendrogram_data,
    figure_to_png,
    membership_csv,
    plot,
    store_membership,
    summarize,
)
from mvstats.analysis.hclus.diagnostics import change_series, scree_series
from mvstats.analysis.hclus.models import NO_LABELS
from mvstats.analysis.hclus.report import report_command
from mvstats.api.json_utils import safe_jsonify
from mvstats.api.services.result_cache import CacheEntry, ResultCache
from mvstats.data.datasets import DatasetStore, fix_names

logger = logging.getLogger(__name__)
_log_level_name = os.getenv("HCLUS_LOG_LEVEL", os.getenv("API_LOG_LEVEL", "INFO")).upper()
_log_level = getattr(logging, _log_level_name, logging.INFO)
logger.setLevel(_log_level)

hclus_bp = Blueprint("hclus", __name__, url_prefix="/api/hclus")

FAILURE_STATUS = 422


def _store() -> DatasetStore:
    return current_app.config["DATASET_STORE"]


def _cache() -> ResultCache:
    return current_app.config["RESULT_CACHE"]


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _parse_request(data: Dict[str, Any]) -> HclusRequest:
    """Build an analysis request from a JSON body (raises ValueError/KeyError)."""
    if "dataset" not in data:
        raise ValueError("Missing 'dataset'")
    variables = data.get("vars") or []
    if isinstance(variables, str):
        variables = [v for v in variables.split(",") if v.strip()]
    return HclusRequest(
        dataset=str(data["dataset"]),
        vars=tuple(variables),
        labels=data.get("labels") or NO_LABELS,
        distance=data.get("distance", "sq.euclidian"),
        method=data.get("method", "ward.D"),
        max_cases=int(data.get("max_cases", current_app.config["MAX_CASES"])),
        standardize=_as_bool(data.get("standardize"), True),
        data_filter=data.get("data_filter") or "",
    )


def _lookup(result_id: str) -> Tuple[Optional[CacheEntry], Optional[Tuple[Response, int]]]:
    entry = _cache().get(result_id)
    if entry is None:
        return None, (jsonify({"error": f"Result '{result_id}' not found or expired"}), 404)
    return entry, None


def _float_arg(name: str, default: float) -> float:
    value = request.args.get(name, default, type=float)
    return default if value is None else value


@hclus_bp.route("", methods=["POST"])
def run_hclus():
    """Run an analysis and cache its result.

    Payload:
    {
        "dataset": "shopping",
        "vars": ["v1:v6"],
        "labels": "none",
        "distance": "sq.euclidian",
        "method": "ward.D",
        "max_cases": 5000,
        "standardize": true,
        "data_filter": ""
    }
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Invalid JSON"}), 400
    req_id = uuid4().hex[:8]
    start = time.time()

    try:
        hc_request = _parse_request(data)
    except (TypeError, ValueError) as exc:
        return jsonify({"error": str(exc)}), 400

    store = _store()
    if hc_request.dataset not in store:
        return jsonify({"error": f"Dataset '{hc_request.dataset}' not found"}), 404

    try:
        result = cluster(hc_request, store)
    except KeyError as exc:
        return jsonify({"error": exc.args[0] if exc.args else str(exc)}), 400
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    if isinstance(result, HclusFailure):
        logger.info("hclus failed req=%s kind=%s", req_id, result.kind.value)
        return jsonify({"error": result.message, "kind": result.kind.value}), FAILURE_STATUS

    result_id = _cache().put(hc_request, result)
    logger.info(
        "hclus req=%s result=%s n=%d total_ms=%d",
        req_id,
        result_id,
        result.nr_obs,
        int((time.time() - start) * 1000),
    )
    return safe_jsonify(
        {
            "result_id": result_id,
            "summary": summarize(result),
            "nr_obs": result.nr_obs,
            "vars": result.vars,
            "distance": result.distance.value,
            "method": result.method.value,
            "gower_override": result.gower_override,
            "warnings": result.warnings,
        }
    )


@hclus_bp.route("/<result_id>/summary", methods=["GET"])
def get_summary(result_id: str):
    entry, error = _lookup(result_id)
    if error:
        return error
    return Response(summarize(entry.result), mimetype="text/plain")


@hclus_bp.route("/<result_id>/series", methods=["GET"])
def get_series(result_id: str):
    entry, error = _lookup(result_id)
    if error:
        return error
    cutoff = _float_arg("cutoff", 0.05)
    heights = entry.result.heights
    return safe_jsonify(
        {
            "cutoff": cutoff,
            "scree": scree_series(heights, cutoff).to_dict(orient="records"),
            "change": change_series(heights, cutoff).to_dict(orient="records"),
        }
    )


@hclus_bp.route("/<result_id>/dendrogram", methods=["GET"])
def get_dendrogram(result_id: str):
    entry, error = _lookup(result_id)
    if error:
        return error
    return safe_jsonify(dendrogram_data(entry.result, _float_arg("cutoff", 0.0)))


@hclus_bp.route("/<result_id>/plot.png", methods=["GET"])
def get_plot(result_id: str):
    entry, error = _lookup(result_id)
    if error:
        return error
    plots = request.args.get("plots", "scree,change")
    cutoff = _float_arg("cutoff", 0.05)
    nr_clusters = request.args.get("nr_clusters", 3, type=int)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", UserWarning)
        try:
            fig = plot(entry.result, plots=plots, cutoff=cutoff, nr_clusters=nr_clusters)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
    if fig is None:
        messages = [str(w.message) for w in caught] or ["Please select a plot type"]
        return jsonify({"error": " ".join(messages)}), FAILURE_STATUS

    png = figure_to_png(fig, dpi=current_app.config["PLOT_DPI"])
    filename = f"{entry.result.dataset}_hclus.png"
    return Response(
        png,
        mimetype="image/png",
        headers={"Content-Disposition": f"inline; filename={filename}"},
    )


@hclus_bp.route("/<result_id>/membership.csv", methods=["GET"])
def get_membership_csv(result_id: str):
    entry, error = _lookup(result_id)
    if error:
        return error
    k = request.args.get("k", 2, type=int)
    if k is None or k < 1:
        return jsonify({"error": "k must be a positive integer"}), 400
    return Response(
        membership_csv(entry.result, k),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={entry.result.dataset}_hclus{k}.csv"},
    )


@hclus_bp.route("/<result_id>/store", methods=["POST"])
def store_result(result_id: str):
    """Append the cluster membership to the analysed dataset.

    Payload: {"nr_clus": 3, "name": "grp"}
    """
    entry, error = _lookup(result_id)
    if error:
        return error
    data = request.get_json(silent=True) or {}
    try:
        nr_clus = int(data.get("nr_clus", 2))
    except (TypeError, ValueError):
        return jsonify({"error": "nr_clus must be an integer"}), 400
    if nr_clus < 1:
        return jsonify({"error": "nr_clus must be a positive integer"}), 400
    name = fix_names(data.get("name") or "") or f"hclus{nr_clus}"

    store = _store()
    dataset = entry.result.dataset
    try:
        updated = store_membership(store.get(dataset), entry.result, nr_clus=nr_clus, name=name)
        store.replace(dataset, updated)
    except KeyError as exc:
        return jsonify({"error": exc.args[0] if exc.args else str(exc)}), 404
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 409

    return jsonify({"dataset": dataset, "name": name, "nr_clus": nr_clus, "rows": int(len(updated))})


@hclus_bp.route("/<result_id>/report", methods=["GET"])
def get_report(result_id: str):
    entry, error = _lookup(result_id)
    if error:
        return error
    plots = request.args.get("plots", "")
    try:
        text = report_command(
            entry.request,
            plots=plots,
            cutoff=_float_arg("cutoff", 0.05),
            nr_clusters=request.args.get("nr_clusters", 3, type=int),
            store_name=request.args.get("store_name") or None,
            nr_clus=request.args.get("nr_clus", 2, type=int),
        )
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return Response(text, mimetype="text/plain")
