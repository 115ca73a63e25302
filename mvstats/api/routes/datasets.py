"""Routes for browsing and downloading datasets."""
from __future__ import annotations

import logging

from flask import Blueprint, Response, current_app, jsonify

from mvstats.data.datasets import DatasetStore

logger = logging.getLogger(__name__)

datasets_bp = Blueprint("datasets", __name__, url_prefix="/api/datasets")


def _store() -> DatasetStore:
    return current_app.config["DATASET_STORE"]


@datasets_bp.route("", methods=["GET"])
def list_datasets():
    store = _store()
    return jsonify({"datasets": [store.describe(name) for name in store.names()]})


@datasets_bp.route("/<name>", methods=["GET"])
def get_dataset(name: str):
    store = _store()
    if name not in store:
        return jsonify({"error": f"Dataset '{name}' not found"}), 404
    return jsonify(store.describe(name))


@datasets_bp.route("/<name>/csv", methods=["GET"])
def download_dataset(name: str):
    store = _store()
    if name not in store:
        return jsonify({"error": f"Dataset '{name}' not found"}), 404
    return Response(
        store.to_csv(name),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={name}.csv"},
    )
