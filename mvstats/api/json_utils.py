"""Strict JSON responses for analysis payloads."""
from __future__ import annotations

import json
import math
from typing import Any

import numpy as np
from flask import Response


def _sanitize_json_value(value: Any) -> Any:
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return None
    if isinstance(value, dict):
        return {k: _sanitize_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_json_value(v) for v in value]
    if isinstance(value, np.ndarray):
        return _sanitize_json_value(value.tolist())
    if isinstance(value, np.generic):
        return _sanitize_json_value(value.item())
    return value


class SafeJSONEncoder(json.JSONEncoder):
    """JSON encoder that converts NaN/Infinity to null for strict JSON compliance."""

    def encode(self, o: Any) -> str:  # noqa: N802 - matches json.JSONEncoder API
        return super().encode(_sanitize_json_value(o))


def safe_jsonify(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON Response that is robust to NaN/Infinity and numpy values."""

    data = SafeJSONEncoder(allow_nan=False).encode(payload)
    return Response(data, status=status, mimetype="application/json")
