"""
JSON response helpers shared by the route modules.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any

from flask import jsonify

from core.errors import Internal, StudioError
from core.logger import logger


def sanitize_for_json(obj: Any) -> Any:
    """
    Recursively convert an object into JSON-safe values.

    - datetime -> ISO 8601 string (UTC when naive)
    - float('nan'), float('inf'), float('-inf') -> None
    - dataclasses exposing ``to_dict`` -> their dict form
    """
    if obj is None or isinstance(obj, (bool, int, str)):
        return obj

    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            return None
        return obj

    if isinstance(obj, datetime):
        if obj.tzinfo is None:
            obj = obj.replace(tzinfo=timezone.utc)
        return obj.isoformat()

    if isinstance(obj, date):
        return obj.isoformat()

    if hasattr(obj, "to_dict") and callable(obj.to_dict):
        return sanitize_for_json(obj.to_dict())

    if isinstance(obj, dict):
        return {str(k): sanitize_for_json(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple, set)):
        return [sanitize_for_json(v) for v in obj]

    # Fallback: string representation
    return str(obj)


def ok(payload: Any, status: int = 200):
    return jsonify(sanitize_for_json(payload)), status


def error_response(exc: StudioError):
    return jsonify(exc.to_dict()), exc.http_status


def internal_error(context: str, exc: Exception):
    logger.error(f"{context}: {exc}", exc_info=True)
    return error_response(Internal(f"{context}: {exc}"))
