# Overview: JSON response envelope helpers shared by all blueprints.

import math

from flask import jsonify, request


def success(data=None, status_code: int = 200, message: str | None = None, count: int | None = None):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if count is not None:
        body["count"] = count
    if message:
        body["message"] = message
    return jsonify(body), status_code


def paginated(items: list, total: int, page: int, limit: int):
    """List envelope: data, count (items on this page) and pagination."""
    return jsonify({
        "success": True,
        "count": len(items),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        },
        "data": items,
    }), 200


def json_body() -> dict:
    return request.get_json(silent=True) or {}
