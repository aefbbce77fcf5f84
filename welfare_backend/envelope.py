from flask import jsonify


class ApiError(Exception):
    """Client-facing error rendered as a ``{success: false}`` envelope."""

    def __init__(self, message, status=400, error=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.error = error


def success(data=None, message=None, status=200, **extra):
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status


def failure(message, status=400, error=None, **extra):
    body = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    body.update(extra)
    return jsonify(body), status


def pagination(page, limit, total):
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit if limit else 0,
    }
