# Overview: JSON envelope helpers shared by all blueprints.

from flask import current_app, jsonify, request


def success(data=None, message: str | None = None, status: int = 200):
    body = {"success": True, "data": data if data is not None else {}}
    if message:
        body["message"] = message
    return jsonify(body), status


def failure(message: str, status: int = 400):
    return jsonify({"success": False, "message": message}), status


def page_args() -> tuple[int, int]:
    """Read ?page=&limit= with config defaults; limit is capped at MAX_PAGE_LIMIT."""
    page = request.args.get("page", 1, type=int) or 1
    limit = request.args.get("limit", current_app.config["DEFAULT_PAGE_LIMIT"], type=int)
    limit = min(max(limit or 1, 1), current_app.config["MAX_PAGE_LIMIT"])
    return max(page, 1), limit
