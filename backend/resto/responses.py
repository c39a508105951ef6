# Overview: JSON envelope helpers used by every route.

from __future__ import annotations

from flask import jsonify

from .errors import DomainError


def success(data: dict | None = None, message: str | None = None, status: int = 200):
    body: dict = {"status": "success"}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def failure(message: str, status: int = 400, errors: list[dict] | None = None):
    body: dict = {"status": "error", "message": message}
    if errors:
        body["errors"] = errors
    return jsonify(body), status


def error_response(exc: DomainError):
    """Translate a domain error into its envelope and HTTP status."""
    return failure(exc.message, exc.status_code, getattr(exc, "errors", None))


def internal_error():
    return failure("Internal server error", 500)
