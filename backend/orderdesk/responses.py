# Overview: JSON success envelope shared by every blueprint.

from __future__ import annotations

from flask import jsonify, request

from .errors import ValidationError


def ok(data=None, status: int = 200, message: str | None = None, **extra):
    """{"success": true, "data": ..., "message"?: ...} with extra top-level keys (e.g. meta)."""
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    body.update(extra)
    return jsonify(body), status


def json_body() -> dict:
    """Request JSON object; anything else is a 400."""
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload
