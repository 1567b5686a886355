# investdesk/utils/http.py
from __future__ import annotations

from typing import Any

from flask import current_app, jsonify, request
from flask_login import current_user


def payload() -> dict[str, Any]:
    """JSON body if there is one, else the submitted form."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def caller():
    """The logged-in User (unwrapped from the Flask-Login proxy)."""
    return current_user._get_current_object()


def per_page(config_key: str = "DEFAULT_PER_PAGE") -> int:
    return int(current_app.config.get(config_key) or current_app.config["DEFAULT_PER_PAGE"])


def ok(message: str, status: int = 200, **data: Any):
    return jsonify({"message": message, **data}), status
