# investdesk/routes.py
from __future__ import annotations

from flask import Blueprint, jsonify

from .services import dashboard as dashboard_service
from .utils.guards import role_required

main = Blueprint("main", __name__)


# ======================
# Dashboard
# ======================
@main.route("/", methods=["GET"])
@role_required("admin", "member")
def dashboard():
    return jsonify(dashboard_service.summary()), 200
