# investdesk/investors.py
from __future__ import annotations

from flask import Blueprint, jsonify, request

from .services import investors as service
from .utils.guards import admin_required, role_required
from .utils.http import caller, ok, payload, per_page
from .utils.listing import ListParams, pagination_meta

investors_bp = Blueprint("investors", __name__, url_prefix="/investors")


# -------------------------------------------------------------------
# GET  /investors
# POST /investors
# -------------------------------------------------------------------
@investors_bp.route("", methods=["GET"])
@role_required("admin", "member")
def index():
    params = ListParams.from_args(request.args, filter_keys=("status",))
    pagination = service.list_investors(
        caller(), params, per_page=per_page("INVESTORS_PER_PAGE")
    )
    return jsonify(
        {
            "investors": [i.to_dict(with_user=True) for i in pagination.items],
            "meta": pagination_meta(pagination),
            "filters": params.echo(),
            "statuses": service.INVESTOR_STATUSES,
        }
    ), 200


@investors_bp.route("", methods=["POST"])
@role_required("admin", "member")
def store():
    investor = service.create_investor(caller(), payload())
    return ok("Investor created successfully.", 201, investor=investor.to_dict())


@investors_bp.route("/create", methods=["GET"])
@role_required("admin", "member")
def create():
    return jsonify(service.form_options()), 200


# -------------------------------------------------------------------
# POST /investors/with-user  (new login + investor, one transaction)
# -------------------------------------------------------------------
@investors_bp.route("/with-user", methods=["POST"])
@admin_required
def store_with_user():
    investor = service.create_investor_with_user(caller(), payload())
    return ok(
        "User and investor created successfully.",
        201,
        investor=investor.to_dict(with_user=True),
    )


# -------------------------------------------------------------------
# GET /investors/<id>, GET /investors/<id>/edit
# PUT|PATCH /investors/<id>, DELETE /investors/<id>
# -------------------------------------------------------------------
@investors_bp.route("/<int:investor_id>", methods=["GET"])
@role_required("admin", "member")
def show(investor_id: int):
    investor = service.get_investor(caller(), investor_id)
    data = investor.to_dict(with_user=True)
    data["total_payments"] = f"{investor.total_payments():.2f}"
    return jsonify({"investor": data}), 200


@investors_bp.route("/<int:investor_id>/edit", methods=["GET"])
@role_required("admin", "member")
def edit(investor_id: int):
    investor = service.get_investor(caller(), investor_id, ability="update")
    return jsonify({"investor": investor.to_dict(), **service.form_options()}), 200


@investors_bp.route("/<int:investor_id>", methods=["PUT", "PATCH"])
@role_required("admin", "member")
def update(investor_id: int):
    investor = service.update_investor(caller(), investor_id, payload())
    return ok("Investor updated successfully.", investor=investor.to_dict())


@investors_bp.route("/<int:investor_id>", methods=["DELETE"])
@role_required("admin", "member")
def destroy(investor_id: int):
    service.delete_investor(caller(), investor_id)
    return ok("Investor deleted successfully.")


# -------------------------------------------------------------------
# PATCH /investors/<id>/activate, PATCH /investors/<id>/pending
# -------------------------------------------------------------------
@investors_bp.route("/<int:investor_id>/activate", methods=["PATCH"])
@role_required("admin", "member")
def activate(investor_id: int):
    investor = service.activate_investor(caller(), investor_id)
    return ok("Investor activated successfully.", investor=investor.to_dict())


@investors_bp.route("/<int:investor_id>/pending", methods=["PATCH"])
@role_required("admin", "member")
def set_pending(investor_id: int):
    investor = service.set_investor_pending(caller(), investor_id)
    return ok("Investor status set to pending.", investor=investor.to_dict())
