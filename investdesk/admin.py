# investdesk/admin.py
from __future__ import annotations

from flask import Blueprint, jsonify, request

from .errors import ValidationError
from .services import accounts as account_service
from .services import allocations as allocation_service
from .services import payments as payment_service
from .services import users as user_service
from .utils.guards import admin_required, role_required
from .utils.http import caller, ok, payload, per_page
from .utils.listing import ListParams, pagination_meta
from .utils.validation import parse_int

# Account / payment / user mutations are admin-only; reads are open to any
# logged-in user. The services enforce the same rules.
admin_bp = Blueprint("admin", __name__)


# -------------------------------------------------------------------
# Accounts
# GET /accounts, POST /accounts, GET /accounts/create
# GET /accounts/<id>, GET /accounts/<id>/edit
# PUT|PATCH /accounts/<id>, DELETE /accounts/<id>
# PATCH /accounts/<id>/activate
# -------------------------------------------------------------------
@admin_bp.route("/accounts", methods=["GET"])
@role_required("admin", "member")
def accounts_list():
    params = ListParams.from_args(request.args, filter_keys=("verified",))
    pagination = account_service.list_accounts(caller(), params, per_page=per_page())
    totals = account_service.investment_totals([a.id for a in pagination.items])
    return jsonify(
        {
            "accounts": [a.to_dict(total_amount=totals.get(a.id)) for a in pagination.items],
            "meta": pagination_meta(pagination),
            "filters": params.echo(),
        }
    ), 200


@admin_bp.route("/accounts", methods=["POST"])
@admin_required
def accounts_store():
    account = account_service.create_account(caller(), payload())
    return ok("Account created successfully.", 201, account=account.to_dict())


@admin_bp.route("/accounts/create", methods=["GET"])
@admin_required
def accounts_create():
    return jsonify({"investors": account_service.investor_choices()}), 200


@admin_bp.route("/accounts/<int:account_id>", methods=["GET"])
@role_required("admin", "member")
def accounts_show(account_id: int):
    account = account_service.get_account(caller(), account_id)
    totals = account_service.investment_totals([account.id])
    return jsonify({"account": account.to_dict(total_amount=totals[account.id])}), 200


@admin_bp.route("/accounts/<int:account_id>/edit", methods=["GET"])
@admin_required
def accounts_edit(account_id: int):
    account = account_service.get_account(caller(), account_id, ability="update")
    return jsonify(
        {"account": account.to_dict(), "investors": account_service.investor_choices()}
    ), 200


@admin_bp.route("/accounts/<int:account_id>", methods=["PUT", "PATCH"])
@admin_required
def accounts_update(account_id: int):
    account = account_service.update_account(caller(), account_id, payload())
    return ok("Account updated successfully.", account=account.to_dict())


@admin_bp.route("/accounts/<int:account_id>/activate", methods=["PATCH"])
@admin_required
def accounts_activate(account_id: int):
    account = account_service.toggle_account(caller(), account_id)
    state = "activated" if account.is_active else "inactivated"
    return ok(f"Account {state} successfully.", account=account.to_dict())


@admin_bp.route("/accounts/<int:account_id>", methods=["DELETE"])
@admin_required
def accounts_destroy(account_id: int):
    account_service.delete_account(caller(), account_id)
    return ok("Account deleted successfully.")


# -------------------------------------------------------------------
# Payments
# GET /payments, POST /payments, GET /payments/create
# GET /payments/<id>, GET /payments/<id>/edit
# PUT|PATCH /payments/<id>, DELETE /payments/<id>
# PATCH /payments/<id>/adjust
# -------------------------------------------------------------------
@admin_bp.route("/payments", methods=["GET"])
@role_required("admin", "member")
def payments_list():
    params = ListParams.from_args(request.args, filter_keys=("is_adjusted",))
    pagination = payment_service.list_payments(caller(), params, per_page=per_page())
    return jsonify(
        {
            "payments": [p.to_dict() for p in pagination.items],
            "meta": pagination_meta(pagination),
            "filters": params.echo(),
        }
    ), 200


@admin_bp.route("/payments", methods=["POST"])
@admin_required
def payments_store():
    payment = payment_service.create_payment(caller(), payload())
    return ok("Payment created successfully.", 201, payment=payment.to_dict())


@admin_bp.route("/payments/create", methods=["GET"])
@admin_required
def payments_create():
    return jsonify({"investors": account_service.investor_choices()}), 200


@admin_bp.route("/payments/<int:payment_id>", methods=["GET"])
@role_required("admin", "member")
def payments_show(payment_id: int):
    payment = payment_service.get_payment(caller(), payment_id)
    return jsonify(
        {
            "payment": payment.to_dict(with_accounts=True),
            "investment_types": allocation_service.INVESTMENT_TYPES,
        }
    ), 200


@admin_bp.route("/payments/<int:payment_id>/edit", methods=["GET"])
@admin_required
def payments_edit(payment_id: int):
    payment = payment_service.get_payment(caller(), payment_id, ability="update")
    return jsonify(
        {"payment": payment.to_dict(), "investors": account_service.investor_choices()}
    ), 200


@admin_bp.route("/payments/<int:payment_id>", methods=["PUT", "PATCH"])
@admin_required
def payments_update(payment_id: int):
    payment = payment_service.update_payment(caller(), payment_id, payload())
    return ok("Payment updated successfully.", payment=payment.to_dict())


@admin_bp.route("/payments/<int:payment_id>/adjust", methods=["PATCH"])
@admin_required
def payments_adjust(payment_id: int):
    payment = payment_service.toggle_adjusted(caller(), payment_id)
    return ok("Data successfully updated.", payment=payment.to_dict())


@admin_bp.route("/payments/<int:payment_id>", methods=["DELETE"])
@admin_required
def payments_destroy(payment_id: int):
    payment_service.delete_payment(caller(), payment_id)
    return ok("Payment deleted successfully.")


# -------------------------------------------------------------------
# Investments (allocation of a payment)
# POST /investments/bulk/<payment_id>
# POST /investments/bulk   (payment_id in the body)
# -------------------------------------------------------------------
@admin_bp.route("/investments/bulk/<int:payment_id>", methods=["POST"])
@admin_bp.route("/investments/bulk", methods=["POST"])
@admin_required
def investments_store_bulk(payment_id: int | None = None):
    data = payload()
    if payment_id is None:
        payment_id = parse_int(data.get("payment_id"))
        if payment_id is None:
            raise ValidationError(
                {"payment_id": ["The payment id field is required."]}, old=data
            )

    result = allocation_service.record_allocations(
        caller(), payment_id, data.get(allocation_service.BATCH_FIELD)
    )
    return ok(
        "Investments added successfully!",
        201,
        payment=result.payment.to_dict(),
        investments=[i.to_dict() for i in result.investments],
    )


# -------------------------------------------------------------------
# Users
# GET /users, POST /users, GET /users/create
# GET /users/<id>, GET /users/<id>/edit
# PUT|PATCH /users/<id>, DELETE /users/<id> (always refused)
# -------------------------------------------------------------------
@admin_bp.route("/users", methods=["GET"])
@role_required("admin", "member")
def users_list():
    params = ListParams.from_args(request.args, filter_keys=("verified",))
    pagination = user_service.list_users(caller(), params, per_page=per_page())
    return jsonify(
        {
            "users": [u.to_dict() for u in pagination.items],
            "meta": pagination_meta(pagination),
            "filters": params.echo(),
        }
    ), 200


@admin_bp.route("/users", methods=["POST"])
@admin_required
def users_store():
    user = user_service.create_user(caller(), payload())
    return ok("User created successfully.", 201, user=user.to_dict())


@admin_bp.route("/users/create", methods=["GET"])
@admin_required
def users_create():
    return jsonify({"roles": user_service.USER_ROLES}), 200


@admin_bp.route("/users/<int:user_id>", methods=["GET"])
@role_required("admin", "member")
def users_show(user_id: int):
    user = user_service.get_user(caller(), user_id)
    return jsonify({"user": user.to_dict()}), 200


@admin_bp.route("/users/<int:user_id>/edit", methods=["GET"])
@admin_required
def users_edit(user_id: int):
    user = user_service.get_user(caller(), user_id, ability="update")
    return jsonify({"user": user.to_dict(), "roles": user_service.USER_ROLES}), 200


@admin_bp.route("/users/<int:user_id>", methods=["PUT", "PATCH"])
@admin_required
def users_update(user_id: int):
    user = user_service.update_user(caller(), user_id, payload())
    return ok("User updated successfully.", user=user.to_dict())


@admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
@admin_required
def users_destroy(user_id: int):
    user_service.delete_user(caller(), user_id)
    return ok("User deleted successfully.")
