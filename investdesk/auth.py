# investdesk/auth.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from .extensions import db, limiter, login_manager
from .models import User
from .utils.passwords import verify_password
from .utils.validation import Validator

auth = Blueprint("auth", __name__)


# =========================================================
# Flask-Login hooks
# =========================================================
@login_manager.user_loader
def load_user(user_id: str):
    try:
        user = db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None
    if user is None or user.is_deleted:
        return None
    return user


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"message": "Unauthenticated."}), 401


def _login_limit() -> str:
    return current_app.config.get("LOGIN_RATE_LIMIT", "5 per minute")


# =========================================================
# Login / Logout
# =========================================================
@auth.route("/login", methods=["POST"])
@limiter.limit(_login_limit)
def login():
    data = request.get_json(silent=True) or request.form.to_dict()

    v = Validator(data)
    email = v.email("email")
    password = data.get("password") or ""
    if not password:
        v.add("password", "The password field is required.")
    v.raise_if_invalid()

    user = User.query.filter(db.func.lower(User.email) == email).first()
    if not user or user.is_deleted or not verify_password(user.password_hash, password):
        current_app.logger.info("Failed login for %s", email)
        return jsonify({"message": "These credentials do not match our records."}), 401

    login_user(user, remember=bool(data.get("remember")))
    current_app.logger.info("User %s logged in", user.id)
    return jsonify({"message": "Logged in.", "user": user.to_dict()}), 200


@auth.route("/logout", methods=["POST"])
def logout():
    """Not login_required: logging out twice is harmless."""
    logout_user()
    return jsonify({"message": "You have been logged out."}), 200


@auth.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"user": current_user.to_dict()}), 200
