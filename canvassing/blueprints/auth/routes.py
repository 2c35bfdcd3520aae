"""
Authentication routes (JSON).

Provides:
- POST /auth/login
- POST /auth/logout
- POST /auth/seed-admin (first system bootstrap)
- GET/POST /auth/users (admin only)
- GET /auth/me

Rules:
- Only active users may log in.
- Credentials are checked against Werkzeug password hashes.
- seed-admin works exactly once: while the users table is empty.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from ...audit import log_action, serialize_model
from ...errors import ValidationFailed
from ...extensions import db
from ...models import ROLE_ADMIN, ROLES, User
from ...security import admin_required

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailed("Expected a JSON object body.")
    return data


def _text(data: dict, name: str) -> str:
    return str(data.get(name) or "").strip()


# ============================================================
# LOGIN / LOGOUT
# ============================================================

@auth_bp.route("/login", methods=["POST"])
def login():
    data = _body()
    username = _text(data, "username")
    password = str(data.get("password") or "")

    if not username or not password:
        raise ValidationFailed("Username and password are required.")

    user = User.query.filter_by(username=username).first()

    if not user or not user.check_password(password):
        logger.info("Failed login for %s", username, extra={"user": username})
        return jsonify({"error": "Unauthorized", "message": "Invalid username or password."}), 401

    if not user.is_active:
        return jsonify({"error": "Forbidden", "message": "This account is inactive."}), 403

    login_user(user)
    logger.info("User %s logged in", username, extra={"user": username})
    return jsonify({"user": user.to_dict()})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"message": "Logged out."})


@auth_bp.route("/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})


# ============================================================
# SEED FIRST ADMIN (BOOTSTRAP)
# ============================================================

@auth_bp.route("/seed-admin", methods=["POST"])
def seed_admin():
    """
    Bootstrap the FIRST admin of the system.

    Blocked as soon as any user exists.
    """
    if User.query.count() > 0:
        return jsonify({"error": "Conflict", "message": "A user already exists."}), 409

    data = _body()
    username = _text(data, "username")
    password = str(data.get("password") or "")

    if not username or not password:
        raise ValidationFailed("Username and password are required.")

    user = User(
        username=username,
        full_name=_text(data, "full_name") or "System Administrator",
        designation=_text(data, "designation") or None,
        role=ROLE_ADMIN,
        is_active=True,
    )
    user.set_password(password)

    db.session.add(user)
    db.session.commit()

    logger.info("Bootstrap admin %s created", username, extra={"user": username})
    return jsonify({"user": user.to_dict()}), 201


# ============================================================
# USER MANAGEMENT (ADMIN)
# ============================================================

@auth_bp.route("/users", methods=["GET"])
@admin_required
def list_users():
    users = User.query.order_by(User.username.asc()).all()
    return jsonify({"users": [u.to_dict() for u in users]})


@auth_bp.route("/users", methods=["POST"])
@admin_required
def create_user():
    """
    Create a login account.

    full_name should match the roster name when signer identity is enforced.
    """
    data = _body()
    username = _text(data, "username")
    password = str(data.get("password") or "")
    full_name = _text(data, "full_name")
    role = _text(data, "role") or "viewer"

    problems = []
    if not username:
        problems.append("Username is required.")
    if not password:
        problems.append("Password is required.")
    if not full_name:
        problems.append("Full name is required.")
    if role not in ROLES:
        problems.append(f"Role must be one of: {', '.join(ROLES)}.")
    if problems:
        raise ValidationFailed("Invalid user.", problems=problems)

    if User.query.filter_by(username=username).first():
        return jsonify({"error": "Conflict", "message": "Username already exists."}), 409

    user = User(
        username=username,
        full_name=full_name,
        designation=_text(data, "designation") or None,
        role=role,
        is_active=bool(data.get("is_active", True)),
    )
    user.set_password(password)

    db.session.add(user)
    db.session.flush()

    after = serialize_model(user)
    after.pop("password_hash", None)
    log_action(user, "CREATE", after=after)
    db.session.commit()

    return jsonify({"user": user.to_dict()}), 201
