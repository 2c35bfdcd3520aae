"""
canvassing/security.py

Access control helpers.

Key rules:
- The client is never trusted; every permission check is server-side.
- admin: everything, including user management.
- bac: runs canvass sessions and request intake.
- viewer: read-only, except logging out and moving the review cursor
  of a canvass session.

viewer_readonly_guard() is the global safety net. It is wired via
app.before_request in the app factory. Routes still declare their own
decorators.

IMPORTANT:
- Decorators use functools.wraps so Flask endpoint names stay unique.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Optional, Tuple

from flask import jsonify, request
from flask_login import current_user

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

# Mutating endpoints any authenticated user may call
SELF_SERVICE_ENDPOINTS = {"auth.logout", "auth.login", "canvass.navigate"}


def _forbidden(message: str = "You do not have permission to do that.") -> Tuple[Any, int]:
    """Consistent JSON 403."""
    return jsonify({"error": "Forbidden", "message": message}), 403


def _unauthenticated() -> Tuple[Any, int]:
    return jsonify({"error": "Unauthorized", "message": "Login required."}), 401


def is_admin() -> bool:
    return bool(current_user.is_authenticated and getattr(current_user, "is_admin", False))


def is_bac() -> bool:
    """admin or bac role (User.can_manage())."""
    if not current_user.is_authenticated:
        return False
    can_manage = getattr(current_user, "can_manage", None)
    return bool(callable(can_manage) and can_manage())


def viewer_readonly_guard() -> Optional[Tuple[Any, int]]:
    """
    Global guard: viewers cannot mutate data.

    Blocks POST/PUT/PATCH/DELETE for authenticated users that are neither
    admin nor bac. Anonymous requests pass through; login_required on the
    route answers those with 401.
    """
    if request.method not in MUTATING_METHODS:
        return None

    if not current_user.is_authenticated:
        return None

    if is_admin() or is_bac():
        return None

    endpoint = (request.endpoint or "").strip()
    if endpoint in SELF_SERVICE_ENDPOINTS:
        return None

    return _forbidden("Viewers have read-only access.")


def admin_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: admin-only."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not current_user.is_authenticated:
            return _unauthenticated()
        if not is_admin():
            return _forbidden()
        return view_func(*args, **kwargs)

    return wrapper


def bac_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: bac or admin. Used on every canvass and intake mutation."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not current_user.is_authenticated:
            return _unauthenticated()
        if not is_bac():
            return _forbidden()
        return view_func(*args, **kwargs)

    return wrapper
