"""
Auth blueprint package.

Exposes the Blueprint object for create_app(); routes live in routes.py.
"""

from .routes import auth_bp  # noqa: F401
