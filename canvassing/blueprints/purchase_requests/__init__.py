"""
Purchase request blueprint package.

Exposes the Blueprint object for create_app(); routes live in routes.py.
"""

from .routes import requests_bp  # noqa: F401
