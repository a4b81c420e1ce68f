"""
CareLink API package.

Provides the FastAPI application exposing the identity, linking and
assignment progress engine.
"""

from .app import app, create_app

__all__ = ["app", "create_app"]
