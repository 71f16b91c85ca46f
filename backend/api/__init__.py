"""
vARY API package.

Provides the FastAPI application for the vARY credit and access service.
"""

from .app import app, create_app

__all__ = ["app", "create_app"]
