"""ASGI application factory and dependencies for the splitcheck server."""

from splitcheck.server.app import app, create_app

__all__ = ["app", "create_app"]
