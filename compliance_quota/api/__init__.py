"""HTTP API for the compliance quota service."""

from .app import create_app

__all__ = ["create_app"]
