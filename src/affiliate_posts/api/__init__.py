"""Starlette application exposing the record store and generation client."""

from .app import create_app

__all__ = ["create_app"]
