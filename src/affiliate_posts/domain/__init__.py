"""Typed records shared by the store, the generation client and the API."""

from .models import BlogPost, GeneratedPost, Product, Settings, Template

__all__ = ["BlogPost", "GeneratedPost", "Product", "Settings", "Template"]
