"""
Affiliate Posts – generate affiliate-marketing blog posts from a product library.

The package keeps products, posts, templates and settings in a local SQLite
record store, assembles prompts from them and asks a text-generation backend
(Gemini, OpenRouter or OpenAI) for structured replies. A Starlette API and an
argparse CLI sit on top of the shared `BlogService`.
"""

__all__ = [
    "api",
    "config",
    "domain",
    "generation",
    "logging",
    "paths",
    "service",
    "store",
]
