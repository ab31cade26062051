"""Prompt building, provider backends and reply validation for post generation.

Modules:
- prompt: placeholder substitution and reply schemas
- parser: JSON extraction and schema validation (tagged ParseResult)
- providers: Gemini / OpenRouter / OpenAI backends
- client: GenerationClient, the operations the service calls
"""

from .client import GenerationClient, require_products
from .parser import ParseResult, parse_reply
from .prompt import build_post_prompt
from .providers import TextProvider, build_provider

__all__ = [
    "GenerationClient",
    "ParseResult",
    "TextProvider",
    "build_post_prompt",
    "build_provider",
    "parse_reply",
    "require_products",
]
