from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from ..domain.models import GeneratedPost, Product, Settings
from ..domain.normalize import ensure_dollar_sign
from ..errors import AppError, GenerationError, ValidationError
from ..logging import get_logger
from .parser import ParseResult, parse_reply
from .prompt import (
    POST_SCHEMA,
    PRODUCT_DETAILS_SCHEMA,
    TAGS_SCHEMA,
    TITLE_IDEAS_SCHEMA,
    build_fetch_prompt,
    build_post_prompt,
    build_tags_prompt,
    build_title_prompt,
)
from .providers import TextProvider


LOG = get_logger("generation-client")


def require_products(products: Sequence[Product]) -> None:
    if not products:
        raise ValidationError("At least one product is required to generate a post")


class GenerationClient:
    """Submit prompts to a provider and return validated, structured replies.

    One attempt per call: any provider exception, unparseable reply or
    missing key surfaces as GenerationError.
    """

    def __init__(self, provider: TextProvider) -> None:
        self.provider = provider

    def _call(
        self,
        label: str,
        prompt: str,
        schema: Dict[str, Any],
        *,
        grounded: bool = False,
        temperature: Optional[float] = None,
    ) -> Any:
        LOG.info("Calling %s backend for %s (prompt %d chars)", self.provider.name, label, len(prompt))
        LOG.debug("Prompt for %s:\n%s", label, prompt)
        try:
            text = self.provider.generate(prompt, schema=schema, grounded=grounded, temperature=temperature)
        except AppError:
            raise
        except Exception as exc:
            LOG.error("%s failed at provider %s: %s", label, self.provider.name, exc)
            raise GenerationError(f"Failed to {label}: {exc}") from exc

        result: ParseResult = parse_reply(text, schema)
        if not result.ok:
            LOG.error("%s reply rejected: %s (first 300 chars: %r)", label, result.error, result.raw[:300])
            raise GenerationError(f"Failed to {label}: {result.error}")
        return result.value

    def fetch_product_details(self, product_url: str) -> Dict[str, Any]:
        """Search-grounded lookup of a product page's title, price, description and image."""
        url = (product_url or "").strip()
        if not url:
            raise ValidationError("productUrl is required")
        if not self.provider.supports_grounding:
            raise GenerationError(
                f"Fetching product details needs a search-grounded backend; '{self.provider.name}' has none. "
                "Please fill the fields manually."
            )
        data = self._call(
            "fetch product details",
            build_fetch_prompt(url),
            PRODUCT_DETAILS_SCHEMA,
            grounded=True,
            temperature=0.0,
        )
        return {
            "title": data["title"].strip(),
            "brand": (data.get("brand") or "").strip(),
            "price": ensure_dollar_sign(data["price"]),
            "description": data["description"].strip(),
            "imageUrl": data["imageUrl"].strip(),
        }

    def generate_post(
        self,
        settings: Settings,
        products: Sequence[Product],
        instructions: Optional[str],
        template_prompt: Optional[str] = None,
        seo_keywords: Any = None,
        include_comparison_cards: bool = False,
    ) -> GeneratedPost:
        require_products(products)
        prompt = build_post_prompt(
            settings,
            products,
            instructions,
            template_prompt=template_prompt,
            seo_keywords=seo_keywords,
            include_comparison_cards=include_comparison_cards,
        )
        data = self._call("generate blog post", prompt, POST_SCHEMA)
        post = GeneratedPost.from_reply(data)
        LOG.info("Generated post %r (%d chars, %d tags)", post.title, len(post.content), len(post.tags))
        return post

    def generate_title_ideas(self, products: Sequence[Product]) -> List[str]:
        require_products(products)
        titles = self._call("generate title ideas", build_title_prompt(products), TITLE_IDEAS_SCHEMA)
        return [t.strip() for t in titles if t.strip()]

    def generate_tags(self, title: str, content: str) -> List[str]:
        if not (title or "").strip() and not (content or "").strip():
            raise ValidationError("A title or content is required to generate tags")
        tags = self._call("generate tags", build_tags_prompt(title, content), TAGS_SCHEMA)
        return [t.strip() for t in tags if t.strip()]

    def test_connection(self) -> bool:
        try:
            self.provider.generate("Hello")
        except Exception as exc:
            LOG.error("Connection test against %s failed: %s", self.provider.name, exc)
            return False
        LOG.info("Connection test against %s succeeded", self.provider.name)
        return True
