from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence

from .config import AppConfig, clean_api_key
from .domain.models import API_KEY_MASK, BlogPost, Product, Settings, Template
from .errors import NotFoundError, ValidationError
from .events import NoticeBoard
from .generation.client import GenerationClient, require_products
from .generation.providers import TextProvider, build_provider
from .logging import get_logger
from .store import RecordStore


LOG = get_logger("blog-service")

ProviderFactory = Callable[[AppConfig, Optional[str]], TextProvider]


class BlogService:
    """Coordinates the record store, the generation client and user notices.

    Settings are read from the store and passed explicitly into each
    generation call; `update_settings` is the only code path that writes them.
    """

    def __init__(
        self,
        store: RecordStore,
        config: AppConfig,
        *,
        provider_factory: ProviderFactory = build_provider,
        notices: Optional[NoticeBoard] = None,
    ) -> None:
        self.store = store
        self.config = config
        self.provider_factory = provider_factory
        self.notices = notices or NoticeBoard()

    # ---------- settings ----------
    def get_settings(self) -> Settings:
        return self.store.get_settings()

    def update_settings(self, patch: Dict[str, Any]) -> Settings:
        if not isinstance(patch, dict):
            raise ValidationError("Settings must be a JSON object")
        settings = self.store.get_settings().updated(patch)
        self.store.save_settings(settings)
        self.notices.success("Settings saved.")
        return settings

    def _effective_api_key(self, settings: Settings) -> Optional[str]:
        return self.config.api_key or clean_api_key(settings.api_key)

    def api_key_status(self) -> Optional[str]:
        return API_KEY_MASK if self._effective_api_key(self.store.get_settings()) else None

    def _client(self, settings: Settings) -> GenerationClient:
        provider = self.provider_factory(self.config, self._effective_api_key(settings))
        return GenerationClient(provider)

    # ---------- products ----------
    def list_products(self, *, search: Optional[str] = None, category: Optional[str] = None) -> List[Product]:
        return self.store.list_products(search=search or None, category=category or None)

    def list_categories(self) -> List[str]:
        return self.store.list_categories()

    def get_product(self, product_id: str) -> Product:
        product = self.store.get_product(product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    def create_product(self, data: Dict[str, Any]) -> Product:
        product = self.store.create_product(data)
        self.notices.success(f"Product '{product.display_name}' saved.")
        return product

    def update_product(self, product_id: str, data: Dict[str, Any]) -> Product:
        product = self.store.update_product(product_id, data)
        self.notices.success(f"Product '{product.display_name}' updated.")
        return product

    def delete_product(self, product_id: str) -> None:
        if not self.store.delete_product(product_id):
            raise NotFoundError("Product not found")
        self.notices.info("Product deleted.")

    def delete_products(self, ids: Any) -> int:
        count = self.store.delete_products(_require_ids(ids, "product"))
        self.notices.info(f"Deleted {count} product(s).")
        return count

    def fetch_product_details(self, product_url: str, *, settings: Optional[Settings] = None) -> Dict[str, Any]:
        settings = settings or self.store.get_settings()
        details = self._client(settings).fetch_product_details(product_url)
        self.notices.success(f"Fetched details for '{details['title']}'.")
        return details

    def fetch_and_save_product(self, product_url: str, *, settings: Optional[Settings] = None) -> Product:
        details = self.fetch_product_details(product_url, settings=settings)
        product = self.store.upsert_product_from_fetch({**details, "productUrl": product_url.strip()})
        self.notices.success(f"Product '{product.display_name}' saved from {product.product_url}.")
        return product

    # ---------- posts ----------
    def list_posts(self) -> List[BlogPost]:
        return self.store.list_posts()

    def get_post(self, post_id: str) -> BlogPost:
        post = self.store.get_post(post_id)
        if post is None:
            raise NotFoundError("Post not found")
        return post

    def save_post(self, data: Dict[str, Any]) -> BlogPost:
        if not isinstance(data, dict):
            raise ValidationError("Post must be a JSON object")
        post = self.store.save_post(data)
        self.notices.success(f"Post '{post.title}' saved.")
        return post

    def delete_post(self, post_id: str) -> None:
        if not self.store.delete_post(post_id):
            raise NotFoundError("Post not found")
        self.notices.info("Post deleted.")

    def delete_posts(self, ids: Any) -> int:
        count = self.store.delete_posts(_require_ids(ids, "post"))
        self.notices.info(f"Deleted {count} post(s).")
        return count

    # ---------- templates ----------
    def list_templates(self) -> List[Template]:
        return self.store.list_templates()

    def get_template(self, template_id: str) -> Template:
        template = self.store.get_template(template_id)
        if template is None:
            raise NotFoundError("Template not found")
        return template

    def save_template(self, data: Dict[str, Any]) -> Template:
        if not isinstance(data, dict):
            raise ValidationError("Template must be a JSON object")
        template = self.store.save_template(data)
        self.notices.success(f"Template '{template.name}' saved.")
        return template

    def delete_template(self, template_id: str) -> None:
        if not self.store.delete_template(template_id):
            raise NotFoundError("Template not found")
        self.notices.info("Template deleted.")

    # ---------- generation ----------
    def _resolve_products(self, items: Any) -> List[Product]:
        """Accept product dicts (used as-is) or stored product ids."""
        if items is None:
            return []
        if not isinstance(items, list):
            raise ValidationError("products must be a list")
        products: List[Product] = []
        for item in items:
            if isinstance(item, dict):
                products.append(Product.from_dict(item))
            elif isinstance(item, str) and item.strip():
                products.append(self.get_product(item.strip()))
            else:
                raise ValidationError("products entries must be objects or product ids")
        return products

    def _resolve_template_prompt(self, template_prompt: Optional[str], template_id: Optional[str]) -> Optional[str]:
        if template_prompt and template_prompt.strip():
            return template_prompt
        if template_id and template_id != "default":
            return self.get_template(template_id).prompt
        return None

    def generate_post(
        self,
        products: Any,
        instructions: Optional[str] = None,
        *,
        template_prompt: Optional[str] = None,
        template_id: Optional[str] = None,
        seo_keywords: Any = None,
        include_comparison_cards: bool = False,
        save: bool = False,
        settings: Optional[Settings] = None,
    ) -> Dict[str, Any]:
        resolved = self._resolve_products(products)
        require_products(resolved)
        settings = settings or self.store.get_settings()
        prompt_text = self._resolve_template_prompt(template_prompt, template_id)

        generated = self._client(settings).generate_post(
            settings,
            resolved,
            instructions,
            template_prompt=prompt_text,
            seo_keywords=seo_keywords,
            include_comparison_cards=include_comparison_cards,
        )
        result = generated.as_dict()
        if save:
            post = self.store.save_post(
                {
                    **result,
                    "name": generated.title,
                    "products": [p.as_dict() for p in resolved],
                }
            )
            result.update({"id": post.id, "createdAt": post.created_at, "products": post.products})
            self.notices.success(f"Post '{post.title}' generated and saved.")
        else:
            self.notices.success(f"Post '{generated.title}' generated.")
        return result

    def generate_title_ideas(self, products: Any) -> List[str]:
        resolved = self._resolve_products(products)
        require_products(resolved)
        settings = self.store.get_settings()
        return self._client(settings).generate_title_ideas(resolved)

    def generate_tags(self, title: str, content: str) -> List[str]:
        settings = self.store.get_settings()
        return self._client(settings).generate_tags(title or "", content or "")

    def test_connection(self) -> bool:
        settings = self.store.get_settings()
        if not self._effective_api_key(settings):
            LOG.warning("Connection test skipped: no API key configured")
            return False
        ok = self._client(settings).test_connection()
        if ok:
            self.notices.success("Connection to the generation backend succeeded.")
        else:
            self.notices.error("Connection failed. Please check your API key.")
        return ok


def _require_ids(ids: Any, kind: str) -> Sequence[str]:
    if not isinstance(ids, list) or not ids or not all(isinstance(i, str) and i for i in ids):
        raise ValidationError(f"Invalid or empty array of {kind} IDs provided.")
    return ids
