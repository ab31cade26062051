from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from ..errors import ValidationError
from .normalize import clean_text, ensure_dollar_sign, normalize_tags, optional_text


DEFAULT_CATEGORY = "Uncategorized"
DEFAULT_CTA_TEXT = "Check Price"
DEFAULT_FOOTER_TEXT = (
    "As an affiliate, I earn from qualifying purchases. This does not affect the price you pay."
)
API_KEY_MASK = "SET"

TONES = (
    "",
    "friendly",
    "professional",
    "humorous",
    "technical",
    "casual",
    "witty",
    "authoritative",
)


@dataclass
class Product:
    id: Optional[str]
    name: str
    title: str = ""
    product_url: Optional[str] = None
    image_url: str = ""
    price: str = ""
    description: str = ""
    other_info: str = ""
    brand: str = ""
    affiliate_link: str = ""
    category: str = DEFAULT_CATEGORY
    tags: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.title

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        """Build from the camelCase JSON shape used by the API and the store."""
        return cls(
            id=optional_text(data.get("id")),
            name=clean_text(data.get("name")),
            title=clean_text(data.get("title")),
            product_url=optional_text(data.get("productUrl")),
            image_url=clean_text(data.get("imageUrl")),
            price=ensure_dollar_sign(data.get("price")),
            description=clean_text(data.get("description")),
            other_info=clean_text(data.get("otherInfo")),
            brand=clean_text(data.get("brand")),
            affiliate_link=clean_text(data.get("affiliateLink")),
            category=clean_text(data.get("category")) or DEFAULT_CATEGORY,
            tags=normalize_tags(data.get("tags")),
            created_at=optional_text(data.get("createdAt")),
            updated_at=optional_text(data.get("updatedAt")),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "title": self.title,
            "productUrl": self.product_url or "",
            "imageUrl": self.image_url,
            "price": self.price,
            "description": self.description,
            "otherInfo": self.other_info,
            "brand": self.brand,
            "affiliateLink": self.affiliate_link,
            "category": self.category,
            "tags": list(self.tags),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def merged(self, patch: Dict[str, Any]) -> "Product":
        """Return a copy with the camelCase keys present in `patch` applied."""
        current = self.as_dict()
        current.update({k: v for k, v in patch.items() if k in current and k not in ("id", "createdAt")})
        return Product.from_dict(current)


@dataclass
class BlogPost:
    id: Optional[str]
    title: str
    content: str = ""
    name: str = ""
    hero_image_url: str = ""
    tags: List[str] = field(default_factory=list)
    labels: str = ""
    meta_description: str = ""
    social_media_snippets: str = ""
    asins: str = ""
    # Point-in-time copies of the products the post was written from.
    products: List[Dict[str, Any]] = field(default_factory=list)
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BlogPost":
        products = data.get("products") or []
        snapshot = [Product.from_dict(p).as_dict() for p in products if isinstance(p, dict)]
        return cls(
            id=optional_text(data.get("id")),
            title=clean_text(data.get("title")),
            content=data.get("content") if isinstance(data.get("content"), str) else "",
            name=clean_text(data.get("name")),
            hero_image_url=clean_text(data.get("heroImageUrl")),
            tags=normalize_tags(data.get("tags")),
            labels=clean_text(data.get("labels")),
            meta_description=clean_text(data.get("metaDescription")),
            social_media_snippets=clean_text(data.get("socialMediaSnippets")),
            asins=clean_text(data.get("asins")),
            products=snapshot,
            created_at=optional_text(data.get("createdAt")),
        )

    def as_dict(self, *, include_content: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "title": self.title,
            "heroImageUrl": self.hero_image_url,
            "tags": list(self.tags),
            "labels": self.labels,
            "metaDescription": self.meta_description,
            "socialMediaSnippets": self.social_media_snippets,
            "asins": self.asins,
            "products": [dict(p) for p in self.products],
            "createdAt": self.created_at,
        }
        if include_content:
            out["content"] = self.content
        return out


@dataclass
class Template:
    id: Optional[str]
    name: str
    prompt: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Template":
        return cls(
            id=optional_text(data.get("id")),
            name=clean_text(data.get("name")),
            prompt=data.get("prompt") if isinstance(data.get("prompt"), str) else "",
        )

    def as_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "prompt": self.prompt}


@dataclass(frozen=True)
class Settings:
    """Global writing settings. Immutable; updates produce a new value."""

    general_instructions: str = ""
    tone: str = ""
    cta_text: str = DEFAULT_CTA_TEXT
    footer_text: str = DEFAULT_FOOTER_TEXT
    api_key: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        base = cls()
        return base.updated(data)

    def updated(self, patch: Dict[str, Any]) -> "Settings":
        """Apply camelCase keys from `patch`; a masked or blank apiKey keeps the stored one."""
        changes: Dict[str, Any] = {}
        if "generalInstructions" in patch:
            changes["general_instructions"] = clean_text(patch.get("generalInstructions"))
        if "tone" in patch:
            tone = clean_text(patch.get("tone")).lower()
            if tone not in TONES:
                raise ValidationError(f"Unknown tone '{tone}'; expected one of: {', '.join(t for t in TONES if t)}")
            changes["tone"] = tone
        if "ctaText" in patch:
            changes["cta_text"] = clean_text(patch.get("ctaText")) or DEFAULT_CTA_TEXT
        if "footerText" in patch:
            changes["footer_text"] = clean_text(patch.get("footerText"))
        if "apiKey" in patch:
            key = optional_text(patch.get("apiKey"))
            if key is None and patch.get("apiKey") is None:
                changes["api_key"] = None
            elif key and key != API_KEY_MASK:
                changes["api_key"] = key
        return replace(self, **changes)

    def as_dict(self, *, mask_api_key: bool = True) -> Dict[str, Any]:
        if mask_api_key:
            key: Optional[str] = API_KEY_MASK if self.api_key else None
        else:
            key = self.api_key
        return {
            "generalInstructions": self.general_instructions,
            "tone": self.tone,
            "ctaText": self.cta_text,
            "footerText": self.footer_text,
            "apiKey": key,
        }


@dataclass(frozen=True)
class GeneratedPost:
    """Validated reply of a post generation call."""

    title: str
    content: str
    hero_image_url: str = ""
    tags: List[str] = field(default_factory=list)
    meta_description: str = ""
    social_media_snippets: str = ""

    @classmethod
    def from_reply(cls, data: Dict[str, Any]) -> "GeneratedPost":
        return cls(
            title=clean_text(data.get("title")),
            content=data.get("content") or "",
            hero_image_url=clean_text(data.get("heroImageUrl")),
            tags=normalize_tags(data.get("tags")),
            meta_description=clean_text(data.get("metaDescription")),
            social_media_snippets=clean_text(data.get("socialMediaSnippets")),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "heroImageUrl": self.hero_image_url,
            "tags": list(self.tags),
            "metaDescription": self.meta_description,
            "socialMediaSnippets": self.social_media_snippets,
        }
