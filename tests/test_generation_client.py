from __future__ import annotations

import json

import pytest

from affiliate_posts.domain.models import Product, Settings
from affiliate_posts.errors import GenerationError, ValidationError
from affiliate_posts.generation.client import GenerationClient

from conftest import FakeProvider


POST_REPLY = json.dumps(
    {
        "title": "Widget vs Gadget",
        "content": "<p>Both are great.</p>",
        "heroImageUrl": "https://example.com/widget.jpg",
        "tags": ["widget", "gadget", "widget"],
        "metaDescription": "Which one should you buy?",
        "socialMediaSnippets": "Post one\n\nPost two",
    }
)


def _products() -> list:
    return [Product(id="p1", name="Widget", price="$5"), Product(id="p2", name="Gadget")]


def test_generate_post_returns_structured_post() -> None:
    provider = FakeProvider([POST_REPLY])
    post = GenerationClient(provider).generate_post(Settings(), _products(), "Keep it short")

    assert post.title == "Widget vs Gadget"
    assert post.tags == ["widget", "gadget"]
    assert post.meta_description == "Which one should you buy?"
    assert len(provider.calls) == 1
    assert "Keep it short" in provider.calls[0]["prompt"]
    assert provider.calls[0]["grounded"] is False


def test_generate_post_without_products_never_calls_provider() -> None:
    provider = FakeProvider([POST_REPLY])
    with pytest.raises(ValidationError):
        GenerationClient(provider).generate_post(Settings(), [], None)
    assert provider.calls == []


def test_provider_failure_becomes_generation_error() -> None:
    provider = FakeProvider([RuntimeError("socket closed")])
    with pytest.raises(GenerationError) as excinfo:
        GenerationClient(provider).generate_post(Settings(), _products(), None)
    assert "socket closed" in excinfo.value.message
    assert excinfo.value.status_code == 500


def test_unparseable_reply_becomes_generation_error() -> None:
    provider = FakeProvider(["I cannot help with that."])
    with pytest.raises(GenerationError):
        GenerationClient(provider).generate_title_ideas(_products())


def test_fetch_product_details_uses_grounding_and_normalizes_price() -> None:
    reply = json.dumps(
        {"title": " Widget 3000 ", "price": "19.99", "description": "Useful", "imageUrl": "https://x/y.jpg"}
    )
    provider = FakeProvider([reply])
    details = GenerationClient(provider).fetch_product_details("https://example.com/widget")

    assert details == {
        "title": "Widget 3000",
        "brand": "",
        "price": "$19.99",
        "description": "Useful",
        "imageUrl": "https://x/y.jpg",
    }
    assert provider.calls[0]["grounded"] is True
    assert "https://example.com/widget" in provider.calls[0]["prompt"]


def test_fetch_product_details_needs_grounding_backend() -> None:
    provider = FakeProvider(["{}"], supports_grounding=False)
    with pytest.raises(GenerationError):
        GenerationClient(provider).fetch_product_details("https://example.com/widget")
    assert provider.calls == []


def test_fetch_product_details_rejects_blank_url() -> None:
    with pytest.raises(ValidationError):
        GenerationClient(FakeProvider()).fetch_product_details("   ")


def test_title_ideas_and_tags() -> None:
    provider = FakeProvider(['["One", " ", "Two"]', '["seo", "widget"]'])
    client = GenerationClient(provider)

    assert client.generate_title_ideas(_products()) == ["One", "Two"]
    assert client.generate_tags("Widget review", "<p>body</p>") == ["seo", "widget"]


def test_generate_tags_needs_some_text() -> None:
    provider = FakeProvider()
    with pytest.raises(ValidationError):
        GenerationClient(provider).generate_tags("", " ")
    assert provider.calls == []


def test_connection_check_reports_failure() -> None:
    assert GenerationClient(FakeProvider(["hi"])).test_connection() is True
    assert GenerationClient(FakeProvider([RuntimeError("401")])).test_connection() is False
