from __future__ import annotations

import json

import pytest

from affiliate_posts.config import AppConfig
from affiliate_posts.errors import ConfigError, NotFoundError, ValidationError
from affiliate_posts.service import BlogService
from affiliate_posts.store import RecordStore

from conftest import FakeProvider, RecordingFactory


POST_REPLY = json.dumps({"title": "Widget Review", "content": "<p>Good.</p>", "tags": ["widget"]})


def test_generate_post_without_products_skips_backend(service: BlogService, factory: RecordingFactory) -> None:
    with pytest.raises(ValidationError):
        service.generate_post([], "anything")
    assert factory.keys == []
    assert factory.provider.calls == []


def test_generate_post_from_ids_and_save_snapshot(
    service: BlogService, store: RecordStore, provider: FakeProvider
) -> None:
    product = store.create_product({"name": "Widget", "price": "10", "category": "Electronics"})
    provider.replies.append(POST_REPLY)

    result = service.generate_post([product.id], "Be brief", save=True)

    assert result["title"] == "Widget Review"
    assert result["id"]
    assert result["products"][0]["name"] == "Widget"
    assert "Be brief" in provider.calls[0]["prompt"]

    store.update_product(product.id, {"name": "Widget Renamed"})
    saved = service.get_post(result["id"])
    assert saved.name == "Widget Review"
    assert saved.products[0]["name"] == "Widget"


def test_generate_post_with_unknown_product_id(service: BlogService) -> None:
    with pytest.raises(NotFoundError):
        service.generate_post(["missing"])


def test_generate_post_uses_stored_template(service: BlogService, provider: FakeProvider) -> None:
    template = service.save_template({"name": "Haiku", "prompt": "Write the post as a haiku sequence."})
    provider.replies.append(POST_REPLY)

    service.generate_post([{"name": "Widget"}], template_id=template.id)

    assert "Write the post as a haiku sequence." in provider.calls[0]["prompt"]


def test_settings_key_is_used_when_environment_has_none(store: RecordStore) -> None:
    factory = RecordingFactory(FakeProvider([POST_REPLY]))
    svc = BlogService(store, AppConfig(api_key=None), provider_factory=factory)
    assert svc.api_key_status() is None

    svc.update_settings({"apiKey": "from-settings"})
    assert svc.api_key_status() == "SET"

    svc.generate_post([{"name": "Widget"}])
    assert factory.keys == ["from-settings"]


def test_missing_key_fails_before_any_request(store: RecordStore) -> None:
    svc = BlogService(store, AppConfig(api_key=None))
    with pytest.raises(ConfigError) as excinfo:
        svc.generate_post([{"name": "Widget"}])
    assert excinfo.value.status_code == 500
    assert svc.test_connection() is False


def test_fetch_and_save_product(service: BlogService, provider: FakeProvider) -> None:
    provider.replies.append(
        json.dumps({"title": "Widget", "price": "9", "description": "Nice", "imageUrl": "https://x/w.jpg"})
    )

    product = service.fetch_and_save_product(" https://example.com/widget ")

    assert product.product_url == "https://example.com/widget"
    assert product.price == "$9"
    assert service.list_products()[0].id == product.id


def test_deletes_raise_not_found_the_second_time(service: BlogService) -> None:
    product = service.create_product({"name": "Widget"})
    service.delete_product(product.id)
    with pytest.raises(NotFoundError):
        service.delete_product(product.id)

    post = service.save_post({"title": "P", "content": "c"})
    service.delete_post(post.id)
    with pytest.raises(NotFoundError):
        service.delete_post(post.id)


def test_bulk_delete_requires_ids(service: BlogService) -> None:
    with pytest.raises(ValidationError):
        service.delete_posts([])
    with pytest.raises(ValidationError):
        service.delete_products("abc")


def test_notices_are_posted_and_drained(service: BlogService) -> None:
    service.create_product({"name": "Widget"})
    service.update_settings({"tone": "casual"})

    notices = service.notices.drain()
    assert [n.level for n in notices] == ["success", "success"]
    assert "Widget" in notices[0].message
    assert len(service.notices) == 0
